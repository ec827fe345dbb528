"""
Driving geometry for route sheets from an OSRM server.

The geometry is decoration only: any failure yields an empty polyline and
never blocks route generation.
"""

from typing import Callable, Sequence

import polyline
import requests
from loguru import logger

from routesheets.config import PolylineSettings
from routesheets.models import Depot, Event


LatLon = tuple[float, float]
PolylineFetcher = Callable[[Depot, Sequence[Event]], list[LatLon]]


def route_waypoints(depot: Depot, stops: Sequence[Event]) -> list[LatLon]:
    """
    Waypoints of a round trip: depot, stops in order, depot.
    """
    return (
        [(depot.lat, depot.lon)]
        + [(s.lat, s.lon) for s in stops]
        + [(depot.lat, depot.lon)]
    )


def build_route_url(settings: PolylineSettings, waypoints: Sequence[LatLon]) -> str:
    # OSRM expects lon,lat pairs.
    coords = ";".join(f"{lon},{lat}" for lat, lon in waypoints)
    return f"{settings.base_url}/route/v1/{settings.profile}/{coords}"


def fetch_route_polyline(
    depot: Depot,
    stops: Sequence[Event],
    settings: PolylineSettings | None = None,
    session: requests.Session | None = None,
) -> list[LatLon]:
    """
    Fetch the driving path depot -> stops -> depot as (lat, lon) pairs.
    Returns an empty list when there are no stops or the service fails.
    """
    if not stops:
        return []
    settings = settings or PolylineSettings()
    url = build_route_url(settings, route_waypoints(depot, stops))
    params = {"overview": "full", "geometries": "polyline"}
    getter = session.get if session is not None else requests.get
    try:
        response = getter(url, params=params, timeout=settings.timeout_sec)
        if response.status_code != 200:
            logger.warning(
                f"OSRM API error: {response.status_code} {response.text[:200]}"
            )
            return []
        data = response.json()
        if data.get("code") != "Ok" or not data.get("routes"):
            logger.warning(
                f"OSRM could not find a route: {data.get('message') or data.get('code')}"
            )
            return []
        encoded = data["routes"][0]["geometry"]
        return [(float(lat), float(lon)) for lat, lon in polyline.decode(encoded)]
    except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as exc:
        logger.warning(f"Error fetching route from OSRM: {exc}")
        return []


def make_polyline_fetcher(settings: PolylineSettings) -> PolylineFetcher | None:
    """
    Fetcher bound to the configured server, None when polylines are
    disabled.
    """
    if not settings.enabled:
        return None
    session = requests.Session()

    def fetch(depot: Depot, stops: Sequence[Event]) -> list[LatLon]:
        return fetch_route_polyline(depot, stops, settings, session=session)

    return fetch
