"""
Great-circle distance utilities.

Points are anything exposing `lat` and `lon` attributes in degrees (events,
cabinets, depots).
"""

from math import asin, cos, radians, sin, sqrt
from typing import Iterable, Protocol, Sequence, TypeVar
import numpy as np


EARTH_RADIUS_KM = 6371.0


class GeoPoint(Protocol):
    lat: float
    lon: float


P = TypeVar("P", bound=GeoPoint)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Haversine distance in kilometers. NaN coordinates propagate to a NaN
    result.
    """
    dphi = radians(lat2 - lat1)
    dlmb = radians(lon2 - lon1)
    phi1 = radians(lat1)
    phi2 = radians(lat2)
    a = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * asin(sqrt(min(1.0, a)))


def distance_km(p1: GeoPoint, p2: GeoPoint) -> float:
    return haversine_km(p1.lat, p1.lon, p2.lat, p2.lon)


def pairwise_distance_km(points: Sequence[GeoPoint]) -> np.ndarray:
    """
    Symmetric (n, n) matrix of haversine distances between points.
    """
    n = len(points)
    if n == 0:
        return np.zeros((0, 0), dtype=np.float64)
    lat = np.radians(np.array([float(p.lat) for p in points], dtype=np.float64))
    lon = np.radians(np.array([float(p.lon) for p in points], dtype=np.float64))
    dphi = lat[:, None] - lat[None, :]
    dlmb = lon[:, None] - lon[None, :]
    a = (
        np.sin(dphi / 2.0) ** 2
        + np.cos(lat)[:, None] * np.cos(lat)[None, :] * np.sin(dlmb / 2.0) ** 2
    )
    return 2.0 * EARTH_RADIUS_KM * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


def nearest(origin: GeoPoint, candidates: Iterable[P]) -> tuple[P | None, float]:
    """
    Closest candidate to origin and its distance. Ties keep the first
    candidate found.
    """
    best = None
    best_d = float("inf")
    for c in candidates:
        d = distance_km(origin, c)
        if d < best_d:
            best_d = d
            best = c
    return best, best_d
