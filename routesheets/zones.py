"""
Zone and depot resolution.

An event belongs to the zone of exactly one depot. The zone comes from, in
order: an explicit zone tag on the event, the municipality -> zone mapping
table, and, for groups anchored to a cabinet only, the depot nearest to the
cabinet.
"""

from dataclasses import dataclass
from typing import Literal

from routesheets.config import RoutingConfig
from routesheets.geo import GeoPoint, nearest
from routesheets.models import Cabinet, Depot, Event
from routesheets.text import normalize_string, zone_key


ResolvedVia = Literal["explicit", "mapped", "nearest", "unresolved"]


@dataclass(frozen=True)
class DepotResolution:
    """
    Tagged result of a depot lookup. `depot` is None only when `via` is
    "unresolved", in which case `reason` explains why.
    """
    depot: Depot | None
    via: ResolvedVia
    reason: str | None = None

    @property
    def resolved(self) -> bool:
        return self.depot is not None


class DepotResolver:
    """
    Read-only lookup structures built once from the routing configuration.
    """

    def __init__(self, config: RoutingConfig) -> None:
        self.depots: tuple[Depot, ...] = config.depots
        self._depot_by_key: dict[str, Depot] = {
            zone_key(d.zone_name): d for d in config.depots
        }
        self._zone_by_municipio = config.zone_mapping

    def depot_for_zone(self, zone_name: str | None) -> Depot | None:
        return self._depot_by_key.get(zone_key(zone_name))

    def nearest_depot(self, point: GeoPoint) -> Depot | None:
        depot, _ = nearest(point, self.depots)
        return depot

    def resolve(self, event: Event, cabinet: Cabinet | None = None) -> DepotResolution:
        """
        Resolve the depot of an event. The nearest depot fallback is only
        tried when a cabinet is given.
        """
        if event.zone_name:
            depot = self._depot_by_key.get(zone_key(event.zone_name))
            if depot is not None:
                return DepotResolution(depot=depot, via="explicit")
        if event.municipio:
            mapped = self._zone_by_municipio.get(normalize_string(event.municipio))
            if mapped:
                depot = self._depot_by_key.get(zone_key(mapped))
                if depot is not None:
                    return DepotResolution(depot=depot, via="mapped")
        if cabinet is not None:
            depot = self.nearest_depot(cabinet)
            if depot is not None:
                return DepotResolution(depot=depot, via="nearest")
        return DepotResolution(
            depot=None,
            via="unresolved",
            reason=_unresolved_reason(event, cabinet),
        )


def _unresolved_reason(event: Event, cabinet: Cabinet | None) -> str:
    parts = []
    if event.zone_name:
        parts.append(f"unknown zone '{event.zone_name}'")
    if event.municipio:
        parts.append(f"unmapped municipio '{event.municipio}'")
    if not event.zone_name and not event.municipio:
        parts.append("no zone or municipio")
    if cabinet is None:
        parts.append("no cabinet coordinates")
    return ", ".join(parts)
