"""
Functions to summarize a generation run and its route sheets.
"""

from collections import Counter
from typing import Iterable, Sequence
import numpy as np

from routesheets.geo import haversine_km
from routesheets.models import Event, GenerationSummary, RouteSheet


NO_SITUATION_VALUES = ("N/A", "-")


def situation_of(event: Event) -> str | None:
    """
    The situation tag of an event, None for blank or placeholder values.
    """
    situation = (event.situation or "").strip()
    if not situation or situation in NO_SITUATION_VALUES:
        return None
    return situation


def count_situations(events: Iterable[Event]) -> list[tuple[str, int]]:
    """
    Number of events per situation tag, most frequent first. Blank and
    placeholder tags ("N/A", "-") are not counted.
    """
    counts: Counter[str] = Counter()
    for e in events:
        situation = situation_of(e)
        if situation is not None:
            counts[situation] += 1
    return sorted(counts.items(), key=lambda kv: -kv[1])


def summarize_sheets(sheets: Sequence[RouteSheet]) -> GenerationSummary:
    """
    Sheet totals, per zone and per type (cabinet or regular).
    """
    summary = GenerationSummary()
    for s in sheets:
        summary.total += 1
        summary.by_zone[s.zone_name] = summary.by_zone.get(s.zone_name, 0) + 1
        if s.is_cabinet_route:
            summary.by_type["cabinet"] += 1
        else:
            summary.by_type["regular"] += 1
    return summary


def power_summary(events: Iterable[Event]) -> list[tuple[float, int]]:
    """
    Number of luminaires per nominal power, by ascending power.
    """
    counts = Counter(float(e.power or 0.0) for e in events)
    return sorted(counts.items())


def sheet_power_summary(sheet: RouteSheet) -> list[tuple[float, int]]:
    """
    Power summary of a sheet. Cabinet failure sheets count every affected
    luminaire of the cabinet.
    """
    if sheet.cabinet_data is not None:
        return power_summary(sheet.cabinet_data.affected_luminaires)
    return power_summary(sheet.optimized_route)


def route_distance_km(sheet: RouteSheet) -> float:
    """
    Straight line length of the round trip depot -> stops -> depot.
    """
    if not sheet.optimized_route:
        return 0.0
    pts = (
        [(sheet.depot.lat, sheet.depot.lon)]
        + [(e.lat, e.lon) for e in sheet.optimized_route]
        + [(sheet.depot.lat, sheet.depot.lon)]
    )
    legs = np.array(
        [haversine_km(a[0], a[1], b[0], b[1]) for a, b in zip(pts[:-1], pts[1:])],
        dtype=np.float64,
    )
    return float(legs.sum())


def find_sheet_for_device(sheets: Iterable[RouteSheet], query: str) -> RouteSheet | None:
    """
    First sheet holding an event whose luminaire id or OLC id equals the
    query, ignoring case and surrounding blanks.
    """
    q = (query or "").strip().lower()
    if not q:
        return None
    for sheet in sheets:
        for e in sheet.events:
            if str(e.luminaire_id).lower() == q or str(e.olc_id).lower() == q:
                return sheet
    return None
