"""
Route chunking and local sequencing.

A group of events larger than the route size is split into chunks seeded by
the oldest unassigned event and grown by nearest neighbor to the last added
event. Each chunk is then ordered by a nearest neighbor tour from the depot,
which fixes the stop numbering of the sheet. Neither step is a TSP solver.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Sequence

from routesheets.geo import distance_km, GeoPoint
from routesheets.models import Depot, Event


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# Local time of the lighting management exports (Uruguay, UTC-3, no DST).
REPORTED_TZ = timezone(timedelta(hours=-3))

_DAY_FIRST = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{2,4})\s(\d{1,2}):(\d{1,2})")


def parse_reported_date(value: str | None) -> datetime:
    """
    Parse a reported date into an aware UTC datetime.

    Accepts "dd/mm/yyyy HH:MM" (two-digit years are 20xx) and ISO 8601.
    Values without an offset are local time of the exports (REPORTED_TZ).
    Out of range day-first fields roll over ("31/02/2024" is March 2nd).
    Missing or unparseable values are the epoch, so those events count as
    the oldest.
    """
    if not value:
        return EPOCH
    raw = str(value).strip()
    match = _DAY_FIRST.search(raw)
    if match:
        day, month, year, hours, minutes = (int(g) for g in match.groups())
        if year < 100:
            year += 2000
        year += (month - 1) // 12
        month = (month - 1) % 12 + 1
        try:
            local = datetime(year, month, 1, tzinfo=REPORTED_TZ) + timedelta(
                days=day - 1, hours=hours, minutes=minutes
            )
        except (ValueError, OverflowError):
            return EPOCH
        return local.astimezone(timezone.utc)
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=REPORTED_TZ)
    return parsed.astimezone(timezone.utc)


def optimize_route_locally(depot: Depot, events: Sequence[Event]) -> list[Event]:
    """
    Order events by a greedy nearest neighbor tour starting at the depot.
    The depot itself is not part of the returned sequence. Distance ties
    keep the event found first.
    """
    if not events:
        return []
    if len(events) == 1:
        return list(events)

    unvisited = list(events)
    ordered: list[Event] = []
    current: GeoPoint = depot
    while unvisited:
        idx = _nearest_index(current, unvisited)
        nxt = unvisited.pop(idx)
        ordered.append(nxt)
        current = nxt
    return ordered


def chunk_events(events: Sequence[Event], max_size: int) -> list[list[Event]]:
    """
    Split events into chunks of at most `max_size` events covering every
    event exactly once.

    Each chunk starts from the oldest unassigned event (by reported date)
    and grows by repeatedly taking the unassigned event nearest to the last
    one added. The pool is kept in date order, which also decides distance
    ties.
    """
    if max_size <= 0:
        raise ValueError("max_size must be positive")
    snapshot = tuple(events)
    dates = [parse_reported_date(e.reported_date) for e in snapshot]
    pool = list(range(len(snapshot)))

    chunks: list[list[Event]] = []
    while pool:
        pool.sort(key=lambda i: dates[i])
        current = pool.pop(0)
        chunk = [snapshot[current]]
        while len(chunk) < max_size and pool:
            pos = _nearest_index(snapshot[current], [snapshot[i] for i in pool])
            current = pool.pop(pos)
            chunk.append(snapshot[current])
        chunks.append(chunk)
    return chunks


def build_sequenced_chunks(
    depot: Depot,
    events: Sequence[Event],
    max_size: int,
) -> list[list[Event]]:
    """
    Chunk events and sequence every chunk from the depot.
    """
    return [optimize_route_locally(depot, c) for c in chunk_events(events, max_size)]


def _nearest_index(origin: GeoPoint, candidates: Sequence[GeoPoint]) -> int:
    best_idx = 0
    best_d = float("inf")
    for idx, c in enumerate(candidates):
        d = distance_km(origin, c)
        if d < best_d:
            best_d = d
            best_idx = idx
    return best_idx
