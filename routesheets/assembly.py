"""
End to end route sheet generation.

The assembler runs one full pass over the loaded events and cabinets:

    IDLE -> CLASSIFYING -> DEPOT_RESOLVING -> CHUNKING_CABINET_JOBS
         -> PARTITIONING_REMAINDER -> CHUNKING_REGULAR_ROUTES -> MERGING
         -> FINALIZING -> DONE

and ends in FAILED when the pass raises. Items that cannot be placed (a job
or event without a depot, a cabinet failure without its cabinet record) are
skipped and reported as diagnostics; the result is only returned once the
whole pass has completed.
"""

import uuid
from dataclasses import replace
from enum import Enum
from typing import Iterable, Sequence

from loguru import logger

from routesheets.classifier import classify_cabinet_jobs
from routesheets.config import RoutingConfig
from routesheets.errors import NoEventsError, NoMatchingEventsError
from routesheets.geometry import PolylineFetcher
from routesheets.models import (
    PRIORITY_BY_KIND,
    Cabinet,
    CabinetJob,
    CabinetSummary,
    Depot,
    Diagnostic,
    Event,
    GenerationResult,
    RouteSheet,
    SheetKind,
)
from routesheets.sequencing import build_sequenced_chunks, optimize_route_locally
from routesheets.summary import count_situations, situation_of, summarize_sheets
from routesheets.text import natural_sort_key, normalize_string, zone_key
from routesheets.zones import DepotResolver


ALL_ZONES = "all"
NO_MUNICIPIO = "Sin Municipio Asignado"

_JOB_TITLES: dict[str, str] = {
    "cabinet_failure": "Posible falla en Tablero",
    "branch_fault": "POSIBLE FALLA DE RAMAL/FASE",
    "voltage_event": "Evento de Voltaje",
    "circuit_accumulation": "Acumulación de fallas en un circuito",
}


class GenerationState(Enum):
    IDLE = "idle"
    CLASSIFYING = "classifying"
    DEPOT_RESOLVING = "depot_resolving"
    CHUNKING_CABINET_JOBS = "chunking_cabinet_jobs"
    PARTITIONING_REMAINDER = "partitioning_remainder"
    CHUNKING_REGULAR_ROUTES = "chunking_regular_routes"
    MERGING = "merging"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


def assign_internal_ids(events: Iterable[Event]) -> list[Event]:
    """
    Give every event of a run a stable correlation id ("event-<index>"),
    keeping ids that are already set.
    """
    return [
        e if e.internal_id else replace(e, internal_id=f"event-{i}")
        for i, e in enumerate(events)
    ]


def job_sheet_title(job: CabinetJob, depot: Depot) -> str:
    return f"{_JOB_TITLES[job.kind]} ({depot.zone_name}) - Cuenta: {job.account_number}"


class RouteAssembler:
    """
    Builds the route sheets of a generation run.
    """

    def __init__(
        self,
        config: RoutingConfig,
        polyline_fetcher: PolylineFetcher | None = None,
    ) -> None:
        self.config = config
        self.resolver = DepotResolver(config)
        self.polyline_fetcher = polyline_fetcher
        self.state = GenerationState.IDLE
        self._diagnostics: list[Diagnostic] = []

    def generate(
        self,
        events: Sequence[Event],
        cabinets: Sequence[Cabinet] | None = None,
        target_zone: str | None = ALL_ZONES,
    ) -> GenerationResult:
        """
        Run a full generation pass. Raises NoEventsError when no events are
        given and NoMatchingEventsError when no sheet could be produced.
        """
        self._diagnostics = []
        try:
            result = self._run(
                list(events), list(cabinets or []), normalize_target_zone(target_zone)
            )
        except Exception:
            self.state = GenerationState.FAILED
            raise
        self.state = GenerationState.DONE
        return result

    def _run(
        self,
        events: list[Event],
        cabinets: list[Cabinet],
        target_zone: str,
    ) -> GenerationResult:
        if not events:
            raise NoEventsError()
        run_id = uuid.uuid4().hex[:8]
        logger.info(
            f"Generating route sheets | run={run_id} | events={len(events)} | "
            f"cabinets={len(cabinets)} | zone={target_zone}"
        )

        self.state = GenerationState.CLASSIFYING
        events = assign_internal_ids(events)
        jobs = classify_cabinet_jobs(events, self.config)
        logger.info(f"{len(jobs)} cabinet jobs classified")

        self.state = GenerationState.DEPOT_RESOLVING
        cabinet_by_account = {c.account_number.strip(): c for c in cabinets}
        accepted_jobs, processed_ids = self._resolve_jobs(
            jobs, cabinet_by_account, target_zone
        )
        remaining = [e for e in events if e.internal_id not in processed_ids]
        placed = self._resolve_events(remaining, target_zone)

        self.state = GenerationState.CHUNKING_CABINET_JOBS
        cabinet_sheets: list[RouteSheet] = []
        for job, depot, cabinet in accepted_jobs:
            cabinet_sheets.extend(self._cabinet_sheets(job, depot, cabinet))

        self.state = GenerationState.PARTITIONING_REMAINDER
        regular_pool: list[tuple[Event, Depot]] = []
        situation_pools: dict[str, list[tuple[Event, Depot]]] = {}
        for event, depot in placed:
            situation = situation_of(event)
            if situation is None:
                regular_pool.append((event, depot))
            else:
                situation_pools.setdefault(situation, []).append((event, depot))
        situation_summary = count_situations(e for e, _ in placed)

        self.state = GenerationState.CHUNKING_REGULAR_ROUTES
        regular_sheets = self._pool_sheets(regular_pool, "regular", None)
        situation_sheets: list[RouteSheet] = []
        for situation, pool in situation_pools.items():
            situation_sheets.extend(self._pool_sheets(pool, "situation", situation))

        self.state = GenerationState.MERGING
        sheets = [
            s
            for s in cabinet_sheets + regular_sheets + situation_sheets
            if _in_target(s.depot, target_zone)
        ]
        if not sheets:
            raise NoMatchingEventsError(target_zone, self._diagnostics)

        self.state = GenerationState.FINALIZING
        final_sheets = finalize_sheets(sheets, run_id)
        logger.info(
            f"Generated {len(final_sheets)} route sheets | "
            f"diagnostics={len(self._diagnostics)}"
        )
        return GenerationResult(
            sheets=final_sheets,
            situation_summary=situation_summary,
            summary=summarize_sheets(final_sheets),
            diagnostics=list(self._diagnostics),
            target_zone=target_zone,
            run_id=run_id,
        )

    def _resolve_jobs(
        self,
        jobs: list[CabinetJob],
        cabinet_by_account: dict[str, Cabinet],
        target_zone: str,
    ) -> tuple[list[tuple[CabinetJob, Depot, Cabinet | None]], set[str]]:
        """
        Assign a depot to every job and collect the ids of the events the
        accepted jobs consume.
        """
        accepted: list[tuple[CabinetJob, Depot, Cabinet | None]] = []
        processed: set[str] = set()
        for job in jobs:
            cabinet = cabinet_by_account.get(job.account_number)
            resolution = self.resolver.resolve(job.events[0], cabinet)
            if resolution.depot is None:
                self._warn(
                    "unresolved_cabinet_depot",
                    f"No depot could be determined for the cabinet event of "
                    f"account {job.account_number} ({resolution.reason})",
                    account_number=job.account_number,
                )
                continue
            if not _in_target(resolution.depot, target_zone):
                continue
            if job.kind == "cabinet_failure" and cabinet is None:
                self._warn(
                    "missing_cabinet_record",
                    f"No cabinet record found for account {job.account_number}; "
                    "the cabinet failure sheet is skipped",
                    account_number=job.account_number,
                )
                continue
            logger.debug(
                f"account {job.account_number}: {job.kind} -> "
                f"{resolution.depot.zone_name} ({resolution.via})"
            )
            processed.update(e.internal_id for e in job.events)
            accepted.append((job, resolution.depot, cabinet))
        return accepted, processed

    def _resolve_events(
        self,
        events: list[Event],
        target_zone: str,
    ) -> list[tuple[Event, Depot]]:
        placed: list[tuple[Event, Depot]] = []
        for event in events:
            resolution = self.resolver.resolve(event)
            if resolution.depot is None:
                self._warn(
                    "unassigned_event",
                    f"Event {event.luminaire_id} has no zone ({resolution.reason})",
                    event_id=event.internal_id,
                )
                continue
            if _in_target(resolution.depot, target_zone):
                placed.append((event, resolution.depot))
        return placed

    def _cabinet_sheets(
        self,
        job: CabinetJob,
        depot: Depot,
        cabinet: Cabinet | None,
    ) -> list[RouteSheet]:
        title = job_sheet_title(job, depot)
        if job.kind == "cabinet_failure":
            # Never split, the whole account is one intervention.
            route = optimize_route_locally(depot, job.events)
            cabinet_data = CabinetSummary(
                account_number=cabinet.account_number,
                lat=cabinet.lat,
                lon=cabinet.lon,
                direccion=cabinet.direccion,
                tension=cabinet.tension,
                tarifa=cabinet.tarifa,
                pot_contrat=cabinet.pot_contrat,
                affected_luminaires=tuple(job.events),
            )
            return [
                self._new_sheet(
                    title, depot, route, job.kind,
                    is_cabinet_route=True,
                    cabinet_data=cabinet_data,
                    account_number=job.account_number,
                )
            ]

        if job.kind == "circuit_accumulation":
            chunk_size = self.config.accumulation_chunk_size
        else:
            chunk_size = self.config.max_events_per_route
        chunks = build_sequenced_chunks(depot, job.events, chunk_size)
        sheets = []
        for part, route in enumerate(chunks, start=1):
            name = title + (f" - Parte {part}" if len(chunks) > 1 else "")
            sheets.append(
                self._new_sheet(
                    name, depot, route, job.kind,
                    is_cabinet_route=True,
                    account_number=job.account_number,
                    part_number=part,
                    total_parts=len(chunks),
                )
            )
        return sheets

    def _pool_sheets(
        self,
        pool: list[tuple[Event, Depot]],
        kind: SheetKind,
        situation: str | None,
    ) -> list[RouteSheet]:
        """
        Sheets for non-cabinet events, chunked per zone and municipality.
        Zones follow the depot order of the configuration and municipalities
        their first appearance.
        """
        buckets: dict[str, dict[str, tuple[str, list[Event]]]] = {
            zone_key(d.zone_name): {} for d in self.resolver.depots
        }
        for event, depot in pool:
            display = (event.municipio or "").strip() or NO_MUNICIPIO
            by_municipio = buckets.setdefault(zone_key(depot.zone_name), {})
            by_municipio.setdefault(normalize_string(display), (display, []))[1].append(event)

        sheets: list[RouteSheet] = []
        for key, by_municipio in buckets.items():
            depot = self.resolver.depot_for_zone(key)
            for display, group in by_municipio.values():
                chunks = build_sequenced_chunks(
                    depot, group, self.config.max_events_per_route
                )
                logger.debug(
                    f"{depot.zone_name} / {display}: {len(group)} events -> "
                    f"{len(chunks)} chunks"
                )
                for part, route in enumerate(chunks, start=1):
                    sheets.append(
                        self._new_sheet(
                            f"{depot.zone_name} - {display}", depot, route, kind,
                            situation=situation,
                            municipio=display,
                            part_number=part,
                            total_parts=len(chunks),
                        )
                    )
        return sheets

    def _new_sheet(
        self,
        name: str,
        depot: Depot,
        route: list[Event],
        kind: SheetKind,
        **fields,
    ) -> RouteSheet:
        return RouteSheet(
            id="",
            name=name,
            base_name=name,
            depot=depot,
            events=list(route),
            optimized_route=list(route),
            kind=kind,
            priority=PRIORITY_BY_KIND[kind],
            route_polyline=self._decorate(depot, route),
            **fields,
        )

    def _decorate(self, depot: Depot, route: list[Event]) -> list[tuple[float, float]]:
        if self.polyline_fetcher is None or not route:
            return []
        try:
            return list(self.polyline_fetcher(depot, route))
        except Exception as exc:
            self._warn(
                "polyline_failed",
                f"Route geometry unavailable for {depot.zone_name}: {exc}",
            )
            return []

    def _warn(self, code: str, message: str, **context) -> None:
        logger.warning(message)
        self._diagnostics.append(Diagnostic(code=code, message=message, **context))


def finalize_sheets(sheets: list[RouteSheet], run_id: str = "") -> list[RouteSheet]:
    """
    Group sheets by zone (zones alphabetical, ignoring case and accents),
    sort each zone by priority then natural name order, and number them
    per zone.
    """
    by_zone: dict[str, list[RouteSheet]] = {}
    for s in sheets:
        by_zone.setdefault(s.zone_name, []).append(s)

    final: list[RouteSheet] = []
    for zone_name in sorted(by_zone, key=lambda z: (normalize_string(z), z)):
        zone_sheets = sorted(
            by_zone[zone_name],
            key=lambda s: (s.priority, natural_sort_key(s.base_name)),
        )
        zone_slug = "-".join(zone_name.split())
        for index, sheet in enumerate(zone_sheets):
            number = index + 1
            suffix = f" ({sheet.situation})" if sheet.situation else ""
            final.append(
                replace(
                    sheet,
                    id=f"zone-{run_id}-{zone_slug}-{index}" if run_id else f"zone-{zone_slug}-{index}",
                    name=f"Hoja de Ruta {number} - {sheet.base_name}{suffix}",
                    route_number=number,
                )
            )
    return final


def generate_route_sheets(
    events: Sequence[Event],
    cabinets: Sequence[Cabinet] | None,
    config: RoutingConfig,
    *,
    target_zone: str | None = ALL_ZONES,
    polyline_fetcher: PolylineFetcher | None = None,
) -> GenerationResult:
    """
    Generate the route sheets of one run.
    """
    assembler = RouteAssembler(config, polyline_fetcher=polyline_fetcher)
    return assembler.generate(events, cabinets, target_zone)


def normalize_target_zone(target_zone: str | None) -> str:
    """
    "all" (any case) or an empty value selects every zone.
    """
    if not target_zone or zone_key(target_zone) == zone_key(ALL_ZONES):
        return ALL_ZONES
    return target_zone.strip()


def _in_target(depot: Depot, target_zone: str) -> bool:
    if target_zone == ALL_ZONES:
        return True
    return zone_key(depot.zone_name) == zone_key(target_zone)
