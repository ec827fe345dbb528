"""
Data models for the route generation entities.
"""

from dataclasses import dataclass, field
from typing import Literal


# Priority tiers, ascending means more urgent.
PRIORITY_CABINET_FAILURE = 1.0
PRIORITY_BRANCH_FAULT = 1.5
PRIORITY_VOLTAGE_EVENT = 2.0
PRIORITY_CIRCUIT_ACCUMULATION = 3.0
PRIORITY_REGULAR = 4.0
PRIORITY_SITUATION = 5.0

JobKind = Literal[
    "cabinet_failure",
    "branch_fault",
    "voltage_event",
    "circuit_accumulation",
]
SheetKind = Literal[
    "cabinet_failure",
    "branch_fault",
    "voltage_event",
    "circuit_accumulation",
    "regular",
    "situation",
]

PRIORITY_BY_KIND: dict[str, float] = {
    "cabinet_failure": PRIORITY_CABINET_FAILURE,
    "branch_fault": PRIORITY_BRANCH_FAULT,
    "voltage_event": PRIORITY_VOLTAGE_EVENT,
    "circuit_accumulation": PRIORITY_CIRCUIT_ACCUMULATION,
    "regular": PRIORITY_REGULAR,
    "situation": PRIORITY_SITUATION,
}


@dataclass(frozen=True)
class Event:
    """
    One reported fault on one luminaire. Built once at ingestion and never
    mutated; the internal id is attached with `dataclasses.replace` when a
    generation run starts.
    """
    luminaire_id: str
    lat: float
    lon: float
    olc_id: str = ""
    category: str = ""
    error_message: str | None = None
    situation: str | None = None
    cabinet_id: str | None = None
    account_number: str | None = None
    zone_name: str | None = None
    municipio: str | None = None
    reported_date: str | None = None
    power: float = 0.0
    internal_id: str | None = None


@dataclass(frozen=True)
class Cabinet:
    """
    An electrical service point identified by its account number.
    """
    account_number: str
    lat: float
    lon: float
    tarifa: str | None = None
    pot_contrat: str | None = None
    direccion: str | None = None
    tension: str | None = None


@dataclass(frozen=True)
class Depot:
    """
    A crew dispatch point, start and end of every route of its zone.
    """
    zone_name: str
    lat: float
    lon: float


@dataclass(frozen=True)
class CabinetSummary:
    """
    Cabinet attributes attached to a cabinet failure sheet, together with
    every luminaire affected by the failure.
    """
    account_number: str
    lat: float
    lon: float
    direccion: str | None = None
    tension: str | None = None
    tarifa: str | None = None
    pot_contrat: str | None = None
    affected_luminaires: tuple[Event, ...] = ()


@dataclass(frozen=True)
class CabinetJob:
    """
    A mass failure anchored to one electrical account. For branch faults
    `events` only holds the cohesive unreachable subset of the account.
    """
    kind: JobKind
    priority: float
    account_number: str
    events: tuple[Event, ...]


@dataclass
class RouteSheet:
    """
    A crew route sheet. `optimized_route` holds the same events as `events`
    in stop order. Naming fields (`route_number`, final `name`, `id`) are
    filled when the generation run is finalized.
    """
    id: str
    name: str
    depot: Depot
    events: list[Event]
    optimized_route: list[Event]
    kind: SheetKind
    priority: float
    is_cabinet_route: bool = False
    route_polyline: list[tuple[float, float]] = field(default_factory=list)
    cabinet_data: CabinetSummary | None = None
    situation: str | None = None
    account_number: str | None = None
    municipio: str | None = None
    part_number: int = 1
    total_parts: int = 1
    base_name: str = ""
    route_number: int | None = None

    @property
    def zone_name(self) -> str:
        return self.depot.zone_name


@dataclass(frozen=True)
class Diagnostic:
    """
    A non fatal problem found during a generation run (an item that was
    skipped or degraded).
    """
    code: str
    message: str
    account_number: str | None = None
    event_id: str | None = None


@dataclass
class GenerationSummary:
    total: int = 0
    by_zone: dict[str, int] = field(default_factory=dict)
    by_type: dict[str, int] = field(
        default_factory=lambda: {"cabinet": 0, "regular": 0}
    )


@dataclass
class GenerationResult:
    """
    The published output of a full generation run.
    """
    sheets: list[RouteSheet]
    situation_summary: list[tuple[str, int]]
    summary: GenerationSummary
    diagnostics: list[Diagnostic] = field(default_factory=list)
    target_zone: str = "all"
    run_id: str = ""
