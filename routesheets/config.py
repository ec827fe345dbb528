"""
Routing configuration loading and validation utilities.
"""

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from routesheets.io import read_yaml
from routesheets.models import Depot
from routesheets.text import normalize_string, zone_key


PACKAGE_ROOT = Path(__file__).resolve().parent   # Package directory.
DEFAULT_CONFIG_DIR = PACKAGE_ROOT / "configs"     # Packaged configuration directory.


@dataclass(frozen=True)
class PolylineSettings:
    enabled: bool = True
    base_url: str = "https://router.project-osrm.org"
    profile: str = "driving"
    timeout_sec: float = 30.0


@dataclass(frozen=True)
class RoutingConfig:
    """
    Read-only configuration of a generation run. `zone_mapping` maps a
    normalized municipality name to a zone name.
    """
    depots: tuple[Depot, ...]
    zone_mapping: Mapping[str, str]
    cabinet_failure_threshold: int = 10
    branch_fault_min_unreachable: int = 5
    branch_fault_max_distance_m: float = 40.0
    max_events_per_route: int = 10
    accumulation_chunk_size: int = 15
    excluded_municipios: tuple[str, ...] = ("DESAFECTADOS", "OBRA NUEVA")
    polyline: PolylineSettings = PolylineSettings()


def resolve_config_path(name_or_path: str | Path) -> Path:
    """
    Resolve a YAML config file path.
    """
    p = Path(name_or_path)
    if p.exists():
        return p
    if not p.suffix:
        candidate = DEFAULT_CONFIG_DIR / f"{p.name}.yaml"
        if candidate.exists():
            return candidate
    candidate = DEFAULT_CONFIG_DIR / p.name
    if candidate.exists():
        return candidate
    raise FileNotFoundError(f"Config not found: {name_or_path}")


def load_yaml_config(name_or_path: str | Path) -> dict:
    """
    Load a YAML config file content.
    """
    path = resolve_config_path(name_or_path)
    cfg = read_yaml(path)
    if not isinstance(cfg, dict):
        raise ValueError(f"Invalid YAML at {path}")
    return cfg


def load_routing_config(name_or_path: str | Path = "default") -> RoutingConfig:
    """
    Load and validate a routing config file.
    """
    cfg = load_yaml_config(name_or_path)
    _validate_routing(cfg)
    return build_routing_config(cfg)


def build_routing_config(cfg: dict[str, Any]) -> RoutingConfig:
    """
    Build the immutable run configuration from a validated YAML document.
    """
    depots = tuple(
        Depot(
            zone_name=str(d["zone_name"]).strip(),
            lat=float(d["lat"]),
            lon=float(d["lon"]),
        )
        for d in cfg["depots"]
    )
    mapping: dict[str, str] = {}
    for zone_name, municipios in cfg["zone_mapping"].items():
        for m in municipios or []:
            mapping[normalize_string(m)] = str(zone_name).strip()

    routing = cfg.get("routing", {}) or {}
    ingest = cfg.get("ingest", {}) or {}
    poly = cfg.get("polyline", {}) or {}
    defaults = PolylineSettings()
    return RoutingConfig(
        depots=depots,
        zone_mapping=MappingProxyType(mapping),
        cabinet_failure_threshold=int(routing.get("cabinet_failure_threshold", 10)),
        branch_fault_min_unreachable=int(routing.get("branch_fault_min_unreachable", 5)),
        branch_fault_max_distance_m=float(routing.get("branch_fault_max_distance_m", 40.0)),
        max_events_per_route=int(routing.get("max_events_per_route", 10)),
        accumulation_chunk_size=int(routing.get("accumulation_chunk_size", 15)),
        excluded_municipios=tuple(
            str(m).strip().upper()
            for m in ingest.get("excluded_municipios", ["DESAFECTADOS", "OBRA NUEVA"])
        ),
        polyline=PolylineSettings(
            enabled=bool(poly.get("enabled", defaults.enabled)),
            base_url=str(poly.get("base_url", defaults.base_url)).rstrip("/"),
            profile=str(poly.get("profile", defaults.profile)),
            timeout_sec=float(poly.get("timeout_sec", defaults.timeout_sec)),
        ),
    )


def _validate_routing(cfg: dict[str, Any]) -> None:
    """
    Validate a routing YAML config file content. Requires:
        - depots: non-empty list with unique zone_name and numeric lat/lon.
        - zone_mapping: zone name -> list of municipalities, every zone
          being a known depot.
        - routing (optional): positive thresholds and chunk sizes.
    """
    for k in ["depots", "zone_mapping"]:
        if k not in cfg:
            raise ValueError(f"routing config missing key: {k}")
    depots = cfg["depots"]
    if not isinstance(depots, list) or not depots:
        raise ValueError("depots must be a non-empty list")
    seen: set[str] = set()
    for d in depots:
        if not isinstance(d, dict) or not str(d.get("zone_name", "")).strip():
            raise ValueError("every depot must define zone_name")
        key = zone_key(d["zone_name"])
        if key in seen:
            raise ValueError(f"duplicate depot zone_name: {d['zone_name']}")
        seen.add(key)
        for coord in ("lat", "lon"):
            try:
                float(d[coord])
            except (KeyError, TypeError, ValueError):
                raise ValueError(
                    f"depot {d['zone_name']} must define a numeric {coord}"
                ) from None
    mapping = cfg["zone_mapping"]
    if not isinstance(mapping, dict):
        raise ValueError("zone_mapping must map zone names to municipalities")
    for zone_name, municipios in mapping.items():
        if zone_key(zone_name) not in seen:
            raise ValueError(f"zone_mapping refers to unknown zone: {zone_name}")
        if not isinstance(municipios, list):
            raise ValueError(f"zone_mapping.{zone_name} must be a list")
    routing = cfg.get("routing", {}) or {}
    for k in [
        "cabinet_failure_threshold",
        "branch_fault_min_unreachable",
        "max_events_per_route",
        "accumulation_chunk_size",
    ]:
        if k in routing and (not isinstance(routing[k], int) or routing[k] <= 0):
            raise ValueError(f"routing.{k} must be a positive int")
    if "branch_fault_max_distance_m" in routing:
        if float(routing["branch_fault_max_distance_m"]) <= 0:
            raise ValueError("routing.branch_fault_max_distance_m must be positive")
