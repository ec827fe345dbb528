"""
Loading of the events and cabinets tables.

Column headers vary between exports of the lighting management system, so
every logical field has an ordered list of accepted header aliases. Rows that
cannot be turned into a record are rejected one by one and reported, the rest
of the file is still loaded.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Generic, Sequence, TypeVar
import pandas as pd
from loguru import logger

from routesheets.config import RoutingConfig
from routesheets.errors import EmptyInputError, RowValidationError
from routesheets.models import Cabinet, Event


T = TypeVar("T")

EVENT_ALIASES: dict[str, list[str]] = {
    "luminaire_id": ["Luminaire/ID externo", "luminaireId", "Streetlight/ID externo"],
    "olc_id": ["olcId", "OLC/Dirección de hardware", "OLC/DirecciÃ³n de hardware"],
    "cabinet_id": ["cabinetId", "Cabinet/ID externo"],
    "power": ["power", "Luminaire type/Potencia nominal"],
    "category": [
        "category",
        "Fault/Categoría",
        "Fault/CategorÃ­a",
        "Event monitor/Categoría",
        "Evento/Categoría",
    ],
    "error_message": [
        "errorMessage",
        "Fault/Mensaje de error",
        "Event monitor/Mensaje de error",
        "Evento/Mensaje de error",
    ],
    "lat": ["lat", "Streetlight/Latitud", "latitud"],
    "lon": ["lon", "Streetlight/Longitud", "longitud"],
    "zone_name": ["zoneName", "zona"],
    "municipio": ["municipio", "Streetlight/Municipio"],
    "reported_date": [
        "fecha",
        "fecha de reporte",
        "fecha informada",
        "Fault/Fecha de la primera ocurrencia",
        "fault/informado por primera vez el",
        "Event monitor/Informado por primera vez el",
        "Evento/Fecha de la primera ocurrencia",
        "evento/informado por primera vez el",
    ],
    "account_number": ["Streetlight/Nro_CUENTA", "nro_cuenta", "cuenta"],
    "situation": ["situacion", "situación", "Streetlight/Situación", "Streetlight/SituaciÃ³n"],
}

CABINET_ALIASES: dict[str, list[str]] = {
    "account_number": ["Num_Cuenta", "Nro_CUENTA", "nro_cuenta", "cuenta"],
    "lat": ["POINT_Y", "lat", "latitud"],
    "lon": ["POINT_X", "lon", "longitud"],
    "tarifa": ["tarifa"],
    "pot_contrat": ["potcontrat"],
    "direccion": ["direccion", "dirección"],
    "tension": ["tension", "tensión"],
}


@dataclass
class IngestResult(Generic[T]):
    """
    Records parsed from a table and the rows that were rejected.
    """
    records: list[T]
    errors: list[RowValidationError] = field(default_factory=list)


def read_table(path: str | Path) -> list[dict[str, Any]]:
    """
    Read a .csv or .xlsx file into a list of row dicts, skipping rows where
    every cell is empty.
    """
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(p, dtype=str, keep_default_na=False)
    elif suffix == ".xlsx":
        df = pd.read_excel(p, engine="openpyxl")
    else:
        raise ValueError(f"Unsupported file format: {p.name} (use .csv or .xlsx)")
    rows = df.to_dict("records")
    return [r for r in rows if any(not _is_blank(v) for v in r.values())]


def find_value(row: dict[str, Any], aliases: Sequence[str]) -> Any | None:
    """
    Value of the first alias present in the row with a non-empty value.
    Header comparison ignores case and surrounding blanks.
    """
    if not row:
        return None
    keys = {str(k).lower().strip(): k for k in reversed(list(row.keys()))}
    for alias in aliases:
        key = keys.get(alias.lower().strip())
        if key is not None and not _is_blank(row[key]):
            return row[key]
    return None


def parse_number(value: Any) -> float | None:
    """
    Parse a number accepting comma decimals ("-34,52"). None when the value
    is missing or not numeric.
    """
    if _is_blank(value):
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    try:
        number = float(str(value).strip().replace(",", "."))
    except ValueError:
        return None
    if number != number:
        return None
    return number


def format_short_date(value: Any) -> str | None:
    """
    Render spreadsheet date cells as "dd/mm/YYYY HH:MM"; text is kept as is.
    """
    if _is_blank(value):
        return None
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y %H:%M")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y 00:00")
    return str(value).strip()


def parse_event_row(row: dict[str, Any], index: int) -> Event:
    """
    Build an Event from one row. Raises RowValidationError when the
    coordinates are not numeric.
    """
    luminaire_id = _text(find_value(row, EVENT_ALIASES["luminaire_id"])) or f"Evento-{index}"
    lat = parse_number(find_value(row, EVENT_ALIASES["lat"]))
    lon = parse_number(find_value(row, EVENT_ALIASES["lon"]))
    if lat is None or lon is None:
        raise RowValidationError(
            index, f"invalid row ({luminaire_id}): latitude or longitude is not a number"
        )
    power = parse_number(find_value(row, EVENT_ALIASES["power"]))
    return Event(
        luminaire_id=luminaire_id,
        lat=lat,
        lon=lon,
        olc_id=_text(find_value(row, EVENT_ALIASES["olc_id"])) or "",
        category=_text(find_value(row, EVENT_ALIASES["category"])) or "",
        error_message=_text(find_value(row, EVENT_ALIASES["error_message"])),
        situation=_text(find_value(row, EVENT_ALIASES["situation"])),
        cabinet_id=_text(find_value(row, EVENT_ALIASES["cabinet_id"])),
        account_number=_text(find_value(row, EVENT_ALIASES["account_number"])),
        zone_name=_text(find_value(row, EVENT_ALIASES["zone_name"])),
        municipio=_text(find_value(row, EVENT_ALIASES["municipio"])),
        reported_date=format_short_date(find_value(row, EVENT_ALIASES["reported_date"])),
        power=power if power is not None else 0.0,
    )


def parse_cabinet_row(row: dict[str, Any], index: int) -> Cabinet:
    """
    Build a Cabinet from one row. The account number and numeric
    coordinates are required.
    """
    account = _text(find_value(row, CABINET_ALIASES["account_number"]))
    if not account:
        raise RowValidationError(index, "invalid cabinet row: missing account number")
    lat = parse_number(find_value(row, CABINET_ALIASES["lat"]))
    lon = parse_number(find_value(row, CABINET_ALIASES["lon"]))
    if lat is None or lon is None:
        raise RowValidationError(
            index,
            f"invalid cabinet row (account {account}): latitude or longitude is not a number",
        )
    return Cabinet(
        account_number=account,
        lat=lat,
        lon=lon,
        tarifa=_text(find_value(row, CABINET_ALIASES["tarifa"])),
        pot_contrat=_text(find_value(row, CABINET_ALIASES["pot_contrat"])),
        direccion=_text(find_value(row, CABINET_ALIASES["direccion"])),
        tension=_text(find_value(row, CABINET_ALIASES["tension"])),
    )


def parse_event_rows(rows: Sequence[dict[str, Any]]) -> IngestResult[Event]:
    result: IngestResult[Event] = IngestResult(records=[])
    for index, row in enumerate(rows):
        try:
            result.records.append(parse_event_row(row, index))
        except RowValidationError as exc:
            logger.warning(f"Rejected event {exc}")
            result.errors.append(exc)
    return result


def parse_cabinet_rows(rows: Sequence[dict[str, Any]]) -> IngestResult[Cabinet]:
    result: IngestResult[Cabinet] = IngestResult(records=[])
    for index, row in enumerate(rows):
        try:
            result.records.append(parse_cabinet_row(row, index))
        except RowValidationError as exc:
            logger.warning(f"Rejected cabinet {exc}")
            result.errors.append(exc)
    return result


def filter_excluded_municipios(
    events: Sequence[Event],
    excluded: Sequence[str],
) -> list[Event]:
    """
    Drop events of decommissioned or not yet accepted areas. Events without
    a municipio are kept.
    """
    blocked = {m.strip().upper() for m in excluded}
    return [
        e for e in events
        if not e.municipio or e.municipio.strip().upper() not in blocked
    ]


def load_events(path: str | Path, config: RoutingConfig) -> IngestResult[Event]:
    """
    Load, validate and filter the events table.
    """
    result = parse_event_rows(read_table(path))
    kept = filter_excluded_municipios(result.records, config.excluded_municipios)
    if len(kept) < len(result.records):
        logger.info(f"{len(result.records) - len(kept)} events in excluded municipios")
    if not kept:
        raise EmptyInputError(
            f"The events file {Path(path).name} is empty, has the wrong format, or "
            "every event was filtered out (e.g. DESAFECTADOS, OBRA NUEVA)."
        )
    logger.info(f"{len(kept)} events loaded from {Path(path).name}")
    return IngestResult(records=kept, errors=result.errors)


def load_cabinets(path: str | Path) -> IngestResult[Cabinet]:
    """
    Load and validate the cabinets (service points) table.
    """
    result = parse_cabinet_rows(read_table(path))
    if not result.records:
        raise EmptyInputError(
            f"The cabinets file {Path(path).name} is empty or has the wrong format."
        )
    logger.info(f"{len(result.records)} cabinets loaded from {Path(path).name}")
    return result


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and value != value:
        return True
    if value is pd.NaT:
        return True
    return str(value).strip() == ""


def _text(value: Any) -> str | None:
    if _is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        # Spreadsheet cells hold account numbers and ids as floats.
        return str(int(value))
    return str(value).strip()
