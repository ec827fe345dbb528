"""
Export of route sheets for field crews: file names, stop tables with
troubleshooting hints, and the JSON/CSV files of a generation run.
"""

from dataclasses import asdict
from datetime import date
from pathlib import Path
from typing import Any

from routesheets.io import ensure_dir, safe_filename, write_csv_rows, write_json, write_manifest
from routesheets.models import Event, GenerationResult, RouteSheet
from routesheets.summary import route_distance_km, sheet_power_summary
from routesheets.text import normalize_string


# (category, error message fragments, action, solution)
TROUBLESHOOTING_RULES: list[tuple[str, tuple[str, ...], str, str]] = [
    (
        "unreachable",
        ("el olc no informa los registros por hora", "el olc no esta accesible"),
        "Revisar código de OLC, revisar energía, que no sea un problema electrico, "
        "llave térmica, conectores, probar luminaria con puente, etc. Aplicar reseteo de OLC.",
        "Corregir código de OLC en Interact. Reparar posible problema eléctrico.",
    ),
    (
        "broken",
        ("corte de luz parcial",),
        "Medir consumo de luminaria, posible placa de led rota o algunos led quemados. "
        "Revisar posible vandalismo.",
        "Posible cambio de Luminaria.",
    ),
    (
        "broken",
        (
            "posible falla en el driver",
            "la corriente medida es menor que lo esperado",
            "la corriente medida para la combinacion de driver y lampara es mayor",
        ),
        "Medir consumo de luminaria en sitio, comparar con el consumo medido en Interact (RTP).",
        "Posible cambio de Luminaria.",
    ),
    (
        "broken",
        (
            "el chip del gps en el nodo esta roto",
            "el componente de medicion de energia esta roto",
        ),
        "Cambio de OLC.",
        "Cambio de OLC.",
    ),
    (
        "configuration error",
        ("error de coincidencia del id de segmento",),
        "La OLC instalada no se puede comunicar con el gabinete porque ya esta vinculada "
        "con otro gabinete. Cambio de OLC.",
        "Cambio de OLC.",
    ),
    (
        "hardware failure",
        ("posible falla del rele en el olc",),
        "El relé de la OLC.",
        "Cambio de OLC.",
    ),
    (
        "unspecific warning",
        ("el voltaje de la red electrica de entrada detectado del sistema es muy bajo o muy alto",),
        "Medir voltaje en llave térmica individual de la luminaria, comparar con el consumo "
        "medido en Interact (RTP). Posible falla en térmica o conectores.",
        "Cambio de llave térmica o conectores.",
    ),
]

CATEGORY_LABELS = {
    "unspecific warning": "Advertencia no específica",
    "broken": "Roto",
    "unreachable": "Inaccesible",
    "inconsistent": "Inconsistente",
}

SHEET_TABLE_FIELDS = [
    "stop",
    "luminaire_id",
    "olc_id",
    "cabinet_id",
    "power_w",
    "reported_date",
    "category",
    "situation",
    "error_message",
    "lat",
    "lon",
    "action",
    "solution",
]


def troubleshooting_hint(event: Event) -> tuple[str, str]:
    """
    Suggested (action, solution) for the fault of an event, empty strings
    when no rule matches.
    """
    category = normalize_string(event.category)
    message = normalize_string(event.error_message)
    for rule_category, fragments, action, solution in TROUBLESHOOTING_RULES:
        if category == rule_category and any(f in message for f in fragments):
            return action, solution
    return "", ""


def translate_category(category: str) -> str:
    if not category:
        return ""
    return CATEGORY_LABELS.get(category.lower().strip(), category)


def route_filename(sheet: RouteSheet, on_date: date) -> str:
    """
    File name (without extension) of an exported sheet, built from the
    explicit sheet fields.
    """
    date_str = on_date.strftime("%d_%m_%Y")
    number = sheet.route_number if sheet.route_number is not None else "N/A"
    account = sheet.account_number or "SIN_CUENTA"
    if sheet.kind == "cabinet_failure":
        name = f"HR_{number}_Posible_falla_en_Tablero_Cuenta_{account}_{date_str}"
    elif sheet.kind == "branch_fault":
        name = f"HR_{number}_POSIBLE_FALLA_RAMAL_Cuenta_{account}_{date_str}"
    elif sheet.kind == "voltage_event":
        name = f"HR_{number}_Evento_de_Voltaje_Cuenta_{account}_{date_str}"
    elif sheet.kind == "circuit_accumulation":
        name = f"HR_{number}_Acumulacion_Fallas_Circuito_Cuenta_{account}_{date_str}"
    else:
        place = sheet.zone_name
        if sheet.municipio:
            place = f"{place} - {sheet.municipio}"
        situation = f"_{'_'.join(sheet.situation.split())}" if sheet.situation else ""
        name = f"HR {number} - {place}{situation} - {date_str}"
    return safe_filename(name)


def sheet_table_rows(sheet: RouteSheet) -> list[dict[str, Any]]:
    """
    Stop table of a sheet in visiting order.
    """
    rows = []
    for stop, e in enumerate(sheet.optimized_route, start=1):
        action, solution = troubleshooting_hint(e)
        rows.append(
            {
                "stop": stop,
                "luminaire_id": e.luminaire_id,
                "olc_id": e.olc_id or "N/A",
                "cabinet_id": e.cabinet_id or "N/A",
                "power_w": e.power,
                "reported_date": e.reported_date or "N/A",
                "category": translate_category(e.category) or "N/A",
                "situation": e.situation or "N/A",
                "error_message": e.error_message or "N/A",
                "lat": e.lat,
                "lon": e.lon,
                "action": action,
                "solution": solution,
            }
        )
    return rows


def sheet_to_dict(sheet: RouteSheet) -> dict[str, Any]:
    """
    JSON friendly view of a sheet. `stops` lists internal ids in visiting
    order; the full event records are under `events`.
    """
    return {
        "id": sheet.id,
        "name": sheet.name,
        "route_number": sheet.route_number,
        "kind": sheet.kind,
        "priority": sheet.priority,
        "is_cabinet_route": sheet.is_cabinet_route,
        "zone_name": sheet.zone_name,
        "depot": asdict(sheet.depot),
        "municipio": sheet.municipio,
        "situation": sheet.situation,
        "account_number": sheet.account_number,
        "part_number": sheet.part_number,
        "total_parts": sheet.total_parts,
        "distance_km": round(route_distance_km(sheet), 3),
        "power_summary": [
            {"power_w": p, "count": c} for p, c in sheet_power_summary(sheet)
        ],
        "stops": [e.internal_id for e in sheet.optimized_route],
        "events": [asdict(e) for e in sheet.optimized_route],
        "route_polyline": [list(p) for p in sheet.route_polyline],
        "cabinet_data": asdict(sheet.cabinet_data) if sheet.cabinet_data else None,
    }


def export_generation(
    result: GenerationResult,
    out_dir: str | Path,
    on_date: date,
) -> Path:
    """
    Write the sheets of a run under out_dir:

        out_dir/
            sheets.json
            summary.json
            diagnostics.json
            manifest.json
            sheets/
                <route filename>.csv
    """
    out = ensure_dir(out_dir)
    tables_dir = ensure_dir(out / "sheets")
    files = []
    for sheet in result.sheets:
        filename = f"{route_filename(sheet, on_date)}.csv"
        write_csv_rows(
            tables_dir / filename,
            sheet_table_rows(sheet),
            fieldnames=SHEET_TABLE_FIELDS,
        )
        files.append(filename)

    write_json(out / "sheets.json", [sheet_to_dict(s) for s in result.sheets])
    write_json(
        out / "summary.json",
        {
            "total": result.summary.total,
            "by_zone": result.summary.by_zone,
            "by_type": result.summary.by_type,
            "situations": [
                {"situation": s, "count": c} for s, c in result.situation_summary
            ],
        },
    )
    write_json(out / "diagnostics.json", [asdict(d) for d in result.diagnostics])
    write_manifest(
        out / "manifest.json",
        {
            "run_id": result.run_id,
            "target_zone": result.target_zone,
            "date": on_date.isoformat(),
            "files": files,
        },
    )
    return out
