"""
Generate the route sheets of a day from the events and cabinets tables.

Steps:
01. Load configuration
02. Load events and cabinets
03. Generate route sheets
04. Export sheets, summary and diagnostics
"""

import argparse
from datetime import date
from pathlib import Path

from routesheets.assembly import ALL_ZONES, generate_route_sheets
from routesheets.config import load_routing_config
from routesheets.geometry import make_polyline_fetcher
from routesheets.export import export_generation
from routesheets.ingest import load_cabinets, load_events


def generate_routes(
    events_path: str | Path,
    cabinets_path: str | Path,
    out_dir: str | Path,
    *,
    zone: str = ALL_ZONES,
    config: str | Path = "default",
    polyline: bool = True,
    on_date: date | None = None,
) -> Path:
    print("----------------------------------------------------------------------")
    print("01. Loading configuration...")
    cfg = load_routing_config(config)
    print(f"    - {len(cfg.depots)} depots, {len(cfg.zone_mapping)} municipios mapped")

    print("02. Loading input tables...")
    events = load_events(events_path, cfg)
    cabinets = load_cabinets(cabinets_path)
    print(f"    - events: {len(events.records)} loaded, {len(events.errors)} rejected")
    print(f"    - cabinets: {len(cabinets.records)} loaded, {len(cabinets.errors)} rejected")

    print(f"03. Generating route sheets (zone: {zone})...")
    fetcher = make_polyline_fetcher(cfg.polyline) if polyline else None
    result = generate_route_sheets(
        events.records,
        cabinets.records,
        cfg,
        target_zone=zone,
        polyline_fetcher=fetcher,
    )
    print(
        f"    - {result.summary.total} sheets "
        f"({result.summary.by_type['cabinet']} cabinet, "
        f"{result.summary.by_type['regular']} regular)"
    )
    for zone_name, count in sorted(result.summary.by_zone.items()):
        print(f"        - {zone_name}: {count}")
    if result.diagnostics:
        print(f"    - {len(result.diagnostics)} items skipped, see diagnostics.json")

    print("04. Exporting...")
    out = export_generation(result, out_dir, on_date or date.today())
    print(f"    - written to {out}")
    return out


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Street lighting maintenance route sheets"
    )
    parser.add_argument("--events", required=True, help="Events table (.csv or .xlsx)")
    parser.add_argument("--cabinets", required=True, help="Cabinets table (.csv or .xlsx)")
    parser.add_argument("--out", default="data/routes", help="Output directory")
    parser.add_argument(
        "--zone",
        default=ALL_ZONES,
        help="Only generate sheets for this zone (default: all)",
    )
    parser.add_argument(
        "--config",
        default="default",
        help="Config name in the packaged configs directory, or a YAML path",
    )
    parser.add_argument(
        "--no-polyline",
        action="store_true",
        help="Do not request road geometry from the routing server",
    )
    args = parser.parse_args()

    generate_routes(
        args.events,
        args.cabinets,
        args.out,
        zone=args.zone,
        config=args.config,
        polyline=not args.no_polyline,
    )


if __name__ == "__main__":
    main()
