"""
Make plots for an exported generation run.
"""

import argparse
from pathlib import Path

from routesheets.io import ensure_dir, read_json
from routesheets.plotting import plot_route_sheet, plot_sheets_per_zone


def make_plots(run_dir: str | Path) -> None:
    run_dir = Path(run_dir)
    sheets_json = run_dir / "sheets.json"
    if not sheets_json.exists():
        raise FileNotFoundError(f"No sheets.json in {run_dir}")
    plots_dir = ensure_dir(run_dir / "plots")
    routes_dir = ensure_dir(plots_dir / "routes")

    sheets = read_json(sheets_json)
    print(f"    - {len(sheets)} sheets")
    for sheet in sheets:
        out_png = routes_dir / f"{sheet['id']}.png"
        plot_route_sheet(sheet, out_png)

    summary_json = run_dir / "summary.json"
    if summary_json.exists():
        plot_sheets_per_zone(summary_json, plots_dir / "sheets_per_zone.png")


def main() -> None:
    parser = argparse.ArgumentParser(description="Plot exported route sheets")
    parser.add_argument("run_dir", help="Directory written by routesheets-generate")
    args = parser.parse_args()
    make_plots(args.run_dir)


if __name__ == "__main__":
    main()
