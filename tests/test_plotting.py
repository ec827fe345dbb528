from datetime import date

import matplotlib

matplotlib.use("Agg")

from routesheets.assembly import generate_route_sheets
from routesheets.export import export_generation
from routesheets.io import read_json
from routesheets.plotting import plot_route_sheet, plot_sheets_per_zone
from routesheets.scripts.make_plots import make_plots



def _export(tmp_path, config, make_event):
    events = [make_event(i * 0.002) for i in range(4)]
    result = generate_route_sheets(events, [], config)
    return export_generation(result, tmp_path / "run", date(2024, 3, 5))


def test_plot_route_sheet_with_and_without_polyline(tmp_path, config, make_event):
    out = _export(tmp_path, config, make_event)
    sheet = read_json(out / "sheets.json")[0]

    plot_route_sheet(sheet, tmp_path / "straight.png")
    assert (tmp_path / "straight.png").stat().st_size > 0

    sheet["route_polyline"] = [[-34.53, -56.28], [-34.54, -56.29], [-34.53, -56.28]]
    plot_route_sheet(sheet, tmp_path / "plots" / "road.png")
    assert (tmp_path / "plots" / "road.png").exists()


def test_plot_sheets_per_zone(tmp_path, config, make_event):
    out = _export(tmp_path, config, make_event)
    plot_sheets_per_zone(out / "summary.json", tmp_path / "zones.png")
    assert (tmp_path / "zones.png").exists()


def test_make_plots_script(tmp_path, config, make_event):
    out = _export(tmp_path, config, make_event)
    make_plots(out)
    sheet_id = read_json(out / "sheets.json")[0]["id"]
    assert (out / "plots" / "routes" / f"{sheet_id}.png").exists()
    assert (out / "plots" / "sheets_per_zone.png").exists()
