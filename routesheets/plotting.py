"""
Plotting utilities.
"""

from pathlib import Path
from typing import Any
import matplotlib.pyplot as plt
import pandas as pd

from routesheets.io import read_json


def plot_route_sheet(sheet: dict[str, Any], out_png: str | Path) -> None:
    """
    Plot one exported route sheet (an item of sheets.json): the depot, the
    numbered stops and the road geometry, or straight legs when the sheet
    has no polyline.
    """
    depot = sheet["depot"]
    stops = sheet.get("events", [])

    fig, ax = plt.subplots(figsize=(8, 8))
    polyline = sheet.get("route_polyline") or []
    if len(polyline) >= 2:
        ax.plot(
            [p[1] for p in polyline],
            [p[0] for p in polyline],
            linewidth=2.0,
            alpha=0.8,
        )
    elif stops:
        xs = [depot["lon"]] + [e["lon"] for e in stops] + [depot["lon"]]
        ys = [depot["lat"]] + [e["lat"] for e in stops] + [depot["lat"]]
        ax.plot(xs, ys, linewidth=1.0, linestyle="--", alpha=0.6)

    for n, e in enumerate(stops, start=1):
        ax.plot(e["lon"], e["lat"], marker="o", markersize=5, color="tab:red")
        ax.annotate(str(n), (e["lon"], e["lat"]), textcoords="offset points", xytext=(4, 4), fontsize=8)

    ax.plot(depot["lon"], depot["lat"], marker="s", markersize=9, color="black")
    ax.annotate(depot["zone_name"], (depot["lon"], depot["lat"]), textcoords="offset points", xytext=(6, -10), fontsize=8)

    cabinet = sheet.get("cabinet_data")
    if cabinet:
        ax.plot(cabinet["lon"], cabinet["lat"], marker="*", markersize=14, color="tab:orange")

    ax.set_aspect("equal", adjustable="datalim")
    ax.set_title(sheet.get("name", ""), fontsize=10)
    ax.set_xlabel("longitud")
    ax.set_ylabel("latitud")
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_png, dpi=150)
    plt.close(fig)


def plot_sheets_per_zone(summary_json: str | Path, out_png: str | Path) -> None:
    """
    Bar chart of the number of sheets per zone.
    """
    summary = read_json(summary_json)
    by_zone = summary.get("by_zone", {})
    if not by_zone:
        return
    df = pd.DataFrame(
        {"zone": list(by_zone.keys()), "sheets": list(by_zone.values())}
    ).sort_values("sheets", ascending=False)
    fig, ax = plt.subplots(figsize=(max(6, len(df)), 4))
    ax.bar(df["zone"], df["sheets"])
    ax.set_title("Hojas de ruta por zona")
    ax.set_xlabel("zona")
    ax.set_ylabel("hojas")
    fig.tight_layout()
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_png, dpi=150)
    plt.close(fig)
