from datetime import date, datetime

import pandas as pd
import pytest

from routesheets.errors import EmptyInputError, RowValidationError
from routesheets.ingest import (
    filter_excluded_municipios,
    find_value,
    format_short_date,
    load_cabinets,
    load_events,
    parse_event_row,
    parse_number,
    read_table,
)


EVENTS_CSV = """\
Streetlight/ID externo,OLC/Dirección de hardware,Streetlight/Latitud,Streetlight/Longitud,Streetlight/Municipio,Fault/Categoría,Fault/Mensaje de error,Streetlight/Nro_CUENTA,Luminaire type/Potencia nominal,Fault/Fecha de la primera ocurrencia,Streetlight/Situación
L-1,OLC-1,"-34,5381","-56,2842",Canelones,Unreachable,El OLC no está accesible,1234,"60,5",05/03/2024 14:30,
L-2,OLC-2,-34.54,-56.28,Pando,Broken,Corte de luz parcial,,,06/03/2024 08:00,Columna caída
L-3,OLC-3,abc,-56.28,Pando,Broken,,,,,
,OLC-4,-34.55,-56.29,Pando,Broken,,,,,
L-5,OLC-5,-34.56,-56.30,DESAFECTADOS,Broken,,,,,
,,,,,,,,,,
"""

CABINETS_CSV = """\
Num_Cuenta,POINT_Y,POINT_X,tarifa,potcontrat,direccion,tension
1234,-34.5391,-56.2832,AP,15,Av. Artigas 100,220
,-34.6,-56.1,AP,15,Sin cuenta,220
99,x,-56.1,AP,15,Coordenadas rotas,220
"""


@pytest.fixture
def events_csv(tmp_path):
    p = tmp_path / "events.csv"
    p.write_text(EVENTS_CSV, encoding="utf-8")
    return p


@pytest.fixture
def cabinets_csv(tmp_path):
    p = tmp_path / "cabinets.csv"
    p.write_text(CABINETS_CSV, encoding="utf-8")
    return p


def test_read_table_drops_blank_rows(events_csv):
    rows = read_table(events_csv)
    assert len(rows) == 5
    assert rows[0]["Streetlight/ID externo"] == "L-1"


def test_read_table_rejects_other_formats(tmp_path):
    with pytest.raises(ValueError, match="Unsupported"):
        read_table(tmp_path / "events.json")


def test_find_value_ignores_header_case_and_blanks():
    row = {" LAT ": "", "Streetlight/Latitud": "-34.5", "latitud": "-35"}
    assert find_value(row, ["lat", "streetlight/latitud", "latitud"]) == "-34.5"
    assert find_value(row, ["lon"]) is None
    assert find_value({}, ["lat"]) is None
    assert find_value({"lat": float("nan"), "latitud": 1.5}, ["lat", "latitud"]) == 1.5


@pytest.mark.parametrize(
    "value, expected",
    [("-34,52", -34.52), ("12.5", 12.5), (" 7 ", 7.0), (3, 3.0), ("", None), ("x", None), (None, None)],
)
def test_parse_number(value, expected):
    assert parse_number(value) == expected


def test_format_short_date():
    assert format_short_date(datetime(2024, 3, 5, 14, 30)) == "05/03/2024 14:30"
    assert format_short_date(pd.Timestamp("2024-03-05 14:30")) == "05/03/2024 14:30"
    assert format_short_date(date(2024, 3, 5)) == "05/03/2024 00:00"
    assert format_short_date(" 05/03/24 14:30 ") == "05/03/24 14:30"
    assert format_short_date("") is None


def test_parse_event_row_fallback_id_and_errors():
    event = parse_event_row({"lat": "-34.5", "lon": "-56.2"}, 7)
    assert event.luminaire_id == "Evento-7"
    assert event.power == 0.0
    assert event.category == ""
    with pytest.raises(RowValidationError) as exc_info:
        parse_event_row({"luminaireId": "L-9", "lat": "", "lon": "-56.2"}, 3)
    assert exc_info.value.row_index == 3
    assert str(exc_info.value).startswith("row 3:")


def test_load_events(events_csv, config):
    result = load_events(events_csv, config)
    assert [e.luminaire_id for e in result.records] == ["L-1", "L-2", "Evento-3"]
    assert [err.row_index for err in result.errors] == [2]

    first = result.records[0]
    assert first.lat == pytest.approx(-34.5381)
    assert first.lon == pytest.approx(-56.2842)
    assert first.olc_id == "OLC-1"
    assert first.category == "Unreachable"
    assert first.account_number == "1234"
    assert first.power == pytest.approx(60.5)
    assert first.reported_date == "05/03/2024 14:30"
    assert first.situation is None
    assert result.records[1].situation == "Columna caída"


def test_load_events_all_excluded(tmp_path, config):
    p = tmp_path / "events.csv"
    p.write_text("lat,lon,municipio\n-34.5,-56.2,Obra Nueva\n", encoding="utf-8")
    with pytest.raises(EmptyInputError):
        load_events(p, config)


def test_filter_excluded_municipios(make_event):
    kept = make_event(municipio="Canelones")
    no_municipio = make_event(municipio=None)
    dropped = make_event(municipio=" desafectados ")
    assert filter_excluded_municipios(
        [kept, no_municipio, dropped], ["DESAFECTADOS"]
    ) == [kept, no_municipio]


def test_load_cabinets(cabinets_csv):
    result = load_cabinets(cabinets_csv)
    assert len(result.records) == 1
    cabinet = result.records[0]
    assert cabinet.account_number == "1234"
    assert cabinet.lat == pytest.approx(-34.5391)
    assert cabinet.lon == pytest.approx(-56.2832)
    assert cabinet.direccion == "Av. Artigas 100"
    assert [err.row_index for err in result.errors] == [1, 2]


def test_load_cabinets_from_xlsx(tmp_path):
    p = tmp_path / "cabinets.xlsx"
    pd.DataFrame(
        {"Nro_CUENTA": [1234, 5678], "lat": [-34.5, -34.6], "lon": [-56.2, -56.1]}
    ).to_excel(p, index=False)
    result = load_cabinets(p)
    assert [c.account_number for c in result.records] == ["1234", "5678"]
    assert result.errors == []
