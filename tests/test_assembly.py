import pytest

from routesheets.assembly import (
    GenerationState,
    RouteAssembler,
    assign_internal_ids,
    finalize_sheets,
    generate_route_sheets,
)
from routesheets.errors import NoEventsError, NoMatchingEventsError
from routesheets.models import Cabinet, Depot, RouteSheet

from conftest import PANDO


NEAR = 0.0002
FAR = 0.008


@pytest.fixture
def mixed_events(make_event):
    cabinet_failure = [
        make_event(i * FAR, account_number="1234", category="Unreachable")
        for i in range(12)
    ]
    canelones = [make_event(0.02 + i * 0.002, 0.01) for i in range(25)]
    canelones.append(make_event(-0.01, situation="N/A"))
    pando = [make_event(i * 0.002, base=PANDO, municipio="Pando") for i in range(2)]
    pando_situation = [
        make_event(0.01 + i * 0.002, base=PANDO, municipio="Pando", situation="Columna caída")
        for i in range(3)
    ]
    return cabinet_failure + canelones + pando + pando_situation


def _ids(sheet):
    return [e.internal_id for e in sheet.events]


def test_every_event_lands_in_exactly_one_sheet(config, mixed_events, cabinet_1234):
    result = generate_route_sheets(mixed_events, [cabinet_1234], config)
    ids = [i for s in result.sheets for i in _ids(s)]
    assert len(ids) == len(mixed_events) == 43
    assert len(set(ids)) == len(ids)
    assert result.diagnostics == []


def test_sheet_sizes_and_stop_order(config, mixed_events, cabinet_1234):
    result = generate_route_sheets(mixed_events, [cabinet_1234], config)
    for s in result.sheets:
        assert sorted(_ids(s)) == sorted(e.internal_id for e in s.optimized_route)
        if s.kind == "circuit_accumulation":
            assert len(s.events) <= config.accumulation_chunk_size
        elif s.kind != "cabinet_failure":
            assert 1 <= len(s.events) <= config.max_events_per_route


def test_sheets_are_ordered_and_numbered_per_zone(config, mixed_events, cabinet_1234):
    result = generate_route_sheets(mixed_events, [cabinet_1234], config)
    names = [s.name for s in result.sheets]
    assert names == [
        "Hoja de Ruta 1 - Posible falla en Tablero (Zona A) - Cuenta: 1234",
        "Hoja de Ruta 2 - Zona A - Canelones",
        "Hoja de Ruta 3 - Zona A - Canelones",
        "Hoja de Ruta 4 - Zona A - Canelones",
        "Hoja de Ruta 1 - Zona C - Pando",
        "Hoja de Ruta 2 - Zona C - Pando (Columna caída)",
    ]
    assert [s.route_number for s in result.sheets] == [1, 2, 3, 4, 1, 2]
    assert [s.priority for s in result.sheets] == [1.0, 4.0, 4.0, 4.0, 4.0, 5.0]
    assert result.sheets[0].id == f"zone-{result.run_id}-Zona-A-0"
    assert result.sheets[-1].id == f"zone-{result.run_id}-Zona-C-1"
    assert result.sheets[-1].kind == "situation"
    assert result.sheets[-1].situation == "Columna caída"


def test_summaries(config, mixed_events, cabinet_1234):
    result = generate_route_sheets(mixed_events, [cabinet_1234], config)
    assert result.situation_summary == [("Columna caída", 3)]
    assert result.summary.total == 6
    assert result.summary.by_zone == {"Zona A": 4, "Zona C": 2}
    assert result.summary.by_type == {"cabinet": 1, "regular": 5}
    assert result.target_zone == "all"


def test_cabinet_failure_is_one_unsplit_sheet(config, make_event, cabinet_1234):
    events = [
        make_event(i * FAR, account_number="1234", category="Unreachable")
        for i in range(12)
    ]
    result = generate_route_sheets(events, [cabinet_1234], config)
    assert len(result.sheets) == 1
    sheet = result.sheets[0]
    assert sheet.kind == "cabinet_failure"
    assert sheet.priority == 1.0
    assert sheet.is_cabinet_route
    assert sheet.account_number == "1234"
    assert len(sheet.optimized_route) == 12
    assert sheet.cabinet_data.direccion == "Av. Artigas 100"
    assert len(sheet.cabinet_data.affected_luminaires) == 12


def test_missing_cabinet_record_returns_events_to_regular_pool(config, make_event):
    events = [
        make_event(i * FAR, account_number="1234", category="Unreachable")
        for i in range(12)
    ]
    result = generate_route_sheets(events, [], config)
    assert [d.code for d in result.diagnostics] == ["missing_cabinet_record"]
    assert result.diagnostics[0].account_number == "1234"
    assert [s.kind for s in result.sheets] == ["regular", "regular"]
    assert [len(s.events) for s in result.sheets] == [10, 2]


def test_branch_fault_leaves_other_account_events(config, make_event):
    unreachable = [
        make_event(i * NEAR, account_number="55", category="Unreachable")
        for i in range(6)
    ]
    others = [make_event(0.05 + i * 0.001, account_number="55", category="Broken") for i in range(2)]
    result = generate_route_sheets(unreachable + others, [], config)
    branch, regular = result.sheets
    assert branch.kind == "branch_fault"
    assert branch.priority == 1.5
    assert branch.base_name == "POSIBLE FALLA DE RAMAL/FASE (Zona A) - Cuenta: 55"
    assert len(branch.events) == 6
    assert regular.kind == "regular"
    assert len(regular.events) == 2


def test_circuit_accumulation_is_split_in_parts(config, make_event):
    events = [
        make_event(i * FAR, account_number="777", category="Broken",
                   error_message="Corte de luz parcial")
        for i in range(20)
    ]
    result = generate_route_sheets(events, [], config)
    assert [len(s.events) for s in result.sheets] == [15, 5]
    assert [s.base_name for s in result.sheets] == [
        "Acumulación de fallas en un circuito (Zona A) - Cuenta: 777 - Parte 1",
        "Acumulación de fallas en un circuito (Zona A) - Cuenta: 777 - Parte 2",
    ]
    assert [(s.part_number, s.total_parts) for s in result.sheets] == [(1, 2), (2, 2)]
    assert all(s.priority == 3.0 and s.is_cabinet_route for s in result.sheets)


def test_cabinet_job_falls_back_to_nearest_depot(config, make_event):
    zona_d = config.depots[-1]
    events = [
        make_event(i * FAR, base=(zona_d.lat, zona_d.lon), municipio="Nowhereville",
                   account_number="42", category="Unreachable")
        for i in range(10)
    ]
    cabinet = Cabinet(account_number="42", lat=zona_d.lat, lon=zona_d.lon)
    result = generate_route_sheets(events, [cabinet], config)
    assert len(result.sheets) == 1
    assert result.sheets[0].zone_name == "Zona D"


def test_unknown_municipio_raises_no_matching_events(config, make_event):
    events = [make_event(i * 0.001, municipio="Nowhereville") for i in range(3)]
    assembler = RouteAssembler(config)
    with pytest.raises(NoMatchingEventsError, match="municipalities") as exc_info:
        assembler.generate(events, [])
    assert assembler.state is GenerationState.FAILED
    assert [d.code for d in exc_info.value.diagnostics] == ["unassigned_event"] * 3
    assert exc_info.value.diagnostics[0].event_id == "event-0"


def test_unresolved_cabinet_job_is_reported(config, make_event):
    events = [
        make_event(i * FAR, municipio=None, account_number="X", category="Unreachable")
        for i in range(10)
    ]
    with pytest.raises(NoMatchingEventsError) as exc_info:
        generate_route_sheets(events, [], config)
    codes = [d.code for d in exc_info.value.diagnostics]
    assert codes[0] == "unresolved_cabinet_depot"
    assert codes.count("unassigned_event") == 10


def test_no_events_fails(config):
    assembler = RouteAssembler(config)
    assert assembler.state is GenerationState.IDLE
    with pytest.raises(NoEventsError):
        assembler.generate([], [])
    assert assembler.state is GenerationState.FAILED


def test_successful_run_ends_done(config, make_event):
    assembler = RouteAssembler(config)
    assembler.generate([make_event()], [])
    assert assembler.state is GenerationState.DONE


def test_target_zone_filters_sheets_and_summary(config, mixed_events, cabinet_1234):
    result = generate_route_sheets(mixed_events, [cabinet_1234], config, target_zone=" zona c ")
    assert {s.zone_name for s in result.sheets} == {"Zona C"}
    assert result.summary.total == 2
    assert result.target_zone == "zona c"
    assert result.situation_summary == [("Columna caída", 3)]

    result = generate_route_sheets(mixed_events, [cabinet_1234], config, target_zone="ALL")
    assert result.target_zone == "all"
    assert result.summary.total == 6


def test_polyline_fetcher_decorates_sheets(config, mixed_events, cabinet_1234):
    calls = []

    def fetcher(depot, stops):
        calls.append(len(stops))
        return [(depot.lat, depot.lon), (stops[0].lat, stops[0].lon)]

    result = generate_route_sheets(
        mixed_events, [cabinet_1234], config, polyline_fetcher=fetcher
    )
    assert len(calls) == len(result.sheets)
    assert all(len(s.route_polyline) == 2 for s in result.sheets)


def test_polyline_failure_does_not_block_generation(config, make_event):
    def fetcher(depot, stops):
        raise RuntimeError("routing server down")

    result = generate_route_sheets([make_event()], [], config, polyline_fetcher=fetcher)
    assert len(result.sheets) == 1
    assert result.sheets[0].route_polyline == []
    assert [d.code for d in result.diagnostics] == ["polyline_failed"]


def test_assign_internal_ids_keeps_existing(make_event):
    events = assign_internal_ids([make_event(), make_event(internal_id="keep"), make_event()])
    assert [e.internal_id for e in events] == ["event-0", "keep", "event-2"]


def test_finalize_sheets_without_run_id():
    depot = Depot("Zona B", 0.0, 0.0)
    sheets = [
        RouteSheet(id="", name=n, base_name=n, depot=depot, events=[],
                   optimized_route=[], kind="regular", priority=4.0)
        for n in ["Zona B - Parte 10", "Zona B - Parte 2"]
    ]
    final = finalize_sheets(sheets)
    assert [s.name for s in final] == [
        "Hoja de Ruta 1 - Zona B - Parte 2",
        "Hoja de Ruta 2 - Zona B - Parte 10",
    ]
    assert [s.id for s in final] == ["zone-Zona-B-0", "zone-Zona-B-1"]
    assert sheets[0].route_number is None


def test_single_unmapped_event_produces_no_sheets(config, make_event):
    event = make_event(municipio="Nowhereville", account_number=None, zone_name=None)
    with pytest.raises(NoMatchingEventsError, match="zone 'all'") as exc_info:
        generate_route_sheets([event], [], config)
    assert exc_info.value.target_zone == "all"
    assert [d.code for d in exc_info.value.diagnostics] == ["unassigned_event"]


def test_finalize_sheets_orders_zones_alphabetically():
    def sheet(zone_name, name):
        return RouteSheet(id="", name=name, base_name=name, depot=Depot(zone_name, 0.0, 0.0),
                          events=[], optimized_route=[], kind="regular", priority=4.0)

    final = finalize_sheets([
        sheet("Zona B2", "Zona B2 - Parte 10"),
        sheet("Zona B10", "Zona B10 - Parte 1"),
        sheet("Zona B2", "Zona B2 - Parte 2"),
        sheet("zona a", "zona a - Parte 1"),
    ])
    assert [s.name for s in final] == [
        "Hoja de Ruta 1 - zona a - Parte 1",
        "Hoja de Ruta 1 - Zona B10 - Parte 1",
        "Hoja de Ruta 1 - Zona B2 - Parte 2",
        "Hoja de Ruta 2 - Zona B2 - Parte 10",
    ]
