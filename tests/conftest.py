# tests/conftest.py
import itertools

import pytest

from routesheets.config import load_routing_config
from routesheets.models import Cabinet, Event


# Around the Zona A depot (Canelones).
CANELONES = (-34.5381, -56.2842)
# Around the Zona C depot (Pando).
PANDO = (-34.7170, -55.9590)


@pytest.fixture(scope="session")
def config():
    return load_routing_config()


@pytest.fixture
def make_event():
    """
    Event factory with unique luminaire ids. Coordinates default to
    Canelones and are shifted by `dlat`/`dlon` degrees.
    """
    counter = itertools.count(1)

    def _make(
        dlat: float = 0.0,
        dlon: float = 0.0,
        *,
        base: tuple[float, float] = CANELONES,
        municipio: str | None = "Canelones",
        **fields,
    ) -> Event:
        n = next(counter)
        fields.setdefault("luminaire_id", f"LUM-{n:04d}")
        fields.setdefault("olc_id", f"OLC-{n:04d}")
        return Event(
            lat=base[0] + dlat,
            lon=base[1] + dlon,
            municipio=municipio,
            **fields,
        )

    return _make


@pytest.fixture
def cabinet_1234():
    return Cabinet(
        account_number="1234",
        lat=CANELONES[0] + 0.001,
        lon=CANELONES[1] + 0.001,
        direccion="Av. Artigas 100",
        tension="220",
        tarifa="AP",
        pot_contrat="15",
    )
