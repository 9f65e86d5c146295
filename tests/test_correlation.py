from datetime import timedelta

import pytest

from pcf_services.jobs.pcf.correlation import CorrelationAbandoned, UnitCorrelationEngine
from pcf_services.jobs.pcf.footprint import total_energy
from pcf_services.telemetry import Metric

from .conftest import MUNICH, NOW, SEATTLE


@pytest.fixture
def engine(telemetry) -> UnitCorrelationEngine:
    return UnitCorrelationEngine(telemetry, lookback=timedelta(hours=1))


def test_no_completed_unit_is_empty_outcome(engine):
    assert engine.correlate(MUNICH) is None


def test_full_trace_is_built(store, engine):
    store.seed_unit(MUNICH, 1001, [100, 150, 50], done_at=NOW - timedelta(seconds=8))

    trace = engine.correlate(MUNICH)

    assert trace is not None
    assert trace.serial_number == 1001
    assert trace.completed_at == NOW - timedelta(seconds=8)
    assert trace.is_complete(MUNICH)
    assert trace.energies_ws(MUNICH) == [100, 150, 50]
    assert total_energy(trace.energies_ws(MUNICH), MUNICH.ideal_cycle_time) == pytest.approx(0.5)


def test_latest_completed_unit_is_used(store, engine):
    store.seed_unit(MUNICH, 1000, [1, 1, 1], done_at=NOW - timedelta(minutes=20))
    store.seed_unit(MUNICH, 1001, [100, 150, 50], done_at=NOW - timedelta(seconds=8))

    trace = engine.correlate(MUNICH)

    assert trace.serial_number == 1001
    assert trace.energies_ws(MUNICH) == [100, 150, 50]


def test_lines_do_not_mix(store, engine):
    store.seed_unit(SEATTLE, 2001, [10, 20, 30], done_at=NOW - timedelta(seconds=30))

    assert engine.correlate(MUNICH) is None
    trace = engine.correlate(SEATTLE)
    assert trace.serial_number == 2001


def test_energy_tie_break_takes_most_recent(store, engine):
    store.seed_unit(MUNICH, 1001, [100, 150, 50], done_at=NOW - timedelta(seconds=8))
    # Older reading still inside packaging's ±6s window around the serial sighting.
    store.add("packaging", "Munich", Metric.ENERGY_CONSUMPTION, NOW - timedelta(seconds=13), 999)

    trace = engine.correlate(MUNICH)

    assert trace.stations["packaging"].energy_ws == 50


def test_missing_serial_number_abandons(store, engine):
    store.add("packaging", "Munich", Metric.STATUS, NOW - timedelta(seconds=5), 2)

    with pytest.raises(CorrelationAbandoned, match="no serial number"):
        engine.correlate(MUNICH)


def test_serial_outside_window_abandons(store, engine):
    store.add("packaging", "Munich", Metric.PRODUCT_SERIAL_NUMBER, NOW - timedelta(seconds=30), 1001)
    store.add("packaging", "Munich", Metric.STATUS, NOW - timedelta(seconds=5), 2)

    with pytest.raises(CorrelationAbandoned):
        engine.correlate(MUNICH)


def test_missing_station_sighting_abandons(store, engine):
    done = NOW - timedelta(seconds=8)
    store.add("test", "Munich", Metric.PRODUCT_SERIAL_NUMBER, done - timedelta(seconds=17), 1001)
    store.add("test", "Munich", Metric.ENERGY_CONSUMPTION, done - timedelta(seconds=16), 150)
    store.add("packaging", "Munich", Metric.PRODUCT_SERIAL_NUMBER, done - timedelta(seconds=2), 1001)
    store.add("packaging", "Munich", Metric.ENERGY_CONSUMPTION, done - timedelta(seconds=1), 50)
    store.add("packaging", "Munich", Metric.STATUS, done, 2)

    with pytest.raises(CorrelationAbandoned, match="not seen at assembly"):
        engine.correlate(MUNICH)


def test_missing_station_energy_abandons(store, engine):
    done = NOW - timedelta(seconds=8)
    store.seed_unit(MUNICH, 1001, [100, 150, 50], done_at=done)
    # Same serial seen again at test much later, with no energy nearby.
    store.add("test", "Munich", Metric.PRODUCT_SERIAL_NUMBER, NOW - timedelta(seconds=1), 1001)

    with pytest.raises(CorrelationAbandoned, match="no energy consumption at test"):
        engine.correlate(MUNICH)
