from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from pcf_services.telemetry import (
    EnergyReading,
    Metric,
    SerialNumberReading,
    StatusReading,
    TelemetryDataError,
    TelemetryError,
    TelemetryQuery,
    TelemetryQueryClient,
)
from pcf_services.telemetry.models import parse_reading

from .conftest import NOW


def test_empty_result_is_empty_mapping(telemetry):
    query = TelemetryQuery("packaging", "Munich", Metric.STATUS, equals=2)
    assert telemetry.run_query(query) == {}
    assert telemetry.fetch_latest(query) is None


def test_most_recent_row_wins(store, telemetry):
    store.add("packaging", "Munich", Metric.STATUS, NOW - timedelta(minutes=30), 2)
    store.add("packaging", "Munich", Metric.STATUS, NOW - timedelta(minutes=5), 2)
    store.add("packaging", "Munich", Metric.STATUS, NOW - timedelta(minutes=1), 1)

    event = telemetry.fetch_latest(TelemetryQuery("packaging", "Munich", Metric.STATUS, equals=2))

    assert event is not None
    assert event.timestamp == NOW - timedelta(minutes=5)
    assert event.reading == StatusReading(status=2)


def test_lookback_excludes_old_rows(store, telemetry):
    store.add("packaging", "Munich", Metric.STATUS, NOW - timedelta(hours=2), 2)

    q = TelemetryQuery("packaging", "Munich", Metric.STATUS, equals=2)
    assert telemetry.fetch_latest(q) is None

    wide = TelemetryQuery("packaging", "Munich", Metric.STATUS, equals=2, lookback=timedelta(hours=3))
    assert telemetry.fetch_latest(wide) is not None


def test_station_and_line_filters(store, telemetry):
    store.add("packaging", "Seattle", Metric.STATUS, NOW - timedelta(minutes=1), 2)
    store.add("assembly", "Munich", Metric.STATUS, NOW - timedelta(minutes=1), 2)

    q = TelemetryQuery("packaging", "Munich", Metric.STATUS, equals=2)
    assert telemetry.fetch_latest(q) is None


def test_time_window_is_symmetric(store, telemetry):
    pivot = NOW - timedelta(minutes=10)
    store.add("test", "Munich", Metric.ENERGY_CONSUMPTION, pivot - timedelta(seconds=5), 10.0)
    store.add("test", "Munich", Metric.ENERGY_CONSUMPTION, pivot + timedelta(seconds=7), 99.0)

    q = TelemetryQuery(
        "test", "Munich", Metric.ENERGY_CONSUMPTION, around=pivot, tolerance_seconds=6
    )
    event = telemetry.fetch_latest(q)

    assert event is not None
    assert event.reading == EnergyReading(energy_ws=10.0)


def test_serial_number_exact_match(store, telemetry):
    store.add("assembly", "Munich", Metric.PRODUCT_SERIAL_NUMBER, NOW - timedelta(minutes=3), 1001)
    store.add("assembly", "Munich", Metric.PRODUCT_SERIAL_NUMBER, NOW - timedelta(minutes=1), 1002)

    q = TelemetryQuery("assembly", "Munich", Metric.PRODUCT_SERIAL_NUMBER, equals=1001)
    event = telemetry.fetch_latest(q)

    assert event.reading == SerialNumberReading(serial_number=1001)
    assert event.timestamp == NOW - timedelta(minutes=3)


def test_run_query_returns_flat_row(store, telemetry):
    store.add("packaging", "Munich", Metric.ENERGY_CONSUMPTION, NOW - timedelta(seconds=30), 42.5)

    row = telemetry.run_query(TelemetryQuery("packaging", "Munich", Metric.ENERGY_CONSUMPTION))

    assert set(row) == {"Timestamp", "OPCUANodeValue"}
    assert row["OPCUANodeValue"] == 42.5


def test_transport_failure_is_wrapped():
    engine = MagicMock()
    engine.connect.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))
    client = TelemetryQueryClient(engine, clock=lambda: NOW)

    with pytest.raises(TelemetryError):
        client.run_query(TelemetryQuery("packaging", "Munich", Metric.STATUS, equals=2))


def test_non_integral_serial_is_rejected():
    with pytest.raises(TelemetryDataError):
        parse_reading(Metric.PRODUCT_SERIAL_NUMBER, 1001.5)


@pytest.mark.parametrize("value", [None, "abc", float("nan")])
def test_invalid_values_are_rejected(value):
    with pytest.raises(TelemetryDataError):
        parse_reading(Metric.ENERGY_CONSUMPTION, value)


def test_describe_mentions_filters():
    q = TelemetryQuery("test", "Munich", Metric.ENERGY_CONSUMPTION, around=NOW, tolerance_seconds=6)
    text = q.describe()
    assert "station=test" in text
    assert "±6s" in text
