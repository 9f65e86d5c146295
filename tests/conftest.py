from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.pool import StaticPool

from pcf_services.jobs.pcf.config import ProductionLine
from pcf_services.telemetry import Metric, TelemetryQueryClient, metadata
from pcf_services.telemetry.queries import opcua_metadata_lkv, opcua_telemetry

NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)

MUNICH = ProductionLine("Munich", 48.1375, 11.575, ("assembly", "test", "packaging"), ideal_cycle_time=6)
SEATTLE = ProductionLine(
    "Seattle", 47.609722, -122.333056, ("assembly", "test", "packaging"), ideal_cycle_time=10
)


class TelemetryStore:
    """Helper para poblar el store SQLite con filas OPC UA."""

    def __init__(self, engine):
        self.engine = engine
        self._writers: dict[str, int] = {}

    def writer(self, name: str) -> int:
        if name not in self._writers:
            writer_id = len(self._writers) + 1
            with self.engine.begin() as conn:
                conn.execute(insert(opcua_metadata_lkv).values(DataSetWriterID=writer_id, Name=name))
            self._writers[name] = writer_id
        return self._writers[name]

    def add(self, station: str, line: str, metric: Metric, ts: datetime, value: float) -> None:
        writer_id = self.writer(f"{station}.{line}")
        with self.engine.begin() as conn:
            conn.execute(
                insert(opcua_telemetry).values(
                    DataSetWriterID=writer_id,
                    Name=metric.value,
                    Timestamp=ts.astimezone(timezone.utc).replace(tzinfo=None),
                    Value=value,
                )
            )

    def seed_unit(
        self,
        line: ProductionLine,
        serial: int,
        energies: Iterable[float],
        done_at: datetime,
        step: timedelta = timedelta(seconds=15),
    ) -> None:
        """Una unidad recorriendo la línea; la estación terminal termina en ``done_at``."""
        energies = list(energies)
        n = len(line.stations)
        for i, (station, energy) in enumerate(zip(line.stations, energies)):
            seen_at = done_at - timedelta(seconds=2) - step * (n - 1 - i)
            self.add(station, line.name, Metric.PRODUCT_SERIAL_NUMBER, seen_at, serial)
            self.add(station, line.name, Metric.ENERGY_CONSUMPTION, seen_at + timedelta(seconds=1), energy)
        self.add(line.terminal_station, line.name, Metric.STATUS, done_at, 2)


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(sqlite_engine) -> TelemetryStore:
    return TelemetryStore(sqlite_engine)


@pytest.fixture
def telemetry(sqlite_engine) -> TelemetryQueryClient:
    return TelemetryQueryClient(sqlite_engine, clock=lambda: NOW)
