"""Consultas de correlación contra el store de telemetría OPC UA.

All telemetry SQL lives here. No business logic: the correlation engine
decides *what* to ask, this module only knows *how*.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from sqlalchemy import Column, DateTime, Float, Integer, MetaData, String, Table, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .models import (
    TIMESTAMP_FIELD,
    VALUE_FIELD,
    Metric,
    StationEvent,
    TelemetryError,
    to_station_event,
)

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = timedelta(hours=1)

metadata = MetaData()

# Last-known-value metadata: one row per data-set writer; Name carries
# station and production line (e.g. "assembly.munich").
opcua_metadata_lkv = Table(
    "opcua_metadata_lkv",
    metadata,
    Column("DataSetWriterID", Integer, primary_key=True),
    Column("Name", String(256), nullable=False),
)

opcua_telemetry = Table(
    "opcua_telemetry",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("DataSetWriterID", Integer, nullable=False, index=True),
    Column("Name", String(128), nullable=False),
    Column("Timestamp", DateTime, nullable=False, index=True),
    Column("Value", Float),
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _naive_utc(ts: datetime) -> datetime:
    # El store guarda timestamps UTC sin zona
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class TelemetryQuery:
    """Una consulta 'última fila' por estación, línea y métrica.

    ``equals`` restricts to an exact value; ``around`` plus
    ``tolerance_seconds`` restricts to a symmetric time window.
    """

    station: str
    production_line: str
    metric: Metric
    lookback: timedelta = DEFAULT_LOOKBACK
    equals: Optional[float] = None
    around: Optional[datetime] = None
    tolerance_seconds: float = 0.0

    def describe(self) -> str:
        parts = [
            f"station={self.station}",
            f"line={self.production_line}",
            f"metric={self.metric.value}",
        ]
        if self.equals is not None:
            parts.append(f"equals={self.equals}")
        if self.around is not None:
            parts.append(f"around={self.around.isoformat()}±{self.tolerance_seconds}s")
        return " ".join(parts)


class TelemetryQueryClient:
    """Ejecuta consultas de ventana temporal y devuelve la fila más reciente."""

    def __init__(self, engine: Engine, clock: Callable[[], datetime] = utc_now):
        self._engine = engine
        self._clock = clock

    def build_statement(self, query: TelemetryQuery):
        m = opcua_metadata_lkv
        t = opcua_telemetry
        since = _naive_utc(self._clock() - query.lookback)

        stmt = (
            select(t.c.Timestamp, t.c.Value)
            .distinct()
            .select_from(m.join(t, m.c.DataSetWriterID == t.c.DataSetWriterID))
            .where(m.c.Name.contains(query.station, autoescape=True))
            .where(m.c.Name.contains(query.production_line, autoescape=True))
            .where(t.c.Name == query.metric.value)
            .where(t.c.Timestamp > since)
        )
        if query.equals is not None:
            stmt = stmt.where(t.c.Value == query.equals)
        if query.around is not None:
            pivot = _naive_utc(query.around)
            tolerance = timedelta(seconds=query.tolerance_seconds)
            stmt = stmt.where(t.c.Timestamp.between(pivot - tolerance, pivot + tolerance))

        # Most recent row wins; Value breaks exact timestamp ties deterministically.
        return stmt.order_by(t.c.Timestamp.desc(), t.c.Value.desc()).limit(1)

    def run_query(self, query: TelemetryQuery) -> dict[str, Any]:
        """Devuelve ``{Timestamp, OPCUANodeValue}`` de la fila más reciente, o ``{}``."""
        stmt = self.build_statement(query)
        try:
            with self._engine.connect() as conn:
                row = conn.execute(stmt).fetchone()
        except SQLAlchemyError as e:
            logger.error("telemetry_query_failed %s err=%s", query.describe(), e)
            raise TelemetryError(f"telemetry query failed: {query.describe()}") from e

        if row is None:
            logger.debug("telemetry_query_empty %s", query.describe())
            return {}
        return {TIMESTAMP_FIELD: row[0], VALUE_FIELD: row[1]}

    def fetch_latest(self, query: TelemetryQuery) -> Optional[StationEvent]:
        row = self.run_query(query)
        return to_station_event(query.station, query.production_line, query.metric, row)
