"""Modelos tipados de telemetría de estaciones.

Las filas del store llegan como mapas sin tipo (``Timestamp``,
``OPCUANodeValue``). Se convierten aquí, en el borde, a un ``StationEvent``
con una lectura etiquetada por métrica, de modo que el motor de correlación
nunca maneja valores sin tipo.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Union

TIMESTAMP_FIELD = "Timestamp"
VALUE_FIELD = "OPCUANodeValue"

# Packaging station reports 2 when the unit is done and QA passed.
STATUS_DONE_QA_PASSED = 2


class TelemetryError(Exception):
    """Fallo de transporte/consulta contra el store de telemetría."""


class TelemetryDataError(TelemetryError):
    """Fila de telemetría que no se puede convertir al tipo esperado."""


class Metric(str, Enum):
    STATUS = "Status"
    PRODUCT_SERIAL_NUMBER = "ProductSerialNumber"
    ENERGY_CONSUMPTION = "EnergyConsumption"


@dataclass(frozen=True)
class StatusReading:
    status: int


@dataclass(frozen=True)
class SerialNumberReading:
    serial_number: int


@dataclass(frozen=True)
class EnergyReading:
    energy_ws: float


Reading = Union[StatusReading, SerialNumberReading, EnergyReading]


@dataclass(frozen=True)
class StationEvent:
    station: str
    production_line: str
    metric: Metric
    timestamp: datetime  # UTC, aware
    reading: Reading


def as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _integral(metric: Metric, value: float) -> int:
    if not value.is_integer():
        raise TelemetryDataError(f"{metric.value} is not integral: {value!r}")
    return int(value)


def parse_reading(metric: Metric, value: Any) -> Reading:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise TelemetryDataError(f"{metric.value} value not numeric: {value!r}") from e
    if math.isnan(number) or math.isinf(number):
        raise TelemetryDataError(f"{metric.value} value not finite: {value!r}")

    if metric is Metric.STATUS:
        return StatusReading(status=_integral(metric, number))
    if metric is Metric.PRODUCT_SERIAL_NUMBER:
        return SerialNumberReading(serial_number=_integral(metric, number))
    if metric is Metric.ENERGY_CONSUMPTION:
        return EnergyReading(energy_ws=number)
    raise TelemetryDataError(f"unknown metric: {metric!r}")


def to_station_event(
    station: str,
    production_line: str,
    metric: Metric,
    row: Mapping[str, Any],
) -> Optional[StationEvent]:
    """Convierte una fila plana en ``StationEvent``; ``None`` si la fila está vacía."""
    if not row:
        return None
    ts = row.get(TIMESTAMP_FIELD)
    if not isinstance(ts, datetime):
        raise TelemetryDataError(f"row without valid {TIMESTAMP_FIELD}: {ts!r}")
    return StationEvent(
        station=station,
        production_line=production_line,
        metric=metric,
        timestamp=as_utc(ts),
        reading=parse_reading(metric, row.get(VALUE_FIELD)),
    )
