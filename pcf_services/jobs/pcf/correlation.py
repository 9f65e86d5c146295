"""Correlación de una unidad terminada a lo largo de la línea.

Pasos (orden fijo):
1. ¿Hay unidad nueva? Status == 2 en la estación terminal dentro del look-back.
2. Número de serie en la estación terminal, ventana ± ideal cycle time.
3. Para cada estación: cuándo vio ese número de serie y su
   EnergyConsumption dentro de la misma ventana.

Regla de desempate en todas las consultas: gana la fila más reciente.
Cualquier dato ausente en los pasos 2-3 abandona la corrida (sin traza parcial).
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from pcf_services.telemetry import (
    DEFAULT_LOOKBACK,
    STATUS_DONE_QA_PASSED,
    EnergyReading,
    Metric,
    SerialNumberReading,
    StationEvent,
    TelemetryDataError,
    TelemetryQuery,
    TelemetryQueryClient,
)

from .config import ProductionLine
from .models import StationEnergy, UnitTrace

logger = logging.getLogger(__name__)


class CorrelationAbandoned(Exception):
    """Falta un dato de correlación; la corrida de la línea se abandona."""

    def __init__(self, production_line: str, reason: str):
        self.production_line = production_line
        self.reason = reason
        super().__init__(f"{production_line}: {reason}")


class UnitCorrelationEngine:
    def __init__(self, telemetry: TelemetryQueryClient, lookback: timedelta = DEFAULT_LOOKBACK):
        self._telemetry = telemetry
        self._lookback = lookback

    def find_completed_unit(self, line: ProductionLine) -> Optional[StationEvent]:
        return self._telemetry.fetch_latest(
            TelemetryQuery(
                station=line.terminal_station,
                production_line=line.name,
                metric=Metric.STATUS,
                lookback=self._lookback,
                equals=STATUS_DONE_QA_PASSED,
            )
        )

    def resolve_serial_number(self, line: ProductionLine, completion: StationEvent) -> int:
        event = self._telemetry.fetch_latest(
            TelemetryQuery(
                station=line.terminal_station,
                production_line=line.name,
                metric=Metric.PRODUCT_SERIAL_NUMBER,
                lookback=self._lookback,
                around=completion.timestamp,
                tolerance_seconds=line.ideal_cycle_time,
            )
        )
        if event is None:
            raise CorrelationAbandoned(
                line.name, f"no serial number around {completion.timestamp.isoformat()}"
            )
        if not isinstance(event.reading, SerialNumberReading):
            raise TelemetryDataError(f"unexpected reading {event.reading!r}")
        return event.reading.serial_number

    def resolve_station_energy(
        self, line: ProductionLine, station: str, serial_number: int
    ) -> StationEnergy:
        seen = self._telemetry.fetch_latest(
            TelemetryQuery(
                station=station,
                production_line=line.name,
                metric=Metric.PRODUCT_SERIAL_NUMBER,
                lookback=self._lookback,
                equals=serial_number,
            )
        )
        if seen is None:
            raise CorrelationAbandoned(line.name, f"serial {serial_number} not seen at {station}")

        energy = self._telemetry.fetch_latest(
            TelemetryQuery(
                station=station,
                production_line=line.name,
                metric=Metric.ENERGY_CONSUMPTION,
                lookback=self._lookback,
                around=seen.timestamp,
                tolerance_seconds=line.ideal_cycle_time,
            )
        )
        if energy is None:
            raise CorrelationAbandoned(
                line.name, f"no energy consumption at {station} for serial {serial_number}"
            )
        if not isinstance(energy.reading, EnergyReading):
            raise TelemetryDataError(f"unexpected reading {energy.reading!r}")
        return StationEnergy(station=station, timestamp=seen.timestamp, energy_ws=energy.reading.energy_ws)

    def correlate(self, line: ProductionLine) -> Optional[UnitTrace]:
        """``None`` si no hay unidad nueva; ``CorrelationAbandoned`` si falta un dato."""
        completion = self.find_completed_unit(line)
        if completion is None:
            logger.info("pcf_no_new_unit line=%s", line.name)
            return None

        serial_number = self.resolve_serial_number(line, completion)
        logger.info(
            "pcf_unit_completed line=%s serial=%d at=%s",
            line.name, serial_number, completion.timestamp.isoformat(),
        )

        trace = UnitTrace(
            production_line=line.name,
            serial_number=serial_number,
            completed_at=completion.timestamp,
        )
        # Station lookups are independent; line order only keeps logs readable.
        for station in line.stations:
            energy = self.resolve_station_energy(line, station, serial_number)
            logger.debug(
                "pcf_station_energy line=%s station=%s serial=%d energy_ws=%.3f",
                line.name, station, serial_number, energy.energy_ws,
            )
            trace.add(energy)

        return trace
