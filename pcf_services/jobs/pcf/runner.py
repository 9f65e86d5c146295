"""PCF batch orchestrator: una corrida por línea de producción, en serie.

Orden fijo por línea: finalización -> número de serie -> energía por
estación -> intensidad de carbono -> emisiones embebidas -> agregación ->
publicación. Ningún error cruza el límite de una línea.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterable

from pcf_services.carbon import CarbonIntensityClient
from pcf_services.common import Settings, get_engine
from pcf_services.erp import (
    TraceabilityClient,
    TraceabilityQuery,
    build_backward_query,
    retrieve_scope3_emissions,
)
from pcf_services.telemetry import TelemetryError, TelemetryQueryClient

from .config import DEFAULT_PRODUCTION_LINES, ProductionLine, RunnerConfig
from .correlation import CorrelationAbandoned, UnitCorrelationEngine
from .footprint import aggregate_footprint
from .models import LineOutcome, LineResult
from .publisher import CloudLibraryPublisher

logger = logging.getLogger(__name__)


@dataclass
class PcfServices:
    """Clientes externos de larga vida (uno por proceso)."""
    telemetry: TelemetryQueryClient
    traceability: TraceabilityClient
    carbon: CarbonIntensityClient
    publisher: CloudLibraryPublisher
    scope3_query: TraceabilityQuery

    def close(self) -> None:
        self.traceability.close()
        self.publisher.close()


def build_services(settings: Settings) -> PcfServices:
    return PcfServices(
        telemetry=TelemetryQueryClient(get_engine(settings)),
        traceability=TraceabilityClient.from_settings(settings),
        carbon=CarbonIntensityClient.from_settings(settings),
        publisher=CloudLibraryPublisher.from_settings(settings),
        scope3_query=build_backward_query(settings),
    )


def _process_line(line: ProductionLine, services: PcfServices, cfg: RunnerConfig) -> LineResult:
    engine = UnitCorrelationEngine(services.telemetry, lookback=cfg.lookback)
    trace = engine.correlate(line)
    if trace is None:
        return LineResult(line.name, LineOutcome.NO_NEW_UNIT)

    intensity = services.carbon.get_carbon_intensity(line.latitude, line.longitude)
    scope3 = retrieve_scope3_emissions(services.traceability, services.scope3_query)

    footprint = aggregate_footprint(line, trace, intensity.actual, scope3)
    logger.info(
        "pcf_computed line=%s serial=%d energy=%.6f intensity=%.3f(%s) scope2=%.6f scope3=%.6f pcf=%.6f",
        line.name, footprint.serial_number, footprint.total_energy,
        intensity.actual, intensity.source, footprint.scope2, footprint.scope3, footprint.value,
    )

    if not services.publisher.publish(footprint):
        return LineResult(line.name, LineOutcome.FAILED, footprint, reason="publish failed")
    return LineResult(line.name, LineOutcome.PUBLISHED, footprint)


def process_production_line(
    line: ProductionLine, services: PcfServices, cfg: RunnerConfig
) -> LineResult:
    t0 = time.monotonic()
    try:
        result = _process_line(line, services, cfg)
    except CorrelationAbandoned as e:
        logger.warning("pcf_line_abandoned line=%s reason=%s", line.name, e.reason)
        result = LineResult(line.name, LineOutcome.ABANDONED, reason=e.reason)
    except TelemetryError as e:
        logger.error("pcf_line_abandoned line=%s telemetry_err=%s", line.name, e)
        result = LineResult(line.name, LineOutcome.ABANDONED, reason=str(e))
    except Exception as e:
        logger.exception("pcf_line_failed line=%s err=%s", line.name, e)
        result = LineResult(line.name, LineOutcome.FAILED, reason=str(e))

    logger.info(
        "pcf_line_done line=%s outcome=%s ms=%.1f",
        line.name, result.outcome.value, (time.monotonic() - t0) * 1000,
    )
    return result


def run_once(
    cfg: RunnerConfig,
    services: PcfServices,
    lines: Iterable[ProductionLine] = DEFAULT_PRODUCTION_LINES,
) -> list[LineResult]:
    """Batch cycle: líneas en orden fijo, sin paralelismo."""
    t0 = time.monotonic()
    results = [process_production_line(line, services, cfg) for line in lines]

    counts = {outcome: 0 for outcome in LineOutcome}
    for r in results:
        counts[r.outcome] += 1
    logger.info(
        "pcf_cycle ms=%.1f lines=%d published=%d no_new_unit=%d abandoned=%d failed=%d",
        (time.monotonic() - t0) * 1000,
        len(results),
        counts[LineOutcome.PUBLISHED],
        counts[LineOutcome.NO_NEW_UNIT],
        counts[LineOutcome.ABANDONED],
        counts[LineOutcome.FAILED],
    )
    return results
