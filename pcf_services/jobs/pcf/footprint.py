"""Agregación del PCF: scope 1 + scope 2 + scope 3."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

from .config import ProductionLine
from .models import ProductCarbonFootprint, UnitTrace

# No direct combustion source on the line.
SCOPE1_EMISSIONS = 0.0

SECONDS_PER_HOUR = 3600


def total_energy(energies_ws: Iterable[float], ideal_cycle_time: float) -> float:
    """Energía de proceso de la unidad: ``(Σ Ws) / 3600 * ideal_cycle_time``."""
    return sum(energies_ws) / SECONDS_PER_HOUR * ideal_cycle_time


def scope2_emissions(energy: float, carbon_intensity: float) -> float:
    return energy * carbon_intensity


def product_carbon_footprint(scope1: float, scope2: float, scope3: float) -> float:
    return scope1 + scope2 + scope3


def aggregate_footprint(
    line: ProductionLine,
    trace: UnitTrace,
    carbon_intensity: float,
    scope3: float,
    now: Optional[datetime] = None,
) -> ProductCarbonFootprint:
    """Full float precision is kept; any rounding belongs to the display layer."""
    if not trace.is_complete(line):
        missing = [s for s in line.stations if s not in trace.stations]
        raise ValueError(f"incomplete trace for {line.name}: missing {missing}")

    energy = total_energy(trace.energies_ws(line), line.ideal_cycle_time)
    scope2 = scope2_emissions(energy, carbon_intensity)

    return ProductCarbonFootprint(
        production_line=line.name,
        serial_number=trace.serial_number,
        value=product_carbon_footprint(SCOPE1_EMISSIONS, scope2, scope3),
        timestamp=now or datetime.now(timezone.utc),
        scope1=SCOPE1_EMISSIONS,
        scope2=scope2,
        scope3=scope3,
        total_energy=energy,
        carbon_intensity=carbon_intensity,
    )
