from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .config import ProductionLine

GHG_PROTOCOL = "GHG Protocol"
PCF_UNIT = "gCO2"


@dataclass(frozen=True)
class StationEnergy:
    station: str
    timestamp: datetime
    energy_ws: float


@dataclass
class UnitTrace:
    """Traza de una unidad terminada: energía por estación, construida paso a paso."""
    production_line: str
    serial_number: int
    completed_at: datetime
    stations: dict[str, StationEnergy] = field(default_factory=dict)

    def add(self, energy: StationEnergy) -> None:
        self.stations[energy.station] = energy

    def is_complete(self, line: ProductionLine) -> bool:
        return all(s in self.stations for s in line.stations)

    def energies_ws(self, line: ProductionLine) -> list[float]:
        return [self.stations[s].energy_ws for s in line.stations]


@dataclass(frozen=True)
class ProductCarbonFootprint:
    production_line: str
    serial_number: int
    value: float  # g CO2e
    timestamp: datetime
    scope1: float
    scope2: float
    scope3: float
    total_energy: float
    carbon_intensity: float
    methodology: str = GHG_PROTOCOL
    unit: str = PCF_UNIT

    @property
    def document_name(self) -> str:
        return f"CarbonFootprintAAS_{self.production_line}_{self.serial_number}"


class LineOutcome(str, Enum):
    PUBLISHED = "published"
    NO_NEW_UNIT = "no_new_unit"
    ABANDONED = "abandoned"
    FAILED = "failed"


@dataclass(frozen=True)
class LineResult:
    production_line: str
    outcome: LineOutcome
    footprint: Optional[ProductCarbonFootprint] = None
    reason: Optional[str] = None
