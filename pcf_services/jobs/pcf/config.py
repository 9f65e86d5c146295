"""PCF job configuration: production lines and runner parameters."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional


@dataclass(frozen=True)
class ProductionLine:
    """Configuración estática de una línea de producción.

    ``stations`` va en orden de línea; la última es la estación terminal
    (packaging) que reporta la finalización de la unidad.
    ``ideal_cycle_time`` (segundos) es la tolerancia de las ventanas temporales.
    """
    name: str
    latitude: float
    longitude: float
    stations: tuple[str, ...]
    ideal_cycle_time: int

    def __post_init__(self) -> None:
        if not self.stations:
            raise ValueError(f"production line {self.name!r} has no stations")
        if self.ideal_cycle_time <= 0:
            raise ValueError(f"production line {self.name!r} needs a positive ideal cycle time")

    @property
    def terminal_station(self) -> str:
        return self.stations[-1]


DEFAULT_STATIONS = ("assembly", "test", "packaging")

# assembly -> test -> packaging en ambas líneas de la simulación
DEFAULT_PRODUCTION_LINES: tuple[ProductionLine, ...] = (
    ProductionLine("Munich", 48.1375, 11.575, DEFAULT_STATIONS, ideal_cycle_time=6),
    ProductionLine("Seattle", 47.609722, -122.333056, DEFAULT_STATIONS, ideal_cycle_time=10),
)


@dataclass(frozen=True)
class RunnerConfig:
    """Configuración del PCF batch runner."""
    lookback_minutes: int = 60
    sleep_seconds: float = 60.0
    once: bool = False
    line: Optional[str] = None

    @property
    def lookback(self) -> timedelta:
        return timedelta(minutes=self.lookback_minutes)


def select_lines(
    lines: tuple[ProductionLine, ...], name: Optional[str]
) -> tuple[ProductionLine, ...]:
    if name is None:
        return lines
    selected = tuple(line for line in lines if line.name.lower() == name.lower())
    if not selected:
        raise ValueError(f"unknown production line: {name}")
    return selected
