"""PCF batch job package.

Modules:
- config: ProductionLine, RunnerConfig, default lines
- models: UnitTrace, ProductCarbonFootprint, line outcomes
- correlation: Unit correlation engine (telemetry -> UnitTrace)
- footprint: Scope 1/2/3 aggregation
- publisher: UA Cloud Library upload
- runner: Orchestrator (run_once)
- cli: CLI entry point (main)
"""

from .config import DEFAULT_PRODUCTION_LINES, ProductionLine, RunnerConfig
from .runner import PcfServices, build_services, process_production_line, run_once
from .cli import main

__all__ = [
    "DEFAULT_PRODUCTION_LINES",
    "ProductionLine",
    "RunnerConfig",
    "PcfServices",
    "build_services",
    "process_production_line",
    "run_once",
    "main",
]
