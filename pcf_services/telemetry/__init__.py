from .models import (
    STATUS_DONE_QA_PASSED,
    EnergyReading,
    Metric,
    SerialNumberReading,
    StationEvent,
    StatusReading,
    TelemetryDataError,
    TelemetryError,
)
from .queries import DEFAULT_LOOKBACK, TelemetryQuery, TelemetryQueryClient, metadata

__all__ = [
    "STATUS_DONE_QA_PASSED",
    "EnergyReading",
    "Metric",
    "SerialNumberReading",
    "StationEvent",
    "StatusReading",
    "TelemetryDataError",
    "TelemetryError",
    "DEFAULT_LOOKBACK",
    "TelemetryQuery",
    "TelemetryQueryClient",
    "metadata",
]
