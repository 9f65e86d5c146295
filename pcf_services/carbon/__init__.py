from .watttime import (
    FALLBACK_CARBON_INTENSITY,
    CarbonIntensityClient,
    CarbonIntensitySample,
    lbs_per_mwh_to_g_per_kwh,
)

__all__ = [
    "FALLBACK_CARBON_INTENSITY",
    "CarbonIntensityClient",
    "CarbonIntensitySample",
    "lbs_per_mwh_to_g_per_kwh",
]
