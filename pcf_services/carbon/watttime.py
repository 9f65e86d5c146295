"""Intensidad de carbono de la red eléctrica (WattTime v3).

Flujo: login (Basic) -> región a partir de la coordenada -> forecast con
horizonte cero. El servicio publica lb/MWh; se convierte a g/kWh.

Cualquier fallo (o credenciales ausentes) devuelve ``FALLBACK_CARBON_INTENSITY``:
una media documentada, nunca una excepción ni ``None``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

# Average grid intensity used when the live signal is unavailable (g CO2e/kWh).
FALLBACK_CARBON_INTENSITY = 500.0

GRAMS_PER_POUND = 453.592
SIGNAL_TYPE = "co2_moer"


def lbs_per_mwh_to_g_per_kwh(value: float) -> float:
    return value * GRAMS_PER_POUND / 1000.0


@dataclass(frozen=True)
class CarbonIntensitySample:
    actual: float  # g CO2e / kWh
    source: str  # watttime | fallback
    region: Optional[str] = None


def fallback_sample() -> CarbonIntensitySample:
    return CarbonIntensitySample(actual=FALLBACK_CARBON_INTENSITY, source="fallback")


class CarbonIntensityClient:
    def __init__(
        self,
        username: Optional[str],
        password: str,
        base_url: str = "https://api.watttime.org",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._username = username
        self._password = password
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.BaseTransport] = None) -> "CarbonIntensityClient":
        return cls(
            username=settings.watttime_user,
            password=settings.watttime_password,
            base_url=settings.watttime_base_url,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )

    def get_carbon_intensity(self, latitude: float, longitude: float) -> CarbonIntensitySample:
        if not self._username:
            logger.info("carbon_intensity_fallback reason=not_configured value=%.1f", FALLBACK_CARBON_INTENSITY)
            return fallback_sample()

        try:
            return self._fetch(latitude, longitude)
        except Exception as e:
            logger.error(
                "carbon_intensity_fallback reason=error lat=%s lon=%s err=%s value=%.1f",
                latitude, longitude, e, FALLBACK_CARBON_INTENSITY,
            )
            return fallback_sample()

    def _fetch(self, latitude: float, longitude: float) -> CarbonIntensitySample:
        # One short-lived session per lookup; the token is not reused across runs.
        with httpx.Client(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            resp = client.get("/login", auth=(self._username, self._password))
            resp.raise_for_status()
            token = resp.json()["token"]
            client.headers["Authorization"] = f"Bearer {token}"

            resp = client.get(
                "/v3/region-from-loc",
                params={"latitude": latitude, "longitude": longitude, "signal_type": SIGNAL_TYPE},
            )
            resp.raise_for_status()
            region = resp.json()["region"]

            resp = client.get(
                "/v3/forecast",
                params={"region": region, "signal_type": SIGNAL_TYPE, "horizon_hours": 0},
            )
            resp.raise_for_status()
            lbs_per_mwh = float(resp.json()["data"][0]["value"])

        actual = lbs_per_mwh_to_g_per_kwh(lbs_per_mwh)
        logger.info("carbon_intensity region=%s g_per_kwh=%.3f", region, actual)
        return CarbonIntensitySample(actual=actual, source="watttime", region=region)
