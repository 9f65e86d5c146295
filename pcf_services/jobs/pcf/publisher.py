"""Publicación del PCF en el UA Cloud Library.

Sube el NodeSet plantilla (renombrado por línea y número de serie) junto con
los valores del PCF como anotaciones ``i=<n>``. ``overwrite=true`` hace que
republicar la misma (línea, serie) reemplace el registro en lugar de duplicarlo.
Los fallos se registran; no se reintenta ni se revierte el cálculo.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import httpx

from .models import ProductCarbonFootprint

logger = logging.getLogger(__name__)

TEMPLATE_PATH = Path(__file__).resolve().parent / "templates" / "CarbonFootprintAAS.NodeSet2.xml"
TEMPLATE_NAME = "CarbonFootprintAAS"

EXPLANATORY_STATEMENT = "Scope 2 & 3 Emissions"


class PublishError(Exception):
    """La subida al repositorio falló."""


def build_values(footprint: ProductCarbonFootprint, published_at: datetime) -> dict[str, str]:
    """Node-id keyed annotations of the footprint, as the repository expects."""
    return {
        "i=9": footprint.methodology,  # PCFCalculationMethod
        "i=10": repr(footprint.value),  # PCFCO2eq
        "i=11": str(footprint.serial_number),  # PCFReferenceValueForCalculation
        "i=12": footprint.unit,  # PCFQuantityOfMeasureForCalculation
        "i=14": EXPLANATORY_STATEMENT,  # ExplanatoryStatement
        "i=19": footprint.production_line,  # PCFGoodsAddressHandover.CityTown
        "i=21": published_at.isoformat(),  # PublicationDate
    }


def load_template(path: Path = TEMPLATE_PATH) -> str:
    return path.read_text(encoding="utf-8")


def build_namespace(footprint: ProductCarbonFootprint, template: str) -> dict[str, Any]:
    name = footprint.document_name
    return {
        "title": name,
        "license": "MIT",
        "copyrightText": "OPC Foundation",
        "description": "Sample PCF for Digital Twin Consortium production line simulation",
        "nodeset": {"nodesetXml": template.replace(TEMPLATE_NAME, name)},
    }


class CloudLibraryPublisher:
    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
        template: Optional[str] = None,
    ):
        self._http = http_client or httpx.Client(
            base_url=base_url.rstrip("/") + "/",
            auth=(username, password),
            timeout=timeout,
        )
        self._template = template if template is not None else load_template()

    @classmethod
    def from_settings(cls, settings, http_client: Optional[httpx.Client] = None) -> "CloudLibraryPublisher":
        return cls(
            base_url=settings.cloud_library_url,
            username=settings.cloud_library_username,
            password=settings.cloud_library_password,
            timeout=settings.http_timeout_seconds,
            http_client=http_client,
        )

    def upload(self, footprint: ProductCarbonFootprint, published_at: Optional[datetime] = None) -> None:
        published_at = published_at or datetime.now(timezone.utc)
        params = {
            "overwrite": "true",
            "values": json.dumps(build_values(footprint, published_at)),
        }
        try:
            resp = self._http.put(
                "infomodel/upload",
                params=params,
                json=build_namespace(footprint, self._template),
            )
        except httpx.HTTPError as e:
            raise PublishError(f"upload failed for {footprint.document_name}: {e}") from e
        if resp.is_error:
            raise PublishError(
                f"upload failed for {footprint.document_name}: status={resp.status_code}"
            )

    def publish(self, footprint: ProductCarbonFootprint) -> bool:
        try:
            self.upload(footprint)
        except PublishError as e:
            logger.error("pcf_publish_failed %s", e)
            return False
        logger.info(
            "pcf_published name=%s value=%.6f", footprint.document_name, footprint.value
        )
        return True

    def close(self) -> None:
        self._http.close()
