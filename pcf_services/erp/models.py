"""Schemas del servicio de trazabilidad ERP (genealogía / BOM).

Formato esperado de respuesta:
{
    "root": {
        "events": [
            {"productTransactions": [{"quantity": 10, "details": {"pcf": "42.5"}}]}
        ],
        "next": [ { ...ErpNode... } ]
    }
}
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class TracingDirection(str, Enum):
    FORWARD = "Forward"
    BACKWARD = "Backward"


class TraceabilityQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tracing_direction: TracingDirection = Field(..., alias="tracingDirection")
    company: str
    item_number: str = Field(..., alias="itemNumber")
    batch_number: str = Field(default="", alias="batchNumber")
    serial_number: str = Field(default="", alias="serialNumber")
    should_include_events: bool = Field(default=True, alias="shouldIncludeEvents")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class ErpTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    quantity: Optional[float] = None
    # JSON object order is preserved: only the first-inserted entry is meaningful.
    details: Optional[dict[str, Any]] = None


class ErpEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    product_transactions: Optional[list[ErpTransaction]] = Field(
        default=None, alias="productTransactions"
    )


class ErpNode(BaseModel):
    model_config = ConfigDict(extra="ignore")

    events: Optional[list[ErpEvent]] = None
    next: Optional[list["ErpNode"]] = None


class TraceabilityResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    root: Optional[ErpNode] = None


ErpNode.model_rebuild()
