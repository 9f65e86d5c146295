from .client import AuthState, TraceabilityAuthError, TraceabilityClient, TraceabilityError
from .genealogy import build_backward_query, find_pcf, retrieve_scope3_emissions
from .models import (
    ErpEvent,
    ErpNode,
    ErpTransaction,
    TraceabilityQuery,
    TraceabilityResponse,
    TracingDirection,
)

__all__ = [
    "AuthState",
    "TraceabilityAuthError",
    "TraceabilityClient",
    "TraceabilityError",
    "build_backward_query",
    "find_pcf",
    "retrieve_scope3_emissions",
    "ErpEvent",
    "ErpNode",
    "ErpTransaction",
    "TraceabilityQuery",
    "TraceabilityResponse",
    "TracingDirection",
]
