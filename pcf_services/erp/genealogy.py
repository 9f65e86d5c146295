"""Extracción de emisiones embebidas (scope 3) desde la genealogía ERP."""

from __future__ import annotations

import logging
from typing import Optional

from .client import TraceabilityAuthError, TraceabilityClient, TraceabilityError
from .models import ErpNode, TraceabilityQuery, TracingDirection

logger = logging.getLogger(__name__)

PCF_DETAIL_KEY = "pcf"
MAX_GENEALOGY_DEPTH = 256


def _node_pcf(node: ErpNode) -> Optional[float]:
    """PCF por unidad de la primera transacción válida del nodo, o ``None``."""
    for event in node.events or []:
        for tx in event.product_transactions or []:
            if not tx.details:
                continue
            key, raw = next(iter(tx.details.items()))
            if str(key).lower() != PCF_DETAIL_KEY:
                continue
            if not tx.quantity:
                logger.warning("genealogy_pcf_skipped reason=zero_quantity quantity=%r", tx.quantity)
                continue
            try:
                value = float(str(raw))
            except ValueError:
                logger.warning("genealogy_pcf_skipped reason=not_numeric value=%r", raw)
                continue
            return value / tx.quantity
    return None


def find_pcf(root: ErpNode, max_depth: int = MAX_GENEALOGY_DEPTH) -> float:
    """Pre-order search for the first per-unit embodied-emissions figure.

    A node's matching transaction ends the search of that node's subtree;
    a non-zero match ends the whole walk. Cycles and shared nodes are
    visited once and the walk never descends below ``max_depth``.
    Returns 0.0 when nothing is found.
    """
    visited: set[int] = set()
    stack: list[tuple[ErpNode, int]] = [(root, 0)]

    while stack:
        node, depth = stack.pop()
        if id(node) in visited:
            continue
        visited.add(id(node))

        value = _node_pcf(node)
        if value is not None:
            if value != 0.0:
                return value
            continue

        if not node.next:
            continue
        if depth >= max_depth:
            logger.warning("genealogy_depth_cap_reached depth=%d", depth)
            continue
        stack.extend((child, depth + 1) for child in reversed(node.next))

    return 0.0


def build_backward_query(settings) -> TraceabilityQuery:
    return TraceabilityQuery(
        tracing_direction=TracingDirection.BACKWARD,
        company=settings.dynamics_company_name,
        item_number=settings.dynamics_product_name,
        batch_number=settings.dynamics_batch_name,
        serial_number=settings.dynamics_serial_name,
        should_include_events=True,
    )


def retrieve_scope3_emissions(client: TraceabilityClient, query: TraceabilityQuery) -> float:
    """Scope 3 por unidad; 0.0 si no hay dato. Fallos de autorización se propagan."""
    try:
        response = client.query(query)
    except TraceabilityAuthError:
        raise
    except TraceabilityError as e:
        logger.error("scope3_lookup_failed item=%s err=%s", query.item_number, e)
        return 0.0

    if response is None or response.root is None:
        return 0.0
    return find_pcf(response.root)
