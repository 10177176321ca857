"""
Read-only views over a game state for rendering collaborators.
"""
from decimal import Decimal
from enum import Enum
from typing import Dict

import objects as G


class BufferStatus(str, Enum):
    bottleneck = "bottleneck"
    warning = "warning"
    low = "low"
    normal = "normal"


def fill_percentage(storage: G._Storage) -> float:
    if storage.capacity <= 0 or storage.capacity == float("inf"):
        return 0.0
    return storage.current * 100 / storage.capacity


def buffer_status(storage: G._Storage) -> BufferStatus:
    pct = fill_percentage(storage)
    if pct >= 90:
        return BufferStatus.bottleneck
    if pct >= 70:
        return BufferStatus.warning
    if 0 < pct <= 10:
        return BufferStatus.low
    return BufferStatus.normal


def business_status(business: G._BusinessInstance) -> Dict[str, BufferStatus]:
    return {
        "incoming": buffer_status(business.incoming_storage),
        "outgoing": buffer_status(business.outgoing_storage),
    }


def equity(state: G._GameState) -> Decimal:
    return sum((b.total_invested for b in state.businesses), Decimal(0))


def resource_totals(state: G._GameState) -> Dict[G.ResourceKind, float]:
    """Units of each resource sitting in outgoing buffers, ready to ship."""
    totals: Dict[G.ResourceKind, float] = {}
    for b in state.businesses:
        if b.output_resource == G.ResourceKind.NONE:
            continue
        totals[b.output_resource] = totals.get(b.output_resource, 0.0) + b.outgoing_storage.current
    return totals


def score(stats: G._SessionStats) -> Decimal:
    return Decimal(stats.max_businesses) * Decimal(stats.max_level) * stats.max_coins
