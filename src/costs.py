"""
Cost formulas for placing businesses, upgrading them, hiring/selling shipping
agents and relocating. Everything here is a pure function of counts and levels
except `apply_upgrade`, which mutates the business it is handed.
"""
import math
from decimal import Decimal, ROUND_FLOOR
from typing import Dict, Tuple

import objects as G

PLACEMENT_GROWTH = Decimal("1.3")
SHIPPING_GROWTH = Decimal("1.1")
UPGRADE_BASE = Decimal("50")
UPGRADE_GROWTH = Decimal("2")
UNTOUCHED_UPGRADE_PENALTY = Decimal("1.5")

CAPACITY_MULTIPLIER = 2
PROCESSING_TIME_DIVIDER = 1.5


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def placement_cost(base_cost: Decimal, owned: int, growth: Decimal = PLACEMENT_GROWTH) -> int:
    """floor(base * growth^owned) where `owned` counts businesses of the same kind."""
    return _floor(Decimal(base_cost) * growth ** owned)


def upgrade_cost(
    upgrades: Dict[G.UpgradeType, int],
    upgrade_type: G.UpgradeType,
    pricing: G.UpgradePricing = G.UpgradePricing.diversified,
    base: Decimal = UPGRADE_BASE,
) -> int:
    """
    Price of the next upgrade of `upgrade_type`.

    Simple pricing follows the business level: base * 2^(level - 1), whatever
    the type. Diversified pricing doubles per upgrade already applied to that
    type, and each *other* type that has never been applied adds x1.5, nudging
    players to spread their upgrades.
    """
    if pricing == G.UpgradePricing.simple:
        return _floor(Decimal(base) * UPGRADE_GROWTH ** sum(upgrades.values()))
    cost = Decimal(base) * UPGRADE_GROWTH ** upgrades.get(upgrade_type, 0)
    if pricing == G.UpgradePricing.diversified:
        for other in G.UpgradeType:
            if other != upgrade_type and upgrades.get(other, 0) == 0:
                cost *= UNTOUCHED_UPGRADE_PENALTY
    return _floor(cost)


def shipping_cost(base_cost: Decimal, owned: int, growth: Decimal = SHIPPING_GROWTH) -> int:
    """floor(base * growth^owned) where `owned` counts agents of that kind on the business."""
    return _floor(Decimal(base_cost) * growth ** owned)


def sell_refund(base_cost: Decimal, owned_before_removal: int, growth: Decimal = SHIPPING_GROWTH) -> int:
    return shipping_cost(base_cost, owned_before_removal, growth) // 2


def relocation_cost(
    origin: Tuple[float, float],
    destination: Tuple[float, float],
    minimum: int = 10,
    divisor: float = 10,
) -> int:
    distance = math.dist(origin, destination)
    # round half up
    return max(minimum, math.floor(distance / divisor + 0.5))


def apply_upgrade(business: G._BusinessInstance, upgrade_type: G.UpgradeType, paid: int) -> None:
    if upgrade_type == G.UpgradeType.incomingCapacity:
        business.incoming_storage.capacity *= CAPACITY_MULTIPLIER
    elif upgrade_type == G.UpgradeType.outgoingCapacity:
        business.outgoing_storage.capacity *= CAPACITY_MULTIPLIER
    elif upgrade_type == G.UpgradeType.processingTime:
        business.processing_time /= PROCESSING_TIME_DIVIDER
    else:
        raise ValueError(f"Unknown upgrade type: {upgrade_type}")

    business.upgrades = {**business.upgrades, upgrade_type: business.upgrades.get(upgrade_type, 0) + 1}
    business.level += 1
    business.total_invested += Decimal(paid)
