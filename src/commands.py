"""
Player commands: place, upgrade, hire, sell, relocate.

Each command takes the current state and returns `(new_state, CommandResult)`.
A rejected command returns the very same state object it was given, so callers
can tell "nothing happened" apart with an identity check. Accepted commands
copy only what they touch: the business list is rebuilt, the edited business is
deep-copied, everything else is shared with the previous state and must not be
mutated in place.
"""
import logging
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel

import objects as G
import costs
import sim

logger = logging.getLogger(__name__)


class RejectReason(str, Enum):
    insufficient_funds = "insufficient_funds"
    not_found = "not_found"
    invalid = "invalid"


class CommandResult(BaseModel):
    command: str
    ok: bool
    reason: Optional[RejectReason] = None
    cost: Decimal = Decimal(0)
    subject_id: Optional[str] = None


Outcome = Tuple[G._GameState, CommandResult]


def _reject(state: G._GameState, command: str, reason: RejectReason, cost=0, subject_id=None) -> Outcome:
    logger.warning("%s rejected (%s), cost %s, subject %s", command, reason.value, cost, subject_id)
    return state, CommandResult(command=command, ok=False, reason=reason, cost=Decimal(cost), subject_id=subject_id)


def _accept(state: G._GameState, command: str, cost, subject_id: str) -> Outcome:
    logger.info("%s %s for %s coins", command, subject_id, cost)
    return state, CommandResult(command=command, ok=True, cost=Decimal(cost), subject_id=subject_id)


def _cow(state: G._GameState, business_id: str) -> Tuple[G._GameState, G._BusinessInstance]:
    """Copy of `state` whose business `business_id` is a private deep copy."""
    idx = next(i for i, b in enumerate(state.businesses) if b.id == business_id)
    business = state.businesses[idx].model_copy(deep=True)
    businesses = list(state.businesses)
    businesses[idx] = business
    return state.model_copy(update={"businesses": businesses}), business


def place_business(
    state: G._GameState,
    kind: G.BusinessKind,
    position: Tuple[float, float],
    config: G.GameConfig = sim.DEFAULT_CONFIG,
) -> Outcome:
    definition = sim.BusinessDefs[kind]
    if definition.role == G.BusinessRole.market:
        return _reject(state, "place", RejectReason.invalid, subject_id=kind.value)

    cost = costs.placement_cost(definition.base_cost, state.count_of(kind), config.placement_growth)
    if state.coins < cost:
        return _reject(state, "place", RejectReason.insufficient_funds, cost, kind.value)

    business = sim.new_business(kind, tuple(position))
    business.total_invested = Decimal(cost)
    new_state = state.model_copy(update={
        "coins": state.coins - cost,
        "businesses": [*state.businesses, business],
    })
    return _accept(new_state, "place", cost, business.id)


def upgrade_business(
    state: G._GameState,
    business_id: str,
    upgrade_type: G.UpgradeType,
    config: G.GameConfig = sim.DEFAULT_CONFIG,
) -> Outcome:
    business = state.get_business(business_id)
    if business is None:
        return _reject(state, "upgrade", RejectReason.not_found, subject_id=business_id)
    if business.is_market:
        return _reject(state, "upgrade", RejectReason.invalid, subject_id=business_id)

    cost = costs.upgrade_cost(business.upgrades, upgrade_type, config.upgrade_pricing, config.upgrade_base)
    if state.coins < cost:
        return _reject(state, "upgrade", RejectReason.insufficient_funds, cost, business_id)

    new_state, business = _cow(state, business_id)
    costs.apply_upgrade(business, upgrade_type, cost)
    new_state.coins = state.coins - cost
    return _accept(new_state, "upgrade", cost, business_id)


def hire_shipping_agent(
    state: G._GameState,
    business_id: str,
    kind: G.ShippingKind,
    config: G.GameConfig = sim.DEFAULT_CONFIG,
) -> Outcome:
    business = state.get_business(business_id)
    if business is None:
        return _reject(state, "hire", RejectReason.not_found, subject_id=business_id)
    if business.is_market:
        return _reject(state, "hire", RejectReason.invalid, subject_id=business_id)

    definition = sim.ShippingDefs[kind]
    cost = costs.shipping_cost(definition.base_cost, business.count_bots(kind), config.shipping_growth)
    if state.coins < cost:
        return _reject(state, "hire", RejectReason.insufficient_funds, cost, business_id)

    new_state, business = _cow(state, business_id)
    bot = sim.new_bot(kind)
    business.add_bot(kind, bot)
    business.total_invested += Decimal(cost)
    new_state.coins = state.coins - cost
    return _accept(new_state, "hire", cost, bot.id)


def _cancel_delivery(state: G._GameState, delivery: G._ActiveDelivery) -> None:
    """
    Call back a shipment whose agent is being sold. The target's reservation
    is dropped and the load goes back to the source's outgoing buffer, as much
    as still fits; the rest is lost.
    """
    state.active_deliveries = [d for d in state.active_deliveries if d.id != delivery.id]
    target = state.get_business(delivery.target_business_id)
    if target is not None:
        target.drop_reservation(delivery.source_business_id, delivery.resource_amount, delivery.resource_type)
    source = state.get_business(delivery.source_business_id)
    if source is not None:
        returned = min(delivery.resource_amount, source.outgoing_storage.free_capacity)
        source.outgoing_storage.add(returned)
        if returned < delivery.resource_amount:
            logger.warning(
                "Delivery %s cancelled: %s of %s %s did not fit back and were lost",
                delivery.id, delivery.resource_amount - returned, delivery.resource_amount,
                delivery.resource_type.value,
            )


def sell_shipping_agent(
    state: G._GameState,
    business_id: str,
    kind: G.ShippingKind,
    config: G.GameConfig = sim.DEFAULT_CONFIG,
) -> Outcome:
    business = state.get_business(business_id)
    if business is None:
        return _reject(state, "sell", RejectReason.not_found, subject_id=business_id)
    owned = business.count_bots(kind)
    if owned == 0:
        return _reject(state, "sell", RejectReason.not_found, subject_id=business_id)

    refund = costs.sell_refund(sim.ShippingDefs[kind].base_cost, owned, config.shipping_growth)
    bots = business.group(kind).bots
    idle = [b for b in bots if not b.is_delivering and state.delivery_for_bot(b.id) is None]
    victim = idle[-1] if idle else bots[-1]
    delivery = state.delivery_for_bot(victim.id)

    if delivery is None:
        new_state, business = _cow(state, business_id)
    else:
        # the shipment touches the target business and the delivery list too
        new_state = state.model_copy(deep=True)
        business = new_state.get_business(business_id)
        _cancel_delivery(new_state, new_state.delivery_for_bot(victim.id))

    group = business.group(kind)
    group.bots = [b for b in group.bots if b.id != victim.id]
    if not group.bots:
        business.shipping_types = [g for g in business.shipping_types if g.type != kind]
    new_state.coins = state.coins + refund
    return _accept(new_state, "sell", -refund, victim.id)


def relocate_business(
    state: G._GameState,
    business_id: str,
    position: Tuple[float, float],
    config: G.GameConfig = sim.DEFAULT_CONFIG,
) -> Outcome:
    business = state.get_business(business_id)
    if business is None:
        return _reject(state, "relocate", RejectReason.not_found, subject_id=business_id)
    if business.is_market:
        return _reject(state, "relocate", RejectReason.invalid, subject_id=business_id)

    cost = costs.relocation_cost(
        business.position, position, config.relocation_min_cost, config.relocation_divisor,
    )
    if state.coins < cost:
        return _reject(state, "relocate", RejectReason.insufficient_funds, cost, business_id)

    new_state, business = _cow(state, business_id)
    business.position = tuple(position)
    new_state.coins = state.coins - cost
    new_state.stats = state.stats.model_copy(update={"relocations": state.stats.relocations + 1})
    return _accept(new_state, "relocate", cost, business_id)
