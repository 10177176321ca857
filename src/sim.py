import logging
import math
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from register import register_content, check_references, MOD_PATHS, LOCAL_CONTENT
import objects as G
from achievements import ACHIEVEMENTS

logger = logging.getLogger(__name__)

ALL_SOURCES = [LOCAL_CONTENT] + MOD_PATHS

# Load registry
REGISTRY = register_content(ALL_SOURCES)
check_references(REGISTRY)
ResourceDefs: Dict[G.ResourceKind, G.ResourceDefinition] = REGISTRY.get("ResourceDefinition", {}) # type: ignore
BusinessDefs: Dict[G.BusinessKind, G.BusinessDefinition] = REGISTRY.get("BusinessDefinition", {}) # type: ignore
ShippingDefs: Dict[G.ShippingKind, G.ShippingTypeDefinition] = REGISTRY.get("ShippingTypeDefinition", {}) # type: ignore
_configs: List[G.GameConfig] = REGISTRY.get("GameConfig", []) # type: ignore
DEFAULT_CONFIG = _configs[-1] if _configs else G.GameConfig()

_TIER_MULTIPLIER = {1: Decimal(1), 2: Decimal(2), 3: Decimal(4)}


def resource_value(resource_id: G.ResourceKind) -> Decimal:
    """
    Coin value of one unit. Raw resources use their base value; processed goods
    are worth 2x and finished goods 4x the base value of the raw resource they
    come from. Unknown resources and NONE are worth nothing.
    """
    res = ResourceDefs.get(resource_id)
    if res is None:
        return Decimal(0)
    raw = ResourceDefs.get(res.raw_input) if res.raw_input is not None else res
    if raw is None:
        return Decimal(0)
    return raw.base_value * _TIER_MULTIPLIER[res.tier]


def resource_values() -> Dict[G.ResourceKind, Decimal]:
    return {rid: resource_value(rid) for rid in G.ResourceKind}

# -----------------------------------
# Factories
# -----------------------------------

def new_business(kind: G.BusinessKind, position: Tuple[float, float]) -> G._BusinessInstance:
    definition = BusinessDefs[kind]
    if definition.role == G.BusinessRole.market:
        # the market is an infinite sink and never ships anything itself
        incoming = G._Storage(capacity=math.inf)
        outgoing = G._Storage(capacity=0)
    else:
        incoming = G._Storage(capacity=definition.incoming_capacity)
        outgoing = G._Storage(capacity=definition.outgoing_capacity)
    return G._BusinessInstance(
        id=G.get_instance_id("market" if definition.role == G.BusinessRole.market else "business"),
        type=kind,
        role=definition.role,
        position=position,
        input_resource=definition.input_resource,
        output_resource=definition.output_resource,
        incoming_storage=incoming,
        outgoing_storage=outgoing,
        processing_time=definition.processing_time,
        batch_size=definition.batch_size,
        wage_per_unit=definition.wage_per_unit,
    )


def new_bot(kind: G.ShippingKind) -> G._DeliveryBotInstance:
    definition = ShippingDefs[kind]
    return G._DeliveryBotInstance(max_load=definition.base_load, speed=definition.base_speed)


def initial_state(config: G.GameConfig = DEFAULT_CONFIG, started_at: float = 0.0) -> G._GameState:
    state = G._GameState(
        coins=config.starting_coins,
        businesses=[new_business(G.BusinessKind.MARKET, config.market_position)],
        achievements={key: False for key in ACHIEVEMENTS},
    )
    state.stats = G._SessionStats(started_at=started_at, max_coins=config.starting_coins)
    return state

# -----------------------------------
# Tick Behaviors
# -----------------------------------

class Behavior:
    def tick(self, state: G._GameState, now: float, config: G.GameConfig) -> None:
        raise NotImplementedError


def _gather(business: G._BusinessInstance, seconds: float) -> float:
    out = business.outgoing_storage
    if not out.can_add(business.batch_size):
        return 0.0
    business.production_progress += seconds / business.processing_time
    if business.production_progress >= 1:
        out.add(business.batch_size)
        business.production_progress = 0.0
    return business.batch_size * seconds / business.processing_time


def _process(business: G._BusinessInstance, seconds: float) -> float:
    inc, out = business.incoming_storage, business.outgoing_storage
    # stalled: progress is held, not lost
    if inc.current < business.batch_size or not out.can_add(business.batch_size):
        return 0.0
    business.production_progress += seconds / business.processing_time
    if business.production_progress >= 1:
        inc.remove(business.batch_size)
        out.add(business.batch_size)
        business.production_progress = 0.0
    return business.batch_size * seconds / business.processing_time


# Each rule returns the units worked this tick, 0 while stalled.
_PRODUCERS: Dict[G.BusinessRole, Optional[Callable[[G._BusinessInstance, float], float]]] = {
    G.BusinessRole.gathering: _gather,
    G.BusinessRole.processing: _process,
    G.BusinessRole.shop: _process,
    G.BusinessRole.market: None,
}


class ProductionBehavior(Behavior):
    """
    Advances every business by one tick of production.
    Batches are all-or-nothing: output only lands when a full batch fits.
    Workers are paid per unit worked, so a stalled business costs nothing.
    """

    def _decay_profit(self, business: G._BusinessInstance, config: G.GameConfig) -> None:
        if business.profit_display_time is None:
            return
        business.profit_display_time += config.tick_ms
        if business.profit_display_time > config.profit_display_ms:
            business.recent_profit = Decimal(0)
            business.profit_display_time = None

    def _pay_wages(self, state: G._GameState, business: G._BusinessInstance, units: float, config: G.GameConfig) -> None:
        wage = Decimal(str(units)) * business.wage_per_unit * config.currency_multiplier
        state.coins -= wage
        state.stats.wages_paid += wage

    def tick(self, state, now, config):
        seconds = config.tick_ms / 1000
        for business in state.businesses:
            self._decay_profit(business, config)
            produce = _PRODUCERS[business.role]
            if produce is None:
                continue
            units = produce(business, seconds)
            if units > 0 and business.wage_per_unit > 0:
                self._pay_wages(state, business, units, config)


class DispatchBehavior(Behavior):
    """Sends idle delivery agents out with stored output, first-fit over the candidate targets."""

    def _candidates(self, source: G._BusinessInstance, state: G._GameState) -> List[G._BusinessInstance]:
        targets = [
            b for b in state.businesses
            if b.id != source.id
            and not b.is_market
            and b.input_resource == source.output_resource
        ]
        market = state.market()
        if market is not None:
            targets.append(market)
        return targets

    def _accepts(self, target: G._BusinessInstance, amount: float) -> bool:
        if target.is_market:
            return True
        return target.unreserved_capacity() >= amount

    def _send(
        self,
        source: G._BusinessInstance,
        target: G._BusinessInstance,
        bot: G._DeliveryBotInstance,
        amount: float,
        now: float,
        config: G.GameConfig,
    ) -> G._ActiveDelivery:
        bot.dispatch(target.id, amount)
        source.outgoing_storage.remove(amount)
        if not target.is_market:
            target.pending_deliveries.append(G._PendingDelivery(
                source_business_id=source.id,
                resource_amount=amount,
                resource_type=source.output_resource,
            ))
        travel_seconds = math.dist(source.position, target.position) / bot.speed * config.travel_time_factor
        travel_ms = travel_seconds * 1000
        return G._ActiveDelivery(
            source_business_id=source.id,
            target_business_id=target.id,
            bot=bot.model_copy(),
            resource_amount=amount,
            resource_type=source.output_resource,
            created_at=now,
            expected_arrival=now + travel_ms,
            travel_time_ms=travel_ms,
        )

    def tick(self, state, now, config):
        in_flight = {d.bot.id for d in state.active_deliveries}
        for business in state.businesses:
            if business.is_market or business.output_resource == G.ResourceKind.NONE:
                continue
            for bot in business.all_bots():
                if business.outgoing_storage.current < 1:
                    break
                if bot.is_delivering or bot.id in in_flight:
                    continue
                amount = min(bot.max_load, business.outgoing_storage.current)
                target = next(
                    (t for t in self._candidates(business, state) if self._accepts(t, amount)),
                    None,
                )
                if target is None:
                    continue
                delivery = self._send(business, target, bot, amount, now, config)
                state.active_deliveries.append(delivery)
                in_flight.add(bot.id)
                logger.debug(
                    "%s sends %s %s to %s (arrives in %.0f ms)",
                    business.id, amount, delivery.resource_type.value, target.id, delivery.travel_time_ms,
                )


class SettlementBehavior(Behavior):
    """Completes deliveries whose arrival time has passed and books the revenue."""

    def _settle(self, state: G._GameState, delivery: G._ActiveDelivery, config: G.GameConfig) -> None:
        source = state.get_business(delivery.source_business_id)
        target = state.get_business(delivery.target_business_id)
        amount = delivery.resource_amount

        if target is not None:
            target.drop_reservation(delivery.source_business_id, amount, delivery.resource_type)

        revenue: Optional[Decimal] = None
        unit_value = resource_value(delivery.resource_type)
        if source is None or target is None:
            logger.debug("Delivery %s lost its source or target; dropping it", delivery.id)
        elif target.is_market:
            revenue = Decimal(str(amount)) * unit_value * config.market_sale_factor * config.currency_multiplier
            state.stats.market_earnings += revenue
        elif target.incoming_storage.can_add(amount):
            target.incoming_storage.add(amount)
            revenue = Decimal(str(amount)) * unit_value * config.currency_multiplier
        else:
            logger.warning(
                "Delivery %s: %s has no room for %s %s, load dropped",
                delivery.id, target.id, amount, delivery.resource_type.value,
            )

        if revenue is not None:
            state.coins += revenue
            source.recent_profit = revenue
            source.profit_display_time = 0.0
            state.stats.deliveries_completed += 1

        if source is not None:
            bot = source.find_bot(delivery.bot.id)
            if bot is not None:
                bot.release()

    def tick(self, state, now, config):
        remaining: List[G._ActiveDelivery] = []
        for delivery in state.active_deliveries:
            if delivery.expected_arrival <= now:
                self._settle(state, delivery, config)
            else:
                remaining.append(delivery)
        state.active_deliveries = remaining

# -----------------------------------
# Behavior Manager
# -----------------------------------

class BehaviorManager:
    """
    Runs the registered behaviors in order against a deep copy of the state.
    The caller only sees the new state once every behavior has finished.
    """

    def __init__(self, config: G.GameConfig = DEFAULT_CONFIG):
        self.config = config
        self.behaviors: List[Behavior] = []
        self.tick_count: int = 0

    def register(self, behavior: Behavior) -> None:
        self.behaviors.append(behavior)

    def tick(self, state: G._GameState, now: float) -> G._GameState:
        self.tick_count += 1
        next_state = state.model_copy(deep=True)
        for behavior in self.behaviors:
            behavior.tick(next_state, now, self.config)
        return next_state


def default_manager(config: G.GameConfig = DEFAULT_CONFIG) -> BehaviorManager:
    bm = BehaviorManager(config)
    bm.register(ProductionBehavior())
    bm.register(DispatchBehavior())
    bm.register(SettlementBehavior())
    return bm
