import sys
from pathlib import Path
from decimal import Decimal
import logging

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / 'src'))

import objects as G  # type: ignore
import sim  # type: ignore

CONFIG = sim.DEFAULT_CONFIG


def _bot(max_load=5.0, speed=50.0):
    return G._DeliveryBotInstance(max_load=max_load, speed=speed)


def _world(stock=5.0, source_pos=(0, 0), target_pos=(100, 0), with_target=True):
    """Lumber yard A with `stock` wood and one agent, optionally plank mill B accepting wood."""
    state = sim.initial_state(CONFIG)
    a = sim.new_business(G.BusinessKind.RESOURCE_GATHERING, source_pos)
    a.outgoing_storage.current = stock
    bot = _bot()
    a.add_bot(G.ShippingKind.walker, bot)
    state.businesses.append(a)
    b = None
    if with_target:
        b = sim.new_business(G.BusinessKind.PROCESSING, target_pos)
        state.businesses.append(b)
    return state, a, b, bot


def _dispatch(state, now=0.0):
    sim.DispatchBehavior().tick(state, now, CONFIG)


def _settle(state, now):
    sim.SettlementBehavior().tick(state, now, CONFIG)


def test_dispatch_reserves_capacity_and_marks_agent():
    state, a, b, bot = _world()
    _dispatch(state)

    assert bot.is_delivering
    assert bot.current_load == 5
    assert bot.target_business_id == b.id
    assert a.outgoing_storage.current == 0
    assert [(p.source_business_id, p.resource_amount, p.resource_type) for p in b.pending_deliveries] == [
        (a.id, 5, G.ResourceKind.WOOD)
    ]
    assert len(state.active_deliveries) == 1
    delivery = state.active_deliveries[0]
    assert delivery.bot.id == bot.id
    assert delivery.target_business_id == b.id


def test_travel_time_is_distance_over_speed():
    state, a, b, bot = _world(target_pos=(30, 40))
    _dispatch(state, now=1000.0)
    delivery = state.active_deliveries[0]
    # 50 studs at 50 studs/s, times 10/3
    assert delivery.travel_time_ms == pytest.approx(10 / 3 * 1000)
    assert delivery.expected_arrival == pytest.approx(1000.0 + 10 / 3 * 1000)


def test_settlement_to_business_transfers_and_pays_full_price():
    state, a, b, bot = _world()
    _dispatch(state)
    delivery = state.active_deliveries[0]

    _settle(state, delivery.expected_arrival - 1)
    assert len(state.active_deliveries) == 1

    coins = state.coins
    _settle(state, delivery.expected_arrival)
    assert b.incoming_storage.current == 5
    assert b.pending_deliveries == []
    assert a.recent_profit == Decimal(5) * sim.resource_value(G.ResourceKind.WOOD) * 10
    assert state.coins == coins + Decimal(50)
    assert not bot.is_delivering
    assert bot.current_load == 0
    assert bot.target_business_id is None
    assert state.active_deliveries == []
    assert state.stats.deliveries_completed == 1


def test_market_fallback_pays_half_price_without_capacity_check():
    state, a, _, bot = _world(with_target=False)
    _dispatch(state)
    market = state.market()
    assert bot.target_business_id == market.id
    assert market.pending_deliveries == []

    coins = state.coins
    _settle(state, state.active_deliveries[0].expected_arrival)
    assert state.coins == coins + Decimal(25)
    assert a.recent_profit == Decimal(5) * sim.resource_value(G.ResourceKind.WOOD) * 5
    assert state.stats.market_earnings == Decimal(25)
    assert market.incoming_storage.current == 0


def test_full_target_falls_back_to_market():
    state, a, b, bot = _world()
    b.incoming_storage.current = 8
    _dispatch(state)
    assert bot.target_business_id == state.market().id
    assert b.pending_deliveries == []


def test_pending_reservations_count_against_capacity():
    state, a, b, bot = _world(stock=10.0)
    second = _bot()
    a.add_bot(G.ShippingKind.walker, second)
    b.pending_deliveries.append(G._PendingDelivery(
        source_business_id="elsewhere", resource_amount=6, resource_type=G.ResourceKind.WOOD,
    ))
    _dispatch(state)
    # 4 units of room left after the reservation: both loads of 5 go to the market
    assert bot.target_business_id == state.market().id
    assert second.target_business_id == state.market().id
    assert a.outgoing_storage.current == 0


def test_first_fit_in_placement_order():
    state, a, b, bot = _world()
    other = sim.new_business(G.BusinessKind.PROCESSING, (500, 500))
    state.businesses.append(other)
    _dispatch(state)
    assert bot.target_business_id == b.id
    assert other.pending_deliveries == []


def test_amount_is_capped_by_stock():
    state, a, b, bot = _world(stock=3.0)
    _dispatch(state)
    assert bot.current_load == 3
    assert state.active_deliveries[0].resource_amount == 3


def test_nothing_ships_below_one_unit_or_without_idle_agents():
    state, a, b, bot = _world(stock=0.5)
    _dispatch(state)
    assert state.active_deliveries == []

    state, a, b, bot = _world()
    _dispatch(state)
    a.outgoing_storage.current = 5
    _dispatch(state, now=10.0)
    # the single agent is already out
    assert len(state.active_deliveries) == 1
    assert a.outgoing_storage.current == 5


def test_capacity_race_drops_load(caplog):
    state, a, b, bot = _world()
    _dispatch(state)
    b.incoming_storage.current = 8  # something else filled the mill meanwhile

    coins = state.coins
    with caplog.at_level(logging.WARNING, logger="sim"):
        _settle(state, state.active_deliveries[0].expected_arrival)
    assert b.incoming_storage.current == 8
    assert state.coins == coins
    assert b.pending_deliveries == []
    assert not bot.is_delivering
    assert state.active_deliveries == []
    assert state.stats.deliveries_completed == 0
    assert "load dropped" in caplog.text


def test_only_first_matching_reservation_is_removed():
    state, a, b, bot = _world()
    b.pending_deliveries.append(G._PendingDelivery(
        source_business_id=a.id, resource_amount=5, resource_type=G.ResourceKind.WOOD,
    ))
    _dispatch(state)
    assert len(b.pending_deliveries) == 2
    _settle(state, state.active_deliveries[0].expected_arrival)
    assert len(b.pending_deliveries) == 1


def test_tick_runs_on_a_copy():
    state, a, b, bot = _world()
    manager = sim.default_manager(CONFIG)
    new_state = manager.tick(state, 0.0)
    assert new_state is not state
    assert state.active_deliveries == []
    assert len(new_state.active_deliveries) == 1
    assert not bot.is_delivering
