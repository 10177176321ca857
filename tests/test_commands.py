import sys
from pathlib import Path
from decimal import Decimal

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / 'src'))

import commands as C  # type: ignore
import objects as G  # type: ignore
import sim  # type: ignore

CONFIG = sim.DEFAULT_CONFIG


@pytest.fixture
def state():
    return sim.initial_state(CONFIG)


def _place(state, kind=G.BusinessKind.RESOURCE_GATHERING, position=(100, 100)):
    new_state, result = C.place_business(state, kind, position, CONFIG)
    assert result.ok
    return new_state, new_state.get_business(result.subject_id)


# ── place ────────────────────────────────────────────────────────────────────

def test_place_deducts_scaling_cost(state):
    s1, first = _place(state)
    assert s1.coins == Decimal(1900)
    assert first.total_invested == Decimal(100)
    s2, _ = _place(s1, position=(200, 100))
    assert s2.coins == Decimal(1770)
    assert s2.count_of(G.BusinessKind.RESOURCE_GATHERING) == 2
    # previous states are untouched
    assert len(state.businesses) == 1
    assert len(s1.businesses) == 2


def test_place_copies_definition(state):
    s1, mill = _place(state, G.BusinessKind.PROCESSING)
    assert mill.role == G.BusinessRole.processing
    assert mill.input_resource == G.ResourceKind.WOOD
    assert mill.output_resource == G.ResourceKind.PLANKS
    assert mill.incoming_storage.capacity == 10
    assert mill.position == (100, 100)
    assert mill.level == 1


def test_place_without_funds_returns_same_state(state):
    state.coins = Decimal(99)
    new_state, result = C.place_business(state, G.BusinessKind.RESOURCE_GATHERING, (0, 0), CONFIG)
    assert new_state is state
    assert not result.ok
    assert result.reason == C.RejectReason.insufficient_funds
    assert result.cost == Decimal(100)
    assert len(state.businesses) == 1


def test_cannot_place_a_second_market(state):
    new_state, result = C.place_business(state, G.BusinessKind.MARKET, (0, 0), CONFIG)
    assert new_state is state
    assert result.reason == C.RejectReason.invalid


# ── upgrade ──────────────────────────────────────────────────────────────────

def test_upgrade_applies_and_charges(state):
    s1, b = _place(state)
    s2, result = C.upgrade_business(s1, b.id, G.UpgradeType.outgoingCapacity, CONFIG)
    assert result.ok
    assert result.cost == Decimal(112)
    upgraded = s2.get_business(b.id)
    assert upgraded.outgoing_storage.capacity == 20
    assert upgraded.level == 2
    assert upgraded.total_invested == Decimal(212)
    assert s2.coins == s1.coins - 112
    # the old business object is untouched
    assert b.outgoing_storage.capacity == 10
    assert b.level == 1


def test_upgrade_missing_business(state):
    new_state, result = C.upgrade_business(state, "business-does-not-exist", G.UpgradeType.processingTime, CONFIG)
    assert new_state is state
    assert result.reason == C.RejectReason.not_found


def test_upgrade_without_funds(state):
    s1, b = _place(state)
    s1.coins = Decimal(111)
    new_state, result = C.upgrade_business(s1, b.id, G.UpgradeType.incomingCapacity, CONFIG)
    assert new_state is s1
    assert result.reason == C.RejectReason.insufficient_funds


# ── hire / sell ──────────────────────────────────────────────────────────────

def test_hire_appends_agent(state):
    s1, b = _place(state)
    s2, r1 = C.hire_shipping_agent(s1, b.id, G.ShippingKind.walker, CONFIG)
    s3, r2 = C.hire_shipping_agent(s2, b.id, G.ShippingKind.walker, CONFIG)
    assert (r1.cost, r2.cost) == (Decimal(15), Decimal(16))
    hired = s3.get_business(b.id)
    assert hired.count_bots(G.ShippingKind.walker) == 2
    assert hired.total_invested == Decimal(131)
    assert s3.coins == s1.coins - 31
    assert s1.get_business(b.id).count_bots(G.ShippingKind.walker) == 0


def test_hire_without_funds(state):
    s1, b = _place(state)
    new_state, result = C.hire_shipping_agent(s1, b.id, G.ShippingKind.plane, CONFIG)
    assert new_state is s1
    assert result.reason == C.RejectReason.insufficient_funds


def test_sell_refunds_half_of_pre_removal_price(state):
    s1, b = _place(state)
    s2, _ = C.hire_shipping_agent(s1, b.id, G.ShippingKind.walker, CONFIG)
    s3, _ = C.hire_shipping_agent(s2, b.id, G.ShippingKind.walker, CONFIG)
    s4, result = C.sell_shipping_agent(s3, b.id, G.ShippingKind.walker, CONFIG)
    assert result.ok
    assert s4.coins == s3.coins + 9  # floor(15 * 1.1 ** 2) // 2
    assert s4.get_business(b.id).count_bots(G.ShippingKind.walker) == 1


def test_sell_last_agent_removes_group(state):
    s1, b = _place(state)
    s2, _ = C.hire_shipping_agent(s1, b.id, G.ShippingKind.truck, CONFIG)
    s3, _ = C.sell_shipping_agent(s2, b.id, G.ShippingKind.truck, CONFIG)
    assert s3.get_business(b.id).shipping_types == []
    assert s3.coins == s2.coins + 825


def test_sell_with_no_agents_is_noop(state):
    s1, b = _place(state)
    new_state, result = C.sell_shipping_agent(s1, b.id, G.ShippingKind.walker, CONFIG)
    assert new_state is s1
    assert not result.ok


def _busy_world(state, stock=5.0):
    s1, a = _place(state)
    s2, _ = C.hire_shipping_agent(s1, a.id, G.ShippingKind.walker, CONFIG)
    s3, mill = _place(s2, G.BusinessKind.PROCESSING, (200, 100))
    working = s3.model_copy(deep=True)
    working.get_business(a.id).outgoing_storage.current = stock
    sim.DispatchBehavior().tick(working, 0.0, CONFIG)
    return working, working.get_business(a.id), working.get_business(mill.id)


def test_sell_prefers_idle_agent(state):
    working, a, _ = _busy_world(state)
    working, _ = C.hire_shipping_agent(working, a.id, G.ShippingKind.walker, CONFIG)
    a = working.get_business(a.id)
    busy = next(bot for bot in a.all_bots() if bot.is_delivering)

    after, result = C.sell_shipping_agent(working, a.id, G.ShippingKind.walker, CONFIG)
    assert result.ok
    remaining = list(after.get_business(a.id).all_bots())
    assert [bot.id for bot in remaining] == [busy.id]
    assert len(after.active_deliveries) == 1


def test_force_sell_cancels_delivery_and_returns_load(state):
    working, a, mill = _busy_world(state)
    assert len(working.active_deliveries) == 1
    assert len(mill.pending_deliveries) == 1

    after, result = C.sell_shipping_agent(working, a.id, G.ShippingKind.walker, CONFIG)
    assert result.ok
    assert after.active_deliveries == []
    assert after.get_business(mill.id).pending_deliveries == []
    assert after.get_business(a.id).outgoing_storage.current == 5
    assert after.get_business(a.id).shipping_types == []
    # the pre-sell state still has its delivery
    assert len(working.active_deliveries) == 1


def test_force_sell_loses_what_does_not_fit(state):
    working, a, _ = _busy_world(state)
    a.outgoing_storage.current = 10
    after, _ = C.sell_shipping_agent(working, a.id, G.ShippingKind.walker, CONFIG)
    assert after.get_business(a.id).outgoing_storage.current == 10


# ── relocate ─────────────────────────────────────────────────────────────────

def test_relocate_charges_by_distance(state):
    s1, b = _place(state, position=(0, 0))
    s2, result = C.relocate_business(s1, b.id, (300, 400), CONFIG)
    assert result.ok
    assert result.cost == Decimal(50)
    assert s2.get_business(b.id).position == (300, 400)
    assert s2.coins == s1.coins - 50
    assert s2.stats.relocations == 1
    assert s1.stats.relocations == 0


def test_relocate_minimum_cost_and_rejections(state):
    s1, b = _place(state, position=(0, 0))
    s2, result = C.relocate_business(s1, b.id, (1, 1), CONFIG)
    assert result.cost == Decimal(10)

    s2.coins = Decimal(5)
    s3, result = C.relocate_business(s2, b.id, (0, 0), CONFIG)
    assert s3 is s2
    assert result.reason == C.RejectReason.insufficient_funds

    s4, result = C.relocate_business(s1, "nope", (0, 0), CONFIG)
    assert s4 is s1
    assert result.reason == C.RejectReason.not_found
