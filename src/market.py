"""
Market price oscillator.

Each resource has one `Market`. On the slow timer every market draws a new
target around its base value; on the fast timer the displayed price moves a
fixed fraction of the remaining gap toward that target.
"""
import random
from decimal import Decimal
from typing import Dict, Iterable, Tuple

import objects as G

DEFAULT_BAND = (0.5, 1.5)


class Market:
    def __init__(self, resource_id: G.ResourceKind, base_value: Decimal, adjustment_rate: Decimal = Decimal("0.05")):
        self.resource_id = resource_id
        self.base_value = Decimal(base_value)
        self.adjustment_rate = Decimal(adjustment_rate)
        self.price: Decimal = self.base_value
        self.target: Decimal = self.base_value

    def retarget(self, rng: random.Random, band: Tuple[float, float] = DEFAULT_BAND) -> Decimal:
        low, high = band
        self.target = self.base_value * Decimal(str(rng.uniform(low, high)))
        return self.target

    def step(self) -> Decimal:
        # exponential approach; the gap shrinks by `adjustment_rate` each call and never flips sign
        self.price += (self.target - self.price) * self.adjustment_rate
        return self.price

    def entry(self) -> G._MarketPriceEntry:
        return G._MarketPriceEntry(value=self.price, target=self.target)

    def __repr__(self) -> str:
        return f"Market({self.resource_id.value}: {self.price:.3f} -> {self.target:.3f})"


def build_markets(
    values: Dict[G.ResourceKind, Decimal],
    adjustment_rate: Decimal = Decimal("0.05"),
    resources: Iterable[G.ResourceKind] = tuple(G.ResourceKind),
) -> Dict[G.ResourceKind, Market]:
    return {
        rid: Market(rid, values.get(rid, Decimal(0)), adjustment_rate)
        for rid in resources
    }


def retarget_all(markets: Dict[G.ResourceKind, Market], rng: random.Random, band: Tuple[float, float] = DEFAULT_BAND) -> None:
    for market in markets.values():
        market.retarget(rng, band)


def step_all(markets: Dict[G.ResourceKind, Market]) -> None:
    for market in markets.values():
        market.step()


def snapshot(markets: Dict[G.ResourceKind, Market]) -> Dict[G.ResourceKind, G._MarketPriceEntry]:
    return {rid: m.entry() for rid, m in markets.items()}
