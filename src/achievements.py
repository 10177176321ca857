"""Achievement predicates. Flags are only ever raised, never cleared."""
from decimal import Decimal
from typing import Callable, Dict, List

import objects as G

FAST_TYCOON_WINDOW_MS = 10 * 60 * 1000


def _agents(state: G._GameState) -> int:
    return sum(1 for b in state.businesses for _ in b.all_bots())


def _max_level(state: G._GameState) -> int:
    return max((b.level for b in state.businesses), default=1)


ACHIEVEMENTS: Dict[str, Callable[[G._GameState, float], bool]] = {
    "firstBusiness": lambda s, now: len(s.owned_businesses()) >= 1,
    "tycoon": lambda s, now: s.coins >= Decimal(50000),
    "industrialist": lambda s, now: len(s.owned_businesses()) >= 10,
    "masterUpgrader": lambda s, now: _max_level(s) >= 11,
    "logisticsPro": lambda s, now: s.stats.deliveries_completed >= 5000,
    "marketMogul": lambda s, now: s.stats.market_earnings >= Decimal(100000),
    "shippingMaster": lambda s, now: _agents(s) >= 5,
    "relocator": lambda s, now: s.stats.relocations >= 1,
    "maxedOut": lambda s, now: _max_level(s) >= 20,
    "fastTycoon": lambda s, now: (
        s.coins >= Decimal(10000) and now - s.stats.started_at <= FAST_TYCOON_WINDOW_MS
    ),
}


def newly_unlocked(state: G._GameState, now: float) -> List[str]:
    return [
        key for key, check in ACHIEVEMENTS.items()
        if not state.achievements.get(key, False) and check(state, now)
    ]
