"""
GameSession: the owned simulation context.

Holds the current state, market prices and signal subscribers, and is the only
place state gets replaced. Ticks and player commands both go through
`_commit`, which also tracks the score high-water marks, unlocks achievements
and watches for bankruptcy.
"""
import logging
import random
from collections import defaultdict
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

import objects as G
import achievements
import commands
import market
import sim
import views
from scheduler import Scheduler, SystemClock

logger = logging.getLogger(__name__)

SIGNALS = ("rejected", "achievement", "game_over", "tick")

TICK_TIMER = "tick"
PRICE_TARGET_TIMER = "price_target"
PRICE_STEP_TIMER = "price_step"


class GameSession:
    def __init__(
        self,
        config: Optional[G.GameConfig] = None,
        clock=None,
        rng: Optional[random.Random] = None,
        seed: int = 0,
    ):
        self.config = config or sim.DEFAULT_CONFIG
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random(seed)
        self.scheduler = Scheduler(self.clock)
        self._subscribers: Dict[str, List[Callable]] = defaultdict(list)
        self._reset()

    def _reset(self) -> None:
        self.behaviors = sim.default_manager(self.config)
        self.state: G._GameState = sim.initial_state(self.config, started_at=self.clock.now())
        self.markets = market.build_markets(sim.resource_values(), self.config.price_step_rate)
        self.game_over = False

    # ── Signals ---------------------------------------------------------------
    def subscribe(self, signal: str, callback: Callable) -> None:
        if signal not in SIGNALS:
            raise ValueError(f"Unknown signal {signal!r}, expected one of {SIGNALS}")
        self._subscribers[signal].append(callback)

    def _emit(self, signal: str, *args) -> None:
        for callback in self._subscribers[signal]:
            callback(*args)

    # ── Lifecycle -------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        market.retarget_all(self.markets, self.rng, self.config.price_band)
        self.scheduler.every(TICK_TIMER, self.config.tick_ms, self._on_tick)
        self.scheduler.every(PRICE_TARGET_TIMER, self.config.price_target_ms, self._on_price_target)
        self.scheduler.every(PRICE_STEP_TIMER, self.config.price_step_ms, self._on_price_step)
        logger.info("Session started at %.0f ms with %s coins", self.clock.now(), self.state.coins)

    def stop(self) -> None:
        self.scheduler.stop()
        logger.info("Session stopped after %d ticks", self.behaviors.tick_count)

    def restart(self) -> None:
        was_running = self.running
        self.scheduler.stop()
        self._reset()
        logger.info("Session restarted")
        if was_running:
            self.start()

    def pump(self) -> int:
        """Run every timer that is due on the clock. Returns the number of firings."""
        return self.scheduler.run_pending()

    # ── Timer callbacks -------------------------------------------------------
    def _on_tick(self, now: float) -> None:
        self._commit(self.behaviors.tick(self.state, now), now)
        self._emit("tick", self.state)

    def _on_price_target(self, now: float) -> None:
        market.retarget_all(self.markets, self.rng, self.config.price_band)

    def _on_price_step(self, now: float) -> None:
        market.step_all(self.markets)

    # ── Single update path ----------------------------------------------------
    def _commit(self, new_state: G._GameState, now: float) -> None:
        stats = new_state.stats
        marks = {
            "max_businesses": max(stats.max_businesses, len(new_state.businesses)),
            "max_level": max([stats.max_level] + [b.level for b in new_state.businesses]),
            "max_coins": max(stats.max_coins, new_state.coins),
        }
        if any(getattr(stats, k) != v for k, v in marks.items()):
            new_state.stats = stats.model_copy(update=marks)

        unlocked = achievements.newly_unlocked(new_state, now)
        if unlocked:
            new_state.achievements = {**new_state.achievements, **{key: True for key in unlocked}}

        self.state = new_state
        for key in unlocked:
            logger.info("Achievement unlocked: %s", key)
            self._emit("achievement", key)

        if new_state.coins < 0 and not self.game_over:
            self.game_over = True
            logger.info("Game over with score %s", self.score)
            self._emit("game_over", self.score)

    def _apply(self, outcome: commands.Outcome) -> commands.CommandResult:
        new_state, result = outcome
        if result.ok:
            self._commit(new_state, self.clock.now())
        else:
            self._emit("rejected", result.command, result.reason)
        return result

    # ── Commands --------------------------------------------------------------
    def place_business(self, kind: G.BusinessKind, position: Tuple[float, float]) -> commands.CommandResult:
        return self._apply(commands.place_business(self.state, kind, position, self.config))

    def upgrade_business(self, business_id: str, upgrade_type: G.UpgradeType) -> commands.CommandResult:
        return self._apply(commands.upgrade_business(self.state, business_id, upgrade_type, self.config))

    def hire_shipping_agent(self, business_id: str, kind: G.ShippingKind) -> commands.CommandResult:
        return self._apply(commands.hire_shipping_agent(self.state, business_id, kind, self.config))

    def sell_shipping_agent(self, business_id: str, kind: G.ShippingKind) -> commands.CommandResult:
        return self._apply(commands.sell_shipping_agent(self.state, business_id, kind, self.config))

    def relocate_business(self, business_id: str, position: Tuple[float, float]) -> commands.CommandResult:
        return self._apply(commands.relocate_business(self.state, business_id, position, self.config))

    # ── Views -----------------------------------------------------------------
    def market_prices(self) -> Dict[G.ResourceKind, G._MarketPriceEntry]:
        return market.snapshot(self.markets)

    @property
    def score(self) -> Decimal:
        return views.score(self.state.stats)

    def equity(self) -> Decimal:
        return views.equity(self.state)
