from pathlib import Path
import logging
import sys

# Make src modules discoverable
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import objects as G  # type: ignore
from scheduler import ManualClock  # type: ignore
from session import GameSession  # type: ignore

import matplotlib.pyplot as plt

logger = logging.getLogger("demo")

# a lumber yard feeding a plank mill feeding a furniture shop
BUILD_ORDER = [
    (G.BusinessKind.RESOURCE_GATHERING, (100, 300)),
    (G.BusinessKind.PROCESSING, (250, 300)),
    (G.BusinessKind.SHOP, (400, 300)),
]


def build_chain(session: GameSession) -> list[str]:
    """Place the chain and give every business a walker."""
    ids = []
    for kind, position in BUILD_ORDER:
        result = session.place_business(kind, position)
        if result.ok:
            ids.append(result.subject_id)
    for business_id in ids:
        session.hire_shipping_agent(business_id, G.ShippingKind.walker)
    return ids


def reinvest(session: GameSession, business_ids: list[str]) -> None:
    """Buy one of every upgrade and another walker for each business, as far as coins allow."""
    for business_id in business_ids:
        for upgrade in G.UpgradeType:
            session.upgrade_business(business_id, upgrade)
        session.hire_shipping_agent(business_id, G.ShippingKind.walker)


def run_simulation(ticks: int = 3000, seed: int = 42, live: bool = True) -> None:
    """Seeded playthrough on a manual clock, plotting coins and market prices."""
    clock = ManualClock()
    session = GameSession(clock=clock, seed=seed)
    session.subscribe("achievement", lambda key: logger.info("Achievement unlocked: %s", key))
    session.start()
    business_ids = build_chain(session)
    tick_ms = session.config.tick_ms

    # ---------------------------------------------------------------------
    # Price plot setup (figure 1)
    # ---------------------------------------------------------------------
    if live:
        plt.ion()

    fig_prices, ax_prices = plt.subplots()
    resources = [rid for rid in G.ResourceKind if rid != G.ResourceKind.NONE]
    price_history = {rid: [] for rid in resources}
    price_lines = {}
    for rid in resources:
        (line,) = ax_prices.plot([], [], label=rid.value)
        price_lines[rid] = line
    ax_prices.set_xlabel("Seconds")
    ax_prices.set_ylabel("Price")
    ax_prices.set_title("Market Prices")
    ax_prices.legend()

    # ---------------------------------------------------------------------
    # Coins + equity plot setup (figure 2)
    # ---------------------------------------------------------------------
    fig_money, ax_money = plt.subplots()
    (line_coins,) = ax_money.plot([], [], label="coins")
    (line_equity,) = ax_money.plot([], [], label="equity")
    coin_history: list[float] = []
    equity_history: list[float] = []
    seconds: list[float] = []
    ax_money.set_xlabel("Seconds")
    ax_money.set_ylabel("Coins")
    ax_money.set_title("Coins & Equity")
    ax_money.legend()

    # ---------------------------------------------------------------------
    # Main simulation loop
    # ---------------------------------------------------------------------
    for t in range(1, ticks + 1):
        clock.advance(tick_ms)
        session.pump()
        if t % 250 == 0:
            reinvest(session, business_ids)

        seconds.append(clock.now() / 1000)
        prices = session.market_prices()
        for rid in resources:
            price_history[rid].append(float(prices[rid].value))
            price_lines[rid].set_data(seconds, price_history[rid])
        coin_history.append(float(session.state.coins))
        equity_history.append(float(session.equity()))
        line_coins.set_data(seconds, coin_history)
        line_equity.set_data(seconds, equity_history)

        if t % 100 == 0:
            stats = session.state.stats
            print(
                f"Tick {t:>5}: coins {session.state.coins:.0f} | deliveries {stats.deliveries_completed}"
                f" | market {stats.market_earnings:.0f} | wages {stats.wages_paid:.0f} | score {session.score:.0f}"
            )
            if live:
                ax_prices.relim()
                ax_prices.autoscale_view()
                ax_money.relim()
                ax_money.autoscale_view()
                plt.pause(0.001)

    session.stop()

    # ---------------------------------------------------------------------
    # End of simulation – freeze figures so they stay visible
    # ---------------------------------------------------------------------
    ax_prices.relim()
    ax_prices.autoscale_view()
    ax_money.relim()
    ax_money.autoscale_view()
    if live:
        plt.ioff()
        plt.show()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_simulation()
