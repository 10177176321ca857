import logging

import pygame

import objects as G
import sim
import views
from scheduler import ManualClock
from session import GameSession

logger = logging.getLogger(__name__)

WIDTH, HEIGHT = 960, 640
BOTTOM_UI_HEIGHT = 60
BUSINESS_SIZE = 36
FPS = 30

PLACEABLE = [kind for kind, d in sim.BusinessDefs.items() if d.role != G.BusinessRole.market]
UPGRADE_KEYS = {
    pygame.K_i: G.UpgradeType.incomingCapacity,
    pygame.K_p: G.UpgradeType.processingTime,
    pygame.K_o: G.UpgradeType.outgoingCapacity,
}

# ──────────────────────────────────────────────────────────────────────────────
# Rendering helpers
# ──────────────────────────────────────────────────────────────────────────────

def _color_for_role(role: G.BusinessRole) -> tuple[int, int, int]:
    return {
        G.BusinessRole.gathering:  (34, 139, 34),
        G.BusinessRole.processing: (139, 69, 19),
        G.BusinessRole.shop:       (70, 70, 200),
        G.BusinessRole.market:     (200, 170, 40),
    }[role]


def _color_for_status(status: views.BufferStatus) -> tuple[int, int, int]:
    return {
        views.BufferStatus.bottleneck: (220, 40, 40),
        views.BufferStatus.warning:    (230, 150, 30),
        views.BufferStatus.low:        (90, 160, 230),
        views.BufferStatus.normal:     (120, 200, 120),
    }[status]


def _business_at(state: G._GameState, pos) -> G._BusinessInstance | None:
    half = BUSINESS_SIZE / 2
    for b in reversed(state.businesses):
        bx, by = b.position
        if abs(bx - pos[0]) <= half and abs(by - pos[1]) <= half:
            return b
    return None


def _draw_business(screen, font, business: G._BusinessInstance, selected: bool) -> None:
    x, y = business.position
    half = BUSINESS_SIZE // 2
    rect = pygame.Rect(int(x) - half, int(y) - half, BUSINESS_SIZE, BUSINESS_SIZE)
    pygame.draw.rect(screen, _color_for_role(business.role), rect)
    if selected:
        pygame.draw.rect(screen, (255, 255, 255), rect, 2)
    if not business.is_market:
        # outgoing buffer bar under the business, coloured by its status tier
        pct = views.fill_percentage(business.outgoing_storage) / 100
        status = views.buffer_status(business.outgoing_storage)
        pygame.draw.rect(screen, (40, 40, 40), (rect.x, rect.bottom + 2, BUSINESS_SIZE, 4))
        pygame.draw.rect(screen, _color_for_status(status), (rect.x, rect.bottom + 2, int(BUSINESS_SIZE * pct), 4))
        label = font.render(f"L{business.level}", True, (255, 255, 255))
        screen.blit(label, (rect.x + 2, rect.y + 2))
    if business.profit_display_time is not None and business.recent_profit > 0:
        pop = font.render(f"+{business.recent_profit:.0f}", True, (255, 215, 0))
        screen.blit(pop, (rect.x, rect.y - 16))


def _draw_delivery(screen, state: G._GameState, delivery: G._ActiveDelivery, now: float) -> None:
    source = state.get_business(delivery.source_business_id)
    target = state.get_business(delivery.target_business_id)
    if source is None or target is None:
        return
    t = delivery.progress(now)
    sx, sy = source.position
    tx, ty = target.position
    pygame.draw.circle(screen, (0, 200, 255), (int(sx + (tx - sx) * t), int(sy + (ty - sy) * t)), 5)

# ──────────────────────────────────────────────────────────────────────────────
# Main UI loop
# ──────────────────────────────────────────────────────────────────────────────

def run(seed: int = 0) -> None:
    logging.basicConfig(level=logging.INFO)
    pygame.init()
    pygame.font.init()

    # game time only advances while unpaused
    game_clock = ManualClock()
    session = GameSession(clock=game_clock, seed=seed)
    messages: list[str] = []
    session.subscribe("rejected", lambda command, reason: messages.append(f"{command}: {reason.value}"))
    session.subscribe("achievement", lambda key: messages.append(f"Achievement: {key}"))
    session.subscribe("game_over", lambda score: messages.append(f"GAME OVER, score {score:.0f} (N restarts)"))
    session.start()

    screen = pygame.display.set_mode((WIDTH, HEIGHT))
    pygame.display.set_caption("Tycoon Runner")

    font = pygame.font.SysFont("Arial", 14)
    clock = pygame.time.Clock()

    paused = False
    running = True
    place_kind = PLACEABLE[0] if PLACEABLE else None
    selected_id: str | None = None
    relocating = False

    while running:
        frame_ms = clock.tick(FPS)

        # ── Event handling ────────────────────────────────────────────────────
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    running = False
                elif event.key == pygame.K_SPACE:
                    paused = not paused
                elif event.key == pygame.K_n:
                    session.restart()
                    selected_id = None
                    messages.clear()
                elif pygame.K_1 <= event.key <= pygame.K_9 and event.key - pygame.K_1 < len(PLACEABLE):
                    place_kind = PLACEABLE[event.key - pygame.K_1]
                elif selected_id is not None:
                    if event.key == pygame.K_h:
                        session.hire_shipping_agent(selected_id, G.ShippingKind.walker)
                    elif event.key == pygame.K_s:
                        session.sell_shipping_agent(selected_id, G.ShippingKind.walker)
                    elif event.key in UPGRADE_KEYS:
                        session.upgrade_business(selected_id, UPGRADE_KEYS[event.key])
                    elif event.key == pygame.K_r:
                        relocating = True
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                if event.pos[1] >= HEIGHT - BOTTOM_UI_HEIGHT:
                    continue
                clicked = _business_at(session.state, event.pos)
                if relocating and selected_id is not None:
                    session.relocate_business(selected_id, event.pos)
                    relocating = False
                elif clicked is not None:
                    selected_id = clicked.id
                elif place_kind is not None:
                    result = session.place_business(place_kind, event.pos)
                    if result.ok:
                        selected_id = result.subject_id

        # ── Advance sim ───────────────────────────────────────────────────────
        if not paused and not session.game_over:
            game_clock.advance(frame_ms)
            session.pump()

        # ── Drawing ───────────────────────────────────────────────────────────
        screen.fill((20, 20, 20))
        state = session.state
        now = game_clock.now()
        for delivery in state.active_deliveries:
            _draw_delivery(screen, state, delivery, now)
        for business in state.businesses:
            _draw_business(screen, font, business, business.id == selected_id)

        # UI overlay
        pygame.draw.rect(screen, (30, 30, 30), (0, HEIGHT - BOTTOM_UI_HEIGHT, WIDTH, BOTTOM_UI_HEIGHT))
        status = "Paused" if paused else "Running"
        kind_name = sim.BusinessDefs[place_kind].display_name if place_kind else "-"
        hud = (
            f"{status} | Coins: {state.coins:.0f} | Equity: {session.equity():.0f} | "
            f"Placing: {kind_name} | Score: {session.score:.0f}"
        )
        screen.blit(font.render(hud, True, (255, 255, 255)), (8, HEIGHT - BOTTOM_UI_HEIGHT + 6))
        prices = "  ".join(
            f"{rid.value}: {entry.value:.2f}"
            for rid, entry in session.market_prices().items() if rid != G.ResourceKind.NONE
        )
        screen.blit(font.render(prices, True, (200, 200, 200)), (8, HEIGHT - BOTTOM_UI_HEIGHT + 24))
        help_text = "1-9 kind, click place/select, H/S walker, I/P/O upgrade, R relocate, SPACE pause, ESC quit"
        if relocating:
            help_text = "Click the new position for the selected business"
        elif messages:
            help_text = messages[-1]
        screen.blit(font.render(help_text, True, (255, 255, 255)), (8, HEIGHT - BOTTOM_UI_HEIGHT + 42))

        pygame.display.flip()

    # ── Shutdown ─────────────────────────────────────────────────────────────
    session.stop()
    pygame.quit()


if __name__ == "__main__":
    run()
