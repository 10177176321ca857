from __future__ import annotations
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple
import itertools

from pydantic import BaseModel, Field, PositiveFloat, PositiveInt, field_validator, model_validator

_id_counter = itertools.count(1)

def get_instance_id(prefix: str) -> str:
    return f"{prefix}-{next(_id_counter)}"

def _decimize(v):
    return Decimal(str(v))

# ────────────────────────────────────────────────────────────────────────────
# Enumerations
# ────────────────────────────────────────────────────────────────────────────

class ResourceKind(str, Enum):
    NONE = "NONE"
    WOOD = "WOOD"
    STONE = "STONE"
    IRON_ORE = "IRON_ORE"
    PLANKS = "PLANKS"
    BRICKS = "BRICKS"
    IRON_INGOT = "IRON_INGOT"
    FURNITURE = "FURNITURE"
    TOOLS = "TOOLS"


class BusinessKind(str, Enum):
    RESOURCE_GATHERING = "RESOURCE_GATHERING"
    QUARRY = "QUARRY"
    MINE = "MINE"
    PROCESSING = "PROCESSING"
    BRICK_KILN = "BRICK_KILN"
    SMELTER = "SMELTER"
    SHOP = "SHOP"
    TOOL_SHOP = "TOOL_SHOP"
    MARKET = "MARKET"


class BusinessRole(str, Enum):
    """How a business takes part in the tick. Every business carries exactly one."""
    gathering = "gathering"
    processing = "processing"
    shop = "shop"
    market = "market"


class ShippingKind(str, Enum):
    walker = "walker"
    bicyclist = "bicyclist"
    truck = "truck"
    semi = "semi"
    train = "train"
    ship = "ship"
    plane = "plane"


class UpgradeType(str, Enum):
    incomingCapacity = "incomingCapacity"
    processingTime = "processingTime"
    outgoingCapacity = "outgoingCapacity"


class UpgradePricing(str, Enum):
    # diversified: x1.5 for every other upgrade type never applied
    diversified = "diversified"
    simple = "simple"

# ────────────────────────────────────────────────────────────────────────────
# Content definitions (loaded from content/<ModelName>/*.json)
# ────────────────────────────────────────────────────────────────────────────

class ResourceDefinition(BaseModel):
    id: ResourceKind
    display_name: str
    base_value: Decimal = Field(default=Decimal(0), description="Coin value of one raw unit")
    tier: int = Field(default=1, ge=1, le=3, description="1 raw, 2 processed, 3 finished good")
    # Raw resource whose base value this one is priced from. None for raw resources.
    raw_input: Optional[ResourceKind] = None

    @field_validator("base_value", mode="before")
    def _decimize(cls, v):  # noqa: N805 – pydantic validator name convention
        return _decimize(v)


class BusinessDefinition(BaseModel):
    """Static blueprint for a placeable business kind."""

    id: BusinessKind
    display_name: str
    role: BusinessRole
    input_resource: ResourceKind = ResourceKind.NONE
    output_resource: ResourceKind = ResourceKind.NONE
    base_cost: Decimal
    incoming_capacity: float = Field(default=10, ge=0)
    outgoing_capacity: float = Field(default=10, ge=0)
    processing_time: float = Field(default=10, ge=0, description="Seconds per batch")
    batch_size: PositiveInt = 10
    wage_per_unit: Decimal = Field(default=Decimal(0), ge=0, description="Worker wage per unit gathered")

    @field_validator("base_cost", "wage_per_unit", mode="before")
    def _decimize(cls, v):  # noqa: N805
        return _decimize(v)

    @model_validator(mode="after")
    def _check_processing_time(self):
        if self.role != BusinessRole.market and self.processing_time <= 0:
            raise ValueError(f"{self.id.value}: processing_time must be positive")
        return self


class ShippingTypeDefinition(BaseModel):
    id: ShippingKind
    display_name: str
    base_cost: Decimal
    base_speed: PositiveFloat = Field(..., description="Studs per second")
    base_load: PositiveFloat = Field(..., description="Units carried per trip")
    description: str = ""

    @field_validator("base_cost", mode="before")
    def _decimize(cls, v):  # noqa: N805
        return _decimize(v)


class GameConfig(BaseModel):
    """Tunables for a session. A content/GameConfig entry overrides these defaults."""

    starting_coins: Decimal = Decimal("2000")

    # timers
    tick_ms: PositiveInt = 400
    price_target_ms: PositiveInt = 15000
    price_step_ms: PositiveInt = 400

    # market
    price_step_rate: Decimal = Decimal("0.05")
    price_band: Tuple[float, float] = (0.5, 1.5)
    market_position: Tuple[float, float] = (400, 100)
    market_sale_factor: Decimal = Decimal("0.5")
    currency_multiplier: Decimal = Decimal("10")

    # deliveries
    travel_time_factor: float = 10 / 3
    profit_display_ms: float = 2000

    # economy
    placement_growth: Decimal = Decimal("1.3")
    shipping_growth: Decimal = Decimal("1.1")
    upgrade_base: Decimal = Decimal("50")
    upgrade_pricing: UpgradePricing = UpgradePricing.diversified
    relocation_min_cost: int = 10
    relocation_divisor: float = 10

    @field_validator(
        "starting_coins", "price_step_rate", "market_sale_factor", "currency_multiplier",
        "placement_growth", "shipping_growth", "upgrade_base", mode="before",
    )
    def _decimize(cls, v):  # noqa: N805
        return _decimize(v)

# ────────────────────────────────────────────────────────────────────────────
# Buffers
# ────────────────────────────────────────────────────────────────────────────

class _Storage(BaseModel):
    current: float = Field(default=0.0, ge=0)
    capacity: float = Field(..., ge=0)

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.current > self.capacity:
            raise ValueError(f"storage holds {self.current} over capacity {self.capacity}")
        return self

    @property
    def free_capacity(self) -> float:
        return self.capacity - self.current

    def can_add(self, amount: float) -> bool:
        return self.current + amount <= self.capacity

    def add(self, amount: float) -> None:
        if amount < 0:
            raise ValueError(f"Cannot add negative amount: {amount}")
        if not self.can_add(amount):
            raise ValueError(f"Adding {amount} exceeds capacity {self.capacity}")
        self.current += amount

    def remove(self, amount: float) -> None:
        if amount < 0:
            raise ValueError(f"Cannot remove negative amount: {amount}")
        if amount > self.current:
            raise ValueError(f"Removing {amount} but only {self.current} stored")
        self.current -= amount

# ────────────────────────────────────────────────────────────────────────────
# Delivery agents
# ────────────────────────────────────────────────────────────────────────────

class _DeliveryBotInstance(BaseModel):
    id: str = Field(default_factory=lambda: get_instance_id("bot"))
    max_load: PositiveFloat
    speed: PositiveFloat = Field(..., description="Studs per second")
    is_delivering: bool = False
    target_business_id: Optional[str] = None
    current_load: float = Field(default=0.0, ge=0)

    def dispatch(self, target_business_id: str, load: float) -> None:
        self.is_delivering = True
        self.target_business_id = target_business_id
        self.current_load = load

    def release(self) -> None:
        self.is_delivering = False
        self.target_business_id = None
        self.current_load = 0.0


class _ShippingGroup(BaseModel):
    type: ShippingKind
    bots: List[_DeliveryBotInstance] = Field(default_factory=list)


class _PendingDelivery(BaseModel):
    """Capacity reserved on a target for resource still in transit."""

    source_business_id: str
    resource_amount: float
    resource_type: ResourceKind

# ────────────────────────────────────────────────────────────────────────────
# Businesses
# ────────────────────────────────────────────────────────────────────────────

class _BusinessInstance(BaseModel):
    """A placed business."""

    id: str = Field(default_factory=lambda: get_instance_id("business"))
    type: BusinessKind
    role: BusinessRole
    position: Tuple[float, float]

    input_resource: ResourceKind = ResourceKind.NONE
    output_resource: ResourceKind = ResourceKind.NONE
    incoming_storage: _Storage
    outgoing_storage: _Storage

    processing_time: float
    batch_size: PositiveInt = 10
    production_progress: float = Field(default=0.0, ge=0, lt=1)
    wage_per_unit: Decimal = Decimal(0)

    shipping_types: List[_ShippingGroup] = Field(default_factory=list)
    pending_deliveries: List[_PendingDelivery] = Field(default_factory=list)

    level: PositiveInt = 1
    upgrades: Dict[UpgradeType, int] = Field(default_factory=lambda: {u: 0 for u in UpgradeType})
    total_invested: Decimal = Decimal(0)

    # transient, for the profit pop-up only
    recent_profit: Decimal = Decimal(0)
    profit_display_time: Optional[float] = None

    # ── Convenience --------------------------------------------------------
    @property
    def is_market(self) -> bool:
        return self.role == BusinessRole.market

    def all_bots(self) -> Iterator[_DeliveryBotInstance]:
        for group in self.shipping_types:
            yield from group.bots

    def find_bot(self, bot_id: str) -> Optional[_DeliveryBotInstance]:
        return next((b for b in self.all_bots() if b.id == bot_id), None)

    def group(self, kind: ShippingKind) -> Optional[_ShippingGroup]:
        return next((g for g in self.shipping_types if g.type == kind), None)

    def count_bots(self, kind: ShippingKind) -> int:
        group = self.group(kind)
        return len(group.bots) if group else 0

    def add_bot(self, kind: ShippingKind, bot: _DeliveryBotInstance) -> None:
        group = self.group(kind)
        if group is None:
            group = _ShippingGroup(type=kind)
            self.shipping_types.append(group)
        group.bots.append(bot)

    def pending_amount(self) -> float:
        return sum(p.resource_amount for p in self.pending_deliveries)

    def unreserved_capacity(self) -> float:
        """Incoming space left once every in-transit reservation has landed."""
        return self.incoming_storage.free_capacity - self.pending_amount()

    def drop_reservation(self, source_business_id: str, amount: float, resource: ResourceKind) -> bool:
        for i, pending in enumerate(self.pending_deliveries):
            if (
                pending.source_business_id == source_business_id
                and pending.resource_amount == amount
                and pending.resource_type == resource
            ):
                del self.pending_deliveries[i]
                return True
        return False

# ────────────────────────────────────────────────────────────────────────────
# Deliveries, market, game state
# ────────────────────────────────────────────────────────────────────────────

class _ActiveDelivery(BaseModel):
    id: str = Field(default_factory=lambda: get_instance_id("delivery"))
    source_business_id: str
    target_business_id: str
    bot: _DeliveryBotInstance  # snapshot taken at dispatch
    resource_amount: PositiveFloat
    resource_type: ResourceKind
    created_at: float
    expected_arrival: float
    travel_time_ms: float = Field(..., ge=0)

    def progress(self, now: float) -> float:
        """Fraction of the trip covered at ``now`` (for rendering)."""
        if self.travel_time_ms <= 0:
            return 1.0
        return min(1.0, max(0.0, (now - self.created_at) / self.travel_time_ms))


class _MarketPriceEntry(BaseModel):
    value: Decimal = Field(..., ge=0)
    target: Decimal = Field(..., ge=0)


class _SessionStats(BaseModel):
    started_at: float = 0.0
    deliveries_completed: int = 0
    market_earnings: Decimal = Decimal(0)
    wages_paid: Decimal = Decimal(0)
    relocations: int = 0

    # high-water marks for the score
    max_businesses: int = 1
    max_level: int = 1
    max_coins: Decimal = Decimal(0)


class _GameState(BaseModel):
    coins: Decimal
    businesses: List[_BusinessInstance] = Field(default_factory=list)
    active_deliveries: List[_ActiveDelivery] = Field(default_factory=list)
    achievements: Dict[str, bool] = Field(default_factory=dict)
    stats: _SessionStats = Field(default_factory=_SessionStats)

    # ── Helper methods -----------------------------------------------------
    def get_business(self, business_id: str) -> Optional[_BusinessInstance]:
        return next((b for b in self.businesses if b.id == business_id), None)

    def market(self) -> Optional[_BusinessInstance]:
        return next((b for b in self.businesses if b.is_market), None)

    def count_of(self, kind: BusinessKind) -> int:
        return sum(1 for b in self.businesses if b.type == kind)

    def owned_businesses(self) -> List[_BusinessInstance]:
        return [b for b in self.businesses if not b.is_market]

    def delivery_for_bot(self, bot_id: str) -> Optional[_ActiveDelivery]:
        return next((d for d in self.active_deliveries if d.bot.id == bot_id), None)
