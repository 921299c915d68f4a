"""Static reference data: room types, add-on services, loyalty tiers, role caps"""
from decimal import Decimal
from typing import Dict, List, Tuple

from pydantic import BaseModel, Field

from domain.enums import AddOnCode, AdminRole, LoyaltyTier, PricingModel, RoomTypeCode


class RoomType(BaseModel):
    """Catalog entry for a room type"""
    code: RoomTypeCode
    display_name: str
    max_occupancy: int = Field(ge=1)
    base_price: Decimal = Field(gt=0)

    class Config:
        frozen = True


class AddOnType(BaseModel):
    """Catalog entry for an add-on service"""
    code: AddOnCode
    display_name: str
    base_price: Decimal = Field(gt=0)
    pricing_model: PricingModel

    class Config:
        frozen = True


ROOM_TYPES: Dict[RoomTypeCode, RoomType] = {
    RoomTypeCode.SINGLE: RoomType(
        code=RoomTypeCode.SINGLE, display_name="Single Room",
        max_occupancy=2, base_price=Decimal("100.00"),
    ),
    RoomTypeCode.DOUBLE: RoomType(
        code=RoomTypeCode.DOUBLE, display_name="Double Room",
        max_occupancy=4, base_price=Decimal("150.00"),
    ),
    RoomTypeCode.DELUXE: RoomType(
        code=RoomTypeCode.DELUXE, display_name="Deluxe Room",
        max_occupancy=2, base_price=Decimal("250.00"),
    ),
    RoomTypeCode.PENTHOUSE: RoomType(
        code=RoomTypeCode.PENTHOUSE, display_name="Penthouse Suite",
        max_occupancy=2, base_price=Decimal("500.00"),
    ),
}

ADD_ON_TYPES: Dict[AddOnCode, AddOnType] = {
    AddOnCode.WIFI: AddOnType(
        code=AddOnCode.WIFI, display_name="Wi-Fi",
        base_price=Decimal("15.00"), pricing_model=PricingModel.PER_NIGHT,
    ),
    AddOnCode.BREAKFAST: AddOnType(
        code=AddOnCode.BREAKFAST, display_name="Breakfast",
        base_price=Decimal("25.00"), pricing_model=PricingModel.PER_PERSON_PER_NIGHT,
    ),
    AddOnCode.PARKING: AddOnType(
        code=AddOnCode.PARKING, display_name="Parking",
        base_price=Decimal("20.00"), pricing_model=PricingModel.PER_NIGHT,
    ),
    AddOnCode.SPA: AddOnType(
        code=AddOnCode.SPA, display_name="Spa Package",
        base_price=Decimal("75.00"), pricing_model=PricingModel.PER_PERSON,
    ),
}

# Highest threshold first; lifetime points at or above the threshold earn the tier.
TIER_THRESHOLDS: Tuple[Tuple[LoyaltyTier, int], ...] = (
    (LoyaltyTier.PLATINUM, 50000),
    (LoyaltyTier.GOLD, 25000),
    (LoyaltyTier.SILVER, 10000),
    (LoyaltyTier.BRONZE, 0),
)

TIER_BONUS_MULTIPLIERS: Dict[LoyaltyTier, Decimal] = {
    LoyaltyTier.BRONZE: Decimal("1.0"),
    LoyaltyTier.SILVER: Decimal("1.25"),
    LoyaltyTier.GOLD: Decimal("1.5"),
    LoyaltyTier.PLATINUM: Decimal("2.0"),
}

ROLE_DISCOUNT_CAPS: Dict[AdminRole, Decimal] = {
    AdminRole.ADMIN: Decimal("15"),
    AdminRole.MANAGER: Decimal("30"),
}


def get_room_type(code: RoomTypeCode) -> RoomType:
    return ROOM_TYPES[RoomTypeCode(code)]


def get_add_on_type(code: AddOnCode) -> AddOnType:
    return ADD_ON_TYPES[AddOnCode(code)]


def suitable_room_types(total_guests: int) -> List[RoomType]:
    """Room types that can hold the whole party in a single room"""
    return [rt for rt in ROOM_TYPES.values() if rt.max_occupancy >= total_guests]


def tier_for_lifetime_points(lifetime_points: int) -> LoyaltyTier:
    for tier, threshold in TIER_THRESHOLDS:
        if lifetime_points >= threshold:
            return tier
    return LoyaltyTier.BRONZE


def tier_bonus_multiplier(tier: LoyaltyTier) -> Decimal:
    return TIER_BONUS_MULTIPLIERS[LoyaltyTier(tier)]


def role_discount_cap(role: AdminRole) -> Decimal:
    """Maximum discount percentage the role may apply"""
    return ROLE_DISCOUNT_CAPS[AdminRole(role)]
