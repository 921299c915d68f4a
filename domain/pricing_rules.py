"""Pure pricing rules shared by the pricing engine and the Reservation aggregate"""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from domain.enums import AddOnCode, PricingModel, RoomTypeCode
from domain.exceptions import RedemptionExceedsAmountDue
from domain.value_objects import to_money


def billable_add_on_units(pricing_model: PricingModel, nights: int, guests: int, quantity: int) -> int:
    """Number of unit prices an add-on line is charged for.

    PER_NIGHT lines are charged every night for each unit (one Wi-Fi login,
    one parking spot). PER_PERSON_PER_NIGHT lines are charged per guest per
    night. PER_PERSON lines are a one-time charge per unit.
    """
    if pricing_model == PricingModel.PER_NIGHT:
        return quantity * nights
    if pricing_model == PricingModel.PER_PERSON_PER_NIGHT:
        return guests * nights
    if pricing_model == PricingModel.PER_PERSON:
        return quantity
    raise ValueError(f"Unknown pricing model: {pricing_model}")


def add_on_line_total(
    pricing_model: PricingModel,
    unit_price: Decimal,
    nights: int,
    guests: int,
    quantity: int = 1
) -> Decimal:
    return to_money(unit_price * billable_add_on_units(pricing_model, nights, guests, quantity))


def percentage_discount(amount: Decimal, percentage: Decimal) -> Decimal:
    if percentage <= 0:
        return Decimal("0.00")
    return to_money(amount * percentage / Decimal("100"))


def tax_on(amount: Decimal, tax_rate: Decimal) -> Decimal:
    return to_money(amount * tax_rate)


class RoomLine(BaseModel):
    """Priced room selection"""
    room_type: RoomTypeCode
    quantity: int
    nightly_rate: Decimal
    nights: int
    total: Decimal


class AddOnLine(BaseModel):
    """Priced add-on selection"""
    add_on: AddOnCode
    pricing_model: PricingModel
    unit_price: Decimal
    billable_quantity: int
    total: Decimal


class PriceBreakdown(BaseModel):
    """Result of pricing a prospective or existing booking"""
    nights: int
    room_subtotal: Decimal
    add_ons_subtotal: Decimal
    discount_percentage: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0.00")
    loyalty_points_redeemed: int = 0
    loyalty_discount: Decimal = Decimal("0.00")
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    room_lines: List[RoomLine] = Field(default_factory=list)
    add_on_lines: List[AddOnLine] = Field(default_factory=list)

    @property
    def subtotal(self) -> Decimal:
        return self.room_subtotal + self.add_ons_subtotal

    @property
    def taxable_amount(self) -> Decimal:
        return self.subtotal - self.discount_amount - self.loyalty_discount


def summarize(
    nights: int,
    room_subtotal: Decimal,
    add_ons_subtotal: Decimal,
    tax_rate: Decimal,
    discount_percentage: Decimal = Decimal("0"),
    loyalty_points_redeemed: int = 0,
    loyalty_discount: Decimal = Decimal("0.00"),
    room_lines: Optional[List[RoomLine]] = None,
    add_on_lines: Optional[List[AddOnLine]] = None
) -> PriceBreakdown:
    """Apply discount, loyalty discount and tax to priced lines"""
    room_subtotal = to_money(room_subtotal)
    add_ons_subtotal = to_money(add_ons_subtotal)
    subtotal = room_subtotal + add_ons_subtotal

    discount_amount = percentage_discount(subtotal, discount_percentage)
    after_discount = subtotal - discount_amount

    loyalty_discount = to_money(loyalty_discount)
    if loyalty_discount > after_discount:
        raise RedemptionExceedsAmountDue(
            f"Loyalty discount {loyalty_discount} exceeds amount due {after_discount}"
        )

    taxable = after_discount - loyalty_discount
    tax_amount = tax_on(taxable, tax_rate)

    return PriceBreakdown(
        nights=nights,
        room_subtotal=room_subtotal,
        add_ons_subtotal=add_ons_subtotal,
        discount_percentage=discount_percentage,
        discount_amount=discount_amount,
        loyalty_points_redeemed=loyalty_points_redeemed,
        loyalty_discount=loyalty_discount,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        total=taxable + tax_amount,
        room_lines=room_lines or [],
        add_on_lines=add_on_lines or [],
    )
