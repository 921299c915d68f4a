"""Pricing Engine"""
import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence

from domain.catalog import get_add_on_type, get_room_type
from domain.entities import AddOnLineItem, Reservation, RoomAssignment
from domain.exceptions import InvalidDateRange
from domain.pricing_rules import (
    AddOnLine, PriceBreakdown, RoomLine, add_on_line_total, billable_add_on_units,
    percentage_discount, summarize, tax_on,
)
from domain.value_objects import (
    AddOnSelection, DateRange, LoyaltyConfiguration, PricingConfiguration,
    RoomSelection, SeasonalPeriod, to_money,
)

logger = logging.getLogger(__name__)

MULTIPLIER_PLACES = Decimal("0.0001")


class PricingService:
    """Computes room, add-on, discount, loyalty and tax amounts.

    With ``dynamic_pricing`` off every night is charged at the flat nightly
    base price. With it on, each night is charged at base x multiplier, where
    a seasonal period beats the weekend rate (Fri/Sat/Sun), which beats the
    weekday rate.
    """

    def __init__(self, config: PricingConfiguration, loyalty_config: LoyaltyConfiguration):
        self.config = config
        self.loyalty_config = loyalty_config

    # ==================== CALENDAR ====================
    @staticmethod
    def is_weekend(day: date) -> bool:
        return day.weekday() in (4, 5, 6)

    def seasonal_period_for(self, day: date) -> Optional[SeasonalPeriod]:
        for period in self.config.seasonal_periods:
            if period.contains(day):
                return period
        return None

    def nightly_multiplier(self, day: date) -> Decimal:
        """Calendar multiplier for a night"""
        period = self.seasonal_period_for(day)
        if period is not None:
            return period.multiplier or self.config.seasonal_multiplier
        if self.is_weekend(day):
            return self.config.weekend_multiplier
        return self.config.weekday_multiplier

    # ==================== ROOM RATES ====================
    def nightly_rate(self, base_price: Decimal, day: date) -> Decimal:
        if not self.config.dynamic_pricing:
            return to_money(base_price)
        return to_money(base_price * self.nightly_multiplier(day))

    def stay_price(self, base_price: Decimal, date_range: DateRange) -> Decimal:
        """Sum of the nightly rates of one room over the stay"""
        return to_money(sum(
            (self.nightly_rate(base_price, night) for night in date_range.iter_nights()),
            Decimal("0"),
        ))

    def average_nightly_rate(self, base_price: Decimal, date_range: DateRange) -> Decimal:
        return to_money(self.stay_price(base_price, date_range) / date_range.nights())

    def average_multiplier(self, base_price: Decimal, date_range: DateRange) -> Decimal:
        stay = self.stay_price(base_price, date_range)
        return (stay / (to_money(base_price) * date_range.nights())).quantize(
            MULTIPLIER_PLACES, rounding=ROUND_HALF_UP
        )

    # ==================== AMOUNTS ====================
    def calculate_tax(self, amount: Decimal) -> Decimal:
        return tax_on(to_money(amount), self.config.tax_rate)

    @staticmethod
    def discount_amount(amount: Decimal, percentage: Decimal) -> Decimal:
        return percentage_discount(to_money(amount), Decimal(percentage))

    def loyalty_discount_for(self, points: int) -> Decimal:
        return to_money(Decimal(points) * self.loyalty_config.redemption_value)

    # ==================== QUOTES ====================
    def price(
        self,
        room_selections: Sequence[RoomSelection],
        add_on_selections: Iterable[AddOnSelection] = (),
        date_range: Optional[DateRange] = None,
        nights: Optional[int] = None,
        guests: int = 1,
        discount_percentage: Decimal = Decimal("0"),
        redeemed_points: int = 0
    ) -> PriceBreakdown:
        """Price a prospective booking.

        Either ``date_range`` or ``nights`` is required. Without a date range
        the calendar is unknown and every night is charged the flat rate.
        ``redeemed_points`` must already be resolved against the guest's
        balance and the redemption cap.
        """
        if date_range is not None:
            nights = date_range.nights()
        if nights is None or nights < 1:
            raise InvalidDateRange("A stay must be at least one night")

        room_lines: List[RoomLine] = []
        for selection in room_selections:
            base = selection.price_per_night or get_room_type(selection.room_type).base_price
            if date_range is not None:
                per_room = self.stay_price(base, date_range)
            else:
                per_room = to_money(base * nights)
            room_lines.append(RoomLine(
                room_type=selection.room_type,
                quantity=selection.quantity,
                nightly_rate=to_money(per_room / nights),
                nights=nights,
                total=to_money(per_room * selection.quantity),
            ))

        add_on_lines = [
            self._price_add_on(selection, nights, guests) for selection in add_on_selections
        ]

        return summarize(
            nights=nights,
            room_subtotal=sum((line.total for line in room_lines), Decimal("0")),
            add_ons_subtotal=sum((line.total for line in add_on_lines), Decimal("0")),
            tax_rate=self.config.tax_rate,
            discount_percentage=Decimal(discount_percentage),
            loyalty_points_redeemed=redeemed_points,
            loyalty_discount=self.loyalty_discount_for(redeemed_points),
            room_lines=room_lines,
            add_on_lines=add_on_lines,
        )

    def _price_add_on(self, selection: AddOnSelection, nights: int, guests: int) -> AddOnLine:
        add_on_type = get_add_on_type(selection.add_on)
        line_guests = selection.guests or guests
        return AddOnLine(
            add_on=selection.add_on,
            pricing_model=add_on_type.pricing_model,
            unit_price=add_on_type.base_price,
            billable_quantity=billable_add_on_units(
                add_on_type.pricing_model, nights, line_guests, selection.quantity
            ),
            total=add_on_line_total(
                add_on_type.pricing_model, add_on_type.base_price, nights, line_guests, selection.quantity
            ),
        )

    # ==================== BOOKING LINES ====================
    def room_assignment_total(self, assignment: RoomAssignment, date_range: DateRange) -> Decimal:
        """Stay total of one assigned room from its captured nightly price"""
        return self.stay_price(assignment.room_price, date_range)

    @staticmethod
    def add_on_item_total(item: AddOnLineItem, nights: int) -> Decimal:
        return add_on_line_total(item.pricing_model, item.unit_price, nights, item.guests, item.units)

    def build_add_on_item(self, selection: AddOnSelection, nights: int, guests: int) -> AddOnLineItem:
        line = self._price_add_on(selection, nights, guests)
        return AddOnLineItem(
            add_on=line.add_on,
            pricing_model=line.pricing_model,
            units=selection.quantity,
            guests=selection.guests or guests,
            quantity=line.billable_quantity,
            unit_price=line.unit_price,
            total_price=line.total,
        )

    def recalculate(self, reservation: Reservation) -> PriceBreakdown:
        """Re-price an existing booking from its captured line totals"""
        return summarize(
            nights=reservation.get_nights(),
            room_subtotal=sum((a.line_total for a in reservation.room_assignments), Decimal("0")),
            add_ons_subtotal=sum((item.total_price for item in reservation.add_ons), Decimal("0")),
            tax_rate=self.config.tax_rate,
            discount_percentage=reservation.discount_percentage,
            loyalty_points_redeemed=reservation.loyalty_points_used,
            loyalty_discount=reservation.loyalty_discount,
        )

    def reprice_for_dates(self, reservation: Reservation, new_range: DateRange) -> PriceBreakdown:
        """Move the booking's lines to new dates and return the new totals.

        Captured prices are kept; only the nights change. The reservation's
        line totals are updated in place, its header totals are not.
        """
        nights = new_range.nights()
        for assignment in reservation.room_assignments:
            assignment.line_total = self.room_assignment_total(assignment, new_range)
            assignment.price_multiplier = self.average_multiplier(assignment.room_price, new_range)
        for item in reservation.add_ons:
            item.quantity = billable_add_on_units(item.pricing_model, nights, item.guests, item.units)
            item.total_price = self.add_on_item_total(item, nights)

        return summarize(
            nights=nights,
            room_subtotal=sum((a.line_total for a in reservation.room_assignments), Decimal("0")),
            add_ons_subtotal=sum((item.total_price for item in reservation.add_ons), Decimal("0")),
            tax_rate=self.config.tax_rate,
            discount_percentage=reservation.discount_percentage,
            loyalty_points_redeemed=reservation.loyalty_points_used,
            loyalty_discount=reservation.loyalty_discount,
        )
