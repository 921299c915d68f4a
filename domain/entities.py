"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, date, timedelta, timezone
from typing import ClassVar, Dict, FrozenSet, Optional, List
from decimal import Decimal, ROUND_FLOOR
import random
import string

from domain.catalog import get_room_type, tier_bonus_multiplier, tier_for_lifetime_points
from domain.enums import (
    AddOnCode, LoyaltyTier, LoyaltyTransactionType, PaymentMethod, PaymentStatus,
    PricingModel, Priority, RequestType, ReservationSource, ReservationStatus,
    RoomStatus, RoomTypeCode, WaitlistStatus,
)
from domain.exceptions import (
    IllegalStatusTransition, InsufficientLoyaltyPoints, InvalidDateRange, OccupancyExceeded,
    OutstandingBalance, RedemptionBelowMinimum,
)
from domain.pricing_rules import PriceBreakdown
from domain.value_objects import DateRange, GuestCount, SpecialRequest, to_money


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


ZERO = Decimal("0.00")


class Guest(BaseModel):
    """Guest record supplied by the identity store"""
    guest_id: UUID = Field(default_factory=uuid4)
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    class Config:
        from_attributes = True


class Room(BaseModel):
    """Physical room in the hotel inventory"""
    room_number: str
    room_type: RoomTypeCode
    floor: int = Field(ge=0)
    status: RoomStatus = RoomStatus.AVAILABLE
    price_override: Optional[Decimal] = Field(default=None, gt=0)
    description: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def base_price(self) -> Decimal:
        """Nightly price: the room's override or the catalog price"""
        if self.price_override is not None:
            return to_money(self.price_override)
        return get_room_type(self.room_type).base_price

    @property
    def max_occupancy(self) -> int:
        return get_room_type(self.room_type).max_occupancy

    def is_bookable(self) -> bool:
        """Rooms under maintenance are never offered"""
        return self.status != RoomStatus.MAINTENANCE


class RoomAssignment(BaseModel):
    """Link between a reservation and one physical room, with captured price"""
    assignment_id: UUID = Field(default_factory=uuid4)
    room_number: str
    room_type: RoomTypeCode
    guest_count: int = Field(ge=0)
    room_price: Decimal = Field(gt=0)
    price_multiplier: Decimal = Field(default=Decimal("1"), gt=0)
    line_total: Decimal = ZERO

    class Config:
        from_attributes = True


class AddOnLineItem(BaseModel):
    """Add-on service charged on a reservation"""
    line_id: UUID = Field(default_factory=uuid4)
    add_on: AddOnCode
    pricing_model: PricingModel
    units: int = Field(default=1, ge=1)
    guests: int = Field(default=1, ge=1)
    quantity: int = Field(ge=0)
    unit_price: Decimal = Field(gt=0)
    total_price: Decimal

    class Config:
        from_attributes = True


class Payment(BaseModel):
    """Payment recorded against a reservation"""
    payment_id: UUID = Field(default_factory=uuid4)
    amount: Decimal = Field(gt=0)
    method: PaymentMethod
    status: PaymentStatus = PaymentStatus.COMPLETED
    paid_at: datetime = Field(default_factory=_utcnow)
    processed_by: str = "KIOSK"

    class Config:
        from_attributes = True

    def is_successful(self) -> bool:
        return self.status == PaymentStatus.COMPLETED


class Reservation(BaseModel):
    """Reservation Aggregate Root Entity"""

    # Identity
    reservation_id: UUID = Field(default_factory=uuid4)
    confirmation_number: str

    # References to other contexts
    guest_id: UUID

    # Value Objects
    date_range: DateRange
    guest_count: GuestCount

    # Enums/Status
    status: ReservationStatus = ReservationStatus.PENDING
    source: ReservationSource = ReservationSource.KIOSK

    # Collections (child entities)
    room_assignments: List[RoomAssignment] = []
    add_ons: List[AddOnLineItem] = []
    payments: List[Payment] = []
    special_requests: List[SpecialRequest] = []

    # Pricing
    room_subtotal: Decimal = ZERO
    add_ons_total: Decimal = ZERO
    subtotal: Decimal = ZERO
    discount_percentage: Decimal = Decimal("0")
    discount_amount: Decimal = ZERO
    discount_applied_by: Optional[str] = None
    loyalty_number: Optional[str] = None
    loyalty_points_used: int = 0
    loyalty_discount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    amount_paid: Decimal = ZERO

    # Stay
    actual_check_in: Optional[datetime] = None
    actual_check_out: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    # Metadata
    created_at: datetime = Field(default_factory=_utcnow)
    modified_at: datetime = Field(default_factory=_utcnow)
    created_by: str = "SYSTEM"
    version: int = 1

    class Config:
        from_attributes = True

    ALLOWED_TRANSITIONS: ClassVar[Dict[ReservationStatus, FrozenSet[ReservationStatus]]] = {
        ReservationStatus.PENDING: frozenset({
            ReservationStatus.CONFIRMED,
            ReservationStatus.CHECKED_IN,
            ReservationStatus.CANCELLED,
        }),
        ReservationStatus.CONFIRMED: frozenset({
            ReservationStatus.CHECKED_IN,
            ReservationStatus.CANCELLED,
            ReservationStatus.NO_SHOW,
        }),
        ReservationStatus.CHECKED_IN: frozenset({ReservationStatus.CHECKED_OUT}),
    }

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        guest_id: UUID,
        date_range: DateRange,
        guest_count: GuestCount,
        confirmation_number: Optional[str] = None,
        source: ReservationSource = ReservationSource.KIOSK,
        created_by: str = "SYSTEM"
    ) -> "Reservation":
        """Create a new PENDING reservation"""
        return Reservation(
            confirmation_number=confirmation_number or Reservation.generate_confirmation_number(),
            guest_id=guest_id,
            date_range=date_range,
            guest_count=guest_count,
            source=source,
            status=ReservationStatus.PENDING,
            created_by=created_by
        )

    @staticmethod
    def generate_confirmation_number() -> str:
        """Generate a human-readable confirmation number"""
        return "RES-" + ''.join(random.choices(string.ascii_uppercase + string.digits, k=8))

    # ==================== STATE TRANSITION METHODS ====================
    def can_transition_to(self, target: ReservationStatus) -> bool:
        return target in self.ALLOWED_TRANSITIONS.get(self.status, frozenset())

    def _transition_to(self, target: ReservationStatus) -> None:
        if not self.can_transition_to(target):
            raise IllegalStatusTransition(self.status.value, target.value)
        self.status = target
        self._touch()

    def confirm(self) -> None:
        """Confirm a pending reservation"""
        self._transition_to(ReservationStatus.CONFIRMED)

    def check_in(self, on_date: Optional[date] = None) -> None:
        """Mark guest as checked in"""
        if not self.can_transition_to(ReservationStatus.CHECKED_IN):
            raise IllegalStatusTransition(self.status.value, ReservationStatus.CHECKED_IN.value)

        if self.date_range.check_in > (on_date or date.today()):
            raise InvalidDateRange("Cannot check in before the reservation date")

        self._transition_to(ReservationStatus.CHECKED_IN)
        self.actual_check_in = _utcnow()

    def check_out(self) -> None:
        """Process guest check-out; the stay must be fully paid"""
        if not self.can_transition_to(ReservationStatus.CHECKED_OUT):
            raise IllegalStatusTransition(self.status.value, ReservationStatus.CHECKED_OUT.value)

        if not self.is_fully_paid():
            raise OutstandingBalance(self.outstanding_balance)

        self._transition_to(ReservationStatus.CHECKED_OUT)
        self.actual_check_out = _utcnow()

    def cancel(self, reason: str) -> None:
        """Cancel reservation; only legal before check-in"""
        self._transition_to(ReservationStatus.CANCELLED)
        self.cancellation_reason = reason

    def mark_no_show(self) -> None:
        """Mark a confirmed guest as no-show"""
        self._transition_to(ReservationStatus.NO_SHOW)

    # ==================== MODIFICATION METHODS ====================
    def assign_room(self, assignment: RoomAssignment) -> None:
        room_type = get_room_type(assignment.room_type)
        if assignment.guest_count > room_type.max_occupancy:
            raise OccupancyExceeded(
                f"{room_type.display_name} holds at most {room_type.max_occupancy} guests"
            )
        self.room_assignments.append(assignment)

    def add_add_on(self, line: AddOnLineItem) -> None:
        self.add_ons.append(line)

    def add_special_request(self, request_type: RequestType, description: str) -> SpecialRequest:
        """Add special request from guest"""
        special_request = SpecialRequest(request_type=request_type, description=description)
        self.special_requests.append(special_request)
        self._touch()
        return special_request

    def add_payment(self, payment: Payment) -> None:
        """Record a payment and recompute the amount paid"""
        self.payments.append(payment)
        self.recalculate_amount_paid()
        self._touch()

    def recalculate_amount_paid(self) -> None:
        """Amount paid is always the sum of successful payments"""
        self.amount_paid = to_money(
            sum((p.amount for p in self.payments if p.is_successful()), ZERO)
        )

    def apply_price_breakdown(self, breakdown: PriceBreakdown) -> None:
        """Copy computed totals onto the reservation"""
        self.room_subtotal = breakdown.room_subtotal
        self.add_ons_total = breakdown.add_ons_subtotal
        self.subtotal = breakdown.subtotal
        self.discount_percentage = breakdown.discount_percentage
        self.discount_amount = breakdown.discount_amount
        self.loyalty_points_used = breakdown.loyalty_points_redeemed
        self.loyalty_discount = breakdown.loyalty_discount
        self.tax_amount = breakdown.tax_amount
        self.total_amount = breakdown.total
        self._touch()

    def reschedule(self, new_date_range: DateRange) -> None:
        if self.status not in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED):
            raise IllegalStatusTransition(self.status.value, "RESCHEDULED")
        self.date_range = new_date_range
        self._touch()

    # ==================== QUERY METHODS ====================
    @property
    def outstanding_balance(self) -> Decimal:
        return to_money(self.total_amount - self.amount_paid)

    def is_fully_paid(self) -> bool:
        return self.amount_paid >= self.total_amount

    def is_active(self) -> bool:
        """Active reservations hold their rooms"""
        return self.status not in (
            ReservationStatus.CANCELLED,
            ReservationStatus.CHECKED_OUT,
            ReservationStatus.NO_SHOW,
        )

    def is_terminal(self) -> bool:
        return self.status not in self.ALLOWED_TRANSITIONS

    def get_nights(self) -> int:
        return self.date_range.nights()

    def room_numbers(self) -> List[str]:
        return [a.room_number for a in self.room_assignments]

    def holds_room(self, room_number: str, date_range: DateRange) -> bool:
        """Check whether this reservation blocks a room for any night of the range"""
        return (
            self.is_active()
            and room_number in self.room_numbers()
            and self.date_range.overlaps(date_range)
        )

    def _touch(self) -> None:
        self.modified_at = _utcnow()
        self.version += 1


class LoyaltyAccount(BaseModel):
    """Loyalty Account Aggregate Root Entity"""
    account_id: UUID = Field(default_factory=uuid4)
    loyalty_number: str
    guest_id: UUID
    points_balance: int = Field(default=0, ge=0)
    lifetime_points: int = Field(default=0, ge=0)
    tier: LoyaltyTier = LoyaltyTier.BRONZE
    enrollment_date: date = Field(default_factory=date.today)
    last_activity_date: Optional[date] = None
    active: bool = True

    class Config:
        from_attributes = True

    @staticmethod
    def generate_loyalty_number() -> str:
        return "LOY" + ''.join(random.choices(string.digits, k=8))

    # ==================== KEY METHODS ====================
    def points_for_payment(self, amount: Decimal, earning_rate: Decimal) -> int:
        """Points earned for a payment at the account's current tier"""
        if amount <= 0:
            return 0
        raw = Decimal(amount) * Decimal(earning_rate) * tier_bonus_multiplier(self.tier)
        return int(raw.to_integral_value(rounding=ROUND_FLOOR))

    def credit(self, points: int, counts_toward_lifetime: bool = True) -> None:
        """Add points; lifetime points only grow on earned points"""
        if points < 0:
            raise ValueError("Credited points must not be negative")
        self.points_balance += points
        if counts_toward_lifetime:
            self.lifetime_points += points
        self.tier = tier_for_lifetime_points(self.lifetime_points)
        self.last_activity_date = date.today()

    def debit(self, points: int) -> None:
        """Remove points from the balance; lifetime points are untouched"""
        if points < 0:
            raise ValueError("Debited points must not be negative")
        if points > self.points_balance:
            raise InsufficientLoyaltyPoints(
                f"Balance of {self.points_balance} points cannot cover {points}"
            )
        self.points_balance -= points
        self.last_activity_date = date.today()

    def resolve_redemption(self, requested: int, cap: int, minimum: int) -> int:
        """Points that would actually be redeemed for a request"""
        if requested < minimum:
            raise RedemptionBelowMinimum(requested, minimum)
        actual = min(requested, self.points_balance, cap)
        if actual < minimum:
            raise InsufficientLoyaltyPoints(
                f"Only {actual} points redeemable, minimum is {minimum}"
            )
        return actual

    def has_enough_points(self, required: int) -> bool:
        return self.points_balance >= required


class LoyaltyTransaction(BaseModel):
    """Append-only ledger entry"""
    transaction_id: UUID = Field(default_factory=uuid4)
    account_id: UUID
    transaction_type: LoyaltyTransactionType
    points: int
    balance_after: int
    reservation_id: Optional[UUID] = None
    description: str = ""
    created_at: datetime = Field(default_factory=_utcnow)

    class Config:
        frozen = True


class WaitlistEntry(BaseModel):
    """Waitlist Aggregate Root Entity"""

    # Identity
    waitlist_id: UUID = Field(default_factory=uuid4)

    # Request Details
    guest_id: UUID
    room_type: RoomTypeCode
    requested_dates: DateRange
    guest_count: GuestCount

    # Status & Priority
    priority: Priority = Priority.MEDIUM
    status: WaitlistStatus = WaitlistStatus.ACTIVE

    # Timestamps
    created_at: datetime = Field(default_factory=_utcnow)
    expires_at: datetime
    notified_at: Optional[datetime] = None

    # Conversion
    converted_reservation_id: Optional[UUID] = None

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def add_to_waitlist(
        guest_id: UUID,
        room_type: RoomTypeCode,
        requested_dates: DateRange,
        guest_count: GuestCount,
        priority: Priority = Priority.MEDIUM
    ) -> "WaitlistEntry":
        """Add new entry to waitlist; it lapses on the requested check-in date"""
        created_at = _utcnow()
        expires_at = datetime.combine(
            requested_dates.check_in, datetime.min.time(), tzinfo=timezone.utc
        ) + timedelta(days=1)

        return WaitlistEntry(
            guest_id=guest_id,
            room_type=room_type,
            requested_dates=requested_dates,
            guest_count=guest_count,
            priority=priority,
            status=WaitlistStatus.ACTIVE,
            created_at=created_at,
            expires_at=expires_at
        )

    # ==================== STATE TRANSITION METHODS ====================
    def convert_to_reservation(self, reservation_id: UUID) -> None:
        """Convert waitlist entry to actual reservation"""
        if self.status != WaitlistStatus.ACTIVE:
            raise ValueError(
                f"Cannot convert waitlist entry with status {self.status.value}"
            )

        self.status = WaitlistStatus.CONVERTED
        self.converted_reservation_id = reservation_id

    def expire(self) -> None:
        """Mark entry as expired"""
        if self.status == WaitlistStatus.ACTIVE:
            self.status = WaitlistStatus.EXPIRED

    def cancel(self) -> None:
        """Cancel waitlist entry"""
        if self.status == WaitlistStatus.ACTIVE:
            self.status = WaitlistStatus.CANCELLED

    def mark_notified(self) -> None:
        """Record notification sent"""
        self.notified_at = _utcnow()

    # ==================== QUERY METHODS ====================
    def matches(self, room_type: RoomTypeCode, available_from: date) -> bool:
        """Check whether a room freed from ``available_from`` could serve this entry"""
        return (
            self.status == WaitlistStatus.ACTIVE
            and self.room_type == room_type
            and self.requested_dates.check_in >= available_from
        )

    def calculate_priority_score(self) -> int:
        """Calculate priority score for ordering"""
        # Base score from priority enum
        score = self.priority.value * 100

        # Earlier request = higher score
        days_waiting = (_utcnow() - self.created_at).days
        score += days_waiting * 2

        return score

    def is_expired(self) -> bool:
        """Check if entry is expired"""
        return _utcnow() > self.expires_at and self.status == WaitlistStatus.ACTIVE
