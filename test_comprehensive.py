#!/usr/bin/env python3
"""
Comprehensive Unit Testing for the Hotel Kiosk Reservation API
Tests all layers: Domain, Application, Infrastructure, and API
"""

import logging
import threading
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from jose import JWTError
from pydantic import ValidationError

from main import app
from application.loyalty_service import add_months
from application.pricing_service import PricingService
from domain.catalog import (
    ROOM_TYPES, get_room_type, role_discount_cap, suitable_room_types, tier_for_lifetime_points,
)
from domain.entities import (
    Guest, LoyaltyAccount, Payment, Reservation, Room, RoomAssignment, WaitlistEntry,
)
from domain.enums import (
    AddOnCode, AdminRole, LoyaltyTier, LoyaltyTransactionType, PaymentMethod, PaymentStatus,
    PricingModel, ReservationStatus, RoomStatus, RoomTypeCode, WaitlistStatus,
)
from domain.events import AvailabilityEventChannel, RoomAvailabilityEvent
from domain.exceptions import (
    AlreadyEnrolled, DiscountExceedsRoleCap, DuplicateConfirmationNumber, GuestNotFound,
    IllegalStatusTransition, InsufficientCapacity, InsufficientLoyaltyPoints, InvalidDateRange,
    InvalidPayment, LoyaltyAccountNotFound, LoyaltyAccountNotOwned, OccupancyExceeded,
    OutstandingBalance, RedemptionBelowMinimum, RedemptionExceedsAmountDue, ReservationError,
)
from domain.pricing_rules import billable_add_on_units, summarize
from domain.value_objects import (
    AddOnSelection, DateRange, GuestCount, LoyaltyConfiguration, PricingConfiguration,
    RoomSelection, SeasonalPeriod, to_money,
)
from infrastructure.container import build_container
from infrastructure.logging_config import configure_logging
from infrastructure.repositories.in_memory_repositories import (
    InMemoryGuestRepository, InMemoryReservationRepository, InMemoryRoomRepository,
    InMemoryUnitOfWork,
)
from infrastructure.security import (
    create_access_token, decode_access_token, get_password_hash, verify_password,
)
from infrastructure.settings import SecuritySettings, Settings


# Tuesday
TODAY = date(2030, 1, 1)


class FakeClock:
    """Settable business date"""

    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today

    def advance(self, days: int = 1) -> None:
        self.today += timedelta(days=days)


def _stay(check_in: date = TODAY, nights: int = 2) -> DateRange:
    return DateRange(check_in=check_in, check_out=check_in + timedelta(days=nights))


def _new_guest(container, first_name="Grace", last_name="Hopper"):
    return container.guests.register_guest(first_name, last_name).guest_id


def _book(container, guest_id, room_type=RoomTypeCode.SINGLE, check_in=TODAY, nights=2, **kwargs):
    return container.reservations.create_reservation(
        guest_id=guest_id,
        check_in=check_in,
        check_out=check_in + timedelta(days=nights),
        room_selections=[RoomSelection(room_type=room_type)],
        **kwargs
    )


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock(TODAY)


@pytest.fixture
def container(clock):
    return build_container(Settings(seed_rooms=True), clock=clock)


@pytest.fixture
def guest(container):
    return container.guests.register_guest("Ada", "Lovelace", email="ada@example.com")


@pytest.fixture
def member(container, guest):
    """Guest enrolled in the loyalty program with the welcome bonus"""
    return container.loyalty.enroll(guest.guest_id)


@pytest.fixture
def pricing():
    return PricingService(PricingConfiguration(), LoyaltyConfiguration())


@pytest.fixture
def api_container(clock):
    original = app.state.container
    app.state.container = build_container(Settings(), clock=clock)
    yield app.state.container
    app.state.container = original


@pytest.fixture
def client(api_container):
    """FastAPI test client"""
    return TestClient(app)


@pytest.fixture
def auth_headers(client):
    """Get authentication headers with valid token"""
    response = client.post("/token", data={"username": "admin", "password": "admin123"})
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def manager_headers(client):
    response = client.post("/token", data={"username": "manager", "password": "manager123"})
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


# ============================================================================
# DOMAIN LAYER TESTS - VALUE OBJECTS
# ============================================================================

class TestValueObjects:
    """Test domain value objects"""

    @pytest.mark.unit
    @pytest.mark.domain
    def test_date_range_nights(self):
        date_range = _stay(nights=3)
        assert date_range.nights() == 3
        assert list(date_range.iter_nights()) == [
            TODAY, TODAY + timedelta(days=1), TODAY + timedelta(days=2)
        ]

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.edge_case
    def test_date_range_same_day_rejected(self):
        with pytest.raises(ValidationError):
            DateRange(check_in=TODAY, check_out=TODAY)

    @pytest.mark.unit
    @pytest.mark.domain
    def test_date_range_overlap_is_half_open(self):
        existing = DateRange(check_in=date(2030, 1, 10), check_out=date(2030, 1, 15))
        assert existing.overlaps(DateRange(check_in=date(2030, 1, 12), check_out=date(2030, 1, 20)))
        assert not existing.overlaps(DateRange(check_in=date(2030, 1, 15), check_out=date(2030, 1, 20)))
        assert not existing.overlaps(DateRange(check_in=date(2030, 1, 5), check_out=date(2030, 1, 10)))

    @pytest.mark.unit
    @pytest.mark.domain
    def test_guest_count_total(self):
        assert GuestCount(adults=2, children=1).total == 3

    @pytest.mark.unit
    @pytest.mark.domain
    def test_guest_count_requires_an_adult(self):
        with pytest.raises(ValidationError):
            GuestCount(adults=0, children=2)

    @pytest.mark.unit
    @pytest.mark.domain
    def test_money_rounds_half_up(self):
        assert to_money(Decimal("2.675")) == Decimal("2.68")
        assert to_money("0.005") == Decimal("0.01")
        assert to_money(12.5) == Decimal("12.50")

    @pytest.mark.unit
    @pytest.mark.domain
    def test_seasonal_period_is_inclusive(self):
        period = SeasonalPeriod(name="New Year", start_date=date(2030, 1, 1), end_date=date(2030, 1, 2))
        assert period.contains(date(2030, 1, 1))
        assert period.contains(date(2030, 1, 2))
        assert not period.contains(date(2030, 1, 3))

    @pytest.mark.unit
    @pytest.mark.domain
    def test_with_seasonal_period_returns_copy(self):
        config = PricingConfiguration()
        updated = config.with_seasonal_period("Peak", date(2030, 7, 1), date(2030, 8, 31))
        assert config.seasonal_periods == []
        assert len(updated.seasonal_periods) == 1
        assert updated.tax_rate == config.tax_rate

    @pytest.mark.unit
    @pytest.mark.domain
    def test_room_selection_rejects_zero_quantity(self):
        with pytest.raises(ValidationError):
            RoomSelection(room_type=RoomTypeCode.SINGLE, quantity=0)


# ============================================================================
# DOMAIN LAYER TESTS - CATALOG & PRICING RULES
# ============================================================================

class TestCatalog:
    """Test static reference data"""

    @pytest.mark.unit
    @pytest.mark.domain
    def test_room_types(self):
        assert get_room_type(RoomTypeCode.SINGLE).base_price == Decimal("100.00")
        assert get_room_type(RoomTypeCode.DOUBLE).max_occupancy == 4
        assert get_room_type(RoomTypeCode.PENTHOUSE).base_price == Decimal("500.00")

    @pytest.mark.unit
    @pytest.mark.domain
    def test_suitable_room_types(self):
        assert [rt.code for rt in suitable_room_types(3)] == [RoomTypeCode.DOUBLE]
        assert len(suitable_room_types(2)) == 4

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.edge_case
    def test_tier_thresholds(self):
        assert tier_for_lifetime_points(9999) == LoyaltyTier.BRONZE
        assert tier_for_lifetime_points(10000) == LoyaltyTier.SILVER
        assert tier_for_lifetime_points(25000) == LoyaltyTier.GOLD
        assert tier_for_lifetime_points(50000) == LoyaltyTier.PLATINUM

    @pytest.mark.unit
    @pytest.mark.domain
    def test_role_discount_caps(self):
        assert role_discount_cap(AdminRole.ADMIN) == Decimal("15")
        assert role_discount_cap(AdminRole.MANAGER) == Decimal("30")


class TestPricingRules:
    """Test pure pricing functions"""

    @pytest.mark.unit
    @pytest.mark.domain
    def test_billable_units_per_model(self):
        assert billable_add_on_units(PricingModel.PER_NIGHT, nights=3, guests=2, quantity=2) == 6
        assert billable_add_on_units(PricingModel.PER_PERSON_PER_NIGHT, nights=3, guests=2, quantity=1) == 6
        assert billable_add_on_units(PricingModel.PER_PERSON, nights=3, guests=2, quantity=2) == 2

    @pytest.mark.unit
    @pytest.mark.domain
    def test_total_identity(self):
        breakdown = summarize(
            nights=3,
            room_subtotal=Decimal("450.00"),
            add_ons_subtotal=Decimal("150.00"),
            tax_rate=Decimal("0.13"),
            discount_percentage=Decimal("10"),
            loyalty_points_redeemed=500,
            loyalty_discount=Decimal("5.00"),
        )
        assert breakdown.subtotal == Decimal("600.00")
        assert breakdown.discount_amount == Decimal("60.00")
        assert breakdown.tax_amount == Decimal("69.55")
        assert breakdown.total == Decimal("604.55")
        assert breakdown.total == (
            breakdown.subtotal - breakdown.discount_amount - breakdown.loyalty_discount
            + breakdown.tax_amount
        )

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.edge_case
    def test_loyalty_discount_cannot_exceed_amount_due(self):
        with pytest.raises(RedemptionExceedsAmountDue):
            summarize(
                nights=1,
                room_subtotal=Decimal("100.00"),
                add_ons_subtotal=Decimal("0"),
                tax_rate=Decimal("0.13"),
                discount_percentage=Decimal("30"),
                loyalty_points_redeemed=8000,
                loyalty_discount=Decimal("80.00"),
            )


# ============================================================================
# DOMAIN LAYER TESTS - ENTITIES
# ============================================================================

class TestReservationEntity:
    """Test Reservation aggregate"""

    @pytest.mark.unit
    @pytest.mark.domain
    def test_create_reservation_is_pending(self):
        reservation = Reservation.create(uuid4(), _stay(), GuestCount(adults=2))
        assert reservation.status == ReservationStatus.PENDING
        assert reservation.confirmation_number.startswith("RES-")
        assert len(reservation.confirmation_number) == 12

    @pytest.mark.unit
    @pytest.mark.domain
    def test_confirm_bumps_version(self):
        reservation = Reservation.create(uuid4(), _stay(), GuestCount(adults=1))
        reservation.confirm()
        assert reservation.status == ReservationStatus.CONFIRMED
        assert reservation.version == 2

    @pytest.mark.unit
    @pytest.mark.domain
    def test_cancel_checked_in_fails(self):
        reservation = Reservation.create(uuid4(), _stay(), GuestCount(adults=1))
        reservation.confirm()
        reservation.check_in(on_date=TODAY)
        with pytest.raises(IllegalStatusTransition):
            reservation.cancel("Changed plans")
        assert reservation.status == ReservationStatus.CHECKED_IN

    @pytest.mark.unit
    @pytest.mark.domain
    def test_check_out_with_balance_fails(self):
        reservation = Reservation.create(uuid4(), _stay(), GuestCount(adults=1))
        reservation.total_amount = Decimal("226.00")
        reservation.confirm()
        reservation.check_in(on_date=TODAY)
        with pytest.raises(OutstandingBalance) as exc_info:
            reservation.check_out()
        assert exc_info.value.balance == Decimal("226.00")

        reservation.add_payment(Payment(amount=Decimal("226.00"), method=PaymentMethod.CARD))
        reservation.check_out()
        assert reservation.status == ReservationStatus.CHECKED_OUT
        assert reservation.actual_check_out is not None

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.edge_case
    def test_check_in_before_arrival_date_fails(self):
        reservation = Reservation.create(uuid4(), _stay(check_in=date(2030, 1, 5)), GuestCount(adults=1))
        reservation.confirm()
        with pytest.raises(InvalidDateRange):
            reservation.check_in(on_date=TODAY)

    @pytest.mark.unit
    @pytest.mark.domain
    def test_terminal_states_allow_no_transition(self):
        reservation = Reservation.create(uuid4(), _stay(), GuestCount(adults=1))
        reservation.cancel("Duplicate booking")
        assert reservation.is_terminal()
        assert not reservation.is_active()
        with pytest.raises(IllegalStatusTransition):
            reservation.confirm()

    @pytest.mark.unit
    @pytest.mark.domain
    def test_amount_paid_counts_completed_payments_only(self):
        reservation = Reservation.create(uuid4(), _stay(), GuestCount(adults=1))
        reservation.add_payment(Payment(amount=Decimal("50.00"), method=PaymentMethod.CASH))
        reservation.add_payment(
            Payment(amount=Decimal("70.00"), method=PaymentMethod.CARD, status=PaymentStatus.FAILED)
        )
        assert reservation.amount_paid == Decimal("50.00")

    @pytest.mark.unit
    @pytest.mark.domain
    def test_assign_room_checks_occupancy(self):
        reservation = Reservation.create(uuid4(), _stay(), GuestCount(adults=3))
        with pytest.raises(OccupancyExceeded):
            reservation.assign_room(RoomAssignment(
                room_number="101", room_type=RoomTypeCode.SINGLE, guest_count=3, room_price=Decimal("100"),
            ))

    @pytest.mark.unit
    @pytest.mark.domain
    def test_holds_room_only_while_active(self):
        reservation = Reservation.create(uuid4(), _stay(nights=5), GuestCount(adults=1))
        reservation.assign_room(RoomAssignment(
            room_number="101", room_type=RoomTypeCode.SINGLE, guest_count=1, room_price=Decimal("100"),
        ))
        assert reservation.holds_room("101", _stay(check_in=TODAY + timedelta(days=2)))
        assert not reservation.holds_room("102", _stay())
        reservation.cancel("No longer needed")
        assert not reservation.holds_room("101", _stay())

    @pytest.mark.unit
    @pytest.mark.domain
    def test_reschedule_after_check_in_fails(self):
        reservation = Reservation.create(uuid4(), _stay(), GuestCount(adults=1))
        reservation.confirm()
        reservation.check_in(on_date=TODAY)
        with pytest.raises(IllegalStatusTransition):
            reservation.reschedule(_stay(check_in=TODAY + timedelta(days=7)))


class TestLoyaltyAccountEntity:
    """Test LoyaltyAccount aggregate"""

    @pytest.mark.unit
    @pytest.mark.domain
    def test_points_for_payment_by_tier(self):
        bronze = LoyaltyAccount(loyalty_number="LOY00000001", guest_id=uuid4())
        gold = LoyaltyAccount(loyalty_number="LOY00000002", guest_id=uuid4(), tier=LoyaltyTier.GOLD)
        assert bronze.points_for_payment(Decimal("100.00"), Decimal("1")) == 100
        assert gold.points_for_payment(Decimal("100.00"), Decimal("1")) == 150

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.edge_case
    def test_points_are_floored(self):
        account = LoyaltyAccount(loyalty_number="LOY00000001", guest_id=uuid4())
        assert account.points_for_payment(Decimal("99.99"), Decimal("1")) == 99
        assert account.points_for_payment(Decimal("0"), Decimal("1")) == 0

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.edge_case
    def test_tier_changes_exactly_at_threshold(self):
        account = LoyaltyAccount(
            loyalty_number="LOY00000001", guest_id=uuid4(), points_balance=9999, lifetime_points=9999,
        )
        assert account.tier == LoyaltyTier.BRONZE
        account.credit(1)
        assert account.lifetime_points == 10000
        assert account.tier == LoyaltyTier.SILVER

    @pytest.mark.unit
    @pytest.mark.domain
    def test_redemption_limited_by_balance(self):
        account = LoyaltyAccount(loyalty_number="LOY00000001", guest_id=uuid4(), points_balance=500)
        assert account.resolve_redemption(50000, cap=10000, minimum=100) == 500

    @pytest.mark.unit
    @pytest.mark.domain
    def test_redemption_limited_by_cap(self):
        account = LoyaltyAccount(loyalty_number="LOY00000001", guest_id=uuid4(), points_balance=20000)
        assert account.resolve_redemption(15000, cap=10000, minimum=100) == 10000

    @pytest.mark.unit
    @pytest.mark.domain
    @pytest.mark.edge_case
    def test_redemption_minimums(self):
        account = LoyaltyAccount(loyalty_number="LOY00000001", guest_id=uuid4(), points_balance=50)
        with pytest.raises(RedemptionBelowMinimum):
            account.resolve_redemption(99, cap=10000, minimum=100)
        with pytest.raises(InsufficientLoyaltyPoints):
            account.resolve_redemption(100, cap=10000, minimum=100)

    @pytest.mark.unit
    @pytest.mark.domain
    def test_refund_credit_keeps_lifetime_points(self):
        account = LoyaltyAccount(
            loyalty_number="LOY00000001", guest_id=uuid4(), points_balance=100, lifetime_points=100,
        )
        account.credit(400, counts_toward_lifetime=False)
        assert account.points_balance == 500
        assert account.lifetime_points == 100

    @pytest.mark.unit
    @pytest.mark.domain
    def test_debit_more_than_balance_fails(self):
        account = LoyaltyAccount(loyalty_number="LOY00000001", guest_id=uuid4(), points_balance=10)
        with pytest.raises(InsufficientLoyaltyPoints):
            account.debit(11)
        assert account.points_balance == 10


class TestWaitlistEntity:
    """Test WaitlistEntry aggregate"""

    @pytest.mark.unit
    @pytest.mark.domain
    def test_matches_freed_room(self):
        entry = WaitlistEntry.add_to_waitlist(
            uuid4(), RoomTypeCode.DOUBLE, _stay(check_in=date(2030, 1, 10)), GuestCount(adults=2),
        )
        assert entry.matches(RoomTypeCode.DOUBLE, date(2030, 1, 10))
        assert not entry.matches(RoomTypeCode.DOUBLE, date(2030, 1, 11))
        assert not entry.matches(RoomTypeCode.SINGLE, date(2030, 1, 1))

    @pytest.mark.unit
    @pytest.mark.domain
    def test_convert_only_active(self):
        entry = WaitlistEntry.add_to_waitlist(uuid4(), RoomTypeCode.SINGLE, _stay(), GuestCount(adults=1))
        entry.cancel()
        with pytest.raises(ValueError):
            entry.convert_to_reservation(uuid4())
        assert entry.status == WaitlistStatus.CANCELLED


# ============================================================================
# APPLICATION LAYER TESTS - PRICING ENGINE
# ============================================================================

class TestPricingService:
    """Test price quotes"""

    @pytest.mark.unit
    @pytest.mark.application
    def test_single_room_two_nights(self, pricing):
        breakdown = pricing.price([RoomSelection(room_type=RoomTypeCode.SINGLE)], date_range=_stay(nights=2))
        assert breakdown.subtotal == Decimal("200.00")
        assert breakdown.tax_amount == Decimal("26.00")
        assert breakdown.total == Decimal("226.00")

    @pytest.mark.unit
    @pytest.mark.application
    def test_double_room_with_breakfast(self, pricing):
        breakdown = pricing.price(
            [RoomSelection(room_type=RoomTypeCode.DOUBLE)],
            [AddOnSelection(add_on=AddOnCode.BREAKFAST)],
            date_range=_stay(nights=3),
            guests=2,
        )
        assert breakdown.room_subtotal == Decimal("450.00")
        assert breakdown.add_ons_subtotal == Decimal("150.00")
        assert breakdown.subtotal == Decimal("600.00")
        assert breakdown.tax_amount == Decimal("78.00")
        assert breakdown.total == Decimal("678.00")
        assert breakdown.add_on_lines[0].billable_quantity == 6

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.parametrize("room_type,quantity,nights,price_per_night", [
        (RoomTypeCode.SINGLE, 1, 1, None),
        (RoomTypeCode.DELUXE, 2, 4, None),
        (RoomTypeCode.PENTHOUSE, 1, 10, None),
        (RoomTypeCode.SINGLE, 3, 7, Decimal("99.99")),
    ])
    def test_room_total_is_rate_times_quantity_times_nights(self, pricing, room_type, quantity, nights, price_per_night):
        selection = RoomSelection(room_type=room_type, quantity=quantity, price_per_night=price_per_night)
        rate = price_per_night or get_room_type(room_type).base_price
        breakdown = pricing.price([selection], nights=nights)
        assert breakdown.room_subtotal == to_money(rate * quantity * nights)

    @pytest.mark.unit
    @pytest.mark.application
    def test_per_night_and_per_person_add_ons(self, pricing):
        breakdown = pricing.price(
            [RoomSelection(room_type=RoomTypeCode.SINGLE)],
            [AddOnSelection(add_on=AddOnCode.WIFI), AddOnSelection(add_on=AddOnCode.SPA, quantity=2)],
            nights=2,
            guests=2,
        )
        totals = {line.add_on: line.total for line in breakdown.add_on_lines}
        assert totals[AddOnCode.WIFI] == Decimal("30.00")
        assert totals[AddOnCode.SPA] == Decimal("150.00")

    @pytest.mark.unit
    @pytest.mark.application
    def test_quote_is_idempotent(self, pricing):
        catalog_before = {code: rt.model_copy() for code, rt in ROOM_TYPES.items()}
        args = ([RoomSelection(room_type=RoomTypeCode.DOUBLE, quantity=2)], [AddOnSelection(add_on=AddOnCode.PARKING)])
        first = pricing.price(*args, date_range=_stay(nights=3), discount_percentage=Decimal("10"))
        second = pricing.price(*args, date_range=_stay(nights=3), discount_percentage=Decimal("10"))
        assert first == second
        assert ROOM_TYPES == catalog_before

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    def test_price_requires_nights(self, pricing):
        with pytest.raises(InvalidDateRange):
            pricing.price([RoomSelection(room_type=RoomTypeCode.SINGLE)])

    @pytest.mark.unit
    @pytest.mark.application
    def test_tax_and_discount_rounding(self, pricing):
        assert pricing.calculate_tax(Decimal("99.99")) == Decimal("13.00")
        assert pricing.discount_amount(Decimal("200.00"), Decimal("10")) == Decimal("20.00")
        assert pricing.discount_amount(Decimal("200.00"), Decimal("0")) == Decimal("0.00")
        assert pricing.loyalty_discount_for(500) == Decimal("5.00")

    @pytest.mark.unit
    @pytest.mark.application
    def test_flat_rate_when_dynamic_pricing_off(self, pricing):
        # Thursday to Sunday
        stay = _stay(check_in=date(2030, 1, 3), nights=3)
        assert pricing.stay_price(Decimal("100.00"), stay) == Decimal("300.00")

    @pytest.mark.unit
    @pytest.mark.application
    def test_dynamic_pricing_precedence(self):
        config = PricingConfiguration(dynamic_pricing=True).with_seasonal_period(
            "Winter Festival", date(2030, 1, 4), date(2030, 1, 4)
        )
        service = PricingService(config, LoyaltyConfiguration())
        # Friday inside a seasonal period is charged the seasonal rate, not the weekend rate
        assert service.nightly_multiplier(date(2030, 1, 4)) == Decimal("1.50")
        assert service.nightly_multiplier(date(2030, 1, 5)) == Decimal("1.20")
        assert service.nightly_multiplier(date(2030, 1, 2)) == Decimal("1.00")

        stay = _stay(check_in=date(2030, 1, 3), nights=3)
        assert service.stay_price(Decimal("100.00"), stay) == Decimal("370.00")
        assert service.average_multiplier(Decimal("100.00"), stay) == Decimal("1.2333")

    @pytest.mark.unit
    @pytest.mark.application
    def test_seasonal_period_own_multiplier(self):
        config = PricingConfiguration(dynamic_pricing=True).with_seasonal_period(
            "Gala", date(2030, 1, 2), date(2030, 1, 2), multiplier=Decimal("2.0")
        )
        service = PricingService(config, LoyaltyConfiguration())
        assert service.nightly_rate(Decimal("150.00"), date(2030, 1, 2)) == Decimal("300.00")

    @pytest.mark.unit
    @pytest.mark.application
    def test_average_nightly_rate(self, pricing):
        # Thursday to Sunday
        stay = _stay(check_in=date(2030, 1, 3), nights=3)
        assert pricing.average_nightly_rate(Decimal("100.00"), stay) == Decimal("100.00")

        dynamic = PricingService(PricingConfiguration(dynamic_pricing=True), LoyaltyConfiguration())
        assert dynamic.average_nightly_rate(Decimal("100.00"), stay) == Decimal("113.33")

    @pytest.mark.unit
    @pytest.mark.application
    def test_recalculate_is_idempotent(self, container, guest):
        reservation = _book(container, guest.guest_id)
        first = container.pricing.recalculate(reservation)
        second = container.pricing.recalculate(reservation)
        assert first == second
        assert first.total == reservation.total_amount


# ============================================================================
# APPLICATION LAYER TESTS - AVAILABILITY CHECKER
# ============================================================================

class TestAvailabilityService:
    """Test availability queries"""

    @pytest.mark.unit
    @pytest.mark.application
    def test_all_rooms_free_initially(self, container):
        counts = container.availability.availability_by_type(_stay())
        assert counts == {
            RoomTypeCode.SINGLE: 4,
            RoomTypeCode.DOUBLE: 4,
            RoomTypeCode.DELUXE: 3,
            RoomTypeCode.PENTHOUSE: 1,
        }
        assert container.availability.has_availability(_stay())

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    def test_no_availability_without_bookable_rooms(self, clock):
        empty = build_container(Settings(seed_rooms=False), clock=clock)
        assert not empty.availability.has_availability(_stay())

        container = build_container(Settings(seed_rooms=True), clock=clock)
        for room in container.room_repo.find_all():
            room.status = RoomStatus.MAINTENANCE
            container.room_repo.save(room)
        assert not container.availability.has_availability(_stay())

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    def test_overlap_and_back_to_back(self, container, guest):
        reservation = container.reservations.create_reservation(
            guest_id=guest.guest_id,
            check_in=date(2030, 1, 10),
            check_out=date(2030, 1, 15),
            room_selections=[RoomSelection(room_type=RoomTypeCode.SINGLE)],
        )
        assert reservation.status == ReservationStatus.CONFIRMED
        booked = reservation.room_numbers()[0]

        overlapping = container.availability.find_available_rooms(
            RoomTypeCode.SINGLE, date(2030, 1, 12), date(2030, 1, 20)
        )
        back_to_back = container.availability.find_available_rooms(
            RoomTypeCode.SINGLE, date(2030, 1, 15), date(2030, 1, 20)
        )
        assert booked not in [room.room_number for room in overlapping]
        assert booked in [room.room_number for room in back_to_back]

    @pytest.mark.unit
    @pytest.mark.application
    def test_maintenance_rooms_excluded(self, container):
        room = container.room_repo.find_by_number("102")
        room.status = RoomStatus.MAINTENANCE
        container.room_repo.save(room)
        rooms = container.availability.find_available_rooms(RoomTypeCode.SINGLE, TODAY, TODAY + timedelta(days=1))
        assert [r.room_number for r in rooms] == ["101", "103", "104"]
        assert not container.availability.is_room_available("102", _stay())

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    def test_invalid_range_rejected(self, container):
        with pytest.raises(InvalidDateRange):
            container.availability.find_available_rooms(RoomTypeCode.SINGLE, TODAY, TODAY)

    @pytest.mark.unit
    @pytest.mark.application
    def test_room_available_excluding_own_reservation(self, container, guest):
        reservation = _book(container, guest.guest_id, room_type=RoomTypeCode.PENTHOUSE)
        assert not container.availability.is_room_available("401", _stay())
        assert container.availability.is_room_available(
            "401", _stay(), exclude_reservation_id=reservation.reservation_id
        )

    @pytest.mark.unit
    @pytest.mark.application
    def test_suggestions_for_couple(self, container):
        suggestions = container.availability.suggest_rooms_for_group(2, 0, _stay(nights=2))
        assert [s.name for s in suggestions] == ["Economy", "Comfort", "Premium"]
        assert suggestions[0].rooms == {RoomTypeCode.SINGLE: 1}
        assert suggestions[0].total_price == Decimal("200.00")
        assert suggestions[2].rooms == {RoomTypeCode.PENTHOUSE: 1}

    @pytest.mark.unit
    @pytest.mark.application
    def test_suggestions_for_large_group(self, container):
        suggestions = container.availability.suggest_rooms_for_group(5, 1, _stay(nights=1))
        by_name = {s.name: s for s in suggestions}
        assert "Comfort" not in by_name
        assert by_name["Economy"].rooms == {RoomTypeCode.DOUBLE: 1, RoomTypeCode.SINGLE: 1}
        assert by_name["Economy"].total_capacity == 6
        assert by_name["Premium"].rooms == {RoomTypeCode.DELUXE: 3}


# ============================================================================
# APPLICATION LAYER TESTS - RESERVATION LIFECYCLE
# ============================================================================

class TestReservationService:
    """Test reservation use cases"""

    @pytest.mark.unit
    @pytest.mark.application
    def test_create_single_room(self, container, guest):
        reservation = _book(container, guest.guest_id)
        assert reservation.status == ReservationStatus.CONFIRMED
        assert reservation.room_numbers() == ["101"]
        assert reservation.subtotal == Decimal("200.00")
        assert reservation.tax_amount == Decimal("26.00")
        assert reservation.total_amount == Decimal("226.00")
        assert reservation.outstanding_balance == Decimal("226.00")
        assert container.room_repo.find_by_number("101").status == RoomStatus.RESERVED

    @pytest.mark.unit
    @pytest.mark.application
    def test_create_double_with_breakfast(self, container, guest):
        reservation = container.reservations.create_reservation(
            guest_id=guest.guest_id,
            check_in=TODAY,
            check_out=TODAY + timedelta(days=3),
            room_selections=[RoomSelection(room_type=RoomTypeCode.DOUBLE)],
            adults=2,
            add_on_selections=[AddOnSelection(add_on=AddOnCode.BREAKFAST)],
            special_requests=[{"type": "high_floor", "description": "Away from the elevator"}],
        )
        assert reservation.room_subtotal == Decimal("450.00")
        assert reservation.add_ons_total == Decimal("150.00")
        assert reservation.tax_amount == Decimal("78.00")
        assert reservation.total_amount == Decimal("678.00")
        assert reservation.room_assignments[0].guest_count == 2
        assert reservation.special_requests[0].request_type.value == "HIGH_FLOOR"

    @pytest.mark.unit
    @pytest.mark.application
    def test_guests_spread_over_rooms(self, container, guest):
        reservation = container.reservations.create_reservation(
            guest_id=guest.guest_id,
            check_in=TODAY,
            check_out=TODAY + timedelta(days=1),
            room_selections=[RoomSelection(room_type=RoomTypeCode.SINGLE, quantity=2)],
            adults=3,
        )
        assert [a.guest_count for a in reservation.room_assignments] == [2, 1]
        assert reservation.room_numbers() == ["101", "102"]

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    def test_check_in_in_past_rejected(self, container, guest):
        with pytest.raises(InvalidDateRange):
            _book(container, guest.guest_id, check_in=TODAY - timedelta(days=1))

    @pytest.mark.unit
    @pytest.mark.application
    def test_party_too_large_for_rooms(self, container, guest):
        with pytest.raises(OccupancyExceeded):
            _book(container, guest.guest_id, adults=3)
        assert container.reservation_repo.find_all() == []

    @pytest.mark.unit
    @pytest.mark.application
    def test_no_capacity_left(self, container, guest):
        _book(container, guest.guest_id, room_type=RoomTypeCode.PENTHOUSE)
        with pytest.raises(InsufficientCapacity) as exc_info:
            _book(container, _new_guest(container), room_type=RoomTypeCode.PENTHOUSE, check_in=TODAY + timedelta(days=1))
        assert exc_info.value.requested == 1
        assert exc_info.value.available == 0

    @pytest.mark.integration
    @pytest.mark.application
    def test_failed_creation_rolls_back(self, container, member, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(container.loyalty, "redeem_points", boom)
        with pytest.raises(RuntimeError):
            _book(container, member.guest_id, redeem_points=100)

        assert container.reservation_repo.find_all() == []
        assert container.room_repo.find_by_number("101").status == RoomStatus.AVAILABLE
        assert container.loyalty.get_account(member.loyalty_number).points_balance == 100

    @pytest.mark.integration
    @pytest.mark.application
    def test_concurrent_bookings_have_one_winner(self, container):
        guest_ids = [_new_guest(container, last_name=f"Hopper{i}") for i in range(8)]
        barrier = threading.Barrier(8)
        winners, losers, unexpected = [], [], []

        def attempt(guest_id):
            barrier.wait()
            try:
                winners.append(_book(container, guest_id, room_type=RoomTypeCode.PENTHOUSE))
            except InsufficientCapacity as e:
                losers.append(e)
            except Exception as e:
                unexpected.append(e)

        threads = [threading.Thread(target=attempt, args=(guest_id,)) for guest_id in guest_ids]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert unexpected == []
        assert len(winners) == 1
        assert len(losers) == 7
        assert len(container.reservation_repo.find_all()) == 1

    @pytest.mark.unit
    @pytest.mark.application
    def test_confirmation_number_collision_retried(self, clock):
        numbers = iter(["RES-AAAAAAAA", "RES-AAAAAAAA", "RES-BBBBBBBB"])
        container = build_container(Settings(), confirmation_number_factory=lambda: next(numbers), clock=clock)
        first = _book(container, _new_guest(container))
        second = _book(container, _new_guest(container, "Alan", "Turing"))
        assert first.confirmation_number == "RES-AAAAAAAA"
        assert second.confirmation_number == "RES-BBBBBBBB"

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    def test_confirmation_numbers_exhausted(self, clock):
        container = build_container(Settings(), confirmation_number_factory=lambda: "RES-SAMESAME", clock=clock)
        _book(container, _new_guest(container))
        with pytest.raises(DuplicateConfirmationNumber):
            _book(container, _new_guest(container, "Alan", "Turing"))
        assert len(container.reservation_repo.find_all()) == 1
        assert container.room_repo.find_by_number("102").status == RoomStatus.AVAILABLE

    @pytest.mark.integration
    @pytest.mark.application
    def test_full_stay(self, container, guest, clock):
        reservation = _book(container, guest.guest_id)
        container.reservations.check_in(reservation.reservation_id)
        assert container.room_repo.find_by_number("101").status == RoomStatus.OCCUPIED

        with pytest.raises(OutstandingBalance):
            container.reservations.check_out(reservation.reservation_id)

        container.reservations.record_payment(reservation.reservation_id, Decimal("226.00"), PaymentMethod.CARD)
        clock.advance(2)
        checked_out = container.reservations.check_out(reservation.reservation_id)
        assert checked_out.status == ReservationStatus.CHECKED_OUT
        assert container.room_repo.find_by_number("101").status == RoomStatus.CLEANING

    @pytest.mark.unit
    @pytest.mark.application
    def test_cancel_checked_in_fails(self, container, guest):
        reservation = _book(container, guest.guest_id)
        container.reservations.check_in(reservation.reservation_id)
        with pytest.raises(IllegalStatusTransition):
            container.reservations.cancel_reservation(reservation.reservation_id, "Too late")

    @pytest.mark.unit
    @pytest.mark.application
    def test_cancel_releases_room(self, container, guest):
        reservation = _book(container, guest.guest_id, room_type=RoomTypeCode.PENTHOUSE)
        cancelled = container.reservations.cancel_reservation(reservation.reservation_id, "Plans changed")
        assert cancelled.status == ReservationStatus.CANCELLED
        assert cancelled.cancellation_reason == "Plans changed"
        assert container.room_repo.find_by_number("401").status == RoomStatus.AVAILABLE
        assert container.availability.is_room_available("401", _stay())

    @pytest.mark.unit
    @pytest.mark.application
    def test_no_show_releases_room(self, container, guest):
        reservation = _book(container, guest.guest_id, room_type=RoomTypeCode.PENTHOUSE)
        container.reservations.mark_no_show(reservation.reservation_id)
        assert container.reservations.get_reservation(reservation.reservation_id).status == ReservationStatus.NO_SHOW
        assert container.availability.is_room_available("401", _stay())

    @pytest.mark.unit
    @pytest.mark.application
    def test_unknown_reservation_returns_none(self, container):
        assert container.reservations.check_in(uuid4()) is None
        assert container.reservations.cancel_reservation(uuid4()) is None
        assert container.reservations.record_payment(uuid4(), Decimal("10"), PaymentMethod.CASH) is None

    @pytest.mark.unit
    @pytest.mark.application
    def test_overpayment_is_clamped(self, container, guest):
        reservation = _book(container, guest.guest_id)
        receipt = container.reservations.record_payment(
            reservation.reservation_id, Decimal("500.00"), PaymentMethod.CASH
        )
        assert receipt.payment.amount == Decimal("226.00")
        assert receipt.outstanding_balance == Decimal("0.00")
        with pytest.raises(InvalidPayment):
            container.reservations.record_payment(reservation.reservation_id, Decimal("1.00"), PaymentMethod.CASH)

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    def test_non_positive_payment_rejected(self, container, guest):
        reservation = _book(container, guest.guest_id)
        with pytest.raises(InvalidPayment):
            container.reservations.record_payment(reservation.reservation_id, Decimal("0"), PaymentMethod.CASH)

    @pytest.mark.unit
    @pytest.mark.application
    def test_payment_earns_points(self, container, member):
        reservation = _book(container, member.guest_id)
        assert reservation.loyalty_number == member.loyalty_number
        receipt = container.reservations.record_payment(
            reservation.reservation_id, Decimal("226.00"), PaymentMethod.CARD
        )
        assert receipt.points_earned == 226
        assert container.loyalty.get_account(member.loyalty_number).points_balance == 326

    @pytest.mark.unit
    @pytest.mark.application
    def test_points_payment_debits_balance(self, container, member):
        container.loyalty.award_bonus(member.loyalty_number, 30000, "Status match")
        reservation = _book(container, member.guest_id)
        receipt = container.reservations.record_payment(
            reservation.reservation_id, Decimal("100.00"), PaymentMethod.LOYALTY_POINTS
        )
        assert receipt.points_earned == 0
        assert receipt.points_redeemed == 10000
        assert receipt.outstanding_balance == Decimal("126.00")
        assert container.loyalty.get_account(member.loyalty_number).points_balance == 20100

        transactions = container.loyalty.get_reservation_transactions(reservation.reservation_id)
        assert [(t.transaction_type, t.points) for t in transactions] == [(LoyaltyTransactionType.REDEEM, -10000)]

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    def test_points_payment_needs_enough_points(self, container, member):
        reservation = _book(container, member.guest_id)
        with pytest.raises(InsufficientLoyaltyPoints):
            container.reservations.record_payment(
                reservation.reservation_id, Decimal("226.00"), PaymentMethod.LOYALTY_POINTS
            )
        with pytest.raises(RedemptionBelowMinimum):
            container.reservations.record_payment(
                reservation.reservation_id, Decimal("0.50"), PaymentMethod.LOYALTY_POINTS
            )

        stored = container.reservations.get_reservation(reservation.reservation_id)
        assert stored.amount_paid == Decimal("0")
        assert stored.payments == []
        assert container.loyalty.get_account(member.loyalty_number).points_balance == 100
        assert container.loyalty.get_reservation_transactions(reservation.reservation_id) == []

    @pytest.mark.unit
    @pytest.mark.application
    def test_points_payment_without_account_fails(self, container, guest):
        reservation = _book(container, guest.guest_id)
        with pytest.raises(LoyaltyAccountNotFound):
            container.reservations.record_payment(
                reservation.reservation_id, Decimal("10.00"), PaymentMethod.LOYALTY_POINTS
            )
        assert container.reservations.get_reservation(reservation.reservation_id).payments == []

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    def test_unknown_guest_cannot_book(self, container):
        with pytest.raises(GuestNotFound):
            _book(container, uuid4())
        assert container.reservation_repo.find_all() == []
        assert container.room_repo.find_by_number("101").status == RoomStatus.AVAILABLE

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.security
    def test_cannot_book_with_another_guests_points(self, container, member):
        other_guest = _new_guest(container)
        with pytest.raises(LoyaltyAccountNotOwned):
            _book(container, other_guest, loyalty_number=member.loyalty_number, redeem_points=100)
        with pytest.raises(LoyaltyAccountNotOwned):
            _book(container, other_guest, loyalty_number=member.loyalty_number)

        assert container.reservation_repo.find_all() == []
        assert container.loyalty.get_account(member.loyalty_number).points_balance == 100

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.security
    def test_loyalty_discount_needs_own_account(self, container, member):
        reservation = _book(container, _new_guest(container))
        with pytest.raises(LoyaltyAccountNotOwned):
            container.reservations.apply_loyalty_discount(reservation.reservation_id, member.loyalty_number, 100)

        stored = container.reservations.get_reservation(reservation.reservation_id)
        assert stored.loyalty_number is None
        assert stored.loyalty_points_used == 0
        assert container.loyalty.get_account(member.loyalty_number).points_balance == 100

    @pytest.mark.unit
    @pytest.mark.application
    def test_admin_discount_within_cap(self, container, guest):
        reservation = _book(container, guest.guest_id)
        discounted = container.reservations.apply_discount(
            reservation.reservation_id, Decimal("15"), AdminRole.ADMIN, applied_by="admin"
        )
        assert discounted.discount_amount == Decimal("30.00")
        assert discounted.tax_amount == Decimal("22.10")
        assert discounted.total_amount == Decimal("192.10")
        assert discounted.discount_applied_by == "admin"

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.security
    def test_discount_role_caps(self, container, guest):
        reservation = _book(container, guest.guest_id)
        with pytest.raises(DiscountExceedsRoleCap):
            container.reservations.apply_discount(reservation.reservation_id, Decimal("20"), AdminRole.ADMIN)
        with pytest.raises(DiscountExceedsRoleCap):
            container.reservations.apply_discount(reservation.reservation_id, Decimal("31"), AdminRole.MANAGER)

        discounted = container.reservations.apply_discount(
            reservation.reservation_id, Decimal("30"), AdminRole.MANAGER
        )
        assert discounted.total_amount == Decimal("158.20")

    @pytest.mark.unit
    @pytest.mark.application
    def test_redeem_points_on_booking(self, container, member):
        container.loyalty.award_bonus(member.loyalty_number, 400, "Birthday")
        reservation = _book(container, member.guest_id, redeem_points=50000)

        assert reservation.loyalty_points_used == 500
        assert reservation.loyalty_discount == Decimal("5.00")
        assert reservation.tax_amount == Decimal("25.35")
        assert reservation.total_amount == Decimal("220.35")
        assert container.loyalty.get_account(member.loyalty_number).points_balance == 0

        transactions = container.loyalty.get_reservation_transactions(reservation.reservation_id)
        assert [(t.transaction_type, t.points) for t in transactions] == [(LoyaltyTransactionType.REDEEM, -500)]

    @pytest.mark.integration
    @pytest.mark.application
    def test_cancel_refunds_redeemed_points(self, container, member):
        container.loyalty.award_bonus(member.loyalty_number, 400, "Birthday")
        reservation = _book(container, member.guest_id, redeem_points=500)
        container.reservations.cancel_reservation(reservation.reservation_id)

        account = container.loyalty.get_account(member.loyalty_number)
        assert account.points_balance == 500
        assert account.lifetime_points == 500
        types = [t.transaction_type for t in container.loyalty.get_reservation_transactions(reservation.reservation_id)]
        assert types == [LoyaltyTransactionType.REDEEM, LoyaltyTransactionType.REFUND]

    @pytest.mark.unit
    @pytest.mark.application
    def test_redeem_without_account_fails(self, container, guest):
        with pytest.raises(LoyaltyAccountNotFound):
            _book(container, guest.guest_id, redeem_points=100)
        with pytest.raises(LoyaltyAccountNotFound):
            _book(container, guest.guest_id, loyalty_number="LOY99999999")

    @pytest.mark.unit
    @pytest.mark.application
    def test_loyalty_discount_applied_once(self, container, member):
        reservation = _book(container, member.guest_id)
        updated = container.reservations.apply_loyalty_discount(
            reservation.reservation_id, member.loyalty_number, 100
        )
        assert updated.loyalty_discount == Decimal("1.00")
        assert updated.total_amount == Decimal("224.87")
        with pytest.raises(ReservationError):
            container.reservations.apply_loyalty_discount(reservation.reservation_id, member.loyalty_number, 100)

    @pytest.mark.unit
    @pytest.mark.application
    def test_update_dates_reprices(self, container, guest):
        reservation = _book(container, guest.guest_id)
        moved = container.reservations.update_dates(
            reservation.reservation_id, date(2030, 1, 5), date(2030, 1, 8)
        )
        assert moved.get_nights() == 3
        assert moved.room_numbers() == ["101"]
        assert moved.total_amount == Decimal("339.00")

    @pytest.mark.unit
    @pytest.mark.application
    def test_update_dates_conflict(self, container, guest):
        first = _book(container, guest.guest_id, room_type=RoomTypeCode.PENTHOUSE)
        _book(container, _new_guest(container), room_type=RoomTypeCode.PENTHOUSE, check_in=date(2030, 1, 5))

        with pytest.raises(InsufficientCapacity):
            container.reservations.update_dates(first.reservation_id, date(2030, 1, 4), date(2030, 1, 6))
        shifted = container.reservations.update_dates(first.reservation_id, date(2030, 1, 2), date(2030, 1, 4))
        assert shifted.date_range.check_in == date(2030, 1, 2)

    @pytest.mark.unit
    @pytest.mark.application
    def test_front_desk_queries(self, container, guest, clock):
        reservation = _book(container, guest.guest_id)
        assert [r.reservation_id for r in container.reservations.todays_check_ins()] == [reservation.reservation_id]
        assert container.reservations.occupancy_rate(TODAY) == Decimal("8.33")

        container.reservations.check_in(reservation.reservation_id)
        assert len(container.reservations.checked_in_with_balance()) == 1
        clock.advance(2)
        assert len(container.reservations.todays_check_outs()) == 1

        stats = container.reservations.statistics()
        assert stats.total_reservations == 1
        assert stats.by_status[ReservationStatus.CHECKED_IN] == 1
        assert stats.outstanding_balance == Decimal("226.00")


# ============================================================================
# APPLICATION LAYER TESTS - LOYALTY LEDGER
# ============================================================================

class TestLoyaltyService:
    """Test loyalty program use cases"""

    @pytest.mark.unit
    @pytest.mark.application
    def test_enroll_credits_welcome_bonus(self, container, member):
        assert member.loyalty_number.startswith("LOY")
        assert len(member.loyalty_number) == 11
        assert member.points_balance == 100
        history = container.loyalty.get_history(member.loyalty_number)
        assert [(t.transaction_type, t.points, t.balance_after) for t in history] == [
            (LoyaltyTransactionType.BONUS, 100, 100)
        ]

    @pytest.mark.unit
    @pytest.mark.application
    def test_enroll_unknown_guest(self, container):
        assert container.loyalty.enroll(uuid4()) is None

    @pytest.mark.unit
    @pytest.mark.application
    def test_enroll_twice(self, container, member):
        with pytest.raises(AlreadyEnrolled):
            container.loyalty.enroll(member.guest_id)

    @pytest.mark.unit
    @pytest.mark.application
    def test_loyalty_number_collision_retried(self, clock):
        numbers = iter(["LOY00000001", "LOY00000001", "LOY00000002"])
        container = build_container(Settings(), loyalty_number_factory=lambda: next(numbers), clock=clock)
        first = container.loyalty.enroll(container.guests.register_guest("Ada", "Lovelace").guest_id)
        second = container.loyalty.enroll(container.guests.register_guest("Alan", "Turing").guest_id)
        assert first.loyalty_number == "LOY00000001"
        assert second.loyalty_number == "LOY00000002"

    @pytest.mark.unit
    @pytest.mark.application
    def test_earn_by_tier(self, container, member):
        assert container.loyalty.earn_points(member.loyalty_number, Decimal("100.00")).points == 100
        container.loyalty.award_bonus(member.loyalty_number, 24800)
        assert container.loyalty.get_account(member.loyalty_number).tier == LoyaltyTier.GOLD
        assert container.loyalty.earn_points(member.loyalty_number, Decimal("100.00")).points == 150

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    def test_tier_boundary(self, container, member):
        container.loyalty.award_bonus(member.loyalty_number, 9899)
        assert container.loyalty.get_account(member.loyalty_number).tier == LoyaltyTier.BRONZE
        container.loyalty.award_bonus(member.loyalty_number, 1)
        assert container.loyalty.get_account(member.loyalty_number).tier == LoyaltyTier.SILVER

    @pytest.mark.unit
    @pytest.mark.application
    def test_redeem_capped_by_balance(self, container, member):
        container.loyalty.award_bonus(member.loyalty_number, 400)
        transaction = container.loyalty.redeem_points(member.loyalty_number, 50000)
        assert transaction.points == -500
        assert transaction.balance_after == 0

    @pytest.mark.unit
    @pytest.mark.application
    def test_redeem_below_minimum(self, container, member):
        with pytest.raises(RedemptionBelowMinimum):
            container.loyalty.redeem_points(member.loyalty_number, 50)

    @pytest.mark.unit
    @pytest.mark.application
    def test_adjustments(self, container, member):
        container.loyalty.adjust_points(member.loyalty_number, 250, "Service recovery")
        account = container.loyalty.get_account(member.loyalty_number)
        assert account.points_balance == 350
        assert account.lifetime_points == 100

        with pytest.raises(InsufficientLoyaltyPoints):
            container.loyalty.adjust_points(member.loyalty_number, -1000, "Correction")
        assert container.loyalty.get_account(member.loyalty_number).points_balance == 350

    @pytest.mark.unit
    @pytest.mark.application
    def test_history_of_unknown_account(self, container):
        with pytest.raises(LoyaltyAccountNotFound):
            container.loyalty.get_history("LOY00000000")

    @pytest.mark.unit
    @pytest.mark.application
    def test_expire_inactive_points(self, clock):
        settings = Settings(loyalty=LoyaltyConfiguration(points_expiration_months=12))
        container = build_container(settings, clock=clock)
        account = container.loyalty.enroll(container.guests.register_guest("Ada", "Lovelace").guest_id)

        assert container.loyalty.expire_inactive_points(as_of=date.today()) == []
        expired = container.loyalty.expire_inactive_points(as_of=date.today() + timedelta(days=400))
        assert [(t.transaction_type, t.points) for t in expired] == [(LoyaltyTransactionType.EXPIRE, -100)]
        assert container.loyalty.get_account(account.loyalty_number).points_balance == 0

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    def test_add_months_clamps_to_month_end(self):
        assert add_months(date(2030, 1, 31), 1) == date(2030, 2, 28)
        assert add_months(date(2030, 11, 15), 3) == date(2031, 2, 15)

    @pytest.mark.unit
    @pytest.mark.application
    def test_stats(self, container, member):
        stats = container.loyalty.stats()
        assert stats.total_accounts == 1
        assert stats.points_outstanding == 100
        assert stats.accounts_by_tier[LoyaltyTier.BRONZE] == 1


# ============================================================================
# APPLICATION LAYER TESTS - WAITLIST & AVAILABILITY EVENTS
# ============================================================================

class TestWaitlistService:
    """Test waitlist use cases"""

    @pytest.mark.unit
    @pytest.mark.application
    def test_add_to_waitlist(self, container, guest):
        entry = container.waitlist.add_to_waitlist(
            guest.guest_id, RoomTypeCode.DOUBLE, date(2030, 1, 10), date(2030, 1, 12), adults=3
        )
        assert entry.status == WaitlistStatus.ACTIVE
        assert container.waitlist.get_room_waitlist(RoomTypeCode.DOUBLE) == [entry]

    @pytest.mark.unit
    @pytest.mark.application
    @pytest.mark.edge_case
    def test_waitlist_party_too_large(self, container, guest):
        with pytest.raises(OccupancyExceeded):
            container.waitlist.add_to_waitlist(
                guest.guest_id, RoomTypeCode.SINGLE, date(2030, 1, 10), date(2030, 1, 12), adults=3
            )

    @pytest.mark.integration
    @pytest.mark.application
    def test_cancellation_notifies_waitlist(self, container, guest):
        reservation = _book(container, guest.guest_id, room_type=RoomTypeCode.PENTHOUSE, check_in=date(2030, 1, 10))
        waiting_guest = container.guests.register_guest("Grace", "Hopper")
        entry = container.waitlist.add_to_waitlist(
            waiting_guest.guest_id, RoomTypeCode.PENTHOUSE, date(2030, 1, 10), date(2030, 1, 12)
        )
        assert entry.notified_at is None

        container.reservations.cancel_reservation(reservation.reservation_id)
        assert container.waitlist.get_waitlist_entry(entry.waitlist_id).notified_at is not None

        converted = container.waitlist.convert_to_reservation(entry.waitlist_id)
        assert converted.status == ReservationStatus.CONFIRMED
        assert converted.room_numbers() == ["401"]
        stored = container.waitlist.get_waitlist_entry(entry.waitlist_id)
        assert stored.status == WaitlistStatus.CONVERTED
        assert stored.converted_reservation_id == converted.reservation_id

    @pytest.mark.integration
    @pytest.mark.application
    def test_check_out_frees_room_from_next_day(self, container, guest):
        reservation = _book(container, guest.guest_id, nights=1)
        same_day = container.waitlist.add_to_waitlist(uuid4(), RoomTypeCode.SINGLE, TODAY, TODAY + timedelta(days=1))
        next_day = container.waitlist.add_to_waitlist(
            uuid4(), RoomTypeCode.SINGLE, TODAY + timedelta(days=1), TODAY + timedelta(days=2)
        )

        container.reservations.check_in(reservation.reservation_id)
        container.reservations.record_payment(reservation.reservation_id, Decimal("113.00"), PaymentMethod.CASH)
        container.reservations.check_out(reservation.reservation_id)

        assert container.waitlist.get_waitlist_entry(same_day.waitlist_id).notified_at is None
        assert container.waitlist.get_waitlist_entry(next_day.waitlist_id).notified_at is not None

    @pytest.mark.unit
    @pytest.mark.application
    def test_cancel_and_expire_entry(self, container, guest):
        entry = container.waitlist.add_to_waitlist(guest.guest_id, RoomTypeCode.SINGLE, date(2030, 1, 10), date(2030, 1, 11))
        assert container.waitlist.cancel_entry(entry.waitlist_id).status == WaitlistStatus.CANCELLED
        assert container.waitlist.expire_entry(uuid4()) is None
        assert container.waitlist.get_active_waitlist() == []

    @pytest.mark.unit
    @pytest.mark.application
    def test_expire_overdue_entries(self, container, guest):
        overdue = container.waitlist.add_to_waitlist(
            guest.guest_id, RoomTypeCode.SINGLE, date(2020, 1, 10), date(2020, 1, 11)
        )
        upcoming = container.waitlist.add_to_waitlist(
            guest.guest_id, RoomTypeCode.SINGLE, date(2030, 1, 10), date(2030, 1, 11)
        )

        expired = container.waitlist.expire_overdue()
        assert [e.waitlist_id for e in expired] == [overdue.waitlist_id]
        assert container.waitlist.get_waitlist_entry(overdue.waitlist_id).status == WaitlistStatus.EXPIRED
        assert container.waitlist.get_active_waitlist() == [upcoming]
        assert container.waitlist.expire_overdue() == []

    @pytest.mark.unit
    @pytest.mark.application
    def test_guest_waitlist(self, container, guest):
        entry = container.waitlist.add_to_waitlist(guest.guest_id, RoomTypeCode.DELUXE, date(2030, 1, 10), date(2030, 1, 11))
        container.waitlist.add_to_waitlist(_new_guest(container), RoomTypeCode.DELUXE, date(2030, 1, 10), date(2030, 1, 11))
        assert container.waitlist.get_guest_waitlist(guest.guest_id) == [entry]


class TestAvailabilityEventChannel:
    """Test in-process event delivery"""

    @pytest.mark.unit
    @pytest.mark.domain
    def test_failing_listener_does_not_stop_delivery(self, caplog):
        channel = AvailabilityEventChannel()
        received = []

        def broken(event):
            raise RuntimeError("listener down")

        channel.subscribe(broken)
        channel.subscribe(received.append)
        channel.subscribe(received.append)
        assert channel.listener_count == 2

        event = RoomAvailabilityEvent(
            room_number="101", room_type=RoomTypeCode.SINGLE, new_status=RoomStatus.AVAILABLE,
            available_from=TODAY, source="CANCELLATION",
        )
        with caplog.at_level(logging.ERROR, logger="domain.events"):
            channel.publish(event)
        assert received == [event]
        assert "failed" in caplog.text

        channel.unsubscribe(broken)
        assert channel.listener_count == 1


# ============================================================================
# INFRASTRUCTURE LAYER TESTS
# ============================================================================

class TestInMemoryRepositories:
    """Test in-memory repositories and the unit of work"""

    @pytest.mark.unit
    @pytest.mark.infrastructure
    def test_duplicate_confirmation_number_rejected(self):
        repo = InMemoryReservationRepository()
        repo.save(Reservation.create(uuid4(), _stay(), GuestCount(adults=1), confirmation_number="RES-00000001"))
        with pytest.raises(DuplicateConfirmationNumber):
            repo.save(Reservation.create(uuid4(), _stay(), GuestCount(adults=1), confirmation_number="RES-00000001"))

    @pytest.mark.unit
    @pytest.mark.infrastructure
    def test_find_overlapping_ignores_cancelled(self):
        repo = InMemoryReservationRepository()
        reservation = Reservation.create(uuid4(), _stay(nights=5), GuestCount(adults=1))
        reservation.assign_room(RoomAssignment(
            room_number="201", room_type=RoomTypeCode.DOUBLE, guest_count=1, room_price=Decimal("150"),
        ))
        repo.save(reservation)
        assert repo.find_overlapping("201", TODAY + timedelta(days=1), TODAY + timedelta(days=2)) == [reservation]

        reservation.cancel("Test")
        repo.save(reservation)
        assert repo.find_overlapping("201", TODAY + timedelta(days=1), TODAY + timedelta(days=2)) == []

    @pytest.mark.unit
    @pytest.mark.infrastructure
    def test_unit_of_work_rolls_back(self, caplog):
        guests = InMemoryGuestRepository()
        rooms = InMemoryRoomRepository()
        rooms.save(Room(room_number="101", room_type=RoomTypeCode.SINGLE, floor=1))
        uow = InMemoryUnitOfWork([guests, rooms])

        with caplog.at_level(logging.WARNING):
            with pytest.raises(RuntimeError):
                with uow.atomic():
                    guests.save(Guest(first_name="Ada", last_name="Lovelace"))
                    room = rooms.find_by_number("101")
                    room.status = RoomStatus.OCCUPIED
                    rooms.save(room)
                    with uow.atomic():
                        raise RuntimeError("payment terminal offline")

        assert guests.find_all() == []
        assert rooms.find_by_number("101").status == RoomStatus.AVAILABLE
        assert "Unit of work rolled back" in caplog.text

    @pytest.mark.unit
    @pytest.mark.infrastructure
    def test_unit_of_work_commits(self):
        guests = InMemoryGuestRepository()
        uow = InMemoryUnitOfWork([guests])
        with uow.atomic():
            guests.save(Guest(first_name="Ada", last_name="Lovelace"))
        assert len(guests.find_all()) == 1


class TestSettings:
    """Test environment-driven configuration"""

    @pytest.mark.unit
    @pytest.mark.infrastructure
    def test_defaults(self):
        settings = Settings()
        assert settings.pricing.tax_rate == Decimal("0.13")
        assert settings.pricing.dynamic_pricing is False
        assert settings.loyalty.max_redemption_points == 10000

    @pytest.mark.unit
    @pytest.mark.infrastructure
    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("KIOSK_PRICING__TAX_RATE", "0.15")
        monkeypatch.setenv("KIOSK_LOYALTY__WELCOME_BONUS", "250")
        monkeypatch.setenv("KIOSK_LOG_LEVEL", "DEBUG")
        settings = Settings()
        assert settings.pricing.tax_rate == Decimal("0.15")
        assert settings.loyalty.welcome_bonus == 250
        assert settings.log_level == "DEBUG"

    @pytest.mark.unit
    @pytest.mark.infrastructure
    def test_container_without_seed(self, clock):
        container = build_container(Settings(seed_rooms=False), clock=clock)
        assert container.room_repo.find_all() == []
        assert container.events.listener_count == 1

    @pytest.mark.unit
    @pytest.mark.infrastructure
    def test_configure_logging_sets_level(self):
        configure_logging("WARNING")
        assert logging.getLogger().level == logging.WARNING
        configure_logging("INFO")
        assert logging.getLogger().level == logging.INFO


class TestSecurity:
    """Test password hashing and tokens"""

    @pytest.mark.unit
    @pytest.mark.security
    def test_password_hash_roundtrip(self):
        hashed = get_password_hash("admin123")
        assert verify_password("admin123", hashed)
        assert not verify_password("wrong", hashed)

    @pytest.mark.unit
    @pytest.mark.security
    @pytest.mark.edge_case
    def test_long_password(self):
        password = "x" * 100
        hashed = get_password_hash(password)
        assert verify_password(password, hashed)
        assert not verify_password("x" * 99, hashed)

    @pytest.mark.unit
    @pytest.mark.security
    def test_token_roundtrip(self):
        security = SecuritySettings()
        token = create_access_token({"sub": "admin", "role": "ADMIN"}, security)
        payload = decode_access_token(token, security)
        assert payload["sub"] == "admin"
        assert payload["role"] == "ADMIN"

    @pytest.mark.unit
    @pytest.mark.security
    def test_expired_token(self):
        security = SecuritySettings()
        token = create_access_token({"sub": "admin"}, security, expires_delta=timedelta(minutes=-1))
        with pytest.raises(JWTError):
            decode_access_token(token, security)


# ============================================================================
# API LAYER TESTS
# ============================================================================

def _register(client) -> str:
    response = client.post("/api/guests", json={"first_name": "Ada", "last_name": "Lovelace"})
    assert response.status_code == 201
    return response.json()["guest_id"]


def _create(client, guest_id, room_type="SINGLE", nights=2, adults=1, **extra):
    payload = {
        "guest_id": guest_id,
        "check_in": str(TODAY),
        "check_out": str(TODAY + timedelta(days=nights)),
        "adults": adults,
        "rooms": [{"room_type": room_type}],
        **extra,
    }
    return client.post("/api/reservations", json=payload)


class TestAPIEndpoints:
    """Test HTTP facade"""

    @pytest.mark.api
    def test_health_check(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.api
    def test_catalog(self, client):
        assert len(client.get("/api/catalog/room-types").json()) == 4
        add_ons = {a["code"]: a for a in client.get("/api/catalog/add-ons").json()}
        assert add_ons["BREAKFAST"]["pricing_model"] == "PER_PERSON_PER_NIGHT"

    @pytest.mark.api
    def test_quote(self, client):
        payload = {
            "check_in": str(TODAY),
            "check_out": str(TODAY + timedelta(days=3)),
            "adults": 2,
            "rooms": [{"room_type": "DOUBLE"}],
            "add_ons": [{"add_on": "BREAKFAST"}],
        }
        response = client.post("/api/quotes", json=payload)
        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["subtotal"]) == Decimal("600.00")
        assert Decimal(body["total"]) == Decimal("678.00")

    @pytest.mark.api
    def test_create_and_look_up_reservation(self, client, auth_headers):
        guest_id = _register(client)
        response = _create(client, guest_id)
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "CONFIRMED"
        assert Decimal(body["total_amount"]) == Decimal("226.00")

        by_code = client.get(f"/api/reservations/code/{body['confirmation_number']}")
        assert by_code.status_code == 200

        assert client.get(f"/api/reservations/{body['reservation_id']}").status_code == 401
        by_id = client.get(f"/api/reservations/{body['reservation_id']}", headers=auth_headers)
        assert by_id.status_code == 200
        assert by_id.json()["rooms"][0]["room_number"] == "101"

    @pytest.mark.api
    @pytest.mark.edge_case
    def test_create_reservation_validation(self, client):
        guest_id = _register(client)
        assert _create(client, guest_id, adults=3).status_code == 400
        bad_dates = client.post("/api/reservations", json={
            "guest_id": guest_id,
            "check_in": str(TODAY),
            "check_out": str(TODAY),
            "adults": 1,
            "rooms": [{"room_type": "SINGLE"}],
        })
        assert bad_dates.status_code == 400
        assert client.post("/api/reservations", json={
            "guest_id": guest_id,
            "check_in": str(TODAY),
            "check_out": str(TODAY + timedelta(days=1)),
            "adults": 1,
            "rooms": [],
        }).status_code == 422

    @pytest.mark.api
    def test_sold_out_is_conflict(self, client):
        guest_id = _register(client)
        assert _create(client, guest_id, room_type="PENTHOUSE").status_code == 201
        assert _create(client, guest_id, room_type="PENTHOUSE").status_code == 409

    @pytest.mark.api
    def test_availability(self, client):
        guest_id = _register(client)
        _create(client, guest_id, room_type="PENTHOUSE")
        params = {"room_type": "PENTHOUSE", "check_in": str(TODAY), "check_out": str(TODAY + timedelta(days=1))}
        assert client.get("/api/availability", params=params).json() == []

        summary = client.get("/api/availability/summary", params={
            "check_in": str(TODAY), "check_out": str(TODAY + timedelta(days=1)),
        }).json()
        assert summary["rooms_by_type"]["PENTHOUSE"] == 0
        assert summary["rooms_by_type"]["SINGLE"] == 4

        bad = client.get("/api/availability", params={**params, "check_out": str(TODAY)})
        assert bad.status_code == 400

    @pytest.mark.api
    def test_suggestions(self, client):
        response = client.get("/api/availability/suggestions", params={
            "check_in": str(TODAY), "check_out": str(TODAY + timedelta(days=2)), "adults": 2,
        })
        assert response.status_code == 200
        assert response.json()[0]["name"] == "Economy"

    @pytest.mark.api
    def test_stay_lifecycle(self, client, auth_headers):
        guest_id = _register(client)
        reservation_id = _create(client, guest_id).json()["reservation_id"]

        assert client.post(f"/api/reservations/{reservation_id}/check-in", headers=auth_headers).status_code == 200
        assert client.post(
            f"/api/reservations/{reservation_id}/cancel", json={"reason": "Too late"}, headers=auth_headers
        ).status_code == 409
        assert client.post(f"/api/reservations/{reservation_id}/check-out", headers=auth_headers).status_code == 409

        payment = client.post(
            f"/api/reservations/{reservation_id}/payments",
            json={"amount": "226.00", "method": "CARD"},
            headers=auth_headers,
        )
        assert payment.status_code == 201
        assert Decimal(payment.json()["outstanding_balance"]) == Decimal("0.00")

        checked_out = client.post(f"/api/reservations/{reservation_id}/check-out", headers=auth_headers)
        assert checked_out.status_code == 200
        assert checked_out.json()["status"] == "CHECKED_OUT"

    @pytest.mark.api
    @pytest.mark.security
    def test_discount_limited_by_role(self, client, auth_headers, manager_headers):
        guest_id = _register(client)
        reservation_id = _create(client, guest_id).json()["reservation_id"]

        admin_attempt = client.post(
            f"/api/reservations/{reservation_id}/discount", json={"percentage": "20"}, headers=auth_headers
        )
        assert admin_attempt.status_code == 400

        manager_attempt = client.post(
            f"/api/reservations/{reservation_id}/discount", json={"percentage": "20"}, headers=manager_headers
        )
        assert manager_attempt.status_code == 200
        assert Decimal(manager_attempt.json()["discount_amount"]) == Decimal("40.00")

    @pytest.mark.api
    def test_not_found(self, client, auth_headers):
        assert client.get(f"/api/reservations/{uuid4()}", headers=auth_headers).status_code == 404
        assert client.post(f"/api/reservations/{uuid4()}/confirm", headers=auth_headers).status_code == 404
        assert client.get("/api/reservations/code/RES-NOTFOUND").status_code == 404
        assert client.get(f"/api/guests/{uuid4()}", headers=auth_headers).status_code == 404

    @pytest.mark.api
    def test_loyalty_endpoints(self, client, auth_headers):
        guest_id = _register(client)
        enrolled = client.post("/api/loyalty/enroll", json={"guest_id": guest_id})
        assert enrolled.status_code == 201
        loyalty_number = enrolled.json()["loyalty_number"]
        assert enrolled.json()["points_balance"] == 100
        assert Decimal(enrolled.json()["points_value"]) == Decimal("1.00")

        assert client.post("/api/loyalty/enroll", json={"guest_id": guest_id}).status_code == 409
        assert client.post("/api/loyalty/enroll", json={"guest_id": str(uuid4())}).status_code == 404

        adjusted = client.post(
            f"/api/loyalty/{loyalty_number}/adjust", json={"points": 50, "reason": "Goodwill"}, headers=auth_headers
        )
        assert adjusted.status_code == 200
        assert adjusted.json()["balance_after"] == 150

        history = client.get(f"/api/loyalty/{loyalty_number}/transactions", headers=auth_headers).json()
        assert [t["transaction_type"] for t in history] == ["BONUS", "ADJUSTMENT"]
        assert client.get("/api/loyalty/LOY00000000/transactions", headers=auth_headers).status_code == 404

    @pytest.mark.api
    @pytest.mark.security
    def test_points_stay_with_their_owner(self, client, auth_headers):
        owner_id = _register(client)
        loyalty_number = client.post("/api/loyalty/enroll", json={"guest_id": owner_id}).json()["loyalty_number"]
        other_id = _register(client)

        quote = {
            "check_in": str(TODAY),
            "check_out": str(TODAY + timedelta(days=2)),
            "adults": 1,
            "rooms": [{"room_type": "SINGLE"}],
            "loyalty_number": loyalty_number,
            "redeem_points": 100,
        }
        assert client.post("/api/quotes", json=quote).status_code == 403
        assert client.post("/api/quotes", json={**quote, "guest_id": other_id}).status_code == 403
        own_quote = client.post("/api/quotes", json={**quote, "guest_id": owner_id})
        assert own_quote.status_code == 200
        assert own_quote.json()["loyalty_points_redeemed"] == 100

        stolen = _create(client, other_id, loyalty_number=loyalty_number, redeem_points=100)
        assert stolen.status_code == 403
        account = client.get(f"/api/loyalty/{loyalty_number}", headers=auth_headers).json()
        assert account["points_balance"] == 100

    @pytest.mark.api
    def test_unknown_guest_cannot_book(self, client):
        assert _create(client, str(uuid4())).status_code == 404

    @pytest.mark.api
    def test_points_payment(self, client, auth_headers):
        guest_id = _register(client)
        client.post("/api/loyalty/enroll", json={"guest_id": guest_id})
        reservation_id = _create(client, guest_id).json()["reservation_id"]

        paid = client.post(
            f"/api/reservations/{reservation_id}/payments",
            json={"amount": "1.00", "method": "LOYALTY_POINTS"},
            headers=auth_headers,
        )
        assert paid.status_code == 201
        assert paid.json()["points_redeemed"] == 100
        assert paid.json()["points_earned"] == 0
        assert Decimal(paid.json()["outstanding_balance"]) == Decimal("225.00")

        broke = client.post(
            f"/api/reservations/{reservation_id}/payments",
            json={"amount": "225.00", "method": "LOYALTY_POINTS"},
            headers=auth_headers,
        )
        assert broke.status_code == 400

    @pytest.mark.api
    def test_waitlist_endpoints(self, client, auth_headers):
        guest_id = _register(client)
        payload = {
            "guest_id": guest_id,
            "room_type": "DELUXE",
            "check_in": str(TODAY + timedelta(days=10)),
            "check_out": str(TODAY + timedelta(days=12)),
            "adults": 2,
        }
        created = client.post("/api/waitlist", json=payload, headers=auth_headers)
        assert created.status_code == 201
        waitlist_id = created.json()["waitlist_id"]

        entries = client.get("/api/waitlist/room-type/DELUXE", headers=auth_headers).json()
        assert [e["waitlist_id"] for e in entries] == [waitlist_id]
        by_guest = client.get(f"/api/waitlist/guest/{guest_id}", headers=auth_headers).json()
        assert [e["waitlist_id"] for e in by_guest] == [waitlist_id]

        converted = client.post(f"/api/waitlist/{waitlist_id}/convert", headers=auth_headers)
        assert converted.status_code == 200
        assert converted.json()["rooms"][0]["room_type"] == "DELUXE"
        assert client.get(f"/api/waitlist/{waitlist_id}", headers=auth_headers).json()["status"] == "CONVERTED"

    @pytest.mark.api
    def test_statistics(self, client, auth_headers):
        guest_id = _register(client)
        _create(client, guest_id)
        stats = client.get("/api/reservations/statistics", headers=auth_headers).json()
        assert stats["total_reservations"] == 1
        assert stats["by_status"]["CONFIRMED"] == 1


class TestAuthentication:
    """Test token issuing and validation"""

    @pytest.mark.api
    @pytest.mark.security
    def test_login_and_me(self, client, manager_headers):
        response = client.get("/users/me", headers=manager_headers)
        assert response.status_code == 200
        assert response.json()["role"] == "MANAGER"

    @pytest.mark.api
    @pytest.mark.security
    def test_wrong_password(self, client):
        response = client.post("/token", data={"username": "admin", "password": "wrong"})
        assert response.status_code == 401

    @pytest.mark.api
    @pytest.mark.security
    def test_invalid_token(self, client):
        response = client.get("/users/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    @pytest.mark.api
    @pytest.mark.security
    def test_forged_role_claim_rejected(self, client, api_container):
        token = create_access_token({"sub": "admin", "role": "MANAGER"}, api_container.settings.security)
        response = client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    @pytest.mark.api
    @pytest.mark.security
    @pytest.mark.edge_case
    def test_unknown_role_claim_rejected(self, client, api_container):
        token = create_access_token({"sub": "admin", "role": "OWNER"}, api_container.settings.security)
        response = client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
