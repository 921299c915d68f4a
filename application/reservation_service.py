"""Application Services - Reservation lifecycle use cases"""
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from pydantic import BaseModel

from application.availability_service import AvailabilityService
from application.loyalty_service import LoyaltyService
from application.pricing_service import PricingService
from domain.catalog import get_room_type, role_discount_cap
from domain.entities import Payment, Reservation, Room, RoomAssignment
from domain.enums import (
    AdminRole, PaymentMethod, RequestType, ReservationSource, ReservationStatus, RoomStatus,
)
from domain.events import AvailabilityEventChannel, RoomAvailabilityEvent
from domain.exceptions import (
    DiscountExceedsRoleCap, DuplicateConfirmationNumber, InsufficientCapacity, InvalidDateRange,
    GuestNotFound, InvalidPayment, LoyaltyAccountNotFound, OccupancyExceeded, ReservationError,
)
from domain.repositories import GuestRepository, ReservationRepository, RoomRepository, UnitOfWork
from domain.value_objects import (
    AddOnSelection, DateRange, GuestCount, RoomSelection, SpecialRequest, to_money,
)

logger = logging.getLogger(__name__)


class PaymentReceipt(BaseModel):
    """Result of recording a payment"""
    reservation_id: UUID
    confirmation_number: str
    payment: Payment
    amount_paid: Decimal
    outstanding_balance: Decimal
    points_earned: int = 0
    points_redeemed: int = 0


class ReservationStatistics(BaseModel):
    total_reservations: int
    by_status: Dict[ReservationStatus, int]
    revenue_collected: Decimal
    outstanding_balance: Decimal


class ReservationService:
    """Service for Reservation business use cases.

    Every mutating operation runs inside ``uow.atomic()``; availability
    events are published only after the block has committed.
    """

    def __init__(
        self,
        repository: ReservationRepository,
        room_repo: RoomRepository,
        guest_repo: GuestRepository,
        availability: AvailabilityService,
        pricing: PricingService,
        loyalty: LoyaltyService,
        uow: UnitOfWork,
        events: AvailabilityEventChannel,
        confirmation_number_factory: Callable[[], str] = Reservation.generate_confirmation_number,
        max_confirmation_attempts: int = 10,
        clock: Callable[[], date] = date.today
    ):
        self.repository = repository
        self.room_repo = room_repo
        self.guest_repo = guest_repo
        self.availability = availability
        self.pricing = pricing
        self.loyalty = loyalty
        self.uow = uow
        self.events = events
        self.confirmation_number_factory = confirmation_number_factory
        self.max_confirmation_attempts = max_confirmation_attempts
        self.clock = clock

    # ==================== CREATE ====================
    def create_reservation(
        self,
        guest_id: UUID,
        check_in: date,
        check_out: date,
        room_selections: Sequence[RoomSelection],
        adults: int = 1,
        children: int = 0,
        add_on_selections: Iterable[AddOnSelection] = (),
        loyalty_number: Optional[str] = None,
        redeem_points: int = 0,
        special_requests: Iterable[dict] = (),
        source: ReservationSource = ReservationSource.KIOSK,
        created_by: str = "KIOSK"
    ) -> Reservation:
        """Create a confirmed reservation with assigned rooms, or fail with nothing persisted"""
        date_range = self._validate_new_dates(check_in, check_out)
        guest_count = GuestCount(adults=adults, children=children)
        if not room_selections:
            raise ReservationError("At least one room must be selected")

        with self.uow.atomic():
            if self.guest_repo.find_by_id(guest_id) is None:
                raise GuestNotFound(guest_id)
            assignments = self._assign_rooms(room_selections, date_range, guest_count.total)

            reservation = Reservation.create(
                guest_id=guest_id,
                date_range=date_range,
                guest_count=guest_count,
                confirmation_number=self.confirmation_number_factory(),
                source=source,
                created_by=created_by,
            )
            reservation.room_assignments = assignments
            for selection in add_on_selections:
                reservation.add_add_on(
                    self.pricing.build_add_on_item(selection, date_range.nights(), guest_count.total)
                )
            for request in special_requests:
                reservation.add_special_request(
                    RequestType(str(request["type"]).upper()), request.get("description", "")
                )

            reservation.loyalty_number = self._resolve_loyalty_number(guest_id, loyalty_number)
            if redeem_points > 0:
                if reservation.loyalty_number is None:
                    raise LoyaltyAccountNotFound()
                points, value = self.loyalty.quote_redemption(reservation.loyalty_number, redeem_points)
                reservation.loyalty_points_used = points
                reservation.loyalty_discount = value

            reservation.apply_price_breakdown(self.pricing.recalculate(reservation))
            self._save_with_unique_number(reservation)

            if reservation.loyalty_points_used > 0:
                self.loyalty.redeem_points(
                    reservation.loyalty_number, reservation.loyalty_points_used, reservation.reservation_id
                )

            for room in self._rooms_of(reservation):
                if room.status == RoomStatus.AVAILABLE:
                    room.status = RoomStatus.RESERVED
                    self.room_repo.save(room)

            reservation.confirm()
            self.repository.save(reservation)

        logger.info(
            "Reservation %s created for guest %s: rooms %s, total %s",
            reservation.confirmation_number, guest_id,
            ", ".join(reservation.room_numbers()), reservation.total_amount,
        )
        return reservation

    def _validate_new_dates(self, check_in: date, check_out: date) -> DateRange:
        if check_out <= check_in:
            raise InvalidDateRange("Check-out must be after check-in")
        if check_in < self.clock():
            raise InvalidDateRange("Check-in cannot be in the past")
        return DateRange(check_in=check_in, check_out=check_out)

    def _resolve_loyalty_number(self, guest_id: UUID, loyalty_number: Optional[str]) -> Optional[str]:
        if loyalty_number:
            return self.loyalty.require_owned_account(loyalty_number, guest_id).loyalty_number
        account = self.loyalty.get_account_by_guest(guest_id)
        return account.loyalty_number if account else None

    def _save_with_unique_number(self, reservation: Reservation) -> None:
        for attempt in range(1, self.max_confirmation_attempts + 1):
            try:
                self.repository.save(reservation)
                return
            except DuplicateConfirmationNumber as e:
                logger.warning(
                    "Confirmation number collision on attempt %d: %s", attempt, e.confirmation_number
                )
                reservation.confirmation_number = self.confirmation_number_factory()
        raise DuplicateConfirmationNumber(reservation.confirmation_number)

    @staticmethod
    def _plan_guests(selections: Sequence[RoomSelection], total_guests: int) -> List[Tuple[RoomSelection, int]]:
        """Guests per physical room, in selection order"""
        capacity = 0
        for selection in selections:
            room_type = get_room_type(selection.room_type)
            if selection.guests_per_room is not None and selection.guests_per_room > room_type.max_occupancy:
                raise OccupancyExceeded(
                    f"{room_type.display_name} holds at most {room_type.max_occupancy} guests, "
                    f"{selection.guests_per_room} requested"
                )
            capacity += room_type.max_occupancy * selection.quantity
        if capacity < total_guests:
            raise OccupancyExceeded(
                f"Selected rooms hold {capacity} guests but the party has {total_guests}"
            )

        slots = [s for s in selections for _ in range(s.quantity)]
        counts = [s.guests_per_room or 0 for s in slots]
        flexible = [i for i, s in enumerate(slots) if s.guests_per_room is None]
        remaining = total_guests - sum(counts)
        if remaining < 0 or (remaining > 0 and not flexible):
            raise OccupancyExceeded(
                f"Guests per room add up to {sum(counts)} but the party has {total_guests}"
            )

        # Round-robin over rooms that still have space; earlier rooms get the remainder.
        while remaining > 0:
            open_slots = [
                i for i in flexible if counts[i] < get_room_type(slots[i].room_type).max_occupancy
            ]
            if not open_slots:
                raise OccupancyExceeded(
                    f"Rooms without a guest count cannot hold the remaining {remaining} guests"
                )
            for i in open_slots:
                if remaining == 0:
                    break
                counts[i] += 1
                remaining -= 1
        return list(zip(slots, counts))

    def _assign_rooms(
        self,
        selections: Sequence[RoomSelection],
        date_range: DateRange,
        total_guests: int
    ) -> List[RoomAssignment]:
        plan = self._plan_guests(selections, total_guests)
        taken: set = set()
        assignments: List[RoomAssignment] = []

        for selection in selections:
            free = [
                room for room in self.availability.find_available_rooms(
                    selection.room_type, date_range.check_in, date_range.check_out
                )
                if room.room_number not in taken
            ]
            if len(free) < selection.quantity:
                raise InsufficientCapacity(selection.room_type.value, selection.quantity, len(free))
            for room in free[:selection.quantity]:
                taken.add(room.room_number)
                guests = plan[len(assignments)][1]
                room_price = selection.price_per_night or room.base_price
                assignments.append(RoomAssignment(
                    room_number=room.room_number,
                    room_type=room.room_type,
                    guest_count=guests,
                    room_price=room_price,
                    price_multiplier=self.pricing.average_multiplier(room_price, date_range),
                    line_total=self.pricing.stay_price(room_price, date_range),
                ))
        return assignments

    def _rooms_of(self, reservation: Reservation) -> List[Room]:
        rooms = []
        for room_number in reservation.room_numbers():
            room = self.room_repo.find_by_number(room_number)
            if room is not None:
                rooms.append(room)
        return rooms

    def _publish(self, events: List[RoomAvailabilityEvent]) -> None:
        for event in events:
            self.events.publish(event)

    # ==================== LOOK-UPS ====================
    def get_reservation(self, reservation_id: UUID) -> Optional[Reservation]:
        """Get reservation by ID"""
        return self.repository.find_by_id(reservation_id)

    def get_reservation_by_confirmation_number(self, confirmation_number: str) -> Optional[Reservation]:
        """Get reservation by confirmation number"""
        return self.repository.find_by_confirmation_number(confirmation_number)

    def get_reservations_by_guest(self, guest_id: UUID) -> List[Reservation]:
        """Get all reservations for a guest"""
        return self.repository.find_by_guest_id(guest_id)

    def get_reservations_by_status(self, status: ReservationStatus) -> List[Reservation]:
        return self.repository.find_by_status(status)

    def get_all_reservations(self) -> List[Reservation]:
        """Get all reservations"""
        return self.repository.find_all()

    # ==================== LIFECYCLE ====================
    def confirm_reservation(self, reservation_id: UUID) -> Optional[Reservation]:
        """Confirm a pending reservation"""
        with self.uow.atomic():
            reservation = self.repository.find_by_id(reservation_id)
            if not reservation:
                return None
            reservation.confirm()
            self.repository.save(reservation)
        logger.info("Reservation %s confirmed", reservation.confirmation_number)
        return reservation

    def check_in(self, reservation_id: UUID) -> Optional[Reservation]:
        """Check in guest; rooms become OCCUPIED"""
        with self.uow.atomic():
            reservation = self.repository.find_by_id(reservation_id)
            if not reservation:
                return None
            reservation.check_in(self.clock())
            for room in self._rooms_of(reservation):
                room.status = RoomStatus.OCCUPIED
                self.room_repo.save(room)
            self.repository.save(reservation)
        logger.info("Reservation %s checked in", reservation.confirmation_number)
        return reservation

    def check_out(self, reservation_id: UUID) -> Optional[Reservation]:
        """Check out guest; rooms go to CLEANING and are free from the next day"""
        events: List[RoomAvailabilityEvent] = []
        with self.uow.atomic():
            reservation = self.repository.find_by_id(reservation_id)
            if not reservation:
                return None
            reservation.check_out()
            available_from = self.clock() + timedelta(days=1)
            for room in self._rooms_of(reservation):
                room.status = RoomStatus.CLEANING
                self.room_repo.save(room)
                events.append(RoomAvailabilityEvent(
                    room_number=room.room_number,
                    room_type=room.room_type,
                    new_status=room.status,
                    available_from=available_from,
                    source="CHECK_OUT",
                ))
            self.repository.save(reservation)
        logger.info("Reservation %s checked out", reservation.confirmation_number)
        self._publish(events)
        return reservation

    def cancel_reservation(
        self,
        reservation_id: UUID,
        reason: str = "Guest requested cancellation"
    ) -> Optional[Reservation]:
        """Cancel reservation, release reserved rooms and refund redeemed points"""
        events: List[RoomAvailabilityEvent] = []
        with self.uow.atomic():
            reservation = self.repository.find_by_id(reservation_id)
            if not reservation:
                return None
            reservation.cancel(reason)
            events = self._release_rooms(reservation, "CANCELLATION")

            if reservation.loyalty_points_used > 0 and reservation.loyalty_number:
                self.loyalty.refund_points(
                    reservation.loyalty_number,
                    reservation.loyalty_points_used,
                    reservation.reservation_id,
                    f"Refund for cancelled reservation {reservation.confirmation_number}",
                )
            self.repository.save(reservation)
        logger.info("Reservation %s cancelled: %s", reservation.confirmation_number, reason)
        self._publish(events)
        return reservation

    def mark_no_show(self, reservation_id: UUID) -> Optional[Reservation]:
        """Mark a confirmed guest as no-show and release the rooms"""
        events: List[RoomAvailabilityEvent] = []
        with self.uow.atomic():
            reservation = self.repository.find_by_id(reservation_id)
            if not reservation:
                return None
            reservation.mark_no_show()
            events = self._release_rooms(reservation, "NO_SHOW")
            self.repository.save(reservation)
        logger.info("Reservation %s marked as no-show", reservation.confirmation_number)
        self._publish(events)
        return reservation

    def _release_rooms(self, reservation: Reservation, source: str) -> List[RoomAvailabilityEvent]:
        events = []
        for room in self._rooms_of(reservation):
            if room.status == RoomStatus.RESERVED:
                room.status = RoomStatus.AVAILABLE
                self.room_repo.save(room)
            events.append(RoomAvailabilityEvent(
                room_number=room.room_number,
                room_type=room.room_type,
                new_status=room.status,
                available_from=self.clock(),
                source=source,
            ))
        return events

    # ==================== PAYMENTS ====================
    def record_payment(
        self,
        reservation_id: UUID,
        amount: Decimal,
        method: PaymentMethod,
        processed_by: str = "KIOSK"
    ) -> Optional[PaymentReceipt]:
        """Record a payment; anything above the balance due is not taken.

        LOYALTY_POINTS payments debit the reservation's loyalty account and
        earn nothing.
        """
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidPayment("Payment amount must be positive")

        with self.uow.atomic():
            reservation = self.repository.find_by_id(reservation_id)
            if not reservation:
                return None
            if reservation.status in (ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW):
                raise InvalidPayment(
                    f"Cannot take payment for a {reservation.status.value} reservation"
                )

            outstanding = reservation.outstanding_balance
            if outstanding <= 0:
                raise InvalidPayment(f"Reservation {reservation.confirmation_number} is fully paid")
            if amount > outstanding:
                logger.warning(
                    "Payment of %s on %s exceeds balance; charging %s",
                    amount, reservation.confirmation_number, outstanding,
                )
                amount = outstanding

            points_redeemed = 0
            if method == PaymentMethod.LOYALTY_POINTS:
                if not reservation.loyalty_number:
                    raise LoyaltyAccountNotFound()
                transaction = self.loyalty.pay_with_points(
                    reservation.loyalty_number, amount, reservation.reservation_id
                )
                points_redeemed = -transaction.points

            payment = Payment(amount=amount, method=method, processed_by=processed_by)
            reservation.add_payment(payment)
            self.repository.save(reservation)

            points_earned = 0
            if method != PaymentMethod.LOYALTY_POINTS and reservation.loyalty_number:
                transaction = self.loyalty.earn_points(
                    reservation.loyalty_number, amount, reservation.reservation_id
                )
                points_earned = transaction.points if transaction else 0

        logger.info(
            "Payment of %s by %s on %s, balance %s",
            amount, method.value, reservation.confirmation_number, reservation.outstanding_balance,
        )
        return PaymentReceipt(
            reservation_id=reservation.reservation_id,
            confirmation_number=reservation.confirmation_number,
            payment=payment,
            amount_paid=reservation.amount_paid,
            outstanding_balance=reservation.outstanding_balance,
            points_earned=points_earned,
            points_redeemed=points_redeemed,
        )

    # ==================== DISCOUNTS ====================
    def apply_discount(
        self,
        reservation_id: UUID,
        percentage: Decimal,
        role: AdminRole,
        applied_by: Optional[str] = None
    ) -> Optional[Reservation]:
        """Apply a percentage discount within the role's cap and re-price"""
        percentage = Decimal(str(percentage))
        if percentage < 0:
            raise ReservationError("Discount percentage cannot be negative")
        cap = role_discount_cap(role)
        if percentage > cap:
            raise DiscountExceedsRoleCap(percentage, AdminRole(role).value, cap)

        with self.uow.atomic():
            reservation = self.repository.find_by_id(reservation_id)
            if not reservation:
                return None
            self._require_modifiable(reservation)
            reservation.discount_percentage = percentage
            reservation.discount_applied_by = applied_by or AdminRole(role).value
            reservation.apply_price_breakdown(self.pricing.recalculate(reservation))
            self.repository.save(reservation)

        logger.info(
            "Discount of %s%% applied to %s by %s, total now %s",
            percentage, reservation.confirmation_number,
            reservation.discount_applied_by, reservation.total_amount,
        )
        return reservation

    def apply_loyalty_discount(
        self,
        reservation_id: UUID,
        loyalty_number: str,
        points: int
    ) -> Optional[Reservation]:
        """Redeem points against an existing reservation"""
        with self.uow.atomic():
            reservation = self.repository.find_by_id(reservation_id)
            if not reservation:
                return None
            self._require_modifiable(reservation)
            if reservation.loyalty_points_used > 0:
                raise ReservationError(
                    f"Loyalty points already applied to {reservation.confirmation_number}"
                )

            self.loyalty.require_owned_account(loyalty_number, reservation.guest_id)
            redeemed, value = self.loyalty.quote_redemption(loyalty_number, points)
            reservation.loyalty_number = loyalty_number
            reservation.loyalty_points_used = redeemed
            reservation.loyalty_discount = value
            reservation.apply_price_breakdown(self.pricing.recalculate(reservation))
            self.loyalty.redeem_points(loyalty_number, redeemed, reservation.reservation_id)
            self.repository.save(reservation)
        return reservation

    @staticmethod
    def _require_modifiable(reservation: Reservation) -> None:
        if reservation.status not in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED,
                                      ReservationStatus.CHECKED_IN):
            raise ReservationError(
                f"Reservation {reservation.confirmation_number} is {reservation.status.value}"
            )

    # ==================== MODIFICATION ====================
    def update_dates(self, reservation_id: UUID, check_in: date, check_out: date) -> Optional[Reservation]:
        """Move a booking to new dates keeping its rooms and captured prices"""
        new_range = self._validate_new_dates(check_in, check_out)

        with self.uow.atomic():
            reservation = self.repository.find_by_id(reservation_id)
            if not reservation:
                return None
            for assignment in reservation.room_assignments:
                if not self.availability.is_room_available(
                    assignment.room_number, new_range, exclude_reservation_id=reservation.reservation_id
                ):
                    raise InsufficientCapacity(assignment.room_type.value, 1, 0)

            reservation.reschedule(new_range)
            reservation.apply_price_breakdown(self.pricing.reprice_for_dates(reservation, new_range))
            self.repository.save(reservation)

        logger.info(
            "Reservation %s moved to %s - %s, total %s",
            reservation.confirmation_number, check_in, check_out, reservation.total_amount,
        )
        return reservation

    def add_special_request(
        self,
        reservation_id: UUID,
        request_type: RequestType,
        description: str
    ) -> Optional[SpecialRequest]:
        with self.uow.atomic():
            reservation = self.repository.find_by_id(reservation_id)
            if not reservation:
                return None
            request = reservation.add_special_request(request_type, description)
            self.repository.save(reservation)
        return request

    # ==================== FRONT DESK QUERIES ====================
    def todays_check_ins(self) -> List[Reservation]:
        today = self.clock()
        return [
            r for r in self.repository.find_all()
            if r.date_range.check_in == today
            and r.status in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)
        ]

    def todays_check_outs(self) -> List[Reservation]:
        today = self.clock()
        return [
            r for r in self.repository.find_by_status(ReservationStatus.CHECKED_IN)
            if r.date_range.check_out == today
        ]

    def checked_in_with_balance(self) -> List[Reservation]:
        return [
            r for r in self.repository.find_by_status(ReservationStatus.CHECKED_IN)
            if r.outstanding_balance > 0
        ]

    def statistics(self) -> ReservationStatistics:
        reservations = self.repository.find_all()
        by_status = {status: 0 for status in ReservationStatus}
        for reservation in reservations:
            by_status[reservation.status] += 1
        return ReservationStatistics(
            total_reservations=len(reservations),
            by_status=by_status,
            revenue_collected=to_money(sum((r.amount_paid for r in reservations), Decimal("0"))),
            outstanding_balance=to_money(sum(
                (r.outstanding_balance for r in reservations if r.is_active()), Decimal("0")
            )),
        )

    def occupancy_rate(self, on_date: Optional[date] = None) -> Decimal:
        """Percentage of bookable rooms held by an active reservation on a night"""
        night = on_date or self.clock()
        rooms = [room for room in self.room_repo.find_all() if room.is_bookable()]
        if not rooms:
            return Decimal("0.00")
        held = {
            room_number
            for r in self.repository.find_all()
            if r.is_active() and r.date_range.check_in <= night < r.date_range.check_out
            for room_number in r.room_numbers()
        }
        held_bookable = sum(1 for room in rooms if room.room_number in held)
        return to_money(Decimal(held_bookable) * 100 / len(rooms))
