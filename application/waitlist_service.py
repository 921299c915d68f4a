"""Application Services - Waitlist use cases"""
import logging
from datetime import date
from typing import Iterable, List, Optional
from uuid import UUID

from application.availability_service import AvailabilityService
from application.reservation_service import ReservationService
from domain.catalog import get_room_type
from domain.entities import Reservation, WaitlistEntry
from domain.enums import Priority, RoomTypeCode
from domain.events import RoomAvailabilityEvent
from domain.exceptions import InvalidDateRange, OccupancyExceeded
from domain.repositories import UnitOfWork, WaitlistRepository
from domain.value_objects import AddOnSelection, DateRange, GuestCount, RoomSelection

logger = logging.getLogger(__name__)


class WaitlistService:
    """Service for Waitlist business use cases"""

    def __init__(
        self,
        repository: WaitlistRepository,
        availability: AvailabilityService,
        reservations: ReservationService,
        uow: UnitOfWork
    ):
        self.repository = repository
        self.availability = availability
        self.reservations = reservations
        self.uow = uow

    def add_to_waitlist(
        self,
        guest_id: UUID,
        room_type: RoomTypeCode,
        check_in: date,
        check_out: date,
        adults: int = 1,
        children: int = 0,
        priority: Priority = Priority.MEDIUM
    ) -> WaitlistEntry:
        """Add guest to waitlist"""
        if check_out <= check_in:
            raise InvalidDateRange("Check-out must be after check-in")
        guest_count = GuestCount(adults=adults, children=children)
        max_occupancy = get_room_type(room_type).max_occupancy
        if guest_count.total > max_occupancy:
            raise OccupancyExceeded(
                f"{get_room_type(room_type).display_name} holds at most {max_occupancy} guests"
            )

        waitlist_entry = WaitlistEntry.add_to_waitlist(
            guest_id=guest_id,
            room_type=room_type,
            requested_dates=DateRange(check_in=check_in, check_out=check_out),
            guest_count=guest_count,
            priority=priority
        )
        with self.uow.atomic():
            self.repository.save(waitlist_entry)
        logger.info(
            "Guest %s waitlisted for %s on %s - %s",
            guest_id, room_type.value, check_in, check_out,
        )
        return waitlist_entry

    def get_waitlist_entry(self, waitlist_id: UUID) -> Optional[WaitlistEntry]:
        """Get waitlist entry by ID"""
        return self.repository.find_by_id(waitlist_id)

    def get_guest_waitlist(self, guest_id: UUID) -> List[WaitlistEntry]:
        """Get all waitlist entries for a guest"""
        return self.repository.find_by_guest_id(guest_id)

    def get_room_waitlist(self, room_type: RoomTypeCode) -> List[WaitlistEntry]:
        """Get waitlist entries for a room type (sorted by priority)"""
        entries = self.repository.find_active_by_room_type(room_type)
        return sorted(entries, key=lambda e: e.calculate_priority_score(), reverse=True)

    def get_active_waitlist(self) -> List[WaitlistEntry]:
        """Get all active waitlist entries"""
        return self.repository.find_all_active()

    def convert_to_reservation(
        self,
        waitlist_id: UUID,
        add_on_selections: Iterable[AddOnSelection] = (),
        loyalty_number: Optional[str] = None,
        redeem_points: int = 0
    ) -> Optional[Reservation]:
        """Book the waitlisted stay and mark the entry converted"""
        with self.uow.atomic():
            entry = self.repository.find_by_id(waitlist_id)
            if not entry:
                return None
            if entry.is_expired():
                raise ValueError("Cannot convert an expired waitlist entry")

            reservation = self.reservations.create_reservation(
                guest_id=entry.guest_id,
                check_in=entry.requested_dates.check_in,
                check_out=entry.requested_dates.check_out,
                room_selections=[RoomSelection(room_type=entry.room_type)],
                adults=entry.guest_count.adults,
                children=entry.guest_count.children,
                add_on_selections=add_on_selections,
                loyalty_number=loyalty_number,
                redeem_points=redeem_points,
            )
            entry.convert_to_reservation(reservation.reservation_id)
            self.repository.save(entry)

        logger.info(
            "Waitlist entry %s converted to reservation %s",
            waitlist_id, reservation.confirmation_number,
        )
        return reservation

    def expire_entry(self, waitlist_id: UUID) -> Optional[WaitlistEntry]:
        """Mark waitlist entry as expired"""
        with self.uow.atomic():
            entry = self.repository.find_by_id(waitlist_id)
            if not entry:
                return None
            entry.expire()
            return self.repository.save(entry)

    def cancel_entry(self, waitlist_id: UUID) -> Optional[WaitlistEntry]:
        with self.uow.atomic():
            entry = self.repository.find_by_id(waitlist_id)
            if not entry:
                return None
            entry.cancel()
            return self.repository.save(entry)

    def expire_overdue(self) -> List[WaitlistEntry]:
        """Expire every active entry whose requested check-in has passed"""
        expired = []
        with self.uow.atomic():
            for entry in self.repository.find_all_active():
                if entry.is_expired():
                    entry.expire()
                    expired.append(self.repository.save(entry))
        if expired:
            logger.info("Expired %d waitlist entries", len(expired))
        return expired

    def handle_availability_event(self, event: RoomAvailabilityEvent) -> List[WaitlistEntry]:
        """Notify waiting guests whose requested stay now fits the freed room"""
        notified: List[WaitlistEntry] = []
        with self.uow.atomic():
            for entry in self.get_room_waitlist(event.room_type):
                if entry.is_expired():
                    entry.expire()
                    self.repository.save(entry)
                    continue
                if not entry.matches(event.room_type, event.available_from):
                    continue
                if not self.availability.is_room_available(event.room_number, entry.requested_dates):
                    continue
                entry.mark_notified()
                notified.append(self.repository.save(entry))
                logger.info(
                    "Waitlist entry %s notified: room %s free for %s - %s",
                    entry.waitlist_id, event.room_number,
                    entry.requested_dates.check_in, entry.requested_dates.check_out,
                )
        return notified
