"""Availability Checker"""
import logging
import math
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel

from application.pricing_service import PricingService
from domain.catalog import RoomType, get_room_type, suitable_room_types
from domain.entities import Room
from domain.enums import RoomTypeCode
from domain.exceptions import InvalidDateRange
from domain.repositories import ReservationRepository, RoomRepository
from domain.value_objects import DateRange, RoomSelection

logger = logging.getLogger(__name__)


class RoomSuggestion(BaseModel):
    """A ready-made room combination for a group"""
    name: str
    description: str
    rooms: Dict[RoomTypeCode, int]
    total_price: Decimal

    @property
    def total_capacity(self) -> int:
        return sum(get_room_type(rt).max_occupancy * qty for rt, qty in self.rooms.items())


def _date_range(check_in: date, check_out: date) -> DateRange:
    if check_out <= check_in:
        raise InvalidDateRange("Check-out must be after check-in")
    return DateRange(check_in=check_in, check_out=check_out)


class AvailabilityService:
    """Read-only queries over rooms and the reservations that hold them"""

    def __init__(
        self,
        room_repo: RoomRepository,
        reservation_repo: ReservationRepository,
        pricing: PricingService
    ):
        self.room_repo = room_repo
        self.reservation_repo = reservation_repo
        self.pricing = pricing

    def find_available_rooms(self, room_type: RoomTypeCode, check_in: date, check_out: date) -> List[Room]:
        """Rooms of a type with no active reservation overlapping [check_in, check_out)"""
        _date_range(check_in, check_out)
        return [
            room for room in self.room_repo.find_by_type(room_type)
            if room.is_bookable()
            and not self.reservation_repo.find_overlapping(room.room_number, check_in, check_out)
        ]

    def is_room_available(
        self,
        room_number: str,
        date_range: DateRange,
        exclude_reservation_id: Optional[UUID] = None
    ) -> bool:
        room = self.room_repo.find_by_number(room_number)
        if room is None or not room.is_bookable():
            return False
        holders = self.reservation_repo.find_overlapping(
            room_number, date_range.check_in, date_range.check_out
        )
        return all(r.reservation_id == exclude_reservation_id for r in holders)

    def availability_by_type(self, date_range: DateRange) -> Dict[RoomTypeCode, int]:
        return {
            room_type: len(self.find_available_rooms(room_type, date_range.check_in, date_range.check_out))
            for room_type in RoomTypeCode
        }

    def has_availability(self, date_range: DateRange) -> bool:
        return any(count > 0 for count in self.availability_by_type(date_range).values())

    @staticmethod
    def suitable_room_types(total_guests: int) -> List[RoomType]:
        return suitable_room_types(total_guests)

    # ==================== GROUP SUGGESTIONS ====================
    def suggest_rooms_for_group(self, adults: int, children: int, date_range: DateRange) -> List[RoomSuggestion]:
        """Economy, Comfort and Premium combinations that fit the group, cheapest first"""
        total_guests = adults + children
        if total_guests <= 0:
            return []

        availability = self.availability_by_type(date_range)
        candidates = [
            ("Economy", "Minimum rooms needed for your group",
             self._economy_rooms(total_guests, availability)),
        ]
        if total_guests <= 4:
            candidates.append(("Comfort", "More space and privacy",
                               self._comfort_rooms(total_guests, availability)))
        candidates.append(("Premium", "Luxury experience",
                           self._premium_rooms(total_guests, availability)))

        suggestions = [
            RoomSuggestion(
                name=name,
                description=description,
                rooms=rooms,
                total_price=self._stay_total(rooms, date_range),
            )
            for name, description, rooms in candidates
            if rooms
        ]
        suggestions.sort(key=lambda s: s.total_price)
        return suggestions

    def _stay_total(self, rooms: Dict[RoomTypeCode, int], date_range: DateRange) -> Decimal:
        selections = [RoomSelection(room_type=rt, quantity=qty) for rt, qty in rooms.items()]
        return self.pricing.price(selections, date_range=date_range).room_subtotal

    @staticmethod
    def _economy_rooms(total_guests: int, availability: Dict[RoomTypeCode, int]) -> Dict[RoomTypeCode, int]:
        rooms: Dict[RoomTypeCode, int] = {}
        remaining = total_guests

        double_cap = get_room_type(RoomTypeCode.DOUBLE).max_occupancy
        doubles = min(remaining // double_cap, availability.get(RoomTypeCode.DOUBLE, 0))
        if doubles > 0:
            rooms[RoomTypeCode.DOUBLE] = doubles
            remaining -= doubles * double_cap

        if remaining > 0:
            single_cap = get_room_type(RoomTypeCode.SINGLE).max_occupancy
            singles = min(math.ceil(remaining / single_cap), availability.get(RoomTypeCode.SINGLE, 0))
            if singles > 0:
                rooms[RoomTypeCode.SINGLE] = singles
                remaining -= singles * single_cap

        return rooms if remaining <= 0 else {}

    @staticmethod
    def _comfort_rooms(total_guests: int, availability: Dict[RoomTypeCode, int]) -> Dict[RoomTypeCode, int]:
        if total_guests <= 2:
            if availability.get(RoomTypeCode.DELUXE, 0) > 0:
                return {RoomTypeCode.DELUXE: 1}
            if availability.get(RoomTypeCode.DOUBLE, 0) > 0:
                return {RoomTypeCode.DOUBLE: 1}
            return {}
        if availability.get(RoomTypeCode.SINGLE, 0) >= 2:
            return {RoomTypeCode.SINGLE: 2}
        if availability.get(RoomTypeCode.DOUBLE, 0) > 0:
            return {RoomTypeCode.DOUBLE: 1}
        return {}

    @staticmethod
    def _premium_rooms(total_guests: int, availability: Dict[RoomTypeCode, int]) -> Dict[RoomTypeCode, int]:
        if total_guests <= 2 and availability.get(RoomTypeCode.PENTHOUSE, 0) > 0:
            return {RoomTypeCode.PENTHOUSE: 1}
        deluxe_available = availability.get(RoomTypeCode.DELUXE, 0)
        needed = math.ceil(total_guests / get_room_type(RoomTypeCode.DELUXE).max_occupancy)
        if deluxe_available and deluxe_available >= needed:
            return {RoomTypeCode.DELUXE: needed}
        return {}
