"""Composition root: builds every repository and service once"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from application.availability_service import AvailabilityService
from application.guest_service import GuestService
from application.loyalty_service import LoyaltyService
from application.pricing_service import PricingService
from application.reservation_service import ReservationService
from application.waitlist_service import WaitlistService
from domain.entities import LoyaltyAccount, Reservation, Room
from domain.enums import RoomTypeCode
from domain.events import AvailabilityEventChannel
from infrastructure.repositories.in_memory_repositories import (
    InMemoryGuestRepository, InMemoryLoyaltyAccountRepository, InMemoryLoyaltyTransactionRepository,
    InMemoryReservationRepository, InMemoryRoomRepository, InMemoryUnitOfWork, InMemoryWaitlistRepository,
)
from infrastructure.settings import Settings

logger = logging.getLogger(__name__)

# Floor layout of the demo hotel: (floor, room type, first number, count)
DEFAULT_INVENTORY = (
    (1, RoomTypeCode.SINGLE, 101, 4),
    (2, RoomTypeCode.DOUBLE, 201, 4),
    (3, RoomTypeCode.DELUXE, 301, 3),
    (4, RoomTypeCode.PENTHOUSE, 401, 1),
)


@dataclass
class ServiceContainer:
    settings: Settings
    events: AvailabilityEventChannel
    uow: InMemoryUnitOfWork
    reservation_repo: InMemoryReservationRepository
    room_repo: InMemoryRoomRepository
    guest_repo: InMemoryGuestRepository
    loyalty_account_repo: InMemoryLoyaltyAccountRepository
    loyalty_transaction_repo: InMemoryLoyaltyTransactionRepository
    waitlist_repo: InMemoryWaitlistRepository
    guests: GuestService
    pricing: PricingService
    availability: AvailabilityService
    loyalty: LoyaltyService
    reservations: ReservationService
    waitlist: WaitlistService


def seed_rooms(room_repo: InMemoryRoomRepository) -> None:
    for floor, room_type, first_number, count in DEFAULT_INVENTORY:
        for number in range(first_number, first_number + count):
            room_repo.save(Room(room_number=str(number), room_type=room_type, floor=floor))


def build_container(
    settings: Optional[Settings] = None,
    confirmation_number_factory: Callable[[], str] = Reservation.generate_confirmation_number,
    loyalty_number_factory: Callable[[], str] = LoyaltyAccount.generate_loyalty_number,
    clock: Callable[[], date] = date.today
) -> ServiceContainer:
    settings = settings or Settings()

    reservation_repo = InMemoryReservationRepository()
    room_repo = InMemoryRoomRepository()
    guest_repo = InMemoryGuestRepository()
    loyalty_account_repo = InMemoryLoyaltyAccountRepository()
    loyalty_transaction_repo = InMemoryLoyaltyTransactionRepository()
    waitlist_repo = InMemoryWaitlistRepository()
    uow = InMemoryUnitOfWork([
        reservation_repo, room_repo, guest_repo,
        loyalty_account_repo, loyalty_transaction_repo, waitlist_repo,
    ])
    events = AvailabilityEventChannel()

    guests = GuestService(guest_repo, uow)
    pricing = PricingService(settings.pricing, settings.loyalty)
    availability = AvailabilityService(room_repo, reservation_repo, pricing)
    loyalty = LoyaltyService(
        loyalty_account_repo, loyalty_transaction_repo, guest_repo, uow, settings.loyalty,
        loyalty_number_factory=loyalty_number_factory,
    )
    reservations = ReservationService(
        reservation_repo, room_repo, guest_repo, availability, pricing, loyalty, uow, events,
        confirmation_number_factory=confirmation_number_factory,
        clock=clock,
    )
    waitlist = WaitlistService(waitlist_repo, availability, reservations, uow)
    events.subscribe(waitlist.handle_availability_event)

    if settings.seed_rooms:
        seed_rooms(room_repo)
        logger.info("Seeded %d rooms", len(room_repo.find_all()))

    return ServiceContainer(
        settings=settings,
        events=events,
        uow=uow,
        reservation_repo=reservation_repo,
        room_repo=room_repo,
        guest_repo=guest_repo,
        loyalty_account_repo=loyalty_account_repo,
        loyalty_transaction_repo=loyalty_transaction_repo,
        waitlist_repo=waitlist_repo,
        guests=guests,
        pricing=pricing,
        availability=availability,
        loyalty=loyalty,
        reservations=reservations,
        waitlist=waitlist,
    )
