"""In-Memory Repository Implementations"""
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence
from uuid import UUID
from datetime import date

from domain.repositories import (
    GuestRepository, LoyaltyAccountRepository, LoyaltyTransactionRepository,
    ReservationRepository, RoomRepository, UnitOfWork, WaitlistRepository,
)
from domain.entities import Guest, LoyaltyAccount, LoyaltyTransaction, Reservation, Room, WaitlistEntry
from domain.enums import ReservationStatus, RoomTypeCode, WaitlistStatus
from domain.exceptions import DuplicateConfirmationNumber, DuplicateLoyaltyNumber
from domain.value_objects import DateRange

logger = logging.getLogger(__name__)


class _SnapshotStorage:
    """Dict-backed storage that can be copied and restored by the unit of work"""

    def __init__(self):
        self._storage: Dict[Any, Any] = {}

    def snapshot(self) -> Dict[Any, Any]:
        return {key: value.model_copy(deep=True) for key, value in self._storage.items()}

    def restore(self, state: Dict[Any, Any]) -> None:
        self._storage = state


class InMemoryReservationRepository(_SnapshotStorage, ReservationRepository):
    """In-memory implementation of ReservationRepository"""

    def save(self, reservation: Reservation) -> Reservation:
        """Save reservation to memory"""
        for existing in self._storage.values():
            if (existing.confirmation_number == reservation.confirmation_number
                    and existing.reservation_id != reservation.reservation_id):
                raise DuplicateConfirmationNumber(reservation.confirmation_number)
        self._storage[reservation.reservation_id] = reservation
        return reservation

    def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        return self._storage.get(reservation_id)

    def find_by_confirmation_number(self, confirmation_number: str) -> Optional[Reservation]:
        """Find reservation by confirmation number"""
        for reservation in self._storage.values():
            if reservation.confirmation_number == confirmation_number:
                return reservation
        return None

    def find_by_guest_id(self, guest_id: UUID) -> List[Reservation]:
        """Find reservations by guest ID"""
        return [r for r in self._storage.values() if r.guest_id == guest_id]

    def find_by_status(self, status: ReservationStatus) -> List[Reservation]:
        return [r for r in self._storage.values() if r.status == status]

    def find_overlapping(self, room_number: str, check_in: date, check_out: date) -> List[Reservation]:
        requested = DateRange(check_in=check_in, check_out=check_out)
        return [r for r in self._storage.values() if r.holds_room(room_number, requested)]

    def find_all(self) -> List[Reservation]:
        """Find all reservations"""
        return list(self._storage.values())


class InMemoryRoomRepository(_SnapshotStorage, RoomRepository):
    """In-memory implementation of RoomRepository"""

    def save(self, room: Room) -> Room:
        self._storage[room.room_number] = room
        return room

    def find_by_number(self, room_number: str) -> Optional[Room]:
        return self._storage.get(room_number)

    def find_by_type(self, room_type: RoomTypeCode) -> List[Room]:
        rooms = [room for room in self._storage.values() if room.room_type == room_type]
        return sorted(rooms, key=lambda room: room.room_number)

    def find_all(self) -> List[Room]:
        return sorted(self._storage.values(), key=lambda room: room.room_number)


class InMemoryGuestRepository(_SnapshotStorage, GuestRepository):
    """In-memory implementation of GuestRepository"""

    def save(self, guest: Guest) -> Guest:
        self._storage[guest.guest_id] = guest
        return guest

    def find_by_id(self, guest_id: UUID) -> Optional[Guest]:
        return self._storage.get(guest_id)

    def find_all(self) -> List[Guest]:
        return list(self._storage.values())


class InMemoryLoyaltyAccountRepository(_SnapshotStorage, LoyaltyAccountRepository):
    """In-memory implementation of LoyaltyAccountRepository"""

    def save(self, account: LoyaltyAccount) -> LoyaltyAccount:
        for existing in self._storage.values():
            if (existing.loyalty_number == account.loyalty_number
                    and existing.account_id != account.account_id):
                raise DuplicateLoyaltyNumber(account.loyalty_number)
        self._storage[account.account_id] = account
        return account

    def find_by_id(self, account_id: UUID) -> Optional[LoyaltyAccount]:
        return self._storage.get(account_id)

    def find_by_loyalty_number(self, loyalty_number: str) -> Optional[LoyaltyAccount]:
        for account in self._storage.values():
            if account.loyalty_number == loyalty_number:
                return account
        return None

    def find_by_guest_id(self, guest_id: UUID) -> Optional[LoyaltyAccount]:
        for account in self._storage.values():
            if account.guest_id == guest_id:
                return account
        return None

    def find_all(self) -> List[LoyaltyAccount]:
        return list(self._storage.values())


class InMemoryLoyaltyTransactionRepository(LoyaltyTransactionRepository):
    """In-memory append-only ledger"""

    def __init__(self):
        self._storage: List[LoyaltyTransaction] = []

    def snapshot(self) -> List[LoyaltyTransaction]:
        return list(self._storage)

    def restore(self, state: List[LoyaltyTransaction]) -> None:
        self._storage = state

    def append(self, transaction: LoyaltyTransaction) -> LoyaltyTransaction:
        self._storage.append(transaction)
        return transaction

    def find_by_account(self, account_id: UUID) -> List[LoyaltyTransaction]:
        return [t for t in self._storage if t.account_id == account_id]

    def find_by_reservation(self, reservation_id: UUID) -> List[LoyaltyTransaction]:
        return [t for t in self._storage if t.reservation_id == reservation_id]


class InMemoryWaitlistRepository(_SnapshotStorage, WaitlistRepository):
    """In-memory implementation of WaitlistRepository"""

    def save(self, waitlist_entry: WaitlistEntry) -> WaitlistEntry:
        """Save waitlist entry to memory"""
        self._storage[waitlist_entry.waitlist_id] = waitlist_entry
        return waitlist_entry

    def find_by_id(self, waitlist_id: UUID) -> Optional[WaitlistEntry]:
        """Find waitlist entry by ID"""
        return self._storage.get(waitlist_id)

    def find_by_guest_id(self, guest_id: UUID) -> List[WaitlistEntry]:
        """Find waitlist entries for a guest"""
        return [entry for entry in self._storage.values() if entry.guest_id == guest_id]

    def find_active_by_room_type(self, room_type: RoomTypeCode) -> List[WaitlistEntry]:
        """Find active waitlist entries for a room type"""
        return [
            entry for entry in self._storage.values()
            if entry.room_type == room_type and entry.status == WaitlistStatus.ACTIVE
        ]

    def find_all_active(self) -> List[WaitlistEntry]:
        """Find all active waitlist entries"""
        return [entry for entry in self._storage.values() if entry.status == WaitlistStatus.ACTIVE]

    def find_all(self) -> List[WaitlistEntry]:
        """Find all waitlist entries"""
        return list(self._storage.values())


class InMemoryUnitOfWork(UnitOfWork):
    """Re-entrant lock plus snapshot/rollback over a set of in-memory repositories.

    Only the outermost ``atomic()`` block takes snapshots; nested blocks join
    it, so a failure anywhere rolls back the whole outer operation.

    Each outermost block deep-copies every registered repository, so its cost
    grows with the size of the whole store. Fine for the kiosk's single
    process; a database-backed unit of work would use transactions instead.
    """

    def __init__(self, repositories: Sequence[Any]):
        self._repositories = list(repositories)
        self._lock = threading.RLock()
        self._depth = 0

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            outermost = self._depth == 0
            snapshots = [repo.snapshot() for repo in self._repositories] if outermost else None
            self._depth += 1
            try:
                yield
            except BaseException:
                if outermost:
                    for repo, state in zip(self._repositories, snapshots):
                        repo.restore(state)
                    logger.warning("Unit of work rolled back")
                raise
            finally:
                self._depth -= 1
