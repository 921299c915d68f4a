"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional, List
from uuid import UUID
from datetime import date

from domain.entities import Guest, LoyaltyAccount, LoyaltyTransaction, Reservation, Room, WaitlistEntry
from domain.enums import ReservationStatus, RoomTypeCode


class ReservationRepository(ABC):
    """Repository interface for Reservation Aggregate"""

    @abstractmethod
    def save(self, reservation: Reservation) -> Reservation:
        """Save reservation; confirmation numbers must stay unique"""
        pass

    @abstractmethod
    def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        pass

    @abstractmethod
    def find_by_confirmation_number(self, confirmation_number: str) -> Optional[Reservation]:
        """Find reservation by confirmation number"""
        pass

    @abstractmethod
    def find_by_guest_id(self, guest_id: UUID) -> List[Reservation]:
        """Find reservations by guest ID"""
        pass

    @abstractmethod
    def find_by_status(self, status: ReservationStatus) -> List[Reservation]:
        """Find reservations in a given status"""
        pass

    @abstractmethod
    def find_overlapping(self, room_number: str, check_in: date, check_out: date) -> List[Reservation]:
        """Find active reservations holding a room for any night of [check_in, check_out)"""
        pass

    @abstractmethod
    def find_all(self) -> List[Reservation]:
        """Find all reservations"""
        pass


class RoomRepository(ABC):
    """Repository interface for physical rooms"""

    @abstractmethod
    def save(self, room: Room) -> Room:
        pass

    @abstractmethod
    def find_by_number(self, room_number: str) -> Optional[Room]:
        pass

    @abstractmethod
    def find_by_type(self, room_type: RoomTypeCode) -> List[Room]:
        pass

    @abstractmethod
    def find_all(self) -> List[Room]:
        pass


class GuestRepository(ABC):
    """Repository interface for the guest identity store"""

    @abstractmethod
    def save(self, guest: Guest) -> Guest:
        pass

    @abstractmethod
    def find_by_id(self, guest_id: UUID) -> Optional[Guest]:
        pass

    @abstractmethod
    def find_all(self) -> List[Guest]:
        pass


class LoyaltyAccountRepository(ABC):
    """Repository interface for LoyaltyAccount Aggregate"""

    @abstractmethod
    def save(self, account: LoyaltyAccount) -> LoyaltyAccount:
        """Save account; loyalty numbers must stay unique"""
        pass

    @abstractmethod
    def find_by_id(self, account_id: UUID) -> Optional[LoyaltyAccount]:
        pass

    @abstractmethod
    def find_by_loyalty_number(self, loyalty_number: str) -> Optional[LoyaltyAccount]:
        pass

    @abstractmethod
    def find_by_guest_id(self, guest_id: UUID) -> Optional[LoyaltyAccount]:
        pass

    @abstractmethod
    def find_all(self) -> List[LoyaltyAccount]:
        pass


class LoyaltyTransactionRepository(ABC):
    """Append-only store of loyalty transactions"""

    @abstractmethod
    def append(self, transaction: LoyaltyTransaction) -> LoyaltyTransaction:
        pass

    @abstractmethod
    def find_by_account(self, account_id: UUID) -> List[LoyaltyTransaction]:
        """Transactions of an account, oldest first"""
        pass

    @abstractmethod
    def find_by_reservation(self, reservation_id: UUID) -> List[LoyaltyTransaction]:
        pass


class WaitlistRepository(ABC):
    """Repository interface for Waitlist Aggregate"""

    @abstractmethod
    def save(self, waitlist_entry: WaitlistEntry) -> WaitlistEntry:
        """Save waitlist entry"""
        pass

    @abstractmethod
    def find_by_id(self, waitlist_id: UUID) -> Optional[WaitlistEntry]:
        """Find waitlist entry by ID"""
        pass

    @abstractmethod
    def find_by_guest_id(self, guest_id: UUID) -> List[WaitlistEntry]:
        """Find waitlist entries for a guest"""
        pass

    @abstractmethod
    def find_active_by_room_type(self, room_type: RoomTypeCode) -> List[WaitlistEntry]:
        """Find active waitlist entries for a room type"""
        pass

    @abstractmethod
    def find_all_active(self) -> List[WaitlistEntry]:
        """Find all active waitlist entries"""
        pass

    @abstractmethod
    def find_all(self) -> List[WaitlistEntry]:
        """Find all waitlist entries"""
        pass


class UnitOfWork(ABC):
    """Atomic scope around a check-then-act sequence over the repositories"""

    @abstractmethod
    def atomic(self) -> AbstractContextManager:
        """Serialise the block and undo every repository change if it raises"""
        pass
