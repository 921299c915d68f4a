"""Application Services - Guest identity store"""
import logging
from typing import Optional
from uuid import UUID

from domain.entities import Guest
from domain.repositories import GuestRepository, UnitOfWork

logger = logging.getLogger(__name__)


class GuestService:
    """Registers and looks up guests"""

    def __init__(self, repository: GuestRepository, uow: UnitOfWork):
        self.repository = repository
        self.uow = uow

    def register_guest(
        self,
        first_name: str,
        last_name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None
    ) -> Guest:
        if not first_name.strip() or not last_name.strip():
            raise ValueError("Guest first and last name are required")
        guest = Guest(first_name=first_name.strip(), last_name=last_name.strip(), email=email, phone=phone)
        with self.uow.atomic():
            self.repository.save(guest)
        logger.info("Guest %s registered", guest.guest_id)
        return guest

    def get_guest(self, guest_id: UUID) -> Optional[Guest]:
        return self.repository.find_by_id(guest_id)
