"""Domain Exceptions

Every business-rule violation is a ``ReservationError``. It subclasses
``ValueError`` so callers that already treat ``ValueError`` as a bad request
keep working.
"""
from decimal import Decimal
from typing import Optional


class ReservationError(ValueError):
    """Base class for reservation, pricing and loyalty rule violations"""


class InvalidDateRange(ReservationError):
    pass


class OccupancyExceeded(ReservationError):
    pass


class InsufficientCapacity(ReservationError):
    def __init__(self, room_type: str, requested: int, available: int):
        self.room_type = room_type
        self.requested = requested
        self.available = available
        super().__init__(
            f"Only {available} {room_type} room(s) available, but {requested} requested"
        )


class DiscountExceedsRoleCap(ReservationError):
    def __init__(self, percentage: Decimal, role: str, cap: Decimal):
        self.percentage = percentage
        self.role = role
        self.cap = cap
        super().__init__(
            f"Discount of {percentage}% exceeds the {cap}% limit for role {role}"
        )


class InsufficientLoyaltyPoints(ReservationError):
    pass


class RedemptionBelowMinimum(ReservationError):
    def __init__(self, points: int, minimum: int):
        self.points = points
        self.minimum = minimum
        super().__init__(f"Minimum redemption is {minimum} points, got {points}")


class RedemptionExceedsAmountDue(ReservationError):
    pass


class OutstandingBalance(ReservationError):
    def __init__(self, balance: Decimal):
        self.balance = balance
        super().__init__(f"Cannot check out with outstanding balance of {balance}")


class IllegalStatusTransition(ReservationError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition from {current} to {target}")


class DuplicateConfirmationNumber(ReservationError):
    def __init__(self, confirmation_number: str):
        self.confirmation_number = confirmation_number
        super().__init__(f"Confirmation number {confirmation_number} already exists")


class DuplicateLoyaltyNumber(ReservationError):
    def __init__(self, loyalty_number: str):
        self.loyalty_number = loyalty_number
        super().__init__(f"Loyalty number {loyalty_number} already exists")


class AlreadyEnrolled(ReservationError):
    pass


class LoyaltyAccountNotFound(ReservationError):
    def __init__(self, reference: Optional[str] = None):
        self.reference = reference
        if reference:
            super().__init__(f"Loyalty account {reference} not found")
        else:
            super().__init__("Loyalty account not found")


class InvalidPayment(ReservationError):
    pass


class LoyaltyAccountNotOwned(ReservationError):
    def __init__(self, loyalty_number: str, guest_id=None):
        self.loyalty_number = loyalty_number
        self.guest_id = guest_id
        super().__init__(f"Loyalty account {loyalty_number} does not belong to guest {guest_id}")


class GuestNotFound(ReservationError):
    def __init__(self, guest_id):
        self.guest_id = guest_id
        super().__init__(f"Guest {guest_id} not found")
