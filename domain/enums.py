"""Domain Enums"""
from enum import Enum


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class ReservationSource(str, Enum):
    KIOSK = "KIOSK"
    ADMIN = "ADMIN"


class RoomStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    RESERVED = "RESERVED"
    MAINTENANCE = "MAINTENANCE"
    CLEANING = "CLEANING"


class RoomTypeCode(str, Enum):
    SINGLE = "SINGLE"
    DOUBLE = "DOUBLE"
    DELUXE = "DELUXE"
    PENTHOUSE = "PENTHOUSE"


class AddOnCode(str, Enum):
    WIFI = "WIFI"
    BREAKFAST = "BREAKFAST"
    PARKING = "PARKING"
    SPA = "SPA"


class PricingModel(str, Enum):
    PER_NIGHT = "PER_NIGHT"
    PER_PERSON = "PER_PERSON"
    PER_PERSON_PER_NIGHT = "PER_PERSON_PER_NIGHT"


class LoyaltyTier(str, Enum):
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"


class LoyaltyTransactionType(str, Enum):
    EARN = "EARN"
    REDEEM = "REDEEM"
    BONUS = "BONUS"
    ADJUSTMENT = "ADJUSTMENT"
    EXPIRE = "EXPIRE"
    REFUND = "REFUND"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CARD = "CARD"
    LOYALTY_POINTS = "LOYALTY_POINTS"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class AdminRole(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"


class RequestType(str, Enum):
    EARLY_CHECK_IN = "EARLY_CHECK_IN"
    LATE_CHECK_OUT = "LATE_CHECK_OUT"
    HIGH_FLOOR = "HIGH_FLOOR"
    ACCESSIBLE_ROOM = "ACCESSIBLE_ROOM"
    QUIET_ROOM = "QUIET_ROOM"
    CRIBS = "CRIBS"
    EXTRA_BED = "EXTRA_BED"
    SPECIAL_AMENITIES = "SPECIAL_AMENITIES"


class WaitlistStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CONVERTED = "CONVERTED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class Priority(int, Enum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    URGENT = 4
