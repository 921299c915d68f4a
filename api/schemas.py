"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import Dict, List, Optional

from domain.enums import (
    AddOnCode, AdminRole, LoyaltyTier, LoyaltyTransactionType, PaymentMethod, PricingModel,
    Priority, RequestType, ReservationSource, ReservationStatus, RoomStatus, RoomTypeCode,
    WaitlistStatus,
)
from domain.value_objects import AddOnSelection, RoomSelection


# ============================================================================
# CATALOG & AVAILABILITY SCHEMAS
# ============================================================================

class RoomTypeResponse(BaseModel):
    code: RoomTypeCode
    display_name: str
    max_occupancy: int
    base_price: Decimal


class AddOnTypeResponse(BaseModel):
    code: AddOnCode
    display_name: str
    base_price: Decimal
    pricing_model: PricingModel


class RoomResponse(BaseModel):
    room_number: str
    room_type: RoomTypeCode
    floor: int
    status: RoomStatus
    base_price: Decimal
    max_occupancy: int


class AvailabilitySummaryResponse(BaseModel):
    check_in: date
    check_out: date
    rooms_by_type: Dict[RoomTypeCode, int]


class RoomSuggestionResponse(BaseModel):
    name: str
    description: str
    rooms: Dict[RoomTypeCode, int]
    total_capacity: int
    total_price: Decimal


# ============================================================================
# PRICING SCHEMAS
# ============================================================================

class QuoteRequest(BaseModel):
    """Price quote request DTO"""
    guest_id: Optional[UUID] = None
    check_in: date
    check_out: date
    adults: int = Field(ge=1, le=20)
    children: int = Field(ge=0, le=20, default=0)
    rooms: List[RoomSelection] = Field(min_length=1)
    add_ons: List[AddOnSelection] = []
    loyalty_number: Optional[str] = None
    redeem_points: int = Field(default=0, ge=0)


class PriceLineResponse(BaseModel):
    code: str
    quantity: int
    unit_price: Decimal
    total: Decimal


class PriceBreakdownResponse(BaseModel):
    """Price breakdown response DTO"""
    nights: int
    room_subtotal: Decimal
    add_ons_subtotal: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    loyalty_points_redeemed: int
    loyalty_discount: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    room_lines: List[PriceLineResponse] = []
    add_on_lines: List[PriceLineResponse] = []


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class SpecialRequestRequest(BaseModel):
    """Special request request DTO"""
    type: RequestType
    description: str


class CreateReservationRequest(BaseModel):
    """Create reservation request DTO"""
    guest_id: UUID
    check_in: date
    check_out: date
    adults: int = Field(ge=1, le=20)
    children: int = Field(ge=0, le=20, default=0)
    rooms: List[RoomSelection] = Field(min_length=1)
    add_ons: List[AddOnSelection] = []
    loyalty_number: Optional[str] = None
    redeem_points: int = Field(default=0, ge=0)
    special_requests: List[SpecialRequestRequest] = []


class UpdateDatesRequest(BaseModel):
    check_in: date
    check_out: date


class AddSpecialRequestRequest(BaseModel):
    """Add special request request DTO"""
    request_type: RequestType
    description: str


class CancelReservationRequest(BaseModel):
    """Cancel reservation request DTO"""
    reason: str = "Guest requested cancellation"


class PaymentRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    method: PaymentMethod


class DiscountRequest(BaseModel):
    percentage: Decimal = Field(ge=0, le=100)


class LoyaltyDiscountRequest(BaseModel):
    loyalty_number: str
    points: int = Field(gt=0)


class SpecialRequestResponse(BaseModel):
    """Special request response DTO"""
    request_id: UUID
    request_type: str
    description: str
    fulfilled: bool = False
    notes: Optional[str] = None
    created_at: datetime


class RoomAssignmentResponse(BaseModel):
    room_number: str
    room_type: RoomTypeCode
    guest_count: int
    room_price: Decimal
    line_total: Decimal


class AddOnLineResponse(BaseModel):
    add_on: AddOnCode
    pricing_model: PricingModel
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class PaymentResponse(BaseModel):
    payment_id: UUID
    amount: Decimal
    method: PaymentMethod
    paid_at: datetime


class ReservationResponse(BaseModel):
    """Reservation response DTO"""
    reservation_id: UUID
    confirmation_number: str
    guest_id: UUID
    check_in: date
    check_out: date
    nights: int
    adults: int
    children: int
    status: ReservationStatus
    source: ReservationSource
    rooms: List[RoomAssignmentResponse]
    add_ons: List[AddOnLineResponse]
    payments: List[PaymentResponse]
    special_requests: List[SpecialRequestResponse]
    room_subtotal: Decimal
    add_ons_total: Decimal
    subtotal: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    loyalty_number: Optional[str] = None
    loyalty_points_used: int
    loyalty_discount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    outstanding_balance: Decimal
    created_at: datetime
    version: int


class PaymentReceiptResponse(BaseModel):
    reservation_id: UUID
    confirmation_number: str
    payment: PaymentResponse
    amount_paid: Decimal
    outstanding_balance: Decimal
    points_earned: int
    points_redeemed: int = 0


class ReservationStatisticsResponse(BaseModel):
    total_reservations: int
    by_status: Dict[ReservationStatus, int]
    revenue_collected: Decimal
    outstanding_balance: Decimal
    occupancy_rate: Decimal


# ============================================================================
# GUEST SCHEMAS
# ============================================================================

class RegisterGuestRequest(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None


class GuestResponse(BaseModel):
    guest_id: UUID
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None


# ============================================================================
# LOYALTY SCHEMAS
# ============================================================================

class EnrollRequest(BaseModel):
    guest_id: UUID


class AdjustPointsRequest(BaseModel):
    points: int
    reason: str


class LoyaltyAccountResponse(BaseModel):
    loyalty_number: str
    guest_id: UUID
    points_balance: int
    lifetime_points: int
    tier: LoyaltyTier
    enrollment_date: date
    points_value: Decimal


class LoyaltyTransactionResponse(BaseModel):
    transaction_id: UUID
    transaction_type: LoyaltyTransactionType
    points: int
    balance_after: int
    reservation_id: Optional[UUID] = None
    description: str
    created_at: datetime


# ============================================================================
# WAITLIST SCHEMAS
# ============================================================================

class CreateWaitlistRequest(BaseModel):
    """Create waitlist entry request DTO"""
    guest_id: UUID
    room_type: RoomTypeCode
    check_in: date
    check_out: date
    adults: int = Field(ge=1, le=20)
    children: int = Field(ge=0, le=20, default=0)
    priority: Priority = Priority.MEDIUM


class WaitlistResponse(BaseModel):
    """Waitlist entry response DTO"""
    waitlist_id: UUID
    guest_id: UUID
    room_type: RoomTypeCode
    check_in: date
    check_out: date
    adults: int
    children: int
    priority: Priority
    status: WaitlistStatus
    created_at: datetime
    expires_at: datetime
    notified_at: Optional[datetime] = None
    converted_reservation_id: Optional[UUID] = None


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str


class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None
    role: Optional[AdminRole] = None


class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: AdminRole
    disabled: bool = False
