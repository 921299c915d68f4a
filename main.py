from fastapi import FastAPI, HTTPException, Depends
from uuid import UUID
from datetime import date
from typing import List, Optional
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Catalog & availability
    RoomTypeResponse, AddOnTypeResponse, RoomResponse, AvailabilitySummaryResponse,
    RoomSuggestionResponse,
    # Pricing
    QuoteRequest, PriceBreakdownResponse, PriceLineResponse,
    # Reservation
    CreateReservationRequest, UpdateDatesRequest, AddSpecialRequestRequest,
    CancelReservationRequest, PaymentRequest, DiscountRequest, LoyaltyDiscountRequest,
    ReservationResponse, SpecialRequestResponse, RoomAssignmentResponse, AddOnLineResponse,
    PaymentResponse, PaymentReceiptResponse, ReservationStatisticsResponse,
    # Guests
    RegisterGuestRequest, GuestResponse,
    # Loyalty
    EnrollRequest, AdjustPointsRequest, LoyaltyAccountResponse, LoyaltyTransactionResponse,
    # Waitlist
    CreateWaitlistRequest, WaitlistResponse,
    # Auth
    Token, UserResponse
)

from api.dependencies import (
    admin_users_db, get_availability_service, get_container, get_current_active_user, get_guest_service,
    get_loyalty_service, get_pricing_service, get_reservation_service, get_user,
    get_waitlist_service,
)
from infrastructure.container import ServiceContainer, build_container
from infrastructure.logging_config import configure_logging
from infrastructure.security import verify_password, create_access_token
from infrastructure.settings import get_settings
from domain.auth import AdminUser

from application.availability_service import AvailabilityService
from application.guest_service import GuestService
from application.loyalty_service import LoyaltyService
from application.pricing_service import PricingService
from application.reservation_service import ReservationService
from application.waitlist_service import WaitlistService
from domain.catalog import ADD_ON_TYPES, ROOM_TYPES
from domain.entities import LoyaltyAccount, Payment, Reservation, WaitlistEntry
from domain.enums import ReservationStatus, RoomTypeCode
from domain.exceptions import (
    AlreadyEnrolled, DuplicateConfirmationNumber, GuestNotFound, IllegalStatusTransition,
    InsufficientCapacity, LoyaltyAccountNotFound, LoyaltyAccountNotOwned, OutstandingBalance,
)
from domain.pricing_rules import PriceBreakdown
from domain.value_objects import DateRange

settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(
    title="Hotel Kiosk Reservation API",
    description="Pricing, reservation lifecycle, loyalty and availability for the hotel kiosk",
    version="1.0.0"
)
app.state.container = build_container(settings)

CONFLICT_ERRORS = (
    IllegalStatusTransition, OutstandingBalance, InsufficientCapacity,
    DuplicateConfirmationNumber, AlreadyEnrolled,
)


def _http_error(e: ValueError) -> HTTPException:
    """Map a domain error to an HTTP error"""
    if isinstance(e, (LoyaltyAccountNotFound, GuestNotFound)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, LoyaltyAccountNotOwned):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, CONFLICT_ERRORS):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _date_range(check_in: date, check_out: date) -> DateRange:
    if check_out <= check_in:
        raise HTTPException(status_code=400, detail="Check-out must be after check-in")
    return DateRange(check_in=check_in, check_out=check_out)

# ============================================================================
# HEALTH & CATALOG ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/catalog/room-types", response_model=List[RoomTypeResponse], tags=["Catalog"])
def get_room_types():
    """Room types with occupancy and nightly price"""
    return [RoomTypeResponse(**room_type.model_dump()) for room_type in ROOM_TYPES.values()]

@app.get("/api/catalog/add-ons", response_model=List[AddOnTypeResponse], tags=["Catalog"])
def get_add_ons():
    return [AddOnTypeResponse(**add_on.model_dump()) for add_on in ADD_ON_TYPES.values()]

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    container: ServiceContainer = Depends(get_container)
):
    user = get_user(admin_users_db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token = create_access_token(
        data={"sub": user.username, "role": user.role.value},
        security=container.settings.security
    )
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
def read_users_me(current_user: AdminUser = Depends(get_current_active_user)):
    return current_user

# ============================================================================
# AVAILABILITY ENDPOINTS (kiosk)
# ============================================================================

@app.get("/api/availability", response_model=List[RoomResponse], tags=["Availability"])
def find_available_rooms(
    room_type: RoomTypeCode,
    check_in: date,
    check_out: date,
    service: AvailabilityService = Depends(get_availability_service)
):
    """Rooms of a type free for the whole stay"""
    try:
        rooms = service.find_available_rooms(room_type, check_in, check_out)
    except ValueError as e:
        raise _http_error(e)
    return [
        RoomResponse(
            room_number=room.room_number,
            room_type=room.room_type,
            floor=room.floor,
            status=room.status,
            base_price=room.base_price,
            max_occupancy=room.max_occupancy,
        )
        for room in rooms
    ]

@app.get("/api/availability/summary", response_model=AvailabilitySummaryResponse, tags=["Availability"])
def availability_summary(
    check_in: date,
    check_out: date,
    service: AvailabilityService = Depends(get_availability_service)
):
    date_range = _date_range(check_in, check_out)
    return AvailabilitySummaryResponse(
        check_in=check_in,
        check_out=check_out,
        rooms_by_type=service.availability_by_type(date_range),
    )

@app.get("/api/availability/suggestions", response_model=List[RoomSuggestionResponse], tags=["Availability"])
def suggest_rooms(
    check_in: date,
    check_out: date,
    adults: int = 1,
    children: int = 0,
    service: AvailabilityService = Depends(get_availability_service)
):
    """Room combinations for a group"""
    date_range = _date_range(check_in, check_out)
    return [
        RoomSuggestionResponse(
            name=s.name,
            description=s.description,
            rooms=s.rooms,
            total_capacity=s.total_capacity,
            total_price=s.total_price,
        )
        for s in service.suggest_rooms_for_group(adults, children, date_range)
    ]

# ============================================================================
# PRICING ENDPOINTS (kiosk)
# ============================================================================

@app.post("/api/quotes", response_model=PriceBreakdownResponse, tags=["Pricing"])
def quote(
    request: QuoteRequest,
    pricing: PricingService = Depends(get_pricing_service),
    loyalty: LoyaltyService = Depends(get_loyalty_service)
):
    """Price a stay without booking it"""
    try:
        date_range = _date_range(request.check_in, request.check_out)
        redeemed = 0
        if request.redeem_points > 0:
            if not request.loyalty_number:
                raise LoyaltyAccountNotFound()
            loyalty.require_owned_account(request.loyalty_number, request.guest_id)
            redeemed, _ = loyalty.quote_redemption(request.loyalty_number, request.redeem_points)
        breakdown = pricing.price(
            request.rooms,
            request.add_ons,
            date_range=date_range,
            guests=request.adults + request.children,
            redeemed_points=redeemed,
        )
    except ValueError as e:
        raise _http_error(e)
    return _breakdown_to_response(breakdown)

# ============================================================================
# RESERVATION ENDPOINTS
# ============================================================================

@app.post("/api/reservations", response_model=ReservationResponse, status_code=201, tags=["Reservations"])
def create_reservation(
    request: CreateReservationRequest,
    service: ReservationService = Depends(get_reservation_service)
):
    """Create new reservation from the kiosk"""
    try:
        special_requests = [{"type": req.type.value, "description": req.description} for req in request.special_requests]
        reservation = service.create_reservation(
            guest_id=request.guest_id,
            check_in=request.check_in,
            check_out=request.check_out,
            room_selections=request.rooms,
            adults=request.adults,
            children=request.children,
            add_on_selections=request.add_ons,
            loyalty_number=request.loyalty_number,
            redeem_points=request.redeem_points,
            special_requests=special_requests,
        )
        return _reservation_to_response(reservation)
    except ValueError as e:
        raise _http_error(e)

@app.get("/api/reservations/code/{confirmation_number}", response_model=ReservationResponse, tags=["Reservations"])
def get_reservation_by_confirmation_number(
    confirmation_number: str,
    service: ReservationService = Depends(get_reservation_service)
):
    """Kiosk look-up by confirmation number"""
    reservation = service.get_reservation_by_confirmation_number(confirmation_number)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _reservation_to_response(reservation)

@app.get("/api/reservations", response_model=List[ReservationResponse], tags=["Reservations"])
def get_all_reservations(
    status: Optional[ReservationStatus] = None,
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Get all reservations, optionally by status"""
    if status is not None:
        reservations = service.get_reservations_by_status(status)
    else:
        reservations = service.get_all_reservations()
    return [_reservation_to_response(r) for r in reservations]

@app.get("/api/reservations/statistics", response_model=ReservationStatisticsResponse, tags=["Front Desk"])
def reservation_statistics(
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    stats = service.statistics()
    return ReservationStatisticsResponse(**stats.model_dump(), occupancy_rate=service.occupancy_rate())

@app.get("/api/reservations/arrivals", response_model=List[ReservationResponse], tags=["Front Desk"])
def todays_arrivals(
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    return [_reservation_to_response(r) for r in service.todays_check_ins()]

@app.get("/api/reservations/departures", response_model=List[ReservationResponse], tags=["Front Desk"])
def todays_departures(
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    return [_reservation_to_response(r) for r in service.todays_check_outs()]

@app.get("/api/reservations/balances", response_model=List[ReservationResponse], tags=["Front Desk"])
def in_house_balances(
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Checked-in guests who still owe money"""
    return [_reservation_to_response(r) for r in service.checked_in_with_balance()]

@app.get("/api/reservations/guest/{guest_id}", response_model=List[ReservationResponse], tags=["Reservations"])
def get_guest_reservations(
    guest_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Get all reservations for a guest"""
    return [_reservation_to_response(r) for r in service.get_reservations_by_guest(guest_id)]

@app.get("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
def get_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Get reservation by ID"""
    reservation = service.get_reservation(reservation_id)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _reservation_to_response(reservation)

@app.put("/api/reservations/{reservation_id}/dates", response_model=ReservationResponse, tags=["Reservations"])
def update_dates(
    reservation_id: UUID,
    request: UpdateDatesRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Move a reservation to new dates"""
    try:
        reservation = service.update_dates(reservation_id, request.check_in, request.check_out)
    except ValueError as e:
        raise _http_error(e)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/special-requests", response_model=SpecialRequestResponse, tags=["Reservations"])
def add_special_request(
    reservation_id: UUID,
    request: AddSpecialRequestRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Add special request to reservation"""
    special_request = service.add_special_request(
        reservation_id=reservation_id,
        request_type=request.request_type,
        description=request.description
    )
    if not special_request:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _special_request_to_response(special_request)

@app.post("/api/reservations/{reservation_id}/confirm", response_model=ReservationResponse, tags=["Reservations"])
def confirm_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Confirm a pending reservation"""
    try:
        reservation = service.confirm_reservation(reservation_id)
    except ValueError as e:
        raise _http_error(e)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/check-in", response_model=ReservationResponse, tags=["Reservations"])
def check_in_guest(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Check in guest"""
    try:
        reservation = service.check_in(reservation_id)
    except ValueError as e:
        raise _http_error(e)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/check-out", response_model=ReservationResponse, tags=["Reservations"])
def check_out_guest(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Check out guest"""
    try:
        reservation = service.check_out(reservation_id)
    except ValueError as e:
        raise _http_error(e)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/cancel", response_model=ReservationResponse, tags=["Reservations"])
def cancel_reservation(
    reservation_id: UUID,
    request: CancelReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Cancel reservation"""
    try:
        reservation = service.cancel_reservation(reservation_id, reason=request.reason)
    except ValueError as e:
        raise _http_error(e)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/no-show", response_model=ReservationResponse, tags=["Reservations"])
def mark_no_show(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Mark guest as no-show"""
    try:
        reservation = service.mark_no_show(reservation_id)
    except ValueError as e:
        raise _http_error(e)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/payments", response_model=PaymentReceiptResponse, status_code=201, tags=["Payments"])
def record_payment(
    reservation_id: UUID,
    request: PaymentRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Record a payment against a reservation"""
    try:
        receipt = service.record_payment(
            reservation_id, request.amount, request.method, processed_by=current_user.username
        )
    except ValueError as e:
        raise _http_error(e)
    if not receipt:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return PaymentReceiptResponse(
        reservation_id=receipt.reservation_id,
        confirmation_number=receipt.confirmation_number,
        payment=_payment_to_response(receipt.payment),
        amount_paid=receipt.amount_paid,
        outstanding_balance=receipt.outstanding_balance,
        points_earned=receipt.points_earned,
        points_redeemed=receipt.points_redeemed,
    )

@app.post("/api/reservations/{reservation_id}/discount", response_model=ReservationResponse, tags=["Payments"])
def apply_discount(
    reservation_id: UUID,
    request: DiscountRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Apply a percentage discount within the caller's role limit"""
    try:
        reservation = service.apply_discount(
            reservation_id, request.percentage, current_user.role, applied_by=current_user.username
        )
    except ValueError as e:
        raise _http_error(e)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/loyalty-discount", response_model=ReservationResponse, tags=["Payments"])
def apply_loyalty_discount(
    reservation_id: UUID,
    request: LoyaltyDiscountRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    try:
        reservation = service.apply_loyalty_discount(reservation_id, request.loyalty_number, request.points)
    except ValueError as e:
        raise _http_error(e)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _reservation_to_response(reservation)

# ============================================================================
# GUEST ENDPOINTS (kiosk)
# ============================================================================

@app.post("/api/guests", response_model=GuestResponse, status_code=201, tags=["Guests"])
def register_guest(
    request: RegisterGuestRequest,
    service: GuestService = Depends(get_guest_service)
):
    try:
        guest = service.register_guest(request.first_name, request.last_name, request.email, request.phone)
    except ValueError as e:
        raise _http_error(e)
    return GuestResponse(**guest.model_dump())

@app.get("/api/guests/{guest_id}", response_model=GuestResponse, tags=["Guests"])
def get_guest(
    guest_id: UUID,
    service: GuestService = Depends(get_guest_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    guest = service.get_guest(guest_id)
    if not guest:
        raise HTTPException(status_code=404, detail="Guest not found")
    return GuestResponse(**guest.model_dump())

# ============================================================================
# LOYALTY ENDPOINTS
# ============================================================================

@app.post("/api/loyalty/enroll", response_model=LoyaltyAccountResponse, status_code=201, tags=["Loyalty"])
def enroll(
    request: EnrollRequest,
    service: LoyaltyService = Depends(get_loyalty_service)
):
    """Enroll a guest in the loyalty program"""
    try:
        account = service.enroll(request.guest_id)
    except ValueError as e:
        raise _http_error(e)
    if not account:
        raise HTTPException(status_code=404, detail="Guest not found")
    return _account_to_response(account, service)

@app.get("/api/loyalty/{loyalty_number}", response_model=LoyaltyAccountResponse, tags=["Loyalty"])
def get_loyalty_account(
    loyalty_number: str,
    service: LoyaltyService = Depends(get_loyalty_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    account = service.get_account(loyalty_number)
    if not account:
        raise HTTPException(status_code=404, detail="Loyalty account not found")
    return _account_to_response(account, service)

@app.get("/api/loyalty/{loyalty_number}/transactions", response_model=List[LoyaltyTransactionResponse], tags=["Loyalty"])
def get_loyalty_history(
    loyalty_number: str,
    service: LoyaltyService = Depends(get_loyalty_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Transaction history, oldest first"""
    try:
        transactions = service.get_history(loyalty_number)
    except ValueError as e:
        raise _http_error(e)
    return [LoyaltyTransactionResponse(**t.model_dump()) for t in transactions]

@app.post("/api/loyalty/{loyalty_number}/adjust", response_model=LoyaltyTransactionResponse, tags=["Loyalty"])
def adjust_points(
    loyalty_number: str,
    request: AdjustPointsRequest,
    service: LoyaltyService = Depends(get_loyalty_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    try:
        transaction = service.adjust_points(
            loyalty_number, request.points, f"{request.reason} (by {current_user.username})"
        )
    except ValueError as e:
        raise _http_error(e)
    return LoyaltyTransactionResponse(**transaction.model_dump())

# ============================================================================
# WAITLIST ENDPOINTS
# ============================================================================

@app.post("/api/waitlist", response_model=WaitlistResponse, status_code=201, tags=["Waitlist"])
def add_to_waitlist(
    request: CreateWaitlistRequest,
    service: WaitlistService = Depends(get_waitlist_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Add guest to waitlist"""
    try:
        entry = service.add_to_waitlist(
            guest_id=request.guest_id,
            room_type=request.room_type,
            check_in=request.check_in,
            check_out=request.check_out,
            adults=request.adults,
            children=request.children,
            priority=request.priority
        )
    except ValueError as e:
        raise _http_error(e)
    return _waitlist_to_response(entry)

@app.get("/api/waitlist/room-type/{room_type}", response_model=List[WaitlistResponse], tags=["Waitlist"])
def get_room_waitlist(
    room_type: RoomTypeCode,
    service: WaitlistService = Depends(get_waitlist_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Active entries for a room type, highest priority first"""
    return [_waitlist_to_response(e) for e in service.get_room_waitlist(room_type)]

@app.get("/api/waitlist/guest/{guest_id}", response_model=List[WaitlistResponse], tags=["Waitlist"])
def get_guest_waitlist(
    guest_id: UUID,
    service: WaitlistService = Depends(get_waitlist_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    return [_waitlist_to_response(e) for e in service.get_guest_waitlist(guest_id)]

@app.get("/api/waitlist/{waitlist_id}", response_model=WaitlistResponse, tags=["Waitlist"])
def get_waitlist_entry(
    waitlist_id: UUID,
    service: WaitlistService = Depends(get_waitlist_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    entry = service.get_waitlist_entry(waitlist_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Waitlist entry not found")
    return _waitlist_to_response(entry)

@app.post("/api/waitlist/{waitlist_id}/convert", response_model=ReservationResponse, tags=["Waitlist"])
def convert_waitlist(
    waitlist_id: UUID,
    service: WaitlistService = Depends(get_waitlist_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    """Book the waitlisted stay"""
    try:
        reservation = service.convert_to_reservation(waitlist_id)
    except ValueError as e:
        raise _http_error(e)
    if not reservation:
        raise HTTPException(status_code=404, detail="Waitlist entry not found")
    return _reservation_to_response(reservation)

@app.post("/api/waitlist/{waitlist_id}/cancel", response_model=WaitlistResponse, tags=["Waitlist"])
def cancel_waitlist_entry(
    waitlist_id: UUID,
    service: WaitlistService = Depends(get_waitlist_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    entry = service.cancel_entry(waitlist_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Waitlist entry not found")
    return _waitlist_to_response(entry)

@app.post("/api/waitlist/{waitlist_id}/expire", response_model=WaitlistResponse, tags=["Waitlist"])
def expire_waitlist_entry(
    waitlist_id: UUID,
    service: WaitlistService = Depends(get_waitlist_service),
    current_user: AdminUser = Depends(get_current_active_user)
):
    entry = service.expire_entry(waitlist_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Waitlist entry not found")
    return _waitlist_to_response(entry)

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _special_request_to_response(sr) -> SpecialRequestResponse:
    return SpecialRequestResponse(
        request_id=sr.request_id,
        request_type=sr.request_type.value,
        description=sr.description,
        fulfilled=sr.fulfilled,
        notes=sr.notes,
        created_at=sr.created_at
    )

def _payment_to_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        payment_id=payment.payment_id,
        amount=payment.amount,
        method=payment.method,
        paid_at=payment.paid_at
    )

def _reservation_to_response(reservation: Reservation) -> ReservationResponse:
    """Convert Reservation entity to ReservationResponse"""
    return ReservationResponse(
        reservation_id=reservation.reservation_id,
        confirmation_number=reservation.confirmation_number,
        guest_id=reservation.guest_id,
        check_in=reservation.date_range.check_in,
        check_out=reservation.date_range.check_out,
        nights=reservation.get_nights(),
        adults=reservation.guest_count.adults,
        children=reservation.guest_count.children,
        status=reservation.status,
        source=reservation.source,
        rooms=[
            RoomAssignmentResponse(
                room_number=a.room_number,
                room_type=a.room_type,
                guest_count=a.guest_count,
                room_price=a.room_price,
                line_total=a.line_total
            )
            for a in reservation.room_assignments
        ],
        add_ons=[
            AddOnLineResponse(
                add_on=item.add_on,
                pricing_model=item.pricing_model,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price
            )
            for item in reservation.add_ons
        ],
        payments=[_payment_to_response(p) for p in reservation.payments],
        special_requests=[_special_request_to_response(sr) for sr in reservation.special_requests],
        room_subtotal=reservation.room_subtotal,
        add_ons_total=reservation.add_ons_total,
        subtotal=reservation.subtotal,
        discount_percentage=reservation.discount_percentage,
        discount_amount=reservation.discount_amount,
        loyalty_number=reservation.loyalty_number,
        loyalty_points_used=reservation.loyalty_points_used,
        loyalty_discount=reservation.loyalty_discount,
        tax_amount=reservation.tax_amount,
        total_amount=reservation.total_amount,
        amount_paid=reservation.amount_paid,
        outstanding_balance=reservation.outstanding_balance,
        created_at=reservation.created_at,
        version=reservation.version
    )

def _breakdown_to_response(breakdown: PriceBreakdown) -> PriceBreakdownResponse:
    return PriceBreakdownResponse(
        nights=breakdown.nights,
        room_subtotal=breakdown.room_subtotal,
        add_ons_subtotal=breakdown.add_ons_subtotal,
        subtotal=breakdown.subtotal,
        discount_amount=breakdown.discount_amount,
        loyalty_points_redeemed=breakdown.loyalty_points_redeemed,
        loyalty_discount=breakdown.loyalty_discount,
        taxable_amount=breakdown.taxable_amount,
        tax_amount=breakdown.tax_amount,
        total=breakdown.total,
        room_lines=[
            PriceLineResponse(
                code=line.room_type.value,
                quantity=line.quantity,
                unit_price=line.nightly_rate,
                total=line.total
            )
            for line in breakdown.room_lines
        ],
        add_on_lines=[
            PriceLineResponse(
                code=line.add_on.value,
                quantity=line.billable_quantity,
                unit_price=line.unit_price,
                total=line.total
            )
            for line in breakdown.add_on_lines
        ]
    )

def _account_to_response(account: LoyaltyAccount, service: LoyaltyService) -> LoyaltyAccountResponse:
    return LoyaltyAccountResponse(
        loyalty_number=account.loyalty_number,
        guest_id=account.guest_id,
        points_balance=account.points_balance,
        lifetime_points=account.lifetime_points,
        tier=account.tier,
        enrollment_date=account.enrollment_date,
        points_value=service.redemption_value(account.points_balance)
    )

def _waitlist_to_response(entry: WaitlistEntry) -> WaitlistResponse:
    """Convert WaitlistEntry entity to WaitlistResponse"""
    return WaitlistResponse(
        waitlist_id=entry.waitlist_id,
        guest_id=entry.guest_id,
        room_type=entry.room_type,
        check_in=entry.requested_dates.check_in,
        check_out=entry.requested_dates.check_out,
        adults=entry.guest_count.adults,
        children=entry.guest_count.children,
        priority=entry.priority,
        status=entry.status,
        created_at=entry.created_at,
        expires_at=entry.expires_at,
        notified_at=entry.notified_at,
        converted_reservation_id=entry.converted_reservation_id
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
