"""API Dependencies - Services and Authentication"""
from typing import Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from api.schemas import TokenData
from application.availability_service import AvailabilityService
from application.guest_service import GuestService
from application.loyalty_service import LoyaltyService
from application.pricing_service import PricingService
from application.reservation_service import ReservationService
from application.waitlist_service import WaitlistService
from domain.auth import AdminUser, AdminUserInDB
from domain.enums import AdminRole
from infrastructure.container import ServiceContainer
from infrastructure.security import decode_access_token, get_password_hash

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

# Back-office accounts; passwords are hashed on first access
_admin_users_db = {
    "admin": {
        "username": "admin",
        "full_name": "Front Desk Admin",
        "email": "admin@example.com",
        "plain_password": "admin123",
        "role": AdminRole.ADMIN,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174000",
    },
    "manager": {
        "username": "manager",
        "full_name": "Hotel Manager",
        "email": "manager@example.com",
        "plain_password": "manager123",
        "role": AdminRole.MANAGER,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174001",
    },
}

admin_users_db = _admin_users_db

_password_hash_cache: Dict[str, str] = {}


def _get_hashed_password(username: str) -> str:
    """Lazily hash passwords on first access"""
    if username not in _password_hash_cache:
        user = _admin_users_db.get(username)
        if user and "plain_password" in user:
            _password_hash_cache[username] = get_password_hash(user["plain_password"])
    return _password_hash_cache.get(username, "")


def get_user(db, username: str) -> Optional[AdminUserInDB]:
    if username in db:
        user_dict = db[username].copy()
        if "plain_password" in user_dict:
            user_dict["hashed_password"] = _get_hashed_password(username)
            del user_dict["plain_password"]
        return AdminUserInDB(**user_dict)
    return None


# ============================================================================
# SERVICES
# ============================================================================

def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_guest_service(container: ServiceContainer = Depends(get_container)) -> GuestService:
    return container.guests


def get_reservation_service(container: ServiceContainer = Depends(get_container)) -> ReservationService:
    return container.reservations


def get_availability_service(container: ServiceContainer = Depends(get_container)) -> AvailabilityService:
    return container.availability


def get_pricing_service(container: ServiceContainer = Depends(get_container)) -> PricingService:
    return container.pricing


def get_loyalty_service(container: ServiceContainer = Depends(get_container)) -> LoyaltyService:
    return container.loyalty


def get_waitlist_service(container: ServiceContainer = Depends(get_container)) -> WaitlistService:
    return container.waitlist


# ============================================================================
# AUTHENTICATION
# ============================================================================

def get_current_user(
    token: str = Depends(oauth2_scheme),
    container: ServiceContainer = Depends(get_container)
) -> AdminUserInDB:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token, container.settings.security)
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
        token_data = TokenData(username=username, role=payload.get("role"))
    except (JWTError, ValueError):
        raise credentials_exception

    user = get_user(_admin_users_db, username=token_data.username)
    if user is None or (token_data.role is not None and token_data.role != user.role):
        raise credentials_exception
    return user


def get_current_active_user(current_user: AdminUser = Depends(get_current_user)) -> AdminUser:
    if current_user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user
