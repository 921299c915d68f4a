"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID, uuid4
from typing import Iterator, List, Optional, Union

from domain.enums import AddOnCode, RequestType, RoomTypeCode


CENT = Decimal("0.01")


def to_money(value: Union[Decimal, int, str, float]) -> Decimal:
    """Round a currency amount half-up to whole cents"""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """Half-open interval overlap: [start_a, end_a) and [start_b, end_b)"""
    return start_a < end_b and end_a > start_b


class DateRange(BaseModel):
    """Value Object for date ranges"""
    check_in: date
    check_out: date

    @validator('check_out')
    def check_out_after_check_in(cls, v, values):
        if 'check_in' in values and v <= values['check_in']:
            raise ValueError('Check-out must be after check-in')
        return v

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    def iter_nights(self) -> Iterator[date]:
        """Yield the date of every night in the stay"""
        current = self.check_in
        while current < self.check_out:
            yield current
            current += timedelta(days=1)

    def overlaps(self, other: "DateRange") -> bool:
        """Check whether two stays share at least one night"""
        return ranges_overlap(self.check_in, self.check_out, other.check_in, other.check_out)

    class Config:
        frozen = True


class GuestCount(BaseModel):
    """Value Object for guest count"""
    adults: int = Field(ge=1, le=20)
    children: int = Field(ge=0, le=20, default=0)

    @property
    def total(self) -> int:
        return self.adults + self.children

    class Config:
        frozen = True


class RoomSelection(BaseModel):
    """A requested quantity of one room type.

    ``guests_per_room`` is optional; when omitted the booking's guests are
    spread across the selected rooms. ``price_per_night`` pins the nightly
    rate shown to the guest at selection time.
    """
    room_type: RoomTypeCode
    quantity: int = Field(default=1, ge=1)
    guests_per_room: Optional[int] = Field(default=None, ge=1)
    price_per_night: Optional[Decimal] = Field(default=None, gt=0)

    class Config:
        frozen = True


class AddOnSelection(BaseModel):
    """A requested add-on service"""
    add_on: AddOnCode
    quantity: int = Field(default=1, ge=1)
    guests: Optional[int] = Field(default=None, ge=1)

    class Config:
        frozen = True


class SeasonalPeriod(BaseModel):
    """Named peak period, both ends inclusive"""
    name: str
    start_date: date
    end_date: date
    multiplier: Optional[Decimal] = Field(default=None, gt=0)

    @validator('end_date')
    def end_not_before_start(cls, v, values):
        if 'start_date' in values and v < values['start_date']:
            raise ValueError('Seasonal period must end on or after its start date')
        return v

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    class Config:
        frozen = True


class PricingConfiguration(BaseModel):
    """Process-wide pricing parameters"""
    weekday_multiplier: Decimal = Field(default=Decimal("1.00"), gt=0)
    weekend_multiplier: Decimal = Field(default=Decimal("1.20"), gt=0)
    seasonal_multiplier: Decimal = Field(default=Decimal("1.50"), gt=0)
    seasonal_periods: List[SeasonalPeriod] = []
    tax_rate: Decimal = Field(default=Decimal("0.13"), ge=0)
    # Off: every night is charged at the flat nightly rate, as the kiosk does.
    dynamic_pricing: bool = False

    def with_seasonal_period(
        self,
        name: str,
        start_date: date,
        end_date: date,
        multiplier: Optional[Decimal] = None
    ) -> "PricingConfiguration":
        """Return a copy with one more seasonal period"""
        period = SeasonalPeriod(
            name=name, start_date=start_date, end_date=end_date, multiplier=multiplier
        )
        return self.model_copy(update={"seasonal_periods": [*self.seasonal_periods, period]})

    class Config:
        frozen = True


class LoyaltyConfiguration(BaseModel):
    """Loyalty program parameters"""
    earning_rate: Decimal = Field(default=Decimal("1"), ge=0)
    redemption_value: Decimal = Field(default=Decimal("0.01"), gt=0)
    max_redemption_points: int = Field(default=10000, ge=0)
    welcome_bonus: int = Field(default=100, ge=0)
    min_redemption_points: int = Field(default=100, ge=0)
    points_expiration_months: int = Field(default=0, ge=0)

    class Config:
        frozen = True


class SpecialRequest(BaseModel):
    """Child Entity for special requests"""
    request_id: UUID = Field(default_factory=uuid4)
    request_type: RequestType
    description: str
    fulfilled: bool = False
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        from_attributes = True
