"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from domain.enums import RoomType
from domain.errors import ValidationError

CENT = Decimal("0.01")


class SearchCriteria(BaseModel):
    """Value Object for an availability search"""
    check_in: date
    check_out: date
    guests: int = Field(ge=1)
    room_type: Optional[RoomType] = None
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)

    @validator('check_out')
    def check_out_after_check_in(cls, v, values):
        if 'check_in' in values and v <= values['check_in']:
            raise ValueError('Check-out must be after check-in')
        return v

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    def to_query_params(self) -> dict:
        params = {
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "guests": self.guests,
        }
        if self.room_type:
            params["room_type"] = self.room_type.value
        return params

    class Config:
        frozen = True


class HotelConfig(BaseModel):
    """Hotel-wide configuration used for pricing and display"""
    hotel_name: str = ""
    currency: str = "PHP"
    currency_symbol: str = "₱"
    tax_rate: Decimal = Decimal("0")
    hotel_address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    check_in: Optional[str] = None
    check_out: Optional[str] = None

    @validator('tax_rate', pre=True)
    def missing_tax_rate_is_zero(cls, v):
        if v is None or v == "":
            return Decimal("0")
        return v

    def format_money(self, amount: Decimal) -> str:
        """Format an amount with the hotel's currency symbol"""
        return f"{self.currency_symbol}{Decimal(amount):,.2f}"

    class Config:
        frozen = True


class PriceBreakdown(BaseModel):
    """Advisory price of a stay, recomputed on every read"""
    nights: int
    price_per_night: Decimal
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal

    class Config:
        frozen = True


class BookingDraft(BaseModel):
    """Unsaved reservation input gathered from the guest"""
    room_id: int
    check_in: date
    check_out: date
    guests: int
    special_requests: Optional[str] = None

    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def is_payable(self) -> bool:
        """A draft can only be priced and submitted for at least one night"""
        return self.nights() >= 1

    @staticmethod
    def from_criteria(room_id: int, criteria: SearchCriteria) -> "BookingDraft":
        return BookingDraft(
            room_id=room_id,
            check_in=criteria.check_in,
            check_out=criteria.check_out,
            guests=criteria.guests
        )


def quantize_money(amount: Decimal) -> Decimal:
    """Round to currency precision"""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_criteria(
    check_in: date,
    check_out: date,
    guests: int,
    today: Optional[date] = None,
    room_type: Optional[RoomType] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None
) -> SearchCriteria:
    """Validate a raw (check-in, check-out, guests) tuple into SearchCriteria"""
    today = today or date.today()

    if check_in < today:
        raise ValidationError("Check-in date must be today or later")
    if check_out <= check_in:
        raise ValidationError("Check-out must be after check-in")
    if guests is None or guests < 1:
        raise ValidationError("At least 1 guest is required")
    if (min_price is not None and min_price < 0) or (max_price is not None and max_price < 0):
        raise ValidationError("Price filters cannot be negative")
    if min_price is not None and max_price is not None and min_price > max_price:
        raise ValidationError("Minimum price cannot exceed maximum price")

    return SearchCriteria(
        check_in=check_in,
        check_out=check_out,
        guests=guests,
        room_type=room_type,
        min_price=min_price,
        max_price=max_price
    )
