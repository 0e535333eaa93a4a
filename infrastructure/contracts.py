"""Hotel API wire contracts

Request and response shapes of every endpoint the client consumes. Payloads
are coerced here so the rest of the client never handles raw JSON.
"""
from pydantic import BaseModel, Field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from domain.entities import Room, Booking
from domain.enums import BookingStatus, PaymentStatus


# ============================================================================
# ROOMS
# ============================================================================

class AvailableRoomsResponse(BaseModel):
    """GET rooms/available"""
    available_rooms: List[Room] = []


class CheckAvailabilityResponse(BaseModel):
    """GET rooms/check-availability"""
    available: bool


# ============================================================================
# BOOKINGS
# ============================================================================

class CreateBookingRequest(BaseModel):
    """POST bookings"""
    user_id: int
    room_id: int
    check_in: date
    check_out: date
    guests: int = Field(ge=1)
    total_amount: Decimal
    tax_amount: Decimal
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    special_requests: Optional[str] = None


class BookingMutationResponse(BaseModel):
    """POST bookings / PUT bookings/{id}"""
    message: str = ""
    booking: Optional[Booking] = None


class MessageResponse(BaseModel):
    """PUT bookings/{id}/cancel-booking"""
    message: str = ""


class ErrorResponse(BaseModel):
    """Error body returned by the hotel API"""
    message: Optional[str] = None
    errors: Optional[dict] = None


# ============================================================================
# HOTEL INFO
# ============================================================================

class HotelInfoResponse(BaseModel):
    """GET hotel-info"""
    hotel_name: str = ""
    currency: str = "PHP"
    currency_symbol: str = "₱"
    hotel_address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    check_in: Optional[str] = None
    check_out: Optional[str] = None
    tax_rate: Optional[Decimal] = None
