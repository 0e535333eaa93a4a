"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from domain.enums import RoomType, BookingStatus, PaymentStatus, ReservationStep


# ============================================================================
# GUEST BROWSING SCHEMAS
# ============================================================================

class SearchRequest(BaseModel):
    """Availability search request DTO"""
    check_in: date
    check_out: date
    guests: int = Field(default=1)
    room_type: Optional[RoomType] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None


class DraftUpdateRequest(BaseModel):
    """Booking form edit DTO"""
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    guests: Optional[int] = None
    special_requests: Optional[str] = None


class PriceResponse(BaseModel):
    """Price recap DTO"""
    nights: int
    price_per_night: Decimal
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    formatted_total: str


class RoomOfferResponse(BaseModel):
    """Room card DTO"""
    id: int
    number: str
    type: str
    price_per_night: Decimal
    formatted_price: str
    capacity: int
    amenities: List[str]
    description: str
    images: List[str]
    floor: int
    available: bool


class CriteriaResponse(BaseModel):
    """Current search DTO"""
    check_in: date
    check_out: date
    guests: int
    nights: int
    room_type: Optional[str] = None


class DraftResponse(BaseModel):
    """Booking form DTO"""
    room_id: int
    room_number: Optional[str] = None
    check_in: date
    check_out: date
    guests: int
    max_guests: Optional[int] = None
    special_requests: Optional[str] = None
    nights: int


class NotificationResponse(BaseModel):
    level: str
    message: str
    created_at: datetime


class BookingResponse(BaseModel):
    """Booking response DTO"""
    id: int
    code: str
    user_id: int
    room_id: int
    room_number: Optional[str] = None
    guest_name: Optional[str] = None
    check_in: date
    check_out: date
    nights: int
    guests: int
    total_amount: Decimal
    tax_amount: Decimal
    status: str
    payment_status: str
    special_requests: Optional[str] = None
    payment_date: Optional[date] = None
    refund_date: Optional[date] = None
    payment_reference: Optional[str] = None
    payment_method: Optional[str] = None
    payment_method_account: Optional[str] = None
    can_cancel: bool
    next_statuses: List[str] = []


class SessionResponse(BaseModel):
    """Guest browsing session DTO"""
    step: ReservationStep
    loading: bool
    criteria: Optional[CriteriaResponse] = None
    rooms: List[RoomOfferResponse] = []
    draft: Optional[DraftResponse] = None
    price: Optional[PriceResponse] = None
    can_submit: bool = False
    message: Optional[str] = None
    redirect_to: Optional[str] = None
    confirmed_booking: Optional[BookingResponse] = None
    notifications: List[NotificationResponse] = []


# ============================================================================
# BOOKING MANAGEMENT SCHEMAS
# ============================================================================

class StatusUpdateRequest(BaseModel):
    """Admin status change DTO"""
    status: BookingStatus


class PaymentStatusUpdateRequest(BaseModel):
    """Admin payment status change DTO"""
    payment_status: PaymentStatus


class PaymentInfoRequest(BaseModel):
    """Admin payment details DTO"""
    payment_status: PaymentStatus
    payment_date: Optional[date] = None
    payment_reference: Optional[str] = None
    payment_method: Optional[str] = None
    payment_method_account: Optional[str] = None
    refund_date: Optional[date] = None


class MutationResponse(BaseModel):
    """Result of a booking mutation DTO"""
    message: str
    booking: Optional[BookingResponse] = None
    bookings: List[BookingResponse] = []
