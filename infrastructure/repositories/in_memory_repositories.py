"""In-Memory Repository Implementations

An in-process stand-in for the hotel API: it owns rooms and bookings and
enforces the rules the real server enforces (overlap, capacity, lifecycle).
"""
import random
import string
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from domain.auth import SessionStore
from domain.entities import Room, Booking, BookingGuest, BookingReceipt
from domain.enums import BookingStatus, PaymentStatus, RoomStatus
from domain.errors import AvailabilityConflictError, UnauthenticatedError, ValidationError
from domain.repositories import RoomRepository, BookingRepository, HotelRepository
from domain.value_objects import SearchCriteria, BookingDraft, PriceBreakdown, HotelConfig, quantize_money

SERVER_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CHECKED_IN, BookingStatus.CANCELLED},
    BookingStatus.CHECKED_IN: {BookingStatus.CHECKED_OUT},
    BookingStatus.CHECKED_OUT: set(),
    BookingStatus.CANCELLED: set(),
}

# Bookings in these states no longer hold the room
RELEASED = (BookingStatus.CANCELLED, BookingStatus.CHECKED_OUT)

PAYMENT_FIELDS = {"payment_date", "refund_date", "payment_reference", "payment_method", "payment_method_account"}


class InMemoryHotelBackend:
    """Shared state of the in-process hotel API"""

    def __init__(self, config: Optional[HotelConfig] = None):
        self.config = config or HotelConfig()
        self._rooms: Dict[int, Room] = {}
        self._bookings: Dict[int, Booking] = {}
        self._guests: Dict[int, BookingGuest] = {}
        self._next_booking_id = 1
        self.reports: Dict[str, Dict[str, Any]] = {}

    # ==================== SEEDING ====================
    def add_room(self, room: Room) -> Room:
        self._rooms[room.id] = room
        return room

    def add_guest(self, guest: BookingGuest) -> BookingGuest:
        self._guests[guest.id] = guest
        return guest

    def add_booking(
        self,
        user_id: int,
        room_id: int,
        check_in: date,
        check_out: date,
        guests: int = 1,
        status: BookingStatus = BookingStatus.PENDING
    ) -> Booking:
        """Book a room directly, as another client of the hotel would"""
        booking = self._create(user_id, room_id, check_in, check_out, guests, None)
        booking.status = status
        return booking.model_copy(deep=True)

    # ==================== QUERIES ====================
    def rooms(self) -> List[Room]:
        return [room.model_copy(deep=True) for room in self._rooms.values()]

    def booking(self, booking_id: int) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise ValidationError("Booking not found")
        return booking.model_copy(deep=True)

    def bookings(self, user_id: Optional[int] = None) -> List[Booking]:
        return [
            self._with_relations(b) for b in self._bookings.values()
            if user_id is None or b.user_id == user_id
        ]

    def is_free(self, room_id: int, check_in: date, check_out: date) -> bool:
        room = self._rooms.get(room_id)
        if room is None or room.status != RoomStatus.AVAILABLE:
            return False
        for booking in self._bookings.values():
            if booking.room_id != room_id or booking.status in RELEASED:
                continue
            if check_in < booking.check_out and booking.check_in < check_out:
                return False
        return True

    def available_rooms(self, criteria: SearchCriteria) -> List[Room]:
        return [
            room.model_copy(deep=True) for room in self._rooms.values()
            if room.capacity >= criteria.guests
            and (criteria.room_type is None or room.type == criteria.room_type)
            and self.is_free(room.id, criteria.check_in, criteria.check_out)
        ]

    # ==================== MUTATIONS ====================
    def create_booking(
        self,
        user_id: int,
        room_id: int,
        check_in: date,
        check_out: date,
        guests: int,
        special_requests: Optional[str]
    ) -> Booking:
        if check_out <= check_in:
            raise ValidationError("The check out must be a date after check in.")
        room = self._rooms.get(room_id)
        if room is None:
            raise ValidationError("Room not found")
        if guests > room.capacity:
            raise ValidationError(f"Room {room.number} fits at most {room.capacity} guests")
        return self._with_relations(
            self._create(user_id, room_id, check_in, check_out, guests, special_requests)
        )

    def update_booking(self, booking_id: int, changes: Dict[str, Any]) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise ValidationError("Booking not found")

        unknown = set(changes) - PAYMENT_FIELDS - {"status", "payment_status"}
        if unknown:
            raise ValidationError(f"Unsupported fields: {', '.join(sorted(unknown))}")

        if "status" in changes:
            new_status = BookingStatus(changes["status"])
            if new_status != booking.status and new_status not in SERVER_TRANSITIONS[booking.status]:
                raise ValidationError(
                    f"Cannot change booking from {booking.status.value} to {new_status.value}"
                )
            booking.status = new_status
        if "payment_status" in changes:
            booking.payment_status = PaymentStatus(changes["payment_status"])
        for field in PAYMENT_FIELDS & set(changes):
            value = changes[field]
            if field in ("payment_date", "refund_date") and isinstance(value, str):
                value = date.fromisoformat(value)
            setattr(booking, field, value)

        booking.updated_at = datetime.now(timezone.utc)
        return self._with_relations(booking)

    def cancel_booking(self, booking_id: int, user_id: int) -> None:
        booking = self._bookings.get(booking_id)
        if booking is None or booking.user_id != user_id:
            raise ValidationError("Booking not found")
        if booking.status != BookingStatus.PENDING:
            raise ValidationError("Only pending bookings can be cancelled")
        booking.status = BookingStatus.CANCELLED
        booking.updated_at = datetime.now(timezone.utc)

    # ==================== INTERNALS ====================
    def _create(self, user_id, room_id, check_in, check_out, guests, special_requests) -> Booking:
        if not self.is_free(room_id, check_in, check_out):
            raise AvailabilityConflictError("Room is not available for the selected dates")

        room = self._rooms[room_id]
        nights = (check_out - check_in).days
        subtotal = room.price_per_night * nights
        tax_amount = quantize_money(subtotal * self.config.tax_rate / Decimal(100))
        now = datetime.now(timezone.utc)

        booking = Booking(
            id=self._next_booking_id,
            code=self._generate_code(),
            user_id=user_id,
            room_id=room_id,
            check_in=check_in,
            check_out=check_out,
            guests=guests,
            total_amount=subtotal + tax_amount,
            tax_amount=tax_amount,
            special_requests=special_requests,
            created_at=now,
            updated_at=now
        )
        self._bookings[booking.id] = booking
        self._next_booking_id += 1
        return booking

    def _with_relations(self, booking: Booking) -> Booking:
        copy = booking.model_copy(deep=True)
        copy.room = self._rooms.get(booking.room_id)
        copy.user = self._guests.get(booking.user_id)
        return copy

    @staticmethod
    def _generate_code() -> str:
        return ''.join(random.choices(string.ascii_uppercase + string.digits, k=8))


class _SessionBound:
    def __init__(self, backend: InMemoryHotelBackend, session: Optional[SessionStore] = None):
        self.backend = backend
        self.session = session

    def _user_id(self) -> int:
        if self.session is None or not self.session.is_active():
            raise UnauthenticatedError(server_message="Unauthenticated.")
        return self.session.user.id


class InMemoryRoomRepository(_SessionBound, RoomRepository):
    """In-memory implementation of RoomRepository"""

    async def find_all(self) -> List[Room]:
        return self.backend.rooms()

    async def find_available(self, criteria: SearchCriteria) -> List[Room]:
        return self.backend.available_rooms(criteria)

    async def check_availability(self, room_id: int, check_in: date, check_out: date) -> bool:
        return self.backend.is_free(room_id, check_in, check_out)


class InMemoryBookingRepository(_SessionBound, BookingRepository):
    """In-memory implementation of BookingRepository"""

    async def create(self, user_id: int, draft: BookingDraft, price: PriceBreakdown) -> BookingReceipt:
        self._user_id()
        booking = self.backend.create_booking(
            user_id, draft.room_id, draft.check_in, draft.check_out, draft.guests, draft.special_requests
        )
        return BookingReceipt(message="Booking created successfully!", booking=booking)

    async def find_for_guest(self) -> List[Booking]:
        return self.backend.bookings(user_id=self._user_id())

    async def find_all(self) -> List[Booking]:
        self._user_id()
        return self.backend.bookings()

    async def update(self, booking_id: int, changes: Dict[str, Any]) -> BookingReceipt:
        self._user_id()
        booking = self.backend.update_booking(booking_id, changes)
        return BookingReceipt(message="Booking updated successfully", booking=booking)

    async def cancel(self, booking_id: int) -> str:
        self.backend.cancel_booking(booking_id, self._user_id())
        return "Your room reservation has been cancelled successfully!"


class InMemoryHotelRepository(_SessionBound, HotelRepository):
    """In-memory implementation of HotelRepository"""

    async def get_config(self) -> HotelConfig:
        return self.backend.config

    async def get_report(self, time_range: str) -> Dict[str, Any]:
        self._user_id()
        return dict(self.backend.reports.get(time_range, {"time_range": time_range}))

    async def get_payment_analytics(self, time_range: str) -> Dict[str, Any]:
        self._user_id()
        paid = [b for b in self.backend.bookings() if b.payment_status == PaymentStatus.PAID]
        return {
            "time_range": time_range,
            "paid_bookings": len(paid),
            "total_collected": float(sum((b.total_amount for b in paid), Decimal("0"))),
        }
