"""Domain Entities"""
from pydantic import BaseModel, Field, validator
from datetime import datetime, date, timezone
from typing import Optional, List, Dict, Iterable
from decimal import Decimal

from domain.enums import RoomType, RoomStatus, BookingStatus, PaymentStatus, BookingTab
from domain.value_objects import SearchCriteria


class Room(BaseModel):
    """Room as published by the hotel API"""

    id: int
    number: str
    type: RoomType
    price_per_night: Decimal = Field(ge=0)
    capacity: int = Field(ge=1)
    amenities: List[str] = []
    description: str = ""
    images: List[str] = []
    status: RoomStatus = RoomStatus.AVAILABLE
    floor: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @validator('amenities')
    def amenities_are_a_set(cls, v):
        # keep first-seen order for display
        return list(dict.fromkeys(v))

    def is_browsable(self) -> bool:
        """Only rooms in service can ever be offered to guests"""
        return self.status == RoomStatus.AVAILABLE

    def fits(self, guests: int) -> bool:
        return 1 <= guests <= self.capacity

    def matches(self, criteria: SearchCriteria) -> bool:
        """Check the local filters of a search"""
        if criteria.room_type and self.type != criteria.room_type:
            return False
        if criteria.min_price is not None and self.price_per_night < criteria.min_price:
            return False
        if criteria.max_price is not None and self.price_per_night > criteria.max_price:
            return False
        return True


class BookingGuest(BaseModel):
    """Guest summary embedded in admin booking payloads"""
    id: Optional[int] = None
    name: str = ""
    email: Optional[str] = None


class Booking(BaseModel):
    """Client mirror of a booking owned by the hotel API"""

    # Identity
    id: int
    code: str

    # References
    user_id: int
    room_id: int

    # Stay
    check_in: date
    check_out: date
    guests: int = Field(ge=1)

    # Amounts snapshotted by the server at creation
    total_amount: Decimal
    tax_amount: Decimal = Decimal("0")

    # Status
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    special_requests: Optional[str] = None

    # Payment metadata
    payment_date: Optional[date] = None
    refund_date: Optional[date] = None
    payment_reference: Optional[str] = None
    payment_method: Optional[str] = None
    payment_method_account: Optional[str] = None

    # Embedded relations
    user: Optional[BookingGuest] = None
    room: Optional[Room] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def is_guest_cancellable(self) -> bool:
        """Guests may only withdraw a booking nobody has acted on yet"""
        return self.status == BookingStatus.PENDING

    def is_terminal(self) -> bool:
        return self.status in (BookingStatus.CHECKED_OUT, BookingStatus.CANCELLED)

    def in_tab(self, tab: BookingTab, today: date) -> bool:
        """Check whether booking belongs to a guest bookings tab"""
        if tab == BookingTab.CANCELLED:
            return self.status == BookingStatus.CANCELLED

        if self.status == BookingStatus.CANCELLED:
            return False

        if tab == BookingTab.UPCOMING:
            return self.status in (BookingStatus.PENDING, BookingStatus.CONFIRMED) or (
                self.status == BookingStatus.CHECKED_IN and self.check_out > today
            )

        return self.status == BookingStatus.CHECKED_OUT or self.check_out <= today

    def matches_search(self, term: str) -> bool:
        """Match guest name, room number or booking code"""
        if not term:
            return True
        term = term.lower()
        if self.user and term in self.user.name.lower():
            return True
        if self.room and term in self.room.number.lower():
            return True
        return term in self.code.lower()


class RoomAvailabilityEntry(BaseModel):
    """Availability of one known room for one date range"""
    room_id: int
    available: bool
    room_snapshot: Room

    class Config:
        frozen = True


class AvailabilityMap(BaseModel):
    """Per-room availability snapshot for a specific search, rebuilt wholesale"""

    criteria: SearchCriteria
    entries: Dict[int, RoomAvailabilityEntry] = {}
    built_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        frozen = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def build(
        criteria: SearchCriteria,
        known_rooms: Iterable[Room],
        available_rooms: Iterable[Room]
    ) -> "AvailabilityMap":
        """Mark every known room unavailable, then flip those the server listed"""
        entries: Dict[int, RoomAvailabilityEntry] = {
            room.id: RoomAvailabilityEntry(room_id=room.id, available=False, room_snapshot=room)
            for room in known_rooms
        }

        for room in available_rooms:
            entries[room.id] = RoomAvailabilityEntry(
                room_id=room.id,
                available=room.is_browsable(),
                room_snapshot=room
            )

        return AvailabilityMap(criteria=criteria, entries=entries)

    # ==================== QUERY METHODS ====================
    def is_available(self, room_id: int) -> bool:
        """Rooms missing from the map are never bookable"""
        entry = self.entries.get(room_id)
        return bool(entry and entry.available)

    def available_room_ids(self) -> List[int]:
        return [room_id for room_id, entry in self.entries.items() if entry.available]

    def room(self, room_id: int) -> Optional[Room]:
        entry = self.entries.get(room_id)
        return entry.room_snapshot if entry else None

    def listing(self) -> List[RoomAvailabilityEntry]:
        """Entries passing the search's local filters, available or not, in room number order"""
        entries = [
            entry for entry in self.entries.values()
            if entry.room_snapshot.fits(self.criteria.guests)
            and entry.room_snapshot.matches(self.criteria)
        ]
        return sorted(entries, key=lambda e: e.room_snapshot.number)

    def bookable_rooms(self) -> List[Room]:
        """Rooms that may be offered for this search, in room number order"""
        return [entry.room_snapshot for entry in self.listing() if entry.available]


class BookingReceipt(BaseModel):
    """Outcome of a booking mutation as reported by the hotel API"""
    message: str = ""
    booking: Optional[Booking] = None
