"""Domain Repository Interfaces

The hotel API is the source of truth; these interfaces describe what the
client needs from it.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List
from datetime import date

from domain.entities import Room, Booking, BookingReceipt
from domain.value_objects import SearchCriteria, BookingDraft, PriceBreakdown, HotelConfig


class RoomRepository(ABC):
    """Repository interface for rooms and their availability"""

    @abstractmethod
    async def find_all(self) -> List[Room]:
        """Find every room of the hotel"""
        pass

    @abstractmethod
    async def find_available(self, criteria: SearchCriteria) -> List[Room]:
        """Find rooms currently free for the search"""
        pass

    @abstractmethod
    async def check_availability(self, room_id: int, check_in: date, check_out: date) -> bool:
        """Check a single room for a date range"""
        pass


class BookingRepository(ABC):
    """Repository interface for bookings"""

    @abstractmethod
    async def create(self, user_id: int, draft: BookingDraft, price: PriceBreakdown) -> BookingReceipt:
        """Submit a new pending booking"""
        pass

    @abstractmethod
    async def find_for_guest(self) -> List[Booking]:
        """Find bookings of the signed-in guest"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Booking]:
        """Find all bookings (admin)"""
        pass

    @abstractmethod
    async def update(self, booking_id: int, changes: Dict[str, Any]) -> BookingReceipt:
        """Apply a partial update (admin)"""
        pass

    @abstractmethod
    async def cancel(self, booking_id: int) -> str:
        """Cancel a booking on behalf of its guest"""
        pass


class HotelRepository(ABC):
    """Repository interface for hotel-wide data"""

    @abstractmethod
    async def get_config(self) -> HotelConfig:
        """Get hotel info (tax rate, currency)"""
        pass

    @abstractmethod
    async def get_report(self, time_range: str) -> Dict[str, Any]:
        """Get the admin report for a time range"""
        pass

    @abstractmethod
    async def get_payment_analytics(self, time_range: str) -> Dict[str, Any]:
        """Get payment analytics for a time range"""
        pass
