"""Application Services - Business use cases"""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from domain.repositories import RoomRepository, BookingRepository, HotelRepository
from domain.entities import Room, Booking, AvailabilityMap, BookingReceipt
from domain.enums import BookingStatus, PaymentStatus, BookingTab
from domain.errors import ValidationError, HotelClientError
from domain.value_objects import SearchCriteria, HotelConfig, PriceBreakdown, quantize_money

logger = logging.getLogger(__name__)


# Lifecycle table, used for rendering hints only; the hotel API decides.
BOOKING_TRANSITIONS: Dict[BookingStatus, List[BookingStatus]] = {
    BookingStatus.PENDING: [BookingStatus.CONFIRMED, BookingStatus.CANCELLED],
    BookingStatus.CONFIRMED: [BookingStatus.CHECKED_IN, BookingStatus.CANCELLED],
    BookingStatus.CHECKED_IN: [BookingStatus.CHECKED_OUT],
    BookingStatus.CHECKED_OUT: [],
    BookingStatus.CANCELLED: [],
}


def allowed_transitions(status: BookingStatus) -> List[BookingStatus]:
    return list(BOOKING_TRANSITIONS[status])


class PricingCalculator:
    """Derives subtotal, tax and total for a stay"""

    def __init__(self, config: HotelConfig):
        self.config = config

    @staticmethod
    def price(price_per_night: Decimal, nights: int, tax_rate: Optional[Decimal]) -> PriceBreakdown:
        """Price a stay; pure and reproducible for the same inputs"""
        if nights is None or nights <= 0:
            raise ValidationError("Minimum stay is 1 night")

        rate = Decimal(price_per_night)
        tax_rate = Decimal(tax_rate) if tax_rate is not None else Decimal("0")

        subtotal = rate * nights
        tax_amount = quantize_money(subtotal * tax_rate / Decimal(100))
        return PriceBreakdown(
            nights=nights,
            price_per_night=rate,
            subtotal=subtotal,
            tax_rate=tax_rate,
            tax_amount=tax_amount,
            total_amount=subtotal + tax_amount
        )

    def price_room(self, room: Room, nights: int) -> PriceBreakdown:
        """Price a room with the injected hotel tax rate"""
        return self.price(room.price_per_night, nights, self.config.tax_rate)


class HotelInfoService:
    """Service for hotel-wide configuration"""

    def __init__(self, repository: HotelRepository):
        self.repository = repository

    async def load_config(self) -> HotelConfig:
        return await self.repository.get_config()

    async def get_report(self, time_range: str) -> Dict[str, Any]:
        return await self.repository.get_report(time_range)

    async def get_payment_analytics(self, time_range: str) -> Dict[str, Any]:
        return await self.repository.get_payment_analytics(time_range)


class AvailabilityService:
    """Availability query engine"""

    def __init__(self, repository: RoomRepository):
        self.repository = repository

    async def load_known_rooms(self) -> List[Room]:
        """Rooms the client knows about; out-of-service rooms are never browsable"""
        rooms = await self.repository.find_all()
        return [room for room in rooms if room.is_browsable()]

    async def query_availability(self, criteria: SearchCriteria, known_rooms: List[Room]) -> AvailabilityMap:
        """Ask the hotel API which rooms are free and build a fresh map.

        Errors propagate before anything is built, so a caller's existing
        map is left untouched.
        """
        logger.debug(f"querying availability {criteria.check_in} -> {criteria.check_out} for {criteria.guests}")
        available = await self.repository.find_available(criteria)
        availability = AvailabilityMap.build(criteria, known_rooms, available)
        logger.info(
            f"availability: {len(availability.available_room_ids())} of {len(availability.entries)} rooms free"
        )
        return availability

    async def check_single_room_availability(self, room_id: int, check_in: date, check_out: date) -> bool:
        available = await self.repository.check_availability(room_id, check_in, check_out)
        logger.info(f"re-check room {room_id} {check_in} -> {check_out}: {'free' if available else 'taken'}")
        return available


class GuestBookingService:
    """Service for the signed-in guest's bookings"""

    def __init__(self, repository: BookingRepository):
        self.repository = repository
        self.bookings: List[Booking] = []

    async def refresh(self) -> List[Booking]:
        """Refetch the whole list"""
        self.bookings = await self.repository.find_for_guest()
        return self.bookings

    def tab(self, tab: BookingTab, today: Optional[date] = None) -> List[Booking]:
        today = today or date.today()
        return [b for b in self.bookings if b.in_tab(tab, today)]

    async def cancel_booking(self, booking: Booking) -> str:
        """Cancel own booking; only offered while it is still pending"""
        if not booking.is_guest_cancellable():
            raise ValidationError(
                f"Cannot cancel booking {booking.code} with status {booking.status.value}"
            )

        try:
            message = await self.repository.cancel(booking.id)
        finally:
            await self._refresh_quietly()
        return message or "Your room reservation has been cancelled successfully!"

    async def _refresh_quietly(self) -> None:
        try:
            await self.refresh()
        except HotelClientError as e:
            logger.warning(f"could not refresh guest bookings: {e}")


class BookingBoardService:
    """Admin mirror of the booking lifecycle.

    Every mutation attempt is followed by a wholesale refetch so a rejected
    change converges back to the server's view.
    """

    def __init__(self, repository: BookingRepository):
        self.repository = repository
        self.bookings: List[Booking] = []
        self.selected: Optional[Booking] = None

    async def refresh(self) -> List[Booking]:
        self.bookings = await self.repository.find_all()
        return self.bookings

    def find(self, booking_id: int) -> Optional[Booking]:
        for booking in self.bookings:
            if booking.id == booking_id:
                return booking
        return None

    def filter(self, search: str = "", status: str = "all") -> List[Booking]:
        """Filter by search term and status ("all" for any)"""
        return [
            b for b in self.bookings
            if b.matches_search(search) and (status == "all" or b.status.value == status)
        ]

    async def set_status(self, booking_id: int, status: BookingStatus) -> BookingReceipt:
        return await self._mutate(booking_id, {"status": status.value})

    async def set_payment_status(self, booking_id: int, payment_status: PaymentStatus) -> BookingReceipt:
        receipt = await self._mutate(booking_id, {"payment_status": payment_status.value})
        if receipt.booking is not None:
            self.selected = receipt.booking
        return receipt

    async def update_payment_info(
        self,
        booking_id: int,
        payment_status: PaymentStatus,
        payment_date: Optional[date] = None,
        payment_reference: Optional[str] = None,
        payment_method: Optional[str] = None,
        payment_method_account: Optional[str] = None,
        refund_date: Optional[date] = None
    ) -> BookingReceipt:
        """Record payment event details for the booking's payment status"""
        changes: Dict[str, Any] = {}
        if payment_status == PaymentStatus.PAID:
            if payment_date:
                changes["payment_date"] = payment_date.isoformat()
            if payment_reference:
                changes["payment_reference"] = payment_reference
            if payment_method:
                changes["payment_method"] = payment_method
            if payment_method_account:
                changes["payment_method_account"] = payment_method_account
        elif payment_status == PaymentStatus.REFUND:
            if refund_date:
                changes["refund_date"] = refund_date.isoformat()

        if not changes:
            raise ValidationError("No payment details to record")

        receipt = await self._mutate(booking_id, changes)
        if receipt.booking is not None:
            self.selected = receipt.booking
        return receipt

    async def _mutate(self, booking_id: int, changes: Dict[str, Any]) -> BookingReceipt:
        logger.info(f"admin update booking {booking_id}: {changes}")
        try:
            return await self.repository.update(booking_id, changes)
        finally:
            try:
                await self.refresh()
            except HotelClientError as e:
                logger.warning(f"could not refresh bookings after update: {e}")
