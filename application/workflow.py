"""Guest reservation workflow

Drives one browsing session from search to a confirmed (or rejected)
booking. The availability map and search criteria belong to this session
alone; nothing else mutates them.
"""
import asyncio
import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Set

from domain.auth import SessionStore
from domain.entities import Room, Booking, AvailabilityMap
from domain.enums import ReservationStep, RoomType
from domain.errors import (
    AvailabilityConflictError, HotelClientError, RequestCancelledError, ValidationError, user_message
)
from domain.repositories import BookingRepository
from domain.value_objects import SearchCriteria, BookingDraft, HotelConfig, PriceBreakdown, normalize_criteria
from application.concurrency import LatestOnlyQuery
from application.notifications import Notifier, Loader, report_failure
from application.services import AvailabilityService, HotelInfoService, PricingCalculator

logger = logging.getLogger(__name__)


STEP_TRANSITIONS: Dict[ReservationStep, Set[ReservationStep]] = {
    ReservationStep.BROWSING: {ReservationStep.CHECKING},
    ReservationStep.CHECKING: {ReservationStep.FORM_OPEN, ReservationStep.REJECTED, ReservationStep.BROWSING},
    ReservationStep.FORM_OPEN: {ReservationStep.SUBMITTING, ReservationStep.BROWSING},
    ReservationStep.SUBMITTING: {ReservationStep.CONFIRMED, ReservationStep.REJECTED},
    ReservationStep.REJECTED: {ReservationStep.BROWSING, ReservationStep.SUBMITTING},
    ReservationStep.CONFIRMED: {ReservationStep.BROWSING},
}

UNAVAILABLE_MESSAGE = "Sorry, this room is no longer available for the selected dates."
BOOKING_ERROR_MESSAGE = "Error creating booking"


class ReservationWorkflow:
    """State machine behind the guest room browsing view"""

    def __init__(
        self,
        availability: AvailabilityService,
        bookings: BookingRepository,
        hotel: HotelInfoService,
        session: SessionStore,
        notifier: Notifier,
        config: Optional[HotelConfig] = None,
        recheck_before_submit: bool = True,
        today: Callable[[], date] = date.today
    ):
        self.availability = availability
        self.bookings = bookings
        self.hotel = hotel
        self.session = session
        self.notifier = notifier
        self.pricing = PricingCalculator(config or HotelConfig())
        self.recheck_before_submit = recheck_before_submit
        self._today = today

        self.step = ReservationStep.BROWSING
        self.history: List[ReservationStep] = [ReservationStep.BROWSING]
        self.known_rooms: List[Room] = []
        self.criteria: Optional[SearchCriteria] = None
        self.availability_map: Optional[AvailabilityMap] = None
        self.selected_room: Optional[Room] = None
        self.draft: Optional[BookingDraft] = None
        self._draft_criteria: Optional[SearchCriteria] = None
        self.confirmed_booking: Optional[Booking] = None
        self.message: Optional[str] = None
        self.redirect_to: Optional[str] = None

        self.rooms_loader = Loader("rooms", notifier, session)
        self.config_loader = Loader("hotel-info", notifier, session)
        self._search = LatestOnlyQuery("availability search")

    # ==================== LOADING ====================
    async def load(self) -> None:
        """Load rooms and hotel configuration; each may fail on its own"""
        rooms, config = await asyncio.gather(
            self.rooms_loader.run(self.availability.load_known_rooms, "Error fetching rooms"),
            self.config_loader.run(self.hotel.load_config, "Error fetching hotel info"),
        )
        if rooms is not None:
            self.known_rooms = rooms
        if config is not None:
            self.pricing = PricingCalculator(config)

    @property
    def config(self) -> HotelConfig:
        return self.pricing.config

    @property
    def searching(self) -> bool:
        return self._search.in_flight

    # ==================== SEARCH ====================
    async def search(
        self,
        check_in: date,
        check_out: date,
        guests: int,
        room_type: Optional[RoomType] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None
    ) -> Optional[AvailabilityMap]:
        """Validate the range, then query availability for it.

        Returns None when this search was superseded by a newer one.
        """
        if self.step in (ReservationStep.CHECKING, ReservationStep.SUBMITTING):
            raise ValidationError("Please wait for the current request to finish")

        criteria = normalize_criteria(
            check_in, check_out, guests,
            today=self._today(),
            room_type=room_type,
            min_price=min_price,
            max_price=max_price
        )
        if self.step == ReservationStep.CONFIRMED:
            self._transition(ReservationStep.BROWSING)
        return await self._run_query(criteria)

    async def refresh_availability(self) -> Optional[AvailabilityMap]:
        """Re-run the bulk query for the current criteria"""
        if self.criteria is None:
            return None
        return await self._run_query(self.criteria)

    async def _run_query(self, criteria: SearchCriteria) -> Optional[AvailabilityMap]:
        known_rooms = list(self.known_rooms)
        try:
            result = await self._search.run(
                lambda: self.availability.query_availability(criteria, known_rooms)
            )
        except RequestCancelledError:
            return None
        except HotelClientError as e:
            # keep the previous map: stale but safe
            report_failure(e, self.notifier, self.session, "Error checking availability")
            raise

        self.criteria = criteria
        self.availability_map = result
        return result

    def close(self) -> None:
        """Teardown: drop anything in flight"""
        self._search.close()

    # ==================== BOOKING FORM ====================
    async def select_room(self, room_id: int) -> BookingDraft:
        """Guest pressed "book": re-check the room, then open the form"""
        if self.step in (ReservationStep.CONFIRMED, ReservationStep.REJECTED):
            self._transition(ReservationStep.BROWSING)
        if self.step != ReservationStep.BROWSING:
            raise ValidationError(f"Cannot book a room while {self.step.value.lower()}")
        if self.criteria is None or self.availability_map is None:
            raise ValidationError("Please search for your dates first")
        if not self.availability_map.is_available(room_id):
            raise ValidationError("Room is not available for the selected dates")

        room = self.availability_map.room(room_id)
        if not room.fits(self.criteria.guests):
            raise ValidationError(f"Room {room.number} fits at most {room.capacity} guests")

        draft = self._draft_for(room)
        self.message = None
        self._transition(ReservationStep.CHECKING)
        try:
            free = await self.availability.check_single_room_availability(
                room_id, draft.check_in, draft.check_out
            )
        except HotelClientError as e:
            self._transition(ReservationStep.BROWSING)
            report_failure(e, self.notifier, self.session, "Error checking availability")
            raise

        if not free:
            self._transition(ReservationStep.REJECTED)
            await self._handle_conflict(UNAVAILABLE_MESSAGE)
            self._transition(ReservationStep.BROWSING)
            raise AvailabilityConflictError(UNAVAILABLE_MESSAGE, details={"room_id": room_id})

        self.selected_room = room
        self.draft = draft
        self._draft_criteria = self.criteria
        self.confirmed_booking = None
        self.redirect_to = None
        self._transition(ReservationStep.FORM_OPEN)
        return self.draft

    def update_draft(
        self,
        check_in: Optional[date] = None,
        check_out: Optional[date] = None,
        guests: Optional[int] = None,
        special_requests: Optional[str] = None
    ) -> BookingDraft:
        if self.draft is None or self.step not in (ReservationStep.FORM_OPEN, ReservationStep.REJECTED):
            raise ValidationError("No booking form is open")
        if guests is not None and guests < 1:
            raise ValidationError("At least 1 guest is required")

        self.draft = self._replace_draft(
            check_in=check_in,
            check_out=check_out,
            guests=guests,
            special_requests=special_requests
        )
        return self.draft

    def cancel_form(self) -> None:
        """Close the form and discard the draft"""
        if self.step not in (ReservationStep.FORM_OPEN, ReservationStep.REJECTED):
            raise ValidationError("No booking form is open")
        self.draft = None
        self.selected_room = None
        self._transition(ReservationStep.BROWSING)

    def price_recap(self) -> Optional[PriceBreakdown]:
        """Advisory price of the draft; None while it is not payable"""
        if self.draft is None or self.selected_room is None or not self.draft.is_payable():
            return None
        return self.pricing.price_room(self.selected_room, self.draft.nights())

    @property
    def can_submit(self) -> bool:
        return (
            self.step in (ReservationStep.FORM_OPEN, ReservationStep.REJECTED)
            and self.draft is not None
            and self.selected_room is not None
            and self.draft.is_payable()
        )

    # ==================== SUBMISSION ====================
    async def submit(self) -> Booking:
        """Submit the draft; no automatic retries"""
        if self.step == ReservationStep.SUBMITTING:
            raise ValidationError("Booking is already being submitted")
        if not self.can_submit:
            if self.draft is not None and not self.draft.is_payable():
                raise ValidationError("Minimum stay is 1 night")
            raise ValidationError("No booking form is open")

        draft = self.draft
        room = self.selected_room
        if draft.check_in < self._today():
            raise ValidationError("Check-in date must be today or later")
        if not room.fits(draft.guests):
            raise ValidationError(f"Room {room.number} fits at most {room.capacity} guests")
        user = self.session.user
        if user is None:
            raise ValidationError("Please sign in to book a room")

        price = self.pricing.price_room(room, draft.nights())
        self._transition(ReservationStep.SUBMITTING)

        try:
            if self.recheck_before_submit:
                free = await self.availability.check_single_room_availability(
                    room.id, draft.check_in, draft.check_out
                )
                if not free:
                    raise AvailabilityConflictError(UNAVAILABLE_MESSAGE, details={"room_id": room.id})
            receipt = await self.bookings.create(user.id, draft, price)
        except AvailabilityConflictError as e:
            self._transition(ReservationStep.REJECTED)
            await self._handle_conflict(e.message)
            # draft is kept so another room can be picked without retyping
            self.selected_room = None
            self._transition(ReservationStep.BROWSING)
            raise
        except HotelClientError as e:
            self._transition(ReservationStep.REJECTED)
            report_failure(e, self.notifier, self.session, BOOKING_ERROR_MESSAGE)
            self.message = user_message(e, BOOKING_ERROR_MESSAGE)
            raise
        except asyncio.CancelledError:
            # the request may still land server-side; the booking list will tell
            self._transition(ReservationStep.REJECTED)
            raise

        self.confirmed_booking = receipt.booking
        self.draft = None
        self.selected_room = None
        self.message = receipt.message or "Booking created successfully!"
        self.redirect_to = "bookings"
        self._transition(ReservationStep.CONFIRMED)
        self.notifier.success(self.message)
        return receipt.booking

    async def _handle_conflict(self, message: str) -> None:
        """A single rejection means the whole map is stale: rebuild it"""
        self.message = message
        self.notifier.error(message)
        try:
            await self.refresh_availability()
        except HotelClientError as e:
            logger.warning(f"availability refresh after conflict failed: {e}")

    # ==================== INTERNALS ====================
    def _draft_for(self, room: Room) -> BookingDraft:
        """Form defaults for a picked room; input kept from a rejected attempt carries over"""
        draft = BookingDraft.from_criteria(room.id, self.criteria)
        previous = self.draft
        if previous is None:
            return draft

        if (
            self._draft_criteria == self.criteria
            and previous.is_payable()
            and previous.check_in >= self._today()
        ):
            return BookingDraft(
                room_id=room.id,
                check_in=previous.check_in,
                check_out=previous.check_out,
                guests=previous.guests if room.fits(previous.guests) else draft.guests,
                special_requests=previous.special_requests
            )
        # a new search replaces the stay, not the requests
        return draft.model_copy(update={"special_requests": previous.special_requests})

    def _replace_draft(self, **changes) -> BookingDraft:
        current = self.draft
        values = {
            "room_id": current.room_id,
            "check_in": current.check_in,
            "check_out": current.check_out,
            "guests": current.guests,
            "special_requests": current.special_requests,
        }
        values.update({k: v for k, v in changes.items() if v is not None})
        return BookingDraft(**values)

    def _transition(self, to: ReservationStep) -> None:
        if to not in STEP_TRANSITIONS[self.step]:
            raise ValidationError(f"Cannot go from {self.step.value} to {to.value}")
        logger.info(f"reservation step {self.step.value} -> {to.value}")
        self.step = to
        self.history.append(to)
