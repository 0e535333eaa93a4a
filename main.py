import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Depends, Query

from api.schemas import (
    # Guest browsing
    SearchRequest, DraftUpdateRequest, SessionResponse, CriteriaResponse, RoomOfferResponse,
    DraftResponse, PriceResponse, NotificationResponse,
    # Bookings
    BookingResponse, StatusUpdateRequest, PaymentStatusUpdateRequest, PaymentInfoRequest,
    MutationResponse
)
from api.dependencies import (
    configure_registry, get_client_session, get_admin_session, get_session_registry, get_token
)
from api.sessions import (
    ClientSession, SessionRegistry, http_session_factory, in_memory_session_factory
)
from application.services import allowed_transitions
from config import settings
from domain.entities import Booking, Room
from domain.enums import BookingStatus, PaymentStatus, BookingTab, RoomType
from domain.errors import (
    HotelClientError, ValidationError, AvailabilityConflictError, UnauthenticatedError,
    RequestCancelledError, user_message
)
from domain.value_objects import HotelConfig, PriceBreakdown
from infrastructure.repositories.in_memory_repositories import InMemoryHotelBackend

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await registry.close_all()


app = FastAPI(
    title="Hotel Web Client",
    description="Guest room reservation and admin booking management on top of the hotel API",
    version=settings.service_version,
    lifespan=lifespan
)

default_config = HotelConfig(
    currency=settings.default_currency,
    currency_symbol=settings.default_currency_symbol,
    tax_rate=settings.default_tax_rate
)


def seed_demo_rooms(backend: InMemoryHotelBackend) -> None:
    """A small hotel to browse when running without the remote API"""
    backend.add_room(Room(id=1, number="101", type=RoomType.STANDARD, price_per_night=Decimal("2000"),
                          capacity=2, amenities=["WiFi", "TV"], floor=1))
    backend.add_room(Room(id=2, number="102", type=RoomType.STANDARD, price_per_night=Decimal("2200"),
                          capacity=3, amenities=["WiFi", "TV"], floor=1))
    backend.add_room(Room(id=3, number="201", type=RoomType.DELUXE, price_per_night=Decimal("3500"),
                          capacity=3, amenities=["WiFi", "TV", "Mini Bar"], floor=2))
    backend.add_room(Room(id=4, number="301", type=RoomType.SUITE, price_per_night=Decimal("6000"),
                          capacity=4, amenities=["WiFi", "TV", "Mini Bar", "Jacuzzi"], floor=3))


# Initialize backend
if settings.use_in_memory_backend:
    backend = InMemoryHotelBackend(default_config)
    seed_demo_rooms(backend)
    logger.info("serving from the in-memory hotel backend")
    registry = SessionRegistry(in_memory_session_factory(
        backend, default_config, settings.recheck_before_submit
    ))
else:
    logger.info(f"serving from hotel API at {settings.api_base_url}")
    registry = SessionRegistry(http_session_factory(
        settings.api_base_url, settings.api_timeout_seconds, default_config, settings.recheck_before_submit
    ))
configure_registry(registry)


# ============================================================================
# ERROR MAPPING
# ============================================================================

async def _fail(
    error: HotelClientError,
    fallback: str,
    token: Optional[str] = None,
    sessions: Optional[SessionRegistry] = None
) -> HTTPException:
    """Translate a client error into the HTTP error of this web client"""
    if isinstance(error, UnauthenticatedError):
        if token and sessions is not None:
            await sessions.drop(token)
        return HTTPException(
            status_code=401,
            detail=user_message(error, "Unauthenticated."),
            headers={"WWW-Authenticate": "Bearer"}
        )
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=error.message)
    if isinstance(error, AvailabilityConflictError):
        return HTTPException(status_code=409, detail=error.message)
    if isinstance(error, RequestCancelledError):
        return HTTPException(status_code=409, detail="Request superseded")
    return HTTPException(status_code=502, detail=user_message(error, fallback))


# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "Web client is running", "sessions": len(registry)}


@app.get("/api/enums/booking-status", tags=["Enum Reference"])
async def get_booking_statuses():
    """Get all BookingStatus values with their next statuses"""
    return {
        "values": [item.value for item in BookingStatus],
        "transitions": {item.value: [s.value for s in allowed_transitions(item)] for item in BookingStatus}
    }


@app.get("/api/enums/payment-status", tags=["Enum Reference"])
async def get_payment_statuses():
    """Get all PaymentStatus values"""
    return {"values": [item.value for item in PaymentStatus]}


# ============================================================================
# GUEST BROWSING ENDPOINTS
# ============================================================================

@app.get("/api/guest/session", response_model=SessionResponse, tags=["Guest"])
async def get_session(client: ClientSession = Depends(get_client_session)):
    """Current state of the room browsing view"""
    await client.ensure_loaded()
    return _session_to_response(client)


@app.post("/api/guest/search", response_model=SessionResponse, tags=["Guest"])
async def search_rooms(
    request: SearchRequest,
    client: ClientSession = Depends(get_client_session),
    token: str = Depends(get_token),
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Search room availability for a date range and party size"""
    await client.ensure_loaded()
    try:
        await client.workflow.search(
            check_in=request.check_in,
            check_out=request.check_out,
            guests=request.guests,
            room_type=request.room_type,
            min_price=request.min_price,
            max_price=request.max_price
        )
    except HotelClientError as e:
        raise await _fail(e, "Error checking availability", token, sessions)
    return _session_to_response(client)


@app.post("/api/guest/rooms/{room_id}/book", response_model=SessionResponse, tags=["Guest"])
async def open_booking_form(
    room_id: int,
    client: ClientSession = Depends(get_client_session),
    token: str = Depends(get_token),
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Re-check the room and open the booking form"""
    try:
        await client.workflow.select_room(room_id)
    except HotelClientError as e:
        raise await _fail(e, "Error checking availability", token, sessions)
    return _session_to_response(client)


@app.put("/api/guest/draft", response_model=SessionResponse, tags=["Guest"])
async def update_draft(
    request: DraftUpdateRequest,
    client: ClientSession = Depends(get_client_session)
):
    """Edit the booking form"""
    try:
        client.workflow.update_draft(
            check_in=request.check_in,
            check_out=request.check_out,
            guests=request.guests,
            special_requests=request.special_requests
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return _session_to_response(client)


@app.post("/api/guest/draft/cancel", response_model=SessionResponse, tags=["Guest"])
async def cancel_booking_form(client: ClientSession = Depends(get_client_session)):
    """Close the booking form and discard the draft"""
    try:
        client.workflow.cancel_form()
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return _session_to_response(client)


@app.post("/api/guest/submit", response_model=BookingResponse, status_code=201, tags=["Guest"])
async def submit_booking(
    client: ClientSession = Depends(get_client_session),
    token: str = Depends(get_token),
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Submit the booking form"""
    try:
        booking = await client.workflow.submit()
    except HotelClientError as e:
        raise await _fail(e, "Error creating booking", token, sessions)
    return _booking_to_response(booking)


# ============================================================================
# GUEST BOOKINGS ENDPOINTS
# ============================================================================

@app.get("/api/guest/bookings", response_model=List[BookingResponse], tags=["Guest Bookings"])
async def get_guest_bookings(
    tab: BookingTab = Query(BookingTab.UPCOMING),
    client: ClientSession = Depends(get_client_session),
    token: str = Depends(get_token),
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Bookings of the signed-in guest for one tab"""
    try:
        await client.guest_bookings.refresh()
    except HotelClientError as e:
        raise await _fail(e, "Error fetching bookings", token, sessions)
    return [_booking_to_response(b) for b in client.guest_bookings.tab(tab)]


@app.put("/api/guest/bookings/{booking_id}/cancel", response_model=MutationResponse, tags=["Guest Bookings"])
async def cancel_guest_booking(
    booking_id: int,
    client: ClientSession = Depends(get_client_session),
    token: str = Depends(get_token),
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Cancel own booking while it is still pending"""
    try:
        bookings = await client.guest_bookings.refresh()
        booking = next((b for b in bookings if b.id == booking_id), None)
        if booking is None:
            raise HTTPException(status_code=404, detail="Booking not found")
        message = await client.guest_bookings.cancel_booking(booking)
    except HotelClientError as e:
        raise await _fail(e, "Failed to cancel your room reservation!", token, sessions)
    return MutationResponse(
        message=message,
        bookings=[_booking_to_response(b) for b in client.guest_bookings.bookings]
    )


# ============================================================================
# ADMIN BOOKING MANAGEMENT ENDPOINTS
# ============================================================================

@app.get("/api/admin/bookings", response_model=List[BookingResponse], tags=["Admin Bookings"])
async def get_all_bookings(
    search: str = "",
    status: str = "all",
    client: ClientSession = Depends(get_admin_session),
    token: str = Depends(get_token),
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """All bookings, filtered by search term and status"""
    try:
        await client.board.refresh()
    except HotelClientError as e:
        raise await _fail(e, "Error fetching bookings", token, sessions)
    return [_booking_to_response(b) for b in client.board.filter(search, status)]


@app.put("/api/admin/bookings/{booking_id}/status", response_model=MutationResponse, tags=["Admin Bookings"])
async def update_booking_status(
    booking_id: int,
    request: StatusUpdateRequest,
    client: ClientSession = Depends(get_admin_session),
    token: str = Depends(get_token),
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Change booking status; the hotel API decides whether it is legal"""
    try:
        receipt = await client.board.set_status(booking_id, request.status)
    except HotelClientError as e:
        raise await _fail(e, "Error updating booking", token, sessions)
    return _receipt_to_response(client, receipt.message or "Booking status updated", receipt.booking)


@app.put("/api/admin/bookings/{booking_id}/payment-status", response_model=MutationResponse, tags=["Admin Bookings"])
async def update_payment_status(
    booking_id: int,
    request: PaymentStatusUpdateRequest,
    client: ClientSession = Depends(get_admin_session),
    token: str = Depends(get_token),
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Record a payment status set by the operator"""
    try:
        receipt = await client.board.set_payment_status(booking_id, request.payment_status)
    except HotelClientError as e:
        raise await _fail(e, "Error updating booking", token, sessions)
    return _receipt_to_response(client, receipt.message or "Booking payment status updated", receipt.booking)


@app.put("/api/admin/bookings/{booking_id}/payment-info", response_model=MutationResponse, tags=["Admin Bookings"])
async def update_payment_info(
    booking_id: int,
    request: PaymentInfoRequest,
    client: ClientSession = Depends(get_admin_session),
    token: str = Depends(get_token),
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Record payment or refund details"""
    try:
        receipt = await client.board.update_payment_info(
            booking_id,
            payment_status=request.payment_status,
            payment_date=request.payment_date,
            payment_reference=request.payment_reference,
            payment_method=request.payment_method,
            payment_method_account=request.payment_method_account,
            refund_date=request.refund_date
        )
    except HotelClientError as e:
        raise await _fail(e, "Error updating booking", token, sessions)
    return _receipt_to_response(client, receipt.message or "Booking payment status updated", receipt.booking)


# ============================================================================
# ADMIN REPORT FEEDS
# ============================================================================

@app.get("/api/admin/reports", tags=["Admin Reports"])
async def get_reports(
    time_range: str = "month",
    client: ClientSession = Depends(get_admin_session),
    token: str = Depends(get_token),
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Report data for a time range; a newer selection supersedes this one"""
    try:
        return await client.reports.select(time_range)
    except HotelClientError as e:
        raise await _fail(e, "Error fetching reports", token, sessions)


@app.get("/api/admin/payment-analytics", tags=["Admin Reports"])
async def get_payment_analytics(
    time_range: str = "month",
    client: ClientSession = Depends(get_admin_session),
    token: str = Depends(get_token),
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Payment analytics for a time range"""
    try:
        return await client.payment_analytics.select(time_range)
    except HotelClientError as e:
        raise await _fail(e, "Error fetching payment analytics", token, sessions)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _price_to_response(price: PriceBreakdown, config: HotelConfig) -> PriceResponse:
    return PriceResponse(
        nights=price.nights,
        price_per_night=price.price_per_night,
        subtotal=price.subtotal,
        tax_rate=price.tax_rate,
        tax_amount=price.tax_amount,
        total_amount=price.total_amount,
        formatted_total=config.format_money(price.total_amount)
    )


def _room_to_response(room: Room, available: bool, config: HotelConfig) -> RoomOfferResponse:
    return RoomOfferResponse(
        id=room.id,
        number=room.number,
        type=room.type.value,
        price_per_night=room.price_per_night,
        formatted_price=config.format_money(room.price_per_night),
        capacity=room.capacity,
        amenities=room.amenities,
        description=room.description,
        images=room.images,
        floor=room.floor,
        available=available
    )


def _booking_to_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        code=booking.code,
        user_id=booking.user_id,
        room_id=booking.room_id,
        room_number=booking.room.number if booking.room else None,
        guest_name=booking.user.name if booking.user else None,
        check_in=booking.check_in,
        check_out=booking.check_out,
        nights=booking.nights(),
        guests=booking.guests,
        total_amount=booking.total_amount,
        tax_amount=booking.tax_amount,
        status=booking.status.value,
        payment_status=booking.payment_status.value,
        special_requests=booking.special_requests,
        payment_date=booking.payment_date,
        refund_date=booking.refund_date,
        payment_reference=booking.payment_reference,
        payment_method=booking.payment_method,
        payment_method_account=booking.payment_method_account,
        can_cancel=booking.is_guest_cancellable(),
        next_statuses=[s.value for s in allowed_transitions(booking.status)]
    )


def _receipt_to_response(client: ClientSession, message: str, booking: Optional[Booking]) -> MutationResponse:
    return MutationResponse(
        message=message,
        booking=_booking_to_response(booking) if booking else None,
        bookings=[_booking_to_response(b) for b in client.board.bookings]
    )


def _session_to_response(client: ClientSession) -> SessionResponse:
    workflow = client.workflow
    config = workflow.config

    criteria = None
    rooms = []
    if workflow.criteria is not None:
        criteria = CriteriaResponse(
            check_in=workflow.criteria.check_in,
            check_out=workflow.criteria.check_out,
            guests=workflow.criteria.guests,
            nights=workflow.criteria.nights(),
            room_type=workflow.criteria.room_type.value if workflow.criteria.room_type else None
        )
    if workflow.availability_map is not None:
        rooms = [
            _room_to_response(entry.room_snapshot, entry.available, config)
            for entry in workflow.availability_map.listing()
        ]

    draft = None
    if workflow.draft is not None:
        # a draft kept after a conflict has no room until the guest picks another
        room = workflow.selected_room
        draft = DraftResponse(
            room_id=workflow.draft.room_id,
            room_number=room.number if room else None,
            check_in=workflow.draft.check_in,
            check_out=workflow.draft.check_out,
            guests=workflow.draft.guests,
            max_guests=room.capacity if room else None,
            special_requests=workflow.draft.special_requests,
            nights=workflow.draft.nights()
        )

    price = workflow.price_recap()

    return SessionResponse(
        step=workflow.step,
        loading=workflow.searching or workflow.rooms_loader.loading,
        criteria=criteria,
        rooms=rooms,
        draft=draft,
        price=_price_to_response(price, config) if price else None,
        can_submit=workflow.can_submit,
        message=workflow.message,
        redirect_to=workflow.redirect_to,
        confirmed_booking=_booking_to_response(workflow.confirmed_booking) if workflow.confirmed_booking else None,
        notifications=[
            NotificationResponse(level=n.level, message=n.message, created_at=n.created_at)
            for n in client.notifier.messages
        ]
    )
