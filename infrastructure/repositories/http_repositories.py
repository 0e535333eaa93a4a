"""Hotel API repositories over HTTP (httpx)"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError as PayloadError

from domain.auth import SessionStore
from domain.entities import Room, Booking, BookingReceipt
from domain.errors import (
    AvailabilityConflictError, RemoteRequestError, UnauthenticatedError, ValidationError
)
from domain.repositories import RoomRepository, BookingRepository, HotelRepository
from domain.value_objects import SearchCriteria, BookingDraft, PriceBreakdown, HotelConfig
from infrastructure.contracts import (
    AvailableRoomsResponse, CheckAvailabilityResponse, CreateBookingRequest,
    BookingMutationResponse, MessageResponse, ErrorResponse, HotelInfoResponse
)

logger = logging.getLogger(__name__)

UNAUTHENTICATED = "Unauthenticated."
_rooms = TypeAdapter(List[Room])
_bookings = TypeAdapter(List[Booking])


class HotelApiClient:
    """Thin JSON client for the hotel API; maps failures to domain errors"""

    def __init__(
        self,
        base_url: str,
        session: Optional[SessionStore] = None,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.session = session
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                "X-Requested-With": "XMLHttpRequest",
            }
        )

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request("GET", path, params=params)

    async def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request("POST", path, json=json)

    async def put(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request("PUT", path, json=json)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HotelApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = {}
        token = self.session.token if self.session else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.debug(f"{method} {path} {kwargs.get('params') or ''}")
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteRequestError(f"Hotel API timed out on {method} {path}") from e
        except httpx.HTTPError as e:
            raise RemoteRequestError(f"Could not reach hotel API: {e}") from e

        if response.is_error:
            self._raise_for_status(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteRequestError(
                f"Hotel API sent a non-JSON body for {method} {path}",
                status_code=response.status_code
            ) from e

    @staticmethod
    def _server_message(response: httpx.Response) -> Optional[str]:
        try:
            body = ErrorResponse.model_validate(response.json())
        except (ValueError, PayloadError):
            return None
        return body.message or None

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        message = self._server_message(response)
        logger.warning(f"hotel API error {status}: {message}")

        if status == 401 or message == UNAUTHENTICATED:
            raise UnauthenticatedError(server_message=message or UNAUTHENTICATED)
        if status == 409:
            raise AvailabilityConflictError(
                message or "Room is not available for the selected dates",
                details={"status_code": status}
            )
        if status == 422:
            if message and "available" in message.lower():
                raise AvailabilityConflictError(message, details={"status_code": status})
            raise ValidationError(message or "The hotel API rejected the request")
        raise RemoteRequestError(
            f"Hotel API returned {status}",
            status_code=status,
            server_message=message
        )


def _parse(adapter_or_model, payload: Any, what: str):
    try:
        if isinstance(adapter_or_model, TypeAdapter):
            return adapter_or_model.validate_python(payload)
        return adapter_or_model.model_validate(payload)
    except PayloadError as e:
        raise RemoteRequestError(f"Unexpected {what} payload from hotel API") from e


class HttpRoomRepository(RoomRepository):
    """Rooms served by the hotel API"""

    def __init__(self, api: HotelApiClient):
        self.api = api

    async def find_all(self) -> List[Room]:
        return _parse(_rooms, await self.api.get("guest/rooms"), "rooms")

    async def find_available(self, criteria: SearchCriteria) -> List[Room]:
        payload = await self.api.get("rooms/available", params=criteria.to_query_params())
        return _parse(AvailableRoomsResponse, payload, "available rooms").available_rooms

    async def check_availability(self, room_id: int, check_in: date, check_out: date) -> bool:
        payload = await self.api.get(
            "rooms/check-availability",
            params={
                "room_id": room_id,
                "check_in": check_in.isoformat(),
                "check_out": check_out.isoformat(),
            }
        )
        return _parse(CheckAvailabilityResponse, payload, "availability").available


class HttpBookingRepository(BookingRepository):
    """Bookings served by the hotel API"""

    def __init__(self, api: HotelApiClient):
        self.api = api

    async def create(self, user_id: int, draft: BookingDraft, price: PriceBreakdown) -> BookingReceipt:
        request = CreateBookingRequest(
            user_id=user_id,
            room_id=draft.room_id,
            check_in=draft.check_in,
            check_out=draft.check_out,
            guests=draft.guests,
            total_amount=price.total_amount,
            tax_amount=price.tax_amount,
            special_requests=draft.special_requests or None
        )
        body = request.model_dump(mode="json", exclude_none=True)
        # amounts go out as JSON numbers
        body["total_amount"] = float(request.total_amount)
        body["tax_amount"] = float(request.tax_amount)

        response = _parse(BookingMutationResponse, await self.api.post("bookings", json=body), "booking")
        if response.booking is None:
            raise RemoteRequestError("Hotel API accepted the booking but returned no record")
        return BookingReceipt(message=response.message, booking=response.booking)

    async def find_for_guest(self) -> List[Booking]:
        return _parse(_bookings, await self.api.get("guest/bookings"), "bookings")

    async def find_all(self) -> List[Booking]:
        return _parse(_bookings, await self.api.get("bookings"), "bookings")

    async def update(self, booking_id: int, changes: Dict[str, Any]) -> BookingReceipt:
        payload = await self.api.put(f"bookings/{booking_id}", json=changes)
        response = _parse(BookingMutationResponse, payload or {}, "booking")
        return BookingReceipt(message=response.message, booking=response.booking)

    async def cancel(self, booking_id: int) -> str:
        payload = await self.api.put(f"bookings/{booking_id}/cancel-booking")
        return _parse(MessageResponse, payload or {}, "cancellation").message


class HttpHotelRepository(HotelRepository):
    """Hotel info and admin analytics served by the hotel API"""

    def __init__(self, api: HotelApiClient):
        self.api = api

    async def get_config(self) -> HotelConfig:
        info = _parse(HotelInfoResponse, await self.api.get("hotel-info"), "hotel info")
        return HotelConfig(**info.model_dump())

    async def get_report(self, time_range: str) -> Dict[str, Any]:
        return await self.api.get("admin/reports", params={"time_range": time_range}) or {}

    async def get_payment_analytics(self, time_range: str) -> Dict[str, Any]:
        return await self.api.get("admin/payment-analytics", params={"time_range": time_range}) or {}
