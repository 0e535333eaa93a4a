"""Per-user client sessions

Each bearer token gets its own browsing session: workflow, booking views
and report feeds. Nothing is shared between sessions except the backend.
"""
import logging
from typing import Callable, Dict, Optional

from application.concurrency import TimeRangeFeed
from application.notifications import LoggingNotifier
from application.services import (
    AvailabilityService, BookingBoardService, GuestBookingService, HotelInfoService
)
from application.workflow import ReservationWorkflow
from domain.repositories import RoomRepository, BookingRepository, HotelRepository
from domain.value_objects import HotelConfig
from infrastructure.repositories.http_repositories import (
    HotelApiClient, HttpRoomRepository, HttpBookingRepository, HttpHotelRepository
)
from infrastructure.repositories.in_memory_repositories import (
    InMemoryHotelBackend, InMemoryRoomRepository, InMemoryBookingRepository, InMemoryHotelRepository
)
from infrastructure.security import TokenSession

logger = logging.getLogger(__name__)


class ClientSession:
    """Everything one signed-in user's views hold"""

    def __init__(
        self,
        store: TokenSession,
        rooms: RoomRepository,
        bookings: BookingRepository,
        hotel: HotelRepository,
        default_config: Optional[HotelConfig] = None,
        recheck_before_submit: bool = True,
        api: Optional[HotelApiClient] = None
    ):
        self.store = store
        self.notifier = LoggingNotifier()
        self.api = api

        self.hotel = HotelInfoService(hotel)
        self.availability = AvailabilityService(rooms)
        self.workflow = ReservationWorkflow(
            availability=self.availability,
            bookings=bookings,
            hotel=self.hotel,
            session=store,
            notifier=self.notifier,
            config=default_config,
            recheck_before_submit=recheck_before_submit
        )
        self.guest_bookings = GuestBookingService(bookings)
        self.board = BookingBoardService(bookings)
        self.reports = TimeRangeFeed(self.hotel.get_report, "reports")
        self.payment_analytics = TimeRangeFeed(self.hotel.get_payment_analytics, "payment analytics")
        self._loaded = False

    async def ensure_loaded(self) -> None:
        if not self._loaded:
            await self.workflow.load()
            self._loaded = self.workflow.rooms_loader.error is None

    async def close(self) -> None:
        self.workflow.close()
        self.reports.close()
        self.payment_analytics.close()
        if self.api is not None:
            await self.api.aclose()


SessionFactory = Callable[[TokenSession], ClientSession]


def http_session_factory(
    base_url: str,
    timeout_seconds: float,
    default_config: Optional[HotelConfig] = None,
    recheck_before_submit: bool = True
) -> SessionFactory:
    def build(store: TokenSession) -> ClientSession:
        api = HotelApiClient(base_url, session=store, timeout_seconds=timeout_seconds)
        return ClientSession(
            store,
            HttpRoomRepository(api),
            HttpBookingRepository(api),
            HttpHotelRepository(api),
            default_config=default_config,
            recheck_before_submit=recheck_before_submit,
            api=api
        )
    return build


def in_memory_session_factory(
    backend: InMemoryHotelBackend,
    default_config: Optional[HotelConfig] = None,
    recheck_before_submit: bool = True
) -> SessionFactory:
    def build(store: TokenSession) -> ClientSession:
        return ClientSession(
            store,
            InMemoryRoomRepository(backend, store),
            InMemoryBookingRepository(backend, store),
            InMemoryHotelRepository(backend, store),
            default_config=default_config,
            recheck_before_submit=recheck_before_submit
        )
    return build


class SessionRegistry:
    """Client sessions keyed by bearer token"""

    def __init__(self, factory: SessionFactory):
        self.factory = factory
        self._sessions: Dict[str, ClientSession] = {}

    def get_or_create(self, token: str) -> ClientSession:
        session = self._sessions.get(token)
        if session is None:
            session = self.factory(TokenSession(token))
            self._sessions[token] = session
            logger.info(f"opened client session for user {session.store.user.id}")
        return session

    async def drop(self, token: str) -> None:
        session = self._sessions.pop(token, None)
        if session is not None:
            await session.close()
            logger.info("dropped client session")

    async def close_all(self) -> None:
        for token in list(self._sessions):
            await self.drop(token)

    def __len__(self) -> int:
        return len(self._sessions)
