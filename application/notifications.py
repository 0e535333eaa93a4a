"""Application Notifications - toast-style messages and error boundaries"""
import logging
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime, timezone
from typing import Awaitable, Callable, Deque, List, Optional, TypeVar

from pydantic import BaseModel, Field

from domain.auth import SessionStore
from domain.errors import RequestCancelledError, UnauthenticatedError, HotelClientError, user_message

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Notification(BaseModel):
    level: str
    message: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier(ABC):
    """Sink for user-facing success and error messages"""

    @abstractmethod
    def success(self, message: str) -> None:
        pass

    @abstractmethod
    def error(self, message: str) -> None:
        pass


class LoggingNotifier(Notifier):
    """Logs messages and keeps the latest ones for the session view"""

    def __init__(self, keep: int = 20):
        self._messages: Deque[Notification] = deque(maxlen=keep)

    def success(self, message: str) -> None:
        logger.info(f"notify success: {message}")
        self._messages.append(Notification(level="success", message=message))

    def error(self, message: str) -> None:
        logger.warning(f"notify error: {message}")
        self._messages.append(Notification(level="error", message=message))

    @property
    def messages(self) -> List[Notification]:
        return list(self._messages)

    @property
    def last(self) -> Optional[Notification]:
        return self._messages[-1] if self._messages else None


def report_failure(
    error: Exception,
    notifier: Notifier,
    session: Optional[SessionStore],
    fallback: str
) -> None:
    """Surface a failure to the user; cancellations stay silent"""
    if isinstance(error, RequestCancelledError):
        logger.debug("request cancelled, nothing to report")
        return

    notifier.error(user_message(error, fallback))

    if isinstance(error, UnauthenticatedError) and session is not None:
        logger.warning("session rejected by hotel API, clearing it")
        session.clear()


class Loader:
    """Loading flag plus error boundary for one independent fetch path"""

    def __init__(self, name: str, notifier: Notifier, session: Optional[SessionStore] = None):
        self.name = name
        self.notifier = notifier
        self.session = session
        self.loading = False
        self.error: Optional[str] = None

    async def run(self, fetch: Callable[[], Awaitable[T]], fallback: str) -> Optional[T]:
        """Run fetch; on failure report it and return None"""
        self.loading = True
        self.error = None
        try:
            return await fetch()
        except HotelClientError as e:
            if not isinstance(e, RequestCancelledError):
                self.error = user_message(e, fallback)
            report_failure(e, self.notifier, self.session, fallback)
            return None
        finally:
            self.loading = False
