"""Session handling for the hotel API bearer token"""
import logging
from datetime import datetime, timezone
from typing import Optional

from jose import jwt, JWTError

from domain.auth import User, SessionStore
from domain.enums import UserRole
from domain.errors import UnauthenticatedError

logger = logging.getLogger(__name__)


def read_token_claims(token: str) -> dict:
    """Read claims without verifying the signature.

    The hotel API signs and verifies its own tokens; the client only needs
    to know who the token belongs to and when it stops working.
    """
    try:
        return jwt.get_unverified_claims(token)
    except JWTError as e:
        raise UnauthenticatedError("Malformed session token") from e


def user_from_token(token: str, now: Optional[datetime] = None) -> User:
    claims = read_token_claims(token)

    exp = claims.get("exp")
    now = now or datetime.now(timezone.utc)
    if exp is not None and datetime.fromtimestamp(exp, tz=timezone.utc) <= now:
        raise UnauthenticatedError("Session token has expired")

    sub = claims.get("sub")
    if sub is None:
        raise UnauthenticatedError("Session token has no subject")

    try:
        return User(
            id=int(sub),
            role=UserRole(claims.get("role", UserRole.GUEST.value)),
            name=claims.get("name"),
            email=claims.get("email")
        )
    except ValueError as e:
        raise UnauthenticatedError("Session token has invalid claims") from e


class TokenSession(SessionStore):
    """Session backed by the bearer token the caller presented"""

    def __init__(self, token: str, user: Optional[User] = None):
        self._token: Optional[str] = token
        self._user: Optional[User] = user or user_from_token(token)
        self.cleared_at: Optional[datetime] = None

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user(self) -> Optional[User]:
        return self._user

    def clear(self) -> None:
        if self._token is not None:
            logger.info(f"clearing session of user {self._user.id if self._user else '?'}")
        self._token = None
        self._user = None
        self.cleared_at = datetime.now(timezone.utc)
