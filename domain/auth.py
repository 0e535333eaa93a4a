"""Domain Entities - Auth"""
from abc import ABC, abstractmethod
from pydantic import BaseModel
from typing import Optional

from domain.enums import UserRole


class User(BaseModel):
    """Signed-in user as described by the API token"""
    id: int
    role: UserRole = UserRole.GUEST
    name: Optional[str] = None
    email: Optional[str] = None

    class Config:
        from_attributes = True

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class SessionStore(ABC):
    """Holder of the signed-in user's API session"""

    @property
    @abstractmethod
    def token(self) -> Optional[str]:
        """Bearer token sent to the hotel API"""
        pass

    @property
    @abstractmethod
    def user(self) -> Optional[User]:
        """Signed-in user"""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Forget the session (forced logout)"""
        pass

    def is_active(self) -> bool:
        return self.token is not None and self.user is not None
