"""API Dependencies - Authentication and sessions"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from api.sessions import ClientSession, SessionRegistry
from domain.auth import User
from domain.errors import UnauthenticatedError
from infrastructure.security import user_from_token

bearer_scheme = HTTPBearer(auto_error=False)

_registry: SessionRegistry = None


def configure_registry(registry: SessionRegistry) -> None:
    global _registry
    _registry = registry


def get_session_registry() -> SessionRegistry:
    if _registry is None:
        raise RuntimeError("Session registry is not configured")
    return _registry


def _credentials_exception(detail: str = "Unauthenticated.") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_token(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> str:
    if credentials is None or not credentials.credentials:
        raise _credentials_exception()
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_token),
    registry: SessionRegistry = Depends(get_session_registry)
) -> User:
    try:
        return user_from_token(token)
    except UnauthenticatedError as e:
        # an expired token never comes back; release whatever it held
        await registry.drop(token)
        raise _credentials_exception(e.message)


async def get_client_session(
    token: str = Depends(get_token),
    current_user: User = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry)
) -> ClientSession:
    session = registry.get_or_create(token)
    if not session.store.is_active():
        await registry.drop(token)
        raise _credentials_exception()
    return session


async def get_admin_session(
    current_user: User = Depends(get_current_user),
    session: ClientSession = Depends(get_client_session)
) -> ClientSession:
    if not current_user.is_admin():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return session
