"""
FastAPI dependencies for the caller's session.

The session provider issues an HS256 bearer token carrying `sub` (user id)
and `role` (USER | ADMIN). Admin routes depend on `require_admin`.
"""

from dataclasses import dataclass

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from config import settings
from models.enums import UserRole
from services.exceptions import AuthorizationError

security = HTTPBearer(auto_error=False)


@dataclass
class SessionUser:
    user_id: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def decode_session_token(token: str) -> SessionUser:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthorizationError()

    user_id = payload.get("sub")
    if not user_id:
        raise AuthorizationError()
    try:
        role = UserRole(payload.get("role") or UserRole.USER.value)
    except ValueError:
        raise AuthorizationError()
    return SessionUser(user_id=str(user_id), role=role)


async def get_session_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> SessionUser:
    if credentials is None or not credentials.credentials:
        raise AuthorizationError()
    return decode_session_token(credentials.credentials)


async def require_admin(user: SessionUser = Depends(get_session_user)) -> SessionUser:
    if not user.is_admin:
        raise AuthorizationError(status_code=403)
    return user


async def get_optional_session_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> SessionUser | None:
    """Anonymous callers get None; a bad token is still rejected."""
    if credentials is None or not credentials.credentials:
        return None
    return decode_session_token(credentials.credentials)
