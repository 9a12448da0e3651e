"""JWT helpers guarding the admin API."""
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from backoffice.core.config import get_settings

security = HTTPBearer()

ADMIN_ROLES = {"admin", "super_admin"}


class AdminIdentity(BaseModel):
    admin_id: str
    username: str
    role: str


def create_access_token(admin_id: str, username: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    expire_delta = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": admin_id,
        "username": username,
        "role": role,
        "exp": datetime.utcnow() + expire_delta,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> AdminIdentity:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials") from exc

    admin_id = payload.get("sub")
    username = payload.get("username")
    role = payload.get("role")
    if not all([admin_id, username, role]):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials")
    return AdminIdentity(admin_id=admin_id, username=username, role=role)


async def get_current_admin(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> AdminIdentity:
    identity = decode_access_token(credentials.credentials)
    if identity.role not in ADMIN_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
    return identity
