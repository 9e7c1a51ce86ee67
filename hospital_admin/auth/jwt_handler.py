from datetime import datetime, timedelta, timezone

import jwt

from hospital_admin.core import config
from hospital_admin.models.user import SessionUser

def create_access_token(user: SessionUser, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=expire_minutes)
    payload = {
        "sub": user.username,
        "uid": user.id,
        "role": user.role.value,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "upstream": user.access_token,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def session_from_token(token: str) -> SessionUser:
    payload = decode_access_token(token)
    return SessionUser(
        id=payload["uid"],
        username=payload["sub"],
        email=payload.get("email"),
        role=payload["role"],
        first_name=payload.get("first_name") or "",
        last_name=payload.get("last_name") or "",
        access_token=payload.get("upstream") or "",
    )
