from collections.abc import AsyncIterator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from hospital_admin.auth import jwt_handler
from hospital_admin.hospital_api import HospitalAPIClient
from hospital_admin.models.user import ActorRole, SessionUser

security = HTTPBearer()


def get_current_session(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> SessionUser:
    token = credentials.credentials
    try:
        return jwt_handler.session_from_token(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid or expired session") from exc


def require_roles(*roles: ActorRole):
    """Dependency factory that only lets the given roles through."""
    def role_checker(session: SessionUser = Depends(get_current_session)) -> SessionUser:
        if session.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join(role.value for role in roles)}",
            )
        return session

    return role_checker


async def get_hospital_client(
    session: SessionUser = Depends(get_current_session),
) -> AsyncIterator[HospitalAPIClient]:
    client = HospitalAPIClient(access_token=session.access_token)
    try:
        yield client
    finally:
        await client.close()


async def get_anonymous_client() -> AsyncIterator[HospitalAPIClient]:
    client = HospitalAPIClient()
    try:
        yield client
    finally:
        await client.close()
