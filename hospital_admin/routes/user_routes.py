import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, EmailStr

from hospital_admin.auth.dependencies import get_hospital_client, require_roles
from hospital_admin.hospital_api import HospitalAPIClient
from hospital_admin.models.user import ActorRole, SessionUser, StaffUser, role_to_backend

require_admin = require_roles(ActorRole.ADMIN)

router = APIRouter(tags=['users'], dependencies=[Depends(require_admin)])

logger = logging.getLogger(__name__)

ALL_ROLES = 'ALL'


class UserUpdateRequest(BaseModel):
    email: EmailStr | None = None
    first_name: str | None = None
    last_name: str | None = None
    role: ActorRole | None = None
    department_id: int | None = None
    active: bool | None = None

    def to_backend(self) -> dict:
        payload = {
            'email': self.email,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'departmentId': self.department_id,
            'isActive': self.active,
        }
        if self.role is not None:
            payload['roles'] = [role_to_backend(self.role)]
        return {key: value for key, value in payload.items() if value is not None}


def filter_users(users: list[StaffUser], search: str | None = None, role_filter: str = ALL_ROLES) -> list[StaffUser]:
    filtered = users

    term = (search or '').strip().lower()
    if term:
        filtered = [
            user for user in filtered
            if any(term in (value or '').lower() for value in (user.username, user.email, user.first_name, user.last_name))
        ]

    if role_filter.strip().upper() != ALL_ROLES:
        try:
            wanted = ActorRole(role_filter.strip().upper())
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f'Unknown role filter: {role_filter}',
            ) from exc
        filtered = [user for user in filtered if user.role is wanted]

    return filtered


@router.get('', response_model=list[StaffUser], response_model_by_alias=True)
async def list_users(
    search: str | None = Query(default=None),
    role_filter: str = Query(default=ALL_ROLES, alias='role'),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    return filter_users(await client.list_users(), search=search, role_filter=role_filter)


@router.get('/{user_id}', response_model=StaffUser, response_model_by_alias=True)
async def get_user(user_id: int, client: HospitalAPIClient = Depends(get_hospital_client)):
    return await client.get_user(user_id)


@router.put('/{user_id}', response_model=StaffUser, response_model_by_alias=True)
async def update_user(
    user_id: int,
    data: UserUpdateRequest,
    current_user: SessionUser = Depends(require_admin),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    payload = data.to_backend()
    if not payload:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Nothing to update.')

    logger.info('%s is updating user %s', current_user.username, user_id)
    return await client.update_user(user_id, payload)


@router.delete('/{user_id}', status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    current_user: SessionUser = Depends(require_admin),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    if str(user_id) == str(current_user.id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='You cannot delete your own account.')

    logger.info('%s is deleting user %s', current_user.username, user_id)
    await client.delete_user(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
