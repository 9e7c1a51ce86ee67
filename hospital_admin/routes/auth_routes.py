import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field, field_validator

from hospital_admin.auth import jwt_handler
from hospital_admin.auth.dependencies import get_anonymous_client, get_current_session
from hospital_admin.hospital_api import HospitalAPIClient, HospitalAPIError
from hospital_admin.models.user import ActorRole, SessionUser, role_from_backend, role_to_backend

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

SELF_SIGNUP_ROLES = frozenset({ActorRole.DOCTOR, ActorRole.HELPDESK})


class SigninRequest(BaseModel):
    username: str
    password: str

    @field_validator('username')
    @classmethod
    def validate_username(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Username is required.')
        return normalized


class SignupRequest(BaseModel):
    username: str = Field(min_length=3)
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: str
    phone_number: str | None = None
    role: ActorRole = ActorRole.HELPDESK
    department_id: int | None = None

    @field_validator('username', 'full_name')
    @classmethod
    def strip_required(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('This field is required.')
        return normalized

    def to_backend(self) -> dict:
        return {
            'username': self.username,
            'email': self.email,
            'password': self.password,
            'fullName': self.full_name,
            'phoneNumber': self.phone_number,
            'roles': [role_to_backend(self.role)],
            'departmentId': self.department_id,
        }


class UserResponse(BaseModel):
    id: int | str
    username: str
    email: str | None = None
    role: ActorRole
    first_name: str
    last_name: str


class SigninResponse(BaseModel):
    access_token: str
    token_type: str = 'bearer'
    user: UserResponse


def to_user_response(user: SessionUser) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        first_name=user.first_name,
        last_name=user.last_name,
    )


def session_user_from_signin(data: dict) -> SessionUser:
    roles = data.get('roles') or []
    username = data.get('username') or ''
    return SessionUser(
        id=data.get('id'),
        username=username,
        email=data.get('email'),
        role=role_from_backend(roles[0] if roles else None),
        first_name=data.get('firstName') or username,
        last_name=data.get('lastName') or '',
        access_token=data.get('accessToken') or '',
    )


@router.post('/signin', response_model=SigninResponse)
async def signin(data: SigninRequest, client: HospitalAPIClient = Depends(get_anonymous_client)):
    try:
        response = await client.signin(data.username, data.password)
    except HospitalAPIError as exc:
        if exc.retryable:
            raise
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Login failed') from exc

    if not response or not response.get('accessToken') or response.get('id') is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Login failed')

    user = session_user_from_signin(response)
    logger.info('User %s signed in as %s', user.username, user.role.value)
    return SigninResponse(access_token=jwt_handler.create_access_token(user), user=to_user_response(user))


@router.get('/me', response_model=UserResponse)
def me(current_user: SessionUser = Depends(get_current_session)):
    return to_user_response(current_user)


@router.post('/signup', status_code=status.HTTP_201_CREATED)
async def signup(data: SignupRequest, client: HospitalAPIClient = Depends(get_anonymous_client)):
    if data.role not in SELF_SIGNUP_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f'{data.role.value} accounts can only be granted by an administrator.',
        )

    try:
        await client.signup(data.to_backend())
    except HospitalAPIError as exc:
        if exc.retryable:
            raise
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc

    logger.info('Registered %s as %s', data.username, data.role.value)
    return {'message': 'Account created. Please sign in to continue.'}
