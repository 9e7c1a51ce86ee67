"""User and session model definitions."""

import logging
from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from hospital_admin.core import config

logger = logging.getLogger(__name__)


class ActorRole(str, Enum):
    """Role of the signed-in actor."""

    ADMIN = 'ADMIN'
    DOCTOR = 'DOCTOR'
    HELPDESK = 'HELPDESK'
    PATIENT = 'PATIENT'


BACKEND_ROLES = {
    'ROLE_ADMIN': ActorRole.ADMIN,
    'ROLE_DOCTOR': ActorRole.DOCTOR,
    'ROLE_HELPDESK': ActorRole.HELPDESK,
    'ROLE_PATIENT': ActorRole.PATIENT,
}


def role_from_backend(backend_role: str | None) -> ActorRole:
    """Map a backend role string such as ``ROLE_DOCTOR`` to an ActorRole.

    The match is case-sensitive. Anything else falls back to
    ``config.UNKNOWN_ROLE_FALLBACK`` and is logged.
    """
    role = BACKEND_ROLES.get(backend_role or '')
    if role is not None:
        return role

    fallback = ActorRole(config.UNKNOWN_ROLE_FALLBACK)
    logger.warning('Unknown backend role %r, defaulting to %s', backend_role, fallback.value)
    return fallback


class SessionUser(BaseModel):
    """Represents the signed-in portal user."""

    id: int | str
    username: str
    email: str | None = None
    role: ActorRole
    first_name: str = ''
    last_name: str = ''
    access_token: str = ''


def role_to_backend(role: ActorRole) -> str:
    return f'ROLE_{ActorRole(role).value}'


class StaffUser(BaseModel):
    """A portal account as listed by the backend's user management endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    id: int | str
    username: str
    email: str | None = None
    first_name: str = Field(default='', alias='firstName')
    last_name: str = Field(default='', alias='lastName')
    role: ActorRole | None = None
    department: str | None = None
    active: bool = Field(
        default=True,
        alias='isActive',
        validation_alias=AliasChoices('isActive', 'active'),
    )
    created_at: datetime | None = Field(default=None, alias='createdAt')

    @model_validator(mode='before')
    @classmethod
    def take_first_role(cls, data):
        # Some endpoints send a list of roles instead of a single one.
        if isinstance(data, dict) and data.get('role') is None and data.get('roles'):
            first = data['roles'][0]
            if isinstance(first, dict):
                first = first.get('name')
            data = {**data, 'role': first}
        return data

    @field_validator('role', mode='before')
    @classmethod
    def parse_role(cls, value):
        if isinstance(value, str) and value in BACKEND_ROLES:
            return BACKEND_ROLES[value]
        return value
