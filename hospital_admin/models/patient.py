"""Patient model definitions."""

from datetime import date

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Patient(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int | str
    first_name: str = Field(default='', alias='firstName')
    last_name: str = Field(default='', alias='lastName')
    email: str | None = None
    phone: str | None = Field(
        default=None,
        alias='phoneNumber',
        validation_alias=AliasChoices('phoneNumber', 'phone'),
    )
    date_of_birth: date | None = Field(default=None, alias='dateOfBirth')
    address: str | None = None
    emergency_contact: str | None = Field(default=None, alias='emergencyContact')
    medical_history: str | None = Field(default=None, alias='medicalHistory')
    insurance_info: str | None = Field(default=None, alias='insuranceInfo')
    active: bool = True

    @property
    def full_name(self) -> str:
        return f'{self.first_name} {self.last_name}'.strip()


class PatientPage(BaseModel):
    """One page of the backend's paged patient listing."""

    model_config = ConfigDict(populate_by_name=True)

    content: list[Patient] = []
    total_elements: int = Field(default=0, alias='totalElements')
    total_pages: int = Field(default=0, alias='totalPages')
    page: int = Field(default=0, alias='number')
    size: int = 0
