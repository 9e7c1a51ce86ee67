from pydantic import BaseModel, ConfigDict, Field


class Department(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int | str
    name: str | None = None
    description: str | None = None
    head_of_department: str | None = Field(default=None, alias='headOfDepartment')
    location: str | None = None
    phone: str | None = None
    email: str | None = None
