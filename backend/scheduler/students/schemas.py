"""Student request schemas."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class StudentCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=50)


class BulkResumeDownloadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_ids: list[str] = Field(..., alias="studentIds")
