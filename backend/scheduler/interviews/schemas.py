"""Interview request schemas."""

from pydantic import BaseModel, Field

from .models import InterviewStatus


class StatusUpdateRequest(BaseModel):
    status: InterviewStatus
    notes: str | None = Field(None, max_length=2000)
