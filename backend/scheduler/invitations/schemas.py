"""Invitation request schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class InvitationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_id: UUID = Field(..., alias="studentId")


class BulkInvitationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_ids: list[UUID] = Field(..., alias="studentIds")
