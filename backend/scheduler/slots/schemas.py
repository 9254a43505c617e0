"""Slot request schemas. Field names follow the camelCase JSON of the public API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class BookSlotRequest(_CamelModel):
    slot_id: str | None = Field(None, alias="slotId", max_length=64)
    token: str | None = Field(None, max_length=128)


class SlotCreateRequest(_CamelModel):
    slot_at: datetime = Field(..., alias="slotDateTime")
    interviewer: str = Field(..., max_length=255)
    meeting_link: str | None = Field(None, alias="meetingLink", max_length=500)


class BulkSlotItem(_CamelModel):
    slot_at: datetime | None = Field(None, alias="slotDateTime")
    interviewer: str | None = Field(None, max_length=255)
    meeting_link: str | None = Field(None, alias="meetingLink", max_length=500)

    def as_item(self) -> dict:
        return {"slotDateTime": self.slot_at, "interviewer": self.interviewer, "meetingLink": self.meeting_link}


class BulkSlotCreateRequest(BaseModel):
    slots: list[BulkSlotItem]


class BulkSlotDeleteRequest(_CamelModel):
    slot_ids: list[str] = Field(..., alias="slotIds")


class CancelBookingRequest(BaseModel):
    reason: str | None = Field(None, max_length=1000)
