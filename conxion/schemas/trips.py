"""Trip Schemas — trip creation, join requests, responses, thread lookup."""

from datetime import date
from uuid import UUID

from pydantic import Field, field_validator

from conxion.schemas.base import CamelModel


class TripCreate(CamelModel):
    destination_city: str = Field(min_length=1, max_length=120)
    destination_country: str = Field(min_length=1, max_length=120)
    start_date: date
    end_date: date
    purpose: str | None = Field(None, max_length=60)
    styles: list[str] = Field(default_factory=list)
    looking_for: list[str] = Field(default_factory=list)
    note: str | None = Field(None, max_length=2000)

    @field_validator("destination_city", "destination_country")
    @classmethod
    def strip_place(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("destination cannot be empty or whitespace")
        return v


class TripRequestCreate(CamelModel):
    note: str | None = Field(None, max_length=1000)


class TripRequestResponse(CamelModel):
    action: str | None = None


class TripThreadRequest(CamelModel):
    requester_id: UUID | None = None
