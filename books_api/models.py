"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator


def normalize_timestamp(value: datetime) -> datetime:
    """
    Bring a timestamp to UTC with millisecond precision.

    Naive values are taken to be UTC already, which is how MongoDB hands
    them back.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        try:
            value = value.astimezone(timezone.utc)
        except OverflowError as e:
            raise ValueError("date_finished out of range") from e
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    return normalize_timestamp(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Identity(BaseModel):
    """Claims of a verified bearer token. Unknown claims are kept."""
    model_config = ConfigDict(extra="allow", frozen=True)

    username: str = Field(..., min_length=1, description="Username of the caller")


class BookCreate(BaseModel):
    """Payload for registering a new book."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    author: str = Field(..., min_length=1, description="Book author")
    title: str = Field(..., min_length=1, description="Book title")
    date_finished: datetime = Field(..., description="When the owner finished reading it")
    registered_by: str = Field(..., min_length=1, description="Username of the owner")

    @field_validator("date_finished")
    @classmethod
    def normalize_date_finished(cls, v):
        return normalize_timestamp(v)


class BookUpdate(BaseModel):
    """Partial update for a book. Only the fields sent are changed."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    author: Optional[str] = Field(None, min_length=1, description="Book author")
    title: Optional[str] = Field(None, min_length=1, description="Book title")
    date_finished: Optional[datetime] = Field(None, description="When the owner finished reading it")

    @field_validator("date_finished")
    @classmethod
    def normalize_date_finished(cls, v):
        if v is None:
            return v
        return normalize_timestamp(v)

    @model_validator(mode="after")
    def validate_patch(self):
        """Require at least one field and reject explicit nulls."""
        if not self.model_fields_set:
            raise ValueError("update must set at least one of: author, title, date_finished")
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def to_patch(self) -> dict:
        """Fields explicitly sent by the client."""
        return self.model_dump(exclude_unset=True)


class Book(BaseModel):
    """Book record as stored and returned by the API."""
    id: int = Field(..., description="Unique book identifier")
    author: str = Field(..., description="Book author")
    title: str = Field(..., description="Book title")
    date_finished: datetime = Field(..., description="When the owner finished reading it")
    registered_by: str = Field(..., description="Username of the owner")

    @field_validator("date_finished")
    @classmethod
    def normalize_date_finished(cls, v):
        return normalize_timestamp(v)

    @field_serializer("date_finished")
    def serialize_date_finished(self, value: datetime) -> str:
        return format_timestamp(value)


class DeleteResponse(BaseModel):
    """Result of a delete operation."""
    deleted: int = Field(..., ge=0, description="Number of books removed")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
