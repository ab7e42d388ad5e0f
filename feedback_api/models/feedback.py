"""Feedback submission models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _now() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


class Submitter(BaseModel):
    """Authenticated user who sent the feedback."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str | None = None
    email: str | None = None


class Attachment(BaseModel):
    """A file to attach to the created work package (e.g. a screenshot)."""

    model_config = ConfigDict(frozen=True)

    content: bytes
    filename: str
    content_type: str = "application/octet-stream"


class FeedbackSubmission(BaseModel):
    """User feedback form submission, already validated by the inbound layer."""

    model_config = ConfigDict(frozen=True)

    subject: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    url: str | None = None
    user_agent: str | None = None
    timestamp: str = Field(default_factory=_now)
    submitter: Submitter | None = None
    attachments: tuple[Attachment, ...] = ()


class FeedbackResponse(BaseModel):
    """Response after feedback submission."""

    success: bool
    message: str
    id: int | None = None
    url: str | None = None
