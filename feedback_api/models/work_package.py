"""OpenProject work package creation drafts and operation outcomes."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

API_PREFIX = "/api/v3"
UNTITLED_SUBJECT = "Untitled feedback"


def resource_href(collection: str, resource_id: int | str) -> str:
    """Relative HAL href for a resource, e.g. ``/api/v3/types/5``."""
    return f"{API_PREFIX}/{collection}/{resource_id}"


class WorkPackageOverrides(BaseModel):
    """Per-submission values that win over the configured defaults."""

    model_config = ConfigDict(frozen=True)

    project_id: int | None = None
    type_id: int | None = None
    type_name: str | None = None
    status_id: int | None = None
    status_name: str | None = None
    priority_id: int | None = None


class WorkPackageDraft(BaseModel):
    """Fully resolved creation request for a single work package."""

    project_id: int
    type_id: int
    subject: str
    description: str
    status_id: int | None = None
    priority_id: int | None = None

    def to_payload(self) -> dict[str, Any]:
        """Render the HAL creation body sent to ``POST /api/v3/work_packages``."""
        links: dict[str, Any] = {
            "project": {"href": resource_href("projects", self.project_id)},
            "type": {"href": resource_href("types", self.type_id)},
        }
        if self.status_id is not None:
            links["status"] = {"href": resource_href("statuses", self.status_id)}
        if self.priority_id is not None:
            links["priority"] = {"href": resource_href("priorities", self.priority_id)}

        return {
            "subject": self.subject if self.subject.strip() else UNTITLED_SUBJECT,
            "description": {"format": "markdown", "raw": self.description},
            "_links": links,
        }


class AttachmentOutcome(BaseModel):
    """Result of uploading one file and linking it to a work package."""

    success: bool
    filename: str
    phase: Literal["upload", "link"] | None = None  # failing phase
    message: str | None = None
    status_code: int | None = None
    upload_href: str | None = None
    data: dict[str, Any] | None = None


class OperationOutcome(BaseModel):
    """Success or failure of a remote operation.

    Services always return one of these instead of raising, so the request
    layer only has two shapes to deal with.
    """

    success: bool
    message: str | None = None
    id: int | None = None
    url: str | None = None
    status_code: int | None = None
    error: Any = None
    data: Any = None
    endpoint: str | None = None
    attachments: list[AttachmentOutcome] = []

    @classmethod
    def failure(
        cls,
        message: str,
        *,
        status_code: int | None = None,
        error: Any = None,
    ) -> "OperationOutcome":
        return cls(
            success=False, message=message, status_code=status_code, error=error
        )

    def public_dict(self) -> dict[str, Any]:
        """The ``{success, message?, id?, url?}`` shape exposed to clients."""
        return self.model_dump(
            include={"success", "message", "id", "url"}, exclude_none=True
        )
