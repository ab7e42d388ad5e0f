"""Feedback to OpenProject work package orchestration.

Creating a work package takes several remote calls: type lookup, status
lookup, the creation itself and, for screenshots, an upload plus a link
PATCH per file. Only a missing project, an unresolved type or a failed
creation call fail the operation; status lookup and attachments degrade
quietly and are reported as diagnostics on the outcome.
"""

import logging
from typing import Any

import httpx

from feedback_api.config import RemoteEndpointConfig, get_settings
from feedback_api.models.feedback import FeedbackSubmission
from feedback_api.models.work_package import (
    AttachmentOutcome,
    OperationOutcome,
    WorkPackageDraft,
    WorkPackageOverrides,
)
from feedback_api.services.attachments import upload_attachment
from feedback_api.services.connectivity import probe_connection
from feedback_api.services.http_client import (
    api_url,
    get_shared_client,
    is_success,
    openproject_headers,
    response_error,
    response_json,
)
from feedback_api.services.resolver import ResourceResolver, normalize_name

logger = logging.getLogger(__name__)

WORK_PACKAGES_PATH = "/api/v3/work_packages"
DEFAULT_TYPE_NAME = "Bug"
FALLBACK_STATUS_NAMES = ("New", "Open")


def format_description(submission: FeedbackSubmission) -> str:
    """Prefix the user's text with a markdown block of submission metadata.

    Missing fields are left out; with no metadata at all the text is
    returned unchanged.
    """
    info: list[str] = []

    user = submission.submitter
    if user is not None:
        if user.display_name and user.email:
            info.append(f"**User:** {user.display_name} ({user.email})")
        elif user.display_name or user.email:
            info.append(f"**User:** {user.display_name or user.email}")
        info.append(f"**User ID:** {user.id}")

    if submission.url:
        info.append(f"**URL:** {submission.url}")
    if submission.user_agent:
        info.append(f"**User Agent:** {submission.user_agent}")
    if submission.timestamp:
        info.append(f"**Timestamp:** {submission.timestamp}")

    if not info:
        return submission.description

    return (
        "## Feedback Information\n\n"
        + "\n".join(info)
        + "\n\n---\n\n## Description\n\n"
        + submission.description
    )


def _status_names(preferred: str | None) -> list[str]:
    """Status names to try in order, each at most once."""
    names: list[str] = []
    seen: set[str] = set()
    for name in (preferred, *FALLBACK_STATUS_NAMES):
        if not name or normalize_name(name) in seen:
            continue
        seen.add(normalize_name(name))
        names.append(name)
    return names


def _lock_version(data: dict[str, Any], default: int | None = None) -> int | None:
    value = data.get("lockVersion")
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    return value


class WorkPackageService:
    """Creates OpenProject work packages from feedback submissions."""

    def __init__(self, config: RemoteEndpointConfig, client: httpx.AsyncClient):
        self.config = config
        self._client = client
        self.resolver = ResourceResolver(client, config)

    def is_configured(self) -> bool:
        """True when both a base URL and an API key are set."""
        return bool(self.config.base_url) and bool(self.config.api_key)

    async def test_connection(self) -> OperationOutcome:
        return await probe_connection(self._client, self.config)

    def work_package_url(self, work_package_id: int) -> str:
        """Browsable (non-API) URL of a work package."""
        return f"{self.config.base_url.rstrip('/')}/work_packages/{work_package_id}"

    async def create_work_package(
        self,
        submission: FeedbackSubmission,
        overrides: WorkPackageOverrides | None = None,
    ) -> OperationOutcome:
        """Create a work package for *submission*; never raises."""
        try:
            return await self._create(submission, overrides or WorkPackageOverrides())
        except Exception as e:
            logger.exception("Unexpected error creating work package")
            return OperationOutcome.failure(f"Unexpected error: {e}")

    async def _create(
        self, submission: FeedbackSubmission, overrides: WorkPackageOverrides
    ) -> OperationOutcome:
        project_id = overrides.project_id
        if project_id is None:
            project_id = self.config.default_project_id
        if project_id is None:
            return OperationOutcome.failure("Project ID is required")

        type_id, type_name = await self._resolve_type(project_id, overrides)
        if type_id is None:
            return OperationOutcome.failure(
                f'Unable to find work package type "{type_name}"'
            )

        draft = WorkPackageDraft(
            project_id=project_id,
            type_id=type_id,
            subject=submission.subject,
            description=format_description(submission),
            status_id=await self._resolve_status(overrides),
            priority_id=overrides.priority_id,
        )

        url = api_url(self.config, WORK_PACKAGES_PATH)
        try:
            resp = await self._client.post(
                url, headers=openproject_headers(write=True), json=draft.to_payload()
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("Work package creation request failed: %s", e)
            return OperationOutcome.failure(f"Could not reach OpenProject: {e}")

        if not is_success(resp):
            error = response_error(resp)
            logger.warning(
                "Work package creation returned %d: %s", resp.status_code, error
            )
            return OperationOutcome.failure(
                f"Work package creation failed: {resp.status_code}",
                status_code=resp.status_code,
                error=error,
            )

        work_package = response_json(resp)
        if not isinstance(work_package, dict):
            work_package = {}
        wp_id = work_package.get("id")
        if not isinstance(wp_id, int):
            logger.warning("Work package created but response carried no id")
            return OperationOutcome(
                success=True,
                message="Work package created",
                status_code=resp.status_code,
                data=work_package,
            )

        logger.info("Created work package #%d in project %s", wp_id, project_id)
        attachments = await self._attach_files(wp_id, submission, work_package)

        return OperationOutcome(
            success=True,
            message="Work package created",
            id=wp_id,
            url=self.work_package_url(wp_id),
            status_code=resp.status_code,
            data=work_package,
            attachments=attachments,
        )

    async def _resolve_type(
        self, project_id: int, overrides: WorkPackageOverrides
    ) -> tuple[int | None, str]:
        """Type id plus the name that was looked up (for error messages)."""
        if overrides.type_id is not None:
            return overrides.type_id, ""
        if not overrides.type_name and self.config.default_type_id is not None:
            return self.config.default_type_id, ""

        name = (
            overrides.type_name or self.config.default_type_name or DEFAULT_TYPE_NAME
        )
        return await self.resolver.resolve_type_id(project_id, name), name

    async def _resolve_status(self, overrides: WorkPackageOverrides) -> int | None:
        if overrides.status_id is not None:
            return overrides.status_id

        preferred = overrides.status_name or self.config.default_status_name
        for name in _status_names(preferred):
            try:
                status_id = await self.resolver.resolve_status_id(name)
            except Exception:
                logger.exception("Status lookup for %r failed", name)
                continue
            if status_id is not None:
                return status_id

        logger.info("No status resolved; creating work package without one")
        return None

    async def _attach_files(
        self,
        wp_id: int,
        submission: FeedbackSubmission,
        work_package: dict[str, Any],
    ) -> list[AttachmentOutcome]:
        results: list[AttachmentOutcome] = []
        lock_version = _lock_version(work_package)
        for attachment in submission.attachments:
            try:
                result = await upload_attachment(
                    self._client, self.config, wp_id, attachment, lock_version
                )
            except Exception as e:
                logger.exception("Unexpected error attaching %s", attachment.filename)
                result = AttachmentOutcome(
                    success=False,
                    filename=attachment.filename,
                    message=f"Unexpected error: {e}",
                )
            if result.success and result.data:
                # Every successful PATCH bumps the remote lock version
                lock_version = _lock_version(result.data, lock_version)
            elif not result.success:
                logger.warning(
                    "Attachment %s not added to #%d (%s phase): %s",
                    attachment.filename,
                    wp_id,
                    result.phase,
                    result.message,
                )
            results.append(result)
        return results


def get_work_package_service() -> WorkPackageService:
    """Service wired to the process settings and the shared HTTP client."""
    config = RemoteEndpointConfig.from_settings(get_settings())
    return WorkPackageService(config, get_shared_client())
