"""Feedback submission endpoint that files each form as a work package."""

import logging

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    Header,
    HTTPException,
    Request,
    UploadFile,
)
from fastapi.responses import JSONResponse
from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from feedback_api.config import Settings, get_settings
from feedback_api.middleware import request_id_var
from feedback_api.models.feedback import (
    Attachment,
    FeedbackResponse,
    FeedbackSubmission,
    Submitter,
)
from feedback_api.services.work_packages import (
    WorkPackageService,
    get_work_package_service,
)

router = APIRouter(prefix="/feedback", tags=["feedback"])
logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Feedback submitted successfully! Thank you for your contribution."

_http_url = TypeAdapter(AnyHttpUrl)


def get_submitter(
    x_forwarded_user: str | None = Header(None),
    x_forwarded_preferred_username: str | None = Header(None),
    x_forwarded_email: str | None = Header(None),
) -> Submitter:
    """Identify the submitter from headers set by the authenticating proxy."""
    if not x_forwarded_user:
        raise HTTPException(status_code=401, detail="Authentication required.")
    return Submitter(
        id=x_forwarded_user,
        display_name=x_forwarded_preferred_username,
        email=x_forwarded_email,
    )


def validate_form(
    settings: Settings,
    subject: str,
    description: str,
    url: str | None,
    screenshot: Attachment | None,
) -> dict[str, list[str]]:
    """Check the form against the configured bounds. Returns errors per field."""
    errors: dict[str, list[str]] = {}

    def add(field: str, message: str) -> None:
        errors.setdefault(field, []).append(message)

    if not subject.strip():
        add("subject", "The subject field is required.")
    elif len(subject) > settings.feedback_subject_max_length:
        add(
            "subject",
            f"The subject may not be greater than "
            f"{settings.feedback_subject_max_length} characters.",
        )

    if not description.strip():
        add("description", "The description field is required.")
    elif len(description) > settings.feedback_description_max_length:
        add(
            "description",
            f"The description may not be greater than "
            f"{settings.feedback_description_max_length} characters.",
        )

    if url:
        if len(url) > settings.feedback_url_max_length:
            add(
                "url",
                f"The url may not be greater than "
                f"{settings.feedback_url_max_length} characters.",
            )
        else:
            try:
                _http_url.validate_python(url)
            except ValidationError:
                add("url", "The url must be a valid URL.")

    if screenshot is not None:
        if not screenshot.content_type.startswith("image/"):
            add("screenshot", "The screenshot must be an image.")
        if len(screenshot.content) > settings.screenshot_max_size_kb * 1024:
            add(
                "screenshot",
                f"The screenshot may not be greater than "
                f"{settings.screenshot_max_size_kb} kilobytes.",
            )

    return errors


async def _read_screenshot(upload: UploadFile | None) -> Attachment | None:
    # Browsers send an empty file part when nothing was picked
    if upload is None or not upload.filename:
        return None
    return Attachment(
        content=await upload.read(),
        filename=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
    )


@router.post("", response_model=FeedbackResponse)
async def submit_feedback(
    request: Request,
    subject: str = Form(""),
    description: str = Form(""),
    url: str | None = Form(None),
    screenshot: UploadFile | None = File(None),
    submitter: Submitter = Depends(get_submitter),
    service: WorkPackageService = Depends(get_work_package_service),
):
    """Submit feedback. Filed as an OpenProject work package."""
    settings = get_settings()

    attachment = None
    if settings.screenshot_enabled:
        attachment = await _read_screenshot(screenshot)
    errors = validate_form(settings, subject, description, url, attachment)
    if errors:
        return JSONResponse(
            status_code=422,
            content={"success": False, "message": "Invalid data", "errors": errors},
        )

    submission = FeedbackSubmission(
        subject=subject,
        description=description,
        url=url or request.headers.get("referer"),
        user_agent=request.headers.get("user-agent"),
        submitter=submitter,
        attachments=(attachment,) if attachment else (),
    )

    outcome = await service.create_work_package(submission)

    if not outcome.success:
        logger.error(
            "Work package creation failed for user %s: %s",
            submitter.id,
            outcome.message,
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": f"Error submitting feedback: {outcome.message}",
            },
        )

    failed = [a.filename for a in outcome.attachments if not a.success]
    if failed:
        logger.warning(
            "Work package #%s created without attachments: %s",
            outcome.id,
            ", ".join(failed),
        )

    if settings.feedback_log_enabled:
        logging.getLogger(settings.feedback_log_channel).info(
            "Feedback submitted (user_id=%s, work_package_id=%s, url=%s, "
            "request_id=%s)",
            submitter.id,
            outcome.id,
            outcome.url,
            request_id_var.get(),
        )

    return FeedbackResponse(
        success=True,
        message=SUCCESS_MESSAGE,
        id=outcome.id,
        url=outcome.url,
    )
