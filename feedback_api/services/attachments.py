"""Two-phase attachment upload: create an upload resource, then link it.

OpenProject models the stored file and the work package's reference to it as
separate resources. If linking fails after the upload succeeded, the upload
stays orphaned on the remote side; nothing here tries to clean it up.
"""

import json
import logging

import httpx

from feedback_api.config import RemoteEndpointConfig
from feedback_api.models.feedback import Attachment
from feedback_api.models.work_package import AttachmentOutcome
from feedback_api.services.http_client import (
    api_url,
    is_success,
    openproject_headers,
    response_json,
)

logger = logging.getLogger(__name__)

UPLOADS_PATH = "/api/v3/uploads"


def _self_href(upload: object) -> str | None:
    if not isinstance(upload, dict):
        return None
    links = upload.get("_links")
    if not isinstance(links, dict):
        return None
    self_link = links.get("self")
    if not isinstance(self_link, dict):
        return None
    href = self_link.get("href")
    return href if isinstance(href, str) and href else None


async def upload_attachment(
    client: httpx.AsyncClient,
    config: RemoteEndpointConfig,
    work_package_id: int,
    attachment: Attachment,
    lock_version: int | None = None,
) -> AttachmentOutcome:
    """Upload *attachment* and attach it to the given work package."""
    filename = attachment.filename

    # Phase A: upload the raw bytes
    files = {
        "metadata": (None, json.dumps({"fileName": filename}), "application/json"),
        "file": (filename, attachment.content, attachment.content_type),
    }
    try:
        upload_resp = await client.post(
            api_url(config, UPLOADS_PATH),
            headers=openproject_headers(),
            files=files,
            timeout=config.upload_timeout,
        )
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error("Upload of %s failed: %s", filename, e)
        return AttachmentOutcome(
            success=False,
            filename=filename,
            phase="upload",
            message=f"Upload error: {e}",
        )

    if not is_success(upload_resp):
        logger.warning("Upload of %s returned %d", filename, upload_resp.status_code)
        return AttachmentOutcome(
            success=False,
            filename=filename,
            phase="upload",
            message=f"File upload failed: {upload_resp.status_code}",
            status_code=upload_resp.status_code,
        )

    href = _self_href(response_json(upload_resp))
    if href is None:
        logger.warning("Upload of %s returned no self link", filename)
        return AttachmentOutcome(
            success=False,
            filename=filename,
            phase="upload",
            message="Upload response has no self link",
            status_code=upload_resp.status_code,
        )

    # Phase B: link the upload to the work package
    body: dict = {"_links": {"attachments": [{"href": href}]}}
    if lock_version is not None:
        body["lockVersion"] = lock_version
    try:
        link_resp = await client.patch(
            api_url(config, f"/api/v3/work_packages/{work_package_id}"),
            headers=openproject_headers(write=True),
            json=body,
        )
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error("Linking %s to #%d failed: %s", filename, work_package_id, e)
        return AttachmentOutcome(
            success=False,
            filename=filename,
            phase="link",
            message=f"Attachment link error: {e}",
            upload_href=href,
        )

    if not is_success(link_resp):
        logger.warning(
            "Linking %s to #%d returned %d",
            filename,
            work_package_id,
            link_resp.status_code,
        )
        return AttachmentOutcome(
            success=False,
            filename=filename,
            phase="link",
            message=f"Attachment link failed: {link_resp.status_code}",
            status_code=link_resp.status_code,
            upload_href=href,
        )

    data = response_json(link_resp)
    return AttachmentOutcome(
        success=True,
        filename=filename,
        status_code=link_resp.status_code,
        upload_href=href,
        data=data if isinstance(data, dict) else None,
    )
