"""Tests for the two-phase attachment upload."""

import pytest

from feedback_api.models.feedback import Attachment
from feedback_api.services.attachments import UPLOADS_PATH, upload_attachment

SCREENSHOT = Attachment(
    content=b"\x89PNG\r\n\x1a\nfake", filename="screen.png", content_type="image/png"
)
UPLOAD_HREF = "/api/v3/attachments/77"
WP_PATH = "/api/v3/work_packages/42"


def _upload_ok(fake):
    fake.reply(
        "POST",
        UPLOADS_PATH,
        status=201,
        json_body={"id": 77, "_links": {"self": {"href": UPLOAD_HREF}}},
    )


async def test_uploads_then_links(op_client, remote_config, fake_openproject):
    _upload_ok(fake_openproject)
    fake_openproject.reply(
        "PATCH", WP_PATH, json_body={"id": 42, "lockVersion": 2}
    )

    result = await upload_attachment(op_client, remote_config, 42, SCREENSHOT)

    assert result.success is True
    assert result.upload_href == UPLOAD_HREF
    assert result.data == {"id": 42, "lockVersion": 2}
    assert [r.method for r in fake_openproject.requests] == ["POST", "PATCH"]

    patch = fake_openproject.calls("PATCH", WP_PATH)[0]
    assert fake_openproject.json_of(patch) == {
        "_links": {"attachments": [{"href": UPLOAD_HREF}]}
    }
    assert patch.headers["Content-Type"] == "application/json"


async def test_upload_is_multipart_with_file_bytes(
    op_client, remote_config, fake_openproject
):
    _upload_ok(fake_openproject)
    fake_openproject.reply("PATCH", WP_PATH, json_body={"id": 42})

    await upload_attachment(op_client, remote_config, 42, SCREENSHOT)

    upload = fake_openproject.calls("POST", UPLOADS_PATH)[0]
    assert upload.headers["Content-Type"].startswith("multipart/form-data")
    assert upload.headers["Accept"] == "application/json"
    assert "Authorization" in upload.headers
    assert b'filename="screen.png"' in upload.content
    assert SCREENSHOT.content in upload.content
    assert b'"fileName": "screen.png"' in upload.content


async def test_lock_version_sent_when_known(
    op_client, remote_config, fake_openproject
):
    _upload_ok(fake_openproject)
    fake_openproject.reply("PATCH", WP_PATH, json_body={"id": 42})

    await upload_attachment(
        op_client, remote_config, 42, SCREENSHOT, lock_version=3
    )

    patch = fake_openproject.calls("PATCH", WP_PATH)[0]
    assert fake_openproject.json_of(patch)["lockVersion"] == 3


async def test_upload_failure_skips_link(op_client, remote_config, fake_openproject):
    fake_openproject.reply("POST", UPLOADS_PATH, status=413, json_body={})

    result = await upload_attachment(op_client, remote_config, 42, SCREENSHOT)

    assert result.success is False
    assert result.phase == "upload"
    assert result.status_code == 413
    assert fake_openproject.calls("PATCH") == []


async def test_upload_transport_error_skips_link(
    op_client, remote_config, fake_openproject
):
    fake_openproject.fail("POST", UPLOADS_PATH)

    result = await upload_attachment(op_client, remote_config, 42, SCREENSHOT)

    assert result.success is False
    assert result.phase == "upload"
    assert fake_openproject.calls("PATCH") == []


async def test_upload_without_self_link_skips_link(
    op_client, remote_config, fake_openproject
):
    fake_openproject.reply("POST", UPLOADS_PATH, status=201, json_body={"id": 77})

    result = await upload_attachment(op_client, remote_config, 42, SCREENSHOT)

    assert result.success is False
    assert result.phase == "upload"
    assert fake_openproject.calls("PATCH") == []


@pytest.mark.parametrize(
    "body",
    [
        {"_links": ["x"]},
        {"_links": "x"},
        {"_links": {"self": "x"}},
        {"_links": {"self": {"href": ""}}},
        ["x"],
    ],
)
async def test_malformed_upload_links_skip_link(
    op_client, remote_config, fake_openproject, body
):
    fake_openproject.reply("POST", UPLOADS_PATH, status=201, json_body=body)

    result = await upload_attachment(op_client, remote_config, 42, SCREENSHOT)

    assert result.success is False
    assert result.phase == "upload"
    assert fake_openproject.calls("PATCH") == []


async def test_link_failure_is_reported_separately(
    op_client, remote_config, fake_openproject
):
    _upload_ok(fake_openproject)
    fake_openproject.reply("PATCH", WP_PATH, status=409, json_body={})

    result = await upload_attachment(op_client, remote_config, 42, SCREENSHOT)

    assert result.success is False
    assert result.phase == "link"
    assert result.status_code == 409
    # The orphaned upload is reported, not cleaned up
    assert result.upload_href == UPLOAD_HREF
    assert fake_openproject.calls("DELETE") == []


async def test_link_transport_error(op_client, remote_config, fake_openproject):
    _upload_ok(fake_openproject)
    fake_openproject.fail("PATCH", WP_PATH)

    result = await upload_attachment(op_client, remote_config, 42, SCREENSHOT)

    assert result.success is False
    assert result.phase == "link"
