"""Application configuration via environment variables."""

from functools import lru_cache

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # App
    environment: str = "development"

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    # OpenProject
    openproject_url: str = ""
    openproject_api_key: str = ""
    openproject_project_id: int | None = None
    openproject_type_id: int | None = None
    openproject_type_name: str = "Bug"
    openproject_status_name: str = "New"
    openproject_verify_tls: bool = True
    openproject_timeout: float = 30.0
    openproject_upload_timeout: float = 60.0

    # Feedback form
    feedback_route_prefix: str = "/api"
    feedback_subject_max_length: int = 255
    feedback_description_max_length: int = 5000
    feedback_url_max_length: int = 2000
    screenshot_enabled: bool = True
    screenshot_max_size_kb: int = 5120

    # Submission log
    feedback_log_enabled: bool = True
    feedback_log_channel: str = "feedback_api.submissions"

    model_config = {"env_file": ".env", "extra": "ignore"}


class RemoteEndpointConfig(BaseModel):
    """Read-only view of the settings the OpenProject client needs.

    Built once per service and handed to it at construction, so nothing in
    the service layer reads global settings mid-request.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str
    api_key: str = ""
    default_project_id: int | None = None
    default_type_id: int | None = None
    default_type_name: str = "Bug"
    default_status_name: str = "New"
    verify_tls: bool = True
    request_timeout: float = 30.0
    upload_timeout: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RemoteEndpointConfig":
        # TLS checks are skipped only on explicit opt-out or a local environment
        verify = settings.openproject_verify_tls and settings.environment != "local"
        return cls(
            base_url=settings.openproject_url,
            api_key=settings.openproject_api_key,
            default_project_id=settings.openproject_project_id,
            default_type_id=settings.openproject_type_id,
            default_type_name=settings.openproject_type_name,
            default_status_name=settings.openproject_status_name,
            verify_tls=verify,
            request_timeout=settings.openproject_timeout,
            upload_timeout=settings.openproject_upload_timeout,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
