"""Configuration models."""

from pydantic import BaseModel, Field

DEFAULT_MANAGEMENT_URL = "http://localhost:8317"
DEFAULT_ANTIGRAVITY_PROJECT_ID = "bamboo-precept-lgxtn"
DEFAULT_ANTIGRAVITY_QUOTA_URLS = [
    "https://daily-cloudcode-pa.googleapis.com/v1internal:fetchAvailableModels",
    "https://daily-cloudcode-pa.sandbox.googleapis.com/v1internal:fetchAvailableModels",
    "https://cloudcode-pa.googleapis.com/v1internal:fetchAvailableModels",
]


class QuotaSettings(BaseModel):
    """Settings for talking to the CLIProxyAPI management API."""
    management_url: str = DEFAULT_MANAGEMENT_URL
    management_key: str = ""
    request_timeout: float = 30.0  # seconds
    # Used when the auth file does not name a Google Cloud project.
    antigravity_default_project_id: str = DEFAULT_ANTIGRAVITY_PROJECT_ID
    antigravity_quota_urls: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ANTIGRAVITY_QUOTA_URLS)
    )
