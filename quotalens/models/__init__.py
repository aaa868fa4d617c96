"""Data models for QuotaLens."""

from .providers import QuotaProvider
from .auth import AuthFile
from .quota import (
    AntigravityQuotaGroup,
    CodexQuotaData,
    CodexQuotaWindow,
    GeminiCliParsedBucket,
    GeminiCliQuotaBucket,
    GithubCopilotQuota,
    PlanType,
    QuotaState,
    QuotaStatus,
)
from .settings import QuotaSettings

__all__ = [
    "QuotaProvider",
    "AuthFile",
    "AntigravityQuotaGroup",
    "CodexQuotaData",
    "CodexQuotaWindow",
    "GeminiCliParsedBucket",
    "GeminiCliQuotaBucket",
    "GithubCopilotQuota",
    "PlanType",
    "QuotaState",
    "QuotaStatus",
    "QuotaSettings",
]
