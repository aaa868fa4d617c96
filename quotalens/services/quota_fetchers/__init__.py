"""Quota fetchers for the supported providers."""

from .base import (
    BaseQuotaFetcher,
    EmptyResponseError,
    HttpStatusError,
    MissingAccountIdError,
    MissingAuthIndexError,
    MissingProjectIdError,
    QuotaFetchError,
)
from .antigravity import AntigravityQuotaFetcher
from .codex import CodexQuotaFetcher
from .gemini_cli import GeminiCliQuotaFetcher
from .copilot import GithubCopilotQuotaFetcher

__all__ = [
    "BaseQuotaFetcher",
    "QuotaFetchError",
    "MissingAuthIndexError",
    "MissingAccountIdError",
    "MissingProjectIdError",
    "EmptyResponseError",
    "HttpStatusError",
    "AntigravityQuotaFetcher",
    "CodexQuotaFetcher",
    "GeminiCliQuotaFetcher",
    "GithubCopilotQuotaFetcher",
]
