"""
Provider registry.

One entry per QuotaProvider: which auth files the provider accepts, which
fetcher class handles them and how results become QuotaState values. The view
model dispatches on the provider enum through this table instead of calling
provider-specific code.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..models.auth import AuthFile
from ..models.providers import QuotaProvider
from ..models.quota import QuotaState
from .quota_fetchers.antigravity import AntigravityQuotaFetcher
from .quota_fetchers.base import BaseQuotaFetcher
from .quota_fetchers.codex import CodexQuotaFetcher
from .quota_fetchers.copilot import GithubCopilotQuotaFetcher
from .quota_fetchers.gemini_cli import GeminiCliQuotaFetcher


@dataclass(frozen=True)
class QuotaProviderConfig:
    """Static description of how one provider is refreshed."""
    provider: QuotaProvider
    fetcher_class: type[BaseQuotaFetcher]
    filter_fn: Callable[[AuthFile], bool]

    @property
    def i18n_prefix(self) -> str:
        return self.provider.i18n_prefix

    def build_loading_state(self) -> QuotaState:
        return QuotaState.loading()

    def build_success_state(self, data: Any) -> QuotaState:
        return QuotaState.success(data)

    def build_error_state(self, message: str, status: Optional[int] = None) -> QuotaState:
        return QuotaState.failure(message, status)


def _is_provider_file(provider: QuotaProvider) -> Callable[[AuthFile], bool]:
    def matches(auth_file: AuthFile) -> bool:
        return auth_file.provider_type is provider
    return matches


def _is_gemini_cli_file(auth_file: AuthFile) -> bool:
    # Runtime-only credentials have no project metadata to query with
    return auth_file.provider_type is QuotaProvider.GEMINI_CLI and not auth_file.is_runtime_only


PROVIDER_REGISTRY: dict[QuotaProvider, QuotaProviderConfig] = {
    QuotaProvider.ANTIGRAVITY: QuotaProviderConfig(
        provider=QuotaProvider.ANTIGRAVITY,
        fetcher_class=AntigravityQuotaFetcher,
        filter_fn=_is_provider_file(QuotaProvider.ANTIGRAVITY),
    ),
    QuotaProvider.CODEX: QuotaProviderConfig(
        provider=QuotaProvider.CODEX,
        fetcher_class=CodexQuotaFetcher,
        filter_fn=_is_provider_file(QuotaProvider.CODEX),
    ),
    QuotaProvider.GEMINI_CLI: QuotaProviderConfig(
        provider=QuotaProvider.GEMINI_CLI,
        fetcher_class=GeminiCliQuotaFetcher,
        filter_fn=_is_gemini_cli_file,
    ),
    QuotaProvider.GITHUB_COPILOT: QuotaProviderConfig(
        provider=QuotaProvider.GITHUB_COPILOT,
        fetcher_class=GithubCopilotQuotaFetcher,
        filter_fn=_is_provider_file(QuotaProvider.GITHUB_COPILOT),
    ),
}


def get_provider_config(provider: QuotaProvider) -> QuotaProviderConfig:
    """Registry entry for a provider."""
    return PROVIDER_REGISTRY[provider]
