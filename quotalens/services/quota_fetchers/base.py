"""
Base quota fetcher class.

WORKFLOW OVERVIEW:
==================
Each provider (Antigravity, Codex, Gemini CLI, GitHub Copilot) has its own
fetcher class inheriting from BaseQuotaFetcher.

ARCHITECTURE:
- BaseQuotaFetcher: shared plumbing (auth index check, status check, messages)
- Provider fetchers: implement fetch_quota(auth_file)
- QuotaViewModel: fans out fetch_quota() over all matching auth files

WORKFLOW:
1. QuotaViewModel picks the auth files a provider accepts
2. Calls fetch_quota(auth_file) for each of them concurrently
3. Each fetcher:
   - Validates the auth file (auth index, account/project ids)
   - Sends one or more requests through ManagementAPIClient.api_call()
   - Parses the response into the provider's canonical result
   - Raises a QuotaFetchError subclass when no result can be produced
4. QuotaViewModel turns the result or the error into a QuotaState

Fetchers never catch their own failures to return partial data: a call
either returns a complete result or raises.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, Optional, TypeVar

from ...models.auth import AuthFile
from ...models.providers import QuotaProvider
from ...utils.i18n import TranslateFn, default_translator
from ..api_client import ApiCallResult, ManagementAPIClient, api_call_error_message

T = TypeVar("T")


class QuotaFetchError(Exception):
    """A quota fetch failed; ``message`` is display-ready."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class MissingAuthIndexError(QuotaFetchError):
    """The auth file has no auth index to route requests through."""


class MissingAccountIdError(QuotaFetchError):
    """The Codex auth file has no ChatGPT account id."""


class MissingProjectIdError(QuotaFetchError):
    """The Gemini CLI auth file has no Google Cloud project id."""


class EmptyResponseError(QuotaFetchError):
    """The upstream payload was unparsable or empty where data was required."""


class HttpStatusError(QuotaFetchError):
    """The upstream endpoint answered with a non-2xx status."""

    def __init__(self, message: str, status: int):
        super().__init__(message, status)


class BaseQuotaFetcher(ABC, Generic[T]):
    """
    Base class for quota fetchers.

    Subclasses set ``provider`` and implement ``fetch_quota``. The fetcher
    talks to provider APIs only through ``api_client.api_call()``, so a test
    double with the same coroutine signature can stand in for the client.
    """

    provider: QuotaProvider

    def __init__(
        self,
        api_client: ManagementAPIClient,
        translate: Optional[TranslateFn] = None,
    ):
        """
        Initialize the fetcher.

        Args:
            api_client: ManagementAPIClient used to relay upstream requests.
            translate: ``t(key, params)`` callable for user-visible messages.
        """
        self.api_client = api_client
        self.translate = translate or default_translator

    def t(self, key: str, params: Optional[dict[str, Any]] = None) -> str:
        """Translate a message key."""
        return self.translate(key, params) if params else self.translate(key)

    def require_auth_index(self, auth_file: AuthFile) -> str:
        """Return the auth index or raise MissingAuthIndexError."""
        auth_index = auth_file.auth_index
        if not auth_index:
            raise MissingAuthIndexError(self.t(f"{self.provider.i18n_prefix}.missing_auth_index"))
        return auth_index

    @staticmethod
    def ensure_success(result: ApiCallResult) -> ApiCallResult:
        """Raise HttpStatusError for a non-2xx upstream response."""
        if not result.ok:
            raise HttpStatusError(api_call_error_message(result), result.status_code)
        return result

    @staticmethod
    def response_payload(result: ApiCallResult) -> Any:
        """Parsed body if available, otherwise the raw text."""
        return result.body if result.body is not None else result.body_text

    @abstractmethod
    async def fetch_quota(self, auth_file: AuthFile) -> T:
        """
        Fetch quota for one auth file.

        Returns:
            The provider's canonical quota result.

        Raises:
            QuotaFetchError: the quota could not be determined.
            APIError: the management API could not be reached.
        """
