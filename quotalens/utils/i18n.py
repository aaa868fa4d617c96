"""Message lookup for user-visible strings.

Fetchers only ever call ``translate(key, params)`` and never inspect the result,
so any callable with that signature can replace the default English table.
"""

from typing import Any, Callable, Mapping, Optional

TranslateFn = Callable[..., str]

DEFAULT_MESSAGES: dict[str, str] = {
    "common.unknown_error": "Unknown error",
    "antigravity_quota.missing_auth_index": "Auth file is missing an auth index",
    "antigravity_quota.empty_models": "No quota information available for this account",
    "codex_quota.missing_auth_index": "Auth file is missing an auth index",
    "codex_quota.missing_account_id": "Auth file is missing the ChatGPT account id",
    "codex_quota.empty_windows": "No usage windows returned",
    "codex_quota.primary_window": "5-hour limit",
    "codex_quota.secondary_window": "Weekly limit",
    "codex_quota.code_review_window": "Code review limit",
    "gemini_cli_quota.missing_auth_index": "Auth file is missing an auth index",
    "gemini_cli_quota.missing_project_id": "Auth file is missing a Google Cloud project id",
    "gemini_cli_quota.empty_buckets": "No quota buckets returned",
    "github_copilot_quota.missing_auth_index": "Auth file is missing an auth index",
    "github_copilot_quota.invalid_response": "Invalid response from GitHub Copilot",
    "github_copilot_quota.no_data": "No quota data available",
}


class Translator:
    """Callable message table with ``str.format`` interpolation.

    Unknown keys are returned as-is, matching how i18n libraries behave when a
    key is missing.
    """

    def __init__(self, messages: Optional[Mapping[str, str]] = None):
        self.messages = dict(DEFAULT_MESSAGES)
        if messages:
            self.messages.update(messages)

    def __call__(self, key: str, params: Optional[Mapping[str, Any]] = None) -> str:
        template = self.messages.get(key, key)
        if not params:
            return template
        try:
            return template.format(**params)
        except (KeyError, IndexError, ValueError):
            return template


default_translator = Translator()
