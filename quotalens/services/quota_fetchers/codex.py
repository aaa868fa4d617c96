"""Codex (ChatGPT) quota fetcher."""

import base64
import binascii
import json
import logging
from typing import Any, Mapping, Optional

from .base import BaseQuotaFetcher, EmptyResponseError, MissingAccountIdError
from ...models.auth import AuthFile
from ...models.providers import QuotaProvider
from ...models.quota import CodexQuotaData, CodexQuotaWindow
from ...utils.i18n import TranslateFn, default_translator
from ...utils.normalize import (
    as_mapping,
    clamp_percent,
    first_present,
    normalize_boolean_value,
    normalize_number_value,
    normalize_plan_type,
    normalize_string_value,
    parse_json_payload,
)
from ...utils.reset_labels import UNKNOWN_RESET_LABEL, format_codex_reset_label

logger = logging.getLogger(__name__)

CODEX_USAGE_URL = "https://chatgpt.com/backend-api/wham/usage"
CODEX_REQUEST_HEADERS = {
    "Authorization": "Bearer $TOKEN$",
    "Content-Type": "application/json",
    "User-Agent": "codex_cli_rs/0.76.0 (Debian 13.0.0; x86_64) WindowsTerminal",
}

OPENAI_AUTH_CLAIM = "https://api.openai.com/auth"


def decode_jwt_claims(token: str) -> Optional[dict]:
    """Decode the payload segment of a JWT without verifying it."""
    parts = token.split(".")
    if len(parts) < 2:
        return None

    payload = parts[1]
    # Add padding if needed
    payload += "=" * (-len(payload) % 4)
    try:
        decoded = base64.urlsafe_b64decode(payload)
        claims = json.loads(decoded)
    except (binascii.Error, ValueError):
        return None
    return claims if isinstance(claims, dict) else None


def _id_token_claims(auth_file: AuthFile) -> Optional[Mapping[str, Any]]:
    """Claims of the id token, which the proxy stores either decoded or as a JWT."""
    id_token = auth_file.get_field("id_token", "idToken")
    if isinstance(id_token, Mapping):
        return id_token
    if isinstance(id_token, str) and id_token.strip():
        return decode_jwt_claims(id_token.strip())
    return None


def _auth_claims(claims: Optional[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    return as_mapping(claims.get(OPENAI_AUTH_CLAIM)) if claims else None


def resolve_codex_plan_type(auth_file: AuthFile) -> Optional[str]:
    """Plan type recorded in the auth file itself."""
    plan_type = normalize_plan_type(
        auth_file.get_field("plan_type", "planType", "chatgpt_plan_type", "chatgptPlanType")
    )
    if plan_type:
        return plan_type

    claims = _id_token_claims(auth_file)
    return normalize_plan_type(
        first_present(claims, "chatgpt_plan_type", "plan_type")
        or first_present(_auth_claims(claims), "chatgpt_plan_type")
    )


def resolve_codex_chatgpt_account_id(auth_file: AuthFile) -> Optional[str]:
    """ChatGPT account id from the auth file metadata or its id token."""
    account_id = normalize_string_value(
        auth_file.get_field("chatgpt_account_id", "chatgptAccountId", "account_id", "accountId")
    )
    if account_id:
        return account_id

    claims = _id_token_claims(auth_file)
    return normalize_string_value(
        first_present(claims, "chatgpt_account_id")
        or first_present(_auth_claims(claims), "chatgpt_account_id")
    )


def _window_used_percent(
    window: Mapping[str, Any], reset_label: str, limit_reached: Any, allowed: Any
) -> Optional[float]:
    used_percent = first_present(window, "used_percent", "usedPercent", normalizer=normalize_number_value)
    if used_percent is not None:
        return clamp_percent(used_percent)

    is_limit_reached = bool(normalize_boolean_value(limit_reached)) or normalize_boolean_value(allowed) is False
    # Only trust an exhausted window when it also says when it resets.
    if is_limit_reached and reset_label and reset_label != UNKNOWN_RESET_LABEL:
        return 100.0
    return None


def build_codex_quota_windows(
    payload: Mapping[str, Any], translate: TranslateFn = default_translator
) -> list[CodexQuotaWindow]:
    """Primary, secondary and code-review windows present in a usage payload."""
    rate_limit = as_mapping(first_present(payload, "rate_limit", "rateLimit"))
    code_review_limit = as_mapping(first_present(payload, "code_review_rate_limit", "codeReviewRateLimit"))

    window_specs = (
        ("primary", "codex_quota.primary_window", rate_limit, ("primary_window", "primaryWindow")),
        ("secondary", "codex_quota.secondary_window", rate_limit, ("secondary_window", "secondaryWindow")),
        ("code-review", "codex_quota.code_review_window", code_review_limit, ("primary_window", "primaryWindow")),
    )

    windows: list[CodexQuotaWindow] = []
    for window_id, label_key, limit, aliases in window_specs:
        window = as_mapping(first_present(limit, *aliases))
        if window is None:
            continue
        reset_label = format_codex_reset_label(window)
        used_percent = _window_used_percent(
            window,
            reset_label,
            first_present(limit, "limit_reached", "limitReached"),
            limit.get("allowed") if limit else None,
        )
        windows.append(
            CodexQuotaWindow(
                id=window_id,
                label=translate(label_key),
                label_key=label_key,
                used_percent=used_percent,
                reset_label=reset_label,
            )
        )
    return windows


class CodexQuotaFetcher(BaseQuotaFetcher[CodexQuotaData]):
    """Fetches rate-limit windows from the ChatGPT usage API."""

    provider = QuotaProvider.CODEX

    async def fetch_quota(self, auth_file: AuthFile) -> CodexQuotaData:
        """Fetch Codex quota for an auth file."""
        auth_index = self.require_auth_index(auth_file)

        plan_type_from_file = resolve_codex_plan_type(auth_file)
        account_id = resolve_codex_chatgpt_account_id(auth_file)
        if not account_id:
            raise MissingAccountIdError(self.t("codex_quota.missing_account_id"))

        headers = {**CODEX_REQUEST_HEADERS, "Chatgpt-Account-Id": account_id}
        result = self.ensure_success(
            await self.api_client.api_call(
                auth_index=auth_index,
                method="GET",
                url=CODEX_USAGE_URL,
                headers=headers,
            )
        )

        payload = parse_json_payload(self.response_payload(result))
        if payload is None:
            raise EmptyResponseError(self.t("codex_quota.empty_windows"))

        plan_type = first_present(payload, "plan_type", "planType", normalizer=normalize_plan_type)
        windows = build_codex_quota_windows(payload, self.translate)
        logger.debug("[Codex] %s: plan=%s windows=%d", auth_file.name, plan_type or plan_type_from_file, len(windows))
        return CodexQuotaData(plan_type=plan_type or plan_type_from_file, windows=windows)
