"""GitHub Copilot quota fetcher."""

import logging
from typing import Any, Mapping, Optional

from .base import BaseQuotaFetcher, EmptyResponseError
from ...models.auth import AuthFile
from ...models.providers import QuotaProvider
from ...models.quota import GithubCopilotQuota
from ...utils.normalize import (
    as_mapping,
    clamp_percent,
    first_present,
    normalize_boolean_value,
    normalize_number_value,
    normalize_string_value,
    parse_iso_timestamp,
    parse_json_payload,
)

logger = logging.getLogger(__name__)

GITHUB_COPILOT_USAGE_URL = "https://api.github.com/copilot_internal/v2/token"
GITHUB_COPILOT_REQUEST_HEADERS = {
    "Authorization": "Bearer $TOKEN$",
    "Accept": "application/json",
    "User-Agent": "GithubCopilot/1.155.0",
}

# Plan label field names seen across Copilot token payload versions.
SKU_ALIASES = (
    "sku",
    "access_type_sku",
    "accessTypeSku",
    "copilot_plan",
    "copilotPlan",
    "plan",
    "plan_type",
    "planType",
    "subscription",
    "subscription_type",
    "subscriptionType",
    "license",
    "license_type",
    "licenseType",
)


def _snapshot_values(snapshot: Optional[Mapping[str, Any]]) -> tuple[Optional[float], Optional[float]]:
    """(remaining quota, remaining percent) of one quota snapshot."""
    quota = first_present(
        snapshot, "quota_remaining", "quotaRemaining", "remaining", normalizer=normalize_number_value
    )
    percent = first_present(
        snapshot, "percent_remaining", "percentRemaining", normalizer=normalize_number_value
    )
    return quota, clamp_percent(percent)


def _is_unlimited(snapshot: Optional[Mapping[str, Any]]) -> bool:
    return bool(snapshot and normalize_boolean_value(snapshot.get("unlimited")))


def resolve_quota_reset_date(payload: Mapping[str, Any]) -> Optional[int]:
    """Reset date as Unix seconds.

    The ISO ``quota_reset_date`` wins when it parses; otherwise the legacy
    numeric ``limited_user_reset_date`` is used.
    """
    reset_date = parse_iso_timestamp(first_present(payload, "quota_reset_date", "quotaResetDate"))
    if reset_date is not None:
        return reset_date

    legacy = first_present(
        payload, "limited_user_reset_date", "limitedUserResetDate", normalizer=normalize_number_value
    )
    return int(legacy) if legacy is not None else None


def parse_github_copilot_quota(payload: Mapping[str, Any]) -> GithubCopilotQuota:
    """Flatten a Copilot token payload. Fields the payload lacks stay None."""
    quota = GithubCopilotQuota(
        expires_at=first_present(payload, "expires_at", "expiresAt", normalizer=normalize_number_value),
        refresh_in=first_present(payload, "refresh_in", "refreshIn", normalizer=normalize_number_value),
    )

    snapshots = as_mapping(first_present(payload, "quota_snapshots", "quotaSnapshots"))
    if snapshots is not None:
        chat = as_mapping(snapshots.get("chat"))
        completions = as_mapping(snapshots.get("completions"))
        premium = as_mapping(first_present(snapshots, "premium_interactions", "premiumInteractions"))

        if chat is not None:
            quota.chat_quota, quota.chat_percent = _snapshot_values(chat)
            quota.chat_unlimited = _is_unlimited(chat)
        if completions is not None:
            quota.completions_quota, quota.completions_percent = _snapshot_values(completions)
            quota.completions_unlimited = _is_unlimited(completions)
        if premium is not None:
            quota.premium_quota, quota.premium_percent = _snapshot_values(premium)
            quota.premium_entitlement = normalize_number_value(premium.get("entitlement"))

    # Individual plans still report remaining counts in the legacy structure
    if quota.chat_quota is None or quota.completions_quota is None:
        legacy = as_mapping(first_present(payload, "limited_user_quotas", "limitedUserQuotas"))
        if legacy is not None:
            if quota.chat_quota is None:
                quota.chat_quota = normalize_number_value(legacy.get("chat"))
            if quota.completions_quota is None:
                quota.completions_quota = normalize_number_value(legacy.get("completions"))

    quota.quota_reset_date = resolve_quota_reset_date(payload)
    quota.sku = first_present(payload, *SKU_ALIASES, normalizer=normalize_string_value)
    return quota


class GithubCopilotQuotaFetcher(BaseQuotaFetcher[GithubCopilotQuota]):
    """Fetches quota from the Copilot internal token endpoint."""

    provider = QuotaProvider.GITHUB_COPILOT

    async def fetch_quota(self, auth_file: AuthFile) -> GithubCopilotQuota:
        """Fetch GitHub Copilot quota for an auth file."""
        auth_index = self.require_auth_index(auth_file)

        result = self.ensure_success(
            await self.api_client.api_call(
                auth_index=auth_index,
                method="GET",
                url=GITHUB_COPILOT_USAGE_URL,
                headers=dict(GITHUB_COPILOT_REQUEST_HEADERS),
            )
        )

        payload = parse_json_payload(self.response_payload(result))
        if payload is None:
            raise EmptyResponseError(self.t("github_copilot_quota.invalid_response"))

        quota = parse_github_copilot_quota(payload)
        if not quota.has_data:
            logger.debug("[Copilot] %s: token payload carried no quota fields", auth_file.name)
        return quota
