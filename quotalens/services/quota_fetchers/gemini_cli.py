"""Gemini CLI quota fetcher."""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from .base import BaseQuotaFetcher, MissingProjectIdError
from ...models.auth import AuthFile
from ...models.providers import QuotaProvider
from ...models.quota import GeminiCliParsedBucket, GeminiCliQuotaBucket
from ...utils.normalize import (
    as_mapping,
    first_present,
    normalize_number_value,
    normalize_quota_fraction,
    normalize_string_value,
    parse_iso_datetime,
    parse_json_payload,
)

logger = logging.getLogger(__name__)

GEMINI_CLI_QUOTA_URL = "https://cloudcode-pa.googleapis.com/v1internal:retrieveUserQuota"
GEMINI_CLI_REQUEST_HEADERS = {
    "Authorization": "Bearer $TOKEN$",
    "Content-Type": "application/json",
}

# "user@example.com (my-project-123)"
_ACCOUNT_PROJECT_PATTERN = re.compile(r"\(([^()]+)\)\s*$")


@dataclass(frozen=True)
class GeminiCliGroupDefinition:
    id: str
    label: str
    model_ids: tuple[str, ...]


# Models listed together draw from the same quota pool.
GEMINI_CLI_QUOTA_GROUPS: tuple[GeminiCliGroupDefinition, ...] = (
    GeminiCliGroupDefinition("gemini-pro", "Gemini Pro", ("gemini-2.5-pro", "gemini-3-pro-preview")),
    GeminiCliGroupDefinition("gemini-flash", "Gemini Flash", ("gemini-2.0-flash", "gemini-2.5-flash")),
    GeminiCliGroupDefinition("gemini-flash-lite", "Gemini Flash Lite", ("gemini-2.5-flash-lite",)),
    GeminiCliGroupDefinition("gemini-3-flash", "Gemini 3 Flash", ("gemini-3-flash-preview",)),
)


def resolve_gemini_cli_project_id(auth_file: AuthFile) -> Optional[str]:
    """Project id from metadata, else from the "email (project)" account label."""
    project_id = normalize_string_value(auth_file.get_field("project_id", "projectId"))
    if project_id:
        return project_id

    account = normalize_string_value(auth_file.account)
    if account:
        match = _ACCOUNT_PROJECT_PATTERN.search(account)
        if match:
            return normalize_string_value(match.group(1))
    return None


def parse_gemini_cli_bucket(raw: Any) -> Optional[GeminiCliParsedBucket]:
    """Normalize one raw bucket. Buckets without a model id are dropped."""
    bucket = as_mapping(raw)
    model_id = first_present(bucket, "modelId", "model_id", normalizer=normalize_string_value)
    if not model_id:
        return None

    token_type = first_present(bucket, "tokenType", "token_type", normalizer=normalize_string_value)
    direct_fraction = first_present(
        bucket, "remainingFraction", "remaining_fraction", normalizer=normalize_quota_fraction
    )
    remaining_amount = first_present(
        bucket, "remainingAmount", "remaining_amount", normalizer=normalize_number_value
    )
    reset_time = first_present(bucket, "resetTime", "reset_time", normalizer=normalize_string_value)

    fallback_fraction: Optional[float] = None
    if remaining_amount is not None:
        fallback_fraction = 0.0 if remaining_amount <= 0 else None
    elif reset_time:
        # No amount but a pending reset: exhausted until then.
        fallback_fraction = 0.0

    return GeminiCliParsedBucket(
        model_id=model_id,
        token_type=token_type,
        remaining_fraction=direct_fraction if direct_fraction is not None else fallback_fraction,
        remaining_amount=remaining_amount,
        reset_time=reset_time,
    )


def _min_known(current: Optional[float], candidate: Optional[float]) -> Optional[float]:
    if candidate is None:
        return current
    if current is None:
        return candidate
    return min(current, candidate)


def _earlier_reset(current: Optional[str], candidate: Optional[str]) -> Optional[str]:
    if not candidate:
        return current
    if not current:
        return candidate
    current_dt, candidate_dt = parse_iso_datetime(current), parse_iso_datetime(candidate)
    if current_dt is None:
        return candidate
    if candidate_dt is None:
        return current
    return candidate if candidate_dt < current_dt else current


def _group_for_model(model_id: str) -> tuple[int, str, str]:
    """(sort rank, group id, label) for a model id."""
    lowered = model_id.lower()
    for rank, definition in enumerate(GEMINI_CLI_QUOTA_GROUPS):
        if lowered in definition.model_ids:
            return rank, definition.id, definition.label
    return len(GEMINI_CLI_QUOTA_GROUPS), model_id, model_id


def build_gemini_cli_quota_buckets(parsed_buckets: list[GeminiCliParsedBucket]) -> list[GeminiCliQuotaBucket]:
    """Merge parsed buckets of one model family and token type.

    The merged bucket keeps every model id (first-seen order), the lowest known
    fraction and amount, and the earliest reset. Known families come first in
    table order, unknown models follow in payload order.
    """
    merged: dict[str, GeminiCliQuotaBucket] = {}
    ranks: dict[str, tuple[int, int]] = {}

    for position, parsed in enumerate(parsed_buckets):
        rank, group_id, label = _group_for_model(parsed.model_id)
        bucket_id = f"{group_id}-{parsed.token_type}" if parsed.token_type else group_id
        bucket = merged.get(bucket_id)
        if bucket is None:
            merged[bucket_id] = GeminiCliQuotaBucket(
                id=bucket_id,
                label=label,
                model_ids=[parsed.model_id],
                token_type=parsed.token_type,
                remaining_fraction=parsed.remaining_fraction,
                remaining_amount=parsed.remaining_amount,
                reset_time=parsed.reset_time,
            )
            ranks[bucket_id] = (rank, position)
            continue

        if parsed.model_id not in bucket.model_ids:
            bucket.model_ids.append(parsed.model_id)
        bucket.remaining_fraction = _min_known(bucket.remaining_fraction, parsed.remaining_fraction)
        bucket.remaining_amount = _min_known(bucket.remaining_amount, parsed.remaining_amount)
        bucket.reset_time = _earlier_reset(bucket.reset_time, parsed.reset_time)

    return sorted(merged.values(), key=lambda bucket: ranks[bucket.id])


class GeminiCliQuotaFetcher(BaseQuotaFetcher[list[GeminiCliQuotaBucket]]):
    """Fetches quota buckets from the Code Assist retrieveUserQuota API."""

    provider = QuotaProvider.GEMINI_CLI

    async def fetch_quota(self, auth_file: AuthFile) -> list[GeminiCliQuotaBucket]:
        """Fetch Gemini CLI quota buckets for an auth file."""
        auth_index = self.require_auth_index(auth_file)

        project_id = resolve_gemini_cli_project_id(auth_file)
        if not project_id:
            raise MissingProjectIdError(self.t("gemini_cli_quota.missing_project_id"))

        result = self.ensure_success(
            await self.api_client.api_call(
                auth_index=auth_index,
                method="POST",
                url=GEMINI_CLI_QUOTA_URL,
                headers=dict(GEMINI_CLI_REQUEST_HEADERS),
                data=json.dumps({"project": project_id}),
            )
        )

        payload = parse_json_payload(self.response_payload(result))
        raw_buckets = payload.get("buckets") if payload else None
        if not isinstance(raw_buckets, list) or not raw_buckets:
            return []

        parsed = [bucket for bucket in map(parse_gemini_cli_bucket, raw_buckets) if bucket is not None]
        if len(parsed) < len(raw_buckets):
            logger.debug("[GeminiCLI] Dropped %d bucket(s) without a model id", len(raw_buckets) - len(parsed))
        return build_gemini_cli_quota_buckets(parsed)
