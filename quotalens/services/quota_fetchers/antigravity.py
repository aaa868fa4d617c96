"""Antigravity quota fetcher."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from .base import BaseQuotaFetcher, HttpStatusError, QuotaFetchError
from ..api_client import APIError, ManagementAPIClient, api_call_error_message
from ...models.auth import AuthFile
from ...models.providers import QuotaProvider
from ...models.quota import AntigravityQuotaGroup
from ...models.settings import DEFAULT_ANTIGRAVITY_PROJECT_ID, DEFAULT_ANTIGRAVITY_QUOTA_URLS
from ...utils.i18n import TranslateFn
from ...utils.normalize import (
    as_mapping,
    first_present,
    normalize_quota_fraction,
    normalize_string_value,
    parse_iso_datetime,
    parse_json_payload,
)

logger = logging.getLogger(__name__)

ANTIGRAVITY_REQUEST_HEADERS = {
    "Authorization": "Bearer $TOKEN$",
    "Content-Type": "application/json",
    "User-Agent": "antigravity/1.11.5 windows/amd64",
}

# Statuses that explain a failure better than whatever came after them.
PRIORITY_STATUSES = (403, 404)


@dataclass(frozen=True)
class AntigravityGroupDefinition:
    id: str
    label: str
    identifiers: tuple[str, ...]


# Models listed together share one quota pool upstream.
ANTIGRAVITY_QUOTA_GROUPS: tuple[AntigravityGroupDefinition, ...] = (
    AntigravityGroupDefinition(
        "claude-gpt",
        "Claude/GPT",
        (
            "claude-sonnet-4-5",
            "claude-sonnet-4-5-thinking",
            "claude-opus-4-5",
            "claude-opus-4-5-thinking",
            "claude-sonnet-4.5",
            "claude-opus-4.5",
            "gpt-oss-120b-medium",
        ),
    ),
    AntigravityGroupDefinition(
        "gemini-3-pro",
        "Gemini 3 Pro",
        ("gemini-3-pro-high", "gemini-3-pro-low", "gemini-3-pro-preview"),
    ),
    AntigravityGroupDefinition("gemini-3-flash", "Gemini 3 Flash", ("gemini-3-flash",)),
    AntigravityGroupDefinition(
        "gemini-2-5-flash",
        "Gemini 2.5 Flash",
        ("gemini-2.5-flash", "gemini-2.5-flash-thinking"),
    ),
    AntigravityGroupDefinition("gemini-2-5-flash-lite", "Gemini 2.5 Flash Lite", ("gemini-2.5-flash-lite",)),
    AntigravityGroupDefinition("gemini-2-5-pro", "Gemini 2.5 Pro", ("gemini-2.5-pro",)),
    AntigravityGroupDefinition(
        "gemini-2-5-cu",
        "Gemini 2.5 Computer Use",
        ("rev19-uic3-1p", "gemini-2.5-computer-use-preview-10-2025"),
    ),
    AntigravityGroupDefinition(
        "gemini-3-pro-image",
        "Gemini 3 Pro Image",
        ("gemini-3-pro-image", "gemini-3-pro-image-preview"),
    ),
)

# Ungrouped models are still shown when they belong to one of these families.
_STANDALONE_MODEL_MARKERS = ("gemini", "claude", "gpt")


def is_unknown_field_error(message: str) -> bool:
    """Whether a 400 message means the request body used a field name the endpoint rejects."""
    normalized = message.lower()
    return "unknown name" in normalized and "cannot find field" in normalized


def extract_project_id(credential_text: str) -> Optional[str]:
    """Find a project id in raw credential JSON.

    Looks at the top level, then ``installed``, then ``web`` (the layouts of
    Google OAuth client files). Raises ValueError for unparsable JSON.
    """
    trimmed = credential_text.strip()
    if not trimmed:
        return None
    parsed = json.loads(trimmed)
    if not isinstance(parsed, dict):
        return None

    for section in (parsed, as_mapping(parsed.get("installed")), as_mapping(parsed.get("web"))):
        project_id = first_present(section, "project_id", "projectId", normalizer=normalize_string_value)
        if project_id:
            return project_id
    return None


def _parse_model_quota(model_info: Any) -> Optional[tuple[float, Optional[str]]]:
    """(remaining_fraction, reset_time) for one model, or None without quota info."""
    info = as_mapping(model_info)
    quota_info = as_mapping(first_present(info, "quotaInfo", "quota_info"))
    if quota_info is None:
        return None

    reset_time = first_present(quota_info, "resetTime", "reset_time", normalizer=normalize_string_value)
    remaining = first_present(
        quota_info,
        "remainingFraction",
        "remaining_fraction",
        "remaining",
        normalizer=normalize_quota_fraction,
    )
    if remaining is None:
        # The fraction is omitted once a pool is exhausted; the reset time stays.
        if not reset_time:
            return None
        remaining = 0.0
    return remaining, reset_time


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


def build_antigravity_quota_groups(models: Mapping[str, Any]) -> list[AntigravityQuotaGroup]:
    """Collapse the fetchAvailableModels model map into quota groups.

    A group's remaining fraction is the lowest of its members and its reset
    time the earliest. Groups without any member in the payload are omitted.
    """
    parsed: dict[str, tuple[float, Optional[str]]] = {}
    for model_id, model_info in models.items():
        quota = _parse_model_quota(model_info)
        if quota is not None:
            parsed[str(model_id)] = quota

    groups: list[AntigravityQuotaGroup] = []
    grouped: set[str] = set()

    for definition in ANTIGRAVITY_QUOTA_GROUPS:
        identifiers = set(definition.identifiers)
        members = [model_id for model_id in parsed if model_id.lower() in identifiers]
        if not members:
            continue
        grouped.update(members)

        remaining = min(parsed[model_id][0] for model_id in members)
        reset_time: Optional[str] = None
        for model_id in members:
            reset_time = _earlier_reset(reset_time, parsed[model_id][1])
        groups.append(
            AntigravityQuotaGroup(
                id=definition.id,
                label=definition.label,
                models=members,
                remaining_fraction=remaining,
                reset_time=reset_time,
            )
        )

    for model_id, (remaining, reset_time) in parsed.items():
        if model_id in grouped:
            continue
        if not any(marker in model_id.lower() for marker in _STANDALONE_MODEL_MARKERS):
            continue
        label = first_present(
            as_mapping(models.get(model_id)), "displayName", "display_name",
            normalizer=normalize_string_value,
        )
        groups.append(
            AntigravityQuotaGroup(
                id=model_id,
                label=label or model_id,
                models=[model_id],
                remaining_fraction=remaining,
                reset_time=reset_time,
            )
        )

    return groups


class AntigravityQuotaFetcher(BaseQuotaFetcher[list[AntigravityQuotaGroup]]):
    """Fetches quota groups from the Antigravity fetchAvailableModels API.

    The endpoint is served from several hosts and has accepted two request
    body shapes over time, so each URL is tried with each body until one
    yields models.
    """

    provider = QuotaProvider.ANTIGRAVITY

    def __init__(
        self,
        api_client: ManagementAPIClient,
        translate: Optional[TranslateFn] = None,
        quota_urls: Optional[Sequence[str]] = None,
        default_project_id: Optional[str] = None,
    ):
        super().__init__(api_client, translate)
        self.quota_urls = list(quota_urls or DEFAULT_ANTIGRAVITY_QUOTA_URLS)
        self.default_project_id = default_project_id or DEFAULT_ANTIGRAVITY_PROJECT_ID

    async def resolve_project_id(self, auth_file: AuthFile) -> str:
        """Project id from the credential file, or the default project id."""
        try:
            text = await self.api_client.download_auth_file_text(auth_file.name)
            project_id = extract_project_id(text)
        except (APIError, ValueError) as e:
            logger.debug("[Antigravity] Could not read project id from %s: %s", auth_file.name, e)
            return self.default_project_id
        return project_id or self.default_project_id

    async def fetch_quota(self, auth_file: AuthFile) -> list[AntigravityQuotaGroup]:
        """Fetch Antigravity quota groups for an auth file."""
        auth_index = self.require_auth_index(auth_file)
        project_id = await self.resolve_project_id(auth_file)
        request_bodies = [json.dumps({"projectId": project_id}), json.dumps({"project": project_id})]

        last_error = ""
        last_status: Optional[int] = None
        priority_status: Optional[int] = None
        had_success = False

        for url in self.quota_urls:
            for attempt, body in enumerate(request_bodies):
                has_next_body = attempt < len(request_bodies) - 1
                try:
                    result = await self.api_client.api_call(
                        auth_index=auth_index,
                        method="POST",
                        url=url,
                        headers=dict(ANTIGRAVITY_REQUEST_HEADERS),
                        data=body,
                    )
                except APIError as e:
                    last_error = e.message or self.t("common.unknown_error")
                    if e.status_code:
                        last_status = e.status_code
                        if e.status_code in PRIORITY_STATUSES and priority_status is None:
                            priority_status = e.status_code
                    logger.debug("[Antigravity] %s attempt %d failed: %s", url, attempt + 1, last_error)
                    continue

                if not result.ok:
                    last_error = api_call_error_message(result)
                    last_status = result.status_code
                    if result.status_code in PRIORITY_STATUSES and priority_status is None:
                        priority_status = result.status_code
                    logger.debug("[Antigravity] %s attempt %d -> HTTP %d", url, attempt + 1, result.status_code)
                    if result.status_code == 400 and is_unknown_field_error(last_error) and has_next_body:
                        continue
                    break

                had_success = True
                payload = parse_json_payload(self.response_payload(result))
                models = as_mapping(payload.get("models")) if payload else None
                if models is None:
                    last_error = self.t("antigravity_quota.empty_models")
                    continue

                groups = build_antigravity_quota_groups(models)
                if not groups:
                    last_error = self.t("antigravity_quota.empty_models")
                    continue

                return groups

        if had_success:
            # The server answered but the account has no visible models.
            return []

        message = last_error or self.t("common.unknown_error")
        status = priority_status if priority_status is not None else last_status
        logger.info("[Antigravity] Quota fetch failed for %s (status %s)", auth_file.name, status)
        if status is not None:
            raise HttpStatusError(message, status)
        raise QuotaFetchError(message)
