"""
Management API client.

WORKFLOW OVERVIEW:
==================
Quota endpoints are never called directly. CLIProxyAPI owns the credentials,
so every upstream request goes through its management API:

1. ``api_call()`` posts {auth_index, method, url, header, data} to
   ``/v0/management/api-call``. The proxy substitutes ``$TOKEN$`` in the
   headers with the access token of the credential selected by auth_index,
   performs the request and returns {status_code, header, body}.
2. ``fetch_auth_files()`` lists the stored credentials.
3. ``download_auth_file_text()`` returns the raw JSON of one credential file.

The client performs exactly one HTTP exchange per call. Retries, fallbacks
and status interpretation belong to the quota fetchers.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import aiohttp
from pydantic import ValidationError

from ..models.auth import AuthFile
from ..utils.normalize import normalize_number_value, normalize_string_value, parse_json_payload

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Transport-level failure talking to the management API.

    ``status_code`` is set when the management API itself answered with a
    non-2xx status, and is None for network errors and timeouts.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class ApiCallResult:
    """Upstream response relayed by the management API."""
    status_code: int
    body_text: str = ""
    body: Any = None  # parsed JSON body, when the upstream returned JSON
    headers: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def api_call_error_message(result: ApiCallResult) -> str:
    """Best-effort human-readable error from an upstream error response."""
    payload = result.body if isinstance(result.body, dict) else parse_json_payload(result.body_text)
    if payload:
        error = payload.get("error")
        if isinstance(error, dict):
            message = normalize_string_value(error.get("message"))
            if message:
                return message
        elif isinstance(error, str) and error.strip():
            return error.strip()
        message = normalize_string_value(payload.get("message"))
        if message:
            return message

    text = (result.body_text or "").strip()
    if text:
        return text
    return f"HTTP {result.status_code}"


class ManagementAPIClient:
    """Async client for the CLIProxyAPI management API."""

    API_CALL_PATH = "/v0/management/api-call"
    AUTH_FILES_PATH = "/v0/management/auth-files"
    AUTH_FILE_DOWNLOAD_PATH = "/v0/management/auth-files/download"

    def __init__(
        self,
        base_url: str,
        management_key: str = "",
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.management_key = management_key
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """Shared session, created on first use."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self):
        """Close the session if this client created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "ManagementAPIClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.management_key:
            headers["Authorization"] = f"Bearer {self.management_key}"
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> tuple[int, str]:
        url = f"{self.base_url}{path}"
        try:
            async with self.session.request(
                method, url, headers=self._headers(), **kwargs
            ) as response:
                text = await response.text()
                status = response.status
        except asyncio.TimeoutError as e:
            raise APIError(f"Request to {path} timed out") from e
        except aiohttp.ClientError as e:
            raise APIError(f"Request to {path} failed: {e}") from e

        if not 200 <= status < 300:
            message = api_call_error_message(ApiCallResult(status_code=status, body_text=text))
            logger.debug("[ManagementAPI] %s %s -> %s", method, path, status)
            raise APIError(message, status_code=status)
        return status, text

    async def api_call(
        self,
        auth_index: str,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
        data: Optional[str] = None,
    ) -> ApiCallResult:
        """Issue one upstream request through the proxy using a stored credential."""
        request: dict[str, Any] = {
            "auth_index": auth_index,
            "method": method.upper(),
            "url": url,
            "header": dict(headers or {}),
        }
        if data is not None:
            request["data"] = data

        _, text = await self._request("POST", self.API_CALL_PATH, json=request)
        envelope = parse_json_payload(text)
        if envelope is None:
            raise APIError("Invalid api-call response from management API")

        status = normalize_number_value(envelope.get("status_code", envelope.get("statusCode")))
        if status is None:
            raise APIError("Management API response is missing status_code")

        body = envelope.get("body")
        if isinstance(body, (dict, list)):
            body_text = json.dumps(body)
            parsed = body
        else:
            body_text = body if isinstance(body, str) else ""
            parsed = parse_json_payload(body_text)

        header = envelope.get("header")
        logger.debug("[ManagementAPI] api-call %s %s -> %d", method.upper(), url, int(status))
        return ApiCallResult(
            status_code=int(status),
            body_text=body_text,
            body=parsed,
            headers=header if isinstance(header, dict) else {},
        )

    async def fetch_auth_files(self) -> list[AuthFile]:
        """List auth files. Entries that fail validation are skipped."""
        _, text = await self._request("GET", self.AUTH_FILES_PATH)
        payload = parse_json_payload(text)
        raw_files = payload.get("files") if payload else None
        if not isinstance(raw_files, list):
            raise APIError("Invalid auth-files response from management API")

        files: list[AuthFile] = []
        for raw in raw_files:
            try:
                files.append(AuthFile.model_validate(raw))
            except ValidationError as e:
                logger.warning("[ManagementAPI] Skipping invalid auth file entry: %s", e.error_count())
        return files

    async def download_auth_file_text(self, name: str) -> str:
        """Raw contents of one auth file."""
        _, text = await self._request("GET", self.AUTH_FILE_DOWNLOAD_PATH, params={"name": name})
        return text
