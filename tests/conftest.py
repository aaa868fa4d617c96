import json
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

import pytest

from quotalens.models.auth import AuthFile
from quotalens.services.api_client import APIError, ApiCallResult


@dataclass
class RecordedCall:
    auth_index: str
    method: str
    url: str
    headers: dict
    data: Optional[str]

    @property
    def json(self) -> Any:
        return json.loads(self.data) if self.data else None


Response = Union[ApiCallResult, Exception]


@dataclass
class FakeAPIClient:
    """Stands in for ManagementAPIClient in fetcher tests.

    Responses come from ``handler(call)`` when set, otherwise from the
    ``responses`` queue in order. Exceptions are raised instead of returned.
    """
    responses: list[Response] = field(default_factory=list)
    handler: Optional[Callable[[RecordedCall], Response]] = None
    auth_file_texts: dict[str, str] = field(default_factory=dict)
    auth_files: list[AuthFile] = field(default_factory=list)
    calls: list[RecordedCall] = field(default_factory=list)
    downloads: list[str] = field(default_factory=list)

    async def api_call(self, auth_index, method, url, headers=None, data=None):
        call = RecordedCall(auth_index, method, url, dict(headers or {}), data)
        self.calls.append(call)
        response = self.handler(call) if self.handler else self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def download_auth_file_text(self, name):
        self.downloads.append(name)
        if name not in self.auth_file_texts:
            raise APIError("Auth file not found", status_code=404)
        return self.auth_file_texts[name]

    async def fetch_auth_files(self):
        return list(self.auth_files)


def json_result(status_code: int, body: Any) -> ApiCallResult:
    """ApiCallResult as the management client builds it from a JSON body."""
    text = json.dumps(body)
    return ApiCallResult(
        status_code=status_code,
        body_text=text,
        body=body if isinstance(body, dict) else None,
    )


def text_result(status_code: int, text: str) -> ApiCallResult:
    return ApiCallResult(status_code=status_code, body_text=text)


@pytest.fixture
def fake_client():
    return FakeAPIClient()


@pytest.fixture
def make_auth_file():
    def factory(name: str = "account.json", provider: str = "codex", **fields) -> AuthFile:
        fields.setdefault("auth_index", "1")
        return AuthFile.model_validate({"name": name, "provider": provider, **fields})
    return factory
