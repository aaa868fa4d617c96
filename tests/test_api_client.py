import json

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from quotalens.services.api_client import APIError, ApiCallResult, ManagementAPIClient, api_call_error_message

MANAGEMENT_KEY = "secret-key"


def build_app(received: list) -> web.Application:
    async def api_call(request: web.Request) -> web.Response:
        if request.headers.get("Authorization") != f"Bearer {MANAGEMENT_KEY}":
            return web.json_response({"error": "invalid management key"}, status=401)
        payload = await request.json()
        received.append(payload)
        if payload["url"].endswith("/object"):
            return web.json_response({"status_code": 200, "header": {"X-Test": ["1"]}, "body": {"ok": True}})
        if payload["url"].endswith("/broken"):
            return web.Response(text="not json")
        return web.json_response({"statusCode": 429, "body": '{"error": {"message": "slow down"}}'})

    async def auth_files(request: web.Request) -> web.Response:
        return web.json_response(
            {
                "files": [
                    {"name": "codex-a.json", "provider": "codex", "auth_index": 3, "id_token": {"plan_type": "plus"}},
                    {"name": "gemini.json", "type": "gemini-cli", "authIndex": "7", "runtimeOnly": "true"},
                    {"provider": "codex"},
                ]
            }
        )

    async def download(request: web.Request) -> web.Response:
        name = request.query.get("name")
        if name != "ag.json":
            return web.json_response({"error": "file not found"}, status=404)
        return web.Response(text='{"project_id": "proj"}')

    app = web.Application()
    app.router.add_post("/v0/management/api-call", api_call)
    app.router.add_get("/v0/management/auth-files", auth_files)
    app.router.add_get("/v0/management/auth-files/download", download)
    return app


@pytest.fixture
def received():
    return []


@pytest_asyncio.fixture
async def server(received):
    server = TestServer(build_app(received))
    await server.start_server()
    yield server
    await server.close()


@pytest_asyncio.fixture
async def client(server):
    client = ManagementAPIClient(str(server.make_url("/")), MANAGEMENT_KEY, timeout=5)
    yield client
    await client.close()


class TestApiCallErrorMessage:
    def test_nested_error_message(self):
        result = ApiCallResult(status_code=400, body={"error": {"message": "bad field"}})
        assert api_call_error_message(result) == "bad field"

    def test_error_string(self):
        assert api_call_error_message(ApiCallResult(status_code=401, body_text='{"error": "nope"}')) == "nope"

    def test_message_field(self):
        assert api_call_error_message(ApiCallResult(status_code=500, body_text='{"message": "oops"}')) == "oops"

    def test_raw_text_then_status(self):
        assert api_call_error_message(ApiCallResult(status_code=502, body_text="Bad Gateway")) == "Bad Gateway"
        assert api_call_error_message(ApiCallResult(status_code=503)) == "HTTP 503"


class TestManagementAPIClient:
    @pytest.mark.asyncio
    async def test_api_call_with_object_body(self, client, received):
        result = await client.api_call(
            "3", "get", "https://upstream.example.com/object", headers={"Authorization": "Bearer $TOKEN$"}
        )

        assert result.ok
        assert result.body == {"ok": True}
        assert json.loads(result.body_text) == {"ok": True}
        assert result.headers == {"X-Test": ["1"]}
        assert received == [
            {
                "auth_index": "3",
                "method": "GET",
                "url": "https://upstream.example.com/object",
                "header": {"Authorization": "Bearer $TOKEN$"},
            }
        ]

    @pytest.mark.asyncio
    async def test_api_call_relays_upstream_error(self, client, received):
        result = await client.api_call("3", "POST", "https://upstream.example.com/limited", data='{"project": "p"}')

        assert result.status_code == 429
        assert not result.ok
        assert api_call_error_message(result) == "slow down"
        assert received[0]["data"] == '{"project": "p"}'

    @pytest.mark.asyncio
    async def test_invalid_envelope(self, client):
        with pytest.raises(APIError):
            await client.api_call("3", "GET", "https://upstream.example.com/broken")

    @pytest.mark.asyncio
    async def test_management_status_error(self, server):
        async with ManagementAPIClient(str(server.make_url("/")), "wrong-key") as client:
            with pytest.raises(APIError) as exc_info:
                await client.api_call("3", "GET", "https://upstream.example.com/object")

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "invalid management key"

    @pytest.mark.asyncio
    async def test_fetch_auth_files_skips_invalid_entries(self, client):
        files = await client.fetch_auth_files()

        assert [auth_file.name for auth_file in files] == ["codex-a.json", "gemini.json"]
        codex, gemini = files
        assert codex.auth_index == "3"
        assert codex.get_field("id_token") == {"plan_type": "plus"}
        assert gemini.auth_index == "7"
        assert gemini.is_runtime_only

    @pytest.mark.asyncio
    async def test_download_auth_file_text(self, client):
        assert await client.download_auth_file_text("ag.json") == '{"project_id": "proj"}'

        with pytest.raises(APIError) as exc_info:
            await client.download_auth_file_text("missing.json")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        async with ManagementAPIClient("http://127.0.0.1:1", timeout=2) as client:
            with pytest.raises(APIError) as exc_info:
                await client.fetch_auth_files()

        assert exc_info.value.status_code is None
