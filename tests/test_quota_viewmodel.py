import asyncio

import pytest

from conftest import json_result
from quotalens.models.providers import QuotaProvider
from quotalens.models.quota import CodexQuotaData, QuotaState, QuotaStatus
from quotalens.models.settings import QuotaSettings
from quotalens.services.api_client import APIError
from quotalens.services.quota_fetchers.antigravity import AntigravityQuotaFetcher
from quotalens.services.quota_registry import PROVIDER_REGISTRY, get_provider_config
from quotalens.viewmodels.quota_store import QuotaStore
from quotalens.viewmodels.quota_viewmodel import QuotaViewModel

CODEX_USAGE = {
    "plan_type": "plus",
    "rate_limit": {"primary_window": {"used_percent": 10, "reset_at": 1735689600}},
}


class TestQuotaState:
    def test_constructors_keep_data_and_error_apart(self):
        loading = QuotaState.loading()
        assert loading.is_loading and loading.data is None and loading.error is None

        success = QuotaState.success([])
        assert success.is_success and success.data == [] and success.error is None

        failure = QuotaState.failure("boom", 403)
        assert failure.is_error and failure.data is None
        assert (failure.error, failure.error_status) == ("boom", 403)


class TestQuotaStore:
    def test_starts_empty_for_every_provider(self):
        store = QuotaStore()
        for provider in QuotaProvider:
            assert store.get_all(provider) == {}

    def test_set_replaces_whole_entry(self):
        store = QuotaStore()
        store.set(QuotaProvider.CODEX, "a.json", QuotaState.loading())
        store.set(QuotaProvider.CODEX, "a.json", QuotaState.failure("nope"))

        assert store.get(QuotaProvider.CODEX, "a.json").status is QuotaStatus.ERROR
        assert store.get(QuotaProvider.GEMINI_CLI, "a.json") is None

    def test_clear_all(self):
        store = QuotaStore()
        store.set(QuotaProvider.CODEX, "a.json", QuotaState.loading())
        store.set(QuotaProvider.ANTIGRAVITY, "b.json", QuotaState.loading())

        store.clear_all()

        assert all(store.get_all(provider) == {} for provider in QuotaProvider)

    def test_get_all_is_a_snapshot(self):
        store = QuotaStore()
        snapshot = store.get_all(QuotaProvider.CODEX)
        snapshot["x"] = QuotaState.loading()
        assert store.get(QuotaProvider.CODEX, "x") is None


class TestRegistry:
    def test_every_provider_is_registered(self):
        assert set(PROVIDER_REGISTRY) == set(QuotaProvider)
        assert get_provider_config(QuotaProvider.CODEX).i18n_prefix == "codex_quota"

    def test_filters(self, make_auth_file):
        copilot = make_auth_file(provider="copilot")
        gemini = make_auth_file(provider="gemini-cli")
        gemini_runtime = make_auth_file(type="gemini-cli", provider=None, runtime_only=True)

        assert get_provider_config(QuotaProvider.GITHUB_COPILOT).filter_fn(copilot)
        assert not get_provider_config(QuotaProvider.CODEX).filter_fn(copilot)
        assert get_provider_config(QuotaProvider.GEMINI_CLI).filter_fn(gemini)
        assert not get_provider_config(QuotaProvider.GEMINI_CLI).filter_fn(gemini_runtime)

    def test_state_builders(self):
        config = get_provider_config(QuotaProvider.ANTIGRAVITY)
        assert config.build_loading_state().is_loading
        assert config.build_success_state([]).data == []
        assert config.build_error_state("boom", 404).error_status == 404


class TestQuotaViewModel:
    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort_siblings(self, fake_client, make_auth_file):
        good = make_auth_file(name="good.json", auth_index="1", account_id="acct")
        no_account = make_auth_file(name="no-account.json", auth_index="2")
        rejected = make_auth_file(name="rejected.json", auth_index="3", account_id="acct")
        crashing = make_auth_file(name="crashing.json", auth_index="4", account_id="acct")

        def handler(call):
            if call.auth_index == "3":
                return json_result(401, {"error": {"message": "token expired"}})
            if call.auth_index == "4":
                return APIError("connection reset")
            return json_result(200, CODEX_USAGE)

        fake_client.handler = handler
        view_model = QuotaViewModel(api_client=fake_client)

        states = await view_model.refresh_provider(QuotaProvider.CODEX, [good, no_account, rejected, crashing])

        assert states["good.json"].is_success
        assert isinstance(states["good.json"].data, CodexQuotaData)
        assert states["no-account.json"].error == "Auth file is missing the ChatGPT account id"
        assert (states["rejected.json"].error, states["rejected.json"].error_status) == ("token expired", 401)
        assert states["crashing.json"].error == "connection reset"
        assert states["crashing.json"].error_status is None

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_error_state(self, fake_client, make_auth_file):
        fake_client.handler = lambda call: RuntimeError("fetcher bug")
        view_model = QuotaViewModel(api_client=fake_client)

        states = await view_model.refresh_provider(
            QuotaProvider.GITHUB_COPILOT, [make_auth_file(name="c.json", provider="github-copilot")]
        )

        assert states["c.json"].is_error
        assert states["c.json"].error == "fetcher bug"

    @pytest.mark.asyncio
    async def test_loading_state_written_before_fetch(self, fake_client, make_auth_file):
        updates = []
        view_model = QuotaViewModel(api_client=fake_client)
        view_model.register_quota_update_callback(lambda provider, key, state: updates.append(state.status))
        fake_client.responses = [json_result(200, CODEX_USAGE)]

        await view_model.refresh_provider(QuotaProvider.CODEX, [make_auth_file(account_id="acct")])

        assert updates == [QuotaStatus.LOADING, QuotaStatus.SUCCESS]

    @pytest.mark.asyncio
    async def test_failing_callback_is_isolated(self, fake_client, make_auth_file):
        def broken_callback(provider, key, state):
            raise RuntimeError("ui gone")

        view_model = QuotaViewModel(api_client=fake_client)
        view_model.register_quota_update_callback(broken_callback)
        fake_client.responses = [json_result(200, CODEX_USAGE)]

        states = await view_model.refresh_provider(QuotaProvider.CODEX, [make_auth_file(account_id="acct")])

        assert states["account.json"].is_success

        view_model.unregister_quota_update_callback(broken_callback)
        assert view_model._quota_update_callbacks == []

    @pytest.mark.asyncio
    async def test_fetches_run_concurrently(self, fake_client, make_auth_file):
        in_flight = 0
        peak = 0

        class SlowClient:
            async def api_call(self, auth_index, method, url, headers=None, data=None):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return json_result(200, CODEX_USAGE)

        view_model = QuotaViewModel(api_client=SlowClient())
        files = [make_auth_file(name=f"{i}.json", account_id="acct") for i in range(3)]

        await view_model.refresh_provider(QuotaProvider.CODEX, files)

        assert peak == 3

    @pytest.mark.asyncio
    async def test_refresh_all_loads_auth_files(self, fake_client, make_auth_file):
        fake_client.auth_files = [
            make_auth_file(name="codex.json", account_id="acct"),
            make_auth_file(name="gemini.json", provider="gemini-cli", project_id="p"),
            make_auth_file(name="gemini-runtime.json", provider="gemini-cli", project_id="p", runtime_only=True),
        ]

        def handler(call):
            if "retrieveUserQuota" in call.url:
                return json_result(200, {"buckets": []})
            return json_result(200, CODEX_USAGE)

        fake_client.handler = handler
        view_model = QuotaViewModel(api_client=fake_client)

        results = await view_model.refresh_all()

        assert view_model.auth_files == fake_client.auth_files
        assert set(results[QuotaProvider.CODEX]) == {"codex.json"}
        assert set(results[QuotaProvider.GEMINI_CLI]) == {"gemini.json"}
        assert results[QuotaProvider.GEMINI_CLI]["gemini.json"].data == []
        assert results[QuotaProvider.ANTIGRAVITY] == {}
        assert results[QuotaProvider.GITHUB_COPILOT] == {}

    @pytest.mark.asyncio
    async def test_refresh_all_selected_providers(self, fake_client, make_auth_file):
        fake_client.responses = [json_result(200, CODEX_USAGE)]
        view_model = QuotaViewModel(api_client=fake_client)

        results = await view_model.refresh_all(
            [make_auth_file(account_id="acct"), make_auth_file(name="c.json", provider="copilot")],
            providers=[QuotaProvider.CODEX],
        )

        assert list(results) == [QuotaProvider.CODEX]
        assert len(fake_client.calls) == 1

    @pytest.mark.asyncio
    async def test_load_auth_files_propagates_api_error(self, make_auth_file):
        class FailingClient:
            async def fetch_auth_files(self):
                raise APIError("connection refused")

        view_model = QuotaViewModel(api_client=FailingClient())
        with pytest.raises(APIError):
            await view_model.load_auth_files()

    @pytest.mark.asyncio
    async def test_clear_quota_cache(self, fake_client, make_auth_file):
        fake_client.responses = [json_result(200, CODEX_USAGE)]
        view_model = QuotaViewModel(api_client=fake_client)
        await view_model.refresh_provider(QuotaProvider.CODEX, [make_auth_file(account_id="acct")])

        view_model.clear_quota_cache()

        assert view_model.store.get_all(QuotaProvider.CODEX) == {}

    def test_antigravity_fetcher_uses_settings(self, fake_client):
        settings = QuotaSettings(antigravity_default_project_id="custom-proj", antigravity_quota_urls=["https://x"])
        view_model = QuotaViewModel(api_client=fake_client, settings=settings)

        fetcher = view_model._create_fetcher(get_provider_config(QuotaProvider.ANTIGRAVITY))

        assert isinstance(fetcher, AntigravityQuotaFetcher)
        assert fetcher.default_project_id == "custom-proj"
        assert fetcher.quota_urls == ["https://x"]
