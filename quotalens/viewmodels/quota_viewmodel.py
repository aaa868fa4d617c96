"""
QuotaViewModel - Central state management for quotas.

WORKFLOW OVERVIEW:
==================
The view model coordinates quota refreshes for every provider:
- Loading the auth file list from the management API
- Fanning out one fetch per matching auth file
- Writing loading/success/error states into the QuotaStore
- Notifying registered callbacks when states change

KEY WORKFLOWS:
1. Provider refresh (refresh_provider):
   - Selects auth files with the provider's registry filter
   - For each file, concurrently:
     a. writes a loading state
     b. runs the provider fetcher
     c. writes a success state, or an error state with message and status
   - A failing file never aborts the refresh of its siblings

2. Full refresh (refresh_all):
   - Loads auth files if none were given
   - Refreshes all four providers in parallel

3. Cache clear (clear_quota_cache):
   - Empties the store for all providers in one step
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from ..models.auth import AuthFile
from ..models.providers import QuotaProvider
from ..models.quota import QuotaState
from ..models.settings import QuotaSettings
from ..services.api_client import APIError, ManagementAPIClient
from ..services.quota_fetchers.antigravity import AntigravityQuotaFetcher
from ..services.quota_fetchers.base import BaseQuotaFetcher, QuotaFetchError
from ..services.quota_registry import QuotaProviderConfig, get_provider_config
from ..utils.i18n import TranslateFn, default_translator
from .quota_store import QuotaStore

logger = logging.getLogger(__name__)


@dataclass
class QuotaViewModel:
    """
    View model for quota refreshes.

    STATE MANAGEMENT:
    - store: QuotaStore holding QuotaProvider -> {auth file name: QuotaState}
    - auth_files: last list loaded from the management API

    UI INTEGRATION:
    Consumers register callbacks via register_quota_update_callback(). Every
    state written to the store triggers the callbacks with (provider, key, state).
    """

    api_client: ManagementAPIClient
    store: QuotaStore = field(default_factory=QuotaStore)
    translate: TranslateFn = default_translator
    settings: QuotaSettings = field(default_factory=QuotaSettings)

    auth_files: list[AuthFile] = field(default_factory=list)

    # UI update callbacks (for notifying consumers when data changes)
    _quota_update_callbacks: list[Callable] = field(default_factory=list, init=False, repr=False)

    def register_quota_update_callback(self, callback: Callable):
        """Register a callback to be called when a quota state changes."""
        if callback not in self._quota_update_callbacks:
            self._quota_update_callbacks.append(callback)
            logger.debug("[QuotaViewModel] Registered quota update callback: %s", getattr(callback, "__name__", callback))

    def unregister_quota_update_callback(self, callback: Callable):
        """Unregister a quota update callback."""
        if callback in self._quota_update_callbacks:
            self._quota_update_callbacks.remove(callback)
            logger.debug("[QuotaViewModel] Unregistered quota update callback: %s", getattr(callback, "__name__", callback))

    def _notify_quota_updated(self, provider: QuotaProvider, key: str, state: QuotaState):
        for callback in list(self._quota_update_callbacks):
            try:
                callback(provider, key, state)
            except Exception:
                logger.exception("[QuotaViewModel] Quota update callback failed")

    def _set_state(self, provider: QuotaProvider, key: str, state: QuotaState):
        self.store.set(provider, key, state)
        self._notify_quota_updated(provider, key, state)

    def _create_fetcher(self, config: QuotaProviderConfig) -> BaseQuotaFetcher:
        if config.fetcher_class is AntigravityQuotaFetcher:
            return AntigravityQuotaFetcher(
                self.api_client,
                self.translate,
                quota_urls=self.settings.antigravity_quota_urls,
                default_project_id=self.settings.antigravity_default_project_id,
            )
        return config.fetcher_class(self.api_client, self.translate)

    async def load_auth_files(self) -> list[AuthFile]:
        """Fetch the auth file list from the management API.

        Raises:
            APIError: the list could not be loaded.
        """
        self.auth_files = await self.api_client.fetch_auth_files()
        logger.info("[QuotaViewModel] Loaded %d auth file(s)", len(self.auth_files))
        return self.auth_files

    async def _fetch_entry(self, config: QuotaProviderConfig, fetcher: BaseQuotaFetcher, auth_file: AuthFile):
        """Refresh one auth file. Never raises."""
        provider = config.provider
        key = auth_file.quota_key
        self._set_state(provider, key, config.build_loading_state())

        try:
            data = await fetcher.fetch_quota(auth_file)
        except QuotaFetchError as e:
            logger.info("[QuotaViewModel] %s quota failed for %s: %s", provider.display_name, key, e.message)
            state = config.build_error_state(e.message, e.status)
        except APIError as e:
            logger.info("[QuotaViewModel] %s request failed for %s: %s", provider.display_name, key, e.message)
            state = config.build_error_state(e.message or self.translate("common.unknown_error"), e.status_code)
        except Exception as e:
            logger.exception("[QuotaViewModel] Unexpected error fetching %s quota for %s", provider.display_name, key)
            state = config.build_error_state(str(e) or self.translate("common.unknown_error"))
        else:
            state = config.build_success_state(data)

        self._set_state(provider, key, state)

    async def refresh_provider(
        self, provider: QuotaProvider, auth_files: Optional[Iterable[AuthFile]] = None
    ) -> dict[str, QuotaState]:
        """
        Refresh quotas for every auth file the provider accepts.

        Args:
            provider: Provider to refresh.
            auth_files: Candidate auth files; defaults to the last loaded list.

        Returns:
            The provider's states after the refresh, keyed by auth file name.
        """
        config = get_provider_config(provider)
        candidates = self.auth_files if auth_files is None else list(auth_files)
        targets = [auth_file for auth_file in candidates if config.filter_fn(auth_file)]
        if not targets:
            logger.debug("[QuotaViewModel] No %s auth files to refresh", provider.display_name)
            return self.store.get_all(provider)

        logger.debug("[QuotaViewModel] Refreshing %s quota for %d auth file(s)", provider.display_name, len(targets))
        fetcher = self._create_fetcher(config)
        await asyncio.gather(*(self._fetch_entry(config, fetcher, auth_file) for auth_file in targets))
        return self.store.get_all(provider)

    async def refresh_all(
        self, auth_files: Optional[Iterable[AuthFile]] = None,
        providers: Optional[Iterable[QuotaProvider]] = None,
    ) -> dict[QuotaProvider, dict[str, QuotaState]]:
        """
        Refresh quotas for all providers in parallel.

        Loads the auth file list first when neither an explicit list nor a
        previously loaded one is available.
        """
        if auth_files is not None:
            files = list(auth_files)
        elif self.auth_files:
            files = self.auth_files
        else:
            files = await self.load_auth_files()

        selected = list(providers) if providers is not None else list(QuotaProvider)
        results = await asyncio.gather(*(self.refresh_provider(provider, files) for provider in selected))
        return dict(zip(selected, results))

    def clear_quota_cache(self):
        """Forget all cached quota states."""
        self.store.clear_all()
        logger.debug("[QuotaViewModel] Cleared quota cache")
