"""In-memory quota cache keyed by provider and auth file."""

from typing import Optional

from ..models.providers import QuotaProvider
from ..models.quota import QuotaState


class QuotaStore:
    """
    Holds the latest QuotaState per auth file, one mapping per provider.

    Entries are always replaced whole, so concurrent refreshes of different
    keys never interfere and the last write for a key wins.
    """

    def __init__(self):
        self._states: dict[QuotaProvider, dict[str, QuotaState]] = {}
        self.clear_all()

    def get(self, provider: QuotaProvider, key: str) -> Optional[QuotaState]:
        """State for one auth file, or None if it was never refreshed."""
        return self._states[provider].get(key)

    def set(self, provider: QuotaProvider, key: str, state: QuotaState):
        """Replace the state for one auth file."""
        self._states[provider][key] = state

    def get_all(self, provider: QuotaProvider) -> dict[str, QuotaState]:
        """Snapshot of all states for a provider."""
        return dict(self._states[provider])

    def clear_all(self):
        """Drop every cached state for every provider."""
        self._states = {provider: {} for provider in QuotaProvider}
