"""View models for QuotaLens."""

from .quota_store import QuotaStore
from .quota_viewmodel import QuotaViewModel

__all__ = ["QuotaStore", "QuotaViewModel"]
