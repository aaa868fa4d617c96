"""
Canonical quota models.

Each provider yields its own result shape:

- Antigravity: list[AntigravityQuotaGroup]
- Codex: CodexQuotaData
- Gemini CLI: list[GeminiCliQuotaBucket]
- GitHub Copilot: GithubCopilotQuota

QuotaState wraps one of those results together with a loading/success/error
status. A state never carries data and an error at the same time.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


@dataclass
class AntigravityQuotaGroup:
    """Models sharing one Antigravity quota pool."""
    id: str
    label: str
    models: list[str]
    remaining_fraction: float  # 0.0 - 1.0
    reset_time: Optional[str] = None  # ISO timestamp string


class PlanType(str, Enum):
    """Codex subscription tier."""
    FREE = "free"
    PLUS = "plus"
    TEAM = "team"
    OTHER = "other"

    @classmethod
    def from_plan_type(cls, plan_type: Optional[str]) -> Optional["PlanType"]:
        if not plan_type:
            return None
        try:
            return cls(plan_type.lower())
        except ValueError:
            return cls.OTHER


@dataclass
class CodexQuotaWindow:
    """One Codex rate-limit window (session, weekly, code review)."""
    id: str
    label: str
    label_key: str
    used_percent: Optional[float]  # 0 - 100, None when unknown
    reset_label: str


@dataclass
class CodexQuotaData:
    """Codex usage: plan plus rate-limit windows."""
    plan_type: Optional[str] = None  # normalized lower-case plan, e.g. "plus"
    windows: list[CodexQuotaWindow] = field(default_factory=list)

    @property
    def plan_tier(self) -> Optional[PlanType]:
        return PlanType.from_plan_type(self.plan_type)


@dataclass
class GeminiCliParsedBucket:
    """A single bucket from retrieveUserQuota after field normalization."""
    model_id: str
    token_type: Optional[str] = None
    remaining_fraction: Optional[float] = None
    remaining_amount: Optional[float] = None
    reset_time: Optional[str] = None


@dataclass
class GeminiCliQuotaBucket:
    """A display bucket merging parsed buckets of the same model family."""
    id: str
    label: str
    model_ids: list[str]
    token_type: Optional[str] = None
    remaining_fraction: Optional[float] = None  # 0.0 - 1.0
    remaining_amount: Optional[float] = None
    reset_time: Optional[str] = None


@dataclass
class GithubCopilotQuota:
    """Flattened Copilot token payload. Unknown values stay None."""
    expires_at: Optional[float] = None
    refresh_in: Optional[float] = None
    chat_quota: Optional[float] = None
    chat_percent: Optional[float] = None
    chat_unlimited: bool = False
    completions_quota: Optional[float] = None
    completions_percent: Optional[float] = None
    completions_unlimited: bool = False
    premium_quota: Optional[float] = None
    premium_percent: Optional[float] = None
    premium_entitlement: Optional[float] = None
    quota_reset_date: Optional[int] = None  # Unix seconds
    sku: Optional[str] = None

    @property
    def has_data(self) -> bool:
        """Whether the payload carried anything worth displaying."""
        return any(
            value is not None
            for value in (
                self.expires_at,
                self.refresh_in,
                self.chat_quota,
                self.completions_quota,
                self.premium_quota,
                self.quota_reset_date,
                self.sku,
            )
        )


class QuotaStatus(str, Enum):
    """Lifecycle of one cached quota entry."""
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class QuotaState:
    """Quota state of one auth file for one provider.

    Use the ``loading``/``success``/``failure`` constructors; they keep data and
    error mutually exclusive.
    """
    status: QuotaStatus
    data: Any = None
    error: Optional[str] = None
    error_status: Optional[int] = None

    @classmethod
    def loading(cls) -> "QuotaState":
        return cls(status=QuotaStatus.LOADING)

    @classmethod
    def success(cls, data: Any) -> "QuotaState":
        return cls(status=QuotaStatus.SUCCESS, data=data)

    @classmethod
    def failure(cls, message: str, error_status: Optional[int] = None) -> "QuotaState":
        return cls(status=QuotaStatus.ERROR, error=message, error_status=error_status)

    @property
    def is_loading(self) -> bool:
        return self.status is QuotaStatus.LOADING

    @property
    def is_success(self) -> bool:
        return self.status is QuotaStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status is QuotaStatus.ERROR
