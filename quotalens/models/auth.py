"""Authentication models."""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..utils.normalize import normalize_auth_index_value, normalize_boolean_value
from .providers import QuotaProvider


class AuthFile(BaseModel):
    """Auth file entry from the Management API.

    Only the identifying fields are declared. Provider-specific metadata
    (``id_token``, ``project_id``, ``plan_type``...) is kept as extra fields and
    read through ``get_field``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    id: Optional[str] = None
    provider: Optional[str] = None
    type: Optional[str] = None
    label: Optional[str] = None
    status: str = "unknown"
    disabled: bool = False
    runtime_only: Optional[Any] = Field(
        None, validation_alias=AliasChoices("runtime_only", "runtimeOnly")
    )
    email: Optional[str] = None
    account: Optional[str] = None
    account_type: Optional[str] = None
    auth_index: Optional[str] = Field(
        None, validation_alias=AliasChoices("auth_index", "authIndex")
    )

    @field_validator("auth_index", mode="before")
    @classmethod
    def _coerce_auth_index(cls, value: Any) -> Optional[str]:
        return normalize_auth_index_value(value)

    @property
    def provider_type(self) -> Optional[QuotaProvider]:
        """QuotaProvider resolved from the "provider" or "type" field."""
        return QuotaProvider.from_type_string(self.provider) or QuotaProvider.from_type_string(self.type)

    @property
    def is_runtime_only(self) -> bool:
        """Whether the credential exists only in proxy memory (no file on disk)."""
        return bool(normalize_boolean_value(self.runtime_only))

    @property
    def quota_key(self) -> str:
        """Stable key used for the quota cache."""
        return self.name

    def get_field(self, *aliases: str) -> Any:
        """First non-None value among declared and extra fields, in alias order."""
        extra = self.model_extra or {}
        for alias in aliases:
            if alias in type(self).model_fields:
                value = getattr(self, alias)
            else:
                value = extra.get(alias)
            if value is not None:
                return value
        return None

