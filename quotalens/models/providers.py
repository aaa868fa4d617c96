"""Quota provider models."""

from enum import Enum
from typing import Optional


class QuotaProvider(str, Enum):
    """Providers whose quota endpoints are polled."""

    ANTIGRAVITY = "antigravity"
    CODEX = "codex"
    GEMINI_CLI = "gemini-cli"
    GITHUB_COPILOT = "github-copilot"

    @property
    def display_name(self) -> str:
        """Human-readable display name."""
        names = {
            self.ANTIGRAVITY: "Antigravity",
            self.CODEX: "Codex (OpenAI)",
            self.GEMINI_CLI: "Gemini CLI",
            self.GITHUB_COPILOT: "GitHub Copilot",
        }
        return names.get(self, self.value)

    @property
    def i18n_prefix(self) -> str:
        """Prefix of the translation keys used for this provider's messages."""
        prefixes = {
            self.ANTIGRAVITY: "antigravity_quota",
            self.CODEX: "codex_quota",
            self.GEMINI_CLI: "gemini_cli_quota",
            self.GITHUB_COPILOT: "github_copilot_quota",
        }
        return prefixes[self]

    @classmethod
    def from_type_string(cls, type_string: Optional[str]) -> Optional["QuotaProvider"]:
        """Map an auth file "type"/"provider" field to a QuotaProvider."""
        if not type_string:
            return None
        type_map = {
            "antigravity": cls.ANTIGRAVITY,
            "codex": cls.CODEX,
            "gemini-cli": cls.GEMINI_CLI,
            "github-copilot": cls.GITHUB_COPILOT,
            "copilot": cls.GITHUB_COPILOT,
        }
        return type_map.get(type_string.strip().lower())
