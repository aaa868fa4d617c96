"""
Main entry point for QuotaLens.

WORKFLOW OVERVIEW:
==================
1. Initialization:
   - Checks for debug flags (--debug, -d, or QUOTALENS_DEBUG env var)
   - Sets up logging (debug logging if enabled)
   - Loads settings (settings.json overlaid with QUOTALENS_* env vars)

2. Refresh:
   - Creates the ManagementAPIClient and QuotaViewModel
   - Loads auth files from the management API
   - Refreshes the requested providers (all by default) in parallel

3. Output:
   - Prints one summary line per auth file and provider
   - Exits 0 on completion, 1 when auth files could not be loaded,
     2 on an unknown provider name
"""

import asyncio
import logging
import os
import sys
from typing import Optional, Sequence

from .models.providers import QuotaProvider
from .models.quota import (
    AntigravityQuotaGroup,
    CodexQuotaData,
    GeminiCliQuotaBucket,
    GithubCopilotQuota,
    QuotaState,
)
from .models.settings import QuotaSettings
from .services.api_client import APIError, ManagementAPIClient
from .utils.reset_labels import format_quota_reset_time
from .utils.settings import SettingsManager
from .viewmodels.quota_viewmodel import QuotaViewModel

logger = logging.getLogger(__name__)

DEBUG_FLAGS = ("--debug", "-d")
USAGE = "usage: python -m quotalens [--debug] [provider ...]"


def setup_debug_logging() -> None:
    """
    Set up debug logging.

    - Structured log lines with timestamps
    - aiohttp client and our own loggers at DEBUG
    - asyncio kept at INFO (DEBUG shows every transport detail)
    """
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        force=True  # Override any existing configuration
    )

    logging.getLogger('aiohttp').setLevel(logging.DEBUG)
    logging.getLogger('aiohttp.client').setLevel(logging.DEBUG)
    logging.getLogger('aiohttp.connector').setLevel(logging.DEBUG)
    logging.getLogger('quotalens').setLevel(logging.DEBUG)
    logging.getLogger('asyncio').setLevel(logging.INFO)


def setup_logging() -> None:
    """Warnings and errors only, as plain messages on stderr."""
    logging.basicConfig(level=logging.WARNING, format='%(levelname)s: %(message)s')


def is_debug_mode(argv: Sequence[str], environ: Optional[dict] = None) -> bool:
    """Debug flag from the command line or QUOTALENS_DEBUG=1/true/yes."""
    environ = os.environ if environ is None else environ
    return any(flag in argv for flag in DEBUG_FLAGS) or environ.get('QUOTALENS_DEBUG', '').lower() in ('1', 'true', 'yes')


def parse_providers(args: Sequence[str]) -> list[QuotaProvider]:
    """Providers named on the command line; all of them when none are named.

    Raises:
        ValueError: a name is not a known provider.
    """
    names = [arg for arg in args if arg not in DEBUG_FLAGS]
    if not names:
        return list(QuotaProvider)

    providers: list[QuotaProvider] = []
    for name in names:
        provider = QuotaProvider.from_type_string(name)
        if provider is None:
            raise ValueError(f"Unknown provider: {name}")
        if provider not in providers:
            providers.append(provider)
    return providers


def _percent(value: Optional[float]) -> str:
    return f"{round(value)}%" if value is not None else "--"


def describe_quota(data) -> str:
    """One-line description of a provider result."""
    if isinstance(data, CodexQuotaData):
        windows = ", ".join(
            f"{window.label} {_percent(window.used_percent)} used (resets {window.reset_label})"
            for window in data.windows
        )
        return f"plan={data.plan_type or 'unknown'} {windows or 'no windows'}"
    if isinstance(data, GithubCopilotQuota):
        if not data.has_data:
            return "no quota data"
        chat = "unlimited" if data.chat_unlimited else _percent(data.chat_percent)
        completions = "unlimited" if data.completions_unlimited else _percent(data.completions_percent)
        return (
            f"sku={data.sku or 'unknown'} chat={chat} completions={completions} "
            f"premium={_percent(data.premium_percent)}"
        )
    if isinstance(data, list):
        if not data:
            return "no quota information"
        parts = []
        for item in data:
            if isinstance(item, (AntigravityQuotaGroup, GeminiCliQuotaBucket)):
                fraction = item.remaining_fraction
                remaining = _percent(fraction * 100 if fraction is not None else None)
                parts.append(f"{item.label} {remaining} left (resets {format_quota_reset_time(item.reset_time)})")
        return "; ".join(parts)
    return str(data)


def format_summary_line(provider: QuotaProvider, key: str, state: QuotaState) -> str:
    """Summary line for one cached quota state."""
    prefix = f"[{provider.display_name}] {key}:"
    if state.is_error:
        status = f" (HTTP {state.error_status})" if state.error_status else ""
        return f"{prefix} error{status}: {state.error}"
    if state.is_loading:
        return f"{prefix} loading"
    return f"{prefix} {describe_quota(state.data)}"


async def run(settings: QuotaSettings, providers: Sequence[QuotaProvider]) -> int:
    """Load auth files, refresh quotas and print the summary. Returns the exit code."""
    async with ManagementAPIClient(
        settings.management_url,
        settings.management_key,
        timeout=settings.request_timeout,
    ) as api_client:
        view_model = QuotaViewModel(api_client=api_client, settings=settings)
        try:
            await view_model.load_auth_files()
        except APIError as e:
            logger.error("[Main] Could not load auth files from %s: %s", settings.management_url, e.message)
            return 1

        results = await view_model.refresh_all(view_model.auth_files, providers=providers)

    for provider in providers:
        states = results.get(provider, {})
        for key in sorted(states):
            print(format_summary_line(provider, key, states[key]))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for the command line.

    WORKFLOW:
    1. Check for debug flags and set up logging
    2. Resolve the providers to refresh
    3. Load settings
    4. Run the refresh and print results
    """
    args = list(sys.argv[1:] if argv is None else argv)

    if is_debug_mode(args):
        setup_debug_logging()
        logger.debug("[Main] Debug mode is enabled (Python %s)", sys.version.split()[0])
    else:
        setup_logging()

    try:
        providers = parse_providers(args)
    except ValueError as e:
        print(f"{e}\n{USAGE}", file=sys.stderr)
        return 2

    settings = SettingsManager().load_quota_settings()

    try:
        return asyncio.run(run(settings, providers))
    except KeyboardInterrupt:
        logger.info("[Main] Interrupted")
        return 130


if __name__ == "__main__":
    # Entry point when running as a script: python -m quotalens.main
    sys.exit(main())
