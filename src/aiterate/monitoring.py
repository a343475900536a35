"""Opt-in logfire tracing for aiterate runs."""

import importlib.util
import os
from typing import Any

import dotenv


def _is_truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def enable_monitoring(
    logfire_enabled: bool | None = None,
    service_name: str = "aiterate",
    instrument_httpx: bool = False,
    **options,
) -> bool:
    """Configure logfire when ``LOGFIRE_ENABLED`` (or ``logfire_enabled``) asks for it.

    Without configuration, logfire calls made throughout the package are no-ops,
    so monitoring stays entirely optional.

    Returns:
        True if logfire was configured.
    """
    dotenv.load_dotenv()
    if logfire_enabled is None:
        logfire_enabled = _is_truthy(os.getenv("LOGFIRE_ENABLED", "false"))
    if not logfire_enabled:
        return False

    if not importlib.util.find_spec("logfire"):
        raise ImportError(
            "LOGFIRE_ENABLED is set but logfire is not installed. "
            "Please install logfire or set LOGFIRE_ENABLED=false"
        )

    import logfire

    console = options.pop("console", logfire.ConsoleOptions(show_project_link=False))
    if "token" not in options and (token := os.getenv("LOGFIRE_TOKEN")):
        options["token"] = token

    logfire.configure(service_name=service_name, console=console, **options)
    logfire.instrument_pydantic_ai()
    if instrument_httpx:
        logfire.instrument_httpx(capture_all=True)
    return True
