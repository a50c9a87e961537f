"""
em_registry.config — Paths, endpoints and logging for the registry CLI.

Environment overrides are read at call time so tests can monkeypatch them.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from em_registry.exceptions import RegistryCliError

DEFAULT_ACCOUNT = "default"
DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_SANDBOX_URL = "https://everymundo.github.io/ui-laboratorium/sandbox"

DESCRIPTOR_FILE_NAME = "em-module.json"
PACKAGE_FILE_NAME = "em-module.zip"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def credentials_path() -> Path:
    override = os.environ.get("EM_REGISTRY_CREDENTIALS_PATH", "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".em-registry" / "credentials"


def timeout_seconds() -> int:
    raw = os.environ.get("EM_REGISTRY_TIMEOUT_SECONDS", "").strip()
    if not raw:
        return DEFAULT_TIMEOUT_SECONDS
    try:
        return int(raw)
    except ValueError as exc:
        raise RegistryCliError(f"EM_REGISTRY_TIMEOUT_SECONDS must be an integer: {raw!r}") from exc


def sandbox_url() -> str:
    return os.environ.get("EM_REGISTRY_SANDBOX_URL", "").strip() or DEFAULT_SANDBOX_URL


def resolve_api_base_url(*, explicit: str | None, stored: str | None) -> str:
    """Pick the registry URL: CLI flag, then environment, then the account."""
    if explicit and explicit.strip():
        return explicit.strip()

    from_env = os.environ.get("EM_REGISTRY_API_URL", "").strip()
    if from_env:
        return from_env

    if stored and stored.strip():
        return stored.strip()

    raise RegistryCliError(
        "Registry API URL not set. Use --api-base-url or EM_REGISTRY_API_URL, "
        "or run `em-registry configure --api-base-url <url>`."
    )


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
        force=True,
    )
