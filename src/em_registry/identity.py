"""
em_registry.identity — Per-account credentials file.

Layout: {"version": 1, "accounts": {"<name>": {accountId, userId, userApiKey}}}
Written with mode 0600. No locking: concurrent writers race, last one wins.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from em_registry.exceptions import AccountNotFoundError, InvalidIdentityError, RegistryCliError
from em_registry.models import AccountIdentity
from em_registry.validation import (
    validate_account_id,
    validate_user_api_key,
    validate_user_id,
)

logger = logging.getLogger("em_registry.identity")

STORE_VERSION = 1


def validate_identity(identity: AccountIdentity) -> None:
    """Raise InvalidIdentityError listing every malformed field."""
    checks = (
        ("accountId", validate_account_id(identity.account_id)),
        ("userId", validate_user_id(identity.user_id)),
        ("userApiKey", validate_user_api_key(identity.user_api_key)),
    )
    problems = [f"{name}: {error}" for name, error in checks if error]
    if problems:
        raise InvalidIdentityError("; ".join(problems))


class IdentityStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"version": STORE_VERSION, "accounts": {}}
        try:
            parsed = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise RegistryCliError(f"Invalid credentials file format: {self.path}") from exc
        if not isinstance(parsed, dict):
            raise RegistryCliError(f"Invalid credentials file format: {self.path}")
        if not isinstance(parsed.get("accounts"), dict):
            parsed["accounts"] = {}
        return parsed

    def _save(self, store: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(store, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        os.chmod(self.path, 0o600)

    def get(self, account: str) -> AccountIdentity:
        raw = self._load()["accounts"].get(account)
        if not isinstance(raw, dict):
            raise AccountNotFoundError(account)
        return AccountIdentity.from_dict(raw)

    def get_or_blank(self, account: str) -> AccountIdentity:
        try:
            return self.get(account)
        except AccountNotFoundError:
            return AccountIdentity.blank()

    def set(self, account: str, identity: AccountIdentity) -> None:
        validate_identity(identity)
        store = self._load()
        store["accounts"][account] = identity.to_dict()
        self._save(store)
        logger.debug("Saved account %s to %s", account, self.path)
