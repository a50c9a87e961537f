"""
em_registry.validation — Shape checks for interactive answers.

Every predicate returns None when the value is acceptable, otherwise the
message shown before re-prompting. Patterns use re.ASCII so that \\w means
[A-Za-z0-9_].
"""

from __future__ import annotations

import re
from collections.abc import Callable

from em_registry.models import ALL_TENANTS

Validator = Callable[[str], str | None]

ACCOUNT_ID_RE = re.compile(r"\w{3,12}", re.ASCII)
USER_ID_RE = ACCOUNT_ID_RE
USER_API_KEY_RE = re.compile(r"\w{48,64}", re.ASCII)
MODULE_ID_RE = re.compile(r"\w[-\w]{2,11}\w", re.ASCII)
MODULE_NAME_RE = re.compile(r"\w[\w\s]{2,48}", re.ASCII)
TENANT_LIST_RE = re.compile(r"(?:\w{2,4}\s)*\w{2,4}", re.ASCII)
TENANT_CODE_RE = re.compile(r"[A-Za-z0-9]{2,4}")
BUILD_DIRECTORY_RE = re.compile(r"\w{3,12}", re.ASCII)
MAIN_FILE_RE = re.compile(r"\w{3,18}\.js", re.ASCII)
PRE_PACK_COMMAND_RE = re.compile(r"\w[\w\s]*", re.ASCII)
CONFIRMATION_RE = re.compile(r"yes|no")


def pattern_validator(pattern: re.Pattern[str], error: str) -> Validator:
    def _validate(value: str) -> str | None:
        return None if pattern.fullmatch(value) else error

    return _validate


validate_account_id = pattern_validator(
    ACCOUNT_ID_RE, "Please enter a valid accountId with a valid string between 3 and 12 chars"
)
validate_user_id = pattern_validator(
    USER_ID_RE, "Please enter a valid userId with a valid string between 3 and 12 chars"
)
validate_user_api_key = pattern_validator(
    USER_API_KEY_RE,
    "Please enter a valid userApiKey with a valid string between 48 and 64 chars",
)
validate_module_id = pattern_validator(
    MODULE_ID_RE, "Please enter a valid moduleId with a valid string between 4 and 13 chars"
)
validate_module_name = pattern_validator(
    MODULE_NAME_RE, "Please enter a valid Module Name with a valid string between 3 and 49 chars"
)
validate_build_directory = pattern_validator(
    BUILD_DIRECTORY_RE,
    "Please enter a valid build directory name with a valid string between 3 and 12 chars",
)
validate_main_file = pattern_validator(
    MAIN_FILE_RE, "Please enter a main javascript file name, e.g.: index.js"
)
validate_pre_pack_command = pattern_validator(
    PRE_PACK_COMMAND_RE, "Please enter a valid pre package command"
)


def validate_tenant_ids(value: str) -> str | None:
    if value == ALL_TENANTS or TENANT_LIST_RE.fullmatch(value):
        return None
    return "Please enter *, one code or a list of codes separated by spaces. e.g.: AA BB C8 D2"


def validate_confirmation(value: str) -> str | None:
    return None if CONFIRMATION_RE.fullmatch(value.lower()) else "Please answer yes or no"


def normalize_tenant_ids(value: str) -> str | tuple[str, ...]:
    """Turn "bb aa" into ("AA", "BB"); anything else (notably "*") is kept."""
    codes = value.split()
    if not codes or not all(TENANT_CODE_RE.fullmatch(code) for code in codes):
        return value
    return tuple(sorted(code.upper() for code in codes))
