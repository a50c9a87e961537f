"""
em_registry.exceptions — Domain errors for the registry CLI.

Precondition errors (missing descriptor, missing account, module already
created) derive directly from RegistryCliError. Remote failures carry the
response so the command surface can print it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class RegistryCliError(RuntimeError):
    """Domain error for registry CLI failures."""


class AccountNotFoundError(RegistryCliError):
    """Raised when no credentials are stored for the requested account."""

    def __init__(self, account: str) -> None:
        self.account = account
        super().__init__(f"Account [{account}] not found")


class InvalidIdentityError(RegistryCliError):
    """Raised when credentials do not match the expected shape."""


class ModuleDescriptorNotFoundError(RegistryCliError):
    """Raised when the working directory has no module descriptor."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Working directory {path.parent} does not contain {path.name}")


class ModuleAlreadyExistsError(RegistryCliError):
    """Raised by create when the descriptor already holds a moduleId."""

    def __init__(self, module_id: str) -> None:
        self.module_id = module_id
        super().__init__(
            f"It seems you already have a project in this directory (moduleId={module_id}). "
            "Create command aborted!"
        )


class ModuleNotInitializedError(RegistryCliError):
    """Raised when publishing from a descriptor without a moduleId."""


class BuildDirectoryNotFoundError(RegistryCliError):
    """Raised when the configured build directory is missing."""


class PrePackageCommandError(RegistryCliError):
    """
    Raised when the pre-package command exits non-zero.

    Attributes:
        command:     The shell command that was run.
        return_code: Its exit status.
        stderr:      Captured standard error, printed verbatim by the CLI.
    """

    def __init__(self, *, command: str, return_code: int, stderr: str) -> None:
        self.command = command
        self.return_code = return_code
        self.stderr = stderr
        super().__init__(f"Command failed ({return_code}): {command}")


class RegistryRequestError(RegistryCliError):
    """Raised when the registry answers with a non-success status."""

    def __init__(
        self,
        *,
        message: str,
        status_code: int | None = None,
        payload: Any = None,
        response_text: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload
        self.response_text = response_text


class UploadSubmitError(RegistryCliError):
    """Raised when the upload target rejects the multipart form."""

    def __init__(self, *, status_code: int, body: bytes) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Artifact upload failed with HTTP {status_code}")
