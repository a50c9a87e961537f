"""
em_registry.registry — Authenticated JSON calls to the module registry.

Calls (relative to the account's API base URL):
    POST request-upload-url   {moduleId, size, md5}   -> UploadURLResponse
    POST create-module        module metadata         -> {"module": {"_id": ...}}
    GET  list-modules                                 -> [module summary, ...]

Every call carries x-account-id, x-user-id and x-api-key headers. A
non-success status raises RegistryRequestError with the response attached;
transport errors from requests propagate untouched.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import requests

from em_registry.config import DEFAULT_TIMEOUT_SECONDS
from em_registry.exceptions import RegistryRequestError
from em_registry.models import AccountIdentity, ModuleSummary, UploadURLResponse

logger = logging.getLogger("em_registry.registry")


@dataclass(frozen=True)
class ApiOperation:
    method: str
    path: str
    body: dict[str, Any] | None = None


@dataclass(frozen=True)
class ApiResponse:
    status_code: int
    payload: Any


def _decode_json(raw: bytes | None) -> Any:
    if not raw:
        return None
    text = raw.decode("utf-8", errors="replace").strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _build_url(base_url: str, path: str) -> str:
    return urljoin(base_url.rstrip("/") + "/", path.lstrip("/"))


def artifact_digest(data: bytes) -> str:
    """Base64 MD5 of the artifact, as used by Content-MD5."""
    return base64.b64encode(hashlib.md5(data).digest()).decode("ascii")


class RegistryClient:
    def __init__(
        self,
        identity: AccountIdentity,
        *,
        base_url: str,
        session: requests.Session | None = None,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.identity = identity
        self.base_url = base_url
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "x-account-id": self.identity.account_id,
            "x-user-id": self.identity.user_id,
            "x-api-key": self.identity.user_api_key,
        }

    def request(self, operation: ApiOperation) -> ApiResponse:
        url = _build_url(self.base_url, operation.path)
        logger.debug("%s %s", operation.method, url)
        response = self.session.request(
            operation.method,
            url,
            headers=self._headers(),
            json=operation.body,
            timeout=self.timeout_seconds,
        )
        payload = _decode_json(response.content)
        if not response.ok:
            raise RegistryRequestError(
                message=(
                    f"Registry request failed with HTTP {response.status_code}: "
                    f"{operation.method} {operation.path}"
                ),
                status_code=response.status_code,
                payload=payload,
                response_text=response.text,
            )
        return ApiResponse(status_code=response.status_code, payload=payload)

    def request_upload_url(self, module_id: str, data: bytes) -> UploadURLResponse:
        response = self.request(
            ApiOperation(
                method="POST",
                path="request-upload-url",
                body={"moduleId": module_id, "size": len(data), "md5": artifact_digest(data)},
            )
        )
        if not isinstance(response.payload, dict):
            raise RegistryRequestError(
                message="Registry returned an unexpected upload URL response",
                status_code=response.status_code,
                payload=response.payload,
                response_text=str(response.payload),
            )
        try:
            return UploadURLResponse.from_dict(response.payload)
        except ValueError as exc:
            raise RegistryRequestError(
                message=f"Registry returned an unexpected upload URL response: {exc}",
                status_code=response.status_code,
                payload=response.payload,
                response_text=json.dumps(response.payload),
            ) from exc

    def create_module(self, metadata: dict[str, Any]) -> dict[str, Any]:
        response = self.request(ApiOperation(method="POST", path="create-module", body=metadata))
        payload = response.payload
        if not isinstance(payload, dict) or not isinstance(payload.get("module"), dict):
            raise RegistryRequestError(
                message="Registry returned an unexpected create-module response",
                status_code=response.status_code,
                payload=payload,
                response_text=str(payload),
            )
        return payload

    def list_modules(self) -> list[ModuleSummary]:
        response = self.request(ApiOperation(method="GET", path="list-modules"))
        payload = response.payload
        if not isinstance(payload, list):
            raise RegistryRequestError(
                message="Registry returned an unexpected list-modules response",
                status_code=response.status_code,
                payload=payload,
                response_text=str(payload),
            )
        return [ModuleSummary.from_dict(item) for item in payload if isinstance(item, dict)]
