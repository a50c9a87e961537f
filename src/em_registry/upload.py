"""
em_registry.upload — Two-phase artifact upload.

Phase 1 asks the registry for a signed upload URL (RegistryClient).
Phase 2 posts the artifact to that URL as a multipart form: the signed
fields first, in the order the registry sent them, then the zip under
the "file" field. Nothing is retried; any failure ends the invocation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlencode

import requests

from em_registry.config import DEFAULT_TIMEOUT_SECONDS
from em_registry.exceptions import UploadSubmitError
from em_registry.models import UploadURL, UploadURLResponse
from em_registry.registry import RegistryClient

logger = logging.getLogger("em_registry.upload")

FILE_FIELD = "file"


def submit_artifact(
    upload_url: UploadURL,
    data: bytes,
    *,
    session: requests.Session,
    filename: str = "em-module.zip",
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
) -> bytes:
    """POST the multipart form and return the fully buffered response body."""
    # requests writes data fields before files, preserving list order.
    response = session.post(
        upload_url.url,
        data=list(upload_url.fields),
        files={FILE_FIELD: (filename, data, "application/zip")},
        timeout=timeout_seconds,
    )
    body = response.content
    logger.debug("Upload target answered HTTP %s: %r", response.status_code, body[:2000])
    if not response.ok:
        raise UploadSubmitError(status_code=response.status_code, body=body)
    return body


def publish_artifact(
    client: RegistryClient,
    module_id: str,
    zip_path: Path,
    *,
    session: requests.Session | None = None,
) -> UploadURLResponse:
    data = zip_path.read_bytes()
    url_response = client.request_upload_url(module_id, data)
    logger.debug("Upload URL for %s: %s", module_id, url_response.upload_url.url)
    submit_artifact(
        url_response.upload_url,
        data,
        session=session or client.session,
        filename=zip_path.name,
        timeout_seconds=client.timeout_seconds,
    )
    return url_response


def _sandbox_link(sandbox_url: str, preview_url: str) -> str:
    return f"{sandbox_url}?{urlencode({'url': preview_url})}"


def preview_lines(response: UploadURLResponse, sandbox_url: str) -> list[str]:
    lines = [
        f"Preview URL: {response.preview_url}",
        f"Laboratorium: {_sandbox_link(sandbox_url, response.preview_url)}",
    ]
    for tenant in response.tenants_preview_urls or ():
        lines.append("")
        lines.append(f"Preview URL [{tenant.tenant_id}]: {tenant.url}")
        link = _sandbox_link(sandbox_url, tenant.url)
        lines.append(f"Laboratorium [{tenant.tenant_id}]: {link}")
    return lines
