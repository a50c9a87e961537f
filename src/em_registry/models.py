"""
em_registry.models — Records exchanged with the local stores and the registry.

On-disk and wire formats use camelCase keys; the dataclasses use snake_case
and convert at the edges with from_dict/to_dict.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

ALL_TENANTS = "*"

# ---------------------------------------------------------------------------
# Account identity: one per account name in the credentials file
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountIdentity:
    account_id: str
    user_id: str
    user_api_key: str
    api_base_url: str | None = None

    @classmethod
    def blank(cls) -> AccountIdentity:
        return cls(account_id="", user_id="", user_api_key="")

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> AccountIdentity:
        api_base_url = str(raw.get("apiBaseUrl") or "").strip()
        return cls(
            account_id=str(raw.get("accountId", "")),
            user_id=str(raw.get("userId", "")),
            user_api_key=str(raw.get("userApiKey", "")),
            api_base_url=api_base_url or None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "accountId": self.account_id,
            "userId": self.user_id,
            "userApiKey": self.user_api_key,
        }
        if self.api_base_url:
            data["apiBaseUrl"] = self.api_base_url
        return data

    @property
    def api_key_hint(self) -> str:
        """Last three characters of the API key, for prompts."""
        return self.user_api_key[-3:]


# ---------------------------------------------------------------------------
# Module descriptor: em-module.json in the project directory
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModuleDescriptor:
    """Build configuration of the module living in the working directory.

    tenant_ids is either ALL_TENANTS or a sorted tuple of upper-case codes.
    """

    name: str = ""
    tenant_ids: str | tuple[str, ...] = ALL_TENANTS
    build_directory: str = "build"
    main_file: str = "index.js"
    pre_pack_command: str | None = None
    module_id: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ModuleDescriptor:
        tenants = raw.get("tenantIds", ALL_TENANTS)
        if isinstance(tenants, list):
            tenants = tuple(str(t) for t in tenants)
        command = raw.get("prePackCommand", raw.get("prePackageCmd"))
        module_id = raw.get("moduleId")
        return cls(
            name=str(raw.get("name", "")),
            tenant_ids=tenants,
            build_directory=str(raw.get("buildDirectory", "build")),
            main_file=str(raw.get("mainFile", "index.js")),
            pre_pack_command=str(command) if command else None,
            module_id=str(module_id) if module_id is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        tenants: Any = self.tenant_ids
        if isinstance(tenants, tuple):
            tenants = list(tenants)
        return {
            "moduleId": self.module_id,
            "name": self.name,
            "tenantIds": tenants,
            "buildDirectory": self.build_directory,
            "mainFile": self.main_file,
            "prePackCommand": self.pre_pack_command,
        }

    def metadata(self) -> dict[str, Any]:
        """Fields sent to the registry when creating the module."""
        data = self.to_dict()
        data.pop("moduleId")
        return data


# ---------------------------------------------------------------------------
# Upload URL response: returned once per request-upload-url call
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UploadURL:
    url: str
    fields: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class TenantPreview:
    tenant_id: str
    url: str


@dataclass(frozen=True)
class UploadURLResponse:
    upload_url: UploadURL
    preview_url: str
    tenants_preview_urls: tuple[TenantPreview, ...] | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> UploadURLResponse:
        upload = raw.get("uploadURL")
        if not isinstance(upload, dict) or not upload.get("url"):
            raise ValueError("uploadURL.url missing from registry response")
        fields = upload.get("fields") or {}
        tenants = raw.get("tenantsPreviewUrls")
        previews = None
        if isinstance(tenants, list):
            previews = tuple(
                TenantPreview(tenant_id=str(item.get("tenantId", "")), url=str(item.get("url", "")))
                for item in tenants
                if isinstance(item, dict)
            )
        return cls(
            upload_url=UploadURL(
                url=str(upload["url"]),
                fields=tuple((str(k), str(v)) for k, v in fields.items()),
            ),
            preview_url=str(raw.get("previewUrl", "")),
            tenants_preview_urls=previews,
        )


# ---------------------------------------------------------------------------
# Module summary: one row of list-modules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModuleSummary:
    id: str
    name: str
    for_tenants: Any = None
    created_by: str | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ModuleSummary:
        known = {"_id", "name", "forTenants", "createdBy"}
        return cls(
            id=str(raw.get("_id", "")),
            name=str(raw.get("name", "")),
            for_tenants=raw.get("forTenants"),
            created_by=None if raw.get("createdBy") is None else str(raw["createdBy"]),
            extra={k: v for k, v in raw.items() if k not in known},
        )

    def row(self) -> dict[str, str]:
        tenants = self.for_tenants
        if isinstance(tenants, list):
            tenants = ",".join(str(t) for t in tenants)
        return {
            "_id": self.id,
            "name": self.name,
            "forTenants": "" if tenants is None else str(tenants),
            "createdBy": self.created_by or "",
        }
