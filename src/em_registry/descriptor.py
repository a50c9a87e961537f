"""
em_registry.descriptor — The em-module.json file of the current project.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path

from em_registry.config import DESCRIPTOR_FILE_NAME
from em_registry.exceptions import (
    ModuleAlreadyExistsError,
    ModuleDescriptorNotFoundError,
    RegistryCliError,
)
from em_registry.models import ModuleDescriptor

logger = logging.getLogger("em_registry.descriptor")


class DescriptorStore:
    def __init__(self, directory: Path, file_name: str = DESCRIPTOR_FILE_NAME) -> None:
        self.directory = directory
        self.path = directory / file_name

    def load(self) -> ModuleDescriptor:
        """Read the descriptor, raising ModuleDescriptorNotFoundError when absent."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ModuleDescriptorNotFoundError(self.path) from exc
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RegistryCliError(f"Invalid module descriptor {self.path}: {exc}") from exc
        if not isinstance(parsed, dict):
            raise RegistryCliError(f"Invalid module descriptor {self.path}: expected an object")
        return ModuleDescriptor.from_dict(parsed)

    def load_or_none(self) -> ModuleDescriptor | None:
        try:
            return self.load()
        except ModuleDescriptorNotFoundError:
            return None

    def save(self, descriptor: ModuleDescriptor) -> None:
        self.path.write_text(
            json.dumps(descriptor.to_dict(), indent=2) + "\n",
            encoding="utf-8",
        )
        logger.debug("Wrote %s", self.path)

    def save_module_id(self, module_id: str) -> ModuleDescriptor:
        current = self.load_or_none() or ModuleDescriptor()
        updated = dataclasses.replace(current, module_id=module_id)
        self.save(updated)
        return updated

    def ensure_no_module(self) -> None:
        current = self.load_or_none()
        if current is not None and current.module_id is not None:
            raise ModuleAlreadyExistsError(current.module_id)
