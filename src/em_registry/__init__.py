"""
em_registry — Package and publish frontend modules to the module registry.

The publish pipeline reads the project's em-module.json, zips the build
directory, asks the registry for a signed upload URL and posts the zip to it.
"""

from em_registry.descriptor import DescriptorStore
from em_registry.exceptions import RegistryCliError, RegistryRequestError
from em_registry.identity import IdentityStore
from em_registry.models import AccountIdentity, ModuleDescriptor, UploadURLResponse
from em_registry.packager import create_package
from em_registry.registry import RegistryClient
from em_registry.upload import publish_artifact, submit_artifact

__all__ = [
    "AccountIdentity",
    "DescriptorStore",
    "IdentityStore",
    "ModuleDescriptor",
    "RegistryCliError",
    "RegistryClient",
    "RegistryRequestError",
    "UploadURLResponse",
    "create_package",
    "publish_artifact",
    "submit_artifact",
]
