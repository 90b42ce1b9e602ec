"""Provisioning backend interfaces and implementations."""

from .base import ProvisioningBackend, write_artifact
from .inprocess import InProcessBackend, InstallerEffect
from .local_linux import LocalLinuxBackend

__all__ = [
    "InProcessBackend",
    "InstallerEffect",
    "LocalLinuxBackend",
    "ProvisioningBackend",
    "write_artifact",
]
