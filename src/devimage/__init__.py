"""Public package entrypoint for the development image provisioner."""

from .backends import InProcessBackend, InstallerEffect, LocalLinuxBackend, ProvisioningBackend
from .environment import BuildEnvironment
from .errors import (
    DevImageError,
    EnvironmentFrozenError,
    ErrorCode,
    ExternalProcessError,
    ExternalTimeoutError,
    FilePermissionError,
    IntegrityError,
    NetworkError,
    PackageResolutionError,
    PolicyError,
    StepAbortedError,
    ValidationError,
)
from .models import (
    ArtifactFetch,
    CacheClean,
    DefaultCommand,
    EnvironmentSet,
    PackageInstall,
    Step,
    SystemUpdate,
    SystemUpgrade,
    ToolchainInstall,
)
from .policy import Policy
from .recipe import Recipe
from .sequencer import RunResult, RunState, Sequencer, StepFailure
from .snapshot import EnvironmentSnapshot

__all__ = [
    "ArtifactFetch",
    "BuildEnvironment",
    "CacheClean",
    "DefaultCommand",
    "DevImageError",
    "EnvironmentFrozenError",
    "EnvironmentSet",
    "EnvironmentSnapshot",
    "ErrorCode",
    "ExternalProcessError",
    "ExternalTimeoutError",
    "FilePermissionError",
    "InProcessBackend",
    "InstallerEffect",
    "IntegrityError",
    "LocalLinuxBackend",
    "NetworkError",
    "PackageInstall",
    "PackageResolutionError",
    "Policy",
    "PolicyError",
    "ProvisioningBackend",
    "Recipe",
    "RunResult",
    "RunState",
    "Sequencer",
    "Step",
    "StepAbortedError",
    "StepFailure",
    "SystemUpdate",
    "SystemUpgrade",
    "ToolchainInstall",
    "ValidationError",
]
