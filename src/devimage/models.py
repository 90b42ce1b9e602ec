"""Typed step dataclasses for provisioning sequences."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Literal

from devimage.errors import ValidationError

StepKind = Literal[
    "system_update",
    "system_upgrade",
    "package_install",
    "environment_set",
    "toolchain_install",
    "artifact_fetch",
    "cache_clean",
    "default_command",
]

# Steps that reach the package manager or the network.
NETWORK_KINDS: frozenset[str] = frozenset(
    {
        "system_update",
        "system_upgrade",
        "package_install",
        "toolchain_install",
        "artifact_fetch",
    }
)


@dataclass(frozen=True, slots=True)
class SystemUpdate:
    kind: ClassVar[StepKind] = "system_update"


@dataclass(frozen=True, slots=True)
class SystemUpgrade:
    kind: ClassVar[StepKind] = "system_upgrade"


@dataclass(frozen=True, slots=True)
class PackageInstall:
    """Install named packages; ``names`` keeps first-seen order without duplicates."""

    kind: ClassVar[StepKind] = "package_install"

    names: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _reject_bare_string("names", self.names, self.kind)
        object.__setattr__(self, "names", tuple(dict.fromkeys(self.names)))


@dataclass(frozen=True, slots=True)
class EnvironmentSet:
    kind: ClassVar[StepKind] = "environment_set"

    key: str
    value: str


@dataclass(frozen=True, slots=True)
class ToolchainInstall:
    """Run an installer script non-interactively for one release channel."""

    kind: ClassVar[StepKind] = "toolchain_install"

    installer_url: str
    channel: str = "stable"
    bin_dir: str | None = None


@dataclass(frozen=True, slots=True)
class ArtifactFetch:
    kind: ClassVar[StepKind] = "artifact_fetch"

    url: str
    destination: str
    mode: str = "0755"
    sha256: str | None = None


@dataclass(frozen=True, slots=True)
class CacheClean:
    kind: ClassVar[StepKind] = "cache_clean"


@dataclass(frozen=True, slots=True)
class DefaultCommand:
    kind: ClassVar[StepKind] = "default_command"

    argv: tuple[str, ...]

    def __post_init__(self) -> None:
        _reject_bare_string("argv", self.argv, self.kind)
        object.__setattr__(self, "argv", tuple(self.argv))


Step = (
    SystemUpdate
    | SystemUpgrade
    | PackageInstall
    | EnvironmentSet
    | ToolchainInstall
    | ArtifactFetch
    | CacheClean
    | DefaultCommand
)

STEP_TYPES: dict[str, type[Step]] = {
    SystemUpdate.kind: SystemUpdate,
    SystemUpgrade.kind: SystemUpgrade,
    PackageInstall.kind: PackageInstall,
    EnvironmentSet.kind: EnvironmentSet,
    ToolchainInstall.kind: ToolchainInstall,
    ArtifactFetch.kind: ArtifactFetch,
    CacheClean.kind: CacheClean,
    DefaultCommand.kind: DefaultCommand,
}


def _reject_bare_string(field_name: str, value: object, kind: str) -> None:
    if isinstance(value, str):
        raise ValidationError(
            f"{field_name} must be a sequence of strings, not a single string.",
            hint=f"Wrap the value: ({value!r},).",
            context={"kind": kind, field_name: value},
        )


__all__ = [
    "ArtifactFetch",
    "CacheClean",
    "DefaultCommand",
    "EnvironmentSet",
    "NETWORK_KINDS",
    "PackageInstall",
    "STEP_TYPES",
    "Step",
    "StepKind",
    "SystemUpdate",
    "SystemUpgrade",
    "ToolchainInstall",
]
