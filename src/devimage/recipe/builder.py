"""Fluent recipe object for declaring provisioning sequences."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Self

from devimage.errors import ValidationError
from devimage.models import (
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
from devimage.policy import Policy
from devimage.validate import validate_steps


@dataclass(slots=True)
class Recipe:
    """Ordered, declarative build recipe for a development image.

    Declaring steps never touches the filesystem or the network; use a
    :class:`devimage.sequencer.Sequencer` to execute them.
    """

    base: str = "ubuntu"
    labels: dict[str, str] = field(default_factory=dict)
    _steps: list[Step] = field(init=False, default_factory=list, repr=False)

    @property
    def steps(self) -> tuple[Step, ...]:
        return tuple(self._steps)

    @property
    def default_command(self) -> tuple[str, ...] | None:
        for step in self._steps:
            if isinstance(step, DefaultCommand):
                return step.argv
        return None

    def add(self, *steps: Step) -> Self:
        for step in steps:
            if isinstance(step, DefaultCommand) and self.default_command is not None:
                raise ValidationError(
                    "command() was already declared for this recipe.",
                    hint="A recipe declares exactly one default command.",
                    context={"existing": " ".join(self.default_command)},
                )
            self._steps.append(step)
        return self

    def label(self, key: str, value: str) -> Self:
        if not key:
            raise ValidationError("label() requires a non-empty key.")
        self.labels[key] = value
        return self

    def update(self) -> Self:
        return self.add(SystemUpdate())

    def upgrade(self) -> Self:
        return self.add(SystemUpgrade())

    def install(self, *names: str) -> Self:
        for name in names:
            if not name:
                raise ValidationError("Package names must be non-empty.")
        return self.add(PackageInstall(names=names))

    def env(self, key: str, value: str) -> Self:
        if not key:
            raise ValidationError("env() requires a non-empty variable name.")
        return self.add(EnvironmentSet(key=key, value=value))

    def envs(self, variables: Mapping[str, str]) -> Self:
        for key, value in variables.items():
            self.env(key, value)
        return self

    def toolchain(
        self,
        installer_url: str,
        *,
        channel: str = "stable",
        bin_dir: str | None = None,
    ) -> Self:
        if not installer_url:
            raise ValidationError("toolchain() requires an installer URL.")
        return self.add(
            ToolchainInstall(installer_url=installer_url, channel=channel, bin_dir=bin_dir)
        )

    def fetch(
        self,
        url: str,
        destination: str,
        *,
        mode: str = "a+x",
        sha256: str | None = None,
    ) -> Self:
        if not url or not destination:
            raise ValidationError("fetch() requires both a URL and a destination.")
        return self.add(ArtifactFetch(url=url, destination=destination, mode=mode, sha256=sha256))

    def clean(self) -> Self:
        return self.add(CacheClean())

    def command(self, *argv: str) -> Self:
        if not argv:
            raise ValidationError("command() requires an argv.")
        return self.add(DefaultCommand(argv=argv))

    def validate(self, *, policy: Policy | None = None) -> None:
        validate_steps(self._steps, policy=policy)
