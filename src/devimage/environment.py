"""Mutable build environment threaded through a provisioning run."""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from devimage.errors import EnvironmentFrozenError, ValidationError
from devimage.snapshot import EnvironmentSnapshot

DEFAULT_PATH_ORDER: tuple[str, ...] = (
    "/usr/local/sbin",
    "/usr/local/bin",
    "/usr/sbin",
    "/usr/bin",
    "/sbin",
    "/bin",
)

PATH_REFERENCES = ("$PATH", "${PATH}")


@dataclass(slots=True)
class BuildEnvironment:
    """Accumulated variable and filesystem state for one run.

    ``root`` is the host directory that stands in for the image's ``/``.
    Every mutator refuses to run once :meth:`freeze` has been called.
    """

    root: Path
    variables: dict[str, str] = field(default_factory=dict)
    path_order: list[str] = field(default_factory=lambda: list(DEFAULT_PATH_ORDER))
    packages: set[str] = field(default_factory=set)
    files: dict[str, int] = field(default_factory=dict)
    default_command: tuple[str, ...] | None = None
    _frozen: bool = field(init=False, default=False, repr=False)

    def __post_init__(self) -> None:
        self.root = Path(self.root)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def host_path(self, image_path: str) -> Path:
        """Map an absolute image path onto the host directory behind ``root``."""
        pure = PurePosixPath(image_path)
        if not pure.is_absolute():
            raise ValidationError(
                "Image paths must be absolute.",
                context={"path": image_path},
            )
        if ".." in pure.parts:
            raise ValidationError(
                "Image paths must not contain '..' segments.",
                context={"path": image_path},
            )
        return self.root.joinpath(*pure.parts[1:])

    def set_variable(self, key: str, value: str) -> None:
        self._ensure_mutable(operation="set_variable")
        self.variables[key] = value
        if key == "PATH":
            self.path_order = expand_path_value(value, previous=self.path_order)

    def prepend_path(self, directory: str) -> None:
        self._ensure_mutable(operation="prepend_path")
        self.path_order = [directory, *(item for item in self.path_order if item != directory)]

    def record_packages(self, names: Iterable[str]) -> None:
        self._ensure_mutable(operation="record_packages")
        self.packages.update(names)

    def record_file(self, image_path: str, mode: int) -> None:
        self._ensure_mutable(operation="record_file")
        self.files[image_path] = mode

    def set_default_command(self, argv: Sequence[str]) -> None:
        self._ensure_mutable(operation="set_default_command")
        self.default_command = tuple(argv)

    def which(self, name: str) -> str | None:
        """Return the image path of the first executable *name* on ``path_order``."""
        for directory in self.path_order:
            candidate = f"{directory.rstrip('/')}/{name}"
            try:
                host = self.host_path(candidate)
            except ValidationError:
                continue
            if host.is_file() and os.access(host, os.X_OK):
                return candidate
        return None

    def process_env(self) -> dict[str, str]:
        """Variables as seen by an external process started inside the environment."""
        env = dict(self.variables)
        env["PATH"] = ":".join(self.path_order)
        return env

    def snapshot(self) -> EnvironmentSnapshot:
        return EnvironmentSnapshot.capture(
            variables=self.variables,
            path_order=self.path_order,
            packages=self.packages,
            files=self.files,
            default_command=self.default_command,
        )

    def _ensure_mutable(self, *, operation: str) -> None:
        if self._frozen:
            raise EnvironmentFrozenError(
                "Build environment is frozen.",
                hint="Start a new run with a fresh environment.",
                context={"operation": operation, "root": str(self.root)},
            )


def expand_path_value(value: str, *, previous: Sequence[str]) -> list[str]:
    """Derive a search order from a ``PATH`` value, expanding ``$PATH`` references."""
    order: list[str] = []
    for element in value.split(":"):
        if element in PATH_REFERENCES:
            order.extend(previous)
        elif element:
            order.append(element)
    return list(dict.fromkeys(order))


__all__ = ["BuildEnvironment", "DEFAULT_PATH_ORDER", "expand_path_value"]
