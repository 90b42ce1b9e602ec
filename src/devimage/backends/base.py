"""Protocol for provisioning backends."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol

from devimage.environment import BuildEnvironment
from devimage.errors import FilePermissionError


class ProvisioningBackend(Protocol):
    """Capability interface to the package manager, the network, and installer scripts.

    Implementations raise the typed errors from :mod:`devimage.errors` so the
    sequencer can report which class of failure aborted a run.
    """

    name: str

    def update_index(self, env: BuildEnvironment) -> None:
        """Refresh the package index."""

    def upgrade_packages(self, env: BuildEnvironment) -> None:
        """Upgrade installed packages to the latest index versions."""

    def install_packages(self, names: tuple[str, ...], env: BuildEnvironment) -> None:
        """Install every named package or fail without partial success."""

    def clean_cache(self, env: BuildEnvironment) -> None:
        """Reclaim package cache while keeping the package index resolvable."""

    def fetch_file(self, url: str, destination: str, env: BuildEnvironment) -> Path:
        """Download *url* to the image path *destination* and return its host path."""

    def run_installer(self, installer_url: str, channel: str, env: BuildEnvironment) -> None:
        """Fetch and run an installer script non-interactively for *channel*."""


def write_artifact(env: BuildEnvironment, destination: str, payload: bytes) -> Path:
    """Atomically write *payload* to *destination*, replacing any existing file."""
    target = env.host_path(destination)
    temp_path = target.with_name(f".{target.name}.tmp")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        temp_path.write_bytes(payload)
        os.replace(temp_path, target)
    except OSError as exc:
        raise FilePermissionError(
            "Could not write artifact to destination.",
            hint="Check that the build root is writable.",
            context={"destination": destination, "path": str(target), "error": str(exc)},
        ) from exc
    return target
