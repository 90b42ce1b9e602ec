"""In-process provisioning backend for testing and dry runs.

Simulates a package index, a network of URL payloads, and installer scripts
without invoking apt, curl, or any other external tool.  Every call is
recorded in ``calls`` so tests can assert ordering and fail-fast behavior.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from devimage.backends.base import write_artifact
from devimage.environment import BuildEnvironment
from devimage.errors import DevImageError, NetworkError, PackageResolutionError


@dataclass(slots=True)
class InstallerEffect:
    """What a simulated installer script leaves behind."""

    variables: Mapping[str, str] = field(default_factory=dict)
    files: Mapping[str, bytes] = field(default_factory=dict)
    channels: tuple[str, ...] = ("stable",)


@dataclass(slots=True)
class InProcessBackend:
    name: str = "inprocess"
    index: set[str] = field(default_factory=set)
    payloads: dict[str, bytes] = field(default_factory=dict)
    installers: dict[str, InstallerEffect] = field(default_factory=dict)
    fail_on: dict[str, DevImageError] = field(default_factory=dict)
    calls: list[tuple[str, ...]] = field(default_factory=list)
    cache: list[str] = field(default_factory=list)
    index_loaded: bool = False

    def update_index(self, env: BuildEnvironment) -> None:
        self._record("update_index")
        self.index_loaded = True

    def upgrade_packages(self, env: BuildEnvironment) -> None:
        self._record("upgrade_packages")
        self.cache.extend(f"{name}.deb" for name in sorted(env.packages))

    def install_packages(self, names: tuple[str, ...], env: BuildEnvironment) -> None:
        self._record("install_packages", *names)
        unresolved = [name for name in names if name not in self.index]
        if unresolved:
            raise PackageResolutionError(
                "Unable to locate package.",
                hint="Check the package name or refresh the package index.",
                context={"backend": self.name, "packages": ",".join(unresolved)},
            )
        self.cache.extend(f"{name}.deb" for name in names)

    def clean_cache(self, env: BuildEnvironment) -> None:
        self._record("clean_cache")
        self.cache.clear()

    def fetch_file(self, url: str, destination: str, env: BuildEnvironment) -> Path:
        self._record("fetch_file", url, destination)
        payload = self.payloads.get(url)
        if payload is None:
            raise NetworkError(
                "HTTP request failed.",
                context={"backend": self.name, "url": url, "status": "404"},
            )
        return write_artifact(env, destination, payload)

    def run_installer(self, installer_url: str, channel: str, env: BuildEnvironment) -> None:
        self._record("run_installer", installer_url, channel)
        effect = self.installers.get(installer_url)
        if effect is None:
            raise NetworkError(
                "Installer download failed.",
                context={"backend": self.name, "url": installer_url, "status": "404"},
            )
        if channel not in effect.channels:
            raise PackageResolutionError(
                "Installer does not provide the requested channel.",
                context={"backend": self.name, "url": installer_url, "channel": channel},
            )
        for path, content in sorted(effect.files.items()):
            host = write_artifact(env, path, content)
            host.chmod(0o755)
            env.record_file(path, 0o755)
        for key, value in effect.variables.items():
            env.set_variable(key, value)

    def _record(self, operation: str, *args: str) -> None:
        self.calls.append((operation, *args))
        failure = self.fail_on.get(operation)
        if failure is not None:
            raise failure
