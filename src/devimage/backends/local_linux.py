"""Native Linux provisioning via apt-get, urllib, and ``sh``.

Runs against the host when the build environment's root is ``/`` (the usual
case inside a container build) and through ``chroot`` otherwise.  By default
uses ``sudo`` for privilege escalation when not already root; set
``privilege="none"`` to run commands as the current user.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from http.client import HTTPException
from pathlib import Path
from typing import Any, Literal
from urllib.error import HTTPError, URLError
from urllib.request import urlopen

from devimage.backends.base import write_artifact
from devimage.environment import BuildEnvironment
from devimage.errors import ExternalProcessError, NetworkError, PackageResolutionError

RESOLUTION_MARKERS = (
    "Unable to locate package",
    "has no installation candidate",
    "Couldn't find any package",
)

NETWORK_MARKERS = (
    "Temporary failure resolving",
    "Could not resolve",
    "Failed to fetch",
    "Could not connect",
    "Connection timed out",
    "Network is unreachable",
)

NONINTERACTIVE_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


@dataclass(slots=True)
class LocalLinuxBackend:
    name: str = "local_linux"
    privilege: Literal["sudo", "none"] = "sudo"
    apt: str = "apt-get"
    apt_args: list[str] = field(default_factory=list)
    fetch_timeout: float = 60.0

    def update_index(self, env: BuildEnvironment) -> None:
        self._apt(["update", "-yq"], env, operation="update_index")

    def upgrade_packages(self, env: BuildEnvironment) -> None:
        self._apt(["upgrade", "-yq"], env, operation="upgrade_packages")

    def install_packages(self, names: tuple[str, ...], env: BuildEnvironment) -> None:
        self._apt(["install", "-yq", *names], env, operation="install_packages")

    def clean_cache(self, env: BuildEnvironment) -> None:
        # Clean apt but keep the package index alive.
        self._apt(["clean"], env, operation="clean_cache")
        self._apt(["update", "-yq"], env, operation="clean_cache")

    def fetch_file(self, url: str, destination: str, env: BuildEnvironment) -> Path:
        payload = self._download(url, operation="fetch_file")
        return write_artifact(env, destination, payload)

    def run_installer(self, installer_url: str, channel: str, env: BuildEnvironment) -> None:
        cmd = self._command(env, ["sh", "-s", "--", "-y", "--default-toolchain", channel])
        script = self._download(installer_url, operation="run_installer")
        result = self._run(cmd, env, operation="run_installer", input=script)
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace") if result.stderr else ""
            raise ExternalProcessError(
                "Installer script failed.",
                hint="Check installer output for details.",
                context={
                    "backend": self.name,
                    "operation": "run_installer",
                    "url": installer_url,
                    "channel": channel,
                    "returncode": str(result.returncode),
                    "stderr": stderr[:2000],
                },
            )

    def _apt(self, args: list[str], env: BuildEnvironment, *, operation: str) -> None:
        cmd = self._command(env, [self.apt, *self.apt_args, *args])
        result = self._run(cmd, env, operation=operation, stdin=subprocess.DEVNULL, text=True)
        if result.returncode == 0:
            return
        stderr = result.stderr or ""
        context = {
            "backend": self.name,
            "operation": operation,
            "returncode": str(result.returncode),
            "stderr": stderr[:2000],
            "command": " ".join(cmd),
        }
        if any(marker in stderr for marker in RESOLUTION_MARKERS):
            raise PackageResolutionError(
                "Package could not be resolved.",
                hint="Check the package name or run a SystemUpdate step first.",
                context=context,
            )
        if any(marker in stderr for marker in NETWORK_MARKERS):
            raise NetworkError(
                "Package manager could not reach its repositories.",
                hint="Check DNS and network access from the build environment.",
                context=context,
            )
        raise ExternalProcessError(
            f"{self.apt} exited with status {result.returncode}.",
            hint="Check package manager output for details.",
            context=context,
        )

    def _download(self, url: str, *, operation: str) -> bytes:
        context = {"backend": self.name, "operation": operation, "url": url}
        try:
            with urlopen(url, timeout=self.fetch_timeout) as response:  # noqa: S310
                return response.read()
        except HTTPError as exc:
            raise NetworkError(
                "HTTP request failed.",
                context={**context, "status": str(exc.code)},
            ) from exc
        except URLError as exc:
            raise NetworkError(
                "Could not connect to download host.",
                hint="Check DNS and network access from the build environment.",
                context={**context, "reason": str(exc.reason)},
            ) from exc
        except (OSError, HTTPException) as exc:
            raise NetworkError(
                "Download was interrupted.",
                context={**context, "error": str(exc)},
            ) from exc
        except ValueError as exc:
            raise NetworkError(
                "Download URL was rejected.",
                context={**context, "error": str(exc)},
            ) from exc

    def _prefix(self, env: BuildEnvironment) -> list[str]:
        prefix: list[str] = []
        if self.privilege == "sudo" and os.getuid() != 0:
            prefix.append("sudo")
        if not _is_host_root(env.root):
            prefix.extend(["chroot", str(env.root)])
        return prefix

    def _process_env(self, env: BuildEnvironment) -> dict[str, str]:
        return {**env.process_env(), **NONINTERACTIVE_ENV}

    def _command(self, env: BuildEnvironment, args: Sequence[str]) -> list[str]:
        prefix = self._prefix(env)
        required = [word for word in prefix if word in ("sudo", "chroot")]
        # Inside a chroot the program resolves against the image, not the host.
        if _is_host_root(env.root):
            required.append(args[0])
        self._ensure_local_prerequisites(required)
        return [*prefix, *args]

    def _run(
        self, cmd: list[str], env: BuildEnvironment, *, operation: str, **kwargs: Any
    ) -> subprocess.CompletedProcess[Any]:
        try:
            return subprocess.run(
                cmd,
                env=self._process_env(env),
                capture_output=True,
                check=False,
                **kwargs,
            )
        except OSError as exc:
            raise ExternalProcessError(
                f"Could not start `{cmd[0]}`.",
                context={
                    "backend": self.name,
                    "operation": operation,
                    "command": " ".join(cmd),
                    "error": str(exc),
                },
            ) from exc

    def _ensure_local_prerequisites(self, programs: Sequence[str]) -> None:
        if not sys.platform.startswith("linux"):
            raise ExternalProcessError(
                "Local Linux backend requires a Linux host.",
                hint="Use the in-process backend for dry runs on other systems.",
                context={"backend": self.name, "operation": "prepare"},
            )
        for program in programs:
            if shutil.which(program) is not None:
                continue
            hint = (
                "Install sudo or pass privilege='none' when already running as root."
                if program == "sudo"
                else "Run the build inside a Debian or Ubuntu based environment."
            )
            raise ExternalProcessError(
                f"Local Linux backend requires `{program}` in PATH.",
                hint=hint,
                context={"backend": self.name, "operation": "prepare"},
            )


def _is_host_root(root: Path) -> bool:
    return root.resolve() == Path("/")
