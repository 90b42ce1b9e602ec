"""Policy configuration and enforcement helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from devimage.errors import PolicyError, ValidationError
from devimage.models import NETWORK_KINDS, ArtifactFetch, PackageInstall, Step

NetworkMode = Literal["online", "offline"]


@dataclass(frozen=True, slots=True)
class Policy:
    network_mode: NetworkMode = "online"
    require_integrity: bool = False


def ensure_step_allowed(*, policy: Policy, step: Step, index: int) -> None:
    """Raise PolicyError if executing *step* would break *policy*."""
    if step.kind not in NETWORK_KINDS:
        return
    if isinstance(step, PackageInstall) and not step.names:
        return
    if policy.network_mode == "offline":
        raise PolicyError(
            "Network operations are disabled by policy.",
            hint="Switch policy.network_mode to 'online' or drop the network steps.",
            context={"operation": step.kind, "index": str(index)},
        )


def ensure_integrity_pinned(*, policy: Policy, step: ArtifactFetch, index: int) -> None:
    if policy.require_integrity and not step.sha256:
        raise ValidationError(
            "Artifact fetch is missing a sha256 digest.",
            hint="Pin the artifact with sha256= or relax policy.require_integrity.",
            context={"index": str(index), "kind": step.kind, "url": step.url},
        )


__all__ = [
    "NetworkMode",
    "Policy",
    "ensure_integrity_pinned",
    "ensure_step_allowed",
]
