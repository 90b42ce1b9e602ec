"""Whole-sequence validation performed before any step executes."""

from __future__ import annotations

import re
from collections.abc import Sequence
from urllib.parse import urlsplit

from devimage.errors import ValidationError
from devimage.models import (
    STEP_TYPES,
    ArtifactFetch,
    DefaultCommand,
    EnvironmentSet,
    PackageInstall,
    Step,
    ToolchainInstall,
)
from devimage.permissions import parse_mode
from devimage.policy import Policy, ensure_integrity_pinned

SHA256_PATTERN = re.compile(r"[0-9a-f]{64}")
URL_SCHEMES = frozenset({"http", "https", "file"})


def validate_steps(steps: Sequence[Step], *, policy: Policy | None = None) -> None:
    """Validate structural constraints of a step sequence as a whole."""
    command_positions: list[int] = []
    for index, step in enumerate(steps):
        if type(step) not in STEP_TYPES.values():
            raise ValidationError(
                "Unknown provisioning step.",
                hint="Build sequences from the step types in devimage.models.",
                context={"index": str(index), "type": type(step).__name__},
            )
        if isinstance(step, DefaultCommand):
            command_positions.append(index)
        _validate_step(index, step, policy=policy)

    if len(command_positions) > 1:
        raise ValidationError(
            "A sequence may declare at most one default command.",
            hint="Remove the extra DefaultCommand steps.",
            context={"positions": ",".join(str(item) for item in command_positions)},
        )
    if command_positions and command_positions[0] != len(steps) - 1:
        raise ValidationError(
            "The default command must be the final step.",
            hint="Move the DefaultCommand step to the end of the sequence.",
            context={"index": str(command_positions[0]), "length": str(len(steps))},
        )


def _validate_step(index: int, step: Step, *, policy: Policy | None) -> None:
    context = {"index": str(index), "kind": step.kind}
    if isinstance(step, PackageInstall):
        if any(not name for name in step.names):
            raise ValidationError("Package names must be non-empty.", context=context)
    elif isinstance(step, EnvironmentSet):
        if not step.key or "=" in step.key:
            raise ValidationError(
                "Environment variable names must be non-empty and contain no '='.",
                context={**context, "key": step.key},
            )
    elif isinstance(step, ToolchainInstall):
        if not step.installer_url:
            raise ValidationError("Toolchain installs require an installer URL.", context=context)
        _ensure_fetchable_url(step.installer_url, context)
        if not step.channel:
            raise ValidationError("Toolchain installs require a channel.", context=context)
        if step.bin_dir is not None and not step.bin_dir.startswith("/"):
            raise ValidationError(
                "Toolchain bin_dir must be an absolute image path.",
                context={**context, "bin_dir": step.bin_dir},
            )
    elif isinstance(step, ArtifactFetch):
        if not step.url:
            raise ValidationError("Artifact fetches require a URL.", context=context)
        _ensure_fetchable_url(step.url, context)
        if not step.destination.startswith("/") or step.destination.endswith("/"):
            raise ValidationError(
                "Artifact destinations must be absolute file paths.",
                context={**context, "destination": step.destination},
            )
        parse_mode(step.mode)
        if step.sha256 is not None and not SHA256_PATTERN.fullmatch(step.sha256):
            raise ValidationError(
                "Artifact sha256 must be 64 lowercase hex characters.",
                context={**context, "sha256": step.sha256},
            )
        if policy is not None:
            ensure_integrity_pinned(policy=policy, step=step, index=index)
    elif isinstance(step, DefaultCommand):
        if not step.argv or not step.argv[0]:
            raise ValidationError("The default command requires a non-empty argv.", context=context)


def _ensure_fetchable_url(url: str, context: dict[str, str]) -> None:
    parts = urlsplit(url)
    if parts.scheme not in URL_SCHEMES or not (parts.netloc or parts.scheme == "file"):
        raise ValidationError(
            "URLs must be absolute http, https or file URLs.",
            hint="Spell out the scheme, e.g. https://example.com/tool.",
            context={**context, "url": url},
        )


__all__ = ["validate_steps"]
