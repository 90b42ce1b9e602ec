"""Dockerfile emission for the external image snapshot builder.

Renders a validated step sequence as a deterministic Dockerfile:
- consecutive EnvironmentSet steps share one ``ENV`` instruction, unless a
  value refers to a key set earlier in the same group
- package steps become non-interactive ``apt-get`` invocations
- toolchain installers are piped from ``curl`` into ``sh``
- fetched artifacts are written with ``wget`` and then ``chmod``-ed
- the default command uses exec form
"""

from __future__ import annotations

import json
import re
import shlex
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

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
from devimage.recipe.builder import Recipe
from devimage.validate import validate_steps

SAFE_ENV_VALUE = re.compile(r"^[A-Za-z0-9_./:$\-{}+,@%=]*$")


@dataclass(frozen=True, slots=True)
class DockerfileConfig:
    base: str = "ubuntu"
    labels: Mapping[str, str] = field(default_factory=dict)
    apt: str = "apt-get"


class DockerfileEmitter:
    def render(self, steps: Sequence[Step], config: DockerfileConfig) -> str:
        validate_steps(steps)
        blocks: list[str] = [f"FROM {config.base}"]
        if config.labels:
            blocks.append(
                "\n".join(
                    f"LABEL {key}={_quote_env_value(value)}"
                    for key, value in sorted(config.labels.items())
                )
            )

        pending_env: list[EnvironmentSet] = []
        for step in steps:
            if isinstance(step, EnvironmentSet):
                if _references_any(step.value, pending_env):
                    blocks.append(self._render_env(pending_env))
                    pending_env = []
                pending_env.append(step)
                continue
            if pending_env:
                blocks.append(self._render_env(pending_env))
                pending_env = []
            blocks.append(self._render_step(step, config))
        if pending_env:
            blocks.append(self._render_env(pending_env))

        return "\n\n".join(block for block in blocks if block) + "\n"

    def _render_env(self, steps: list[EnvironmentSet]) -> str:
        pairs = [f"{step.key}={_quote_env_value(step.value)}" for step in steps]
        return "ENV " + " \\\n    ".join(pairs)

    def _render_step(self, step: Step, config: DockerfileConfig) -> str:
        apt = config.apt
        if isinstance(step, SystemUpdate):
            return f"RUN {apt} update -yq"
        if isinstance(step, SystemUpgrade):
            return f"RUN {apt} upgrade -yq"
        if isinstance(step, PackageInstall):
            if not step.names:
                return ""
            lines = [f"RUN {apt} install -yq"]
            lines.extend(f"\t\t{shlex.quote(name)}" for name in step.names)
            return " \\\n".join(lines)
        if isinstance(step, ToolchainInstall):
            rendered = (
                f"RUN curl {shlex.quote(step.installer_url)} -sSf"
                f" | sh -s -- -y --default-toolchain {shlex.quote(step.channel)}"
            )
            if step.bin_dir is not None:
                rendered += f"\nENV PATH={_quote_env_value(step.bin_dir + ':$PATH')}"
            return rendered
        if isinstance(step, ArtifactFetch):
            destination = shlex.quote(step.destination)
            lines = [f"RUN wget {shlex.quote(step.url)} -O {destination}"]
            if step.sha256:
                lines.append(
                    f" && echo {shlex.quote(f'{step.sha256}  {step.destination}')}"
                    " | sha256sum -c -"
                )
            lines.append(f" && chmod {shlex.quote(step.mode)} {destination}")
            return " \\\n".join(lines)
        if isinstance(step, CacheClean):
            return f"RUN {apt} clean \\\n && {apt} update -yq"
        if isinstance(step, DefaultCommand):
            return f"CMD {json.dumps(list(step.argv))}"
        return ""


def render_dockerfile(
    steps: Recipe | Sequence[Step],
    *,
    base: str | None = None,
    labels: Mapping[str, str] | None = None,
) -> str:
    if isinstance(steps, Recipe):
        config = DockerfileConfig(
            base=base or steps.base,
            labels=dict(labels if labels is not None else steps.labels),
        )
        return DockerfileEmitter().render(steps.steps, config)
    config = DockerfileConfig(base=base or "ubuntu", labels=dict(labels or {}))
    return DockerfileEmitter().render(tuple(steps), config)


def emit_dockerfile(recipe: Recipe, destination: str | Path) -> Path:
    path = Path(destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_dockerfile(recipe), encoding="utf-8")
    return path


def _references_any(value: str, steps: list[EnvironmentSet]) -> bool:
    for step in steps:
        if f"${step.key}" in value or f"${{{step.key}}}" in value:
            return True
    return False


def _quote_env_value(value: str) -> str:
    if value and SAFE_ENV_VALUE.fullmatch(value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'
