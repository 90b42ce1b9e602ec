"""Fail-fast sequencer that executes provisioning steps in declaration order."""

from __future__ import annotations

import hashlib
import os
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from devimage.backends.base import ProvisioningBackend
from devimage.environment import BuildEnvironment
from devimage.errors import (
    DevImageError,
    ExternalTimeoutError,
    FilePermissionError,
    IntegrityError,
    StepAbortedError,
    ValidationError,
)
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
from devimage.observability import LogRecord, StructuredLogger
from devimage.permissions import apply_mode
from devimage.policy import Policy, ensure_step_allowed
from devimage.snapshot import EnvironmentSnapshot
from devimage.validate import validate_steps


class RunState(StrEnum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class StepFailure:
    index: int
    kind: str
    error: DevImageError


@dataclass(slots=True)
class RunResult:
    environment: BuildEnvironment
    state: RunState
    step_count: int
    failure: StepFailure | None = None
    logs: tuple[LogRecord, ...] = ()

    @property
    def ok(self) -> bool:
        return self.state is RunState.COMPLETED

    def snapshot(self) -> EnvironmentSnapshot:
        return self.environment.snapshot()

    def raise_for_failure(self) -> None:
        if self.failure is None:
            return
        raise StepAbortedError(
            index=self.failure.index,
            kind=self.failure.kind,
            cause=self.failure.error,
        ) from self.failure.error


@dataclass(slots=True)
class Sequencer:
    """Runs a validated step sequence against one exclusively owned environment."""

    backend: ProvisioningBackend
    policy: Policy = field(default_factory=Policy)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    timeout: float | None = None
    clock: Callable[[], float] = time.monotonic
    state: RunState = field(init=False, default=RunState.NOT_STARTED)
    current_index: int | None = field(init=False, default=None)

    def validate(self, steps: Sequence[Step]) -> None:
        validate_steps(steps, policy=self.policy)

    def run(
        self,
        steps: Sequence[Step],
        *,
        root: str | Path | None = None,
        environment: BuildEnvironment | None = None,
    ) -> RunResult:
        steps = tuple(steps)
        self.validate(steps)
        env = self._fresh_environment(root=root, environment=environment)

        first_record = len(self.logger.records)
        self.state = RunState.RUNNING
        self.current_index = None
        started = self.clock()
        self.logger.log(
            operation="run_start",
            step=None,
            kind=None,
            message="Starting provisioning run.",
            extra={"steps": len(steps), "backend": self.backend.name, "root": str(env.root)},
        )

        for index, step in enumerate(steps):
            self.current_index = index
            if self.timeout is not None and self.clock() - started >= self.timeout:
                error = ExternalTimeoutError(
                    "Provisioning run exceeded its time budget.",
                    hint="Raise the timeout or split the sequence.",
                    context={"timeout": str(self.timeout), "index": str(index)},
                )
                return self._abort(env, steps, index, step, error, first_record)

            self.logger.log(
                operation="step_start",
                step=index,
                kind=step.kind,
                message="Starting step.",
            )
            try:
                self._apply(step, env, index=index)
            except DevImageError as exc:
                return self._abort(env, steps, index, step, exc, first_record)
            except Exception:
                self.state = RunState.ABORTED
                env.freeze()
                raise
            self.logger.log(
                operation="step_complete",
                step=index,
                kind=step.kind,
                message="Completed step.",
            )

        self.state = RunState.COMPLETED
        self.current_index = None
        env.freeze()
        self.logger.log(
            operation="run_complete",
            step=None,
            kind=None,
            message="Provisioning run completed.",
            extra={"digest": env.snapshot().digest()},
        )
        return RunResult(
            environment=env,
            state=self.state,
            step_count=len(steps),
            logs=tuple(self.logger.records[first_record:]),
        )

    def _fresh_environment(
        self, *, root: str | Path | None, environment: BuildEnvironment | None
    ) -> BuildEnvironment:
        if (root is None) == (environment is None):
            raise ValidationError("run() requires exactly one of root= or environment=.")
        if environment is None:
            return BuildEnvironment(root=Path(root))  # type: ignore[arg-type]
        if environment.frozen:
            raise ValidationError(
                "run() requires an environment that has not been frozen.",
                hint="Create a new BuildEnvironment for each run.",
                context={"root": str(environment.root)},
            )
        return environment

    def _abort(
        self,
        env: BuildEnvironment,
        steps: tuple[Step, ...],
        index: int,
        step: Step,
        error: DevImageError,
        first_record: int,
    ) -> RunResult:
        self.state = RunState.ABORTED
        env.freeze()
        self.logger.log(
            operation="step_failed",
            step=index,
            kind=step.kind,
            message=error.message,
            level="error",
            extra=error.to_dict(),
        )
        self.logger.log(
            operation="run_aborted",
            step=index,
            kind=step.kind,
            message="Provisioning run aborted.",
            level="error",
            extra={"skipped": len(steps) - index - 1},
        )
        return RunResult(
            environment=env,
            state=self.state,
            step_count=len(steps),
            failure=StepFailure(index=index, kind=step.kind, error=error),
            logs=tuple(self.logger.records[first_record:]),
        )

    def _apply(self, step: Step, env: BuildEnvironment, *, index: int) -> None:
        ensure_step_allowed(policy=self.policy, step=step, index=index)

        if isinstance(step, SystemUpdate):
            self.backend.update_index(env)
        elif isinstance(step, SystemUpgrade):
            self.backend.upgrade_packages(env)
        elif isinstance(step, PackageInstall):
            if not step.names:
                self.logger.log(
                    operation="package_install_noop",
                    step=index,
                    kind=step.kind,
                    message="No packages requested.",
                )
                return
            self.backend.install_packages(step.names, env)
            env.record_packages(step.names)
        elif isinstance(step, EnvironmentSet):
            env.set_variable(step.key, step.value)
        elif isinstance(step, ToolchainInstall):
            self.backend.run_installer(step.installer_url, step.channel, env)
            if step.bin_dir is not None:
                env.prepend_path(step.bin_dir)
        elif isinstance(step, ArtifactFetch):
            self._fetch(step, env)
        elif isinstance(step, CacheClean):
            self.backend.clean_cache(env)
        elif isinstance(step, DefaultCommand):
            env.set_default_command(step.argv)

    def _fetch(self, step: ArtifactFetch, env: BuildEnvironment) -> None:
        host_path = self.backend.fetch_file(step.url, step.destination, env)
        if step.sha256:
            actual = hashlib.sha256(host_path.read_bytes()).hexdigest()
            if actual != step.sha256:
                raise IntegrityError(
                    "Fetched artifact hash mismatch.",
                    hint="Update the expected hash or source URL to a trusted immutable artifact.",
                    context={
                        "url": step.url,
                        "destination": step.destination,
                        "expected": step.sha256,
                        "actual": actual,
                    },
                )
        try:
            mode = apply_mode(host_path.stat().st_mode, step.mode)
            os.chmod(host_path, mode)
        except OSError as exc:
            raise FilePermissionError(
                "Could not set artifact mode.",
                context={
                    "destination": step.destination,
                    "mode": step.mode,
                    "error": str(exc),
                },
            ) from exc
        env.record_file(step.destination, mode)


__all__ = ["RunResult", "RunState", "Sequencer", "StepFailure"]
