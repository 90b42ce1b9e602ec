"""Typed provisioning error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across API surfaces."""

    VALIDATION = "E_VALIDATION"
    PACKAGE_RESOLUTION = "E_PACKAGE_RESOLUTION"
    NETWORK = "E_NETWORK"
    PERMISSION = "E_PERMISSION"
    EXTERNAL_PROCESS = "E_EXTERNAL_PROCESS"
    TIMEOUT = "E_TIMEOUT"
    INTEGRITY = "E_INTEGRITY"
    POLICY = "E_POLICY"
    FROZEN = "E_FROZEN"
    ABORTED = "E_ABORTED"


class DevImageError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": self.message,
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(DevImageError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class PackageResolutionError(DevImageError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.PACKAGE_RESOLUTION, hint=hint, context=context
        )


class NetworkError(DevImageError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.NETWORK, hint=hint, context=context)


class FilePermissionError(DevImageError):
    """Writing a destination path or changing its mode bits failed."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.PERMISSION, hint=hint, context=context)


class ExternalProcessError(DevImageError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.EXTERNAL_PROCESS, hint=hint, context=context
        )


class ExternalTimeoutError(DevImageError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.TIMEOUT, hint=hint, context=context)


class IntegrityError(DevImageError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INTEGRITY, hint=hint, context=context)


class PolicyError(DevImageError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.POLICY, hint=hint, context=context)


class EnvironmentFrozenError(DevImageError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.FROZEN, hint=hint, context=context)


class StepAbortedError(DevImageError):
    """Raised by ``RunResult.raise_for_failure()``; chained to the step's cause."""

    index: int
    kind: str
    cause: DevImageError

    def __init__(self, *, index: int, kind: str, cause: DevImageError) -> None:
        super().__init__(
            f"Provisioning aborted at step {index} ({kind}): {cause.message}",
            code=ErrorCode.ABORTED,
            hint=cause.hint,
            context={"index": str(index), "kind": kind, "cause": cause.code},
        )
        self.index = index
        self.kind = kind
        self.cause = cause


__all__ = [
    "DevImageError",
    "EnvironmentFrozenError",
    "ErrorCode",
    "ExternalProcessError",
    "ExternalTimeoutError",
    "FilePermissionError",
    "IntegrityError",
    "NetworkError",
    "PackageResolutionError",
    "PolicyError",
    "StepAbortedError",
    "ValidationError",
]
