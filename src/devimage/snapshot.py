"""Frozen environment snapshots and run reports."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from devimage.sequencer import RunResult


@dataclass(frozen=True, slots=True)
class EnvironmentSnapshot:
    variables: Mapping[str, str]
    path_order: tuple[str, ...]
    packages: tuple[str, ...]
    files: Mapping[str, int]
    default_command: tuple[str, ...] | None

    @classmethod
    def capture(
        cls,
        *,
        variables: Mapping[str, str],
        path_order: Sequence[str],
        packages: Iterable[str],
        files: Mapping[str, int],
        default_command: Sequence[str] | None,
    ) -> EnvironmentSnapshot:
        return cls(
            variables=MappingProxyType(dict(sorted(variables.items()))),
            path_order=tuple(path_order),
            packages=tuple(sorted(packages)),
            files=MappingProxyType(dict(sorted(files.items()))),
            default_command=None if default_command is None else tuple(default_command),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "variables": dict(self.variables),
            "path_order": list(self.path_order),
            "packages": list(self.packages),
            "files": {path: f"{mode:04o}" for path, mode in self.files.items()},
            "default_command": None
            if self.default_command is None
            else list(self.default_command),
        }

    def digest(self) -> str:
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def write_report(result: RunResult, path: str | Path) -> Path:
    """Write a JSON report describing a finished run."""
    snapshot = result.snapshot()
    payload: dict[str, Any] = {
        "state": result.state.value,
        "steps": result.step_count,
        "failure": None
        if result.failure is None
        else {
            "index": result.failure.index,
            "kind": result.failure.kind,
            "error": result.failure.error.to_dict(),
        },
        "snapshot": snapshot.to_dict(),
        "digest": snapshot.digest(),
        "logs": list(result.logs),
    }
    report_path = Path(path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return report_path


__all__ = ["EnvironmentSnapshot", "write_report"]
