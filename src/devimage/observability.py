"""In-memory structured run log.

Records are plain dicts so they can be embedded in run reports as-is.  Each
record names the sequencer operation and, where one applies, the step index
and step kind it belongs to.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, TypedDict

LogLevel = Literal["info", "error"]


class LogRecord(TypedDict, total=False):
    level: LogLevel
    operation: str
    step: int | None
    kind: str | None
    message: str
    extra: dict[str, Any]


@dataclass(slots=True)
class StructuredLogger:
    records: list[LogRecord] = field(default_factory=list)

    def log(
        self,
        *,
        operation: str,
        step: int | None,
        kind: str | None,
        message: str,
        level: LogLevel = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        record: LogRecord = {
            "level": level,
            "operation": operation,
            "step": step,
            "kind": kind,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        self.records.append(record)

    def records_for_step(self, index: int) -> list[LogRecord]:
        return [record for record in self.records if record.get("step") == index]

    def to_json_lines(self, path: str | Path, *, since: int = 0) -> Path:
        """Write records from position *since* onward, one JSON object per line."""
        return write_json_lines(self.records[since:], path)


def write_json_lines(records: Iterable[LogRecord], path: str | Path) -> Path:
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    body = "".join(json.dumps(record, sort_keys=True) + "\n" for record in records)
    output_path.write_text(body, encoding="utf-8")
    return output_path


__all__ = ["LogLevel", "LogRecord", "StructuredLogger", "write_json_lines"]
