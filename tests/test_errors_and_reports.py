import json
from pathlib import Path

import pytest

from devimage.backends import InProcessBackend
from devimage.errors import (
    DevImageError,
    EnvironmentFrozenError,
    ErrorCode,
    ExternalProcessError,
    ExternalTimeoutError,
    FilePermissionError,
    IntegrityError,
    NetworkError,
    PackageResolutionError,
    PolicyError,
    StepAbortedError,
    ValidationError,
)
from devimage.models import DefaultCommand, PackageInstall, SystemUpdate
from devimage.observability import StructuredLogger
from devimage.sequencer import Sequencer
from devimage.snapshot import write_report


@pytest.mark.parametrize(
    ("error_type", "code"),
    [
        (ValidationError, ErrorCode.VALIDATION),
        (PackageResolutionError, ErrorCode.PACKAGE_RESOLUTION),
        (NetworkError, ErrorCode.NETWORK),
        (FilePermissionError, ErrorCode.PERMISSION),
        (ExternalProcessError, ErrorCode.EXTERNAL_PROCESS),
        (ExternalTimeoutError, ErrorCode.TIMEOUT),
        (IntegrityError, ErrorCode.INTEGRITY),
        (PolicyError, ErrorCode.POLICY),
        (EnvironmentFrozenError, ErrorCode.FROZEN),
    ],
)
def test_error_types_carry_stable_codes(error_type: type[DevImageError], code: ErrorCode) -> None:
    error = error_type("boom")

    assert isinstance(error, DevImageError)
    assert error.code == code.value


def test_error_string_includes_hint_and_non_empty_context() -> None:
    error = NetworkError(
        "HTTP request failed.",
        hint="Check the URL.",
        context={"url": "https://example.invalid/x", "status": "404", "reason": ""},
    )

    assert str(error) == (
        "HTTP request failed.\n"
        "Hint: Check the URL.\n"
        "  url: https://example.invalid/x\n"
        "  status: 404"
    )
    assert error.to_dict() == {
        "code": "E_NETWORK",
        "message": "HTTP request failed.",
        "context": {"url": "https://example.invalid/x", "status": "404", "reason": ""},
        "hint": "Check the URL.",
    }


def test_to_dict_omits_missing_hint() -> None:
    assert "hint" not in ValidationError("bad").to_dict()


def test_step_aborted_error_wraps_cause() -> None:
    cause = PackageResolutionError("Unable to locate package.", hint="Refresh the index.")

    error = StepAbortedError(index=3, kind="package_install", cause=cause)

    assert error.code == "E_ABORTED"
    assert error.cause is cause
    assert error.message == (
        "Provisioning aborted at step 3 (package_install): Unable to locate package."
    )
    assert error.hint == "Refresh the index."
    assert error.context["cause"] == "E_PACKAGE_RESOLUTION"


def test_logger_filters_records_by_step_and_writes_json_lines(tmp_path: Path) -> None:
    logger = StructuredLogger()
    logger.log(operation="run_start", step=None, kind=None, message="start")
    logger.log(operation="step_start", step=0, kind="system_update", message="go")
    logger.log(
        operation="step_failed",
        step=0,
        kind="system_update",
        message="failed",
        level="error",
        extra={"code": "E_NETWORK"},
    )

    assert [record["operation"] for record in logger.records_for_step(0)] == [
        "step_start",
        "step_failed",
    ]

    path = logger.to_json_lines(tmp_path / "logs" / "run.jsonl")
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert json.loads(lines[2]) == {
        "level": "error",
        "operation": "step_failed",
        "step": 0,
        "kind": "system_update",
        "message": "failed",
        "extra": {"code": "E_NETWORK"},
    }

    tail = logger.to_json_lines(tmp_path / "tail.jsonl", since=2)
    assert tail.read_text(encoding="utf-8").count("\n") == 1


def test_write_report_is_stable_across_identical_runs(tmp_path: Path) -> None:
    steps = [SystemUpdate(), PackageInstall(names=("git",)), DefaultCommand(argv=("/bin/sh",))]
    paths = []
    for name in ("a", "b"):
        result = Sequencer(backend=InProcessBackend(index={"git"})).run(
            steps, root=tmp_path / name / "rootfs"
        )
        report = write_report(result, tmp_path / name / "report.json")
        paths.append(report)

    first, second = (json.loads(path.read_text(encoding="utf-8")) for path in paths)
    assert first["digest"] == second["digest"]
    assert first["snapshot"] == second["snapshot"]
    assert first["snapshot"]["packages"] == ["git"]
    assert first["steps"] == 3
    assert paths[0].read_text(encoding="utf-8").endswith("}\n")
