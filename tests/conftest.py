"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from devimage.backends.inprocess import InProcessBackend
from devimage.environment import BuildEnvironment

TOOL_URL = "https://example.invalid/releases/tool-linux-x64-static"
TOOL_PAYLOAD = b"#!/bin/sh\necho tool\n"


@pytest.fixture
def inprocess_backend() -> InProcessBackend:
    """Provide an in-process backend with a small package index and one artifact."""
    return InProcessBackend(
        index={"build-essential", "ca-certificates", "curl", "git", "vim", "wget"},
        payloads={TOOL_URL: TOOL_PAYLOAD},
    )


@pytest.fixture
def environment(tmp_path: Path) -> BuildEnvironment:
    return BuildEnvironment(root=tmp_path / "rootfs")
