"""Compiler interfaces for emitting container build files."""

from .emit_dockerfile import (
    DockerfileConfig,
    DockerfileEmitter,
    emit_dockerfile,
    render_dockerfile,
)

__all__ = [
    "DockerfileConfig",
    "DockerfileEmitter",
    "emit_dockerfile",
    "render_dockerfile",
]
