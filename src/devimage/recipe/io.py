"""Recipe parser and serializer."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

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
from devimage.recipe.builder import Recipe

RECIPE_VERSION = 1


def serialize_recipe(recipe: Recipe) -> str:
    payload = {
        "version": RECIPE_VERSION,
        "base": recipe.base,
        "labels": dict(sorted(recipe.labels.items())),
        "steps": [step_to_dict(step) for step in recipe.steps],
    }
    return json.dumps(payload, indent=2, sort_keys=True) + "\n"


def parse_recipe(raw: str) -> Recipe:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError("Invalid recipe JSON.", hint=str(exc)) from exc

    if not isinstance(payload, dict):
        raise ValidationError("Invalid recipe payload type.")

    version = payload.get("version")
    if version != RECIPE_VERSION:
        raise ValidationError(
            "Unsupported recipe version.",
            hint=f"Expected version {RECIPE_VERSION}.",
            context={"version": str(version)},
        )
    base = _required_str(payload, "base")
    labels = payload.get("labels", {})
    if not isinstance(labels, dict) or not all(
        isinstance(key, str) and isinstance(value, str) for key, value in labels.items()
    ):
        raise ValidationError("Invalid recipe `labels` value.")
    steps_raw = payload.get("steps")
    if not isinstance(steps_raw, list):
        raise ValidationError("Invalid recipe `steps` value.")

    recipe = Recipe(base=base, labels=dict(labels))
    for index, item in enumerate(steps_raw):
        recipe.add(step_from_dict(item, index=index))
    return recipe


def read_recipe(path: str | Path) -> Recipe:
    recipe_path = Path(path)
    try:
        raw = recipe_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ValidationError(
            "Recipe file does not exist.",
            context={"path": str(recipe_path)},
        ) from exc
    return parse_recipe(raw)


def write_recipe(recipe: Recipe, path: str | Path) -> Path:
    recipe_path = Path(path)
    recipe_path.parent.mkdir(parents=True, exist_ok=True)
    recipe_path.write_text(serialize_recipe(recipe), encoding="utf-8")
    return recipe_path


def step_to_dict(step: Step) -> dict[str, Any]:
    data: dict[str, Any] = {"kind": step.kind}
    if isinstance(step, PackageInstall):
        data["names"] = list(step.names)
    elif isinstance(step, EnvironmentSet):
        data["key"] = step.key
        data["value"] = step.value
    elif isinstance(step, ToolchainInstall):
        data["installer_url"] = step.installer_url
        data["channel"] = step.channel
        if step.bin_dir is not None:
            data["bin_dir"] = step.bin_dir
    elif isinstance(step, ArtifactFetch):
        data["url"] = step.url
        data["destination"] = step.destination
        data["mode"] = step.mode
        if step.sha256 is not None:
            data["sha256"] = step.sha256
    elif isinstance(step, DefaultCommand):
        data["argv"] = list(step.argv)
    return data


def step_from_dict(item: Any, *, index: int = 0) -> Step:
    if not isinstance(item, dict):
        raise ValidationError("Invalid step entry in recipe.", context={"index": str(index)})
    kind = item.get("kind")
    step_type = STEP_TYPES.get(kind) if isinstance(kind, str) else None
    if step_type is None:
        raise ValidationError(
            "Unknown step kind in recipe.",
            hint=f"Use one of: {', '.join(sorted(STEP_TYPES))}.",
            context={"index": str(index), "kind": str(kind)},
        )
    if step_type is PackageInstall:
        return PackageInstall(names=tuple(_required_str_list(item, "names", index=index)))
    if step_type is EnvironmentSet:
        return EnvironmentSet(
            key=_required_str(item, "key", index=index),
            value=_string(item, "value", index=index, default=""),
        )
    if step_type is ToolchainInstall:
        return ToolchainInstall(
            installer_url=_required_str(item, "installer_url", index=index),
            channel=_string(item, "channel", index=index, default="stable"),
            bin_dir=_optional_str(item, "bin_dir", index=index),
        )
    if step_type is ArtifactFetch:
        return ArtifactFetch(
            url=_required_str(item, "url", index=index),
            destination=_required_str(item, "destination", index=index),
            mode=_string(item, "mode", index=index, default="0755"),
            sha256=_optional_str(item, "sha256", index=index),
        )
    if step_type is DefaultCommand:
        return DefaultCommand(argv=tuple(_required_str_list(item, "argv", index=index)))
    return step_type()


def _required_str(payload: dict[str, Any], key: str, *, index: int | None = None) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"Invalid recipe `{key}` value.", context=_where(index))
    return value


def _string(payload: dict[str, Any], key: str, *, index: int, default: str) -> str:
    value = payload.get(key, default)
    if not isinstance(value, str):
        raise ValidationError(f"Invalid recipe `{key}` value.", context=_where(index))
    return value


def _optional_str(payload: dict[str, Any], key: str, *, index: int) -> str | None:
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"Invalid recipe `{key}` value.", context=_where(index))
    return value


def _required_str_list(payload: dict[str, Any], key: str, *, index: int) -> list[str]:
    value = payload.get(key)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationError(f"Invalid recipe `{key}` value.", context=_where(index))
    return list(value)


def _where(index: int | None) -> dict[str, str]:
    return {} if index is None else {"index": str(index)}
