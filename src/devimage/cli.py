"""Command line interface for devimage recipes.

Usage:
    devimage validate recipe.json
    devimage dockerfile recipe.json -o Dockerfile
    devimage run recipe.json --root / --report build/report.json --log build/run.jsonl
    devimage devbox -o recipe.json
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from devimage.backends import LocalLinuxBackend
from devimage.compiler import emit_dockerfile, render_dockerfile
from devimage.errors import DevImageError, ValidationError
from devimage.observability import write_json_lines
from devimage.policy import Policy
from devimage.profiles.devbox import devbox_recipe
from devimage.recipe import read_recipe, serialize_recipe, write_recipe
from devimage.sequencer import Sequencer
from devimage.snapshot import write_report

EXIT_ABORTED = 1
EXIT_INVALID = 2


def cmd_validate(args: argparse.Namespace) -> int:
    recipe = read_recipe(args.recipe)
    recipe.validate()
    print(f"{args.recipe}: {len(recipe.steps)} steps OK")
    return 0


def cmd_dockerfile(args: argparse.Namespace) -> int:
    recipe = read_recipe(args.recipe)
    if args.output is None:
        sys.stdout.write(render_dockerfile(recipe))
    else:
        path = emit_dockerfile(recipe, args.output)
        print(f"Wrote {path}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    recipe = read_recipe(args.recipe)
    policy = Policy(
        network_mode="offline" if args.offline else "online",
        require_integrity=args.require_integrity,
    )
    backend = LocalLinuxBackend(privilege="none" if args.no_sudo else "sudo")
    sequencer = Sequencer(backend=backend, policy=policy, timeout=args.timeout)
    result = sequencer.run(recipe.steps, root=args.root)
    if args.report is not None:
        write_report(result, args.report)
    if args.log is not None:
        write_json_lines(result.logs, args.log)
    if result.failure is not None:
        failure = result.failure
        print(
            f"Aborted at step {failure.index} ({failure.kind}) [{failure.error.code}]",
            file=sys.stderr,
        )
        print(str(failure.error), file=sys.stderr)
        return EXIT_ABORTED
    print(f"Completed {result.step_count} steps; digest {result.snapshot().digest()}")
    return 0


def cmd_devbox(args: argparse.Namespace) -> int:
    recipe = devbox_recipe(base=args.base)
    if args.output is None:
        sys.stdout.write(serialize_recipe(recipe))
    else:
        path = write_recipe(recipe, args.output)
        print(f"Wrote {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="devimage", description="Development image provisioner")
    sub = parser.add_subparsers(dest="command", required=True)

    validate_p = sub.add_parser("validate", help="Validate a recipe file")
    validate_p.add_argument("recipe", help="Path to a recipe JSON file")
    validate_p.set_defaults(handler=cmd_validate)

    dockerfile_p = sub.add_parser("dockerfile", help="Render a recipe as a Dockerfile")
    dockerfile_p.add_argument("recipe", help="Path to a recipe JSON file")
    dockerfile_p.add_argument("-o", "--output", default=None, help="Write to this path")
    dockerfile_p.set_defaults(handler=cmd_dockerfile)

    run_p = sub.add_parser("run", help="Provision a root filesystem from a recipe")
    run_p.add_argument("recipe", help="Path to a recipe JSON file")
    run_p.add_argument("--root", required=True, help="Image root directory ('/' inside a build)")
    run_p.add_argument("--report", default=None, help="Write a JSON run report here")
    run_p.add_argument("--log", default=None, help="Write structured log records as JSON lines")
    run_p.add_argument("--offline", action="store_true", help="Refuse network operations")
    run_p.add_argument(
        "--require-integrity",
        action="store_true",
        help="Require sha256 pins on every artifact fetch",
    )
    run_p.add_argument("--timeout", type=float, default=None, help="Overall budget in seconds")
    run_p.add_argument("--no-sudo", action="store_true", help="Do not escalate with sudo")
    run_p.set_defaults(handler=cmd_run)

    devbox_p = sub.add_parser("devbox", help="Write the reference devbox recipe")
    devbox_p.add_argument("--base", default="ubuntu", help="Base image reference")
    devbox_p.add_argument("-o", "--output", default=None, help="Write to this path")
    devbox_p.set_defaults(handler=cmd_devbox)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.handler(args)
    except ValidationError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_INVALID
    except DevImageError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_ABORTED


if __name__ == "__main__":
    sys.exit(main())
