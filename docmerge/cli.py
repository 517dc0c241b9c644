"""CLI entrypoints for docmerge commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError, load_config
from .errors import DocMergeError
from .logging import configure_logging
from .orchestrator import Orchestrator, PipelineOutcome
from .planner import ROOT_INDEX


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity, including captured build output.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Project root or .docmerge.yml path (defaults to current directory).",
    )


def _add_build_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--policy",
        choices=["required", "best-effort"],
        help="Override how failed source builds are handled.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Per-source build timeout in seconds.",
    )
    parser.add_argument(
        "--site-dir",
        type=Path,
        help="Directory the merged site is assembled into.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docmerge",
        description="Build documentation from several toolchains and publish it as one site.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run",
        help="Build every source, merge the outputs and publish the site.",
    )
    _add_verbose_option(run_parser, suppress_default=True)
    _add_path_argument(run_parser)
    _add_build_options(run_parser)
    run_parser.add_argument(
        "--branch",
        help="Override the branch the site is published to.",
    )

    assemble_parser = subparsers.add_parser(
        "assemble",
        help="Build and merge the site without publishing it.",
    )
    _add_verbose_option(assemble_parser, suppress_default=True)
    _add_path_argument(assemble_parser)
    _add_build_options(assemble_parser)

    check_parser = subparsers.add_parser(
        "check",
        help="Validate configuration and the mount layout without building.",
    )
    _add_verbose_option(check_parser, suppress_default=True)
    _add_path_argument(check_parser)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for docmerge commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    if args.command in {"run", "assemble"}:
        orchestrator = Orchestrator()
        try:
            outcome = orchestrator.run(
                args.path,
                policy=args.policy,
                timeout=args.timeout,
                site_dir=args.site_dir.resolve() if args.site_dir else None,
                branch=getattr(args, "branch", None),
                publish=args.command == "run",
            )
        except ConfigError as exc:
            parser.exit(1, f"docmerge: configuration error: {exc}\n")
        _report(parser, outcome)
    elif args.command == "check":
        try:
            config = load_config(Path(args.path))
            plan = Orchestrator().check(config)
        except ConfigError as exc:
            parser.exit(1, f"docmerge: configuration error: {exc}\n")
        except DocMergeError as exc:
            parser.exit(1, f"docmerge: {exc}\n")
        print(f"/{ROOT_INDEX} -> {plan.redirect_url}")
        for mount in plan.mounts:
            marker = " (primary)" if mount is plan.primary else ""
            print(f"/{mount.destination} <- {mount.source.name}{marker}")
    elif args.command == "serve":
        from .service import run_service

        run_service(host=args.host, port=args.port)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _report(parser: argparse.ArgumentParser, outcome: PipelineOutcome) -> None:
    if not outcome.ok:
        parser.exit(1, f"docmerge: {outcome.describe()}\nRun with --verbose for build output.\n")
    if outcome.plan is not None and outcome.plan.skipped:
        skipped = ", ".join(result.name for result in outcome.plan.skipped)
        print(f"Skipped failed sources: {skipped}")
    print(outcome.describe())


if __name__ == "__main__":
    main(sys.argv[1:])
