"""Command-line interface for dependency inference."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from enum import IntEnum
from pathlib import Path
from typing import Optional

from depinfer.config import ConfigError, DEFAULT_CONFIG_FILE, InferConfig, load_config
from depinfer.errors import MissingModuleRootError
from depinfer.pipeline import Analysis, RunReport, analyze, run
from depinfer.resolver import EDGE_KINDS


class ExitCode(IntEnum):
    """Process exit codes."""

    SUCCESS = 0
    CONFIG_ERROR = 1
    FILE_SYSTEM_ERROR = 2
    PARTIAL_SUCCESS = 3
    ANALYSIS_ERROR = 4
    DRIFT = 5


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _get_config(args: argparse.Namespace) -> InferConfig:
    """Load config from --config or <root>/depinfer.yaml, then apply CLI overrides."""
    if args.config:
        config = load_config(args.config)
    else:
        config = load_config(Path(args.root) / DEFAULT_CONFIG_FILE)
    return config.with_extra_prefixes(getattr(args, "exclude_prefix", None) or [])


def _print_error(error: Exception) -> None:
    to_json = getattr(error, "to_json", None)
    payload = to_json() if to_json else {"error": type(error).__name__, "message": str(error)}
    print(json.dumps(payload), file=sys.stderr)


def _report_exit_code(report: RunReport) -> int:
    if report.file_errors:
        return ExitCode.ANALYSIS_ERROR
    if report.failed:
        return ExitCode.PARTIAL_SUCCESS
    return ExitCode.SUCCESS


def _print_report(report: RunReport, dry_run: bool) -> None:
    verb = "Would update" if dry_run else "Updated"
    for module_id in report.updated:
        print(f"  {verb} {module_id}")
    for error in report.file_errors:
        _print_error(error)
    for error in report.failed.values():
        _print_error(error)

    if report.aborted:
        print(f"Aborted: {len(report.file_errors)} source file(s) failed to parse, no manifests written")
        return
    print(
        f"{verb} {len(report.updated)} module(s), "
        f"{len(report.unchanged)} unchanged, {len(report.failed)} failed"
    )
    if report.skipped_files:
        print(f"Skipped {len(report.skipped_files)} oversized file(s)")


def cmd_generate(args: argparse.Namespace) -> int:
    """Rewrite the generated block of every module manifest."""
    try:
        config = _get_config(args)
    except ConfigError as e:
        _print_error(e)
        return ExitCode.CONFIG_ERROR

    print(f"Inferring dependencies in {Path(args.root).resolve()}...")
    try:
        report = run(
            args.root,
            config,
            dry_run=args.dry_run,
            keep_going=args.keep_going,
            workers=args.workers,
        )
    except MissingModuleRootError as e:
        _print_error(e)
        return ExitCode.FILE_SYSTEM_ERROR

    _print_report(report, dry_run=args.dry_run)
    return _report_exit_code(report)


def cmd_check(args: argparse.Namespace) -> int:
    """Exit non-zero if any generated block is out of date."""
    try:
        config = _get_config(args)
    except ConfigError as e:
        _print_error(e)
        return ExitCode.CONFIG_ERROR

    try:
        report = run(args.root, config, dry_run=True, workers=args.workers)
    except MissingModuleRootError as e:
        _print_error(e)
        return ExitCode.FILE_SYSTEM_ERROR

    code = _report_exit_code(report)
    if code != ExitCode.SUCCESS:
        _print_report(report, dry_run=True)
        return code

    if report.updated:
        for module_id in report.updated:
            print(f"  Out of date: {module_id}")
        print(f"{len(report.updated)} manifest(s) out of date. Run 'depinfer generate'.")
        return ExitCode.DRIFT

    print(f"All {len(report.unchanged)} manifest(s) up to date")
    return ExitCode.SUCCESS


def _analysis_or_exit(args: argparse.Namespace) -> tuple[Optional[Analysis], int]:
    try:
        config = _get_config(args)
    except ConfigError as e:
        _print_error(e)
        return None, ExitCode.CONFIG_ERROR

    try:
        analysis = analyze(args.root, config, workers=args.workers)
    except MissingModuleRootError as e:
        _print_error(e)
        return None, ExitCode.FILE_SYSTEM_ERROR

    for error in analysis.file_errors:
        _print_error(error)
    code = ExitCode.ANALYSIS_ERROR if analysis.file_errors else ExitCode.SUCCESS
    return analysis, code


def build_graph_index(analysis: Analysis) -> dict:
    """Build the JSON structure printed by ``graph``."""
    modules: dict[str, dict] = {}
    for module_id, deps in analysis.resolved.items():
        module = analysis.modules[module_id]
        modules[module_id] = {
            "path": module.relative_path,
            "exported_packages": sorted(module.exported_packages),
            **{kind: deps.providers(kind) for kind in EDGE_KINDS},
        }

    return {
        "schema_version": "1.0",
        "module_count": len(modules),
        "ambiguous_packages": {
            package: list(analysis.index.owners(package)) for package in analysis.index.ambiguous()
        },
        "modules": modules,
    }


def cmd_graph(args: argparse.Namespace) -> int:
    """Print the resolved dependency graph as JSON."""
    analysis, code = _analysis_or_exit(args)
    if analysis is None:
        return code
    print(json.dumps(build_graph_index(analysis), indent=2))
    return code


def cmd_explain(args: argparse.Namespace) -> int:
    """Show which packages make one module depend on another."""
    analysis, code = _analysis_or_exit(args)
    if analysis is None:
        return code

    deps = analysis.resolved.get(args.consumer)
    if deps is None:
        print(f"Unknown module: {args.consumer}")
        return ExitCode.CONFIG_ERROR

    found = False
    for kind in EDGE_KINDS:
        for edge in deps.edges(kind):
            if edge.provider == args.provider:
                found = True
                print(f"{kind}: {', '.join(edge.packages)}")

    if not found:
        print(f"{args.consumer} does not depend on {args.provider}")
    return code


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add arguments shared by all subcommands."""
    parser.add_argument(
        "--config",
        "-c",
        help=f"Path to config file (default: <root>/{DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "--workers",
        "-j",
        type=int,
        help="Number of extraction threads (default: physical CPU count)",
    )
    parser.add_argument(
        "--exclude-prefix",
        action="append",
        metavar="PREFIX",
        help="Additional package prefix to treat as always available (repeatable)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="depinfer",
        description="Infer Gradle module dependencies from Kotlin/Java sources",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # generate command
    generate_parser = subparsers.add_parser(
        "generate",
        help="Rewrite generated dependencies blocks",
    )
    generate_parser.add_argument("root", nargs="?", default=".", help="Tree root (default: .)")
    _add_common_args(generate_parser)
    generate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report which manifests would change without writing",
    )
    generate_parser.add_argument(
        "--keep-going",
        action="store_true",
        help="Write manifests even if some source files fail to parse",
    )

    # check command
    check_parser = subparsers.add_parser(
        "check",
        help="Fail if any generated block is out of date",
    )
    check_parser.add_argument("root", nargs="?", default=".", help="Tree root (default: .)")
    _add_common_args(check_parser)

    # graph command
    graph_parser = subparsers.add_parser(
        "graph",
        help="Print the resolved dependency graph as JSON",
    )
    graph_parser.add_argument("root", nargs="?", default=".", help="Tree root (default: .)")
    _add_common_args(graph_parser)

    # explain command
    explain_parser = subparsers.add_parser(
        "explain",
        help="Show which packages cause a dependency between two modules",
    )
    explain_parser.add_argument("consumer", help="Consuming module id, e.g. :app")
    explain_parser.add_argument("provider", help="Provider module id, e.g. :lib")
    explain_parser.add_argument("root", nargs="?", default=".", help="Tree root (default: .)")
    _add_common_args(explain_parser)

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be a positive integer")

    commands = {
        "generate": cmd_generate,
        "check": cmd_check,
        "graph": cmd_graph,
        "explain": cmd_explain,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
