#!/usr/bin/env python3
"""nsxdrift command line entry point.

Usage:
    nsxdrift --git /usr/bin/git [--config SETTINGS] [--output DIR] [--no-push]

Exit codes:
    0  Export committed (or nothing changed)
    1  Preflight, fetch or write failure; nothing committed
    2  Output directory is not a git repository (setup steps printed)
    3  Push failed and --strict-push was given

Environment:
    NSXDRIFT_CONFIG     Settings file (default search: ./configs/settings.yaml, ...)
    NSX_PASSWORD        NSX Manager password (default manager.password_env)
    NSXDRIFT_LOG_LEVEL  Console log level
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

import httpx
import yaml

from .config.settings import ArchiveSettings, ManagerConfig, load_settings
from .nsx.client import NsxApiError, NsxConnection
from .pipeline import ExportPipeline, RepositoryNotInitializedError, RunResult, RunState
from .utils.logging_config import setup_logging

logger = logging.getLogger("nsxdrift.cli")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_NOT_A_REPO = 2
EXIT_PUSH_FAILED = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nsxdrift",
        description="Export NSX Manager configuration to a git repository",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Export with settings from ./configs/settings.yaml
    nsxdrift --git /usr/bin/git

    # Explicit manager and output directory, commit without pushing
    nsxdrift --git /usr/bin/git --host nsxmgr.lab --output /srv/nsx-history --no-push
""",
    )
    parser.add_argument("--config", type=Path, help="Settings YAML file")
    parser.add_argument("--git", dest="git_path", help="Path to the git executable")
    parser.add_argument("--output", type=Path, help="Export directory (git working tree)")
    parser.add_argument("--host", help="NSX Manager address (overrides manager.host)")
    parser.add_argument("--username", help="NSX Manager user (overrides manager.username)")
    parser.add_argument("--branch", help="Branch to push (overrides git.branch)")
    parser.add_argument("--no-push", action="store_true", help="Commit locally only")
    parser.add_argument(
        "--strict-push",
        action="store_true",
        help=f"Exit {EXIT_PUSH_FAILED} when the push fails instead of leaving it to the next run",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def apply_overrides(settings: ArchiveSettings, args: argparse.Namespace) -> ArchiveSettings:
    """Fold command line options into the loaded settings."""
    if args.host:
        if settings.manager is None:
            settings.manager = ManagerConfig(host=args.host)
        else:
            settings.manager.host = args.host
    if args.username and settings.manager is not None:
        settings.manager.username = args.username
    if args.git_path:
        settings.git.path = args.git_path
    if args.branch:
        settings.git.branch = args.branch
    if args.no_push:
        settings.git.push = False
    if args.strict_push:
        settings.git.strict_push = True
    if args.output:
        settings.output_dir = args.output
    return settings


def open_connection(manager: Optional[ManagerConfig]) -> Optional[NsxConnection]:
    """Connect to NSX Manager. A failed connect leaves the handle inactive."""
    if manager is None:
        return None
    connection = NsxConnection(manager)
    try:
        connection.connect()
    except (NsxApiError, httpx.HTTPError) as e:
        logger.error(f"Cannot connect to NSX Manager {manager.host}: {e}")
    return connection


def report(result: RunResult) -> None:
    logger.info("=" * 60)
    logger.info("EXPORT RESULTS")
    logger.info("=" * 60)
    for stage in result.stages:
        status = "OK" if stage.success else "FAIL"
        logger.info(f"  {stage.stage.value:12s}: {status} ({stage.duration_ms:.0f}ms) {stage.message}")
        if stage.error:
            logger.info(f"      Error: {stage.error}")
    if result.files_changed:
        logger.info(f"Changed files: {', '.join(result.files_changed)}")
    if result.timings is not None:
        for line in result.timings.summary().splitlines():
            logger.info(line)
    logger.info(f"Final state: {result.state.value}")
    logger.info("=" * 60)


def exit_code(result: RunResult, strict_push: bool) -> int:
    if result.state is RunState.FAILED:
        if isinstance(result.exception, RepositoryNotInitializedError):
            return EXIT_NOT_A_REPO
        return EXIT_FAILED
    if strict_push and result.push_failed:
        return EXIT_PUSH_FAILED
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for nsxdrift."""
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else None)

    try:
        settings = apply_overrides(load_settings(args.config), args)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Invalid configuration: {e}")
        logger.error("Fix the settings file (see configs/settings.example.yaml) and run again")
        return EXIT_FAILED

    logger.info(f"Output directory: {settings.output_dir}")
    connection = open_connection(settings.manager)

    pipeline = ExportPipeline(
        connection=connection,
        git_path=settings.git.path,
        output_dir=settings.output_dir,
        commit_message=settings.git.commit_message,
        remote=settings.git.remote,
        branch=settings.git.branch,
        push=settings.git.push,
    )

    try:
        result = pipeline.run()
    except KeyboardInterrupt:
        logger.warning("Export interrupted by user")
        return 130
    finally:
        if connection is not None:
            connection.close()

    if isinstance(result.exception, RepositoryNotInitializedError):
        print(result.exception, file=sys.stderr)

    report(result)
    return exit_code(result, settings.git.strict_push)


if __name__ == "__main__":
    sys.exit(main())
