"""Command-line entry point for history-mirror.

Two subcommands:

- ``run ROOT``: mirror the history of standard commit ROOT.
- ``init``: write a starter config file.

Reports go to stdout; logs and errors go to stderr.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from history_mirror import __version__
from history_mirror.backend import GitRepository
from history_mirror.config import load_settings
from history_mirror.config_loader import ensure_config, load_hierarchical_config
from history_mirror.config_schema import build_config, to_yaml_fallbacks
from history_mirror.errors import MirrorError
from history_mirror.logger import setup_logging
from history_mirror.replay import (
    CONFLICT_STRATEGIES,
    MirrorEngine,
    format_mirror_report,
    format_plan_preview,
    report_to_json,
)
from history_mirror.validators import validate_revision

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="history-mirror",
        description="Mirror a filtered subset of a repository's history into another repository",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create .history_mirror/config.yml with commented defaults
  history-mirror init

  # Mirror using paths and allow-list from config.yml
  history-mirror run 3f1c0d2

  # Everything on the command line
  history-mirror run 3f1c0d2 --standard ../standard --mirror ../mirror \\
      --component core --folder buildSrc --folder common

  # Preview the replay plan without touching the mirror
  history-mirror run 3f1c0d2 --dry-run

  # Machine-readable report, no push
  history-mirror run 3f1c0d2 --no-push --json

Settings are resolved as: CLI args > environment (.env) > config.yml > defaults.
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"history-mirror version {__version__}",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run", help="Mirror the history of a standard commit"
    )
    run_parser.add_argument(
        "root", metavar="ROOT_HASH", help="Standard commit to mirror"
    )
    run_parser.add_argument(
        "--standard",
        help="Standard repository path (overrides HISTORY_MIRROR_STANDARD_PATH and config files)",
    )
    run_parser.add_argument(
        "--mirror",
        help="Mirror repository path (overrides HISTORY_MIRROR_MIRROR_PATH and config files)",
    )
    run_parser.add_argument("--component", help="Component folder to mirror")
    run_parser.add_argument(
        "--folder",
        action="append",
        dest="folders",
        metavar="DIR",
        help="Additional folder to mirror (repeatable)",
    )
    run_parser.add_argument(
        "--file",
        action="append",
        dest="files",
        metavar="PATH",
        help="Additional file to mirror (repeatable)",
    )
    run_parser.add_argument(
        "--standard-depth",
        type=int,
        metavar="N",
        help="Generations of standard history to collect (default: 1000)",
    )
    run_parser.add_argument(
        "--mirror-depth",
        type=int,
        metavar="N",
        help="Generations of mirror history scanned for markers (default: 1000)",
    )
    run_parser.add_argument(
        "--conflict-strategy",
        choices=CONFLICT_STRATEGIES,
        help="How conflicted merges are settled (default: standard-wins)",
    )
    run_parser.add_argument(
        "--no-push", action="store_true", help="Do not push the mirror"
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the replay plan without touching the mirror",
    )
    run_parser.add_argument(
        "--json", action="store_true", help="Print the report as JSON"
    )
    run_parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    run_parser.add_argument("--log-file", help="Also append logs to this file")
    run_parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        help="Log record format (default: text)",
    )

    init_parser = subparsers.add_parser(
        "init", help="Write a starter config file"
    )
    init_parser.add_argument(
        "--path", help="Config file to create (default: .history_mirror/config.yml)"
    )

    return parser


def _cmd_run(args: argparse.Namespace) -> int:
    unified = build_config(load_hierarchical_config())
    setup_logging(
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        log_format=args.log_format or unified.logging.format,
        level=unified.logging.level,
    )

    is_valid, error = validate_revision(args.root)
    if not is_valid:
        raise ValueError(error)

    settings = load_settings(
        standard_path=args.standard,
        mirror_path=args.mirror,
        component=args.component,
        folders=args.folders,
        files=args.files,
        standard_depth_limit=args.standard_depth,
        mirror_depth_limit=args.mirror_depth,
        conflict_strategy=args.conflict_strategy,
        no_push=args.no_push,
        debug=args.debug,
        yaml_fallbacks=to_yaml_fallbacks(unified),
    )
    logger.debug("Settings: %s", settings)

    standard = GitRepository(
        settings.standard_path,
        remote=settings.standard_remote,
        include_remote_branches=settings.include_remote_branches,
    )
    mirror = GitRepository(settings.mirror_path, remote=settings.remote)
    engine = MirrorEngine(standard, mirror, settings)
    report = engine.mirror(args.root, dry_run=args.dry_run)

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    elif report.dry_run:
        print(format_plan_preview(report))
    else:
        print(format_mirror_report(report))
    return EXIT_OK


def _cmd_init(args: argparse.Namespace) -> int:
    target = Path(args.path) if args.path else None
    path, created = ensure_config(target)
    if created:
        print(f"Created {path}")
    else:
        print(f"Config already exists: {path}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the subcommand, and return the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    load_dotenv()

    handlers = {"run": _cmd_run, "init": _cmd_init}
    try:
        return handlers[args.command](args)
    except (MirrorError, ValueError, ValidationError, OSError) as exc:
        logger.debug("Run failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
