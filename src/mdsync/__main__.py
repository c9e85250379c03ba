"""CLI entry point for mdsync."""

import argparse
from pathlib import Path

from .config import Settings
from .logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with push and pull subcommands."""
    parser = argparse.ArgumentParser(
        prog="mdsync",
        description="Sync a markdown story backlog with a Trello board",
    )
    parser.add_argument(
        "--project-root",
        type=Path,
        default=None,
        help="Path to project root containing mdsync.yml (default: current directory)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (-v for INFO, -vv for DEBUG)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Path to write logs to file",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )
    parser.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Print a JSON summary",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    push = subparsers.add_parser("push", help="Sync markdown stories to the board")
    push.add_argument("--input-dir", default=None, help="Markdown directory (default: md)")
    push.add_argument(
        "--output-dir", default=None, help="Local snapshot directory (default: items)"
    )
    push.add_argument("--checklist-name", default=None, help="Checklist name (default: Todos)")
    push.add_argument(
        "--status-map",
        default=None,
        help='Status to list map, JSON or "status:List,status:List"',
    )
    push.add_argument(
        "--priority-label-map",
        default=None,
        help='Priority to label map, JSON or "high:P1,low:P3"',
    )
    push.add_argument(
        "--member-alias-map",
        default=None,
        help='Assignee alias to board member map, JSON or "qa:jane,dev:joe"',
    )
    push.add_argument(
        "--required-labels", default=None, help="Comma-separated labels to ensure exist"
    )
    push.add_argument(
        "--story-id-field", default=None, help="Custom field id or name holding the story id"
    )
    push.add_argument("--concurrency", type=int, default=None, help="Worker count (default: 4)")
    push.add_argument(
        "--dry-run",
        action="store_const",
        const=True,
        default=None,
        help="Plan changes without writing to the board",
    )
    push.add_argument(
        "--strict-status",
        action="store_const",
        const=True,
        default=None,
        help="Fail on statuses missing from the status map",
    )
    push.add_argument(
        "--write-local",
        action="store_const",
        const=True,
        default=None,
        help="Write a rendered snapshot of every story to the output directory",
    )
    push.add_argument(
        "--ensure-labels",
        action="store_const",
        const=True,
        default=None,
        help="Create labels that are missing on the board",
    )
    push.add_argument(
        "--require-story-id",
        action="store_const",
        const=True,
        default=None,
        help="Fail on stories without a story id",
    )

    pull = subparsers.add_parser("pull", help="Write board cards to markdown files")
    pull.add_argument("--output-dir", type=Path, default=None, help="Destination directory")
    pull.add_argument("--list", dest="lists", default=None, help="Comma-separated list names")
    pull.add_argument("--label", dest="labels", default=None, help="Comma-separated label names")
    pull.add_argument(
        "--story-id", dest="story_ids", default=None, help="Comma-separated story ids"
    )

    return parser


PUSH_OVERRIDES = (
    "input_dir",
    "output_dir",
    "checklist_name",
    "status_map",
    "priority_label_map",
    "member_alias_map",
    "required_labels",
    "story_id_field",
    "concurrency",
    "dry_run",
    "strict_status",
    "write_local",
    "ensure_labels",
    "require_story_id",
)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    # Build settings from CLI args
    settings_kwargs: dict = {}
    if args.project_root:
        settings_kwargs["project_root"] = args.project_root
    if args.verbose:
        settings_kwargs["verbose"] = args.verbose
    if args.log_file:
        settings_kwargs["log_file"] = args.log_file

    settings = Settings(**settings_kwargs)
    setup_logging(settings.verbose, settings.log_file)

    if args.command == "push":
        from .cli.push import run_push

        overrides = {name: getattr(args, name) for name in PUSH_OVERRIDES}
        exit_code = run_push(settings, overrides, json_output=args.json_output)
    else:
        from .cli.pull import run_pull

        exit_code = run_pull(
            settings,
            output_dir=args.output_dir,
            lists=args.lists,
            labels=args.labels,
            story_ids=args.story_ids,
            json_output=args.json_output,
        )

    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
