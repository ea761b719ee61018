#!/usr/bin/env python3
"""Command-line front end for the diff/merge workflow."""

import argparse
import getpass
import sys
from functools import partial
from pathlib import Path
from typing import List, Optional

import anyio

from .client import CredentialStore, DiffMergeClient, set_credential_store
from .config import Config, load_config
from .errors import DiffMergeError, describe_error
from .highlight import render_document, render_terminal
from .logging_config import setup_logging
from .models import MergeGoal, MergePriority, MergeStrategy
from .workflow import WorkflowController


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="diffmerge",
        description="Compare two documents and merge them with the diff/merge service",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to settings YAML (default: configs/settings.yaml)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    login = commands.add_parser("login", help="Log in and store an access token")
    login.add_argument("username")
    login.add_argument("--password", default=None, help="Password (prompted when omitted)")

    commands.add_parser("whoami", help="Show the logged-in user")

    merge = commands.add_parser("merge", help="Diff and merge two documents")
    merge.add_argument("file_a", help="Original document")
    merge.add_argument("file_b", help="Newer document")
    merge.add_argument(
        "--strategy",
        choices=[strategy.value for strategy in MergeStrategy],
        default=MergeStrategy.LATEST.value,
        help="How conflicts are resolved (default: latest)",
    )
    merge.add_argument(
        "--priority",
        action="append",
        choices=[priority.value for priority in MergePriority],
        default=None,
        help="Merge priority; repeat for several (default: accuracy)",
    )
    merge.add_argument("--preserve", action="append", default=[], help="Section to keep intact")
    merge.add_argument("--rule", action="append", default=[], help="Custom merge rule")
    merge.add_argument("--notes", default=None, help="Free-text notes for the merge")
    merge.add_argument(
        "--basic-diff",
        action="store_true",
        help="Request a plain line diff instead of the enhanced one",
    )
    merge.add_argument("--edit", default=None, help="File whose text replaces the merged content")
    merge.add_argument("--output", default=None, help="Also save the merged text locally")
    merge.add_argument("--html", default=None, help="Write a highlighted HTML view")
    merge.add_argument("--name", default=None, help="Filename for the persisted merge")

    return parser


def goal_from_args(args: argparse.Namespace) -> MergeGoal:
    return MergeGoal(
        strategy=MergeStrategy(args.strategy),
        priorities=[MergePriority(p) for p in (args.priority or [MergePriority.ACCURACY.value])],
        preserve_sections=args.preserve,
        custom_rules=args.rule,
        notes=args.notes,
    )


def _print_progress(progress: float, message: str) -> None:
    print(f"  [{progress:5.1f}%] {message}".rstrip())


async def login_command(args: argparse.Namespace, client: DiffMergeClient) -> int:
    password = args.password
    if password is None:
        password = await anyio.to_thread.run_sync(getpass.getpass)
    await client.login(args.username, password)
    print(f"Logged in as {args.username}")
    return 0


async def whoami_command(args: argparse.Namespace, client: DiffMergeClient) -> int:
    controller = WorkflowController(client)
    user = await controller.check_auth()
    if user is None:
        print("Not logged in", file=sys.stderr)
        return 1
    print(user.get("username") or user.get("email") or user)
    return 0


async def merge_command(
    args: argparse.Namespace,
    client: DiffMergeClient,
    config: Config,
) -> int:
    """Run the whole workflow for two local files."""
    controller = WorkflowController.from_config(client, config.polling)

    goal = goal_from_args(args)
    controller.submit_goal(goal)
    print(goal.describe())

    for file_path in (args.file_a, args.file_b):
        content = await anyio.Path(file_path).read_bytes()
        controller.add_document(Path(file_path).name, content)
    documents = await controller.upload_documents()
    print("Uploaded: " + ", ".join(f"{doc.filename} (#{doc.id})" for doc in documents))
    controller.advance()

    diff = await controller.compare(enhanced=not args.basic_diff)
    print(
        f"Diff: +{diff.stats.added_lines} -{diff.stats.removed_lines} "
        f"={diff.stats.unchanged_lines}"
    )
    if diff.summary:
        print(diff.summary)
    controller.advance()

    print("Merging...")
    result = await controller.run_merge(on_progress=_print_progress)
    print(f"Conflicts resolved: {result.report.conflicts_resolved}")

    if args.edit:
        edited = await anyio.Path(args.edit).read_text(encoding="utf-8")
        controller.edit_merged_content(edited)

    lines = controller.highlighted_lines()
    print(render_terminal(lines))
    if args.html:
        await anyio.Path(args.html).write_text(render_document(lines), encoding="utf-8")
        print(f"Highlighted view written to {args.html}")

    try:
        finalized = await controller.finalize(args.name)
    except DiffMergeError as e:
        if not args.output:
            raise
        saved = await controller.export_merged(args.output)
        print(f"Could not save on the server ({describe_error(e)}); saved locally to {saved}")
        return 1

    print(f"Saved as {finalized.filename} (#{finalized.document_id})")
    if args.output:
        saved = await controller.export_merged(args.output)
        print(f"Saved locally to {saved}")
    return 0


async def run(args: argparse.Namespace, config: Config) -> int:
    set_credential_store(
        CredentialStore(
            credentials_path=config.auth.credentials_path,
            token_env_var=config.auth.token_env_var,
        )
    )
    async with DiffMergeClient(config.api.base_url, timeout=config.api.timeout_seconds) as client:
        try:
            if args.command == "login":
                return await login_command(args, client)
            if args.command == "whoami":
                return await whoami_command(args, client)
            return await merge_command(args, client, config)
        except DiffMergeError as e:
            print(describe_error(e), file=sys.stderr)
            return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point of the ``diffmerge`` console script."""
    args = build_parser().parse_args(argv)

    try:
        config = anyio.run(load_config, args.config)
    except Exception as e:
        print(f"Failed to load config: {e}", file=sys.stderr)
        raise SystemExit(1) from e

    setup_logging(
        log_level="DEBUG" if args.debug else config.logging.level,
        log_dir=config.logging.directory,
        enable_file_logging=config.logging.file_logging,
        enable_console_logging=config.logging.console_logging,
    )

    return anyio.run(partial(run, args, config))


if __name__ == "__main__":
    sys.exit(main())
