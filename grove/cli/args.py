"""Command-line argument parsing for grove."""

import argparse
import sys
from typing import List, Optional, Tuple

from grove.__version__ import __version__


def split_command(argv: List[str]) -> Tuple[List[str], List[str]]:
    """Split argv at the first ``--``; what follows is the exec command."""
    if "--" in argv:
        index = argv.index("--")
        return argv[:index], argv[index + 1:]
    return argv, []


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        prog="grove",
        description="Manage the worktrees of a bare-repository workspace",
    )
    parser.add_argument("--version", action="version", version=f"grove {__version__}")
    parser.add_argument("--verbose", action="store_true", help="Show verbose output")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")
    subparsers.required = True

    list_parser = subparsers.add_parser("list", help="List worktrees with their status")
    list_parser.add_argument("--fast", action="store_true", help="Skip sync status checks")
    list_parser.add_argument("--json", action="store_true", help="Output as JSON")
    list_parser.add_argument(
        "-v", "--verbose", dest="list_verbose", action="store_true", help="Show upstream and path"
    )

    lock_parser = subparsers.add_parser("lock", help="Lock worktrees to prevent removal")
    lock_parser.add_argument("worktrees", nargs="+", metavar="worktree")
    lock_parser.add_argument("--reason", default="", help="Why the worktree is locked")

    unlock_parser = subparsers.add_parser("unlock", help="Unlock worktrees")
    unlock_parser.add_argument("worktrees", nargs="+", metavar="worktree")

    remove_parser = subparsers.add_parser("remove", help="Remove worktrees")
    remove_parser.add_argument("worktrees", nargs="+", metavar="worktree")
    remove_parser.add_argument(
        "-f", "--force", action="store_true", help="Remove even if dirty or locked"
    )
    remove_parser.add_argument(
        "--delete-branch", action="store_true", help="Also delete the worktree's branch"
    )

    exec_parser = subparsers.add_parser(
        "exec",
        help="Run a command in worktrees",
        usage="grove exec [--all] [--fail-fast] [worktree ...] -- <command>",
    )
    exec_parser.add_argument("worktrees", nargs="*", metavar="worktree")
    exec_parser.add_argument(
        "-a", "--all", dest="all_worktrees", action="store_true", help="Run in every worktree"
    )
    exec_parser.add_argument(
        "--fail-fast", action="store_true", help="Stop at the first failing worktree"
    )

    move_parser = subparsers.add_parser(
        "move", aliases=["mv"], help="Rename a branch and move its worktree"
    )
    move_parser.add_argument("old", help="Branch to rename")
    move_parser.add_argument("new", help="New branch name")

    fetch_parser = subparsers.add_parser("fetch", help="Fetch all remotes and show what changed")
    fetch_parser.add_argument("--json", action="store_true", help="Output as JSON")
    fetch_parser.add_argument(
        "-v", "--verbose", dest="fetch_verbose", action="store_true", help="Show commit hashes"
    )

    subparsers.add_parser("check-remotes", help="Check that every remote is reachable")

    prune_parser = subparsers.add_parser(
        "prune", help="Remove worktrees whose upstream branch was deleted"
    )
    prune_parser.add_argument(
        "--commit", action="store_true", help="Actually remove (default is a dry run)"
    )
    prune_parser.add_argument(
        "-f", "--force", action="store_true", help="Include dirty, locked and unpushed worktrees"
    )
    prune_parser.add_argument(
        "--stale",
        nargs="?",
        const="",
        default=None,
        metavar="DURATION",
        help="Include worktrees with no commits within DURATION (e.g. 30d, 2w, 6m)",
    )
    prune_parser.add_argument(
        "--merged", action="store_true", help="Include branches merged into the default branch"
    )
    prune_parser.add_argument(
        "--detached", action="store_true", help="Include worktrees with a detached HEAD"
    )

    status_parser = subparsers.add_parser("status", help="Show detailed status of the current worktree")
    status_parser.add_argument("--json", action="store_true", help="Output as JSON")
    status_parser.add_argument(
        "-v", "--verbose", dest="status_verbose", action="store_true", help="Show all sections"
    )

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Everything after ``--`` is kept verbatim in ``exec_command``.
    """
    if argv is None:
        argv = sys.argv[1:]
    own_args, exec_command = split_command(list(argv))

    args = build_parser().parse_args(own_args)
    args.exec_command = exec_command
    if args.command == "mv":
        args.command = "move"
    return args
