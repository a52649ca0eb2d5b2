"""Command-line entry point for grove"""

import os
import sys
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from grove.cli.args import parse_args
from grove.config import Config
from grove.core import Grove
from grove.exceptions import BatchOperationError
from grove.services.display_service import DisplayService
from grove.utils.logging import setup_logging

err_console = Console(stderr=True)


def _run_list(grove: Grove, args) -> int:
    infos = grove.list_worktrees(fast=args.fast)
    current = grove.current_worktree(infos)
    current_path = current.path if current else None

    display = DisplayService(verbose=args.list_verbose, debug=args.debug)
    if args.json:
        display.display_worktree_json(infos, current_path)
    else:
        display.display_worktree_table(infos, current_path, fast=args.fast)
    return 0


def _run_fetch(grove: Grove, args) -> int:
    results = grove.fetch()
    display = DisplayService(verbose=args.fetch_verbose, debug=args.debug)
    if args.json:
        display.display_fetch_json(results)
    else:
        display.display_fetch_results(results)

    errors = [r.error for r in results if r.error is not None]
    if errors:
        if not args.json:
            for error in errors:
                err_console.print(f"[red]Error: {escape(str(error))}[/red]")
        err_console.print(f"[red]Error: failed to fetch {len(errors)} remote(s)[/red]")
        return 1
    return 0


def _run_check_remotes(grove: Grove, args) -> int:
    checks = grove.check_remotes()
    DisplayService(verbose=args.verbose, debug=args.debug).display_remote_checks(checks)
    return 0 if all(check.reachable for check in checks) else 1


def _run_prune(grove: Grove, args) -> int:
    stale = args.stale
    if stale == "":
        # Bare --stale
        stale = grove.config.stale_threshold

    result = grove.prune(
        commit=args.commit,
        force=args.force,
        merged=args.merged,
        detached=args.detached,
        stale=stale,
    )
    DisplayService(verbose=args.verbose, debug=args.debug).display_prune_result(result)
    return 1 if result.failed else 0


def _run_status(grove: Grove, args) -> int:
    status = grove.status()
    display = DisplayService(verbose=args.status_verbose, debug=args.debug)
    if args.json:
        display.display_status_json(status)
    else:
        display.display_status(status)
    return 0


def _run_command(grove: Grove, args) -> int:
    if args.command == "list":
        return _run_list(grove, args)
    if args.command == "lock":
        grove.lock(args.worktrees, reason=args.reason)
    elif args.command == "unlock":
        grove.unlock(args.worktrees)
    elif args.command == "remove":
        grove.remove(args.worktrees, force=args.force, delete_branch=args.delete_branch)
    elif args.command == "exec":
        grove.exec(
            args.worktrees,
            args.exec_command,
            all_worktrees=args.all_worktrees,
            fail_fast=args.fail_fast,
        )
    elif args.command == "move":
        grove.move(args.old, args.new)
    elif args.command == "fetch":
        return _run_fetch(grove, args)
    elif args.command == "check-remotes":
        return _run_check_remotes(grove, args)
    elif args.command == "prune":
        return _run_prune(grove, args)
    elif args.command == "status":
        return _run_status(grove, args)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    debug = False
    try:
        # Parse command line arguments
        parsed_args = parse_args(argv)
        debug = parsed_args.debug

        setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)

        config = Config(verbose=parsed_args.verbose, debug=parsed_args.debug)

        if parsed_args.debug:
            err_console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                err_console.print(f"  {key}: {value}")

        grove = Grove(os.getcwd(), config)
        return _run_command(grove, parsed_args)
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except BatchOperationError as e:
        # Per-target errors were already logged
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    except Exception as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        rollback_error = getattr(e, "rollback_error", None)
        if rollback_error is not None:
            err_console.print(f"[red]{escape(str(rollback_error))}[/red]")
        if debug:
            err_console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
