"""Display and formatting service for worktree and fetch output"""
import json
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from grove.constants import (
    FETCH_STYLES,
    SYMBOL_CURRENT,
    SYMBOL_DIRTY,
    SYMBOL_GONE,
    SYMBOL_LOCKED,
    SYMBOL_NEW,
    SYMBOL_PRUNED,
    SYMBOL_UPDATED,
)
from grove.models.fetch import ChangeType, RefChange, RemoteCheck, RemoteFetchResult
from grove.models.prune import PruneCandidate, PruneResult
from grove.models.worktree import WorktreeInfo, WorktreeStatus

console = Console()

_CHANGE_SYMBOLS = {
    ChangeType.NEW: SYMBOL_NEW,
    ChangeType.UPDATED: SYMBOL_UPDATED,
    ChangeType.PRUNED: SYMBOL_PRUNED,
}


def format_sync(info: WorktreeInfo) -> str:
    """Format ahead/behind state relative to the upstream."""
    if info.gone:
        return f"[red]{SYMBOL_GONE}[/red]"
    if info.no_upstream or not info.upstream:
        return ""
    if info.ahead == 0 and info.behind == 0:
        return "[green]=[/green]"
    parts = []
    if info.ahead:
        parts.append(f"↑{info.ahead}")
    if info.behind:
        parts.append(f"↓{info.behind}")
    return " ".join(parts)


def format_flags(info: WorktreeInfo) -> str:
    flags = []
    if info.dirty:
        flags.append(f"[yellow]{SYMBOL_DIRTY}[/yellow]")
    if info.locked:
        flags.append(f"[red]{SYMBOL_LOCKED}[/red]")
    return " ".join(flags)


def format_ref_change(change: RefChange, remote: str) -> str:
    """Format one ref change as a single markup line."""
    style = FETCH_STYLES[change.type.value]
    symbol = _CHANGE_SYMBOLS[change.type]
    name = escape(change.short_name(remote))
    if change.type == ChangeType.NEW:
        return f"  [{style}]{symbol}[/{style}] {name}"
    if change.type == ChangeType.PRUNED:
        return f"  [{style}]{symbol}[/{style}] {name} [dim]({change.describe()})[/dim]"
    return f"  [{style}]{symbol}[/{style}] {name} ({change.describe()})"


def fetch_results_to_dict(results: List[RemoteFetchResult]) -> dict:
    """Convert fetch results to the fetch JSON schema."""
    changes = []
    errors = []
    for result in results:
        if result.error is not None:
            errors.append({"remote": result.remote, "message": str(result.error)})
            continue
        for change in result.changes:
            changes.append({
                "remote": result.remote,
                "ref": change.short_name(result.remote),
                "type": change.type.value,
                "old_hash": change.old_hash,
                "new_hash": change.new_hash,
                "commit_count": change.signed_count(),
                "description": change.describe(),
            })
    return {"changes": changes, "errors": errors}


def _plural(count: int, word: str, plural: str = "") -> str:
    if count == 1:
        return f"1 {word}"
    return f"{count} {plural or word + 's'}"


def format_status_sync(info: WorktreeInfo) -> str:
    """Sync part of the status line, e.g. "↑2↓1 diverged"."""
    if info.gone:
        return "[red]gone[/red]"
    if info.no_upstream:
        return ""
    if info.ahead == 0 and info.behind == 0:
        return "="

    text = ""
    if info.ahead:
        text += f"[green]↑{info.ahead}[/green]"
    if info.behind:
        text += f"[yellow]↓{info.behind}[/yellow]"
    if info.ahead and info.behind:
        return text + " diverged"
    if info.ahead:
        return text + " ahead"
    return text + " behind"


def format_status_lines(status: WorktreeStatus) -> List[str]:
    """Compact status: branch line, state line and, if any, an issues line."""
    info = status.info
    branch = "(detached)" if info.detached else info.branch
    line = f"[green]●[/green] [bold]{escape(branch)}[/bold]"
    if info.no_upstream:
        line += " → [dim](no upstream)[/dim]"
    elif info.upstream:
        line += f" → [dim]{escape(info.upstream)}[/dim]"
    lines = [line]

    parts = []
    sync = format_status_sync(info)
    if sync:
        parts.append(sync)
    parts.append("[yellow]dirty[/yellow]" if info.dirty else "[dim]clean[/dim]")
    if status.stashes:
        parts.append(f"[dim]{status.stashes} stashed[/dim]")
    if status.operation:
        parts.append(f"[yellow]{status.operation}[/yellow]")
    lines.append("  " + " · ".join(parts))

    issues = []
    if status.conflicts:
        issues.append(f"[red]{status.conflicts} conflicts[/red]")
    if info.locked:
        issues.append("[yellow]locked[/yellow]")
    if info.detached:
        issues.append("[yellow]detached HEAD[/yellow]")
    if issues:
        lines.append("  [yellow]⚠[/yellow] " + " · ".join(issues))
    return lines

class DisplayService:
    """Renders the output of grove commands to the terminal."""

    def __init__(self, verbose: bool = False, debug: bool = False):
        self.verbose = verbose
        self.debug_mode = debug

    def display_worktree_table(self, infos: List[WorktreeInfo], current_path: Optional[str] = None,
                               fast: bool = False) -> None:
        """Display a table of worktrees, current worktree first."""
        if not infos:
            console.print("[dim]No worktrees found[/dim]")
            return

        ordered = sorted(infos, key=lambda i: (i.path != current_path, i.name))

        table = Table(box=None, show_header=True, header_style="bold")
        table.add_column("")
        table.add_column("Worktree")
        table.add_column("Branch")
        if not fast:
            table.add_column("Sync")
        table.add_column("Status")
        if self.verbose:
            table.add_column("Upstream")
            table.add_column("Path")

        for info in ordered:
            is_current = info.path == current_path
            marker = f"[bold magenta]{SYMBOL_CURRENT}[/bold magenta]" if is_current else ""
            name = f"[bold]{escape(info.name)}[/bold]" if is_current else escape(info.name)
            branch = "[dim](detached)[/dim]" if info.detached else escape(info.branch)

            row = [marker, name, branch]
            if not fast:
                row.append(format_sync(info))
            row.append(format_flags(info))
            if self.verbose:
                row.append(escape(info.upstream))
                row.append(escape(info.path))
            table.add_row(*row)

        console.print(table)

        if self.verbose:
            for info in ordered:
                if info.locked and info.lock_reason:
                    console.print(f"[dim]{escape(info.name)}: locked ({escape(info.lock_reason)})[/dim]")

    def display_worktree_json(self, infos: List[WorktreeInfo], current_path: Optional[str] = None) -> None:
        """Print the listing as a JSON array on stdout."""
        output = [info.to_dict(current_path) for info in infos]
        print(json.dumps(output, indent=2))

    def display_fetch_results(self, results: List[RemoteFetchResult]) -> None:
        """Display per-remote ref changes; errors are reported by the caller."""
        has_changes = False
        for result in results:
            if not result.ok or not result.changes:
                continue

            has_changes = True
            console.print(f"{escape(result.remote)}:")
            for change in result.changes:
                console.print(format_ref_change(change, result.remote))
                if self.verbose:
                    self._display_change_details(change)

        if not has_changes and all(r.ok for r in results):
            console.print("[green]All remotes up to date[/green]")

    def _display_change_details(self, change: RefChange) -> None:
        if change.type == ChangeType.NEW:
            console.print(f"    [dim]at: {change.new_hash[:7]}[/dim]")
        elif change.type == ChangeType.UPDATED:
            console.print(f"    [dim]{change.old_hash[:7]} -> {change.new_hash[:7]}[/dim]")
        else:
            console.print(f"    [dim]was: {change.old_hash[:7]}[/dim]")

    def display_fetch_json(self, results: List[RemoteFetchResult]) -> None:
        print(json.dumps(fetch_results_to_dict(results), indent=2))

    def display_remote_checks(self, checks: List[RemoteCheck]) -> None:
        """Display remote reachability."""
        if not checks:
            console.print("[dim]No remotes configured[/dim]")
            return

        table = Table(box=None, show_header=True, header_style="bold")
        table.add_column("Remote")
        table.add_column("URL")
        table.add_column("Status")
        for check in checks:
            status = "[green]reachable[/green]" if check.reachable else "[red]unreachable[/red]"
            table.add_row(escape(check.remote), escape(check.url), status)
        console.print(table)

    def display_prune_result(self, result: PruneResult) -> None:
        """Display a dry-run plan or the outcome of a committed prune."""
        if not result.candidates:
            console.print("No worktrees to prune.")
            return
        if result.committed:
            self._display_prune_outcome(result)
            return

        removable = result.removable
        skipped = result.skipped
        if removable:
            console.print(f"Would prune {_plural(len(removable), 'worktree')}:")
            for candidate in removable:
                console.print(f"    [dim]{escape(candidate.label)}[/dim]")
        if skipped:
            console.print(f"[yellow]Would skip {_plural(len(skipped), 'worktree')}:[/yellow]")
            for candidate in skipped:
                console.print(f"    [dim]{escape(self._skip_label(candidate))}[/dim]")

        console.print()
        if skipped:
            console.print("Run with --commit to remove. Use --force to include skipped.")
        else:
            console.print("Run with --commit to remove.")

    @staticmethod
    def _skip_label(candidate: PruneCandidate) -> str:
        return f"{candidate.label} ({candidate.skip_reason.value})"

    def _display_prune_outcome(self, result: PruneResult) -> None:
        if not result.removable:
            console.print("No worktrees to remove.")

        if result.pruned:
            console.print(f"[green]Pruned {_plural(len(result.pruned), 'worktree')}:[/green]")
            for candidate in result.pruned:
                console.print(f"    [dim]{escape(candidate.label)}[/dim]")
            if result.deleted_branches:
                count = _plural(len(result.deleted_branches), "local branch", "local branches")
                console.print(f"    [dim]↳ deleted {count}[/dim]")
            for branch, reason in result.kept_branches.items():
                console.print(f"    [dim]↳ kept local branch {escape(branch)} ({reason})[/dim]")

        if result.skipped:
            console.print(f"[yellow]Skipped {_plural(len(result.skipped), 'worktree')}:[/yellow]")
            for candidate in result.skipped:
                console.print(f"    [dim]{escape(self._skip_label(candidate))}[/dim]")

        if result.failed:
            console.print(f"[red]Failed to remove {_plural(len(result.failed), 'worktree')}:[/red]")
            for name, message in result.failed.items():
                console.print(f"    [dim]{escape(name)}: {escape(message)}[/dim]")

    def display_status(self, status: WorktreeStatus) -> None:
        """Display the compact status, or a sectioned report when verbose."""
        if not self.verbose:
            for line in format_status_lines(status):
                console.print(line)
            return

        info = status.info
        self._section("Worktree")
        self._field("Branch", "(detached)" if info.detached else info.branch)
        self._field("Path", info.path)
        if info.upstream:
            self._field("Upstream", info.upstream)
        elif info.no_upstream:
            self._field("Upstream", "(not configured)")

        console.print()
        self._section("Sync Status")
        if info.gone:
            self._field("Status", "upstream deleted")
        elif info.no_upstream:
            self._field("Status", "no upstream configured")
        else:
            if info.ahead:
                self._field("Ahead", f"{info.ahead} commits")
            if info.behind:
                self._field("Behind", f"{info.behind} commits")
            if not info.ahead and not info.behind:
                self._field("Status", "in sync")

        console.print()
        self._section("Working Tree")
        self._field("State", "dirty" if info.dirty else "clean")
        if status.stashes:
            self._field("Stashes", str(status.stashes))

        if status.operation or status.conflicts or info.locked or info.detached:
            console.print()
            self._section("Operations")
            if status.operation:
                self._field("In Progress", status.operation)
            if status.conflicts:
                self._field("Conflicts", f"{status.conflicts} unresolved")
            if info.locked:
                self._field("Locked", "yes")
            if info.detached:
                self._field("Detached", "yes")

    @staticmethod
    def _section(title: str) -> None:
        console.print(f"[bold]{title}[/bold]")

    @staticmethod
    def _field(label: str, value: str) -> None:
        console.print(f"  [dim]{label + ':':<13}[/dim] {escape(value)}")

    def display_status_json(self, status: WorktreeStatus) -> None:
        print(json.dumps(status.to_dict(), indent=2))
