"""Output formatters for console and JSON display."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from .core import OperationResult, RepositoryStatus, Submodule


def relative_display(path: Path, root: Path) -> str:
    """Path relative to the main repository; "." for the main repository itself."""
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


class OutputFormatter:
    """Format output for console or JSON."""

    def __init__(self, console: Console, use_json: bool = False):
        self.console = console
        self.use_json = use_json

    def print_operation_results(
        self, results: list[OperationResult], operation: str, root_path: Path
    ):
        """Print operation results."""
        if self.use_json:
            self._print_operation_json(results, operation)
        else:
            self._print_operation_table(results, operation, root_path)

    def _print_operation_table(
        self, results: list[OperationResult], operation: str, root_path: Path
    ):
        """Print operation results as table."""
        if not results:
            self.console.print(f"[dim]No repositories to {operation}[/]")
            return

        table = Table(title=f"{operation.title()} Results")
        table.add_column("Repository", style="cyan")
        table.add_column("Status", justify="center")
        table.add_column("Message")

        success_count = 0
        for result in results:
            repo_display = escape(relative_display(result.path, root_path))
            if result.success:
                success_count += 1
                status = "[green]✓[/]"
                message = escape(result.message[:60]) if result.message else "OK"
            else:
                status = "[red]✗[/]"
                message = f"[red]{escape(result.error[:60])}[/]" if result.error else "Failed"

            table.add_row(repo_display, status, message)

        self.console.print(table)
        self.console.print(f"\n[bold]Success:[/] {success_count}/{len(results)}")

    def _print_operation_json(self, results: list[OperationResult], operation: str):
        """Print operation results as JSON."""
        output = {
            "operation": operation,
            "results": [r.to_dict() for r in results],
            "summary": {
                "total": len(results),
                "success": sum(1 for r in results if r.success),
                "failed": sum(1 for r in results if not r.success),
            },
        }
        print(json.dumps(output, indent=2))

    def print_status_list(self, statuses: list[RepositoryStatus], root_path: Path):
        """Print status list."""
        if self.use_json:
            output = {
                "root": str(root_path),
                "repositories": [s.to_dict() for s in statuses],
            }
            print(json.dumps(output, indent=2))
        else:
            self._print_status_table(statuses, root_path)

    def _print_status_table(self, statuses: list[RepositoryStatus], root_path: Path):
        table = Table(title=f"Submodule Status: {escape(str(root_path))}")

        table.add_column("Repository", style="cyan", no_wrap=True)
        table.add_column("Branch")
        table.add_column("Sync", justify="center")
        table.add_column("Working Tree", justify="center")

        for status in statuses:
            table.add_row(
                escape(relative_display(status.path, root_path)),
                self._get_branch_display(status),
                self._get_sync_icon(status),
                self._get_working_tree_display(status),
            )

        self.console.print(table)
        dirty = sum(1 for s in statuses if s.is_dirty)
        errors = sum(1 for s in statuses if s.error_message)
        parts = [f"[bold]Total:[/] {len(statuses)}"]
        if dirty:
            parts.append(f"[yellow]✎ Dirty:[/] {dirty}")
        if errors:
            parts.append(f"[red]✗ Errors:[/] {errors}")
        self.console.print(" | ".join(parts))

    def _get_branch_display(self, status: RepositoryStatus) -> str:
        if status.error_message:
            return "[dim]-[/]"
        if status.is_detached:
            return "[dim]detached[/]"
        return f"[green]{escape(status.branch)}[/]"

    def _get_sync_icon(self, status: RepositoryStatus) -> str:
        """Get sync status icon."""
        if status.error_message:
            return f"[red]✗ {escape(status.error_message[:30])}[/]"
        if not status.remote_branch:
            return "[dim]no upstream[/]"
        if status.needs_push and status.needs_pull:
            return f"[red]⬆{status.ahead_count} ⬇{status.behind_count}[/]"
        if status.needs_push:
            return f"[yellow]⬆ {status.ahead_count}[/]"
        if status.needs_pull:
            return f"[blue]⬇ {status.behind_count}[/]"
        return "[green]✓[/]"

    def _get_working_tree_display(self, status: RepositoryStatus) -> str:
        if status.error_message:
            return "[dim]-[/]"
        if not status.is_dirty:
            return "[green]clean[/]"

        parts = []
        if status.staged_count > 0:
            parts.append(f"[green]+{status.staged_count}[/]")
        unstaged = status.modified_count - status.staged_count
        if unstaged > 0:
            parts.append(f"[yellow]~{unstaged}[/]")
        return " ".join(parts)

    def print_submodule_list(self, submodules: list[Submodule], root_path: Path):
        """Print the submodules found in the main repository."""
        if self.use_json:
            output = {
                "root": str(root_path),
                "count": len(submodules),
                "submodules": [s.to_dict() for s in submodules],
            }
            print(json.dumps(output, indent=2))
            return

        self.console.print(f"[bold]Found {len(submodules)} submodules in {escape(str(root_path))}[/]\n")
        for submodule in submodules:
            marker = "" if submodule.is_initialized else " [dim](not initialized)[/]"
            self.console.print(
                f"  [cyan]{escape(submodule.relative_path)}[/] [dim]{submodule.commit[:8]}[/]{marker}"
            )
