"""User interaction surfaces: prompts, progress and notices.

The orchestrators only talk to a ``UserInteraction``; they never render
anything themselves. A prompt returning ``None`` means the user dismissed it.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

ChoiceFilter = Callable[[str, str], bool]


def contains_ignore_case(item: str, query: str) -> bool:
    """Default picker filter: case-insensitive substring match."""
    return query.lower() in item.lower()


class UserInteraction(Protocol):
    """Capabilities the orchestrators and commands need from a front end."""

    def prompt_text(self, prompt: str) -> str | None: ...

    def prompt_choice(
        self, items: Sequence[str], matches: ChoiceFilter = contains_ignore_case
    ) -> str | None: ...

    def report_progress(self, title: str, step: int, total: int) -> None: ...

    def notify_info(self, message: str) -> None: ...

    def notify_error(self, message: str) -> None: ...


class NullInteraction:
    """Silent surface. Every prompt counts as dismissed."""

    def prompt_text(self, prompt: str) -> str | None:
        return None

    def prompt_choice(
        self, items: Sequence[str], matches: ChoiceFilter = contains_ignore_case
    ) -> str | None:
        return None

    def report_progress(self, title: str, step: int, total: int) -> None:
        pass

    def notify_info(self, message: str) -> None:
        pass

    def notify_error(self, message: str) -> None:
        pass


class ConsoleInteraction:
    """Interactive surface backed by a rich console."""

    def __init__(self, console: Console, page_size: int = 20):
        self.console = console
        self.page_size = page_size

    def prompt_text(self, prompt: str) -> str | None:
        try:
            return Prompt.ask(prompt, console=self.console, default="", show_default=False)
        except (EOFError, KeyboardInterrupt):
            return None

    def prompt_choice(
        self, items: Sequence[str], matches: ChoiceFilter = contains_ignore_case
    ) -> str | None:
        """Pick one item, narrowing the list with free-text filters.

        A number selects from the list shown, an exact item name selects that
        item, any other text becomes the new filter. Empty input cancels.
        """
        query = ""
        while True:
            shown = [item for item in items if matches(item, query)]
            self._print_choices(shown, query)

            try:
                answer = Prompt.ask(
                    "Filter or number (empty to cancel)",
                    console=self.console,
                    default="",
                    show_default=False,
                )
            except (EOFError, KeyboardInterrupt):
                return None

            answer = answer.strip()
            if not answer:
                return None
            if answer in items:
                return answer
            if answer.isdigit():
                index = int(answer)
                if 1 <= index <= min(len(shown), self.page_size):
                    return shown[index - 1]
                self.console.print(f"[red]No entry {index}[/]")
                continue
            query = answer

    def _print_choices(self, shown: list[str], query: str):
        if query:
            self.console.print(f"[bold]Matching '{escape(query)}':[/]")
        if not shown:
            self.console.print("  [dim]no matches[/]")
            return
        for number, item in enumerate(shown[: self.page_size], start=1):
            self.console.print(f"  [cyan]{number:>3}[/] {escape(item)}")
        hidden = len(shown) - self.page_size
        if hidden > 0:
            self.console.print(f"  [dim]... {hidden} more, type to filter[/]")

    def report_progress(self, title: str, step: int, total: int) -> None:
        self.console.print(f"[dim]({step}/{total})[/] {escape(title)}")

    def notify_info(self, message: str) -> None:
        self.console.print(f"[green]✓[/] {escape(message)}")

    def notify_error(self, message: str) -> None:
        self.console.print(f"[red]✗ {escape(message)}[/]")
