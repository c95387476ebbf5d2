from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.prompt import Prompt


class RichUserPrompt:
    """Asks the user through the terminal. Ctrl-C / EOF counts as dismissal."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def prompt_question(self, question: str) -> Optional[str]:
        try:
            return Prompt.ask("\n" + question, console=self.console)
        except (EOFError, KeyboardInterrupt):
            return None

    def _print_options(self, question: str, options: list[str]) -> None:
        self.console.print("\n[bold]Question:[/bold] " + question)
        for i, c in enumerate(options, start=1):
            self.console.print(f"  {i}. {c}")

    def _pick(self, raw: str, options: list[str]) -> Optional[str]:
        raw = raw.strip()
        if raw.isdigit():
            idx = int(raw)
            if 1 <= idx <= len(options):
                return options[idx - 1]
            return None
        for c in options:
            if c.lower() == raw.lower():
                return c
        return None

    def select_one(self, question: str, options: list[str]) -> Optional[str]:
        self._print_options(question, options)
        while True:
            try:
                ans = Prompt.ask("Your answer (number or text)", console=self.console)
            except (EOFError, KeyboardInterrupt):
                return None
            picked = self._pick(ans, options)
            if picked is not None:
                return picked
            self.console.print("[red]Please pick one of the listed options.[/red]")

    def select_many(self, question: str, options: list[str]) -> Optional[list[str]]:
        self._print_options(question, options)
        try:
            ans = Prompt.ask("Your answers (comma separated numbers or text)", console=self.console)
        except (EOFError, KeyboardInterrupt):
            return None
        picked: list[str] = []
        for part in ans.split(","):
            p = self._pick(part, options)
            if p is not None and p not in picked:
                picked.append(p)
        return picked
