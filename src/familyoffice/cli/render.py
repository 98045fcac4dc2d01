"""CLI renderer for FamilyOffice."""

from __future__ import annotations

import threading

from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown


class Renderer:
    """CLI renderer using Rich for terminal output."""

    def __init__(self, console: Console | None = None) -> None:
        self.console: Console = console or Console()
        self._prompt_session: PromptSession[str] | None = None
        self._print_lock = threading.Lock()
        self._live: Live | None = None

    def info(self, message: str) -> None:
        self._print(message)

    def error(self, message: str) -> None:
        self._print(f"[bold red]Error:[/bold red] {message}", markup=True)

    def progress(self, line: str) -> None:
        """Render one progress line from a running task."""
        if self._live is not None:
            self._live.console.print(line, style="dim", markup=False, highlight=False)
            return
        self._print(line, style="dim")

    def partial(self, text: str) -> None:
        """Show the in-flight assistant reply, replacing the previous partial."""
        if self._live is None:
            self._live = Live(Markdown(text), console=self.console, refresh_per_second=8, transient=True)
            self._live.start()
            return
        self._live.update(Markdown(text))

    def response(self, text: str, *, title: str | None = None) -> None:
        self._stop_live()
        if title:
            self._print(f"[bold yellow]{title}[/bold yellow]", markup=True)
        with self._print_lock:
            self.console.print(Markdown(text))

    def usage(self, input_tokens: int, output_tokens: int) -> None:
        self._print(f"Tokens: {input_tokens} in, {output_tokens} out", style="dim")

    async def read_input(self, prompt: str = "$ ") -> str:
        if self._prompt_session is None:
            self._prompt_session = PromptSession()
        with patch_stdout(raw=True):
            return await self._prompt_session.prompt_async(prompt)

    def close(self) -> None:
        self._stop_live()

    def _stop_live(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None

    def _print(self, message: str, *, style: str | None = None, markup: bool = False) -> None:
        with self._print_lock:
            self.console.print(message, style=style, markup=markup, highlight=False)
