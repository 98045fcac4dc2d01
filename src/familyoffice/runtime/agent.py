"""Agent runtime contracts."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from familyoffice.runtime.events import StreamEvent


@dataclass(frozen=True)
class ThreadOptions:
    """Options applied to every turn of one thread."""

    model: str | None = None
    sandbox_mode: str | None = "danger-full-access"
    skip_git_repo_check: bool = True


class AgentThread(Protocol):
    """One persistent conversational context held by the runtime."""

    @property
    def id(self) -> str | None: ...

    async def initialize(self, text: str) -> None:
        """Run a full turn and discard its output."""
        ...

    def submit(self, text: str) -> AsyncIterator[StreamEvent]:
        """Start a turn and stream its events in emission order."""
        ...


class AgentRuntime(Protocol):
    async def create_thread(self, working_dir: Path, options: ThreadOptions) -> AgentThread: ...
