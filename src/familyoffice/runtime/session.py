"""Session lifecycle and the registry that owns live sessions."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger

from familyoffice.errors import SessionCreationError, WorkingDirectoryError
from familyoffice.runtime.agent import AgentRuntime, AgentThread, ThreadOptions

SessionFactory = Callable[[], Awaitable["Session"]]


@dataclass
class Session:
    """A live runtime thread plus the scratch directory it works in."""

    key: str
    thread: AgentThread
    working_dir: Path
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    turns: int = 0

    @property
    def thread_id(self) -> str | None:
        return self.thread.id


def session_key(family: str, ticker: str) -> str:
    return f"{family}-{ticker.upper()}"


def _timestamp_slug(moment: datetime) -> str:
    # 2026-10-16T09:30:00.123Z -> 2026-10-16T09-30-00
    return moment.strftime("%Y-%m-%dT%H-%M-%S")


class SessionOpener:
    """Allocate a working directory, then obtain a thread from the runtime."""

    def __init__(self, runtime: AgentRuntime, temp_root: Path, options: ThreadOptions) -> None:
        self._runtime = runtime
        self._temp_root = temp_root.expanduser()
        self._options = options

    async def open(self, family: str, ticker: str) -> Session:
        now = datetime.now(UTC)
        working_dir = self._temp_root / f"{ticker.upper()}-{family}-{_timestamp_slug(now)}"
        try:
            await asyncio.to_thread(working_dir.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkingDirectoryError(working_dir, exc.strerror or str(exc)) from exc

        try:
            thread = await self._runtime.create_thread(working_dir.resolve(), self._options)
        except SessionCreationError:
            raise
        except OSError as exc:
            raise SessionCreationError(f"Agent runtime refused to start a session: {exc}") from exc

        key = session_key(family, ticker)
        logger.info("session.create key={} workdir={}", key, working_dir)
        return Session(key=key, thread=thread, working_dir=working_dir, created_at=now)


class SessionRegistry:
    """Map of session keys to live sessions.

    Sessions live until `remove` or `clear`; there is no idle eviction.
    `get_or_create` is single-flight per key: concurrent callers for the same
    key share one factory call. Per-key locks outlive `remove` and `clear`, so a
    create that is still in flight keeps serializing later callers for that key.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def keys(self) -> list[str]:
        return sorted(self._sessions)

    def get(self, key: str) -> Session | None:
        return self._sessions.get(key)

    def set(self, key: str, session: Session) -> None:
        self._sessions[key] = session

    def remove(self, key: str) -> Session | None:
        return self._sessions.pop(key, None)

    def clear(self) -> None:
        self._sessions.clear()

    async def get_or_create(self, key: str, factory: SessionFactory) -> tuple[Session, bool]:
        """Return `(session, created)`, invoking `factory` only when the key is absent."""
        existing = self._sessions.get(key)
        if existing is not None:
            return existing, False

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            existing = self._sessions.get(key)
            if existing is not None:
                return existing, False
            session = await factory()
            self._sessions[key] = session
            return session, True
