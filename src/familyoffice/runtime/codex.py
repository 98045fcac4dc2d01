"""Agent runtime backed by the `codex exec --json` command line."""

from __future__ import annotations

import asyncio
import json
import os
import shutil
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing, suppress
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from familyoffice.errors import SessionCreationError, TurnFailedError
from familyoffice.runtime.agent import ThreadOptions
from familyoffice.runtime.events import EVENT_TYPES, StreamEvent, TurnFailedEvent, parse_event

STREAM_LIMIT_BYTES = 32 * 1024 * 1024
STDERR_TAIL_CHARS = 2000


class CodexRuntime:
    """Create threads that run turns through a `codex` subprocess."""

    def __init__(self, command: Sequence[str] = ("codex",), *, api_key: str | None = None) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self._command = tuple(command)
        self._api_key = api_key

    async def create_thread(self, working_dir: Path, options: ThreadOptions) -> CodexThread:
        executable = self._command[0]
        if shutil.which(executable) is None and not Path(executable).is_file():
            raise SessionCreationError(f"Agent runtime executable not found: {executable}")
        return CodexThread(self._command, working_dir, options, api_key=self._api_key)


class CodexThread:
    """One codex conversation; the first turn's `thread.started` id is resumed afterwards."""

    def __init__(
        self,
        command: Sequence[str],
        working_dir: Path,
        options: ThreadOptions,
        *,
        api_key: str | None = None,
        thread_id: str | None = None,
    ) -> None:
        self._command = tuple(command)
        self._working_dir = working_dir
        self._options = options
        self._api_key = api_key
        self._id = thread_id

    @property
    def id(self) -> str | None:
        return self._id

    @property
    def working_dir(self) -> Path:
        return self._working_dir

    def build_args(self) -> list[str]:
        args = [*self._command, "exec", "--json"]
        if self._options.model:
            args.extend(["--model", self._options.model])
        if self._options.sandbox_mode:
            args.extend(["--sandbox", self._options.sandbox_mode])
        args.extend(["--cd", str(self._working_dir)])
        if self._options.skip_git_repo_check:
            args.append("--skip-git-repo-check")
        if self._id:
            args.extend(["resume", self._id])
        args.append("-")
        return args

    async def initialize(self, text: str) -> None:
        async with aclosing(self.submit(text)) as events:
            async for event in events:
                if isinstance(event, TurnFailedEvent):
                    raise TurnFailedError(event.error.message)

    async def submit(self, text: str) -> AsyncIterator[StreamEvent]:
        args = self.build_args()
        logger.debug("codex.exec args={}", args[:-1])
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=str(self._working_dir),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._environment(),
                limit=STREAM_LIMIT_BYTES,
            )
        except OSError as exc:
            raise SessionCreationError(f"Failed to start agent runtime: {exc}") from exc

        assert process.stdin is not None and process.stdout is not None and process.stderr is not None
        stderr_task = asyncio.create_task(process.stderr.read())
        failed = False
        exhausted = False
        try:
            process.stdin.write(text.encode("utf-8"))
            await process.stdin.drain()
            process.stdin.close()

            while line := await process.stdout.readline():
                event = self._decode(line)
                if event is None:
                    continue
                if isinstance(event, TurnFailedEvent):
                    failed = True
                yield event
            exhausted = True
        finally:
            if not exhausted and process.returncode is None:
                # Consumer stopped early.
                with suppress(ProcessLookupError):
                    process.kill()
            returncode = await process.wait()
            stderr_bytes = await stderr_task

        if returncode != 0 and not failed:
            detail = stderr_bytes.decode("utf-8", errors="replace").strip()[-STDERR_TAIL_CHARS:]
            raise TurnFailedError(detail or f"agent runtime exited with status {returncode}")

    def _decode(self, line: bytes) -> StreamEvent | None:
        raw = line.decode("utf-8", errors="replace").strip()
        if not raw:
            return None
        try:
            payload: Any = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("codex.stream.invalid_json line={}", raw[:200])
            return None
        if not isinstance(payload, dict):
            return None

        kind = payload.get("type")
        if kind == "thread.started":
            self._id = payload.get("thread_id") or self._id
            logger.info("codex.thread.started id={}", self._id)
            return None
        if kind == "error":
            return TurnFailedEvent.model_validate({"error": {"message": str(payload.get("message") or "unknown")}})
        if kind not in EVENT_TYPES:
            logger.debug("codex.stream.skip type={}", kind)
            return None
        try:
            return parse_event(payload)
        except ValidationError as exc:
            logger.warning("codex.stream.invalid_event type={} error={}", kind, exc)
            return None

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        if self._api_key:
            env["CODEX_API_KEY"] = self._api_key
        return env

