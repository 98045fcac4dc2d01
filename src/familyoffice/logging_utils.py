"""Runtime logging helpers."""

from __future__ import annotations

import contextlib
import os
import sys
from collections.abc import Iterator
from contextvars import ContextVar
from logging import Handler
from typing import Literal

import loguru
from loguru import logger
from rich import get_console
from rich.logging import RichHandler

LogProfile = Literal["default", "console"]

_PROFILE_FORMATS: dict[LogProfile, str] = {
    "console": "{extra[session]} | {message}",
    "default": "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {extra[session]} | {message}",
}
_CONFIGURED_PROFILE: LogProfile | None = None
_session_context: ContextVar[str] = ContextVar("session_key")


def current_session_key() -> str:
    """Get the key of the session currently driving a turn."""
    return _session_context.get("-")


@contextlib.contextmanager
def session_scope(key: str) -> Iterator[None]:
    """Tag log records emitted inside the block with a session key."""
    token = _session_context.set(key)
    try:
        yield
    finally:
        _session_context.reset(token)


def _build_console_handler() -> Handler:
    return RichHandler(
        console=get_console(),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def configure_logging(*, profile: LogProfile = "default", level: str | None = None) -> None:
    """Configure process-level logging once per profile."""

    def inject_context(record: loguru.Record) -> None:
        record["extra"]["session"] = current_session_key()

    global _CONFIGURED_PROFILE
    if profile == _CONFIGURED_PROFILE:
        return

    resolved_level = (level or os.getenv("FAMILYOFFICE_LOG_LEVEL", "INFO")).upper()
    logger.remove()
    if profile == "console":
        logger.add(
            _build_console_handler(),
            level=resolved_level,
            format=_PROFILE_FORMATS[profile],
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stderr,
            level=resolved_level,
            format=_PROFILE_FORMATS[profile],
            backtrace=False,
            diagnose=False,
        )
    logger.configure(patcher=inject_context)
    _CONFIGURED_PROFILE = profile
