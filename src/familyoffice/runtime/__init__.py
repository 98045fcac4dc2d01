"""Agent runtime integration: events, reduction and sessions."""

from familyoffice.runtime.agent import AgentRuntime, AgentThread, ThreadOptions
from familyoffice.runtime.codex import CodexRuntime, CodexThread
from familyoffice.runtime.reducer import StreamReducer, TurnResult
from familyoffice.runtime.session import Session, SessionOpener, SessionRegistry, session_key

__all__ = [
    "AgentRuntime",
    "AgentThread",
    "CodexRuntime",
    "CodexThread",
    "Session",
    "SessionOpener",
    "SessionRegistry",
    "StreamReducer",
    "ThreadOptions",
    "TurnResult",
    "session_key",
]
