"""Fold one turn's event stream into a single aggregated result."""

from __future__ import annotations

import inspect
from collections.abc import AsyncGenerator, AsyncIterable, Awaitable, Callable
from dataclasses import dataclass, field

from loguru import logger

from familyoffice.errors import EmptyResponseError, TurnFailedError
from familyoffice.runtime.events import (
    AgentMessageItem,
    CommandItem,
    DirectoryListItem,
    ErrorItem,
    FileChangeItem,
    FileItem,
    ItemCompletedEvent,
    ItemStartedEvent,
    ItemUpdatedEvent,
    McpToolCallItem,
    OtherItem,
    ReasoningItem,
    StreamEvent,
    StreamItem,
    TodoListItem,
    TurnCompletedEvent,
    TurnFailedEvent,
    Usage,
    WebSearchItem,
)

ProgressCallback = Callable[[str], Awaitable[None] | None]
PartialCallback = Callable[[str], Awaitable[None] | None]

REASONING_SUMMARY_CHARS = 150
VERBOSE_EVENT_LINES = 10


@dataclass(frozen=True)
class TurnResult:
    """Aggregated outcome of one successful turn."""

    response_text: str
    usage: Usage | None = None


@dataclass
class _ReduceState:
    final_text: str = ""
    has_response: bool = False
    usage: Usage | None = None
    event_count: int = 0
    item_kinds: dict[str, int] = field(default_factory=dict)


class StreamReducer:
    """Consume a turn's events in order and reduce them to a `TurnResult`.

    Only `agent_message` items contribute to the response, last write wins.
    A `turn.failed` event aborts the fold and discards any text seen so far.
    Callback failures are logged and ignored.
    """

    def __init__(self, *, verbose: bool = False) -> None:
        self._verbose = verbose

    async def reduce(
        self,
        events: AsyncIterable[StreamEvent],
        on_progress: ProgressCallback | None = None,
        on_partial: PartialCallback | None = None,
    ) -> TurnResult:
        state = _ReduceState()
        stream = aiter(events)
        try:
            async for event in stream:
                state.event_count += 1
                if self._verbose and state.event_count <= VERBOSE_EVENT_LINES:
                    await emit(on_progress, f"[Event {state.event_count}] {event.type}")

                match event:
                    case ItemStartedEvent(item=item):
                        self._count(state, item)
                        if line := self._started_line(item):
                            await emit(on_progress, line)
                    case ItemUpdatedEvent(item=AgentMessageItem(text=text)):
                        state.final_text = text
                        state.has_response = True
                        await emit(on_partial, text)
                    case ItemCompletedEvent(item=AgentMessageItem(text=text)):
                        state.final_text = text
                        state.has_response = True
                    case ItemUpdatedEvent(item=TodoListItem() as item):
                        await emit(on_progress, _plan_line(item))
                    case ItemUpdatedEvent():
                        pass
                    case ItemCompletedEvent(item=item):
                        if line := _completed_line(item):
                            await emit(on_progress, line)
                    case TurnCompletedEvent(usage=usage):
                        if usage is not None:
                            state.usage = usage
                        await emit(on_progress, "✅ Task completed!")
                        if usage is not None:
                            await emit(on_progress, f"Tokens: {usage.input_tokens} in, {usage.output_tokens} out")
                    case TurnFailedEvent(error=error):
                        logger.warning("reducer.turn.failed error={}", error.message)
                        raise TurnFailedError(error.message)
        finally:
            # The runtime stream owns a subprocess; close it before returning or raising.
            if isinstance(stream, AsyncGenerator):
                await stream.aclose()

        logger.debug(
            "reducer.done events={} response_chars={} items={}",
            state.event_count,
            len(state.final_text),
            state.item_kinds,
        )
        if not state.has_response or not state.final_text:
            raise EmptyResponseError()
        return TurnResult(response_text=state.final_text, usage=state.usage)

    @staticmethod
    def _count(state: _ReduceState, item: StreamItem) -> None:
        state.item_kinds[item.type] = state.item_kinds.get(item.type, 0) + 1

    def _started_line(self, item: StreamItem) -> str | None:
        match item:
            case WebSearchItem(query=query):
                return f"🔎 Searching: {query}"
            case ReasoningItem():
                return "💭 Agent is thinking..."
            case CommandItem(command=command):
                return f"⚙️ Executing command: {command}"
            case FileItem(type="file_read", path=path):
                return f"📄 Reading: {path}"
            case FileItem(type="file_write", path=path):
                return f"📄 Writing: {path}"
            case FileItem(path=path):
                return f"📄 Editing: {path}"
            case DirectoryListItem(path=path):
                return f"📂 Listing: {path}"
            case McpToolCallItem(server=server, tool=tool):
                return f"🔌 Calling tool: {server}.{tool}"
            case AgentMessageItem() | TodoListItem() | FileChangeItem() | ErrorItem() | OtherItem():
                return f"⚙️ Item started: {item.type}" if self._verbose else None


def _completed_line(item: StreamItem) -> str | None:
    match item:
        case WebSearchItem(result_count=None):
            return "✓ Search completed"
        case WebSearchItem(result_count=count):
            return f"✓ Search completed ({count} results)"
        case ReasoningItem(text=text):
            if not text:
                return None
            ellipsis = "..." if len(text) > REASONING_SUMMARY_CHARS else ""
            return f"💭 {text[:REASONING_SUMMARY_CHARS]}{ellipsis}"
        case CommandItem(exit_code=None):
            return "✓ Command finished"
        case CommandItem(exit_code=code):
            return f"✓ Command finished (exit {code})"
        case FileItem(type="file_write", path=path, size=size):
            return f"✓ Wrote {path}" + (f" ({size} bytes)" if size is not None else "")
        case FileItem(type="file_read", path=path):
            return f"✓ Read {path}"
        case FileItem(path=path):
            return f"✓ Edited {path}"
        case DirectoryListItem(path=path, entry_count=count):
            return f"✓ Listed {path}" + (f" ({count} entries)" if count is not None else "")
        case FileChangeItem(changes=changes):
            summary = ", ".join(f"{change.kind} {change.path}" for change in changes)
            return f"✓ Changed: {summary}" if summary else None
        case TodoListItem():
            return _plan_line(item)
        case ErrorItem(message=message):
            return f"⚠️ {message}"
        case McpToolCallItem(server=server, tool=tool):
            return f"✓ Tool finished: {server}.{tool}"
        case AgentMessageItem() | OtherItem():
            return None


def _plan_line(item: TodoListItem) -> str:
    todos = "\n     ".join(
        f"{index}. [{'✓' if entry.completed else ' '}] {entry.text}" for index, entry in enumerate(item.items, start=1)
    )
    return f"📋 Plan:\n     {todos}"


async def emit(callback: Callable[[str], Awaitable[None] | None] | None, text: str) -> None:
    if callback is None:
        return
    try:
        result = callback(text)
        if inspect.isawaitable(result):
            await result
    except Exception:
        # A failing callback never aborts the turn.
        logger.opt(exception=True).warning("reducer.callback.error")
