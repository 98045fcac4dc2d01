import pytest

from familyoffice.errors import EmptyResponseError, TurnFailedError
from familyoffice.runtime.events import (
    AgentMessageItem,
    ItemUpdatedEvent,
    TurnCompletedEvent,
    TurnFailedEvent,
    TurnError,
    Usage,
    agent_message,
)
from familyoffice.runtime.reducer import StreamReducer, TurnResult

from fakes import events_from, stream


@pytest.mark.asyncio
async def test_last_agent_message_wins() -> None:
    events = [agent_message("A"), agent_message("B"), TurnCompletedEvent()]

    result = await StreamReducer().reduce(stream(events))

    assert result == TurnResult(response_text="B", usage=None)


@pytest.mark.asyncio
async def test_turn_failed_discards_partial_text() -> None:
    events = [agent_message("partial", completed=False), TurnFailedEvent(error=TurnError(message="x"))]

    with pytest.raises(TurnFailedError) as exc_info:
        await StreamReducer().reduce(stream(events))

    assert exc_info.value.error == "x"
    assert "x" in str(exc_info.value)


@pytest.mark.asyncio
async def test_turn_failed_stops_consuming() -> None:
    consumed: list[str] = []

    async def _events():
        consumed.append("fail")
        yield TurnFailedEvent(error=TurnError(message="boom"))
        consumed.append("after")
        yield agent_message("late")

    with pytest.raises(TurnFailedError):
        await StreamReducer().reduce(_events())
    assert consumed == ["fail"]


@pytest.mark.asyncio
async def test_missing_agent_message_is_an_error() -> None:
    events = [TurnCompletedEvent(usage=Usage(input_tokens=5, output_tokens=0))]

    with pytest.raises(EmptyResponseError):
        await StreamReducer().reduce(stream(events))


@pytest.mark.asyncio
async def test_empty_agent_message_is_an_error() -> None:
    with pytest.raises(EmptyResponseError):
        await StreamReducer().reduce(stream([agent_message(""), TurnCompletedEvent()]))


@pytest.mark.asyncio
async def test_usage_is_passed_through() -> None:
    events = [agent_message("ok"), TurnCompletedEvent(usage=Usage(input_tokens=10, output_tokens=20))]

    result = await StreamReducer().reduce(stream(events))

    assert result.response_text == "ok"
    assert result.usage == Usage(input_tokens=10, output_tokens=20)


@pytest.mark.asyncio
async def test_turn_completed_without_usage_keeps_usage_unset() -> None:
    result = await StreamReducer().reduce(stream([agent_message("ok"), TurnCompletedEvent()]))
    assert result.usage is None


@pytest.mark.asyncio
async def test_partial_callback_sees_updates_only() -> None:
    partials: list[str] = []
    events = [
        ItemUpdatedEvent(item=AgentMessageItem(text="Hel")),
        ItemUpdatedEvent(item=AgentMessageItem(text="Hello")),
        agent_message("Hello there"),
        TurnCompletedEvent(),
    ]

    result = await StreamReducer().reduce(stream(events), on_partial=partials.append)

    assert partials == ["Hel", "Hello"]
    assert result.response_text == "Hello there"


@pytest.mark.asyncio
async def test_progress_lines_follow_item_kinds() -> None:
    lines: list[str] = []
    events = events_from(
        {"type": "item.started", "item": {"type": "web_search", "query": "AAPL earnings"}},
        {"type": "item.completed", "item": {"type": "web_search", "query": "AAPL earnings", "result_count": 4}},
        {"type": "item.started", "item": {"type": "reasoning", "text": ""}},
        {"type": "item.completed", "item": {"type": "reasoning", "text": "r" * 200}},
        {"type": "item.started", "item": {"type": "command_execution", "command": "ls"}},
        {"type": "item.completed", "item": {"type": "command_execution", "command": "ls", "exit_code": 0}},
        {"type": "item.started", "item": {"type": "file_write", "path": "notes.md"}},
        {"type": "item.completed", "item": {"type": "file_write", "path": "notes.md", "size": 42}},
        {
            "type": "item.updated",
            "item": {"type": "todo_list", "items": [{"text": "search", "completed": True}, {"text": "write"}]},
        },
        {"type": "item.completed", "item": {"type": "agent_message", "text": "done"}},
        {"type": "turn.completed", "usage": {"input_tokens": 3, "output_tokens": 4}},
    )

    await StreamReducer().reduce(stream(events), on_progress=lines.append)

    assert lines == [
        "🔎 Searching: AAPL earnings",
        "✓ Search completed (4 results)",
        "💭 Agent is thinking...",
        "💭 " + "r" * 150 + "...",
        "⚙️ Executing command: ls",
        "✓ Command finished (exit 0)",
        "📄 Writing: notes.md",
        "✓ Wrote notes.md (42 bytes)",
        "📋 Plan:\n     1. [✓] search\n     2. [ ] write",
        "✅ Task completed!",
        "Tokens: 3 in, 4 out",
    ]


@pytest.mark.asyncio
async def test_unknown_item_kinds_only_reported_when_verbose() -> None:
    payloads = (
        {"type": "item.started", "item": {"type": "hologram", "id": "i1"}},
        {"type": "item.completed", "item": {"type": "agent_message", "text": "ok"}},
    )
    quiet: list[str] = []
    loud: list[str] = []

    await StreamReducer().reduce(stream(events_from(*payloads)), on_progress=quiet.append)
    await StreamReducer(verbose=True).reduce(stream(events_from(*payloads)), on_progress=loud.append)

    assert quiet == []
    assert loud == ["[Event 1] item.started", "⚙️ Item started: hologram", "[Event 2] item.completed"]


@pytest.mark.asyncio
async def test_failing_progress_callback_does_not_abort() -> None:
    def _explode(_line: str) -> None:
        raise RuntimeError("ui went away")

    events = events_from(
        {"type": "item.started", "item": {"type": "web_search", "query": "q"}},
        {"type": "item.updated", "item": {"type": "agent_message", "text": "par"}},
        {"type": "item.completed", "item": {"type": "agent_message", "text": "final"}},
        {"type": "turn.completed"},
    )

    result = await StreamReducer().reduce(stream(events), on_progress=_explode, on_partial=_explode)

    assert result.response_text == "final"


@pytest.mark.asyncio
async def test_async_callbacks_are_awaited() -> None:
    lines: list[str] = []

    async def _collect(line: str) -> None:
        lines.append(line)

    await StreamReducer().reduce(stream([agent_message("ok"), TurnCompletedEvent()]), on_progress=_collect)

    assert lines == ["✅ Task completed!"]


def _tracked_stream(events, closed: list[bool]):
    async def _generate():
        try:
            for event in events:
                yield event
        finally:
            closed.append(True)

    return _generate()


@pytest.mark.asyncio
async def test_stream_is_closed_when_turn_fails() -> None:
    closed: list[bool] = []
    events = [
        agent_message("partial", completed=False),
        TurnFailedEvent(error=TurnError(message="x")),
        agent_message("never read"),
    ]

    with pytest.raises(TurnFailedError):
        await StreamReducer().reduce(_tracked_stream(events, closed))

    assert closed == [True]


@pytest.mark.asyncio
async def test_stream_is_closed_after_success() -> None:
    closed: list[bool] = []

    result = await StreamReducer().reduce(_tracked_stream([agent_message("done"), TurnCompletedEvent()], closed))

    assert result.response_text == "done"
    assert closed == [True]


@pytest.mark.asyncio
async def test_plain_async_iterables_are_accepted() -> None:
    class _Events:
        def __init__(self, events) -> None:
            self._events = list(events)

        def __aiter__(self):
            return self

        async def __anext__(self):
            if not self._events:
                raise StopAsyncIteration
            return self._events.pop(0)

    result = await StreamReducer().reduce(_Events([agent_message("ok"), TurnCompletedEvent()]))

    assert result.response_text == "ok"
