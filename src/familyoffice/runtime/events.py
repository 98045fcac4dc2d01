"""Stream events emitted while the agent runtime executes one turn."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter

# ============================================================================
# ITEMS
# ============================================================================


class _Item(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    id: str | None = None


class AgentMessageItem(_Item):
    type: Literal["agent_message"] = "agent_message"
    text: str = ""


class ReasoningItem(_Item):
    type: Literal["reasoning"] = "reasoning"
    text: str = ""


class WebSearchItem(_Item):
    type: Literal["web_search"] = "web_search"
    query: str = ""
    result_count: int | None = None


class CommandItem(_Item):
    """Shell command run by the agent; `bash` is an alias kind."""

    type: Literal["command_execution", "bash"] = "command_execution"
    command: str = ""
    exit_code: int | None = None
    aggregated_output: str = ""
    stdout: str = ""
    stderr: str = ""
    status: str | None = None


class FileItem(_Item):
    type: Literal["file_read", "file_write", "file_edit"]
    path: str = ""
    size: int | None = None


class DirectoryListItem(_Item):
    type: Literal["directory_list"] = "directory_list"
    path: str = ""
    entry_count: int | None = None


class FileChange(BaseModel):
    path: str
    kind: str = "update"


class FileChangeItem(_Item):
    type: Literal["file_change"] = "file_change"
    changes: list[FileChange] = Field(default_factory=list)
    status: str | None = None


class McpToolCallItem(_Item):
    type: Literal["mcp_tool_call"] = "mcp_tool_call"
    server: str = ""
    tool: str = ""
    status: str | None = None


class TodoEntry(BaseModel):
    text: str
    completed: bool = False


class TodoListItem(_Item):
    type: Literal["todo_list"] = "todo_list"
    items: list[TodoEntry] = Field(default_factory=list)


class ErrorItem(_Item):
    type: Literal["error"] = "error"
    message: str = ""


class OtherItem(_Item):
    """Any item kind this client does not model."""

    type: str


_ITEM_TAGS = frozenset({
    "agent_message",
    "reasoning",
    "web_search",
    "command_execution",
    "bash",
    "file_read",
    "file_write",
    "file_edit",
    "directory_list",
    "file_change",
    "mcp_tool_call",
    "todo_list",
    "error",
})
_ITEM_TAG_ALIASES = {"bash": "command_execution", "file_read": "file", "file_write": "file", "file_edit": "file"}


def _item_tag(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    if kind not in _ITEM_TAGS:
        return "other"
    return _ITEM_TAG_ALIASES.get(kind, kind)


StreamItem = Annotated[
    Union[
        Annotated[AgentMessageItem, Tag("agent_message")],
        Annotated[ReasoningItem, Tag("reasoning")],
        Annotated[WebSearchItem, Tag("web_search")],
        Annotated[CommandItem, Tag("command_execution")],
        Annotated[FileItem, Tag("file")],
        Annotated[DirectoryListItem, Tag("directory_list")],
        Annotated[FileChangeItem, Tag("file_change")],
        Annotated[McpToolCallItem, Tag("mcp_tool_call")],
        Annotated[TodoListItem, Tag("todo_list")],
        Annotated[ErrorItem, Tag("error")],
        Annotated[OtherItem, Tag("other")],
    ],
    Discriminator(_item_tag),
]

# ============================================================================
# EVENTS
# ============================================================================


class Usage(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    input_tokens: int = 0
    output_tokens: int = 0
    cached_input_tokens: int = 0


class TurnError(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    message: str = "unknown error"


class _Event(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)


class ItemStartedEvent(_Event):
    type: Literal["item.started"] = "item.started"
    item: StreamItem


class ItemUpdatedEvent(_Event):
    type: Literal["item.updated"] = "item.updated"
    item: StreamItem


class ItemCompletedEvent(_Event):
    type: Literal["item.completed"] = "item.completed"
    item: StreamItem


class TurnCompletedEvent(_Event):
    type: Literal["turn.completed"] = "turn.completed"
    usage: Usage | None = None


class TurnFailedEvent(_Event):
    type: Literal["turn.failed"] = "turn.failed"
    error: TurnError = Field(default_factory=TurnError)


StreamEvent = Annotated[
    ItemStartedEvent | ItemUpdatedEvent | ItemCompletedEvent | TurnCompletedEvent | TurnFailedEvent,
    Field(discriminator="type"),
]

EVENT_TYPES = frozenset({"item.started", "item.updated", "item.completed", "turn.completed", "turn.failed"})
_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def parse_event(payload: dict[str, Any]) -> StreamEvent:
    """Validate one decoded event payload into its typed variant."""
    return _event_adapter.validate_python(payload)


def agent_message(text: str, *, completed: bool = True) -> ItemUpdatedEvent | ItemCompletedEvent:
    """Build an agent_message event."""
    item = AgentMessageItem(text=text)
    if completed:
        return ItemCompletedEvent(item=item)
    return ItemUpdatedEvent(item=item)
