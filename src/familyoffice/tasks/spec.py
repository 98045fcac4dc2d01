"""Declarative descriptions of the five task families."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum

from familyoffice.context.providers import (
    ChatHistoryMessage,
    ReferenceReport,
    append_reference_reports,
    chat_history_section,
    report_context,
)
from familyoffice.errors import InvalidRequestError


class TaskFamily(str, Enum):
    RESEARCH = "research"
    REEVALUATE = "reevaluate"
    CHAT = "chat"
    UPDATE = "update"
    CHECKER = "checker"


class SessionPolicy(str, Enum):
    FRESH = "fresh"
    REUSE = "reuse"


@dataclass(frozen=True)
class TaskRequest:
    """Caller input for one task invocation."""

    ticker: str
    company_name: str | None = None
    report_content: str | None = None
    chat_history: Sequence[ChatHistoryMessage] = field(default_factory=tuple)
    message: str | None = None
    references: Sequence[ReferenceReport] = field(default_factory=tuple)

    @property
    def label(self) -> str:
        return self.company_name or self.ticker


VariableBuilder = Callable[[TaskRequest], Mapping[str, str]]
MessageBuilder = Callable[[TaskRequest], str]
LineBuilder = Callable[[TaskRequest], str]


def _no_variables(_request: TaskRequest) -> Mapping[str, str]:
    return {}


@dataclass(frozen=True)
class TaskSpec:
    """Template, context and session policy for one task family.

    `build_variables` adds family-specific values on top of the common
    ticker, company, date, scratch-directory and market-data variables.
    For reuse sessions the template primes the session once and every call
    submits `build_message(request)` instead.
    """

    family: TaskFamily
    template_name: str
    failure_prefix: str
    start_line: LineBuilder
    running_line: str
    build_variables: VariableBuilder = _no_variables
    session_policy: SessionPolicy = SessionPolicy.FRESH
    build_message: MessageBuilder | None = None
    streams_partial: bool = False


def _report_text(request: TaskRequest) -> str:
    return request.report_content or "_No report supplied._"


def _chat_message(request: TaskRequest) -> str:
    if not request.message:
        raise InvalidRequestError("Chat requests require a message")
    return append_reference_reports(request.message, request.references)


RESEARCH = TaskSpec(
    family=TaskFamily.RESEARCH,
    template_name="research-stock",
    failure_prefix="Research failed",
    start_line=lambda request: f"🔍 Starting research on {request.label} ({request.ticker})...",
    running_line="Running research...",
)

REEVALUATE = TaskSpec(
    family=TaskFamily.REEVALUATE,
    template_name="reevaluate-stock",
    failure_prefix="Reevaluation failed",
    start_line=lambda request: f"🔄 Starting reevaluation of {request.label} ({request.ticker})...",
    running_line="Running reevaluation...",
    build_variables=lambda request: {"reportContent": _report_text(request)},
)

CHAT = TaskSpec(
    family=TaskFamily.CHAT,
    template_name="chat-stock",
    failure_prefix="Chat failed",
    start_line=lambda request: f"💬 Starting new chat thread about {request.ticker}...",
    running_line="Thinking...",
    build_variables=lambda request: {"reportContext": report_context(request.report_content)},
    session_policy=SessionPolicy.REUSE,
    build_message=_chat_message,
    streams_partial=True,
)

UPDATE = TaskSpec(
    family=TaskFamily.UPDATE,
    template_name="update-report",
    failure_prefix="Report update failed",
    start_line=lambda request: f"📝 Updating {request.ticker} report...",
    running_line="Generating updated report...",
    build_variables=lambda request: {
        "chatHistorySection": chat_history_section(request.ticker, request.chat_history),
        "reportContent": _report_text(request),
    },
)

CHECKER = TaskSpec(
    family=TaskFamily.CHECKER,
    template_name="checker-pass",
    failure_prefix="Checker pass failed",
    start_line=lambda request: f"✅ Running quality check on {request.ticker} report...",
    running_line="Running quality checks...",
    build_variables=lambda request: {"reportContent": _report_text(request)},
)

TASK_SPECS: dict[TaskFamily, TaskSpec] = {spec.family: spec for spec in (RESEARCH, REEVALUATE, CHAT, UPDATE, CHECKER)}
