"""Caller-facing entry point for the five research tasks."""

from __future__ import annotations

from collections.abc import Sequence

from familyoffice.config import Settings
from familyoffice.context.market import AlphaVantageQuoteProvider, QuoteProvider
from familyoffice.context.providers import ChatHistoryMessage, ReferenceReport
from familyoffice.prompts.loader import PromptLoader
from familyoffice.runtime.agent import AgentRuntime, ThreadOptions
from familyoffice.runtime.codex import CodexRuntime
from familyoffice.runtime.reducer import PartialCallback, ProgressCallback, StreamReducer, TurnResult
from familyoffice.runtime.session import SessionOpener, SessionRegistry
from familyoffice.tasks.runner import TaskRunner
from familyoffice.tasks.spec import CHAT, CHECKER, REEVALUATE, RESEARCH, UPDATE, TaskRequest


class ResearchDesk:
    """Owns one session registry and runs tasks against it."""

    def __init__(self, runner: TaskRunner) -> None:
        self._runner = runner

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        runtime: AgentRuntime | None = None,
        quotes: QuoteProvider | None = None,
    ) -> ResearchDesk:
        if runtime is None:
            runtime = CodexRuntime((settings.codex_binary,), api_key=settings.codex_api_key)
        if quotes is None and settings.alpha_vantage_api_key:
            quotes = AlphaVantageQuoteProvider(
                settings.alpha_vantage_api_key,
                timeout_seconds=settings.market_data_timeout_seconds,
            )
        options = ThreadOptions(
            model=settings.model or None,
            sandbox_mode=settings.sandbox_mode or None,
            skip_git_repo_check=settings.skip_git_repo_check,
        )
        runner = TaskRunner(
            opener=SessionOpener(runtime, settings.temp_dir, options),
            registry=SessionRegistry(),
            loader=PromptLoader(settings.prompts_dir),
            reducer=StreamReducer(verbose=settings.verbose),
            quotes=quotes,
        )
        return cls(runner)

    @property
    def sessions(self) -> SessionRegistry:
        return self._runner.registry

    async def research(
        self,
        ticker: str,
        company_name: str | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> TurnResult:
        request = TaskRequest(ticker=ticker, company_name=company_name)
        return await self._runner.run(RESEARCH, request, on_progress=on_progress)

    async def reevaluate(
        self,
        ticker: str,
        existing_report: str,
        company_name: str | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> TurnResult:
        request = TaskRequest(ticker=ticker, company_name=company_name, report_content=existing_report)
        return await self._runner.run(REEVALUATE, request, on_progress=on_progress)

    async def chat(
        self,
        ticker: str,
        message: str,
        report_content: str | None = None,
        references: Sequence[ReferenceReport] = (),
        *,
        on_progress: ProgressCallback | None = None,
        on_partial: PartialCallback | None = None,
    ) -> TurnResult:
        request = TaskRequest(
            ticker=ticker,
            report_content=report_content,
            message=message,
            references=tuple(references),
        )
        return await self._runner.run(CHAT, request, on_progress=on_progress, on_partial=on_partial)

    async def update_report(
        self,
        ticker: str,
        chat_history: Sequence[ChatHistoryMessage] = (),
        report_content: str | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> TurnResult:
        request = TaskRequest(ticker=ticker, report_content=report_content, chat_history=tuple(chat_history))
        return await self._runner.run(UPDATE, request, on_progress=on_progress)

    async def check_report(
        self,
        ticker: str,
        report_content: str,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> TurnResult:
        request = TaskRequest(ticker=ticker, report_content=report_content)
        return await self._runner.run(CHECKER, request, on_progress=on_progress)

    def thread_id(self, key: str) -> str | None:
        session = self.sessions.get(key)
        return session.thread_id if session is not None else None

    def cleanup(self) -> None:
        self.sessions.clear()
