"""Single task runner driven by declarative task specs."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date

from loguru import logger

from familyoffice.context.market import QuoteProvider
from familyoffice.context.providers import current_date_text, market_data_block
from familyoffice.errors import FamilyOfficeError
from familyoffice.logging_utils import session_scope
from familyoffice.prompts.loader import PromptLoader, fill_template
from familyoffice.runtime.reducer import PartialCallback, ProgressCallback, StreamReducer, TurnResult, emit
from familyoffice.runtime.session import Session, SessionOpener, SessionRegistry, session_key
from familyoffice.tasks.spec import SessionPolicy, TaskRequest, TaskSpec


class TaskRunner:
    """Gather context, fill the template, pick a session and reduce the turn.

    Errors from the template, session or reducer layers keep their type and
    gain the task's failure prefix. Nothing is retried.
    """

    def __init__(
        self,
        *,
        opener: SessionOpener,
        registry: SessionRegistry,
        loader: PromptLoader,
        reducer: StreamReducer,
        quotes: QuoteProvider | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._opener = opener
        self._registry = registry
        self._loader = loader
        self._reducer = reducer
        self._quotes = quotes
        self._today = today

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    async def run(
        self,
        spec: TaskSpec,
        request: TaskRequest,
        *,
        on_progress: ProgressCallback | None = None,
        on_partial: PartialCallback | None = None,
    ) -> TurnResult:
        key = session_key(spec.family.value, request.ticker)
        logger.info("task.start family={} ticker={}", spec.family.value, request.ticker)
        with session_scope(key):
            try:
                result = await self._run(spec, request, on_progress=on_progress, on_partial=on_partial)
            except FamilyOfficeError as exc:
                logger.warning("task.failed family={} error={}", spec.family.value, exc)
                exc.with_prefix(spec.failure_prefix)
                raise
        logger.info(
            "task.done family={} ticker={} chars={}",
            spec.family.value,
            request.ticker,
            len(result.response_text),
        )
        return result

    async def _run(
        self,
        spec: TaskSpec,
        request: TaskRequest,
        *,
        on_progress: ProgressCallback | None,
        on_partial: PartialCallback | None,
    ) -> TurnResult:
        if spec.session_policy is SessionPolicy.REUSE:
            if spec.build_message is None:
                raise ValueError(f"{spec.family.value}: reuse sessions need a message builder")
            # Validate the message before a session is opened for it.
            prompt = spec.build_message(request)
            session, _created = await self._registry.get_or_create(
                session_key(spec.family.value, request.ticker),
                lambda: self._open_primed(spec, request, on_progress),
            )
            if request.references:
                tickers = ", ".join(reference.ticker.upper() for reference in request.references)
                await emit(on_progress, f"📚 Including {len(request.references)} reference report(s): {tickers}")
        else:
            session = await self._open(spec, request, on_progress)
            self._registry.set(session.key, session)
            prompt = await self._render(spec, request, session, on_progress)

        await emit(on_progress, spec.running_line)
        result = await self._reducer.reduce(
            session.thread.submit(prompt),
            on_progress,
            on_partial if spec.streams_partial else None,
        )
        session.turns += 1
        return result

    async def _open(self, spec: TaskSpec, request: TaskRequest, on_progress: ProgressCallback | None) -> Session:
        await emit(on_progress, spec.start_line(request))
        session = await self._opener.open(spec.family.value, request.ticker)
        await emit(on_progress, f"📁 Temp directory: {session.working_dir}")
        return session

    async def _open_primed(
        self, spec: TaskSpec, request: TaskRequest, on_progress: ProgressCallback | None
    ) -> Session:
        session = await self._open(spec, request, on_progress)
        context_message = await self._render(spec, request, session, on_progress)
        logger.info("session.prime key={} chars={}", session.key, len(context_message))
        await session.thread.initialize(context_message)
        session.turns += 1
        return session

    async def _render(
        self, spec: TaskSpec, request: TaskRequest, session: Session, on_progress: ProgressCallback | None
    ) -> str:
        template = self._loader.load(spec.template_name)
        await emit(on_progress, "📊 Fetching market data...")
        values = {
            "ticker": request.ticker,
            "companyName": request.label,
            "currentDate": current_date_text(self._today()),
            "tempDir": str(session.working_dir),
            "marketData": await market_data_block(request.ticker, self._quotes),
        }
        values.update(spec.build_variables(request))
        prompt = fill_template(template.content, values)
        missing = [name for name in template.variables if name not in values]
        if missing:
            logger.warning("prompt.unfilled template={} names={}", template.name, missing)
        logger.debug("prompt.render template={} chars={}", template.name, len(prompt))
        return prompt
