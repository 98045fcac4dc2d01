import asyncio
from pathlib import Path

import pytest
from fakes import FakeRuntime

from familyoffice.errors import SessionCreationError, WorkingDirectoryError
from familyoffice.runtime.agent import ThreadOptions
from familyoffice.runtime.session import Session, SessionOpener, SessionRegistry, session_key


def test_session_key_uses_family_and_upper_ticker() -> None:
    assert session_key("chat", "aapl") == "chat-AAPL"


@pytest.mark.asyncio
async def test_opener_creates_namespaced_working_directory(tmp_path: Path, fake_runtime: FakeRuntime) -> None:
    opener = SessionOpener(fake_runtime, tmp_path / "temp", ThreadOptions(model="m"))

    session = await opener.open("research", "aapl")

    assert session.key == "research-AAPL"
    assert session.working_dir.is_dir()
    assert session.working_dir.parent == tmp_path / "temp"
    assert session.working_dir.name.startswith("AAPL-research-")
    assert fake_runtime.threads[0].working_dir == session.working_dir.resolve()
    assert fake_runtime.threads[0].options.model == "m"


@pytest.mark.asyncio
async def test_opener_reports_directory_failure_before_creating_thread(
    tmp_path: Path, fake_runtime: FakeRuntime
) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    opener = SessionOpener(fake_runtime, blocker, ThreadOptions())

    with pytest.raises(WorkingDirectoryError):
        await opener.open("research", "AAPL")
    assert fake_runtime.threads == []


@pytest.mark.asyncio
async def test_opener_wraps_runtime_os_errors(tmp_path: Path) -> None:
    class _BrokenRuntime:
        async def create_thread(self, working_dir: Path, options: ThreadOptions):
            raise PermissionError("login required")

    opener = SessionOpener(_BrokenRuntime(), tmp_path, ThreadOptions())

    with pytest.raises(SessionCreationError, match="login required"):
        await opener.open("chat", "AAPL")


def _session(key: str, tmp_path: Path) -> Session:
    return Session(key=key, thread=object(), working_dir=tmp_path)  # type: ignore[arg-type]


def test_registry_basic_operations(tmp_path: Path) -> None:
    registry = SessionRegistry()
    session = _session("chat-AAPL", tmp_path)

    registry.set("chat-AAPL", session)
    assert registry.get("chat-AAPL") is session
    assert "chat-AAPL" in registry
    assert registry.keys() == ["chat-AAPL"]

    assert registry.remove("chat-AAPL") is session
    assert registry.get("chat-AAPL") is None
    assert registry.remove("chat-AAPL") is None

    registry.set("a", session)
    registry.set("b", session)
    registry.clear()
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_get_or_create_is_single_flight(tmp_path: Path) -> None:
    registry = SessionRegistry()
    calls = 0

    async def factory() -> Session:
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.01)
        return _session("chat-AAPL", tmp_path)

    results = await asyncio.gather(*(registry.get_or_create("chat-AAPL", factory) for _ in range(5)))

    assert calls == 1
    sessions = {id(session) for session, _created in results}
    assert len(sessions) == 1
    assert sum(created for _session_, created in results) == 1


@pytest.mark.asyncio
async def test_get_or_create_distinct_keys_do_not_block(tmp_path: Path) -> None:
    registry = SessionRegistry()

    first, _ = await registry.get_or_create("chat-AAPL", _async_return(_session("chat-AAPL", tmp_path)))
    second, _ = await registry.get_or_create("chat-MSFT", _async_return(_session("chat-MSFT", tmp_path)))

    assert first is not second
    assert registry.keys() == ["chat-AAPL", "chat-MSFT"]


@pytest.mark.asyncio
async def test_failed_factory_leaves_no_entry(tmp_path: Path) -> None:
    registry = SessionRegistry()

    async def failing() -> Session:
        raise SessionCreationError("nope")

    with pytest.raises(SessionCreationError):
        await registry.get_or_create("chat-AAPL", failing)
    assert registry.get("chat-AAPL") is None

    session, created = await registry.get_or_create("chat-AAPL", _async_return(_session("chat-AAPL", tmp_path)))
    assert created is True
    assert registry.get("chat-AAPL") is session


def _async_return(value: Session):
    async def factory() -> Session:
        return value

    return factory


@pytest.mark.asyncio
async def test_remove_during_in_flight_create_keeps_single_flight(tmp_path: Path) -> None:
    registry = SessionRegistry()
    started = asyncio.Event()
    release = asyncio.Event()
    calls = 0

    async def factory() -> Session:
        nonlocal calls
        calls += 1
        started.set()
        await release.wait()
        return _session("chat-AAPL", tmp_path)

    first = asyncio.create_task(registry.get_or_create("chat-AAPL", factory))
    await started.wait()
    registry.remove("chat-AAPL")
    registry.clear()
    second = asyncio.create_task(registry.get_or_create("chat-AAPL", factory))
    await asyncio.sleep(0)
    release.set()

    (first_session, first_created), (second_session, second_created) = await asyncio.gather(first, second)

    assert calls == 1
    assert first_session is second_session
    assert (first_created, second_created) == (True, False)
