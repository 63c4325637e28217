from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
import threading

import pytest

from src.interfaces.api.lifecycle import AppLifecycle, CopilotServer
from src.shared.config import Settings


class FakeServer:
    """Stands in for uvicorn.Server; `drain` models in-flight requests."""

    def __init__(self, drain: float = 0.0, hang: bool = False):
        self.drain = drain
        self.hang = hang
        self.started = False
        self.should_exit = False
        self.force_exit = False
        self.accepting = False

    async def serve(self):
        self.started = True
        self.accepting = True
        while not self.should_exit:
            await asyncio.sleep(0.01)
        self.accepting = False
        if self.drain:
            await asyncio.sleep(self.drain)
        while self.hang and not self.force_exit:
            await asyncio.sleep(0.01)


def _lifecycle(server: FakeServer, exits: list[int] | None = None, **settings) -> AppLifecycle:
    return AppLifecycle(
        app=object(),
        settings=Settings(environment="test", **settings),
        server_factory=lambda app: server,
        exit_process=(exits.append if exits is not None else lambda code: None),
    )


@pytest.mark.anyio
async def test_start_waits_until_serving():
    server = FakeServer()
    lifecycle = _lifecycle(server)

    await lifecycle.start()

    assert server.started
    assert lifecycle.running
    assert await lifecycle.shutdown(grace=1) == 0


@pytest.mark.anyio
async def test_start_twice_is_refused():
    lifecycle = _lifecycle(FakeServer())
    await lifecycle.start()

    with pytest.raises(RuntimeError):
        await lifecycle.start()
    await lifecycle.shutdown(grace=1)


@pytest.mark.anyio
async def test_graceful_shutdown_stops_accepting_then_drains():
    server = FakeServer(drain=0.1)
    lifecycle = _lifecycle(server)
    await lifecycle.start()

    code = await lifecycle.shutdown(grace=2)

    assert code == 0
    assert server.should_exit
    assert not server.accepting
    assert not server.force_exit
    assert not lifecycle.running


@pytest.mark.anyio
async def test_shutdown_forces_exit_after_grace():
    server = FakeServer(hang=True)
    lifecycle = _lifecycle(server)
    await lifecycle.start()

    loop = asyncio.get_running_loop()
    started = loop.time()
    code = await lifecycle.shutdown(grace=0.1)

    assert code == 1
    assert server.force_exit
    assert loop.time() - started < 2
    assert not lifecycle.running


@pytest.mark.anyio
async def test_shutdown_before_start_is_noop():
    assert await _lifecycle(FakeServer()).shutdown(grace=0.1) == 0


@pytest.mark.anyio
async def test_repeated_signals_share_one_shutdown():
    lifecycle = _lifecycle(FakeServer(drain=0.05))
    await lifecycle.start()

    lifecycle.request_shutdown("SIGTERM")
    first = lifecycle._shutdown_task
    lifecycle.request_shutdown("SIGINT")

    assert lifecycle._shutdown_task is first
    assert await first == 0


@pytest.mark.anyio
async def test_run_exits_cleanly_on_sigterm(monkeypatch: pytest.MonkeyPatch):
    # run() installs process-wide hooks; let monkeypatch put them back
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(threading, "excepthook", threading.excepthook)

    server = FakeServer(drain=0.05)
    lifecycle = _lifecycle(server, shutdown_grace=2)
    loop = asyncio.get_running_loop()

    async def _send_sigterm():
        while not server.started:
            await asyncio.sleep(0.01)
        os.kill(os.getpid(), signal.SIGTERM)

    killer = asyncio.create_task(_send_sigterm())
    try:
        code = await asyncio.wait_for(lifecycle.run(), timeout=5)
    finally:
        for sig in AppLifecycle.HANDLED_SIGNALS:
            loop.remove_signal_handler(sig)
        loop.set_exception_handler(None)
        await killer

    assert code == 0
    assert server.should_exit


def test_uncaught_exception_exits_nonzero(caplog: pytest.LogCaptureFixture):
    exits: list[int] = []
    lifecycle = _lifecycle(FakeServer(), exits)

    try:
        raise ValueError("corrupt state")
    except ValueError as exc:
        with caplog.at_level(logging.CRITICAL):
            lifecycle.on_uncaught_exception(type(exc), exc, exc.__traceback__)

    assert exits == [1]
    assert any(r.getMessage() == "uncaught_exception" for r in caplog.records)


def test_unhandled_async_error_is_logged_not_fatal(caplog: pytest.LogCaptureFixture):
    exits: list[int] = []
    lifecycle = _lifecycle(FakeServer(), exits)

    with caplog.at_level(logging.ERROR):
        lifecycle.on_unhandled_async_error(
            None,
            {"message": "Task exception was never retrieved", "exception": KeyError("x")},
        )

    assert exits == []
    record = next(r for r in caplog.records if r.getMessage() == "unhandled_async_error")
    assert record.reason == "Task exception was never retrieved"


def test_default_server_is_built_from_settings():
    lifecycle = AppLifecycle(app=object(), settings=Settings(api_host="127.0.0.1", api_port=5999))

    server = lifecycle._build_uvicorn_server(lifecycle.app)

    assert isinstance(server, CopilotServer)
    assert server.config.host == "127.0.0.1"
    assert server.config.port == 5999
    assert server.config.access_log is False
