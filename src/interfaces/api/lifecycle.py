"""Process lifecycle for the API server.

`AppLifecycle` owns everything process-wide: the uvicorn server handle, the
SIGINT/SIGTERM handlers and the last-resort exception hooks. Shutdown closes
the listening sockets first, then waits for in-flight requests, and forces
the exit once the grace window runs out.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
import sys
import threading
from typing import Any, Callable

import uvicorn

from src.shared.config import Settings
from src.shared.logging import get_logger

log = get_logger(__name__)


class CopilotServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to `AppLifecycle`."""

    def install_signal_handlers(self) -> None:
        # uvicorn < 0.29
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        # uvicorn >= 0.29
        yield


class AppLifecycle:
    HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(
        self,
        app: Any,
        settings: Settings,
        server_factory: Callable[[Any], Any] | None = None,
        exit_process: Callable[[int], None] = os._exit,
    ):
        """
        Args:
            app: ASGI application to serve
            settings: listen address and shutdown grace come from here
            server_factory: builds the server object; anything with
                `serve()`, `started`, `should_exit` and `force_exit` works
            exit_process: called with 1 when an uncaught exception escapes
        """
        self.app = app
        self.settings = settings
        self._server_factory = server_factory or self._build_uvicorn_server
        self._exit_process = exit_process
        self._server: Any = None
        self._serve_task: asyncio.Task | None = None
        self._shutdown_task: asyncio.Future | None = None
        self.exit_code = 0

    def _build_uvicorn_server(self, app: Any) -> CopilotServer:
        config = uvicorn.Config(
            app,
            host=self.settings.api_host,
            port=self.settings.api_port,
            # root logger is already JSON; RequestContextMiddleware logs access
            log_config=None,
            access_log=False,
        )
        return CopilotServer(config)

    @property
    def running(self) -> bool:
        return self._serve_task is not None and not self._serve_task.done()

    async def start(self) -> None:
        """Start serving and return once the server accepts connections."""
        if self._serve_task is not None:
            raise RuntimeError("server already started")

        self._server = self._server_factory(self.app)
        self._serve_task = asyncio.create_task(self._server.serve())
        while not self._server.started:
            if self._serve_task.done():
                # surfaces bind errors and the like
                self._serve_task.result()
                raise RuntimeError("server stopped during startup")
            await asyncio.sleep(0.05)

        log.info(
            "server_started",
            extra={
                "port": self.settings.api_port,
                "environment": self.settings.environment,
                "url": f"http://{self.settings.api_host}:{self.settings.api_port}",
            },
        )

    async def shutdown(self, grace: float | None = None) -> int:
        """Stop accepting connections and drain in-flight requests.

        Returns:
            0 when everything finished inside `grace` seconds, 1 when the
            server had to be forced down.
        """
        if grace is None:
            grace = self.settings.shutdown_grace
        if self._serve_task is None:
            return self.exit_code

        log.info("shutdown_started", extra={"grace": grace})
        # uvicorn closes its listeners before it waits on open connections
        self._server.should_exit = True
        try:
            await asyncio.wait_for(asyncio.shield(self._serve_task), timeout=grace)
        except asyncio.TimeoutError:
            log.error("forced_shutdown", extra={"grace": grace})
            self._server.force_exit = True
            self._serve_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._serve_task
            self.exit_code = 1
        else:
            log.info("server_closed")
            self.exit_code = 0
        return self.exit_code

    def request_shutdown(self, signame: str) -> None:
        """Signal callback; repeated signals do not restart the grace window."""
        if self._shutdown_task is not None:
            return
        log.info("shutdown_signal_received", extra={"signal": signame})
        self._shutdown_task = asyncio.ensure_future(self.shutdown())

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in self.HANDLED_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig.name)
            except NotImplementedError:
                # Windows event loops
                signal.signal(
                    sig,
                    lambda signum, _frame: loop.call_soon_threadsafe(
                        self.request_shutdown, signal.Signals(signum).name
                    ),
                )

    def install_process_hooks(self, loop: asyncio.AbstractEventLoop) -> None:
        sys.excepthook = self.on_uncaught_exception
        threading.excepthook = lambda args: self.on_uncaught_exception(
            args.exc_type, args.exc_value, args.exc_traceback
        )
        loop.set_exception_handler(self.on_unhandled_async_error)

    def on_uncaught_exception(self, exc_type, exc, tb) -> None:
        # process state is suspect from here on: log and leave
        log.critical(
            "uncaught_exception",
            exc_info=(exc_type, exc, tb),
            extra={"error": str(exc)},
        )
        self._exit_process(1)

    def on_unhandled_async_error(
        self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
    ) -> None:
        exc = context.get("exception")
        log.error(
            "unhandled_async_error",
            exc_info=exc,
            extra={"reason": context.get("message") or str(exc)},
        )

    async def run(self) -> int:
        """Serve until a signal arrives; returns the process exit code."""
        loop = asyncio.get_running_loop()
        self.install_process_hooks(loop)
        self.install_signal_handlers(loop)

        await self.start()
        await asyncio.wait([self._serve_task])
        if self._shutdown_task is not None:
            return await self._shutdown_task
        # server stopped on its own
        self._serve_task.result()
        return self.exit_code
