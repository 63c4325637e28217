from __future__ import annotations

import asyncio
import contextlib
import os
import sys
from pathlib import Path

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.shared.config import Settings, reset_settings_for_tests
from src.shared.logging import remove_json_handler


class FakeGenerator:
    """Provider double: records prompts, replies, fails or stalls on demand."""

    def __init__(self, reply="generated text"):
        self.reply = reply
        self.error: Exception | None = None
        self.delay = 0.0
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def generate(self, prompt: str):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply(prompt) if callable(self.reply) else self.reply


def make_settings(**overrides) -> Settings:
    return Settings(**{"environment": "test", **overrides})


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch):
    """Keep the developer's shell and `.env` out of every test."""
    for key in list(os.environ):
        if key.startswith("COPILOT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("COPILOT_DISABLE_DOTENV", "1")
    reset_settings_for_tests()
    yield
    reset_settings_for_tests()
    remove_json_handler()


@pytest.fixture()
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture()
def settings_factory():
    return make_settings


@pytest.fixture()
def client_factory(generator: FakeGenerator):
    """Build an app with setting overrides and yield an ASGI-bound client."""
    from src.interfaces.api.app import create_app

    @contextlib.asynccontextmanager
    async def _factory(app=None, **overrides):
        if app is None:
            app = create_app(make_settings(**overrides), text_generator=generator)
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client

    return _factory


@pytest.fixture()
async def api_client(client_factory):
    async with client_factory() as client:
        yield client
