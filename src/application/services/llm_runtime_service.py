"""LLM runtime wrapper.

Builds the chat model for the configured provider and exposes it through one
narrow seam, `TextGenerator.generate(prompt) -> str`, so the transform service
never touches provider-specific types.

Supported provider types:
- openai_compatible: ChatOpenAI (OpenAI or any compatible endpoint)
- ollama: ChatOllama
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from langchain_core.language_models import LanguageModelInput
from langchain_ollama import ChatOllama
from langchain_openai import ChatOpenAI

from src.shared.config import Settings
from src.shared.errors import AppError, UpstreamError
from src.shared.logging import get_logger

log = get_logger(__name__)


# ============== model protocols ==============

@runtime_checkable
class ChatProtocol(Protocol):
    """The slice of a LangChain chat model used here."""

    async def ainvoke(
        self,
        input: LanguageModelInput,
        config: dict | None = None,
    ) -> Any: ...


@runtime_checkable
class TextGenerator(Protocol):
    """Prompt in, generated text out."""

    async def generate(self, prompt: str) -> str: ...


def extract_text(message: Any) -> str:
    """Pull the generated text out of a chat model response.

    Raises:
        UpstreamError: the response carries no text field.
    """
    content = getattr(message, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        # content blocks: plain strings or {"type": "text", "text": ...}
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and isinstance(block.get("text"), str):
                parts.append(block["text"])
        if parts:
            return "".join(parts)
    raise UpstreamError(
        code="upstream_bad_response",
        message=f"Provider response has no text content ({type(message).__name__})",
    )


class LangChainTextGenerator:
    """Adapts a LangChain chat model to `TextGenerator`."""

    def __init__(self, model: ChatProtocol):
        self.model = model

    async def generate(self, prompt: str) -> str:
        message = await self.model.ainvoke(prompt)
        return extract_text(message)


class UnconfiguredTextGenerator:
    """Stands in when no provider credential is configured; every call fails."""

    def __init__(self, reason: str):
        self.reason = reason

    async def generate(self, prompt: str) -> str:
        raise UpstreamError(code="provider_not_configured", message=self.reason)


class LLMRuntimeService:
    """Builds provider clients from settings."""

    PROVIDER_OPENAI_COMPATIBLE = "openai_compatible"
    PROVIDER_OLLAMA = "ollama"

    def __init__(self, settings: Settings):
        self.settings = settings

    def build_text_generator(self) -> TextGenerator:
        """Return the generator for the configured provider.

        A missing credential does not stop the server from starting; the
        transform routes then fail with an upstream error instead.
        """
        try:
            model = self._build_chat_model()
        except AppError as exc:
            log.warning(
                "llm_provider_unavailable",
                extra={
                    "provider_type": self.settings.llm_provider_type,
                    "code": exc.code,
                },
            )
            return UnconfiguredTextGenerator(exc.message)
        return LangChainTextGenerator(model)

    def describe(self) -> dict[str, Any]:
        """Effective provider configuration with the credential redacted."""
        s = self.settings
        return {
            "provider_type": s.llm_provider_type,
            "model": s.llm_model,
            "base_url": (
                s.llm_ollama_base_url
                if s.llm_provider_type == self.PROVIDER_OLLAMA
                else s.llm_base_url or None
            ),
            "api_key": "[redacted]" if s.llm_api_key else None,
            "timeout_seconds": s.provider_timeout,
        }

    # ============== model construction ==============

    def _build_chat_model(self) -> ChatProtocol:
        s = self.settings
        provider_type = s.llm_provider_type.strip().lower()

        if provider_type == self.PROVIDER_OPENAI_COMPATIBLE:
            params: dict[str, Any] = {
                "model": s.llm_model,
                "api_key": self._resolve_api_key(),
                "timeout": s.provider_timeout,
                # one provider call per request
                "max_retries": 0,
            }
            if s.llm_base_url:
                params["base_url"] = s.llm_base_url
            return ChatOpenAI(**params)

        if provider_type == self.PROVIDER_OLLAMA:
            return ChatOllama(
                model=s.llm_model,
                base_url=s.llm_ollama_base_url,
                client_kwargs={"timeout": s.provider_timeout},
            )

        raise AppError(
            code="provider_not_supported",
            message=f"Unsupported provider type: {s.llm_provider_type}",
            status_code=500,
        )

    def _resolve_api_key(self) -> str:
        api_key = self.settings.llm_api_key
        if not api_key:
            raise AppError(
                code="llm_api_key_missing",
                message="Provider API key is not configured (COPILOT_LLM_API_KEY)",
                status_code=500,
            )
        return api_key
