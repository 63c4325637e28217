"""Text transform service.

Responsibilities:
1. Build the prompt for the requested action
2. Make exactly one provider call, bounded by the provider timeout
3. Convert every provider failure into `UpstreamError`
4. Wrap the generated text in the success envelope

Input validation happens before this service is reached; the text is trusted.
"""

from __future__ import annotations

import asyncio

from src.application.schemas.transform import TransformAction, TransformResult
from src.application.services.llm_runtime_service import TextGenerator
from src.shared.clock import utc_timestamp
from src.shared.errors import AppError, UpstreamError
from src.shared.logging import get_logger

from .prompts import build_prompt, parse_action

log = get_logger(__name__)


class TextTransformService:
    def __init__(self, generator: TextGenerator, *, timeout: float | None = None):
        """
        Args:
            generator: provider seam
            timeout: seconds allowed for the provider call, None for no bound
        """
        self._generator = generator
        self._timeout = timeout

    async def handle(self, action: str | TransformAction, text: str) -> TransformResult:
        """Rewrite `text` according to `action`.

        Raises:
            ValidationError: unknown action
            UpstreamError: provider failure, timeout or unusable response
        """
        action = parse_action(action)
        prompt = build_prompt(action, text)

        try:
            output = await asyncio.wait_for(
                self._generator.generate(prompt),
                timeout=self._timeout,
            )
        except AppError:
            raise
        except asyncio.TimeoutError as exc:
            raise UpstreamError(
                code="upstream_timeout",
                message=f"Provider did not respond within {self._timeout}s",
                status_code=504,
                title="Upstream timeout",
            ) from exc
        except Exception as exc:
            raise UpstreamError(
                code="upstream_failed",
                message=f"Provider request failed: {exc.__class__.__name__}: {exc}",
            ) from exc

        if not isinstance(output, str):
            raise UpstreamError(
                code="upstream_bad_response",
                message=f"Provider returned {type(output).__name__} instead of text",
            )

        log.info(
            "transform_completed",
            extra={
                "action": action.value,
                "input_length": len(text),
                "output_length": len(output),
            },
        )
        return TransformResult(result=output, timestamp=utc_timestamp())
