"""Shared FastAPI dependencies."""

from __future__ import annotations

import json

from fastapi import Depends, Request

from src.application.schemas.transform import TransformRequest
from src.application.services.llm_runtime_service import TextGenerator
from src.application.services.transform.service import TextTransformService
from src.shared.config import Settings, get_settings
from src.shared.errors import ValidationError
from src.shared.logging import get_logger

log = get_logger(__name__)


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_text_generator(request: Request) -> TextGenerator:
    return request.app.state.text_generator


def get_transform_service(
    generator: TextGenerator = Depends(get_text_generator),
    settings: Settings = Depends(get_app_settings),
) -> TextTransformService:
    return TextTransformService(generator, timeout=settings.provider_timeout)


def _reject(request: Request, code: str, message: str, **fields) -> ValidationError:
    log.warning(
        "transform_request_rejected",
        extra={"condition": code, "path": request.url.path, **fields},
    )
    return ValidationError(code=code, message=message)


async def require_text(request: Request) -> TransformRequest:
    """Validate the transform body before any provider work happens.

    Rejects, in order: unreadable body, missing `text`, non-string `text`,
    blank `text`. The accepted text is passed on untouched.
    """
    # BodySizeLimitMiddleware stops the read once max_request_size is crossed
    raw = await request.body()

    try:
        body = json.loads(raw) if raw else {}
    except (UnicodeDecodeError, json.JSONDecodeError):
        body = None
    if not isinstance(body, dict):
        raise _reject(request, "malformed_body", "Request body must be a JSON object")

    text = body.get("text")
    if text is None:
        raise _reject(request, "missing_field", "Text field is required")
    if not isinstance(text, str):
        raise _reject(
            request,
            "wrong_type",
            "Text must be a string",
            type=type(text).__name__,
        )
    if not text.strip():
        raise _reject(request, "empty_text", "Text cannot be empty")

    return TransformRequest(text=text)
