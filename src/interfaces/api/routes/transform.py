"""Text transform API routes.

`/api/make-shorter` and `/api/make-longer` are the primary endpoints;
`/ai/{action}` accepts the action as a path segment.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.application.schemas.transform import (
    ErrorEnvelope,
    TransformAction,
    TransformRequest,
    TransformResult,
)
from src.application.services.transform.prompts import parse_action
from src.application.services.transform.service import TextTransformService
from src.interfaces.api.deps import get_transform_service, require_text

router = APIRouter(tags=["transform"])

_ERROR_RESPONSES = {
    400: {"model": ErrorEnvelope, "description": "Invalid request"},
    500: {"model": ErrorEnvelope, "description": "Provider or internal failure"},
    504: {"model": ErrorEnvelope, "description": "Provider timed out"},
}


@router.post(
    "/api/make-shorter",
    response_model=TransformResult,
    responses=_ERROR_RESPONSES,
    summary="Shorten text",
)
async def make_shorter(
    req: TransformRequest = Depends(require_text),
    service: TextTransformService = Depends(get_transform_service),
) -> TransformResult:
    return await service.handle(TransformAction.SHORTEN, req.text)


@router.post(
    "/api/make-longer",
    response_model=TransformResult,
    responses=_ERROR_RESPONSES,
    summary="Lengthen text",
)
async def make_longer(
    req: TransformRequest = Depends(require_text),
    service: TextTransformService = Depends(get_transform_service),
) -> TransformResult:
    return await service.handle(TransformAction.LENGTHEN, req.text)


def _resolve_action(action: str) -> TransformAction:
    return parse_action(action)


@router.post(
    "/ai/{action}",
    response_model=TransformResult,
    responses=_ERROR_RESPONSES,
    summary="Transform text by action name",
    description="`action` is `shorten` or `lengthen`; anything else is rejected.",
)
async def transform_by_action(
    action: TransformAction = Depends(_resolve_action),
    req: TransformRequest = Depends(require_text),
    service: TextTransformService = Depends(get_transform_service),
) -> TransformResult:
    return await service.handle(action, req.text)
