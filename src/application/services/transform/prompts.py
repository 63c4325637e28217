"""Text transform prompt definitions."""

from __future__ import annotations

from src.application.schemas.transform import TransformAction
from src.shared.errors import ValidationError

# Instruction appended to the selected text, per action
INSTRUCTION_SUFFIXES = {
    TransformAction.SHORTEN: " Make it shorter and concise.",
    TransformAction.LENGTHEN: " Make it longer and elaborative.",
}


def parse_action(tag: str | TransformAction) -> TransformAction:
    """Resolve an action tag, rejecting anything outside the closed set."""
    if isinstance(tag, TransformAction):
        return tag
    try:
        return TransformAction(tag)
    except ValueError as exc:
        raise ValidationError(
            code="invalid_action",
            message=f"Unsupported action: {tag}",
            details={"allowed": [a.value for a in TransformAction]},
        ) from exc


def build_prompt(action: str | TransformAction, text: str) -> str:
    return text + INSTRUCTION_SUFFIXES[parse_action(action)]
