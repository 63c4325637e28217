from __future__ import annotations

import contextvars
import uuid


REQUEST_ID_HEADER = "X-Request-ID"

request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id",
    default=None,
)


def new_request_id() -> str:
    return uuid.uuid4().hex


def resolve_request_id(incoming: str | None) -> str:
    """Reuse a caller-supplied id when it looks sane, otherwise mint one."""
    if incoming:
        incoming = incoming.strip()
        if 0 < len(incoming) <= 128 and incoming.isprintable():
            return incoming
    return new_request_id()


def get_request_id() -> str | None:
    return request_id_var.get()


def set_request_id(request_id: str | None) -> None:
    request_id_var.set(request_id)
