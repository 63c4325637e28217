from __future__ import annotations

import logging
from typing import Any

try:
    # pythonjsonlogger>=3 moved JsonFormatter here
    from pythonjsonlogger.json import JsonFormatter  # type: ignore
except ImportError:  # pragma: no cover
    from pythonjsonlogger import jsonlogger  # type: ignore

    JsonFormatter = jsonlogger.JsonFormatter  # type: ignore

from src.shared.request_id import get_request_id

JSON_HANDLER_NAME = "copilot-json"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True


class EnvironmentFilter(logging.Filter):
    """Stamp every record with the deployment environment."""

    def __init__(self, environment: str) -> None:
        super().__init__()
        self.environment = environment

    def filter(self, record: logging.LogRecord) -> bool:
        record.env = self.environment
        return True


def configure_logging(level: str = "INFO", environment: str = "development") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())

    handler = logging.StreamHandler()
    formatter = JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s %(env)s"
    )
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(EnvironmentFilter(environment))
    handler.set_name(JSON_HANDLER_NAME)

    # swap out our previous handler so repeated create_app() calls do not
    # duplicate output; handlers installed by others (e.g. pytest) stay
    remove_json_handler()
    root.addHandler(handler)


def remove_json_handler() -> None:
    root = logging.getLogger()
    for h in list(root.handlers):
        if h.get_name() == JSON_HANDLER_NAME:
            root.removeHandler(h)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


logger = get_logger("app")


def log_extra(**kwargs: Any) -> dict[str, Any]:
    # structured fields go through `extra`
    return {"extra": kwargs}
