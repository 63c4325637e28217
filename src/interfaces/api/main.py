from __future__ import annotations

import asyncio
import sys

from src.interfaces.api.app import create_app
from src.interfaces.api.lifecycle import AppLifecycle
from src.shared.config import get_settings


app = create_app()


def main() -> None:
    settings = get_settings()
    lifecycle = AppLifecycle(app, settings)
    sys.exit(asyncio.run(lifecycle.run()))


if __name__ == "__main__":
    main()
