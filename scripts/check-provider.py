#!/usr/bin/env python3
"""Show the effective LLM provider configuration and optionally smoke-test it.

Usage:
    python scripts/check-provider.py            # print config (key redacted)
    python scripts/check-provider.py --call     # also send one shorten prompt
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.application.services.llm_runtime_service import LLMRuntimeService
from src.application.services.transform.service import TextTransformService
from src.shared.config import get_settings
from src.shared.errors import AppError


SAMPLE_TEXT = "The quick brown fox jumps over the lazy dog while the farmer watches."


async def smoke_call(runtime: LLMRuntimeService) -> int:
    service = TextTransformService(
        runtime.build_text_generator(),
        timeout=runtime.settings.provider_timeout,
    )
    try:
        result = await service.handle("shorten", SAMPLE_TEXT)
    except AppError as exc:
        print(f"[FAIL] {exc.code}: {exc.message}")
        return 1
    print(f"[OK] {result.result}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--call", action="store_true", help="send one test prompt")
    args = parser.parse_args()

    runtime = LLMRuntimeService(get_settings())
    print(json.dumps(runtime.describe(), indent=2, ensure_ascii=False))

    if args.call:
        sys.exit(asyncio.run(smoke_call(runtime)))


if __name__ == "__main__":
    main()
