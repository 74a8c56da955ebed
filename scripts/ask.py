#!/usr/bin/env python3
"""CLI script to send one prompt through the completion pipeline.

Usage:
    uv run python scripts/ask.py "What is a fenced code block?"
    uv run python scripts/ask.py "Write a long poem" --max-chars 200
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path so we can import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import get_settings
from src.infrastructure.llm import LLMProviderError
from src.infrastructure.llm.factory import create_completion_client
from src.infrastructure.observability import init_observability, shutdown_observability
from src.modules.chat import ChatService, describe_failure


async def ask(prompt: str, max_chars: int | None, budget_seconds: float | None) -> int:
    """Run one prompt and print each reply segment.

    Returns:
        Process exit code.
    """
    settings = get_settings()
    init_observability(
        settings.app_name,
        settings.app_version,
        otlp_endpoint=settings.otel_exporter_endpoint,
        console_export=settings.otel_console_export,
        enabled=settings.otel_enabled,
        sample_rate=settings.otel_sample_rate,
        log_level=settings.log_level,
        log_json=settings.log_json,
    )

    try:
        client = create_completion_client(settings)
    except LLMProviderError as e:
        print(f"✗ Error: {e}", file=sys.stderr)
        print("  Set MISTRAL_API_KEY and/or GROQ_API_KEY in your .env file", file=sys.stderr)
        return 1

    service = ChatService(
        client,
        max_chars=max_chars or settings.message_max_chars,
        budget_seconds=budget_seconds or settings.llm_request_budget_seconds,
    )

    try:
        reply = await service.ask(prompt)
    except LLMProviderError as e:
        print(f"✗ {describe_failure(e)}", file=sys.stderr)
        return 1
    finally:
        await client.aclose()
        shutdown_observability()

    for index, segment in enumerate(reply.segments, start=1):
        print(f"--- segment {index}/{len(reply.segments)} ({len(segment)} chars) ---")
        print(segment)
    for attachment in reply.attachments:
        print(f"✓ Attachment: {attachment.filename} ({attachment.content_type}, {len(attachment.data)} bytes)")
    print(f"✓ Answered by {reply.provider}")
    return 0


def main() -> None:
    """Parse arguments and ask."""
    parser = argparse.ArgumentParser(
        description="Send one prompt through the completion pipeline",
    )
    parser.add_argument("prompt", help="Prompt to send")
    parser.add_argument(
        "--max-chars",
        type=int,
        default=None,
        help="Per-message size limit (default: MESSAGE_MAX_CHARS setting)",
    )
    parser.add_argument(
        "--budget",
        type=float,
        default=None,
        help="Overall time budget in seconds",
    )

    args = parser.parse_args()
    sys.exit(asyncio.run(ask(args.prompt, args.max_chars, args.budget)))


if __name__ == "__main__":
    main()
