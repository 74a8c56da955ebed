"""System directive sources."""

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path

import structlog

logger = structlog.get_logger()

SystemPromptSource = Callable[[], Awaitable[str]]

DEFAULT_SYSTEM_PROMPT = """You are Yue, a helpful Discord bot assistant.
Answer clearly and concisely.
If you are unsure, say so.
Avoid disallowed content and never request or reveal secrets."""


async def default_system_prompt() -> str:
    """Source that always yields the built-in directive."""
    return DEFAULT_SYSTEM_PROMPT


def file_system_prompt(path: str | Path | None) -> SystemPromptSource:
    """Build a source that reads the directive from a UTF-8 file.

    A missing path, an unreadable file or a blank file all fall back to the
    built-in directive.

    Args:
        path: Prompt file location, or None to always use the default.

    Returns:
        An async callable resolving to the directive text.
    """
    if path is None or not str(path).strip():
        return default_system_prompt

    prompt_path = Path(str(path).strip())

    async def load() -> str:
        try:
            content = await asyncio.to_thread(prompt_path.read_text, "utf-8")
        except OSError as e:
            logger.warning(
                "system_prompt_unreadable",
                path=str(prompt_path),
                error_type=type(e).__name__,
            )
            return DEFAULT_SYSTEM_PROMPT
        return content.strip() or DEFAULT_SYSTEM_PROMPT

    return load


class CachedSystemPrompt:
    """Resolves a directive source once and reuses the value.

    A failing source never breaks a completion: the built-in directive is
    used for that call and the source is retried on the next one.
    """

    def __init__(self, source: SystemPromptSource | None = None) -> None:
        self._source = source or default_system_prompt
        self._value: str | None = None
        self._lock = asyncio.Lock()

    async def __call__(self) -> str:
        if self._value is not None:
            return self._value

        async with self._lock:
            if self._value is not None:
                return self._value
            try:
                value = await self._source()
            except Exception as e:
                logger.warning(
                    "system_prompt_source_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return DEFAULT_SYSTEM_PROMPT

            self._value = value.strip() if value and value.strip() else DEFAULT_SYSTEM_PROMPT
            return self._value

    def invalidate(self) -> None:
        """Forget the cached value so the next call re-reads the source."""
        self._value = None
