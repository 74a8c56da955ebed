"""Split long completions into transport-sized messages.

Splitting is line oriented and greedy. A fenced code block cut by a split is
closed at the end of one segment and reopened with the same fence line at
the start of the next, so every segment renders as balanced markdown.
"""

from src.infrastructure.observability import traced

MESSAGE_MAX_CHARS = 2000

FENCE = "```"
# "```\nx\n```": the smallest segment that can carry a fenced line
_MIN_FENCED_SEGMENT = len(FENCE) * 2 + 3


def is_fence_line(line: str) -> bool:
    """Whether ``line`` opens or closes a fenced block."""
    return line.strip().startswith(FENCE)


def _close(value: str, fence_open: bool) -> str:
    if not fence_open:
        return value
    if not value:
        return FENCE
    return f"{value}{FENCE}" if value.endswith("\n") else f"{value}\n{FENCE}"


class _SegmentBuilder:
    """Accumulates lines into segments no longer than ``max_chars``."""

    def __init__(self, max_chars: int) -> None:
        self.max_chars = max_chars
        self.segments: list[str] = []
        self.patch_fences = max_chars >= _MIN_FENCED_SEGMENT
        self.open_fence: str | None = None
        self.current = ""
        # current holds nothing but an opening fence line
        self.fresh = False
        # ...and that line was added by a split, not taken from the text
        self.reopened = False

    def add_line(self, line: str) -> None:
        fence_after = self._fence_after(line)

        if self.reopened and fence_after is None and not line.strip().strip("`"):
            # The block ended right at a split; emit nothing for it.
            self._reset()
            self.open_fence = None
            return

        candidate = f"{self.current}\n{line}" if self.current else line
        if len(_close(candidate, fence_after is not None)) <= self.max_chars:
            # An opening fence alone in a chunk is as good as a reopened one.
            self.fresh = (
                not self.current and self.open_fence is None and fence_after is not None
            )
            self.reopened = False
            self.current = candidate
            self.open_fence = fence_after
            return

        if self.current and not self.fresh:
            self.flush()
            self.add_line(line)
            return

        self._hard_slice(line, fence_after)

    def flush(self, *, strip: bool = True) -> None:
        """Emit the current chunk and reopen the fence if one is open."""
        if self.current.strip() and not self.fresh:
            chunk = _close(self.current, self.open_fence is not None)
            self.segments.append(chunk.rstrip() if strip else chunk)

        self._reset()
        if self.open_fence is not None:
            self.current = self._reopen_header(self.open_fence)
            self.fresh = True
            self.reopened = True

    def finish(self) -> list[str]:
        if self.current.strip() and not self.fresh:
            self.segments.append(
                _close(self.current, self.open_fence is not None).rstrip()
            )
        return self.segments or [""]

    def _reset(self) -> None:
        self.current = ""
        self.fresh = False
        self.reopened = False

    def _fence_after(self, line: str) -> str | None:
        if not self.patch_fences or not is_fence_line(line):
            return self.open_fence
        return None if self.open_fence is not None else line.strip()

    def _reopen_header(self, fence: str) -> str:
        # header + newline + one character + newline + closing fence
        if len(fence) + 3 + len(FENCE) <= self.max_chars:
            return fence
        return FENCE

    def _hard_slice(self, line: str, fence_after: str | None) -> None:
        """Cut a line that cannot fit even in an empty chunk.

        A fence delimiter starts its line, so the first slice carries it and
        the fence state flips as soon as that slice is placed.
        """
        overhead = len(FENCE) + 1 if fence_after is not None else 0
        remaining = line

        while remaining:
            if self.current and self.max_chars - len(self.current) - 1 - overhead < 1:
                # the opening line leaves no room; carry a shorter fence instead
                self.current = self._reopen_header(self.open_fence or FENCE)
            prefix = f"{self.current}\n" if self.current else ""
            space = self.max_chars - len(prefix) - overhead
            piece, remaining = remaining[:space], remaining[space:]
            self.current = prefix + piece
            self.fresh = False
            self.reopened = False
            self.open_fence = fence_after
            if remaining:
                self.flush(strip=False)


@traced(span_name="chat.split_message")
def split_message(text: str, max_chars: int = MESSAGE_MAX_CHARS) -> list[str]:
    """Split text into ordered segments of at most ``max_chars`` characters.

    The input is trimmed first. Text that already fits is returned as the
    only segment; blank input yields a single empty segment. Lines longer
    than a whole segment are hard-sliced.

    Args:
        text: Completion text to split.
        max_chars: Maximum length of one segment. Non-positive values fall
            back to ``MESSAGE_MAX_CHARS``.

    Returns:
        Segments in order, never empty.
    """
    if max_chars <= 0:
        max_chars = MESSAGE_MAX_CHARS

    text = text.strip()
    if not text:
        return [""]
    if len(text) <= max_chars:
        return [text]

    builder = _SegmentBuilder(max_chars)
    for line in text.split("\n"):
        builder.add_line(line)
    return builder.finish()
