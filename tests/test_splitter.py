"""Tests for splitting completions into transport-sized messages."""

import pytest

from src.modules.chat.splitter import MESSAGE_MAX_CHARS, is_fence_line, split_message


def fence_count(segment: str) -> int:
    return sum(1 for line in segment.split("\n") if is_fence_line(line))


def is_inside_fence(segment: str, target: str) -> bool:
    """Whether ``target`` is a line inside a fenced block of ``segment``."""
    open_block = False
    for line in segment.split("\n"):
        if is_fence_line(line):
            open_block = not open_block
        elif line == target:
            return open_block
    return False


CODE_LINES = [f"print('line {i:02d}')" for i in range(20)]
FENCED_TEXT = "\n".join(
    ["Here is the script:", "```python", *CODE_LINES, "```", "That's all."]
)


class TestShortInput:
    """Tests for inputs that need no splitting."""

    def test_fits_returns_trimmed_input(self) -> None:
        """Text within the limit should come back as one trimmed segment."""
        assert split_message("  hello world \n") == ["hello world"]

    def test_exact_limit_is_one_segment(self) -> None:
        text = "b" * 50
        assert split_message(text, 50) == [text]

    @pytest.mark.parametrize("text", ["", "   ", "\n\n\t"])
    def test_blank_input_gives_one_empty_segment(self, text: str) -> None:
        assert split_message(text) == [""]

    def test_default_limit(self) -> None:
        assert MESSAGE_MAX_CHARS == 2000


class TestPlainText:
    """Tests for text without fenced blocks."""

    def test_single_long_line_is_hard_sliced(self) -> None:
        """2010 characters on one line should become 2000 + 10."""
        text = "a" * 2010

        segments = split_message(text, 2000)

        assert len(segments) == 2
        assert [len(s) for s in segments] == [2000, 10]
        assert "".join(segments) == text

    def test_non_positive_limit_uses_default(self) -> None:
        segments = split_message("a" * 2010, 0)

        assert [len(s) for s in segments] == [2000, 10]

    def test_splits_on_line_boundaries(self) -> None:
        """Whole lines should be kept together while they fit."""
        lines = [f"line number {i:03d} with some padding text" for i in range(40)]
        text = "\n".join(lines)

        segments = split_message(text, 200)

        assert len(segments) > 1
        assert all(len(s) <= 200 for s in segments)
        assert "\n".join(segments) == text

    def test_long_line_between_short_lines(self) -> None:
        text = "\n".join(["intro", "z" * 250, "outro"])

        segments = split_message(text, 100)

        assert all(len(s) <= 100 for s in segments)
        assert segments[0] == "intro"
        assert segments[-1].endswith("outro")
        assert "".join(segments).count("z") == 250


class TestFencedBlocks:
    """Tests for keeping fenced blocks balanced across segments."""

    def test_block_split_mid_way_is_balanced(self) -> None:
        """Every segment should open and close its fences."""
        segments = split_message(FENCED_TEXT, 120)

        assert len(segments) >= 2
        assert all(len(s) <= 120 for s in segments)
        for segment in segments:
            assert fence_count(segment) % 2 == 0
            if "```python" in segment:
                assert segment.endswith("```") or "That's all." in segment

    def test_reopens_with_same_fence(self) -> None:
        """Continuation segments should restart the block with its language."""
        segments = split_message(FENCED_TEXT, 120)

        for segment in segments[1:]:
            if any(line in segment for line in CODE_LINES):
                assert segment.startswith("```python\n")

    def test_code_lines_stay_inside_fences(self) -> None:
        """Each code line should appear exactly once, inside a fenced block."""
        segments = split_message(FENCED_TEXT, 120)

        for code_line in CODE_LINES:
            holders = [s for s in segments if code_line in s.split("\n")]
            assert len(holders) == 1
            assert is_inside_fence(holders[0], code_line)

    def test_prose_stays_outside_fences(self) -> None:
        segments = split_message(FENCED_TEXT, 120)

        assert segments[0].startswith("Here is the script:")
        assert not is_inside_fence(segments[-1], "That's all.")
        assert segments[-1].endswith("That's all.")

    def test_unterminated_block_is_closed(self) -> None:
        """A block that never closes should still be closed in every segment."""
        text = "Intro\n```js\n" + "\n".join(f"const v{i} = {i};" for i in range(30))

        segments = split_message(text, 90)

        assert len(segments) >= 2
        for segment in segments:
            assert len(segment) <= 90
            assert fence_count(segment) % 2 == 0
        assert segments[-1].endswith("```")

    def test_long_line_inside_block_is_sliced_within_fences(self) -> None:
        text = "```\n" + "x" * 300 + "\n```"

        segments = split_message(text, 100)

        assert all(len(s) <= 100 for s in segments)
        assert all(s.startswith("```\n") and s.endswith("\n```") for s in segments)
        assert sum(s.count("x") for s in segments) == 300

    def test_several_blocks(self) -> None:
        blocks = []
        for name in ("ts", "py", "sh"):
            body = "\n".join(f"{name} statement {i}" for i in range(8))
            blocks.append(f"Block {name}:\n```{name}\n{body}\n```")
        text = "\n".join(blocks)

        segments = split_message(text, 80)

        assert len(segments) >= 3
        for segment in segments:
            assert len(segment) <= 80
            assert fence_count(segment) % 2 == 0

    def test_tiny_limit_still_bounded(self) -> None:
        """Below the size of a fenced line, fences are left as plain text."""
        segments = split_message("```py\nprint(1)\n```", 5)

        assert segments == ["```py", "print", "(1)", "```"]

    def test_oversized_opening_fence_is_sliced_inside_the_block(self) -> None:
        """An opening line too long for a segment still opens a closed block."""
        text = "intro\n```" + "x" * 40 + "\ncode\n```"

        segments = split_message(text, 20)

        assert segments == [
            "intro",
            "```" + "x" * 13 + "\n```",
            "```\n" + "x" * 12 + "\n```",
            "```\n" + "x" * 12 + "\n```",
            "```\nxxx\ncode\n```",
        ]
        assert is_inside_fence(segments[-1], "code")

    def test_oversized_closing_fence_keeps_its_text(self) -> None:
        text = "```\ncode\n```" + "y" * 30

        segments = split_message(text, 20)

        assert segments[0] == "```\ncode\n```"
        for segment in segments:
            assert len(segment) <= 20
            assert fence_count(segment) % 2 == 0
        assert sum(s.count("y") for s in segments) == 30

    def test_empty_block_in_text_is_kept(self) -> None:
        """Only blocks reopened by a split may be dropped when empty."""
        segments = split_message("```\n```\nhello " + "x" * 30, 20)

        assert segments == ["```\n```", "hello " + "x" * 14, "x" * 16]
