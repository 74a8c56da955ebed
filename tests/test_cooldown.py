"""Tests for the key cooldown table."""

import threading

from src.infrastructure.llm import Credential, KeyCooldownTable


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds * 1000


def make_table(count: int = 3, clock: FakeClock | None = None) -> KeyCooldownTable:
    credentials = [Credential(api_key=f"key-{i + 1}") for i in range(count)]
    return KeyCooldownTable(credentials, now_ms=clock or FakeClock())


class TestPickAvailable:
    """Tests for credential selection."""

    def test_prefers_first_configured_key(self) -> None:
        """The first credential should be picked while it is available."""
        table = make_table()
        assert table.pick_available() == 0

    def test_skips_keys_on_cooldown(self) -> None:
        """Cooling-down credentials should be skipped in order."""
        table = make_table()
        table.mark_cooldown(0, 10)
        assert table.pick_available() == 1

        table.mark_cooldown(1, 10)
        assert table.pick_available() == 2

    def test_none_when_all_cooling_down(self) -> None:
        """Should return None when every credential is cooling down."""
        table = make_table(2)
        table.mark_cooldown(0, 5)
        table.mark_cooldown(1, 5)
        assert table.pick_available() is None

    def test_cooldown_expires_with_time(self) -> None:
        """A credential should come back once its cooldown has passed."""
        clock = FakeClock()
        table = make_table(2, clock)
        table.mark_cooldown(0, 5)

        clock.advance(5)

        assert table.pick_available() == 0

    def test_explicit_now(self) -> None:
        """An explicit time should be used instead of the clock."""
        clock = FakeClock()
        table = make_table(1, clock)
        table.mark_cooldown(0, 5)

        assert table.pick_available(now=clock.now + 4_999) is None
        assert table.pick_available(now=clock.now + 5_000) == 0


class TestMarkCooldown:
    """Tests for the cooldown ratchet."""

    def test_shorter_hint_never_shortens_cooldown(self) -> None:
        """Marking 5s then 1s should leave the deadline unchanged."""
        clock = FakeClock()
        table = make_table(1, clock)

        first = table.mark_cooldown(0, 5)
        second = table.mark_cooldown(0, 1)

        assert first == clock.now + 5_000
        assert second == first
        assert table.cooldown_until(0) == first

    def test_longer_hint_extends_cooldown(self) -> None:
        """A longer hint should push the deadline forward."""
        clock = FakeClock()
        table = make_table(1, clock)

        table.mark_cooldown(0, 1)
        table.mark_cooldown(0, 30)

        assert table.cooldown_until(0) == clock.now + 30_000

    def test_never_limited_by_default(self) -> None:
        """A fresh credential should have no cooldown."""
        table = make_table(1)
        assert table.cooldown_until(0) == 0

    def test_concurrent_marks_keep_the_maximum(self) -> None:
        """Racing writers should never move a cooldown backward."""
        clock = FakeClock()
        table = make_table(1, clock)

        threads = [
            threading.Thread(target=table.mark_cooldown, args=(0, seconds))
            for seconds in (3, 60, 1, 10, 5) * 20
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert table.cooldown_until(0) == clock.now + 60_000


class TestEarliestWait:
    """Tests for the soonest retry hint."""

    def test_none_when_nothing_cooling_down(self) -> None:
        """Should return None when no credential is on cooldown."""
        table = make_table()
        assert table.earliest_wait_seconds() is None

    def test_returns_minimum_wait(self) -> None:
        """Should report the soonest expiring cooldown."""
        table = make_table()
        table.mark_cooldown(0, 30)
        table.mark_cooldown(1, 7)
        table.mark_cooldown(2, 12)

        assert table.earliest_wait_seconds() == 7

    def test_rounds_up(self) -> None:
        """Partial seconds should round up."""
        clock = FakeClock()
        table = make_table(1, clock)
        table.mark_cooldown(0, 5)

        clock.advance(3.2)

        assert table.earliest_wait_seconds() == 2

    def test_floor_of_one_second(self) -> None:
        """A nearly expired cooldown should still report one second."""
        clock = FakeClock()
        table = make_table(1, clock)
        table.mark_cooldown(0, 1)

        clock.advance(0.999)

        assert table.earliest_wait_seconds() == 1
