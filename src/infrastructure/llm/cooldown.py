"""Per-credential rate-limit state for a single provider."""

import math
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from src.infrastructure.llm.schemas import Credential


def monotonic_ms() -> float:
    """Current monotonic time in milliseconds."""
    return time.monotonic() * 1000


@dataclass
class _CredentialSlot:
    credential: Credential
    cooldown_until_ms: float = 0.0


class KeyCooldownTable:
    """Tracks when each credential of one provider may be used again.

    Credentials are scanned in configuration order, so the first configured
    key is always preferred while it is available. Cooldowns only ratchet
    forward: a shorter hint never shortens an existing longer cooldown, and
    they expire by time passing rather than by reset.

    The table is the only state shared between concurrent calls; every read
    and update of a cooldown happens under a lock.
    """

    def __init__(
        self,
        credentials: Sequence[Credential],
        *,
        now_ms: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the table.

        Args:
            credentials: Credentials in preference order.
            now_ms: Clock returning milliseconds. Defaults to a monotonic clock.
        """
        self._slots = [_CredentialSlot(credential) for credential in credentials]
        self._now_ms = now_ms or monotonic_ms
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._slots)

    def now(self) -> float:
        """Current time on the table's clock, in milliseconds."""
        return self._now_ms()

    def credential(self, index: int) -> Credential:
        """Return the credential at ``index``."""
        return self._slots[index].credential

    def cooldown_until(self, index: int) -> float:
        """Return the cooldown deadline of ``index`` (0 = never limited)."""
        with self._lock:
            return self._slots[index].cooldown_until_ms

    def pick_available(self, now: float | None = None) -> int | None:
        """Return the first credential whose cooldown has expired.

        Args:
            now: Time to evaluate at. Defaults to the table's clock.

        Returns:
            Index of the first usable credential, or None if all are cooling down.
        """
        current = self._now_ms() if now is None else now
        with self._lock:
            for index, slot in enumerate(self._slots):
                if slot.cooldown_until_ms <= current:
                    return index
        return None

    def earliest_wait_seconds(self, now: float | None = None) -> int | None:
        """Seconds until the soonest cooling-down credential becomes usable.

        Rounded up and never below one second.

        Returns:
            The wait in whole seconds, or None if nothing is cooling down.
        """
        current = self._now_ms() if now is None else now
        with self._lock:
            pending = [
                slot.cooldown_until_ms
                for slot in self._slots
                if slot.cooldown_until_ms > current
            ]
        if not pending:
            return None
        return max(1, math.ceil((min(pending) - current) / 1000))

    def mark_cooldown(
        self, index: int, seconds: float, now: float | None = None
    ) -> float:
        """Put a credential on cooldown for at least ``seconds``.

        Returns:
            The resulting cooldown deadline in milliseconds.
        """
        current = self._now_ms() if now is None else now
        with self._lock:
            slot = self._slots[index]
            slot.cooldown_until_ms = max(
                slot.cooldown_until_ms, current + seconds * 1000
            )
            return slot.cooldown_until_ms
