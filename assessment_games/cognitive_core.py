from __future__ import annotations

import math
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from .clock import Clock

T = TypeVar("T")


class ConfigError(ValueError):
    """Raised when an engine is built with a degenerate configuration."""


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float

    def distance_to(self, other: "Point") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass(frozen=True, slots=True)
class GameSnapshot:
    """View model for the UI (pure data)."""

    title: str
    state: SessionState
    prompt: str
    elapsed_s: float
    payload: object | None = None


class ScheduledTask:
    """Single cooperative timer slot owned by one engine.

    Arming the slot replaces whatever was pending, so an engine never has more
    than one callback in flight. ``poll()`` is called from the engine's
    ``update()`` and fires the callback once its deadline has passed.

    A callback that re-arms the slot from inside ``poll()`` is scheduled
    relative to its own deadline, so chained cadences do not drift with
    frame jitter. If that deadline has already passed (the host stalled for
    longer than the delay), the new deadline counts from the current time
    instead, so one ``poll()`` never runs a chain through several steps.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._due_at_s: float | None = None
        self._callback: Callable[[], None] | None = None
        self._firing_due_s: float | None = None

    @property
    def pending(self) -> bool:
        return self._callback is not None

    @property
    def due_at_s(self) -> float | None:
        return self._due_at_s

    def schedule(self, delay_s: float, callback: Callable[[], None]) -> None:
        delay = max(0.0, float(delay_s))
        now = self._clock.now()
        due = now + delay
        if self._firing_due_s is not None and self._firing_due_s + delay > now:
            due = self._firing_due_s + delay
        self._due_at_s = due
        self._callback = callback

    def cancel(self) -> None:
        self._due_at_s = None
        self._callback = None

    def poll(self) -> bool:
        """Fire due callbacks, following chains re-armed from inside one.

        Returns True if at least one callback ran.
        """

        fired = False
        # Bounded so a zero-delay chain cannot spin forever.
        for _ in range(10_000):
            if self._callback is None or self._due_at_s is None:
                break
            if self._clock.now() < self._due_at_s:
                break
            callback = self._callback
            self._firing_due_s = self._due_at_s
            self._callback = None
            self._due_at_s = None
            try:
                callback()
            finally:
                self._firing_due_s = None
            fired = True
        return fired


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, seq: Sequence[T]) -> T:
        return self._rng.choice(seq)

    def random(self) -> float:
        return self._rng.random()


def round_half_up(x: float) -> int:
    # Scores round .5 upward, never to even.
    return int(math.floor(x + 0.5))


def format_mm_ss(seconds: float) -> str:
    total = max(0, int(seconds))
    return f"{total // 60:02d}:{total % 60:02d}"
