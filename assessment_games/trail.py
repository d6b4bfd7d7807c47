from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from .clock import Clock
from .cognitive_core import (
    ConfigError,
    GameSnapshot,
    Point,
    ScheduledTask,
    SeededRng,
    SessionState,
)

logger = logging.getLogger(__name__)

DOT_RADIUS = 20.0
MIN_DISTANCE = 60.0  # between dot centres
MAX_PLACEMENT_ATTEMPTS = 50


@dataclass(frozen=True, slots=True)
class TrailConfig:
    dot_count: int = 10
    grid_size: int = 400
    error_display_s: float = 0.5


@dataclass(frozen=True, slots=True)
class Dot:
    number: int
    x: float
    y: float

    @property
    def position(self) -> Point:
        return Point(self.x, self.y)

    def contains(self, point: Point, radius: float = DOT_RADIUS) -> bool:
        return math.hypot(point.x - self.x, point.y - self.y) <= radius


@dataclass(frozen=True, slots=True)
class DotSet:
    dots: tuple[Dot, ...]
    width: float
    height: float
    used_grid_fallback: bool = False

    def __len__(self) -> int:
        return len(self.dots)

    def by_number(self, number: int) -> Dot | None:
        if 1 <= number <= len(self.dots):
            return self.dots[number - 1]
        return None

    def dot_at(self, point: Point) -> Dot | None:
        for dot in self.dots:
            if dot.contains(point):
                return dot
        return None


@dataclass(frozen=True, slots=True)
class StrokeLine:
    start: Point
    end: Point
    is_error: bool


class DotStatus(StrEnum):
    DONE = "done"
    CURRENT = "current"
    PENDING = "pending"


@dataclass(frozen=True, slots=True)
class TrailResult:
    time_s: float
    errors: int
    completed: bool


@dataclass(frozen=True, slots=True)
class TrailPayload:
    dots: tuple[Dot, ...]
    statuses: tuple[DotStatus, ...]
    lines: tuple[StrokeLine, ...]
    rubber_band: StrokeLine | None  # live line while dragging
    current_dot: int
    errors: int
    canvas_size: int


def grid_position(number: int, count: int, width: float, height: float) -> Point:
    """Centre of cell ``number`` (1-based) in a ceil(sqrt(count))-column grid."""

    cols = math.ceil(math.sqrt(count))
    rows = math.ceil(count / cols)
    cell_w = width / cols
    cell_h = height / rows
    col = (number - 1) % cols
    row = (number - 1) // cols
    return Point(col * cell_w + cell_w / 2.0, row * cell_h + cell_h / 2.0)


def generate_dots(count: int, canvas_size: float, *, rng: SeededRng) -> DotSet:
    """Place numbered dots at random, keeping ``MIN_DISTANCE`` between centres.

    Each dot gets ``MAX_PLACEMENT_ATTEMPTS`` random tries inside the padded
    canvas. A dot that finds no free spot takes its cell in a fixed grid
    instead, which always terminates and stays on the canvas but may sit
    closer than ``MIN_DISTANCE`` to a random dot.
    """

    if count < 1:
        raise ConfigError("dot count must be >= 1")
    width = height = float(canvas_size)
    padding = DOT_RADIUS * 2.0
    if width <= padding * 2.0:
        raise ConfigError(f"canvas must be larger than {padding * 2.0:g}px")

    dots: list[Dot] = []
    fallback = False
    for number in range(1, count + 1):
        placed: Point | None = None
        for _ in range(MAX_PLACEMENT_ATTEMPTS):
            candidate = Point(
                rng.random() * (width - padding * 2.0) + padding,
                rng.random() * (height - padding * 2.0) + padding,
            )
            if all(candidate.distance_to(d.position) >= MIN_DISTANCE for d in dots):
                placed = candidate
                break

        if placed is None:
            placed = grid_position(number, count, width, height)
            fallback = True

        dots.append(Dot(number=number, x=placed.x, y=placed.y))

    if fallback:
        logger.debug("Dot placement fell back to the grid layout (count=%d, size=%g)", count, canvas_size)

    return DotSet(dots=tuple(dots), width=width, height=height, used_grid_fallback=fallback)


class TrailEngine:
    """Connect numbered dots in order by dragging from one to the next."""

    def __init__(
        self,
        *,
        clock: Clock,
        seed: int,
        config: TrailConfig | None = None,
        on_complete: Callable[[TrailResult], None] | None = None,
    ) -> None:
        cfg = config or TrailConfig()
        if cfg.dot_count < 2:
            raise ConfigError("dot_count must be >= 2")
        if cfg.grid_size <= DOT_RADIUS * 4.0:
            raise ConfigError(f"grid_size must be > {DOT_RADIUS * 4.0:g}")
        if cfg.error_display_s < 0.0:
            raise ConfigError("error_display_s must be >= 0")

        self._clock = clock
        self._seed = int(seed)
        self._cfg = cfg
        self._on_complete = on_complete
        self._rng = SeededRng(self._seed)
        self._task = ScheduledTask(clock)

        self._dots = generate_dots(cfg.dot_count, cfg.grid_size, rng=self._rng)
        self._clear_session()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def dots(self) -> DotSet:
        return self._dots

    @property
    def current_dot(self) -> int:
        return self._current

    @property
    def errors(self) -> int:
        return self._errors

    @property
    def lines(self) -> tuple[StrokeLine, ...]:
        return tuple(self._lines)

    @property
    def dragging(self) -> bool:
        return self._dragging

    @property
    def timer_pending(self) -> bool:
        return self._task.pending

    def start(self) -> None:
        if self._state is not SessionState.IDLE:
            return
        self._state = SessionState.ACTIVE
        self._started_at_s = self._clock.now()
        logger.debug("Trail session started (dots=%d)", len(self._dots))

    def reset(self) -> None:
        self._task.cancel()
        self._dots = generate_dots(self._cfg.dot_count, self._cfg.grid_size, rng=self._rng)
        self._clear_session()
        logger.debug("Trail reset")

    def update(self) -> None:
        self._task.poll()

    def press(self, point: Point) -> bool:
        """Begin a drag; only accepted on the dot to connect from."""

        if self._state is SessionState.COMPLETED:
            return False
        dot = self._dots.by_number(self._current)
        if dot is None or not dot.contains(point):
            return False

        self._dragging = True
        self._pointer = point
        if self._state is SessionState.IDLE:
            self.start()
        return True

    def move(self, point: Point) -> bool:
        if not self._dragging or self._state is SessionState.COMPLETED:
            return False
        self._pointer = point
        return True

    def release(self, point: Point) -> bool:
        """Finish a drag. Returns True if a line (correct or error) was drawn."""

        if not self._dragging or self._state is SessionState.COMPLETED:
            return False
        self._dragging = False
        self._pointer = None

        origin = self._dots.by_number(self._current)
        assert origin is not None

        target = self._dots.by_number(self._current + 1)
        if target is not None and target.contains(point):
            self._lines.append(StrokeLine(start=origin.position, end=target.position, is_error=False))
            self._current += 1
            if self._current == len(self._dots):
                self._complete()
            return True

        hit = self._dots.dot_at(point)
        if hit is None or hit.number == self._current:
            return False

        self._lines.append(StrokeLine(start=origin.position, end=hit.position, is_error=True))
        self._errors += 1
        # The earliest pending clear removes every error line on screen.
        if not self._task.pending:
            self._task.schedule(self._cfg.error_display_s, self._clear_error_lines)
        return True

    def elapsed_s(self) -> float:
        if self._started_at_s is None:
            return 0.0
        end = self._ended_at_s if self._ended_at_s is not None else self._clock.now()
        return max(0.0, end - self._started_at_s)

    def result(self) -> TrailResult:
        completed = self._state is SessionState.COMPLETED
        return TrailResult(
            time_s=self.elapsed_s() if completed else 0.0,
            errors=self._errors,
            completed=completed,
        )

    def snapshot(self) -> GameSnapshot:
        done_below = self._current + 1 if self._state is SessionState.COMPLETED else self._current
        statuses = tuple(
            DotStatus.DONE
            if d.number < done_below
            else DotStatus.CURRENT
            if d.number == self._current
            else DotStatus.PENDING
            for d in self._dots.dots
        )

        rubber_band = None
        origin = self._dots.by_number(self._current)
        if self._dragging and self._pointer is not None and origin is not None:
            rubber_band = StrokeLine(start=origin.position, end=self._pointer, is_error=False)

        return GameSnapshot(
            title="Trail Making",
            state=self._state,
            prompt=self._prompt_text(),
            elapsed_s=self.elapsed_s(),
            payload=TrailPayload(
                dots=self._dots.dots,
                statuses=statuses,
                lines=tuple(self._lines),
                rubber_band=rubber_band,
                current_dot=self._current,
                errors=self._errors,
                canvas_size=self._cfg.grid_size,
            ),
        )

    def _prompt_text(self) -> str:
        if self._state is SessionState.COMPLETED:
            return f"Completed! Time: {self.elapsed_s():.1f} seconds. Errors: {self._errors}. Press R to reset."
        return "Connect the dots in numerical order (1-2-3...). Drag from one number to the next."

    def _clear_session(self) -> None:
        self._state = SessionState.IDLE
        self._current = 1
        self._lines: list[StrokeLine] = []
        self._errors = 0
        self._dragging = False
        self._pointer: Point | None = None
        self._started_at_s: float | None = None
        self._ended_at_s: float | None = None

    def _clear_error_lines(self) -> None:
        self._lines = [line for line in self._lines if not line.is_error]

    def _complete(self) -> None:
        self._ended_at_s = self._clock.now()
        self._state = SessionState.COMPLETED
        result = self.result()
        logger.debug("Trail completed in %.3fs with %d errors", result.time_s, result.errors)
        if self._on_complete is not None:
            self._on_complete(result)


def build_trail_test(
    *,
    clock: Clock,
    seed: int,
    config: TrailConfig | None = None,
    on_complete: Callable[[TrailResult], None] | None = None,
) -> TrailEngine:
    return TrailEngine(clock=clock, seed=seed, config=config, on_complete=on_complete)
