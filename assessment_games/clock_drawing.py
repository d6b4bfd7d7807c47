from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from .clock import Clock
from .cognitive_core import ConfigError, GameSnapshot, Point, SessionState, round_half_up

logger = logging.getLogger(__name__)

HOUR_HAND_LENGTH_RATIO = 0.5
MINUTE_HAND_LENGTH_RATIO = 0.8
HOUR_WEIGHT = 0.6
MINUTE_WEIGHT = 0.4

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


@dataclass(frozen=True, slots=True)
class ClockConfig:
    target_time: str = "10:10"
    clock_size: int = 300
    grab_tolerance_px: float = 12.0


class Hand(StrEnum):
    HOUR = "hour"
    MINUTE = "minute"


@dataclass(frozen=True, slots=True)
class AngleTarget:
    hour: int
    minute: int
    hour_angle_deg: float
    minute_angle_deg: float


@dataclass(frozen=True, slots=True)
class ClockResult:
    score: int
    hour_accuracy: float
    minute_accuracy: float
    hour_angle_deg: float
    minute_angle_deg: float
    target: AngleTarget


@dataclass(frozen=True, slots=True)
class ClockPayload:
    center: Point
    radius: float
    hour_angle_deg: float
    minute_angle_deg: float
    hour_tip: Point
    minute_tip: Point
    captured: Hand | None
    interactive: bool
    target_label: str
    score: int | None
    feedback: str | None


def parse_target_time(text: str) -> tuple[int, int]:
    m = _TIME_RE.match(str(text))
    if m is None:
        raise ConfigError(f"target time must look like HH:MM, got {text!r}")
    hour = int(m.group(1))
    minute = int(m.group(2))
    if not (0 <= hour <= 23):
        raise ConfigError(f"hour out of range in {text!r}")
    if not (0 <= minute <= 59):
        raise ConfigError(f"minute out of range in {text!r}")
    return hour, minute


def target_angles(hour: int, minute: int) -> AngleTarget:
    """Hand angles for a time; 0 deg is 12 o'clock, clockwise positive.

    The hour hand advances with the minutes (10:30 sits halfway between 10
    and 11).
    """

    hour_angle = ((hour + minute / 60.0) % 12.0) * 30.0
    minute_angle = minute * 6.0
    return AngleTarget(
        hour=int(hour),
        minute=int(minute),
        hour_angle_deg=float(hour_angle),
        minute_angle_deg=float(minute_angle),
    )


def configure_target(target_time: str) -> AngleTarget:
    hour, minute = parse_target_time(target_time)
    return target_angles(hour, minute)


def pointer_angle(center: Point, pointer: Point) -> float:
    # atan2 runs from 3 o'clock in screen space (y down); +90 puts 0 at 12.
    angle = math.degrees(math.atan2(pointer.y - center.y, pointer.x - center.x)) + 90.0
    return angle % 360.0


def hand_tip(center: Point, angle_deg: float, length: float) -> Point:
    radians = math.radians(angle_deg - 90.0)
    return Point(center.x + length * math.cos(radians), center.y + length * math.sin(radians))


def circular_difference(a_deg: float, b_deg: float) -> float:
    """Shortest arc between two angles, in [0, 180]."""

    return abs(((a_deg - b_deg + 180.0) % 360.0) - 180.0)


def hand_accuracy(diff_deg: float) -> float:
    return max(0.0, 100.0 - diff_deg / 1.8)


def clock_score(
    *,
    hour_angle_deg: float,
    minute_angle_deg: float,
    target: AngleTarget,
) -> int:
    hour_acc = hand_accuracy(circular_difference(hour_angle_deg, target.hour_angle_deg))
    minute_acc = hand_accuracy(circular_difference(minute_angle_deg, target.minute_angle_deg))
    return round_half_up(HOUR_WEIGHT * hour_acc + MINUTE_WEIGHT * minute_acc)


def feedback_for_score(score: int) -> str:
    if score >= 90:
        return "Excellent! You set the clock correctly."
    if score >= 70:
        return "Good job! Your clock is close to the target time."
    return "Keep practicing. Try to place the hands more precisely."


def _distance_to_segment(p: Point, a: Point, b: Point) -> float:
    abx = b.x - a.x
    aby = b.y - a.y
    length_sq = abx * abx + aby * aby
    if length_sq == 0.0:
        return p.distance_to(a)
    t = ((p.x - a.x) * abx + (p.y - a.y) * aby) / length_sq
    t = max(0.0, min(1.0, t))
    return p.distance_to(Point(a.x + t * abx, a.y + t * aby))


class ClockEngine:
    """Set the analog clock hands to a target time and score the placement."""

    def __init__(
        self,
        *,
        clock: Clock,
        config: ClockConfig | None = None,
        on_complete: Callable[[int], None] | None = None,
    ) -> None:
        cfg = config or ClockConfig()
        if cfg.clock_size <= 0:
            raise ConfigError("clock_size must be > 0")
        if cfg.grab_tolerance_px < 0.0:
            raise ConfigError("grab_tolerance_px must be >= 0")

        self._clock = clock
        self._cfg = cfg
        self._on_complete = on_complete
        self._target = configure_target(cfg.target_time)

        self._radius = cfg.clock_size / 2.0
        self._center = Point(self._radius, self._radius)

        self._clear_session()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def target(self) -> AngleTarget:
        return self._target

    @property
    def center(self) -> Point:
        return self._center

    @property
    def radius(self) -> float:
        return self._radius

    @property
    def captured(self) -> Hand | None:
        return self._captured

    @property
    def hour_angle_deg(self) -> float:
        return self._hour_angle

    @property
    def minute_angle_deg(self) -> float:
        return self._minute_angle

    def configure(self, target_time: str) -> AngleTarget:
        """Swap the target time; the current hands and session are kept."""

        self._target = configure_target(target_time)
        return self._target

    def start(self) -> None:
        if self._state is not SessionState.IDLE:
            return
        self._state = SessionState.ACTIVE
        self._started_at_s = self._clock.now()

    def reset(self) -> None:
        self._clear_session()
        logger.debug("Clock reset")

    def update(self) -> None:
        # No timers; present for the shared engine contract.
        return

    def hand_tip(self, hand: Hand) -> Point:
        if hand is Hand.HOUR:
            return hand_tip(self._center, self._hour_angle, self._radius * HOUR_HAND_LENGTH_RATIO)
        return hand_tip(self._center, self._minute_angle, self._radius * MINUTE_HAND_LENGTH_RATIO)

    def hit_test(self, pointer: Point) -> Hand | None:
        best: Hand | None = None
        best_dist = float(self._cfg.grab_tolerance_px)
        # Minute hand is drawn on top, so it wins ties.
        for hand in (Hand.MINUTE, Hand.HOUR):
            dist = _distance_to_segment(pointer, self._center, self.hand_tip(hand))
            if dist <= best_dist and (best is None or dist < best_dist):
                best = hand
                best_dist = dist
        return best

    def press(self, pointer: Point) -> bool:
        if not self._interactive():
            return False
        hand = self.hit_test(pointer)
        if hand is None:
            return False
        self._capture(hand)
        return True

    def move(self, pointer: Point) -> bool:
        if not self._interactive() or self._captured is None:
            return False
        self._apply_pointer(self._captured, pointer)
        return True

    def release(self) -> None:
        self._captured = None

    def drag_hour(self, pointer: Point) -> bool:
        if not self._interactive():
            return False
        self._capture(Hand.HOUR)
        self._apply_pointer(Hand.HOUR, pointer)
        return True

    def drag_minute(self, pointer: Point) -> bool:
        if not self._interactive():
            return False
        self._capture(Hand.MINUTE)
        self._apply_pointer(Hand.MINUTE, pointer)
        return True

    def submit(self) -> int:
        """Score the current placement. One-shot: later calls return the same score."""

        if self._score is not None:
            return self._score

        self._score = clock_score(
            hour_angle_deg=self._hour_angle,
            minute_angle_deg=self._minute_angle,
            target=self._target,
        )
        if self._started_at_s is None:
            self._started_at_s = self._clock.now()
        self._ended_at_s = self._clock.now()
        self._captured = None
        self._state = SessionState.COMPLETED
        logger.debug("Clock submitted: score=%d", self._score)
        if self._on_complete is not None:
            self._on_complete(self._score)
        return self._score

    def score(self) -> int | None:
        return self._score

    def result(self) -> ClockResult:
        hour_acc = hand_accuracy(circular_difference(self._hour_angle, self._target.hour_angle_deg))
        minute_acc = hand_accuracy(circular_difference(self._minute_angle, self._target.minute_angle_deg))
        score = self._score
        if score is None:
            score = clock_score(
                hour_angle_deg=self._hour_angle,
                minute_angle_deg=self._minute_angle,
                target=self._target,
            )
        return ClockResult(
            score=score,
            hour_accuracy=hour_acc,
            minute_accuracy=minute_acc,
            hour_angle_deg=self._hour_angle,
            minute_angle_deg=self._minute_angle,
            target=self._target,
        )

    def elapsed_s(self) -> float:
        if self._started_at_s is None:
            return 0.0
        end = self._ended_at_s if self._ended_at_s is not None else self._clock.now()
        return max(0.0, end - self._started_at_s)

    def snapshot(self) -> GameSnapshot:
        label = f"{self._target.hour:02d}:{self._target.minute:02d}"
        return GameSnapshot(
            title="Clock Drawing",
            state=self._state,
            prompt=self._prompt_text(label),
            elapsed_s=self.elapsed_s(),
            payload=ClockPayload(
                center=self._center,
                radius=self._radius,
                hour_angle_deg=self._hour_angle,
                minute_angle_deg=self._minute_angle,
                hour_tip=self.hand_tip(Hand.HOUR),
                minute_tip=self.hand_tip(Hand.MINUTE),
                captured=self._captured,
                interactive=self._interactive(),
                target_label=label,
                score=self._score,
                feedback=None if self._score is None else feedback_for_score(self._score),
            ),
        )

    def _prompt_text(self, label: str) -> str:
        if self._score is not None:
            return f"Score: {self._score}/100. {feedback_for_score(self._score)} Press R to try again."
        return f"Set the clock to {label}. Drag the hands, then press Enter to submit."

    def _interactive(self) -> bool:
        return self._state is not SessionState.COMPLETED

    def _capture(self, hand: Hand) -> None:
        if self._state is SessionState.IDLE:
            self.start()
        self._captured = hand

    def _apply_pointer(self, hand: Hand, pointer: Point) -> None:
        angle = pointer_angle(self._center, pointer)
        if hand is Hand.HOUR:
            self._hour_angle = angle
        else:
            self._minute_angle = angle

    def _clear_session(self) -> None:
        self._state = SessionState.IDLE
        self._hour_angle = 0.0
        self._minute_angle = 0.0
        self._captured: Hand | None = None
        self._score: int | None = None
        self._started_at_s: float | None = None
        self._ended_at_s: float | None = None


def build_clock_test(
    *,
    clock: Clock,
    config: ClockConfig | None = None,
    on_complete: Callable[[int], None] | None = None,
) -> ClockEngine:
    return ClockEngine(clock=clock, config=config, on_complete=on_complete)
