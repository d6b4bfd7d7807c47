from __future__ import annotations

from dataclasses import dataclass

import pytest

from assessment_games.cognitive_core import ConfigError, Point, SessionState
from assessment_games.clock_drawing import (
    ClockConfig,
    ClockPayload,
    Hand,
    build_clock_test,
    hand_tip,
)


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_headless_exact_placement_scores_100_once() -> None:
    clock = FakeClock()
    scores: list[int] = []
    engine = build_clock_test(clock=clock, on_complete=scores.append)
    c, r = engine.center, engine.radius
    assert engine.snapshot().prompt.startswith("Set the clock to 10:10")

    assert engine.drag_hour(hand_tip(c, 305.0, r * 0.4)) is True
    assert engine.state is SessionState.ACTIVE
    assert engine.drag_minute(hand_tip(c, 60.0, r * 0.7)) is True
    engine.release()

    clock.advance(4.0)
    assert engine.submit() == 100
    assert engine.state is SessionState.COMPLETED
    assert engine.elapsed_s() == pytest.approx(4.0)

    # Later submits are idempotent and do not fire again.
    assert engine.submit() == 100
    assert scores == [100]

    # Hands are frozen after submission.
    assert engine.drag_minute(hand_tip(c, 200.0, r * 0.7)) is False
    assert engine.press(engine.hand_tip(Hand.MINUTE)) is False
    assert engine.minute_angle_deg == pytest.approx(60.0)

    payload = engine.snapshot().payload
    assert isinstance(payload, ClockPayload)
    assert payload.score == 100
    assert payload.interactive is False
    assert payload.feedback is not None and payload.feedback.startswith("Excellent")
    assert engine.snapshot().prompt.startswith("Score: 100/100. Excellent")


def test_opposite_placement_scores_zero() -> None:
    clock = FakeClock()
    engine = build_clock_test(clock=clock)
    c, r = engine.center, engine.radius

    engine.drag_hour(hand_tip(c, 125.0, r * 0.4))
    engine.drag_minute(hand_tip(c, 240.0, r * 0.7))
    assert engine.submit() == 0
    result = engine.result()
    assert result.hour_accuracy == pytest.approx(0.0, abs=1e-6)
    assert result.minute_accuracy == pytest.approx(0.0, abs=1e-6)


def test_press_grabs_nearest_hand_and_minute_wins_ties() -> None:
    clock = FakeClock()
    engine = build_clock_test(clock=clock, config=ClockConfig(clock_size=300))
    # Both hands start at 12: hour tip (150, 75), minute tip (150, 30).

    assert engine.hit_test(Point(150.0, 40.0)) is Hand.MINUTE
    assert engine.hit_test(Point(150.0, 100.0)) is Hand.MINUTE
    assert engine.hit_test(Point(290.0, 290.0)) is None

    assert engine.press(Point(290.0, 290.0)) is False
    assert engine.captured is None
    assert engine.state is SessionState.IDLE

    assert engine.press(Point(150.0, 40.0)) is True
    assert engine.captured is Hand.MINUTE
    assert engine.move(Point(250.0, 150.0)) is True
    assert engine.minute_angle_deg == pytest.approx(90.0)
    engine.release()
    assert engine.captured is None
    assert engine.move(Point(150.0, 250.0)) is False
    assert engine.minute_angle_deg == pytest.approx(90.0)

    # Hour hand now sits alone at 12 and can be grabbed on its own.
    assert engine.press(Point(150.0, 90.0)) is True
    assert engine.captured is Hand.HOUR
    engine.move(Point(50.0, 150.0))
    assert engine.hour_angle_deg == pytest.approx(270.0)


def test_configure_and_reset() -> None:
    clock = FakeClock()
    engine = build_clock_test(clock=clock, config=ClockConfig(target_time="3:00"))
    assert engine.target.hour_angle_deg == pytest.approx(90.0)

    target = engine.configure("6:30")
    assert target.hour_angle_deg == pytest.approx(195.0)
    assert target.minute_angle_deg == pytest.approx(180.0)
    payload = engine.snapshot().payload
    assert isinstance(payload, ClockPayload)
    assert payload.target_label == "06:30"

    engine.drag_minute(Point(250.0, 150.0))
    engine.submit()
    engine.reset()
    assert engine.state is SessionState.IDLE
    assert engine.score() is None
    assert engine.hour_angle_deg == 0.0
    assert engine.minute_angle_deg == 0.0
    assert engine.drag_hour(Point(150.0, 250.0)) is True


def test_bad_configs_are_rejected() -> None:
    clock = FakeClock()
    with pytest.raises(ConfigError):
        build_clock_test(clock=clock, config=ClockConfig(target_time="99:99"))
    with pytest.raises(ConfigError):
        build_clock_test(clock=clock, config=ClockConfig(clock_size=0))
    engine = build_clock_test(clock=clock)
    with pytest.raises(ConfigError):
        engine.configure("noon")
