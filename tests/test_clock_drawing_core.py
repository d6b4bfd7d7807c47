from __future__ import annotations

import pytest

from assessment_games.cognitive_core import ConfigError, Point
from assessment_games.clock_drawing import (
    AngleTarget,
    circular_difference,
    clock_score,
    configure_target,
    feedback_for_score,
    hand_accuracy,
    hand_tip,
    parse_target_time,
    pointer_angle,
    target_angles,
)


def test_default_target_angles() -> None:
    target = configure_target("10:10")
    assert target.hour_angle_deg == pytest.approx(305.0)
    assert target.minute_angle_deg == pytest.approx(60.0)


@pytest.mark.parametrize(
    "text,hour_deg,minute_deg",
    [
        ("3:00", 90.0, 0.0),
        ("12:00", 0.0, 0.0),
        ("00:30", 15.0, 180.0),
        ("23:45", 352.5, 270.0),
    ],
)
def test_target_angles_table(text: str, hour_deg: float, minute_deg: float) -> None:
    target = configure_target(text)
    assert target.hour_angle_deg == pytest.approx(hour_deg)
    assert target.minute_angle_deg == pytest.approx(minute_deg)


@pytest.mark.parametrize("bad", ["25:00", "10:60", "ten past", "10-10", ""])
def test_malformed_times_raise(bad: str) -> None:
    with pytest.raises(ConfigError):
        parse_target_time(bad)


def test_pointer_angle_screen_orientation() -> None:
    c = Point(150.0, 150.0)
    assert pointer_angle(c, Point(150.0, 50.0)) == pytest.approx(0.0)
    assert pointer_angle(c, Point(250.0, 150.0)) == pytest.approx(90.0)
    assert pointer_angle(c, Point(150.0, 250.0)) == pytest.approx(180.0)
    assert pointer_angle(c, Point(50.0, 150.0)) == pytest.approx(270.0)


def test_hand_tip_inverts_pointer_angle() -> None:
    c = Point(150.0, 150.0)
    for angle in (0.0, 45.0, 137.0, 305.0):
        tip = hand_tip(c, angle, 100.0)
        assert circular_difference(pointer_angle(c, tip), angle) == pytest.approx(0.0, abs=1e-9)
        assert c.distance_to(tip) == pytest.approx(100.0)


def test_circular_difference_takes_short_way_round() -> None:
    assert circular_difference(350.0, 10.0) == pytest.approx(20.0)
    assert circular_difference(10.0, 350.0) == pytest.approx(20.0)
    assert circular_difference(0.0, 180.0) == pytest.approx(180.0)
    assert circular_difference(90.0, 90.0) == pytest.approx(0.0)
    for a, b in ((12.0, 300.0), (200.0, 5.0)):
        assert circular_difference(a + 360.0, b) == pytest.approx(circular_difference(a, b))
        assert 0.0 <= circular_difference(a, b) <= 180.0


def test_accuracy_bounds() -> None:
    assert hand_accuracy(0.0) == pytest.approx(100.0)
    assert hand_accuracy(90.0) == pytest.approx(50.0)
    assert hand_accuracy(180.0) == pytest.approx(0.0)


def test_score_weights_hour_over_minute() -> None:
    target = target_angles(10, 10)
    assert clock_score(hour_angle_deg=305.0, minute_angle_deg=60.0, target=target) == 100
    assert clock_score(hour_angle_deg=125.0, minute_angle_deg=240.0, target=target) == 0
    # Hour perfect, minute opposite: 60.
    assert clock_score(hour_angle_deg=305.0, minute_angle_deg=240.0, target=target) == 60
    # Minute perfect, hour opposite: 40.
    assert clock_score(hour_angle_deg=125.0, minute_angle_deg=60.0, target=target) == 40


def test_partial_placement_score() -> None:
    target = AngleTarget(hour=12, minute=0, hour_angle_deg=0.0, minute_angle_deg=0.0)
    # Hour 9 deg off (95), minute 18 deg off (90): 0.6 * 95 + 0.4 * 90.
    assert clock_score(hour_angle_deg=351.0, minute_angle_deg=18.0, target=target) == 93


def test_feedback_bands() -> None:
    assert feedback_for_score(100).startswith("Excellent")
    assert feedback_for_score(90).startswith("Excellent")
    assert feedback_for_score(89).startswith("Good")
    assert feedback_for_score(70).startswith("Good")
    assert feedback_for_score(69).startswith("Keep practicing")
