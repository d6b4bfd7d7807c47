from __future__ import annotations

from dataclasses import dataclass

import pytest

from assessment_games.cognitive_core import ConfigError, SessionState
from assessment_games.nback import (
    NBackConfig,
    NBackPayload,
    NBackScore,
    build_nback_test,
    count_true_matches,
)


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def _go_to(clock: FakeClock, t: float) -> None:
    clock.advance(t - clock.t)


def _run_frames_to(engine, clock: FakeClock, t: float, frame_s: float = 0.05) -> None:
    while clock.t < t - 1e-9:
        clock.advance(min(frame_s, t - clock.t))
        engine.update()


def test_headless_run_scores_every_match_and_one_false_alarm() -> None:
    clock = FakeClock()
    results: list[NBackScore] = []
    cfg = NBackConfig(n_value=1, sequence_length=8)
    engine = build_nback_test(clock=clock, seed=314, config=cfg, on_complete=results.append)
    seq = engine.sequence

    engine.start()
    assert engine.state is SessionState.ACTIVE

    # Lead-in: nothing shown yet.
    _go_to(clock, 0.9)
    engine.update()
    assert engine.stimulus_visible is False
    assert engine.signal_match() is False

    false_alarm_at = next((i for i in range(1, len(seq)) if not seq.is_match(i)), None)

    for k in range(len(seq)):
        _go_to(clock, 1.0 + 2.0 * k + 0.1)
        engine.update()
        assert engine.current_index == k
        assert engine.stimulus_visible is True

        if seq.is_match(k):
            assert engine.signal_match() is True
            assert engine.signal_match() is False
        elif k == false_alarm_at:
            assert engine.signal_match() is True

        # Blank gap between stimuli never accepts a response.
        _go_to(clock, 1.0 + 2.0 * k + 1.6)
        engine.update()
        assert engine.stimulus_visible is False
        assert engine.signal_match() is False

    assert engine.state is SessionState.ACTIVE
    _go_to(clock, 1.0 + 2.0 * len(seq) + 0.05)
    engine.update()
    assert engine.state is SessionState.COMPLETED
    assert engine.timer_pending is False

    total = count_true_matches(seq.symbols, 1)
    expected_incorrect = 0 if false_alarm_at is None else 1
    assert len(results) == 1
    score = results[0]
    assert score.correct == total
    assert score.incorrect == expected_incorrect
    assert score.missed == 0
    assert score.total == total
    assert score.percentage_score == (100 if total else 0)
    assert engine.result() == score


def test_ignored_stimuli_count_as_missed() -> None:
    clock = FakeClock()
    cfg = NBackConfig(n_value=2, sequence_length=20)
    engine = build_nback_test(clock=clock, seed=8, config=cfg)
    engine.start()

    _run_frames_to(engine, clock, 1.0 + 2.0 * 20 + 0.05)
    assert engine.state is SessionState.COMPLETED

    total = count_true_matches(engine.sequence.symbols, 2)
    s = engine.score()
    assert (s.correct, s.incorrect, s.missed, s.total) == (0, 0, total, total)


def test_stalled_host_does_not_skip_stimuli() -> None:
    clock = FakeClock()
    engine = build_nback_test(clock=clock, seed=12, config=NBackConfig(n_value=1, sequence_length=10))
    engine.start()

    clock.advance(1.1)
    engine.update()
    assert engine.current_index == 0
    assert engine.stimulus_visible is True

    # One very late frame only finishes the overdue step.
    clock.advance(6.0)
    engine.update()
    assert engine.current_index == 0
    assert engine.stimulus_visible is False

    clock.advance(0.55)
    engine.update()
    assert engine.current_index == 1
    assert engine.stimulus_visible is True

    # Stimulus 1 still gets its full display window.
    clock.advance(1.4)
    engine.update()
    assert engine.current_index == 1
    assert engine.stimulus_visible is True
    clock.advance(0.1)
    engine.update()
    assert engine.stimulus_visible is False


def test_no_response_on_first_n_stimuli() -> None:
    clock = FakeClock()
    engine = build_nback_test(clock=clock, seed=1, config=NBackConfig(n_value=2, sequence_length=10))
    engine.start()

    for k in range(2):
        _run_frames_to(engine, clock, 1.0 + 2.0 * k + 0.1)
        assert engine.stimulus_visible is True
        payload = engine.snapshot().payload
        assert isinstance(payload, NBackPayload)
        assert payload.accepting_response is False
        assert engine.signal_match() is False


def test_feedback_flash_expires() -> None:
    clock = FakeClock()
    engine = build_nback_test(clock=clock, seed=21, config=NBackConfig(n_value=1, sequence_length=6))
    engine.start()

    _run_frames_to(engine, clock, 3.1)
    assert engine.current_index == 1
    assert engine.signal_match() is True

    payload = engine.snapshot().payload
    assert isinstance(payload, NBackPayload)
    assert payload.feedback in ("correct", "incorrect")

    clock.advance(0.31)
    payload = engine.snapshot().payload
    assert isinstance(payload, NBackPayload)
    assert payload.feedback is None


def test_reset_mid_run_stops_the_cadence() -> None:
    clock = FakeClock()
    done: list[NBackScore] = []
    engine = build_nback_test(clock=clock, seed=5, on_complete=done.append)
    engine.start()
    _go_to(clock, 5.2)
    engine.update()
    assert engine.current_index >= 0

    engine.reset()
    assert engine.state is SessionState.IDLE
    assert engine.timer_pending is False
    assert engine.current_index == -1
    assert engine.stimulus_visible is False

    clock.advance(100.0)
    engine.update()
    assert engine.state is SessionState.IDLE
    assert done == []


def test_invalid_config_is_rejected() -> None:
    clock = FakeClock()
    with pytest.raises(ConfigError):
        build_nback_test(clock=clock, seed=1, config=NBackConfig(n_value=0))
    with pytest.raises(ConfigError):
        build_nback_test(clock=clock, seed=1, config=NBackConfig(n_value=3, sequence_length=3))
    with pytest.raises(ConfigError):
        build_nback_test(clock=clock, seed=1, config=NBackConfig(stimulus_duration_s=0.0))
