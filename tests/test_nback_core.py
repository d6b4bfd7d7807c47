from __future__ import annotations

import pytest

from assessment_games.cognitive_core import ConfigError, SeededRng
from assessment_games.nback import (
    SHAPES,
    NBackSequence,
    Shape,
    count_true_matches,
    generate_sequence,
    score_responses,
)


def test_sequence_generation_is_deterministic_and_uses_known_shapes() -> None:
    s1 = generate_sequence(20, 2, rng=SeededRng(42))
    s2 = generate_sequence(20, 2, rng=SeededRng(42))

    assert s1 == s2
    assert len(s1) == 20
    assert s1.n == 2
    assert all(sym in SHAPES for sym in s1.symbols)


def test_match_flags_agree_with_counting() -> None:
    seq = generate_sequence(20, 2, rng=SeededRng(7))
    flagged = [i for i in range(len(seq)) if seq.is_match(i)]

    assert all(i >= 2 for i in flagged)
    assert len(flagged) == count_true_matches(seq.symbols, 2)
    for i in flagged:
        assert seq.symbols[i] == seq.symbols[i - 2]


def test_count_true_matches_hand_example() -> None:
    S, C, T = Shape.SQUARE, Shape.CIRCLE, Shape.TRIANGLE
    symbols = (S, C, S, C, T)
    assert count_true_matches(symbols, 2) == 2
    assert count_true_matches(symbols, 1) == 0
    assert NBackSequence(symbols=symbols, n=2).is_match(1) is False


def test_score_accounting_and_rounding() -> None:
    s = score_responses(correct=3, incorrect=1, total_matches=4)
    assert (s.correct, s.incorrect, s.missed, s.total, s.percentage_score) == (3, 1, 1, 4, 75)

    assert score_responses(correct=2, incorrect=0, total_matches=3).percentage_score == 67
    assert score_responses(correct=1, incorrect=0, total_matches=3).percentage_score == 33
    # 12.5 rounds up.
    assert score_responses(correct=1, incorrect=0, total_matches=8).percentage_score == 13


def test_no_matches_scores_zero() -> None:
    s = score_responses(correct=0, incorrect=2, total_matches=0)
    assert s.percentage_score == 0
    assert s.missed == 0


@pytest.mark.parametrize("length,n", [(5, 0), (3, 3), (2, 5)])
def test_degenerate_sequences_are_rejected(length: int, n: int) -> None:
    with pytest.raises(ConfigError):
        generate_sequence(length, n, rng=SeededRng(1))
