from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum

from .clock import Clock
from .cognitive_core import (
    ConfigError,
    GameSnapshot,
    ScheduledTask,
    SeededRng,
    SessionState,
    round_half_up,
)

logger = logging.getLogger(__name__)

# Share of the positions after the first n that get a forced lag-n match.
MATCH_INJECTION_RATIO = 0.3
FEEDBACK_FLASH_S = 0.3


@dataclass(frozen=True, slots=True)
class NBackConfig:
    n_value: int = 1
    sequence_length: int = 20
    stimulus_duration_s: float = 1.5
    inter_stimulus_interval_s: float = 0.5
    lead_in_s: float = 1.0


class Shape(StrEnum):
    SQUARE = "square"
    CIRCLE = "circle"
    TRIANGLE = "triangle"


SHAPES: tuple[Shape, ...] = tuple(Shape)


@dataclass(frozen=True, slots=True)
class NBackSequence:
    symbols: tuple[Shape, ...]
    n: int

    def __len__(self) -> int:
        return len(self.symbols)

    def is_match(self, index: int) -> bool:
        return index >= self.n and self.symbols[index] == self.symbols[index - self.n]


@dataclass(frozen=True, slots=True)
class NBackScore:
    correct: int
    incorrect: int
    missed: int
    total: int
    percentage_score: int


@dataclass(frozen=True, slots=True)
class NBackPayload:
    stimulus: Shape | None
    index: int  # -1 before the first reveal
    n: int
    sequence_length: int
    accepting_response: bool
    feedback: str | None  # "correct" | "incorrect" while the flash is showing
    correct: int
    incorrect: int
    missed: int


def generate_sequence(length: int, n: int, *, rng: SeededRng) -> NBackSequence:
    """Uniform shape stream with some lag-n matches written in.

    The injection picks positions with replacement and later writes can break
    earlier matches, so the realised match count is only roughly
    ``MATCH_INJECTION_RATIO`` of the eligible positions.
    """

    if n < 1:
        raise ConfigError("n must be >= 1")
    if length <= n:
        raise ConfigError("sequence length must be greater than n")

    seq = [rng.choice(SHAPES) for _ in range(length)]

    injections = int((length - n) * MATCH_INJECTION_RATIO)
    for _ in range(injections):
        pos = rng.randint(n, length - 1)
        seq[pos] = seq[pos - n]

    return NBackSequence(symbols=tuple(seq), n=int(n))


def count_true_matches(symbols: Sequence[Shape], n: int) -> int:
    return sum(1 for i in range(n, len(symbols)) if symbols[i] == symbols[i - n])


def score_responses(*, correct: int, incorrect: int, total_matches: int) -> NBackScore:
    missed = total_matches - correct
    pct = 0 if total_matches == 0 else round_half_up(100.0 * correct / total_matches)
    return NBackScore(
        correct=int(correct),
        incorrect=int(incorrect),
        missed=int(missed),
        total=int(total_matches),
        percentage_score=int(pct),
    )


class NBackEngine:
    """Paced n-back presentation with match detection.

    Stimuli are revealed on a fixed cadence (lead-in blank, then visible /
    blank alternation) driven by a single scheduled task. A response is only
    taken while a stimulus that can be a match is visible, once per stimulus.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        seed: int,
        config: NBackConfig | None = None,
        on_complete: Callable[[NBackScore], None] | None = None,
    ) -> None:
        cfg = config or NBackConfig()
        if cfg.n_value < 1:
            raise ConfigError("n_value must be >= 1")
        if cfg.sequence_length <= cfg.n_value:
            raise ConfigError("sequence_length must be greater than n_value")
        if cfg.stimulus_duration_s <= 0.0:
            raise ConfigError("stimulus_duration_s must be > 0")
        if cfg.inter_stimulus_interval_s < 0.0:
            raise ConfigError("inter_stimulus_interval_s must be >= 0")
        if cfg.lead_in_s < 0.0:
            raise ConfigError("lead_in_s must be >= 0")

        self._clock = clock
        self._seed = int(seed)
        self._cfg = cfg
        self._on_complete = on_complete
        self._rng = SeededRng(self._seed)
        self._task = ScheduledTask(clock)

        self._sequence = generate_sequence(cfg.sequence_length, cfg.n_value, rng=self._rng)
        self._clear_session()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def sequence(self) -> NBackSequence:
        return self._sequence

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def stimulus_visible(self) -> bool:
        return self._visible

    @property
    def timer_pending(self) -> bool:
        return self._task.pending

    def start(self) -> None:
        if self._state is not SessionState.IDLE:
            return
        self._state = SessionState.ACTIVE
        self._started_at_s = self._clock.now()
        self._task.schedule(self._cfg.lead_in_s, self._show_next)
        logger.debug("N-back session started (n=%d, length=%d)", self._sequence.n, len(self._sequence))

    def reset(self) -> None:
        self._task.cancel()
        self._sequence = generate_sequence(self._cfg.sequence_length, self._cfg.n_value, rng=self._rng)
        self._clear_session()
        logger.debug("N-back reset")

    def update(self) -> None:
        self._task.poll()

    def signal_match(self) -> bool:
        """Register a "match" response for the visible stimulus.

        Returns True if the response was counted (correct or incorrect).
        """

        if self._state is not SessionState.ACTIVE or not self._visible:
            return False
        if self._index < self._sequence.n or self._index in self._responded:
            return False

        self._responded.add(self._index)
        if self._sequence.is_match(self._index):
            self._correct += 1
            self._feedback = "correct"
        else:
            self._incorrect += 1
            self._feedback = "incorrect"
        self._feedback_until_s = self._clock.now() + FEEDBACK_FLASH_S
        return True

    def score(self) -> NBackScore:
        if self._final is not None:
            return self._final
        return NBackScore(
            correct=self._correct,
            incorrect=self._incorrect,
            missed=self._missed,
            total=self._revealed_matches,
            percentage_score=0,
        )

    def result(self) -> NBackScore:
        return self.score()

    def elapsed_s(self) -> float:
        if self._started_at_s is None:
            return 0.0
        end = self._ended_at_s if self._ended_at_s is not None else self._clock.now()
        return max(0.0, end - self._started_at_s)

    def snapshot(self) -> GameSnapshot:
        stimulus = None
        if self._visible and 0 <= self._index < len(self._sequence):
            stimulus = self._sequence.symbols[self._index]

        feedback = self._feedback
        if feedback is not None and self._clock.now() >= self._feedback_until_s:
            feedback = None

        return GameSnapshot(
            title="N-Back Memory",
            state=self._state,
            prompt=self._prompt_text(),
            elapsed_s=self.elapsed_s(),
            payload=NBackPayload(
                stimulus=stimulus,
                index=self._index,
                n=self._sequence.n,
                sequence_length=len(self._sequence),
                accepting_response=(
                    self._state is SessionState.ACTIVE
                    and self._visible
                    and self._index >= self._sequence.n
                    and self._index not in self._responded
                ),
                feedback=feedback,
                correct=self._correct,
                incorrect=self._incorrect,
                missed=self._missed,
            ),
        )

    def _prompt_text(self) -> str:
        n = self._sequence.n
        if self._state is SessionState.IDLE:
            steps = "step" if n == 1 else "steps"
            return "\n".join(
                [
                    f"Press Space when the shape matches the one shown {n} {steps} ago.",
                    f"Each shape will appear for {self._cfg.stimulus_duration_s:g} seconds.",
                    "Press Enter to start.",
                ]
            )
        if self._state is SessionState.COMPLETED:
            s = self.score()
            return "\n".join(
                [
                    "Test Complete",
                    f"Correct matches: {s.correct} / {s.total}",
                    f"Score:           {s.percentage_score}%",
                    f"Incorrect:       {s.incorrect}",
                    f"Missed:          {s.missed}",
                    "Press R to try again.",
                ]
            )
        return "Match?"

    def _clear_session(self) -> None:
        self._state = SessionState.IDLE
        self._started_at_s: float | None = None
        self._ended_at_s: float | None = None
        self._index = -1
        self._visible = False
        self._responded: set[int] = set()
        self._correct = 0
        self._incorrect = 0
        self._missed = 0
        self._revealed_matches = 0
        self._feedback: str | None = None
        self._feedback_until_s = 0.0
        self._final: NBackScore | None = None

    def _show_next(self) -> None:
        self._index += 1
        if self._index >= len(self._sequence):
            self._visible = False
            self._complete()
            return

        self._visible = True
        if self._sequence.is_match(self._index):
            self._revealed_matches += 1
        self._task.schedule(self._cfg.stimulus_duration_s, self._hide)

    def _hide(self) -> None:
        self._visible = False
        self._task.schedule(self._cfg.inter_stimulus_interval_s, self._show_next)

    def _complete(self) -> None:
        self._task.cancel()
        self._ended_at_s = self._clock.now()
        self._state = SessionState.COMPLETED

        total = count_true_matches(self._sequence.symbols, self._sequence.n)
        final = score_responses(correct=self._correct, incorrect=self._incorrect, total_matches=total)
        self._missed = final.missed
        self._final = final
        logger.debug(
            "N-back completed: %d/%d correct, %d incorrect", final.correct, final.total, final.incorrect
        )
        if self._on_complete is not None:
            self._on_complete(final)


def build_nback_test(
    *,
    clock: Clock,
    seed: int,
    config: NBackConfig | None = None,
    on_complete: Callable[[NBackScore], None] | None = None,
) -> NBackEngine:
    return NBackEngine(clock=clock, seed=seed, config=config, on_complete=on_complete)
