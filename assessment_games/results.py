from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from .clock_drawing import ClockResult
from .maze import MazeResult
from .nback import NBackScore
from .trail import TrailResult

logger = logging.getLogger(__name__)

RESULT_VERSION = 1


@dataclass(frozen=True, slots=True)
class AssessmentResult:
    """Persistable summary of one finished session.

    Engines only hand their completion payload to the host; this record is
    what the host forwards to whatever stores results.
    """

    test_code: str
    test_version: int
    seed: int | None
    completed_at_utc: str
    metrics: dict[str, float | int | bool] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "test_code": self.test_code,
            "test_version": self.test_version,
            "seed": self.seed,
            "completed_at_utc": self.completed_at_utc,
            "metrics": dict(self.metrics),
        }


def _utc_now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time()))


def maze_assessment_result(result: MazeResult, *, seed: int) -> AssessmentResult:
    return AssessmentResult(
        test_code="maze",
        test_version=RESULT_VERSION,
        seed=int(seed),
        completed_at_utc=_utc_now_iso(),
        metrics={"time_s": float(result.time_s), "completed": bool(result.completed)},
    )


def nback_assessment_result(score: NBackScore, *, seed: int, n: int) -> AssessmentResult:
    return AssessmentResult(
        test_code="nback",
        test_version=RESULT_VERSION,
        seed=int(seed),
        completed_at_utc=_utc_now_iso(),
        metrics={
            "n": int(n),
            "correct": int(score.correct),
            "incorrect": int(score.incorrect),
            "missed": int(score.missed),
            "total": int(score.total),
            "percentage_score": int(score.percentage_score),
        },
    )


def clock_assessment_result(result: ClockResult) -> AssessmentResult:
    return AssessmentResult(
        test_code="clock",
        test_version=RESULT_VERSION,
        seed=None,
        completed_at_utc=_utc_now_iso(),
        metrics={
            "score": int(result.score),
            "hour_accuracy": round(float(result.hour_accuracy), 3),
            "minute_accuracy": round(float(result.minute_accuracy), 3),
            "target_hour": int(result.target.hour),
            "target_minute": int(result.target.minute),
        },
    )


def trail_assessment_result(result: TrailResult, *, seed: int) -> AssessmentResult:
    return AssessmentResult(
        test_code="trail",
        test_version=RESULT_VERSION,
        seed=int(seed),
        completed_at_utc=_utc_now_iso(),
        metrics={
            "time_s": float(result.time_s),
            "errors": int(result.errors),
            "completed": bool(result.completed),
        },
    )


def append_result_jsonl(path: Path, result: AssessmentResult) -> None:
    """Append one record as a JSON line, creating parent directories."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(result.to_dict(), sort_keys=True))
        fh.write("\n")
    logger.debug("Recorded %s result to %s", result.test_code, path)
