from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

LOG_LEVEL_ENV = "ASSESSMENT_LOG_LEVEL"
SEED_ENV = "ASSESSMENT_SEED"
RESULTS_PATH_ENV = "ASSESSMENT_RESULTS_PATH"

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


@dataclass(frozen=True, slots=True)
class AppSettings:
    log_level: int = logging.WARNING
    fixed_seed: int | None = None
    results_path: Path | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppSettings":
        env = os.environ if environ is None else environ

        level_name = env.get(LOG_LEVEL_ENV, "").strip().upper()
        level = logging.getLevelName(level_name) if level_name else logging.WARNING
        if not isinstance(level, int):
            level = logging.WARNING

        fixed_seed: int | None = None
        raw_seed = env.get(SEED_ENV, "").strip()
        if raw_seed:
            try:
                fixed_seed = int(raw_seed)
            except ValueError:
                logging.getLogger(__name__).warning("Ignoring non-integer %s=%r", SEED_ENV, raw_seed)

        raw_path = env.get(RESULTS_PATH_ENV, "").strip()
        results_path = Path(raw_path).expanduser() if raw_path else None

        return cls(log_level=level, fixed_seed=fixed_seed, results_path=results_path)


def configure_logging(level: int = logging.WARNING) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
