"""Timing helpers for pipeline stages."""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager


@contextmanager
def time_stage(stage: str, logger: logging.Logger) -> Iterator[None]:
    """Context manager for timing pipeline stages.

    Args:
        stage: Stage name for logging
        logger: Logger instance

    Yields:
        None

    """
    start_time = time.time()
    logger.info(f"[stage:start] {stage}")
    try:
        yield
    finally:
        duration = time.time() - start_time
        logger.info(f"[stage:end] {stage} ({duration:.2f}s)")


class StageTimer:
    """Collects per-stage durations for the run summary."""

    def __init__(self) -> None:
        self.timings: dict[str, float] = {}

    @contextmanager
    def track(self, stage: str, logger: logging.Logger) -> Iterator[None]:
        start_time = time.time()
        with time_stage(stage, logger):
            try:
                yield
            finally:
                self.timings[stage] = round(time.time() - start_time, 4)
