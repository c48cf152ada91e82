"""Tests for stage timing utilities."""

import logging

import pytest

from layoffs_cleaning.utils.perf_utils import StageTimer, time_stage


def test_time_stage(caplog: pytest.LogCaptureFixture) -> None:
    """Test stage timing context manager."""
    caplog.set_level(logging.INFO)
    logger = logging.getLogger("test")

    with time_stage("test_stage", logger):
        pass

    assert "[stage:start] test_stage" in caplog.text
    assert "[stage:end] test_stage (" in caplog.text


def test_time_stage_logs_end_on_exception(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    logger = logging.getLogger("test")

    with pytest.raises(RuntimeError):
        with time_stage("failing", logger):
            raise RuntimeError("boom")

    assert "[stage:end] failing" in caplog.text


def test_stage_timer_records_each_stage() -> None:
    logger = logging.getLogger("test")
    timer = StageTimer()

    with timer.track("staging", logger):
        pass
    with pytest.raises(ValueError):
        with timer.track("deduplication", logger):
            raise ValueError("bad")

    assert set(timer.timings) == {"staging", "deduplication"}
    assert all(t >= 0 for t in timer.timings.values())
