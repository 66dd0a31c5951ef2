"""Tests for the periodic background retraining task."""

import asyncio
from datetime import datetime

import pytest

from srs_backend import main
from srs_backend.srs import retraining
from srs_backend.srs.predictor import ReviewPredictor
from srs_backend.srs.retraining import retrain_periodically, run_scheduled_retrain

NOW = datetime(2026, 3, 1, 9, 0, 0)


@pytest.mark.asyncio
async def test_scheduled_retrain_skips_without_enough_data(session_factory, seed_progress, tmp_path) -> None:
    await seed_progress(NOW, recent=30)
    predictor = ReviewPredictor(model_path=tmp_path / "model.joblib", min_examples=100)

    assert await run_scheduled_retrain(session_factory, predictor, now=NOW) is None
    assert not predictor.is_trained


@pytest.mark.asyncio
async def test_scheduled_retrain_trains_when_ready(session_factory, seed_progress, tmp_path) -> None:
    await seed_progress(NOW, recent=105, stale=4)
    predictor = ReviewPredictor(model_path=tmp_path / "model.joblib", min_examples=100)

    assert await run_scheduled_retrain(session_factory, predictor, now=NOW) == 105
    assert predictor.is_trained


@pytest.mark.asyncio
async def test_periodic_retrain_backs_off_after_error(session_factory, tmp_path, monkeypatch) -> None:
    calls = []
    enough = asyncio.Event()

    async def flaky_run(factory, predictor):
        calls.append(asyncio.get_running_loop().time())
        if len(calls) == 1:
            raise RuntimeError("database went away")
        if len(calls) >= 3:
            enough.set()
        return 0

    monkeypatch.setattr(retraining, "run_scheduled_retrain", flaky_run)
    task = asyncio.create_task(
        retrain_periodically(
            session_factory,
            ReviewPredictor(model_path=tmp_path / "model.joblib"),
            interval_seconds=0.01,
            initial_delay_seconds=0,
            error_backoff_seconds=0.01,
        )
    )
    await asyncio.wait_for(enough.wait(), timeout=5)

    # The failed first run did not stop the loop
    assert len(calls) >= 3
    assert not task.done()

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_lifespan_starts_and_cancels_retraining(monkeypatch) -> None:
    started = asyncio.Event()
    cancelled = asyncio.Event()

    async def fake_loop(session_factory, predictor):
        started.set()
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    monkeypatch.setattr(main, "retrain_periodically", fake_loop)
    monkeypatch.setattr(main.settings, "retrain_enabled", True)

    async with main.lifespan(main.app):
        await asyncio.wait_for(started.wait(), timeout=5)
        assert not cancelled.is_set()
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_lifespan_without_retraining(monkeypatch) -> None:
    calls = []

    async def recording_loop(session_factory, predictor):
        calls.append(predictor)

    monkeypatch.setattr(main, "retrain_periodically", recording_loop)
    monkeypatch.setattr(main.settings, "retrain_enabled", False)

    async with main.lifespan(main.app):
        await asyncio.sleep(0)
    assert calls == []
