"""Tests for the background job runner."""

import asyncio

import pytest

from backend.forge.errors import PersistenceError
from backend.forge.pipeline.results import TaskResult
from backend.forge.workers.runner import BackgroundJobRunner


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _sequence(*outcomes):
    """Job returning (or raising) the given outcomes in order."""
    queue = list(outcomes)
    calls = []

    async def job() -> TaskResult:
        calls.append(1)
        outcome = queue.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    job.calls = calls  # type: ignore[attr-defined]
    return job


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


class TestRun:
    @pytest.mark.asyncio
    async def test_success_first_try(self, sleep) -> None:
        runner = BackgroundJobRunner(sleep=sleep)
        job = _sequence(TaskResult.success(created=2))

        result = await runner.run("ingest", job)

        assert result.ok
        assert result.details == {"created": 2}
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_retryable_failure_then_success(self, sleep) -> None:
        runner = BackgroundJobRunner(sleep=sleep, backoff_seconds=1.0)
        job = _sequence(TaskResult.failure("rate limited", retryable=True), TaskResult.success())

        result = await runner.run("moderate", job)

        assert result.ok
        assert len(job.calls) == 2
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_non_retryable_failure_is_final(self, sleep) -> None:
        runner = BackgroundJobRunner(sleep=sleep)
        job = _sequence(TaskResult.failure("document not found"))

        result = await runner.run("ingest", job)

        assert not result.ok
        assert result.error == "document not found"
        assert len(job.calls) == 1

    @pytest.mark.asyncio
    async def test_raised_errors_are_retried(self, sleep) -> None:
        runner = BackgroundJobRunner(sleep=sleep)
        job = _sequence(PersistenceError("db down"), RuntimeError("boom"), TaskResult.success())

        result = await runner.run("ingest", job)

        assert result.ok
        assert len(job.calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, sleep) -> None:
        runner = BackgroundJobRunner(max_attempts=3, backoff_seconds=2.0, sleep=sleep)
        job = _sequence(*[TaskResult.failure("still down", retryable=True)] * 3)

        result = await runner.run("moderate", job)

        assert not result.ok
        assert result.error == "still down"
        assert len(job.calls) == 3
        assert sleep.delays == [2.0, 4.0]

    def test_backoff_is_capped(self) -> None:
        runner = BackgroundJobRunner(backoff_seconds=2.0, backoff_max_seconds=10.0)

        assert [runner.backoff_for(n) for n in range(1, 6)] == [2.0, 4.0, 8.0, 10.0, 10.0]

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError):
            BackgroundJobRunner(max_attempts=0)


class TestSubmit:
    @pytest.mark.asyncio
    async def test_submit_and_drain(self, sleep) -> None:
        runner = BackgroundJobRunner(sleep=sleep)
        done: list[str] = []

        def make(name: str):
            async def job() -> TaskResult:
                await asyncio.sleep(0)
                done.append(name)
                return TaskResult.success()

            return job

        first = runner.submit("a", make("a"))
        second = runner.submit("b", make("b"))
        await runner.drain()

        assert sorted(done) == ["a", "b"]
        assert first.result().ok and second.result().ok
