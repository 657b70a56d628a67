# src/chronotask/scheduling/supervisor.py

from __future__ import annotations

"""
Job supervisor.

Owns a named table of recurring jobs. Each job gets its own runner coroutine:
- sleep until the job's next fire time (per its Schedule),
- spawn the job body as a separate in-flight task,
- go back to sleep.

Consequences:
- jobs never wait on each other;
- a job whose previous run is still going fires again anyway (overlap is allowed;
  job bodies are written to be idempotent);
- stop()/stop_all() only cancel sleeping runners, in-flight bodies run to completion;
- an exception in a body is logged with the job name and the job stays scheduled.

Clock and sleep are injected, so tests drive the loop without real waiting.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from ..core.clock import Clock, SystemClock
from ..errors import UnknownJobError
from ..logging_setup import current_job
from .schedule import Schedule

logger = logging.getLogger(__name__)

JobBody = Callable[[], Awaitable[Any] | Any]
SleepFn = Callable[[float], Awaitable[Any]]


@dataclass(slots=True, frozen=True)
class JobStatus:
    name: str
    schedule: str
    active: bool
    in_flight: int
    runs: int
    failures: int
    last_started_at: float | None
    last_finished_at: float | None
    last_error: str | None
    last_result: Any


@dataclass(slots=True)
class _Job:
    name: str
    schedule: Schedule
    body: JobBody
    runner: asyncio.Task[None] | None = None
    in_flight: set[asyncio.Task[Any]] = field(default_factory=set)
    runs: int = 0
    failures: int = 0
    last_started_at: float | None = None
    last_finished_at: float | None = None
    last_error: str | None = None
    last_result: Any = None

    @property
    def active(self) -> bool:
        return self.runner is not None and not self.runner.done()


class Supervisor:
    def __init__(self, *, clock: Clock | None = None, sleep: SleepFn | None = None) -> None:
        self._clock = clock or SystemClock()
        self._sleep = sleep or asyncio.sleep
        self._jobs: dict[str, _Job] = {}
        self._in_flight: set[asyncio.Task[Any]] = set()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def job_names(self) -> list[str]:
        return list(self._jobs)

    def register(self, name: str, schedule: Schedule, body: JobBody) -> None:
        """Install a job. An existing job with the same name is stopped and replaced."""
        old = self._jobs.get(name)
        if old is not None:
            logger.warning("Job %s already exists, stopping old instance", name)
            self._cancel_runner(old)

        job = _Job(name=name, schedule=schedule, body=body)
        self._jobs[name] = job
        if self._running:
            self._start_runner(job)
        logger.info("Scheduled job: %s (%s)", name, schedule.describe())

    def start(self) -> None:
        """Start firing every registered job. Must be called from a running event loop."""
        asyncio.get_running_loop()
        self._running = True
        for job in self._jobs.values():
            if not job.active:
                self._start_runner(job)
        logger.info("Supervisor started with %d jobs", len(self._jobs))

    def stop(self, name: str) -> None:
        job = self._get(name)
        self._cancel_runner(job)
        logger.info("Stopped job: %s", name)

    def stop_all(self) -> None:
        """Suppress all future ticks. Executions already in flight are left to finish."""
        logger.info("Stopping all scheduled jobs...")
        for job in self._jobs.values():
            self._cancel_runner(job)
        self._running = False
        logger.info("All scheduled jobs stopped (%d still in flight)", len(self._in_flight))

    def status(self) -> dict[str, JobStatus]:
        return {
            name: JobStatus(
                name=name,
                schedule=job.schedule.describe(),
                active=job.active,
                in_flight=len(job.in_flight),
                runs=job.runs,
                failures=job.failures,
                last_started_at=job.last_started_at,
                last_finished_at=job.last_finished_at,
                last_error=job.last_error,
                last_result=job.last_result,
            )
            for name, job in self._jobs.items()
        }

    def trigger(self, name: str) -> asyncio.Task[Any]:
        """Fire one execution now, exactly as a tick would (returns the in-flight task)."""
        return self._spawn(self._get(name))

    async def run_job(self, name: str) -> Any:
        """Run one execution inline through the failure-isolation boundary."""
        return await self._execute(self._get(name))

    async def wait_idle(self) -> None:
        """Wait until no job execution is in flight."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    # ---- internals ----

    def _get(self, name: str) -> _Job:
        job = self._jobs.get(name)
        if job is None:
            raise UnknownJobError(name)
        return job

    def _start_runner(self, job: _Job) -> None:
        job.runner = asyncio.create_task(self._run_schedule(job), name=f"schedule:{job.name}")

    @staticmethod
    def _cancel_runner(job: _Job) -> None:
        if job.runner is not None and not job.runner.done():
            job.runner.cancel()
        job.runner = None

    async def _run_schedule(self, job: _Job) -> None:
        last_fire: float | None = None
        while True:
            now_ts = self._clock.now()
            # A wake-up that lands just before the boundary must not select it again.
            ref = now_ts if last_fire is None else max(now_ts, last_fire)
            target = job.schedule.next_fire_after(ref)
            await self._sleep(max(0.0, target - now_ts))
            last_fire = target
            self._spawn(job)

    def _spawn(self, job: _Job) -> asyncio.Task[Any]:
        task = asyncio.create_task(self._execute(job), name=f"job:{job.name}")
        job.in_flight.add(task)
        self._in_flight.add(task)
        task.add_done_callback(job.in_flight.discard)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _execute(self, job: _Job) -> Any:
        job.runs += 1
        job.last_started_at = self._clock.now()
        token = current_job.set(job.name)
        logger.debug("Running scheduled job: %s", job.name)
        try:
            result = job.body()
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            job.failures += 1
            job.last_error = f"{type(e).__name__}: {e}"
            logger.exception("Scheduled job failed name=%s", job.name)
            return None
        finally:
            job.last_finished_at = self._clock.now()
            current_job.reset(token)

        job.last_error = None
        job.last_result = result
        return result
