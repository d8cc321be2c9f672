import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)


class PeriodicJob:
    """A coroutine function run on a fixed interval.

    A run that is triggered while the previous run is still executing is
    skipped. Exceptions raised by the job are logged and do not stop the
    schedule.

    Args:
        name: Job name used in logs and for manual triggering
        interval_seconds: Seconds between scheduled runs
        job: Coroutine function taking no arguments
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        job: Callable[[], Awaitable[Any]],
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.name = name
        self.interval_seconds = interval_seconds
        self.job = job
        self.running = False
        self.last_result: Any = None

    async def run(self) -> bool:
        """Run the job once unless it is already running.

        Returns:
            True if the job ran, False if it was skipped
        """
        if self.running:
            logger.warning("Skipping %s: previous run still in progress", self.name)
            return False

        self.running = True
        self.last_result = None
        logger.info("Starting %s", self.name)
        try:
            self.last_result = await self.job()
            logger.info("Completed %s", self.name)
        except Exception:
            logger.exception("Failed to complete %s", self.name)
        finally:
            self.running = False
        return True


class SyncScheduler:
    """Runs periodic jobs as asyncio tasks on the current event loop.

    Each tick starts the job in its own task so a slow run does not delay
    the schedule; the job's skip-if-running guard prevents overlap.

    Args:
        jobs: Jobs to schedule
    """

    def __init__(self, jobs: List[PeriodicJob]):
        self.jobs: Dict[str, PeriodicJob] = {job.name: job for job in jobs}
        self._loops: List[asyncio.Task] = []
        self._runs: Set[asyncio.Task] = set()

    @property
    def started(self) -> bool:
        return bool(self._loops)

    def start(self) -> None:
        """Start one timer task per job"""
        if self.started:
            return
        for job in self.jobs.values():
            self._loops.append(
                asyncio.create_task(self._tick(job), name=f"schedule:{job.name}")
            )
        logger.info("Scheduler started with %d job(s)", len(self.jobs))

    async def stop(self) -> None:
        """Cancel timers and any runs still in progress"""
        tasks = self._loops + list(self._runs)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._loops.clear()
        self._runs.clear()
        logger.info("Scheduler stopped")

    async def run_once(self, name: str) -> bool:
        """Trigger a job manually with the same skip-if-running guard.

        Raises:
            KeyError: If no job has this name
        """
        return await self.jobs[name].run()

    def get_job(self, name: str) -> Optional[PeriodicJob]:
        return self.jobs.get(name)

    async def _tick(self, job: PeriodicJob) -> None:
        while True:
            await asyncio.sleep(job.interval_seconds)
            task = asyncio.create_task(job.run())
            self._runs.add(task)
            task.add_done_callback(self._runs.discard)
