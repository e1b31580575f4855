"""
Box Job Scheduler

Runs box generation and the expiry sweep on fixed intervals inside the API
process. Both jobs are idempotent, so an external cron calling the job
endpoints can run alongside (or instead of) this scheduler.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from streakfarm.exceptions import StreakFarmError

logger = logging.getLogger(__name__)


class BoxScheduler:
    """
    Manages the periodic box jobs.
    """

    def __init__(
        self,
        economy_service,
        generation_interval: float,
        expiry_interval: float
    ):
        self.economy_service = economy_service
        self.generation_interval = generation_interval
        self.expiry_interval = expiry_interval
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        """Start both job loops. Called once during application startup."""
        if self.running:
            logger.warning("Box scheduler already running")
            return

        self._tasks = [
            asyncio.create_task(
                self._run_periodically("generate_boxes", self.economy_service.generate_boxes, self.generation_interval)
            ),
            asyncio.create_task(
                self._run_periodically("expire_boxes", self.economy_service.expire_boxes, self.expiry_interval)
            ),
        ]
        logger.info(
            f"Box scheduler started (generation every {self.generation_interval}s, "
            f"expiry every {self.expiry_interval}s)"
        )

    async def stop(self) -> None:
        """Cancel the job loops and wait for them to finish"""
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("Box scheduler stopped")

    async def run_job_once(self, name: str, job: Callable[[], Awaitable[dict]]) -> Optional[dict]:
        """
        Run one job execution.

        Economy errors are logged here and reported as None; anything else
        propagates to the caller (the job loop logs it and keeps going).
        """
        try:
            result = await job()
            logger.info(f"Scheduled job {name} finished: {result}")
            return result
        except StreakFarmError as e:
            logger.error(f"Scheduled job {name} failed [{e.code}]: {e.message}")
            return None

    async def _run_periodically(
        self,
        name: str,
        job: Callable[[], Awaitable[dict]],
        interval: float
    ) -> None:
        while True:
            try:
                await self.run_job_once(name, job)
            except Exception as e:
                logger.error(f"Unexpected error in scheduled job {name}: {e}", exc_info=True)

            await asyncio.sleep(interval)

