"""
Periodic maintenance for the in-process stores.

Runs one asyncio task per sweep (expired sessions, presence, notes locks,
login rate limits) plus the SSE keep-alive jobs (heartbeats, stale
connection cleanup and presence pings). Started and stopped by the API
lifespan.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from teambeat.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class MaintenanceJob:
    """A sweep run every ``interval`` seconds."""

    name: str
    interval: float
    run: Callable[[], int]
    runs: int = 0
    last_result: Optional[int] = None


class MaintenanceManager:
    """
    Owns the background sweep tasks.

    Example:
        >>> manager = MaintenanceManager.for_app_state(app.state, settings)
        >>> manager.start()
        >>> ...
        >>> await manager.shutdown()
    """

    def __init__(self, jobs: List[MaintenanceJob]):
        self.jobs = jobs
        self._tasks: Dict[str, asyncio.Task] = {}
        logger.info(f"MaintenanceManager initialized with {len(jobs)} job(s)")

    @classmethod
    def for_app_state(cls, state: Any, settings: Settings) -> "MaintenanceManager":
        """Build the standard job list over the stores held on ``app.state``."""
        return cls(
            [
                MaintenanceJob(
                    "session-cleanup",
                    settings.session_cleanup_interval_seconds,
                    state.sessions.cleanup,
                ),
                MaintenanceJob(
                    "presence-cleanup",
                    settings.presence_cleanup_interval_seconds,
                    state.presence.cleanup,
                ),
                MaintenanceJob(
                    "notes-lock-cleanup",
                    settings.presence_cleanup_interval_seconds,
                    state.notes_locks.cleanup,
                ),
                MaintenanceJob(
                    "rate-limit-cleanup",
                    settings.login_window_minutes * 60,
                    state.login_limiter.cleanup,
                ),
                MaintenanceJob(
                    "sse-heartbeat",
                    settings.sse_heartbeat_interval_seconds,
                    state.sse_manager.send_heartbeats,
                ),
                MaintenanceJob(
                    "sse-stale-cleanup",
                    settings.sse_heartbeat_interval_seconds,
                    state.sse_manager.cleanup_stale_connections,
                ),
                MaintenanceJob(
                    "presence-pings",
                    max(1, settings.presence_ping_interval_seconds // 2),
                    lambda: state.sse_manager.send_presence_pings(state.presence),
                ),
            ]
        )

    def run_once(self, job: MaintenanceJob) -> Optional[int]:
        """Run a job now; errors are logged and the job keeps its schedule."""
        try:
            result = job.run()
        except Exception as e:
            logger.error(f"Maintenance job {job.name} failed: {e}", exc_info=True)
            return None
        job.runs += 1
        job.last_result = result
        if result:
            logger.debug(f"Maintenance job {job.name}: {result}")
        return result

    async def _loop(self, job: MaintenanceJob) -> None:
        while True:
            await asyncio.sleep(job.interval)
            self.run_once(job)

    def start(self) -> None:
        """Start one task per job."""
        logger.info("Starting maintenance tasks...")
        for job in self.jobs:
            if job.name in self._tasks:
                continue
            self._tasks[job.name] = asyncio.create_task(self._loop(job), name=job.name)
            logger.info(f"✓ {job.name} every {job.interval}s")

    async def shutdown(self) -> None:
        """Cancel every task and wait for them to finish."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Stopped {len(tasks)} maintenance task(s)")

    def get_status(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": job.name,
                "interval": job.interval,
                "runs": job.runs,
                "last_result": job.last_result,
                "running": job.name in self._tasks,
            }
            for job in self.jobs
        ]
