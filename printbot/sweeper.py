import logging
from typing import List, Optional

from printbot.jobs import JobStore
from printbot.models import JobStatus, PrintJob
from printbot.scheduler import Scheduler, TimerHandle
from printbot.sessions import SessionStore

logger = logging.getLogger("printbot.sweeper")


class Sweeper:
    """Backstop cleanup for idle sessions and aged jobs."""

    def __init__(
        self,
        sessions: SessionStore,
        jobs: JobStore,
        scheduler: Scheduler,
        session_idle_timeout: float = 900.0,
        job_max_age: float = 3600.0,
    ):
        self.sessions = sessions
        self.jobs = jobs
        self.scheduler = scheduler
        self.session_idle_timeout = session_idle_timeout
        self.job_max_age = job_max_age
        self._timers: List[TimerHandle] = []

    def sweep_sessions(self) -> int:
        # the session's job is left alone; sweep_jobs reclaims it once orphaned
        expired = self.sessions.idle_longer_than(self.session_idle_timeout)
        for conversation_id in expired:
            self.sessions.delete(conversation_id)
        if expired:
            logger.info("Old sessions cleaned: %d", len(expired))
        return len(expired)

    def sweep_jobs(self) -> int:
        aged = self.jobs.terminal_older_than(self.job_max_age) + self._orphaned_pending()
        for job in aged:
            self.jobs.remove(job.job_id)
        if aged:
            logger.info("Old print jobs cleaned: %d", len(aged))
        return len(aged)

    def _orphaned_pending(self) -> List[PrintJob]:
        """Pending jobs past max age that no session can confirm any more."""
        referenced = {session.job_id for _, session in self.sessions.items()}
        now = self.scheduler.now()
        return [
            job for job in self.jobs
            if job.status == JobStatus.PENDING
            and job.job_id not in referenced
            and now - job.created_at > self.job_max_age
        ]

    def start(self, session_interval: float, job_interval: Optional[float]) -> None:
        self._timers.append(self.scheduler.every(session_interval, self.sweep_sessions))
        if job_interval is not None:
            self._timers.append(self.scheduler.every(job_interval, self.sweep_jobs))

    def stop(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
