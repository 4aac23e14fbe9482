import asyncio
import logging
from typing import Awaitable, Callable, Optional

from printbot.errors import InvalidState, NotFound, PrintExecutionFailed, PrinterOffline, PrintSystemError
from printbot.history import HistoryRecorder, UserStatsBook
from printbot.jobs import JobStore
from printbot.models import JobStatus, PrintJob
from printbot.printers.base import PrinterService
from printbot.scheduler import Scheduler

logger = logging.getLogger("printbot.engine")


class PrinterMonitor:
    """Last known printer health, refreshed on every check."""

    def __init__(self, printer: PrinterService, scheduler: Scheduler):
        self.printer = printer
        self.scheduler = scheduler
        self.online = True
        self.last_check: Optional[float] = None

    async def check(self) -> bool:
        try:
            online = bool(await self.printer.check_online())
        except OSError as e:
            logger.error("Printer health check failed: %s", e)
            online = False
        self.online = online
        self.last_check = self.scheduler.now()
        return online


class ExecutionEngine:
    """
    Drives one pending job to a terminal state.

    - health gate first; an offline printer fails the job without any print attempt
    - up to max_attempts prints with a fixed delay in between; first success wins
    - every outcome lands in history and the job is removed after the grace window
    """

    def __init__(
        self,
        jobs: JobStore,
        monitor: PrinterMonitor,
        history: HistoryRecorder,
        stats: UserStatsBook,
        scheduler: Scheduler,
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        attempt_timeout: float = 30.0,
        grace_seconds: float = 300.0,
        audit: Optional[Callable[[str, dict], None]] = None,
    ):
        self.jobs = jobs
        self.monitor = monitor
        self.history = history
        self.stats = stats
        self.scheduler = scheduler
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.attempt_timeout = attempt_timeout
        self.grace_seconds = grace_seconds
        self._audit = audit or (lambda event, payload: None)

    async def submit(
        self,
        job_id: str,
        on_dispatch: Optional[Callable[[PrintJob], Awaitable[None]]] = None,
    ) -> PrintJob:
        job = self.jobs.get(job_id)
        if job is None:
            raise NotFound(f"job {job_id} not found")
        if job.status != JobStatus.PENDING:
            raise InvalidState(f"job {job_id} is {job.status.value}")

        try:
            job = self.jobs.mark_printing(job_id)

            if not await self.monitor.check():
                self._finish_failed(job_id, "printer offline")
                logger.error("Printer offline during print job %s", job_id)
                raise PrinterOffline(f"printer offline for job {job_id}")

            if on_dispatch is not None:
                try:
                    await on_dispatch(job)
                except Exception:
                    logger.exception("Dispatch notification failed for job %s", job_id)

            if not await self._print_with_retry(job):
                self._finish_failed(job_id, job.last_error or "print attempts exhausted")
                logger.error("Print job %s failed after %d attempts", job_id, job.attempts)
                raise PrintExecutionFailed(f"job {job_id} failed after {job.attempts} attempts")

            job = self.jobs.mark_completed(job_id)
            self.history.record(job)
            self.stats.record_print(job.owner_id, job.total_pages)
            logger.info(
                "Print job completed %s owner=%s pages=%d copies=%d",
                job_id, job.owner_id, job.page_count, job.copies,
            )
            return job
        except (PrinterOffline, PrintExecutionFailed):
            raise
        except Exception as e:
            logger.exception("Print processing system error for job %s", job_id)
            current = self.jobs.get(job_id)
            if current is not None and not current.status.is_terminal:
                self._finish_failed(job_id, f"{type(e).__name__}: {e}")
            raise PrintSystemError(str(e)) from e
        finally:
            self.scheduler.call_later(self.grace_seconds, lambda: self.jobs.remove(job_id))

    async def _print_with_retry(self, job: PrintJob) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            job.attempts = attempt
            logger.info("Print attempt %d/%d for job %s", attempt, self.max_attempts, job.job_id)
            try:
                ok = await asyncio.wait_for(
                    self.monitor.printer.print_file(job.file_path, job.copies, job.options),
                    timeout=self.attempt_timeout,
                )
            except asyncio.TimeoutError:
                ok = False
                job.last_error = f"print attempt timed out after {self.attempt_timeout}s"
            else:
                if not ok:
                    job.last_error = "printer reported failure"
            if ok:
                return True
            logger.warning("Print attempt %d failed for job %s: %s", attempt, job.job_id, job.last_error)
            self._audit("job_attempt_failed", {"job_id": job.job_id, "attempt": attempt, "error": job.last_error})
            if attempt < self.max_attempts:
                await self.scheduler.sleep(self.retry_delay)
        return False

    def _finish_failed(self, job_id: str, error: str) -> PrintJob:
        job = self.jobs.mark_failed(job_id, error)
        self.history.record(job)
        return job
