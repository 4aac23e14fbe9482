import logging
import os
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from printbot.errors import InvalidState, NotFound
from printbot.models import FileAnalysis, FileMeta, JobStatus, PrintJob

logger = logging.getLogger("printbot.jobs")


def estimate_cost(page_count: int, copies: int, has_color: bool, bw_rate: int, color_rate: int) -> int:
    rate = color_rate if has_color else bw_rate
    return page_count * copies * rate


class JobStore:
    """
    Owns every live PrintJob and its backing file.

    Copies/options change only through update_options while a job is pending;
    status changes only through the mark_* transitions used by the engine.
    """

    def __init__(
        self,
        clock: Callable[[], float],
        bw_rate: int,
        color_rate: int,
        default_copies: int = 1,
        audit: Optional[Callable[[str, dict], None]] = None,
    ):
        self._clock = clock
        self.bw_rate = bw_rate
        self.color_rate = color_rate
        self.default_copies = default_copies
        self._audit = audit or (lambda event, payload: None)
        self._jobs: Dict[str, PrintJob] = {}

    # -----------------------------
    # store interface
    # -----------------------------
    def get(self, job_id: str) -> Optional[PrintJob]:
        return self._jobs.get(job_id)

    def put(self, job: PrintJob) -> None:
        self._jobs[job.job_id] = job

    def delete(self, job_id: str) -> Optional[PrintJob]:
        return self._jobs.pop(job_id, None)

    def items(self) -> List[Tuple[str, PrintJob]]:
        return list(self._jobs.items())

    def __iter__(self) -> Iterator[PrintJob]:
        return iter(list(self._jobs.values()))

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def require(self, job_id: str) -> PrintJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFound(f"job {job_id} not found")
        return job

    # -----------------------------
    # lifecycle
    # -----------------------------
    def cost_of(self, job: PrintJob) -> int:
        return estimate_cost(job.page_count, job.copies, job.has_color, self.bw_rate, self.color_rate)

    def create_job(
        self,
        owner_id: str,
        conversation_id: str,
        file_meta: FileMeta,
        analysis: FileAnalysis,
    ) -> PrintJob:
        job = PrintJob(
            file_name=file_meta.file_name,
            original_name=file_meta.original_name,
            file_path=file_meta.file_path,
            extension=file_meta.extension,
            file_size=file_meta.file_size,
            page_count=analysis.page_count,
            has_color=analysis.has_color,
            copies=self.default_copies,
            owner_id=owner_id,
            conversation_id=conversation_id,
            created_at=self._clock(),
        )
        job.estimated_cost = self.cost_of(job)
        self.put(job)
        logger.info("Print job created %s owner=%s file=%s", job.job_id, owner_id, job.original_name)
        self._audit("job_created", {"job_id": job.job_id, "owner": owner_id, "pages": job.page_count})
        return job

    def update_options(self, job_id: str, mutator: Callable[[PrintJob], None]) -> PrintJob:
        """Apply mutator to a copy of a pending job and commit it with a fresh cost."""
        job = self.require(job_id)
        if job.status != JobStatus.PENDING:
            raise InvalidState(f"job {job_id} is {job.status.value}")

        draft = job.model_copy(deep=True)
        mutator(draft)
        if draft.job_id != job_id or draft.status != JobStatus.PENDING:
            raise InvalidState("identity and status cannot be changed through update_options")
        draft.estimated_cost = self.cost_of(draft)
        self.put(draft)
        return draft

    def mark_printing(self, job_id: str) -> PrintJob:
        job = self.require(job_id)
        if job.status != JobStatus.PENDING:
            raise InvalidState(f"job {job_id} is {job.status.value}, expected pending")
        job.status = JobStatus.PRINTING
        job.started_at = self._clock()
        self._audit("job_printing", {"job_id": job_id})
        return job

    def mark_completed(self, job_id: str) -> PrintJob:
        job = self._require_printing(job_id)
        job.status = JobStatus.COMPLETED
        job.completed_at = self._clock()
        job.last_error = None
        self._audit("job_completed", {"job_id": job_id, "attempts": job.attempts})
        return job

    def mark_failed(self, job_id: str, error: str) -> PrintJob:
        job = self.require(job_id)
        if job.status.is_terminal:
            raise InvalidState(f"job {job_id} is already {job.status.value}")
        job.status = JobStatus.FAILED
        job.failed_at = self._clock()
        job.last_error = error[:1000]
        self._audit("job_failed", {"job_id": job_id, "attempts": job.attempts, "error": job.last_error})
        return job

    def _require_printing(self, job_id: str) -> PrintJob:
        job = self.require(job_id)
        if job.status != JobStatus.PRINTING:
            raise InvalidState(f"job {job_id} is {job.status.value}, expected printing")
        return job

    # -----------------------------
    # removal
    # -----------------------------
    def remove(self, job_id: str) -> bool:
        """Delete the job and its file. Missing ids are ignored."""
        job = self._jobs.pop(job_id, None)
        if job is None:
            return False
        release_file(job.file_path)
        logger.info("Print job cleaned up %s", job_id)
        self._audit("job_removed", {"job_id": job_id, "status": job.status.value})
        return True

    def terminal_older_than(self, max_age: float) -> List[PrintJob]:
        now = self._clock()
        return [
            job for job in self._jobs.values()
            if job.status.is_terminal and now - job.created_at > max_age
        ]

    def pending_queue(self) -> List[PrintJob]:
        """Non-terminal jobs, oldest first."""
        jobs = [j for j in self._jobs.values() if not j.status.is_terminal]
        return sorted(jobs, key=lambda j: j.created_at)

    def clear(self) -> None:
        self._jobs.clear()


def release_file(path: str) -> None:
    try:
        if path and os.path.exists(path):
            os.remove(path)
            logger.info("Temp file deleted %s", path)
    except OSError as e:
        logger.error("Cleanup error for %s: %s", path, e)
