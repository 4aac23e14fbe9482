import time
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

MIN_COPIES = 1
MAX_COPIES = 10


class ParseError(ValueError):
    pass


class JobStatus(str, Enum):
    PENDING = "pending"
    PRINTING = "printing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class PaperSize(str, Enum):
    A4 = "A4"
    A3 = "A3"
    LETTER = "Letter"

    @classmethod
    def parse(cls, text: str) -> "PaperSize":
        key = (text or "").strip().lower()
        for size in cls:
            if size.value.lower() == key:
                return size
        raise ParseError(f"unknown paper size: {text!r}")


class Quality(str, Enum):
    DRAFT = "draft"
    NORMAL = "normal"
    HIGH = "high"

    @classmethod
    def parse(cls, text: str) -> "Quality":
        key = (text or "").strip().lower()
        for quality in cls:
            if quality.value == key:
                return quality
        raise ParseError(f"unknown quality: {text!r}")


class PrintOptions(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    duplex: bool = False
    paper_size: PaperSize = PaperSize.A4
    quality: Quality = Quality.NORMAL


class Attachment(BaseModel):
    filename: Optional[str] = None
    mimetype: str
    data: bytes


class InboundMessage(BaseModel):
    sender_id: str
    conversation_id: str
    text: str = ""
    attachment: Optional[Attachment] = None
    # False for a group message that does not mention the bot; ignored
    mentioned: bool = True


class FileMeta(BaseModel):
    """A validated, stored upload."""

    file_name: str
    original_name: str
    file_path: str
    extension: str
    file_size: int


class FileAnalysis(BaseModel):
    page_count: int = Field(default=1, ge=1)
    has_color: bool = False


class PrintJob(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    job_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    file_name: str
    original_name: str
    file_path: str
    extension: str
    file_size: int
    page_count: int = Field(ge=1)
    has_color: bool = False
    copies: int = Field(default=1, ge=MIN_COPIES, le=MAX_COPIES)
    options: PrintOptions = Field(default_factory=PrintOptions)
    estimated_cost: int = 0
    owner_id: str
    conversation_id: str
    status: JobStatus = JobStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: float = Field(default_factory=lambda: time.time())
    started_at: Optional[float] = None
    completed_at: Optional[float] = None
    failed_at: Optional[float] = None

    @property
    def total_pages(self) -> int:
        return self.page_count * self.copies

    @property
    def finished_at(self) -> Optional[float]:
        return self.completed_at or self.failed_at


class HistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_id: str
    owner_id: str
    original_name: str
    page_count: int
    copies: int
    has_color: bool
    estimated_cost: int
    status: JobStatus
    attempts: int
    created_at: float
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    @property
    def total_pages(self) -> int:
        return self.page_count * self.copies

    @classmethod
    def from_job(cls, job: PrintJob) -> "HistoryEntry":
        return cls(
            job_id=job.job_id,
            owner_id=job.owner_id,
            original_name=job.original_name,
            page_count=job.page_count,
            copies=job.copies,
            has_color=job.has_color,
            estimated_cost=job.estimated_cost,
            status=job.status,
            attempts=job.attempts,
            created_at=job.created_at,
            started_at=job.started_at,
            finished_at=job.finished_at,
        )


class UserStat(BaseModel):
    total_requests: int = 0
    total_prints: int = 0
    total_pages: int = 0
    first_seen: float
    last_seen: float
