import logging
import math
import mimetypes
import os
import re
import time
import uuid
from typing import Optional

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from printbot.env import Settings
from printbot.errors import ValidationError
from printbot.models import Attachment, FileAnalysis, FileMeta

logger = logging.getLogger("printbot.inspector")

MIME_EXTENSIONS = {
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "image/jpeg": "jpeg",
    "image/jpg": "jpg",
    "image/png": "png",
    "text/plain": "txt",
}

SUSPICIOUS_PATTERNS = [
    re.compile(rb"javascript:", re.IGNORECASE),
    re.compile(rb"<script", re.IGNORECASE),
    re.compile(rb"eval\(", re.IGNORECASE),
    re.compile(rb"document\.write", re.IGNORECASE),
]

IMAGE_EXTENSIONS = ("jpg", "jpeg", "png")
WORD_EXTENSIONS = ("doc", "docx")
WORD_BYTES_PER_PAGE = 50_000
TEXT_LINES_PER_PAGE = 60

_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]")


def extension_for(attachment: Attachment) -> str:
    mimetype = (attachment.mimetype or "").split(";")[0].strip().lower()
    if mimetype in MIME_EXTENSIONS:
        return MIME_EXTENSIONS[mimetype]
    guessed = mimetypes.guess_extension(mimetype) if mimetype else None
    if guessed:
        return guessed.lstrip(".").lower()
    if attachment.filename and "." in attachment.filename:
        return attachment.filename.rsplit(".", 1)[1].lower()
    return ""


class FileInspector:
    """Validates uploads, stores them under temp_dir and reports page count / color."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def validate(self, attachment: Attachment, sender_id: str) -> str:
        """Returns the normalised extension or raises ValidationError."""
        extension = extension_for(attachment)
        allowed = self.settings.allowed_formats
        if f".{extension}" not in allowed:
            logger.warning("Invalid file format from %s: %s", sender_id, extension)
            raise ValidationError(
                f"format {extension!r} not allowed",
                user_message="File format not supported.\n\nSupported formats:\n" + ", ".join(allowed),
            )

        size = len(attachment.data)
        if size >= self.settings.max_file_size:
            logger.warning("File too large from %s: %d bytes", sender_id, size)
            raise ValidationError(
                f"file size {size} not under limit",
                user_message=(
                    "File too large.\n\n"
                    f"Maximum: {self.settings.max_file_size / (1024 * 1024):.1f}MB\n"
                    f"File size: {size / (1024 * 1024):.1f}MB"
                ),
            )

        if self.settings.enable_file_validation and not self.is_safe(attachment.data):
            logger.warning("Security check failed for %s", sender_id)
            raise ValidationError(
                "suspicious content",
                user_message="The file did not pass the security check. Please use a different file.",
            )
        return extension

    def is_safe(self, data: bytes) -> bool:
        return not any(pattern.search(data) for pattern in SUSPICIOUS_PATTERNS)

    def store(self, attachment: Attachment, sender_id: str, extension: str, now: Optional[float] = None) -> FileMeta:
        stamp = int((now if now is not None else time.time()) * 1000)
        file_name = f"print_{_SAFE_NAME.sub('_', sender_id)}_{stamp}_{uuid.uuid4().hex[:8]}.{extension}"
        os.makedirs(self.settings.temp_dir, exist_ok=True)
        file_path = os.path.join(self.settings.temp_dir, file_name)
        with open(file_path, "wb") as f:
            f.write(attachment.data)
        return FileMeta(
            file_name=file_name,
            original_name=attachment.filename or file_name,
            file_path=file_path,
            extension=extension,
            file_size=len(attachment.data),
        )

    def analyze(self, file_path: str, extension: str) -> FileAnalysis:
        page_count = 1
        has_color = False
        try:
            if extension == "pdf":
                with open(file_path, "rb") as f:
                    data = f.read()
                page_count = len(PdfReader(file_path).pages)
                has_color = b"DeviceRGB" in data or b"ColorSpace" in data
            elif extension in IMAGE_EXTENSIONS:
                has_color = True
            elif extension in WORD_EXTENSIONS:
                page_count = math.ceil(os.path.getsize(file_path) / WORD_BYTES_PER_PAGE)
            elif extension == "txt":
                with open(file_path, "r", encoding="utf-8", errors="replace") as f:
                    lines = sum(1 for _ in f)
                page_count = math.ceil(lines / TEXT_LINES_PER_PAGE)
        except (PdfReadError, OSError, ValueError) as e:
            logger.error("File analysis error for %s: %s", file_path, e)
        return FileAnalysis(page_count=max(1, page_count), has_color=has_color)
