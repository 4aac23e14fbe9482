import inspect
import io
from typing import Any, Callable, List, Optional, Tuple

import pytest
from pypdf import PdfWriter

from printbot.bot import PrintBot
from printbot.env import Settings
from printbot.models import Attachment, InboundMessage
from printbot.printers.base import PrinterService
from printbot.scheduler import Scheduler, TimerHandle
from printbot.transport import OutboxTransport

START = 1_700_000_000.0


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeTimer(TimerHandle):
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler(Scheduler):
    """Virtual clock: sleep advances time instantly, timers fire on advance()."""

    def __init__(self, start: float = START):
        self._now = start
        self.sleeps: List[float] = []
        self.timers: List[Tuple[float, Callable[[], Any], FakeTimer]] = []
        self.periodic: List[Tuple[float, Callable[[], Any], FakeTimer]] = []

    def now(self):
        return self._now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self._now += seconds

    def call_later(self, delay, callback):
        timer = FakeTimer()
        self.timers.append((self._now + delay, callback, timer))
        return timer

    def every(self, interval, callback):
        timer = FakeTimer()
        self.periodic.append((interval, callback, timer))
        return timer

    def close(self):
        for _, _, timer in self.timers + self.periodic:
            timer.cancel()

    def pending_delays(self) -> List[float]:
        return [due - self._now for due, _, timer in self.timers if not timer.cancelled]

    async def advance(self, seconds: float) -> None:
        self._now += seconds
        due = [t for t in self.timers if t[0] <= self._now and not t[2].cancelled]
        self.timers = [t for t in self.timers if t not in due]
        for _, callback, _ in due:
            result = callback()
            if inspect.isawaitable(result):
                await result


class FakePrinter(PrinterService):
    """Scripted print results; True once the script runs out."""

    def __init__(self, results: Optional[List[bool]] = None, online: bool = True):
        self.results = list(results or [])
        self.online = online
        self.calls = []
        self.health_checks = 0

    def list_printers(self):
        return ["fake-printer"]

    async def check_online(self):
        self.health_checks += 1
        return self.online

    async def print_file(self, file_path, copies, options):
        self.calls.append((file_path, copies, options))
        return self.results.pop(0) if self.results else True


def make_pdf(pages: int) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=595, height=842)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


def file_message(sender: str = "6281234", data: bytes = b"hello\n", mimetype: str = "text/plain",
                 filename: str = "notes.txt", conversation: Optional[str] = None) -> InboundMessage:
    return InboundMessage(
        sender_id=sender,
        conversation_id=conversation or sender,
        attachment=Attachment(filename=filename, mimetype=mimetype, data=data),
    )


def text_message(text: str, sender: str = "6281234", conversation: Optional[str] = None) -> InboundMessage:
    return InboundMessage(sender_id=sender, conversation_id=conversation or sender, text=text)


def texts(transport: OutboxTransport, conversation: str) -> List[str]:
    return [event["text"] for event in transport.drain(conversation)]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        temp_dir=str(tmp_path / "temp"),
        log_dir=str(tmp_path / "logs"),
        audit_log_path=str(tmp_path / "logs" / "audit.jsonl"),
        database_url=f"sqlite:///{tmp_path / 'data' / 'printbot.db'}",
        admin_numbers=["admin"],
        api_token="secret",
        max_requests_per_hour=10,
    )


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def printer():
    return FakePrinter()


@pytest.fixture
def transport():
    return OutboxTransport()


@pytest.fixture
def bot(settings, printer, transport, scheduler):
    return PrintBot(settings, printer, transport, scheduler)
