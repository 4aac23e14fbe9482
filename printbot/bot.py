import asyncio
import logging
import os
from typing import Callable, Dict, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from printbot import replies
from printbot.audit import AuditLog
from printbot.db.snapshots import StatsSnapshotStore
from printbot.engine import ExecutionEngine, PrinterMonitor
from printbot.env import Settings
from printbot.errors import (
    InvalidState,
    NotFound,
    PrintBotError,
    PrintExecutionFailed,
    PrinterOffline,
    PrintSystemError,
    RateLimited,
)
from printbot.history import HistoryRecorder, UserStatsBook
from printbot.inspector import FileInspector
from printbot.jobs import JobStore, release_file
from printbot.logs import recent_log_lines
from printbot.models import InboundMessage, JobStatus, PrintJob, PrintOptions
from printbot.negotiation import (
    ApplyCopies,
    ApplyPaperSize,
    ApplyQuality,
    CancelJob,
    PromptCopies,
    Reprompt,
    ShowConfirmation,
    ShowOptions,
    ShowPaperMenu,
    ShowQualityMenu,
    Step,
    SubmitJob,
    ToggleDuplex,
    transition,
)
from printbot.printers.base import PrinterService
from printbot.rate_limit import RateLimiter
from printbot.scheduler import Scheduler, TimerHandle
from printbot.sessions import ConversationSession, SessionStore
from printbot.sweeper import Sweeper
from printbot.transport import ChatTransport

logger = logging.getLogger("printbot.bot")

EXECUTION_ERRORS = (PrinterOffline, PrintExecutionFailed, PrintSystemError)
TEST_PRINT_CLEANUP_SECONDS = 5.0
HISTORY_REPLY_LIMIT = 10


class PrintBot:
    """
    Conversation orchestrator.

    - one inbound message at a time: rate limit, access, then command / file / session
    - confirmed jobs run as their own task so retries never block other conversations
    - every PrintBotError ends as a reply carrying its user_message
    """

    def __init__(
        self,
        settings: Settings,
        printer: PrinterService,
        transport: ChatTransport,
        scheduler: Scheduler,
        snapshots: Optional[StatsSnapshotStore] = None,
        audit: Optional[Callable[[str, dict], None]] = None,
        log_path: Optional[str] = None,
        on_fatal: Optional[Callable[[], None]] = None,
    ):
        self.settings = settings
        self.printer = printer
        self.transport = transport
        self.scheduler = scheduler
        self.snapshots = snapshots
        self.audit = audit or AuditLog(settings.audit_log_path, settings.bot_id, enabled=settings.enable_logging)
        self.log_path = log_path
        self.on_fatal = on_fatal

        clock = scheduler.now
        self.limiter = RateLimiter(
            settings.max_requests_per_hour,
            clock,
            admins=settings.admin_numbers,
            enabled=settings.enable_rate_limit,
        )
        self.jobs = JobStore(
            clock,
            settings.bw_cost_per_page,
            settings.color_cost_per_page,
            default_copies=settings.default_copies,
            audit=self.audit,
        )
        self.sessions = SessionStore(clock)
        self.history = HistoryRecorder(live_cap=settings.history_live_cap)
        self.stats = UserStatsBook(clock)
        self.inspector = FileInspector(settings)
        self.monitor = PrinterMonitor(printer, scheduler)
        self.engine = ExecutionEngine(
            self.jobs,
            self.monitor,
            self.history,
            self.stats,
            scheduler,
            max_attempts=settings.print_max_attempts,
            retry_delay=settings.print_retry_delay_seconds,
            attempt_timeout=settings.print_timeout_seconds,
            grace_seconds=settings.job_grace_seconds,
            audit=self.audit,
        )
        self.sweeper = Sweeper(
            self.sessions,
            self.jobs,
            scheduler,
            session_idle_timeout=settings.session_idle_timeout_seconds,
            job_max_age=settings.job_max_age_seconds,
        )

        self.started_at = clock()
        self._timers: List[TimerHandle] = []
        self._tasks: Set[asyncio.Task] = set()
        self._stopped = False
        self._crash_task: Optional[asyncio.Task] = None

    # -----------------------------
    # lifecycle
    # -----------------------------
    async def start(self) -> None:
        if self.snapshots is not None:
            stats, history = self.snapshots.load()
            self.stats.load(stats)
            self.history.load(history)
            logger.info("Stats loaded: %d users, %d history entries", len(stats), len(history))

        self.sweeper.start(
            self.settings.session_sweep_interval_seconds,
            self.settings.job_sweep_interval_seconds if self.settings.auto_cleanup else None,
        )
        self._timers.append(self.scheduler.every(self.settings.printer_check_interval_seconds, self.monitor.check))
        self._timers.append(self.scheduler.every(self.settings.stats_save_interval_seconds, self.save_stats))

        self.started_at = self.scheduler.now()
        online = await self.monitor.check()
        logger.info("%s started, printer %s is %s", self.settings.bot_name, self.settings.printer_name,
                    "online" if online else "offline")

    async def shutdown(self) -> None:
        """Stop timers and running jobs, flush stats, release in-memory state."""
        if self._stopped:
            return
        self._stopped = True
        self.sweeper.stop()
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        try:
            self.save_stats()
        except SQLAlchemyError:
            logger.exception("Failed to save stats on shutdown")

        for job in list(self.jobs):
            self.jobs.remove(job.job_id)
        self.sessions.clear()
        self.scheduler.close()
        logger.info("%s stopped", self.settings.bot_name)

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def crash(self, exc: BaseException) -> None:
        """Crash-class fault: flush and release everything, then hand over to on_fatal."""
        if self._stopped:
            return
        logger.critical("Unrecoverable error, shutting down: %r", exc)
        self.audit("bot_crash", {"error": f"{type(exc).__name__}: {exc}"})
        await self.shutdown()
        if self.on_fatal is not None:
            self.on_fatal()

    def save_stats(self) -> int:
        if self.snapshots is None:
            return 0
        entries = self.history.take_unsaved()
        try:
            return self.snapshots.save(self.stats.items(), entries)
        except SQLAlchemyError:
            self.history.restore_unsaved(entries)
            raise

    async def drain(self) -> None:
        """Wait for every running job task."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self._crash_task is not None:
            await self._crash_task

    def state(self) -> Dict[str, object]:
        return {
            "printer": self.settings.printer_name,
            "printer_online": self.monitor.online,
            "last_check": self.monitor.last_check,
            "jobs": len(self.jobs),
            "queue": len(self.jobs.pending_queue()),
            "sessions": len(self.sessions),
            "users": len(self.stats),
            "history": len(self.history),
            "uptime": self.scheduler.now() - self.started_at,
        }

    # -----------------------------
    # inbound
    # -----------------------------
    async def handle_message(self, message: InboundMessage) -> None:
        sender = message.sender_id
        conversation = message.conversation_id
        is_admin = self.settings.is_admin(sender)

        if not message.mentioned:
            return

        if not self.limiter.admit(sender):
            logger.warning("Rate limit exceeded for %s", sender)
            self.audit("rate_limited", {"sender": sender})
            await self.transport.reply(conversation, RateLimited.user_message)
            return

        if self.settings.allowed_users and sender not in self.settings.allowed_users and not is_admin:
            logger.warning("Unauthorized access attempt from %s", sender)
            self.audit("unauthorized", {"sender": sender})
            await self.transport.reply(conversation, replies.UNAUTHORIZED)
            return

        self.stats.record_request(sender)
        text = (message.text or "").strip()

        try:
            if is_admin and text and text.split()[0].lower() == "/admin":
                await self._handle_admin(message, text)
            elif text.startswith("/"):
                await self._handle_command(message, text)
            elif message.attachment is not None:
                await self._handle_file(message)
            elif conversation in self.sessions:
                await self._handle_session(message, self.sessions.get(conversation))
            elif text:
                await self.transport.reply(conversation, replies.help_text(self.settings, is_admin))
        except PrintBotError as e:
            log = logger.error if isinstance(e, EXECUTION_ERRORS) else logger.warning
            log("Request from %s rejected: %s: %s", sender, type(e).__name__, e)
            await self.transport.reply(conversation, e.user_message)
        except OSError:
            logger.exception("Error processing message from %s", sender)
            await self.transport.reply(conversation, replies.FILE_ERROR)
        except Exception as e:
            logger.exception("Unhandled error processing message from %s", sender)
            await self.crash(e)
            raise

    # -----------------------------
    # file submission
    # -----------------------------
    async def _handle_file(self, message: InboundMessage) -> None:
        sender = message.sender_id
        conversation = message.conversation_id
        attachment = message.attachment

        extension = self.inspector.validate(attachment, sender)
        meta = self.inspector.store(attachment, sender, extension, now=self.scheduler.now())
        analysis = self.inspector.analyze(meta.file_path, extension)

        previous = self.sessions.delete(conversation)
        if previous is not None:
            self._drop_pending(previous.job_id, reason="replaced")

        job = self.jobs.create_job(sender, conversation, meta, analysis)
        logger.info("File received from %s: %s (%d pages)", sender, meta.original_name, analysis.page_count)
        await self.transport.reply(conversation, replies.confirmation(job, len(self.jobs.pending_queue())))
        self.sessions.start(conversation, job.job_id)

    def _drop_pending(self, job_id: str, reason: str) -> bool:
        job = self.jobs.get(job_id)
        if job is None or job.status != JobStatus.PENDING:
            return False
        self.jobs.remove(job_id)
        self.audit("job_cancelled", {"job_id": job_id, "reason": reason})
        logger.info("Print job cancelled %s (%s)", job_id, reason)
        return True

    # -----------------------------
    # option negotiation
    # -----------------------------
    async def _handle_session(self, message: InboundMessage, session: ConversationSession) -> None:
        conversation = message.conversation_id
        job = self.jobs.get(session.job_id)
        if job is None:
            self.sessions.delete(conversation)
            raise NotFound(f"session job {session.job_id} missing")

        result = transition(session.step, message.text)
        if result.recognised:
            if result.ends_session:
                self.sessions.delete(conversation)
            else:
                self.sessions.advance(conversation, result.step)

        for effect in result.effects:
            job = await self._apply(effect, job, conversation)

    async def _apply(self, effect, job: PrintJob, conversation: str) -> PrintJob:
        reply = self.transport.reply

        if isinstance(effect, Reprompt):
            await reply(conversation, replies.REPROMPTS[effect.step])
        elif isinstance(effect, ShowConfirmation):
            await reply(conversation, replies.confirmation(job, len(self.jobs.pending_queue())))
        elif isinstance(effect, ShowOptions):
            await reply(conversation, replies.options_menu(job))
        elif isinstance(effect, PromptCopies):
            await reply(conversation, replies.COPIES_PROMPT)
        elif isinstance(effect, ShowQualityMenu):
            await reply(conversation, replies.quality_menu(job))
        elif isinstance(effect, ShowPaperMenu):
            await reply(conversation, replies.paper_menu(job))
        elif isinstance(effect, ApplyCopies):
            job = self.jobs.update_options(job.job_id, lambda j: setattr(j, "copies", effect.copies))
            await reply(conversation, replies.copies_changed(job.copies))
        elif isinstance(effect, ApplyQuality):
            job = self.jobs.update_options(job.job_id, lambda j: setattr(j.options, "quality", effect.quality))
            await reply(conversation, replies.quality_changed(job.options.quality))
        elif isinstance(effect, ApplyPaperSize):
            job = self.jobs.update_options(job.job_id, lambda j: setattr(j.options, "paper_size", effect.paper_size))
            await reply(conversation, replies.paper_changed(job.options.paper_size))
        elif isinstance(effect, ToggleDuplex):
            job = self.jobs.update_options(job.job_id, lambda j: setattr(j.options, "duplex", not j.options.duplex))
            await reply(conversation, replies.duplex_changed(job.options.duplex))
        elif isinstance(effect, CancelJob):
            if not self._drop_pending(job.job_id, reason="user"):
                raise InvalidState(f"job {job.job_id} is {job.status.value}")
            await reply(conversation, replies.CANCELLED)
        elif isinstance(effect, SubmitJob):
            await reply(conversation, replies.PROCESSING)
            self._spawn(self._run_job(job.job_id, conversation))
        return job

    # -----------------------------
    # execution
    # -----------------------------
    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled() or task.exception() is None:
            return
        exc = task.exception()
        logger.error("Background task failed", exc_info=exc)
        if not isinstance(exc, PrintBotError) and self._crash_task is None:
            self._crash_task = asyncio.get_running_loop().create_task(self.crash(exc))

    async def _run_job(self, job_id: str, conversation: str) -> None:
        async def on_dispatch(job: PrintJob):
            await self.transport.edit_last_reply(conversation, replies.SENDING)

        try:
            job = await self.engine.submit(job_id, on_dispatch=on_dispatch)
        except PrintBotError as e:
            log = logger.error if isinstance(e, EXECUTION_ERRORS) else logger.warning
            log("Print job %s ended with %s: %s", job_id, type(e).__name__, e)
            await self.transport.edit_last_reply(conversation, e.user_message)
            return
        await self.transport.edit_last_reply(conversation, replies.success(job))

    # -----------------------------
    # user commands
    # -----------------------------
    async def _handle_command(self, message: InboundMessage, text: str) -> None:
        sender = message.sender_id
        conversation = message.conversation_id
        command = text.split()[0].lower()
        reply = self.transport.reply

        if command in ("/start", "/help"):
            await reply(conversation, replies.help_text(self.settings, self.settings.is_admin(sender)))
        elif command == "/status":
            await reply(conversation, replies.status(
                self.monitor.online,
                self.monitor.last_check,
                len(self.jobs.pending_queue()),
                self._own_job(sender, conversation),
            ))
        elif command == "/queue":
            await reply(conversation, replies.queue(self.jobs.pending_queue(), sender))
        elif command == "/cancel":
            await self._cancel(conversation)
        elif command == "/settings":
            await reply(conversation, replies.settings_info(self.settings))
        elif command == "/history":
            entries = self.history.entries(owner_id=sender, limit=HISTORY_REPLY_LIMIT)
            await reply(conversation, replies.history(entries, self.stats.get(sender)))
        elif command == "/formats":
            await reply(conversation, replies.formats(self.settings))
        elif command == "/ping":
            sent_at = self.scheduler.now()
            await reply(conversation, "Pong!")
            latency_ms = round((self.scheduler.now() - sent_at) * 1000)
            await self.transport.edit_last_reply(conversation, f"Pong! Latency: {latency_ms}ms")
        else:
            await reply(conversation, replies.UNKNOWN_COMMAND)

    def _own_job(self, sender: str, conversation: str) -> Optional[PrintJob]:
        session = self.sessions.get(conversation)
        if session is not None and session.job_id in self.jobs:
            return self.jobs.get(session.job_id)
        owned = [job for job in self.jobs.pending_queue() if job.owner_id == sender]
        return owned[-1] if owned else None

    async def _cancel(self, conversation: str) -> None:
        session = self.sessions.get(conversation)
        if session is None:
            await self.transport.reply(conversation, replies.NOTHING_TO_CANCEL)
            return
        if session.job_id not in self.jobs:
            self.sessions.delete(conversation)
            raise NotFound(f"session job {session.job_id} missing")
        if session.step != Step.CONFIRM_PRINT:
            raise InvalidState("cancel outside confirmation", user_message=replies.CANCEL_NOT_ALLOWED)
        if not self._drop_pending(session.job_id, reason="user"):
            raise InvalidState(f"job {session.job_id} is no longer pending")
        self.sessions.delete(conversation)
        await self.transport.reply(conversation, replies.CANCELLED)

    # -----------------------------
    # admin commands
    # -----------------------------
    async def _handle_admin(self, message: InboundMessage, text: str) -> None:
        conversation = message.conversation_id
        parts = text.split(maxsplit=2)
        command = parts[1].lower() if len(parts) > 1 else "help"
        argument = parts[2].strip() if len(parts) > 2 else ""
        reply = self.transport.reply
        now = self.scheduler.now()
        logger.info("Admin command from %s: %s", message.sender_id, command)

        if command == "stats":
            await reply(conversation, replies.admin_stats(
                self.history.summary(), len(self.jobs), len(self.stats), self.monitor.online, now - self.started_at
            ))
        elif command == "users":
            await reply(conversation, replies.admin_users(self.stats.leaderboard(10)))
        elif command == "queue":
            jobs = sorted(self.jobs, key=lambda j: j.created_at)
            await reply(conversation, replies.admin_queue(jobs, now))
        elif command == "printer" and argument.lower() == "check":
            await self.monitor.check()
            await reply(conversation, replies.admin_printer(
                self.settings.printer_name, self.monitor.online, self.monitor.last_check
            ))
        elif command == "printer" and argument.lower() == "test":
            await self._test_print(message)
        elif command == "config":
            await reply(conversation, replies.admin_config(self.settings))
        elif command == "logs":
            lines = await asyncio.to_thread(self._recent_logs)
            await reply(conversation, replies.admin_logs(lines))
        elif command == "broadcast" and argument:
            self._spawn(self._broadcast(conversation, argument))
        else:
            await reply(conversation, replies.ADMIN_HELP)

    def _recent_logs(self) -> List[str]:
        return recent_log_lines(self.log_path, limit=20) if self.log_path else []

    async def _test_print(self, message: InboundMessage) -> None:
        conversation = message.conversation_id
        now = self.scheduler.now()
        os.makedirs(self.settings.temp_dir, exist_ok=True)
        path = os.path.join(self.settings.temp_dir, f"test_print_{int(now * 1000)}.txt")
        with open(path, "w", encoding="utf-8") as f:
            f.write(replies.test_print_content(message.sender_id, now))

        await self.transport.reply(conversation, "Sending test print...")
        try:
            ok = await asyncio.wait_for(
                self.printer.print_file(path, 1, PrintOptions()),
                timeout=self.settings.print_timeout_seconds,
            )
        except asyncio.TimeoutError:
            ok = False
        finally:
            self.scheduler.call_later(TEST_PRINT_CLEANUP_SECONDS, lambda: release_file(path))

        if ok:
            await self.transport.edit_last_reply(conversation, "Test print sent. Check the printer.")
        else:
            logger.error("Test print failed on %s", self.settings.printer_name)
            await self.transport.edit_last_reply(conversation, "Test print failed. Check the printer connection.")

    async def _broadcast(self, conversation: str, text: str) -> None:
        cutoff = self.scheduler.now() - self.settings.broadcast_window_days * 24 * 3600
        recipients = self.stats.active_since(cutoff)
        body = replies.broadcast(text, self.settings.bot_name)
        await self.transport.reply(conversation, f"Broadcasting to {len(recipients)} users...")

        sent = 0
        for index, recipient in enumerate(recipients):
            try:
                await self.transport.send(recipient, body)
                sent += 1
            except OSError as e:
                logger.error("Broadcast to %s failed: %s", recipient, e)
            if index < len(recipients) - 1:
                await self.scheduler.sleep(self.settings.broadcast_delay_seconds)

        logger.info("Broadcast delivered to %d/%d users", sent, len(recipients))
        await self.transport.reply(conversation, f"Broadcast finished. Delivered: {sent}/{len(recipients)}")
