import asyncio
import base64
import binascii
import logging
import os
import signal
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel

from printbot.audit import AuditLog
from printbot.bot import PrintBot
from printbot.db.base import init_db, make_engine, make_session_factory
from printbot.db.snapshots import StatsSnapshotStore
from printbot.env import Settings, load_settings
from printbot.errors import PrintBotError
from printbot.logs import setup_logging
from printbot.models import Attachment, InboundMessage
from printbot.printers import get_printer_service
from printbot.printers.base import PrinterService
from printbot.scheduler import AsyncioScheduler, Scheduler
from printbot.security import verify_bot_token
from printbot.transport import ChatTransport, OutboxTransport, WebhookTransport

logger = logging.getLogger("printbot.api")


class AttachmentIn(BaseModel):
    filename: Optional[str] = None
    mimetype: str
    data_base64: str


class MessageIn(BaseModel):
    sender_id: str
    conversation_id: Optional[str] = None
    text: str = ""
    attachment: Optional[AttachmentIn] = None
    mentioned: bool = True


def _crash_handler(bot: PrintBot):
    """Loop exception handler: anything outside the error taxonomy stops the process."""

    def handler(loop: asyncio.AbstractEventLoop, context: dict):
        loop.default_exception_handler(context)
        exc = context.get("exception")
        if exc is None or isinstance(exc, PrintBotError):
            return
        logger.critical("Unhandled error on the event loop: %r", exc)
        loop.create_task(bot.crash(exc))

    return handler


def _terminate():
    os.kill(os.getpid(), signal.SIGTERM)


def create_app(
    settings: Optional[Settings] = None,
    printer: Optional[PrinterService] = None,
    transport: Optional[ChatTransport] = None,
    scheduler: Optional[Scheduler] = None,
) -> FastAPI:
    settings = settings or load_settings()
    if transport is None:
        if settings.gateway_url:
            transport = WebhookTransport(settings.gateway_url, token=settings.api_token or None)
        else:
            transport = OutboxTransport()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log_path = setup_logging(settings)
        db_engine = make_engine(settings.database_url)
        init_db(db_engine)
        audit = AuditLog(settings.audit_log_path, settings.bot_id, enabled=settings.enable_logging)
        bot = PrintBot(
            settings,
            printer or get_printer_service(settings),
            transport,
            scheduler or AsyncioScheduler(),
            snapshots=StatsSnapshotStore(make_session_factory(db_engine), history_cap=settings.history_persist_cap),
            audit=audit,
            log_path=log_path,
            on_fatal=_terminate,
        )
        loop = asyncio.get_running_loop()
        previous_handler = loop.get_exception_handler()
        loop.set_exception_handler(_crash_handler(bot))

        await bot.start()
        app.state.bot = bot
        audit("bot_startup", {"bot_id": settings.bot_id, "name": settings.bot_name})
        try:
            yield
        finally:
            await bot.shutdown()
            loop.set_exception_handler(previous_handler)
            db_engine.dispose()

    app = FastAPI(title=settings.bot_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.transport = transport

    @app.get("/health")
    def health():
        # public: no sensitive data
        return {"ok": True, "bot_id": settings.bot_id, "name": settings.bot_name}

    @app.get("/status", dependencies=[Depends(verify_bot_token)])
    def status():
        return {
            "ok": True,
            "bot_id": settings.bot_id,
            "name": settings.bot_name,
            **app.state.bot.state(),
        }

    @app.post("/messages", dependencies=[Depends(verify_bot_token)])
    async def post_message(payload: MessageIn):
        attachment = None
        if payload.attachment is not None:
            try:
                data = base64.b64decode(payload.attachment.data_base64, validate=True)
            except binascii.Error as e:
                raise HTTPException(status_code=400, detail=f"Invalid base64 payload: {e}")
            attachment = Attachment(
                filename=payload.attachment.filename,
                mimetype=payload.attachment.mimetype,
                data=data,
            )
        message = InboundMessage(
            sender_id=payload.sender_id,
            conversation_id=payload.conversation_id or payload.sender_id,
            text=payload.text,
            attachment=attachment,
            mentioned=payload.mentioned,
        )
        await app.state.bot.handle_message(message)
        return {"ok": True, "conversation_id": message.conversation_id}

    @app.get("/conversations/{conversation_id}/outbox", dependencies=[Depends(verify_bot_token)])
    def outbox(conversation_id: str):
        if not isinstance(transport, OutboxTransport):
            raise HTTPException(status_code=404, detail="Outbox not enabled; replies go to the gateway")
        return {"conversation_id": conversation_id, "events": transport.drain(conversation_id)}

    @app.get("/jobs/{job_id}", dependencies=[Depends(verify_bot_token)])
    def job_status(job_id: str):
        job = app.state.bot.jobs.get(job_id)
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")
        return job.model_dump(mode="json", exclude={"file_path"})

    return app
