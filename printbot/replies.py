"""User-facing reply texts."""

from datetime import datetime
from typing import List, Optional, Tuple

from printbot.env import Settings
from printbot.models import HistoryEntry, PaperSize, PrintJob, Quality, UserStat
from printbot.negotiation import Step

STATUS_MARKS = {"pending": "[wait]", "printing": "[print]", "completed": "[ok]", "failed": "[x]"}


def _mb(size: int) -> str:
    return f"{size / (1024 * 1024):.1f}MB"


def _when(ts: Optional[float]) -> str:
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M") if ts else "-"


def mask(sender_id: str, tail: bool = True) -> str:
    masked = sender_id[:4] + "****"
    return masked + sender_id[-2:] if tail and len(sender_id) > 6 else masked


def confirmation(job: PrintJob, queue_size: int) -> str:
    cost = f"Estimated cost: {job.estimated_cost:,}\n" if job.estimated_cost > 0 else ""
    kind = "Color" if job.has_color else "Black & white"
    return (
        "*File received & analysed*\n\n"
        f"Name: {job.original_name}\n"
        f"Format: {job.extension.upper()}\n"
        f"Pages: {job.page_count}\n"
        f"Size: {job.file_size / 1024:.1f} KB\n"
        f"Copies: {job.copies}\n"
        f"Type: {kind}\n"
        f"{cost}"
        f"Queue: {queue_size} job(s)\n\n"
        "*Print options:*\n"
        f"Paper: {job.options.paper_size.value}\n"
        f"Quality: {job.options.quality.value}\n"
        f"Duplex: {'ON' if job.options.duplex else 'OFF'}\n\n"
        "Type *YA* to confirm printing\n"
        "Type *BATAL* to cancel\n"
        "Type *OPSI* to change print options"
    )


def options_menu(job: PrintJob) -> str:
    return (
        f"*Print options - {job.original_name}*\n\n"
        "1. Change number of copies (1-10)\n"
        "2. Change quality (draft/normal/high)\n"
        "3. Change paper size (A4/A3/Letter)\n"
        f"4. Duplex printing (now {'ON' if job.options.duplex else 'OFF'})\n"
        "5. Back to confirmation\n\n"
        "Type the option number (1-5):"
    )


def quality_menu(job: PrintJob) -> str:
    choices = " / ".join(q.value for q in Quality)
    return f"Current quality: {job.options.quality.value}\nReply with *2 <quality>* ({choices}), e.g. *2 high*."


def paper_menu(job: PrintJob) -> str:
    choices = " / ".join(p.value for p in PaperSize)
    return f"Current paper size: {job.options.paper_size.value}\nReply with *3 <size>* ({choices}), e.g. *3 A3*."


COPIES_PROMPT = "Enter the number of copies (1-10):"
PROCESSING = "Processing print job... please wait."
SENDING = "Sending to printer..."
CANCELLED = "Print job cancelled."
UNAUTHORIZED = "Sorry, you do not have access to this print service."
FILE_ERROR = "An error occurred while processing the file. Please try again."
UNKNOWN_COMMAND = "Unknown command. Type /help to see the list of commands."
NOTHING_TO_CANCEL = "You have no print job waiting for confirmation."
CANCEL_NOT_ALLOWED = "A job can only be cancelled while it is waiting for confirmation. Type 5 to go back first."

REPROMPTS = {
    Step.CONFIRM_PRINT: "Invalid response. Type *YA*, *BATAL*, or *OPSI*",
    Step.SET_OPTIONS: "Invalid choice. Type a number 1-5.",
    Step.SET_COPIES: "Number of copies must be between 1-10. Try again:",
}


def copies_changed(copies: int) -> str:
    return f"Number of copies changed to: {copies}"


def quality_changed(quality: Quality) -> str:
    return f"Print quality changed to: {quality.value}"


def paper_changed(paper_size: PaperSize) -> str:
    return f"Paper size changed to: {paper_size.value}"


def duplex_changed(duplex: bool) -> str:
    return f"Duplex printing: {'ON' if duplex else 'OFF'}"


def success(job: PrintJob) -> str:
    duration = (job.completed_at or 0) - (job.started_at or 0)
    return (
        "*Print successful!*\n\n"
        f"File: {job.original_name}\n"
        f"Pages: {job.page_count} x {job.copies} copies\n"
        f"Total pages: {job.total_pages}\n"
        f"Processing time: {round(duration)} seconds\n"
        f"Finished: {_when(job.completed_at)}\n\n"
        "Please collect your document at the printer.\n\n"
        "Tip: use /history to see your print history."
    )


def help_text(settings: Settings, is_admin: bool) -> str:
    text = (
        f"*{settings.bot_name}*\n\n"
        "*How to use:*\n"
        "1. Send a file (PDF, DOC, JPG, PNG, TXT)\n"
        "2. The bot analyses the file and shows its details\n"
        "3. Confirm by typing *YA*\n"
        "4. Wait for the print notification\n\n"
        "*Commands:*\n"
        "/help - full help\n"
        "/status - printer & system status\n"
        "/queue - current print queue\n"
        "/cancel - cancel your print job\n"
        "/settings - print settings\n"
        "/history - your print history\n"
        "/formats - supported file formats\n"
        "/ping - test bot connection\n\n"
        f"*Formats:* {' - '.join(settings.allowed_formats)}\n"
        f"*Limit:* {_mb(settings.max_file_size)} per file\n"
    )
    if is_admin:
        text += "\n" + ADMIN_HELP
    return text


ADMIN_HELP = (
    "*Admin commands:*\n"
    "/admin stats - bot statistics\n"
    "/admin users - user statistics\n"
    "/admin queue - queue details\n"
    "/admin printer check - check printer\n"
    "/admin printer test - test print\n"
    "/admin config - configuration info\n"
    "/admin logs - recent logs\n"
    "/admin broadcast <message> - broadcast to active users"
)


def formats(settings: Settings) -> str:
    return (
        "*Supported file formats*\n\n"
        "Documents: PDF (recommended), Word (.doc, .docx), plain text (.txt)\n"
        "Images: JPEG (.jpg, .jpeg), PNG (.png)\n\n"
        f"Maximum size: {_mb(settings.max_file_size)}\n"
        "Quality: draft, normal, high\n"
        "Paper: A4, A3, Letter\n"
        "Duplex printing: available\n\n"
        "Page estimation: PDF detected automatically, Word by file size, "
        "images 1 page per file, text by content length."
    )


def settings_info(settings: Settings) -> str:
    return (
        "*Print settings*\n\n"
        f"Default copies: {settings.default_copies}\n"
        "Copies per job: 1-10\n"
        f"Cost per page: {settings.bw_cost_per_page:,} (b/w), {settings.color_cost_per_page:,} (color)\n"
        f"Max file size: {_mb(settings.max_file_size)}\n"
        f"Requests per hour: {settings.max_requests_per_hour if settings.enable_rate_limit else 'unlimited'}"
    )


def status(online: bool, last_check: Optional[float], queue_size: int, own_job: Optional[PrintJob]) -> str:
    text = (
        "*System status*\n\n"
        f"Printer: {'online' if online else 'offline'}\n"
        f"Last check: {_when(last_check)}\n"
        f"Jobs in queue: {queue_size}\n"
    )
    if own_job is not None:
        text += f"\nYour job: {own_job.original_name} ({own_job.status.value})"
    return text


def queue(jobs: List[PrintJob], owner_id: str) -> str:
    if not jobs:
        return "The print queue is empty."
    lines = [f"*Print queue ({len(jobs)} job(s)):*\n"]
    for index, job in enumerate(jobs, 1):
        mine = " (yours)" if job.owner_id == owner_id else ""
        lines.append(f"{index}. {STATUS_MARKS[job.status.value]} {job.page_count}p x {job.copies}{mine}")
    return "\n".join(lines)


def history(entries: List[HistoryEntry], stat: Optional[UserStat]) -> str:
    if not entries:
        return "You do not have any print history yet."
    lines = [f"*Your print history ({len(entries)} latest):*\n"]
    for index, entry in enumerate(entries, 1):
        mark = STATUS_MARKS[entry.status.value]
        lines.append(f"{index}. {mark} {entry.original_name}")
        lines.append(f"   {entry.page_count} pages - {entry.copies}x - {_when(entry.finished_at or entry.created_at)}")
    if stat is not None:
        lines.append("")
        lines.append(f"Total prints: {stat.total_prints}")
        lines.append(f"Total pages: {stat.total_pages}")
    return "\n".join(lines)


# -----------------------------
# admin
# -----------------------------
def admin_stats(summary: dict, live_jobs: int, users: int, online: bool, uptime: float) -> str:
    total = summary["entries"] + live_jobs
    rate = round(summary["completed"] / total * 100) if total else 0
    return (
        "*Bot statistics (admin)*\n\n"
        f"Uptime: {int(uptime // 3600)}h {int(uptime % 3600 // 60)}m\n"
        f"Printer: {'online' if online else 'offline'}\n"
        f"Total jobs: {total}\n"
        f"Completed: {summary['completed']}\n"
        f"Failed: {summary['failed']}\n"
        f"Total pages: {summary['pages']:,}\n"
        f"Known users: {users}\n"
        f"Active queue: {live_jobs}\n"
        f"Success rate: {rate}%"
    )


def admin_users(ranked: List[Tuple[str, UserStat]]) -> str:
    if not ranked:
        return "No users yet."
    lines = ["*Top 10 users:*\n"]
    for index, (sender_id, stat) in enumerate(ranked, 1):
        lines.append(f"{index}. {mask(sender_id)}")
        lines.append(f"   {stat.total_prints} prints - {stat.total_pages} pages")
        lines.append(f"   Last: {_when(stat.last_seen)}")
    return "\n".join(lines)


def admin_queue(jobs: List[PrintJob], now: float) -> str:
    if not jobs:
        return "The queue is empty."
    lines = [f"*Queue details ({len(jobs)} jobs):*\n"]
    for index, job in enumerate(jobs, 1):
        minutes = round((now - job.created_at) / 60)
        lines.append(f"{index}. {STATUS_MARKS[job.status.value]} {job.original_name}")
        lines.append(f"   {mask(job.owner_id, tail=False)} - {job.page_count}p - {job.copies}x")
        lines.append(f"   {minutes}m ago - {job.status.value.upper()}")
    return "\n".join(lines)


def admin_printer(printer_name: str, online: bool, last_check: Optional[float]) -> str:
    return (
        "*Printer status*\n\n"
        f"Name: {printer_name}\n"
        f"Status: {'online & ready' if online else 'offline/error'}\n"
        f"Last check: {_when(last_check)}\n\n"
        + ("The printer is ready to accept jobs." if online else "Check the printer connection and make sure it is on.")
    )


def admin_config(settings: Settings) -> str:
    return (
        "*Bot configuration*\n\n"
        f"Printer: {settings.printer_name}\n"
        f"Max file size: {_mb(settings.max_file_size)}\n"
        f"Default copies: {settings.default_copies}\n"
        f"Auto cleanup: {'on' if settings.auto_cleanup else 'off'}\n"
        f"Allowed users: {len(settings.allowed_users) or 'all'}\n"
        f"Admin numbers: {len(settings.admin_numbers)}\n"
        f"Rate limit: {'on' if settings.enable_rate_limit else 'off'}\n"
        f"Max requests/hour: {settings.max_requests_per_hour}\n"
        f"File validation: {'on' if settings.enable_file_validation else 'off'}\n"
        f"Formats: {', '.join(settings.allowed_formats)}"
    )


def admin_logs(lines: List[str]) -> str:
    if not lines:
        return "No log entries for today yet."
    out = [f"*Recent logs ({len(lines)} entries):*\n"]
    for line in lines:
        out.append(line[:100])
    return "\n".join(out)


def broadcast(text: str, bot_name: str) -> str:
    return f"*Broadcast from admin*\n\n{text}\n\n---\n{bot_name}"


def test_print_content(admin_id: str, now: float) -> str:
    return (
        "Chat Print Server - Test Print\n"
        "==============================\n\n"
        f"Date: {_when(now)}\n"
        f"Admin: {admin_id}\n\n"
        "The test succeeded if you can read this text.\n"
    )
