import asyncio
import logging
import shutil
import subprocess
from typing import List, Optional, Tuple

from printbot.models import PaperSize, PrintOptions, Quality
from printbot.printers.base import PrinterService

logger = logging.getLogger("printbot.printers")

QUALITY_FLAGS = {
    Quality.DRAFT: "print-quality=3",
    Quality.HIGH: "print-quality=5",
}

ONLINE_MARKERS = ("idle", "printing")
OFFLINE_MARKERS = ("disabled",)


def build_print_command(printer_name: str, file_path: str, copies: int, options: PrintOptions) -> List[str]:
    cmd = ["lpr"]
    if not uses_default(printer_name):
        cmd += ["-P", printer_name]
    cmd += ["-#", str(copies)]
    if options.duplex:
        cmd += ["-o", "sides=two-sided-long-edge"]
    if options.paper_size != PaperSize.A4:
        cmd += ["-o", f"media={options.paper_size.value}"]
    if options.quality in QUALITY_FLAGS:
        cmd += ["-o", QUALITY_FLAGS[options.quality]]
    cmd.append(file_path)
    return cmd


def uses_default(printer_name: str) -> bool:
    return printer_name in ("", "default")


def is_online(returncode: int, stdout: str) -> bool:
    """Interpret `lpstat -p <printer>` output."""
    if returncode != 0:
        return False
    text = stdout.lower()
    if any(marker in text for marker in OFFLINE_MARKERS):
        return False
    return any(marker in text for marker in ONLINE_MARKERS)


class CupsPrinterService(PrinterService):
    """CUPS printer on Linux/macOS driven through lpr and lpstat."""

    def __init__(self, printer_name: str, timeout: float = 30.0):
        self.printer_name = printer_name
        self.timeout = timeout

    def list_printers(self):
        if not shutil.which("lpstat"):
            logger.debug("lpstat not found on PATH; skipping local detection")
            return []
        try:
            out = subprocess.run(["lpstat", "-a"], stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=False, timeout=5)
        except subprocess.TimeoutExpired:
            logger.warning("lpstat timed out while detecting printers")
            return []
        text = out.stdout.decode(errors="ignore")
        return [line.split()[0] for line in text.splitlines() if line.strip()]

    async def check_online(self) -> bool:
        cmd = ["lpstat", "-p"] if uses_default(self.printer_name) else ["lpstat", "-p", self.printer_name]
        code, stdout, _ = await self._run(cmd, timeout=10)
        online = is_online(code, stdout)
        logger.debug("Printer %s online=%s", self.printer_name, online)
        return online

    async def print_file(self, file_path, copies, options):
        cmd = build_print_command(self.printer_name, file_path, copies, options)
        logger.info("Executing print command %s", " ".join(cmd))
        code, stdout, stderr = await self._run(cmd, timeout=self.timeout)
        if code != 0:
            logger.error("Print command failed (%s): %s", code, stderr.strip())
            return False
        logger.info("Print command successful: %s", stdout.strip())
        return True

    async def _run(self, cmd: List[str], timeout: float) -> Tuple[int, str, str]:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            logger.error("Cannot execute %s: %s", cmd[0], e)
            return -1, "", str(e)

        try:
            out, err = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning("%s timed out after %ss", cmd[0], timeout)
            return -1, "", "timeout"
        code: Optional[int] = proc.returncode
        return code if code is not None else -1, out.decode(errors="ignore"), err.decode(errors="ignore")
