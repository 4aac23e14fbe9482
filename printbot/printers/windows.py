import asyncio
import logging

from printbot.printers.base import PrinterService

logger = logging.getLogger("printbot.printers")

# PRINTER_STATUS_* bits that mean the device cannot take work
_BLOCKING_STATUS = 0x00000002 | 0x00000008 | 0x00000080 | 0x00000400  # error | paper jam | offline | user intervention


class WindowsPrinterService(PrinterService):
    def __init__(self, printer_name: str, timeout: float = 30.0):
        self.printer_name = printer_name
        self.timeout = timeout

    def list_printers(self):
        import win32print
        flags = win32print.PRINTER_ENUM_LOCAL | win32print.PRINTER_ENUM_CONNECTIONS
        printers = win32print.EnumPrinters(flags)
        return [p[2] for p in printers]

    def _resolve_name(self) -> str:
        import win32print
        if self.printer_name in ("", "default"):
            return win32print.GetDefaultPrinter()
        return self.printer_name

    async def check_online(self):
        return await asyncio.to_thread(self._status_ok)

    def _status_ok(self) -> bool:
        import win32print
        try:
            h = win32print.OpenPrinter(self._resolve_name())
        except Exception as e:
            logger.error("Cannot open printer %s: %s", self.printer_name, e)
            return False
        try:
            info = win32print.GetPrinter(h, 2)
        finally:
            win32print.ClosePrinter(h)
        return not (info["Status"] & _BLOCKING_STATUS) and not (info["Attributes"] & win32print.PRINTER_ATTRIBUTE_WORK_OFFLINE)

    async def print_file(self, file_path, copies, options):
        # the shell print verb ignores duplex/paper/quality; the driver defaults apply
        ps = f"Start-Process -FilePath '{file_path}' -Verb Print -Wait"
        for _ in range(copies):
            try:
                proc = await asyncio.create_subprocess_exec(
                    "powershell", "-NoProfile", "-Command", ps,
                    stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                logger.error("Cannot execute powershell: %s", e)
                return False
            try:
                _, err = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
                logger.warning("Print verb timed out after %ss", self.timeout)
                return False
            if proc.returncode != 0:
                logger.error("Print command failed: %s", err.decode(errors="ignore").strip())
                return False
        return True
