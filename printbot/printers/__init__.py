import platform

from printbot.env import Settings
from printbot.printers.base import PrinterService

OS = platform.system()


def get_printer_service(settings: Settings) -> PrinterService:
    if OS == "Windows":
        from printbot.printers.windows import WindowsPrinterService as Provider
    elif OS in ("Linux", "Darwin"):
        from printbot.printers.linux import CupsPrinterService as Provider
    else:
        raise RuntimeError(f"Unsupported operating system: {OS}")
    return Provider(settings.printer_name, timeout=settings.print_timeout_seconds)
