from abc import ABC, abstractmethod

from printbot.models import PrintOptions


class PrinterService(ABC):

    @abstractmethod
    def list_printers(self) -> list[str]:
        pass

    @abstractmethod
    async def check_online(self) -> bool:
        pass

    @abstractmethod
    async def print_file(self, file_path: str, copies: int, options: PrintOptions) -> bool:
        """One physical print attempt; False on any printer-side failure."""
        pass
