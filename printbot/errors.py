"""Error taxonomy recovered at the conversation boundary."""


class PrintBotError(Exception):
    """Base class. `user_message` is what the requester is told."""

    user_message = "An error occurred. Please try again."

    def __init__(self, detail: str = "", user_message: str | None = None):
        super().__init__(detail or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class ValidationError(PrintBotError):
    user_message = "The file was rejected."


class RateLimited(PrintBotError):
    user_message = "You have reached the maximum number of requests per hour. Please try again later."


class NotFound(PrintBotError):
    user_message = "Print job not found."


class InvalidState(PrintBotError):
    user_message = "This print job can no longer be changed."


class PrinterOffline(PrintBotError):
    user_message = "The printer is offline or has a problem. Please try again later."


class PrintExecutionFailed(PrintBotError):
    user_message = (
        "Printing failed after several attempts.\n\n"
        "Possible causes:\n"
        "- the printer has a problem\n"
        "- ink/toner is empty\n"
        "- paper is empty\n"
        "- the printer connection was lost\n\n"
        "Please check the printer and try again."
    )


class PrintSystemError(PrintBotError):
    user_message = "A system error occurred while printing. Please try again or contact an admin."
