"""Option negotiation as a finite-state machine.

`transition(step, text)` is pure: it parses the input into a closed command
set and returns the next step plus the effects the caller must apply.
A next step of None means the session ends.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from printbot.models import MAX_COPIES, MIN_COPIES, PaperSize, ParseError, Quality


class Step(str, Enum):
    CONFIRM_PRINT = "confirm_print"
    SET_OPTIONS = "set_options"
    SET_COPIES = "set_copies"


# -----------------------------
# effects
# -----------------------------
@dataclass(frozen=True)
class SubmitJob:
    pass


@dataclass(frozen=True)
class CancelJob:
    pass


@dataclass(frozen=True)
class ShowConfirmation:
    pass


@dataclass(frozen=True)
class ShowOptions:
    pass


@dataclass(frozen=True)
class PromptCopies:
    pass


@dataclass(frozen=True)
class ShowQualityMenu:
    pass


@dataclass(frozen=True)
class ShowPaperMenu:
    pass


@dataclass(frozen=True)
class ApplyCopies:
    copies: int


@dataclass(frozen=True)
class ApplyQuality:
    quality: Quality


@dataclass(frozen=True)
class ApplyPaperSize:
    paper_size: PaperSize


@dataclass(frozen=True)
class ToggleDuplex:
    pass


@dataclass(frozen=True)
class Reprompt:
    step: Step


Effect = Union[
    SubmitJob, CancelJob, ShowConfirmation, ShowOptions, PromptCopies,
    ShowQualityMenu, ShowPaperMenu, ApplyCopies, ApplyQuality, ApplyPaperSize,
    ToggleDuplex, Reprompt,
]


@dataclass(frozen=True)
class Transition:
    step: Optional[Step]
    effects: Tuple[Effect, ...]

    @property
    def ends_session(self) -> bool:
        return self.step is None

    @property
    def recognised(self) -> bool:
        return not any(isinstance(e, Reprompt) for e in self.effects)


# -----------------------------
# parsers
# -----------------------------
class ConfirmChoice(str, Enum):
    YES = "yes"
    CANCEL = "cancel"
    OPTIONS = "options"


CONFIRM_WORDS = {
    ConfirmChoice.YES: {"ya", "y", "yes", "ok"},
    ConfirmChoice.CANCEL: {"batal", "cancel", "no", "tidak"},
    ConfirmChoice.OPTIONS: {"opsi", "option", "setting"},
}


class MenuItem(int, Enum):
    COPIES = 1
    QUALITY = 2
    PAPER_SIZE = 3
    DUPLEX = 4
    BACK = 5


@dataclass(frozen=True)
class MenuCommand:
    item: MenuItem
    quality: Optional[Quality] = None
    paper_size: Optional[PaperSize] = None


def _normalise(text: str) -> str:
    return " ".join((text or "").strip().lower().split())


def parse_confirm(text: str) -> ConfirmChoice:
    word = _normalise(text)
    for choice, words in CONFIRM_WORDS.items():
        if word in words:
            return choice
    raise ParseError(f"not a confirmation word: {text!r}")


def parse_menu(text: str) -> MenuCommand:
    """`1`..`5`, `2 <quality>`, `3 <size>`, or a bare quality/size name."""
    words = _normalise(text).split(" ")
    head = words[0]

    if len(words) == 1 and not head.isdecimal():
        try:
            return MenuCommand(MenuItem.QUALITY, quality=Quality.parse(head))
        except ParseError:
            return MenuCommand(MenuItem.PAPER_SIZE, paper_size=PaperSize.parse(head))

    try:
        item = MenuItem(int(head))
    except ValueError:
        raise ParseError(f"not a menu choice: {text!r}")

    if len(words) == 1:
        return MenuCommand(item)
    if len(words) == 2 and item == MenuItem.QUALITY:
        return MenuCommand(item, quality=Quality.parse(words[1]))
    if len(words) == 2 and item == MenuItem.PAPER_SIZE:
        return MenuCommand(item, paper_size=PaperSize.parse(words[1]))
    raise ParseError(f"not a menu choice: {text!r}")


def parse_copies(text: str) -> int:
    raw = _normalise(text)
    if not raw.isdecimal():
        raise ParseError(f"not a number: {text!r}")
    copies = int(raw)
    if not MIN_COPIES <= copies <= MAX_COPIES:
        raise ParseError(f"copies out of range: {copies}")
    return copies


# -----------------------------
# transition function
# -----------------------------
def _confirm_print(text: str) -> Transition:
    try:
        choice = parse_confirm(text)
    except ParseError:
        return Transition(Step.CONFIRM_PRINT, (Reprompt(Step.CONFIRM_PRINT),))
    if choice == ConfirmChoice.YES:
        return Transition(None, (SubmitJob(),))
    if choice == ConfirmChoice.CANCEL:
        return Transition(None, (CancelJob(),))
    return Transition(Step.SET_OPTIONS, (ShowOptions(),))


def _set_options(text: str) -> Transition:
    try:
        command = parse_menu(text)
    except ParseError:
        return Transition(Step.SET_OPTIONS, (Reprompt(Step.SET_OPTIONS),))

    if command.item == MenuItem.COPIES:
        return Transition(Step.SET_COPIES, (PromptCopies(),))
    if command.item == MenuItem.QUALITY:
        if command.quality is None:
            return Transition(Step.SET_OPTIONS, (ShowQualityMenu(),))
        return Transition(Step.SET_OPTIONS, (ApplyQuality(command.quality), ShowOptions()))
    if command.item == MenuItem.PAPER_SIZE:
        if command.paper_size is None:
            return Transition(Step.SET_OPTIONS, (ShowPaperMenu(),))
        return Transition(Step.SET_OPTIONS, (ApplyPaperSize(command.paper_size), ShowOptions()))
    if command.item == MenuItem.DUPLEX:
        return Transition(Step.SET_OPTIONS, (ToggleDuplex(), ShowOptions()))
    return Transition(Step.CONFIRM_PRINT, (ShowConfirmation(),))


def _set_copies(text: str) -> Transition:
    try:
        copies = parse_copies(text)
    except ParseError:
        return Transition(Step.SET_COPIES, (Reprompt(Step.SET_COPIES),))
    return Transition(Step.SET_OPTIONS, (ApplyCopies(copies), ShowOptions()))


_HANDLERS = {
    Step.CONFIRM_PRINT: _confirm_print,
    Step.SET_OPTIONS: _set_options,
    Step.SET_COPIES: _set_copies,
}


def transition(step: Step, text: str) -> Transition:
    return _HANDLERS[step](text)
