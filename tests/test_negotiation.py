import pytest

from printbot.models import PaperSize, ParseError, Quality
from printbot.negotiation import (
    ApplyCopies,
    ApplyPaperSize,
    ApplyQuality,
    CancelJob,
    ConfirmChoice,
    MenuItem,
    PromptCopies,
    Reprompt,
    ShowConfirmation,
    ShowOptions,
    ShowPaperMenu,
    ShowQualityMenu,
    Step,
    SubmitJob,
    ToggleDuplex,
    parse_confirm,
    parse_copies,
    parse_menu,
    transition,
)


@pytest.mark.parametrize("word", ["YA", "ya", " Y ", "yes", "OK"])
def test_confirm_words_submit_and_end_session(word):
    result = transition(Step.CONFIRM_PRINT, word)
    assert result.ends_session
    assert result.effects == (SubmitJob(),)


@pytest.mark.parametrize("word", ["BATAL", "cancel", "No", "tidak"])
def test_cancel_words(word):
    result = transition(Step.CONFIRM_PRINT, word)
    assert result.ends_session
    assert result.effects == (CancelJob(),)


def test_options_word_opens_menu():
    result = transition(Step.CONFIRM_PRINT, "OPSI")
    assert result.step == Step.SET_OPTIONS
    assert result.effects == (ShowOptions(),)


def test_unknown_confirm_input_reprompts_without_state_change():
    result = transition(Step.CONFIRM_PRINT, "maybe")
    assert result.step == Step.CONFIRM_PRINT
    assert result.effects == (Reprompt(Step.CONFIRM_PRINT),)
    assert not result.recognised


def test_menu_transitions():
    assert transition(Step.SET_OPTIONS, "1").step == Step.SET_COPIES
    assert transition(Step.SET_OPTIONS, "1").effects == (PromptCopies(),)
    assert transition(Step.SET_OPTIONS, "2").effects == (ShowQualityMenu(),)
    assert transition(Step.SET_OPTIONS, "3").effects == (ShowPaperMenu(),)
    assert transition(Step.SET_OPTIONS, "4").effects == (ToggleDuplex(), ShowOptions())

    back = transition(Step.SET_OPTIONS, "5")
    assert back.step == Step.CONFIRM_PRINT
    assert back.effects == (ShowConfirmation(),)


def test_menu_values_apply_in_place():
    result = transition(Step.SET_OPTIONS, "2 high")
    assert result.step == Step.SET_OPTIONS
    assert result.effects == (ApplyQuality(Quality.HIGH), ShowOptions())

    assert transition(Step.SET_OPTIONS, "draft").effects[0] == ApplyQuality(Quality.DRAFT)
    assert transition(Step.SET_OPTIONS, "3 a3").effects[0] == ApplyPaperSize(PaperSize.A3)
    assert transition(Step.SET_OPTIONS, "Letter").effects[0] == ApplyPaperSize(PaperSize.LETTER)


@pytest.mark.parametrize("text", ["0", "6", "2 A3", "3 high", "hello", "", "1 2 3"])
def test_invalid_menu_input_reprompts(text):
    result = transition(Step.SET_OPTIONS, text)
    assert result.step == Step.SET_OPTIONS
    assert result.effects == (Reprompt(Step.SET_OPTIONS),)


def test_copies_in_range_return_to_menu():
    result = transition(Step.SET_COPIES, "7")
    assert result.step == Step.SET_OPTIONS
    assert result.effects == (ApplyCopies(7), ShowOptions())


@pytest.mark.parametrize("text", ["0", "11", "-1", "two", "2.5", "1 0"])
def test_copies_out_of_range_reprompt(text):
    result = transition(Step.SET_COPIES, text)
    assert result.step == Step.SET_COPIES
    assert result.effects == (Reprompt(Step.SET_COPIES),)


def test_parsers_return_typed_results():
    assert parse_confirm("Ya") == ConfirmChoice.YES
    assert parse_menu("4").item == MenuItem.DUPLEX
    assert parse_copies("10") == 10
    with pytest.raises(ParseError):
        parse_copies("11")
    with pytest.raises(ParseError):
        parse_menu("9")
