"""Tests for the terminal front end."""

from infinite_adventure.achievements import FIRST_STEPS, SURVIVOR
from infinite_adventure.play import (
    BAR_WIDTH,
    THEMES,
    StreamPrinter,
    hp_bar,
    parse_command,
    render_achievements,
    render_screen,
)
from infinite_adventure.session import SessionController
from tests.stubs import FinishedTurns, ScriptedTurns, make_turn

NEON = THEMES["neon"]

CONTENT = {
    "inventory": ["Rope", "Lockpick"],
    "choices": [
        {"label": "Wait for the guard", "actionId": "wait", "risk": "safe"},
        {"label": "Jump the gap", "actionId": "jump", "risk": "major"},
    ],
}


# ---------------------------------------------------------------------------
# hp_bar
# ---------------------------------------------------------------------------

def test_hp_bar_full() -> None:
    assert hp_bar(100, NEON) == NEON.bar_full * BAR_WIDTH


def test_hp_bar_empty() -> None:
    assert hp_bar(0, NEON) == NEON.bar_empty * BAR_WIDTH


def test_hp_bar_partial() -> None:
    bar = hp_bar(50, NEON)
    assert bar.count(NEON.bar_full) == BAR_WIDTH // 2
    assert len(bar) == BAR_WIDTH


def test_hp_bar_out_of_range_is_clamped() -> None:
    assert hp_bar(150, NEON) == hp_bar(100, NEON)
    assert hp_bar(-20, NEON) == hp_bar(0, NEON)


# ---------------------------------------------------------------------------
# parse_command
# ---------------------------------------------------------------------------

def test_parse_choice_number() -> None:
    assert parse_command("2", CONTENT) == ("action", "Jump the gap")


def test_parse_choice_out_of_range() -> None:
    assert parse_command("3", CONTENT) is None
    assert parse_command("0", CONTENT) is None


def test_parse_item() -> None:
    assert parse_command("u2", CONTENT) == ("item", "Lockpick")
    assert parse_command("U1", CONTENT) == ("item", "Rope")


def test_parse_item_out_of_range() -> None:
    assert parse_command("u5", CONTENT) is None


def test_parse_keywords() -> None:
    assert parse_command("q", CONTENT) == ("quit", "")
    assert parse_command(" retry ", CONTENT) == ("retry", "")
    assert parse_command("stats", CONTENT) == ("stats", "")


def test_parse_garbage() -> None:
    assert parse_command("dance", CONTENT) is None
    assert parse_command("", {}) is None


# ---------------------------------------------------------------------------
# render_achievements / render_screen
# ---------------------------------------------------------------------------

def test_render_achievements_marks_unlocked() -> None:
    text = render_achievements([FIRST_STEPS])
    assert f"[x] {FIRST_STEPS}" in text
    assert f"[ ] {SURVIVOR}" in text


async def test_render_screen_after_first_turn() -> None:
    turn = make_turn(hp=90, hpChangeReason="Scraped by glass", inventory=["Rope"])
    controller = SessionController(FinishedTurns(turn))
    controller.boot()
    await controller.start()

    screen = render_screen(controller, NEON)
    assert "Rooftop Vault" in screen
    assert "Turn 1" in screen
    assert "90/100" in screen
    assert "Scraped by glass" in screen
    assert "[u1] Rope" in screen
    assert "1. Wait for the guard [safe]" in screen
    assert "2. Jump the gap [major]" in screen


def test_render_screen_before_first_turn() -> None:
    controller = SessionController(FinishedTurns(make_turn()))
    controller.boot()
    screen = render_screen(controller, THEMES["parchment"])
    assert "Turn 0" in screen
    assert "100/100" in screen


# ---------------------------------------------------------------------------
# StreamPrinter
# ---------------------------------------------------------------------------

def test_stream_printer_writes_only_new_text(capsys) -> None:
    printer = StreamPrinter()
    printer({"locationName": "Roof"})
    printer({"description": "Wind"})
    printer({"description": "Wind howls"})
    printer({"description": "Wind howls"})
    assert capsys.readouterr().out == "Wind howls"


def test_stream_printer_reset_ends_line(capsys) -> None:
    printer = StreamPrinter()
    printer({"description": "Dust"})
    printer.reset()
    printer({"description": "Rain"})
    assert capsys.readouterr().out == "Dust\nRain"


async def test_streamed_turn_prints_description_while_it_arrives(capsys) -> None:
    turns = ScriptedTurns()
    turns.add(
        {"description": "Wind"},
        {"description": "Wind howls across"},
        make_turn(description="Wind howls across the roof."),
    )
    controller = SessionController(turns)
    controller.add_snapshot_listener(StreamPrinter())
    controller.boot()
    await controller.start()
    assert capsys.readouterr().out == "Wind howls across"
