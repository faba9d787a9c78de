"""Terminal front end.

A thin shell over SessionController: it renders the controller's projection
and turns typed commands into controller calls. The look is a Theme picked at
start-up; both themes drive the same controller.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from infinite_adventure.achievements import ACHIEVEMENTS
from infinite_adventure.session import Phase, SessionController

BAR_WIDTH = 20


@dataclass(frozen=True)
class Theme:
    title: str
    subtitle: str
    bar_full: str
    bar_empty: str
    flash: str
    loading: str
    death: str
    restart: str


THEMES: dict[str, Theme] = {
    "neon": Theme(
        title="INFINITE ADVENTURE",
        subtitle="Press enter to jack in",
        bar_full="█",
        bar_empty="░",
        flash=">>> DAMAGE <<<",
        loading="Processing neural input...",
        death="SIGNAL LOST",
        restart="Press enter to wipe memory & reboot",
    ),
    "parchment": Theme(
        title="The Endless Tale",
        subtitle="Press enter to open the book",
        bar_full="#",
        bar_empty=".",
        flash="* You are wounded *",
        loading="The quill scratches across the page...",
        death="Here ends your tale",
        restart="Press enter to begin anew",
    ),
}


def hp_bar(hp: int, theme: Theme) -> str:
    filled = round(max(0, min(100, hp)) / 100 * BAR_WIDTH)
    return theme.bar_full * filled + theme.bar_empty * (BAR_WIDTH - filled)


def render_achievements(unlocked: list[str]) -> str:
    lines = ["Achievements"]
    for name, blurb in ACHIEVEMENTS.items():
        mark = "x" if name in unlocked else " "
        lines.append(f"  [{mark}] {name} ({blurb})")
    return "\n".join(lines)


def render_screen(controller: SessionController, theme: Theme) -> str:
    state = controller.state
    content: dict[str, Any] = controller.current
    hp = controller.display_hp
    lines = [
        f"{content.get('locationName') or '...'}    Turn {state.turn_count}"
        f"    {len(state.achievements)} Achievements",
        f"HP {hp_bar(hp, theme)} {hp}/100",
        "",
    ]
    if controller.busy:
        lines.append(theme.loading)
    else:
        lines.append(content.get("description") or "")
    if content.get("hpChangeReason"):
        lines.append(f"  ({content['hpChangeReason']})")

    inventory = content.get("inventory") or []
    if inventory:
        lines.append("")
        lines.append("Inventory: " + "  ".join(
            f"[u{i}] {item}" for i, item in enumerate(inventory, 1)
        ))

    choices = content.get("choices") or []
    if choices:
        lines.append("")
        for i, choice in enumerate(choices, 1):
            lines.append(f"  {i}. {choice.get('label', '')} [{choice.get('risk', '?')}]")
    return "\n".join(lines)


class StreamPrinter:
    """Prints a turn's description as it streams in.

    Registered as a snapshot listener; only the text not yet shown is
    written, so the narrative appears piece by piece before the full
    screen is rendered.
    """

    def __init__(self) -> None:
        self.shown = 0

    def reset(self) -> None:
        if self.shown:
            print()
        self.shown = 0

    def __call__(self, snapshot: dict[str, Any]) -> None:
        text = snapshot.get("description")
        if not isinstance(text, str) or len(text) <= self.shown:
            return
        print(text[self.shown:], end="", flush=True)
        self.shown = len(text)


def parse_command(command: str, content: dict[str, Any]) -> tuple[str, str] | None:
    """Map typed input to (kind, argument), or None if it means nothing.

    kinds: "action" (a choice label), "item", "retry", "stats", "quit".
    """
    command = command.strip().lower()
    if command in ("q", "quit"):
        return ("quit", "")
    if command in ("r", "retry"):
        return ("retry", "")
    if command in ("s", "stats"):
        return ("stats", "")
    choices = content.get("choices") or []
    inventory = content.get("inventory") or []
    if command.startswith("u") and command[1:].strip().isdigit():
        index = int(command[1:].strip()) - 1
        if 0 <= index < len(inventory):
            return ("item", inventory[index])
        return None
    if command.isdigit():
        index = int(command) - 1
        if 0 <= index < len(choices):
            return ("action", choices[index].get("label", ""))
    return None


async def _ask(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


async def play(controller: SessionController, theme: Theme) -> None:
    """Run the interactive loop until the player quits."""
    printer = StreamPrinter()
    controller.add_snapshot_listener(printer)
    controller.add_damage_listener(lambda hp: print(f"\n{theme.flash}"))
    controller.boot()
    print(theme.title)
    await _ask(theme.subtitle + " ")
    print(theme.loading)
    await controller.start()
    printer.reset()

    while True:
        if controller.phase is Phase.DEAD:
            print(render_screen(controller, theme))
            print(f"\n{theme.death}")
            await _ask(theme.restart + " ")
            controller.restart()
            print(theme.loading)
            await controller.start()
            printer.reset()
            continue

        if controller.phase is Phase.FAILED:
            print(f"Turn failed: {controller.error}")
            command = await _ask("[r]etry or [q]uit > ")
        else:
            print()
            print(render_screen(controller, theme))
            command = await _ask("> ")

        parsed = parse_command(command, controller.current)
        if parsed is None:
            continue
        kind, argument = parsed
        if kind == "quit":
            break
        if kind == "stats":
            print(render_achievements(controller.state.achievements))
        elif kind == "retry":
            await controller.retry()
            printer.reset()
        elif kind == "item":
            print(theme.loading)
            await controller.use_item(argument)
            printer.reset()
        else:
            print(theme.loading)
            await controller.submit(argument)
            printer.reset()

    await controller.flush_saves()
