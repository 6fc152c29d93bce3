from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from rangerbot.config import DEFAULT_RULES_PATH
from rangerbot.constants import ROLE_COLOURS
from rangerbot.models.character import Character
from rangerbot.models.rules import load_rules
from rangerbot.views import (
    FIELD_VALUE_LIMIT,
    ConfirmResetView,
    SheetView,
    progress_lines,
    sheet_embed,
    sheet_field_entries,
)
from rangerbot.wizard import CharacterBuilder, StepStatus

RULES = load_rules(DEFAULT_RULES_PATH)


class FakeResponse:
    def __init__(self) -> None:
        self.messages: list[tuple[str, bool]] = []

    async def send_message(self, content: str, *, ephemeral: bool = False) -> None:
        self.messages.append((content, ephemeral))


def _interaction(user_id: int) -> SimpleNamespace:
    return SimpleNamespace(user=SimpleNamespace(id=user_id), response=FakeResponse())


def test_sheet_entries_summarise_character() -> None:
    character = Character(
        name="Jason",
        origin="human",
        role="red",
        influences=["athlete"],
        zord={"name": "Tyrannosaurus", "team_type": "land"},
    )

    entries = {name: value for name, value, _ in sheet_field_entries(character, RULES)}

    assert entries["Origin"] == "Human"
    assert entries["Role"] == "Red Ranger"
    assert entries["Skills"] == "Conditioning d2, Might d2"
    assert entries["Resources"] == "Health 11 · Power 2 · Move 30ft"
    assert entries["Armor"] == "Light, Medium (max +2)"
    assert entries["Zord"] == "Tyrannosaurus (Land Zord)"
    assert "Grid Powers" not in entries


def test_long_field_values_are_clipped() -> None:
    character = Character(selected_perks=[f"Perk {n:03d}" for n in range(300)])

    entries = {name: value for name, value, _ in sheet_field_entries(character, RULES)}

    assert len(entries["Perks"]) == FIELD_VALUE_LIMIT
    assert entries["Perks"].endswith("…")


def test_embed_uses_role_colour_and_plain_name() -> None:
    character = Character(name="Kim &amp; Co", role="pink", concept="Gymnast")

    embed = sheet_embed(character, RULES)

    assert embed.title == "Kim & Co"
    assert embed.description == "Gymnast"
    assert embed.colour == ROLE_COLOURS["pink"]


def test_progress_lines_report_first_error_per_step() -> None:
    statuses = CharacterBuilder(RULES).step_statuses()

    lines = progress_lines(statuses)

    assert lines[0] == "⚠️ Concept — Please enter a character name."
    assert "✅ Zord" in lines
    assert not any("Sheet" in line for line in lines)
    assert progress_lines([StepStatus("Skills")]) == ["✅ Skills"]


def test_views_only_answer_their_owner() -> None:
    async def noop(interaction) -> None:
        return None

    async def scenario():
        view = SheetView(1, export_pdf=noop, export_text=noop)
        labels = [child.label for child in view.children]
        stranger = _interaction(2)
        owner_allowed = await view.interaction_check(_interaction(1))
        stranger_allowed = await view.interaction_check(stranger)
        return labels, owner_allowed, stranger_allowed, stranger.response.messages

    labels, owner_allowed, stranger_allowed, messages = asyncio.run(scenario())

    assert labels == ["Export PDF", "Export Text"]
    assert owner_allowed is True
    assert stranger_allowed is False
    assert messages and messages[0][1] is True


def test_confirm_reset_runs_callback() -> None:
    confirmed: list[int] = []

    async def on_confirm(interaction) -> None:
        confirmed.append(interaction.user.id)

    async def scenario() -> bool:
        view = ConfirmResetView(1, on_confirm=on_confirm)
        await view.children[0].callback(_interaction(1))
        return view.is_finished()

    finished = asyncio.run(scenario())

    assert confirmed == [1]
    assert finished
