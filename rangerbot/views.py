"""Discord UI components for the character builder."""

from __future__ import annotations

from typing import Awaitable, Callable, Sequence

import discord

from .constants import (
    DEFAULT_EMBED_COLOUR,
    DEFENSE_BY_ESSENCE,
    ESSENCE_LIST,
    ROLE_COLOURS,
)
from .models.character import Character
from .models.rules import RuleTables
from .sheet import content
from .stats import SheetStats, compute_sheet, essence_points_remaining, skill_points_remaining
from .wizard import StepStatus

SimpleCallback = Callable[[discord.Interaction], Awaitable[None]]

# Discord rejects embed field values longer than this.
FIELD_VALUE_LIMIT = 1024


def _clip(text: str) -> str:
    if len(text) <= FIELD_VALUE_LIMIT:
        return text
    return text[: FIELD_VALUE_LIMIT - 1] + "…"


def _escape(text: str) -> str:
    return discord.utils.escape_markdown(text)


def sheet_field_entries(
    character: Character, rules: RuleTables, sheet: SheetStats | None = None
) -> list[tuple[str, str, bool]]:
    """Build embed field entries summarising a character sheet."""

    sheet = sheet or compute_sheet(character, rules)
    origin = rules.origins.get(character.origin or "")
    role = rules.roles.get(character.role or "")
    entries: list[tuple[str, str, bool]] = [
        ("Level", str(character.level), True),
        ("Origin", origin.name if origin else "—", True),
        ("Role", role.name if role else "—", True),
    ]

    essence_lines = [
        f"**{essence}** {sheet.essence.get(essence, 0)} · "
        f"{DEFENSE_BY_ESSENCE[essence]} {sheet.defenses[DEFENSE_BY_ESSENCE[essence]]}"
        for essence in ESSENCE_LIST
    ]
    entries.append(("Essence", "\n".join(essence_lines), False))
    entries.append(
        (
            "Resources",
            f"Health {sheet.max_health} · Power {sheet.power_capacity} · "
            f"Move {sheet.ground_movement}ft",
            False,
        )
    )

    skills = [
        f"{skill} {sheet.skill_dice[skill]}"
        for skill in rules.iter_skills()
        if sheet.skill_ranks.get(skill, 0) > 0
    ]
    entries.append(("Skills", _clip(", ".join(skills)) if skills else "None", False))

    perks = content.compose_groups(content.perk_groups(character, rules))
    if perks:
        entries.append(("Perks", _clip(_escape(perks)), False))
    influences = content.influence_lines(character, rules)
    if influences:
        entries.append(("Influences", _clip(_escape("\n".join(influences))), False))
    powers = content.grid_power_lines(sheet, rules)
    if powers:
        entries.append(("Grid Powers", _clip("\n".join(powers)), False))
    entries.append(
        (
            "Armor",
            f"{content.armor_summary(sheet)} (max +{sheet.armor.max_bonus})",
            True,
        )
    )
    if character.zord.name or character.zord.team_type:
        zord_type = rules.zord_types.get(character.zord.team_type or "")
        label = _escape(character.zord.plain_name) or "Unnamed Zord"
        entries.append(
            ("Zord", f"{label} ({zord_type.name if zord_type else 'No type'})", True)
        )
    return entries


def sheet_embed(character: Character, rules: RuleTables) -> discord.Embed:
    role = rules.roles.get(character.role or "")
    colour = ROLE_COLOURS.get(role.colour, DEFAULT_EMBED_COLOUR) if role else DEFAULT_EMBED_COLOUR
    embed = discord.Embed(
        title=_escape(character.plain_name) or "Unnamed Ranger",
        colour=colour,
    )
    concept = character.plain_concept.strip()
    if concept:
        embed.description = _escape(concept)
    for name, value, inline in sheet_field_entries(character, rules):
        embed.add_field(name=name, value=value, inline=inline)
    return embed


def progress_lines(statuses: Sequence[StepStatus]) -> list[str]:
    lines: list[str] = []
    for status in statuses:
        if status.step == "Sheet":
            continue
        marker = "✅" if status.complete else "⚠️"
        detail = f" — {status.errors[0]}" if status.errors else ""
        lines.append(f"{marker} {status.step}{detail}")
    return lines


def progress_embed(character: Character, statuses: Sequence[StepStatus]) -> discord.Embed:
    embed = discord.Embed(
        title="Character Progress",
        description="\n".join(progress_lines(statuses)),
        colour=DEFAULT_EMBED_COLOUR,
    )
    embed.set_footer(
        text=(
            f"Essence points left: {essence_points_remaining(character)} · "
            f"Skill points left: {skill_points_remaining(character)}"
        )
    )
    return embed


class OwnedView(discord.ui.View):
    """Base view that restricts interactions to a single Discord user."""

    def __init__(self, owner_id: int | None, *, timeout: float = 120.0) -> None:
        super().__init__(timeout=timeout)
        self.owner_id = owner_id

    async def interaction_check(self, interaction: discord.Interaction) -> bool:  # type: ignore[override]
        if self.owner_id is None or interaction.user.id == self.owner_id:
            return True
        await interaction.response.send_message(
            "Only the ranger who opened this sheet may use these controls.",
            ephemeral=True,
        )
        return False


class CallbackButton(discord.ui.Button[OwnedView]):
    """Reusable button that forwards interactions to a coroutine callback."""

    def __init__(
        self,
        *,
        label: str | None,
        callback: SimpleCallback,
        style: discord.ButtonStyle = discord.ButtonStyle.secondary,
        emoji: str | None = None,
    ) -> None:
        super().__init__(label=label, style=style, emoji=emoji)
        self._callback = callback

    async def callback(self, interaction: discord.Interaction) -> None:  # type: ignore[override]
        await self._callback(interaction)


class SheetView(OwnedView):
    """Export buttons shown beneath a character sheet embed."""

    def __init__(
        self,
        owner_id: int,
        *,
        export_pdf: SimpleCallback,
        export_text: SimpleCallback,
        timeout: float = 180.0,
    ) -> None:
        super().__init__(owner_id, timeout=timeout)
        self.add_item(
            CallbackButton(
                label="Export PDF",
                emoji="📄",
                style=discord.ButtonStyle.primary,
                callback=export_pdf,
            )
        )
        self.add_item(CallbackButton(label="Export Text", emoji="📝", callback=export_text))


class ConfirmResetView(OwnedView):
    """Two-button confirmation before discarding a character."""

    def __init__(self, owner_id: int, *, on_confirm: SimpleCallback, timeout: float = 60.0) -> None:
        super().__init__(owner_id, timeout=timeout)
        self._on_confirm = on_confirm
        self.add_item(
            CallbackButton(
                label="Start over",
                style=discord.ButtonStyle.danger,
                callback=self._confirm,
            )
        )
        self.add_item(CallbackButton(label="Keep my ranger", callback=self._cancel))

    async def _confirm(self, interaction: discord.Interaction) -> None:
        self.stop()
        await self._on_confirm(interaction)

    async def _cancel(self, interaction: discord.Interaction) -> None:
        self.stop()
        await interaction.response.edit_message(content="Nothing was changed.", view=None)


__all__ = [
    "CallbackButton",
    "ConfirmResetView",
    "OwnedView",
    "SheetView",
    "progress_embed",
    "progress_lines",
    "sheet_embed",
    "sheet_field_entries",
]
