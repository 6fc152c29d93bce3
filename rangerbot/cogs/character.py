"""Slash commands that walk a member through building a ranger."""

from __future__ import annotations

import io
import logging
from typing import Any, Callable, Iterable

import discord
from discord import app_commands
from discord.ext import commands

from ..constants import (
    ESSENCE_LIST,
    STEP_NAMES,
    STORAGE_COLLECTION,
    ZORD_GROWTH_INCREMENTS,
)
from ..sheet import build_character_text
from ..stats import essence_points_remaining, skill_points_remaining
from ..storage import SaveResult
from ..utils import sanitize_filename, to_title_case
from ..views import ConfirmResetView, SheetView, progress_embed, sheet_embed
from ..wizard import CharacterBuilder, CharacterValidationError
from .base import OwnerKey, RangerCog, owner_key

ESSENCE_CHOICES = [app_commands.Choice(name=essence, value=essence) for essence in ESSENCE_LIST]
RESOURCE_CHOICES = [
    app_commands.Choice(name="Health", value="health"),
    app_commands.Choice(name="Power", value="power"),
    app_commands.Choice(name="Idea Points", value="idea_points"),
    app_commands.Choice(name="Quips & Speeches", value="quips_speeches"),
    app_commands.Choice(name="Zord Health", value="zord_health"),
]
ZORD_STAT_CHOICES = [
    app_commands.Choice(name=to_title_case(stat), value=stat) for stat in ZORD_GROWTH_INCREMENTS
]
EXPORT_CHOICES = [
    app_commands.Choice(name="PDF character sheet", value="pdf"),
    app_commands.Choice(name="Plain text", value="text"),
]


def _matching_choices(
    pairs: Iterable[tuple[str, str]], current: str
) -> list[app_commands.Choice[str]]:
    needle = (current or "").strip().lower()
    choices: list[app_commands.Choice[str]] = []
    for label, value in pairs:
        if needle and needle not in label.lower():
            continue
        choices.append(app_commands.Choice(name=label[:100], value=value[:100]))
        if len(choices) >= 25:
            break
    return choices


def _toggle(values: list[Any], value: Any) -> list[Any]:
    if value in values:
        return [entry for entry in values if entry != value]
    return [*values, value]


class CharacterCog(RangerCog):
    character = app_commands.Group(
        name="character",
        description="Build and manage your Power Rangers character",
        guild_only=True,
    )

    def __init__(self, bot: commands.Bot):
        super().__init__(bot)
        self.log = logging.getLogger(__name__)
        self._save_notices: dict[OwnerKey, str] = {}

    # -- Plumbing ---------------------------------------------------------

    def record_save_result(self, key: OwnerKey, result: SaveResult) -> None:
        """Remember a failed auto-save so the next reply can mention it."""

        if result.ok:
            self._save_notices.pop(key, None)
        elif result.message:
            self._save_notices[key] = result.message

    async def _resolve(
        self, interaction: discord.Interaction
    ) -> tuple[OwnerKey, CharacterBuilder, str | None] | None:
        guild = interaction.guild
        if guild is None:
            await self.reply(interaction, "This command must be used inside a server.")
            return None
        builder, notice = await self.builder_for(guild.id, interaction.user.id)
        key = owner_key(guild.id, interaction.user.id)
        return key, builder, notice

    async def _mutate(
        self,
        interaction: discord.Interaction,
        action: Callable[[CharacterBuilder], Any],
        success: str | Callable[[CharacterBuilder], str],
    ) -> None:
        resolved = await self._resolve(interaction)
        if resolved is None:
            return
        key, builder, notice = resolved
        try:
            action(builder)
        except CharacterValidationError as exc:
            await self.send_validation_error(interaction, exc)
            return
        self.schedule_save(key, builder)
        message = success(builder) if callable(success) else success
        lines = [entry for entry in (notice, self._save_notices.pop(key, None), message) if entry]
        await self.reply(interaction, "\n".join(lines))

    def _influence_pairs(self) -> list[tuple[str, str]]:
        return [(influence.name, key) for key, influence in self.rules.influences.items()]

    # -- Overview ---------------------------------------------------------

    @character.command(name="show", description="Show your character sheet")
    async def show(self, interaction: discord.Interaction) -> None:
        resolved = await self._resolve(interaction)
        if resolved is None:
            return
        _, builder, notice = resolved
        view = SheetView(
            interaction.user.id,
            export_pdf=self._send_pdf,
            export_text=self._send_text,
        )
        await self.reply(
            interaction,
            notice,
            embed=sheet_embed(builder.character, self.rules),
            view=view,
        )

    @character.command(name="progress", description="See which steps still need attention")
    async def progress(self, interaction: discord.Interaction) -> None:
        resolved = await self._resolve(interaction)
        if resolved is None:
            return
        _, builder, notice = resolved
        embed = progress_embed(builder.character, builder.step_statuses())
        await self.reply(interaction, notice, embed=embed)

    # -- Concept ----------------------------------------------------------

    @character.command(name="name", description="Set your character's name")
    @app_commands.describe(name="Up to 50 characters")
    async def name(self, interaction: discord.Interaction, name: str) -> None:
        await self._mutate(
            interaction,
            lambda builder: builder.set_name(name),
            lambda builder: f"Name set to **{discord.utils.escape_markdown(builder.character.plain_name)}**.",
        )

    @character.command(name="concept", description="Describe your character concept")
    @app_commands.describe(text="Up to 500 characters")
    async def concept(self, interaction: discord.Interaction, text: str) -> None:
        await self._mutate(interaction, lambda builder: builder.set_concept(text), "Concept updated.")

    @character.command(name="level", description="Set your character level")
    @app_commands.describe(level="Level between 1 and 20")
    async def level(
        self, interaction: discord.Interaction, level: app_commands.Range[int, 1, 20]
    ) -> None:
        await self._mutate(
            interaction, lambda builder: builder.set_level(level), f"Level set to {level}."
        )

    # -- Origin and role --------------------------------------------------

    @character.command(name="origin", description="Choose your Origin")
    @app_commands.describe(origin="Origin to adopt", essence="Essence that receives the Origin bonus")
    @app_commands.choices(essence=ESSENCE_CHOICES)
    async def origin(
        self,
        interaction: discord.Interaction,
        origin: str,
        essence: app_commands.Choice[str] | None = None,
    ) -> None:
        choice = essence.value if essence else None
        await self._mutate(
            interaction,
            lambda builder: builder.set_origin(origin, choice),
            lambda builder: f"Origin set to {self.rules.origins[origin].name}.",
        )

    @origin.autocomplete("origin")
    async def origin_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        pairs = [(origin.name, key) for key, origin in self.rules.origins.items()]
        return _matching_choices(pairs, current)

    @character.command(name="role", description="Choose your Ranger Role")
    @app_commands.describe(role="Role to take on", skill="Skill granted by the Role")
    async def role(
        self, interaction: discord.Interaction, role: str, skill: str | None = None
    ) -> None:
        def _apply(builder: CharacterBuilder) -> None:
            builder.set_role(role)
            if skill:
                builder.set_role_skill(skill)

        await self._mutate(
            interaction, _apply, lambda builder: f"Role set to {self.rules.roles[role].name}."
        )

    @role.autocomplete("role")
    async def role_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        pairs = [(role.name, key) for key, role in self.rules.roles.items()]
        return _matching_choices(pairs, current)

    @role.autocomplete("skill")
    async def role_skill_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        role = self.rules.roles.get(getattr(interaction.namespace, "role", None) or "")
        skills = role.skill_choices if role else ()
        return _matching_choices(((skill, skill) for skill in skills), current)

    # -- Influences -------------------------------------------------------

    @character.command(name="influence", description="Add or remove an Influence")
    @app_commands.describe(influence="Influence to toggle", remove="Remove it instead of adding")
    async def influence(
        self, interaction: discord.Interaction, influence: str, remove: bool = False
    ) -> None:
        if remove:
            await self._mutate(
                interaction,
                lambda builder: builder.remove_influence(influence),
                "Influence removed.",
            )
            return
        await self._mutate(
            interaction,
            lambda builder: builder.add_influence(influence),
            lambda builder: f"{self.rules.influences[influence].name} added.",
        )

    @influence.autocomplete("influence")
    async def influence_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return _matching_choices(self._influence_pairs(), current)

    @character.command(name="hangup", description="Pick the hang-up for an extra Influence")
    async def hangup(self, interaction: discord.Interaction, influence: str, hang_up: str) -> None:
        await self._mutate(
            interaction,
            lambda builder: builder.set_hang_up(influence, hang_up),
            "Hang-up recorded.",
        )

    @character.command(name="bond", description="Add or remove a bond from an Influence")
    async def bond(self, interaction: discord.Interaction, influence: str, bond: str) -> None:
        def _apply(builder: CharacterBuilder) -> None:
            try:
                position = int(bond)
            except ValueError as exc:
                raise CharacterValidationError("Unknown bond.", field="influence_bonds") from exc
            current = builder.character.influence_bonds.get(influence, [])
            builder.set_bonds(influence, _toggle(list(current), position))

        await self._mutate(interaction, _apply, "Bonds updated.")

    @character.command(name="specialty", description="Choose a specialty for an Influence")
    async def specialty(self, interaction: discord.Interaction, influence: str, option: str) -> None:
        def _apply(builder: CharacterBuilder) -> None:
            try:
                position = int(option)
            except ValueError as exc:
                raise CharacterValidationError(
                    "Unknown specialty.", field="influence_specialties"
                ) from exc
            entry = self.rules.influences.get(influence)
            table = entry.specialty_table if entry else None
            if table is not None and table.picks > 1:
                selected = builder.character.influence_specialties.get(influence)
                current = selected if isinstance(selected, list) else []
                builder.set_specialty(influence, _toggle(list(current), position))
            else:
                builder.set_specialty(influence, position)

        await self._mutate(interaction, _apply, "Specialty updated.")

    @hangup.autocomplete("influence")
    @bond.autocomplete("influence")
    @specialty.autocomplete("influence")
    async def selected_influence_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        builder, _ = await self.builder_for(interaction.guild_id or 0, interaction.user.id)
        selected = builder.character.influences
        pairs = [(name, key) for name, key in self._influence_pairs() if key in selected]
        return _matching_choices(pairs, current)

    def _indexed(self, interaction: discord.Interaction, attribute: str) -> list[tuple[str, str]]:
        influence = self.rules.influences.get(getattr(interaction.namespace, "influence", None) or "")
        if influence is None:
            return []
        if attribute == "specialty":
            table = influence.specialty_table
            options = table.options if table else ()
        else:
            options = getattr(influence, attribute)
        return [(text, str(index)) for index, text in enumerate(options)]

    @hangup.autocomplete("hang_up")
    async def hang_up_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return _matching_choices(self._indexed(interaction, "hang_ups"), current)

    @bond.autocomplete("bond")
    async def bond_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return _matching_choices(self._indexed(interaction, "bonds"), current)

    @specialty.autocomplete("option")
    async def specialty_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return _matching_choices(self._indexed(interaction, "specialty"), current)

    # -- Essence and skills -----------------------------------------------

    @character.command(name="essence", description="Assign points to an Essence score")
    @app_commands.choices(essence=ESSENCE_CHOICES)
    async def essence(
        self,
        interaction: discord.Interaction,
        essence: app_commands.Choice[str],
        score: app_commands.Range[int, 1, 20],
    ) -> None:
        await self._mutate(
            interaction,
            lambda builder: builder.set_essence(essence.value, score),
            lambda builder: (
                f"{essence.value} set to {score}. "
                f"Essence points left: {essence_points_remaining(builder.character)}."
            ),
        )

    @character.command(name="skill", description="Assign ranks to a skill")
    async def skill(
        self,
        interaction: discord.Interaction,
        skill: str,
        ranks: app_commands.Range[int, 0, 6],
    ) -> None:
        await self._mutate(
            interaction,
            lambda builder: builder.set_skill_ranks(skill, ranks),
            lambda builder: (
                f"{skill} set to {ranks} rank(s). "
                f"Skill points left: {skill_points_remaining(builder.character)}."
            ),
        )

    @character.command(name="specialization", description="Name a skill specialization")
    @app_commands.describe(text="Leave empty to clear the specialization")
    async def specialization(
        self, interaction: discord.Interaction, skill: str, text: str = ""
    ) -> None:
        await self._mutate(
            interaction,
            lambda builder: builder.set_specialization(skill, text),
            "Specialization updated.",
        )

    @skill.autocomplete("skill")
    @specialization.autocomplete("skill")
    async def skill_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return _matching_choices(((name, name) for name in self.rules.iter_skills()), current)

    # -- Perks and grid powers --------------------------------------------

    @character.command(name="perk", description="Take or drop a general perk")
    async def perk(self, interaction: discord.Interaction, perk: str, remove: bool = False) -> None:
        if remove:
            await self._mutate(interaction, lambda builder: builder.remove_perk(perk), "Perk removed.")
            return
        await self._mutate(interaction, lambda builder: builder.add_perk(perk), f"{perk} added.")

    @perk.autocomplete("perk")
    async def perk_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return _matching_choices(((name, name) for name in self.rules.perks), current)

    @character.command(name="gridpower", description="Take or drop a grid power")
    async def gridpower(
        self, interaction: discord.Interaction, power: str, remove: bool = False
    ) -> None:
        if remove:
            await self._mutate(
                interaction, lambda builder: builder.remove_grid_power(power), "Grid power removed."
            )
            return
        await self._mutate(
            interaction, lambda builder: builder.add_grid_power(power), f"{power} added."
        )

    @gridpower.autocomplete("power")
    async def grid_power_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return _matching_choices(((name, name) for name in self.rules.grid_powers), current)

    @character.command(name="equipment", description="Record an equipment choice")
    @app_commands.describe(
        slot="Equipment slot, for example Sidearm",
        choice="Leave empty to clear the slot",
        green_weapon="Signature weapon for the Green Ranger",
    )
    async def equipment(
        self,
        interaction: discord.Interaction,
        slot: str | None = None,
        choice: str = "",
        green_weapon: str | None = None,
    ) -> None:
        def _apply(builder: CharacterBuilder) -> None:
            if slot:
                builder.set_equipment_choice(slot, choice)
            if green_weapon is not None:
                builder.set_green_weapon(green_weapon)

        await self._mutate(interaction, _apply, "Equipment updated.")

    # -- Level up ---------------------------------------------------------

    @character.command(name="levelup", description="Record choices gained at a level")
    @app_commands.describe(
        level="Level the choices belong to",
        perk="General perk gained at this level",
        skill="Skill that gains a rank",
        power="Grid power gained at this level",
        clear="Clear every choice recorded for this level",
    )
    async def levelup(
        self,
        interaction: discord.Interaction,
        level: app_commands.Range[int, 2, 20],
        perk: str | None = None,
        skill: str | None = None,
        power: str | None = None,
        clear: bool = False,
    ) -> None:
        if clear:
            await self._mutate(
                interaction,
                lambda builder: builder.clear_level_up(level),
                f"Level {level} choices cleared.",
            )
            return
        await self._mutate(
            interaction,
            lambda builder: builder.set_level_up(
                level,
                general_perk=perk,
                skill_ranks=[skill] if skill else [],
                grid_power=power,
            ),
            f"Level {level} choices saved.",
        )

    @levelup.autocomplete("perk")
    async def levelup_perk_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return await self.perk_autocomplete(interaction, current)

    @levelup.autocomplete("skill")
    async def levelup_skill_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return await self.skill_autocomplete(interaction, current)

    @levelup.autocomplete("power")
    async def levelup_power_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return await self.grid_power_autocomplete(interaction, current)

    # -- Zord -------------------------------------------------------------

    @character.command(name="zord", description="Name and type your Zord")
    async def zord(
        self,
        interaction: discord.Interaction,
        name: str | None = None,
        zord_type: str | None = None,
        description: str | None = None,
    ) -> None:
        await self._mutate(
            interaction,
            lambda builder: builder.set_zord(
                name=name, team_type=zord_type, description=description
            ),
            "Zord updated.",
        )

    @zord.autocomplete("zord_type")
    async def zord_type_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        pairs = [(zord_type.name, key) for key, zord_type in self.rules.zord_types.items()]
        return _matching_choices(pairs, current)

    @character.command(name="zordfeature", description="Choose Zord features")
    @app_commands.describe(spectrum="Set this as the Zord's spectrum feature")
    async def zordfeature(
        self, interaction: discord.Interaction, feature: str, spectrum: bool = False
    ) -> None:
        if spectrum:
            await self._mutate(
                interaction,
                lambda builder: builder.set_spectrum_feature(feature),
                f"Spectrum feature set to {feature}.",
            )
            return
        await self._mutate(
            interaction, lambda builder: builder.toggle_zord_feature(feature), "Zord features updated."
        )

    @zordfeature.autocomplete("feature")
    async def zord_feature_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        builder, _ = await self.builder_for(interaction.guild_id or 0, interaction.user.id)
        zord_type = self.rules.zord_types.get(builder.character.zord.team_type or "")
        if zord_type is None:
            return []
        spectrum = bool(getattr(interaction.namespace, "spectrum", False))
        options = zord_type.spectrum_features if spectrum else zord_type.features
        return _matching_choices(((feature, feature) for feature in options), current)

    @character.command(name="zordgrowth", description="Pick the Zord stat that grows at a milestone")
    @app_commands.choices(stat=ZORD_STAT_CHOICES)
    async def zordgrowth(
        self,
        interaction: discord.Interaction,
        level: app_commands.Range[int, 5, 20],
        stat: app_commands.Choice[str],
    ) -> None:
        await self._mutate(
            interaction,
            lambda builder: builder.set_zord_growth(level, stat.value),
            f"Level {level} zord growth: {stat.name}.",
        )

    # -- Play state -------------------------------------------------------

    @character.command(name="morph", description="Toggle whether you are morphed")
    async def morph(self, interaction: discord.Interaction, morphed: bool) -> None:
        await self._mutate(
            interaction,
            lambda builder: builder.set_morphed(morphed),
            "It's Morphin' Time!" if morphed else "Powered down.",
        )

    @character.command(name="resource", description="Track a current resource value")
    @app_commands.choices(resource=RESOURCE_CHOICES)
    async def resource(
        self,
        interaction: discord.Interaction,
        resource: app_commands.Choice[str],
        value: app_commands.Range[int, 0, 999],
    ) -> None:
        await self._mutate(
            interaction,
            lambda builder: builder.set_resource(resource.value, value),
            f"{resource.name} set to {value}.",
        )

    # -- Export and reset -------------------------------------------------

    @character.command(name="export", description="Download your character sheet")
    @app_commands.choices(format=EXPORT_CHOICES)
    async def export(
        self, interaction: discord.Interaction, format: app_commands.Choice[str]
    ) -> None:
        if format.value == "pdf":
            await self._send_pdf(interaction)
        else:
            await self._send_text(interaction)

    async def _send_pdf(self, interaction: discord.Interaction) -> None:
        resolved = await self._resolve(interaction)
        if resolved is None:
            return
        key, builder, _ = resolved
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await self.exporter.export(key, builder.character, self.rules)
        if not result.ok or result.data is None:
            await interaction.followup.send(result.message, ephemeral=True)
            return
        self.log.info(
            "Exported sheet for user %s in guild %s (%d fields written)",
            key[1],
            key[0],
            len(result.written),
        )
        file = discord.File(io.BytesIO(result.data), filename=result.filename or "sheet.pdf")
        await interaction.followup.send(result.message, file=file, ephemeral=True)

    async def _send_text(self, interaction: discord.Interaction) -> None:
        resolved = await self._resolve(interaction)
        if resolved is None:
            return
        _, builder, _ = resolved
        text = build_character_text(builder.character, self.rules)
        filename = f"{sanitize_filename(builder.character.plain_name)}_PowerRangers.txt"
        file = discord.File(io.BytesIO(text.encode("utf-8")), filename=filename)
        await self.reply(interaction, "Character sheet text generated!", file=file)

    @character.command(name="reset", description="Discard your character and start over")
    async def reset(self, interaction: discord.Interaction) -> None:
        resolved = await self._resolve(interaction)
        if resolved is None:
            return
        key, _, _ = resolved

        async def _confirm(inter: discord.Interaction) -> None:
            self.forget(key)
            self._save_notices.pop(key, None)
            await self.store.remove(key[0], STORAGE_COLLECTION, key[1])
            self.log.info("Reset character for user %s in guild %s", key[1], key[0])
            await inter.response.edit_message(content="Your character has been reset.", view=None)

        view = ConfirmResetView(interaction.user.id, on_confirm=_confirm)
        await self.reply(
            interaction,
            f"This erases your character and every step ({', '.join(STEP_NAMES[:-1])}). Continue?",
            view=view,
        )


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(CharacterCog(bot))
