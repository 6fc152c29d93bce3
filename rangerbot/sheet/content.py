"""Text blocks shared by the PDF and plain-text exporters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from ..constants import FREE_INFLUENCES
from ..models.character import Character
from ..models.rules import RuleTables
from ..stats import SheetStats


@dataclass(frozen=True, slots=True)
class Attack:
    name: str
    skill: str
    die: str
    damage: str
    range: str

    def describe(self) -> str:
        parts = [f"{self.name}: {self.skill} {self.die}".rstrip()]
        if self.damage:
            parts.append(f"damage {self.damage}")
        if self.range:
            parts.append(self.range)
        return ", ".join(parts)


def compose_groups(groups: Iterable[Sequence[str]]) -> str:
    """Join each group's lines and separate non-empty groups with a blank line."""

    blocks = ["\n".join(group) for group in groups if group]
    return "\n\n".join(blocks)


def attacks(character: Character, rules: RuleTables, sheet: SheetStats) -> list[Attack]:
    role = rules.roles.get(character.role or "")
    rows: list[Attack] = []
    for weapon in role.weapons if role else ():
        rows.append(
            Attack(
                name=weapon.name,
                skill=weapon.skill,
                die=sheet.skill_dice.get(weapon.skill, "-"),
                damage=weapon.damage,
                range=weapon.range,
            )
        )
    if character.green_weapon_choice:
        rows.append(
            Attack(
                name=character.plain_green_weapon,
                skill="",
                die="",
                damage="",
                range="",
            )
        )
    return rows


def role_perk_lines(character: Character, rules: RuleTables) -> list[str]:
    role = rules.roles.get(character.role or "")
    if role is None:
        return []
    return [f"{perk.name}: {perk.text}" if perk.text else perk.name for perk in role.perks]


def influence_perk_lines(character: Character, rules: RuleTables) -> list[str]:
    lines: list[str] = []
    for key in character.influences:
        influence = rules.influences.get(key)
        if influence is not None and influence.perk:
            lines.append(f"{influence.name}: {influence.perk}")
    return lines


def general_perk_lines(character: Character) -> list[str]:
    lines = list(character.selected_perks)
    for level, choice in character.active_level_up_choices():
        if choice.general_perk:
            lines.append(f"{choice.general_perk} (Lvl {level})")
    return lines


def perk_groups(character: Character, rules: RuleTables) -> list[list[str]]:
    """Perk lines grouped as role perks, influence perks, then general perks."""

    return [
        role_perk_lines(character, rules),
        influence_perk_lines(character, rules),
        general_perk_lines(character),
    ]


def _specialties(character: Character, rules: RuleTables, key: str) -> list[str]:
    influence = rules.influences.get(key)
    if influence is None or influence.specialty_table is None:
        return []
    selection = character.influence_specialties.get(key)
    if selection is None:
        return []
    indices = selection if isinstance(selection, list) else [selection]
    names = [influence.specialty_table.option(index) for index in indices]
    return [name for name in names if name]


def influence_lines(character: Character, rules: RuleTables) -> list[str]:
    lines: list[str] = []
    for position, key in enumerate(character.influences):
        influence = rules.influences.get(key)
        if influence is None:
            continue
        line = influence.name
        specialties = _specialties(character, rules, key)
        if specialties:
            line += f" ({', '.join(specialties)})"
        if position < FREE_INFLUENCES:
            line += " [Free]"
        lines.append(line)
    return lines


def hang_up_lines(character: Character, rules: RuleTables) -> list[str]:
    lines: list[str] = []
    for key in character.influences[FREE_INFLUENCES:]:
        influence = rules.influences.get(key)
        if influence is None:
            continue
        hang_up = influence.hang_up(character.influence_hang_up_choices.get(key))
        if hang_up:
            lines.append(f"{influence.name}: {hang_up}")
    return lines


def bond_lines(character: Character, rules: RuleTables) -> list[str]:
    lines: list[str] = []
    for key in character.influences:
        influence = rules.influences.get(key)
        if influence is None:
            continue
        for index in character.influence_bonds.get(key, []):
            bond = influence.bond(index)
            if bond:
                lines.append(f"{influence.name}: {bond}")
    return lines


def grid_power_lines(sheet: SheetStats, rules: RuleTables) -> list[str]:
    lines: list[str] = []
    for name in sheet.grid_powers:
        power = rules.grid_powers.get(name)
        lines.append(f"{name} (cost {power.cost})" if power else name)
    return lines


def equipment_lines(character: Character, rules: RuleTables) -> list[str]:
    role = rules.roles.get(character.role or "")
    lines = list(role.equipment) if role else []
    for slot, choice in sorted(character.plain_equipment_choices.items()):
        lines.append(f"{slot}: {choice}")
    return lines


def origin_feature_lines(character: Character, rules: RuleTables) -> list[str]:
    origin = rules.origins.get(character.origin or "")
    return list(origin.features) if origin else []


def zord_feature_lines(character: Character) -> list[str]:
    lines: list[str] = []
    if character.zord.spectrum_feature:
        lines.append(f"{character.zord.spectrum_feature} (Spectrum)")
    lines.extend(character.zord.additional_features)
    return lines


def armor_summary(sheet: SheetStats) -> str:
    if not sheet.armor.allowed_types:
        return "None"
    return ", ".join(sheet.armor.ordered_types)


__all__ = [
    "Attack",
    "armor_summary",
    "attacks",
    "bond_lines",
    "compose_groups",
    "equipment_lines",
    "general_perk_lines",
    "grid_power_lines",
    "hang_up_lines",
    "influence_lines",
    "influence_perk_lines",
    "origin_feature_lines",
    "perk_groups",
    "role_perk_lines",
    "zord_feature_lines",
]
