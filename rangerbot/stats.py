"""Derived statistics computed from a character and the rule tables.

Every function here is pure.  Unknown origins, roles, skills or perks
contribute nothing instead of raising, so a half-finished character can
always be displayed and exported.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from .constants import (
    ARMOR_BONUSES,
    ARMOR_SHELL_PERKS,
    ARMOR_TYPES,
    BASE_DEFENSE,
    BASE_ESSENCE_SCORE,
    BASE_POWER_CAPACITY,
    BASELINE_ZORD_STATS,
    DEFAULT_GROUND_MOVEMENT,
    DEFENSE_BY_ESSENCE,
    DICE_PROGRESSION,
    ESSENCE_LIST,
    ESSENCE_POINTS_AT_LEVEL_1,
    SKILL_POINTS_AT_LEVEL_1,
    ZORD_GROWTH_INCREMENTS,
    ZORD_GROWTH_LEVELS,
    PowerGrowth,
)
from .models.character import Character
from .models.rules import Role, RuleTables


def _role(character: Character, rules: RuleTables) -> Role | None:
    if not character.role:
        return None
    return rules.roles.get(character.role)


def final_essence(character: Character, rules: RuleTables) -> dict[str, int]:
    """Raw allocation plus the origin bonus and every role adjustment."""

    result = {essence: int(character.essence.get(essence, 0)) for essence in ESSENCE_LIST}
    if character.origin_essence_choice in result:
        result[character.origin_essence_choice] += 1
    role = _role(character, rules)
    if role is not None:
        for essence, amount in role.essence_adjustments.items():
            result[essence] = result.get(essence, 0) + amount
    return result


def defense_value(score: int) -> int:
    return BASE_DEFENSE + int(score)


def defenses(essence_scores: Mapping[str, int]) -> dict[str, int]:
    """Map each defense name to its value for the given final essence scores."""

    return {
        DEFENSE_BY_ESSENCE[essence]: defense_value(essence_scores.get(essence, 0))
        for essence in ESSENCE_LIST
    }


def skill_die(ranks: int) -> str:
    try:
        index = int(ranks)
    except (TypeError, ValueError):
        return DICE_PROGRESSION[0]
    if index < 0 or index >= len(DICE_PROGRESSION):
        return DICE_PROGRESSION[0]
    return DICE_PROGRESSION[index]


def power_capacity(level: int, growth: PowerGrowth | str | None) -> int:
    """Return the power capacity at ``level`` for a growth class.

    >>> power_capacity(9, "fast")
    6
    """

    resolved = PowerGrowth.from_value(growth)
    steps = max(0, int(level) - 1) // resolved.divisor
    return BASE_POWER_CAPACITY + steps * resolved.multiplier


def role_power_capacity(character: Character, rules: RuleTables) -> int:
    role = _role(character, rules)
    return power_capacity(character.level, role.power_growth if role else None)


def final_skill_ranks(character: Character, rules: RuleTables) -> dict[str, int]:
    """Total ranks per skill from every source.

    Sums the raw allocation, the role's starting ranks, the role skill choice
    and skill ranks granted by level-up choices at or below the current level.
    Each source is added exactly once.
    """

    totals: dict[str, int] = {}

    def _add(skill: str | None, amount: int) -> None:
        if not skill or amount == 0:
            return
        totals[skill] = totals.get(skill, 0) + amount

    for skill, ranks in character.skills.items():
        _add(skill, ranks)
    role = _role(character, rules)
    if role is not None:
        for skill, ranks in role.starting_skill_ranks.items():
            _add(skill, ranks)
    if character.role_skill_choice:
        _add(character.role_skill_choice, 1)
    for _level, choice in character.active_level_up_choices():
        for skill in choice.skill_ranks:
            _add(skill, 1)
    return {skill: ranks for skill, ranks in totals.items() if ranks > 0}


def skill_ranks_for(character: Character, rules: RuleTables, skill: str) -> int:
    return final_skill_ranks(character, rules).get(skill, 0)


def max_health(character: Character, rules: RuleTables) -> int:
    origin = rules.origins.get(character.origin or "")
    base = origin.starting_health if origin else 0
    return base + skill_ranks_for(character, rules, "Conditioning")


def ground_movement(character: Character, rules: RuleTables) -> int:
    origin = rules.origins.get(character.origin or "")
    return origin.ground_movement if origin else DEFAULT_GROUND_MOVEMENT


def owned_perks(character: Character) -> list[str]:
    """Selected general perks followed by perks picked while levelling."""

    perks = list(character.selected_perks)
    for _level, choice in character.active_level_up_choices():
        if choice.general_perk and choice.general_perk not in perks:
            perks.append(choice.general_perk)
    return perks


def owned_grid_powers(character: Character) -> list[str]:
    powers = list(character.selected_grid_powers)
    for _level, choice in character.active_level_up_choices():
        if choice.grid_power and choice.grid_power not in powers:
            powers.append(choice.grid_power)
    return powers


@dataclass(frozen=True, slots=True)
class ArmorTraining:
    allowed_types: frozenset[str]
    max_bonus: int
    max_type_name: str

    @property
    def ordered_types(self) -> tuple[str, ...]:
        return tuple(name for name in ARMOR_TYPES if name in self.allowed_types)


def armor_training(character: Character, rules: RuleTables) -> ArmorTraining:
    """Armor tiers the character may wear.

    Starts from the role's table; each owned armor shell perk grants its tier
    and every tier below it.  The result is never lower than the role's table.
    """

    table = rules.armor_for_role(character.role)
    allowed = set(table.types)
    max_bonus = table.max_bonus or 0
    for perk in owned_perks(character):
        tier = ARMOR_SHELL_PERKS.get(perk)
        if tier is None:
            continue
        tier_index = ARMOR_TYPES.index(tier)
        allowed.update(ARMOR_TYPES[: tier_index + 1])
        max_bonus = max(max_bonus, ARMOR_BONUSES[tier])
    highest = ""
    for name in ARMOR_TYPES:
        if name in allowed:
            highest = name
    return ArmorTraining(frozenset(allowed), max_bonus, highest)


def zord_stats(character: Character) -> dict[str, int | str]:
    """Baseline zord statistics plus growth picked at milestone levels reached."""

    stats: dict[str, int | str] = dict(BASELINE_ZORD_STATS)
    for level in ZORD_GROWTH_LEVELS:
        if level > character.level:
            continue
        stat = character.zord.growth_choices.get(level)
        increment = ZORD_GROWTH_INCREMENTS.get(stat or "")
        if increment is None:
            continue
        stats[stat] = int(stats[stat]) + increment
    return stats


def essence_points_spent(character: Character) -> int:
    return sum(
        max(0, int(character.essence.get(essence, BASE_ESSENCE_SCORE)))
        for essence in ESSENCE_LIST
    )


def essence_points_remaining(character: Character) -> int:
    return ESSENCE_POINTS_AT_LEVEL_1 - essence_points_spent(character)


def skill_points_spent(character: Character) -> int:
    return sum(max(0, ranks) for ranks in character.skills.values())


def skill_points_remaining(character: Character) -> int:
    return SKILL_POINTS_AT_LEVEL_1 - skill_points_spent(character)


@dataclass(frozen=True, slots=True)
class SheetStats:
    """Snapshot of every derived value shown on a character sheet."""

    essence: Mapping[str, int]
    defenses: Mapping[str, int]
    skill_ranks: Mapping[str, int]
    skill_dice: Mapping[str, str]
    max_health: int
    power_capacity: int
    ground_movement: int
    armor: ArmorTraining
    perks: tuple[str, ...]
    grid_powers: tuple[str, ...]
    zord: Mapping[str, int | str]


def compute_sheet(character: Character, rules: RuleTables) -> SheetStats:
    essence = final_essence(character, rules)
    ranks = final_skill_ranks(character, rules)
    return SheetStats(
        essence=MappingProxyType(essence),
        defenses=MappingProxyType(defenses(essence)),
        skill_ranks=MappingProxyType(ranks),
        skill_dice=MappingProxyType({skill: skill_die(value) for skill, value in ranks.items()}),
        max_health=max_health(character, rules),
        power_capacity=role_power_capacity(character, rules),
        ground_movement=ground_movement(character, rules),
        armor=armor_training(character, rules),
        perks=tuple(owned_perks(character)),
        grid_powers=tuple(owned_grid_powers(character)),
        zord=MappingProxyType(zord_stats(character)),
    )


__all__ = [
    "ArmorTraining",
    "SheetStats",
    "armor_training",
    "compute_sheet",
    "defense_value",
    "defenses",
    "essence_points_remaining",
    "essence_points_spent",
    "final_essence",
    "final_skill_ranks",
    "ground_movement",
    "max_health",
    "owned_grid_powers",
    "owned_perks",
    "power_capacity",
    "role_power_capacity",
    "skill_die",
    "skill_points_remaining",
    "skill_points_spent",
    "zord_stats",
]
