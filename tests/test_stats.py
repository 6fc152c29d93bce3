from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from rangerbot.config import DEFAULT_RULES_PATH
from rangerbot.constants import ARMOR_SHELL_PERKS, MAX_LEVEL, MIN_LEVEL, PowerGrowth
from rangerbot.models.character import Character, LevelUpChoice
from rangerbot.models.rules import load_rules
from rangerbot.stats import (
    armor_training,
    compute_sheet,
    defenses,
    essence_points_remaining,
    final_essence,
    final_skill_ranks,
    ground_movement,
    max_health,
    power_capacity,
    skill_die,
    skill_points_remaining,
    zord_stats,
)

RULES = load_rules(DEFAULT_RULES_PATH)


def test_strength_five_gives_toughness_fifteen() -> None:
    character = Character(essence={"Strength": 5})

    sheet = compute_sheet(character, RULES)

    assert sheet.essence["Strength"] == 5
    assert sheet.defenses["Toughness"] == 15


def test_origin_choice_and_role_adjustment_raise_strength_to_five() -> None:
    character = Character(
        origin="human",
        origin_essence_choice="Strength",
        role="red",
        essence={"Strength": 3},
    )

    sheet = compute_sheet(character, RULES)

    assert sheet.essence["Strength"] == 5
    assert sheet.defenses["Toughness"] == 15


def test_conditioning_from_every_source_rolls_d8() -> None:
    character = Character(
        role="red",
        level=3,
        skills={"Conditioning": 2},
        level_up_choices={3: LevelUpChoice(skill_ranks=["Conditioning"])},
    )

    sheet = compute_sheet(character, RULES)

    assert sheet.skill_ranks["Conditioning"] == 4
    assert sheet.skill_dice["Conditioning"] == "d8"


def test_each_essence_maps_to_its_defense() -> None:
    result = defenses({"Strength": 2, "Speed": 3, "Smarts": 4, "Social": 5})

    assert result == {"Toughness": 12, "Evasion": 13, "Willpower": 14, "Cleverness": 15}


def test_final_essence_ignores_allocation_order() -> None:
    forward = Character(essence={"Strength": 2, "Speed": 3, "Smarts": 4, "Social": 5})
    backward = Character(essence={"Social": 5, "Smarts": 4, "Speed": 3, "Strength": 2})

    assert final_essence(forward, RULES) == final_essence(backward, RULES)


def test_final_essence_applies_origin_bonus_and_role_adjustments() -> None:
    character = Character(origin="human", origin_essence_choice="Speed", role="black")

    result = final_essence(character, RULES)

    assert result == {"Strength": 2, "Speed": 1, "Smarts": 2, "Social": 1}


@pytest.mark.parametrize(
    ("ranks", "die"),
    [(-1, "-"), (0, "-"), (1, "d2"), (2, "d4"), (3, "d6"), (4, "d8"), (5, "d10"), (6, "d12"), (100, "-")],
)
def test_skill_die_follows_progression(ranks: int, die: str) -> None:
    assert skill_die(ranks) == die


def test_conditioning_four_ranks_rolls_d8() -> None:
    character = Character(skills={"Conditioning": 4})

    sheet = compute_sheet(character, RULES)

    assert sheet.skill_ranks["Conditioning"] == 4
    assert sheet.skill_dice["Conditioning"] == "d8"


def test_power_capacity_examples() -> None:
    assert power_capacity(1, PowerGrowth.SLOW) == 2
    assert power_capacity(4, PowerGrowth.MODERATE) == 3
    assert power_capacity(9, PowerGrowth.FAST) == 6
    assert power_capacity(9, "Fast (+2 per 4 levels)") == 6


@pytest.mark.parametrize("growth", list(PowerGrowth))
def test_power_capacity_never_decreases_with_level(growth: PowerGrowth) -> None:
    values = [power_capacity(level, growth) for level in range(MIN_LEVEL, MAX_LEVEL + 1)]

    assert values == sorted(values)
    assert values[0] == 2


def test_final_skill_ranks_sums_every_source_once() -> None:
    character = Character(
        role="red",
        role_skill_choice="Athletics",
        skills={"Might": 2},
        level=2,
        level_up_choices={3: LevelUpChoice(skill_ranks=["Might"])},
    )

    assert final_skill_ranks(character, RULES) == {"Might": 3, "Conditioning": 1, "Athletics": 1}

    character.level = 3

    assert final_skill_ranks(character, RULES)["Might"] == 4


def test_max_health_adds_conditioning_ranks() -> None:
    character = Character(origin="human", role="red", skills={"Conditioning": 2})

    assert max_health(character, RULES) == 13


def test_ground_movement_comes_from_origin() -> None:
    assert ground_movement(Character(origin="ninja"), RULES) == 35
    assert ground_movement(Character(), RULES) == 30


def test_role_armor_table_sets_training() -> None:
    training = armor_training(Character(role="red"), RULES)

    assert training.ordered_types == ("Light", "Medium")
    assert training.max_bonus == 2
    assert training.max_type_name == "Medium"


def test_character_without_role_has_no_armor_training() -> None:
    training = armor_training(Character(), RULES)

    assert training.allowed_types == frozenset()
    assert training.max_bonus == 0
    assert training.max_type_name == ""


def test_shell_perk_grants_its_tier_and_every_lower_tier() -> None:
    character = Character(role="blue", selected_perks=["Ultra-Heavy Armor Shell"])

    training = armor_training(character, RULES)

    assert training.ordered_types == ("Light", "Medium", "Heavy", "Ultra-Heavy")
    assert training.max_bonus == 6


@pytest.mark.parametrize("role", ["red", "blue", "yellow", "pink", "black", "green"])
@pytest.mark.parametrize("perk", list(ARMOR_SHELL_PERKS))
def test_shell_perks_never_reduce_training(role: str, perk: str) -> None:
    base = armor_training(Character(role=role), RULES)
    boosted = armor_training(Character(role=role, selected_perks=[perk]), RULES)

    assert base.allowed_types <= boosted.allowed_types
    assert boosted.max_bonus >= base.max_bonus


def test_level_up_perks_count_only_once_reached() -> None:
    character = Character(
        role="blue",
        level=3,
        level_up_choices={4: {"general_perk": "Heavy Armor Shell"}},
    )

    assert "Heavy" not in armor_training(character, RULES).allowed_types

    character.level = 4

    assert "Heavy" in armor_training(character, RULES).allowed_types
    assert compute_sheet(character, RULES).perks == ("Heavy Armor Shell",)


def test_zord_growth_applies_reached_milestones() -> None:
    character = Character(
        level=10,
        zord={"growth_choices": {5: "health", 10: "armor", 15: "speed"}},
    )

    stats = zord_stats(character)

    assert stats["health"] == 8
    assert stats["armor"] == 2
    assert stats["speed"] == 4
    assert stats["size"] == "Huge"


def test_point_budgets_start_full() -> None:
    character = Character()

    assert essence_points_remaining(character) == 12
    assert skill_points_remaining(character) == 12

    character.skills["Might"] = 3

    assert skill_points_remaining(character) == 9


def test_unknown_references_contribute_nothing() -> None:
    character = Character(origin="mystery", role="purple", skills={"Juggling": 2})

    sheet = compute_sheet(character, RULES)

    assert sheet.max_health == 0
    assert sheet.power_capacity == 2
    assert sheet.skill_dice["Juggling"] == "d4"
