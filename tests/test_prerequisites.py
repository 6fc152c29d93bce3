from __future__ import annotations

import sys
from pathlib import Path

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from rangerbot.config import DEFAULT_RULES_PATH
from rangerbot.models.character import Character
from rangerbot.models.rules import load_rules
from rangerbot.prerequisites import (
    Requirement,
    parse_prerequisite,
    prerequisite_satisfied,
    unmet_requirements,
)

RULES = load_rules(DEFAULT_RULES_PATH)


def test_parses_every_requirement_class() -> None:
    requirements = parse_prerequisite("Level 8+, Heavy Armor Training, Strength 4+", RULES)

    assert requirements == [
        Requirement("level", "Level", 8),
        Requirement("essence", "Strength", 4),
        Requirement("armor", "Heavy"),
    ]


def test_ultra_heavy_training_is_not_read_as_heavy() -> None:
    requirements = parse_prerequisite("Ultra-Heavy Armor Training", RULES)

    assert requirements == [Requirement("armor", "Ultra-Heavy")]


def test_skill_die_requirements_use_rank_thresholds() -> None:
    assert parse_prerequisite("Might d6+", RULES) == [Requirement("skill", "Might", 3)]
    assert parse_prerequisite("Animal Handling d4+", RULES) == [
        Requirement("skill", "Animal Handling", 2)
    ]


def test_empty_or_unrecognised_text_imposes_nothing() -> None:
    character = Character()

    assert parse_prerequisite(None, RULES) == []
    assert prerequisite_satisfied("", character, RULES)
    assert prerequisite_satisfied("Must be brave of heart", character, RULES)


def test_skill_requirement_counts_role_ranks() -> None:
    character = Character(role="red", skills={"Might": 1})

    assert not prerequisite_satisfied("Might d6+", character, RULES)

    character.skills["Might"] = 2

    assert prerequisite_satisfied("Might d6+", character, RULES)


def test_essence_requirement_uses_final_scores() -> None:
    character = Character(role="black", essence={"Strength": 3})

    assert prerequisite_satisfied("Strength 4+", character, RULES)
    assert not prerequisite_satisfied("Strength 5+", character, RULES)


def test_armor_requirement_checks_training() -> None:
    red = Character(role="red")

    assert prerequisite_satisfied("Medium Armor Training", red, RULES)
    assert not prerequisite_satisfied("Heavy Armor Training", red, RULES)


def test_unmet_requirements_lists_only_failures() -> None:
    character = Character(role="black", level=5, essence={"Strength": 3})

    unmet = unmet_requirements("Level 8+, Heavy Armor Training, Strength 4+", character, RULES)

    assert unmet == [Requirement("level", "Level", 8)]
    assert unmet[0].describe() == "Level 8+"


def test_requirement_descriptions() -> None:
    assert Requirement("skill", "Might", 3).describe() == "Might d6+"
    assert Requirement("essence", "Smarts", 3).describe() == "Smarts 3+"
    assert Requirement("armor", "Heavy").describe() == "Heavy Armor Training"
