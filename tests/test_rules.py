from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from rangerbot.config import DEFAULT_RULES_PATH
from rangerbot.constants import ESSENCE_LIST, PowerGrowth
from rangerbot.models._validation import ModelValidationError
from rangerbot.models.rules import Origin, Role, load_rules, rules_from_mapping

RULES = load_rules(DEFAULT_RULES_PATH)


def test_bundled_tables_load() -> None:
    assert set(RULES.origins) == {"human", "alien", "cyborg", "ninja"}
    assert set(RULES.roles) == {"red", "blue", "yellow", "pink", "black", "green"}
    assert set(RULES.zord_types) == {"land", "air", "sea"}
    assert len(RULES.all_skills) == 21


def test_role_growth_accepts_display_labels() -> None:
    assert RULES.roles["blue"].power_growth is PowerGrowth.FAST
    assert RULES.roles["red"].power_growth is PowerGrowth.MODERATE


def test_every_role_references_known_skills() -> None:
    skills = set(RULES.all_skills)

    for role in RULES.roles.values():
        assert set(role.starting_skill_ranks) <= skills
        assert set(role.skill_choices) <= skills
        assert {weapon.skill for weapon in role.weapons} <= skills


def test_every_role_has_an_armor_table() -> None:
    for key in RULES.roles:
        assert RULES.armor_for_role(key).types[0] == "Light"


def test_unknown_role_has_no_armor() -> None:
    table = RULES.armor_for_role("purple")

    assert table.types == ()
    assert table.max_bonus == 0


def test_resolve_skill_is_case_insensitive() -> None:
    assert RULES.resolve_skill(" animal handling ") == "Animal Handling"
    assert RULES.resolve_skill("Juggling") is None
    assert RULES.skill_essence("Targeting") == "Speed"


def test_origin_without_choices_offers_every_essence() -> None:
    origin = Origin(key="mutant", name="Mutant", essence_choices=["nonsense"])

    assert origin.essence_choices == ESSENCE_LIST


def test_role_merges_essence_adjustments() -> None:
    role = Role(key="x", name="X", essence_adjustments={"strength": 1, "Strength": 1, "Luck": 3})

    assert dict(role.essence_adjustments) == {"Strength": 2}


def test_malformed_table_is_rejected() -> None:
    with pytest.raises(ModelValidationError):
        rules_from_mapping({"origins": {"human": {"starting_health": 10}}})
    with pytest.raises(ModelValidationError):
        rules_from_mapping({"roles": {"red": "Red Ranger"}})


def test_missing_file_is_reported(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError):
        load_rules(tmp_path / "absent.toml")

    broken = tmp_path / "broken.toml"
    broken.write_text("[origins\n", encoding="utf8")
    with pytest.raises(RuntimeError):
        load_rules(broken)


def test_role_perks_and_weapons_load_from_tables() -> None:
    rules = rules_from_mapping(
        {
            "roles": {
                "silver": {
                    "name": "Silver Ranger",
                    "perks": [{"name": "Steel Nerve", "text": "Ignore fear once per scene."}],
                    "weapons": [{"name": "Silver Lance", "skill": "Might", "damage": "d6"}],
                }
            }
        }
    )

    role = rules.roles["silver"]

    assert [perk.name for perk in role.perks] == ["Steel Nerve"]
    assert role.weapons[0].name == "Silver Lance"
    assert RULES.roles["red"].weapons[0].name == "Power Sword"
