from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from rangerbot.config import DEFAULT_RULES_PATH
from rangerbot.constants import VALIDATION_MESSAGES
from rangerbot.models.rules import load_rules
from rangerbot.stats import armor_training, final_skill_ranks
from rangerbot.wizard import CharacterBuilder, CharacterValidationError

RULES = load_rules(DEFAULT_RULES_PATH)


@pytest.fixture
def builder() -> CharacterBuilder:
    return CharacterBuilder(RULES)


def test_name_is_stored_escaped(builder: CharacterBuilder) -> None:
    builder.set_name("<script>")

    assert builder.character.name == "&lt;script&gt;"
    assert builder.character.plain_name == "<script>"


def test_rejected_name_leaves_character_unchanged(builder: CharacterBuilder) -> None:
    builder.set_name("Jason")

    with pytest.raises(CharacterValidationError) as excinfo:
        builder.set_name("x" * 51)

    assert str(excinfo.value) == VALIDATION_MESSAGES["name_too_long"]
    assert builder.character.name == "Jason"

    with pytest.raises(CharacterValidationError):
        builder.set_name("   ")


def test_builder_works_on_a_copy_of_the_given_character(builder: CharacterBuilder) -> None:
    original = builder.character
    builder.set_name("Trini")

    assert original.name == ""
    assert builder.character is not original


def test_origin_with_single_choice_fills_essence(builder: CharacterBuilder) -> None:
    builder.set_origin("ninja")

    assert builder.character.origin_essence_choice == "Speed"

    with pytest.raises(CharacterValidationError):
        builder.set_origin("alien", "Strength")
    assert builder.character.origin == "ninja"


def test_switching_role_drops_unavailable_skill_choice(builder: CharacterBuilder) -> None:
    builder.set_role("red")
    builder.set_role_skill("Athletics")
    builder.set_role("blue")

    assert builder.character.role_skill_choice is None

    with pytest.raises(CharacterValidationError):
        builder.set_role_skill("Athletics")


def test_essence_budget_is_enforced(builder: CharacterBuilder) -> None:
    builder.set_essence("Strength", 5)
    builder.set_essence("Speed", 5)
    builder.set_essence("Smarts", 5)

    with pytest.raises(CharacterValidationError):
        builder.set_essence("Social", 2)
    assert builder.character.essence["Social"] == 1

    with pytest.raises(CharacterValidationError):
        builder.set_essence("Social", 0)


def test_skill_ranks_respect_cap_and_budget(builder: CharacterBuilder) -> None:
    builder.set_role("red")

    with pytest.raises(CharacterValidationError):
        builder.set_skill_ranks("Might", 6)
    builder.set_skill_ranks("might", 5)
    assert final_skill_ranks(builder.character, RULES)["Might"] == 6

    builder.set_skill_ranks("Athletics", 6)
    with pytest.raises(CharacterValidationError):
        builder.set_skill_ranks("Brawn", 2)
    assert "Brawn" not in builder.character.skills

    builder.set_skill_ranks("Athletics", 0)
    assert "Athletics" not in builder.character.skills


def test_level_change_that_breaks_skill_cap_is_rejected(builder: CharacterBuilder) -> None:
    builder.set_role("red")
    builder.set_skill_ranks("Might", 5)
    builder.set_level_up(2, skill_ranks=["Might"])

    with pytest.raises(CharacterValidationError):
        builder.set_level(2)
    assert builder.character.level == 1


def test_influences_are_capped_and_first_is_free(builder: CharacterBuilder) -> None:
    builder.add_influence("athlete")
    builder.add_influence("scientist")
    builder.add_influence("performer")

    with pytest.raises(CharacterValidationError):
        builder.add_influence("tech_wiz")
    with pytest.raises(CharacterValidationError):
        builder.add_influence("athlete")
    with pytest.raises(CharacterValidationError):
        builder.set_hang_up("athlete", 0)

    builder.set_hang_up("scientist", 1)
    assert builder.character.influence_hang_up_choices == {"scientist": 1}

    builder.remove_influence("athlete")
    assert builder.character.influences == ["scientist", "performer"]
    assert builder.character.influence_hang_up_choices == {}


def test_specialty_picks_follow_the_table(builder: CharacterBuilder) -> None:
    builder.add_influence("athlete")
    builder.add_influence("scientist")

    builder.set_specialty("athlete", 2)
    builder.set_specialty("scientist", [0, 1])

    assert builder.character.influence_specialties == {"athlete": 2, "scientist": [0, 1]}

    with pytest.raises(CharacterValidationError):
        builder.set_specialty("scientist", [0, 1, 2])
    with pytest.raises(CharacterValidationError):
        builder.set_specialty("athlete", 99)


def test_bonds_reject_unknown_entries(builder: CharacterBuilder) -> None:
    builder.add_influence("athlete")
    builder.set_bonds("athlete", [0, 2])

    assert builder.character.influence_bonds == {"athlete": [0, 2]}

    with pytest.raises(CharacterValidationError):
        builder.set_bonds("athlete", [7])


def test_perk_prerequisites_are_checked(builder: CharacterBuilder) -> None:
    builder.set_role("red")

    with pytest.raises(CharacterValidationError) as excinfo:
        builder.add_perk("Iron Grip")
    assert "Might d6+" in str(excinfo.value)

    builder.set_skill_ranks("Might", 2)
    builder.add_perk("Iron Grip")
    assert builder.character.selected_perks == ["Iron Grip"]

    with pytest.raises(CharacterValidationError):
        builder.add_perk("Iron Grip")


def test_armor_shell_perk_needs_level_and_training(builder: CharacterBuilder) -> None:
    builder.set_role("red")

    with pytest.raises(CharacterValidationError):
        builder.add_perk("Heavy Armor Shell")

    builder.set_level(4)
    builder.add_perk("Heavy Armor Shell")

    assert "Heavy" in armor_training(builder.character, RULES).allowed_types


def test_repeatable_perk_can_be_taken_again_while_levelling(builder: CharacterBuilder) -> None:
    builder.add_perk("Extra Training")
    builder.set_level(4)
    builder.set_level_up(4, general_perk="Extra Training")

    assert builder.character.level_up_choices[4].general_perk == "Extra Training"


def test_grid_power_level_gate(builder: CharacterBuilder) -> None:
    with pytest.raises(CharacterValidationError):
        builder.add_grid_power("Morphin Surge")

    builder.set_level(6)
    builder.add_grid_power("Morphin Surge")

    assert builder.character.selected_grid_powers == ["Morphin Surge"]


def test_level_up_choices_are_limited_to_milestones(builder: CharacterBuilder) -> None:
    with pytest.raises(CharacterValidationError):
        builder.set_level_up(3, general_perk="Extra Training")
    with pytest.raises(CharacterValidationError):
        builder.set_level_up(5, grid_power="Power Blast")
    with pytest.raises(CharacterValidationError):
        builder.set_level_up(1, skill_ranks=["Might"])

    builder.set_level_up(6, grid_power="Power Blast")
    builder.clear_level_up(6)
    assert builder.character.level_up_choices == {}


def test_zord_type_change_clears_features(builder: CharacterBuilder) -> None:
    builder.set_zord(name="Tyrannosaurus", team_type="land")
    builder.set_spectrum_feature("Earthshaker")
    builder.toggle_zord_feature("Tow Cable")

    with pytest.raises(CharacterValidationError):
        builder.toggle_zord_feature("Afterburners")

    builder.set_zord(team_type="air")

    assert builder.character.zord.name == "Tyrannosaurus"
    assert builder.character.zord.spectrum_feature is None
    assert builder.character.zord.additional_features == []


def test_zord_growth_only_at_milestones(builder: CharacterBuilder) -> None:
    builder.set_zord_growth(5, "health")

    assert builder.character.zord.growth_choices == {5: "health"}

    with pytest.raises(CharacterValidationError):
        builder.set_zord_growth(7, "health")
    with pytest.raises(CharacterValidationError):
        builder.set_zord_growth(10, "size")


def test_resources_and_morph_state(builder: CharacterBuilder) -> None:
    builder.set_resource("health", 5)
    builder.set_morphed(True)

    assert builder.character.resources.current_health == 5
    assert builder.character.morphed is True

    with pytest.raises(CharacterValidationError):
        builder.set_resource("mana", 1)
    with pytest.raises(CharacterValidationError):
        builder.set_resource("power", -1)


def test_fresh_character_reports_missing_steps(builder: CharacterBuilder) -> None:
    assert builder.validate_step("Concept").errors == [VALIDATION_MESSAGES["name_required"]]
    assert builder.validate_step("Essence").errors == [
        VALIDATION_MESSAGES["essence_points_remaining"]
    ]
    assert builder.validate_step("Zord").complete
    assert not builder.is_complete

    with pytest.raises(KeyError):
        builder.validate_step("Nonexistent")


def test_completed_character_passes_every_step(builder: CharacterBuilder) -> None:
    builder.set_name("Jason")
    builder.set_origin("human", "Strength")
    builder.set_role("red")
    builder.set_role_skill("Athletics")
    builder.add_influence("athlete")
    for essence in ("Strength", "Speed", "Smarts", "Social"):
        builder.set_essence(essence, 4)
    for skill in ("Athletics", "Brawn", "Alertness", "Persuasion"):
        builder.set_skill_ranks(skill, 3)

    assert [status.step for status in builder.step_statuses() if not status.complete] == []
    assert builder.is_complete


def test_reset_starts_fresh(builder: CharacterBuilder) -> None:
    builder.set_name("Zack")
    builder.reset()

    assert builder.character.name == ""
    assert builder.snapshot()["level"] == 1
