"""Validated, all-or-nothing edits of a character through the wizard steps.

Every mutation runs against a copy of the current character and replaces it
only when the whole edit succeeds, so a rejected edit never leaves a partial
change behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from .constants import (
    BASE_ESSENCE_SCORE,
    ESSENCE_POINTS_AT_LEVEL_1,
    FREE_INFLUENCES,
    GENERAL_PERK_LEVELS,
    GRID_POWER_LEVELS,
    MAX_INFLUENCES,
    MAX_LEVEL,
    MAX_SKILL_RANKS,
    MAX_SPECIALIZATION_LENGTH,
    MIN_LEVEL,
    SKILL_POINTS_AT_LEVEL_1,
    SKILL_RANKS_PER_LEVEL,
    STEP_NAMES,
    VALIDATION_MESSAGES,
    ZORD_GROWTH_INCREMENTS,
    ZORD_GROWTH_LEVELS,
    Essence,
)
from .models.character import Character, LevelUpChoice, Resources, default_character
from .models.rules import RuleTables
from . import prerequisites, stats
from .utils import validate_character_name, validate_text_input

log = logging.getLogger(__name__)


class CharacterValidationError(ValueError):
    """Raised when an edit is refused; the character is left unchanged."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


@dataclass(slots=True)
class StepStatus:
    step: str
    errors: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.errors


def _int(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise CharacterValidationError(f"{label} must be a whole number.", field=label)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise CharacterValidationError(f"{label} must be a whole number.", field=label) from exc


class CharacterBuilder:
    """Owns one character and applies validated edits to it."""

    def __init__(self, rules: RuleTables, character: Character | None = None) -> None:
        self.rules = rules
        self._character = character.copy() if character is not None else default_character()

    @property
    def character(self) -> Character:
        return self._character

    def snapshot(self) -> dict[str, Any]:
        return self._character.to_dict()

    def _commit(self, mutate: Callable[[Character], None]) -> Character:
        draft = self._character.copy()
        mutate(draft)
        self._character = draft
        return draft

    def reset(self) -> Character:
        self._character = default_character()
        return self._character

    # -- Concept ----------------------------------------------------------

    def set_name(self, name: str) -> Character:
        result = validate_character_name(name)
        if not result.valid:
            raise CharacterValidationError(result.error or "", field="name")

        def _apply(draft: Character) -> None:
            draft.name = result.sanitized

        return self._commit(_apply)

    def set_concept(self, text: str) -> Character:
        result = validate_text_input(text)
        if not result.valid:
            raise CharacterValidationError(result.error or "", field="concept")

        def _apply(draft: Character) -> None:
            draft.concept = result.sanitized

        return self._commit(_apply)

    def set_level(self, level: Any) -> Character:
        value = _int(level, "Level")
        if not MIN_LEVEL <= value <= MAX_LEVEL:
            raise CharacterValidationError(
                f"Level must be between {MIN_LEVEL} and {MAX_LEVEL}.", field="level"
            )

        def _apply(draft: Character) -> None:
            draft.level = value
            self._check_skill_caps(draft)

        return self._commit(_apply)

    # -- Origin and role --------------------------------------------------

    def set_origin(self, key: str, essence_choice: str | None = None) -> Character:
        origin = self.rules.origins.get(key)
        if origin is None:
            raise CharacterValidationError(VALIDATION_MESSAGES["origin_required"], field="origin")
        choice = self._origin_choice(origin.essence_choices, essence_choice)

        def _apply(draft: Character) -> None:
            draft.origin = key
            if choice is not None:
                draft.origin_essence_choice = choice
            elif len(origin.essence_choices) == 1:
                draft.origin_essence_choice = origin.essence_choices[0]
            elif draft.origin_essence_choice not in origin.essence_choices:
                draft.origin_essence_choice = None

        return self._commit(_apply)

    def set_origin_essence(self, essence: str) -> Character:
        origin = self.rules.origins.get(self._character.origin or "")
        if origin is None:
            raise CharacterValidationError(VALIDATION_MESSAGES["origin_required"], field="origin")
        choice = self._origin_choice(origin.essence_choices, essence)

        def _apply(draft: Character) -> None:
            draft.origin_essence_choice = choice

        return self._commit(_apply)

    @staticmethod
    def _origin_choice(allowed: Sequence[str], essence: str | None) -> str | None:
        if essence is None:
            return None
        member = Essence.from_value(essence)
        if member is None or member.value not in allowed:
            raise CharacterValidationError(
                f"Choose one of: {', '.join(allowed)}.", field="origin_essence_choice"
            )
        return member.value

    def set_role(self, key: str) -> Character:
        role = self.rules.roles.get(key)
        if role is None:
            raise CharacterValidationError(VALIDATION_MESSAGES["role_required"], field="role")

        def _apply(draft: Character) -> None:
            draft.role = key
            if draft.role_skill_choice not in role.skill_choices:
                draft.role_skill_choice = None
            self._check_skill_caps(draft)

        return self._commit(_apply)

    def set_role_skill(self, skill: str) -> Character:
        role = self.rules.roles.get(self._character.role or "")
        if role is None:
            raise CharacterValidationError(VALIDATION_MESSAGES["role_required"], field="role")
        if skill not in role.skill_choices:
            raise CharacterValidationError(
                f"{role.name} can choose from: {', '.join(role.skill_choices)}.",
                field="role_skill_choice",
            )

        def _apply(draft: Character) -> None:
            draft.role_skill_choice = skill
            self._check_skill_caps(draft)

        return self._commit(_apply)

    # -- Influences -------------------------------------------------------

    def _influence(self, key: str):
        influence = self.rules.influences.get(key)
        if influence is None:
            raise CharacterValidationError(f"Unknown influence {key!r}.", field="influences")
        return influence

    def add_influence(self, key: str) -> Character:
        self._influence(key)
        if key in self._character.influences:
            raise CharacterValidationError("That influence is already selected.", field="influences")
        if len(self._character.influences) >= MAX_INFLUENCES:
            raise CharacterValidationError(
                f"You can have at most {MAX_INFLUENCES} influences.", field="influences"
            )

        def _apply(draft: Character) -> None:
            draft.influences.append(key)

        return self._commit(_apply)

    def remove_influence(self, key: str) -> Character:
        if key not in self._character.influences:
            raise CharacterValidationError("That influence is not selected.", field="influences")

        def _apply(draft: Character) -> None:
            draft.influences.remove(key)
            draft.influence_hang_up_choices.pop(key, None)
            draft.influence_bonds.pop(key, None)
            draft.influence_specialties.pop(key, None)
            # The new first influence is free and carries no hang-up.
            for free in draft.influences[:FREE_INFLUENCES]:
                draft.influence_hang_up_choices.pop(free, None)

        return self._commit(_apply)

    def set_hang_up(self, key: str, index: Any) -> Character:
        influence = self._influence(key)
        if key not in self._character.influences:
            raise CharacterValidationError("Select the influence first.", field="influences")
        if key in self._character.influences[:FREE_INFLUENCES]:
            raise CharacterValidationError(
                "Your first influence is free and has no hang-up.", field="influence_hang_up_choices"
            )
        position = _int(index, "Hang-up")
        if not influence.hang_up(position):
            raise CharacterValidationError("Unknown hang-up.", field="influence_hang_up_choices")

        def _apply(draft: Character) -> None:
            draft.influence_hang_up_choices[key] = position

        return self._commit(_apply)

    def set_bonds(self, key: str, indices: Iterable[Any]) -> Character:
        influence = self._influence(key)
        if key not in self._character.influences:
            raise CharacterValidationError("Select the influence first.", field="influences")
        positions: list[int] = []
        for index in indices:
            position = _int(index, "Bond")
            if not influence.bond(position):
                raise CharacterValidationError("Unknown bond.", field="influence_bonds")
            if position not in positions:
                positions.append(position)

        def _apply(draft: Character) -> None:
            if positions:
                draft.influence_bonds[key] = positions
            else:
                draft.influence_bonds.pop(key, None)

        return self._commit(_apply)

    def set_specialty(self, key: str, indices: Any) -> Character:
        influence = self._influence(key)
        table = influence.specialty_table
        if table is None:
            raise CharacterValidationError(
                f"{influence.name} has no specialty table.", field="influence_specialties"
            )
        if key not in self._character.influences:
            raise CharacterValidationError("Select the influence first.", field="influences")
        raw = list(indices) if isinstance(indices, (list, tuple)) else [indices]
        positions: list[int] = []
        for index in raw:
            position = _int(index, "Specialty")
            if not table.option(position):
                raise CharacterValidationError("Unknown specialty.", field="influence_specialties")
            if position not in positions:
                positions.append(position)
        if not positions or len(positions) > table.picks:
            raise CharacterValidationError(
                f"Pick {table.picks} {table.name.lower()} option(s).", field="influence_specialties"
            )

        def _apply(draft: Character) -> None:
            draft.influence_specialties[key] = positions if table.picks > 1 else positions[0]

        return self._commit(_apply)

    # -- Essence and skills -----------------------------------------------

    def set_essence(self, essence: str, score: Any) -> Character:
        member = Essence.from_value(essence)
        if member is None:
            raise CharacterValidationError(f"Unknown essence {essence!r}.", field="essence")
        value = _int(score, member.value)
        if value < BASE_ESSENCE_SCORE:
            raise CharacterValidationError(
                f"{member.value} cannot be lower than {BASE_ESSENCE_SCORE}.", field="essence"
            )

        def _apply(draft: Character) -> None:
            draft.essence[member.value] = value
            if stats.essence_points_spent(draft) > ESSENCE_POINTS_AT_LEVEL_1:
                raise CharacterValidationError("Not enough Essence points.", field="essence")

        return self._commit(_apply)

    def _known_skill(self, skill: str) -> str:
        resolved = self.rules.resolve_skill(skill)
        if resolved is None:
            raise CharacterValidationError(f"Unknown skill {skill!r}.", field="skills")
        return resolved

    def _check_skill_caps(self, draft: Character) -> None:
        for skill, ranks in stats.final_skill_ranks(draft, self.rules).items():
            if ranks > MAX_SKILL_RANKS:
                raise CharacterValidationError(
                    f"{skill} cannot exceed {MAX_SKILL_RANKS} ranks.", field="skills"
                )

    def set_skill_ranks(self, skill: str, ranks: Any) -> Character:
        name = self._known_skill(skill)
        value = _int(ranks, name)
        if not 0 <= value <= MAX_SKILL_RANKS:
            raise CharacterValidationError(
                f"Skill ranks must be between 0 and {MAX_SKILL_RANKS}.", field="skills"
            )

        def _apply(draft: Character) -> None:
            if value:
                draft.skills[name] = value
            else:
                draft.skills.pop(name, None)
            if stats.skill_points_spent(draft) > SKILL_POINTS_AT_LEVEL_1:
                raise CharacterValidationError("Not enough Skill points.", field="skills")
            self._check_skill_caps(draft)

        return self._commit(_apply)

    def set_specialization(self, skill: str, text: str) -> Character:
        name = self._known_skill(skill)
        result = validate_text_input(text, MAX_SPECIALIZATION_LENGTH)
        if not result.valid:
            raise CharacterValidationError(result.error or "", field="skill_specializations")

        def _apply(draft: Character) -> None:
            if result.sanitized:
                draft.skill_specializations[name] = result.sanitized
            else:
                draft.skill_specializations.pop(name, None)

        return self._commit(_apply)

    # -- Perks, grid powers, equipment ------------------------------------

    def _require_prerequisite(self, text: str, draft: Character, label: str) -> None:
        unmet = prerequisites.unmet_requirements(text, draft, self.rules)
        if unmet:
            needs = ", ".join(requirement.describe() for requirement in unmet)
            raise CharacterValidationError(f"{label} requires {needs}.", field="prerequisite")

    def add_perk(self, name: str) -> Character:
        perk = self.rules.perks.get(name)
        if perk is None:
            raise CharacterValidationError(f"Unknown perk {name!r}.", field="selected_perks")
        if name in stats.owned_perks(self._character) and not perk.repeatable:
            raise CharacterValidationError("You already have that perk.", field="selected_perks")

        def _apply(draft: Character) -> None:
            self._require_prerequisite(perk.prerequisite, draft, name)
            draft.selected_perks.append(name)

        return self._commit(_apply)

    def remove_perk(self, name: str) -> Character:
        if name not in self._character.selected_perks:
            raise CharacterValidationError("That perk is not selected.", field="selected_perks")

        def _apply(draft: Character) -> None:
            draft.selected_perks.remove(name)

        return self._commit(_apply)

    def add_grid_power(self, name: str) -> Character:
        power = self.rules.grid_powers.get(name)
        if power is None:
            raise CharacterValidationError(
                f"Unknown grid power {name!r}.", field="selected_grid_powers"
            )
        if name in stats.owned_grid_powers(self._character):
            raise CharacterValidationError(
                "You already have that grid power.", field="selected_grid_powers"
            )

        def _apply(draft: Character) -> None:
            self._require_prerequisite(power.prerequisite, draft, name)
            draft.selected_grid_powers.append(name)

        return self._commit(_apply)

    def remove_grid_power(self, name: str) -> Character:
        if name not in self._character.selected_grid_powers:
            raise CharacterValidationError(
                "That grid power is not selected.", field="selected_grid_powers"
            )

        def _apply(draft: Character) -> None:
            draft.selected_grid_powers.remove(name)

        return self._commit(_apply)

    def set_equipment_choice(self, slot: str, choice: str | None) -> Character:
        slot_name = str(slot or "").strip()
        if not slot_name:
            raise CharacterValidationError("Equipment slot is required.", field="equipment_choices")
        result = validate_text_input(choice or "", MAX_SPECIALIZATION_LENGTH)
        if not result.valid:
            raise CharacterValidationError(result.error or "", field="equipment_choices")

        def _apply(draft: Character) -> None:
            if result.sanitized:
                draft.equipment_choices[slot_name] = result.sanitized
            else:
                draft.equipment_choices.pop(slot_name, None)

        return self._commit(_apply)

    def set_green_weapon(self, choice: str | None) -> Character:
        result = validate_text_input(choice or "", MAX_SPECIALIZATION_LENGTH)
        if not result.valid:
            raise CharacterValidationError(result.error or "", field="green_weapon_choice")

        def _apply(draft: Character) -> None:
            draft.green_weapon_choice = result.sanitized or None

        return self._commit(_apply)

    # -- Level up ---------------------------------------------------------

    def set_level_up(
        self,
        level: Any,
        *,
        general_perk: str | None = None,
        skill_ranks: Sequence[str] = (),
        grid_power: str | None = None,
    ) -> Character:
        value = _int(level, "Level")
        if not MIN_LEVEL < value <= MAX_LEVEL:
            raise CharacterValidationError(
                f"Level-up choices apply to levels {MIN_LEVEL + 1}-{MAX_LEVEL}.", field="level_up_choices"
            )
        if general_perk and value not in GENERAL_PERK_LEVELS:
            raise CharacterValidationError(
                f"General perks are gained at levels {', '.join(map(str, GENERAL_PERK_LEVELS))}.",
                field="level_up_choices",
            )
        if grid_power and value not in GRID_POWER_LEVELS:
            raise CharacterValidationError(
                f"Grid powers are gained at levels {', '.join(map(str, GRID_POWER_LEVELS))}.",
                field="level_up_choices",
            )
        if len(skill_ranks) > SKILL_RANKS_PER_LEVEL:
            raise CharacterValidationError(
                f"Choose at most {SKILL_RANKS_PER_LEVEL} skill rank(s) per level.",
                field="level_up_choices",
            )
        ranks = [self._known_skill(skill) for skill in skill_ranks]
        perk = self.rules.perks.get(general_perk) if general_perk else None
        if general_perk and perk is None:
            raise CharacterValidationError(f"Unknown perk {general_perk!r}.", field="level_up_choices")
        power = self.rules.grid_powers.get(grid_power) if grid_power else None
        if grid_power and power is None:
            raise CharacterValidationError(
                f"Unknown grid power {grid_power!r}.", field="level_up_choices"
            )

        def _apply(draft: Character) -> None:
            draft.level_up_choices.pop(value, None)
            if perk is not None and perk.name in stats.owned_perks(draft) and not perk.repeatable:
                raise CharacterValidationError("You already have that perk.", field="level_up_choices")
            if perk is not None:
                self._require_prerequisite(perk.prerequisite, draft, perk.name)
            if power is not None:
                self._require_prerequisite(power.prerequisite, draft, power.name)
            choice = LevelUpChoice(general_perk=general_perk, skill_ranks=ranks, grid_power=grid_power)
            if not choice.is_empty:
                draft.level_up_choices[value] = choice
            self._check_skill_caps(draft)

        return self._commit(_apply)

    def clear_level_up(self, level: Any) -> Character:
        value = _int(level, "Level")

        def _apply(draft: Character) -> None:
            draft.level_up_choices.pop(value, None)

        return self._commit(_apply)

    # -- Zord -------------------------------------------------------------

    def set_zord(
        self,
        *,
        name: str | None = None,
        team_type: str | None = None,
        description: str | None = None,
    ) -> Character:
        updates: dict[str, Any] = {}
        if name is not None:
            result = validate_text_input(name, 50)
            if not result.valid:
                raise CharacterValidationError(result.error or "", field="zord")
            updates["name"] = result.sanitized
        if description is not None:
            result = validate_text_input(description)
            if not result.valid:
                raise CharacterValidationError(result.error or "", field="zord")
            updates["description"] = result.sanitized
        if team_type is not None and team_type not in self.rules.zord_types:
            raise CharacterValidationError(f"Unknown zord type {team_type!r}.", field="zord")

        def _apply(draft: Character) -> None:
            for attr, value in updates.items():
                setattr(draft.zord, attr, value)
            if team_type is not None and team_type != draft.zord.team_type:
                draft.zord.team_type = team_type
                draft.zord.spectrum_feature = None
                draft.zord.additional_features = []

        return self._commit(_apply)

    def _zord_type(self):
        zord_type = self.rules.zord_types.get(self._character.zord.team_type or "")
        if zord_type is None:
            raise CharacterValidationError("Choose a zord type first.", field="zord")
        return zord_type

    def set_spectrum_feature(self, feature: str) -> Character:
        zord_type = self._zord_type()
        if feature not in zord_type.spectrum_features:
            raise CharacterValidationError(
                f"{zord_type.name} spectrum features: {', '.join(zord_type.spectrum_features)}.",
                field="zord",
            )

        def _apply(draft: Character) -> None:
            draft.zord.spectrum_feature = feature

        return self._commit(_apply)

    def toggle_zord_feature(self, feature: str) -> Character:
        zord_type = self._zord_type()
        if feature not in zord_type.features:
            raise CharacterValidationError(f"Unknown {zord_type.name} feature.", field="zord")

        def _apply(draft: Character) -> None:
            if feature in draft.zord.additional_features:
                draft.zord.additional_features.remove(feature)
            else:
                draft.zord.additional_features.append(feature)

        return self._commit(_apply)

    def set_zord_growth(self, level: Any, stat: str) -> Character:
        value = _int(level, "Level")
        if value not in ZORD_GROWTH_LEVELS:
            raise CharacterValidationError(
                f"Zord growth happens at levels {', '.join(map(str, ZORD_GROWTH_LEVELS))}.",
                field="zord",
            )
        if stat not in ZORD_GROWTH_INCREMENTS:
            raise CharacterValidationError(f"Unknown zord stat {stat!r}.", field="zord")

        def _apply(draft: Character) -> None:
            draft.zord.growth_choices[value] = stat

        return self._commit(_apply)

    # -- Play state -------------------------------------------------------

    def set_morphed(self, morphed: bool) -> Character:
        def _apply(draft: Character) -> None:
            draft.morphed = bool(morphed)

        return self._commit(_apply)

    def set_resource(self, name: str, value: Any) -> Character:
        attr = name if name.startswith("current_") else f"current_{name}"
        if attr not in Resources.__dataclass_fields__:
            raise CharacterValidationError(f"Unknown resource {name!r}.", field="resources")
        amount = None if value is None else _int(value, name)
        if amount is not None and amount < 0:
            raise CharacterValidationError("Resources cannot be negative.", field="resources")

        def _apply(draft: Character) -> None:
            setattr(draft.resources, attr, amount)

        return self._commit(_apply)

    # -- Step validation --------------------------------------------------

    def validate_step(self, step: str) -> StepStatus:
        character = self._character
        errors: list[str] = []
        if step == "Concept":
            if not character.name:
                errors.append(VALIDATION_MESSAGES["name_required"])
        elif step == "Origin":
            origin = self.rules.origins.get(character.origin or "")
            if origin is None:
                errors.append(VALIDATION_MESSAGES["origin_required"])
            elif character.origin_essence_choice not in origin.essence_choices:
                errors.append("Choose an Essence bonus for your Origin.")
        elif step == "Role":
            role = self.rules.roles.get(character.role or "")
            if role is None:
                errors.append(VALIDATION_MESSAGES["role_required"])
            elif role.skill_choices and character.role_skill_choice not in role.skill_choices:
                errors.append("Choose a Role skill.")
        elif step == "Influences":
            if not character.influences:
                errors.append("Choose at least one Influence.")
            for key in character.influences[FREE_INFLUENCES:]:
                if key not in character.influence_hang_up_choices:
                    influence = self.rules.influences.get(key)
                    label = influence.name if influence else key
                    errors.append(f"Choose a hang-up for {label}.")
        elif step == "Essence":
            if stats.essence_points_remaining(character) > 0:
                errors.append(VALIDATION_MESSAGES["essence_points_remaining"])
        elif step == "Skills":
            if stats.skill_points_remaining(character) > 0:
                errors.append(VALIDATION_MESSAGES["skill_points_remaining"])
        elif step == "Perks":
            for name in stats.owned_perks(character):
                perk = self.rules.perks.get(name)
                if perk and not prerequisites.prerequisite_satisfied(
                    perk.prerequisite, character, self.rules
                ):
                    errors.append(f"{name} requires {perk.prerequisite}.")
        elif step == "Sheet":
            for other in STEP_NAMES:
                if other != "Sheet":
                    errors.extend(self.validate_step(other).errors)
        elif step not in STEP_NAMES:
            raise KeyError(step)
        return StepStatus(step, errors)

    def step_statuses(self) -> list[StepStatus]:
        return [self.validate_step(step) for step in STEP_NAMES]

    @property
    def is_complete(self) -> bool:
        return self.validate_step("Sheet").complete


__all__ = ["CharacterBuilder", "CharacterValidationError", "StepStatus"]
