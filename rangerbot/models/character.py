"""The character record edited by the wizard and its snapshot form."""

from __future__ import annotations

import copy
import html
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional

from ..constants import (
    BASE_ESSENCE_SCORE,
    ESSENCE_LIST,
    MAX_LEVEL,
    MIN_LEVEL,
    Essence,
)
from ._validation import (
    FieldSpec,
    MappingSpec,
    ModelValidator,
    RangeSpec,
    SequenceSpec,
    is_int_like,
    validate_dataclass_payload,
)


def _coerce_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _unique_names(values: Any) -> list[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    names: list[str] = []
    for value in values:
        text = str(value).strip()
        if text and text not in names:
            names.append(text)
    return names


def _int_keyed(mapping: Any) -> dict[int, Any]:
    result: dict[int, Any] = {}
    if not isinstance(mapping, Mapping):
        return result
    for key, value in mapping.items():
        level = _optional_int(key)
        if level is not None:
            result[level] = value
    return result


def default_essence() -> dict[str, int]:
    return {essence: BASE_ESSENCE_SCORE for essence in ESSENCE_LIST}


@dataclass(slots=True)
class LevelUpChoice:
    """Choices made at a single level: an optional perk, skill ranks and a grid power."""

    general_perk: Optional[str] = None
    skill_ranks: List[str] = field(default_factory=list)
    grid_power: Optional[str] = None

    def __post_init__(self) -> None:
        self.general_perk = _optional_str(self.general_perk)
        self.grid_power = _optional_str(self.grid_power)
        ranks: list[str] = []
        for entry in self.skill_ranks or ():
            if isinstance(entry, Mapping):
                entry = entry.get("skill")
            text = _optional_str(entry)
            if text:
                ranks.append(text)
        self.skill_ranks = ranks

    @property
    def is_empty(self) -> bool:
        return not (self.general_perk or self.skill_ranks or self.grid_power)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | "LevelUpChoice" | None) -> "LevelUpChoice":
        if isinstance(data, cls):
            return data
        if not isinstance(data, Mapping):
            return cls()
        return cls(
            general_perk=data.get("general_perk"),
            skill_ranks=list(data.get("skill_ranks") or ()),
            grid_power=data.get("grid_power"),
        )


@dataclass(slots=True)
class Zord:
    name: str = ""
    team_type: Optional[str] = None
    spectrum_feature: Optional[str] = None
    additional_features: List[str] = field(default_factory=list)
    description: str = ""
    growth_choices: Dict[int, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.name = str(self.name or "")
        self.description = str(self.description or "")
        self.team_type = _optional_str(self.team_type)
        self.spectrum_feature = _optional_str(self.spectrum_feature)
        self.additional_features = _unique_names(self.additional_features)
        self.growth_choices = {
            level: str(stat).strip()
            for level, stat in _int_keyed(self.growth_choices).items()
            if str(stat or "").strip()
        }

    @property
    def plain_name(self) -> str:
        return html.unescape(self.name)

    @property
    def plain_description(self) -> str:
        return html.unescape(self.description)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | "Zord" | None) -> "Zord":
        if isinstance(data, cls):
            return data
        if not isinstance(data, Mapping):
            return cls()
        known = {item.name for item in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


@dataclass(slots=True)
class Resources:
    """Gameplay pools; ``None`` until play begins."""

    current_health: Optional[int] = None
    current_power: Optional[int] = None
    current_idea_points: Optional[int] = None
    current_quips_speeches: Optional[int] = None
    current_zord_health: Optional[int] = None

    def __post_init__(self) -> None:
        for item in fields(self):
            setattr(self, item.name, _optional_int(getattr(self, item.name)))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | "Resources" | None) -> "Resources":
        if isinstance(data, cls):
            return data
        if not isinstance(data, Mapping):
            return cls()
        known = {item.name for item in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


@dataclass(slots=True)
class Character:
    """A single ranger being built through the wizard.

    Free text (name, concept, specializations, equipment choices, the green
    weapon and the zord name and description) is held HTML-escaped; use the
    ``plain_*`` accessors for sinks that are not markup.
    """

    name: str = ""
    concept: str = ""
    level: int = MIN_LEVEL
    origin: Optional[str] = None
    origin_essence_choice: Optional[str] = None
    role: Optional[str] = None
    role_skill_choice: Optional[str] = None
    influences: List[str] = field(default_factory=list)
    influence_hang_up_choices: Dict[str, int] = field(default_factory=dict)
    influence_bonds: Dict[str, List[int]] = field(default_factory=dict)
    influence_specialties: Dict[str, Any] = field(default_factory=dict)
    essence: Dict[str, int] = field(default_factory=default_essence)
    skills: Dict[str, int] = field(default_factory=dict)
    skill_specializations: Dict[str, str] = field(default_factory=dict)
    selected_perks: List[str] = field(default_factory=list)
    selected_grid_powers: List[str] = field(default_factory=list)
    equipment_choices: Dict[str, str] = field(default_factory=dict)
    green_weapon_choice: Optional[str] = None
    level_up_choices: Dict[int, LevelUpChoice] = field(default_factory=dict)
    zord: Zord = field(default_factory=Zord)
    morphed: bool = False
    resources: Resources = field(default_factory=Resources)

    def __post_init__(self) -> None:
        self.name = str(self.name or "")
        self.concept = str(self.concept or "")
        self.level = min(MAX_LEVEL, max(MIN_LEVEL, _coerce_int(self.level, MIN_LEVEL)))
        self.origin = _optional_str(self.origin)
        self.role = _optional_str(self.role)
        self.role_skill_choice = _optional_str(self.role_skill_choice)
        choice = Essence.from_value(_optional_str(self.origin_essence_choice))
        self.origin_essence_choice = choice.value if choice else None
        self.influences = _unique_names(self.influences)
        self.influence_hang_up_choices = {
            str(key): _coerce_int(value)
            for key, value in (self.influence_hang_up_choices or {}).items()
            if _optional_int(value) is not None
        }
        self.influence_bonds = {
            str(key): [_coerce_int(index) for index in (value or ()) if is_int_like(index)]
            for key, value in (self.influence_bonds or {}).items()
        }
        specialties: dict[str, Any] = {}
        for key, value in (self.influence_specialties or {}).items():
            if isinstance(value, (list, tuple)):
                specialties[str(key)] = [_coerce_int(index) for index in value if is_int_like(index)]
            elif _optional_int(value) is not None:
                specialties[str(key)] = _coerce_int(value)
        self.influence_specialties = specialties
        essence = default_essence()
        for name, score in (self.essence or {}).items():
            member = Essence.from_value(name)
            if member is not None:
                essence[member.value] = _coerce_int(score, BASE_ESSENCE_SCORE)
        self.essence = essence
        self.skills = {
            str(skill): _coerce_int(ranks)
            for skill, ranks in (self.skills or {}).items()
            if _coerce_int(ranks) > 0
        }
        self.skill_specializations = {
            str(skill): str(text)
            for skill, text in (self.skill_specializations or {}).items()
            if str(text or "").strip()
        }
        self.selected_perks = _unique_names(self.selected_perks)
        self.selected_grid_powers = _unique_names(self.selected_grid_powers)
        self.equipment_choices = {
            str(slot): str(choice)
            for slot, choice in (self.equipment_choices or {}).items()
            if choice is not None
        }
        self.green_weapon_choice = _optional_str(self.green_weapon_choice)
        self.level_up_choices = {
            level: LevelUpChoice.from_dict(choice)
            for level, choice in _int_keyed(self.level_up_choices).items()
        }
        self.zord = Zord.from_dict(self.zord)
        self.morphed = bool(self.morphed)
        self.resources = Resources.from_dict(self.resources)

    @property
    def plain_name(self) -> str:
        return html.unescape(self.name)

    @property
    def plain_concept(self) -> str:
        return html.unescape(self.concept)

    def plain_specialization(self, skill: str) -> str:
        return html.unescape(self.skill_specializations.get(skill, ""))

    @property
    def plain_equipment_choices(self) -> dict[str, str]:
        return {slot: html.unescape(choice) for slot, choice in self.equipment_choices.items()}

    @property
    def plain_green_weapon(self) -> str:
        return html.unescape(self.green_weapon_choice or "")

    def copy(self) -> "Character":
        return copy.deepcopy(self)

    def active_level_up_choices(self) -> list[tuple[int, LevelUpChoice]]:
        """Level-up choices for levels the character has reached, lowest first."""

        return [
            (level, choice)
            for level, choice in sorted(self.level_up_choices.items())
            if level <= self.level
        ]

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible snapshot of the character."""

        payload = asdict(self)
        payload["level_up_choices"] = {
            str(level): choice for level, choice in sorted(payload["level_up_choices"].items())
        }
        zord = payload["zord"]
        zord["growth_choices"] = {
            str(level): stat for level, stat in sorted(zord["growth_choices"].items())
        }
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Character":
        validated = validate_dataclass_payload(cls, data)
        known = {item.name for item in fields(cls)}
        return cls(**{key: value for key, value in validated.items() if key in known})


_record = MappingSpec(str, Any)
_optional_text = FieldSpec(str, "optional text", required=False, allow_none=True)
_level_value = RangeSpec(MIN_LEVEL, MAX_LEVEL)


class CharacterValidator(ModelValidator):
    model = Character
    fields = {
        "name": FieldSpec(str, "a character name", required=False, allow_none=True),
        "concept": FieldSpec(str, "a character concept", required=False, allow_none=True),
        "level": FieldSpec(_level_value, f"a level between {MIN_LEVEL} and {MAX_LEVEL}", required=False),
        "origin": _optional_text,
        "origin_essence_choice": _optional_text,
        "role": _optional_text,
        "role_skill_choice": _optional_text,
        "influences": FieldSpec(SequenceSpec(str), "a list of influence keys", required=False),
        "influence_hang_up_choices": FieldSpec(
            MappingSpec(str, is_int_like), "a mapping of influence to hang-up index", required=False
        ),
        "influence_bonds": FieldSpec(
            MappingSpec(str, SequenceSpec(is_int_like)),
            "a mapping of influence to bond indices",
            required=False,
        ),
        "influence_specialties": FieldSpec(
            MappingSpec(str, (is_int_like, SequenceSpec(is_int_like))),
            "a mapping of influence to specialty indices",
            required=False,
        ),
        "essence": FieldSpec(MappingSpec(str, is_int_like), "a mapping of essence scores", required=False),
        "skills": FieldSpec(MappingSpec(str, is_int_like), "a mapping of skill ranks", required=False),
        "skill_specializations": FieldSpec(
            MappingSpec(str, str), "a mapping of skill specializations", required=False
        ),
        "selected_perks": FieldSpec(SequenceSpec(str), "a list of perk names", required=False),
        "selected_grid_powers": FieldSpec(
            SequenceSpec(str), "a list of grid power names", required=False
        ),
        "equipment_choices": FieldSpec(
            MappingSpec(str, (str, is_int_like)), "a mapping of equipment choices", required=False
        ),
        "green_weapon_choice": _optional_text,
        "level_up_choices": FieldSpec(
            MappingSpec(is_int_like, (_record, LevelUpChoice)),
            "a mapping of level to level-up choices",
            required=False,
        ),
        "zord": FieldSpec((_record, Zord), "a zord record", required=False, allow_none=True),
        "morphed": FieldSpec(bool, "a morphed flag", required=False),
        "resources": FieldSpec(
            (_record, Resources), "a resource pool record", required=False, allow_none=True
        ),
    }


Character.validator = CharacterValidator


def default_character() -> Character:
    """Return a fresh character in the wizard's starting shape."""

    return Character()


__all__ = [
    "Character",
    "CharacterValidator",
    "LevelUpChoice",
    "Resources",
    "Zord",
    "default_character",
    "default_essence",
]
