"""Read-only game rule tables: origins, roles, influences, perks and powers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping, Sequence

import tomllib

from ..constants import (
    ARMOR_BONUSES,
    ARMOR_TYPES,
    DEFAULT_GROUND_MOVEMENT,
    ESSENCE_LIST,
    Essence,
    PowerGrowth,
)
from ._validation import (
    FieldSpec,
    MappingSpec,
    ModelValidationError,
    ModelValidator,
    SequenceSpec,
    is_non_empty_str,
    validate_dataclass_payload,
)

log = logging.getLogger(__name__)

# Nested table as parsed from TOML.
_RECORD = MappingSpec(str, Any)


def _text_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        text = value.strip()
        return (text,) if text else ()
    if isinstance(value, Iterable):
        return tuple(str(item).strip() for item in value if str(item).strip())
    return ()


def _int_mapping(value: Any) -> Mapping[str, int]:
    if not isinstance(value, Mapping):
        return MappingProxyType({})
    result: dict[str, int] = {}
    for key, amount in value.items():
        try:
            result[str(key)] = int(amount)
        except (TypeError, ValueError):
            continue
    return MappingProxyType(result)


def _armor_tier(name: str) -> int:
    try:
        return ARMOR_TYPES.index(name)
    except ValueError:
        return -1


def _normalize_armor_types(value: Any) -> tuple[str, ...]:
    names: list[str] = []
    for entry in _text_tuple(value):
        match = next(
            (tier for tier in ARMOR_TYPES if tier.lower() == entry.lower()), None
        )
        if match and match not in names:
            names.append(match)
    names.sort(key=_armor_tier)
    return tuple(names)


@dataclass(slots=True)
class Origin:
    """Where a ranger comes from; sets starting health and the essence bonus choices."""

    key: str
    name: str
    description: str = ""
    starting_health: int = 0
    ground_movement: int = DEFAULT_GROUND_MOVEMENT
    essence_choices: Sequence[str] = field(default_factory=lambda: ESSENCE_LIST)
    features: Sequence[str] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.description is None:
            self.description = ""
        try:
            self.starting_health = max(0, int(self.starting_health))
        except (TypeError, ValueError):
            self.starting_health = 0
        try:
            self.ground_movement = max(0, int(self.ground_movement))
        except (TypeError, ValueError):
            self.ground_movement = DEFAULT_GROUND_MOVEMENT
        choices = []
        for entry in _text_tuple(self.essence_choices):
            essence = Essence.from_value(entry)
            if essence is not None and essence.value not in choices:
                choices.append(essence.value)
        self.essence_choices = tuple(choices) or ESSENCE_LIST
        self.features = _text_tuple(self.features)


class OriginValidator(ModelValidator):
    model = Origin
    fields = {
        "key": FieldSpec(is_non_empty_str, "a non-empty string key"),
        "name": FieldSpec(is_non_empty_str, "a non-empty string name"),
        "description": FieldSpec(str, "a textual description", required=False, allow_none=True),
        "starting_health": FieldSpec(int, "an integer starting health", required=False),
        "ground_movement": FieldSpec(int, "a movement speed in feet", required=False),
        "essence_choices": FieldSpec(
            SequenceSpec(str), "a list of essence names", required=False
        ),
        "features": FieldSpec(SequenceSpec(str), "a list of origin features", required=False),
    }


Origin.validator = OriginValidator


@dataclass(slots=True)
class RolePerk:
    name: str
    text: str = ""


@dataclass(slots=True)
class Weapon:
    """A signature weapon granted by a role; attacks roll ``skill`` and deal ``damage``."""

    name: str
    skill: str = ""
    damage: str = ""
    range: str = ""


@dataclass(slots=True)
class Role:
    """Class-like archetype contributing skills, essence adjustments and perks."""

    key: str
    name: str
    colour: str = ""
    description: str = ""
    power_growth: PowerGrowth = PowerGrowth.SLOW
    essence_adjustments: Mapping[str, int] = field(default_factory=dict)
    starting_skill_ranks: Mapping[str, int] = field(default_factory=dict)
    skill_choices: Sequence[str] = field(default_factory=tuple)
    perks: Sequence[RolePerk] = field(default_factory=tuple)
    equipment: Sequence[str] = field(default_factory=tuple)
    weapons: Sequence[Weapon] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.description is None:
            self.description = ""
        self.colour = str(self.colour or "").strip().lower()
        self.power_growth = PowerGrowth.from_value(self.power_growth)
        adjustments: dict[str, int] = {}
        for name, amount in _int_mapping(self.essence_adjustments).items():
            essence = Essence.from_value(name)
            if essence is not None:
                adjustments[essence.value] = adjustments.get(essence.value, 0) + amount
        self.essence_adjustments = MappingProxyType(adjustments)
        self.starting_skill_ranks = _int_mapping(self.starting_skill_ranks)
        self.skill_choices = _text_tuple(self.skill_choices)
        perks: list[RolePerk] = []
        for entry in self.perks or ():
            if isinstance(entry, RolePerk):
                perks.append(entry)
            elif isinstance(entry, Mapping) and entry.get("name"):
                perks.append(RolePerk(str(entry["name"]), str(entry.get("text", ""))))
            elif isinstance(entry, str) and entry.strip():
                perks.append(RolePerk(entry.strip()))
        self.perks = tuple(perks)
        self.equipment = _text_tuple(self.equipment)
        weapons: list[Weapon] = []
        for entry in self.weapons or ():
            if isinstance(entry, Weapon):
                weapons.append(entry)
            elif isinstance(entry, Mapping) and entry.get("name"):
                weapons.append(
                    Weapon(
                        name=str(entry["name"]),
                        skill=str(entry.get("skill", "")),
                        damage=str(entry.get("damage", "")),
                        range=str(entry.get("range", "")),
                    )
                )
        self.weapons = tuple(weapons)


class RoleValidator(ModelValidator):
    model = Role
    fields = {
        "key": FieldSpec(is_non_empty_str, "a non-empty string key"),
        "name": FieldSpec(is_non_empty_str, "a non-empty string name"),
        "colour": FieldSpec(str, "a ranger colour", required=False),
        "description": FieldSpec(str, "a textual description", required=False, allow_none=True),
        "power_growth": FieldSpec(
            (PowerGrowth, str), "a power capacity growth class", required=False
        ),
        "essence_adjustments": FieldSpec(
            MappingSpec(str, int), "a mapping of essence to adjustment", required=False
        ),
        "starting_skill_ranks": FieldSpec(
            MappingSpec(str, int), "a mapping of skill to starting ranks", required=False
        ),
        "skill_choices": FieldSpec(SequenceSpec(str), "a list of skill names", required=False),
        "perks": FieldSpec(
            SequenceSpec((_RECORD, RolePerk, str)), "a list of role perks", required=False
        ),
        "equipment": FieldSpec(SequenceSpec(str), "a list of equipment", required=False),
        "weapons": FieldSpec(
            SequenceSpec((_RECORD, Weapon)), "a list of weapons", required=False
        ),
    }


Role.validator = RoleValidator


@dataclass(slots=True)
class SpecialtyTable:
    name: str
    options: Sequence[str] = field(default_factory=tuple)
    picks: int = 1

    def __post_init__(self) -> None:
        self.options = _text_tuple(self.options)
        try:
            self.picks = max(1, int(self.picks))
        except (TypeError, ValueError):
            self.picks = 1

    def option(self, index: Any) -> str:
        try:
            position = int(index)
        except (TypeError, ValueError):
            return ""
        if 0 <= position < len(self.options):
            return self.options[position]
        return ""


@dataclass(slots=True)
class Influence:
    """Background option granting a perk, an optional specialty and hang-ups."""

    key: str
    name: str
    perk: str = ""
    description: str = ""
    hang_ups: Sequence[str] = field(default_factory=tuple)
    bonds: Sequence[str] = field(default_factory=tuple)
    specialty_table: SpecialtyTable | None = None

    def __post_init__(self) -> None:
        self.perk = str(self.perk or "")
        if self.description is None:
            self.description = ""
        self.hang_ups = _text_tuple(self.hang_ups)
        self.bonds = _text_tuple(self.bonds)
        table = self.specialty_table
        if isinstance(table, Mapping):
            table = SpecialtyTable(
                name=str(table.get("name", "Specialty")),
                options=table.get("options", ()),
                picks=table.get("picks", 1),
            )
        if isinstance(table, SpecialtyTable) and not table.options:
            table = None
        self.specialty_table = table if isinstance(table, SpecialtyTable) else None

    def hang_up(self, index: Any) -> str:
        try:
            position = int(index)
        except (TypeError, ValueError):
            return ""
        if 0 <= position < len(self.hang_ups):
            return self.hang_ups[position]
        return ""

    def bond(self, index: Any) -> str:
        try:
            position = int(index)
        except (TypeError, ValueError):
            return ""
        if 0 <= position < len(self.bonds):
            return self.bonds[position]
        return ""


class InfluenceValidator(ModelValidator):
    model = Influence
    fields = {
        "key": FieldSpec(is_non_empty_str, "a non-empty string key"),
        "name": FieldSpec(is_non_empty_str, "a non-empty string name"),
        "perk": FieldSpec(str, "the perk text granted by the influence", required=False),
        "description": FieldSpec(str, "a textual description", required=False, allow_none=True),
        "hang_ups": FieldSpec(SequenceSpec(str), "a list of hang-ups", required=False),
        "bonds": FieldSpec(SequenceSpec(str), "a list of bonds", required=False),
        "specialty_table": FieldSpec(
            (_RECORD, SpecialtyTable), "a specialty table", required=False, allow_none=True
        ),
    }


Influence.validator = InfluenceValidator


@dataclass(slots=True)
class Perk:
    name: str
    description: str = ""
    prerequisite: str = ""
    repeatable: bool = False

    def __post_init__(self) -> None:
        self.description = str(self.description or "")
        self.prerequisite = str(self.prerequisite or "").strip()
        self.repeatable = bool(self.repeatable)


class PerkValidator(ModelValidator):
    model = Perk
    fields = {
        "name": FieldSpec(is_non_empty_str, "a non-empty perk name"),
        "description": FieldSpec(str, "a textual description", required=False, allow_none=True),
        "prerequisite": FieldSpec(str, "a prerequisite line", required=False, allow_none=True),
        "repeatable": FieldSpec(bool, "a repeatable flag", required=False),
    }


Perk.validator = PerkValidator


@dataclass(slots=True)
class GridPower:
    name: str
    description: str = ""
    prerequisite: str = ""
    cost: int = 1

    def __post_init__(self) -> None:
        self.description = str(self.description or "")
        self.prerequisite = str(self.prerequisite or "").strip()
        try:
            self.cost = max(0, int(self.cost))
        except (TypeError, ValueError):
            self.cost = 1


class GridPowerValidator(ModelValidator):
    model = GridPower
    fields = {
        "name": FieldSpec(is_non_empty_str, "a non-empty power name"),
        "description": FieldSpec(str, "a textual description", required=False, allow_none=True),
        "prerequisite": FieldSpec(str, "a prerequisite line", required=False, allow_none=True),
        "cost": FieldSpec(int, "an integer power cost", required=False),
    }


GridPower.validator = GridPowerValidator


@dataclass(slots=True)
class ArmorTable:
    """Armor tiers a role is trained in at character creation."""

    role: str
    types: Sequence[str] = field(default_factory=tuple)
    max_bonus: int | None = None

    def __post_init__(self) -> None:
        self.types = _normalize_armor_types(self.types)
        if self.max_bonus is None:
            self.max_bonus = max((ARMOR_BONUSES[name] for name in self.types), default=0)
        else:
            try:
                self.max_bonus = max(0, int(self.max_bonus))
            except (TypeError, ValueError):
                self.max_bonus = 0


@dataclass(slots=True)
class ZordType:
    key: str
    name: str
    description: str = ""
    spectrum_features: Sequence[str] = field(default_factory=tuple)
    features: Sequence[str] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.description is None:
            self.description = ""
        self.spectrum_features = _text_tuple(self.spectrum_features)
        self.features = _text_tuple(self.features)


class ZordTypeValidator(ModelValidator):
    model = ZordType
    fields = {
        "key": FieldSpec(is_non_empty_str, "a non-empty string key"),
        "name": FieldSpec(is_non_empty_str, "a non-empty string name"),
        "description": FieldSpec(str, "a textual description", required=False, allow_none=True),
        "spectrum_features": FieldSpec(
            SequenceSpec(str), "a list of spectrum features", required=False
        ),
        "features": FieldSpec(SequenceSpec(str), "a list of additional features", required=False),
    }


ZordType.validator = ZordTypeValidator


@dataclass(frozen=True, slots=True)
class RuleTables:
    """Immutable rule tables indexed by string key."""

    origins: Mapping[str, Origin] = field(default_factory=lambda: MappingProxyType({}))
    roles: Mapping[str, Role] = field(default_factory=lambda: MappingProxyType({}))
    influences: Mapping[str, Influence] = field(default_factory=lambda: MappingProxyType({}))
    perks: Mapping[str, Perk] = field(default_factory=lambda: MappingProxyType({}))
    grid_powers: Mapping[str, GridPower] = field(default_factory=lambda: MappingProxyType({}))
    armor: Mapping[str, ArmorTable] = field(default_factory=lambda: MappingProxyType({}))
    zord_types: Mapping[str, ZordType] = field(default_factory=lambda: MappingProxyType({}))
    skills_by_essence: Mapping[str, Sequence[str]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def iter_skills(self) -> Iterator[str]:
        for essence in ESSENCE_LIST:
            yield from self.skills_by_essence.get(essence, ())

    @property
    def all_skills(self) -> tuple[str, ...]:
        return tuple(self.iter_skills())

    def skill_essence(self, skill: str) -> str | None:
        for essence, skills in self.skills_by_essence.items():
            if skill in skills:
                return essence
        return None

    def resolve_skill(self, name: str | None) -> str | None:
        """Return the canonical skill name matching ``name`` case-insensitively."""

        if not name:
            return None
        normalized = str(name).strip().lower()
        for skill in self.iter_skills():
            if skill.lower() == normalized:
                return skill
        return None

    def armor_for_role(self, role_key: str | None) -> ArmorTable:
        if role_key and role_key in self.armor:
            return self.armor[role_key]
        return ArmorTable(role=role_key or "")


def _load_keyed(
    cls: type[Any], table: Any, *, key_field: str = "key"
) -> Mapping[str, Any]:
    result: dict[str, Any] = {}
    if not isinstance(table, Mapping):
        return MappingProxyType(result)
    for key, payload in table.items():
        if not isinstance(payload, Mapping):
            raise ModelValidationError(cls, [f"Entry {key!r} must be a table"])
        data = dict(payload)
        data.setdefault(key_field, str(key))
        if key_field == "name" and "key" in data:
            data.pop("key")
        validated = validate_dataclass_payload(cls, data)
        result[str(key)] = cls(**validated)
    return MappingProxyType(result)


def _load_skills(table: Any) -> Mapping[str, Sequence[str]]:
    result: dict[str, tuple[str, ...]] = {}
    if not isinstance(table, Mapping):
        return MappingProxyType(result)
    for name, skills in table.items():
        essence = Essence.from_value(name)
        if essence is None:
            log.warning("Ignoring skill group for unknown essence %r", name)
            continue
        result[essence.value] = _text_tuple(skills)
    return MappingProxyType(result)


def _load_armor(table: Any) -> Mapping[str, ArmorTable]:
    result: dict[str, ArmorTable] = {}
    if not isinstance(table, Mapping):
        return MappingProxyType(result)
    for role, payload in table.items():
        if isinstance(payload, Mapping):
            result[str(role)] = ArmorTable(
                role=str(role),
                types=payload.get("types", ()),
                max_bonus=payload.get("max_bonus"),
            )
        else:
            result[str(role)] = ArmorTable(role=str(role), types=payload)
    return MappingProxyType(result)


def rules_from_mapping(payload: Mapping[str, Any]) -> RuleTables:
    """Build :class:`RuleTables` from a parsed TOML document."""

    return RuleTables(
        origins=_load_keyed(Origin, payload.get("origins")),
        roles=_load_keyed(Role, payload.get("roles")),
        influences=_load_keyed(Influence, payload.get("influences")),
        perks=_load_keyed(Perk, payload.get("perks"), key_field="name"),
        grid_powers=_load_keyed(GridPower, payload.get("grid_powers"), key_field="name"),
        armor=_load_armor(payload.get("armor")),
        zord_types=_load_keyed(ZordType, payload.get("zord_types")),
        skills_by_essence=_load_skills(payload.get("skills")),
    )


def load_rules(path: Path | str) -> RuleTables:
    """Load rule tables from a TOML file."""

    path = Path(path)
    try:
        with path.open("rb") as handle:
            payload = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise RuntimeError(f"Missing rule tables at {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise RuntimeError(f"Rule tables at {path} are not valid TOML: {exc}") from exc
    rules = rules_from_mapping(payload)
    log.info(
        "Loaded rule tables from %s (%d origins, %d roles, %d influences, %d perks)",
        path,
        len(rules.origins),
        len(rules.roles),
        len(rules.influences),
        len(rules.perks),
    )
    return rules


__all__ = [
    "ArmorTable",
    "GridPower",
    "Influence",
    "Origin",
    "Perk",
    "Role",
    "RolePerk",
    "RuleTables",
    "SpecialtyTable",
    "Weapon",
    "ZordType",
    "load_rules",
    "rules_from_mapping",
]
