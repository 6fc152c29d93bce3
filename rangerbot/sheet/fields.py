"""Catalogue of character sheet form fields.

Each semantic field maps to every destination name used by known template
revisions.  A template normally carries only one of them; the writer fills
whichever exist.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from ..constants import DEFENSE_BY_ESSENCE, ESSENCE_LIST, MAX_SKILL_RANKS

ATTACK_SLOTS = 3

TEXT_FIELDS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        # Basic info
        "name": ("Character Name", "characterName"),
        "concept": ("Concept", "characterConcept"),
        "level": ("Level", "characterLevel"),
        "origin": ("Origin", "characterOrigin"),
        "role": ("Role", "characterRole"),
        "colour": ("Ranger Color",),
        # Resources
        "max_health": ("Max Health", "maxHealth"),
        "power_capacity": ("Power Capacity", "maxPower"),
        "ground_movement": ("Ground Movement", "groundMovement"),
        # Page two
        "perks": ("Perks", "perksText"),
        "grid_powers": ("Grid Powers", "gridPowersText"),
        "influences": ("Influences", "influencesText"),
        "hang_ups": ("Hang-Ups", "hangUpsText"),
        "bonds": ("Bonds", "bondsText"),
        "origin_features": ("Origin Features",),
        "equipment": ("Equipment", "equipmentText"),
        # Zord
        "zord_name": ("Zord Name", "zordName"),
        "zord_type": ("Zord Type", "zordType"),
        "zord_features": ("Zord Features", "zordFeatures"),
        "zord_description": ("Zord Description",),
        "zord_size": ("Zord Size",),
        "zord_health": ("Zord Health",),
        "zord_strength": ("Zord Strength",),
        "zord_speed": ("Zord Speed",),
        "zord_toughness": ("Zord Toughness",),
        "zord_evasion": ("Zord Evasion",),
        "zord_ground_movement": ("Zord Ground Movement",),
        "zord_armor": ("Zord Armor",),
        # Weapons and armor
        "weapons": ("Weapons", "weaponsText"),
        "armor_training": ("Armor Training", "armorTraining"),
        "max_armor_bonus": ("Max Armor Bonus", "maxArmorBonus"),
    }
)

ZORD_STAT_FIELDS: Mapping[str, str] = MappingProxyType(
    {
        "size": "zord_size",
        "health": "zord_health",
        "strength": "zord_strength",
        "speed": "zord_speed",
        "toughness": "zord_toughness",
        "evasion": "zord_evasion",
        "ground_movement": "zord_ground_movement",
        "armor": "zord_armor",
    }
)

# Check box prefixes; rank N of a skill is the box "<prefix>N".
SKILL_ABBREVIATIONS: Mapping[str, str] = MappingProxyType(
    {
        "Athletics": "ath",
        "Brawn": "bra",
        "Conditioning": "con",
        "Intimidation": "int",
        "Might": "mig",
        "Acrobatics": "acr",
        "Driving": "dri",
        "Finesse": "fin",
        "Infiltration": "inf",
        "Initiative": "ini",
        "Targeting": "tar",
        "Alertness": "ale",
        "Culture": "cul",
        "Science": "sci",
        "Survival": "sur",
        "Technology": "tec",
        "Animal Handling": "ani",
        "Deception": "dec",
        "Performance": "perf",
        "Persuasion": "pers",
        "Streetwise": "str",
    }
)


def _compact(name: str) -> str:
    return "".join(part for part in name.split())


def essence_fields(essence: str) -> tuple[str, ...]:
    return (essence, f"essence{essence}")


def defense_fields(defense: str) -> tuple[str, ...]:
    return (defense, f"defense{defense}")


def skill_abbreviation(skill: str) -> str:
    return SKILL_ABBREVIATIONS.get(skill) or _compact(skill).lower()[:3]


def skill_die_fields(skill: str) -> tuple[str, ...]:
    return (f"{skill} Die", f"skill{_compact(skill)}")


def skill_specialization_fields(skill: str) -> tuple[str, ...]:
    return (f"{skill} Specialization", f"spec{_compact(skill)}")


def skill_checkbox_fields(skill: str) -> tuple[str, ...]:
    prefix = skill_abbreviation(skill)
    return tuple(f"{prefix}{rank}" for rank in range(1, MAX_SKILL_RANKS + 1))


def attack_fields(slot: int, part: str) -> tuple[str, ...]:
    """Destinations for one column (name/skill/die/damage/range) of an attack row."""

    return (f"Attack {slot} {part.title()}", f"attack{slot}{part.title()}")


def destination_names(skills: tuple[str, ...] = tuple(SKILL_ABBREVIATIONS)) -> frozenset[str]:
    """Every destination field name the exporter may write."""

    names: set[str] = set()
    for destinations in TEXT_FIELDS.values():
        names.update(destinations)
    for essence in ESSENCE_LIST:
        names.update(essence_fields(essence))
        names.update(defense_fields(DEFENSE_BY_ESSENCE[essence]))
    for skill in skills:
        names.update(skill_die_fields(skill))
        names.update(skill_specialization_fields(skill))
        names.update(skill_checkbox_fields(skill))
    for slot in range(1, ATTACK_SLOTS + 1):
        for part in ("name", "skill", "die", "damage", "range"):
            names.update(attack_fields(slot, part))
    return frozenset(names)


__all__ = [
    "ATTACK_SLOTS",
    "SKILL_ABBREVIATIONS",
    "TEXT_FIELDS",
    "ZORD_STAT_FIELDS",
    "attack_fields",
    "defense_fields",
    "destination_names",
    "essence_fields",
    "skill_abbreviation",
    "skill_checkbox_fields",
    "skill_die_fields",
    "skill_specialization_fields",
]
