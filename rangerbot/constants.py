"""Shared constants used across the character builder, exporters and cogs."""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping

import discord

APP_VERSION = "2.13"

# Collection that stores one serialized character snapshot per owner key.
STORAGE_COLLECTION = "characters"

# Seconds of quiet before a burst of edits is written to disk.
AUTO_SAVE_DELAY = 0.5

MIN_LEVEL = 1
MAX_LEVEL = 20

# ---------------------------------------------------------------------------
# Game mechanics
# ---------------------------------------------------------------------------

ESSENCE_POINTS_AT_LEVEL_1 = 16
BASE_ESSENCE_SCORE = 1
SKILL_POINTS_AT_LEVEL_1 = 12
SKILL_RANKS_PER_LEVEL = 1
BASE_DEFENSE = 10
BASE_POWER_CAPACITY = 2
DEFAULT_GROUND_MOVEMENT = 30

MAX_INFLUENCES = 3
FREE_INFLUENCES = 1

MAX_SKILL_RANKS = 6

MAX_NAME_LENGTH = 50
MAX_CONCEPT_LENGTH = 500
MAX_SPECIALIZATION_LENGTH = 50

DICE_PROGRESSION: tuple[str, ...] = ("-", "d2", "d4", "d6", "d8", "d10", "d12")


class Essence(str, Enum):
    """The four core ability scores."""

    STRENGTH = "Strength"
    SPEED = "Speed"
    SMARTS = "Smarts"
    SOCIAL = "Social"

    @classmethod
    def from_value(cls, value: "Essence | str | None") -> "Essence | None":
        if isinstance(value, cls):
            return value
        if value is None:
            return None
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        return None


ESSENCE_LIST: tuple[str, ...] = tuple(member.value for member in Essence)

DEFENSE_BY_ESSENCE: Mapping[str, str] = MappingProxyType(
    {
        Essence.STRENGTH.value: "Toughness",
        Essence.SPEED.value: "Evasion",
        Essence.SMARTS.value: "Willpower",
        Essence.SOCIAL.value: "Cleverness",
    }
)

# ---------------------------------------------------------------------------
# Armor training
# ---------------------------------------------------------------------------

ARMOR_TYPES: tuple[str, ...] = ("Light", "Medium", "Heavy", "Ultra-Heavy")

ARMOR_BONUSES: Mapping[str, int] = MappingProxyType(
    {
        "Light": 1,
        "Medium": 2,
        "Heavy": 4,
        "Ultra-Heavy": 6,
    }
)

# Perks that raise a character's armor training to the named tier.
ARMOR_SHELL_PERKS: Mapping[str, str] = MappingProxyType(
    {
        "Medium Armor Shell": "Medium",
        "Heavy Armor Shell": "Heavy",
        "Ultra-Heavy Armor Shell": "Ultra-Heavy",
    }
)

# ---------------------------------------------------------------------------
# Level progression
# ---------------------------------------------------------------------------

GENERAL_PERK_LEVELS: tuple[int, ...] = (4, 8, 12, 16, 19)
ZORD_GROWTH_LEVELS: tuple[int, ...] = (5, 10, 15, 20)
GRID_POWER_LEVELS: tuple[int, ...] = (6, 11, 16)


class PowerGrowth(str, Enum):
    """Power capacity growth classes granted by roles."""

    SLOW = "slow"
    MODERATE = "moderate"
    FAST = "fast"

    @property
    def divisor(self) -> int:
        return {PowerGrowth.SLOW: 5, PowerGrowth.MODERATE: 3, PowerGrowth.FAST: 4}[self]

    @property
    def multiplier(self) -> int:
        return {PowerGrowth.SLOW: 2, PowerGrowth.MODERATE: 1, PowerGrowth.FAST: 2}[self]

    @classmethod
    def from_value(cls, value: "PowerGrowth | str | None") -> "PowerGrowth":
        """Resolve a growth class, accepting descriptive text such as ``"Fast (+2/4)"``."""

        if isinstance(value, cls):
            return value
        if not value:
            return cls.SLOW
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            pass
        if "fast" in normalized:
            return cls.FAST
        if "moderate" in normalized:
            return cls.MODERATE
        return cls.SLOW


# ---------------------------------------------------------------------------
# Zord baseline
# ---------------------------------------------------------------------------

BASELINE_ZORD_STATS: Mapping[str, int | str] = MappingProxyType(
    {
        "size": "Huge",
        "health": 6,
        "strength": 6,
        "speed": 4,
        "toughness": 17,
        "evasion": 14,
        "ground_movement": 40,
        "armor": 1,
    }
)

# Amount added to a zord stat each time it is picked at a growth milestone.
ZORD_GROWTH_INCREMENTS: Mapping[str, int] = MappingProxyType(
    {
        "health": 2,
        "strength": 1,
        "speed": 1,
        "toughness": 1,
        "evasion": 1,
        "ground_movement": 10,
        "armor": 1,
    }
)

# ---------------------------------------------------------------------------
# Wizard
# ---------------------------------------------------------------------------

STEP_NAMES: tuple[str, ...] = (
    "Concept",
    "Origin",
    "Role",
    "Influences",
    "Essence",
    "Skills",
    "Perks",
    "Zord",
    "Level Up",
    "Sheet",
)

VALIDATION_MESSAGES: Mapping[str, str] = MappingProxyType(
    {
        "name_required": "Please enter a character name.",
        "name_too_long": f"Character name must be {MAX_NAME_LENGTH} characters or less.",
        "origin_required": "Please select an Origin.",
        "role_required": "Please select a Role.",
        "essence_points_remaining": "You have unspent Essence points.",
        "skill_points_remaining": "You have unspent Skill points.",
        "storage_error": "Error saving character data.",
        "storage_full": "Storage full. Unable to save character.",
        "load_error": "Error loading saved data. Starting fresh.",
    }
)

SANITIZE_MAP: Mapping[str, str] = MappingProxyType(
    {
        "<": "&lt;",
        ">": "&gt;",
        "&": "&amp;",
        '"': "&quot;",
        "'": "&#39;",
    }
)

ROLE_COLOURS: Mapping[str, discord.Colour] = MappingProxyType(
    {
        "red": discord.Colour(0xE31837),
        "blue": discord.Colour(0x0057B8),
        "yellow": discord.Colour(0xFFD700),
        "pink": discord.Colour(0xFF69B4),
        "green": discord.Colour(0x00A651),
        "black": discord.Colour(0x2D2D2D),
        "white": discord.Colour(0xF0F0F0),
    }
)

DEFAULT_EMBED_COLOUR = discord.Colour(0x00F0FF)
