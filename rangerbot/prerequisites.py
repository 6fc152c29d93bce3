"""Prerequisite parsing for perks and grid powers.

A prerequisite line such as ``"Level 4+, Strength 3+, Might d6+"`` is split
into independent requirements, one parser per requirement class.  A line is
satisfied when every requirement found in it is met; text that matches no
parser imposes nothing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, Mapping

from .constants import ARMOR_TYPES, ESSENCE_LIST
from .models.character import Character
from .models.rules import RuleTables
from . import stats

# Ranks needed for each die; independent of DICE_PROGRESSION positions.
DIE_RANKS: Mapping[str, int] = MappingProxyType(
    {"d2": 1, "d4": 2, "d6": 3, "d8": 4, "d10": 5, "d12": 6}
)

_LEVEL_PATTERN = re.compile(r"\blevel\s*(\d+)\s*\+?", re.IGNORECASE)
_ESSENCE_PATTERNS = {
    essence: re.compile(rf"\b{essence}\s+(\d+)\s*\+?", re.IGNORECASE)
    for essence in ESSENCE_LIST
}
_ARMOR_PATTERNS = {
    tier: re.compile(rf"(?<![\w-]){re.escape(tier)}\s+armor\s+training", re.IGNORECASE)
    for tier in ARMOR_TYPES
}


@dataclass(frozen=True, slots=True)
class Requirement:
    kind: str
    target: str
    threshold: int = 0

    def describe(self) -> str:
        if self.kind == "level":
            return f"Level {self.threshold}+"
        if self.kind == "essence":
            return f"{self.target} {self.threshold}+"
        if self.kind == "skill":
            die = next((name for name, rank in DIE_RANKS.items() if rank == self.threshold), "")
            return f"{self.target} {die}+"
        return f"{self.target} Armor Training"

    def satisfied(self, character: Character, rules: RuleTables) -> bool:
        if self.kind == "level":
            return character.level >= self.threshold
        if self.kind == "essence":
            return stats.final_essence(character, rules).get(self.target, 0) >= self.threshold
        if self.kind == "skill":
            ranks = stats.final_skill_ranks(character, rules).get(self.target, 0)
            return ranks >= self.threshold
        if self.kind == "armor":
            return self.target in stats.armor_training(character, rules).allowed_types
        return True


Parser = Callable[[str, RuleTables], Iterable[Requirement]]


def _level_requirements(text: str, rules: RuleTables) -> Iterable[Requirement]:
    for match in _LEVEL_PATTERN.finditer(text):
        yield Requirement("level", "Level", int(match.group(1)))


def _essence_requirements(text: str, rules: RuleTables) -> Iterable[Requirement]:
    for essence, pattern in _ESSENCE_PATTERNS.items():
        for match in pattern.finditer(text):
            yield Requirement("essence", essence, int(match.group(1)))


def _skill_requirements(text: str, rules: RuleTables) -> Iterable[Requirement]:
    # Longest names first so "Animal Handling" wins over a shorter overlap.
    for skill in sorted(rules.all_skills, key=len, reverse=True):
        pattern = re.compile(rf"\b{re.escape(skill)}\s+(d\d+)\s*\+?", re.IGNORECASE)
        for match in pattern.finditer(text):
            rank = DIE_RANKS.get(match.group(1).lower())
            if rank is not None:
                yield Requirement("skill", skill, rank)


def _armor_requirements(text: str, rules: RuleTables) -> Iterable[Requirement]:
    for tier, pattern in _ARMOR_PATTERNS.items():
        if pattern.search(text):
            yield Requirement("armor", tier)


PARSERS: tuple[Parser, ...] = (
    _level_requirements,
    _essence_requirements,
    _skill_requirements,
    _armor_requirements,
)


def parse_prerequisite(text: str | None, rules: RuleTables) -> list[Requirement]:
    if not text:
        return []
    requirements: list[Requirement] = []
    for parser in PARSERS:
        for requirement in parser(text, rules):
            if requirement not in requirements:
                requirements.append(requirement)
    return requirements


def unmet_requirements(
    text: str | None, character: Character, rules: RuleTables
) -> list[Requirement]:
    return [
        requirement
        for requirement in parse_prerequisite(text, rules)
        if not requirement.satisfied(character, rules)
    ]


def prerequisite_satisfied(text: str | None, character: Character, rules: RuleTables) -> bool:
    return not unmet_requirements(text, character, rules)


__all__ = [
    "DIE_RANKS",
    "PARSERS",
    "Requirement",
    "parse_prerequisite",
    "prerequisite_satisfied",
    "unmet_requirements",
]
