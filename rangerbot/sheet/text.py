"""Plain-text character sheet."""

from __future__ import annotations

from ..constants import DEFENSE_BY_ESSENCE, ESSENCE_LIST
from ..models.character import Character
from ..models.rules import RuleTables
from ..stats import SheetStats, compute_sheet
from ..utils import wrap_text
from . import content

HEAVY_RULE = "═" * 50
LIGHT_RULE = "─" * 30


def _section(lines: list[str], title: str, body: list[str]) -> None:
    if not body:
        return
    lines.extend([LIGHT_RULE, title, LIGHT_RULE, *body, ""])


def build_character_text(
    character: Character, rules: RuleTables, sheet: SheetStats | None = None
) -> str:
    """Render the character as human-readable text."""

    sheet = sheet or compute_sheet(character, rules)
    origin = rules.origins.get(character.origin or "")
    role = rules.roles.get(character.role or "")

    lines = [HEAVY_RULE, "POWER RANGERS RPG CHARACTER SHEET", HEAVY_RULE, ""]
    lines.append(f"Name: {character.plain_name or 'Unnamed Ranger'}")
    lines.append(f"Level: {character.level}")
    lines.append(f"Origin: {origin.name if origin else 'None'}")
    lines.append(f"Role: {role.name if role else 'None'}")
    concept = wrap_text(character.plain_concept)
    lines.append(f"Concept: {concept[0] if concept else 'None'}")
    lines.extend(f"  {line}" for line in concept[1:])
    lines.append("")

    _section(
        lines,
        "ESSENCE SCORES",
        [
            f"{essence}: {sheet.essence.get(essence, 0)} "
            f"({DEFENSE_BY_ESSENCE[essence]}: {sheet.defenses[DEFENSE_BY_ESSENCE[essence]]})"
            for essence in ESSENCE_LIST
        ],
    )
    _section(
        lines,
        "RESOURCES",
        [
            f"Max Health: {sheet.max_health}",
            f"Power Capacity: {sheet.power_capacity}",
            f"Ground Movement: {sheet.ground_movement}ft",
            f"Armor Training: {content.armor_summary(sheet)} (max bonus +{sheet.armor.max_bonus})",
        ],
    )

    skill_lines: list[str] = []
    for skill in rules.iter_skills():
        ranks = sheet.skill_ranks.get(skill, 0)
        if ranks <= 0:
            continue
        line = f"{skill}: {sheet.skill_dice[skill]} ({ranks} rank{'s' if ranks != 1 else ''})"
        specialization = character.plain_specialization(skill)
        if specialization:
            line += f" [{specialization}]"
        skill_lines.append(line)
    for skill, ranks in sorted(sheet.skill_ranks.items()):
        if rules.skill_essence(skill) is None:
            skill_lines.append(f"{skill}: {sheet.skill_dice[skill]} ({ranks} ranks)")
    _section(lines, "SKILLS", skill_lines)

    _section(
        lines,
        "ATTACKS",
        [attack.describe() for attack in content.attacks(character, rules, sheet)],
    )
    perks = content.compose_groups(content.perk_groups(character, rules))
    _section(lines, "PERKS", perks.split("\n") if perks else [])
    _section(lines, "INFLUENCES", content.influence_lines(character, rules))
    _section(lines, "HANG-UPS", content.hang_up_lines(character, rules))
    _section(lines, "BONDS", content.bond_lines(character, rules))
    _section(lines, "GRID POWERS", content.grid_power_lines(sheet, rules))
    _section(lines, "EQUIPMENT", content.equipment_lines(character, rules))

    zord = character.zord
    zord_type = rules.zord_types.get(zord.team_type or "")
    zord_lines: list[str] = []
    if zord.name or zord_type:
        zord_lines.append(f"Name: {zord.plain_name or 'Unnamed Zord'}")
        zord_lines.append(f"Type: {zord_type.name if zord_type else 'None'}")
        stats = sheet.zord
        zord_lines.append(
            f"Size {stats['size']}, Health {stats['health']}, Strength {stats['strength']}, "
            f"Speed {stats['speed']}"
        )
        zord_lines.append(
            f"Toughness {stats['toughness']}, Evasion {stats['evasion']}, "
            f"Movement {stats['ground_movement']}ft, Armor {stats['armor']}"
        )
        features = content.zord_feature_lines(character)
        if features:
            zord_lines.append(f"Features: {', '.join(features)}")
    _section(lines, "ZORD", zord_lines)

    lines.append(HEAVY_RULE)
    return "\n".join(lines)


__all__ = ["build_character_text"]
