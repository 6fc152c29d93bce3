"""Text helpers and the administrative CLI for stored characters."""

from __future__ import annotations

import argparse
import asyncio
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Sequence, SupportsInt

from .constants import (
    MAX_CONCEPT_LENGTH,
    MAX_INFLUENCES,
    MAX_NAME_LENGTH,
    MAX_SKILL_RANKS,
    SANITIZE_MAP,
    STORAGE_COLLECTION,
    VALIDATION_MESSAGES,
)
from .storage import DataStore, resolve_storage_root

PROJECT_BASE = Path(__file__).resolve().parent.parent

_SANITIZE_PATTERN = re.compile("[" + re.escape("".join(SANITIZE_MAP)) + "]")
_FILENAME_PATTERN = re.compile(r"[^A-Za-z0-9_-]")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def format_number(value: SupportsInt) -> str:
    """Return ``value`` with ``'`` as the thousands separator."""

    integer = int(value)
    sign = "-" if integer < 0 else ""
    formatted = f"{abs(integer):,}".replace(",", "'")
    return f"{sign}{formatted}"


def sanitize_html(value: Any) -> str:
    """Escape ``< > & " '`` for display inside markup."""

    text = value if isinstance(value, str) else str(value)
    return _SANITIZE_PATTERN.sub(lambda match: SANITIZE_MAP[match.group(0)], text)


@dataclass(slots=True)
class TextValidation:
    valid: bool
    sanitized: str = ""
    error: str | None = None


def validate_character_name(name: Any) -> TextValidation:
    if not isinstance(name, str) or not name.strip():
        return TextValidation(False, error=VALIDATION_MESSAGES["name_required"])
    trimmed = name.strip()
    if len(trimmed) > MAX_NAME_LENGTH:
        return TextValidation(False, error=VALIDATION_MESSAGES["name_too_long"])
    return TextValidation(True, sanitize_html(trimmed))


def validate_text_input(text: Any, max_length: int = MAX_CONCEPT_LENGTH) -> TextValidation:
    """Validate optional free text; empty input is valid and sanitizes to ``""``."""

    if not isinstance(text, str) or not text:
        return TextValidation(True, "")
    trimmed = text.strip()
    if len(trimmed) > max_length:
        return TextValidation(False, error=f"Text must be {max_length} characters or less.")
    return TextValidation(True, sanitize_html(trimmed))


def sanitize_filename(name: str | None, default: str = "Character") -> str:
    """Replace everything but ASCII letters, digits, ``_`` and ``-`` with ``_``."""

    cleaned = _FILENAME_PATTERN.sub("_", name or "")
    return cleaned or default


def sheet_filename(name: str | None) -> str:
    return f"{sanitize_filename(name)}_PowerRangers.pdf"


def wrap_text(text: str | None, width: int = 55) -> list[str]:
    if not text:
        return []
    lines: list[str] = []
    current = ""
    for word in text.split(" "):
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= width:
            current = candidate
            continue
        if current:
            lines.append(current)
        current = word
    if current:
        lines.append(current)
    return lines


def to_title_case(value: str | None) -> str:
    """Convert ``camelCase`` or ``snake_case`` identifiers to ``Title Case``."""

    if not value:
        return ""
    spaced = _CAMEL_BOUNDARY.sub(" ", value).replace("_", " ")
    return " ".join(word.capitalize() for word in spaced.split())


# ---------------------------------------------------------------------------
# Administrative CLI
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ValidationIssue:
    """Represents a validation result for a single stored character."""

    level: str
    path: str
    message: str

    def display(self) -> str:
        return f"[{self.level.upper()}] {self.path}: {self.message}"


def _open_store(args: argparse.Namespace) -> DataStore:
    root = Path(args.storage_root).resolve() if args.storage_root else None
    return DataStore(storage_root=root or resolve_storage_root(PROJECT_BASE))


def _load_rules(args: argparse.Namespace):
    from .config import DEFAULT_RULES_PATH
    from .models.rules import load_rules

    return load_rules(args.rules or DEFAULT_RULES_PATH)


def _discover_guilds(store: DataStore) -> list[str]:
    config = store.collections[STORAGE_COLLECTION]
    prefix, _, _ = config.path.partition("{guild_id}")
    base = store.storage_root / prefix
    if not base.is_dir():
        return []
    guilds = [path.name for path in base.iterdir() if path.is_dir()]
    return sorted(guilds, key=lambda value: int(value) if value.isdigit() else value)


def _filter_guilds(guilds: Iterable[str], selected: Iterable[str] | None) -> list[str]:
    wanted = {str(guild) for guild in selected or ()}
    return [guild for guild in guilds if not wanted or guild in wanted]


def _load_character(store: DataStore, guild: str, user: str):
    from .models.character import Character

    payload = asyncio.run(store.load(guild, STORAGE_COLLECTION, user))
    if payload is None:
        return None
    return Character.from_dict(payload)


def _command_list(args: argparse.Namespace) -> int:
    store = _open_store(args)
    guilds = _filter_guilds(_discover_guilds(store), args.guild)
    if not guilds:
        print("No saved characters found.")
        return 0

    print(f"Storage root: {store.storage_root}\n")
    config = store.collections[STORAGE_COLLECTION]
    for guild in guilds:
        keys = asyncio.run(store.keys(guild, STORAGE_COLLECTION))
        print(f"Guild {guild}: {len(keys)} character(s)")
        for key in keys:
            path = config.resolve_path(store.storage_root, guild_id=guild, key=key)
            size = path.stat().st_size if path.exists() else 0
            print(f"  - {key} ({format_number(size)} bytes)")
    return 0


def _character_issues(payload: Any, rules, path: str) -> list[ValidationIssue]:
    from .models._validation import ModelValidationError
    from .models.character import Character
    from . import prerequisites, stats

    try:
        character = Character.from_dict(payload)
    except ModelValidationError as exc:
        return [ValidationIssue("error", path, message) for message in exc.errors]

    issues: list[ValidationIssue] = []
    for label, key, table in (
        ("origin", character.origin, rules.origins),
        ("role", character.role, rules.roles),
        ("zord type", character.zord.team_type, rules.zord_types),
    ):
        if key and key not in table:
            issues.append(ValidationIssue("warning", path, f"unknown {label} {key!r}"))
    for key in character.influences:
        if key not in rules.influences:
            issues.append(ValidationIssue("warning", path, f"unknown influence {key!r}"))
    if len(character.influences) > MAX_INFLUENCES:
        issues.append(
            ValidationIssue("error", path, f"more than {MAX_INFLUENCES} influences selected")
        )
    for skill, ranks in stats.final_skill_ranks(character, rules).items():
        if rules.skill_essence(skill) is None:
            issues.append(ValidationIssue("warning", path, f"unknown skill {skill!r}"))
        if ranks > MAX_SKILL_RANKS:
            issues.append(
                ValidationIssue("error", path, f"{skill} has {ranks} ranks (max {MAX_SKILL_RANKS})")
            )
    for perk in stats.owned_perks(character):
        entry = rules.perks.get(perk)
        if entry is None:
            issues.append(ValidationIssue("warning", path, f"unknown perk {perk!r}"))
        elif not prerequisites.prerequisite_satisfied(entry.prerequisite, character, rules):
            issues.append(
                ValidationIssue("warning", path, f"perk {perk!r} requires {entry.prerequisite}")
            )
    if len(character.plain_name) > MAX_NAME_LENGTH:
        issues.append(ValidationIssue("error", path, VALIDATION_MESSAGES["name_too_long"]))
    return issues


def _command_validate(args: argparse.Namespace) -> int:
    store = _open_store(args)
    rules = _load_rules(args)
    issues: list[ValidationIssue] = []
    checked = 0
    for guild in _filter_guilds(_discover_guilds(store), args.guild):
        for key in asyncio.run(store.keys(guild, STORAGE_COLLECTION)):
            label = f"{guild}/{key}"
            payload = asyncio.run(store.load(guild, STORAGE_COLLECTION, key))
            checked += 1
            if payload is None:
                issues.append(ValidationIssue("error", label, "unreadable snapshot"))
                continue
            issues.extend(_character_issues(payload, rules, label))

    for issue in issues:
        print(issue.display())
    errors = sum(1 for issue in issues if issue.level == "error")
    print(f"Checked {checked} character(s): {errors} error(s), {len(issues) - errors} warning(s).")
    return 1 if errors else 0


def _command_export_sheet(args: argparse.Namespace) -> int:
    from .config import BotConfig
    from .sheet import SheetExporter, SheetTemplate

    store = _open_store(args)
    character = _load_character(store, str(args.guild), str(args.user))
    if character is None:
        print(f"No character saved for user {args.user} in guild {args.guild}.", file=sys.stderr)
        return 1
    rules = _load_rules(args)
    config = BotConfig.from_env(require_token=False)
    template = SheetTemplate(args.template or config.sheet_template, timeout=config.template_timeout)
    exporter = SheetExporter(template)
    result = asyncio.run(exporter.export(str(args.user), character, rules))
    if not result.ok or result.data is None:
        print(result.message, file=sys.stderr)
        return 1

    output = Path(args.output) if args.output else Path(result.filename or "Character.pdf")
    if output.is_dir():
        output = output / (result.filename or "Character.pdf")
    if output.exists() and not args.force:
        print(f"{output} already exists; pass --force to overwrite.", file=sys.stderr)
        return 2
    output.write_bytes(result.data)
    print(f"Wrote {output} ({len(set(result.written))} field(s) filled)")
    return 0


def _command_export_text(args: argparse.Namespace) -> int:
    from .sheet import build_character_text

    store = _open_store(args)
    character = _load_character(store, str(args.guild), str(args.user))
    if character is None:
        print(f"No character saved for user {args.user} in guild {args.guild}.", file=sys.stderr)
        return 1
    print(build_character_text(character, _load_rules(args)))
    return 0


def _command_delete_character(args: argparse.Namespace) -> int:
    store = _open_store(args)
    guild_id = str(args.guild)
    user_id = str(args.user)

    if not args.force:
        response = input(
            f"Delete the character for user {user_id} in guild {guild_id}? "
            "This cannot be undone. Type 'yes' to confirm: "
        ).strip()
        if response.lower() != "yes":
            print("Aborted.")
            return 3

    if not asyncio.run(store.remove(guild_id, STORAGE_COLLECTION, user_id)):
        print(f"No character saved for user {user_id} in guild {guild_id}.", file=sys.stderr)
        return 1
    print(f"Deleted character for user {user_id} in guild {guild_id}.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Administrative utilities for saved characters.")
    parser.add_argument(
        "--storage-root",
        help="Directory holding playerdata/ (default: RANGER_DATA_ROOT or the checkout)",
    )
    parser.add_argument("--rules", help="Path to the rule tables (default: data/rules.toml)")

    subparsers = parser.add_subparsers(dest="command")

    list_parser = subparsers.add_parser("list", help="Show saved characters per guild")
    list_parser.add_argument("--guild", action="append", help="Filter to one or more guild IDs")
    list_parser.set_defaults(func=_command_list)

    validate_parser = subparsers.add_parser(
        "validate",
        aliases=["lint"],
        help="Check saved characters against the rule tables",
    )
    validate_parser.add_argument(
        "--guild", action="append", help="Filter to one or more guild IDs"
    )
    validate_parser.set_defaults(func=_command_validate)

    sheet_parser = subparsers.add_parser("export-sheet", help="Write a filled PDF sheet")
    sheet_parser.add_argument("--guild", required=True, help="Guild ID that owns the save")
    sheet_parser.add_argument("--user", required=True, help="Discord user ID of the owner")
    sheet_parser.add_argument("--template", help="Template path or URL")
    sheet_parser.add_argument("--output", help="Destination file or directory")
    sheet_parser.add_argument("--force", action="store_true", help="Overwrite the output file")
    sheet_parser.set_defaults(func=_command_export_sheet)

    text_parser = subparsers.add_parser("export-text", help="Print the plain-text sheet")
    text_parser.add_argument("--guild", required=True, help="Guild ID that owns the save")
    text_parser.add_argument("--user", required=True, help="Discord user ID of the owner")
    text_parser.set_defaults(func=_command_export_text)

    delete_parser = subparsers.add_parser(
        "delete-character",
        help="Remove a saved character so the owner can start fresh",
    )
    delete_parser.add_argument("--guild", required=True, help="Guild ID that owns the save")
    delete_parser.add_argument("--user", required=True, help="Discord user ID of the owner")
    delete_parser.add_argument(
        "--force",
        action="store_true",
        help="Skip the confirmation prompt",
    )
    delete_parser.set_defaults(func=_command_delete_character)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "command", None):
        parser.print_help()
        return 0
    return args.func(args)


__all__ = [
    "TextValidation",
    "ValidationIssue",
    "build_parser",
    "format_number",
    "main",
    "sanitize_filename",
    "sanitize_html",
    "sheet_filename",
    "to_title_case",
    "validate_character_name",
    "validate_text_input",
    "wrap_text",
]


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
