"""Filling the PDF character sheet.

The exporter projects a character onto the field catalogue in
:mod:`rangerbot.sheet.fields`.  Every write is preceded by a capability check
against the template's field names, so templates that lack some fields are
filled as far as they go.
"""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Hashable, Protocol, Sequence

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from ..constants import DEFENSE_BY_ESSENCE, ESSENCE_LIST
from ..models.character import Character
from ..models.rules import RuleTables
from ..stats import SheetStats, compute_sheet
from ..utils import sheet_filename
from . import content, fields
from .template import SheetTemplate, TemplateError, TemplateNotReady

log = logging.getLogger(__name__)


class FormHandle(Protocol):
    def field_names(self) -> frozenset[str]: ...

    def is_checkbox(self, name: str) -> bool: ...

    def set_text(self, name: str, value: str) -> None: ...

    def set_checked(self, name: str, checked: bool) -> None: ...

    def save(self) -> bytes: ...


class PdfForm:
    """:class:`FormHandle` backed by a pypdf writer."""

    def __init__(self, data: bytes) -> None:
        try:
            reader = PdfReader(io.BytesIO(data))
            form_fields = reader.get_fields() or {}
            self._writer = PdfWriter(clone_from=reader)
        except (PyPdfError, ValueError, KeyError) as exc:
            raise TemplateError(f"Could not parse template: {exc}") from exc
        self._types: dict[str, str] = {}
        self._on_states: dict[str, str] = {}
        for name, entry in form_fields.items():
            self._types[name] = str(entry.get("/FT", ""))
            states = [str(state) for state in entry.get("/_States_", []) if str(state) != "/Off"]
            if states:
                self._on_states[name] = states[0]
        self._values: dict[str, str] = {}

    def field_names(self) -> frozenset[str]:
        return frozenset(self._types)

    def is_checkbox(self, name: str) -> bool:
        return self._types.get(name) == "/Btn"

    def set_text(self, name: str, value: str) -> None:
        self._values[name] = value

    def set_checked(self, name: str, checked: bool) -> None:
        on_state = self._on_states.get(name)
        if on_state is None:
            log.debug("Check box %r has no appearance states; leaving it unchanged", name)
            return
        self._values[name] = on_state if checked else "/Off"

    def save(self) -> bytes:
        try:
            if self._values:
                self._writer.update_page_form_field_values(
                    None, self._values, auto_regenerate=True
                )
            buffer = io.BytesIO()
            self._writer.write(buffer)
        except (PyPdfError, ValueError, KeyError) as exc:
            raise TemplateError(f"Could not save filled sheet: {exc}") from exc
        return buffer.getvalue()


class FieldWriter:
    """Writes semantic fields to whichever destinations the form provides."""

    def __init__(self, form: FormHandle) -> None:
        self.form = form
        self.available = form.field_names()
        self.written: list[str] = []
        self.skipped: list[str] = []

    def has(self, name: str) -> bool:
        return name in self.available

    def text(self, destinations: Sequence[str], value: object) -> bool:
        wrote = False
        text = "" if value is None else str(value)
        for name in destinations:
            if not self.has(name) or self.form.is_checkbox(name):
                self.skipped.append(name)
                continue
            self.form.set_text(name, text)
            self.written.append(name)
            wrote = True
        return wrote

    def named(self, key: str, value: object) -> bool:
        return self.text(fields.TEXT_FIELDS[key], value)

    def checkbox(self, name: str, checked: bool) -> bool:
        if not self.has(name) or not self.form.is_checkbox(name):
            self.skipped.append(name)
            return False
        self.form.set_checked(name, checked)
        self.written.append(name)
        return True


@dataclass(frozen=True, slots=True)
class ExportContext:
    character: Character
    rules: RuleTables
    sheet: SheetStats


Stage = Callable[[FieldWriter, ExportContext], None]


def fill_basic_info(writer: FieldWriter, ctx: ExportContext) -> None:
    character, rules = ctx.character, ctx.rules
    origin = rules.origins.get(character.origin or "")
    role = rules.roles.get(character.role or "")
    writer.named("name", character.plain_name)
    writer.named("concept", character.plain_concept)
    writer.named("level", character.level)
    writer.named("origin", origin.name if origin else "")
    writer.named("role", role.name if role else "")
    writer.named("colour", role.colour.title() if role else "")
    writer.named("max_health", ctx.sheet.max_health)
    writer.named("power_capacity", ctx.sheet.power_capacity)
    writer.named("ground_movement", f"{ctx.sheet.ground_movement}ft")


def fill_essence(writer: FieldWriter, ctx: ExportContext) -> None:
    for essence in ESSENCE_LIST:
        writer.text(fields.essence_fields(essence), ctx.sheet.essence.get(essence, 0))
        defense = DEFENSE_BY_ESSENCE[essence]
        writer.text(fields.defense_fields(defense), ctx.sheet.defenses[defense])


def fill_skills(writer: FieldWriter, ctx: ExportContext) -> None:
    skills = list(ctx.rules.iter_skills())
    skills.extend(skill for skill in sorted(ctx.sheet.skill_ranks) if skill not in skills)
    for skill in skills:
        ranks = ctx.sheet.skill_ranks.get(skill, 0)
        if ranks > 0:
            writer.text(fields.skill_die_fields(skill), ctx.sheet.skill_dice[skill])
        specialization = ctx.character.plain_specialization(skill)
        if specialization:
            writer.text(fields.skill_specialization_fields(skill), specialization)
        for rank, name in enumerate(fields.skill_checkbox_fields(skill), start=1):
            if ranks >= rank:
                writer.checkbox(name, True)


def fill_attacks(writer: FieldWriter, ctx: ExportContext) -> None:
    rows = content.attacks(ctx.character, ctx.rules, ctx.sheet)
    for slot, attack in enumerate(rows[: fields.ATTACK_SLOTS], start=1):
        writer.text(fields.attack_fields(slot, "name"), attack.name)
        writer.text(fields.attack_fields(slot, "skill"), attack.skill)
        writer.text(fields.attack_fields(slot, "die"), attack.die)
        writer.text(fields.attack_fields(slot, "damage"), attack.damage)
        writer.text(fields.attack_fields(slot, "range"), attack.range)


def fill_page_two(writer: FieldWriter, ctx: ExportContext) -> None:
    character, rules = ctx.character, ctx.rules
    writer.named("perks", content.compose_groups(content.perk_groups(character, rules)))
    writer.named("grid_powers", "\n".join(content.grid_power_lines(ctx.sheet, rules)))
    writer.named("influences", "\n".join(content.influence_lines(character, rules)))
    writer.named("hang_ups", "\n".join(content.hang_up_lines(character, rules)))
    writer.named("bonds", "\n".join(content.bond_lines(character, rules)))
    writer.named("origin_features", "\n".join(content.origin_feature_lines(character, rules)))
    writer.named("equipment", "\n".join(content.equipment_lines(character, rules)))


def fill_zord(writer: FieldWriter, ctx: ExportContext) -> None:
    zord = ctx.character.zord
    zord_type = ctx.rules.zord_types.get(zord.team_type or "")
    writer.named("zord_name", zord.plain_name)
    writer.named("zord_type", zord_type.name if zord_type else "")
    writer.named("zord_features", "\n".join(content.zord_feature_lines(ctx.character)))
    writer.named("zord_description", zord.plain_description)
    for stat, key in fields.ZORD_STAT_FIELDS.items():
        writer.named(key, ctx.sheet.zord.get(stat, ""))


def fill_weapons_and_armor(writer: FieldWriter, ctx: ExportContext) -> None:
    rows = content.attacks(ctx.character, ctx.rules, ctx.sheet)
    writer.named("weapons", "\n".join(attack.describe() for attack in rows))
    writer.named("armor_training", content.armor_summary(ctx.sheet))
    writer.named("max_armor_bonus", f"+{ctx.sheet.armor.max_bonus}")


PIPELINE: tuple[Stage, ...] = (
    fill_basic_info,
    fill_essence,
    fill_skills,
    fill_attacks,
    fill_page_two,
    fill_zord,
    fill_weapons_and_armor,
)


def fill_form(form: FormHandle, character: Character, rules: RuleTables) -> FieldWriter:
    """Run every fill stage in order against ``form``."""

    writer = FieldWriter(form)
    ctx = ExportContext(character, rules, compute_sheet(character, rules))
    for stage in PIPELINE:
        stage(writer, ctx)
    if writer.skipped:
        log.debug("Template lacks %d catalogue field(s)", len(set(writer.skipped)))
    return writer


class ExportStatus(str, Enum):
    SUCCESS = "success"
    NOT_READY = "not_ready"
    FAILED = "failed"
    BUSY = "busy"


@dataclass(slots=True)
class ExportResult:
    status: ExportStatus
    data: bytes | None = None
    filename: str | None = None
    message: str = ""
    written: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is ExportStatus.SUCCESS


FormFactory = Callable[[bytes], FormHandle]


class SheetExporter:
    """Asynchronous export of filled character sheets.

    A second export for the same owner while one is running is rejected with
    :attr:`ExportStatus.BUSY`.
    """

    def __init__(self, template: SheetTemplate, *, form_factory: FormFactory = PdfForm) -> None:
        self.template = template
        self.form_factory = form_factory
        self._in_flight: set[Hashable] = set()

    def is_busy(self, owner: Hashable) -> bool:
        return owner in self._in_flight

    async def export(
        self, owner: Hashable, character: Character, rules: RuleTables
    ) -> ExportResult:
        if owner in self._in_flight:
            return ExportResult(
                ExportStatus.BUSY, message="An export for this character is already running."
            )
        self._in_flight.add(owner)
        try:
            return await self._export(character, rules)
        finally:
            self._in_flight.discard(owner)

    async def _export(self, character: Character, rules: RuleTables) -> ExportResult:
        try:
            data = await self.template.get(wait=False)
        except TemplateNotReady as exc:
            return ExportResult(ExportStatus.NOT_READY, message=f"{exc} Please try again shortly.")
        except TemplateError as exc:
            log.warning("Sheet template unavailable: %s", exc)
            return ExportResult(ExportStatus.FAILED, message=f"Error generating PDF: {exc}")

        try:
            form = self.form_factory(data)
            writer = fill_form(form, character, rules)
            pdf_bytes = await asyncio.to_thread(form.save)
        except TemplateError as exc:
            log.warning("Sheet export failed: %s", exc)
            return ExportResult(ExportStatus.FAILED, message=f"Error generating PDF: {exc}")
        except Exception as exc:
            log.exception("Unexpected error while filling the character sheet")
            return ExportResult(ExportStatus.FAILED, message=f"Error generating PDF: {exc}")

        return ExportResult(
            ExportStatus.SUCCESS,
            data=pdf_bytes,
            filename=sheet_filename(character.plain_name),
            message="Character sheet PDF generated!",
            written=writer.written,
            skipped=writer.skipped,
        )


__all__ = [
    "ExportContext",
    "ExportResult",
    "ExportStatus",
    "FieldWriter",
    "FormHandle",
    "PIPELINE",
    "PdfForm",
    "SheetExporter",
    "fill_form",
]
