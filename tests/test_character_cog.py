from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from rangerbot.cogs.character import CharacterCog, _matching_choices, _toggle
from rangerbot.config import DEFAULT_RULES_PATH
from rangerbot.constants import VALIDATION_MESSAGES
from rangerbot.models.rules import load_rules
from rangerbot.storage import SaveResult

RULES = load_rules(DEFAULT_RULES_PATH)


class FakeStore:
    def __init__(self, records: dict | None = None) -> None:
        self.records = records or {}

    async def load(self, guild_id, collection, key, default=None):
        return self.records.get((guild_id, key), default)


class FakeAutoSaver:
    def __init__(self) -> None:
        self.scheduled: list[tuple[object, dict]] = []

    def schedule(self, key, snapshot) -> None:
        self.scheduled.append((key, snapshot))

    def cancel(self, key) -> None:
        self.scheduled = [entry for entry in self.scheduled if entry[0] != key]


class FakeResponse:
    def __init__(self) -> None:
        self.sent: list[tuple[str | None, dict]] = []

    def is_done(self) -> bool:
        return bool(self.sent)

    async def send_message(self, content=None, **kwargs) -> None:
        self.sent.append((content, kwargs))


def _interaction(guild_id: int = 5, user_id: int = 7) -> SimpleNamespace:
    return SimpleNamespace(
        guild=SimpleNamespace(id=guild_id),
        user=SimpleNamespace(id=user_id),
        response=FakeResponse(),
    )


def _cog(records: dict | None = None) -> CharacterCog:
    bot = SimpleNamespace(store=FakeStore(records), rules=RULES, autosaver=FakeAutoSaver())
    return CharacterCog(bot)


def test_accepted_edit_is_scheduled_and_confirmed() -> None:
    cog = _cog()
    interaction = _interaction()

    asyncio.run(cog._mutate(interaction, lambda builder: builder.set_name("Jason"), "Name saved."))

    (key, snapshot), = cog.autosaver.scheduled
    assert key == ("5", "7")
    assert snapshot["name"] == "Jason"
    assert interaction.response.sent == [("Name saved.", {"ephemeral": True})]


def test_rejected_edit_is_reported_and_not_saved() -> None:
    cog = _cog()
    interaction = _interaction()

    asyncio.run(cog._mutate(interaction, lambda builder: builder.set_name(""), "Name saved."))

    assert cog.autosaver.scheduled == []
    assert interaction.response.sent[0][0] == VALIDATION_MESSAGES["name_required"]


def test_invalid_stored_record_starts_fresh_with_notice() -> None:
    cog = _cog({("5", "7"): {"level": "very high"}})
    interaction = _interaction()

    asyncio.run(cog._mutate(interaction, lambda builder: builder.set_level(2), "Level saved."))

    content = interaction.response.sent[0][0]
    assert content.splitlines() == [VALIDATION_MESSAGES["load_error"], "Level saved."]
    assert cog.autosaver.scheduled[0][1]["level"] == 2


def test_stored_record_is_loaded_once() -> None:
    cog = _cog({("5", "7"): {"name": "Billy", "level": 3}})

    async def scenario():
        first, _ = await cog.builder_for(5, 7)
        cog.bot.store.records.clear()
        second, notice = await cog.builder_for(5, 7)
        return first, second, notice

    first, second, notice = asyncio.run(scenario())

    assert first is second
    assert notice is None
    assert second.character.level == 3


def test_failed_save_is_mentioned_once() -> None:
    cog = _cog()
    cog.record_save_result(("5", "7"), SaveResult(ok=False, quota_exceeded=True))

    first = _interaction()
    second = _interaction()
    asyncio.run(cog._mutate(first, lambda builder: builder.set_morphed(True), "Morphed!"))
    asyncio.run(cog._mutate(second, lambda builder: builder.set_morphed(False), "Demorphed."))

    assert first.response.sent[0][0] == f"{VALIDATION_MESSAGES['storage_full']}\nMorphed!"
    assert second.response.sent[0][0] == "Demorphed."


def test_matching_choices_filter_and_cap() -> None:
    pairs = [(f"Option {n}", str(n)) for n in range(40)]

    assert len(_matching_choices(pairs, "")) == 25
    assert [choice.value for choice in _matching_choices(pairs, "option 3")] == [
        "3",
        *[str(n) for n in range(30, 40)],
    ]


def test_toggle_adds_and_removes() -> None:
    assert _toggle([1, 2], 3) == [1, 2, 3]
    assert _toggle([1, 2, 3], 2) == [1, 3]


class SlowStore(FakeStore):
    def __init__(self, records: dict | None = None) -> None:
        super().__init__(records)
        self.loads = 0

    async def load(self, guild_id, collection, key, default=None):
        self.loads += 1
        await asyncio.sleep(0.01)
        return await super().load(guild_id, collection, key, default)


def test_concurrent_first_interactions_share_one_builder() -> None:
    cog = _cog()
    cog.bot.store = SlowStore({("5", "7"): {"name": "Zack"}})

    async def scenario():
        return await asyncio.gather(cog.builder_for(5, 7), cog.builder_for(5, 7))

    (first, _), (second, _) = asyncio.run(scenario())

    assert first is second
    assert cog.bot.store.loads == 1
    assert cog._loading == {}


def test_saved_snapshot_is_restored_without_notice() -> None:
    source = _cog()
    asyncio.run(source._mutate(_interaction(), lambda builder: builder.set_name("Kimberly"), "ok"))
    asyncio.run(
        source._mutate(
            _interaction(), lambda builder: builder.set_zord(name="Pterodactyl", team_type="air"), "ok"
        )
    )
    _, snapshot = source.autosaver.scheduled[-1]
    cog = _cog({("5", "7"): snapshot})

    builder, notice = asyncio.run(cog.builder_for(5, 7))

    assert notice is None
    assert builder.character.plain_name == "Kimberly"
    assert builder.character.zord.name == "Pterodactyl"
