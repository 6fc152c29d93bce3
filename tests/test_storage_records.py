from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import tomllib

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from rangerbot.constants import STORAGE_COLLECTION, VALIDATION_MESSAGES
from rangerbot.models.character import Character, LevelUpChoice
from rangerbot.storage import DataStore


def _store(tmp_path: Path, config_path: Path | None = None) -> DataStore:
    return DataStore(package_root=PROJECT_BASE, storage_root=tmp_path, config_path=config_path)


def _small_quota_config(tmp_path: Path) -> Path:
    config = tmp_path / "storage.toml"
    config.write_text(
        "[collections.characters]\n"
        'path = "playerdata/{guild_id}/characters/{key}.json"\n'
        "version = 0\n"
        "quota_bytes = 64\n",
        encoding="utf8",
    )
    return config


def test_saved_record_loads_back(tmp_path: Path) -> None:
    store = _store(tmp_path)
    snapshot = {"name": "Jason", "level": 3, "skills": {"Might": 2}}

    async def scenario():
        result = await store.save(42, STORAGE_COLLECTION, "100", snapshot)
        loaded = await store.load(42, STORAGE_COLLECTION, "100")
        keys = await store.keys(42, STORAGE_COLLECTION)
        return result, loaded, keys

    result, loaded, keys = asyncio.run(scenario())

    assert result.ok and result.message is None
    assert loaded == snapshot
    assert keys == ["100"]

    versions = tmp_path / "playerdata" / "42" / "characters" / "schema_version.toml"
    with versions.open("rb") as handle:
        assert tomllib.load(handle) == {"collections": {"characters": 2}}


def test_missing_and_corrupt_records_yield_default(tmp_path: Path) -> None:
    store = _store(tmp_path)
    record = tmp_path / "playerdata" / "7" / "characters" / "5.json"

    async def scenario():
        missing = await store.load(7, STORAGE_COLLECTION, "5", {"fresh": True})
        record.parent.mkdir(parents=True, exist_ok=True)
        record.write_text("{not json", encoding="utf8")
        corrupt = await store.load(7, STORAGE_COLLECTION, "5", {"fresh": True})
        return missing, corrupt

    missing, corrupt = asyncio.run(scenario())

    assert missing == {"fresh": True}
    assert corrupt == {"fresh": True}


def test_oversized_record_reports_quota(tmp_path: Path) -> None:
    store = _store(tmp_path / "data", _small_quota_config(tmp_path))

    result = asyncio.run(store.save(1, STORAGE_COLLECTION, "2", {"concept": "x" * 200}))

    assert not result.ok
    assert result.quota_exceeded
    assert result.message == VALIDATION_MESSAGES["storage_full"]
    assert not (tmp_path / "data" / "playerdata" / "1" / "characters" / "2.json").exists()


def test_unserialisable_record_reports_storage_error(tmp_path: Path) -> None:
    store = _store(tmp_path)

    result = asyncio.run(store.save(1, STORAGE_COLLECTION, "2", {"bad": object()}))

    assert not result.ok
    assert not result.quota_exceeded
    assert result.message == VALIDATION_MESSAGES["storage_error"]


def test_remove_and_key_encoding(tmp_path: Path) -> None:
    store = _store(tmp_path)

    async def scenario():
        await store.save(9, STORAGE_COLLECTION, "9:11", {"name": "Kim"})
        listed = await store.keys(9, STORAGE_COLLECTION)
        removed = await store.remove(9, STORAGE_COLLECTION, "9:11")
        removed_again = await store.remove(9, STORAGE_COLLECTION, "9:11")
        return listed, removed, removed_again

    listed, removed, removed_again = asyncio.run(scenario())

    assert listed == ["9:11"]
    assert removed is True
    assert removed_again is False


def test_character_snapshot_reads_back_through_the_store(tmp_path: Path) -> None:
    store = _store(tmp_path)
    character = Character(
        name="Jason",
        origin="human",
        role="red",
        level=4,
        skills={"Might": 2},
        level_up_choices={4: LevelUpChoice(general_perk="Extra Training", skill_ranks=["Might"])},
        zord={"name": "Tyrannosaurus", "team_type": "land", "growth_choices": {5: "health"}},
        resources={"current_health": 9},
        morphed=True,
    )

    async def scenario():
        await store.save(3, STORAGE_COLLECTION, "8", character.to_dict())
        return await store.load(3, STORAGE_COLLECTION, "8")

    restored = Character.from_dict(asyncio.run(scenario()))

    assert restored == character
    assert restored.level_up_choices[4].skill_ranks == ["Might"]
    assert restored.zord.growth_choices == {5: "health"}
    assert restored.resources.current_health == 9


def test_store_without_a_migration_path_falls_back(tmp_path: Path) -> None:
    config = tmp_path / "storage.toml"
    config.write_text(
        "[collections.characters]\n"
        'path = "playerdata/{guild_id}/characters/{key}.json"\n'
        "version = 9\n",
        encoding="utf8",
    )
    store = _store(tmp_path / "data", config)

    async def scenario():
        loaded = await store.load(4, STORAGE_COLLECTION, "1", {"fresh": True})
        saved = await store.save(4, STORAGE_COLLECTION, "1", {"name": "Billy"})
        return loaded, saved

    loaded, saved = asyncio.run(scenario())

    assert loaded == {"fresh": True}
    assert not saved.ok
    assert not saved.quota_exceeded
    assert saved.message == VALIDATION_MESSAGES["storage_error"]
