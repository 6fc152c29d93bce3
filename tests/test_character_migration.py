from __future__ import annotations

import asyncio
import importlib
import json
import sys
from pathlib import Path

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from rangerbot.constants import STORAGE_COLLECTION
from rangerbot.models.character import Character
from rangerbot.storage import CollectionConfig, DataStore, MigrationContext, _write_json

BROWSER_SNAPSHOT = {
    "name": "Billy",
    "level": 6,
    "originEssenceChoice": "Smarts",
    "roleSkillChoice": "Alertness",
    "influenceHangUpChoices": {"scientist": 1},
    "selectedPerks": ["Brilliant Deduction"],
    "levelUpChoices": {
        "4": {"generalPerk": "Extra Training", "skillRanks": [{"skill": "Science"}]},
        "6": {"gridPower": "Power Blast", "skillRanks": []},
    },
    "zord": {"teamType": "land", "spectrumFeature": "Earthshaker", "growthChoices": {"5": "armor"}},
    "resources": {"currentHealth": 4, "currentQuipsSpeechs": 2},
}


def _characters_config() -> CollectionConfig:
    return CollectionConfig(
        name="characters",
        path="playerdata/{guild_id}/characters/{key}.json",
        version=2,
        version_scope="playerdata/{guild_id}/characters",
        migration_key="characters",
    )


def test_browser_snapshot_is_converted(tmp_path: Path) -> None:
    migration = importlib.import_module("migrations.characters.0002_browser_snapshots")

    record_dir = tmp_path / "playerdata" / "42" / "characters"
    record_path = record_dir / "100.json"
    _write_json(record_path, BROWSER_SNAPSHOT)

    context = MigrationContext(
        guild_id="42",
        collection=_characters_config(),
        base=tmp_path,
        scope_path=record_dir,
    )
    migration.apply(context)

    payload = json.loads(record_path.read_text(encoding="utf8"))

    assert payload["origin_essence_choice"] == "Smarts"
    assert payload["influence_hang_up_choices"] == {"scientist": 1}
    assert payload["level_up_choices"]["4"] == {
        "general_perk": "Extra Training",
        "skill_ranks": ["Science"],
    }
    assert payload["zord"]["spectrum_feature"] == "Earthshaker"
    assert payload["resources"] == {"current_health": 4, "current_quips_speeches": 2}
    assert payload["morphed"] is False

    character = Character.from_dict(payload)

    assert character.level_up_choices[6].grid_power == "Power Blast"
    assert character.zord.growth_choices == {5: "armor"}
    assert character.resources.current_quips_speeches == 2


def test_snapshot_without_resources_gains_empty_pools(tmp_path: Path) -> None:
    migration = importlib.import_module("migrations.characters.0002_browser_snapshots")

    record_dir = tmp_path / "playerdata" / "1" / "characters"
    record_path = record_dir / "2.json"
    _write_json(record_path, {"name": "Trini", "morphed": True})

    context = MigrationContext(
        guild_id="1",
        collection=_characters_config(),
        base=tmp_path,
        scope_path=record_dir,
    )
    migration.apply(context)

    payload = json.loads(record_path.read_text(encoding="utf8"))

    assert payload["morphed"] is True
    assert payload["resources"]["current_power"] is None
    assert set(payload["resources"]) == {
        "current_health",
        "current_power",
        "current_idea_points",
        "current_quips_speeches",
        "current_zord_health",
    }


def test_store_migrates_existing_snapshots_before_loading(tmp_path: Path) -> None:
    record_path = tmp_path / "playerdata" / "42" / "characters" / "100.json"
    _write_json(record_path, BROWSER_SNAPSHOT)
    store = DataStore(package_root=PROJECT_BASE, storage_root=tmp_path)

    payload = asyncio.run(store.load(42, STORAGE_COLLECTION, "100"))

    assert payload["role_skill_choice"] == "Alertness"
    assert "roleSkillChoice" not in payload
