from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from rangerbot.constants import STORAGE_COLLECTION
from rangerbot.models.character import Character
from rangerbot.storage import DataStore
from rangerbot.utils import main


def _seed(tmp_path: Path, guild: str, user: str, character: Character) -> None:
    store = DataStore(package_root=PROJECT_BASE, storage_root=tmp_path)
    result = asyncio.run(store.save(guild, STORAGE_COLLECTION, user, character.to_dict()))
    assert result.ok


def test_list_reports_saved_characters(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(tmp_path, "42", "100", Character(name="Jason"))
    _seed(tmp_path, "42", "200", Character(name="Zack"))

    assert main(["--storage-root", str(tmp_path), "list"]) == 0

    out = capsys.readouterr().out
    assert "Guild 42: 2 character(s)" in out
    assert "  - 100 (" in out


def test_list_without_saves(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--storage-root", str(tmp_path), "list"]) == 0
    assert "No saved characters found." in capsys.readouterr().out


def test_validate_flags_rank_overflow(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(tmp_path, "1", "10", Character(name="Jason", role="red", skills={"Might": 6}))
    _seed(tmp_path, "1", "11", Character(name="Billy", role="blue", selected_perks=["Iron Grip"]))

    assert main(["--storage-root", str(tmp_path), "validate"]) == 1

    out = capsys.readouterr().out
    assert "[ERROR] 1/10: Might has 7 ranks (max 6)" in out
    assert "[WARNING] 1/11: perk 'Iron Grip' requires Might d6+" in out
    assert "Checked 2 character(s): 1 error(s), 1 warning(s)." in out


def test_export_text_prints_sheet(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(tmp_path, "5", "7", Character(name="Kimberly", role="pink"))

    assert main(["--storage-root", str(tmp_path), "export-text", "--guild", "5", "--user", "7"]) == 0

    out = capsys.readouterr().out
    assert "Name: Kimberly" in out
    assert "Role: Pink Ranger" in out


def test_export_sheet_reports_missing_template(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _seed(tmp_path, "5", "7", Character(name="Kimberly"))

    code = main(
        [
            "--storage-root",
            str(tmp_path),
            "export-sheet",
            "--guild",
            "5",
            "--user",
            "7",
            "--template",
            str(tmp_path / "missing.pdf"),
        ]
    )

    assert code == 1
    assert "Error generating PDF" in capsys.readouterr().err


def test_delete_character_with_force(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(tmp_path, "3", "9", Character(name="Trini"))
    args = ["--storage-root", str(tmp_path), "delete-character", "--guild", "3", "--user", "9"]

    assert main([*args, "--force"]) == 0
    assert main([*args, "--force"]) == 1
    assert "No character saved" in capsys.readouterr().err


def test_delete_character_requires_confirmation(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _seed(tmp_path, "3", "9", Character(name="Trini"))
    monkeypatch.setattr("builtins.input", lambda prompt: "no")

    assert main(["--storage-root", str(tmp_path), "delete-character", "--guild", "3", "--user", "9"]) == 3
    assert "Aborted." in capsys.readouterr().out
