"""Rename camelCase keys written by the browser character creator."""

from __future__ import annotations

import re
from typing import Any, MutableMapping

from rangerbot.storage import _read_json, _write_json

FROM_VERSION = 1
TO_VERSION = 2
DESCRIPTION = "Convert browser camelCase snapshots to snake_case and add resource pools"

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")

# Browser saves spelled the pool "QuipsSpeechs".
_RENAMES = {"current_quips_speechs": "current_quips_speeches"}

_NESTED = ("zord", "resources")


def _snake(key: str) -> str:
    converted = _CAMEL.sub("_", key).lower()
    return _RENAMES.get(converted, converted)


def _rename_keys(payload: MutableMapping[str, Any]) -> bool:
    changed = False
    for key in list(payload):
        target = _snake(key)
        if target != key:
            payload[target] = payload.pop(key)
            changed = True
    return changed


def _normalise_level_ups(payload: MutableMapping[str, Any]) -> bool:
    choices = payload.get("level_up_choices")
    if not isinstance(choices, MutableMapping):
        return False
    changed = False
    for choice in choices.values():
        if not isinstance(choice, MutableMapping):
            continue
        changed |= _rename_keys(choice)
        ranks = choice.get("skill_ranks")
        if isinstance(ranks, list) and any(isinstance(entry, MutableMapping) for entry in ranks):
            choice["skill_ranks"] = [
                entry.get("skill") if isinstance(entry, MutableMapping) else entry
                for entry in ranks
                if entry
            ]
            changed = True
    return changed


def apply(context) -> None:  # type: ignore[override]
    updated = 0
    for path in context.record_paths():
        try:
            payload = _read_json(path)
        except ValueError:
            context.log(f"skipping unreadable snapshot {path.name}")
            continue
        if not isinstance(payload, MutableMapping):
            continue

        changed = _rename_keys(payload)
        for name in _NESTED:
            nested = payload.get(name)
            if isinstance(nested, MutableMapping):
                changed |= _rename_keys(nested)
        changed |= _normalise_level_ups(payload)
        if not isinstance(payload.get("resources"), MutableMapping):
            payload["resources"] = {
                "current_health": None,
                "current_power": None,
                "current_idea_points": None,
                "current_quips_speeches": None,
                "current_zord_health": None,
            }
            changed = True
        if "morphed" not in payload:
            payload["morphed"] = False
            changed = True

        if changed:
            _write_json(path, payload)
            updated += 1

    if updated:
        context.log(f"converted {updated} character snapshot(s)")
