"""Initial migration for character snapshots."""

from __future__ import annotations


FROM_VERSION = 0
TO_VERSION = 1
DESCRIPTION = "Bootstrap character snapshot directories"


def apply(context) -> None:  # type: ignore[override]
    target_dir = context.collection.record_directory(context.base, guild_id=context.guild_id)
    target_dir.mkdir(parents=True, exist_ok=True)
