"""Shared helpers for cogs."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Hashable

import discord
from discord.ext import commands

from ..autosave import AutoSaver
from ..constants import STORAGE_COLLECTION, VALIDATION_MESSAGES
from ..models._validation import ModelValidationError
from ..models.character import Character
from ..models.rules import RuleTables
from ..sheet import SheetExporter
from ..storage import DataStore, SaveResult
from ..wizard import CharacterBuilder, CharacterValidationError

log = logging.getLogger(__name__)

OwnerKey = tuple[str, str]


def owner_key(guild_id: int | str, user_id: int | str) -> OwnerKey:
    return (str(guild_id), str(user_id))


class RangerCog(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self._builders: dict[OwnerKey, CharacterBuilder] = {}
        self._loading: dict[OwnerKey, asyncio.Lock] = {}

    @property
    def store(self) -> DataStore:
        return self.bot.store  # type: ignore[return-value]

    @property
    def rules(self) -> RuleTables:
        return self.bot.rules  # type: ignore[return-value]

    @property
    def autosaver(self) -> AutoSaver:
        return self.bot.autosaver  # type: ignore[return-value]

    @property
    def exporter(self) -> SheetExporter:
        return self.bot.exporter  # type: ignore[return-value]

    async def send_validation_error(
        self,
        interaction: discord.Interaction,
        error: CharacterValidationError | ModelValidationError,
    ) -> None:
        details = getattr(error, "errors", None) or [str(error)]
        if len(details) == 1:
            message = details[0]
        else:
            message = "\n".join(f"• {entry}" for entry in details)
        await self.reply(interaction, message)

    async def reply(
        self,
        interaction: discord.Interaction,
        content: str | None = None,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("ephemeral", True)
        if interaction.response.is_done():
            await interaction.followup.send(content, **kwargs)
        else:
            await interaction.response.send_message(content, **kwargs)

    async def builder_for(
        self, guild_id: int | str, user_id: int | str
    ) -> tuple[CharacterBuilder, str | None]:
        """Return the cached builder for an owner, loading it on first use.

        The second element is a notice for the user when the stored record
        could not be used and a fresh character was started instead.
        """

        key = owner_key(guild_id, user_id)
        builder = self._builders.get(key)
        if builder is not None:
            return builder, None
        lock = self._loading.setdefault(key, asyncio.Lock())
        async with lock:
            # Another interaction may have finished loading while we waited.
            builder = self._builders.get(key)
            if builder is not None:
                return builder, None
            try:
                builder, notice = await self._load_builder(key)
            finally:
                if self._loading.get(key) is lock:
                    del self._loading[key]
            self._builders[key] = builder
            return builder, notice

    async def _load_builder(self, key: OwnerKey) -> tuple[CharacterBuilder, str | None]:
        payload = await self.store.load(key[0], STORAGE_COLLECTION, key[1])
        notice = None
        character: Character | None = None
        if payload is not None:
            try:
                character = Character.from_dict(payload)
            except ModelValidationError as exc:
                log.error(
                    "Stored character for user %s in guild %s is invalid: %s",
                    key[1],
                    key[0],
                    "; ".join(exc.errors) or exc,
                )
                notice = VALIDATION_MESSAGES["load_error"]
        return CharacterBuilder(self.rules, character), notice

    def schedule_save(self, key: OwnerKey, builder: CharacterBuilder) -> None:
        self.autosaver.schedule(key, builder.snapshot())

    def forget(self, key: OwnerKey) -> None:
        self.autosaver.cancel(key)
        self._builders.pop(key, None)


async def persist_character(store: DataStore, key: Hashable, snapshot: Any) -> SaveResult:
    """Save callback wired into the bot's :class:`AutoSaver`."""

    guild_id, user_id = key  # type: ignore[misc]
    return await store.save(guild_id, STORAGE_COLLECTION, user_id, snapshot)


__all__ = ["OwnerKey", "RangerCog", "owner_key", "persist_character"]
