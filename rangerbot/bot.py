"""Entry point for the Power Rangers RPG character builder Discord bot."""

from __future__ import annotations

import asyncio
import logging
from typing import Hashable

import discord
from discord.ext import commands

from .autosave import AutoSaver
from .cogs.base import persist_character
from .config import BotConfig
from .models.rules import RuleTables, load_rules
from .sheet import SheetExporter, SheetTemplate
from .storage import DataStore, SaveResult

log = logging.getLogger(__name__)


class RangerBot(commands.Bot):
    def __init__(self, config: BotConfig):
        intents = discord.Intents.default()
        super().__init__(command_prefix="!", intents=intents)
        self.config = config
        self.store = DataStore()
        self.rules: RuleTables = load_rules(config.rules_path)
        self.template = SheetTemplate(config.sheet_template, timeout=config.template_timeout)
        self.exporter = SheetExporter(self.template)
        self.autosaver = AutoSaver(
            self._persist,
            delay=config.auto_save_delay,
            on_result=self._on_save_result,
        )
        self._synced = False

    async def _persist(self, key: Hashable, snapshot: object) -> SaveResult:
        return await persist_character(self.store, key, snapshot)

    def _on_save_result(self, key: Hashable, result: SaveResult) -> None:
        for cog in self.cogs.values():
            recorder = getattr(cog, "record_save_result", None)
            if callable(recorder):
                recorder(key, result)

    async def setup_hook(self) -> None:
        self.template.prefetch()
        await self.load_extension("rangerbot.cogs.character")
        log.info(
            "Loaded %d origins, %d roles and %d influences",
            len(self.rules.origins),
            len(self.rules.roles),
            len(self.rules.influences),
        )

    async def on_ready(self) -> None:
        if not self._synced:
            await self.tree.sync()
            self._synced = True
            log.info("Application commands synced")
        if self.user:
            log.info("Connected as %s (%s)", self.user, self.user.id)

    async def close(self) -> None:
        results = await self.autosaver.close()
        failed = [key for key, result in results.items() if not result.ok]
        if failed:
            log.error("%d character(s) could not be saved during shutdown", len(failed))
        await super().close()


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    config = BotConfig.from_env()
    bot = RangerBot(config)
    async with bot:
        await bot.start(config.token)


if __name__ == "__main__":
    asyncio.run(main())
