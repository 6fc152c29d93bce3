"""Bot configuration utilities."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .constants import AUTO_SAVE_DELAY

PROJECT_BASE = Path(__file__).resolve().parent.parent
DEFAULT_RULES_PATH = PROJECT_BASE / "data" / "rules.toml"
DEFAULT_TEMPLATE_PATH = PROJECT_BASE / "assets" / "character-sheet-template.pdf"


def env(name: str, default: str | None = None) -> str:
    value = os.getenv(name, default)
    if value is None:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


@dataclass(slots=True)
class BotConfig:
    token: str
    sheet_template: str = str(DEFAULT_TEMPLATE_PATH)
    rules_path: str = str(DEFAULT_RULES_PATH)
    auto_save_delay: float = AUTO_SAVE_DELAY
    template_timeout: float = 30.0

    @classmethod
    def from_env(cls, *, require_token: bool = True) -> "BotConfig":
        token = env("DISCORD_TOKEN") if require_token else os.getenv("DISCORD_TOKEN", "")
        sheet_template = os.getenv("RANGER_SHEET_TEMPLATE", str(DEFAULT_TEMPLATE_PATH))
        rules_path = os.getenv("RANGER_RULES_PATH", str(DEFAULT_RULES_PATH))
        try:
            auto_save_delay = float(os.getenv("RANGER_AUTOSAVE_DELAY", str(AUTO_SAVE_DELAY)))
        except ValueError:
            auto_save_delay = AUTO_SAVE_DELAY
        try:
            template_timeout = float(os.getenv("RANGER_TEMPLATE_TIMEOUT", "30"))
        except ValueError:
            template_timeout = 30.0
        auto_save_delay = max(0.0, auto_save_delay)
        template_timeout = max(1.0, template_timeout)

        return cls(
            token=token,
            sheet_template=sheet_template.strip() or str(DEFAULT_TEMPLATE_PATH),
            rules_path=rules_path.strip() or str(DEFAULT_RULES_PATH),
            auto_save_delay=auto_save_delay,
            template_timeout=template_timeout,
        )


__all__ = ["BotConfig", "DEFAULT_RULES_PATH", "DEFAULT_TEMPLATE_PATH", "PROJECT_BASE", "env"]
