"""Power Rangers RPG character builder for Discord."""

from .constants import APP_VERSION

__version__ = APP_VERSION
