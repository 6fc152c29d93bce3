"""Loading of the fillable character sheet template."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import aiohttp

log = logging.getLogger(__name__)


class TemplateError(RuntimeError):
    """Raised when the template cannot be fetched or parsed."""


class TemplateNotReady(RuntimeError):
    """Raised when the template is still being fetched."""


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


class SheetTemplate:
    """Fetches template bytes from a path or URL and caches them on success.

    :meth:`prefetch` starts a background fetch; while it runs, :meth:`get`
    with ``wait=False`` raises :class:`TemplateNotReady`.  A failed fetch is
    not cached, so the next request starts from scratch.
    """

    def __init__(self, source: str | Path, *, timeout: float = 30.0) -> None:
        self.source = str(source)
        self.timeout = timeout
        self._data: bytes | None = None
        self._task: asyncio.Task[bytes] | None = None

    @property
    def loaded(self) -> bool:
        return self._data is not None

    @property
    def loading(self) -> bool:
        return self._task is not None and not self._task.done()

    def prefetch(self) -> None:
        if self._data is not None or self.loading:
            return
        self._task = asyncio.get_running_loop().create_task(self._fetch())
        self._task.add_done_callback(self._on_fetched)

    def _on_fetched(self, task: asyncio.Task[bytes]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.warning("Prefetching sheet template from %s failed: %s", self.source, exc)
            return
        self._data = task.result()

    async def get(self, *, wait: bool = True) -> bytes:
        if self._data is not None:
            return self._data
        if self.loading:
            if not wait:
                raise TemplateNotReady("Character sheet template is still loading.")
            assert self._task is not None
            data = await asyncio.shield(self._task)
        else:
            data = await self._fetch()
        self._data = data
        return data

    def reset(self) -> None:
        self._data = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _fetch(self) -> bytes:
        if _is_url(self.source):
            data = await self._fetch_url()
        else:
            data = await self._fetch_path()
        if not data.startswith(b"%PDF"):
            raise TemplateError(f"Template at {self.source} is not a PDF document")
        log.info("Loaded sheet template from %s (%d bytes)", self.source, len(data))
        return data

    async def _fetch_path(self) -> bytes:
        path = Path(self.source).expanduser()
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise TemplateError(f"Could not read template {path}: {exc}") from exc

    async def _fetch_url(self) -> bytes:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.source) as response:
                    response.raise_for_status()
                    return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TemplateError(f"Could not fetch template {self.source}: {exc}") from exc


__all__ = ["SheetTemplate", "TemplateError", "TemplateNotReady"]
