"""Debounced auto-save of character snapshots."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Hashable

from .constants import AUTO_SAVE_DELAY
from .storage import SaveResult

log = logging.getLogger(__name__)

SaveCallback = Callable[[Hashable, Any], Awaitable[SaveResult]]
ResultCallback = Callable[[Hashable, SaveResult], Awaitable[None] | None]


class AutoSaver:
    """Collapse bursts of edits into one write per key.

    :meth:`schedule` records the latest snapshot for a key and (re)starts its
    timer.  When the timer fires without another edit the snapshot is written.
    A save that has already started is never cancelled; edits arriving during
    it start a fresh timer and the per-key lock keeps at most one save per key
    in flight.
    """

    def __init__(
        self,
        save: SaveCallback,
        *,
        delay: float = AUTO_SAVE_DELAY,
        on_result: ResultCallback | None = None,
    ) -> None:
        self._save = save
        self._delay = max(0.0, float(delay))
        self._on_result = on_result
        self._pending: dict[Hashable, Any] = {}
        self._timers: dict[Hashable, asyncio.Task[None]] = {}
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._lock_users: dict[Hashable, int] = {}
        self._closed = False

    @property
    def delay(self) -> float:
        return self._delay

    def pending_keys(self) -> list[Hashable]:
        return list(self._pending)

    def schedule(self, key: Hashable, snapshot: Any) -> None:
        if self._closed:
            raise RuntimeError("AutoSaver is closed")
        self._pending[key] = snapshot
        timer = self._timers.pop(key, None)
        if timer is not None and not timer.done():
            timer.cancel()
        self._timers[key] = asyncio.get_running_loop().create_task(self._run_timer(key))

    def cancel(self, key: Hashable) -> None:
        """Drop any pending save for ``key`` without writing it."""

        self._pending.pop(key, None)
        timer = self._timers.pop(key, None)
        if timer is not None and not timer.done():
            timer.cancel()

    async def flush(self, key: Hashable | None = None) -> dict[Hashable, SaveResult]:
        """Write pending snapshots immediately and return their results."""

        keys = [key] if key is not None else list(self._pending)
        results: dict[Hashable, SaveResult] = {}
        for item in keys:
            timer = self._timers.pop(item, None)
            if timer is not None and not timer.done():
                timer.cancel()
            if item in self._pending:
                results[item] = await self._write(item)
        return results

    async def close(self) -> dict[Hashable, SaveResult]:
        results = await self.flush()
        self._closed = True
        return results

    async def _run_timer(self, key: Hashable) -> None:
        try:
            await asyncio.sleep(self._delay)
        except asyncio.CancelledError:
            return
        # Detach before writing so a later schedule() cannot cancel the save.
        if self._timers.get(key) is asyncio.current_task():
            self._timers.pop(key, None)
        await self._write(key)

    async def _write(self, key: Hashable) -> SaveResult:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                if key not in self._pending:
                    return SaveResult(ok=True)
                snapshot = self._pending.pop(key)
                try:
                    result = await self._save(key, snapshot)
                except Exception as exc:
                    log.exception("Auto-save failed for %s", key)
                    result = SaveResult(ok=False, error=str(exc))
                if not result.ok:
                    log.warning("Auto-save for %s did not complete: %s", key, result.error)
        finally:
            # Drop the lock once nobody is holding or waiting on it.
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                self._locks.pop(key, None)
        if self._on_result is not None:
            try:
                outcome = self._on_result(key, result)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception:
                log.exception("Auto-save result handler failed for %s", key)
        return result


__all__ = ["AutoSaver"]
