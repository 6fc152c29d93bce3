"""Persistence layer driven by ``config/storage.toml``.

Each collection entry in ``config/storage.toml`` names a relative path, a
serialisation format, a schema version and an optional byte quota.  Character
snapshots are stored one JSON document per owner key.  Schema versions live in
``schema_version.toml`` next to the stored records and are advanced by the
scripts in ``migrations/<collection>/``.
"""

from __future__ import annotations

import asyncio
import errno
import importlib.util
import json
import logging
import os
import tempfile
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, MutableMapping
from urllib.parse import quote, unquote

import tomllib

from .constants import VALIDATION_MESSAGES

log = logging.getLogger(__name__)

_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class StorageError(RuntimeError):
    """Raised when a record cannot be written."""


class StorageQuotaExceeded(StorageError):
    """Raised when a write would exceed the configured or physical capacity."""


@dataclass(slots=True, frozen=True)
class SaveResult:
    ok: bool
    quota_exceeded: bool = False
    error: str | None = None

    @property
    def message(self) -> str | None:
        if self.ok:
            return None
        if self.quota_exceeded:
            return VALIDATION_MESSAGES["storage_full"]
        return VALIDATION_MESSAGES["storage_error"]


def _is_site_packages(path: Path) -> bool:
    normalized = {part.lower() for part in path.parts}
    return "site-packages" in normalized or "dist-packages" in normalized


def resolve_storage_root(package_root: Path) -> Path:
    """Determine where mutable data should be stored.

    Data lives alongside the source tree when run from a checkout.  An
    explicit override or an installed (read-only) package moves it elsewhere.
    """

    override = os.getenv("RANGER_DATA_ROOT") or os.getenv("RANGER_STORAGE_ROOT")
    if override:
        return Path(override).expanduser().resolve()

    if _is_site_packages(package_root) or not os.access(package_root, os.W_OK):
        return Path.cwd().resolve()

    return package_root


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------


def _format_toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def _toml_dumps(data: Mapping[str, Any]) -> str:
    """Serialise a shallow document of scalars and one level of tables."""

    output: list[str] = []
    tables: list[tuple[str, Mapping[str, Any]]] = []
    for key, value in sorted(data.items()):
        if isinstance(value, Mapping):
            tables.append((key, value))
        elif value is not None:
            output.append(f"{key} = {_format_toml_value(value)}")
    for key, table in tables:
        if output:
            output.append("")
        output.append(f"[{key}]")
        for name, item in sorted(table.items()):
            if item is not None:
                output.append(f"{name} = {_format_toml_value(item)}")
    return "\n".join(output) + "\n"


def _read_toml(path: Path) -> Any:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except (FileNotFoundError, tomllib.TOMLDecodeError, OSError):
        return None


def _atomic_write(path: Path, data: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf8", dir=path.parent, delete=False
        ) as handle:
            temp_path = Path(handle.name)
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
        temp_path = None
    finally:
        if temp_path is not None:
            try:
                temp_path.unlink()
            except FileNotFoundError:
                pass


def _write_toml(path: Path, payload: Mapping[str, Any]) -> None:
    _atomic_write(path, _toml_dumps(payload))


def _json_dumps(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n"


def _read_json(path: Path) -> Any:
    """Return the parsed document, or ``None`` when the file is missing.

    Parse errors propagate so callers can tell corruption from absence.
    """

    try:
        with path.open("r", encoding="utf8") as handle:
            return json.load(handle)
    except FileNotFoundError:
        return None


def _write_json(path: Path, payload: Any) -> None:
    _atomic_write(path, _json_dumps(payload))


# ---------------------------------------------------------------------------
# Configuration handling
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class CollectionConfig:
    name: str
    path: str
    version: int
    format: str = "json"
    quota_bytes: int | None = None
    version_scope: str | None = None
    migration_key: str | None = None

    @property
    def suffix(self) -> str:
        return f".{self.format}"

    def requires_guild(self) -> bool:
        return "{guild_id}" in self.path or (
            self.version_scope is not None and "{guild_id}" in self.version_scope
        )

    def resolve_path(self, base: Path, *, guild_id: str | None = None, key: str) -> Path:
        mapping: dict[str, str] = {"key": key}
        if "{guild_id}" in self.path:
            if guild_id is None:
                raise ValueError(f"Collection {self.name!r} requires a guild id")
            mapping["guild_id"] = guild_id
        return base / self.path.format(**mapping)

    def resolve_scope_path(self, base: Path, *, guild_id: str | None = None) -> Path:
        template = self.version_scope or str(Path(self.path).parent)
        mapping: dict[str, str] = {}
        if "{guild_id}" in template:
            if guild_id is None:
                raise ValueError(f"Collection {self.name!r} requires a guild id")
            mapping["guild_id"] = guild_id
        return (base / template.format(**mapping)).resolve()

    def record_directory(self, base: Path, *, guild_id: str | None = None) -> Path:
        return self.resolve_path(base, guild_id=guild_id, key="__dummy__").parent


def load_storage_config(path: Path) -> dict[str, CollectionConfig]:
    try:
        with path.open("rb") as handle:
            payload = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise RuntimeError(f"Missing storage configuration at {path}") from exc

    collections: dict[str, CollectionConfig] = {}
    raw_collections = payload.get("collections") if isinstance(payload, Mapping) else None
    if not isinstance(raw_collections, Mapping):
        raise RuntimeError("storage configuration must define a [collections] table")

    for name, options in raw_collections.items():
        if not isinstance(options, Mapping):
            continue
        path_value = str(options.get("path", "")).strip()
        if not path_value:
            raise RuntimeError(f"Collection {name!r} is missing a path entry")
        if "{key}" not in path_value:
            raise RuntimeError(f"Collection {name!r} must store one record per {{key}}")
        format_value = str(options.get("format", "json")).strip().lower()
        if format_value != "json":
            raise RuntimeError(f"Collection {name!r} uses unsupported format {format_value!r}")
        quota = options.get("quota_bytes")
        version_scope = options.get("version_scope")
        migration_key = options.get("migration")
        collections[str(name)] = CollectionConfig(
            name=str(name),
            path=path_value,
            version=int(options.get("version", 0)),
            format=format_value,
            quota_bytes=int(quota) if quota else None,
            version_scope=str(version_scope) if version_scope is not None else None,
            migration_key=str(migration_key) if migration_key else str(name),
        )
    return collections


# ---------------------------------------------------------------------------
# Migration runner
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class MigrationModule:
    from_version: int
    to_version: int
    apply: Callable[["MigrationContext"], None]
    description: str


@dataclass(slots=True)
class MigrationContext:
    guild_id: str | None
    collection: CollectionConfig
    base: Path
    scope_path: Path

    def record_paths(self) -> list[Path]:
        directory = self.collection.record_directory(self.base, guild_id=self.guild_id)
        if not directory.exists():
            return []
        return sorted(directory.glob(f"*{self.collection.suffix}"))

    def log(self, message: str) -> None:
        log.info("[migration:%s] %s", self.collection.name, message)


class MissingMigrationError(RuntimeError):
    pass


class VersionManager:
    def __init__(
        self,
        *,
        base: Path,
        collections: Mapping[str, CollectionConfig],
        migrations_base: Path,
    ) -> None:
        self._base = base
        self._collections = collections
        self._migrations_base = migrations_base
        self._cache: dict[tuple[str, str | None], int] = {}
        self._modules: dict[str, list[MigrationModule]] = {}

    def ensure(self, collection: CollectionConfig, guild_id: str | None) -> None:
        migration_key = collection.migration_key or collection.name
        scope_key = (migration_key, guild_id)
        current = self._cache.get(scope_key)
        if current is None:
            current = self._read_version(collection, guild_id)
            self._cache[scope_key] = current
        target = collection.version
        if current >= target:
            return

        migrations = self._load_migrations(migration_key)
        plan: list[MigrationModule] = []
        version = current
        while version < target:
            step = next((m for m in migrations if m.from_version == version), None)
            if step is None:
                raise MissingMigrationError(
                    f"Missing migration for {collection.name!r}: {version} -> {target}"
                )
            plan.append(step)
            version = step.to_version

        scope_path = collection.resolve_scope_path(self._base, guild_id=guild_id)
        scope_path.mkdir(parents=True, exist_ok=True)
        context = MigrationContext(
            guild_id=guild_id,
            collection=collection,
            base=self._base,
            scope_path=scope_path,
        )
        for step in plan:
            log.info(
                "Migrating %s (guild %s) %d -> %d: %s",
                collection.name,
                guild_id,
                step.from_version,
                step.to_version,
                step.description,
            )
            step.apply(context)
            self._cache[scope_key] = step.to_version
        self._write_version(collection, guild_id, target)
        self._cache[scope_key] = target

    def _versions_file(self, collection: CollectionConfig, guild_id: str | None) -> Path:
        scope_path = collection.resolve_scope_path(self._base, guild_id=guild_id)
        return scope_path / "schema_version.toml"

    def _read_version(self, collection: CollectionConfig, guild_id: str | None) -> int:
        payload = _read_toml(self._versions_file(collection, guild_id))
        if not isinstance(payload, Mapping):
            return 0
        collections = payload.get("collections")
        if not isinstance(collections, Mapping):
            return 0
        version = collections.get(collection.migration_key or collection.name)
        try:
            return int(version)
        except (TypeError, ValueError):
            return 0

    def _write_version(
        self, collection: CollectionConfig, guild_id: str | None, version: int
    ) -> None:
        path = self._versions_file(collection, guild_id)
        payload = _read_toml(path)
        if not isinstance(payload, MutableMapping):
            payload = {}
        collections = payload.get("collections")
        if not isinstance(collections, MutableMapping):
            collections = {}
        collections[collection.migration_key or collection.name] = int(version)
        payload["collections"] = collections
        _write_toml(path, payload)

    def _load_migrations(self, collection: str) -> list[MigrationModule]:
        cached = self._modules.get(collection)
        if cached is not None:
            return cached
        directory = self._migrations_base / collection
        modules: list[MigrationModule] = []
        if directory.is_dir():
            for path in sorted(directory.glob("*.py")):
                if path.name.startswith("__"):
                    continue
                spec = importlib.util.spec_from_file_location(
                    f"migrations.{collection}.{path.stem}", path
                )
                if spec is None or spec.loader is None:
                    continue
                module = importlib.util.module_from_spec(spec)
                try:
                    spec.loader.exec_module(module)  # type: ignore[assignment]
                except Exception:
                    log.exception("Failed to import migration %s", path)
                    continue
                from_version = getattr(module, "FROM_VERSION", None)
                to_version = getattr(module, "TO_VERSION", None)
                apply = getattr(module, "apply", None)
                if not isinstance(from_version, int) or not isinstance(to_version, int):
                    continue
                if not callable(apply):
                    continue
                modules.append(
                    MigrationModule(
                        from_version=from_version,
                        to_version=to_version,
                        apply=apply,
                        description=str(getattr(module, "DESCRIPTION", path.stem)),
                    )
                )
        modules.sort(key=lambda module: module.from_version)
        self._modules[collection] = modules
        return modules


# ---------------------------------------------------------------------------
# DataStore implementation
# ---------------------------------------------------------------------------


class DataStore:
    """Asynchronous keyed record store routed through the collection config."""

    def __init__(
        self,
        *,
        package_root: Path | None = None,
        storage_root: Path | None = None,
        config_path: Path | None = None,
    ) -> None:
        self._package_root = package_root or Path(__file__).resolve().parent.parent
        self._storage_root = storage_root or resolve_storage_root(self._package_root)
        self._config_path = config_path or self._package_root / "config" / "storage.toml"
        self._collections = load_storage_config(self._config_path)
        self._versions = VersionManager(
            base=self._storage_root,
            collections=self._collections,
            migrations_base=self._package_root / "migrations",
        )
        self._lock = asyncio.Lock()

    @property
    def storage_root(self) -> Path:
        return self._storage_root

    @property
    def collections(self) -> Mapping[str, CollectionConfig]:
        return self._collections

    async def load(
        self, guild_id: int | str | None, collection: str, key: str, default: Any = None
    ) -> Any:
        """Return the stored record for ``key``, or ``default``.

        A missing record and an unreadable one both yield ``default``; the
        latter is logged.
        """

        async with self._lock:
            config = self._collection(collection)
            guild_key = self._guild_key(guild_id, config)
            try:
                self._versions.ensure(config, guild_key)
            except Exception:
                log.exception("Could not prepare %s records for guild %s", collection, guild_key)
                return deepcopy(default)
            path = self._record_path(config, guild_key, key)
            try:
                payload = _read_json(path)
            except (OSError, ValueError) as exc:
                log.warning("Could not read %s record %r at %s: %s", collection, key, path, exc)
                return deepcopy(default)
            if payload is None:
                return deepcopy(default)
            return payload

    async def save(
        self, guild_id: int | str | None, collection: str, key: str, value: Any
    ) -> SaveResult:
        async with self._lock:
            try:
                self._write_record(collection, guild_id, key, value)
            except StorageQuotaExceeded as exc:
                log.error("Storage quota exceeded saving %s record %r: %s", collection, key, exc)
                return SaveResult(ok=False, quota_exceeded=True, error=str(exc))
            except StorageError as exc:
                log.error("Failed to save %s record %r: %s", collection, key, exc)
                return SaveResult(ok=False, error=str(exc))
            return SaveResult(ok=True)

    async def remove(self, guild_id: int | str | None, collection: str, key: str) -> bool:
        async with self._lock:
            config = self._collection(collection)
            guild_key = self._guild_key(guild_id, config)
            path = self._record_path(config, guild_key, key)
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            except OSError:
                log.exception("Failed to remove %s record %r", collection, key)
                return False
            return True

    async def keys(self, guild_id: int | str | None, collection: str) -> list[str]:
        async with self._lock:
            config = self._collection(collection)
            guild_key = self._guild_key(guild_id, config)
            self._versions.ensure(config, guild_key)
            directory = config.record_directory(self._storage_root, guild_id=guild_key)
            if not directory.exists():
                return []
            return [
                _decode_collection_key(path.stem)
                for path in sorted(directory.glob(f"*{config.suffix}"))
            ]

    def _write_record(
        self, collection: str, guild_id: int | str | None, key: str, value: Any
    ) -> None:
        config = self._collection(collection)
        guild_key = self._guild_key(guild_id, config)
        try:
            self._versions.ensure(config, guild_key)
        except Exception as exc:
            log.exception("Could not prepare %s records for guild %s", collection, guild_key)
            raise StorageError(f"storage is not ready: {exc}") from exc
        try:
            data = _json_dumps(deepcopy(value))
        except (TypeError, ValueError) as exc:
            raise StorageError(f"record is not serialisable: {exc}") from exc
        size = len(data.encode("utf8"))
        if config.quota_bytes is not None and size > config.quota_bytes:
            raise StorageQuotaExceeded(
                f"record is {size} bytes, quota is {config.quota_bytes} bytes"
            )
        path = self._record_path(config, guild_key, key)
        try:
            _atomic_write(path, data)
        except OSError as exc:
            if exc.errno in _QUOTA_ERRNOS:
                raise StorageQuotaExceeded(str(exc)) from exc
            raise StorageError(str(exc)) from exc

    def _collection(self, name: str) -> CollectionConfig:
        try:
            return self._collections[name]
        except KeyError as exc:
            raise KeyError(f"Unknown collection: {name}") from exc

    def _guild_key(self, guild_id: int | str | None, config: CollectionConfig) -> str | None:
        if config.requires_guild():
            if guild_id is None:
                raise ValueError(f"Collection {config.name!r} requires a guild id")
            return str(guild_id)
        return str(guild_id) if guild_id is not None else None

    def _record_path(self, config: CollectionConfig, guild_id: str | None, key: str) -> Path:
        return config.resolve_path(
            self._storage_root, guild_id=guild_id, key=_encode_collection_key(str(key))
        )


def _encode_collection_key(key: str) -> str:
    return quote(str(key), safe="")


def _decode_collection_key(filename: str) -> str:
    return unquote(filename)


__all__ = [
    "CollectionConfig",
    "DataStore",
    "MissingMigrationError",
    "SaveResult",
    "StorageError",
    "StorageQuotaExceeded",
    "load_storage_config",
    "resolve_storage_root",
]
