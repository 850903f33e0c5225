"""
Backup-safe record store.

Each owner has a directory of named JSON records. Before a record is
overwritten, the current primary file is copied to ``<name>.json.backup``,
so the backup is always the value as of the previous successful write.
Reads fall back to the backup when the primary is missing or unreadable.

Layout::

    <root>/sessions.json                 process-wide records (owner None)
    <root>/users/<owner>/profile.json
    <root>/users/<owner>/profile.json.backup
    <root>/users/<owner>/files/          raw ingested bytes
    <root>/users/<owner>/extracted-text/ plain text per document

Writes to the same (owner, record) pair are serialized with a per-key
re-entrant lock; different owners never contend.
"""

import contextlib
import json
import logging
import os
import re
import shutil
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from .errors import CorruptRecord, StorageFailure
from .types import validate_owner

logger = logging.getLogger(__name__)

USERS_DIR = "users"
RECORD_SUFFIX = ".json"
BACKUP_SUFFIX = ".backup"

# Per-owner blob areas
FILES_AREA = "files"
TEXT_AREA = "extracted-text"
BLOB_AREAS = (FILES_AREA, TEXT_AREA)

_RECORD_NAME_RE = re.compile(r'^[a-z][a-z0-9_-]*$')
_BLOB_NAME_RE = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._-]*$')


class KeyedLocks:
    """One re-entrant lock per key, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[tuple, threading.RLock] = {}

    def get(self, key: tuple) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock


def _backup_path(path: Path) -> Path:
    return path.with_name(path.name + BACKUP_SUFFIX)


class RecordStore:
    """
    File-backed store for named JSON records, scoped by owner.

    ``load`` never raises for missing or corrupt data: it returns None and
    the caller substitutes a default. ``save`` raises StorageFailure when
    the write cannot be completed.
    """

    def __init__(self, root: Path):
        """
        Args:
            root: Base directory. Created if absent; failure to create it
                  is fatal and propagates.
        """
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._locks = KeyedLocks()

    @property
    def root(self) -> Path:
        return self._root

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------

    def owner_dir(self, owner: str) -> Path:
        validate_owner(owner)
        return self._root / USERS_DIR / owner

    def record_path(self, owner: Optional[str], name: str) -> Path:
        if not _RECORD_NAME_RE.match(name):
            raise ValueError(f"Invalid record name: {name!r}")
        base = self._root if owner is None else self.owner_dir(owner)
        return base / f"{name}{RECORD_SUFFIX}"

    def blob_path(self, owner: str, area: str, filename: str) -> Path:
        if area not in BLOB_AREAS:
            raise ValueError(f"Unknown blob area: {area!r}")
        if not _BLOB_NAME_RE.match(filename) or ".." in filename:
            raise ValueError(f"Invalid blob name: {filename!r}")
        return self.owner_dir(owner) / area / filename

    def lock(self, owner: Optional[str], name: str) -> threading.RLock:
        """The lock serializing writers of one (owner, record) pair."""
        return self._locks.get((owner, name))

    def list_owners(self) -> list[str]:
        users = self._root / USERS_DIR
        if not users.is_dir():
            return []
        return sorted(p.name for p in users.iterdir() if p.is_dir())

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def load(
        self,
        owner: Optional[str],
        name: str,
        *,
        schema: Optional[Callable[[Any], Any]] = None,
    ) -> Any:
        """
        Load a record, falling back to its backup.

        Args:
            owner: Owner ID, or None for process-wide records
            name: Record name
            schema: Optional validator applied to the parsed JSON. A value
                    that fails validation is treated like a parse failure.

        Returns:
            The (validated) value, or None when neither copy is usable.
        """
        with self.lock(owner, name):
            path = self.record_path(owner, name)
            who = owner or "<system>"
            primary_failed = False
            try:
                return self._read(path, schema)
            except FileNotFoundError:
                pass
            except CorruptRecord as e:
                primary_failed = True
                logger.warning("Failed to load %s for %s: %s", name, who, e)

            backup = _backup_path(path)
            if not backup.exists():
                if primary_failed:
                    logger.error("No backup available for corrupt %s (%s)", name, who)
                return None
            try:
                value = self._read(backup, schema)
            except (FileNotFoundError, CorruptRecord) as e:
                logger.error("Backup also unreadable for %s (%s): %s", name, who, e)
                return None
            logger.warning("Loaded backup for %s (%s)", name, who)
            return value

    def save(self, owner: Optional[str], name: str, value: Any) -> None:
        """
        Write a record, keeping the previous primary as backup.

        Raises:
            StorageFailure: If the value cannot be serialized or written.
                The primary is restored from the backup (best-effort) when
                the write itself fails.
        """
        with self.lock(owner, name):
            path = self.record_path(owner, name)
            who = owner or "<system>"
            try:
                payload = json.dumps(value, indent=2, ensure_ascii=False)
            except (TypeError, ValueError) as e:
                raise StorageFailure(f"Cannot serialize {name}: {e}") from e

            backup = _backup_path(path)
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                if path.exists():
                    shutil.copyfile(path, backup)
            except OSError as e:
                logger.error("Failed to back up %s for %s: %s", name, who, e)
                raise StorageFailure(f"Failed to save {name}: {e}") from e

            try:
                self._write_atomic(path, payload)
            except OSError as e:
                logger.error("Failed to save %s for %s: %s", name, who, e)
                self._restore_from_backup(path, backup, name, who)
                raise StorageFailure(f"Failed to save {name}: {e}") from e
            logger.debug("Saved %s for %s", name, who)

    def delete(self, owner: Optional[str], name: str) -> bool:
        """Remove a record and its backup. Returns True if anything existed."""
        with self.lock(owner, name):
            path = self.record_path(owner, name)
            existed = False
            for p in (path, _backup_path(path)):
                try:
                    p.unlink()
                    existed = True
                except FileNotFoundError:
                    pass
            return existed

    def exists(self, owner: Optional[str], name: str) -> bool:
        path = self.record_path(owner, name)
        return path.exists() or _backup_path(path).exists()

    # -------------------------------------------------------------------------
    # Blobs
    # -------------------------------------------------------------------------

    def write_blob(self, owner: str, area: str, filename: str, data: bytes) -> Path:
        """Write raw bytes into an owner's blob area. Raises StorageFailure."""
        path = self.blob_path(owner, area, filename)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._write_atomic(path, data)
        except OSError as e:
            raise StorageFailure(f"Failed to write {area}/{filename}: {e}") from e
        return path

    def read_blob(self, owner: str, area: str, filename: str) -> Optional[bytes]:
        path = self.blob_path(owner, area, filename)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def delete_blob(self, owner: str, area: str, filename: str) -> bool:
        path = self.blob_path(owner, area, filename)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _read(path: Path, schema: Optional[Callable[[Any], Any]]) -> Any:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise
        except (OSError, UnicodeDecodeError) as e:
            raise CorruptRecord(f"{path.name}: {e}") from e
        try:
            value = json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptRecord(f"{path.name}: {e}") from e
        if schema is None:
            return value
        try:
            return schema(value)
        except ValueError as e:
            raise CorruptRecord(f"{path.name}: schema validation failed: {e}") from e

    @staticmethod
    def _write_atomic(path: Path, data: str | bytes) -> None:
        """Write via a sibling temp file so a failed write never truncates ``path``."""
        tmp = path.with_name(path.name + ".tmp")
        mode = "wb" if isinstance(data, bytes) else "w"
        encoding = None if isinstance(data, bytes) else "utf-8"
        try:
            with open(tmp, mode, encoding=encoding) as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, path)
        except OSError:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise

    @staticmethod
    def _restore_from_backup(path: Path, backup: Path, name: str, who: str) -> None:
        """Best-effort restore of the primary; failures are logged only."""
        if not backup.exists():
            return
        try:
            shutil.copyfile(backup, path)
            logger.info("Restored %s from backup for %s", name, who)
        except OSError as e:
            logger.error("Failed to restore %s from backup for %s: %s", name, who, e)
