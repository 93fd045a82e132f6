"""SessionRegistry - single source of truth for session records.

Shared between the background monitor and foreground commands (start, stop,
list, cleanup), which run in separate processes. Every mutation rewrites the
whole YAML document and every read parses it afresh, so no caller ever holds
a reference into registry state.
"""

import contextlib
import fcntl
import logging
import os
import tempfile
import threading
from collections.abc import Iterator
from pathlib import Path

import yaml
from pydantic import ValidationError

from branchwatch.models.session import SessionRecord

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Base class for registry failures."""


class RegistryPersistenceError(RegistryError):
    """Raised when the registry document could not be written."""


class DuplicateBranchError(RegistryError):
    """Raised when adding a live record for a branch that already has one."""

    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(f"a live session for branch '{branch}' is already registered")


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Writers are preferred: once a writer is waiting, new readers block so
    a steady stream of snapshot reads cannot starve a mutation.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextlib.contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextlib.contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def atomic_write_text(path: Path, content: str) -> None:
    """Write content to path via a temp file and rename.

    Readers see either the old document or the new one, never a partial.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            with contextlib.suppress(OSError):
                tmp_path.unlink()


class SessionRegistry:
    """Thread-safe, persisted, ordered collection of SessionRecords.

    The YAML document is the only state. The background monitor and every
    foreground command hold their own SessionRegistry on the same path, so
    each read re-parses the document under a shared file lock and each
    mutation re-reads, modifies, and rewrites it under an exclusive one.

    A failed write raises RegistryPersistenceError and leaves the previous
    document in place.
    """

    def __init__(self, path: str | Path):
        """Initialize the registry.

        Args:
            path: Location of the YAML registry document. A sibling
                "<name>.lock" file serializes access across processes.
        """
        self.path = Path(path)
        self.lock_path = self.path.with_name(f"{self.path.name}.lock")
        self._lock = ReadWriteLock()

    @contextlib.contextmanager
    def _file_lock(self, operation: int) -> Iterator[None]:
        """Hold an flock on the sidecar lock file.

        Args:
            operation: fcntl.LOCK_SH for reads, fcntl.LOCK_EX for mutations.

        Raises:
            RegistryPersistenceError: If the lock file could not be opened.
        """
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            lock_fd = open(self.lock_path, "a")
        except OSError as e:
            raise RegistryPersistenceError(f"cannot open lock file {self.lock_path}: {e}") from e

        try:
            fcntl.flock(lock_fd.fileno(), operation)
            yield
        finally:
            fcntl.flock(lock_fd.fileno(), fcntl.LOCK_UN)
            lock_fd.close()

    # =========================================================================
    # Reads
    # =========================================================================

    def load(self) -> list[SessionRecord]:
        """Read every record from disk, in insertion order.

        A missing file yields no records. An unreadable or corrupt document
        is logged and also yields no records.
        """
        with self._lock.read(), self._file_lock(fcntl.LOCK_SH):
            return self._read_document()

    def get_all(self) -> list[SessionRecord]:
        """Return a snapshot of every record, in insertion order."""
        return self.load()

    def find_by_id(self, session_id: str) -> SessionRecord | None:
        """Return the record with this id, or None."""
        for session in self.load():
            if session.id == session_id:
                return session
        return None

    def find_by_branch(self, branch: str) -> SessionRecord | None:
        """Return the record for a branch, or None.

        Live records win over stopped ones for the same branch.
        """
        matches = [s for s in self.load() if s.branch == branch]
        if not matches:
            return None
        live = [s for s in matches if s.is_live]
        return (live or matches)[0]

    def __len__(self) -> int:
        return len(self.load())

    # =========================================================================
    # Mutations
    # =========================================================================

    @contextlib.contextmanager
    def _mutation(self) -> Iterator[list[SessionRecord]]:
        """Hold both locks and yield the current records from disk."""
        with self._lock.write(), self._file_lock(fcntl.LOCK_EX):
            yield self._read_document()

    def add(self, record: SessionRecord) -> SessionRecord:
        """Add a record and persist.

        Args:
            record: The record to add. The registry stores its own copy.

        Returns:
            The record that was passed in.

        Raises:
            DuplicateBranchError: If a live record already holds the branch.
            RegistryPersistenceError: If the document could not be written.
        """
        with self._mutation() as sessions:
            if record.is_live and any(s.branch == record.branch and s.is_live for s in sessions):
                raise DuplicateBranchError(record.branch)
            self._commit([*sessions, record])
        logger.info(f"Registered session {record.id} for branch {record.branch}")
        return record

    def remove(self, session_id: str) -> bool:
        """Remove the record with this id and persist.

        Returns:
            True if a record was removed, False if the id was unknown.

        Raises:
            RegistryPersistenceError: If the document could not be written.
        """
        with self._mutation() as sessions:
            remaining = [s for s in sessions if s.id != session_id]
            if len(remaining) == len(sessions):
                return False
            self._commit(remaining)
        logger.info(f"Removed session {session_id}")
        return True

    def update(self, record: SessionRecord) -> bool:
        """Replace the record with the same id, in place, and persist.

        A record removed by another process is not resurrected.

        Returns:
            True if a record was replaced, False (no write) if the id was unknown.

        Raises:
            RegistryPersistenceError: If the document could not be written.
        """
        with self._mutation() as sessions:
            for i, session in enumerate(sessions):
                if session.id == record.id:
                    sessions[i] = record
                    break
            else:
                return False
            self._commit(sessions)
        return True

    def clear(self) -> None:
        """Remove every record and persist."""
        with self._mutation():
            self._commit([])

    # =========================================================================
    # Persistence
    # =========================================================================

    def _commit(self, sessions: list[SessionRecord]) -> None:
        """Write sessions to disk. Must be called inside _mutation()."""
        document = {"sessions": [s.model_dump(mode="json") for s in sessions]}
        try:
            atomic_write_text(
                self.path,
                yaml.safe_dump(document, default_flow_style=False, sort_keys=False),
            )
        except OSError as e:
            logger.error(f"Failed to save sessions to {self.path}: {e}")
            raise RegistryPersistenceError(f"failed to save sessions to {self.path}: {e}") from e

    def _read_document(self) -> list[SessionRecord]:
        if not self.path.exists():
            return []

        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not read sessions from {self.path}: {e}")
            return []

        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed sessions document {self.path}")
            return []

        sessions = []
        for entry in data.get("sessions") or []:
            try:
                sessions.append(SessionRecord(**entry))
            except (TypeError, ValidationError) as e:
                logger.warning(f"Skipping invalid session entry in {self.path}: {e}")
        return sessions
