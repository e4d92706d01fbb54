import logging
import os
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS leases (
        name TEXT PRIMARY KEY,
        holder_pid INTEGER NOT NULL,
        acquired_at REAL NOT NULL,
        expires_at REAL NOT NULL,
        holder_info TEXT
    )
"""

_POLL_INTERVAL = 0.1


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # exists, owned by someone else
        return True
    except OSError:
        return False
    return True


@dataclass(frozen=True)
class Lease:
    name: str
    holder_pid: int
    acquired_at: float
    expires_at: float
    holder_info: Optional[str] = None

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def is_stale(self, now: float) -> bool:
        return self.is_expired(now) or not _pid_alive(self.holder_pid)

    def status(self, now: float) -> Dict[str, Any]:
        alive = _pid_alive(self.holder_pid)
        expired = self.is_expired(now)
        return {
            "is_locked": alive and not expired,
            "lock_name": self.name,
            "holder_pid": self.holder_pid,
            "holder_info": self.holder_info,
            "acquired_at": self.acquired_at,
            "expires_at": self.expires_at,
            "time_held_seconds": now - self.acquired_at,
            "time_until_expiry_seconds": max(0.0, self.expires_at - now),
            "is_expired": expired,
            "is_holder_alive": alive,
        }


class SQLiteLockManager:
    """
    Named leases kept in a SQLite table, shared by every process that
    points at the same database file.

    A lease belongs to a PID and runs out after `timeout` seconds. A lease
    that ran out, or whose holder process is gone, is stale and the next
    acquirer takes it over. Only the holder (or force_release_lock) deletes
    a live lease.
    """

    def __init__(self, db_path: Path | str = Path(".harness/locks.db")):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger(__name__)
        with self._connect() as conn:
            conn.execute(_SCHEMA)

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are opened explicitly below
        return sqlite3.connect(self.db_path, timeout=5.0, isolation_level=None)

    def _read(self, conn: sqlite3.Connection, name: str) -> Optional[Lease]:
        row = conn.execute(
            "SELECT name, holder_pid, acquired_at, expires_at, holder_info FROM leases WHERE name = ?",
            (name,),
        ).fetchone()
        return Lease(*row) if row else None

    @contextmanager
    def acquire_lock(
        self,
        lock_name: str,
        timeout: float = 30,
        blocking_timeout: float = 10,
        holder_info: Optional[str] = None,
    ) -> Iterator[None]:
        """
        Hold `lock_name` for the duration of the with-block.

        Args:
            lock_name: Lease name, e.g. "port:3000"
            timeout: Lease length in seconds
            blocking_timeout: How long to poll while a live holder has it

        Raises:
            TimeoutError: the lease is still held after blocking_timeout
        """
        pid = os.getpid()
        deadline = time.monotonic() + blocking_timeout
        while not self._try_acquire(lock_name, pid, timeout, holder_info):
            if time.monotonic() > deadline:
                holder = self.query_lock_status(lock_name)
                raise TimeoutError(
                    f"Could not acquire lock '{lock_name}' within {blocking_timeout}s "
                    f"(held by PID {holder.get('holder_pid')}: {holder.get('holder_info')})"
                )
            self.logger.debug("Waiting for lock '%s'", lock_name)
            time.sleep(_POLL_INTERVAL)

        try:
            yield
        finally:
            self._release_lock(lock_name, pid)

    def _try_acquire(self, name: str, pid: int, timeout: float, holder_info: Optional[str]) -> bool:
        now = time.time()
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                current = self._read(conn, name)
                if current is not None and not current.is_stale(now):
                    conn.execute("ROLLBACK")
                    return False
                if current is not None:
                    self.logger.warning(
                        "Taking over stale lock '%s' from PID %s", name, current.holder_pid
                    )
                conn.execute(
                    "INSERT OR REPLACE INTO leases (name, holder_pid, acquired_at, expires_at, holder_info) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (name, pid, now, now + timeout, holder_info),
                )
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise
        self.logger.info("Acquired lock '%s' (PID %s)", name, pid)
        return True

    def _release_lock(self, name: str, pid: int) -> None:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM leases WHERE name = ? AND holder_pid = ?", (name, pid))
        if cursor.rowcount:
            self.logger.info("Released lock '%s' (PID %s)", name, pid)
        else:
            self.logger.warning("Lock '%s' was no longer held by PID %s", name, pid)

    def query_lock_status(self, lock_name: str) -> Dict[str, Any]:
        with self._connect() as conn:
            lease = self._read(conn, lock_name)
        if lease is None:
            return {"is_locked": False, "lock_name": lock_name}
        return lease.status(time.time())

    def list_all_locks(self) -> List[Dict[str, Any]]:
        now = time.time()
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT name, holder_pid, acquired_at, expires_at, holder_info FROM leases ORDER BY name"
            ).fetchall()
        return [Lease(*row).status(now) for row in rows]

    def force_release_lock(self, lock_name: str) -> bool:
        """Drop a lease whoever holds it. For clearing stuck locks by hand."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM leases WHERE name = ?", (lock_name,))
        if cursor.rowcount:
            self.logger.warning("Forcefully released lock '%s'", lock_name)
            return True
        return False
