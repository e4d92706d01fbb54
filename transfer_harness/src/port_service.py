import logging
import os
import socket
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List

from transfer_harness.src.exceptions import PortBindError
from transfer_harness.src.utils.constants import (
    LOCK_DB_PATH,
    PORT_LOCK_BLOCKING_TIMEOUT,
    PORT_LOCK_LEASE_SECONDS,
)
from transfer_harness.src.utils.lock import SQLiteLockManager


def port_lock_name(port: int) -> str:
    return f"port:{port}"


def is_port_bindable(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        # same flag uvicorn binds with, so TIME_WAIT leftovers of a previous run don't count
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError:
            return False
        return True


class PortReservationService:
    """
    Gives one suite exclusive ownership of the static host port.

    The reservation is a named SQLite lock (so a second suite in another
    process waits, then fails) followed by a bind probe (so a port held by
    an unrelated process fails fast). Release happens when the reserve()
    block exits, however it exits.
    """

    def __init__(
        self,
        lock_db_path: Path | str = LOCK_DB_PATH,
        lease_seconds: float = PORT_LOCK_LEASE_SECONDS,
        blocking_timeout: float = PORT_LOCK_BLOCKING_TIMEOUT,
        logger: logging.Logger | None = None,
    ):
        self.lease_seconds = lease_seconds
        self.blocking_timeout = blocking_timeout
        self.logger = logger or logging.getLogger(__name__)
        self.lock_manager = SQLiteLockManager(lock_db_path)

    @contextmanager
    def reserve(self, port: int, host: str = "127.0.0.1") -> Iterator[int]:
        acquired = False
        try:
            with self.lock_manager.acquire_lock(
                port_lock_name(port),
                timeout=self.lease_seconds,
                blocking_timeout=self.blocking_timeout,
                holder_info=f"PID {os.getpid()} serving {host}:{port}",
            ):
                acquired = True
                if not is_port_bindable(host, port):
                    raise PortBindError(host, port, "address already in use")
                self.logger.info("Reserved %s:%s", host, port)
                try:
                    yield port
                finally:
                    self.logger.info("Released reservation on %s:%s", host, port)
        except TimeoutError as exc:
            if acquired:
                raise
            raise PortBindError(host, port, str(exc)) from exc

    def query_lock_status(self, port: int) -> Dict[str, Any]:
        return self.lock_manager.query_lock_status(port_lock_name(port))

    def list_reservations(self) -> List[Dict[str, Any]]:
        return [
            lock for lock in self.lock_manager.list_all_locks()
            if lock["lock_name"].startswith("port:")
        ]
