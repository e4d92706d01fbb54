import socket
from pathlib import Path

import pytest

from transfer_harness.src.port_service import PortReservationService


@pytest.fixture()
def lock_db_path(tmp_path: Path) -> Path:
    """Provide a temporary SQLite lock database path."""
    return tmp_path / "test_locks.db"


@pytest.fixture()
def reservations(lock_db_path: Path) -> PortReservationService:
    return PortReservationService(lock_db_path=lock_db_path, lease_seconds=60, blocking_timeout=0.3)


@pytest.fixture()
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
