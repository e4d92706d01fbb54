import logging
import socket

import pytest

from transfer_harness.src.exceptions import PortBindError
from transfer_harness.src.port_service import PortReservationService, is_port_bindable, port_lock_name


def test_reserve_holds_lock_for_block_and_releases(reservations: PortReservationService, free_port: int) -> None:
    with reservations.reserve(free_port) as port:
        assert port == free_port
        status = reservations.query_lock_status(free_port)
        assert status["is_locked"] is True
        assert status["lock_name"] == port_lock_name(free_port)

    assert reservations.query_lock_status(free_port)["is_locked"] is False


def test_nested_reserve_of_same_port_fails(reservations: PortReservationService, free_port: int) -> None:
    with reservations.reserve(free_port):
        with pytest.raises(PortBindError) as excinfo:
            with reservations.reserve(free_port):
                pass
    assert excinfo.value.details["port"] == free_port
    assert excinfo.value.error_code == "PORT_BIND"


def test_port_in_use_raises_and_leaves_no_lock(reservations: PortReservationService, free_port: int) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as squatter:
        squatter.bind(("127.0.0.1", free_port))
        squatter.listen()
        assert is_port_bindable("127.0.0.1", free_port) is False

        with pytest.raises(PortBindError, match="already in use"):
            with reservations.reserve(free_port):
                pass

    assert reservations.list_reservations() == []


def test_timeouts_inside_block_are_not_rewrapped(reservations: PortReservationService, free_port: int) -> None:
    with pytest.raises(TimeoutError):
        with reservations.reserve(free_port):
            raise TimeoutError("page never answered")


def test_reserve_logs_lifecycle(reservations: PortReservationService, free_port: int, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO):
        with reservations.reserve(free_port):
            pass
    assert f"reserved 127.0.0.1:{free_port}" in caplog.text.lower()
    assert "released reservation" in caplog.text.lower()
