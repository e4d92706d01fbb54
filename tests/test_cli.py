from click.testing import CliRunner

import cli as harness_cli
from cli import cli


def test_list_shows_all_scenarios() -> None:
    result = CliRunner().invoke(cli, ["list"])

    assert result.exit_code == 0
    assert "[1] Success - Mock 200 OK response (success)" in result.output
    assert "[4] Network failure - aborted request (network_failure)" in result.output


def test_list_selected_scenarios_in_given_order() -> None:
    result = CliRunner().invoke(cli, ["list", "3", "2"])

    assert result.exit_code == 0
    assert result.output.index("[3]") < result.output.index("[2]")
    assert "[1]" not in result.output


def test_unknown_scenario_number_is_usage_error() -> None:
    result = CliRunner().invoke(cli, ["run_test", "9"])

    assert result.exit_code == 2
    assert "Unknown scenario numbers: 9" in result.output


def test_unknown_group_is_rejected() -> None:
    result = CliRunner().invoke(cli, ["list", "--group", "refunds"])
    assert result.exit_code == 2


def test_locks_with_empty_database(tmp_path, monkeypatch) -> None:
    from transfer_harness.src.port_service import PortReservationService

    monkeypatch.setattr(
        harness_cli,
        "PortReservationService",
        lambda: PortReservationService(lock_db_path=tmp_path / "locks.db"),
    )
    result = CliRunner().invoke(cli, ["locks"])

    assert result.exit_code == 0
    assert "No port reservations." in result.output


def test_no_subcommand_prints_help() -> None:
    result = CliRunner().invoke(cli, [])
    assert result.exit_code == 0
    assert "run_test" in result.output
