import asyncio
from typing import Awaitable, List

import click

from transfer_harness.logger import get_or_init_log_factory
from transfer_harness.sites.tests.fixture_server import FixtureServer, load_app
from transfer_harness.sites.tests.registry import TEST_REGISTRY, TRANSFER_PAGE_MODULE
from transfer_harness.sites.tests.scenario import Scenario, ScenarioRegistry
from transfer_harness.src.port_service import PortReservationService
from transfer_harness.src.runner import NavigationStrategy, ScenarioResult, run_suite
from transfer_harness.src.utils.constants import LOG_DIR, LOG_LEVEL, STATIC_HOST, STATIC_PORT


def _available_groups() -> str:
    return ", ".join(sorted(TEST_REGISTRY.keys()))


def _get_registry(test_group: str) -> ScenarioRegistry:
    try:
        return TEST_REGISTRY[test_group]
    except KeyError as exc:
        raise click.BadParameter(
            f"Unknown test group '{test_group}'. Available groups: {_available_groups()}"
        ) from exc


def _resolve_scenarios(test_group: str, scenario_numbers: List[int]) -> List[Scenario]:
    try:
        return _get_registry(test_group).resolve(scenario_numbers)
    except KeyError as exc:
        raise click.BadParameter(f"{exc.args[0]} (group '{test_group}')") from exc


def _print_results(results: List[ScenarioResult]) -> None:
    for result in results:
        status = "PASS" if result.passed else "FAIL"
        print(f"[{status}] {result.scenario.number} {result.scenario.title} ({result.navigation.value})")
        if result.message_text:
            print(f"    message: {result.message_text.strip()}")
        if result.captured_request is not None and result.captured_request.body is not None:
            print(f"    payload: {result.captured_request.body}")
        if result.error:
            print(f"    error:   {result.error}")
        if result.screenshot:
            print(f"    screenshot: {result.screenshot}")


async def serve_fixture(host: str, port: int) -> None:
    server = FixtureServer(load_app(TRANSFER_PAGE_MODULE), host, port)
    await server.start()
    print(f"Transfer page running at http://{host}:{port}. Press Ctrl+C to stop.")
    try:
        await server.wait_until_stopped()
    finally:
        await server.stop()


def _run_cli_coro(coro: Awaitable, failure_message: str):
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        print("Received shutdown signal, exiting.")
        return None
    except Exception as exc:
        print(f"{failure_message}: {exc}")
        raise


@click.group(invoke_without_command=True)
@click.pass_context
def cli(ctx):
    """Run the money-transfer interception scenarios."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command(name="run_test")
@click.argument("tests", nargs=-1, type=int)
@click.option(
    "--group",
    "test_group",
    default="transfer",
    show_default=True,
    type=click.Choice(sorted(TEST_REGISTRY.keys())),
)
@click.option(
    "--navigation",
    type=click.Choice([s.value for s in NavigationStrategy]),
    default=NavigationStrategy.HTTP.value,
    show_default=True,
    help="Load the page from the static host (http) or straight from disk (file).",
)
@click.option(
    "--headless/--no-headless",
    default=True,
    show_default=True,
    help="Launch the browser in headless mode.",
)
@click.option("--host", default=STATIC_HOST, help="Static host address.")
@click.option("--port", default=STATIC_PORT, type=int, help="Static host port.")
def run_test_command(tests, test_group, navigation, headless, host, port):
    """Execute every scenario, or only the given scenario numbers."""
    scenarios = _resolve_scenarios(test_group, [*tests])
    log_factory = get_or_init_log_factory(LOG_DIR, log_level=LOG_LEVEL, new=True)
    results = _run_cli_coro(
        run_suite(
            scenarios,
            navigation=NavigationStrategy(navigation),
            host=host,
            port=port,
            headless=headless,
            screenshot_dir=log_factory.get_screenshot_dir(),
        ),
        "run_test failed",
    )
    if results is None:
        raise SystemExit(130)
    _print_results(results)
    print(f"Logs: {log_factory.get_log_dir()}")
    if not all(result.passed for result in results):
        raise SystemExit(1)


@cli.command(name="serve")
@click.option("--host", default=STATIC_HOST, help="Static host address.")
@click.option("--port", default=STATIC_PORT, type=int, help="Static host port.")
def serve_command(host, port):
    """Serve the transfer page until interrupted."""
    get_or_init_log_factory(LOG_DIR, log_level=LOG_LEVEL)
    _run_cli_coro(serve_fixture(host, port), "serve failed")


@cli.command(name="list")
@click.argument("tests", nargs=-1, type=int)
@click.option(
    "--group",
    "test_group",
    default="transfer",
    show_default=True,
    type=click.Choice(sorted(TEST_REGISTRY.keys())),
)
def list_command(tests, test_group):
    """List registered scenarios."""
    scenarios = _resolve_scenarios(test_group, [*tests])
    for idx, scenario in enumerate(scenarios):
        print(f"[{scenario.number}] {scenario.title} ({scenario.slug})")
        print(f"    {scenario.description}")
        if idx != len(scenarios) - 1:
            print()


@cli.command(name="locks")
def locks_command():
    """Show port reservations held in the lock database."""
    reservations = PortReservationService().list_reservations()
    if not reservations:
        print("No port reservations.")
        return
    for lock in reservations:
        state = "held" if lock["is_locked"] else "stale"
        print(f"{lock['lock_name']}: {state} by PID {lock['holder_pid']} ({lock['holder_info']})")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
