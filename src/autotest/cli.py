"""autotest CLI entry point."""

import asyncio
import logging

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from autotest import __version__
from autotest.config import ConfigurationError
from autotest.runner.reporter import REPORTERS, find_reporter

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
        force=True,
    )


def watch_options(func):
    """Options shared by the watching commands."""
    func = click.option(
        "--debounce",
        "debounce_seconds",
        default=0.25,
        show_default=True,
        help="Seconds without new changes before a batch is handled",
    )(func)
    func = click.option(
        "--poll-interval",
        default=0.5,
        show_default=True,
        help="Seconds between directory scans",
    )(func)
    func = click.option(
        "--reporter",
        "-r",
        type=click.Choice(sorted(REPORTERS), case_sensitive=False),
        default=None,
        help="Reporter to use (default: summary)",
    )(func)
    return func


def _watch(loop) -> None:
    try:
        asyncio.run(loop.run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped watching[/yellow]")


@click.group()
@click.version_option(__version__, prog_name="autotest")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """autotest - rerun tests automatically as code and tests change."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command()
@click.argument("code_path", type=click.Path(file_okay=False))
@click.argument("test_path", type=click.Path(file_okay=False))
@watch_options
def watch(
    code_path: str,
    test_path: str,
    reporter: str | None,
    poll_interval: float,
    debounce_seconds: float,
) -> None:
    """Watch CODE_PATH and TEST_PATH, rerunning tests on every change.

    Changed code reloads everything and reruns all tests; changed test
    files are rerun on their own.
    """
    from autotest.watch.loop import WatchLoop

    try:
        loop = WatchLoop(
            code_path,
            test_path,
            reporter=reporter,
            poll_interval=poll_interval,
            debounce_seconds=debounce_seconds,
        )
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    console.print(f"[bold green]Watching {loop.code_path} and {loop.test_path}[/bold green]")
    _watch(loop)


@cli.command()
@click.argument("path", default=".", type=click.Path(file_okay=False))
@watch_options
def package(
    path: str,
    reporter: str | None,
    poll_interval: float,
    debounce_seconds: float,
) -> None:
    """Watch the package at PATH (configured by its pyproject.toml)."""
    from autotest.package import package_loop

    try:
        loop = package_loop(
            path,
            reporter=reporter,
            poll_interval=poll_interval,
            debounce_seconds=debounce_seconds,
        )
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    console.print(f"[bold green]Watching {loop.code_path} and {loop.test_path}[/bold green]")
    _watch(loop)


@cli.command()
@click.argument("code_path", type=click.Path(file_okay=False))
@click.argument("test_path", type=click.Path(file_okay=False))
@click.option(
    "--reporter",
    "-r",
    type=click.Choice(sorted(REPORTERS), case_sensitive=False),
    default=None,
    help="Reporter to use (default: summary)",
)
def run(code_path: str, test_path: str, reporter: str | None) -> None:
    """Load CODE_PATH and run all tests in TEST_PATH once.

    Exits with status 1 if code fails to load or any test fails.
    """
    from autotest.watch.loop import WatchLoop

    try:
        loop = WatchLoop(code_path, test_path, reporter=reporter)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    outcome = loop.bootstrap()
    if not outcome.success:
        raise SystemExit(1)


@cli.command()
def reporters() -> None:
    """List available reporters."""
    table = Table(title="Reporters")
    table.add_column("Name", style="cyan")
    table.add_column("Description", style="green")

    for name, cls in sorted(REPORTERS.items()):
        table.add_row(name, (cls.__doc__ or "").strip().splitlines()[0])

    console.print(table)
    console.print(f"Default: {find_reporter().name}")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
