import logging
import os
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

from . import __version__
from .buffers import MANIFEST_NAME, open_buffer
from .checker import create_context, run_check
from .cli_config import create_sample_config, load_config
from .error_handling import setup_error_handling
from .reporting import UpdateReporter
from .structured_logging import StructuredFormatter

console = Console()


def configure_logging(config, verbose: bool) -> None:
    """Attach log handlers according to the logging config section."""
    level = logging.DEBUG if verbose else getattr(
        logging, config.logging.log_level.upper(), logging.WARNING
    )
    formatter = (
        StructuredFormatter()
        if config.logging.structured
        else logging.Formatter(config.logging.log_format)
    )
    setup_error_handling(
        log_level=level,
        formatter=formatter,
        log_file=config.logging.log_file_path,
        stream=verbose,
    )


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def cli(ctx, version):
    """
    📦 hexcheck: find outdated Hex dependencies in a mix.exs

    Looks up every dependency declared in the manifest on hex.pm and marks
    the lines that have a newer release.
    """
    if version:
        console.print(f"hexcheck version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@cli.command()
@click.argument("file_path", required=False, type=click.Path(dir_okay=False))
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file (JSON, YAML or TOML)",
)
@click.option(
    "--output-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default="console",
    help="Output format for results",
    show_default=True,
)
@click.option("--quiet", "-q", is_flag=True, help="Only show errors and results")
@click.option(
    "--verbose", "-v", is_flag=True, help="Write diagnostic logs to stderr"
)
def check(
    file_path: Optional[str],
    config_path: Optional[str],
    output_format: str,
    quiet: bool,
    verbose: bool,
) -> None:
    """
    Check a manifest for dependencies with newer releases.

    FILE_PATH is the buffer being looked at. When it is not a mix.exs, the
    mix.exs in the current directory is checked instead.

    Examples:

      hexcheck check

      hexcheck check path/to/mix.exs --output-format json
    """
    try:
        config = load_config(Path(config_path) if config_path else None)
        configure_logging(config, verbose)

        context = create_context(
            config, console=Console(stderr=True), quiet=quiet or output_format == "json"
        )

        if file_path is None and os.path.isfile(MANIFEST_NAME):
            file_path = MANIFEST_NAME
        buffer = open_buffer(file_path)

        if output_format == "console" and not quiet:
            console.print(
                Panel(
                    f"📦 [bold blue]hexcheck[/bold blue] v{__version__}",
                    border_style="blue",
                )
            )

        results = run_check(context, buffer, os.getcwd())

        reporter = UpdateReporter(context.annotator, console)
        if output_format == "json":
            click.echo(reporter.to_json(buffer, results))
        elif results:
            reporter.print_report(buffer, results)

    except KeyboardInterrupt:
        Console(stderr=True).print("\n⚠️  Check interrupted by user", style="yellow")
        sys.exit(130)
    except Exception as e:
        Console(stderr=True).print(f"❌ Error: {e}", style="red")
        sys.exit(1)


@cli.command()
def config():
    """Print a sample configuration file."""
    click.echo(create_sample_config())


def main():
    cli()


if __name__ == "__main__":
    main()
