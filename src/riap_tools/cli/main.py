"""Main CLI entry point."""

from pathlib import Path

import click
from dotenv import load_dotenv

from riap_tools import __version__

# Load .env from cwd
_env_file = Path.cwd() / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


@click.group()
@click.version_option(version=__version__, prog_name="riap")
@click.option("--retries", type=click.IntRange(min=0), help="Connection retries (default 2)")
@click.option("--retry-delay", type=click.FloatRange(min=0), help="Seconds between retries (default 3)")
@click.option("--read-timeout", type=click.FloatRange(min=0, min_open=True), help="Response read deadline in seconds")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Logging level (default from RIAP_LOG_LEVEL)",
)
@click.pass_context
def cli(ctx, retries, retry_delay, read_timeout, log_level):
    """Riap CLI - Send Riap requests over TCP, Unix sockets and pipes."""
    overrides = {
        "retries": retries,
        "retry_delay": retry_delay,
        "read_timeout": read_timeout,
        "log_level": log_level,
    }
    ctx.obj = {k: v for k, v in overrides.items() if v is not None}


def setup_cli():
    """Register all commands."""
    from .request import call, info, parse, request

    cli.add_command(request)
    cli.add_command(call)
    cli.add_command(info)
    cli.add_command(parse)


setup_cli()


def main():
    """Entry point for riap CLI."""
    cli()


if __name__ == "__main__":
    main()
