"""Request commands."""

import json
import logging

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..client import RiapClient, RiapConfig
from ..client.exceptions import RiapError

console = Console()


def configure_logging(level: str) -> None:
    """Send riap-tools log records to stderr at ``level``."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("riap-tools").setLevel(level)


def _make_client(ctx: click.Context) -> RiapClient:
    config = RiapConfig(**(ctx.obj or {}))
    configure_logging(config.log_level)
    return RiapClient(config)


def _load_json(value: str | None, what: str) -> dict:
    if not value:
        return {}
    try:
        data = json.loads(value)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid {what} JSON: {e}")
    if not isinstance(data, dict):
        raise click.BadParameter(f"{what} must be a JSON object")
    return data


def _print_response(res, as_json: bool) -> None:
    if as_json or not (isinstance(res, list) and len(res) >= 2 and isinstance(res[0], int)):
        console.print_json(json.dumps(res))
        return

    status, message = res[0], res[1]
    color = "green" if 200 <= status < 300 else "red"
    console.print(f"[{color}]{status} {escape(str(message))}[/{color}]")

    if len(res) > 2 and res[2] is not None:
        result = res[2]
        if isinstance(result, (dict, list)):
            console.print(Panel(escape(json.dumps(result, indent=2)), title="[bold]Result[/bold]"))
        else:
            console.print(escape(str(result)))
    if len(res) > 3 and res[3]:
        console.print(f"[dim]Meta: {escape(json.dumps(res[3]))}[/dim]")


def _run(ctx: click.Context, action: str, url: str, extra: dict, as_json: bool) -> None:
    with _make_client(ctx) as client:
        try:
            res = client.request(action, url, extra)
        except RiapError as e:
            console.print(f"[red]Request failed ({e.status}):[/red] {escape(str(e))}")
            raise click.Abort()
        _print_response(res, as_json)


@click.command()
@click.argument("action")
@click.argument("url")
@click.option("--extra", "-e", "extra_json", help="Extra request keys as JSON (e.g. '{\"uri\": \"/Foo/\"}')")
@click.option("--json", "as_json", is_flag=True, help="Output raw response as JSON")
@click.pass_context
def request(ctx, action: str, url: str, extra_json: str | None, as_json: bool):
    """Send a Riap request with ACTION to server URL."""
    _run(ctx, action, url, _load_json(extra_json, "extra"), as_json)


@click.command()
@click.argument("url")
@click.option("--args", "-a", "args_json", help="Function arguments as JSON (e.g. '{\"a\": 1}')")
@click.option("--uri", "-u", help="Riap uri, when URL does not embed one")
@click.option("--json", "as_json", is_flag=True, help="Output raw response as JSON")
@click.pass_context
def call(ctx, url: str, args_json: str | None, uri: str | None, as_json: bool):
    """Call a function at URL."""
    extra = {"args": _load_json(args_json, "args")}
    if uri:
        extra["uri"] = uri
    _run(ctx, "call", url, extra, as_json)


@click.command()
@click.argument("url")
@click.option("--uri", "-u", help="Riap uri, when URL does not embed one")
@click.option("--json", "as_json", is_flag=True, help="Output raw response as JSON")
@click.pass_context
def info(ctx, url: str, uri: str | None, as_json: bool):
    """Get information about the entity at URL."""
    _run(ctx, "info", url, {"uri": uri} if uri else {}, as_json)


@click.command()
@click.argument("url")
@click.option("--action", default="info", help="Action to validate with (default: info)")
@click.option("--uri", "-u", help="Riap uri, when URL does not embed one")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def parse(ctx, url: str, action: str, uri: str | None, as_json: bool):
    """Show how URL is interpreted, without connecting."""
    client = _make_client(ctx)
    try:
        result = client.parse(action, url, {"uri": uri} if uri else {})
    except RiapError as e:
        console.print(f"[red]Invalid URL ({e.status}):[/red] {escape(str(e))}")
        raise click.Abort()

    if as_json:
        console.print_json(json.dumps(result))
        return

    table = Table(title=url)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for field in ("scheme", "host", "port", "path", "args", "uri"):
        value = result[field]
        table.add_row(field, "-" if value is None else str(value))
    console.print(table)
