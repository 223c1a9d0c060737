"""kycops CLI - request signing, webhook checks and API probes."""

import asyncio
import sys
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any, ParamSpec, TypeVar

import click
from rich.console import Console
from rich.table import Table

from kycops.client.api import KycClient
from kycops.client.signer import RequestSigner
from kycops.common.errors import KycClientError
from kycops.common.logging import setup_logging
from kycops.common.settings import Settings
from kycops.webhooks.verify import verify_webhook_signature

console = Console()

P = ParamSpec("P")
R = TypeVar("R")


def async_command(f: Callable[P, Coroutine[Any, Any, R]]) -> Callable[P, R]:
    """Decorator to run async commands."""

    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def _read_file(path: str) -> bytes:
    file_path = Path(path).expanduser()
    if not file_path.exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        sys.exit(1)
    return file_path.read_bytes()


@click.group()
@click.option("--base-url", default=None, help="Verification API base URL")
@click.option("--app-token", default=None, help="App token (default: KYCOPS_APP_TOKEN)")
@click.option("--secret-key", default=None, help="Request signing secret (default: KYCOPS_SECRET_KEY)")
@click.option("--log-level", default=None, help="Log level")
@click.pass_context
def cli(
    ctx: click.Context,
    base_url: str | None,
    app_token: str | None,
    secret_key: str | None,
    log_level: str | None,
) -> None:
    """kycops CLI - sign requests and verify webhooks."""
    overrides = {
        key: value
        for key, value in {
            "base_url": base_url,
            "app_token": app_token,
            "secret_key": secret_key,
            "log_level": log_level,
        }.items()
        if value is not None
    }
    settings = Settings(**overrides)
    setup_logging(settings.log_level, settings.log_json)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


# === Signing ===


@cli.command("sign")
@click.argument("method")
@click.argument("path")
@click.option("--body-file", help="File holding the exact request body bytes")
@click.option("--timestamp", type=int, help="Unix timestamp to sign with (default: now)")
@click.pass_context
def sign_cmd(
    ctx: click.Context,
    method: str,
    path: str,
    body_file: str | None,
    timestamp: int | None,
) -> None:
    """Print the authentication headers for METHOD PATH."""
    settings: Settings = ctx.obj["settings"]
    if not settings.secret_key:
        console.print("[red]No secret key configured[/red]")
        sys.exit(1)

    body = _read_file(body_file) if body_file else None
    if timestamp is not None:
        signer = RequestSigner(settings.app_token, settings.secret_key, clock=lambda: timestamp)
    else:
        signer = RequestSigner(settings.app_token, settings.secret_key)

    try:
        auth = signer.sign(method.upper(), path, body)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)

    for name, value in auth.as_dict().items():
        click.echo(f"{name}: {value}")


@cli.command("verify-webhook")
@click.option("--payload-file", "-p", required=True, help="Raw webhook body as received")
@click.option("--signature", "-s", required=True, help="Hex digest from X-Payload-Digest")
@click.option("--secret", help="Webhook secret (default: KYCOPS_WEBHOOK_SECRET)")
@click.pass_context
def verify_webhook_cmd(
    ctx: click.Context,
    payload_file: str,
    signature: str,
    secret: str | None,
) -> None:
    """Check a webhook payload against its signature."""
    settings: Settings = ctx.obj["settings"]
    secret = secret or settings.webhook_secret
    if not secret:
        console.print("[red]No webhook secret configured[/red]")
        sys.exit(1)

    result = verify_webhook_signature(secret, _read_file(payload_file), signature)
    if result.accepted:
        console.print("[green]✓ Signature is valid[/green]")
    else:
        reason = result.reason.value if result.reason else "rejected"
        console.print(f"[red]✗ Signature rejected: {reason}[/red]")
        sys.exit(1)


# === API probes ===


@cli.command("health")
@click.pass_context
@async_command
async def health(ctx: click.Context) -> None:
    """Show API health status."""
    async with KycClient(ctx.obj["settings"]) as client:
        try:
            status = await client.get_api_health_status()
        except KycClientError as e:
            console.print(f"[red]✗ API check failed: {e}[/red]")
            sys.exit(1)

    console.print(f"[green]✓ API reachable[/green] {status}")


@cli.command("levels")
@click.pass_context
@async_command
async def levels(ctx: click.Context) -> None:
    """List available verification levels."""
    async with KycClient(ctx.obj["settings"]) as client:
        try:
            items = await client.get_available_levels()
        except KycClientError as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)

    if not items:
        console.print("[yellow]No levels configured[/yellow]")
        return

    table = Table(title="Verification Levels")
    table.add_column("Name", style="cyan")
    table.add_column("Description")

    for level in items:
        table.add_row(level.get("name", ""), level.get("desc", "") or "")

    console.print(table)


def main() -> None:
    """CLI entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
