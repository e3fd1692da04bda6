"""
Booking Relay CLI — operational helpers.

Usage:
    relay set-webhook                        — register the Telegram webhook ({PUBLIC_URL}/api/v1/webhooks/telegram)
    relay derive-key <payload.json>          — print the dedup key for a saved webhook body
    relay derive-key <payload.json> -e <id>  — same, as if the event-id header was present
    relay secrets set <name> <value>         — save a secret under secrets/
    relay secrets list                       — list saved secrets
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import click

logger = logging.getLogger(__name__)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def cli(verbose: bool):
    """Booking Relay — Wix Bookings to Telegram CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


@cli.command("set-webhook")
def set_webhook():
    """Register the Telegram webhook for operator buttons."""
    from src.config import get_settings

    if not get_settings().public_url:
        click.echo("Error: PUBLIC_URL is not set", err=True)
        raise SystemExit(1)

    asyncio.run(_set_webhook())
    click.echo("✓ Webhook registration requested (see log for the result)")


async def _set_webhook():
    from src.core.relay import get_relay

    await get_relay().channel.setup()


@cli.command("derive-key")
@click.argument("payload_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--event-id", "-e", default=None, help="Delivery id as sent in the event-id header")
def derive_key(payload_file: Path, event_id: str | None):
    """Print the dedup key a webhook body would get."""
    from src.core.event_identity import derive_dedup_key
    from src.core.events import InboundEvent, parse_booking_event

    try:
        payload = json.loads(payload_file.read_text(encoding="utf-8"))
    except ValueError as e:
        click.echo(f"Error: {payload_file} is not valid JSON: {e}", err=True)
        raise SystemExit(1)

    if not isinstance(payload, dict):
        click.echo("Error: payload must be a JSON object", err=True)
        raise SystemExit(1)

    booking = parse_booking_event(payload)
    key = derive_dedup_key(InboundEvent(raw_payload=payload, provider_event_id=event_id), booking)

    click.echo(f"booking_id: {booking.booking_id or '-'}")
    click.echo(f"dedup_key:  {key or '(none — event is treated as unique)'}")


@cli.group()
def secrets():
    """Manage secrets."""


@secrets.command("set")
@click.argument("secret_name")
@click.argument("secret_value")
def secrets_set(secret_name: str, secret_value: str):
    """Save a secret (e.g. telegram_bot_token, wix_refresh_token)."""
    secrets_dir = Path("secrets")
    secrets_dir.mkdir(parents=True, exist_ok=True)

    gitignore = secrets_dir / ".gitignore"
    if not gitignore.exists():
        gitignore.write_text("*\n!.gitignore\n", encoding="utf-8")

    secret_file = secrets_dir / secret_name
    secret_file.write_text(secret_value, encoding="utf-8")

    click.echo(f"✓ Saved secret: secrets/{secret_name}")


@secrets.command("list")
def secrets_list():
    """List saved secrets."""
    secrets_dir = Path("secrets")
    if not secrets_dir.exists():
        click.echo("No secrets directory")
        return

    files = [f.name for f in secrets_dir.iterdir() if f.is_file() and f.name != ".gitignore"]
    if not files:
        click.echo("No secrets")
        return

    click.echo("Secrets:")
    for name in sorted(files):
        click.echo(f"  • {name}")


if __name__ == "__main__":
    cli()
