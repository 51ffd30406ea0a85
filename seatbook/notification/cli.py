#!/usr/bin/env python3
"""
Notification CLI tool.

Command-line access to the library booking notifications: list them, mark
them read and follow the live stream.
"""

import asyncio
import json
import sys

import click

from seatbook.auth.session_store import FileSessionStore
from seatbook.notification.logger import set_logging_context, setup_logger
from seatbook.notification.model import ConnectionState, Notification, NotificationCategory
from seatbook.notification.service.center import NotificationCenter
from seatbook.notification.service.config import get_config
from seatbook.notification.service.store import StoreEvent

_logger = setup_logger(__name__)

LEVEL_COLORS = {"success": "green", "info": "blue", "warning": "yellow", "error": "red"}


def _session_store() -> FileSessionStore:
    return FileSessionStore(get_config().session.path)


def _echo_message(level: str, text: str):
    click.secho(text, fg=LEVEL_COLORS.get(level), err=level == "error")


def _echo_login_required(route: str):
    click.secho(f"Session expired, please sign in again ({route})", fg="red", err=True)


def _format(notification: Notification) -> str:
    marker = " " if notification.read else "*"
    expired = " [expired]" if notification.is_expired() else ""
    when = notification.relative_time()
    line = f"{marker} [{notification.id}] {notification.type:<16} {notification.title}{expired}"
    if when:
        line += f"  ({when})"
    if notification.message:
        line += f"\n      {notification.message}"
    return line


def _center(**hooks) -> NotificationCenter:
    hooks.setdefault("on_user_message", _echo_message)
    hooks.setdefault("on_auth_failure", _echo_login_required)
    return NotificationCenter.from_config(session_store=_session_store(), **hooks)


@click.group()
def cli():
    """Library booking notifications."""
    pass


@cli.command()
@click.option('--token', required=True, help='Bearer token issued by the booking API')
@click.option('--user', 'user_json', default=None, help='Cached user as a JSON object')
def login(token, user_json):
    """Store a session token for the other commands."""
    user = None
    if user_json:
        try:
            user = json.loads(user_json)
        except ValueError as e:
            raise click.BadParameter(f"not valid JSON: {e}", param_hint="--user")
    _session_store().save_session(token, user)
    click.echo("Session saved")


@cli.command()
def logout():
    """Remove the stored session."""
    _session_store().clear_session()
    click.echo("Signed out")


@cli.command(name="list")
@click.option('--category', type=click.Choice([c.value for c in NotificationCategory]),
              default=NotificationCategory.ALL.value, help='Filter like the notification panel tabs')
@click.option('--json-output', is_flag=True, help='Output in JSON format')
def list_notifications(category, json_output):
    """Fetch and print notifications."""

    async def run():
        async with _center() as center:
            await center.load()
            return center.notifications(NotificationCategory(category)), center.unread_count

    notifications, unread = asyncio.run(run())
    if json_output:
        click.echo(json.dumps([n.to_dict() for n in notifications], indent=2))
        return

    click.echo(f"Notifications ({unread} unread):")
    click.echo("-" * 50)
    if not notifications:
        click.echo("No notifications")
    for notification in notifications:
        click.echo(_format(notification))


@cli.command()
@click.argument('notification_id')
def read(notification_id):
    """Mark one notification read."""

    async def run():
        async with _center() as center:
            await center.load()
            key = notification_id
            if key not in center.store and key.isdigit():
                key = int(key)
            return await center.mark_read(key), center.unread_count

    changed, unread = asyncio.run(run())
    if not changed:
        click.echo(f"Notification {notification_id} is unknown or already read")
        return
    click.echo(f"Marked {notification_id} read ({unread} unread)")


@cli.command(name="read-all")
def read_all():
    """Mark all notifications read."""

    async def run():
        async with _center() as center:
            await center.load()
            return await center.mark_all_read()

    changed = asyncio.run(run())
    click.echo(f"{changed} notification(s) updated")


@cli.command()
def listen():
    """Load notifications, then follow the live stream until interrupted."""
    set_logging_context("notification_stream")
    outcome = {"code": 0}

    async def run():
        done = asyncio.Event()

        def on_state(state: ConnectionState):
            click.secho(f"[{state.indicator}] {state.value}", fg="cyan", err=True)
            if state in (ConnectionState.FAILED, ConnectionState.ERROR):
                outcome["code"] = 1
                done.set()

        def on_auth_failure(route: str):
            _echo_login_required(route)
            outcome["code"] = 1
            done.set()

        async with _center(on_state_change=on_state, on_auth_failure=on_auth_failure) as center:
            def on_store(event: StoreEvent, payload):
                if event is StoreEvent.ARRIVED:
                    click.echo(_format(payload))

            center.store.add_listener(on_store)
            await center.start()
            if center.signed_out or center.connection_state in (ConnectionState.FAILED, ConnectionState.ERROR):
                outcome["code"] = 1
                return
            for notification in center.notifications():
                click.echo(_format(notification))
            await done.wait()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        click.echo("Stopped")
    sys.exit(outcome["code"])


if __name__ == '__main__':
    cli()
