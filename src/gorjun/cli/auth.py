"""Authentication command: run the challenge-response handshake."""

from __future__ import annotations

import sys

import click
from rich.markup import escape

from ._common import console, fail, open_session
from ..errors import GorjunError


def register_auth_commands(main: click.Group) -> None:
    """Register the auth command."""

    @main.command("auth")
    @click.option("--show-token", is_flag=True, help="Print the full session token.")
    @click.pass_context
    def auth(ctx, show_token):
        """Authenticate with your PGP key and obtain a session token."""
        try:
            session = open_session(ctx)
            console.print(
                f"\n  Authenticating [bold]{session.identity.username}[/] "
                f"on [cyan]{session.hostname}[/]..."
            )
            result = session.authenticate()
        except GorjunError as exc:
            fail(exc)

        if not result.ok:
            reason = escape(result.reason or "")
            console.print(f"  [bold red]Token rejected:[/] {reason}")
            sys.exit(1)

        token = session.token
        shown = token if show_token else f"{token[:8]}..."
        console.print(f"  [green]Authenticated[/] token: {shown}\n")
