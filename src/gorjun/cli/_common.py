"""Shared helpers for the CLI command modules.

Holds the Rich console, turns the group options into a config and a
session, and renders library errors.
"""

from __future__ import annotations

import sys
from typing import NoReturn

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config import GorjunConfig, load_config
from ..errors import GorjunError, TokenRejected
from ..models import RemoteFile
from ..session import AuthSession
from ..transport import HTTPTransport

console = Console()


def resolve_config(ctx: click.Context) -> GorjunConfig:
    """Config file + environment, then command-line options on top."""
    opts = ctx.obj or {}
    config = load_config(opts.get("home"))
    overrides = {
        "hostname": opts.get("host"),
        "username": opts.get("user"),
        "email": opts.get("email"),
        "gpg_dir": opts.get("gpg_dir"),
    }
    return config.model_copy(update={k: v for k, v in overrides.items() if v})


def make_transport(config: GorjunConfig) -> HTTPTransport:
    return HTTPTransport(
        config.require_hostname(), timeout=config.timeout, verify=config.verify_tls,
    )


def open_session(ctx: click.Context) -> AuthSession:
    """Build an unauthenticated session from the resolved config."""
    config = resolve_config(ctx)
    identity = config.identity((ctx.obj or {}).get("passphrase"))
    return AuthSession(
        identity,
        config.require_hostname(),
        transport=make_transport(config),
        strict=config.strict_challenge,
    )


def login(ctx: click.Context) -> AuthSession:
    """Open a session and run the handshake, raising on rejection."""
    session = open_session(ctx)
    session.authenticate_or_raise()
    return session


def fail(exc: GorjunError) -> NoReturn:
    """Print a library error and exit 1."""
    if isinstance(exc, TokenRejected):
        console.print(f"[bold red]Token rejected:[/] {escape(exc.reason)}")
    else:
        console.print(f"[bold red]Error:[/] {escape(str(exc))}")
    sys.exit(1)


def files_table(files: list[RemoteFile], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Owners")
    table.add_column("MD5", style="dim")
    for f in files:
        table.add_row(f.id, f.name, str(f.size), ", ".join(sorted(f.owners)), f.hash.md5)
    return table
