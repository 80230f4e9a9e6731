"""File commands: ls, find, upload, rm."""

from __future__ import annotations

import sys

import click

from ._common import console, fail, files_table, login, make_transport, resolve_config
from ..client import GorjunClient
from ..errors import GorjunError


def register_file_commands(main: click.Group) -> None:
    """Register the file commands."""

    @main.command("ls")
    @click.option("--owner", default=None, help="Owner to list (defaults to --user).")
    @click.pass_context
    def ls(ctx, owner):
        """List files owned by a user."""
        try:
            config = resolve_config(ctx)
            owner = owner or config.username
            if not owner:
                console.print("[bold red]No owner given.[/] Use --owner or --user.")
                sys.exit(1)
            client = GorjunClient(config.require_hostname(), transport=make_transport(config))
            files = client.list_files(owner)
        except GorjunError as exc:
            fail(exc)

        if not files:
            console.print(f"\n  [dim]No files owned by {owner}.[/]\n")
            return
        console.print(files_table(files, f"Files owned by {owner}"))

    @main.command("find")
    @click.argument("name")
    @click.pass_context
    def find(ctx, name):
        """Show files with the given name."""
        try:
            config = resolve_config(ctx)
            client = GorjunClient(config.require_hostname(), transport=make_transport(config))
            files = client.find_by_name(name)
        except GorjunError as exc:
            fail(exc)

        if not files:
            console.print(f"\n  [dim]No files named {name}.[/]\n")
            return
        console.print(files_table(files, f"Files named {name}"))

    @main.command("upload")
    @click.argument("path", type=click.Path())
    @click.pass_context
    def upload(ctx, path):
        """Authenticate and upload a file."""
        try:
            session = login(ctx)
            file_id = GorjunClient(session.hostname, session=session).upload(path)
        except GorjunError as exc:
            fail(exc)
        console.print(f"  [green]Uploaded[/] {path} id: {file_id}")

    @main.command("rm")
    @click.argument("name", required=False)
    @click.option("--id", "file_id", default=None, help="Remove by file id instead of name.")
    @click.option("--strict", is_flag=True, help="Refuse when several files share the name.")
    @click.pass_context
    def rm(ctx, name, file_id, strict):
        """Authenticate and remove a file by name or id."""
        if bool(name) == bool(file_id):
            console.print("[bold red]Give exactly one of NAME or --id.[/]")
            sys.exit(2)
        try:
            session = login(ctx)
            client = GorjunClient(session.hostname, session=session)
            if file_id:
                client.remove_by_id(file_id)
                removed = file_id
            else:
                removed = client.remove_by_name(name, strict=strict)
        except GorjunError as exc:
            fail(exc)
        console.print(f"  [green]Removed[/] {removed}")
