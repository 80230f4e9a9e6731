"""Config commands: show and set persistent client settings."""

from __future__ import annotations

import click
import yaml

from ._common import console, resolve_config
from ..config import load_config, save_config


def register_config_commands(main: click.Group) -> None:
    """Register the config command group."""

    @main.group("config")
    def config():
        """View or change the saved client configuration."""

    @config.command("show")
    @click.pass_context
    def config_show(ctx):
        """Print the effective configuration."""
        effective = resolve_config(ctx)
        console.print(
            yaml.dump(effective.model_dump(mode="json"), default_flow_style=False).rstrip()
        )

    @config.command("set")
    @click.argument("key", type=click.Choice(
        ["hostname", "username", "email", "gpg_dir", "timeout", "verify_tls", "strict_challenge"]
    ))
    @click.argument("value")
    @click.pass_context
    def config_set(ctx, key, value):
        """Save KEY=VALUE to config.yaml."""
        home = ctx.obj.get("home")
        current = load_config(home)
        updated = current.model_validate({**current.model_dump(), key: value})
        path = save_config(updated, home)
        console.print(f"  [green]Saved[/] {key} to {path}")
