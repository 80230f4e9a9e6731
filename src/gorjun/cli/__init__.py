"""
Gorjun CLI: authenticate and manage files on a Gorjun repository.

The main Click group is defined here; command groups live in their own
modules and are registered via register functions.

Entry point: gorjun.cli:main
"""

from __future__ import annotations

import logging

import click

from .. import GORJUN_HOME, __version__


@click.group()
@click.version_option(version=__version__, prog_name="gorjun")
@click.option("--home", default=GORJUN_HOME, type=click.Path(), help="Config directory.")
@click.option("--host", default=None, help="Repository host[:port].")
@click.option("--user", default=None, help="Repository username.")
@click.option("--email", default=None, help="Email bound to your PGP key.")
@click.option("--gpg-dir", default=None, type=click.Path(), help="GnuPG directory.")
@click.option(
    "--passphrase", "-p", default=None, envvar="GORJUN_PASSPHRASE",
    help="Passphrase for a protected private key.",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging.")
@click.pass_context
def main(ctx, home, host, user, email, gpg_dir, passphrase, verbose):
    """Gorjun: PGP-authenticated repository client."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj.update(
        home=home, host=host, user=user, email=email,
        gpg_dir=gpg_dir, passphrase=passphrase,
    )


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .auth import register_auth_commands
from .config_cmd import register_config_commands
from .files import register_file_commands

register_auth_commands(main)
register_config_commands(main)
register_file_commands(main)
