"""
Gorjun: PGP-authenticated client for Gorjun/Kurjun file repositories.

Proves who you are by signing a server challenge with your own GnuPG
key, then lists, finds, uploads, and removes files with the token
the server hands back.
"""

import os

__version__ = "0.1.0"
__author__ = "gorjun contributors"

GORJUN_HOME = os.environ.get("GORJUN_HOME", "~/.gorjun")
