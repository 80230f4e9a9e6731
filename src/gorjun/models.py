"""
Pydantic models for everything the client sends, receives, or remembers.

Identity is supplied once by the caller. RemoteFile mirrors the JSON
records the repository returns from /raw/info. AuthResult is the
explicit outcome of a handshake: either a token or the server's reason.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

CHALLENGE_LENGTH = 32
TOKEN_LENGTH = 64

SIGNED_MESSAGE_HEADER = "-----BEGIN PGP SIGNED MESSAGE-----\nHash: SHA256\n\n"


def default_gpg_dir() -> Path:
    """GnuPG home: $GNUPGHOME if set, otherwise $HOME/.gnupg."""
    env = os.environ.get("GNUPGHOME")
    if env:
        return Path(env).expanduser()
    return Path(os.environ.get("HOME", "~")).expanduser() / ".gnupg"


class Identity(BaseModel):
    """Who is authenticating, and where their keys live.

    Attributes:
        username: Repository account name.
        email: Email bound to the PGP key used for signing.
        passphrase: Unlocks a protected private key. Never shown in repr.
        gpg_dir: Directory holding pubring/secring files.
    """

    model_config = ConfigDict(frozen=True)

    username: str
    email: str
    passphrase: Optional[str] = Field(default=None, repr=False)
    gpg_dir: Path = Field(default_factory=default_gpg_dir)


class SessionState(str, Enum):
    """Handshake progress of an AuthSession."""

    UNAUTHENTICATED = "unauthenticated"
    CHALLENGE_ISSUED = "challenge_issued"
    SIGNED = "signed"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class AuthResult(BaseModel):
    """Outcome of the token exchange.

    Exactly one of token/reason is set. The reason is the server's
    response body, unmodified.
    """

    ok: bool
    token: Optional[str] = Field(default=None, repr=False)
    reason: Optional[str] = None

    @classmethod
    def success(cls, token: str) -> AuthResult:
        return cls(ok=True, token=token)

    @classmethod
    def rejected(cls, reason: str) -> AuthResult:
        return cls(ok=False, reason=reason)


class FileHash(BaseModel):
    """Content hashes the repository computed for a file."""

    md5: str = ""
    sha: str = ""


class RemoteFile(BaseModel):
    """A file stored on the repository.

    Field names follow the wire format; ``owners`` is the set view of
    the ``owner`` list.
    """

    id: str
    size: int = 0
    name: str = ""
    owner: list[str] = Field(default_factory=list)
    hash: FileHash = Field(default_factory=FileHash)

    @property
    def owners(self) -> frozenset[str]:
        return frozenset(self.owner)

    def summary(self) -> str:
        """One-line human-readable description."""
        owners = ", ".join(sorted(self.owners)) or "-"
        return f"{self.name} ({self.size} bytes) id={self.id} owners={owners}"
