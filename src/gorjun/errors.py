"""
Exception taxonomy for the Gorjun client.

Every failure surfaces as a typed exception rooted at GorjunError so
callers can catch the whole family or a single kind. Nothing in the
library swallows these; the CLI is the only place that renders them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class GorjunError(Exception):
    """Base class for every error raised by the gorjun package."""


class ConfigError(GorjunError):
    """Configuration is missing a required value."""


class TransportError(GorjunError):
    """Network or HTTP-level failure talking to the repository."""


class DecodeError(GorjunError):
    """The server returned a body that could not be decoded."""


# ---------------------------------------------------------------------------
# Key resolution
# ---------------------------------------------------------------------------


class KeyResolutionError(GorjunError):
    """The signing identity could not be resolved from the local keyring."""


class KeyringNotFound(KeyResolutionError):
    """None of the candidate keyring files exist.

    Attributes:
        candidates: Paths that were tried, in order.
    """

    def __init__(self, candidates: Sequence[Path], message: Optional[str] = None) -> None:
        self.candidates = list(candidates)
        names = " nor ".join(p.name for p in self.candidates)
        super().__init__(message or f"Can't find {names} in {self.candidates[0].parent}")


class KeyringReadError(KeyResolutionError):
    """A keyring file exists but could not be parsed."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Failed to read keyring {path}: {reason}")


class KeyNotFound(KeyResolutionError):
    """No entity in the ring is bound to the requested email.

    Attributes:
        email: The identity email that was searched for.
        kind: "public" or "private".
    """

    kind = "public"

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"{self.kind.capitalize()} key for {email} was not found")


class PublicKeyNotFound(KeyNotFound):
    kind = "public"


class PrivateKeyNotFound(KeyNotFound):
    kind = "private"


# ---------------------------------------------------------------------------
# Handshake
# ---------------------------------------------------------------------------


class SigningFailed(GorjunError):
    """The challenge could not be signed (includes undecryptable keys)."""


class ChallengeRequestFailed(GorjunError):
    """The server did not hand out a usable challenge code."""


class ChallengeUnreachable(ChallengeRequestFailed, TransportError):
    """The challenge request never got an answer from the server."""


class TokenRejected(GorjunError):
    """The server answered the signed challenge with something other than a token.

    Attributes:
        reason: The raw response body, exactly as the server sent it.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Failed to retrieve active token: {reason}")


class NotAuthenticated(GorjunError):
    """An operation needed a session token but none is active."""


class SessionStateError(GorjunError):
    """A handshake step was invoked out of order."""


# ---------------------------------------------------------------------------
# File operations
# ---------------------------------------------------------------------------


class UploadRejected(GorjunError):
    """The upload endpoint answered with a non-success status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Upload failed. Server returned {status_code} error")


class RemovalRejected(GorjunError):
    """The delete endpoint answered with a non-success status."""

    def __init__(self, file_id: str, status_code: int, body: str = "") -> None:
        self.file_id = file_id
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"Can't remove file {file_id} - HTTP request returned {status_code} code"
        )


class FileNotFound(GorjunError):
    """A file the caller referred to does not exist."""

    def __init__(self, path: str, message: Optional[str] = None) -> None:
        self.path = path
        super().__init__(message or f"{path} not found")


class RemoteFileNotFound(FileNotFound):
    """No file with the given name exists on the repository."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(name, f"No remote file named {name}")


class AmbiguousFileName(FileNotFound):
    """Several remote files share a name and the caller asked for exactly one."""

    def __init__(self, name: str, candidates: Sequence[str]) -> None:
        self.name = name
        self.candidates = list(candidates)
        super().__init__(
            name,
            f"{len(self.candidates)} remote files named {name}: "
            + ", ".join(self.candidates),
        )


class ChallengeLengthWarning(UserWarning):
    """The challenge code does not have the expected length."""
