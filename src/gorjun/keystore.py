"""
KeyStore: locate the signing identity in a local GnuPG directory.

GnuPG keeps keys in one of two layouts:

    ~/.gnupg/
    ├── pubring.gpg     # GnuPG 1.x / 2.0 public ring (OpenPGP packets)
    ├── secring.gpg     # GnuPG 1.x / 2.0 secret ring (OpenPGP packets)
    └── pubring.kbx     # GnuPG 2.1+ keybox container (public keys only)

The public ring is read from pubring.gpg, falling back to pubring.kbx.
The secret ring is only ever read from secring.gpg: GnuPG 2.1+ keeps
secret keys under private-keys-v1.d/ in its own format, which this
client does not read. Both ring files may be binary or ASCII-armored.

Usage:
    store = KeyStore("~/.gnupg")
    pair = store.resolve("me@example.com", passphrase="hunter2")
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

import pgpy
from pgpy.errors import PGPDecryptionError, PGPError

from .errors import (
    KeyringNotFound,
    KeyringReadError,
    PrivateKeyNotFound,
    PublicKeyNotFound,
)
from .models import default_gpg_dir

logger = logging.getLogger("gorjun.keystore")

PUBLIC_RING_CANDIDATES = ("pubring.gpg", "pubring.kbx")
PRIVATE_RING_CANDIDATES = ("secring.gpg",)

# Keybox blob types (GnuPG keybox-blob.c)
KBX_BLOB_EMPTY = 0
KBX_BLOB_HEADER = 1
KBX_BLOB_OPENPGP = 2
KBX_BLOB_X509 = 3
KBX_MAGIC = b"KBXf"

_KBX_PREFIX = struct.Struct(">IB")
_KBX_OPENPGP = struct.Struct(">IBBHII")

# OpenPGP packet tag GnuPG writes after keys, user ids and signatures in
# its own rings (RFC 4880 5.10). PGPy drops the user ids when it meets one.
TRUST_PACKET_TAG = 12


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def iter_keybox_keyblocks(data: bytes, path: Optional[Path] = None) -> Iterator[bytes]:
    """Yield the raw OpenPGP keyblock stored in each keybox blob.

    Args:
        data: Whole contents of a .kbx file.
        path: Source path, only used in error messages.

    Raises:
        KeyringReadError: On a truncated blob or a missing header magic.
    """
    where = path or Path("<keybox>")
    pos = 0
    first = True
    while pos < len(data):
        if len(data) - pos < _KBX_PREFIX.size:
            raise KeyringReadError(where, f"truncated blob at offset {pos}")
        length, blob_type = _KBX_PREFIX.unpack_from(data, pos)
        if length < _KBX_PREFIX.size or pos + length > len(data):
            raise KeyringReadError(where, f"bad blob length {length} at offset {pos}")

        if first and blob_type == KBX_BLOB_HEADER:
            if data[pos + 8:pos + 12] != KBX_MAGIC:
                raise KeyringReadError(where, "not a keybox file")
        elif blob_type == KBX_BLOB_OPENPGP:
            if length < _KBX_OPENPGP.size:
                raise KeyringReadError(where, f"short OpenPGP blob at offset {pos}")
            _, _, _, _, offset, size = _KBX_OPENPGP.unpack_from(data, pos)
            if offset + size > length:
                raise KeyringReadError(where, f"keyblock outside blob at offset {pos}")
            yield data[pos + offset:pos + offset + size]
        first = False
        pos += length


def _body_length(data: bytes, pos: int) -> tuple[int, int, bool]:
    """Decode a new-format length at ``pos``: (length, octets used, partial)."""
    first = data[pos]
    if first < 192:
        return first, 1, False
    if first < 224:
        return ((first - 192) << 8) + data[pos + 1] + 192, 2, False
    if first == 255:
        return struct.unpack_from(">I", data, pos + 1)[0], 5, False
    return 1 << (first & 0x1F), 1, True


def iter_packets(data: bytes, path: Optional[Path] = None) -> Iterator[tuple[int, bytes]]:
    """Split a binary OpenPGP stream into (tag, raw packet) pairs.

    Handles old- and new-format headers, including partial body lengths.

    Raises:
        KeyringReadError: On a bad header or a packet running past the end.
    """
    where = path or Path("<keyring>")
    pos = 0
    try:
        while pos < len(data):
            start = pos
            ctb = data[pos]
            if not ctb & 0x80:
                raise KeyringReadError(where, f"bad packet header 0x{ctb:02x} at offset {pos}")
            pos += 1
            if ctb & 0x40:
                tag = ctb & 0x3F
                length, used, partial = _body_length(data, pos)
                pos += used + length
                while partial:
                    length, used, partial = _body_length(data, pos)
                    pos += used + length
            else:
                tag = (ctb >> 2) & 0x0F
                length_type = ctb & 0x03
                if length_type == 3:
                    pos = len(data)
                else:
                    fmt = (">B", ">H", ">I")[length_type]
                    length = struct.unpack_from(fmt, data, pos)[0]
                    pos += struct.calcsize(fmt) + length
            if pos > len(data):
                raise KeyringReadError(where, f"truncated packet at offset {start}")
            yield tag, data[start:pos]
    except (IndexError, struct.error) as exc:
        raise KeyringReadError(where, f"truncated packet header at offset {pos}") from exc


def strip_trust_packets(data: bytes, path: Optional[Path] = None) -> bytes:
    """Drop GnuPG ring-trust packets from a binary keyblock or ring."""
    return b"".join(
        raw for tag, raw in iter_packets(data, path) if tag != TRUST_PACKET_TAG
    )


def _is_armored(data: bytes) -> bool:
    return data.lstrip().startswith(b"-----BEGIN PGP")


def parse_entities(data: bytes, path: Optional[Path] = None) -> list[pgpy.PGPKey]:
    """Parse every primary key in an OpenPGP blob, in file order.

    Works on binary rings, with GnuPG trust packets stripped first, and
    on ASCII-armored key files.
    """
    if not data.strip():
        return []
    if not _is_armored(data):
        data = strip_trust_packets(data, path)
    try:
        first, others = pgpy.PGPKey.from_blob(data)
    except (PGPError, ValueError, TypeError, IndexError, NotImplementedError) as exc:
        raise KeyringReadError(path or Path("<keyring>"), str(exc)) from exc

    entities: list[pgpy.PGPKey] = []
    seen: set[tuple[str, bool]] = set()
    for key in [first, *others.values()]:
        ident = (str(key.fingerprint), key.is_public)
        if key.is_primary and ident not in seen:
            seen.add(ident)
            entities.append(key)
    return entities


def key_has_email(key: pgpy.PGPKey, email: str) -> bool:
    """True if any user id bound to the key carries exactly this email."""
    return any(uid.email == email for uid in key.userids)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeyRing:
    """Ordered key entities parsed from one ring file.

    Attributes:
        path: File the ring was read from.
        format: "gpg" for OpenPGP packet rings, "kbx" for keybox files.
        entities: Primary keys in file order.
    """

    path: Path
    format: str
    entities: tuple[pgpy.PGPKey, ...] = field(default_factory=tuple)

    @classmethod
    def load(cls, path: Path) -> KeyRing:
        """Read and parse a ring file. The format follows the suffix."""
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise KeyringReadError(path, exc.strerror or str(exc)) from exc

        if path.suffix == ".kbx":
            entities: list[pgpy.PGPKey] = []
            for block in iter_keybox_keyblocks(data, path):
                entities.extend(parse_entities(block, path))
            ring = cls(path=path, format="kbx", entities=tuple(entities))
        else:
            ring = cls(path=path, format="gpg", entities=tuple(parse_entities(data, path)))

        logger.debug("Loaded %d key(s) from %s", len(ring), path)
        return ring

    def find(self, email: str) -> Optional[pgpy.PGPKey]:
        """First entity bound to ``email``, or None."""
        for key in self.entities:
            if key_has_email(key, email):
                return key
        return None

    def __iter__(self) -> Iterator[pgpy.PGPKey]:
        return iter(self.entities)

    def __len__(self) -> int:
        return len(self.entities)


@dataclass(frozen=True)
class ResolvedKeyPair:
    """Public and private entity bound to the same email.

    ``decrypted`` records that the supplied passphrase unlocked the
    private key. A protected key that is not decrypted is unusable.
    """

    email: str
    public: pgpy.PGPKey
    private: pgpy.PGPKey
    decrypted: bool = False

    @property
    def is_protected(self) -> bool:
        return bool(self.private.is_protected)

    @property
    def usable(self) -> bool:
        return not self.is_protected or self.decrypted

    @property
    def fingerprint(self) -> str:
        return str(self.public.fingerprint).replace(" ", "")


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class KeyStore:
    """Resolve signing identities from a GnuPG directory.

    Args:
        gpg_dir: GnuPG home. Defaults to $GNUPGHOME or $HOME/.gnupg.
    """

    def __init__(self, gpg_dir: Optional[str | Path] = None) -> None:
        self.gpg_dir = Path(gpg_dir).expanduser() if gpg_dir else default_gpg_dir()

    def _first_existing(self, names: tuple[str, ...]) -> Path:
        candidates = [self.gpg_dir / name for name in names]
        for path in candidates:
            if path.is_file():
                return path
        raise KeyringNotFound(candidates)

    def public_ring_path(self) -> Path:
        return self._first_existing(PUBLIC_RING_CANDIDATES)

    def private_ring_path(self) -> Path:
        return self._first_existing(PRIVATE_RING_CANDIDATES)

    def load_public_ring(self) -> KeyRing:
        return KeyRing.load(self.public_ring_path())

    def load_private_ring(self) -> KeyRing:
        return KeyRing.load(self.private_ring_path())

    def resolve(self, email: str, passphrase: Optional[str] = None) -> ResolvedKeyPair:
        """Find the key pair bound to ``email`` and try the passphrase.

        Args:
            email: Exact email on one of the key's user ids.
            passphrase: Tried against a protected private key when given.

        Returns:
            ResolvedKeyPair: Check ``usable`` before signing with it.

        Raises:
            KeyringNotFound: A ring file is missing.
            KeyringReadError: A ring file could not be parsed.
            PublicKeyNotFound: No public entity carries the email.
            PrivateKeyNotFound: No private entity carries the email.
        """
        public = self.load_public_ring().find(email)
        if public is None:
            raise PublicKeyNotFound(email)

        private = self.load_private_ring().find(email)
        if private is None:
            raise PrivateKeyNotFound(email)

        decrypted = False
        if passphrase and private.is_protected:
            try:
                with private.unlock(passphrase):
                    decrypted = True
            except (PGPError, PGPDecryptionError) as exc:
                logger.warning("Passphrase did not unlock private key for %s: %s", email, exc)

        pair = ResolvedKeyPair(email=email, public=public, private=private, decrypted=decrypted)
        logger.info("Resolved key %s for %s", pair.fingerprint[-16:], email)
        return pair
