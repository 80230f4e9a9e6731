"""Shared test fixtures for gorjun."""

from __future__ import annotations

import json
import secrets
import struct
from pathlib import Path
from typing import Optional

import pgpy
import pytest
from pgpy.constants import (
    HashAlgorithm,
    KeyFlags,
    PubKeyAlgorithm,
    SymmetricKeyAlgorithm,
)
from pgpy.errors import PGPError

from gorjun.keystore import iter_packets
from gorjun.models import SIGNED_MESSAGE_HEADER, Identity
from gorjun.transport import Response

PASSPHRASE = "test-gorjun-key-2026"
ALICE = "alice@example.com"
BOB = "bob@example.com"
CAROL = "carol@example.com"

DATA_DIR = Path(__file__).parent / "data"
# Written by gpg 2.x: --quick-gen-key rsa2048, no passphrase.
REAL_EMAIL = "real@example.com"
REAL_FINGERPRINT = "DAF5C97B849797B1299B49875EC33AC7542A4306"

# Ring-trust packet as GnuPG stores it: old-format tag 12, 12-byte body.
TRUST_PACKET = b"\xb0\x0c" + bytes(12)


def generate_key(name: str, email: str, passphrase: Optional[str] = None) -> pgpy.PGPKey:
    """Generate a test RSA-2048 signing key, optionally protected."""
    key = pgpy.PGPKey.new(PubKeyAlgorithm.RSAEncryptOrSign, 2048)
    uid = pgpy.PGPUID.new(name, email=email)
    key.add_uid(
        uid,
        usage={KeyFlags.Sign, KeyFlags.Certify},
        hashes=[HashAlgorithm.SHA256],
        ciphers=[SymmetricKeyAlgorithm.AES256],
    )
    if passphrase:
        key.protect(passphrase, SymmetricKeyAlgorithm.AES256, HashAlgorithm.SHA256)
    return key


def write_ring(path: Path, keys: list[pgpy.PGPKey]) -> Path:
    """Write keys as a binary OpenPGP ring, like pubring.gpg/secring.gpg."""
    path.write_bytes(b"".join(bytes(k) for k in keys))
    return path


def with_trust_packets(block: bytes) -> bytes:
    """Follow every packet with a ring-trust packet, the way GnuPG rings do."""
    return b"".join(raw + TRUST_PACKET for _, raw in iter_packets(block))


def keybox_bytes(keyblocks: list[bytes], x509_blobs: int = 0) -> bytes:
    """Build a minimal GnuPG keybox: header blob, OpenPGP blobs, X.509 filler."""
    out = struct.pack(">IBBH4sIIIII", 32, 1, 1, 0, b"KBXf", 0, 0, 0, 0, 0)
    for _ in range(x509_blobs):
        out += struct.pack(">IBBHI", 12, 3, 1, 0, 0)
    for block in keyblocks:
        fixed = struct.calcsize(">IBBHIIHH")
        out += struct.pack(">IBBHIIHH", fixed + len(block), 2, 1, 0, fixed, len(block), 1, 28)
        out += block
    return out


@pytest.fixture(scope="session")
def alice_key() -> pgpy.PGPKey:
    """Unprotected signing key."""
    return generate_key("Alice", ALICE)


@pytest.fixture(scope="session")
def bob_key() -> pgpy.PGPKey:
    """Passphrase-protected signing key."""
    return generate_key("Bob", BOB, PASSPHRASE)


@pytest.fixture(scope="session")
def carol_key() -> pgpy.PGPKey:
    """A second unprotected key that sits in the rings as noise."""
    return generate_key("Carol", CAROL)


@pytest.fixture
def gpg_dir(tmp_path: Path, alice_key, bob_key, carol_key) -> Path:
    """GnuPG 1.x layout: pubring.gpg + secring.gpg with three keys."""
    home = tmp_path / ".gnupg"
    home.mkdir()
    write_ring(home / "pubring.gpg", [carol_key.pubkey, alice_key.pubkey, bob_key.pubkey])
    write_ring(home / "secring.gpg", [carol_key, alice_key, bob_key])
    return home


@pytest.fixture
def kbx_gpg_dir(tmp_path: Path, alice_key, bob_key) -> Path:
    """GnuPG 2.1 style public keybox, with a secring.gpg next to it."""
    home = tmp_path / ".gnupg-kbx"
    home.mkdir()
    (home / "pubring.kbx").write_bytes(
        keybox_bytes(
            [with_trust_packets(bytes(alice_key.pubkey)), with_trust_packets(bytes(bob_key.pubkey))],
            x509_blobs=1,
        )
    )
    write_ring(home / "secring.gpg", [alice_key, bob_key])
    return home


@pytest.fixture
def alice(gpg_dir: Path) -> Identity:
    return Identity(username="alice", email=ALICE, gpg_dir=gpg_dir)


@pytest.fixture
def bob(gpg_dir: Path) -> Identity:
    return Identity(username="bob", email=BOB, passphrase=PASSPHRASE, gpg_dir=gpg_dir)


class StubRepository:
    """In-memory stand-in for a Kurjun server behind the transport interface.

    Issues 32-char challenges, verifies signed envelopes against the
    registered public keys, hands out 64-char tokens, and stores files.
    """

    hostname = "stub.gorjun.test"

    def __init__(self) -> None:
        self.public_keys: dict[str, pgpy.PGPKey] = {}
        self.challenges: dict[str, str] = {}
        self.tokens: dict[str, str] = {}
        self.files: list[dict] = []
        self.calls: list[tuple[str, str, dict]] = []

    def register(self, username: str, key: pgpy.PGPKey) -> None:
        self.public_keys[username] = key.pubkey if not key.is_public else key

    def get(self, endpoint: str, params: Optional[dict] = None) -> Response:
        params = params or {}
        self.calls.append(("GET", endpoint, params))
        if endpoint == "/auth/token":
            code = secrets.token_hex(16)
            self.challenges[params["user"]] = code
            return Response(200, code)
        if endpoint == "/raw/info":
            if "owner" in params:
                hits = [f for f in self.files if params["owner"] in f["owner"]]
            else:
                hits = [f for f in self.files if f["name"] == params.get("name")]
            return Response(200, json.dumps(hits))
        return Response(404, "not found")

    def post_form(self, endpoint: str, data: dict) -> Response:
        self.calls.append(("POST", endpoint, data))
        user = data["user"]
        message = data["message"]
        code = self.challenges.pop(user, None)
        if code is None or user not in self.public_keys:
            return Response(200, "Unknown user or stale challenge")
        body = message[len(SIGNED_MESSAGE_HEADER):]
        signed_code, _, armored = body.partition("\n")
        if not message.startswith(SIGNED_MESSAGE_HEADER) or signed_code != code:
            return Response(200, "Malformed signed message")
        try:
            sig = pgpy.PGPSignature.from_blob(armored)
            verified = bool(self.public_keys[user].verify(signed_code.encode(), sig))
        except (PGPError, ValueError):
            verified = False
        if not verified:
            return Response(200, "Signature verification failed")
        token = secrets.token_hex(32)
        self.tokens[token] = user
        return Response(200, token)

    def post_multipart(self, endpoint: str, file_path: Path, fields=None, file_field="file") -> Response:
        fields = fields or {}
        self.calls.append(("POST", endpoint, fields))
        user = self.tokens.get(fields.get("token", ""))
        if user is None:
            return Response(401, "Invalid token")
        content = file_path.read_bytes()
        record = {
            "id": secrets.token_hex(8),
            "size": len(content),
            "name": file_path.name,
            "owner": [user],
            "hash": {"md5": "", "sha": ""},
        }
        self.files.append(record)
        return Response(200, record["id"] + "\n")

    def delete(self, endpoint: str, params: Optional[dict] = None) -> Response:
        params = params or {}
        self.calls.append(("DELETE", endpoint, params))
        user = self.tokens.get(params.get("token", ""))
        if user is None:
            return Response(401, "Invalid token")
        for record in self.files:
            if record["id"] == params.get("id") and user in record["owner"]:
                self.files.remove(record)
                return Response(200, "")
        return Response(404, "File not found")


@pytest.fixture
def repo(alice_key, bob_key) -> StubRepository:
    """Stub repository that knows alice and bob."""
    r = StubRepository()
    r.register("alice", alice_key)
    r.register("bob", bob_key)
    return r
