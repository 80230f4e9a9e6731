"""Detached, ASCII-armored PGP signatures over arbitrary bytes."""

from __future__ import annotations

import logging
from typing import Optional

from pgpy.constants import HashAlgorithm
from pgpy.errors import PGPDecryptionError, PGPError

from .errors import SigningFailed
from .keystore import ResolvedKeyPair

logger = logging.getLogger("gorjun.signer")

SIGNATURE_HASH = HashAlgorithm.SHA256


class Signer:
    """Sign data with the private half of a resolved key pair.

    Args:
        key_pair: Output of KeyStore.resolve().
        passphrase: Unlocks the private key if it is protected.
    """

    def __init__(self, key_pair: ResolvedKeyPair, passphrase: Optional[str] = None) -> None:
        self.key_pair = key_pair
        self._passphrase = passphrase

    def sign(self, data: bytes | str) -> str:
        """Return an armored detached SHA-256 signature over ``data``.

        Raises:
            SigningFailed: The key is locked, the passphrase is wrong,
                or PGPy refused to sign.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")

        key = self.key_pair.private
        try:
            if self.key_pair.is_protected:
                if not self._passphrase or not self.key_pair.decrypted:
                    raise SigningFailed(
                        f"Private key for {self.key_pair.email} is passphrase-protected "
                        "and could not be decrypted"
                    )
                with key.unlock(self._passphrase):
                    signature = key.sign(data, hash=SIGNATURE_HASH)
            else:
                signature = key.sign(data, hash=SIGNATURE_HASH)
        except (PGPError, PGPDecryptionError, ValueError, TypeError, NotImplementedError) as exc:
            raise SigningFailed(f"Failed to sign token: {exc}") from exc

        logger.debug("Signed %d bytes with %s", len(data), self.key_pair.fingerprint[-16:])
        return str(signature)


def sign_challenge(
    key_pair: ResolvedKeyPair, code: str, passphrase: Optional[str] = None
) -> str:
    """Sign a challenge code; shorthand for ``Signer(...).sign(code)``."""
    return Signer(key_pair, passphrase).sign(code)
