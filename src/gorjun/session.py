"""
Challenge-response authentication against a Gorjun repository.

The handshake has three steps, each a method on AuthSession:

    1. request_challenge()  GET  /auth/token?user=<name>   -> 32-char code
    2. sign_challenge()     detached PGP signature over the code
    3. exchange_token()     POST /auth/token (message, user) -> token

The server answers step 3 with a single string: a 64-character token on
success, anything else is the reason it refused. That length rule is
applied in parse_token_response() and nowhere else; callers get an
AuthResult.

Usage:
    session = AuthSession(identity, "cdn.example.com:8338")
    result = session.authenticate()
    if result.ok:
        print(session.token)
"""

from __future__ import annotations

import logging
import warnings
from typing import Optional

from .errors import (
    ChallengeLengthWarning,
    ChallengeRequestFailed,
    ChallengeUnreachable,
    KeyResolutionError,
    NotAuthenticated,
    SessionStateError,
    SigningFailed,
    TokenRejected,
    TransportError,
)
from .keystore import KeyStore
from .models import (
    CHALLENGE_LENGTH,
    SIGNED_MESSAGE_HEADER,
    TOKEN_LENGTH,
    AuthResult,
    Identity,
    SessionState,
)
from .signer import Signer
from .transport import HTTPTransport

logger = logging.getLogger("gorjun.session")

TOKEN_ENDPOINT = "/auth/token"


def build_envelope(code: str, signature: str) -> str:
    """Frame a challenge and its detached signature as a signed message.

    The armored block ends in exactly one newline whatever ``signature``
    carries.
    """
    return SIGNED_MESSAGE_HEADER + code + "\n" + signature.rstrip("\n") + "\n"


def parse_token_response(body: str) -> AuthResult:
    """Apply the wire rule: exactly 64 characters is a token, else a reason."""
    if len(body) == TOKEN_LENGTH:
        return AuthResult.success(body)
    return AuthResult.rejected(body)


class AuthSession:
    """One user's handshake with one repository host.

    Not thread-safe: the session mutates its own challenge/token state.

    Args:
        identity: Who is authenticating.
        hostname: Repository host (with optional port).
        transport: HTTP collaborator; built from hostname when omitted.
        keystore: Key resolver; built from identity.gpg_dir when omitted.
        strict: Treat a challenge of unexpected length as a failure
            instead of a warning.
    """

    def __init__(
        self,
        identity: Identity,
        hostname: str,
        transport: Optional[HTTPTransport] = None,
        keystore: Optional[KeyStore] = None,
        strict: bool = False,
    ) -> None:
        self.identity = identity
        self.hostname = hostname
        self.transport = transport or HTTPTransport(hostname)
        self.keystore = keystore or KeyStore(identity.gpg_dir)
        self.strict = strict
        self._state = SessionState.UNAUTHENTICATED
        self._challenge: Optional[str] = None
        self._signature: Optional[str] = None
        self._token: Optional[str] = None
        self.last_result: Optional[AuthResult] = None

    def __repr__(self) -> str:
        return (
            f"AuthSession(user={self.identity.username!r}, host={self.hostname!r}, "
            f"state={self._state.value})"
        )

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def challenge(self) -> Optional[str]:
        return self._challenge

    @property
    def is_authenticated(self) -> bool:
        return self._state == SessionState.AUTHENTICATED

    @property
    def token(self) -> str:
        """The active session token.

        Raises:
            NotAuthenticated: The handshake has not succeeded.
        """
        if self._state != SessionState.AUTHENTICATED or not self._token:
            raise NotAuthenticated(
                f"{self.identity.username} is not authenticated on {self.hostname}"
            )
        return self._token

    def reset(self) -> None:
        """Forget the challenge and token and start over."""
        self._state = SessionState.UNAUTHENTICATED
        self._challenge = None
        self._signature = None
        self._token = None

    def _require(self, *states: SessionState) -> None:
        if self._state not in states:
            expected = " or ".join(s.value for s in states)
            raise SessionStateError(
                f"Session is {self._state.value}, expected {expected}"
            )

    def _fail(self, message: str, *args: object) -> None:
        logger.error(message, *args)
        self._state = SessionState.FAILED
        self._token = None

    # -- handshake -----------------------------------------------------------

    def request_challenge(self) -> str:
        """Step 1: ask the server for a code to sign.

        Raises:
            ChallengeUnreachable: Transport failure. Also a TransportError.
            ChallengeRequestFailed: Error status, empty body, or (strict
                mode) wrong length.
        """
        self._require(SessionState.UNAUTHENTICATED)
        try:
            resp = self.transport.get(TOKEN_ENDPOINT, params={"user": self.identity.username})
        except TransportError as exc:
            self._fail("Failed to retrieve unsigned token from %s: %s", self.hostname, exc)
            raise ChallengeUnreachable(f"Failed to retrieve unsigned token: {exc}") from exc

        if not resp.ok:
            self._fail("Challenge request returned %s", resp.status_code)
            raise ChallengeRequestFailed(
                f"Server returned {resp.status_code} for challenge request: {resp.text}"
            )
        code = resp.text
        if not code.strip():
            self._fail("Empty challenge from %s", self.hostname)
            raise ChallengeRequestFailed(f"Empty challenge from {self.hostname}")

        if len(code) != CHALLENGE_LENGTH:
            message = (
                f"Challenge code from {self.hostname} is {len(code)} characters, "
                f"expected {CHALLENGE_LENGTH}"
            )
            if self.strict:
                self._fail("%s", message)
                raise ChallengeRequestFailed(message)
            logger.warning("%s", message)
            warnings.warn(message, ChallengeLengthWarning, stacklevel=2)

        self._challenge = code
        self._state = SessionState.CHALLENGE_ISSUED
        logger.info("Received challenge for %s", self.identity.username)
        return code

    def sign_challenge(self) -> str:
        """Step 2: resolve the signing key and sign the challenge.

        Raises:
            KeyResolutionError: The key pair could not be found.
            SigningFailed: The private key could not sign.
        """
        self._require(SessionState.CHALLENGE_ISSUED)
        try:
            pair = self.keystore.resolve(self.identity.email, self.identity.passphrase)
            signature = Signer(pair, self.identity.passphrase).sign(self._challenge or "")
        except (KeyResolutionError, SigningFailed) as exc:
            self._fail("Signing challenge for %s failed: %s", self.identity.email, exc)
            raise

        self._signature = signature
        self._state = SessionState.SIGNED
        return signature

    def exchange_token(self) -> AuthResult:
        """Step 3: submit the signed challenge and read the token.

        Returns:
            AuthResult: ok with the token, or the server's reason verbatim.

        Raises:
            TransportError: The POST itself failed.
        """
        self._require(SessionState.SIGNED)
        envelope = build_envelope(self._challenge or "", self._signature or "")
        try:
            resp = self.transport.post_form(
                TOKEN_ENDPOINT,
                data={"message": envelope, "user": self.identity.username},
            )
        except TransportError as exc:
            self._fail("Failed to retrieve active token from %s: %s", self.hostname, exc)
            raise

        self._challenge = None
        self._signature = None
        result = parse_token_response(resp.text)
        self.last_result = result
        if result.ok:
            self._token = result.token
            self._state = SessionState.AUTHENTICATED
            logger.info(
                "Authenticated %s on %s (token %s...)",
                self.identity.username, self.hostname, (result.token or "")[:8],
            )
        else:
            self._fail("Token rejected for %s: %s", self.identity.username, result.reason)
        return result

    def authenticate(self) -> AuthResult:
        """Run the whole handshake with a fresh challenge.

        Safe to call again after success or failure; the previous
        challenge and token are discarded first.
        """
        if self._state != SessionState.UNAUTHENTICATED:
            self.reset()
        self.request_challenge()
        self.sign_challenge()
        return self.exchange_token()

    def authenticate_or_raise(self) -> str:
        """Like authenticate(), but a rejection raises TokenRejected.

        Returns:
            str: The session token.
        """
        result = self.authenticate()
        if not result.ok:
            raise TokenRejected(result.reason or "")
        return self.token
