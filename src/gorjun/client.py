"""
File operations on a Gorjun repository.

Reads (list, find) are anonymous. Writes (upload, remove) attach the
token of an authenticated AuthSession; the client never runs the
handshake itself except through GorjunClient.login().

Usage:
    client = GorjunClient.login(identity, "cdn.example.com:8338")
    file_id = client.upload("build/app.tar.gz")
    client.remove_by_id(file_id)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .errors import (
    AmbiguousFileName,
    DecodeError,
    FileNotFound,
    NotAuthenticated,
    RemovalRejected,
    RemoteFileNotFound,
    TransportError,
    UploadRejected,
)
from .models import Identity, RemoteFile
from .session import AuthSession
from .transport import HTTPTransport

logger = logging.getLogger("gorjun.client")

INFO_ENDPOINT = "/raw/info"
UPLOAD_ENDPOINT = "/raw/upload"
DELETE_ENDPOINT = "/raw/delete"


def decode_files(body: str, source: str = "server") -> list[RemoteFile]:
    """Decode a /raw/info response into RemoteFile records.

    JSON null means no files.

    Raises:
        DecodeError: Empty, not JSON, not a list, or a record is malformed.
    """
    if not body.strip():
        raise DecodeError(f"Failed to unmarshal contents from {source}: empty body")
    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"Failed to unmarshal contents from {source}: {exc}") from exc
    if data is None:
        return []
    if not isinstance(data, list):
        raise DecodeError(f"Expected a list of files from {source}, got {type(data).__name__}")
    try:
        return [RemoteFile.model_validate(item) for item in data]
    except ValidationError as exc:
        raise DecodeError(f"Malformed file record from {source}: {exc}") from exc


class GorjunClient:
    """Repository file client.

    Args:
        hostname: Repository host (with optional port).
        session: Authenticated session for uploads and removals.
        transport: HTTP collaborator; defaults to the session's.
    """

    def __init__(
        self,
        hostname: str,
        session: Optional[AuthSession] = None,
        transport: Optional[HTTPTransport] = None,
    ) -> None:
        self.hostname = hostname
        self.session = session
        if transport is None:
            transport = session.transport if session else HTTPTransport(hostname)
        self.transport = transport

    @classmethod
    def login(
        cls,
        identity: Identity,
        hostname: str,
        transport: Optional[HTTPTransport] = None,
        strict: bool = False,
    ) -> GorjunClient:
        """Authenticate ``identity`` and return a client using its token.

        Raises:
            TokenRejected: The server refused the signed challenge.
        """
        session = AuthSession(identity, hostname, transport=transport, strict=strict)
        session.authenticate_or_raise()
        return cls(hostname, session=session)

    def _token(self) -> str:
        if self.session is None:
            raise NotAuthenticated(f"No session for {self.hostname}; authenticate first")
        return self.session.token

    # -- reads ---------------------------------------------------------------

    def _info(self, params: dict) -> list[RemoteFile]:
        """Query /raw/info. A 404 means nothing matched.

        Raises:
            TransportError: Any other non-200 status.
            DecodeError: The body is not a JSON list of files.
        """
        resp = self.transport.get(INFO_ENDPOINT, params=params)
        if resp.status_code == 404:
            logger.debug("No files match %s on %s", params, self.hostname)
            return []
        if not resp.ok:
            raise TransportError(
                f"Server returned {resp.status_code} for file info: {resp.text}"
            )
        return decode_files(resp.text, self.hostname)

    def list_files(self, owner: Optional[str] = None) -> list[RemoteFile]:
        """Files owned by ``owner`` (defaults to the session's user)."""
        if owner is None:
            if self.session is None:
                raise NotAuthenticated("No owner given and no session to take it from")
            owner = self.session.identity.username
        return self._info({"owner": owner})

    def find_by_name(self, name: str) -> list[RemoteFile]:
        """Files named ``name``, in the order the server returns them."""
        return self._info({"name": name})

    # -- writes --------------------------------------------------------------

    def upload(self, path: str | Path) -> str:
        """Upload a local file and return the id the server assigned.

        Raises:
            NotAuthenticated: No active token.
            FileNotFound: ``path`` does not exist.
            UploadRejected: The server answered with a non-200 status.
        """
        token = self._token()
        file_path = Path(path).expanduser()
        if not file_path.is_file():
            raise FileNotFound(str(path))

        resp = self.transport.post_multipart(
            UPLOAD_ENDPOINT, file_path, fields={"token": token},
        )
        if not resp.ok:
            raise UploadRejected(resp.status_code, resp.text)

        file_id = resp.text.strip()
        logger.info("Uploaded %s as %s", file_path.name, file_id)
        return file_id

    def remove_by_id(self, file_id: str) -> None:
        """Delete one file by id.

        Raises:
            NotAuthenticated: No active token.
            RemovalRejected: The server answered with a non-200 status.
        """
        token = self._token()
        resp = self.transport.delete(DELETE_ENDPOINT, params={"id": file_id, "token": token})
        if not resp.ok:
            raise RemovalRejected(file_id, resp.status_code, resp.text)
        logger.info("Removed file %s", file_id)

    def remove_by_name(self, name: str, strict: bool = False) -> str:
        """Delete the first file the server lists under ``name``.

        Which duplicate goes first is the server's ordering. Pass
        ``strict=True`` to refuse when more than one file matches.

        Returns:
            str: Id of the removed file.

        Raises:
            RemoteFileNotFound: Nothing is named ``name``.
            TransportError: The file info query failed.
            AmbiguousFileName: ``strict`` and several files match.
        """
        matches = self.find_by_name(name)
        if not matches:
            raise RemoteFileNotFound(name)
        if strict and len(matches) > 1:
            raise AmbiguousFileName(name, [f.id for f in matches])
        if len(matches) > 1:
            logger.warning(
                "%d files named %s; removing first listed (%s)", len(matches), name, matches[0].id,
            )
        self.remove_by_id(matches[0].id)
        return matches[0].id
