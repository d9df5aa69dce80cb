"""Persistent Gerrit credential storage.

Stores the server URL, username, and HTTP password in
``~/.local/share/ger/credentials.json`` (XDG) or the platform-equivalent
directory. Files are written atomically via
:func:`~ger.config.atomic_write` with ``0o600`` permissions so that the
password is never world-readable, even momentarily.

Environment variables ``GER_HOST``, ``GER_USERNAME`` and ``GER_PASSWORD``
take precedence over the stored file when all three are set, which keeps CI
jobs from having to run ``ger init``.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ger.config import atomic_write, get_data_dir
from ger.exceptions import ConfigError
from ger.models import GerritCredentials

_CREDENTIALS_FILENAME = "credentials.json"

ENV_HOST = "GER_HOST"
ENV_USERNAME = "GER_USERNAME"
ENV_PASSWORD = "GER_PASSWORD"


class CredentialStore:
    """Read/write the stored :class:`~ger.models.GerritCredentials`.

    Example::

        store = CredentialStore()
        store.save(GerritCredentials(host="https://review.example.com",
                                     username="me", password="secret"))
        creds = store.load()
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or get_data_dir() / _CREDENTIALS_FILENAME

    @property
    def path(self) -> Path:
        """The filesystem path to the credential file."""
        return self._path

    def save(self, credentials: GerritCredentials) -> None:
        """Persist credentials atomically with ``0o600`` permissions.

        Raises:
            OSError: If the file cannot be written (permissions, disk full, etc.).
        """
        data = credentials.model_dump(mode="json")
        atomic_write(self._path, json.dumps(data, indent=2) + "\n", mode=0o600)

    def load(self) -> Optional[GerritCredentials]:
        """Load stored credentials.

        Returns:
            The credentials, or ``None`` if the file does not exist or
            cannot be parsed.
        """
        if not self._path.is_file():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return GerritCredentials.model_validate(data)
        except (json.JSONDecodeError, ValueError, OSError):
            return None

    def clear(self) -> None:
        """Delete the stored credential file if it exists."""
        if self._path.is_file():
            self._path.unlink()


def _credentials_from_env() -> Optional[GerritCredentials]:
    host = os.environ.get(ENV_HOST)
    username = os.environ.get(ENV_USERNAME)
    password = os.environ.get(ENV_PASSWORD)
    if not (host and username and password):
        return None
    try:
        return GerritCredentials(host=host, username=username, password=password)
    except ValidationError as exc:
        raise ConfigError(f"Invalid credentials in environment: {exc}") from exc


def resolve_credentials(store: Optional[CredentialStore] = None) -> GerritCredentials:
    """Return the active credentials.

    Precedence (high to low):
        1. ``GER_HOST`` / ``GER_USERNAME`` / ``GER_PASSWORD``
        2. The credential file written by ``ger init``

    Raises:
        ConfigError: If no credentials are configured.
    """
    creds = _credentials_from_env()
    if creds is not None:
        return creds
    creds = (store or CredentialStore()).load()
    if creds is None:
        raise ConfigError('Credentials not found. Run "ger init" to set up your credentials.')
    return creds
