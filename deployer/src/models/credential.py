"""
In-memory credential handles.

A Credential never renders its secret; logs and errors only ever see the
label. Secrets are zeroed when the handle is released.
"""

import os
from contextlib import contextmanager
from typing import Iterator, Optional

from deployer.src.errors import ConfigurationError, CredentialReleased


class Credential:
    def __init__(self, label: str, secret: bytes):
        self.label = label
        self._secret: Optional[bytearray] = bytearray(secret)

    @classmethod
    def from_env(cls, name: str, environ=None) -> "Credential":
        environ = os.environ if environ is None else environ
        value = environ.get(name)
        if not value:
            raise ConfigurationError(f"Credential environment variable '{name}' is not set")
        return cls(f"env:{name}", value.encode())

    @classmethod
    def from_file(cls, path: str) -> "Credential":
        path = os.path.expanduser(path)
        try:
            with open(path, "rb") as handle:
                return cls(f"file:{path}", handle.read())
        except OSError as e:
            raise ConfigurationError(f"Cannot read credential file '{path}': {e.strerror}")

    @property
    def released(self) -> bool:
        return self._secret is None

    def reveal(self) -> bytes:
        if self._secret is None:
            raise CredentialReleased(f"Credential '{self.label}' has been released")
        return bytes(self._secret)

    def release(self):
        if self._secret is None:
            return
        for i in range(len(self._secret)):
            self._secret[i] = 0
        self._secret = None

    def scrub(self, text: str) -> str:
        """Remove the secret from text before it is logged or raised."""
        if self._secret is None or not text:
            return text
        secret = bytes(self._secret).decode("utf-8", errors="ignore")
        if secret:
            text = text.replace(secret, "***")
        return text

    def __repr__(self) -> str:
        state = "released" if self.released else "held"
        return f"Credential(label={self.label!r}, {state})"

    __str__ = __repr__


@contextmanager
def credential_scope(*credentials: Optional[Credential]) -> Iterator[tuple]:
    """Hold credentials for a block and release all of them on every exit path."""
    try:
        yield credentials
    finally:
        for credential in credentials:
            if credential is not None:
                credential.release()
