"""
Reversible obfuscation of output-folder segments embedded in public URLs.

Bundle URLs look like ``/public/ssr/<token>/bundle-client.<hash>.js`` where
``<token>`` is the output folder (relative to the output root) encrypted
with a key derived from the project directory. Clients cannot read the real
directory layout from the URL or guess the URLs of other compiled views.

This is not password-grade secrecy; it hides directory listings.
"""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from .errors import DecryptionError


def derive_key(material: str | bytes) -> bytes:
    """Hash arbitrary key material into a Fernet key."""
    if isinstance(material, str):
        material = material.encode("utf-8")
    return base64.urlsafe_b64encode(hashlib.sha256(material).digest())


class PathObfuscator:
    """Authenticated symmetric cipher for short path segments."""

    def __init__(self, key: str | bytes):
        self._fernet = Fernet(derive_key(key))

    @classmethod
    def from_project_directory(cls, project_directory: str) -> PathObfuscator:
        return cls(str(project_directory))

    def obfuscate(self, segment: str) -> str:
        """Encrypt ``segment`` into a URL-safe token."""
        return self._fernet.encrypt(segment.encode("utf-8")).decode("ascii")

    def clarify(self, token: str) -> str:
        """
        Decrypt a token produced by ``obfuscate``.

        Raises:
            DecryptionError: If the token was produced under another key or is malformed
        """
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError, ValueError) as e:
            raise DecryptionError(f"Could not decrypt path segment {token!r}") from e


__all__ = ["PathObfuscator", "derive_key"]
