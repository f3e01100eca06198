"""Fernet encryption for eBay tokens kept at rest."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from app.core.config import AppSettings
from app.core.errors import EbayAuthError


class TokenCipherService:
    """Encrypt and decrypt token strings with a key derived from a secret."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "TokenCipherService":
        """Prefer the dedicated secret, falling back to the eBay client secret."""
        secret = settings.security.token_encryption_secret or settings.ebay.client_secret
        return cls(secret=secret or "")

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a stored value; a key mismatch means the account must reconnect."""
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise EbayAuthError(
                "Stored eBay tokens could not be decrypted. Please reconnect your eBay account.",
                code="token_decrypt_failed",
            ) from exc
        return plaintext.decode("utf-8")


__all__ = ["TokenCipherService"]
