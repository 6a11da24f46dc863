"""At-rest encryption of access tokens keyed by an LMS setup's secret pair."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from lms_gateway.application.lms import CredentialVault
from lms_gateway.domain.lms import LmsConfig

DEFAULT_KDF_ITERATIONS = 200_000


class TokenCipherError(ValueError):
    """Raised when a stored token cannot be decrypted with the current key."""


class TokenCipher:
    """Fernet cipher whose key is derived from a password/salt pair."""

    def __init__(
        self,
        password: str,
        salt: str,
        *,
        iterations: int = DEFAULT_KDF_ITERATIONS,
    ) -> None:
        if not password:
            raise ValueError("password must not be empty")
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=hashlib.sha256(salt.encode("utf-8")).digest(),
            iterations=iterations,
        )
        key = base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))
        self._fernet = Fernet(key)

    @classmethod
    def for_config(
        cls,
        config: LmsConfig,
        vault: CredentialVault,
        *,
        iterations: int = DEFAULT_KDF_ITERATIONS,
    ) -> TokenCipher:
        """Key tokens on the plain client secret and client name.

        Changing either credential makes previously stored tokens undecryptable.
        Raises ``ValueError`` when the vault cannot decrypt the secret.
        """
        return cls(vault.decrypt(config.client_secret), config.client_name, iterations=iterations)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise TokenCipherError("Stored access token could not be decrypted.") from exc
