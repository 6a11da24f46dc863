"""Fernet credential vault for LMS client secrets."""

from __future__ import annotations

import base64
import hashlib
import logging
import os

from cryptography.fernet import Fernet, InvalidToken

from lms_gateway.application.lms import CredentialVault
from lms_gateway.infrastructure.security.keyring_store import KeyringVaultKeyStore

LOGGER = logging.getLogger(__name__)
VAULT_KEY_ENV_VAR = "LMS_GATEWAY_VAULT_KEY"


class CredentialVaultError(ValueError):
    """Raised when ciphertext cannot be decrypted with the vault key."""


class FernetCredentialVault(CredentialVault):
    """Encrypt secrets with a Fernet key derived from a master secret."""

    def __init__(self, master_secret: str) -> None:
        if not master_secret.strip():
            raise ValueError("master_secret must not be empty")
        digest = hashlib.sha256(master_secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise CredentialVaultError(
                f"Could not decrypt credential. Check {VAULT_KEY_ENV_VAR}."
            ) from exc


def create_default_vault(
    *,
    key_store: KeyringVaultKeyStore | None = None,
) -> FernetCredentialVault:
    """Build vault from env master key, falling back to the OS keyring.

    A missing keyring entry is generated once and stored for later runs.
    """
    raw = os.environ.get(VAULT_KEY_ENV_VAR, "").strip()
    if raw:
        return FernetCredentialVault(raw)

    store = key_store or KeyringVaultKeyStore()
    secret = store.get_key()
    if secret is None:
        secret = Fernet.generate_key().decode("utf-8")
        store.set_key(secret)
        LOGGER.info("event=vault_master_key_generated source=keyring")
    return FernetCredentialVault(secret)
