"""Keyring-backed storage for the credential vault master key."""

from __future__ import annotations

import keyring
from keyring.errors import KeyringError, PasswordDeleteError


class KeyringStoreError(RuntimeError):
    """Raised when keyring backend operation fails."""


class KeyringVaultKeyStore:
    """Store the vault master key using OS keyring backend."""

    def __init__(
        self,
        service_name: str = "exam-lms-gateway",
        username: str = "vault:master-key",
    ) -> None:
        self._service_name = service_name
        self._username = username

    def set_key(self, secret: str) -> None:
        """Persist master key."""
        normalized = secret.strip()
        if not normalized:
            raise ValueError("secret must not be empty")

        try:
            keyring.set_password(self._service_name, self._username, normalized)
        except KeyringError as exc:
            raise KeyringStoreError("Failed to persist vault master key.") from exc

    def get_key(self) -> str | None:
        """Load master key or return None."""
        try:
            secret = keyring.get_password(self._service_name, self._username)
        except KeyringError as exc:
            raise KeyringStoreError("Failed to read vault master key.") from exc

        return secret if secret else None

    def delete_key(self) -> None:
        """Delete master key; no-op if key is already absent."""
        try:
            keyring.delete_password(self._service_name, self._username)
        except PasswordDeleteError:
            return
        except KeyringError as exc:
            raise KeyringStoreError("Failed to delete vault master key.") from exc
