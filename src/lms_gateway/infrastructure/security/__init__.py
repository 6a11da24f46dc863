"""Security infrastructure package."""

from lms_gateway.infrastructure.security.keyring_store import (
    KeyringStoreError,
    KeyringVaultKeyStore,
)
from lms_gateway.infrastructure.security.token_cipher import TokenCipher, TokenCipherError
from lms_gateway.infrastructure.security.vault import (
    CredentialVaultError,
    FernetCredentialVault,
    create_default_vault,
)

__all__ = [
    "CredentialVaultError",
    "FernetCredentialVault",
    "KeyringStoreError",
    "KeyringVaultKeyStore",
    "TokenCipher",
    "TokenCipherError",
    "create_default_vault",
]
