"""Authentication module: credential vault for the account password."""

from .vault import CredentialVault, VaultState

__all__ = ["CredentialVault", "VaultState"]
