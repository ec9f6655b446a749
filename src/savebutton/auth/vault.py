"""Credential vault: AES-256-GCM encryption of the account password at rest."""

import base64
import binascii
import os
from enum import Enum
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..storage.kv import KeyValueStore
from ..utils.logging import get_logger


KEY_BITS = 256
NONCE_LENGTH = 12  # 96 bits, recommended for AES-GCM

# Entry names in the key/value store
ENCRYPTED_PASSWORD_KEY = "encryptedPassword"
IV_KEY = "passwordIv"
CRYPTO_KEY_KEY = "cryptoKey"
LEGACY_PASSWORD_KEY = "password"

VAULT_KEYS = (ENCRYPTED_PASSWORD_KEY, IV_KEY, CRYPTO_KEY_KEY)


class VaultState(str, Enum):
    """Persisted states of the vault."""
    UNSET = "unset"
    LEGACY_PLAINTEXT = "legacy_plaintext"
    ENCRYPTED = "encrypted"


class VaultCorruptionError(Exception):
    """Raised internally when stored vault material cannot be decrypted."""
    pass


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode(text: str) -> bytes:
    if not isinstance(text, str):
        raise VaultCorruptionError("Vault entry is not text")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise VaultCorruptionError(f"Invalid base64: {e}")


class CredentialVault:
    """Encrypts and decrypts the account password with a locally generated key.

    The key is generated once and reused until the vault is wiped. Every
    encryption uses a fresh random nonce, and the ciphertext and nonce are
    always persisted in the same store update. Decryption failures wipe the
    vault instead of raising, which forces the user to re-enter credentials.
    """

    def __init__(self, store: KeyValueStore):
        """Initialize the vault.

        Args:
            store: Key/value store holding the vault entries
        """
        self.store = store
        self.logger = get_logger(self.__class__.__name__)

    async def state(self) -> VaultState:
        """Report which of the three persisted states the vault is in."""
        entries = await self.store.get(VAULT_KEYS + (LEGACY_PASSWORD_KEY,))

        if entries.get(ENCRYPTED_PASSWORD_KEY) and entries.get(IV_KEY) and entries.get(CRYPTO_KEY_KEY):
            return VaultState.ENCRYPTED
        if entries.get(LEGACY_PASSWORD_KEY):
            return VaultState.LEGACY_PLAINTEXT
        return VaultState.UNSET

    async def _load_or_create_key(self) -> bytes:
        entries = await self.store.get(CRYPTO_KEY_KEY)
        stored = entries.get(CRYPTO_KEY_KEY)

        if stored:
            try:
                key = _b64decode(stored)
                if len(key) * 8 == KEY_BITS:
                    return key
            except VaultCorruptionError:
                pass
            self.logger.warning("Stored encryption key is unusable, generating a new one")

        key = AESGCM.generate_key(bit_length=KEY_BITS)
        await self.store.set({CRYPTO_KEY_KEY: _b64encode(key)})
        self.logger.info("Generated new vault encryption key")
        return key

    async def encrypt(self, password: str) -> None:
        """Encrypt and persist ``password``, completing any legacy migration."""
        if not password:
            raise ValueError("Password must not be empty")

        key = await self._load_or_create_key()
        nonce = os.urandom(NONCE_LENGTH)
        ciphertext = AESGCM(key).encrypt(nonce, password.encode("utf-8"), None)

        await self.store.set({
            ENCRYPTED_PASSWORD_KEY: _b64encode(ciphertext),
            IV_KEY: _b64encode(nonce),
        })

        await self.store.remove(LEGACY_PASSWORD_KEY)

        self.logger.debug("Password encrypted and stored")

    async def decrypt(self) -> Optional[str]:
        """Return the stored password, or None if absent or unrecoverable."""
        entries = await self.store.get(VAULT_KEYS)

        if not entries.get(ENCRYPTED_PASSWORD_KEY) or not entries.get(IV_KEY):
            return None
        if not entries.get(CRYPTO_KEY_KEY):
            return None

        try:
            return self._open(entries)
        except VaultCorruptionError as e:
            self.logger.warning("Stored password could not be decrypted, wiping vault", error=str(e))
            await self.wipe()
            return None

    def _open(self, entries: dict) -> str:
        key = _b64decode(entries[CRYPTO_KEY_KEY])
        nonce = _b64decode(entries[IV_KEY])
        ciphertext = _b64decode(entries[ENCRYPTED_PASSWORD_KEY])

        if len(key) * 8 != KEY_BITS:
            raise VaultCorruptionError("Invalid key length")
        if len(nonce) != NONCE_LENGTH:
            raise VaultCorruptionError("Invalid nonce length")

        try:
            plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
            return plaintext.decode("utf-8")
        except InvalidTag:
            raise VaultCorruptionError("Authentication tag mismatch")
        except UnicodeDecodeError as e:
            raise VaultCorruptionError(f"Invalid UTF-8: {e}")

    async def resolve_password(self) -> Optional[str]:
        """Return the password, migrating a legacy plaintext entry if present.

        Repeated calls in the encrypted state perform no writes.
        """
        password = await self.decrypt()
        if password is not None:
            return password

        legacy = (await self.store.get(LEGACY_PASSWORD_KEY)).get(LEGACY_PASSWORD_KEY)
        if not legacy:
            return None

        self.logger.info("Migrating legacy plaintext password into the vault")
        await self.encrypt(legacy)
        return legacy

    async def wipe(self) -> None:
        """Remove all encrypted vault entries."""
        await self.store.remove(VAULT_KEYS)
