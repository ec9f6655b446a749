"""Tests for the credential vault and the account configuration store."""

import base64
from unittest.mock import patch

import pytest

from savebutton.auth import CredentialVault, VaultState
from savebutton.auth.vault import (
    CRYPTO_KEY_KEY,
    ENCRYPTED_PASSWORD_KEY,
    IV_KEY,
    LEGACY_PASSWORD_KEY,
    NONCE_LENGTH,
)
from savebutton.config.settings import DEFAULT_SERVER
from savebutton.config.store import AccountConfig, ConfigurationError


@pytest.fixture
def vault(kv_store):
    return CredentialVault(kv_store)


class TestCredentialVault:
    """Encryption at rest and recovery from bad stored material."""

    @pytest.mark.asyncio
    async def test_round_trip(self, vault):
        for password in ("hunter2", "pässwörd with ünïcode ✓", "x" * 500):
            await vault.encrypt(password)
            assert await vault.decrypt() == password

    @pytest.mark.asyncio
    async def test_empty_store_is_unset(self, vault):
        assert await vault.state() == VaultState.UNSET
        assert await vault.decrypt() is None
        assert await vault.resolve_password() is None

    @pytest.mark.asyncio
    async def test_plaintext_never_stored(self, vault, kv_store):
        await vault.encrypt("super-secret-password")

        raw = kv_store.path.read_text()
        assert "super-secret-password" not in raw
        assert LEGACY_PASSWORD_KEY not in await kv_store.get_all()
        assert await vault.state() == VaultState.ENCRYPTED

    @pytest.mark.asyncio
    async def test_key_generated_once_and_reused(self, vault, kv_store):
        await vault.encrypt("first")
        key_after_first = (await kv_store.get(CRYPTO_KEY_KEY))[CRYPTO_KEY_KEY]

        await vault.encrypt("second")
        key_after_second = (await kv_store.get(CRYPTO_KEY_KEY))[CRYPTO_KEY_KEY]

        assert key_after_first == key_after_second
        assert len(base64.b64decode(key_after_first)) == 32

    @pytest.mark.asyncio
    async def test_fresh_nonce_for_every_encryption(self, vault, kv_store):
        nonces = set()
        for _ in range(5):
            await vault.encrypt("same password")
            iv = (await kv_store.get(IV_KEY))[IV_KEY]
            assert len(base64.b64decode(iv)) == NONCE_LENGTH
            nonces.add(iv)

        assert len(nonces) == 5

    @pytest.mark.asyncio
    async def test_truncated_nonce_wipes_vault(self, vault, kv_store):
        await vault.encrypt("hunter2")
        await kv_store.set({IV_KEY: base64.b64encode(b"short").decode()})

        assert await vault.decrypt() is None

        remaining = await kv_store.get([ENCRYPTED_PASSWORD_KEY, IV_KEY, CRYPTO_KEY_KEY])
        assert remaining == {}
        assert await vault.state() == VaultState.UNSET

    @pytest.mark.asyncio
    async def test_altered_ciphertext_wipes_vault(self, vault, kv_store):
        await vault.encrypt("hunter2")
        stored = base64.b64decode((await kv_store.get(ENCRYPTED_PASSWORD_KEY))[ENCRYPTED_PASSWORD_KEY])
        tampered = bytes([stored[0] ^ 0x01]) + stored[1:]
        await kv_store.set({ENCRYPTED_PASSWORD_KEY: base64.b64encode(tampered).decode()})

        assert await vault.decrypt() is None
        assert await kv_store.get([ENCRYPTED_PASSWORD_KEY, IV_KEY, CRYPTO_KEY_KEY]) == {}

    @pytest.mark.asyncio
    async def test_invalid_base64_wipes_vault(self, vault, kv_store):
        await vault.encrypt("hunter2")
        await kv_store.set({ENCRYPTED_PASSWORD_KEY: "!!! not base64 !!!"})

        assert await vault.decrypt() is None
        assert await vault.state() == VaultState.UNSET

    @pytest.mark.asyncio
    async def test_wrong_key_wipes_vault(self, vault, kv_store):
        await vault.encrypt("hunter2")
        other_key = base64.b64encode(b"\x00" * 32).decode()
        await kv_store.set({CRYPTO_KEY_KEY: other_key})

        assert await vault.decrypt() is None
        assert await kv_store.get([ENCRYPTED_PASSWORD_KEY, IV_KEY, CRYPTO_KEY_KEY]) == {}

    @pytest.mark.asyncio
    async def test_empty_password_rejected(self, vault):
        with pytest.raises(ValueError):
            await vault.encrypt("")


class TestLegacyMigration:
    """Plaintext passwords from older installs are moved into the vault."""

    @pytest.mark.asyncio
    async def test_migrates_legacy_password(self, vault, kv_store):
        await kv_store.set({LEGACY_PASSWORD_KEY: "old-plaintext"})
        assert await vault.state() == VaultState.LEGACY_PLAINTEXT

        assert await vault.resolve_password() == "old-plaintext"

        assert await vault.state() == VaultState.ENCRYPTED
        assert LEGACY_PASSWORD_KEY not in await kv_store.get_all()
        assert "old-plaintext" not in kv_store.path.read_text()

    @pytest.mark.asyncio
    async def test_resolving_encrypted_password_does_not_write(self, vault, kv_store):
        await kv_store.set({LEGACY_PASSWORD_KEY: "old-plaintext"})
        await vault.resolve_password()

        with patch.object(kv_store, "set", wraps=kv_store.set) as set_spy, \
                patch.object(kv_store, "remove", wraps=kv_store.remove) as remove_spy:
            assert await vault.resolve_password() == "old-plaintext"
            assert await vault.resolve_password() == "old-plaintext"

        set_spy.assert_not_called()
        remove_spy.assert_not_called()

    @pytest.mark.asyncio
    async def test_corrupted_vault_falls_back_to_nothing(self, vault, kv_store):
        await vault.encrypt("hunter2")
        await kv_store.set({IV_KEY: "AAAA"})

        assert await vault.resolve_password() is None


class TestConfigStore:
    """Account configuration persistence."""

    @pytest.mark.asyncio
    async def test_defaults_when_nothing_stored(self, config_store):
        config = await config_store.load()

        assert config.server == DEFAULT_SERVER
        assert config.email == ""
        assert config.password == ""
        assert config.configured is False
        assert await config_store.is_configured() is False

    @pytest.mark.asyncio
    async def test_save_and_load(self, config_store, kv_store):
        await config_store.save(
            server="https://sync.example.org/",
            email="reader@example.com",
            password="s3cret",
            configured=True
        )

        config = await config_store.load()
        assert config.server == "https://sync.example.org"
        assert config.email == "reader@example.com"
        assert config.password == "s3cret"
        assert await config_store.is_configured() is True

        stored = await kv_store.get_all()
        assert LEGACY_PASSWORD_KEY not in stored
        assert "s3cret" not in kv_store.path.read_text()

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, config_store):
        await config_store.save(email="reader@example.com", password="s3cret", configured=True)
        await config_store.save(server="http://localhost:3000")

        config = await config_store.load()
        assert config.server == "http://localhost:3000"
        assert config.email == "reader@example.com"
        assert config.password == "s3cret"

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, config_store):
        with pytest.raises(ConfigurationError):
            await config_store.save(token="abc")

    @pytest.mark.asyncio
    async def test_invalid_server_rejected(self, config_store):
        with pytest.raises(ConfigurationError):
            await config_store.save(server="ftp://example.com")

    @pytest.mark.asyncio
    async def test_incomplete_without_password(self, config_store):
        await config_store.save(email="reader@example.com", configured=True)

        assert await config_store.is_configured() is False

    @pytest.mark.asyncio
    async def test_load_migrates_legacy_password(self, config_store, kv_store):
        await kv_store.set({
            "email": "reader@example.com",
            "configured": True,
            LEGACY_PASSWORD_KEY: "from-old-version",
        })

        config = await config_store.load()

        assert config.password == "from-old-version"
        assert LEGACY_PASSWORD_KEY not in await kv_store.get_all()


def test_account_config_password_hidden_from_repr():
    config = AccountConfig(email="reader@example.com", password="s3cret", configured=True)

    assert "s3cret" not in repr(config)
    assert config.is_complete
    assert config.daemon_payload() == {
        "server": DEFAULT_SERVER,
        "email": "reader@example.com",
        "password": "s3cret",
    }
