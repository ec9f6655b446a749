"""Account configuration store backed by the key/value store and the vault."""

import asyncio
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from .settings import get_settings, DEFAULT_SERVER
from ..auth.vault import CredentialVault
from ..storage.kv import KeyValueStore
from ..utils.logging import get_logger


NON_SECRET_FIELDS = ("server", "email", "configured")


class ConfigurationError(Exception):
    """Raised when configuration input is invalid."""
    pass


def normalize_server(value: str) -> str:
    """Strip whitespace and trailing slashes; empty means the default server."""
    value = (value or "").strip()
    if not value:
        return DEFAULT_SERVER
    if not value.startswith(("http://", "https://")):
        raise ValueError("Server must be an http(s) URL")
    return value.rstrip("/")


class AccountConfig(BaseModel):
    """Server account configuration."""

    server: str = Field(default=DEFAULT_SERVER, description="Base URL of the sync server")
    email: str = Field(default="", description="Account email")
    password: str = Field(default="", repr=False, description="Decrypted account password")
    configured: bool = Field(default=False, description="Whether setup has been completed")

    @field_validator("server")
    @classmethod
    def validate_server(cls, v: str) -> str:
        return normalize_server(v)

    @property
    def is_complete(self) -> bool:
        """Configured, with both credentials present."""
        return self.configured and bool(self.email) and bool(self.password)

    def daemon_payload(self) -> Dict[str, str]:
        return {"server": self.server, "email": self.email, "password": self.password}


class ConfigStore:
    """Loads and saves the single account configuration.

    Non-secret fields are stored directly. The password only ever goes
    through the credential vault.
    """

    def __init__(self, kv_store: KeyValueStore, vault: Optional[CredentialVault] = None):
        """Initialize the configuration store.

        Args:
            kv_store: Key/value store holding the non-secret fields
            vault: Credential vault; one is created over ``kv_store`` if omitted
        """
        self.kv_store = kv_store
        self.vault = vault or CredentialVault(kv_store)
        self.logger = get_logger(self.__class__.__name__)
        self._lock = asyncio.Lock()

    async def load(self) -> AccountConfig:
        """Load the configuration, resolving the password through the vault."""
        async with self._lock:
            stored = await self.kv_store.get(NON_SECRET_FIELDS)
            password = await self.vault.resolve_password()

        try:
            return AccountConfig(
                server=stored.get("server") or DEFAULT_SERVER,
                email=stored.get("email") or "",
                password=password or "",
                configured=stored.get("configured") is True,
            )
        except ValueError as e:
            raise ConfigurationError(f"Stored configuration is invalid: {e}")

    async def save(self, **changes: Any) -> None:
        """Persist a partial configuration update.

        Args:
            **changes: Any of ``server``, ``email``, ``configured``, ``password``
        """
        unknown = set(changes) - set(NON_SECRET_FIELDS) - {"password"}
        if unknown:
            raise ConfigurationError(f"Unknown configuration fields: {sorted(unknown)}")

        password = changes.pop("password", None)

        if "server" in changes:
            try:
                changes["server"] = normalize_server(changes["server"])
            except ValueError as e:
                raise ConfigurationError(str(e))
        if "configured" in changes:
            changes["configured"] = bool(changes["configured"])

        async with self._lock:
            if changes:
                await self.kv_store.set(changes)
            if password:
                await self.vault.encrypt(password)

        self.logger.info(
            "Configuration saved",
            fields=sorted(changes),
            password_updated=bool(password)
        )

    async def is_configured(self) -> bool:
        config = await self.load()
        return config.is_complete


_config_store: Optional[ConfigStore] = None


def get_config_store() -> ConfigStore:
    """Get the process-wide configuration store."""
    global _config_store
    if _config_store is None:
        settings = get_settings()
        _config_store = ConfigStore(KeyValueStore(settings.storage.state_path))
    return _config_store
