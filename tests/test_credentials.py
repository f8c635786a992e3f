"""Tests for the secret manager and the encrypted credential store."""

import pytest

from llm_gateway.core.config import SecuritySettings, Settings
from llm_gateway.services.credential_store import InMemoryCredentialStore
from llm_gateway.services.secret_manager import SecretManager, SecretManagerError


@pytest.fixture
def secret_manager() -> SecretManager:
    return SecretManager(SecretManager.generate_key())


class TestSecretManager:
    def test_encrypt_decrypt(self, secret_manager):
        ciphertext = secret_manager.encrypt("sk-secret")

        assert ciphertext != "sk-secret"
        assert secret_manager.decrypt(ciphertext) == "sk-secret"

    def test_raw_32_character_key(self):
        manager = SecretManager("0123456789abcdef0123456789abcdef")
        assert manager.decrypt(manager.encrypt("value")) == "value"

    def test_wrong_key(self, secret_manager):
        ciphertext = secret_manager.encrypt("sk-secret")
        other = SecretManager(SecretManager.generate_key())

        with pytest.raises(SecretManagerError):
            other.decrypt(ciphertext)

    @pytest.mark.parametrize("key", ["", "too-short"])
    def test_invalid_keys(self, key):
        with pytest.raises(SecretManagerError):
            SecretManager(key)

    def test_from_settings_generates_key_when_unset(self):
        settings = Settings(security=SecuritySettings(credentials_encryption_key=""))
        manager = SecretManager.from_settings(settings)
        assert manager.decrypt(manager.encrypt("x")) == "x"

    def test_from_settings_uses_configured_key(self):
        key = SecretManager.generate_key()
        ciphertext = SecretManager(key).encrypt("x")

        settings = Settings(security=SecuritySettings(credentials_encryption_key=key))
        assert SecretManager.from_settings(settings).decrypt(ciphertext) == "x"


class TestInMemoryCredentialStore:
    @pytest.mark.asyncio
    async def test_round_trip_is_encrypted_at_rest(self, secret_manager):
        store = InMemoryCredentialStore(secret_manager)
        store.save_credentials("team-1", "openai", {"apiKey": "sk-secret"})

        assert "sk-secret" not in store._credentials[0].credentials_encrypted
        record = await store.get_decrypted_credentials("team-1", "openai")
        assert record.credentials == {"apiKey": "sk-secret"}
        assert "sk-secret" not in repr(record)

    @pytest.mark.asyncio
    async def test_missing(self, secret_manager):
        store = InMemoryCredentialStore(secret_manager)
        store.save_credentials("team-1", "openai", {"apiKey": "k"})

        assert await store.get_decrypted_credentials("team-2", "openai") is None
        assert await store.get_decrypted_credentials("team-1", "anthropic") is None

    @pytest.mark.asyncio
    async def test_default_then_priority(self, secret_manager):
        store = InMemoryCredentialStore(secret_manager)
        store.save_credentials("team-1", "openai", {"apiKey": "backup"}, "backup", is_default=False, priority=0)
        store.save_credentials("team-1", "openai", {"apiKey": "primary"}, "primary", is_default=True, priority=5)

        record = await store.get_decrypted_credentials("team-1", "openai")
        assert record.credential_name == "primary"

        store.delete_credentials("team-1", "openai", "primary")
        store.save_credentials("team-1", "openai", {"apiKey": "second"}, "second", is_default=False, priority=1)
        record = await store.get_decrypted_credentials("team-1", "openai")
        assert record.credential_name == "backup"

    @pytest.mark.asyncio
    async def test_save_replaces_same_name(self, secret_manager):
        store = InMemoryCredentialStore(secret_manager)
        store.save_credentials("team-1", "openai", {"apiKey": "old"})
        store.save_credentials("team-1", "openai", {"apiKey": "new"})

        record = await store.get_decrypted_credentials("team-1", "openai")
        assert record.credentials == {"apiKey": "new"}
        assert len(store._credentials) == 1

    def test_delete(self, secret_manager):
        store = InMemoryCredentialStore(secret_manager)
        store.save_credentials("team-1", "openai", {"apiKey": "k"})

        assert store.delete_credentials("team-1", "openai") is True
        assert store.delete_credentials("team-1", "openai") is False
