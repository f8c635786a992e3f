"""
Credential Store.

Holds provider credentials per team, encrypted with the SecretManager.
Credentials are decrypted only when a request needs them.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import structlog

from llm_gateway.services.secret_manager import SecretManager

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DecryptedCredentialRecord:
    """Stored credential with its payload decrypted."""

    team_id: str
    provider_id: str
    credential_name: str
    credentials: Dict[str, Any]
    is_default: bool = True
    priority: int = 0

    def __repr__(self) -> str:
        return (
            f"DecryptedCredentialRecord(team_id={self.team_id!r}, provider_id={self.provider_id!r}, "
            f"credential_name={self.credential_name!r})"
        )


class CredentialStore(Protocol):
    """Credential lookup as seen by the router."""

    async def get_decrypted_credentials(self, team_id: str, provider_id: str) -> Optional[DecryptedCredentialRecord]:
        ...


@dataclass
class _StoredCredential:
    team_id: str
    provider_id: str
    credential_name: str
    credentials_encrypted: str
    is_default: bool
    priority: int


class InMemoryCredentialStore:
    """Process-local credential store keyed by team and provider."""

    def __init__(self, secret_manager: SecretManager):
        self._secret_manager = secret_manager
        self._credentials: List[_StoredCredential] = []

    def save_credentials(
        self,
        team_id: str,
        provider_id: str,
        credentials: Dict[str, Any],
        credential_name: str = "default",
        is_default: bool = True,
        priority: int = 0,
    ) -> None:
        """Encrypt and store a credential, replacing one with the same name."""
        encrypted = self._secret_manager.encrypt(json.dumps(credentials))
        self._credentials = [
            stored for stored in self._credentials
            if not (
                stored.team_id == team_id
                and stored.provider_id == provider_id
                and stored.credential_name == credential_name
            )
        ]
        self._credentials.append(_StoredCredential(
            team_id=team_id,
            provider_id=provider_id,
            credential_name=credential_name,
            credentials_encrypted=encrypted,
            is_default=is_default,
            priority=priority,
        ))
        logger.info("Credentials saved", team_id=team_id, provider=provider_id, credential_name=credential_name)

    def delete_credentials(self, team_id: str, provider_id: str, credential_name: str = "default") -> bool:
        before = len(self._credentials)
        self._credentials = [
            stored for stored in self._credentials
            if not (
                stored.team_id == team_id
                and stored.provider_id == provider_id
                and stored.credential_name == credential_name
            )
        ]
        return len(self._credentials) < before

    async def get_decrypted_credentials(self, team_id: str, provider_id: str) -> Optional[DecryptedCredentialRecord]:
        """
        Decrypt the team's preferred credential for a provider.

        Default credentials win, then the lowest priority value.
        """
        candidates = [
            stored for stored in self._credentials
            if stored.team_id == team_id and stored.provider_id == provider_id
        ]
        if not candidates:
            return None

        chosen = min(candidates, key=lambda stored: (not stored.is_default, stored.priority))
        return DecryptedCredentialRecord(
            team_id=chosen.team_id,
            provider_id=chosen.provider_id,
            credential_name=chosen.credential_name,
            credentials=json.loads(self._secret_manager.decrypt(chosen.credentials_encrypted)),
            is_default=chosen.is_default,
            priority=chosen.priority,
        )
