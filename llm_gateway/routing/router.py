"""
Model Router.

Resolves a unified model id or alias for a team into the provider model,
the adapter that serves it and the team's decrypted credentials. The
resolution is a linear fallback chain:

1. Alias or stored unified id from the model catalog
2. Direct ``provider:model`` parse, for models not discovered yet
3. Adapter lookup in the registry
4. Credential lookup and decryption
"""

from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from llm_gateway.adapters.base import ProviderAdapter
from llm_gateway.adapters.registry import AdapterRegistry
from llm_gateway.catalog import ModelRecord, ModelStore, parse_unified_id
from llm_gateway.errors import ModelResolutionError
from llm_gateway.schemas import DecryptedCredentials, ResolvedModel
from llm_gateway.services.credential_store import CredentialStore

logger = structlog.get_logger(__name__)


@dataclass
class RouteResolution:
    """Everything needed to execute a request against a provider."""

    model: ResolvedModel
    adapter: ProviderAdapter
    credentials: DecryptedCredentials = field(repr=False)


@dataclass
class ModelFetchResult:
    """Outcome of a provider model discovery."""

    success: bool
    models_count: int = 0
    models: List[ModelRecord] = field(default_factory=list)
    error: Optional[str] = None


class ModelRouter:
    """Routes unified model ids to adapters and credentials."""

    def __init__(
        self,
        registry: AdapterRegistry,
        model_store: ModelStore,
        credential_store: CredentialStore,
    ):
        self.registry = registry
        self.model_store = model_store
        self.credential_store = credential_store

    async def _resolve_model(self, model_identifier: str, team_id: Optional[str]) -> Optional[ResolvedModel]:
        resolved = await self.model_store.resolve_model_identifier(model_identifier, team_id)
        if resolved is not None:
            return resolved

        parsed = parse_unified_id(model_identifier)
        if parsed is None:
            return None
        return ResolvedModel(
            provider_id=parsed.provider_id,
            provider_model_id=parsed.model_id,
            unified_id=model_identifier,
        )

    async def _load_credentials(self, team_id: str, provider_id: str) -> DecryptedCredentials:
        record = await self.credential_store.get_decrypted_credentials(team_id, provider_id)
        if record is None:
            raise ModelResolutionError(
                f"No credentials configured for provider: {provider_id}",
                "no_credentials",
            )
        return DecryptedCredentials.from_mapping(record.credentials)

    async def resolve_model_for_routing(self, model_identifier: str, team_id: str) -> RouteResolution:
        """
        Resolve a model identifier for a team.

        Args:
            model_identifier: Unified id (``provider:model``) or alias
            team_id: Team whose aliases and credentials apply

        Returns:
            RouteResolution with the model, adapter and credentials

        Raises:
            ModelResolutionError: model_not_found, no_adapter or no_credentials
        """
        resolved = await self._resolve_model(model_identifier, team_id)
        if resolved is None:
            raise ModelResolutionError(
                f"Model not found: {model_identifier}. Use format 'provider:model-id' or a configured alias.",
                "model_not_found",
            )

        adapter = self.registry.get_adapter(resolved.provider_id)
        if adapter is None:
            raise ModelResolutionError(
                f"No adapter available for provider: {resolved.provider_id}",
                "no_adapter",
            )

        credentials = await self._load_credentials(team_id, resolved.provider_id)

        logger.debug(
            "Model resolved",
            model=model_identifier,
            provider=resolved.provider_id,
            provider_model=resolved.provider_model_id,
            team_id=team_id,
        )
        return RouteResolution(model=resolved, adapter=adapter, credentials=credentials)

    async def get_provider_id_from_model(self, model_identifier: str, team_id: str) -> Optional[str]:
        """Provider id of a unified id, or of the model an alias points at."""
        parsed = parse_unified_id(model_identifier)
        if parsed is not None:
            return parsed.provider_id

        resolved = await self.model_store.resolve_model_identifier(model_identifier, team_id)
        return resolved.provider_id if resolved else None

    async def is_model_routable(self, model_identifier: str, team_id: str) -> bool:
        try:
            await self.resolve_model_for_routing(model_identifier, team_id)
        except ModelResolutionError:
            return False
        return True

    async def fetch_models_for_provider(self, team_id: str, provider_id: str) -> ModelFetchResult:
        """
        Discover a provider's models with the team's credentials and store them.

        Raises:
            ModelResolutionError: provider_not_found or no_credentials
        """
        adapter = self.registry.get_adapter(provider_id)
        if adapter is None:
            raise ModelResolutionError(f"Provider not found: {provider_id}", "provider_not_found")

        credentials = await self._load_credentials(team_id, provider_id)

        try:
            provider_models = await adapter.list_models(credentials)
        except Exception as e:
            logger.warning(
                "Model fetch failed",
                provider=provider_id,
                team_id=team_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return ModelFetchResult(success=False, error=str(e))

        stored = await self.model_store.store_provider_models(provider_id, provider_models)
        return ModelFetchResult(success=True, models_count=len(stored), models=stored)
