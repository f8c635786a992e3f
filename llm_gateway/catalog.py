"""
Model catalog.

Unified model id helpers, the model-store interface the router depends
on, and an in-memory catalog of discovered models and team aliases.
"""

import re
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Protocol, Tuple

import structlog

from llm_gateway.schemas import ProviderModel, ResolvedModel

logger = structlog.get_logger(__name__)

_PROVIDER_ID_RE = re.compile(r"^[a-z][a-z0-9]*$")
_MODEL_ID_RE = re.compile(r"^[a-z0-9][a-z0-9._-]*$")
_DATE_SUFFIX_RE = re.compile(r"-\d{8}$")
_ISO_DATE_SUFFIX_RE = re.compile(r"-\d{4}-\d{2}-\d{2}$")
_LATEST_SUFFIX_RE = re.compile(r"-latest$")


# =============================================================================
# Unified ids
# =============================================================================


@dataclass(frozen=True)
class ParsedUnifiedId:
    provider_id: str
    model_id: str


def generate_unified_id(provider_id: str, provider_model_id: str) -> str:
    return f"{provider_id}:{provider_model_id}"


def parse_unified_id(unified_id: str) -> Optional[ParsedUnifiedId]:
    """
    Split ``provider:model`` at the first colon.

    Returns None when there is no colon or either side is empty.
    """
    colon_index = unified_id.find(":")
    if colon_index <= 0 or colon_index == len(unified_id) - 1:
        return None
    return ParsedUnifiedId(
        provider_id=unified_id[:colon_index],
        model_id=unified_id[colon_index + 1:],
    )


def is_valid_unified_id(unified_id: str) -> bool:
    """Lowercase alphanumeric provider id and a model id of [a-z0-9._-]."""
    parsed = parse_unified_id(unified_id)
    if parsed is None:
        return False
    return bool(_PROVIDER_ID_RE.match(parsed.provider_id) and _MODEL_ID_RE.match(parsed.model_id))


def extract_canonical_name(provider_model_id: str) -> str:
    """Strip date (-20240229, -2024-02-29) and -latest suffixes."""
    canonical = _DATE_SUFFIX_RE.sub("", provider_model_id)
    canonical = _ISO_DATE_SUFFIX_RE.sub("", canonical)
    return _LATEST_SUFFIX_RE.sub("", canonical)


# =============================================================================
# Store interface
# =============================================================================


class ModelStore(Protocol):
    """Model persistence as seen by the router."""

    async def resolve_model_identifier(self, identifier: str, team_id: Optional[str]) -> Optional[ResolvedModel]:
        ...

    async def store_provider_models(self, provider_id: str, models: List[ProviderModel]) -> List["ModelRecord"]:
        ...


@dataclass(frozen=True)
class ModelRecord:
    """A discovered model."""

    provider_id: str
    provider_model_id: str
    unified_id: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    context_length: Optional[int] = None

    def to_resolved(self) -> ResolvedModel:
        return ResolvedModel(
            provider_id=self.provider_id,
            provider_model_id=self.provider_model_id,
            unified_id=self.unified_id,
            context_length=self.context_length,
        )


# =============================================================================
# In-memory catalog
# =============================================================================


class InMemoryModelCatalog:
    """
    Process-local model catalog.

    Aliases are scoped to a team, or global when team_id is None. A team
    alias shadows a global alias of the same name.
    """

    def __init__(self):
        self._models: Dict[str, ModelRecord] = {}
        self._aliases: Dict[Tuple[Optional[str], str], str] = {}

    def upsert_model(
        self,
        provider_id: str,
        provider_model_id: str,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        context_length: Optional[int] = None,
    ) -> ModelRecord:
        """Insert a model, or update an existing one keeping fields that are not given."""
        unified_id = generate_unified_id(provider_id, provider_model_id)
        existing = self._models.get(unified_id)

        if existing is None:
            record = ModelRecord(
                provider_id=provider_id,
                provider_model_id=provider_model_id,
                unified_id=unified_id,
                display_name=display_name,
                description=description,
                context_length=context_length,
            )
        else:
            record = replace(
                existing,
                display_name=display_name if display_name is not None else existing.display_name,
                description=description if description is not None else existing.description,
                context_length=context_length if context_length is not None else existing.context_length,
            )

        self._models[unified_id] = record
        return record

    async def store_provider_models(self, provider_id: str, models: List[ProviderModel]) -> List[ModelRecord]:
        """Upsert a provider's model list."""
        stored = [
            self.upsert_model(
                provider_id,
                model.id,
                display_name=model.display_name or model.id,
                description=model.description,
                context_length=model.context_length,
            )
            for model in models
        ]
        logger.info("Provider models stored", provider=provider_id, count=len(stored))
        return stored

    def get_model(self, unified_id: str) -> Optional[ModelRecord]:
        return self._models.get(unified_id)

    def list_models(self, provider_id: Optional[str] = None) -> List[ModelRecord]:
        return [
            record for record in self._models.values()
            if provider_id is None or record.provider_id == provider_id
        ]

    def delete_models_by_provider(self, provider_id: str) -> int:
        doomed = [uid for uid, record in self._models.items() if record.provider_id == provider_id]
        for unified_id in doomed:
            del self._models[unified_id]
        return len(doomed)

    def add_alias(self, alias: str, unified_id: str, team_id: Optional[str] = None) -> None:
        """
        Raises:
            ValueError: If the model is unknown or the alias is taken in this scope
        """
        if unified_id not in self._models:
            raise ValueError(f"Model not found: {unified_id}")
        if (team_id, alias) in self._aliases:
            raise ValueError(f"Alias already exists: {alias}")
        self._aliases[(team_id, alias)] = unified_id

    def remove_alias(self, alias: str, team_id: Optional[str] = None) -> bool:
        return self._aliases.pop((team_id, alias), None) is not None

    async def resolve_model_identifier(self, identifier: str, team_id: Optional[str]) -> Optional[ResolvedModel]:
        """Resolve a team alias, then a global alias, then a stored unified id."""
        scopes = [team_id, None] if team_id is not None else [None]
        for scope in scopes:
            unified_id = self._aliases.get((scope, identifier))
            if unified_id and unified_id in self._models:
                return self._models[unified_id].to_resolved()

        record = self._models.get(identifier)
        return record.to_resolved() if record else None
