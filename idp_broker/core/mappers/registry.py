"""Mapper registry: resolves the mapper named in provider configuration."""
from __future__ import annotations
import logging
from typing import Optional, Type

from idp_broker.core.exceptions import ConfigurationError

from .base import IdentityMapper, MapperSettings
from .json_mapper import JsonIdentityMapper

logger = logging.getLogger(__name__)

_mapper_classes: dict[str, Type[IdentityMapper]] = {}


def register_mapper(name: str, mapper_class: Type[IdentityMapper]) -> None:
    """Register a mapper class under a configuration name."""
    _mapper_classes[name.lower()] = mapper_class


def get_mapper_class(name: str) -> Type[IdentityMapper]:
    """Get a registered mapper class by name."""
    mapper_class = _mapper_classes.get((name or "").lower())
    if mapper_class is None:
        raise ConfigurationError(
            f"Unknown identity mapper '{name}'. Available: {sorted(_mapper_classes)}"
        )
    return mapper_class


def build_mapper(name: str, provider_id: str, settings: Optional[MapperSettings] = None) -> IdentityMapper:
    """Instantiate the mapper configured for a provider."""
    mapper = get_mapper_class(name)(provider_id, settings)
    logger.debug("Built %s mapper for provider %s", mapper.provider_name, provider_id)
    return mapper


register_mapper("json", JsonIdentityMapper)
