"""Identity mappers: provider token response → FederatedIdentity."""
from .base import IdentityMapper, MapperSettings
from .json_mapper import JsonIdentityMapper
from .registry import build_mapper, get_mapper_class, register_mapper

__all__ = [
    "IdentityMapper",
    "MapperSettings",
    "JsonIdentityMapper",
    "build_mapper",
    "get_mapper_class",
    "register_mapper",
]
