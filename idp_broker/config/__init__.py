"""Configuration module for the identity-provider broker."""
from .settings import AppConfig, ProviderConfig, load_provider, load_settings

__all__ = ["AppConfig", "ProviderConfig", "load_provider", "load_settings"]
