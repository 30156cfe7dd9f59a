"""Configuration package."""

from .settings import ServerConfig, Settings, cfg

__all__ = ["ServerConfig", "Settings", "cfg"]
