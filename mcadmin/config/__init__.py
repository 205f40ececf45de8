"""Configuration module for MC-Admin."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
