"""
MC-Admin Configuration Settings

This module contains all configuration constants for the management service.
Values marked with an environment variable can be overridden at startup.
"""

import os
from dataclasses import dataclass, field
from typing import Dict


@dataclass
class Settings:
    """Service configuration settings."""

    # Management server settings
    HOST: str = os.environ.get("MCADMIN_HOST", "127.0.0.1")
    PORT: int = int(os.environ.get("MCADMIN_PORT", "5000"))

    # Memcached target settings
    MEMCACHED: str = os.environ.get("MCADMIN_MEMCACHED", "")
    DEFAULT_MEMCACHED_PORT: int = 11211
    HOST_ALIASES: Dict[str, str] = field(
        default_factory=lambda: {"memcached": "localhost"}
    )

    # Applies to the dial, every socket read and write, and enumeration reads
    TIMEOUT: float = float(os.environ.get("MCADMIN_TIMEOUT", "5"))

    # Item constraints
    MAX_KEY_LENGTH: int = 250

    # Connection settings
    READ_BUFFER_SIZE: int = 65536
    # Longest management request line; leaves room for a 1 MiB value in JSON
    MAX_REQUEST_SIZE: int = int(os.environ.get("MCADMIN_MAX_REQUEST_SIZE", str(2 * 1024 * 1024)))

    # Logging settings
    DEBUG: bool = os.environ.get("MCADMIN_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("MCADMIN_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
