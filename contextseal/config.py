"""
contextseal Configuration
=========================

Dataclass configuration with sensible defaults, overridable from the
environment (``CS_*`` variables) or explicit keyword arguments.
"""

import os
from dataclasses import dataclass
from typing import Literal, Optional

from .errors import ConfigurationError, ValidationError
from .keys import DEFAULT_ALIAS, normalize_alias

StoreBackend = Literal["memory", "file"]


@dataclass
class ContextSealConfig:
    """
    Configuration for contextseal.

    Every field has a default that works for local development.
    """

    # === Master Key ===
    key_alias: str = DEFAULT_ALIAS
    keys_dir: str = "~/.contextseal/keys"

    # === Document Store ===
    store_backend: StoreBackend = "file"
    store_dir: str = "./documents"

    # === Developer Experience ===
    debug: bool = False

    def __post_init__(self):
        """Validate configuration"""
        if self.store_backend not in ("memory", "file"):
            raise ConfigurationError(
                f"Invalid store backend: {self.store_backend}. "
                f"Must be 'memory' or 'file'"
            )
        try:
            self.key_alias = normalize_alias(self.key_alias)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e

    @classmethod
    def from_env(cls) -> 'ContextSealConfig':
        """Create configuration from environment variables"""
        return cls(
            key_alias=os.getenv("CS_KEY_ALIAS", DEFAULT_ALIAS),
            keys_dir=os.getenv("CS_KEYS_DIR", "~/.contextseal/keys"),
            store_backend=os.getenv("CS_STORE_BACKEND", "file"),  # type: ignore
            store_dir=os.getenv("CS_STORE_DIR", "./documents"),
            debug=os.getenv("CS_DEBUG", "false").lower() == "true",
        )


# Global configuration instance
_global_config: Optional[ContextSealConfig] = None


def configure(**kwargs) -> ContextSealConfig:
    """Configure contextseal; explicit arguments override the environment"""
    global _global_config

    config_dict = ContextSealConfig.from_env().__dict__.copy()
    config_dict.update(kwargs)

    _global_config = ContextSealConfig(**config_dict)
    return _global_config


def get_config() -> ContextSealConfig:
    """Get current configuration, creating default if needed"""
    global _global_config

    if _global_config is None:
        _global_config = configure()

    return _global_config
