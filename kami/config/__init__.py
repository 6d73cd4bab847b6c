"""
Kami Unified Configuration

Loads all sections of config.toml.
Environment variables override TOML values.
"""

from .loader import (
    KamiConfig,
    TokenConfig,
    TokenSectionConfig,
    StakingSectionConfig,
    FeeSectionConfig,
    ChainSectionConfig,
    load_config,
)

__all__ = [
    "KamiConfig",
    "TokenConfig",
    "TokenSectionConfig",
    "StakingSectionConfig",
    "FeeSectionConfig",
    "ChainSectionConfig",
    "load_config",
]
