"""
Core infrastructure package for the level score engine.

Provides:
- Configuration management via pydantic-settings
- Logging setup shared by library users and scripts

This module re-exports key components from submodules so callers can write:

    from levelscore.core import get_settings, configure_logging

Components Re-exported:
    Settings: Pydantic settings class with all configuration parameters
    get_settings: Function returning the cached Settings singleton
    DEFAULT_METRIC_WEIGHTS: Default clustering weight per metric
    configure_logging: Apply the standard log format and level
"""

# =============================================================================
# Re-exports from levelscore.core.config
# =============================================================================
from levelscore.core.config import Settings, get_settings, DEFAULT_METRIC_WEIGHTS

# =============================================================================
# Re-exports from levelscore.core.logging_config
# =============================================================================
from levelscore.core.logging_config import configure_logging, LOG_FORMAT

__all__ = [
    'Settings',
    'get_settings',
    'DEFAULT_METRIC_WEIGHTS',
    'configure_logging',
    'LOG_FORMAT',
]
