"""
Settings and environment management module for the level score engine.

This module provides centralized configuration management using pydantic-settings,
which automatically loads settings from environment variables and .env files.

Key Features:
- Environment variable validation and type coercion
- Defaults matching the documented clustering policy
- Singleton pattern via @lru_cache for efficient access

Environment Variables:
- CLUSTERING_RANDOM_SEED: Seed for k-means++ initialization (default: 42)
- MAX_CLUSTERS: Upper bound on k per concept group (default: 4)
- MIN_GROUP_SIZE: Smallest concept group that gets clustered (default: 4)
- CONSTANT_COLUMN_EPSILON: Column range under which a metric is treated as constant
- KMEANS_N_INIT / KMEANS_MAX_ITER: scikit-learn KMeans tuning
- DEFAULT_MAX_LEVEL: Upper bound used when a caller omits the range maximum
- PRESERVE_MANUAL_OVERRIDES: Skip manually overridden levels on recluster
- METRIC_WEIGHTS: JSON object of metric name -> weight
- LOG_LEVEL: Root logging level

Usage:
    from levelscore.core.config import get_settings

    settings = get_settings()
    seed = settings.clustering_random_seed
"""

from functools import lru_cache
from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Default clustering weights. Repeat ratio is upweighted because repeat-play
# is the strongest churn signal among the clustering metrics.
DEFAULT_METRIC_WEIGHTS: Dict[str, float] = {
    'avgRepeatRatio': 5.0,
    'levelPlayTime': 1.0,
    'playOnWinRatio': 1.0,
    'playOnPerUser': 1.0,
    'firstTryWinPercent': 1.0,
}


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    Attributes:
        clustering_random_seed: Seed passed to KMeans for reproducible runs.
        max_clusters: Maximum k per concept group.
        min_group_size: Concept groups smaller than this are skipped.
        constant_column_epsilon: max - min below this makes a column neutral (0.5).
        kmeans_n_init: Number of k-means++ restarts.
        kmeans_max_iter: Iteration cap per restart.
        default_max_level: Range maximum used when none is supplied.
        preserve_manual_overrides: When True, a recluster leaves manually
            overridden levels alone. Default False (last write wins).
        metric_weights: Per-metric clustering weights.
        log_level: Logging level name for configure_logging().
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Clustering
    # =========================================================================

    clustering_random_seed: int = 42

    max_clusters: int = Field(default=4, ge=1, le=4)

    min_group_size: int = Field(default=4, ge=1)

    constant_column_epsilon: float = Field(default=1e-5, gt=0.0)

    kmeans_n_init: int = Field(default=10, ge=1)

    kmeans_max_iter: int = Field(default=300, ge=1)

    # =========================================================================
    # Run defaults
    # =========================================================================

    # Matches the dashboard's "Clusterise" behavior when max level is left blank
    default_max_level: int = Field(default=10000, ge=1)

    # Reclustering overwrites manual overrides unless this is switched on
    preserve_manual_overrides: bool = False

    metric_weights: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_METRIC_WEIGHTS)
    )

    # =========================================================================
    # Logging
    # =========================================================================

    log_level: str = 'INFO'


@lru_cache()
def get_settings() -> Settings:
    """
    Get the engine settings singleton.

    Returns:
        Settings: The cached settings instance.

    Raises:
        pydantic.ValidationError: If an environment variable has an invalid value.

    Note:
        To refresh settings in tests, clear the cache:
        >>> get_settings.cache_clear()
    """
    return Settings()
