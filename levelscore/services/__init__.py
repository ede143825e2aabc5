"""
Level Score Engine Services

Each service is stateless and testable on its own; the level board is the
only stateful piece and lives on the caller's side of the engine.

Services, leaf to root:
- concepts: level -> concept group bucketing (and display tiers)
- features: metric extraction, skew correction, per-group normalization, weights
- clustering: k-means++ per concept group
- ranking: raw cluster index -> stable difficulty rank
- scoring: weighted level score from subscores and cluster
- engine: one clustering run over a level range
- level_board: cluster state machine and merge rules
- ingestion: telemetry export -> LevelMetricRecord adapter
"""

# =============================================================================
# Concept Bucketing
# =============================================================================

from levelscore.services.concepts import (
    concept_for_level,
    display_tier_for_level,
    group_by_concept,
    CONCEPT_TABLE_VERSION,
)

# =============================================================================
# Feature Extraction and Normalization
# =============================================================================

from levelscore.services.features import (
    FeatureMatrix,
    normalize,
    extract_features,
    apply_skew_correction,
    min_max_normalize,
    apply_weights,
    CLUSTERING_METRICS,
    SKEWED_METRICS,
)

# =============================================================================
# Clustering and Ranking
# =============================================================================

from levelscore.services.clustering import cluster_vectors, choose_k
from levelscore.services.ranking import (
    rank_clusters,
    apply_ranking,
    difficulty_score,
    DIFFICULTY_FORMULA_VERSION,
)

# =============================================================================
# Scoring
# =============================================================================

from levelscore.services.scoring import (
    calculate_score,
    score_record,
    resolve_multipliers,
    merge_multiplier_table,
    DEFAULT_MULTIPLIER_TABLE,
)

# =============================================================================
# Runs, Board, Ingestion
# =============================================================================

from levelscore.services.engine import run_clustering, InvalidRangeError
from levelscore.services.level_board import LevelBoard
from levelscore.services.ingestion import (
    read_level_csv,
    records_from_dataframe,
    resolve_column,
    DEFAULT_COLUMN_ALIASES,
)

__all__ = [
    # Concepts
    'concept_for_level',
    'display_tier_for_level',
    'group_by_concept',
    'CONCEPT_TABLE_VERSION',
    # Features
    'FeatureMatrix',
    'normalize',
    'extract_features',
    'apply_skew_correction',
    'min_max_normalize',
    'apply_weights',
    'CLUSTERING_METRICS',
    'SKEWED_METRICS',
    # Clustering and ranking
    'cluster_vectors',
    'choose_k',
    'rank_clusters',
    'apply_ranking',
    'difficulty_score',
    'DIFFICULTY_FORMULA_VERSION',
    # Scoring
    'calculate_score',
    'score_record',
    'resolve_multipliers',
    'merge_multiplier_table',
    'DEFAULT_MULTIPLIER_TABLE',
    # Runs, board, ingestion
    'run_clustering',
    'InvalidRangeError',
    'LevelBoard',
    'read_level_csv',
    'records_from_dataframe',
    'resolve_column',
    'DEFAULT_COLUMN_ALIASES',
]
