"""
Package initialization file for the engine's models.

Re-exports all Pydantic schemas and enumerations so other modules can write:

    from levelscore.models import LevelMetricRecord, ClusterState
"""

# =============================================================================
# Enums
# =============================================================================

from levelscore.models.enums import (
    MetricName,
    ClusterRank,
    ClusterState,
    IssueCode,
)

# =============================================================================
# Schemas
# =============================================================================

from levelscore.models.schemas import (
    LevelMetricRecord,
    MultiplierSet,
    ClusterMultiplierTable,
    LevelRange,
    ClusterAssignment,
    LevelScore,
    RankSummary,
    ClusteringIssue,
    ClusteringRunResult,
    LevelState,
    ValidationError,
)

__all__ = [
    # Enums
    'MetricName',
    'ClusterRank',
    'ClusterState',
    'IssueCode',
    # Schemas
    'LevelMetricRecord',
    'MultiplierSet',
    'ClusterMultiplierTable',
    'LevelRange',
    'ClusterAssignment',
    'LevelScore',
    'RankSummary',
    'ClusteringIssue',
    'ClusteringRunResult',
    'LevelState',
    'ValidationError',
]
