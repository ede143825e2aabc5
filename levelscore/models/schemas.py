"""
Pydantic models for the level score engine.

This module provides type-safe data validation for everything that crosses the
engine boundary: per-level telemetry records handed in by ingestion, the
multiplier table used for scoring, the level range of a clustering run, and
the assignments, scores and summaries handed back to the storage layer.

Field names follow the dashboard's camelCase wire names so records can be
built straight from collaborator payloads.

All models use Pydantic v2 syntax.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict

from levelscore.models.enums import ClusterState, IssueCode


# =============================================================================
# Input Models
# =============================================================================


class LevelMetricRecord(BaseModel):
    """
    Telemetry snapshot for one level.

    Produced once per load by ingestion and treated as immutable for the
    duration of a clustering run. Metric values are kept as received;
    missing or unparseable values are resolved to 0.0 by feature extraction.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "level": 42,
                "metrics": {
                    "avgRepeatRatio": 0.18,
                    "levelPlayTime": 95.0,
                    "playOnWinRatio": 0.82,
                    "playOnPerUser": 1.4,
                    "firstTryWinPercent": 0.46,
                },
                "monetizationScore": 61.0,
                "engagementScore": 74.5,
                "satisfactionScore": 58.0,
                "finalCluster": "2",
            }
        }
    )

    level: int = Field(
        ...,
        ge=1,
        description="Level number (1-based)"
    )
    metrics: Dict[str, Any] = Field(
        default_factory=dict,
        description="Raw telemetry values keyed by metric name"
    )
    monetizationScore: float = Field(
        default=0.0,
        description="Monetization subscore"
    )
    engagementScore: float = Field(
        default=0.0,
        description="Engagement subscore"
    )
    satisfactionScore: float = Field(
        default=0.0,
        description="Satisfaction subscore"
    )
    finalCluster: str = Field(
        default="",
        description="Cluster label delivered with the telemetry, empty if none"
    )


class MultiplierSet(BaseModel):
    """Weights combining the three subscores for one cluster."""
    model_config = ConfigDict(frozen=True)

    monetization: float = Field(..., description="Monetization weight")
    engagement: float = Field(..., description="Engagement weight")
    satisfaction: float = Field(..., description="Satisfaction weight")


# Keys are "1".."4" and "default"
ClusterMultiplierTable = Dict[str, MultiplierSet]


class LevelRange(BaseModel):
    """
    Inclusive level range of a clustering run.

    No bounds are enforced here; the run itself rejects minLevel <= 0
    before doing any work.
    """
    model_config = ConfigDict(frozen=True)

    minLevel: int = Field(..., description="Smallest level included")
    maxLevel: Optional[int] = Field(
        default=None,
        description="Largest level included; None means the configured default"
    )

    def contains(self, level: int, default_max: int) -> bool:
        upper = self.maxLevel if self.maxLevel is not None else default_max
        return self.minLevel <= level <= upper


# =============================================================================
# Output Models
# =============================================================================


class ClusterAssignment(BaseModel):
    """Rank written to a level by a clustering run."""
    level: int
    cluster: str


class LevelScore(BaseModel):
    """Composite player-experience score for a level."""
    level: int
    score: float


class RankSummary(BaseModel):
    """
    Per-rank statistics for operator review.

    Means are over raw telemetry values (before skew correction) of every
    level assigned the rank in the run, across all concept groups.
    """
    rank: str
    count: int = Field(..., ge=0)
    meanRepeatRatio: float
    meanPlayTime: float


class ClusteringIssue(BaseModel):
    """A soft issue found during a run. Never aborts the run."""
    code: IssueCode
    message: str
    concept: Optional[int] = None
    level: Optional[int] = None


class ClusteringRunResult(BaseModel):
    """
    Complete output of one clustering run.

    Built in full before being returned; callers never see a partial run.
    Levels outside the range and levels of skipped concept groups appear in
    neither `assignments` nor `scores`.
    """
    levelRange: LevelRange
    assignments: List[ClusterAssignment] = Field(default_factory=list)
    scores: List[LevelScore] = Field(default_factory=list)
    summaries: List[RankSummary] = Field(default_factory=list)
    clusteredGroups: int = 0
    skippedGroups: int = 0
    skippedLevels: int = 0
    missingMetricRecords: int = Field(
        default=0,
        description=(
            "Levels in clustered groups with at least one missing or unparseable metric; "
            "levels of skipped groups are not counted"
        ),
    )
    issues: List[ClusteringIssue] = Field(default_factory=list)
    conceptTableVersion: str
    difficultyFormulaVersion: str
    randomSeed: int

    def assignment_rows(self) -> List[Dict[str, Any]]:
        """Plain dict rows for a storage collaborator."""
        return [a.model_dump() for a in self.assignments]

    def score_rows(self) -> List[Dict[str, Any]]:
        """Plain dict rows for a storage collaborator."""
        return [s.model_dump() for s in self.scores]


class LevelState(BaseModel):
    """
    A level as tracked by the level board.

    `cluster` is the effective label used for scoring: the run's rank, the
    operator's override, or the label that came in with the telemetry.
    """
    level: int
    cluster: str = ""
    score: float = 0.0
    state: ClusterState = ClusterState.UNASSIGNED
    monetizationScore: float = 0.0
    engagementScore: float = 0.0
    satisfactionScore: float = 0.0


# =============================================================================
# Ingestion Models
# =============================================================================


class ValidationError(BaseModel):
    """
    A problem found while turning a telemetry export into records.

    Collected and returned rather than raised, so one bad row never
    rejects the whole export.
    """
    field: str = Field(..., description="Column or field that failed validation")
    message: str = Field(..., description="Human-readable description")
    row_number: Optional[int] = Field(
        default=None,
        description="1-based row number in the source file, if applicable"
    )
