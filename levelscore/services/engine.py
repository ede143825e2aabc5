"""
Clustering Run Service

Orchestrates one clustering run over a caller-chosen level range:

    bucket -> normalize -> cluster -> rank -> score

Each concept group is processed independently. The run result is assembled
in full and returned in one piece; nothing is published while a run is in
progress, and the engine holds no state between runs, so runs over disjoint
ranges can execute concurrently. Runs over overlapping ranges must be
serialized by whoever persists the results.

Error handling:
- InvalidRangeError: range minimum <= 0. Raised before any work starts.
- Insufficient data: concept groups below the minimum size are skipped and
  reported in the result; the run continues.
- Missing metrics: unusable values are treated as 0.0 and reported in the
  result; the run continues.
- Duplicate levels: the last record for a level wins; earlier ones are
  dropped and reported in the result.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from levelscore.core.config import Settings, get_settings
from levelscore.models.enums import IssueCode, MetricName
from levelscore.models.schemas import (
    ClusterAssignment,
    ClusteringIssue,
    ClusteringRunResult,
    LevelMetricRecord,
    LevelRange,
    LevelScore,
    MultiplierSet,
    RankSummary,
)
from levelscore.services.clustering import choose_k, cluster_vectors
from levelscore.services.concepts import CONCEPT_TABLE_VERSION, group_by_concept
from levelscore.services.features import FeatureMatrix, normalize, weights_as_dict
from levelscore.services.ranking import (
    DIFFICULTY_FORMULA_VERSION,
    apply_ranking,
    rank_clusters,
)
from levelscore.services.scoring import DEFAULT_MULTIPLIER_TABLE, score_record

logger = logging.getLogger(__name__)


class InvalidRangeError(ValueError):
    """Raised when a clustering run is requested with a range minimum <= 0."""


def validate_range(level_range: LevelRange) -> None:
    """
    Reject a range before any work is done.

    Raises:
        InvalidRangeError: If level_range.minLevel <= 0
    """
    if level_range.minLevel <= 0:
        raise InvalidRangeError(
            f"Level range minimum must be positive, got {level_range.minLevel}"
        )


def select_records(
    records: Sequence[LevelMetricRecord],
    level_range: LevelRange,
    default_max_level: int,
) -> Tuple[List[LevelMetricRecord], List[int]]:
    """
    Records whose level falls inside the inclusive range, one per level.

    When a level appears more than once the last record wins, the same rule
    LevelBoard.load() applies.

    Returns:
        Tuple of (records in first-seen level order, levels that had duplicates)
    """
    by_level: Dict[int, LevelMetricRecord] = {}
    duplicates: List[int] = []
    for record in records:
        if not level_range.contains(record.level, default_max_level):
            continue
        if record.level in by_level and record.level not in duplicates:
            duplicates.append(record.level)
        by_level[record.level] = record
    return list(by_level.values()), sorted(duplicates)


def summarize_ranks(
    rank_values: Mapping[str, Dict[str, List[float]]]
) -> List[RankSummary]:
    """
    Build per-rank summaries from collected raw values.

    Args:
        rank_values: rank -> {"repeat": [...], "play_time": [...]}

    Returns:
        One RankSummary per rank, ordered by rank
    """
    summaries: List[RankSummary] = []
    for rank in sorted(rank_values, key=int):
        repeat = rank_values[rank]["repeat"]
        play_time = rank_values[rank]["play_time"]
        summaries.append(RankSummary(
            rank=rank,
            count=len(repeat),
            meanRepeatRatio=float(np.mean(repeat)) if repeat else 0.0,
            meanPlayTime=float(np.mean(play_time)) if play_time else 0.0,
        ))
    return summaries


def _missing_metric_issues(features: FeatureMatrix, concept: int) -> List[ClusteringIssue]:
    issues: List[ClusteringIssue] = []
    all_zero = set(features.all_zero_levels)
    for level in features.missing_levels:
        if level in all_zero:
            message = f"All features are zero for level {level}: no clustering metric was usable"
        else:
            message = f"Level {level} is missing at least one clustering metric; treated as 0.0"
        issues.append(ClusteringIssue(
            code=IssueCode.MISSING_METRIC,
            message=message,
            concept=concept,
            level=level,
        ))
    return issues


def run_clustering(
    records: Sequence[LevelMetricRecord],
    level_range: LevelRange,
    weights: Optional[Mapping[str, float]] = None,
    multiplier_table: Optional[Mapping[str, MultiplierSet]] = None,
    random_state: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> ClusteringRunResult:
    """
    Cluster and score every level in a range.

    Args:
        records: Telemetry snapshot; records outside the range are ignored
        level_range: Inclusive range of levels to recluster
        weights: Metric weights; Settings.metric_weights when omitted
        multiplier_table: Score multipliers; DEFAULT_MULTIPLIER_TABLE when omitted
        random_state: k-means++ seed; Settings.clustering_random_seed when omitted
        settings: Engine settings; get_settings() when omitted

    Returns:
        ClusteringRunResult with assignments, scores and per-rank summaries

    Raises:
        InvalidRangeError: If level_range.minLevel <= 0
    """
    validate_range(level_range)

    settings = settings or get_settings()
    weights = weights if weights is not None else settings.metric_weights
    table = multiplier_table if multiplier_table is not None else DEFAULT_MULTIPLIER_TABLE
    seed = random_state if random_state is not None else settings.clustering_random_seed

    selected, duplicate_levels = select_records(records, level_range, settings.default_max_level)
    groups = group_by_concept(selected)

    logger.info(
        f"Clustering {len(selected)} levels in range {level_range.minLevel}-"
        f"{level_range.maxLevel or settings.default_max_level} across {len(groups)} concept groups "
        f"(seed={seed}, weights={weights_as_dict(weights)})"
    )

    assignments: List[ClusterAssignment] = []
    scores: List[LevelScore] = []
    issues: List[ClusteringIssue] = []
    rank_values: Dict[str, Dict[str, List[float]]] = defaultdict(
        lambda: {"repeat": [], "play_time": []}
    )
    clustered_groups = 0
    skipped_groups = 0
    skipped_levels = 0
    missing_metric_records = 0

    for level in duplicate_levels:
        issues.append(ClusteringIssue(
            code=IssueCode.DUPLICATE_LEVEL,
            message=f"Level {level} appears more than once; only the last record is used",
            level=level,
        ))
    if duplicate_levels:
        logger.warning(f"{len(duplicate_levels)} levels had duplicate records; kept the last of each")

    for concept, group in groups.items():
        if len(group) < settings.min_group_size:
            skipped_groups += 1
            skipped_levels += len(group)
            message = (
                f"Concept {concept} has too few levels ({len(group)}), "
                f"skipping clustering for this group"
            )
            logger.info(message)
            issues.append(ClusteringIssue(
                code=IssueCode.INSUFFICIENT_DATA,
                message=message,
                concept=concept,
            ))
            continue

        features = normalize(
            group,
            weights,
            epsilon=settings.constant_column_epsilon,
        )

        if features.missing_levels:
            missing_metric_records += len(features.missing_levels)
            issues.extend(_missing_metric_issues(features, concept))

        raw_assignment = cluster_vectors(
            features.vectors,
            random_state=seed,
            max_clusters=settings.max_clusters,
            min_group_size=settings.min_group_size,
            n_init=settings.kmeans_n_init,
            max_iter=settings.kmeans_max_iter,
        )

        mapping = rank_clusters(
            features.vectors,
            raw_assignment,
            features.metrics,
            n_clusters=choose_k(len(group), settings.max_clusters),
        )
        ranks = apply_ranking(raw_assignment, mapping)
        clustered_groups += 1

        repeat_col = features.column(MetricName.AVG_REPEAT_RATIO)
        play_time_col = features.column(MetricName.LEVEL_PLAY_TIME)

        for row, (record, rank) in enumerate(zip(group, ranks)):
            assignments.append(ClusterAssignment(level=record.level, cluster=rank))
            scores.append(LevelScore(
                level=record.level,
                score=score_record(record, rank, table),
            ))
            rank_values[rank]["repeat"].append(float(features.raw[row, repeat_col]))
            rank_values[rank]["play_time"].append(float(features.raw[row, play_time_col]))

    if missing_metric_records:
        logger.warning(
            f"{missing_metric_records} levels had missing or unparseable clustering metrics; "
            f"treated as 0.0"
        )

    logger.info(
        f"Clustering run complete: {len(assignments)} levels assigned in "
        f"{clustered_groups} groups, {skipped_groups} groups ({skipped_levels} levels) skipped"
    )

    return ClusteringRunResult(
        levelRange=level_range,
        assignments=assignments,
        scores=scores,
        summaries=summarize_ranks(rank_values),
        clusteredGroups=clustered_groups,
        skippedGroups=skipped_groups,
        skippedLevels=skipped_levels,
        missingMetricRecords=missing_metric_records,
        issues=issues,
        conceptTableVersion=CONCEPT_TABLE_VERSION,
        difficultyFormulaVersion=DIFFICULTY_FORMULA_VERSION,
        randomSeed=seed,
    )
