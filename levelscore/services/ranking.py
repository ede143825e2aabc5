"""
Difficulty Ranking Service

K-means cluster indices are arbitrary: the same levels can come back as
cluster 0 in one run and cluster 3 in the next. This module turns raw
indices into difficulty ranks "1".."k" that mean the same thing in every run.

For each raw cluster, the per-feature mean over its members (in the weighted,
normalized feature space) is reduced to one difficulty score with a fixed
linear combination:

    difficulty = repeat_ratio + play_time + plays_per_user
                 - play_on_win_ratio - first_try_win_percent

Higher early success lowers difficulty. Clusters are sorted ascending by
score (ties by raw index); the easiest gets rank "1". A cluster with no
members scores +inf and sorts last.

Earlier dashboard versions ranked by mean repeat ratio alone and later by a
three-feature composite; DIFFICULTY_FORMULA_VERSION identifies the formula
in use so stored ranks can be traced back to it.
"""

import math
from typing import Dict, List, Mapping, Sequence

import numpy as np

from levelscore.models.enums import MetricName


DIFFICULTY_FORMULA_VERSION: str = "3-five-feature-composite"

DIFFICULTY_COEFFICIENTS: Dict[MetricName, float] = {
    MetricName.AVG_REPEAT_RATIO: 1.0,
    MetricName.LEVEL_PLAY_TIME: 1.0,
    MetricName.PLAY_ON_PER_USER: 1.0,
    MetricName.PLAY_ON_WIN_RATIO: -1.0,
    MetricName.FIRST_TRY_WIN_PERCENT: -1.0,
}

EMPTY_CLUSTER_SCORE: float = math.inf


def difficulty_score(
    centroid: Sequence[float],
    metrics: Sequence[MetricName],
) -> float:
    """
    Reduce a cluster's mean feature vector to a scalar difficulty.

    Args:
        centroid: Per-feature mean of the cluster's members
        metrics: Metric of each centroid position

    Returns:
        Difficulty score; metrics without a coefficient contribute nothing
    """
    return float(sum(
        DIFFICULTY_COEFFICIENTS.get(metric, 0.0) * value
        for metric, value in zip(metrics, centroid)
    ))


def cluster_difficulties(
    vectors: np.ndarray,
    raw_assignment: Sequence[int],
    n_clusters: int,
    metrics: Sequence[MetricName],
) -> Dict[int, float]:
    """Difficulty score per raw cluster index; +inf for empty clusters."""
    vectors = np.asarray(vectors, dtype=float)
    labels = np.asarray(raw_assignment, dtype=int)

    scores: Dict[int, float] = {}
    for index in range(n_clusters):
        members = vectors[labels == index]
        if len(members) == 0:
            scores[index] = EMPTY_CLUSTER_SCORE
        else:
            scores[index] = difficulty_score(members.mean(axis=0), metrics)
    return scores


def rank_clusters(
    vectors: np.ndarray,
    raw_assignment: Sequence[int],
    metrics: Sequence[MetricName],
    n_clusters: int = 0,
) -> Dict[int, str]:
    """
    Map each raw cluster index to a difficulty rank.

    Args:
        vectors: Weighted, normalized feature vectors of the group
        raw_assignment: Raw cluster index per vector
        metrics: Metric of each vector column
        n_clusters: Number of clusters k-means was asked for; defaults to
            max(raw_assignment) + 1

    Returns:
        Dict of raw index -> rank string, "1" for the easiest cluster
    """
    if not n_clusters:
        n_clusters = int(max(raw_assignment)) + 1 if len(raw_assignment) else 0

    scores = cluster_difficulties(vectors, raw_assignment, n_clusters, metrics)
    ordered = sorted(scores, key=lambda index: (scores[index], index))

    return {index: str(position + 1) for position, index in enumerate(ordered)}


def apply_ranking(
    raw_assignment: Sequence[int],
    mapping: Mapping[int, str],
) -> List[str]:
    """Translate raw cluster indices into ranks, preserving order."""
    return [mapping[int(index)] for index in raw_assignment]
