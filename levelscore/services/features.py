"""
Feature Extraction and Normalization Service

Turns the telemetry records of one concept group into weighted feature
vectors for clustering.

Pipeline (per concept group, no statistics shared across groups):
1. Extract the fixed metric list; missing or unparseable values become 0.0
2. log1p on the right-skewed metrics (repeat ratio, play time, plays per user)
3. Min-max rescale each column to [0, 1]; a near-constant column becomes 0.5
4. Multiply each column by its configured weight

The matrix column order always follows CLUSTERING_METRICS.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from levelscore.core.config import DEFAULT_METRIC_WEIGHTS
from levelscore.models.enums import MetricName
from levelscore.models.schemas import LevelMetricRecord


# =============================================================================
# Constants
# =============================================================================

CLUSTERING_METRICS: Tuple[MetricName, ...] = tuple(MetricName)

# Heavy right tail; compressed with log1p before normalization
SKEWED_METRICS: Tuple[MetricName, ...] = (
    MetricName.AVG_REPEAT_RATIO,
    MetricName.LEVEL_PLAY_TIME,
    MetricName.PLAY_ON_PER_USER,
)

# Value given to every cell of a column whose range is below epsilon
NEUTRAL_VALUE: float = 0.5

DEFAULT_CONSTANT_EPSILON: float = 1e-5

# "1,204.5" style thousands separators; any other comma makes a value unparseable
THOUSANDS_PATTERN = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$")


@dataclass
class FeatureMatrix:
    """
    Weighted, normalized features of one concept group.

    Attributes:
        levels: Level numbers, one per matrix row
        vectors: Array of shape (len(levels), len(metrics))
        metrics: Metric of each column
        raw: Extracted values before skew correction, same shape as vectors
        missing_levels: Levels that lacked at least one metric
        all_zero_levels: Levels that lacked every metric
    """
    levels: List[int]
    vectors: np.ndarray
    metrics: Tuple[MetricName, ...]
    raw: np.ndarray
    missing_levels: List[int] = field(default_factory=list)
    all_zero_levels: List[int] = field(default_factory=list)

    def column(self, metric: MetricName) -> int:
        return self.metrics.index(metric)


def coerce_metric_value(value: Any) -> Optional[float]:
    """
    Parse a raw telemetry value.

    Returns:
        The value as a finite float, or None if it is missing, non-numeric,
        NaN or infinite.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        if ',' in value:
            if not THOUSANDS_PATTERN.match(value):
                return None
            value = value.replace(',', '')

    try:
        number = float(value)
    except (TypeError, ValueError):
        return None

    if math.isnan(number) or math.isinf(number):
        return None

    return number


def extract_features(
    records: Sequence[LevelMetricRecord],
    metrics: Sequence[MetricName] = CLUSTERING_METRICS,
) -> Tuple[np.ndarray, List[int], List[int]]:
    """
    Pull the configured metrics out of each record.

    Args:
        records: Records of one concept group
        metrics: Metrics to extract, in column order

    Returns:
        Tuple of:
        - Array of shape (len(records), len(metrics)); unusable values are 0.0
        - Levels missing at least one metric
        - Levels missing every metric
    """
    matrix = np.zeros((len(records), len(metrics)), dtype=float)
    missing_levels: List[int] = []
    all_zero_levels: List[int] = []

    for row, record in enumerate(records):
        missing = 0
        for col, metric in enumerate(metrics):
            value = coerce_metric_value(record.metrics.get(metric.value))
            if value is None:
                missing += 1
                continue
            matrix[row, col] = value

        if missing:
            missing_levels.append(record.level)
        if metrics and missing == len(metrics):
            all_zero_levels.append(record.level)

    return matrix, missing_levels, all_zero_levels


def apply_skew_correction(
    matrix: np.ndarray,
    metrics: Sequence[MetricName] = CLUSTERING_METRICS,
) -> np.ndarray:
    """
    Apply log1p to the right-skewed columns; bounded ratios stay linear.

    Negative values are clipped to 0 first so log1p stays finite.
    """
    corrected = np.array(matrix, dtype=float, copy=True)
    for col, metric in enumerate(metrics):
        if metric in SKEWED_METRICS:
            corrected[:, col] = np.log1p(np.clip(corrected[:, col], 0.0, None))
    return corrected


def min_max_normalize(
    matrix: np.ndarray,
    epsilon: float = DEFAULT_CONSTANT_EPSILON,
) -> np.ndarray:
    """
    Rescale each column to [0, 1] using the column's own min and max.

    A column with max - min < epsilon is set to NEUTRAL_VALUE everywhere,
    which avoids dividing by zero and keeps a constant metric from
    separating the levels.
    """
    normalized = np.array(matrix, dtype=float, copy=True)
    if normalized.size == 0:
        return normalized

    mins = normalized.min(axis=0)
    maxs = normalized.max(axis=0)
    ranges = maxs - mins

    for col in range(normalized.shape[1]):
        if ranges[col] < epsilon:
            normalized[:, col] = NEUTRAL_VALUE
        else:
            normalized[:, col] = (normalized[:, col] - mins[col]) / ranges[col]

    return normalized


def resolve_weights(
    weights: Optional[Mapping[str, float]],
    metrics: Sequence[MetricName] = CLUSTERING_METRICS,
) -> np.ndarray:
    """
    Build the weight vector for the given column order.

    Metrics absent from `weights` use DEFAULT_METRIC_WEIGHTS; keys that are
    not clustering metrics are ignored.
    """
    weights = weights or {}
    resolved = []
    for metric in metrics:
        value = coerce_metric_value(weights.get(metric.value))
        if value is None:
            value = DEFAULT_METRIC_WEIGHTS.get(metric.value, 1.0)
        resolved.append(value)
    return np.array(resolved, dtype=float)


def apply_weights(
    matrix: np.ndarray,
    weights: Optional[Mapping[str, float]],
    metrics: Sequence[MetricName] = CLUSTERING_METRICS,
) -> np.ndarray:
    """Multiply each column by its weight."""
    return np.asarray(matrix, dtype=float) * resolve_weights(weights, metrics)


def normalize(
    records: Sequence[LevelMetricRecord],
    weights: Optional[Mapping[str, float]] = None,
    metrics: Sequence[MetricName] = CLUSTERING_METRICS,
    epsilon: float = DEFAULT_CONSTANT_EPSILON,
) -> FeatureMatrix:
    """
    Build the weighted feature vectors of one concept group.

    Args:
        records: Records sharing one concept id
        weights: Metric name -> weight; defaults fill any gaps
        metrics: Metrics to use, in column order
        epsilon: Constant-column threshold for min-max scaling

    Returns:
        FeatureMatrix with one row per record, in input order
    """
    metrics = tuple(metrics)
    raw, missing_levels, all_zero_levels = extract_features(records, metrics)

    vectors = apply_weights(
        min_max_normalize(apply_skew_correction(raw, metrics), epsilon),
        weights,
        metrics,
    )

    return FeatureMatrix(
        levels=[record.level for record in records],
        vectors=vectors,
        metrics=metrics,
        raw=raw,
        missing_levels=missing_levels,
        all_zero_levels=all_zero_levels,
    )


def weights_as_dict(weights: Optional[Mapping[str, float]]) -> Dict[str, float]:
    """Return the effective weight per metric name, defaults included."""
    return {
        metric.value: float(value)
        for metric, value in zip(CLUSTERING_METRICS, resolve_weights(weights))
    }
