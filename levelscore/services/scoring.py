"""
Level Score Calculator

Combines the three player-experience subscores of a level into one score
using weights chosen by the level's cluster rank:

    score = monetization * w.monetization
          + engagement * w.engagement
          + satisfaction * w.satisfaction

Easy clusters lean on satisfaction; hard clusters shift weight toward
monetization and engagement. An empty or unrecognized cluster uses the
"default" row. Every function here is pure and never raises on cluster input.
"""

from typing import Dict, Mapping, Optional

from levelscore.models.schemas import (
    ClusterMultiplierTable,
    LevelMetricRecord,
    MultiplierSet,
)


DEFAULT_KEY: str = "default"

DEFAULT_MULTIPLIER_TABLE: Dict[str, MultiplierSet] = {
    "1": MultiplierSet(monetization=0.20, engagement=0.20, satisfaction=0.60),
    "2": MultiplierSet(monetization=0.25, engagement=0.25, satisfaction=0.50),
    "3": MultiplierSet(monetization=0.30, engagement=0.35, satisfaction=0.35),
    "4": MultiplierSet(monetization=0.35, engagement=0.35, satisfaction=0.30),
    DEFAULT_KEY: MultiplierSet(monetization=0.30, engagement=0.30, satisfaction=0.40),
}


def _normalize_cluster(cluster: Optional[str]) -> str:
    if cluster is None:
        return ""
    return str(cluster).strip()


def resolve_multipliers(
    cluster: Optional[str],
    table: Optional[Mapping[str, MultiplierSet]] = None,
) -> MultiplierSet:
    """
    Pick the multiplier row for a cluster.

    Lookup order:
    1. table[cluster] if cluster is a rank key present in the table
    2. table["default"] for empty or unrecognized clusters
    3. The documented default for the same key when the table lacks it
    """
    table = table if table is not None else DEFAULT_MULTIPLIER_TABLE
    key = _normalize_cluster(cluster)

    if not key or key == DEFAULT_KEY or key not in DEFAULT_MULTIPLIER_TABLE:
        key = DEFAULT_KEY

    row = table.get(key)
    if row is None:
        row = DEFAULT_MULTIPLIER_TABLE[key]
    return row


def calculate_score(
    monetization: float,
    engagement: float,
    satisfaction: float,
    cluster: Optional[str],
    table: Optional[Mapping[str, MultiplierSet]] = None,
) -> float:
    """
    Compute a level score.

    Args:
        monetization: Monetization subscore
        engagement: Engagement subscore
        satisfaction: Satisfaction subscore
        cluster: Rank "1".."4"; anything else uses the default row
        table: Multiplier table; DEFAULT_MULTIPLIER_TABLE when omitted

    Returns:
        Weighted sum of the subscores

    Example:
        >>> calculate_score(10, 20, 30, "3")
        20.5
    """
    weights = resolve_multipliers(cluster, table)
    return (
        monetization * weights.monetization
        + engagement * weights.engagement
        + satisfaction * weights.satisfaction
    )


def score_record(
    record: LevelMetricRecord,
    cluster: Optional[str] = None,
    table: Optional[Mapping[str, MultiplierSet]] = None,
) -> float:
    """
    Score a record, using `cluster` if given, else the record's finalCluster.
    """
    effective = cluster if cluster else record.finalCluster
    return calculate_score(
        record.monetizationScore,
        record.engagementScore,
        record.satisfactionScore,
        effective,
        table,
    )


def merge_multiplier_table(
    overrides: Optional[Mapping[str, object]] = None,
) -> ClusterMultiplierTable:
    """
    Build a full multiplier table from partial overrides.

    Accepts MultiplierSet values or plain dicts (as stored in game settings),
    and also the settings-page keys "cluster1".."cluster4". Keys that are
    neither ranks nor "default" are ignored.
    """
    table: ClusterMultiplierTable = dict(DEFAULT_MULTIPLIER_TABLE)
    for raw_key, value in (overrides or {}).items():
        key = str(raw_key).strip()
        if key.startswith("cluster"):
            key = key[len("cluster"):]
        if key not in DEFAULT_MULTIPLIER_TABLE or value is None:
            continue
        table[key] = value if isinstance(value, MultiplierSet) else MultiplierSet.model_validate(value)
    return table
