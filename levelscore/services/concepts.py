"""
Concept Bucketing Service

Maps a level number to the concept group it is clustered with. Levels are only
comparable with levels of a similar difficulty tier, so clustering runs
independently per concept group.

Two schemes live here and must not be mixed:

- concept_for_level(): the clustering concept table (versioned by
  CONCEPT_TABLE_VERSION). Literal interval table up to level 3000, then
  dynamic width-50 buckets.
- display_tier_for_level(): the older, coarser tier table used only when
  showing which multiplier tier a level falls in. Everything above 3000 is a
  single tier.
"""

from bisect import bisect_left
from typing import Dict, Iterable, List, Tuple

from levelscore.models.schemas import LevelMetricRecord


CONCEPT_TABLE_VERSION: str = "2"

# =============================================================================
# Clustering Concept Table
# (inclusive upper bound, concept id), ascending by upper bound.
# =============================================================================

CONCEPT_INTERVALS: Tuple[Tuple[int, int], ...] = (
    (10, 1),
    # 11-200: width 10
    (20, 2), (30, 3), (40, 4), (50, 5), (60, 6),
    (70, 7), (80, 8), (90, 9), (100, 10), (110, 11),
    (120, 12), (130, 13), (140, 14), (150, 15), (160, 16),
    (170, 17), (180, 18), (190, 19), (200, 20),
    # 201-300: width 20
    (220, 21), (240, 22), (260, 23), (280, 24), (300, 25),
    # 301-500: width 40
    (340, 26), (380, 27), (420, 28), (460, 29), (500, 30),
    # 501-1000: width 50
    (550, 31), (600, 32), (650, 33), (700, 34), (750, 35),
    (800, 36), (850, 37), (900, 38), (950, 39), (1000, 40),
    # 1001-3000: width 100
    (1100, 41), (1200, 42), (1300, 43), (1400, 44), (1500, 45),
    (1600, 46), (1700, 47), (1800, 48), (1900, 49), (2000, 50),
    (2100, 51), (2200, 52), (2300, 53), (2400, 54), (2500, 55),
    (2600, 56), (2700, 57), (2800, 58), (2900, 59), (3000, 60),
)

# Beyond the table: concept = DYNAMIC_BASE_CONCEPT + (level - DYNAMIC_ORIGIN) // DYNAMIC_WIDTH
DYNAMIC_ORIGIN: int = 3001
DYNAMIC_WIDTH: int = 50
DYNAMIC_BASE_CONCEPT: int = 61

_CONCEPT_UPPER_BOUNDS: List[int] = [upper for upper, _ in CONCEPT_INTERVALS]

# =============================================================================
# Multiplier Display Tier Table
# =============================================================================

DISPLAY_TIER_INTERVALS: Tuple[Tuple[int, int], ...] = (
    (10, 1), (20, 2), (40, 3), (60, 4), (80, 5),
    (100, 6), (120, 7), (140, 8), (160, 9), (180, 10),
    (200, 11), (230, 12), (260, 13), (300, 14), (350, 15),
    (400, 16), (450, 17), (500, 18), (550, 19), (600, 20),
    (650, 21), (700, 22), (750, 23), (800, 24), (850, 25),
    (900, 26), (950, 27), (1000, 28), (1100, 29), (1200, 30),
    (1300, 31), (1400, 32), (1500, 33), (1600, 34), (1700, 35),
    (1800, 36), (1900, 37), (2000, 38), (2100, 39), (2200, 40),
    (2300, 41), (2400, 42), (2500, 43), (2600, 44), (2700, 45),
    (2800, 46), (2900, 47), (3000, 48),
)

DISPLAY_TIER_BEYOND_TABLE: int = 49

_DISPLAY_UPPER_BOUNDS: List[int] = [upper for upper, _ in DISPLAY_TIER_INTERVALS]


def _check_level(level: int) -> None:
    if level < 1:
        raise ValueError(f"Level must be >= 1, got {level}")


def concept_for_level(level: int) -> int:
    """
    Return the clustering concept id for a level.

    Args:
        level: Level number, >= 1

    Returns:
        Concept id. Non-decreasing in level.

    Raises:
        ValueError: If level < 1 (rejected upstream, never valid here)

    Example:
        >>> concept_for_level(3000), concept_for_level(3001), concept_for_level(3051)
        (60, 61, 62)
    """
    _check_level(level)

    if level >= DYNAMIC_ORIGIN:
        return DYNAMIC_BASE_CONCEPT + (level - DYNAMIC_ORIGIN) // DYNAMIC_WIDTH

    index = bisect_left(_CONCEPT_UPPER_BOUNDS, level)
    return CONCEPT_INTERVALS[index][1]


def display_tier_for_level(level: int) -> int:
    """
    Return the multiplier display tier for a level.

    Only used to label levels in reports; clustering uses concept_for_level().
    """
    _check_level(level)

    if level > _DISPLAY_UPPER_BOUNDS[-1]:
        return DISPLAY_TIER_BEYOND_TABLE

    index = bisect_left(_DISPLAY_UPPER_BOUNDS, level)
    return DISPLAY_TIER_INTERVALS[index][1]


def group_by_concept(
    records: Iterable[LevelMetricRecord]
) -> Dict[int, List[LevelMetricRecord]]:
    """
    Partition records into concept groups.

    Groups are returned in ascending concept order and records inside a group
    in ascending level order, so the feature matrix of a group is the same
    regardless of the order records arrived in.
    """
    groups: Dict[int, List[LevelMetricRecord]] = {}
    for record in sorted(records, key=lambda r: r.level):
        groups.setdefault(concept_for_level(record.level), []).append(record)

    return {concept: groups[concept] for concept in sorted(groups)}
