"""
Enumeration definitions for the level score engine.

All enums inherit from both `str` and `Enum` so they serialize as plain
strings inside Pydantic models and compare equal to their raw values.
"""

from enum import Enum


class MetricName(str, Enum):
    """
    Telemetry metrics used as clustering features.

    Declaration order is the column order of every feature vector.

    - avgRepeatRatio: share of players replaying the level (right-skewed)
    - levelPlayTime: average play time on the level (right-skewed)
    - playOnWinRatio: share of sessions continuing past a won level (bounded)
    - playOnPerUser: plays per user (right-skewed)
    - firstTryWinPercent: first-attempt win percentage (bounded)
    """
    AVG_REPEAT_RATIO = "avgRepeatRatio"
    LEVEL_PLAY_TIME = "levelPlayTime"
    PLAY_ON_WIN_RATIO = "playOnWinRatio"
    PLAY_ON_PER_USER = "playOnPerUser"
    FIRST_TRY_WIN_PERCENT = "firstTryWinPercent"


class ClusterRank(str, Enum):
    """
    Difficulty rank assigned to a cluster after reordering.

    "1" is the easiest cluster of its concept group, "4" the hardest.
    Groups that produce fewer clusters only use the lower ranks.
    """
    EASIEST = "1"
    EASY = "2"
    HARD = "3"
    HARDEST = "4"


class ClusterState(str, Enum):
    """
    Lifecycle of a level's cluster label.

    - unassigned: no clustering run has touched the level yet
    - auto_assigned: last written by a clustering run
    - manually_overridden: last written by an operator
    """
    UNASSIGNED = "unassigned"
    AUTO_ASSIGNED = "auto_assigned"
    MANUALLY_OVERRIDDEN = "manually_overridden"


class IssueCode(str, Enum):
    """
    Soft issues collected during a clustering run.

    None of them aborts the run; all are reported back to the caller.
    """
    INSUFFICIENT_DATA = "insufficient_data"
    MISSING_METRIC = "missing_metric"
    OVERRIDE_PRESERVED = "override_preserved"
    DUPLICATE_LEVEL = "duplicate_level"
