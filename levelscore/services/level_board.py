"""
Level Board Service

Caller-side view of a game's levels: the current cluster label, score and
cluster state of every loaded level, plus the merge rules between clustering
runs and operator overrides.

Cluster states:
    Unassigned -> AutoAssigned -> ManuallyOverridden

- load(): every level starts Unassigned, labeled with the cluster that came
  in with its telemetry (or a previously saved label).
- recluster()/apply_run(): levels clustered by the run become AutoAssigned.
  Prior state in the range is overwritten, manual overrides included (last
  write wins), unless Settings.preserve_manual_overrides is switched on.
- override_cluster(): the level becomes ManuallyOverridden.

Scores are recomputed whenever a level's cluster or the multiplier table
changes. The board is not thread-safe.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from levelscore.core.config import Settings, get_settings
from levelscore.models.enums import ClusterRank, ClusterState, IssueCode
from levelscore.models.schemas import (
    ClusteringIssue,
    ClusteringRunResult,
    LevelMetricRecord,
    LevelRange,
    LevelState,
    MultiplierSet,
)
from levelscore.services.engine import run_clustering
from levelscore.services.scoring import DEFAULT_MULTIPLIER_TABLE, score_record

logger = logging.getLogger(__name__)

VALID_CLUSTERS = frozenset(rank.value for rank in ClusterRank)


class LevelBoard:
    """
    Cluster labels and scores for the levels of one game.

    Args:
        records: Telemetry snapshot to load
        multiplier_table: Score multipliers; DEFAULT_MULTIPLIER_TABLE when omitted
        saved_clusters: Previously persisted level -> cluster labels, which
            take precedence over the telemetry's finalCluster
        settings: Engine settings; get_settings() when omitted
    """

    def __init__(
        self,
        records: Iterable[LevelMetricRecord] = (),
        multiplier_table: Optional[Mapping[str, MultiplierSet]] = None,
        saved_clusters: Optional[Mapping[int, str]] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.multiplier_table: Dict[str, MultiplierSet] = dict(
            multiplier_table if multiplier_table is not None else DEFAULT_MULTIPLIER_TABLE
        )
        self._records: Dict[int, LevelMetricRecord] = {}
        self._states: Dict[int, LevelState] = {}
        self.load(records, saved_clusters)

    # =========================================================================
    # Loading
    # =========================================================================

    def load(
        self,
        records: Iterable[LevelMetricRecord],
        saved_clusters: Optional[Mapping[int, str]] = None,
    ) -> None:
        """Replace the board's contents with a fresh telemetry snapshot."""
        saved_clusters = saved_clusters or {}
        records_by_level = {record.level: record for record in records}

        states: Dict[int, LevelState] = {}
        for level, record in records_by_level.items():
            cluster = saved_clusters.get(level) or record.finalCluster
            states[level] = self._build_state(record, cluster, ClusterState.UNASSIGNED)

        self._records = records_by_level
        self._states = states
        logger.info(f"Loaded {len(states)} levels onto the board")

    def _build_state(
        self,
        record: LevelMetricRecord,
        cluster: str,
        state: ClusterState,
    ) -> LevelState:
        return LevelState(
            level=record.level,
            cluster=cluster or "",
            score=score_record(record, cluster, self.multiplier_table),
            state=state,
            monetizationScore=record.monetizationScore,
            engagementScore=record.engagementScore,
            satisfactionScore=record.satisfactionScore,
        )

    # =========================================================================
    # Accessors
    # =========================================================================

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, level: int) -> bool:
        return level in self._states

    def get(self, level: int) -> LevelState:
        """
        Raises:
            KeyError: If the level is not on the board
        """
        return self._states[level]

    def records(self) -> List[LevelMetricRecord]:
        return [self._records[level] for level in sorted(self._records)]

    def states(self) -> List[LevelState]:
        return [self._states[level] for level in sorted(self._states)]

    def score_rows(self) -> List[Dict[str, object]]:
        """
        Rows for persisting scores: level, score and effective cluster.

        Persisting is an upsert keyed by level, so saving the same board
        twice is harmless.
        """
        return [
            {"level": s.level, "score": s.score, "cluster": s.cluster or None}
            for s in self.states()
        ]

    # =========================================================================
    # Mutations
    # =========================================================================

    def override_cluster(self, level: int, cluster: str) -> LevelState:
        """
        Set a level's cluster by hand and rescore it.

        Raises:
            KeyError: If the level is not on the board
            ValueError: If cluster is not one of "1".."4"
        """
        cluster = str(cluster).strip()
        if cluster not in VALID_CLUSTERS:
            raise ValueError(f"Cluster must be one of {sorted(VALID_CLUSTERS)}, got {cluster!r}")

        record = self._records[level]
        state = self._build_state(record, cluster, ClusterState.MANUALLY_OVERRIDDEN)
        self._states[level] = state
        return state

    def set_multiplier_table(self, table: Mapping[str, MultiplierSet]) -> None:
        """Replace the multiplier table and rescore every level."""
        self.multiplier_table = dict(table)
        self._states = {
            level: self._build_state(self._records[level], s.cluster, s.state)
            for level, s in self._states.items()
        }

    def apply_run(self, result: ClusteringRunResult) -> ClusteringRunResult:
        """
        Merge a clustering run into the board.

        All changes are applied in one swap. When manual overrides are
        preserved, the affected levels are dropped from the returned result
        and reported as OVERRIDE_PRESERVED issues.

        Returns:
            The result as actually applied
        """
        preserve = self.settings.preserve_manual_overrides
        states = dict(self._states)
        kept_levels = set()
        issues: List[ClusteringIssue] = []

        for assignment in result.assignments:
            current = states.get(assignment.level)
            if current is None:
                continue
            if preserve and current.state == ClusterState.MANUALLY_OVERRIDDEN:
                kept_levels.add(assignment.level)
                issues.append(ClusteringIssue(
                    code=IssueCode.OVERRIDE_PRESERVED,
                    message=f"Level {assignment.level} keeps manual cluster {current.cluster}",
                    level=assignment.level,
                ))
                continue
            states[assignment.level] = self._build_state(
                self._records[assignment.level],
                assignment.cluster,
                ClusterState.AUTO_ASSIGNED,
            )

        self._states = states

        if not kept_levels:
            return result

        logger.info(f"Preserved {len(kept_levels)} manually overridden levels")
        return result.model_copy(update={
            "assignments": [a for a in result.assignments if a.level not in kept_levels],
            "scores": [s for s in result.scores if s.level not in kept_levels],
            "issues": result.issues + issues,
        })

    def recluster(
        self,
        level_range: LevelRange,
        weights: Optional[Mapping[str, float]] = None,
        random_state: Optional[int] = None,
    ) -> ClusteringRunResult:
        """
        Run clustering over the board's records in a range and merge it.

        Raises:
            InvalidRangeError: If level_range.minLevel <= 0
        """
        result = run_clustering(
            self.records(),
            level_range,
            weights=weights,
            multiplier_table=self.multiplier_table,
            random_state=random_state,
            settings=self.settings,
        )
        return self.apply_run(result)
