"""
Clustering Run Tests

End-to-end tests for run_clustering(): range validation, per-concept
processing, skipped groups, duplicate levels, missing metrics, rank summaries and seeded
reproducibility.
"""

import logging

import pytest

from levelscore.models import (
    ClusteringRunResult,
    IssueCode,
    LevelMetricRecord,
    LevelRange,
)
from levelscore.services.concepts import CONCEPT_TABLE_VERSION, concept_for_level
from levelscore.services.engine import InvalidRangeError, run_clustering, select_records
from levelscore.services.ranking import DIFFICULTY_FORMULA_VERSION
from levelscore.tests.conftest import make_record


def _ranks(result: ClusteringRunResult):
    return {a.level: int(a.cluster) for a in result.assignments}


class TestRangeValidation:

    @pytest.mark.parametrize('min_level', [0, -5])
    def test_non_positive_minimum_rejected(self, settings, min_level):
        with pytest.raises(InvalidRangeError):
            run_clustering([], LevelRange(minLevel=min_level, maxLevel=10), settings=settings)

    def test_rejected_before_any_work(self, settings):
        # records are never touched when the range is invalid
        with pytest.raises(ValueError):
            run_clustering(None, LevelRange(minLevel=0, maxLevel=10), settings=settings)

    def test_inverted_range_is_empty_run(self, settings, random_records):
        result = run_clustering(random_records, LevelRange(minLevel=50, maxLevel=10), settings=settings)

        assert result.assignments == []
        assert result.scores == []
        assert result.clusteredGroups == 0


class TestRunClustering:

    def test_repeat_ladder_ranks_are_monotonic(self, settings, repeat_ladder_group):
        result = run_clustering(repeat_ladder_group, LevelRange(minLevel=11, maxLevel=14), settings=settings)

        assert _ranks(result) == {11: 1, 12: 2, 13: 3, 14: 4}

    def test_two_blobs_easy_below_hard(self, settings, two_blob_group):
        result = run_clustering(two_blob_group, LevelRange(minLevel=21, maxLevel=28), settings=settings)
        ranks = _ranks(result)

        easy = [ranks[level] for level in range(21, 25)]
        hard = [ranks[level] for level in range(25, 29)]
        assert max(easy) < min(hard)

    def test_scores_use_assigned_rank(self, settings, repeat_ladder_group):
        result = run_clustering(repeat_ladder_group, LevelRange(minLevel=11, maxLevel=14), settings=settings)
        scores = {s.level: s.score for s in result.scores}

        assert scores[11] == pytest.approx(50 * 0.20 + 60 * 0.20 + 70 * 0.60)
        assert scores[14] == pytest.approx(50 * 0.35 + 60 * 0.35 + 70 * 0.30)

    def test_every_level_in_clustered_groups_assigned(self, settings, random_records):
        result = run_clustering(random_records, LevelRange(minLevel=1, maxLevel=120), settings=settings)

        assert sorted(_ranks(result)) == list(range(1, 121))
        assert sorted(s.level for s in result.scores) == list(range(1, 121))
        assert set(_ranks(result).values()) <= {1, 2, 3, 4}
        assert result.clusteredGroups == len({concept_for_level(l) for l in range(1, 121)})

    def test_levels_outside_range_untouched(self, settings, random_records):
        result = run_clustering(random_records, LevelRange(minLevel=11, maxLevel=40), settings=settings)
        assert sorted(_ranks(result)) == list(range(11, 41))

    def test_open_range_uses_default_maximum(self, settings, random_records):
        result = run_clustering(random_records, LevelRange(minLevel=1), settings=settings)
        assert len(result.assignments) == 120

    def test_custom_multiplier_table(self, settings, repeat_ladder_group):
        from levelscore.services.scoring import merge_multiplier_table

        table = merge_multiplier_table({'cluster1': {'monetization': 1, 'engagement': 0, 'satisfaction': 0}})
        result = run_clustering(
            repeat_ladder_group,
            LevelRange(minLevel=11, maxLevel=14),
            multiplier_table=table,
            settings=settings,
        )
        assert {s.level: s.score for s in result.scores}[11] == pytest.approx(50.0)

    def test_versions_and_seed_recorded(self, settings, repeat_ladder_group):
        result = run_clustering(
            repeat_ladder_group,
            LevelRange(minLevel=11, maxLevel=14),
            random_state=7,
            settings=settings,
        )

        assert result.conceptTableVersion == CONCEPT_TABLE_VERSION
        assert result.difficultyFormulaVersion == DIFFICULTY_FORMULA_VERSION
        assert result.randomSeed == 7

    def test_storage_rows(self, settings, repeat_ladder_group):
        result = run_clustering(repeat_ladder_group, LevelRange(minLevel=11, maxLevel=14), settings=settings)

        assert result.assignment_rows()[0] == {'level': 11, 'cluster': '1'}
        assert set(result.score_rows()[0]) == {'level', 'score'}


class TestInsufficientData:

    def test_small_group_skipped_and_reported(self, settings, repeat_ladder_group):
        small = [make_record(level) for level in (1, 2, 3)]
        result = run_clustering(
            small + repeat_ladder_group,
            LevelRange(minLevel=1, maxLevel=14),
            settings=settings,
        )

        assert sorted(_ranks(result)) == [11, 12, 13, 14]
        assert result.skippedGroups == 1
        assert result.skippedLevels == 3
        assert result.clusteredGroups == 1

        issues = [i for i in result.issues if i.code == IssueCode.INSUFFICIENT_DATA]
        assert len(issues) == 1
        assert issues[0].concept == 1

    def test_only_small_groups(self, settings):
        result = run_clustering(
            [make_record(level) for level in (1, 2, 11)],
            LevelRange(minLevel=1, maxLevel=20),
            settings=settings,
        )

        assert result.assignments == []
        assert result.skippedGroups == 2
        assert result.summaries == []


class TestDuplicateLevels:

    def test_duplicate_does_not_fill_a_small_group(self, settings):
        records = [
            make_record(11, avgRepeatRatio=0.1),
            make_record(11, avgRepeatRatio=0.9),
            make_record(12),
            make_record(13),
        ]
        result = run_clustering(records, LevelRange(minLevel=11, maxLevel=13), settings=settings)

        assert result.assignments == []
        assert result.skippedGroups == 1
        assert result.skippedLevels == 3

        issues = [i for i in result.issues if i.code == IssueCode.DUPLICATE_LEVEL]
        assert [i.level for i in issues] == [11]

    def test_one_assignment_per_level(self, settings, repeat_ladder_group):
        records = repeat_ladder_group + [make_record(14, avgRepeatRatio=0.01)]
        result = run_clustering(records, LevelRange(minLevel=11, maxLevel=14), settings=settings)

        levels = [a.level for a in result.assignments]
        assert sorted(levels) == [11, 12, 13, 14]
        assert len(result.scores) == 4

    def test_last_record_wins(self, settings, repeat_ladder_group):
        records = repeat_ladder_group + [make_record(14, avgRepeatRatio=0.01)]
        result = run_clustering(records, LevelRange(minLevel=11, maxLevel=14), settings=settings)

        assert _ranks(result)[14] == 1

    def test_select_records_deduplicates_in_range_only(self):
        records = [make_record(5), make_record(20), make_record(5), make_record(20)]
        selected, duplicates = select_records(records, LevelRange(minLevel=1, maxLevel=10), 10000)

        assert [r.level for r in selected] == [5]
        assert selected[0] is records[2]
        assert duplicates == [5]

    def test_duplicates_logged(self, settings, caplog):
        records = [make_record(11), make_record(11)]

        with caplog.at_level(logging.WARNING, logger='levelscore.services.engine'):
            run_clustering(records, LevelRange(minLevel=11, maxLevel=14), settings=settings)

        assert any('duplicate records' in r.message for r in caplog.records)


class TestMissingMetrics:

    def test_missing_values_counted_and_reported(self, settings):
        records = [
            make_record(11, avgRepeatRatio=0.1),
            LevelMetricRecord(level=12, metrics={}),
            make_record(13, avgRepeatRatio=0.4, levelPlayTime=None),
            make_record(14, avgRepeatRatio=0.6),
        ]
        result = run_clustering(records, LevelRange(minLevel=11, maxLevel=14), settings=settings)

        assert len(result.assignments) == 4
        assert result.missingMetricRecords == 2

        issues = {i.level: i for i in result.issues if i.code == IssueCode.MISSING_METRIC}
        assert set(issues) == {12, 13}
        assert issues[12].message.startswith('All features are zero for level 12')
        assert 'All features are zero' not in issues[13].message

    def test_warning_logged(self, settings, caplog):
        records = [make_record(level, firstTryWinPercent='n/a') for level in range(11, 15)]

        with caplog.at_level(logging.WARNING, logger='levelscore.services.engine'):
            run_clustering(records, LevelRange(minLevel=11, maxLevel=14), settings=settings)

        assert any('missing or unparseable' in r.message for r in caplog.records)

    def test_skipped_groups_not_counted(self, settings):
        records = [LevelMetricRecord(level=level, metrics={}) for level in (1, 2)]
        result = run_clustering(records, LevelRange(minLevel=1, maxLevel=10), settings=settings)
        assert result.missingMetricRecords == 0

    def test_count_documented_as_clustered_groups_only(self):
        description = ClusteringRunResult.model_fields['missingMetricRecords'].description
        assert 'skipped groups are not counted' in description


class TestRankSummaries:

    def test_summary_per_rank(self, settings, repeat_ladder_group):
        result = run_clustering(repeat_ladder_group, LevelRange(minLevel=11, maxLevel=14), settings=settings)

        assert [s.rank for s in result.summaries] == ['1', '2', '3', '4']
        assert [s.count for s in result.summaries] == [1, 1, 1, 1]
        assert [s.meanRepeatRatio for s in result.summaries] == pytest.approx([0.05, 0.10, 0.50, 0.55])
        assert all(s.meanPlayTime == pytest.approx(90.0) for s in result.summaries)

    def test_counts_span_all_groups(self, settings, random_records):
        result = run_clustering(random_records, LevelRange(minLevel=1, maxLevel=120), settings=settings)
        assert sum(s.count for s in result.summaries) == 120


@pytest.mark.determinism
class TestDeterminism:

    def test_same_seed_same_result(self, settings, random_records):
        level_range = LevelRange(minLevel=1, maxLevel=120)
        first = run_clustering(random_records, level_range, random_state=42, settings=settings)
        second = run_clustering(random_records, level_range, random_state=42, settings=settings)

        assert first.assignment_rows() == second.assignment_rows()
        assert first.score_rows() == second.score_rows()

    def test_input_order_does_not_matter(self, settings, random_records):
        level_range = LevelRange(minLevel=1, maxLevel=120)
        forward = run_clustering(random_records, level_range, settings=settings)
        backward = run_clustering(list(reversed(random_records)), level_range, settings=settings)

        assert _ranks(forward) == _ranks(backward)

    def test_groups_are_independent(self, settings, random_records):
        whole = _ranks(run_clustering(random_records, LevelRange(minLevel=1, maxLevel=120), settings=settings))
        part = _ranks(run_clustering(random_records, LevelRange(minLevel=11, maxLevel=20), settings=settings))

        assert part == {level: whole[level] for level in range(11, 21)}
