"""
Pytest Configuration and Shared Fixtures for Level Score Engine Tests.

This module provides fixtures shared by all engine tests:
- Settings built without reading the environment or a .env file
- A record factory producing LevelMetricRecord objects with sane defaults
- Sample concept groups with known difficulty structure
- A telemetry DataFrame shaped like a real dashboard export

Dependencies:
- pytest
- numpy
- pandas
"""

from typing import Callable, Dict, List, Optional

import numpy as np
import pandas as pd
import pytest

from levelscore.core.config import Settings
from levelscore.models import LevelMetricRecord


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Register custom markers.

    - slow: larger synthetic data sets (deselect with -m "not slow")
    - determinism: seeded reproducibility checks
    """
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with -m "not slow")'
    )
    config.addinivalue_line(
        'markers',
        'determinism: marks seeded reproducibility tests'
    )


# ============================================================
# SETTINGS
# ============================================================

@pytest.fixture
def settings() -> Settings:
    """Default engine settings, isolated from the process environment."""
    return Settings(_env_file=None)


# ============================================================
# RECORD FACTORIES
# ============================================================

BASE_METRICS: Dict[str, float] = {
    'avgRepeatRatio': 0.20,
    'levelPlayTime': 90.0,
    'playOnWinRatio': 0.80,
    'playOnPerUser': 1.5,
    'firstTryWinPercent': 0.50,
}


def make_record(
    level: int,
    monetization: float = 50.0,
    engagement: float = 60.0,
    satisfaction: float = 70.0,
    final_cluster: str = '',
    **metric_overrides: Optional[float],
) -> LevelMetricRecord:
    """
    Build a record from BASE_METRICS with per-metric overrides.

    Passing a metric as None removes it from the record.
    """
    metrics = dict(BASE_METRICS)
    for name, value in metric_overrides.items():
        if value is None:
            metrics.pop(name, None)
        else:
            metrics[name] = value

    return LevelMetricRecord(
        level=level,
        metrics=metrics,
        monetizationScore=monetization,
        engagementScore=engagement,
        satisfactionScore=satisfaction,
        finalCluster=final_cluster,
    )


@pytest.fixture
def record_factory() -> Callable[..., LevelMetricRecord]:
    """Expose make_record() to tests."""
    return make_record


@pytest.fixture
def repeat_ladder_group() -> List[LevelMetricRecord]:
    """
    Four levels of concept 2 (levels 11-14) that differ only in repeat ratio.

    Levels 11 and 12 are easy (0.05, 0.10); levels 13 and 14 are hard
    (0.50, 0.55).
    """
    return [
        make_record(11, avgRepeatRatio=0.05),
        make_record(12, avgRepeatRatio=0.10),
        make_record(13, avgRepeatRatio=0.50),
        make_record(14, avgRepeatRatio=0.55),
    ]


@pytest.fixture
def two_blob_group() -> List[LevelMetricRecord]:
    """
    Eight levels of concept 3 (levels 21-28): four clearly easy, four clearly hard.

    Easy levels have low repeat ratio and high first-try wins; hard levels
    the opposite.
    """
    easy = [
        make_record(21 + i, avgRepeatRatio=0.05 + 0.01 * i, firstTryWinPercent=0.85 - 0.01 * i)
        for i in range(4)
    ]
    hard = [
        make_record(25 + i, avgRepeatRatio=0.60 + 0.02 * i, firstTryWinPercent=0.25 - 0.01 * i)
        for i in range(4)
    ]
    return easy + hard


@pytest.fixture
def random_records() -> List[LevelMetricRecord]:
    """
    Levels 1-120 with pseudo-random telemetry from a fixed seed.

    Covers concept 1 (levels 1-10) and concepts 2-12, each with ten levels.
    """
    rng = np.random.RandomState(7)
    records = []
    for level in range(1, 121):
        records.append(make_record(
            level,
            monetization=float(rng.uniform(0, 100)),
            engagement=float(rng.uniform(0, 100)),
            satisfaction=float(rng.uniform(0, 100)),
            avgRepeatRatio=float(rng.exponential(0.3)),
            levelPlayTime=float(rng.exponential(120.0)),
            playOnWinRatio=float(rng.uniform(0.5, 1.0)),
            playOnPerUser=float(rng.exponential(2.0)),
            firstTryWinPercent=float(rng.uniform(0.1, 0.9)),
        ))
    return records


# ============================================================
# TELEMETRY EXPORT FIXTURES
# ============================================================

@pytest.fixture
def telemetry_export_df() -> pd.DataFrame:
    """DataFrame shaped like the dashboard's level telemetry export."""
    return pd.DataFrame({
        'Level': ['1', '2', 'Level 3', '0'],
        'Monetization Score': [10.0, 20.0, 30.0, 40.0],
        'EngagementScore': [11.0, 21.0, 31.0, 41.0],
        'Satisfaction Score': [12.0, 22.0, 32.0, 42.0],
        'Final Cluster': [1.0, 2.0, None, 4.0],
        'Avg. Repeat Ratio (birleşik)': [0.1, 0.2, 0.3, 0.4],
        'Avg. Level Play Time (birleşik)': [60.0, 70.0, 80.0, 90.0],
        'PlayOnWinRatio': [0.9, 0.8, 0.7, 0.6],
        'Playon per User': [1.0, 1.1, 1.2, 1.3],
        'Avg. FirstTryWinPercent': [0.7, 0.6, 'n/a', 0.4],
    })


def create_csv_bytes(df: pd.DataFrame) -> bytes:
    """Serialize a DataFrame to CSV bytes for read_level_csv() tests."""
    return df.to_csv(index=False).encode('utf-8')
