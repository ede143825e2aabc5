"""
Level Telemetry Ingestion Adapter

Turns a level telemetry export (CSV, or a DataFrame already loaded by the
reporting collaborator) into typed LevelMetricRecord objects for the engine.

Exports name their columns inconsistently ("Repeat", "Avg. Repeat Ratio",
"Avg. Repeat Ratio (birleşik)", ...), so each clustering metric is located
through a configurable alias list:
1. Exact match against an alias, ignoring case and surrounding whitespace
2. Otherwise the first column that contains an alias

Rows without a positive level number are dropped. Problems are collected as
ValidationError entries instead of raised, so one bad row never rejects the
whole export.
"""

import io
import logging
import re
from typing import BinaryIO, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from levelscore.models.enums import MetricName
from levelscore.models.schemas import LevelMetricRecord, ValidationError

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS - Column Aliases
# =============================================================================

# Comma-separated, as edited on the clustering settings page
DEFAULT_COLUMN_ALIASES: Dict[str, str] = {
    MetricName.AVG_REPEAT_RATIO.value: "Repeat Ratio, Repeat, Avg. Repeat Ratio, rep",
    MetricName.LEVEL_PLAY_TIME.value: (
        "Level Play Time, Play Time, Avg. Level Play Time, Avg Play Time, Duration"
    ),
    MetricName.PLAY_ON_WIN_RATIO.value: (
        "PlayOnWinRatio, Play On Win Ratio, PlayOnWin, Play on Win, Win Ratio"
    ),
    MetricName.PLAY_ON_PER_USER.value: "Playon per User, Play On Per User, PlayOnPerUser",
    MetricName.FIRST_TRY_WIN_PERCENT.value: (
        "Avg. FirstTryWinPercent, FirstTryWinPercent, First Try Win, 1st Win %"
    ),
}

LEVEL_COLUMN_ALIASES: List[str] = ['Level', 'Level No', 'Level Number']

SCORE_COLUMN_ALIASES: Dict[str, List[str]] = {
    'monetizationScore': ['Monetization Score', 'MonetizationScore'],
    'engagementScore': ['Engagement Score', 'EngagementScore'],
    'satisfactionScore': ['Satisfaction Score', 'SatisfactionScore'],
}

CLUSTER_COLUMN_ALIASES: List[str] = ['Final Cluster', 'FinalCluster']


def _clean(name: str) -> str:
    return re.sub(r'\s+', ' ', str(name).strip().lower())


def split_aliases(aliases: Union[str, Sequence[str]]) -> List[str]:
    """Split a comma-separated alias string; lists pass through cleaned."""
    if isinstance(aliases, str):
        parts = aliases.split(',')
    else:
        parts = list(aliases)
    return [p.strip() for p in parts if p and p.strip()]


def resolve_column(
    columns: Sequence[str],
    aliases: Union[str, Sequence[str]],
    exact_only: bool = False,
) -> Optional[str]:
    """
    Find the column matching an alias list.

    Exact (case-insensitive) matches win over substring matches; among
    substring matches, alias order and then column order decide.

    Returns:
        The original column name, or None when nothing matches
    """
    alias_list = [_clean(a) for a in split_aliases(aliases)]
    cleaned = [(_clean(c), c) for c in columns]

    for alias in alias_list:
        for clean_name, original in cleaned:
            if clean_name == alias:
                return original

    if exact_only:
        return None

    for alias in alias_list:
        for clean_name, original in cleaned:
            if alias and alias in clean_name:
                return original

    return None


def resolve_metric_columns(
    columns: Sequence[str],
    aliases: Optional[Mapping[str, str]] = None,
) -> Dict[str, Optional[str]]:
    """Map each clustering metric to its source column (None if absent)."""
    merged = dict(DEFAULT_COLUMN_ALIASES)
    merged.update(aliases or {})
    return {
        metric.value: resolve_column(columns, merged[metric.value])
        for metric in MetricName
    }


def parse_level_number(value: object) -> int:
    """
    Extract a level number from a cell such as "12", "Level 12" or "1,204".

    Returns:
        The level, or 0 when no digits are present
    """
    if value is None:
        return 0
    if isinstance(value, float):
        if pd.isna(value):
            return 0
        return int(value)
    digits = re.sub(r'[^\d-]', '', str(value))
    try:
        return int(digits)
    except ValueError:
        return 0


def cluster_label(value: object) -> str:
    """Normalize a cluster cell; numeric columns arrive as 2.0 rather than "2"."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _float_or_zero(value: object) -> float:
    number = pd.to_numeric(pd.Series([value]), errors='coerce').iloc[0]
    return 0.0 if pd.isna(number) else float(number)


def records_from_dataframe(
    df: pd.DataFrame,
    aliases: Optional[Mapping[str, str]] = None,
) -> Tuple[List[LevelMetricRecord], List[ValidationError]]:
    """
    Convert a telemetry DataFrame into LevelMetricRecord objects.

    Metric cells are passed through as found (numeric where pandas could
    parse them); the feature extractor resolves anything unusable to 0.0.

    Args:
        df: Telemetry export, one row per level
        aliases: Metric name -> comma-separated column aliases, overriding
            DEFAULT_COLUMN_ALIASES per metric

    Returns:
        Tuple of (records in file order, validation errors)
    """
    errors: List[ValidationError] = []
    columns = [str(c) for c in df.columns]

    level_column = resolve_column(columns, LEVEL_COLUMN_ALIASES, exact_only=True)
    if level_column is None:
        errors.append(ValidationError(
            field='Level',
            message='No level column found in telemetry export',
            row_number=None,
        ))
        return [], errors

    metric_columns = resolve_metric_columns(columns, aliases)
    for metric, column in metric_columns.items():
        if column is None:
            errors.append(ValidationError(
                field=metric,
                message=f"No column matches the aliases for metric '{metric}'; values default to 0.0",
                row_number=None,
            ))

    score_columns = {
        name: resolve_column(columns, candidates)
        for name, candidates in SCORE_COLUMN_ALIASES.items()
    }
    cluster_column = resolve_column(columns, CLUSTER_COLUMN_ALIASES)

    records: List[LevelMetricRecord] = []
    for position, (_, row) in enumerate(df.iterrows()):
        level = parse_level_number(row[level_column])
        if level <= 0:
            errors.append(ValidationError(
                field=level_column,
                message=f"Row has no positive level number ({row[level_column]!r}); dropped",
                # Convert 0-based DataFrame index to 1-based row number
                row_number=position + 1,
            ))
            continue

        metrics = {
            metric: row[column]
            for metric, column in metric_columns.items()
            if column is not None and not pd.isna(row[column])
        }

        cluster = ''
        if cluster_column is not None:
            cluster = cluster_label(row[cluster_column])

        records.append(LevelMetricRecord(
            level=level,
            metrics=metrics,
            finalCluster=cluster,
            **{
                name: _float_or_zero(row[column]) if column is not None else 0.0
                for name, column in score_columns.items()
            },
        ))

    logger.info(f"Converted {len(records)} telemetry rows into level records ({len(errors)} issues)")
    return records, errors


def read_level_csv(
    file: Union[BinaryIO, str, bytes],
    aliases: Optional[Mapping[str, str]] = None,
) -> Tuple[List[LevelMetricRecord], List[ValidationError]]:
    """
    Parse a telemetry CSV export into records.

    Args:
        file: File object, raw bytes, or CSV text
        aliases: Metric column aliases, see records_from_dataframe()

    Returns:
        Tuple of (records, validation errors)
    """
    try:
        if isinstance(file, bytes):
            file_like = io.BytesIO(file)
        elif isinstance(file, str):
            file_like = io.StringIO(file)
        else:
            content = file.read()
            file_like = io.BytesIO(content) if isinstance(content, bytes) else io.StringIO(content)

        df = pd.read_csv(file_like, skip_blank_lines=True)
    except (ValueError, pd.errors.ParserError) as e:
        return [], [ValidationError(
            field='file',
            message=f'Failed to parse CSV file: {str(e)}',
            row_number=None,
        )]

    if df.empty:
        return [], [ValidationError(
            field='file',
            message='CSV file is empty or contains no data rows',
            row_number=None,
        )]

    logger.info(f"Parsed CSV with {len(df)} rows and {len(df.columns)} columns")
    return records_from_dataframe(df, aliases)
