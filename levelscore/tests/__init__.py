'''
Level Score Engine Test Suite

Test Modules:
-------------
- test_concepts.py: Concept bucketing
  - Literal interval table boundaries up to level 3000
  - Width-50 dynamic buckets from level 3001
  - Multiplier display tiers

- test_features.py: Feature normalization
  - Missing/unparseable metrics resolved to 0.0
  - log1p skew correction
  - Per-group min-max scaling, constant column -> 0.5
  - Metric weights

- test_clustering.py: K-Means and difficulty ranking
  - Groups under four levels skipped
  - Seeded reproducibility
  - Ranks independent of raw k-means indices, empty clusters last

- test_scoring.py: Score calculator
  - Weighted subscore sum, default row fallback

- test_engine.py: Clustering runs end to end
- test_level_board.py: Cluster states, overrides and reclustering
- test_ingestion.py: Telemetry export adapter

Running Tests:
--------------
    pip install -e ".[test]"
    pytest levelscore/tests/ -v

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

__all__ = []
