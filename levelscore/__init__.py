"""
Level Score Engine Package.

Segments game levels into behavioral difficulty clusters from telemetry and
computes a composite player-experience score per level.

Subpackages:
    - core: Configuration and logging setup
    - models: Pydantic schemas and enums
    - services: Bucketing, normalization, clustering, ranking, scoring
"""

__version__ = "1.0.0"
