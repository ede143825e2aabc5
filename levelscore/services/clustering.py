"""
K-Means Clustering Service

Runs k-means independently on the weighted feature vectors of each concept
group using scikit-learn's KMeans with k-means++ seeding and Euclidean
distance.

Determinism:
- A fixed random_state makes the k-means++ seeding, and therefore the raw
  cluster indices, reproducible for identical input.
- Raw indices carry no meaning on their own; ranking.rank_clusters() turns
  them into difficulty ranks.
"""

import logging
import warnings
from typing import Optional

import numpy as np
from sklearn.cluster import KMeans
from sklearn.exceptions import ConvergenceWarning

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

RANDOM_STATE: int = 42

MAX_CLUSTERS: int = 4

# Concept groups with fewer levels are skipped, not clustered
MIN_GROUP_SIZE: int = 4

N_INIT: int = 10

MAX_ITER: int = 300


def choose_k(n_samples: int, max_clusters: int = MAX_CLUSTERS) -> int:
    """Number of clusters for a group of n_samples levels: min(max_clusters, n)."""
    return max(1, min(max_clusters, n_samples))


def has_enough_levels(n_samples: int, min_group_size: int = MIN_GROUP_SIZE) -> bool:
    """Whether a concept group is large enough to be clustered."""
    return n_samples >= min_group_size


def cluster_vectors(
    vectors: np.ndarray,
    random_state: int = RANDOM_STATE,
    max_clusters: int = MAX_CLUSTERS,
    min_group_size: int = MIN_GROUP_SIZE,
    n_init: int = N_INIT,
    max_iter: int = MAX_ITER,
) -> Optional[np.ndarray]:
    """
    Cluster the feature vectors of one concept group.

    Args:
        vectors: Array of shape (n_levels, n_features), output of features.normalize()
        random_state: Seed for k-means++ initialization
        max_clusters: Upper bound on k
        min_group_size: Groups smaller than this are not clustered
        n_init: Number of k-means++ restarts; the lowest-inertia run wins
        max_iter: Iteration cap per restart

    Returns:
        Raw cluster index per input row (same order as input), or None when the
        group has fewer than min_group_size levels.
    """
    vectors = np.asarray(vectors, dtype=float)
    n_samples = len(vectors)

    if not has_enough_levels(n_samples, min_group_size):
        logger.debug(f"Not clustering group of {n_samples} levels (minimum {min_group_size})")
        return None

    k = choose_k(n_samples, max_clusters)

    kmeans = KMeans(
        n_clusters=k,
        init='k-means++',
        n_init=n_init,
        max_iter=max_iter,
        random_state=random_state,
    )

    # Groups with fewer distinct vectors than k still get k labels; empty
    # clusters are handled by the ranker.
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', category=ConvergenceWarning)
        labels = kmeans.fit_predict(vectors)

    return labels.astype(int)
