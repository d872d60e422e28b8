"""
Estimators - dimensionality reduction and clustering.

Each estimator validates its input, adapts parameters to the dataset and
classifies engine failures before they reach the caller.
"""

from .base import BaseEstimator
from .dimensionality_reduction import (
    EMBEDDING_METHODS,
    PCA,
    SVD,
    UMAP,
    Embedder,
    estimate_dimension,
)
from .clustering import (
    HDBSCAN,
    HDBSCAN_METRICS,
    KMeans,
    reconstruction_error,
    silhouette_score,
)

__all__ = [
    "BaseEstimator",
    # Dimensionality reduction
    "Embedder",
    "UMAP",
    "PCA",
    "SVD",
    "EMBEDDING_METHODS",
    "estimate_dimension",
    # Clustering
    "KMeans",
    "HDBSCAN",
    "HDBSCAN_METRICS",
    "silhouette_score",
    "reconstruction_error",
]
