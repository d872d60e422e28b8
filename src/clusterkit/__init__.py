"""
ClusterKit - Core Package

Dimensionality reduction and clustering with guard rails around the
numerical engines that do the work.

This package provides:
- Input validation with actionable error messages
- Automatic adjustment of neighbor counts for small datasets
- Suppression of engine diagnostic output (unless verbose)
- Classification of raw engine failures into typed errors with remedies
- An approximate nearest-neighbor index (HNSW, needs the ``ann`` extra)
"""

__version__ = "0.1.0"

from typing import Any, Dict, Iterable, Optional, Tuple

import numpy as np

from .algorithms import (
    HDBSCAN,
    PCA,
    SVD,
    UMAP,
    Embedder,
    KMeans,
    estimate_dimension,
    reconstruction_error,
    silhouette_score,
)
from .config import configure, get_settings
from .configuration import Algorithm, Configuration
from .exceptions import (
    ClassifiedError,
    ClusterKitError,
    ConvergenceError,
    EmptyInputError,
    EngineError,
    InconsistentRowLengthError,
    InsufficientDataError,
    InvalidParameterError,
    IsolatedPointError,
    NonFiniteElementError,
    NonNumericElementError,
    NotFittedError,
    NotTwoDimensionalError,
    ValidationError,
)
from .facade import CallState, GuardedCall, guarded_call
from .index import HNSWIndex
from .preprocessing import normalize
from .utils import get_logger, setup_logging

# Explicitly import subpackages to ensure they're discoverable
from . import algorithms
from . import engines
from . import utils


def umap(data: Any, n_components: int = 2, **options: Any) -> np.ndarray:
    """Fit UMAP on ``data`` and return the embedding."""
    return UMAP(n_components=n_components, **options).fit_transform(data)


def tsne(data: Any, n_components: int = 2, **options: Any) -> np.ndarray:
    """Fit t-SNE on ``data`` and return the embedding."""
    return Embedder("tsne", n_components=n_components, **options).fit_transform(data)


def pca(data: Any, n_components: int = 2) -> np.ndarray:
    """Fit PCA on ``data`` and return the projection."""
    return PCA(n_components=n_components).fit_transform(data)


def svd(
    matrix: Any,
    k: Optional[int] = None,
    n_iter: int = 2,
    random_seed: Optional[int] = None,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return ``(U, S, Vt)``, the rank-``k`` truncated SVD of ``matrix``."""
    return SVD(n_components=k, n_iter=n_iter, random_seed=random_seed).fit_transform(matrix)


def kmeans(
    data: Any,
    k: Optional[int] = None,
    k_range: Iterable[int] = range(2, 11),
    max_iter: int = 300,
    random_seed: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Cluster ``data`` with k-means.

    When ``k`` is None it is picked with the elbow method over ``k_range``.

    Returns:
        Dictionary with labels, centroids, inertia and k
    """
    if k is None:
        k = KMeans.optimal_k(data, k_range=k_range, max_iter=max_iter, random_seed=random_seed)
    model = KMeans(k=k, max_iter=max_iter, random_seed=random_seed)
    labels = model.fit_predict(data)
    return {
        "labels": labels,
        "centroids": model.cluster_centers,
        "inertia": model.inertia,
        "k": k,
    }


def hdbscan(
    data: Any,
    min_samples: int = 5,
    min_cluster_size: int = 5,
    metric: str = "euclidean",
) -> Dict[str, Any]:
    """
    Cluster ``data`` with HDBSCAN.

    Returns:
        Dictionary with labels, probabilities, n_clusters, noise_ratio and
        noise_indices
    """
    model = HDBSCAN(min_samples=min_samples, min_cluster_size=min_cluster_size, metric=metric)
    labels = model.fit_predict(data)
    return {
        "labels": labels,
        "probabilities": model.probabilities,
        "n_clusters": model.n_clusters,
        "noise_ratio": model.noise_ratio,
        "noise_indices": model.noise_indices,
    }


__all__ = [
    # Estimators
    "Embedder",
    "UMAP",
    "PCA",
    "SVD",
    "KMeans",
    "HDBSCAN",
    "HNSWIndex",
    "estimate_dimension",
    "silhouette_score",
    "reconstruction_error",
    "normalize",
    # Shortcuts
    "umap",
    "tsne",
    "pca",
    "svd",
    "kmeans",
    "hdbscan",
    # Configuration
    "Algorithm",
    "Configuration",
    "configure",
    "get_settings",
    "GuardedCall",
    "CallState",
    "guarded_call",
    "get_logger",
    "setup_logging",
    # Errors
    "ClusterKitError",
    "ValidationError",
    "EmptyInputError",
    "NotTwoDimensionalError",
    "InconsistentRowLengthError",
    "NonNumericElementError",
    "NonFiniteElementError",
    "InsufficientDataError",
    "ClassifiedError",
    "EngineError",
    "IsolatedPointError",
    "ConvergenceError",
    "InvalidParameterError",
    "NotFittedError",
    # Subpackages
    "algorithms",
    "engines",
    "utils",
]
