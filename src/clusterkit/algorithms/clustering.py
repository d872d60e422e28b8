"""
Clustering estimators and cluster quality metrics.

Provides KMeans (with elbow-based selection of k), HDBSCAN density
clustering, silhouette scoring and PCA reconstruction error.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import numpy as np
from sklearn.metrics import silhouette_score as sklearn_silhouette_score

from ..configuration import Algorithm, Configuration
from ..engines import EngineFactory
from ..utils.logging_config import get_logger
from ..validation import DatasetValidator, as_float_array
from .base import BaseEstimator

logger = get_logger(__name__)

Array2D = np.ndarray

DEFAULT_K_RANGE = range(2, 11)

HDBSCAN_METRICS = ("euclidean", "l2", "manhattan", "l1", "cosine")


class KMeans(BaseEstimator):
    """
    K-means clustering.

    Validation does not reject non-finite values for clustering; the engine
    decides what to do with them.

    Usage:
        km = KMeans(k=3, random_seed=42)
        labels = km.fit_predict(X)
        km.cluster_centers, km.inertia
    """

    algorithms = (Algorithm.KMEANS,)
    check_finite = False

    _labels: Optional[np.ndarray] = None

    def __init__(
        self,
        k: int,
        max_iter: int = 300,
        random_seed: Optional[int] = None,
        factory: Optional[EngineFactory] = None,
    ):
        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}")
        if max_iter < 1:
            raise ValueError(f"max_iter must be >= 1, got {max_iter}")
        configuration = Configuration.create(
            Algorithm.KMEANS, k=k, max_iter=max_iter, random_seed=random_seed
        )
        super().__init__(configuration, factory)
        self._labels = None

    @property
    def k(self) -> int:
        return self.configuration.k

    @property
    def max_iter(self) -> int:
        return self.configuration.max_iter

    @property
    def random_seed(self) -> Optional[int]:
        return self.configuration.random_seed

    def fit(self, data: Any) -> "KMeans":
        """Fit the model; returns self."""
        self._labels = self._fit_engine(data)
        return self

    def fit_predict(self, data: Any) -> np.ndarray:
        """Fit the model and return a cluster label per sample."""
        return self.fit(data).labels

    def predict(self, data: Any) -> np.ndarray:
        """
        Assign new samples to the nearest fitted centroid.

        Raises:
            NotFittedError: If called before fitting
        """
        return self._transform_engine(data, operation="predict")

    @property
    def labels(self) -> Optional[np.ndarray]:
        if self._labels is not None:
            return self._labels
        model = None if self._engine is None else self._engine.model
        labels = getattr(model, "labels_", None)
        return None if labels is None else np.asarray(labels)

    @property
    def cluster_centers(self) -> Optional[Array2D]:
        model = None if self._engine is None else self._engine.model
        centers = getattr(model, "cluster_centers_", None)
        return None if centers is None else np.asarray(centers)

    @property
    def inertia(self) -> Optional[float]:
        """Sum of squared distances of samples to their closest center."""
        model = None if self._engine is None else self._engine.model
        inertia = getattr(model, "inertia_", None)
        return None if inertia is None else float(inertia)

    @classmethod
    def elbow_method(
        cls,
        data: Any,
        k_range: Iterable[int] = DEFAULT_K_RANGE,
        max_iter: int = 300,
        random_seed: Optional[int] = None,
        factory: Optional[EngineFactory] = None,
    ) -> Dict[int, float]:
        """
        Fit one model per k and record its inertia.

        Returns:
            Dictionary mapping k to inertia, in ``k_range`` order
        """
        results: Dict[int, float] = {}
        for k in k_range:
            model = cls(k=k, max_iter=max_iter, random_seed=random_seed, factory=factory)
            model.fit(data)
            results[k] = model.inertia
            logger.debug("Elbow method: k=%d inertia=%s", k, results[k])
        return results

    @staticmethod
    def detect_optimal_k(elbow_results: Dict[int, float], fallback_k: int = 3) -> int:
        """
        Pick k at the elbow of an inertia curve.

        The elbow is taken right after the largest drop in inertia between
        consecutive k values. A curve that never drops keeps the smallest k,
        a single result is returned as is, and ``fallback_k`` is only used
        when there are no results.
        """
        if not elbow_results:
            return fallback_k

        ks = sorted(elbow_results)
        best_k = ks[0]
        max_drop = 0.0
        for previous, current in zip(ks, ks[1:]):
            drop = elbow_results[previous] - elbow_results[current]
            if drop > max_drop:
                max_drop = drop
                best_k = current
        return best_k

    @classmethod
    def optimal_k(
        cls,
        data: Any,
        k_range: Iterable[int] = DEFAULT_K_RANGE,
        max_iter: int = 300,
        random_seed: Optional[int] = None,
        factory: Optional[EngineFactory] = None,
    ) -> int:
        """Run the elbow method over ``k_range`` and return the detected k."""
        results = cls.elbow_method(
            data, k_range=k_range, max_iter=max_iter, random_seed=random_seed, factory=factory
        )
        return cls.detect_optimal_k(results)


class HDBSCAN(BaseEstimator):
    """
    Hierarchical density-based clustering.

    Points that belong to no cluster are labelled -1 (noise). HDBSCAN has no
    out-of-sample prediction; refit on the combined data instead.

    Usage:
        hdb = HDBSCAN(min_samples=5, min_cluster_size=10)
        labels = hdb.fit_predict(X)
        hdb.n_clusters, hdb.noise_ratio
    """

    algorithms = (Algorithm.HDBSCAN,)
    check_finite = False

    _labels: Optional[np.ndarray] = None
    _probabilities: Optional[np.ndarray] = None

    def __init__(
        self,
        min_samples: int = 5,
        min_cluster_size: int = 5,
        metric: str = "euclidean",
        factory: Optional[EngineFactory] = None,
    ):
        if min_samples < 1:
            raise ValueError(f"min_samples must be >= 1, got {min_samples}")
        if min_cluster_size < 2:
            raise ValueError(f"min_cluster_size must be >= 2, got {min_cluster_size}")
        if metric not in HDBSCAN_METRICS:
            raise ValueError(
                f"Unknown metric: {metric!r}. Must be one of: {', '.join(HDBSCAN_METRICS)}"
            )
        configuration = Configuration.create(
            Algorithm.HDBSCAN,
            min_samples=min_samples,
            min_cluster_size=min_cluster_size,
            metric=metric,
        )
        super().__init__(configuration, factory)
        self._labels = None
        self._probabilities = None

    @property
    def min_samples(self) -> int:
        return self.configuration.min_samples

    @property
    def min_cluster_size(self) -> int:
        return self.configuration.min_cluster_size

    @property
    def metric(self) -> str:
        return self.configuration.metric

    def fit(self, data: Any) -> "HDBSCAN":
        """Fit the model; returns self."""
        self._labels = self._fit_engine(data)
        probabilities = getattr(self._engine, "probabilities", None)
        self._probabilities = None if probabilities is None else np.asarray(probabilities)
        return self

    def fit_predict(self, data: Any) -> np.ndarray:
        """Fit the model and return a cluster label per sample (-1 for noise)."""
        return self.fit(data).labels

    def predict(self, data: Any) -> np.ndarray:
        raise NotImplementedError(
            "HDBSCAN does not support prediction on new data. "
            "Use fit_predict on the combined dataset instead."
        )

    @property
    def labels(self) -> Optional[np.ndarray]:
        if self._labels is None and self._engine is not None:
            labels = getattr(self._engine.model, "labels_", None)
            if labels is not None:
                self._labels = np.asarray(labels)
        return self._labels

    @property
    def probabilities(self) -> Optional[np.ndarray]:
        """Strength of each sample's cluster membership, 0 for noise."""
        if self._probabilities is None and self._engine is not None:
            probabilities = getattr(self._engine.model, "probabilities_", None)
            if probabilities is not None:
                self._probabilities = np.asarray(probabilities)
        return self._probabilities

    def _labels_or_empty(self) -> np.ndarray:
        labels = self.labels
        return np.empty(0, dtype=int) if labels is None else labels

    @property
    def n_clusters(self) -> int:
        """Number of clusters found, noise excluded."""
        labels = self._labels_or_empty()
        return int(np.unique(labels[labels >= 0]).size)

    @property
    def n_noise_points(self) -> int:
        labels = self._labels_or_empty()
        return int(np.count_nonzero(labels < 0))

    @property
    def noise_ratio(self) -> float:
        labels = self._labels_or_empty()
        if labels.size == 0:
            return 0.0
        return self.n_noise_points / labels.size

    @property
    def noise_indices(self) -> List[int]:
        return np.flatnonzero(self._labels_or_empty() < 0).tolist()

    def cluster_indices(self) -> Dict[int, List[int]]:
        """Sample indices per cluster label, noise excluded."""
        labels = self._labels_or_empty()
        return {
            int(label): np.flatnonzero(labels == label).tolist()
            for label in np.unique(labels[labels >= 0])
        }

    def summary(self) -> Dict[str, Any]:
        """Cluster count, noise statistics and cluster sizes."""
        return {
            "n_clusters": self.n_clusters,
            "n_noise_points": self.n_noise_points,
            "noise_ratio": self.noise_ratio,
            "cluster_sizes": {
                label: len(indices) for label, indices in self.cluster_indices().items()
            },
        }


def silhouette_score(data: Any, labels: Any) -> float:
    """
    Mean silhouette coefficient over all samples, Euclidean distance.

    Silhouette score measures how well-separated clusters are.
    Higher is better (range [-1, 1]). Samples alone in their cluster score 0,
    and a single cluster scores 0.

    Args:
        data: 2-D dataset
        labels: Cluster assignment per sample

    Returns:
        Mean silhouette score

    Raises:
        ValueError: If ``labels`` does not have one entry per sample
    """
    DatasetValidator().validate(data)
    X = as_float_array(data)
    labels = np.asarray(labels)
    n = X.shape[0]
    if labels.shape != (n,):
        raise ValueError(f"Expected {n} labels, got {labels.size}")

    unique = np.unique(labels)
    # one cluster, or every sample alone in its own
    if len(unique) == 1 or len(unique) == n:
        return 0.0

    return float(sklearn_silhouette_score(X, labels, metric="euclidean"))


def reconstruction_error(original: Any, reconstructed: Any) -> float:
    """
    Mean over samples of the squared Euclidean reconstruction error.

    Raises:
        ValueError: If the arrays do not have the same shape
    """
    X = np.asarray(original, dtype=np.float64)
    X_hat = np.asarray(reconstructed, dtype=np.float64)
    if X.shape != X_hat.shape:
        raise ValueError(
            f"Original and reconstructed data must have the same shape, "
            f"got {X.shape} and {X_hat.shape}"
        )
    if X.size == 0:
        raise ValueError("Cannot compute reconstruction error of empty data")
    return float(np.mean(np.sum((X - X_hat) ** 2, axis=1)))
