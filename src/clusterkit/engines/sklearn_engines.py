"""
Engine adapters backed by scikit-learn.

Covers the probabilistic-affinity projection (t-SNE), the diffusion map
(spectral embedding over a nearest-neighbor affinity graph), linear
decomposition (PCA and truncated SVD), partition clustering (k-means) and
density clustering (HDBSCAN).
"""

from __future__ import annotations

from typing import Any, Dict

import numpy as np
from sklearn.cluster import HDBSCAN, KMeans
from sklearn.decomposition import PCA
from sklearn.manifold import TSNE, SpectralEmbedding
from sklearn.utils.extmath import randomized_svd

from ..configuration import Algorithm
from .base import BaseEngine


class TSNEEngine(BaseEngine):
    """
    t-SNE projection. The backend cannot embed new points after fitting.

    ``eta`` is the classic name of the gradient step; it is used when
    ``learning_rate`` is not set.
    """

    algorithm = Algorithm.TSNE

    def _build_model(self) -> TSNE:
        return TSNE(
            n_components=self.param("n_components", 2),
            perplexity=float(self.param("perplexity", 30.0)),
            learning_rate=self.param("learning_rate", self.param("eta", "auto")),
            max_iter=self.param("n_iter", 1000),
            early_exaggeration=float(self.param("early_exaggeration", 12.0)),
            angle=float(self.param("theta", 0.5)),
            metric=self.param("metric", "euclidean"),
            random_state=self.params.get("random_seed"),
            n_jobs=self.params.get("n_threads"),
            verbose=1,
        )

    def _fit_transform(self, model: TSNE, X: np.ndarray) -> np.ndarray:
        return model.fit_transform(X)


class DiffusionMapEngine(BaseEngine):
    """
    Diffusion-map style embedding.

    Uses the eigenvectors of the normalized graph Laplacian of a k-nearest
    neighbor affinity graph. No out-of-sample transform.
    The backend has no density normalization, so ``alpha`` is not applied,
    and the graph is used as is, so ``n_iter`` (diffusion steps) is not
    either.
    """

    algorithm = Algorithm.DIFFUSION
    unsupported_params = ("alpha", "n_iter")

    def _build_model(self) -> SpectralEmbedding:
        return SpectralEmbedding(
            n_components=self.param("n_components", 2),
            affinity="nearest_neighbors",
            n_neighbors=self.param("n_neighbors", 15),
            random_state=self.params.get("random_seed"),
            n_jobs=self.params.get("n_threads"),
        )

    def _fit_transform(self, model: SpectralEmbedding, X: np.ndarray) -> np.ndarray:
        return model.fit_transform(X)


class PCAEngine(BaseEngine):
    """Principal component analysis via randomized SVD."""

    algorithm = Algorithm.PCA

    def _build_model(self) -> PCA:
        return PCA(
            n_components=self.param("n_components", 2),
            svd_solver="randomized",
            iterated_power=self.param("n_iter", 5),
            random_state=self.params.get("random_seed"),
        )

    def _fit_transform(self, model: PCA, X: np.ndarray) -> np.ndarray:
        return model.fit_transform(X)

    def _transform(self, model: PCA, X: np.ndarray) -> np.ndarray:
        return model.transform(X)

    def inverse_transform(self, Z: np.ndarray) -> np.ndarray:
        if not self.fitted:
            raise RuntimeError("PCAEngine is not fitted. Call fit_transform before inverse_transform.")
        return self.model.inverse_transform(Z)


class SVDEngine(BaseEngine):
    """
    Truncated SVD, ``X ~ U diag(S) Vt``, by randomized range finding.

    The data is not centered. ``fit_transform`` returns ``U * S`` and keeps
    the three factors on the model; ``transform`` projects onto ``Vt``.
    Without ``n_components`` the full rank ``min(n_samples, n_features)`` is
    computed.
    """

    algorithm = Algorithm.SVD

    def _build_model(self) -> Dict[str, Any]:
        return {
            "n_components": self.params.get("n_components"),
            "n_iter": self.param("n_iter", 2),
            "random_state": self.params.get("random_seed"),
        }

    def _fit_transform(self, model: Dict[str, Any], X: np.ndarray) -> np.ndarray:
        n_components = model["n_components"] or min(X.shape)
        U, S, Vt = randomized_svd(
            X,
            n_components=n_components,
            n_iter=model["n_iter"],
            random_state=model["random_state"],
        )
        model.update(U=U, S=S, Vt=Vt)
        return U * S

    def _transform(self, model: Dict[str, Any], X: np.ndarray) -> np.ndarray:
        return X @ model["Vt"].T

    def inverse_transform(self, Z: np.ndarray) -> np.ndarray:
        if not self.fitted:
            raise RuntimeError("SVDEngine is not fitted. Call fit_transform before inverse_transform.")
        return Z @ self.model["Vt"]


class KMeansEngine(BaseEngine):
    """K-means clustering. ``fit_transform`` returns labels, ``transform`` predicts."""

    algorithm = Algorithm.KMEANS

    def _build_model(self) -> KMeans:
        return KMeans(
            n_clusters=self.param("k", 3),
            max_iter=self.param("max_iter", 300),
            random_state=self.params.get("random_seed"),
            n_init="auto",
        )

    def _fit_transform(self, model: KMeans, X: np.ndarray) -> np.ndarray:
        return model.fit_predict(X)

    def _transform(self, model: KMeans, X: np.ndarray) -> np.ndarray:
        return model.predict(X)


class HDBSCANEngine(BaseEngine):
    """
    HDBSCAN density clustering.

    Noise points get label -1. Non-finite rows are not rejected by the
    backend: infinite rows are labelled -2 and rows with NaN -3.
    """

    algorithm = Algorithm.HDBSCAN

    # backend metric names for the aliases callers may use
    METRIC_ALIASES = {"l2": "euclidean", "l1": "manhattan"}

    def _build_model(self) -> HDBSCAN:
        metric = self.param("metric", "euclidean")
        return HDBSCAN(
            min_samples=self.param("min_samples", 5),
            min_cluster_size=self.param("min_cluster_size", 5),
            metric=self.METRIC_ALIASES.get(metric, metric),
            n_jobs=self.params.get("n_threads"),
        )

    def _fit_transform(self, model: HDBSCAN, X: np.ndarray) -> np.ndarray:
        return model.fit_predict(X)

    @property
    def probabilities(self) -> Any:
        return None if self.model is None else self.model.probabilities_
