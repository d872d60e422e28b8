"""
Dimensionality reduction estimators.

Provides the generic ``Embedder`` (umap, tsne, largevis, diffusion), a UMAP
convenience class with the common parameters up front, PCA with its
variance diagnostics, truncated SVD and an intrinsic dimension estimate.
"""

from __future__ import annotations

from typing import Any, Optional, Tuple, Union

import numpy as np
from sklearn.neighbors import NearestNeighbors

from ..configuration import Algorithm, Configuration
from ..engines import EngineFactory
from ..exceptions import InsufficientDataError
from ..utils.logging_config import get_logger
from ..validation import DatasetStats, DatasetValidator, as_float_array, dataset_statistics
from .base import BaseEstimator

logger = get_logger(__name__)

Array2D = np.ndarray

EMBEDDING_METHODS = (
    Algorithm.UMAP,
    Algorithm.TSNE,
    Algorithm.LARGEVIS,
    Algorithm.DIFFUSION,
)

# values spread wider than this usually need normalizing before embedding
LARGE_RANGE_THRESHOLD = 1000.0


class Embedder(BaseEstimator):
    """
    Non-linear projection to a low-dimensional space.

    Usage:
        embedder = Embedder("tsne", n_components=2, perplexity=20.0)
        Y = embedder.fit_transform(X)

    Args:
        method: One of umap, tsne, largevis, diffusion
        n_components: Output dimensionality
        factory: Engine factory (defaults to the global one)
        **options: Any Configuration field; unknown keys are logged and dropped
    """

    algorithms = EMBEDDING_METHODS

    def __init__(
        self,
        method: Union[Algorithm, str] = "umap",
        n_components: int = 2,
        factory: Optional[EngineFactory] = None,
        **options: Any,
    ):
        algorithm = Algorithm.coerce(method)
        if algorithm not in EMBEDDING_METHODS:
            valid = ", ".join(m.value for m in EMBEDDING_METHODS)
            raise ValueError(f"Unknown embedding method: {method!r}. Must be one of: {valid}")
        configuration = Configuration.create(algorithm, options, n_components=n_components)
        super().__init__(configuration, factory)

    @property
    def method(self) -> str:
        return self.configuration.algorithm.value

    @property
    def n_components(self) -> int:
        return self.configuration.n_components

    def _check_dataset(self, stats: DatasetStats, operation: str) -> None:
        if stats.data_range > LARGE_RANGE_THRESHOLD:
            logger.warning(
                "Large data range detected (%.2f). Consider normalizing your data "
                "to prevent numerical instability.",
                stats.data_range,
            )

    def fit(self, data: Any) -> "Embedder":
        """Fit the model; returns self."""
        self._fit_engine(data)
        return self

    def fit_transform(self, data: Any) -> Array2D:
        """
        Fit the model and return the embedding of ``data``.

        Returns:
            Array of shape (n_samples, n_components)

        Raises:
            ValidationError: If the data is rejected before reaching the engine
            ClassifiedError: If the engine fails
        """
        return self._fit_engine(data)

    def transform(self, data: Any) -> Array2D:
        """
        Embed new points with the fitted model.

        Not every method supports this (t-SNE and diffusion do not); those
        raise an EngineError explaining the limitation.

        Raises:
            NotFittedError: If called before fitting
        """
        return self._transform_engine(data)


class UMAP(Embedder):
    """
    Uniform Manifold Approximation and Projection.

    ``n_neighbors`` is reduced automatically for small datasets. The
    reduction applies to that fit only: ``n_neighbors`` keeps the requested
    value and ``fitted_configuration.n_neighbors`` shows the one used.
    Fitting needs at least ``MIN_SAMPLES`` points.
    """

    MIN_SAMPLES = 10
    algorithms = (Algorithm.UMAP,)

    def __init__(
        self,
        n_components: int = 2,
        n_neighbors: int = 15,
        random_seed: Optional[int] = None,
        nb_grad_batch: int = 10,
        nb_sampling_by_edge: int = 8,
        factory: Optional[EngineFactory] = None,
        **options: Any,
    ):
        super().__init__(
            Algorithm.UMAP,
            n_components,
            factory,
            n_neighbors=n_neighbors,
            random_seed=random_seed,
            nb_grad_batch=nb_grad_batch,
            nb_sampling_by_edge=nb_sampling_by_edge,
            **options,
        )

    @property
    def n_neighbors(self) -> int:
        return self.configuration.n_neighbors

    @property
    def random_seed(self) -> Optional[int]:
        return self.configuration.random_seed

    def _check_dataset(self, stats: DatasetStats, operation: str) -> None:
        if operation == "fit" and stats.n_samples < self.MIN_SAMPLES:
            raise InsufficientDataError(
                f"UMAP requires at least {self.MIN_SAMPLES} data points, "
                f"but only {stats.n_samples} provided. For small datasets, consider "
                f"PCA or collecting more data. "
                f"(dataset: {stats.n_samples} samples, {stats.n_features} features)",
                n_samples=stats.n_samples,
                min_samples=self.MIN_SAMPLES,
                stats=stats,
            )
        super()._check_dataset(stats, operation)


class PCA(BaseEstimator):
    """
    Principal Component Analysis.

    Usage:
        pca = PCA(n_components=2)
        Z = pca.fit_transform(X)
        pca.explained_variance_ratio
        X_approx = pca.inverse_transform(Z)
    """

    algorithms = (Algorithm.PCA,)

    def __init__(
        self,
        n_components: int = 2,
        random_seed: Optional[int] = None,
        factory: Optional[EngineFactory] = None,
    ):
        if n_components < 1:
            raise ValueError(f"n_components must be >= 1, got {n_components}")
        configuration = Configuration.create(
            Algorithm.PCA, n_components=n_components, random_seed=random_seed
        )
        super().__init__(configuration, factory)

    @property
    def n_components(self) -> int:
        return self.configuration.n_components

    def _check_dataset(self, stats: DatasetStats, operation: str) -> None:
        if operation == "fit":
            if self.n_components > stats.n_samples:
                raise ValueError(
                    f"n_components ({self.n_components}) cannot be larger than "
                    f"n_samples ({stats.n_samples})"
                )
            if self.n_components > stats.n_features:
                raise ValueError(
                    f"n_components ({self.n_components}) cannot be larger than "
                    f"n_features ({stats.n_features})"
                )
        else:
            expected = self._n_features_in()
            if expected is not None and stats.n_features != expected:
                raise ValueError(
                    f"Data has {stats.n_features} features, but PCA was fitted "
                    f"with {expected}"
                )

    def _n_features_in(self) -> Optional[int]:
        return getattr(self._model(), "n_features_in_", None)

    def _model(self) -> Any:
        return None if self._engine is None else self._engine.model

    def _fitted_attribute(self, name: str) -> np.ndarray:
        self._require_fitted(f"reading {name}")
        return np.asarray(getattr(self._model(), name + "_"))

    def fit(self, data: Any) -> "PCA":
        """Fit the model; returns self."""
        self._fit_engine(data)
        return self

    def fit_transform(self, data: Any) -> Array2D:
        """Fit and return data projected onto the principal components."""
        return self._fit_engine(data)

    def transform(self, data: Any) -> Array2D:
        """Project new data onto the fitted components."""
        return self._transform_engine(data)

    def inverse_transform(self, data: Any) -> Array2D:
        """
        Map projected data back to the original feature space.

        Args:
            data: Array of shape (n_samples, n_components)

        Returns:
            Array of shape (n_samples, n_features)

        Raises:
            NotFittedError: If called before fitting
            ValueError: If ``data`` does not have n_components columns
        """
        engine = self._require_fitted("inverse_transform")
        DatasetValidator().validate(data)
        Z = as_float_array(data)
        if Z.shape[1] != self.n_components:
            raise ValueError(
                f"Data has {Z.shape[1]} components, expected {self.n_components}"
            )
        return np.asarray(engine.inverse_transform(Z))

    @property
    def components(self) -> Array2D:
        """Principal axes, shape (n_components, n_features)."""
        return self._fitted_attribute("components")

    @property
    def mean(self) -> np.ndarray:
        """Per-feature mean of the training data."""
        return self._fitted_attribute("mean")

    @property
    def explained_variance(self) -> np.ndarray:
        return self._fitted_attribute("explained_variance")

    @property
    def explained_variance_ratio(self) -> np.ndarray:
        return self._fitted_attribute("explained_variance_ratio")

    @property
    def singular_values(self) -> np.ndarray:
        return self._fitted_attribute("singular_values")

    def cumulative_explained_variance_ratio(self) -> np.ndarray:
        """Running total of ``explained_variance_ratio``."""
        return np.cumsum(self.explained_variance_ratio)


class SVD(BaseEstimator):
    """
    Truncated singular value decomposition, ``X ~ U diag(S) Vt``.

    Unlike PCA the data is not centered. ``transform`` projects data onto
    the right singular vectors, which for the training data gives ``U * S``.

    Usage:
        svd = SVD(n_components=3, random_seed=0)
        U, S, Vt = svd.fit_transform(X)
        Z = svd.transform(X_new)
    """

    algorithms = (Algorithm.SVD,)

    def __init__(
        self,
        n_components: Optional[int] = None,
        n_iter: int = 2,
        random_seed: Optional[int] = None,
        factory: Optional[EngineFactory] = None,
    ):
        if n_components is not None and n_components < 1:
            raise ValueError(f"n_components must be >= 1, got {n_components}")
        if n_iter < 0:
            raise ValueError(f"n_iter must be >= 0, got {n_iter}")
        configuration = Configuration.create(
            Algorithm.SVD, n_components=n_components, n_iter=n_iter, random_seed=random_seed
        )
        super().__init__(configuration, factory)

    @property
    def n_components(self) -> Optional[int]:
        """Requested rank; None means full rank."""
        return self.configuration.n_components

    @property
    def n_iter(self) -> int:
        return self.configuration.n_iter

    @property
    def random_seed(self) -> Optional[int]:
        return self.configuration.random_seed

    def _check_dataset(self, stats: DatasetStats, operation: str) -> None:
        if operation == "fit":
            limit = min(stats.n_samples, stats.n_features)
            if self.n_components is not None and self.n_components > limit:
                raise ValueError(
                    f"n_components ({self.n_components}) cannot be larger than "
                    f"min(n_samples, n_features) = {limit}"
                )
        elif self.fitted and stats.n_features != self.n_features:
            raise ValueError(
                f"New data has {stats.n_features} features, but model was fitted "
                f"with {self.n_features} features"
            )

    def _factor(self, name: str) -> np.ndarray:
        engine = self._require_fitted(f"reading {name}")
        return engine.model[name]

    def fit(self, data: Any) -> "SVD":
        """Fit the model; returns self."""
        self._fit_engine(data)
        return self

    def fit_transform(self, data: Any) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Fit and return the factors.

        Returns:
            ``(U, S, Vt)`` with shapes (n_samples, k), (k,) and (k, n_features)
        """
        self._fit_engine(data)
        return self.components_u, self.singular_values, self.components_vt

    def transform(self, data: Any) -> Array2D:
        """Project data onto the right singular vectors."""
        return self._transform_engine(data)

    def inverse_transform(self, data: Any) -> Array2D:
        """
        Map projected data back to the original feature space.

        Raises:
            NotFittedError: If called before fitting
            ValueError: If ``data`` does not have one column per component
        """
        engine = self._require_fitted("inverse_transform")
        DatasetValidator().validate(data)
        Z = as_float_array(data)
        rank = self.components_vt.shape[0]
        if Z.shape[1] != rank:
            raise ValueError(f"Data has {Z.shape[1]} components, expected {rank}")
        return np.asarray(engine.inverse_transform(Z))

    @property
    def components_u(self) -> Array2D:
        """Left singular vectors, shape (n_samples, k)."""
        return self._factor("U")

    @property
    def singular_values(self) -> np.ndarray:
        """Singular values in decreasing order."""
        return self._factor("S")

    @property
    def components_vt(self) -> Array2D:
        """Right singular vectors, shape (k, n_features)."""
        return self._factor("Vt")

    @property
    def n_features(self) -> Optional[int]:
        if not self.fitted:
            return None
        return self.components_vt.shape[1]


def estimate_dimension(data: Any, k: int = 10) -> float:
    """
    Estimate the intrinsic dimension of a dataset.

    Levina-Bickel maximum likelihood estimate over each sample's ``k``
    nearest neighbors. Per-sample inverse estimates are averaged before
    inverting, following MacKay and Ghahramani. Samples with a duplicate
    (nearest neighbor at distance 0) are left out.

    Args:
        data: 2-D dataset
        k: Neighbors per sample, at least 2

    Returns:
        Estimated dimension; ``n_features`` when every neighborhood is
        degenerate

    Raises:
        ValueError: If ``k`` is below 2
        InsufficientDataError: If there are not more than ``k`` samples
    """
    if k < 2:
        raise ValueError(f"k must be >= 2, got {k}")
    DatasetValidator().validate(data)
    X = as_float_array(data)
    stats = dataset_statistics(X)
    if stats.n_samples <= k:
        raise InsufficientDataError(
            f"Estimating the dimension with k={k} needs more than {k} samples, "
            f"but only {stats.n_samples} provided. Lower k or add data "
            f"(dataset: {stats.n_samples} samples, {stats.n_features} features)",
            n_samples=stats.n_samples,
            min_samples=k + 1,
            stats=stats,
        )

    distances, _ = NearestNeighbors(n_neighbors=k + 1).fit(X).kneighbors(X)
    # first column is the sample itself
    distances = distances[:, 1:]
    distances = distances[distances[:, 0] > 0]
    if len(distances) == 0:
        return float(stats.n_features)

    inverse = np.log(distances[:, -1:] / distances[:, :-1]).mean(axis=1)
    mean_inverse = float(inverse.mean())
    if mean_inverse <= 0:
        return float(stats.n_features)
    dimension = 1.0 / mean_inverse
    logger.debug("Estimated intrinsic dimension %.3f (k=%d, %d samples)", dimension, k, len(distances))
    return dimension
