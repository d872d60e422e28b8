"""
Engine adapters backed by umap-learn.

``umap`` is imported when a model is first built; importing it compiles
numba kernels and takes a few seconds.
"""

from __future__ import annotations

from typing import Any, Dict

import numpy as np

from ..configuration import Algorithm
from .base import BaseEngine


def _umap_class():
    import umap

    return umap.UMAP


class UMAPEngine(BaseEngine):
    """
    Neighbor-graph projection (UMAP).

    ``nb_sampling_by_edge`` (negative samples per edge) becomes umap-learn's
    ``negative_sample_rate`` unless that is set explicitly. umap-learn runs
    one optimization pass per epoch with no gradient batches, so
    ``nb_grad_batch`` has no counterpart.
    """

    algorithm = Algorithm.UMAP
    unsupported_params = ("nb_grad_batch",)

    def _umap_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "n_neighbors": self.param("n_neighbors", 15),
            "n_components": self.param("n_components", 2),
            "metric": self.param("metric", "euclidean"),
            "min_dist": float(self.param("min_dist", 0.1)),
            "spread": float(self.param("spread", 1.0)),
            "local_connectivity": float(self.param("local_connectivity", 1.0)),
            "set_op_mix_ratio": float(self.param("set_op_mix_ratio", 1.0)),
            "negative_sample_rate": self.param(
                "negative_sample_rate", self.param("nb_sampling_by_edge", 5)
            ),
            "transform_queue_size": float(self.param("transform_queue_size", 4.0)),
            "random_state": self.params.get("random_seed"),
            "verbose": True,
        }
        # umap forces a single job when random_state is set; only pass an explicit choice
        if self.params.get("n_threads") is not None:
            kwargs["n_jobs"] = self.params["n_threads"]
        return kwargs

    def _build_model(self) -> Any:
        return _umap_class()(**self._umap_kwargs())

    def _fit_transform(self, model: Any, X: np.ndarray) -> np.ndarray:
        return model.fit_transform(X)

    def _transform(self, model: Any, X: np.ndarray) -> np.ndarray:
        return model.transform(X)


class LargeVisEngine(UMAPEngine):
    """
    Large-scale graph layout in the LargeVis style.

    LargeVis lays out the k-nearest-neighbor graph with the similarity kernel
    ``1 / (1 + d^2)`` and negative sampling, which is UMAP's optimization
    with curve parameters ``a = b = 1``.
    """

    algorithm = Algorithm.LARGEVIS

    def _umap_kwargs(self) -> Dict[str, Any]:
        kwargs = super()._umap_kwargs()
        kwargs.update(
            a=1.0,
            b=1.0,
            n_epochs=self.param("n_iter", 1000),
            learning_rate=float(self.param("learning_rate", 1.0)),
        )
        return kwargs
