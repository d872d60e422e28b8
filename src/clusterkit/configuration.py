"""
Per-algorithm parameter configuration.

A ``Configuration`` carries every tunable any algorithm understands. Only
the fields relevant to the active algorithm get defaults; the rest stay
``None``. ``as_mapping()`` flattens all of them, relevant or not, into the
dict handed to the engine. Engines ignore keys they do not use.

Usage:
    cfg = Configuration.create("umap", {"n_neighbors": 30}, random_seed=42)
    cfg.as_mapping()["n_neighbors"]  # 30
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from .utils.logging_config import get_logger

logger = get_logger(__name__)


class Algorithm(str, Enum):
    """Algorithms the engine can run."""

    UMAP = "umap"
    TSNE = "tsne"
    LARGEVIS = "largevis"
    DIFFUSION = "diffusion"
    PCA = "pca"
    SVD = "svd"
    KMEANS = "kmeans"
    HDBSCAN = "hdbscan"

    @classmethod
    def coerce(cls, value: Union["Algorithm", str]) -> "Algorithm":
        """Return the member for ``value`` (a member or its string value)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass
        valid = ", ".join(member.value for member in cls)
        raise ValueError(f"Unknown algorithm: {value!r}. Must be one of: {valid}")

    @property
    def is_clustering(self) -> bool:
        return self in (Algorithm.KMEANS, Algorithm.HDBSCAN)


# Algorithms whose neighbor count must stay below the sample count
NEIGHBOR_ALGORITHMS = frozenset({Algorithm.UMAP, Algorithm.LARGEVIS, Algorithm.DIFFUSION})

COMMON_DEFAULTS: Dict[str, Any] = {
    "n_components": 2,
    "random_seed": None,
    "n_threads": None,
    "metric": "euclidean",
    # approximate nearest-neighbor index construction, read by
    # HNSWIndex.from_configuration
    "ef_construction": 200,
    "max_nb_connection": 16,
    "nb_layer": 16,
}

ALGORITHM_DEFAULTS: Dict[Algorithm, Dict[str, Any]] = {
    Algorithm.UMAP: {
        "n_neighbors": 15,
        "min_dist": 0.1,
        "spread": 1.0,
        "local_connectivity": 1.0,
        "set_op_mix_ratio": 1.0,
        "transform_queue_size": 4.0,
        "nb_grad_batch": 10,
        "nb_sampling_by_edge": 8,
    },
    Algorithm.TSNE: {
        "perplexity": 30.0,
        "n_iter": 1000,
        "early_exaggeration": 12.0,
        "theta": 0.5,
        "eta": 200.0,
    },
    Algorithm.LARGEVIS: {
        "n_neighbors": 15,
        "perplexity": 30.0,
        "learning_rate": 1.0,
        "n_iter": 1000,
        "negative_sample_rate": 5,
    },
    Algorithm.DIFFUSION: {
        "n_neighbors": 15,
        "alpha": 1.0,
        "n_iter": 1,
    },
    Algorithm.PCA: {
        "n_iter": 5,
    },
    Algorithm.SVD: {
        "n_iter": 2,
    },
    Algorithm.KMEANS: {
        "k": 3,
        "max_iter": 300,
    },
    Algorithm.HDBSCAN: {
        "min_samples": 5,
        "min_cluster_size": 5,
    },
}


@dataclass
class Configuration:
    """
    Mutable parameter record for one algorithm.

    Build instances with ``Configuration.create`` so algorithm defaults are
    applied. Fields that do not apply to ``algorithm`` are left as ``None``
    and are ignored by the engine.
    """

    algorithm: Algorithm = Algorithm.UMAP

    # common
    n_components: Optional[int] = None
    random_seed: Optional[int] = None
    n_threads: Optional[int] = None
    metric: Optional[str] = None

    # approximate nearest-neighbor index
    ef_construction: Optional[int] = None
    max_nb_connection: Optional[int] = None
    nb_layer: Optional[int] = None

    # neighbor graph / layout
    n_neighbors: Optional[int] = None
    min_dist: Optional[float] = None
    spread: Optional[float] = None
    local_connectivity: Optional[float] = None
    set_op_mix_ratio: Optional[float] = None
    negative_sample_rate: Optional[int] = None
    transform_queue_size: Optional[float] = None
    nb_grad_batch: Optional[int] = None
    nb_sampling_by_edge: Optional[int] = None

    # probabilistic affinity / optimization
    perplexity: Optional[float] = None
    learning_rate: Optional[float] = None
    n_iter: Optional[int] = None
    early_exaggeration: Optional[float] = None
    theta: Optional[float] = None
    eta: Optional[float] = None

    # diffusion
    alpha: Optional[float] = None

    # clustering
    k: Optional[int] = None
    max_iter: Optional[int] = None
    min_samples: Optional[int] = None
    min_cluster_size: Optional[int] = None

    def __post_init__(self):
        self.algorithm = Algorithm.coerce(self.algorithm)

    @classmethod
    def field_names(cls) -> frozenset:
        """Names of all recognized parameters (``algorithm`` excluded)."""
        return frozenset(
            f.name for f in fields(cls) if f.name != "algorithm"
        )

    @classmethod
    def create(
        cls,
        algorithm: Union[Algorithm, str],
        overrides: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> "Configuration":
        """
        Create a configuration with algorithm defaults and caller overrides.

        Defaults are applied first, then ``overrides``, then ``kwargs``.
        Unrecognized keys are logged as warnings and dropped.

        Args:
            algorithm: Algorithm member or its string value
            overrides: Parameter values keyed by field name
            **kwargs: More overrides, applied after ``overrides``

        Returns:
            New Configuration instance

        Raises:
            ValueError: If ``algorithm`` is not a known algorithm
        """
        algorithm = Algorithm.coerce(algorithm)
        config = cls(algorithm=algorithm)

        for key, value in COMMON_DEFAULTS.items():
            setattr(config, key, value)
        for key, value in ALGORITHM_DEFAULTS[algorithm].items():
            setattr(config, key, value)

        merged: Dict[str, Any] = dict(overrides or {})
        merged.update(kwargs)
        config.update(merged)
        return config

    def update(self, overrides: Mapping[str, Any]) -> "Configuration":
        """Apply overrides key by key; unknown keys warn and are dropped."""
        known = self.field_names()
        for key, value in overrides.items():
            if key in known:
                setattr(self, key, value)
            else:
                logger.warning("Unknown option: %s", key)
        return self

    @property
    def uses_neighbors(self) -> bool:
        """True if ``n_neighbors`` must stay below the sample count."""
        return self.algorithm in NEIGHBOR_ALGORITHMS

    def as_mapping(self) -> Dict[str, Any]:
        """
        Flatten every field into a fresh dict for the engine.

        The dict includes fields unrelated to the active algorithm. Each call
        returns a new dict, so the result is a snapshot.
        """
        mapping: Dict[str, Any] = {"algorithm": self.algorithm.value}
        for name in sorted(self.field_names()):
            mapping[name] = getattr(self, name)
        return mapping

    def copy(self) -> "Configuration":
        return copy.deepcopy(self)
