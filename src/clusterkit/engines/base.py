"""
Base classes for engine adapters.

An engine is the component that actually computes embeddings or cluster
labels. ClusterKit treats it as an opaque collaborator with a small
contract: build it from a flat parameter mapping, ``fit_transform``,
``transform`` once fitted, and ``save``/``load`` an opaque model file.

Adapters wrap third-party estimators (umap-learn, scikit-learn) behind this
contract. Keys of the parameter mapping an adapter does not use are
ignored.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple, Union

import joblib
import numpy as np

from ..configuration import Algorithm
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


class BaseEngine(ABC):
    """
    Abstract base class for all engine adapters.

    Subclasses set ``algorithm`` and implement ``_build_model``,
    ``_fit_transform`` and, when the backend supports out-of-sample data,
    ``_transform``.

    Attributes:
        params: Snapshot of the configuration mapping the engine was built with
        model: Backend estimator once fitted, else None
        unsupported_params: Configuration keys of this algorithm the backend
            has no equivalent for; logged at DEBUG when set, otherwise ignored
    """

    algorithm: Algorithm
    unsupported_params: Tuple[str, ...] = ()

    def __init__(self, params: Mapping[str, Any]):
        self.params: Dict[str, Any] = dict(params)
        self.model: Any = None

    @property
    def fitted(self) -> bool:
        return self.model is not None

    def param(self, name: str, default: Any = None) -> Any:
        """Return ``params[name]``, or ``default`` when missing or None."""
        value = self.params.get(name)
        return default if value is None else value

    @abstractmethod
    def _build_model(self) -> Any:
        """Create the unfitted backend estimator from ``self.params``."""

    @abstractmethod
    def _fit_transform(self, model: Any, X: np.ndarray) -> np.ndarray:
        """Fit ``model`` on ``X`` and return embeddings or labels."""

    def _transform(self, model: Any, X: np.ndarray) -> np.ndarray:
        raise RuntimeError(
            f"{type(self).__name__} does not support transforming new data; "
            f"call fit_transform on the full dataset instead"
        )

    def fit_transform(self, X: np.ndarray) -> np.ndarray:
        """
        Fit a fresh backend model and return its output for ``X``.

        Returns:
            Array of shape (n_samples, n_components) for projections, or
            (n_samples,) labels for clustering
        """
        ignored = [name for name in self.unsupported_params if self.params.get(name) is not None]
        if ignored:
            logger.debug("%s: backend ignores %s", type(self).__name__, ", ".join(ignored))
        model = self._build_model()
        result = self._fit_transform(model, X)
        self.model = model
        return result

    def transform(self, X: np.ndarray) -> np.ndarray:
        """
        Apply the fitted model to new data.

        Raises:
            RuntimeError: If the engine has not been fitted
        """
        if not self.fitted:
            raise RuntimeError(
                f"{type(self).__name__} is not fitted. Call fit_transform before transform."
            )
        return self._transform(self.model, X)

    def save(self, path: PathLike) -> None:
        """Write the fitted model to ``path`` as an opaque joblib file."""
        if not self.fitted:
            raise RuntimeError(f"{type(self).__name__} is not fitted; nothing to save")
        payload = {
            "algorithm": self.algorithm.value,
            "params": self.params,
            "model": self.model,
        }
        joblib.dump(payload, Path(path))

    @classmethod
    def load(cls, path: PathLike) -> "BaseEngine":
        """
        Restore an engine written by ``save``.

        Raises:
            ValueError: If the file holds a model for another algorithm
        """
        return cls.from_payload(joblib.load(Path(path)), source=str(path))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], source: str = "payload") -> "BaseEngine":
        stored = payload.get("algorithm")
        if stored != cls.algorithm.value:
            raise ValueError(
                f"{source} holds a '{stored}' model, expected '{cls.algorithm.value}'"
            )
        engine = cls(payload.get("params", {}))
        engine.model = payload["model"]
        return engine

    def __repr__(self) -> str:
        state = "fitted" if self.fitted else "unfitted"
        return f"{type(self).__name__}({state})"
