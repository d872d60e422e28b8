"""
Engine Factory - Creates engine adapters by algorithm.

Lets estimators build engines without importing adapter classes directly,
and lets tests or applications swap in their own engine for an algorithm.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Type, Union

import joblib

from ..configuration import Algorithm
from .base import BaseEngine, PathLike
from .sklearn_engines import (
    DiffusionMapEngine,
    HDBSCANEngine,
    KMeansEngine,
    PCAEngine,
    SVDEngine,
    TSNEEngine,
)
from .umap_engine import LargeVisEngine, UMAPEngine

DEFAULT_ENGINES: Dict[Algorithm, Type[BaseEngine]] = {
    Algorithm.UMAP: UMAPEngine,
    Algorithm.TSNE: TSNEEngine,
    Algorithm.LARGEVIS: LargeVisEngine,
    Algorithm.DIFFUSION: DiffusionMapEngine,
    Algorithm.PCA: PCAEngine,
    Algorithm.SVD: SVDEngine,
    Algorithm.KMEANS: KMeansEngine,
    Algorithm.HDBSCAN: HDBSCANEngine,
}


class EngineFactory:
    """
    Factory for creating engine instances.

    Usage:
        factory = EngineFactory()
        engine = factory.create("umap", config.as_mapping())

        # replace the backend for one algorithm
        factory.register("umap", MyEngine)
    """

    def __init__(self, engines: Optional[Mapping[Algorithm, Type[BaseEngine]]] = None):
        """
        Initialize the factory.

        Args:
            engines: Algorithm to engine class mapping. Defaults to the
                built-in umap-learn / scikit-learn adapters.
        """
        self._engines: Dict[Algorithm, Type[BaseEngine]] = dict(engines or DEFAULT_ENGINES)

    def register(self, algorithm: Union[Algorithm, str], engine_cls: Type[BaseEngine]) -> None:
        """Use ``engine_cls`` for ``algorithm`` from now on."""
        self._engines[Algorithm.coerce(algorithm)] = engine_cls

    def engine_class(self, algorithm: Union[Algorithm, str]) -> Type[BaseEngine]:
        """
        Return the engine class registered for ``algorithm``.

        Raises:
            ValueError: If the algorithm is unknown or has no engine
        """
        algorithm = Algorithm.coerce(algorithm)
        try:
            return self._engines[algorithm]
        except KeyError:
            available = ", ".join(a.value for a in self.available_algorithms())
            raise ValueError(
                f"No engine registered for '{algorithm.value}'. "
                f"Available engines: {available}"
            ) from None

    def create(self, algorithm: Union[Algorithm, str], params: Mapping[str, Any]) -> BaseEngine:
        """
        Build an unfitted engine from a configuration mapping.

        Args:
            algorithm: Algorithm member or its string value
            params: Flat parameter mapping (``Configuration.as_mapping()``)

        Returns:
            BaseEngine instance
        """
        return self.engine_class(algorithm)(params)

    def load(self, path: PathLike) -> BaseEngine:
        """
        Restore a saved engine, dispatching on the algorithm stored in the file.

        Raises:
            FileNotFoundError: If ``path`` does not exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        payload = joblib.load(path)
        engine_cls = self.engine_class(payload.get("algorithm"))
        return engine_cls.from_payload(payload, source=str(path))

    def available_algorithms(self) -> List[Algorithm]:
        return [a for a in Algorithm if a in self._engines]


# Global factory instance
engine_factory = EngineFactory()
