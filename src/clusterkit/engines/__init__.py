"""
Engine Abstraction Layer

Adapters that expose third-party numerical libraries (umap-learn,
scikit-learn) through one small contract: build from a parameter mapping,
``fit_transform``, ``transform``, ``save``/``load``.
"""

from .base import BaseEngine
from .factory import DEFAULT_ENGINES, EngineFactory, engine_factory
from .sklearn_engines import (
    DiffusionMapEngine,
    HDBSCANEngine,
    KMeansEngine,
    PCAEngine,
    SVDEngine,
    TSNEEngine,
)
from .umap_engine import LargeVisEngine, UMAPEngine

__all__ = [
    "BaseEngine",
    "EngineFactory",
    "engine_factory",
    "DEFAULT_ENGINES",
    "UMAPEngine",
    "LargeVisEngine",
    "TSNEEngine",
    "DiffusionMapEngine",
    "PCAEngine",
    "SVDEngine",
    "KMeansEngine",
    "HDBSCANEngine",
]
