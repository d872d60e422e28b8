"""
Pytest configuration and shared fixtures.

This file is automatically discovered by pytest and provides fixtures
available to all test modules.
"""

import sys

import numpy as np
import pytest

from clusterkit.config import DEBUG_ENV_VAR, VERBOSE_ENV_VAR, reset_settings
from clusterkit.configuration import Algorithm
from clusterkit.engines import engine_factory
from clusterkit.engines.base import BaseEngine


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """
    Start every test with default (quiet) settings.

    Clears the verbosity environment variables and drops the settings
    singleton so it is rebuilt from the clean environment.
    """
    monkeypatch.delenv(VERBOSE_ENV_VAR, raising=False)
    monkeypatch.delenv(DEBUG_ENV_VAR, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def registered_engines(monkeypatch):
    """
    Give the test its own copy of the global engine registry.

    Anything registered through the returned factory is undone after the
    test.
    """
    monkeypatch.setattr(engine_factory, "_engines", dict(engine_factory._engines))
    return engine_factory


class RecordingEngine(BaseEngine):
    """
    Engine that records what it was given and talks on stdout/stderr.

    ``fit_transform`` returns the first ``n_components`` columns so results
    are easy to predict.
    """

    algorithm = Algorithm.UMAP
    instances = []

    def __init__(self, params):
        super().__init__(params)
        self.fit_inputs = []
        RecordingEngine.instances.append(self)

    def _build_model(self):
        return {"n_components": self.param("n_components", 2)}

    def _fit_transform(self, model, X):
        print("engine: building neighbor graph")
        sys.stderr.write("engine: optimizing layout\n")
        self.fit_inputs.append(X.copy())
        return X[:, : model["n_components"]]

    def _transform(self, model, X):
        return X[:, : model["n_components"]]


@pytest.fixture
def recording_engine(registered_engines):
    """
    Register RecordingEngine for the given algorithms.

    Usage:
        recording_engine("umap", "tsne")
    """
    RecordingEngine.instances = []

    def _register(*algorithms):
        for algorithm in algorithms or (Algorithm.UMAP,):
            engine_cls = type(
                f"Recording{Algorithm.coerce(algorithm).name.title()}Engine",
                (RecordingEngine,),
                {"algorithm": Algorithm.coerce(algorithm)},
            )
            registered_engines.register(algorithm, engine_cls)
        return RecordingEngine

    return _register


@pytest.fixture
def failing_engine(registered_engines):
    """
    Register an engine whose fit raises with a given message.

    Usage:
        failing_engine("isolated point at layer 0")
        failing_engine("boom", error_type=ValueError, algorithm="tsne")
    """

    def _register(message, error_type=RuntimeError, algorithm=Algorithm.UMAP):
        class FailingEngine(BaseEngine):
            def _build_model(self):
                return object()

            def _fit_transform(self, model, X):
                print("engine: about to fail")
                raise error_type(message)

        FailingEngine.algorithm = Algorithm.coerce(algorithm)
        registered_engines.register(algorithm, FailingEngine)
        return FailingEngine

    return _register


@pytest.fixture
def blobs():
    """Three well separated Gaussian blobs, 20 points each, 4 features."""
    rng = np.random.default_rng(42)
    centers = np.array([[0.0, 0.0, 0.0, 0.0], [10.0, 10.0, 0.0, 0.0], [0.0, 10.0, 10.0, 10.0]])
    X = np.vstack([c + rng.normal(scale=0.5, size=(20, 4)) for c in centers])
    labels = np.repeat([0, 1, 2], 20)
    return X, labels


@pytest.fixture
def random_data():
    """50 x 6 standard normal matrix."""
    return np.random.default_rng(0).standard_normal((50, 6))
