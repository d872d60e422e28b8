"""
Tests for EngineFactory and the BaseEngine contract.
"""

import joblib
import numpy as np
import pytest

from clusterkit.configuration import Algorithm, Configuration
from clusterkit.engines import (
    DEFAULT_ENGINES,
    EngineFactory,
    HDBSCANEngine,
    KMeansEngine,
    PCAEngine,
    UMAPEngine,
)
from clusterkit.engines.base import BaseEngine


class EchoEngine(BaseEngine):
    """Returns its input; model is a plain dict so it pickles."""

    algorithm = Algorithm.PCA

    def _build_model(self):
        return {"fitted_on": None}

    def _fit_transform(self, model, X):
        model["fitted_on"] = X.shape
        return X

    def _transform(self, model, X):
        return X * 2


def test_factory_get_available_algorithms():
    """Test that every algorithm has a default engine."""
    factory = EngineFactory()

    assert factory.available_algorithms() == list(Algorithm)


def test_factory_create_by_name():
    """Test creating engines from algorithm names."""
    factory = EngineFactory()

    engine = factory.create("umap", Configuration.create("umap").as_mapping())

    assert isinstance(engine, UMAPEngine)
    assert engine.params["n_neighbors"] == 15
    assert not engine.fitted


def test_factory_unknown_algorithm():
    """Test that unknown names raise ValueError."""
    with pytest.raises(ValueError, match="Unknown algorithm"):
        EngineFactory().create("isomap", {})


def test_factory_missing_engine():
    """Test that an algorithm with no registered engine is reported."""
    factory = EngineFactory({Algorithm.PCA: PCAEngine})

    with pytest.raises(ValueError, match="No engine registered for 'kmeans'"):
        factory.engine_class("kmeans")


def test_factory_register_replaces_engine():
    """Test that register swaps the backend for one algorithm only."""
    factory = EngineFactory()
    factory.register("pca", EchoEngine)

    assert factory.engine_class(Algorithm.PCA) is EchoEngine
    assert factory.engine_class(Algorithm.KMEANS) is KMeansEngine
    assert DEFAULT_ENGINES[Algorithm.PCA] is PCAEngine


def test_transform_before_fit_raises():
    """Test the engine's not-fitted error."""
    engine = EchoEngine({})

    with pytest.raises(RuntimeError, match="not fitted"):
        engine.transform(np.ones((2, 2)))


def test_param_falls_back_on_none():
    """Test that None values in the mapping mean 'use the default'."""
    engine = EchoEngine({"n_iter": None, "k": 4})

    assert engine.param("n_iter", 5) == 5
    assert engine.param("k", 3) == 4
    assert engine.param("missing", "x") == "x"


def test_engine_ignores_unrelated_keys():
    """Test that a full configuration mapping builds every default engine."""
    for algorithm, engine_cls in DEFAULT_ENGINES.items():
        mapping = Configuration.create(algorithm).as_mapping()
        mapping["some_future_option"] = 1
        engine = engine_cls(mapping)
        assert engine.params["some_future_option"] == 1


def test_save_and_load_round_trip(tmp_path):
    """Test that a loaded engine transforms like the saved one."""
    engine = EchoEngine({"n_components": 2})
    X = np.arange(6.0).reshape(3, 2)
    engine.fit_transform(X)
    path = tmp_path / "echo.joblib"

    engine.save(path)
    factory = EngineFactory({Algorithm.PCA: EchoEngine})
    loaded = factory.load(path)

    assert isinstance(loaded, EchoEngine)
    assert loaded.params == {"n_components": 2}
    assert loaded.model == {"fitted_on": (3, 2)}
    np.testing.assert_array_equal(loaded.transform(X), engine.transform(X))


def test_save_unfitted_raises(tmp_path):
    """Test that there is nothing to save before fitting."""
    with pytest.raises(RuntimeError, match="not fitted"):
        EchoEngine({}).save(tmp_path / "x.joblib")


def test_factory_load_missing_file(tmp_path):
    """Test that loading a missing file raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError, match="File not found"):
        EngineFactory().load(tmp_path / "nope.joblib")


def test_engine_load_rejects_other_algorithm(tmp_path):
    """Test that an engine class refuses a file written for another algorithm."""
    path = tmp_path / "kmeans.joblib"
    joblib.dump({"algorithm": "kmeans", "params": {}, "model": None}, path)

    with pytest.raises(ValueError, match="holds a 'kmeans' model"):
        HDBSCANEngine.load(path)
