"""
Tests for the scikit-learn and umap-learn engine adapters on small data.
"""

import logging

import numpy as np
import pytest

from clusterkit.configuration import Configuration
from clusterkit.engines import (
    DiffusionMapEngine,
    HDBSCANEngine,
    KMeansEngine,
    LargeVisEngine,
    PCAEngine,
    TSNEEngine,
    UMAPEngine,
)


def _engine(engine_cls, algorithm, **overrides):
    return engine_cls(Configuration.create(algorithm, overrides).as_mapping())


def test_pca_engine_shapes(random_data):
    """Test PCA projection, transform and inverse_transform shapes."""
    engine = _engine(PCAEngine, "pca", n_components=3, random_seed=0)

    Z = engine.fit_transform(random_data)

    assert Z.shape == (50, 3)
    assert engine.transform(random_data[:5]).shape == (5, 3)
    assert engine.inverse_transform(Z).shape == (50, 6)


def test_pca_engine_inverse_before_fit():
    """Test that inverse_transform needs a fitted model."""
    with pytest.raises(RuntimeError, match="not fitted"):
        _engine(PCAEngine, "pca").inverse_transform(np.zeros((1, 2)))


def test_kmeans_engine_labels_and_predict(blobs):
    """Test that k-means recovers well separated blobs."""
    X, truth = blobs
    engine = _engine(KMeansEngine, "kmeans", k=3, random_seed=0)

    labels = engine.fit_transform(X)

    assert labels.shape == (60,)
    assert len(np.unique(labels)) == 3
    np.testing.assert_array_equal(engine.transform(X), labels)


def test_hdbscan_engine_metric_alias(blobs):
    """Test that l2 is accepted as an alias for euclidean."""
    X, _ = blobs
    engine = _engine(HDBSCANEngine, "hdbscan", metric="l2", min_cluster_size=5)

    labels = engine.fit_transform(X)

    assert labels.shape == (60,)
    assert engine.probabilities.shape == (60,)
    assert engine.model.metric == "euclidean"


def test_hdbscan_engine_has_no_transform(blobs):
    """Test that HDBSCAN cannot embed new data."""
    X, _ = blobs
    engine = _engine(HDBSCANEngine, "hdbscan")
    engine.fit_transform(X)

    with pytest.raises(RuntimeError, match="does not support transforming"):
        engine.transform(X)


def test_tsne_engine_fit_transform(random_data):
    """Test a short t-SNE run."""
    engine = _engine(
        TSNEEngine, "tsne", perplexity=5.0, n_iter=250, learning_rate=100.0, random_seed=0
    )

    Y = engine.fit_transform(random_data)

    assert Y.shape == (50, 2)
    assert engine.model.perplexity == 5.0


def test_diffusion_engine_fit_transform(blobs):
    """Test spectral embedding over a nearest-neighbor graph."""
    X, _ = blobs
    engine = _engine(DiffusionMapEngine, "diffusion", n_neighbors=10, random_seed=0)

    Y = engine.fit_transform(X)

    assert Y.shape == (60, 2)


def test_diffusion_engine_logs_unsupported_params(blobs, caplog):
    """Test that diffusion options without a backend equivalent are reported."""
    X, _ = blobs
    engine = _engine(DiffusionMapEngine, "diffusion", n_neighbors=10, alpha=0.5, random_seed=0)

    with caplog.at_level(logging.DEBUG, logger="clusterkit"):
        engine.fit_transform(X)

    assert "DiffusionMapEngine: backend ignores alpha, n_iter" in caplog.text


def test_tsne_engine_eta_sets_learning_rate():
    """Test that eta is the learning rate unless learning_rate is given."""
    assert _engine(TSNEEngine, "tsne").param("learning_rate") is None
    assert _engine(TSNEEngine, "tsne")._build_model().learning_rate == 200.0
    assert _engine(TSNEEngine, "tsne", eta=150.0)._build_model().learning_rate == 150.0
    assert (
        _engine(TSNEEngine, "tsne", eta=150.0, learning_rate=80.0)._build_model().learning_rate
        == 80.0
    )


def test_umap_engine_negative_samples_per_edge():
    """Test that nb_sampling_by_edge feeds negative_sample_rate."""
    assert _engine(UMAPEngine, "umap")._umap_kwargs()["negative_sample_rate"] == 8
    assert (
        _engine(UMAPEngine, "umap", nb_sampling_by_edge=3)._umap_kwargs()["negative_sample_rate"]
        == 3
    )
    assert (
        _engine(UMAPEngine, "umap", negative_sample_rate=6)._umap_kwargs()["negative_sample_rate"]
        == 6
    )
    assert "nb_grad_batch" in UMAPEngine.unsupported_params


def test_umap_engine_fit_and_transform(blobs):
    """Test UMAP fit_transform and transform of new points."""
    pytest.importorskip("umap")
    X, _ = blobs
    engine = _engine(UMAPEngine, "umap", n_neighbors=10, random_seed=42)

    Y = engine.fit_transform(X)

    assert Y.shape == (60, 2)
    assert engine.transform(X[:5]).shape == (5, 2)


def test_largevis_engine_uses_unit_kernel():
    """Test that LargeVis maps to UMAP with a = b = 1."""
    engine = _engine(LargeVisEngine, "largevis", n_neighbors=10, n_iter=50, random_seed=0)

    kwargs = engine._umap_kwargs()

    assert kwargs["a"] == 1.0
    assert kwargs["b"] == 1.0
    assert kwargs["n_epochs"] == 50
    assert kwargs["n_neighbors"] == 10
