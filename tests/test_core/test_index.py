"""
Tests for HNSWIndex.

Skipped when the optional hnswlib dependency is not installed.
"""

import numpy as np
import pytest

pytest.importorskip("hnswlib")

from clusterkit import HNSWIndex  # noqa: E402
from clusterkit.configuration import Configuration  # noqa: E402
from clusterkit.exceptions import NonFiniteElementError  # noqa: E402


def _exact_neighbors(X, queries, k):
    """Brute-force Euclidean neighbor positions, nearest first."""
    distances = np.linalg.norm(queries[:, None, :] - X[None, :, :], axis=2)
    return np.argsort(distances, axis=1)[:, :k].tolist()


@pytest.fixture
def index(blobs):
    """Euclidean index over the 60 blob points, labelled 0..59."""
    X, _ = blobs
    return HNSWIndex.from_embedding(X, random_seed=1)


# ------------------------------------------------------------------
# Building
# ------------------------------------------------------------------


def test_from_embedding_sizes_index(index):
    """Test that from_embedding adds every row with positional labels."""
    assert len(index) == 60
    assert not index.empty
    assert 0 in index and 59 in index and 60 not in index
    assert index.stats()["size"] == 60
    assert index.config()["dim"] == 4


def test_defaults_come_from_index_parameters():
    """Test that m and ef_construction default to the configuration values."""
    index = HNSWIndex(dim=3)

    assert index.m == 16
    assert index.ef_construction == 200


def test_from_configuration_uses_index_parameters():
    """Test that a configuration's index fields reach the index."""
    cfg = Configuration.create("umap", max_nb_connection=8, ef_construction=64, metric="cosine")

    index = HNSWIndex.from_configuration(cfg, dim=5)

    assert index.m == 8
    assert index.ef_construction == 64
    assert index.space == "cosine"


def test_constructor_checks():
    """Test rejection of bad dimensions, spaces and capacities."""
    with pytest.raises(ValueError, match="dim must be >= 1"):
        HNSWIndex(dim=0)
    with pytest.raises(ValueError, match="Unknown space"):
        HNSWIndex(dim=2, space="hamming")
    with pytest.raises(ValueError, match="max_elements"):
        HNSWIndex(dim=2, max_elements=0)


def test_index_grows_past_capacity():
    """Test that adding beyond max_elements resizes instead of failing."""
    rng = np.random.default_rng(0)
    index = HNSWIndex(dim=3, max_elements=5)

    index.add_batch(rng.standard_normal((20, 3)))
    index.add_item(rng.standard_normal(3), label="extra")

    assert len(index) == 21
    assert index.stats()["max_elements"] >= 21
    assert "extra" in index


def test_add_rejects_bad_input():
    """Test validation of vectors, labels and metadata."""
    index = HNSWIndex(dim=2)
    index.add_item([0.0, 0.0], label="a")

    with pytest.raises(ValueError, match="built for 2"):
        index.add_item([1.0, 2.0, 3.0])
    with pytest.raises(NonFiniteElementError):
        index.add_item([1.0, float("nan")])
    with pytest.raises(ValueError, match="already in the index"):
        index.add_item([1.0, 1.0], label="a")
    with pytest.raises(ValueError, match="already in the index"):
        index.add_batch([[1.0, 1.0], [2.0, 2.0]], labels=["b", "b"])
    with pytest.raises(ValueError, match="Expected 2 labels"):
        index.add_batch([[1.0, 1.0], [2.0, 2.0]], labels=["c"])

    assert len(index) == 1


# ------------------------------------------------------------------
# Queries
# ------------------------------------------------------------------


def test_search_finds_point_itself(index, blobs):
    """Test that an indexed point is its own nearest neighbor at distance 0."""
    X, _ = blobs

    labels, distances = index.knn_query(X[7], k=3)

    assert labels[0] == 7
    assert distances[0] == pytest.approx(0.0, abs=1e-3)
    assert distances == sorted(distances)


def test_euclidean_distances_are_not_squared(index, blobs):
    """Test that reported distances match the Euclidean norm."""
    X, _ = blobs
    query = X[3] + 0.5

    labels, distances = index.search(query, k=5, include_distances=True)

    expected = [float(np.linalg.norm(X[label] - query)) for label in labels]
    np.testing.assert_allclose(distances, expected, rtol=1e-4)


def test_search_recall_on_small_data(index, blobs):
    """Test that recall against brute force is essentially perfect here."""
    X, _ = blobs
    queries = X[::6] + 0.1

    assert index.recall(queries, _exact_neighbors(X, queries, 5), k=5) >= 0.95


def test_k_is_capped_at_index_size():
    """Test that asking for more neighbors than items returns all items."""
    index = HNSWIndex(dim=2)
    index.add_batch([[0.0, 0.0], [1.0, 0.0], [5.0, 5.0]], labels=["a", "b", "c"])

    assert index.search([0.1, 0.0], k=10) == ["a", "b", "c"]
    with pytest.raises(ValueError, match="k must be >= 1"):
        index.search([0.0, 0.0], k=0)


def test_empty_index_returns_nothing():
    """Test queries against an index with no items."""
    index = HNSWIndex(dim=2)

    assert index.empty
    assert index.search([0.0, 0.0]) == []
    assert index.range_search([0.0, 0.0], radius=1.0) == []


def test_search_with_metadata():
    """Test that labels and metadata come back with each hit."""
    index = HNSWIndex(dim=2, space="cosine")
    index.add_item([1.0, 0.0], label="east", metadata={"heading": 90})
    index.add_item([0.0, 1.0], label="north")

    results = index.search_with_metadata([1.0, 0.1], k=2)

    assert [r["label"] for r in results] == ["east", "north"]
    assert results[0]["metadata"] == {"heading": 90}
    assert results[1]["metadata"] == {}
    assert 0.0 <= results[0]["distance"] < results[1]["distance"]


def test_range_search_and_batch_search():
    """Test radius filtering and per-row batch queries."""
    index = HNSWIndex(dim=1)
    index.add_batch([[0.0], [1.0], [2.0], [10.0]], labels=["p0", "p1", "p2", "p10"])

    within = index.range_search([0.2], radius=1.5)

    assert [r["label"] for r in within] == ["p0", "p1"]
    assert index.batch_search([[0.1], [9.0]], k=1) == [["p0"], ["p10"]]


def test_set_ef():
    """Test the default search candidate list size."""
    index = HNSWIndex(dim=2)

    index.set_ef(120)

    assert index.config()["ef"] == 120
    with pytest.raises(ValueError):
        index.set_ef(0)


# ------------------------------------------------------------------
# Persistence
# ------------------------------------------------------------------


def test_save_and_load(tmp_path):
    """Test that a loaded index answers like the saved one."""
    rng = np.random.default_rng(2)
    X = rng.standard_normal((40, 3))
    index = HNSWIndex(dim=3, random_seed=3)
    index.add_batch(X, labels=[f"item-{i}" for i in range(40)], metadata=[{"i": i} for i in range(40)])
    path = tmp_path / "indexes" / "hnsw.joblib"

    index.save(path)
    loaded = HNSWIndex.load(path)

    assert len(loaded) == 40
    assert "item-39" in loaded
    assert loaded.search(X[5], k=3) == index.search(X[5], k=3)
    assert loaded.search_with_metadata(X[5], k=1)[0]["metadata"] == {"i": 5}


def test_load_missing_file(tmp_path):
    """Test that a missing index file raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError, match="File not found"):
        HNSWIndex.load(tmp_path / "missing.joblib")
