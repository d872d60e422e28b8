"""
Approximate nearest-neighbor search with an HNSW graph.

``HNSWIndex`` wraps ``hnswlib`` and adds what the raw index lacks: labels of
any hashable type, per-item metadata, input validation, automatic growth
and joblib persistence. ``hnswlib`` is an optional dependency (the ``ann``
extra) and is imported when the first index is built.

Usage:
    index = HNSWIndex(dim=64, space="cosine")
    index.add_batch(vectors, labels=doc_ids, metadata=[{"title": t} for t in titles])
    index.search(query, k=5)
    index.search_with_metadata(query, k=5)
    # [{"label": "doc_1", "distance": 0.23, "metadata": {"title": ...}}, ...]
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

import joblib
import numpy as np

from .configuration import COMMON_DEFAULTS, Configuration
from .engines.base import PathLike
from .utils.logging_config import get_logger
from .validation import DatasetValidator, as_float_array

logger = get_logger(__name__)

# public space name -> hnswlib space name
SPACES = {"euclidean": "l2", "cosine": "cosine", "inner_product": "ip"}

DEFAULT_MAX_ELEMENTS = 10_000
DEFAULT_EF = 50


def _hnswlib():
    import hnswlib

    return hnswlib


class HNSWIndex:
    """
    Hierarchical Navigable Small World index.

    Euclidean distances are reported as distances; hnswlib itself works
    with their squares. Cosine and inner-product spaces report
    ``1 - similarity``.

    Args:
        dim: Vector dimension
        space: ``euclidean``, ``cosine`` or ``inner_product``
        max_elements: Initial capacity; the index grows when it fills up
        m: Bi-directional links per node (defaults to ``max_nb_connection``)
        ef_construction: Candidate list size while building
        random_seed: Seed for level assignment; hnswlib's own default if None
    """

    def __init__(
        self,
        dim: int,
        space: str = "euclidean",
        max_elements: int = DEFAULT_MAX_ELEMENTS,
        m: Optional[int] = None,
        ef_construction: Optional[int] = None,
        random_seed: Optional[int] = None,
    ):
        if dim < 1:
            raise ValueError(f"dim must be >= 1, got {dim}")
        if space not in SPACES:
            raise ValueError(f"Unknown space: {space!r}. Must be one of: {', '.join(SPACES)}")
        if max_elements < 1:
            raise ValueError(f"max_elements must be >= 1, got {max_elements}")

        self.dim = dim
        self.space = space
        self.m = m if m is not None else COMMON_DEFAULTS["max_nb_connection"]
        self.ef_construction = (
            ef_construction if ef_construction is not None else COMMON_DEFAULTS["ef_construction"]
        )
        self.random_seed = random_seed
        self.ef = DEFAULT_EF

        self._labels: List[Hashable] = []
        self._ids: Dict[Hashable, int] = {}
        self._metadata: Dict[int, Dict[str, Any]] = {}

        self._index = _hnswlib().Index(space=SPACES[space], dim=dim)
        init_kwargs: Dict[str, Any] = {
            "max_elements": max_elements,
            "M": self.m,
            "ef_construction": self.ef_construction,
        }
        if random_seed is not None:
            init_kwargs["random_seed"] = random_seed
        self._index.init_index(**init_kwargs)
        self._index.set_ef(self.ef)

    @classmethod
    def from_configuration(
        cls, configuration: Configuration, dim: int, **kwargs: Any
    ) -> "HNSWIndex":
        """
        Build an index with a configuration's index parameters.

        ``max_nb_connection`` becomes ``m``, ``ef_construction`` and
        ``random_seed`` carry over, and ``metric`` picks the space when it
        names one. hnswlib derives the number of layers from ``m``, so
        ``nb_layer`` is not used.
        """
        if configuration.metric in SPACES:
            kwargs.setdefault("space", configuration.metric)
        kwargs.setdefault("m", configuration.max_nb_connection)
        kwargs.setdefault("ef_construction", configuration.ef_construction)
        kwargs.setdefault("random_seed", configuration.random_seed)
        if configuration.nb_layer is not None:
            logger.debug("HNSW layer count is derived from m; ignoring nb_layer=%s", configuration.nb_layer)
        return cls(dim, **kwargs)

    @classmethod
    def from_embedding(cls, embeddings: Any, **kwargs: Any) -> "HNSWIndex":
        """Build an index sized for ``embeddings`` and add them, labelled 0..n-1."""
        DatasetValidator().validate(embeddings)
        X = as_float_array(embeddings)
        kwargs.setdefault("max_elements", X.shape[0])
        index = cls(dim=X.shape[1], **kwargs)
        index.add_batch(X)
        return index

    # ------------------------------------------------------------------
    # Adding items
    # ------------------------------------------------------------------

    def _vectors(self, data: Any) -> np.ndarray:
        DatasetValidator().validate(data)
        X = as_float_array(data)
        if X.shape[1] != self.dim:
            raise ValueError(
                f"Vectors have {X.shape[1]} dimensions, but the index was built for {self.dim}"
            )
        return X

    def add_batch(
        self,
        vectors: Any,
        labels: Optional[Iterable[Hashable]] = None,
        metadata: Optional[Sequence[Optional[Mapping[str, Any]]]] = None,
    ) -> "HNSWIndex":
        """
        Add vectors to the index.

        Args:
            vectors: 2-D array-like of shape (n, dim)
            labels: One unique label per vector; defaults to insertion positions
            metadata: Optional mapping per vector, returned by
                ``search_with_metadata``

        Returns:
            self

        Raises:
            ValidationError: If ``vectors`` is malformed or non-finite
            ValueError: On a dimension mismatch, a label count mismatch or a
                label already in the index
        """
        X = self._vectors(vectors)
        n = X.shape[0]
        start = len(self._labels)

        labels = list(range(start, start + n)) if labels is None else list(labels)
        if len(labels) != n:
            raise ValueError(f"Expected {n} labels, got {len(labels)}")
        if metadata is not None and len(metadata) != n:
            raise ValueError(f"Expected {n} metadata entries, got {len(metadata)}")
        seen = set()
        for label in labels:
            if label in self._ids or label in seen:
                raise ValueError(f"Label {label!r} is already in the index")
            seen.add(label)

        capacity = self._index.get_max_elements()
        if start + n > capacity:
            new_capacity = max(start + n, capacity * 2)
            logger.debug("Growing HNSW index from %d to %d elements", capacity, new_capacity)
            self._index.resize_index(new_capacity)

        self._index.add_items(X, np.arange(start, start + n))
        for offset, label in enumerate(labels):
            self._labels.append(label)
            self._ids[label] = start + offset
        for offset, entry in enumerate(metadata or ()):
            if entry:
                self._metadata[start + offset] = dict(entry)
        return self

    def add_item(
        self,
        vector: Any,
        label: Optional[Hashable] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> "HNSWIndex":
        """Add a single vector; see ``add_batch``."""
        return self.add_batch(
            [vector],
            labels=None if label is None else [label],
            metadata=None if metadata is None else [metadata],
        )

    def fit(self, data: Any, labels: Optional[Iterable[Hashable]] = None) -> "HNSWIndex":
        """Alias of ``add_batch`` for estimator-style code."""
        return self.add_batch(data, labels=labels)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _query(self, X: np.ndarray, k: int, ef: Optional[int]) -> Tuple[np.ndarray, np.ndarray]:
        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}")
        if not self._labels:
            empty = np.empty((X.shape[0], 0))
            return empty.astype(np.int64), empty
        # hnswlib cannot return more neighbors than it holds
        k = min(k, len(self._labels))
        self._index.set_ef(max(ef or self.ef, k))
        ids, distances = self._index.knn_query(X, k=k)
        distances = distances.astype(np.float64)
        if self.space == "euclidean":
            distances = np.sqrt(np.maximum(distances, 0.0))
        return ids.astype(np.int64), distances

    def search(
        self,
        query: Any,
        k: int = 10,
        ef: Optional[int] = None,
        include_distances: bool = False,
    ):
        """
        Find the ``k`` nearest items to one query vector.

        Args:
            query: Vector of length ``dim``
            k: Number of neighbors; capped at the index size
            ef: Search candidate list size for this query (at least ``k``)
            include_distances: Also return the distances

        Returns:
            List of labels, nearest first, or ``(labels, distances)``
        """
        ids, distances = self._query(self._vectors([query]), k, ef)
        labels = [self._labels[i] for i in ids[0]]
        if include_distances:
            return labels, distances[0].tolist()
        return labels

    def knn_query(self, query: Any, k: int = 10, ef: Optional[int] = None) -> Tuple[List[Hashable], List[float]]:
        """``search`` with distances."""
        return self.search(query, k=k, ef=ef, include_distances=True)

    def search_with_metadata(
        self, query: Any, k: int = 10, ef: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Nearest items as dicts with ``label``, ``distance`` and ``metadata``."""
        ids, distances = self._query(self._vectors([query]), k, ef)
        return [
            {
                "label": self._labels[i],
                "distance": float(distance),
                "metadata": dict(self._metadata.get(int(i), {})),
            }
            for i, distance in zip(ids[0], distances[0])
        ]

    def batch_search(self, queries: Any, k: int = 10, ef: Optional[int] = None) -> List[List[Hashable]]:
        """Labels of the ``k`` nearest items for each query row."""
        ids, _ = self._query(self._vectors(queries), k, ef)
        return [[self._labels[i] for i in row] for row in ids]

    def range_search(
        self, query: Any, radius: float, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Items within ``radius`` of ``query``, nearest first.

        Candidates come from an approximate search over ``limit`` items (the
        whole index by default), so far-away matches can be missed.
        """
        if not self._labels:
            return []
        k = min(limit or len(self._labels), len(self._labels))
        results = self.search_with_metadata(query, k=k)
        return [r for r in results if r["distance"] <= radius]

    def recall(self, test_queries: Any, ground_truth: Sequence[Sequence[Hashable]], k: int = 10) -> float:
        """
        Fraction of true nearest neighbors the index returns.

        Args:
            test_queries: Query vectors
            ground_truth: Exact neighbor labels per query, nearest first
            k: Neighbors compared per query

        Returns:
            Recall in [0, 1]; 0.0 when there is nothing to compare
        """
        found = self.batch_search(test_queries, k=k)
        correct = 0
        possible = 0
        for predicted, actual in zip(found, ground_truth):
            actual = list(actual)[:k]
            correct += len(set(predicted) & set(actual))
            possible += min(k, len(actual))
        return correct / possible if possible else 0.0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def set_ef(self, ef: int) -> None:
        """Default search candidate list size; larger is slower and more accurate."""
        if ef < 1:
            raise ValueError(f"ef must be >= 1, got {ef}")
        self.ef = ef
        self._index.set_ef(ef)

    def __len__(self) -> int:
        return len(self._labels)

    def __contains__(self, label: Hashable) -> bool:
        return label in self._ids

    @property
    def empty(self) -> bool:
        return not self._labels

    def config(self) -> Dict[str, Any]:
        return {
            "dim": self.dim,
            "space": self.space,
            "m": self.m,
            "ef_construction": self.ef_construction,
            "ef": self.ef,
            "random_seed": self.random_seed,
        }

    def stats(self) -> Dict[str, Any]:
        return {
            **self.config(),
            "size": len(self),
            "max_elements": self._index.get_max_elements(),
            "n_with_metadata": len(self._metadata),
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: PathLike) -> None:
        """Write the index, labels and metadata to one joblib file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "config": self.config(),
            "labels": self._labels,
            "metadata": self._metadata,
            "index": self._index,
        }
        joblib.dump(payload, path)
        logger.debug("Saved HNSW index with %d items to %s", len(self), path)

    @classmethod
    def load(cls, path: PathLike) -> "HNSWIndex":
        """
        Restore an index written by ``save``.

        Raises:
            FileNotFoundError: If ``path`` does not exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        payload = joblib.load(path)
        config = payload["config"]

        index = cls.__new__(cls)
        index.dim = config["dim"]
        index.space = config["space"]
        index.m = config["m"]
        index.ef_construction = config["ef_construction"]
        index.ef = config["ef"]
        index.random_seed = config["random_seed"]
        index._labels = list(payload["labels"])
        index._ids = {label: i for i, label in enumerate(index._labels)}
        index._metadata = dict(payload["metadata"])
        index._index = payload["index"]
        index._index.set_ef(index.ef)
        return index

    def __repr__(self) -> str:
        return f"HNSWIndex(dim={self.dim}, space={self.space!r}, size={len(self)})"
