"""
Dataset validation performed before any engine call.

Some engine failure modes terminate the process instead of raising, so
malformed data has to be rejected here. Checks run in a fixed order and stop
at the first failure:

1. array-like and non-empty          -> EmptyInputError
2. rows are array-like (2-D)         -> NotTwoDimensionalError
3. every row has the first row's len -> InconsistentRowLengthError
4. every element is a real number    -> NonNumericElementError
5. every element is finite           -> NonFiniteElementError (optional)

Integers too large for float64 fail check 4 even though Python considers
them real. Every error carries the dataset shape in ``error.stats``.

Structural checks (1-3) cover the whole dataset before any per-element
scan starts. The data is never modified.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np

from .exceptions import (
    EmptyInputError,
    InconsistentRowLengthError,
    NonFiniteElementError,
    NonNumericElementError,
    NotTwoDimensionalError,
)


@dataclass(frozen=True)
class DatasetStats:
    """Shape and value range of a dataset, quoted in error messages."""

    n_samples: int
    n_features: int
    min_value: float = 0.0
    max_value: float = 0.0

    @property
    def data_range(self) -> float:
        return self.max_value - self.min_value

    def describe(self) -> str:
        """One-line summary, e.g. ``100 samples, 8 features, values in [0, 1]``."""
        return (
            f"{self.n_samples} samples, {self.n_features} features, "
            f"values in [{self.min_value:.4g}, {self.max_value:.4g}]"
        )


def _is_array_like(obj: Any) -> bool:
    if isinstance(obj, np.ndarray):
        return True
    if isinstance(obj, (str, bytes, bytearray)):
        return False
    return isinstance(obj, Sequence)


def _is_real(value: Any) -> bool:
    # bool is an int subclass but never a meaningful coordinate
    return isinstance(value, numbers.Real) and not isinstance(value, (bool, np.bool_))


def _shape_of(data: Any) -> tuple:
    """Best-effort (n_samples, n_features) for messages."""
    try:
        n_samples = len(data)
        first = data[0] if n_samples else None
        n_features = len(first) if _is_array_like(first) else 0
    except TypeError:
        return 0, 0
    return n_samples, n_features


def _shape_stats(data: Any) -> DatasetStats:
    n_samples, n_features = _shape_of(data)
    return DatasetStats(n_samples=n_samples, n_features=n_features)


def dataset_statistics(data: Any) -> DatasetStats:
    """
    Compute sample count, feature count and range over finite values.

    Args:
        data: 2-D array-like (assumed already validated for shape)

    Returns:
        DatasetStats; zeros for empty input
    """
    n_samples, n_features = _shape_of(data)
    if n_samples == 0:
        return DatasetStats(n_samples=0, n_features=0)
    try:
        values = np.asarray(data, dtype=np.float64)
    except (TypeError, ValueError, OverflowError):
        return DatasetStats(n_samples=n_samples, n_features=n_features)
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return DatasetStats(n_samples=n_samples, n_features=n_features)
    return DatasetStats(
        n_samples=n_samples,
        n_features=n_features,
        min_value=float(finite.min()),
        max_value=float(finite.max()),
    )


class DatasetValidator:
    """
    Validate a 2-D numeric dataset.

    Args:
        check_finite: Reject NaN and infinite values. Clustering call sites
            turn this off because their backends give non-finite values a
            meaning of their own.
    """

    def __init__(self, check_finite: bool = True):
        self.check_finite = check_finite

    def validate(self, data: Any) -> None:
        """
        Run all checks in order, raising on the first failure.

        Raises:
            EmptyInputError, NotTwoDimensionalError,
            InconsistentRowLengthError, NonNumericElementError,
            NonFiniteElementError
        """
        if isinstance(data, np.ndarray) and data.dtype != object:
            self._validate_ndarray(data)
            return

        self.check_structure(data)
        self.check_numeric(data)
        if self.check_finite:
            self.check_finite_values(data)

    # -- structural checks ---------------------------------------------

    def check_structure(self, data: Any) -> None:
        if not _is_array_like(data):
            raise EmptyInputError(
                f"Input must be a non-empty 2D array of numbers, got {type(data).__name__}. "
                f"Pass a list of rows or a numpy array of shape (n_samples, n_features).",
                stats=DatasetStats(n_samples=0, n_features=0),
            )
        if len(data) == 0:
            raise EmptyInputError(
                "Input cannot be empty: the dataset has 0 samples. "
                "Provide at least one row of numeric features.",
                stats=DatasetStats(n_samples=0, n_features=0),
            )

        first = data[0]
        if not _is_array_like(first):
            raise NotTwoDimensionalError(
                f"Input must be a 2D array (array of arrays): row 0 is a "
                f"{type(first).__name__}. Wrap each sample's features in a list "
                f"(dataset: {len(data)} samples).",
                row_index=0,
                stats=DatasetStats(n_samples=len(data), n_features=0),
            )

        expected = len(first)
        stats = DatasetStats(n_samples=len(data), n_features=expected)
        for i, row in enumerate(data):
            if not _is_array_like(row):
                raise NotTwoDimensionalError(
                    f"Row {i} is not an array (got {type(row).__name__}). Every sample "
                    f"must be a sequence of {expected} features "
                    f"(dataset: {len(data)} samples).",
                    row_index=i,
                    stats=stats,
                )
            if len(row) != expected:
                raise InconsistentRowLengthError(
                    f"All rows must have the same length (row {i} has {len(row)} "
                    f"elements, expected {expected}). Pad, truncate or drop the "
                    f"malformed rows (dataset: {len(data)} samples, {expected} features).",
                    row_index=i,
                    expected_length=expected,
                    actual_length=len(row),
                    stats=stats,
                )

    # -- element checks ------------------------------------------------

    def check_numeric(self, data: Any) -> None:
        for i, row in enumerate(data):
            for j, value in enumerate(row):
                if not _is_real(value):
                    stats = _shape_stats(data)
                    raise NonNumericElementError(
                        f"Element at position [{i}, {j}] is not numeric "
                        f"(got {type(value).__name__}: {value!r}). Convert or remove "
                        f"non-numeric values (dataset: {stats.n_samples} samples, "
                        f"{stats.n_features} features).",
                        position=(i, j),
                        stats=stats,
                    )
                try:
                    float(value)
                except OverflowError:
                    raise self._unrepresentable_error(data, (i, j)) from None

    def check_finite_values(self, data: Any) -> None:
        for i, row in enumerate(data):
            for j, value in enumerate(row):
                try:
                    finite = math.isfinite(value)
                except OverflowError:
                    raise self._unrepresentable_error(data, (i, j)) from None
                if not finite:
                    raise self._non_finite_error(data, (i, j), value)

    # -- ndarray fast path ---------------------------------------------

    def _validate_ndarray(self, data: np.ndarray) -> None:
        if data.ndim == 0 or data.shape[0] == 0:
            raise EmptyInputError(
                f"Input cannot be empty (array shape {data.shape}). "
                f"Provide at least one row of numeric features.",
                stats=DatasetStats(n_samples=0, n_features=0),
            )
        if data.ndim != 2:
            raise NotTwoDimensionalError(
                f"Input must be a 2D array, got an array with {data.ndim} "
                f"dimension(s) and shape {data.shape}. Reshape it to "
                f"(n_samples, n_features), e.g. X.reshape(-1, 1) for a single feature.",
                stats=DatasetStats(n_samples=data.shape[0], n_features=0),
            )
        stats = DatasetStats(n_samples=data.shape[0], n_features=data.shape[1])
        if not np.issubdtype(data.dtype, np.number) or np.issubdtype(data.dtype, np.complexfloating):
            raise NonNumericElementError(
                f"Element at position [0, 0] is not numeric (array dtype {data.dtype}). "
                f"Convert the array with X.astype(float) "
                f"(dataset: {stats.n_samples} samples, {stats.n_features} features).",
                position=(0, 0),
                stats=stats,
            )
        if self.check_finite:
            bad = np.argwhere(~np.isfinite(data))
            if len(bad):
                i, j = (int(v) for v in bad[0])
                raise self._non_finite_error(data, (i, j), data[i, j])

    @staticmethod
    def _non_finite_error(data: Any, position: tuple, value: Any) -> NonFiniteElementError:
        i, j = position
        stats = _shape_stats(data)
        return NonFiniteElementError(
            f"Element at position [{i}, {j}] is NaN or Infinite ({value!r}). "
            f"Remove or impute non-finite values before fitting "
            f"(dataset: {stats.n_samples} samples, {stats.n_features} features).",
            position=(i, j),
            stats=stats,
        )

    @staticmethod
    def _unrepresentable_error(data: Any, position: tuple) -> NonNumericElementError:
        i, j = position
        stats = _shape_stats(data)
        return NonNumericElementError(
            f"Element at position [{i}, {j}] is not representable as float64 "
            f"(magnitude above {np.finfo(np.float64).max:.4g}). Rescale the "
            f"feature or drop the value (dataset: {stats.n_samples} samples, "
            f"{stats.n_features} features).",
            position=(i, j),
            stats=stats,
        )


def validate_dataset(data: Any, check_finite: bool = True) -> None:
    """Validate ``data`` with a one-off DatasetValidator."""
    DatasetValidator(check_finite=check_finite).validate(data)


def as_float_array(data: Any) -> np.ndarray:
    """
    Copy validated data into the float64 array the engine receives.

    Raises:
        NonNumericElementError: An integer is too large for float64
    """
    try:
        return np.array(data, dtype=np.float64, copy=True)
    except OverflowError:
        # locate the offending element for the message
        DatasetValidator(check_finite=False).check_numeric(data)
        raise
