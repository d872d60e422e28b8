"""
Preprocessing helpers.

Scaling data before embedding avoids most numerical trouble in the engines;
error messages for large value ranges point here.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from .validation import DatasetValidator, as_float_array

NORMALIZE_METHODS = ("standard", "minmax", "l2")


def normalize(data: Any, method: str = "standard") -> np.ndarray:
    """
    Return a normalized float64 copy of a 2-D dataset.

    Methods:
    - standard: zero mean, unit variance per column
    - minmax: each column scaled to [0, 1]
    - l2: each row scaled to unit Euclidean norm

    Constant columns (and all-zero rows for l2) are left at zero instead of
    dividing by zero.

    Args:
        data: 2-D dataset with finite values
        method: One of standard, minmax, l2

    Returns:
        New array of shape (n_samples, n_features)

    Raises:
        ValueError: If ``method`` is unknown
        ValidationError: If ``data`` is not a valid dataset
    """
    if method not in NORMALIZE_METHODS:
        raise ValueError(
            f"Unknown normalization method: {method!r}. "
            f"Must be one of: {', '.join(NORMALIZE_METHODS)}"
        )
    DatasetValidator().validate(data)
    X = as_float_array(data)

    if method == "standard":
        std = X.std(axis=0)
        return (X - X.mean(axis=0)) / np.where(std > 0, std, 1.0)
    if method == "minmax":
        low = X.min(axis=0)
        span = X.max(axis=0) - low
        return (X - low) / np.where(span > 0, span, 1.0)

    norms = np.linalg.norm(X, axis=1, keepdims=True)
    return X / np.maximum(norms, 1e-12)
