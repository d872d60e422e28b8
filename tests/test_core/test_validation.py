"""
Tests for DatasetValidator.

Checks run in a fixed order (structure before element scans) and every
error names the offending row or element plus the dataset shape.
"""

import math

import numpy as np
import pytest

from clusterkit.exceptions import (
    EmptyInputError,
    InconsistentRowLengthError,
    NonFiniteElementError,
    NonNumericElementError,
    NotTwoDimensionalError,
    ValidationError,
)
from clusterkit.validation import (
    DatasetStats,
    DatasetValidator,
    as_float_array,
    dataset_statistics,
    validate_dataset,
)


# ------------------------------------------------------------------
# Structural checks
# ------------------------------------------------------------------


@pytest.mark.parametrize("data", [[], np.empty((0, 3)), None, "abc", 5])
def test_empty_or_non_array_input(data):
    """Test that empty and non array-like input is rejected first."""
    with pytest.raises(EmptyInputError):
        validate_dataset(data)


def test_one_dimensional_input():
    """Test that a flat list is not accepted as a dataset."""
    with pytest.raises(NotTwoDimensionalError) as exc_info:
        validate_dataset([1.0, 2.0, 3.0])

    assert exc_info.value.row_index == 0
    assert "2D array" in str(exc_info.value)


def test_one_dimensional_ndarray():
    """Test that 1-D and 3-D arrays are rejected with a reshape hint."""
    with pytest.raises(NotTwoDimensionalError, match="reshape"):
        validate_dataset(np.arange(5.0))
    with pytest.raises(NotTwoDimensionalError):
        validate_dataset(np.zeros((2, 2, 2)))


def test_inconsistent_row_length_names_row_and_lengths():
    """Test scenario: [[1,2],[3,4,5]] reports row 1, lengths 2 and 3."""
    with pytest.raises(InconsistentRowLengthError) as exc_info:
        validate_dataset([[1, 2], [3, 4, 5]])

    error = exc_info.value
    assert error.row_index == 1
    assert error.expected_length == 2
    assert error.actual_length == 3
    assert "row 1 has 3 elements, expected 2" in str(error)


def test_structure_checked_before_finiteness():
    """Test that a ragged dataset with NaN reports the row length, not the NaN."""
    with pytest.raises(InconsistentRowLengthError):
        validate_dataset([[math.nan, 1.0], [2.0, 3.0, math.inf]])


def test_structure_checked_before_numeric():
    """Test that a ragged dataset with a string reports the row length."""
    with pytest.raises(InconsistentRowLengthError):
        validate_dataset([["a", 1.0], [2.0]])


def test_nested_non_sequence_row():
    """Test that a scalar among rows is reported with its index."""
    with pytest.raises(NotTwoDimensionalError) as exc_info:
        validate_dataset([[1.0, 2.0], 3.0])

    assert exc_info.value.row_index == 1


# ------------------------------------------------------------------
# Element checks
# ------------------------------------------------------------------


def test_non_numeric_element_position():
    """Test that the first non-numeric element is located."""
    with pytest.raises(NonNumericElementError) as exc_info:
        validate_dataset([[1.0, 2.0], [3.0, "x"]])

    assert exc_info.value.position == (1, 1)
    assert "[1, 1]" in str(exc_info.value)
    assert "2 samples, 2 features" in str(exc_info.value)


def test_booleans_are_not_numeric():
    """Test that bools are rejected even though they are ints."""
    with pytest.raises(NonNumericElementError):
        validate_dataset([[True, 1.0]])


def test_non_numeric_ndarray():
    """Test that string and object-free non-numeric arrays are rejected."""
    with pytest.raises(NonNumericElementError):
        validate_dataset(np.array([["a", "b"]]))


def test_non_finite_element_position():
    """Test scenario: [[1.0, NaN],[3.0,4.0]] reports position [0, 1]."""
    with pytest.raises(NonFiniteElementError) as exc_info:
        validate_dataset([[1.0, float("nan")], [3.0, 4.0]])

    assert exc_info.value.position == (0, 1)
    assert "[0, 1]" in str(exc_info.value)


def test_non_finite_ndarray_position():
    """Test that the ndarray fast path reports the first non-finite element."""
    X = np.ones((4, 3))
    X[2, 1] = np.inf
    X[3, 0] = np.nan

    with pytest.raises(NonFiniteElementError) as exc_info:
        validate_dataset(X)

    assert exc_info.value.position == (2, 1)
    assert "4 samples, 3 features" in str(exc_info.value)


def test_check_finite_is_optional():
    """Test that clustering call sites can skip the finiteness check."""
    DatasetValidator(check_finite=False).validate([[1.0, float("nan")], [3.0, 4.0]])
    DatasetValidator(check_finite=False).validate(np.array([[np.inf, 1.0]]))


def test_integer_too_large_for_float64():
    """Test that an int beyond float64 range is rejected with its position."""
    with pytest.raises(ValidationError) as exc_info:
        validate_dataset([[10**400, 1], [1, 2]])

    assert isinstance(exc_info.value, NonNumericElementError)
    assert exc_info.value.position == (0, 0)
    assert "float64" in str(exc_info.value)


def test_integer_too_large_rejected_without_finite_check():
    """Test that skipping the finiteness check does not let huge ints through."""
    with pytest.raises(NonNumericElementError) as exc_info:
        DatasetValidator(check_finite=False).validate([[1, 2], [3, -(10**400)]])

    assert exc_info.value.position == (1, 1)


def test_finite_scan_reports_unrepresentable_integer():
    """Test the finiteness scan on its own when given a huge int."""
    with pytest.raises(NonNumericElementError) as exc_info:
        DatasetValidator().check_finite_values([[1.0, 10**400]])

    assert exc_info.value.position == (0, 1)


def test_valid_inputs_pass():
    """Test that lists, tuples, numpy scalars and arrays are accepted."""
    validate_dataset([[1, 2.5], [3, 4]])
    validate_dataset(((1.0,), (2.0,)))
    validate_dataset([[np.float32(1.0), np.int64(2)]])
    validate_dataset(np.arange(6, dtype=np.int32).reshape(3, 2))


def test_errors_carry_dataset_stats():
    """Test that validation errors expose the dataset shape as stats."""
    with pytest.raises(InconsistentRowLengthError) as exc_info:
        validate_dataset([[1.0, 2.0], [3.0], [5.0, 6.0]])
    assert exc_info.value.stats == DatasetStats(n_samples=3, n_features=2)

    with pytest.raises(NonNumericElementError) as exc_info:
        validate_dataset([[1.0, "x"], [3.0, 4.0]])
    assert exc_info.value.stats.n_samples == 2
    assert exc_info.value.stats.n_features == 2

    X = np.ones((5, 3))
    X[4, 2] = np.nan
    with pytest.raises(NonFiniteElementError) as exc_info:
        validate_dataset(X)
    assert exc_info.value.stats == DatasetStats(n_samples=5, n_features=3)

    with pytest.raises(EmptyInputError) as exc_info:
        validate_dataset([])
    assert exc_info.value.stats.n_samples == 0


def test_validation_errors_are_value_errors():
    """Test that callers can catch validation failures as ValueError."""
    with pytest.raises(ValueError):
        validate_dataset([])
    assert issubclass(NonFiniteElementError, ValidationError)


def test_validator_does_not_modify_data():
    """Test that validation is pure inspection."""
    data = [[1.0, 2.0], [3.0, 4.0]]
    validate_dataset(data)
    assert data == [[1.0, 2.0], [3.0, 4.0]]


# ------------------------------------------------------------------
# Statistics
# ------------------------------------------------------------------


def test_dataset_statistics_ignores_non_finite():
    """Test that min/max come from finite values only."""
    stats = dataset_statistics([[1.0, float("nan")], [-2.0, 8.0]])

    assert stats == DatasetStats(n_samples=2, n_features=2, min_value=-2.0, max_value=8.0)
    assert stats.data_range == 10.0
    assert stats.describe() == "2 samples, 2 features, values in [-2, 8]"


def test_dataset_statistics_empty():
    """Test that empty input yields zero statistics."""
    assert dataset_statistics([]) == DatasetStats(n_samples=0, n_features=0)


def test_as_float_array_copies():
    """Test that the engine gets a float64 copy."""
    X = np.arange(4, dtype=np.int64).reshape(2, 2)
    converted = as_float_array(X)

    assert converted.dtype == np.float64
    converted[0, 0] = 42
    assert X[0, 0] == 0


def test_as_float_array_rejects_unrepresentable_integer():
    """Test that conversion of unvalidated data names the element it cannot convert."""
    with pytest.raises(NonNumericElementError) as exc_info:
        as_float_array([[0, 1], [2, 10**400]])

    assert exc_info.value.position == (1, 1)
