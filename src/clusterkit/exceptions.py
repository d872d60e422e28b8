"""
Error taxonomy for ClusterKit.

Two families matter to callers:

- ``ValidationError`` subclasses are raised before anything reaches the
  engine. They are caller bugs and subclass ``ValueError``.
- ``ClassifiedError`` subclasses are raised when the engine itself fails.
  They are built by ``clusterkit.classifier`` from the engine's free-text
  message and always chain the original exception as ``__cause__``.

Nothing here is retried automatically.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from .validation import DatasetStats


class ClusterKitError(Exception):
    """Base class for every error raised by ClusterKit."""


# ------------------------------------------------------------------
# Validation errors
# ------------------------------------------------------------------


class ValidationError(ClusterKitError, ValueError):
    """Dataset rejected before any engine call."""

    def __init__(self, message: str, stats: Optional["DatasetStats"] = None):
        super().__init__(message)
        self.stats = stats


class EmptyInputError(ValidationError):
    """Input is not an array-like container, or has no rows."""


class NotTwoDimensionalError(ValidationError):
    """Input is not a sequence of rows."""

    def __init__(
        self,
        message: str,
        row_index: Optional[int] = None,
        stats: Optional["DatasetStats"] = None,
    ):
        super().__init__(message, stats=stats)
        self.row_index = row_index


class InconsistentRowLengthError(ValidationError):
    """A row's length differs from the first row's length."""

    def __init__(
        self,
        message: str,
        row_index: int,
        expected_length: int,
        actual_length: int,
        stats: Optional["DatasetStats"] = None,
    ):
        super().__init__(message, stats=stats)
        self.row_index = row_index
        self.expected_length = expected_length
        self.actual_length = actual_length


class NonNumericElementError(ValidationError):
    """An element is not a real number."""

    def __init__(
        self,
        message: str,
        position: Tuple[int, int],
        stats: Optional["DatasetStats"] = None,
    ):
        super().__init__(message, stats=stats)
        self.position = position


class NonFiniteElementError(ValidationError):
    """An element is NaN or infinite."""

    def __init__(
        self,
        message: str,
        position: Tuple[int, int],
        stats: Optional["DatasetStats"] = None,
    ):
        super().__init__(message, stats=stats)
        self.position = position


class InsufficientDataError(ValidationError):
    """Too few samples for the requested algorithm."""

    def __init__(
        self,
        message: str,
        n_samples: int,
        min_samples: int,
        stats: Optional["DatasetStats"] = None,
    ):
        super().__init__(message, stats=stats)
        self.n_samples = n_samples
        self.min_samples = min_samples


# ------------------------------------------------------------------
# Classified engine errors
# ------------------------------------------------------------------


class ClassifiedError(ClusterKitError):
    """
    Engine failure reinterpreted into an actionable error.

    Attributes:
        stats: Dataset statistics at the time of failure
        suggestions: Remediation steps, in the order they are shown
        raw_message: The engine's original message, verbatim
    """

    def __init__(
        self,
        message: str,
        *,
        stats: Optional["DatasetStats"] = None,
        suggestions: Sequence[str] = (),
        raw_message: str = "",
    ):
        super().__init__(message)
        self._stats = stats
        self._suggestions = tuple(suggestions)
        self._raw_message = raw_message

    @property
    def kind(self) -> str:
        return type(self).__name__

    @property
    def stats(self) -> Optional["DatasetStats"]:
        return self._stats

    @property
    def suggestions(self) -> Tuple[str, ...]:
        return self._suggestions

    @property
    def raw_message(self) -> str:
        return self._raw_message


class EngineError(ClassifiedError):
    """Engine failure whose message matched no known pattern."""


class IsolatedPointError(ClassifiedError):
    """Some points have no neighbors, the neighbor graph is disconnected."""


class ConvergenceError(ClassifiedError):
    """Numerical instability during optimization."""


class InvalidParameterError(ClassifiedError, ValueError):
    """Engine rejected a parameter as incompatible with the dataset."""


# ------------------------------------------------------------------
# Estimator state
# ------------------------------------------------------------------


class NotFittedError(ClusterKitError, RuntimeError):
    """Operation needs a fitted model."""
