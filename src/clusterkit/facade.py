"""
Guarded engine calls.

Every call into an engine goes through a ``GuardedCall``:

    IDLE -> VALIDATING -> ADJUSTING_PARAMETERS -> (SILENCING) -> INVOKING
         -> SUCCESS | CLASSIFYING_ERROR

Validation failures abort in VALIDATING with a ``ValidationError``. Engine
failures are classified and raised with the original exception chained.
A ``GuardedCall`` is single-use; nothing carries over between calls except
the configuration and engine handle, which belong to the caller.

Usage:
    call = GuardedCall(config, "fit_transform")
    result = call.run(data, lambda params, X: engine.fit_transform(X))
    call.report  # parameter adjustments made for this call
"""

from __future__ import annotations

from contextlib import nullcontext
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, TypeVar

import numpy as np

from .adjustment import AdjustmentReport, ParameterAdjuster
from .classifier import ErrorClassifier
from .config import get_settings
from .configuration import Configuration
from .exceptions import ClusterKitError
from .silence import silence_output
from .utils.logging_config import get_logger
from .validation import DatasetStats, DatasetValidator, as_float_array, dataset_statistics

logger = get_logger(__name__)

T = TypeVar("T")

Invoke = Callable[[Dict[str, Any], np.ndarray], T]
Precheck = Callable[[DatasetStats], None]


class CallState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    ADJUSTING_PARAMETERS = "adjusting_parameters"
    SILENCING = "silencing"
    INVOKING = "invoking"
    SUCCESS = "success"
    CLASSIFYING_ERROR = "classifying_error"


class GuardedCall:
    """
    One validated, adjusted, optionally silenced, classified engine call.

    Args:
        configuration: Effective configuration; mutated by parameter adjustment
        operation: Name used in log messages (``fit``, ``transform``, ...)
        check_finite: Reject NaN/infinite values during validation
        adjust_parameters: Run the ParameterAdjuster before invoking
        precheck: Extra check run on dataset statistics after validation
        validator: Override the DatasetValidator
        adjuster: Override the ParameterAdjuster
        classifier: Override the ErrorClassifier

    Attributes:
        state: Current CallState
        history: Every state entered, in order
        report: AdjustmentReport once adjustment ran, else None
        stats: DatasetStats once validation passed, else None
    """

    def __init__(
        self,
        configuration: Configuration,
        operation: str = "fit_transform",
        *,
        check_finite: bool = True,
        adjust_parameters: bool = True,
        precheck: Optional[Precheck] = None,
        validator: Optional[DatasetValidator] = None,
        adjuster: Optional[ParameterAdjuster] = None,
        classifier: Optional[ErrorClassifier] = None,
    ):
        self.configuration = configuration
        self.operation = operation
        self.adjust_parameters = adjust_parameters
        self.precheck = precheck
        self.validator = validator or DatasetValidator(check_finite=check_finite)
        self.adjuster = adjuster or ParameterAdjuster()
        self.classifier = classifier or ErrorClassifier()

        self.state = CallState.IDLE
        self.history: List[CallState] = [CallState.IDLE]
        self.report: Optional[AdjustmentReport] = None
        self.stats: Optional[DatasetStats] = None

    def _enter(self, state: CallState) -> None:
        self.state = state
        self.history.append(state)

    def run(self, data: Any, invoke: Invoke) -> T:
        """
        Validate ``data``, adjust parameters and call ``invoke``.

        Args:
            data: 2-D dataset as provided by the caller
            invoke: ``invoke(params, X)`` where ``params`` is the configuration
                snapshot and ``X`` the validated float64 array

        Returns:
            Whatever ``invoke`` returns

        Raises:
            ValidationError: Data rejected before the engine was called
            ClassifiedError: The engine raised
        """
        if self.state is not CallState.IDLE:
            raise RuntimeError("GuardedCall instances are single-use; create a new one per call")

        self._enter(CallState.VALIDATING)
        self.validator.validate(data)
        X = as_float_array(data)
        self.stats = dataset_statistics(X)
        if self.precheck is not None:
            self.precheck(self.stats)

        if self.adjust_parameters:
            self._enter(CallState.ADJUSTING_PARAMETERS)
            self.report = self.adjuster.adjust(self.configuration, self.stats.n_samples)
            self._surface_report(self.report)

        params = self.configuration.as_mapping()

        silenced = not get_settings().verbose
        if silenced:
            self._enter(CallState.SILENCING)
        scope = silence_output() if silenced else nullcontext()

        try:
            with scope:
                self._enter(CallState.INVOKING)
                result = invoke(params, X)
        except ClusterKitError:
            raise
        except Exception as e:
            self._enter(CallState.CLASSIFYING_ERROR)
            raise self.classifier.classify(e, self.stats, self.configuration) from e

        self._enter(CallState.SUCCESS)
        return result

    def _surface_report(self, report: AdjustmentReport) -> None:
        if not report:
            return
        verbose = get_settings().verbose
        for change in report.changes:
            if verbose:
                logger.warning(
                    "%s: adjusted %s from %s to %s for dataset with %d samples",
                    self.configuration.algorithm.value,
                    change.name,
                    change.old_value,
                    change.new_value,
                    report.n_samples,
                )
            else:
                logger.debug("%s: %s", self.configuration.algorithm.value, change.describe())


def guarded_call(
    configuration: Configuration,
    data: Any,
    invoke: Invoke,
    operation: str = "fit_transform",
    **kwargs: Any,
) -> T:
    """Run a single ``GuardedCall`` and return the engine's result."""
    return GuardedCall(configuration, operation, **kwargs).run(data, invoke)
