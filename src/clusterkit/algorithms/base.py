"""
Base class for ClusterKit estimators.

An estimator owns a Configuration and, once fitted, an engine handle. Each
engine call runs through a fresh ``GuardedCall``; save and load are the only
engine calls that skip validation.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Type, TypeVar

import numpy as np

from ..adjustment import AdjustmentReport
from ..configuration import Algorithm, Configuration
from ..engines import EngineFactory, engine_factory
from ..engines.base import BaseEngine, PathLike
from ..exceptions import NotFittedError
from ..facade import GuardedCall
from ..silence import maybe_silence
from ..utils.logging_config import get_logger
from ..validation import DatasetStats

logger = get_logger(__name__)

E = TypeVar("E", bound="BaseEstimator")


class BaseEstimator:
    """
    Shared fit/transform/save/load plumbing.

    Subclasses declare ``algorithms`` (what ``load`` accepts) and may override
    ``_check_dataset`` to add checks that run right after validation.

    Attributes:
        configuration: Requested Configuration; never changed by fitting
        fitted_configuration: Copy of ``configuration`` the engine was
            last fitted with, after parameter adjustment
        fit_report: AdjustmentReport of the last successful fit
        check_finite: Whether validation rejects NaN/infinite values
    """

    algorithms: tuple = ()
    check_finite: bool = True

    _engine: Optional[BaseEngine] = None
    fitted_configuration: Optional[Configuration] = None
    fit_report: Optional[AdjustmentReport] = None

    def __init__(self, configuration: Configuration, factory: Optional[EngineFactory] = None):
        self.configuration = configuration
        self._factory = factory
        self._engine = None
        self.fitted_configuration = None
        self.fit_report = None

    @property
    def factory(self) -> EngineFactory:
        return self._factory or engine_factory

    @property
    def algorithm(self) -> Algorithm:
        return self.configuration.algorithm

    @property
    def engine(self) -> Optional[BaseEngine]:
        return self._engine

    @property
    def fitted(self) -> bool:
        return self._engine is not None and self._engine.fitted

    def _check_dataset(self, stats: DatasetStats, operation: str) -> None:
        """Hook run after validation, before parameter adjustment."""

    def _guarded(
        self,
        operation: str,
        configuration: Configuration,
        adjust_parameters: bool = True,
    ) -> GuardedCall:
        return GuardedCall(
            configuration,
            operation,
            check_finite=self.check_finite,
            adjust_parameters=adjust_parameters,
            precheck=lambda stats: self._check_dataset(stats, operation),
        )

    def _require_fitted(self, action: str) -> BaseEngine:
        if not self.fitted:
            raise NotFittedError(
                f"{type(self).__name__} must be fitted before {action}. "
                f"Call fit or fit_transform first."
            )
        return self._engine

    def _fit_engine(self, data: Any) -> np.ndarray:
        """
        Build a fresh engine, fit it on ``data`` and keep it on success.

        Parameter adjustment applies to a copy of the configuration, so a
        small dataset never lowers the values used by the next fit.
        """
        call = self._guarded("fit", self.configuration.copy())

        def invoke(params, X):
            engine = self.factory.create(call.configuration.algorithm, params)
            return engine, engine.fit_transform(X)

        engine, result = call.run(data, invoke)
        self._engine = engine
        self.fitted_configuration = call.configuration
        self.fit_report = call.report
        return np.asarray(result)

    def _transform_engine(self, data: Any, operation: str = "transform") -> np.ndarray:
        engine = self._require_fitted(operation)
        configuration = self.fitted_configuration or self.configuration
        result = self._guarded(operation, configuration, adjust_parameters=False).run(
            data, lambda params, X: engine.transform(X)
        )
        return np.asarray(result)

    def save(self, path: PathLike) -> None:
        """
        Save the fitted model to ``path``.

        Parent directories are created as needed.

        Raises:
            NotFittedError: If there is no fitted model
        """
        engine = self._require_fitted("saving")
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        maybe_silence(lambda: engine.save(path))
        logger.debug("Saved %s model to %s", self.algorithm.value, path)

    @classmethod
    def load(cls: Type[E], path: PathLike, factory: Optional[EngineFactory] = None) -> E:
        """
        Load a model written by ``save``.

        Args:
            path: File written by ``save``
            factory: Engine factory to load with (defaults to the global one)

        Returns:
            Fitted estimator whose configuration is the one the saved
            engine was fitted with

        Raises:
            FileNotFoundError: If ``path`` does not exist
            ValueError: If the file holds a model this estimator cannot use
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        loader = factory or engine_factory
        engine = maybe_silence(lambda: loader.load(path))
        if cls.algorithms and engine.algorithm not in cls.algorithms:
            raise ValueError(
                f"{path} holds a '{engine.algorithm.value}' model, "
                f"which {cls.__name__} cannot load"
            )

        params = {k: v for k, v in engine.params.items() if k != "algorithm"}
        instance = cls.__new__(cls)
        BaseEstimator.__init__(instance, Configuration.create(engine.algorithm, params), factory)
        instance._engine = engine
        instance.fitted_configuration = instance.configuration.copy()
        logger.debug("Loaded %s model from %s", engine.algorithm.value, path)
        return instance

    def __repr__(self) -> str:
        state = "fitted" if self.fitted else "unfitted"
        return f"{type(self).__name__}(algorithm={self.algorithm.value!r}, {state})"
