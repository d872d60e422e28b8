"""
Classification of free-text engine failures.

The engine reports failures only as message strings, and their wording is
not a versioned contract. Matching rules therefore live in one ordered
table, ``ERROR_RULES``: the first rule with a pattern found in the message
wins, and anything unmatched becomes a generic ``EngineError`` that quotes
the original message verbatim.

Usage:
    try:
        engine.fit_transform(X)
    except Exception as e:
        raise classify(e, dataset_statistics(X), configuration) from e
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Pattern, Sequence, Tuple, Type

from .configuration import Configuration
from .exceptions import (
    ClassifiedError,
    ConvergenceError,
    EngineError,
    InvalidParameterError,
    IsolatedPointError,
)
from .utils.logging_config import get_logger
from .validation import DatasetStats

logger = get_logger(__name__)


@dataclass(frozen=True)
class ErrorRule:
    """
    One row of the classification table.

    ``summary``, ``causes`` and ``suggestions`` are ``str.format`` templates
    rendered against the context built by ``ErrorClassifier.build_context``.
    """

    kind: Type[ClassifiedError]
    patterns: Tuple[str, ...]
    summary: str
    causes: Tuple[str, ...] = ()
    suggestions: Tuple[str, ...] = ()
    _compiled: Tuple[Pattern[str], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        compiled = tuple(re.compile(p, re.IGNORECASE | re.DOTALL) for p in self.patterns)
        object.__setattr__(self, "_compiled", compiled)

    def matches(self, message: str) -> bool:
        return any(p.search(message) for p in self._compiled)


ERROR_RULES: Tuple[ErrorRule, ...] = (
    ErrorRule(
        kind=IsolatedPointError,
        patterns=(r"isolated point", r"graph will not be connected", r"not (fully )?connected"),
        summary=(
            "{algorithm} found isolated points in your data that are too far "
            "from all other points to form neighbor edges."
        ),
        causes=(
            "Your data contains outliers that are very different from other points",
            "The data has no manifold structure (for example purely random values)",
            "The n_neighbors parameter ({n_neighbors}) is too high for your data distribution",
        ),
        suggestions=(
            "Reduce n_neighbors (try 5 or even 3)",
            "Remove outliers from your data before fitting",
            "Verify your data has some structure (not purely random)",
            "For small datasets (< 50 points), consider using PCA instead",
        ),
    ),
    ErrorRule(
        kind=ConvergenceError,
        patterns=(
            r"assertion failed.*box_size",
            r"box_size",
            r"assertion failed.*norm",
            r"did not converge",
        ),
        summary="{algorithm} failed to converge due to numerical instability in your data.",
        causes=(
            "Data points are too spread out or have extreme values (value range {data_range:.4g})",
            "The scale of different features varies wildly",
            "There are duplicate or nearly-duplicate points",
        ),
        suggestions=(
            "Normalize your data first: clusterkit.preprocessing.normalize(data)",
            "Scale your data to a bounded range (e.g. 0 to 1 or -1 to 1)",
            "Use a smaller n_neighbors value",
            "Check for and remove duplicate points",
        ),
    ),
    ErrorRule(
        kind=InvalidParameterError,
        patterns=(r"n_neighbors", r"too many neighbors"),
        summary=(
            "The n_neighbors parameter ({n_neighbors}) is too large for your "
            "dataset size ({n_samples})."
        ),
        causes=(
            "{algorithm} needs n_neighbors to be less than the number of samples",
        ),
        suggestions=(
            "Use a smaller value, for example n_neighbors={suggested_neighbors}",
            "This should have been adjusted automatically. If you see this error, "
            "please report it as a bug",
        ),
    ),
    ErrorRule(
        kind=InvalidParameterError,
        patterns=(r"perplexity",),
        summary=(
            "The perplexity parameter ({perplexity}) is too large for your "
            "dataset size ({n_samples})."
        ),
        causes=("{algorithm} needs perplexity to be less than the number of samples",),
        suggestions=(
            "Use a smaller value, for example perplexity={suggested_perplexity}",
            "Collect more samples",
        ),
    ),
)

GENERIC_RULE = ErrorRule(
    kind=EngineError,
    patterns=(),
    summary="{algorithm} encountered an error: {raw_message}",
    suggestions=(
        "Try reducing n_neighbors (current: {n_neighbors})",
        "Normalize your data first",
        "Check for NaN or infinite values in your data",
        "Ensure you have at least 10 data points",
        "If this persists, consider using PCA for dimensionality reduction instead",
    ),
)

_ALGORITHM_LABELS = {
    "umap": "UMAP",
    "tsne": "t-SNE",
    "largevis": "LargeVis",
    "diffusion": "Diffusion map",
    "pca": "PCA",
    "kmeans": "K-means",
    "hdbscan": "HDBSCAN",
}


class ErrorClassifier:
    """
    Turn an engine exception into a ``ClassifiedError``.

    Args:
        rules: Ordered classification table; first match wins
        fallback: Rule used when nothing matches or rendering fails
    """

    def __init__(
        self,
        rules: Sequence[ErrorRule] = ERROR_RULES,
        fallback: ErrorRule = GENERIC_RULE,
    ):
        self.rules = tuple(rules)
        self.fallback = fallback

    def match(self, message: str) -> ErrorRule:
        for rule in self.rules:
            if rule.matches(message):
                return rule
        return self.fallback

    @staticmethod
    def build_context(
        raw_message: str,
        stats: DatasetStats,
        configuration: Optional[Configuration],
    ) -> Dict[str, Any]:
        """Values available to message templates."""
        params = configuration.as_mapping() if configuration is not None else {}
        algorithm = params.get("algorithm") or "engine"
        n_samples = stats.n_samples
        return {
            "algorithm": _ALGORITHM_LABELS.get(algorithm, algorithm),
            "raw_message": raw_message,
            "n_samples": n_samples,
            "n_features": stats.n_features,
            "min_value": stats.min_value,
            "max_value": stats.max_value,
            "data_range": stats.data_range,
            "n_neighbors": params.get("n_neighbors"),
            "perplexity": params.get("perplexity"),
            "suggested_neighbors": max(min(max(5, n_samples // 10), n_samples - 1), 2),
            "suggested_perplexity": max(min(30, (n_samples - 1) // 3), 1),
        }

    def classify(
        self,
        raw_error: BaseException,
        stats: DatasetStats,
        configuration: Optional[Configuration] = None,
    ) -> ClassifiedError:
        """
        Build the classified error for ``raw_error``.

        The result is returned, not raised; call sites raise it ``from``
        ``raw_error`` so the original stays attached as ``__cause__``.

        Args:
            raw_error: Exception raised by the engine
            stats: Statistics of the dataset being processed
            configuration: Effective configuration of the failed call

        Returns:
            ClassifiedError subclass instance
        """
        raw_message = str(raw_error) or type(raw_error).__name__
        context = self.build_context(raw_message, stats, configuration)
        rule = self.match(raw_message)

        try:
            message, suggestions = self._render(rule, context, stats)
        except (KeyError, IndexError, ValueError):
            logger.debug("Could not render %s template; using generic message", rule.kind.__name__)
            rule = self.fallback
            message, suggestions = self._render(rule, context, stats)

        if rule is self.fallback and raw_message not in message:
            message = f"{message}\n\nOriginal error: {raw_message}"

        logger.debug("Classified engine failure as %s: %s", rule.kind.__name__, raw_message)
        return rule.kind(
            message,
            stats=stats,
            suggestions=suggestions,
            raw_message=raw_message,
        )

    @staticmethod
    def _render(rule: ErrorRule, context: Dict[str, Any], stats: DatasetStats) -> Tuple[str, Tuple[str, ...]]:
        summary = rule.summary.format(**context)
        causes = [c.format(**context) for c in rule.causes]
        suggestions = tuple(s.format(**context) for s in rule.suggestions)

        parts = [summary]
        if causes:
            parts.append("This typically happens when:\n" + "\n".join(f"  - {c}" for c in causes))
        if suggestions:
            parts.append(
                "Solutions:\n"
                + "\n".join(f"  {i}. {s}" for i, s in enumerate(suggestions, start=1))
            )
        parts.append(f"Your data: {stats.describe()}")
        return "\n\n".join(parts), suggestions


_default_classifier = ErrorClassifier()


def classify(
    raw_error: BaseException,
    stats: DatasetStats,
    configuration: Optional[Configuration] = None,
) -> ClassifiedError:
    """Classify with the default rule table."""
    return _default_classifier.classify(raw_error, stats, configuration)
