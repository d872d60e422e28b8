"""
Automatic correction of parameters that are invalid for a dataset's shape.

Neighbor-graph algorithms need ``n_neighbors`` strictly below the number of
samples. When the configured value is too large it is replaced with a
smaller safe value and the change is recorded in an ``AdjustmentReport``.
Call sites decide whether to surface the report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List

from .configuration import Configuration

DEFAULT_NEIGHBOR_CAP = 15
MIN_NEIGHBORS = 2


@dataclass(frozen=True)
class ParameterChange:
    """A single parameter rewrite."""

    name: str
    old_value: Any
    new_value: Any
    reason: str

    def describe(self) -> str:
        return f"Adjusted {self.name} from {self.old_value} to {self.new_value}: {self.reason}"


@dataclass
class AdjustmentReport:
    """Changes made by one ``adjust`` call; empty when nothing changed."""

    n_samples: int
    changes: List[ParameterChange] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.changes)

    def __len__(self) -> int:
        return len(self.changes)

    def describe(self) -> List[str]:
        return [change.describe() for change in self.changes]


def neighbor_bounds(n_samples: int) -> tuple:
    """
    Return ``(max_allowed, suggested)`` neighbor counts for a sample count.

    ``max_allowed = max(n_samples - 1, 2)`` and
    ``suggested = max(min(15, n_samples // 4), 2)``.
    """
    max_allowed = max(n_samples - 1, MIN_NEIGHBORS)
    suggested = max(min(DEFAULT_NEIGHBOR_CAP, n_samples // 4), MIN_NEIGHBORS)
    return max_allowed, suggested


class ParameterAdjuster:
    """Rewrite neighbor counts that exceed what the dataset can support."""

    def adjust(self, configuration: Configuration, n_samples: int) -> AdjustmentReport:
        """
        Clamp ``configuration.n_neighbors`` in place for ``n_samples``.

        Only algorithms whose neighbor count must stay below the sample count
        are touched. Applying it twice with the same sample count changes
        nothing the second time.

        Args:
            configuration: Configuration to mutate
            n_samples: Number of rows in the dataset about to be fitted

        Returns:
            AdjustmentReport listing any changes (possibly empty)
        """
        report = AdjustmentReport(n_samples=n_samples)
        if not configuration.uses_neighbors or configuration.n_neighbors is None:
            return report

        max_allowed, suggested = neighbor_bounds(n_samples)
        current = configuration.n_neighbors
        if current > max_allowed:
            new_value = min(suggested, max_allowed)
            configuration.n_neighbors = new_value
            report.changes.append(
                ParameterChange(
                    name="n_neighbors",
                    old_value=current,
                    new_value=new_value,
                    reason=(
                        f"n_neighbors must be less than the number of samples "
                        f"({n_samples}); at most {max_allowed} is allowed"
                    ),
                )
            )
        return report


def adjust_parameters(configuration: Configuration, n_samples: int) -> AdjustmentReport:
    """Functional form of ``ParameterAdjuster().adjust``."""
    return ParameterAdjuster().adjust(configuration, n_samples)
