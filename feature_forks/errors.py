"""
Exceptions
==========

Ordinary test failures never raise; they only flip the suite verdict.
Everything here is either a suite-aborting condition or misuse.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .counters import SuiteTotals


class FeatureForksError(Exception):
    """Base exception for the feature runner."""
    pass


class FeatureParseError(FeatureForksError):
    """One or more features produced no usable result or had undefined steps.

    Raised only after every dispatched worker has finished, so ``totals``
    still holds the outcomes of the features that did complete.
    """

    def __init__(self, features: list[str], totals: "SuiteTotals | None" = None):
        self.features = sorted(features)
        self.totals = totals
        listing = ", ".join(self.features)
        super().__init__(
            f"One or more feature files failed to parse: {listing}. See error output above"
        )


class CounterStateError(FeatureForksError):
    """SuiteCounters used outside its before/after lifecycle."""
    pass


class ConfigError(FeatureForksError):
    """Suite configuration missing, unreadable or invalid."""
    pass
