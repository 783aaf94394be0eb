"""Exception hierarchy for runtime_metrics."""

from __future__ import annotations


class RuntimeMetricsError(Exception):
    """Base class for all runtime_metrics errors."""


class BootstrapError(RuntimeMetricsError):
    """The push path could not be started (connect, ping or schema creation)."""


class TransportError(RuntimeMetricsError):
    """A call to the time-series store failed."""


class PointError(RuntimeMetricsError):
    """A sample could not be turned into a wire-ready point."""
