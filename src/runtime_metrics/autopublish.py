"""Importing this module publishes runtime metrics for the current program.

The variable is named after ``sys.argv[0]`` and uses the
``python_runtime_metrics`` measurement::

    import runtime_metrics.autopublish  # noqa: F401
"""

from __future__ import annotations

import sys

from .exporter.published import metrics, publish

DEFAULT_MEASUREMENT = "python_runtime_metrics"

publish(sys.argv[0], metrics(DEFAULT_MEASUREMENT))
