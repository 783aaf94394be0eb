"""Process runtime metrics for InfluxDB (push) and published variables (pull)."""

__version__ = "0.1.0"
