"""CLI interface for runtime_metrics."""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import time

from . import __version__
from .config import load_config


def _cmd_collect(args: argparse.Namespace) -> None:
    """Run the push path until interrupted."""
    cfg = load_config(args.config)

    from .errors import BootstrapError
    from .runstats import run_collector

    try:
        stats = run_collector(cfg)
    except BootstrapError as exc:
        print(f"runtime-metrics: {exc}", file=sys.stderr)
        sys.exit(1)

    stop = False

    def _handle_signal(_sig: int, _frame: object) -> None:
        nonlocal stop
        stop = True

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    resolved = stats.config
    print(
        f"runtime-metrics writing to {resolved.influx.addr}/{resolved.influx.database} "
        f"(sample={resolved.collector.interval_seconds}s, flush={resolved.batch.interval_seconds}s)"
    )
    print("Press Ctrl+C to stop.\n")
    try:
        while not stop:
            time.sleep(0.5)
    finally:
        stats.stop()
    print("\nCollection stopped.")


def _cmd_sample(args: argparse.Namespace) -> None:
    """Take one sample and print it."""
    cfg = load_config(args.config)

    from .collector.sampler import Collector

    fields = Collector.from_config(cfg.collector).one_off()

    if args.json:
        print(json.dumps({"tags": fields.tags(), "values": fields.values()}, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    table = Table(title="Runtime metrics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in fields.values().items():
        table.add_row(key, f"{value:.6f}" if isinstance(value, float) else str(value))
    for key, value in fields.tags().items():
        table.add_row(key, value, style="dim")
    Console().print(table)


def _cmd_serve(args: argparse.Namespace) -> None:
    """Publish runtime metrics and serve them over HTTP."""
    cfg = load_config(args.config)

    from .collector.sampler import Collector
    from .exporter import published

    host, _, port = args.address.rpartition(":")
    published.publish(args.name, published.metrics(args.measurement, Collector.from_config(cfg.collector)))
    print(f"Serving {args.name!r} on http://{host or '127.0.0.1'}:{port}/debug/vars")
    try:
        published.serve(host or "127.0.0.1", int(port))
    except KeyboardInterrupt:
        pass


def _cmd_version(_args: argparse.Namespace) -> None:
    print(f"runtime_metrics {__version__}")


def main(argv: list[str] | None = None) -> None:
    """Entry point for the runtime-metrics CLI."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    parser = argparse.ArgumentParser(
        prog="runtime-metrics",
        description="Sample Python process runtime metrics and ship them to InfluxDB",
    )
    parser.add_argument("--config", "-c", default=None, help="Path to runtime_metrics.yaml")
    sub = parser.add_subparsers(dest="command")

    collect_p = sub.add_parser("collect", help="Sample and write batches to InfluxDB")
    collect_p.set_defaults(func=_cmd_collect)

    sample_p = sub.add_parser("sample", help="Print a single sample")
    sample_p.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    sample_p.set_defaults(func=_cmd_sample)

    serve_p = sub.add_parser("serve", help="Serve samples at /debug/vars")
    serve_p.add_argument("--address", default="127.0.0.1:8080", help="host:port to listen on")
    serve_p.add_argument("--name", default="runtime_metrics", help="Published variable name")
    serve_p.add_argument("--measurement", default="python_runtime_metrics", help="Measurement name")
    serve_p.set_defaults(func=_cmd_serve)

    ver_p = sub.add_parser("version", help="Print version")
    ver_p.set_defaults(func=_cmd_version)

    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
