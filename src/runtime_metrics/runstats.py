"""Push path: sample runtime metrics and write them to InfluxDB in batches."""

from __future__ import annotations

import logging
from typing import Callable

from .collector.sampler import Collector
from .config import Config, InfluxConfig
from .errors import BootstrapError, TransportError
from .exporter.batcher import PointBatcher
from .exporter.influx import InfluxTransport, Transport

logger = logging.getLogger(__name__)

PING_TIMEOUT = 5.0

TransportFactory = Callable[[InfluxConfig], Transport]


class RunStats:
    """Handle on a running push pipeline."""

    def __init__(self, config: Config, transport: Transport, batcher: PointBatcher, collector: Collector) -> None:
        self.config = config
        self.transport = transport
        self.batcher = batcher
        self.collector = collector

    def stop(self, timeout: float = 5.0) -> None:
        """Stop sampling, flush what is buffered and close the transport."""
        self.collector.stop(timeout=timeout)
        self.batcher.stop(timeout=timeout)
        self.transport.close()


def _bootstrap(config: InfluxConfig, factory: TransportFactory) -> Transport:
    try:
        transport = factory(config)
    except TransportError as exc:
        raise BootstrapError(f"failed to create influxdb client: {exc}") from exc

    try:
        transport.ping(PING_TIMEOUT)
        transport.query(f'CREATE DATABASE "{config.database}"')
    except TransportError as exc:
        transport.close()
        raise BootstrapError(str(exc)) from exc
    return transport


def run_collector(config: Config | None = None, transport_factory: TransportFactory | None = None) -> RunStats:
    """Connect to InfluxDB and start the sampler and flush workers.

    Raises :class:`BootstrapError` if the store cannot be reached or the
    database cannot be created; no worker is started in that case.
    """
    config = (config or Config()).resolve()
    assert config.logger is not None
    transport = _bootstrap(config.influx, transport_factory or InfluxTransport.connect)

    batcher = PointBatcher(transport, config.influx, config.batch, config.logger)
    batcher.start()

    collector = Collector.from_config(config.collector, batcher.on_fields)
    collector.start()

    logger.info(
        "Writing %s to %s/%s every %.1fs",
        config.influx.measurement,
        config.influx.addr,
        config.influx.database,
        config.batch.interval_seconds,
    )
    return RunStats(config, transport, batcher, collector)
