"""
命令行入口：

    aggregate-counter sink   --config sink.yaml [--limit N]
    aggregate-counter counts NAME --resolution hour --count 24 [--end 2024-01-01T00:00:00]
    aggregate-counter list
    aggregate-counter reset NAME
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from typing import List, Optional

from .errors import AggregateCounterError
from .config import SinkConfig, build_store, load_config
from .ingest import IngestAdapter
from .query import QueryAssembler
from .resolution import Resolution
from .sink import AggregateCounterSink

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="aggregate-counter", description="Multi-resolution aggregate counters")
    parser.add_argument("--config", help="YAML configuration file")
    sub = parser.add_subparsers(dest="command", required=True)

    sink = sub.add_parser("sink", help="consume events from Kafka and update counters")
    sink.add_argument("--limit", type=int, default=None, help="stop after N messages")
    sink.add_argument("--max-idle-polls", type=int, default=None, help="stop after N empty polls")

    counts = sub.add_parser("counts", help="print the last N buckets of a counter")
    counts.add_argument("name")
    counts.add_argument("--resolution", default=Resolution.HOUR.value, choices=[r.value for r in Resolution])
    counts.add_argument("--count", type=int, default=24)
    counts.add_argument("--end", type=datetime.fromisoformat, default=None, help="ISO-8601 end instant")

    sub.add_parser("list", help="list known counters")

    reset = sub.add_parser("reset", help="delete all buckets of a counter")
    reset.add_argument("name")
    return parser


def _run_sink(config: SinkConfig, args: argparse.Namespace) -> int:
    from .adapters.kafka import KafkaConsumerAdapter

    store = build_store(config.store)
    sink = AggregateCounterSink(store, IngestAdapter(config.ingest, tz=store.timezone))
    consumer = KafkaConsumerAdapter(config.kafka.conf, config.kafka.topics)
    logger.info("Consuming %s into %s store", config.kafka.topics, config.store.backend)
    try:
        sink.run(consumer.iter_messages(max_idle_polls=args.max_idle_polls), limit=args.limit)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        consumer.close()
        store.close()
    print(json.dumps(sink.get_stats()))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        config = load_config(args.config)
    except AggregateCounterError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    try:
        if args.command == "sink":
            return _run_sink(config, args)

        store = build_store(config.store)
        try:
            if args.command == "counts":
                result = QueryAssembler(store).get_counts(args.name, args.count, args.resolution, args.end)
                print(json.dumps(result.to_dict()))
            elif args.command == "list":
                for name in sorted(store.list()):
                    print(name)
            elif args.command == "reset":
                store.reset(args.name)
        finally:
            store.close()
    except AggregateCounterError as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
