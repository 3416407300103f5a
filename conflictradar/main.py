"""Application entrypoint for the ConflictRadar RSS ingestion service.

Flow:
1) load configuration
2) wire fetcher, parser, dedup cache, scorer and event bus
3) run the scheduler, or a single pass / ad-hoc feed analysis
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from typing import Optional, Sequence

from dotenv import load_dotenv

from .fetchers import FeedFetcher, FeedParser
from .orchestrator import Orchestrator
from .output.bus import MessageBus, create_bus
from .output.events import EventEmitter
from .processors import Deduplicator, RiskScorer
from .scheduler import IngestionScheduler
from .storage import InMemoryCache, JsonFileCache, KeyValueCache
from .utils.config_loader import ConfigError, load_config
from .utils.logging import configure_logging, get_logger
from .utils.settings import IngestionConfig


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="ConflictRadar ingestion: fetch RSS feeds, score conflict risk, publish events"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the ingestion YAML (default: $CONFLICTRADAR_CONFIG or config/ingestion.yaml)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        help="Run a single ingestion pass now and print the batch summary",
    )
    mode.add_argument(
        "--analyze",
        metavar="URL",
        help="Fetch and score one feed without dedup or events; print articles by risk",
    )
    mode.add_argument(
        "--status",
        action="store_true",
        help="Print the configured sources and service status, then exit",
    )
    parser.add_argument(
        "--bus",
        default="log",
        choices=["log", "memory", "jsonl"],
        help="Where events go: log (dry run), memory, or jsonl files",
    )
    parser.add_argument(
        "--events-dir",
        default="events",
        help="Directory for --bus jsonl output",
    )
    parser.add_argument(
        "--cache",
        default="file",
        choices=["memory", "file"],
        help="Dedup store: in-memory (forgets on exit) or a JSON file",
    )
    parser.add_argument(
        "--cache-path",
        default=".cache/dedup.json",
        help="Path of the JSON dedup store for --cache file",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity (default: $LOG_LEVEL or INFO)",
    )
    return parser.parse_args(argv)


def build_orchestrator(
    config: IngestionConfig,
    *,
    bus: MessageBus,
    cache: KeyValueCache,
) -> Orchestrator:
    """Wire the ingestion components for ``config``."""
    return Orchestrator(
        config,
        fetcher=FeedFetcher(config.http),
        parser=FeedParser(),
        dedup=Deduplicator(cache),
        scorer=RiskScorer(config.risk_analysis),
        emitter=EventEmitter(bus, config.topics),
    )


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _serve(orchestrator: Orchestrator, logger) -> int:
    scheduler = IngestionScheduler(orchestrator)
    if not scheduler.start():
        logger.warning("Scheduling is disabled; use --once to run a single pass")
        return 0

    stop = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Received signal %s; shutting down", signum)
        stop.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)
    try:
        stop.wait()
    finally:
        scheduler.stop(wait=True)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv(override=False)
    args = parse_args(argv)
    try:
        configure_logging(level=args.log_level)
    except ValueError as exc:
        print(f"Invalid logging configuration: {exc}", file=sys.stderr)
        return 2
    logger = get_logger("cr.main")

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        logger.error("Failed to load configuration: %s", exc)
        return 1

    logger.info("Loaded %d source(s), %d enabled", len(config.sources), len(config.enabled_sources))

    bus = create_bus(args.bus, directory=args.events_dir)
    cache = JsonFileCache(args.cache_path) if args.cache == "file" else InMemoryCache()
    orchestrator = build_orchestrator(config, bus=bus, cache=cache)

    try:
        if args.status:
            _print_json({"sources": orchestrator.sources_info(), "status": orchestrator.status()})
            return 0

        if args.analyze:
            articles = orchestrator.analyze_feed(args.analyze)
            _print_json(
                [
                    {
                        "title": a.title,
                        "link": a.link,
                        "publishedAt": a.published_at.isoformat(),
                        "riskScore": a.risk_score,
                        "conflictKeywords": sorted(a.conflict_keywords),
                    }
                    for a in articles
                ]
            )
            return 0

        if args.once:
            batch = orchestrator.trigger()
            if batch is None:
                return 1
            _print_json(batch.summary())
            return 0

        return _serve(orchestrator, logger)
    finally:
        orchestrator.close()
        bus.close()


if __name__ == "__main__":  # pragma: no cover - script entrypoint
    sys.exit(main())
