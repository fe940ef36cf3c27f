"""
Command-line entry point: run one maintenance pass and exit.

Exit status is 0 when the pass completes (even if some per-record writes were
rejected; they are retried on the next scheduled run) and 1 when the record
snapshot cannot be read, the configuration is invalid, or anything else fails.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from typing import List, Optional

from dotenv import load_dotenv

from .store.base import DocumentStore, SnapshotError
from .tools.config_loader import WorkerConfig, get_config
from .worker import run_pass


logger = logging.getLogger("camwatch")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="camwatch",
        description="Expire stale camera reports and promote report clusters to hotspots.",
    )
    parser.add_argument("--profile", help="Config profile under configs/ (default: $CAMWATCH_PROFILE or 'default')")
    parser.add_argument("--dry-run", action="store_true", help="Compute mutations without writing them")
    parser.add_argument("--now", type=int, help="Evaluation instant in epoch milliseconds (default: wall clock)")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return parser


def connect_store(config: WorkerConfig) -> DocumentStore:
    """Open the MongoDB store named by MONGO_URI / MONGO_DB."""
    from .store.mongo import MongoStore

    uri = os.getenv("MONGO_URI")
    if not uri:
        raise RuntimeError("Missing MONGO_URI. Copy .env.sample to .env and set the connection string.")
    return MongoStore.from_uri(
        uri,
        os.getenv("MONGO_DB", "camwatch"),
        records_collection=config.records_collection,
        reports_collection=config.reports_collection,
        summaries_collection=config.summaries_collection,
    )


def main(argv: Optional[List[str]] = None, store: Optional[DocumentStore] = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    now = args.now if args.now is not None else int(time.time() * 1000)

    try:
        config = get_config(args.profile)
        if store is None:
            store = connect_store(config)
        logger.info("Starting camera cleanup at %d (dry_run=%s)", now, args.dry_run)
        report = run_pass(store, config, now, dry_run=args.dry_run)
    except SnapshotError as e:
        logger.error("Could not read record snapshot, nothing was changed: %s", e)
        return 1
    except (FileNotFoundError, ValueError) as e:
        logger.error("Configuration error: %s", e)
        return 1
    except Exception:
        logger.exception("Worker failure")
        return 1

    if report.failures:
        logger.warning("%d writes failed; they will be retried next run", len(report.failures))
    logger.info("Cleanup + hotspot worker finished.")
    return 0


def run() -> None:
    """Zero-arg wrapper for the console script."""
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    run()
