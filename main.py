"""logkeeper demo: writes generated logs through stdlib logging with rotation, compression, and purging."""

import argparse
import dataclasses
import logging
import random
import signal
import sys
import time
import uuid

from logkeeper.config import load_config, load_yaml_config, parse_duration, parse_optional_duration
from logkeeper.handler import FileBackendHandler
from logkeeper.writer import FileBackend

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [logkeeper] %(levelname)s %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

_running = True


def _signal_handler(sig, _frame):
    global _running
    logger.info("Shutdown signal received (signal %d), stopping...", sig)
    _running = False


LEVELS = [logging.INFO, logging.INFO, logging.INFO, logging.INFO, logging.DEBUG, logging.WARNING, logging.ERROR]
SERVICES = ["auth-api", "order-svc", "payment-gw", "user-svc", "catalog-api"]
MESSAGES = {
    logging.INFO: [
        "Request processed successfully",
        "Health check passed",
        "Cache hit for user session",
        "Database query completed in 12ms",
    ],
    logging.DEBUG: [
        "Entering request handler",
        "Token validation started",
    ],
    logging.WARNING: [
        "Slow query detected (>500ms)",
        "Connection pool nearing capacity",
    ],
    logging.ERROR: [
        "Failed to connect to database",
        "Timeout waiting for upstream response",
    ],
}


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="logkeeper rotating file backend demo")
    parser.add_argument("--config", default=None, help="Path to YAML config file")
    parser.add_argument("--log-path", default=None, help="Active log file (default: <exe dir>/../log/<exe>.log)")
    parser.add_argument("--rotate-at", default=None, help="Rotation span, e.g. 1d, 5m, 30s")
    parser.add_argument("--compress-at", default=None, help="Age at which rotated files are gzipped")
    parser.add_argument("--retention", default=None, help="Age at which rotated files are purged")
    parser.add_argument("--rate", type=float, default=20.0, help="Entries per second")
    return parser


def main(argv=None):
    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    args = build_cli_parser().parse_args(argv)
    config = load_config(load_yaml_config(args.config))

    # CLI flags override YAML and env vars
    overrides = {}
    if args.log_path is not None:
        overrides["log_path"] = args.log_path
    if args.rotate_at is not None:
        overrides["rotate_at"] = parse_duration(args.rotate_at)
    if args.compress_at is not None:
        overrides["compress_at"] = parse_duration(args.compress_at)
    if args.retention is not None:
        overrides["retention"] = parse_optional_duration(args.retention)
    config = dataclasses.replace(config, **overrides)

    backend = FileBackend.from_config(config)

    logger.info(
        "Writing to %s: rotate_at=%s, compress_at=%s, retention=%s, next rotation at %s",
        backend.filepath, backend.rotate_at, backend.compress_at, backend.retention,
        backend.next_rotation_at.isoformat(),
    )

    handler = FileBackendHandler(backend)
    app_logger = logging.getLogger("demo")
    app_logger.setLevel(logging.DEBUG)
    app_logger.addHandler(handler)
    app_logger.propagate = False

    delay = 1.0 / args.rate if args.rate > 0 else 0.05
    entries = 0
    try:
        while _running:
            level = random.choice(LEVELS)
            app_logger.log(
                level, random.choice(MESSAGES[level]),
                extra={"service": random.choice(SERVICES), "request_id": uuid.uuid4().hex[:8]},
            )
            entries += 1
            time.sleep(delay)
    except KeyboardInterrupt:
        pass

    app_logger.removeHandler(handler)
    handler.close()
    logger.info("Shut down cleanly. Entries: %d, stats: %s", entries, backend.metrics.snapshot())


if __name__ == "__main__":
    main()
