#!/usr/bin/env python3
"""
Measure consume_one throughput against a live Redis.

Hammers a single bucket sized so it never runs dry, prints a JSON summary and
deletes the bucket afterwards.
"""

import argparse
import json
import os
import time

from bucket_limiter import Denied, LimiterBuilder
from bucket_limiter.logging import configure_logging


def bench(*, host: str, port: int, db: int, key: str, interval: int, capacity: int, iterations: int) -> dict:
    """Run the benchmark and return the summary."""
    limiter = LimiterBuilder().host(host).port(port).db(db).build()
    denied = 0
    start = time.perf_counter()
    try:
        for _ in range(iterations):
            try:
                limiter.consume_one(key, interval, capacity, 1)
            except Denied:
                denied += 1
        elapsed = time.perf_counter() - start
    finally:
        limiter.reset(key, interval)

    return {
        "iterations": iterations,
        "denied": denied,
        "elapsed_seconds": round(elapsed, 6),
        "calls_per_second": round(iterations / elapsed, 2) if elapsed else None,
        "microseconds_per_call": round(elapsed / iterations * 1e6, 2) if iterations else None,
    }


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Benchmark consume_one against Redis.")
    parser.add_argument("--host", default=os.getenv("LIMITER_HOST", "localhost"), help="Redis host")
    parser.add_argument("--port", type=int, default=int(os.getenv("LIMITER_PORT", 6379)), help="Redis port")
    parser.add_argument("--db", type=int, default=int(os.getenv("LIMITER_DB", 0)), help="Redis database index")
    parser.add_argument("--key", default="bench_simple", help="Resource key to consume from")
    parser.add_argument("--interval", type=int, default=600, help="Bucket interval in seconds")
    parser.add_argument("--capacity", type=int, default=10_000_000, help="Bucket capacity")
    parser.add_argument("--iterations", type=int, default=10_000, help="Number of consume calls")
    parser.add_argument("--log-level", default="warning", help="Log level")
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    configure_logging(args.log_level)
    summary = bench(
        host=args.host,
        port=args.port,
        db=args.db,
        key=args.key,
        interval=args.interval,
        capacity=args.capacity,
        iterations=args.iterations,
    )
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
