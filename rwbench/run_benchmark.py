#!/usr/bin/env python3
"""Read/update load generator for key-value stores.

Runs a pool of worker threads, each bound to its own slice of the key space,
issuing a mixed read/write workload and printing throughput once a second.
The same workload can also be driven by Locust.

Usage:
    rwbench --store redis --host 127.0.0.1 --port 6379 -z 16 -k 100000 -w RU,80
    rwbench --store http --url http://127.0.0.1:2301 -w RU,50 -g 1000 --latency
    rwbench --engine locust --users 20 --duration 60 -w RU,90
"""
from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
import threading
import time
from pathlib import Path
from typing import Mapping, Optional

from rwbench.config import (
    BenchmarkConfig,
    BinGenerator,
    parse_object_spec,
    parse_workload,
)
from rwbench.counters import CounterStore
from rwbench.reporter import Colors, Reporter
from rwbench.stores import StorePool, create_pool
from rwbench.worker import RWTask

logger = logging.getLogger("rwbench")

# --- Constants ---

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6379
DEFAULT_LOCUST_RUN_TIME = 60
LOCUSTFILES_DIR = Path(__file__).parent / "locustfiles"


# --- Logging ---


def configure_logging(debug: bool = False) -> None:
    handler = logging.StreamHandler()
    if debug:
        fmt = "%(asctime)s|%(levelname)s:%(module)s:%(lineno)d: %(message)s"
    else:
        fmt = "%(asctime)s|%(levelname)s: %(message)s"
    handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if debug else logging.INFO)


# --- Key partitioning ---


def partition_keys(key_start: int, key_count: int, parts: int) -> list[tuple[int, int]]:
    """Split [key_start, key_start + key_count) into disjoint (start, count) ranges.

    The remainder is spread one key at a time over the first partitions.
    """
    if parts <= 0:
        raise ValueError("Number of partitions must be positive")
    if key_count < parts:
        raise ValueError(f"Cannot split {key_count} keys across {parts} workers")

    per_part, rem = divmod(key_count, parts)
    ranges = []
    start = key_start
    for i in range(parts):
        count = per_part + 1 if i < rem else per_part
        ranges.append((start, count))
        start += count
    return ranges


def partition_for_user(partitions: list[tuple[int, int]], user_id: int) -> Optional[tuple[int, int]]:
    """Key range of a Locust user, or None once every partition is taken."""
    if 0 <= user_id < len(partitions):
        return partitions[user_id]
    return None


# --- Configuration ---


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Read/update load generator for key-value stores",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Workloads:\n"
            "  RU,<read pct>[,<read multi-bin pct>[,<write multi-bin pct>]]\n"
            "  RMU | RMI | RMD | RR   (not implemented, logged per transaction)\n"
            "\n"
            "Examples:\n"
            "  rwbench -w RU,80 -z 32 -k 1000000\n"
            "  rwbench --store http --url http://127.0.0.1:2301 -g 500 --latency\n"
        ),
    )
    p.add_argument("--store", choices=["redis", "http"],
                   default=os.environ.get("RWBENCH_STORE", "redis"),
                   help="Store client to use (default: %(default)s)")
    p.add_argument("--host", default=os.environ.get("RWBENCH_HOST", DEFAULT_HOST),
                   help="Store host (default: RWBENCH_HOST env var or %(default)s)")
    p.add_argument("-p", "--port", type=int,
                   default=int(os.environ.get("RWBENCH_PORT", DEFAULT_PORT)),
                   help="Store port (default: RWBENCH_PORT env var or %(default)s)")
    p.add_argument("--url", default=os.environ.get("RWBENCH_URL"),
                   help="Base URL of an HTTP store (default: http://<host>:<port>)")
    p.add_argument("-k", "--keys", type=int, default=100000,
                   help="Number of keys (default: %(default)s)")
    p.add_argument("-S", "--start-key", type=int, default=0,
                   help="First key (default: %(default)s)")
    p.add_argument("-z", "--threads", type=int, default=16,
                   help="Number of worker threads (default: %(default)s)")
    p.add_argument("-w", "--workload", default="RU,50",
                   help="Workload definition (default: %(default)s)")
    p.add_argument("-o", "--object-spec", default="I",
                   help="Bin value type: I, S:<size> or B:<size> (default: %(default)s)")
    p.add_argument("-n", "--bins", type=int, default=1,
                   help="Bins per multi-bin record (default: %(default)s)")
    p.add_argument("-b", "--batch-size", type=int, default=1,
                   help="Keys per batch; writes are issued one at a time (default: %(default)s)")
    p.add_argument("-g", "--throughput", type=int, default=0,
                   help="Transactions per second cap, 0 for unlimited (default: %(default)s)")
    p.add_argument("--latency", action="store_true",
                   help="Record per-transaction latency")
    p.add_argument("--report-not-found", action="store_true",
                   help="Count reads of missing keys separately")
    p.add_argument("--validate", action="store_true",
                   help="Validate values read (not implemented)")
    p.add_argument("-d", "--debug", action="store_true",
                   help="Log full tracebacks for failures")
    p.add_argument("--duration", type=int, default=0,
                   help="Seconds to run, 0 to run until interrupted (default: %(default)s)")
    p.add_argument("--engine", choices=["threads", "locust"], default="threads",
                   help="Drive workers with threads or Locust users (default: %(default)s)")
    p.add_argument("--users", type=int, default=10,
                   help="Locust users (default: %(default)s)")
    p.add_argument("--output-dir", default="results",
                   help="Directory for Locust CSV output (default: %(default)s)")
    return p


def config_from_args(args: argparse.Namespace) -> BenchmarkConfig:
    """Build and validate a config. Raises ValueError on bad options."""
    spec = parse_workload(args.workload)
    config = BenchmarkConfig.from_workload(
        spec,
        batch_size=args.batch_size,
        throughput=args.throughput,
        report_not_found=args.report_not_found,
        debug=args.debug,
        validate=args.validate,
        latency=args.latency,
        key_start=args.start_key,
        key_count=args.keys,
        threads=args.threads,
        bin_generator=BinGenerator(parse_object_spec(args.object_spec), args.bins),
    )
    config.validate_values()
    return config


def args_to_env(args: argparse.Namespace) -> dict[str, str]:
    """Options handed to Locust users through BENCH_* variables."""
    return {
        "BENCH_STORE": args.store,
        "BENCH_HOST": args.host,
        "BENCH_PORT": str(args.port),
        "BENCH_URL": args.url or "",
        "BENCH_WORKLOAD": args.workload,
        "BENCH_OBJECT_SPEC": args.object_spec,
        "BENCH_BINS": str(args.bins),
        "BENCH_KEY_START": str(args.start_key),
        "BENCH_KEYS": str(args.keys),
        "BENCH_USERS": str(args.users),
        "BENCH_BATCH_SIZE": str(args.batch_size),
        "BENCH_THROUGHPUT": str(args.throughput),
        "BENCH_REPORT_NOT_FOUND": "1" if args.report_not_found else "0",
        "BENCH_DEBUG": "1" if args.debug else "0",
        "BENCH_VALIDATE": "1" if args.validate else "0",
        "BENCH_LATENCY": "1" if args.latency else "0",
    }


def args_from_env(env: Mapping[str, str]) -> argparse.Namespace:
    """Inverse of args_to_env, used inside Locust worker processes."""
    argv = [
        "--store", env.get("BENCH_STORE", "redis"),
        "--host", env.get("BENCH_HOST", DEFAULT_HOST),
        "--port", env.get("BENCH_PORT", str(DEFAULT_PORT)),
        "--workload", env.get("BENCH_WORKLOAD", "RU,50"),
        "--object-spec", env.get("BENCH_OBJECT_SPEC", "I"),
        "--bins", env.get("BENCH_BINS", "1"),
        "--start-key", env.get("BENCH_KEY_START", "0"),
        "--keys", env.get("BENCH_KEYS", "100000"),
        "--users", env.get("BENCH_USERS", "10"),
        "--threads", env.get("BENCH_USERS", "10"),
        "--batch-size", env.get("BENCH_BATCH_SIZE", "1"),
        "--throughput", env.get("BENCH_THROUGHPUT", "0"),
    ]
    if env.get("BENCH_URL"):
        argv += ["--url", env["BENCH_URL"]]
    if env.get("BENCH_REPORT_NOT_FOUND") == "1":
        argv.append("--report-not-found")
    if env.get("BENCH_DEBUG") == "1":
        argv.append("--debug")
    if env.get("BENCH_VALIDATE") == "1":
        argv.append("--validate")
    if env.get("BENCH_LATENCY") == "1":
        argv.append("--latency")
    return build_parser().parse_args(argv)


# --- Runners ---


def print_header(args: argparse.Namespace, config: BenchmarkConfig) -> None:
    target = args.url if args.store == "http" and args.url else f"{args.host}:{args.port}"
    print(f"\n{'='*60}")
    print(f"rwbench - {Colors.CYAN}{config.workload.name}{Colors.RESET} ({args.store})")
    print(f"{'='*60}")
    print(f"Target:       {target}")
    print(f"Keys:         [{config.key_start}, {config.key_start + config.key_count})")
    print(f"Workers:      {config.threads if args.engine == 'threads' else args.users}")
    print(f"Read pct:     {config.read_pct * 100:.0f}%")
    print(f"Batch size:   {config.batch_size}")
    if config.throughput > 0:
        print(f"Throughput:   {config.throughput} tps")
    else:
        print(f"Throughput:   {Colors.YELLOW}UNLIMITED{Colors.RESET}")
    print(f"{'='*60}\n")


def run_threads(
    pool: StorePool,
    config: BenchmarkConfig,
    counters: CounterStore,
    duration: int = 0,
    stop_event: Optional[threading.Event] = None,
    interval: float = 1.0,
) -> Reporter:
    """Run one worker thread per key partition until stopped."""
    stop = stop_event or threading.Event()
    tasks = [
        RWTask(pool, config, counters, start, count, stop_event=stop, index=i)
        for i, (start, count) in enumerate(partition_keys(config.key_start, config.key_count, config.threads))
    ]
    threads = [
        threading.Thread(target=task.run, name=f"rwbench-worker-{task.index}", daemon=True)
        for task in tasks
    ]

    if duration > 0:
        timer = threading.Timer(duration, stop.set)
        timer.daemon = True
        timer.start()

    reporter = Reporter(counters, interval=interval)
    start = time.perf_counter()
    for thread in threads:
        thread.start()
    try:
        reporter.run(stop)
    except KeyboardInterrupt:
        print("\nStopping workers...")
        stop.set()

    for thread in threads:
        thread.join(timeout=5)
    reporter.print_summary(time.perf_counter() - start)
    return reporter


def run_scenario(
    users: int,
    duration_s: int,
    csv_prefix: str,
    env_vars: dict[str, str],
    locustfile: str = "read_update.py",
) -> bool:
    """Run a Locust scenario via CLI. Returns True if successful."""
    env = os.environ.copy()
    env.update(env_vars)

    cmd = [
        sys.executable, "-m", "locust",
        "--headless",
        "--locustfile", str(LOCUSTFILES_DIR / locustfile),
        "--users", str(users),
        "--spawn-rate", str(min(users, 10)),
        "--run-time", f"{duration_s}s",
        "--csv", csv_prefix,
    ]

    result = subprocess.run(cmd, env=env)
    return result.returncode == 0


# --- Main ---


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.debug)

    try:
        config = config_from_args(args)
        if args.engine == "locust":
            partition_keys(config.key_start, config.key_count, args.users)
        else:
            partition_keys(config.key_start, config.key_count, config.threads)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    print_header(args, config)

    if args.engine == "locust":
        output_dir = Path(args.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        duration = args.duration or DEFAULT_LOCUST_RUN_TIME
        ok = run_scenario(args.users, duration, str(output_dir / "read-update"), args_to_env(args))
        if not ok:
            print("  WARNING: locust scenario exited with errors")
            return 1
        print(f"  Results: {output_dir}/")
        return 0

    try:
        pool = create_pool(args.store, args.host, args.port, args.url, config.threads)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    counters = CounterStore(latency=config.latency)
    try:
        run_threads(pool, config, counters, duration=args.duration)
    finally:
        pool.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
