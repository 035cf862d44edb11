#!/usr/bin/env python3
"""
Cycle arbitrage scanner CLI.

Loads venue definitions, refreshes venue state from an account snapshot and
prints the profitable cycles found from the configured start token.

Usage:
    python3 run_scan.py
    python3 run_scan.py --config configs/scan.yaml --once
    python3 run_scan.py --config configs/scan.yaml --accounts snapshot.json --json
"""

import argparse
import json
import sys
from typing import List

from prometheus_client import CollectorRegistry
from tabulate import tabulate

import logging_config
from cycle_arbitrage import PROJECT_NAME, VERSION
from cycle_arbitrage.config_loader import load_config, load_venues
from cycle_arbitrage.exceptions import ArithmeticOverflow, CycleArbitrageError
from cycle_arbitrage.interfaces import SnapshotAccountSource
from cycle_arbitrage.metrics import ScanMetrics
from cycle_arbitrage.utils import format_amount, short_id
from dex.opportunity_math import compute_opportunity_breakdown
from dex.runner import ArbitrageRunner, ScanResult
from dex.search import rank_opportunities
from dex.venues import Venue


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Multi-hop cycle arbitrage scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config
  python3 run_scan.py

  # Single scan against a recorded account snapshot
  python3 run_scan.py --config configs/scan.yaml --accounts snapshot.json --once

  # Machine-readable output
  python3 run_scan.py --once --json
        """,
    )

    parser.add_argument(
        "--version", action="version", version=f"{PROJECT_NAME} {VERSION}"
    )
    parser.add_argument(
        "--config",
        default="configs/scan.yaml",
        help="Path to config YAML file (default: configs/scan.yaml)",
    )
    parser.add_argument(
        "--accounts",
        help="Account snapshot JSON (overrides accounts_snapshot in config)",
    )
    parser.add_argument(
        "--amount",
        type=int,
        help="Raw notional of the start token (default: owner balance, then config)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single scan and exit",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        help="Number of scans to run (default: until interrupted)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between scans (default: refresh_interval_sec from config)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print opportunities as JSON lines instead of a table",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging, including pruned search branches",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only log warnings and errors",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        help="Expose Prometheus metrics on this port",
    )

    return parser.parse_args(argv)


def format_venue_table(venues: List[Venue]) -> str:
    rows = [
        [
            short_id(venue.address),
            venue.kind,
            f"{venue.token_a.label}/{venue.token_b.label}",
            f"{venue.fee_bps:.1f}",
            "yes" if venue.live else "no",
        ]
        for venue in venues
    ]
    return tabulate(rows, headers=["Venue", "Kind", "Pair", "Fee bps", "Live"])


def format_result_table(result: ScanResult, decimals: int) -> str:
    rows = []
    for rank, opportunity in enumerate(rank_opportunities(result.opportunities), 1):
        breakdown = compute_opportunity_breakdown(opportunity, decimals)
        rows.append(
            [
                rank,
                " -> ".join(short_id(v) for v in opportunity.fingerprint),
                opportunity.hop_count,
                format_amount(opportunity.notional, decimals),
                format_amount(opportunity.amount_out, decimals),
                format_amount(opportunity.profit, decimals),
                f"{breakdown.profit_bps:.2f}",
            ]
        )
    return tabulate(
        rows,
        headers=["#", "Route", "Hops", "Notional", "Out", "Profit", "Bps"],
        tablefmt="simple",
        disable_numparse=True,
    )


def print_result(result: ScanResult, decimals: int, as_json: bool):
    if as_json:
        for opportunity in rank_opportunities(result.opportunities):
            payload = opportunity.to_dict()
            payload["best"] = opportunity is result.best
            print(json.dumps(payload))
        return

    if not result.opportunities:
        tried = ", ".join(format_amount(n, decimals) for n in result.notionals)
        print(f"No opportunities (generation {result.generation}, tried {tried})")
        return
    print(format_result_table(result, decimals))


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)

    if args.debug:
        logging_config.setup_debug()
    elif args.quiet:
        logging_config.setup_minimal()
    else:
        logging_config.setup()

    try:
        config = load_config(args.config)
        venues = load_venues(config)
        snapshot = args.accounts or config.accounts_snapshot
        account_source = SnapshotAccountSource(snapshot) if snapshot else None
        metrics = ScanMetrics(CollectorRegistry()) if args.metrics_port else None
        runner = ArbitrageRunner(config, venues, account_source, metrics)
    except CycleArbitrageError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return 1

    if metrics:
        metrics.start_server(args.metrics_port)

    if not args.json:
        print(format_venue_table(venues))
        print()

    iterations = 1 if args.once else args.iterations
    decimals = runner.start_token.decimals

    try:
        runner.run_loop(
            iterations=iterations,
            interval=args.interval,
            amount=args.amount,
            on_result=lambda result: print_result(result, decimals, args.json),
        )
    except KeyboardInterrupt:
        print("\n\n⏸ Stopped by user")
        return 0
    except ArithmeticOverflow as e:
        print(f"❌ Arithmetic overflow in {e.operation}: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
