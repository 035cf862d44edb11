"""
Prometheus metrics for cycle scans.

Exposes search, refresh and graph statistics for monitoring and alerting.
"""

import logging
from typing import Any, Dict, Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

logger = logging.getLogger(__name__)


class ScanMetrics:
    """
    Scan metrics collection and exposure

    Provides Prometheus-compatible metrics for:
    - Search runs and their duration
    - Opportunities found
    - Venue refresh failures and pruned quote branches
    - Graph size per generation
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics with custom registry or default"""
        self.registry = registry or REGISTRY
        self._initialize_metrics()

    def _initialize_metrics(self):
        """Initialize all Prometheus metrics"""

        # === SEARCH METRICS ===
        self.searches_total = Counter(
            "cycle_arbitrage_searches_total",
            "Total number of cycle searches run",
            registry=self.registry,
        )

        self.opportunities_found_total = Counter(
            "cycle_arbitrage_opportunities_found_total",
            "Total opportunities emitted by searches",
            registry=self.registry,
        )

        self.pruned_branches_total = Counter(
            "cycle_arbitrage_pruned_branches_total",
            "Search branches dropped on a venue quoting error",
            registry=self.registry,
        )

        self.search_duration_seconds = Histogram(
            "cycle_arbitrage_search_duration_seconds",
            "Duration of one search call",
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
            registry=self.registry,
        )

        self.last_best_profit = Gauge(
            "cycle_arbitrage_last_best_profit",
            "Profit of the best opportunity of the last scan (raw units)",
            registry=self.registry,
        )

        # === REFRESH METRICS ===
        self.refresh_failures_total = Counter(
            "cycle_arbitrage_refresh_failures_total",
            "Venue refresh failures",
            ["reason"],
            registry=self.registry,
        )

        self.live_venues = Gauge(
            "cycle_arbitrage_live_venues",
            "Venues in the current graph generation",
            registry=self.registry,
        )

        self.tokens = Gauge(
            "cycle_arbitrage_tokens",
            "Tokens in the current graph generation",
            registry=self.registry,
        )

    def record_search(self, duration: float, found: int, pruned: int = 0):
        self.searches_total.inc()
        self.search_duration_seconds.observe(duration)
        if found:
            self.opportunities_found_total.inc(found)
        if pruned:
            self.pruned_branches_total.inc(pruned)

    def record_refresh_failure(self, reason: str):
        self.refresh_failures_total.labels(reason=reason).inc()

    def update_graph(self, venue_count: int, token_count: int):
        self.live_venues.set(venue_count)
        self.tokens.set(token_count)

    def update_best_profit(self, profit: int):
        self.last_best_profit.set(profit)

    def snapshot(self) -> Dict[str, Any]:
        """Current values for log lines"""
        sample = self.registry.get_sample_value
        return {
            "searches": sample("cycle_arbitrage_searches_total") or 0.0,
            "opportunities": sample("cycle_arbitrage_opportunities_found_total") or 0.0,
            "pruned_branches": sample("cycle_arbitrage_pruned_branches_total") or 0.0,
            "live_venues": sample("cycle_arbitrage_live_venues") or 0.0,
            "tokens": sample("cycle_arbitrage_tokens") or 0.0,
            "last_best_profit": sample("cycle_arbitrage_last_best_profit") or 0.0,
        }

    def start_server(self, port: int, host: str = "0.0.0.0"):
        """Serve /metrics over HTTP from a background thread"""
        start_http_server(port, addr=host, registry=self.registry)
        logger.info(f"Metrics server started on {host}:{port}")
