"""
Scan runner: refresh venue state, rebuild the graph, search with halving.

Each refresh builds a new VenueGraph generation; searches keep the
generation they started with. One RouteDeduplicator is threaded through all
halving iterations of a run so a cycle is reported once per run.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from cycle_arbitrage.config_schema import ScanConfig
from cycle_arbitrage.exceptions import MalformedAccountData, VenueError
from cycle_arbitrage.interfaces import (
    AccountSource,
    SystemTimeProvider,
    TimeProvider,
    account_ids_for,
)
from cycle_arbitrage.metrics import ScanMetrics
from cycle_arbitrage.utils import format_duration, get_logger, short_id

from .accounts import decode_token_amount
from .graph import TokenIndex, VenueGraph
from .opportunity_math import (
    calculate_fee_amount,
    compute_opportunity_breakdown,
    meets_threshold,
)
from .route_deduplication import RouteDeduplicator
from .search import CycleSearcher, select_best
from .types import Opportunity
from .venues import Venue

logger = get_logger(__name__)


@dataclass
class ScanResult:
    """
    Outcome of one search_with_halving() run.

    Attributes:
        best: Best opportunity clearing the profit threshold, if any
        opportunities: Every opportunity emitted, across all iterations
        notionals: Notionals searched, in order
        generation: Graph generation the run searched
        duration: Wall time of the run in seconds
    """

    best: Optional[Opportunity] = None
    opportunities: List[Opportunity] = field(default_factory=list)
    notionals: List[int] = field(default_factory=list)
    generation: int = 0
    duration: float = 0.0

    @property
    def found(self) -> bool:
        return self.best is not None


class ArbitrageRunner:
    """
    Drives refresh and search for one start token.
    """

    def __init__(
        self,
        config: ScanConfig,
        venues: Sequence[Venue],
        account_source: Optional[AccountSource] = None,
        metrics: Optional[ScanMetrics] = None,
    ):
        """
        Initialize runner and build the first graph generation.

        Args:
            config: Validated scan configuration
            venues: Venues in load order (defines token index order)
            account_source: Source of refresh batches; without one the
                venues keep their initial state
            metrics: Optional Prometheus metrics sink

        Raises:
            UnknownTokenError: If the start mint is on no venue
        """
        self.config = config
        self.settings = config.search
        self.venues = list(venues)
        self.account_source = account_source
        self.metrics = metrics

        self.token_index = TokenIndex()
        for venue in self.venues:
            self.token_index.add(venue.token_a)
            self.token_index.add(venue.token_b)
        self.start_index = self.token_index.index_of(self.settings.start_mint)
        self.start_token = self.token_index.token(self.start_index)

        self.owner_balance: Optional[int] = None
        self.generation = 0
        self.graph = self._build_graph()

    def _build_graph(self) -> VenueGraph:
        graph = VenueGraph.build(self.venues, self.token_index)
        self.generation += 1
        if self.metrics:
            self.metrics.update_graph(graph.venue_count, graph.token_count)
        return graph

    def account_ids(self) -> List[str]:
        ids = account_ids_for(self.venues)
        owner = self.config.owner_token_account
        if owner and owner not in ids:
            ids.append(owner)
        return ids

    def refresh(self) -> VenueGraph:
        """
        Fetch one batch for every declared account and swap in a new graph.

        Venue-local refresh failures are logged and counted; the venue is
        left out of the new generation.

        Returns:
            The new graph generation
        """
        if self.account_source is None:
            self.graph = self._build_graph()
            return self.graph

        batch = self.account_source.fetch_accounts(self.account_ids())

        failures = 0
        for venue in self.venues:
            try:
                venue.refresh(batch)
            except VenueError as e:
                failures += 1
                logger.warning(f"Refresh failed for {venue.address}: {e}")
                if self.metrics:
                    self.metrics.record_refresh_failure(type(e).__name__)

        self._refresh_owner_balance(batch)
        self.graph = self._build_graph()
        logger.info(
            f"Generation {self.generation}: {self.graph.venue_count} venues live, "
            f"{failures} refresh failures"
        )
        return self.graph

    def _refresh_owner_balance(self, batch):
        account = self.config.owner_token_account
        if not account:
            return
        data = batch.get(account)
        if data is None:
            logger.warning(f"Owner token account {account} missing from batch")
            self.owner_balance = None
            return
        try:
            self.owner_balance = decode_token_amount(
                data, self.start_token.mint, account
            )
        except MalformedAccountData as e:
            logger.warning(f"Cannot read owner balance: {e}")
            self.owner_balance = None

    def search_with_halving(self, available_amount: int) -> ScanResult:
        """
        Search at the available amount, halving until something clears.

        Each iteration takes the process fee off the notional, searches the
        current graph generation and stops at the first iteration whose
        opportunities include one at or above min_profit_bps. The loop also
        stops after max_halvings iterations or once the notional drops below
        min_swap_amount.

        Args:
            available_amount: Raw amount of the start token to commit

        Returns:
            ScanResult with the best qualifying opportunity (if any)
        """
        settings = self.settings
        graph = self.graph
        searcher = CycleSearcher(graph)
        dedup = RouteDeduplicator()
        result = ScanResult(generation=self.generation)
        started = time.perf_counter()

        notional = available_amount
        for _ in range(settings.max_halvings):
            if notional < settings.min_swap_amount or notional <= 0:
                logger.debug(
                    f"Notional {notional} below minimum {settings.min_swap_amount}"
                )
                break

            amount_in = notional - calculate_fee_amount(notional, settings.fee_pct)
            result.notionals.append(notional)

            search_started = time.perf_counter()
            pruned_before = searcher.pruned_branches
            found = searcher.search(
                self.start_index, amount_in, settings.max_hops, dedup, notional=notional
            )
            if self.metrics:
                self.metrics.record_search(
                    time.perf_counter() - search_started,
                    len(found),
                    searcher.pruned_branches - pruned_before,
                )
            result.opportunities.extend(found)

            qualifying = [o for o in found if meets_threshold(o, settings.min_profit_bps)]
            if qualifying:
                result.best = select_best(qualifying)
                break
            notional //= 2

        result.duration = time.perf_counter() - started
        self._report(result)
        return result

    def _report(self, result: ScanResult):
        if result.best is None:
            logger.info(
                f"No opportunity after {len(result.notionals)} notionals "
                f"({format_duration(result.duration)})"
            )
            return

        breakdown = compute_opportunity_breakdown(
            result.best, self.start_token.decimals
        )
        route = " -> ".join(short_id(v) for v in result.best.fingerprint)
        logger.info(f"Opportunity via {route}: {breakdown.format_log()}")
        if self.metrics:
            self.metrics.update_best_profit(result.best.profit)

    def run_once(self, amount: Optional[int] = None) -> ScanResult:
        """
        Refresh and search once.

        The amount defaults to the owner's token balance, then to the
        configured notional.
        """
        self.refresh()
        if amount is None:
            amount = (
                self.owner_balance
                if self.owner_balance is not None
                else self.settings.notional
            )
        return self.search_with_halving(amount)

    def run_loop(
        self,
        iterations: Optional[int] = None,
        interval: Optional[float] = None,
        amount: Optional[int] = None,
        on_result: Optional[Callable[[ScanResult], None]] = None,
        time_provider: Optional[TimeProvider] = None,
    ) -> int:
        """
        Repeat run_once(), sleeping between scans.

        Args:
            iterations: Number of scans (None runs until interrupted)
            interval: Seconds between scans (defaults to the configured one)
            amount: Fixed notional for every scan
            on_result: Callback receiving each ScanResult
            time_provider: Clock used for sleeping

        Returns:
            Number of scans completed
        """
        clock = time_provider or SystemTimeProvider()
        if interval is None:
            interval = self.config.refresh_interval_sec

        completed = 0
        while iterations is None or completed < iterations:
            result = self.run_once(amount)
            completed += 1
            if on_result:
                on_result(result)
            if iterations is not None and completed >= iterations:
                break
            clock.sleep(interval)
        return completed
