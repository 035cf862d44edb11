"""
Depth-first cycle search over a venue graph.

From a start token the search walks every venue of every edge, threading the
quoted amount hop by hop. A path closes when it returns to the start token
after at least two hops; closed paths with positive profit and an unseen
fingerprint are emitted as opportunities. The walk is exhaustive and a pure
function of the graph snapshot, the inputs and the fingerprint registry.
"""

from typing import Iterable, List, Optional

from cycle_arbitrage.exceptions import VenueError
from cycle_arbitrage.utils import get_logger

from .graph import VenueGraph
from .route_deduplication import RouteDeduplicator
from .types import Opportunity, SearchPath

logger = get_logger(__name__)


class CycleSearcher:
    """
    Enumerates profitable cycles through a VenueGraph generation.

    Attributes:
        graph: Graph snapshot searched by every call
        pruned_branches: Branches dropped on a venue quoting error, summed
            over all calls
    """

    def __init__(self, graph: VenueGraph):
        self.graph = graph
        self.pruned_branches = 0

    def search(
        self,
        start_index: int,
        amount_in: int,
        max_hops: int,
        dedup: RouteDeduplicator,
        notional: Optional[int] = None,
    ) -> List[Opportunity]:
        """
        Find every profitable, not yet fingerprinted cycle from start_index.

        Args:
            start_index: Token index the cycle starts and ends at
            amount_in: Amount carried into the first hop
            max_hops: Longest cycle considered; below 2 nothing can close
            dedup: Fingerprint registry shared across the searches of a run
            notional: Amount committed before the process fee; profit is
                measured against it (defaults to amount_in)

        Returns:
            Opportunities in discovery order (unsorted)

        Raises:
            UnknownTokenError: If start_index is not in the token index
            ArithmeticOverflow: If an amount leaves the u128 range
        """
        self.graph.tokens.token(start_index)
        if notional is None:
            notional = amount_in

        found: List[Opportunity] = []
        self._walk(
            SearchPath.start(start_index, amount_in), max_hops, notional, dedup, found
        )
        return found

    def _walk(
        self,
        path: SearchPath,
        max_hops: int,
        notional: int,
        dedup: RouteDeduplicator,
        found: List[Opportunity],
    ):
        tokens = self.graph.tokens
        start = path.tokens[0]
        current = path.current_token
        mint_in = tokens.mint(current)

        for neighbor in self.graph.neighbors(current):
            mint_out = tokens.mint(neighbor)
            for venue in self.graph.venues_between(current, neighbor):
                if path.contains_venue(venue.address):
                    continue
                if not venue.can_trade(mint_in, mint_out):
                    continue

                try:
                    amount_out = venue.quote(path.current_amount, mint_in, mint_out)
                except VenueError as e:
                    self.pruned_branches += 1
                    logger.debug(f"Pruned branch at {venue.address}: {e}")
                    continue

                next_path = path.extend(neighbor, venue.address, amount_out)

                if neighbor == start:
                    # Closing always ends the branch, profitable or not
                    if next_path.is_cycle:
                        self._close(next_path, notional, dedup, found)
                    continue

                if amount_out > 0 and next_path.hops < max_hops:
                    self._walk(next_path, max_hops, notional, dedup, found)

    def _close(
        self,
        path: SearchPath,
        notional: int,
        dedup: RouteDeduplicator,
        found: List[Opportunity],
    ):
        profit = path.current_amount - notional
        if profit <= 0:
            return

        fingerprint = dedup.create_fingerprint(path.venue_ids)
        if not dedup.is_new(fingerprint):
            return
        dedup.record(fingerprint, notional=notional, profit=profit)

        tokens = self.graph.tokens
        found.append(
            Opportunity(
                path=path,
                mints=tuple(tokens.mint(index) for index in path.tokens),
                notional=notional,
                amount_in=path.amounts[0],
                amount_out=path.current_amount,
                profit=profit,
            )
        )


def rank_opportunities(opportunities: Iterable[Opportunity]) -> List[Opportunity]:
    """Sort by profit descending, then by fewer hops."""
    return sorted(opportunities, key=lambda o: (-o.profit, o.hop_count))


def select_best(opportunities: Iterable[Opportunity]) -> Optional[Opportunity]:
    ranked = rank_opportunities(opportunities)
    return ranked[0] if ranked else None
