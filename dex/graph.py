"""
Venue graph: which token pairs are tradable and through which venues.

Tokens are mapped to a dense index space in first-seen order. The graph is a
networkx MultiGraph over token indices; each parallel edge is keyed by venue
address and carries the Venue. The structure is undirected while quoting
through an edge stays direction-sensitive.

A graph is built once per state refresh and never mutated while a search
holds it; the runner swaps in a new generation instead.
"""

from typing import Dict, Iterable, Iterator, List, Optional

import networkx as nx

from cycle_arbitrage.exceptions import UnknownTokenError
from cycle_arbitrage.utils import get_logger, short_id

from .types import Token
from .venues import Venue

logger = get_logger(__name__)


class TokenIndex:
    """Dense token index with a reverse mint -> index map."""

    def __init__(self):
        self._tokens: List[Token] = []
        self._by_mint: Dict[str, int] = {}

    def add(self, token: Token) -> int:
        """Return the token's index, assigning the next one on first sight."""
        index = self._by_mint.get(token.mint)
        if index is not None:
            known = self._tokens[index]
            if known.decimals != token.decimals:
                logger.warning(
                    f"Mint {short_id(token.mint)} declared with {token.decimals} "
                    f"decimals, keeping {known.decimals}"
                )
            return index
        index = len(self._tokens)
        self._tokens.append(token)
        self._by_mint[token.mint] = index
        return index

    def index_of(self, mint: str) -> int:
        """
        Raises:
            UnknownTokenError: If the mint was never indexed
        """
        try:
            return self._by_mint[mint]
        except KeyError:
            raise UnknownTokenError(
                f"Mint {mint} is not in the token index", mint=mint
            ) from None

    def token(self, index: int) -> Token:
        if not 0 <= index < len(self._tokens):
            raise UnknownTokenError(f"No token at index {index}")
        return self._tokens[index]

    def mint(self, index: int) -> str:
        return self.token(index).mint

    @property
    def tokens(self) -> List[Token]:
        return list(self._tokens)

    def __contains__(self, mint: str) -> bool:
        return mint in self._by_mint

    def __len__(self) -> int:
        return len(self._tokens)


class VenueGraph:
    """
    Undirected multigraph of venues over token indices.
    """

    def __init__(self, token_index: Optional[TokenIndex] = None):
        self.tokens = token_index if token_index is not None else TokenIndex()
        self.graph = nx.MultiGraph()

    @classmethod
    def build(
        cls, venues: Iterable[Venue], token_index: Optional[TokenIndex] = None
    ) -> "VenueGraph":
        """
        Build a graph generation from a venue list.

        Venues that are not live, or whose two tokens share a mint, are
        skipped with a warning.

        Args:
            venues: Venues in load order
            token_index: Index to extend (keeps indices stable across
                generations); a fresh one when omitted

        Returns:
            New VenueGraph
        """
        venue_graph = cls(token_index)
        for venue in venues:
            if not venue.live:
                logger.warning(f"Skipping {venue.address}: not live")
                continue
            if venue.token_a.mint == venue.token_b.mint:
                logger.warning(
                    f"Skipping {venue.address}: needs two distinct mints, got "
                    f"{short_id(venue.token_a.mint)} twice"
                )
                continue
            venue_graph.add_venue(venue)
        logger.debug(
            f"Built graph with {venue_graph.venue_count} venues over "
            f"{venue_graph.token_count} tokens"
        )
        return venue_graph

    def add_venue(self, venue: Venue) -> bool:
        """
        Insert a venue on the edge between its two tokens.

        Returns:
            False if a venue with the same address is already on that edge
        """
        index_a = self.tokens.add(venue.token_a)
        index_b = self.tokens.add(venue.token_b)
        if self.graph.has_edge(index_a, index_b, key=venue.address):
            logger.warning(f"Skipping duplicate venue {venue.address}")
            return False
        self.graph.add_edge(index_a, index_b, key=venue.address, venue=venue)
        return True

    def neighbors(self, index: int) -> List[int]:
        """Token indices sharing at least one venue with index."""
        if index not in self.graph:
            return []
        return list(self.graph.neighbors(index))

    def venues_between(self, index_a: int, index_b: int) -> List[Venue]:
        """Venues on the edge between two tokens, in insertion order."""
        edges = self.graph.get_edge_data(index_a, index_b)
        if not edges:
            return []
        return [data["venue"] for data in edges.values()]

    def venues(self) -> Iterator[Venue]:
        for _, _, venue in self.graph.edges(data="venue"):
            yield venue

    def has_token(self, index: int) -> bool:
        return index in self.graph

    @property
    def venue_count(self) -> int:
        return self.graph.number_of_edges()

    @property
    def token_count(self) -> int:
        return self.graph.number_of_nodes()
