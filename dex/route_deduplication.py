"""
Opportunity fingerprint registry for one scan run.

A fingerprint is the ordered tuple of venue ids a cycle trades through. The
registry is threaded explicitly through every search of a run so a cycle
found at a large notional is not reported again when the halving policy
rediscovers it at a smaller one. It is never persisted.

A registry must not be shared by concurrent searches; give each parallel
search its own registry and merge() them afterwards.
"""

from dataclasses import dataclass
from typing import Dict, Iterable

from .types import Fingerprint


@dataclass
class FingerprintRecord:
    """First sighting of a fingerprint."""

    notional: int
    profit: int


class RouteDeduplicator:
    """
    Tracks fingerprints of opportunities already emitted in this run.
    """

    def __init__(self):
        self.seen_fingerprints: Dict[Fingerprint, FingerprintRecord] = {}
        self.duplicates_skipped = 0

    @staticmethod
    def create_fingerprint(venue_ids: Iterable[str]) -> Fingerprint:
        """
        Create fingerprint from the venue sequence of a cycle.

        Order matters: the same venues traversed in the opposite direction
        are a different trade and get a different fingerprint.
        """
        return tuple(venue_ids)

    def is_new(self, fingerprint: Fingerprint) -> bool:
        """Check a fingerprint; a repeat is counted as a skipped duplicate."""
        if fingerprint in self.seen_fingerprints:
            self.duplicates_skipped += 1
            return False
        return True

    def record(self, fingerprint: Fingerprint, notional: int = 0, profit: int = 0):
        """
        Record an emitted opportunity.

        Args:
            fingerprint: Venue sequence of the cycle
            notional: Notional at which it was first found
            profit: Profit at that notional
        """
        self.seen_fingerprints.setdefault(
            fingerprint, FingerprintRecord(notional=notional, profit=profit)
        )

    def merge(self, other: "RouteDeduplicator"):
        """Fold in fingerprints recorded by an independent search."""
        for fingerprint, record in other.seen_fingerprints.items():
            self.seen_fingerprints.setdefault(fingerprint, record)
        self.duplicates_skipped += other.duplicates_skipped

    def __contains__(self, fingerprint: Fingerprint) -> bool:
        return fingerprint in self.seen_fingerprints

    def __len__(self) -> int:
        return len(self.seen_fingerprints)

    def get_stats(self) -> Dict[str, int]:
        """Get current statistics."""
        return {
            "tracked_fingerprints": len(self.seen_fingerprints),
            "duplicates_skipped": self.duplicates_skipped,
        }
