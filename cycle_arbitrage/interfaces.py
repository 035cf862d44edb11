"""
Interfaces to the collaborators around the search core.

Account fetching and time are injected through lightweight protocols so the
runner can be driven by an RPC client, a recorded snapshot or test fixtures.
"""

import base64
import json
import time
from pathlib import Path
from typing import (
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Protocol,
    Sequence,
    Union,
    runtime_checkable,
)

from .exceptions import ConfigurationError

# RPC getMultipleAccounts accepts at most 100 keys per call
MAX_ACCOUNTS_PER_REQUEST = 99

AccountPayloads = Dict[str, Optional[bytes]]


@runtime_checkable
class AccountSource(Protocol):
    """Protocol for fetching raw account payloads."""

    def fetch_accounts(self, account_ids: Sequence[str]) -> AccountPayloads:
        """Return a payload (or None when absent) for every requested id."""
        ...


@runtime_checkable
class TimeProvider(Protocol):
    """Protocol for time-related operations."""

    def current_timestamp(self) -> float:
        """Get current Unix timestamp."""
        ...

    def sleep(self, duration: float) -> None:
        """Sleep for specified duration in seconds."""
        ...


class SystemTimeProvider:
    """Production time provider using system time."""

    def current_timestamp(self) -> float:
        return time.time()

    def sleep(self, duration: float) -> None:
        time.sleep(duration)


class StaticAccountSource:
    """In-memory account source; ids not present are reported as None."""

    def __init__(self, accounts: Optional[Dict[str, Optional[bytes]]] = None):
        self.accounts: Dict[str, Optional[bytes]] = dict(accounts or {})
        self.requests: List[List[str]] = []

    def set_account(self, account_id: str, data: Optional[bytes]):
        self.accounts[account_id] = data

    def fetch_accounts(self, account_ids: Sequence[str]) -> AccountPayloads:
        self.requests.append(list(account_ids))
        return {account_id: self.accounts.get(account_id) for account_id in account_ids}


def iter_chunks(items: Sequence[str], size: int = MAX_ACCOUNTS_PER_REQUEST):
    """Yield consecutive slices of at most size items."""
    for start in range(0, len(items), size):
        yield items[start : start + size]


class ChunkedAccountSource:
    """
    Splits a large request into pages for a size-limited fetcher.

    Args:
        fetch_page: Callable taking at most page_size ids and returning one
            payload (or None) per id, in request order
        page_size: Maximum ids per call
    """

    def __init__(
        self,
        fetch_page: Callable[[Sequence[str]], Sequence[Optional[bytes]]],
        page_size: int = MAX_ACCOUNTS_PER_REQUEST,
    ):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.fetch_page = fetch_page
        self.page_size = page_size

    def fetch_accounts(self, account_ids: Sequence[str]) -> AccountPayloads:
        payloads: AccountPayloads = {}
        for page in iter_chunks(list(account_ids), self.page_size):
            results = self.fetch_page(page)
            if len(results) != len(page):
                raise ValueError(
                    f"Fetcher returned {len(results)} payloads for {len(page)} ids"
                )
            payloads.update(zip(page, results))
        return payloads


def decode_rpc_payload(entry) -> Optional[bytes]:
    """
    Decode one entry of a getMultipleAccounts-style map.

    Accepts null, a [data, "base64"] pair, or an object with a "data" key
    holding such a pair.
    """
    if entry is None:
        return None
    if isinstance(entry, dict):
        entry = entry.get("data")
        if entry is None:
            return None
    if (
        not isinstance(entry, (list, tuple))
        or len(entry) != 2
        or entry[1] != "base64"
    ):
        raise ValueError(f"Unsupported account encoding: {entry!r}")
    return base64.b64decode(entry[0], validate=True)


class SnapshotAccountSource:
    """
    Account source backed by a recorded JSON snapshot.

    File format: {"<account id>": ["<base64 data>", "base64"] | null, ...}
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.accounts = StaticAccountSource(self._load())

    def _load(self) -> Dict[str, Optional[bytes]]:
        if not self.path.exists():
            raise ConfigurationError(f"Account snapshot not found: {self.path}")
        try:
            with open(self.path, "r") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in account snapshot {self.path}: {e}"
            ) from e
        if not isinstance(raw, dict):
            raise ConfigurationError(
                f"Account snapshot {self.path} must map account ids to payloads"
            )

        accounts = {}
        for account_id, entry in raw.items():
            try:
                accounts[account_id] = decode_rpc_payload(entry)
            except ValueError as e:
                raise ConfigurationError(
                    f"Bad payload for {account_id} in {self.path}: {e}",
                    details={"account": account_id},
                ) from e
        return accounts

    def fetch_accounts(self, account_ids: Sequence[str]) -> AccountPayloads:
        return self.accounts.fetch_accounts(account_ids)


def encode_rpc_payload(data: Optional[bytes]):
    """Inverse of decode_rpc_payload, for writing snapshots."""
    if data is None:
        return None
    return [base64.b64encode(data).decode(), "base64"]


def write_snapshot(path: Union[str, Path], accounts: Dict[str, Optional[bytes]]):
    with open(path, "w") as f:
        json.dump(
            {account_id: encode_rpc_payload(data) for account_id, data in accounts.items()},
            f,
            indent=2,
        )


def account_ids_for(venues: Iterable) -> List[str]:
    """Unique account ids declared by venues, in declaration order."""
    seen = {}
    for venue in venues:
        for account_id in venue.update_accounts():
            seen.setdefault(account_id, None)
    return list(seen)
