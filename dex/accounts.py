"""
Raw account payload codecs.

Layouts (all little-endian):
- SPL token account: 165 bytes; mint at 0..32, owner at 32..64, amount u64
  at offset 64.
- Market account: base_lot_size u64, quote_lot_size u64.
- Book side account: u32 order count, then per order price u64,
  quantity u64, order_id u128.

Encoders exist so snapshots and tests can build payloads the decoders accept.
"""

import struct
from typing import Iterable, List, Mapping, Optional, Tuple

import base58

from cycle_arbitrage.exceptions import MalformedAccountData, MissingAccount

from .adapters.orderbook import RestingOrder

AccountBatch = Mapping[str, Optional[bytes]]

PUBKEY_LEN = 32
TOKEN_ACCOUNT_LEN = 165
TOKEN_MINT_OFFSET = 0
TOKEN_OWNER_OFFSET = 32
TOKEN_AMOUNT_OFFSET = 64

MARKET_LAYOUT = struct.Struct("<QQ")
BOOK_HEADER = struct.Struct("<I")
BOOK_ENTRY = struct.Struct("<QQ16s")


def mint_to_bytes(mint: str) -> bytes:
    """
    Decode a base58 address into its 32-byte key.

    Raises:
        ValueError: If the string is not base58 or not 32 bytes long
    """
    raw = base58.b58decode(mint)
    if len(raw) != PUBKEY_LEN:
        raise ValueError(f"Address {mint} decodes to {len(raw)} bytes, expected 32")
    return raw


def require_account(batch: AccountBatch, account_id: str) -> bytes:
    """Fetch one payload from a refresh batch, failing on absence."""
    data = batch.get(account_id)
    if data is None:
        raise MissingAccount(
            f"Account {account_id} missing from refresh batch", account=account_id
        )
    return data


def decode_token_amount(data: bytes, expected_mint: str, account: str = "") -> int:
    """
    Read the balance of an SPL token account.

    Raises:
        MalformedAccountData: On a wrong length or a mint other than expected
    """
    if len(data) != TOKEN_ACCOUNT_LEN:
        raise MalformedAccountData(
            f"Token account {account} is {len(data)} bytes, expected "
            f"{TOKEN_ACCOUNT_LEN}",
            account=account,
        )
    mint = base58.b58encode(
        data[TOKEN_MINT_OFFSET : TOKEN_MINT_OFFSET + PUBKEY_LEN]
    ).decode()
    if mint != expected_mint:
        raise MalformedAccountData(
            f"Token account {account} holds mint {mint}, expected {expected_mint}",
            account=account,
            details={"mint": mint, "expected_mint": expected_mint},
        )
    return struct.unpack_from("<Q", data, TOKEN_AMOUNT_OFFSET)[0]


def encode_token_account(mint: str, owner: str, amount: int) -> bytes:
    """Build a 165-byte SPL token account payload (state initialized)."""
    data = bytearray(TOKEN_ACCOUNT_LEN)
    data[TOKEN_MINT_OFFSET : TOKEN_MINT_OFFSET + PUBKEY_LEN] = mint_to_bytes(mint)
    data[TOKEN_OWNER_OFFSET : TOKEN_OWNER_OFFSET + PUBKEY_LEN] = mint_to_bytes(owner)
    struct.pack_into("<Q", data, TOKEN_AMOUNT_OFFSET, amount)
    data[108] = 1
    return bytes(data)


def decode_market(data: bytes, account: str = "") -> Tuple[int, int]:
    """
    Read (base_lot_size, quote_lot_size) from a market account.

    Raises:
        MalformedAccountData: On a wrong length or a zero lot size
    """
    if len(data) != MARKET_LAYOUT.size:
        raise MalformedAccountData(
            f"Market account {account} is {len(data)} bytes, expected "
            f"{MARKET_LAYOUT.size}",
            account=account,
        )
    base_lot_size, quote_lot_size = MARKET_LAYOUT.unpack(data)
    if base_lot_size == 0 or quote_lot_size == 0:
        raise MalformedAccountData(
            f"Market account {account} has a zero lot size", account=account
        )
    return base_lot_size, quote_lot_size


def encode_market(base_lot_size: int, quote_lot_size: int) -> bytes:
    return MARKET_LAYOUT.pack(base_lot_size, quote_lot_size)


def decode_book_side(data: bytes, account: str = "") -> List[RestingOrder]:
    """
    Read the resting orders of one book side.

    Raises:
        MalformedAccountData: On a size that does not match the order count,
            or an order with zero price or quantity
    """
    if len(data) < BOOK_HEADER.size:
        raise MalformedAccountData(
            f"Book account {account} is too short for its header", account=account
        )
    (count,) = BOOK_HEADER.unpack_from(data, 0)
    expected = BOOK_HEADER.size + count * BOOK_ENTRY.size
    if len(data) != expected:
        raise MalformedAccountData(
            f"Book account {account} is {len(data)} bytes, expected {expected} "
            f"for {count} orders",
            account=account,
        )

    orders = []
    for price, quantity, raw_id in BOOK_ENTRY.iter_unpack(data[BOOK_HEADER.size :]):
        if price == 0 or quantity == 0:
            raise MalformedAccountData(
                f"Book account {account} holds an empty order", account=account
            )
        orders.append(
            RestingOrder(price, quantity, int.from_bytes(raw_id, "little"))
        )
    return orders


def encode_book_side(orders: Iterable[RestingOrder]) -> bytes:
    orders = list(orders)
    parts = [BOOK_HEADER.pack(len(orders))]
    for order in orders:
        parts.append(
            BOOK_ENTRY.pack(
                order.price, order.quantity, order.order_id.to_bytes(16, "little")
            )
        )
    return b"".join(parts)
