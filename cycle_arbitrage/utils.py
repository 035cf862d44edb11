"""
Common utilities and helper functions for the cycle arbitrage system.

Logging setup and human-readable formatting of raw on-chain amounts.
"""

import logging
from decimal import Decimal
from typing import Optional, Union


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    elif seconds < 60:
        return f"{seconds:.2f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


def format_amount(raw_amount: int, decimals: Optional[int]) -> str:
    """
    Render a raw integer token amount using the token's decimal scale.

    Args:
        raw_amount: Amount in the token's smallest unit
        decimals: Decimal scale of the token (None leaves the raw value)

    Returns:
        String such as "1.017037" for 1_017_037 at 6 decimals
    """
    if decimals is None:
        return str(raw_amount)
    scaled = Decimal(raw_amount).scaleb(-decimals)
    return f"{scaled:.{decimals}f}"


def short_id(identifier: str, width: int = 4) -> str:
    """Shorten a base58 identifier for log lines (e.g. 'EPjF..Dt1v')."""
    if len(identifier) <= width * 2 + 2:
        return identifier
    return f"{identifier[:width]}..{identifier[-width:]}"


def get_logger(name: str, level: Union[str, int] = logging.INFO) -> logging.Logger:
    """
    Get a logger that writes "time | level | module:line | message" lines.

    The level and handler are only set the first time a logger is seen.
    logging_config.setup() later routes these loggers through the root
    handler.

    Args:
        name: Logger name (typically __name__)
        level: Logging level

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        logger.addHandler(handler)

    return logger
