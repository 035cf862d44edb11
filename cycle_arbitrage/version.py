"""Version information for the cycle arbitrage system."""

__version__ = "0.1.0"
__version_info__ = tuple(int(i) for i in __version__.split("."))
