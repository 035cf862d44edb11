"""
Root logging setup for the scan CLI.

Usage:
    import logging_config
    logging_config.setup()
"""

import logging
import sys

PROJECT_PACKAGES = ("dex", "cycle_arbitrage")
LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(message)s"


def _project_loggers():
    for name in list(logging.root.manager.loggerDict):
        if name.split(".")[0] in PROJECT_PACKAGES:
            yield logging.getLogger(name)


def setup(level=logging.INFO):
    """
    Send all scan output to stdout as "HH:MM:SS | LEVEL | message".

    Loggers created through utils.get_logger carry their own handler; those
    handlers are dropped here so each record is printed once, by the root.
    """
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%H:%M:%S"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(level)

    logging.getLogger("__main__").setLevel(level)
    for project_logger in _project_loggers():
        project_logger.handlers.clear()
        project_logger.setLevel(level)


def setup_minimal():
    """Warnings and errors only (refresh failures, skipped venues)."""
    setup(level=logging.WARNING)


def setup_debug():
    """
    Verbose logging for debugging.
    Shows pruned search branches and graph builds.
    """
    setup(level=logging.DEBUG)
