"""
Logging setup for the server and CLI.
"""
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure the root logger.

    Args:
        level: Level name, e.g. "INFO" or "DEBUG"
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    # web3 and urllib3 are chatty at DEBUG
    for noisy in ("web3", "urllib3"):
        logging.getLogger(noisy).setLevel(max(numeric, logging.INFO))
