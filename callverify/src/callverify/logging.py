import logging
import sys

def configure_logging(level=logging.INFO, verbose: bool = False):
    """Configure logging to stderr"""
    handler = logging.StreamHandler(sys.stderr)
    formatter = logging.Formatter('[%(levelname)s] %(message)s')
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else level)

    # Remove existing handlers to avoid duplicates
    if root_logger.handlers:
        root_logger.handlers.clear()

    root_logger.addHandler(handler)

    # Playwright drives an asyncio loop that is chatty at DEBUG
    for noisy in ("asyncio", "playwright"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
