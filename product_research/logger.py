"""
Logging configuration for the product research pipeline.
"""

import logging
import sys

from .config import config

# Create logger
logger = logging.getLogger('product_research')
logger.setLevel(getattr(logging, str(config.LOG_LEVEL).upper(), logging.INFO))

if not logger.handlers:
    # Console handler with formatting
    console = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        '%(asctime)s | %(levelname)-5s | %(name)s | %(message)s',
        datefmt='%H:%M:%S'
    )
    console.setFormatter(formatter)
    logger.addHandler(console)


# Component loggers
def get_logger(name):
    """Get a child logger for a specific component."""
    return logger.getChild(name)
