"""
Utility functions and helpers for the RAG storage adapters.
Includes logging setup and batching helpers.
"""

import logging
import os
import sys
from datetime import datetime
from typing import List, Sequence, TypeVar

from config.settings import settings

T = TypeVar("T")

def setup_logging():
    """Set up logging configuration for the application."""
    # Create logs directory if it doesn't exist
    os.makedirs(settings.LOG_DIR, exist_ok=True)

    class UnicodeStreamHandler(logging.StreamHandler):
        def emit(self, record):
            try:
                super().emit(record)
            except UnicodeEncodeError:
                # Last resort: replace problematic characters
                msg = self.format(record)
                safe_msg = msg.encode('utf-8', errors='replace').decode('utf-8')
                self.stream.write(safe_msg + self.terminator)
                self.flush()

    log_file = os.path.join(settings.LOG_DIR, f"rag_storage_{datetime.now().strftime('%Y%m%d')}.log")
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper()),
        format=settings.LOG_FORMAT,
        datefmt=settings.LOG_DATE_FORMAT,
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            UnicodeStreamHandler(sys.stdout)
        ],
        force=True
    )

    # Suppress some noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("neo4j").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info("Logging system initialized")
    return log_file

def chunk_array(items: Sequence[T], chunk_size: int) -> List[List[T]]:
    """
    Split items into contiguous chunks of at most chunk_size elements.

    Args:
        items: Items to split
        chunk_size: Maximum chunk length, must be positive

    Returns:
        List of chunks in input order
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [list(items[i:i + chunk_size]) for i in range(0, len(items), chunk_size)]
