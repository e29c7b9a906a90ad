# pbvault/utils/logger.py

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_configured = False


def setup_logger(level="INFO") -> logging.Logger:
    """Configure root logging once; later calls only adjust the level."""
    global _configured
    root = logging.getLogger()
    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        _configured = True
    root.setLevel(level.upper() if isinstance(level, str) else level)
    return logging.getLogger("pbvault")
