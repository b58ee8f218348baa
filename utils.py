# utils.py
import logging
import os
from datetime import datetime

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
VERBOSITY_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG, TRACE]


# wire format: one UTF-8 line per message
def encode_line(text: str) -> bytes:
    return (text + "\n").encode('utf-8')


def decode_line(record: bytes) -> str:
    if record.endswith(b"\n"):
        record = record[:-1]
        if record.endswith(b"\r"):
            record = record[:-1]
    return record.decode('utf-8', errors='replace')


def level_for_verbosity(count: int) -> int:
    return VERBOSITY_LEVELS[max(0, min(count, len(VERBOSITY_LEVELS) - 1))]


def setup_logging(verbosity: int = 0, log_dir: str = "logs") -> str:
    """Send log records to a fresh timestamped file and return its path."""
    os.makedirs(log_dir, exist_ok=True)
    log_filename = os.path.join(log_dir, f"log_{datetime.now().strftime('%Y%m%d_%H%M%S')}.report")
    level = level_for_verbosity(verbosity)

    logging.basicConfig(
        filename=log_filename,
        filemode='w',
        level=level,
        format=LOG_FORMAT,
        force=True
    )
    logging.debug(f"Logging level set to {logging.getLevelName(level)}")
    return log_filename
