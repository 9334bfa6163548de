import logging

from config import DEFAULT_LOG_FILE, DEFAULT_LOG_LEVEL


def setup_logging(log_file: str = DEFAULT_LOG_FILE, level: str = DEFAULT_LOG_LEVEL) -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(threadName)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(),
        ],
    )
