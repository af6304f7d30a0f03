import logging

from core.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = None) -> None:
    """Configure root logging for the API and the CLI scripts."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # Per-request lines from the HTTP client are too chatty at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
