import logging
from typing import Optional

from feeledger.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Set the root log level and format. Safe to call more than once."""
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)
