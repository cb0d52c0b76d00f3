import logging

from app.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(config: Settings) -> None:
    """
    Configure root logging once at startup.

    Modules log through logging.getLogger(__name__). Identity events log
    ids only; names and phone numbers stay out of the logs.
    """
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    # SQL echo is noisy and would print bound names
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
