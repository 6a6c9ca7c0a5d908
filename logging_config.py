import logging
import sys

from config import LOG_LEVEL


def setup_logging(level=LOG_LEVEL):
    """
    Configures the root logger for the application.
    Call once at startup, before the app starts serving.
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - [%(levelname)s] - %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
