import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Applies the process-wide log format and level."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # SQL echo is controlled separately from the application level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
