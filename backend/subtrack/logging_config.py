import logging

from subtrack.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger so all subtrack.* loggers output to stderr."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
        force=True,
    )
    # httpx logs every request at INFO; the delivery job already does that.
    logging.getLogger("httpx").setLevel(logging.WARNING)
