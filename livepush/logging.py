"""Root logging for the API process; background dispatch runs log through the same handlers."""
import logging
import sys

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: int | str = logging.INFO) -> None:
    logging.basicConfig(level=level, format=DEFAULT_FORMAT, stream=sys.stdout, force=True)
    # uvicorn configures its own loggers unless started with log_config=None
    for name in ("uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
