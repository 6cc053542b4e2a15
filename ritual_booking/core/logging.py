import logging

from ritual_booking.core.config import settings
from ritual_booking.core.request_context import request_id_ctx_var

LOG_FORMAT = "%(asctime)s %(levelname)s request_id=%(request_id)s %(name)s %(message)s"

# Request lines are already emitted by the observability middleware.
QUIET_LOGGERS = ("uvicorn.access", "httpx")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx_var.get()
        return True


def setup_logging(level: str | int | None = None) -> None:
    """Install one stream handler on the root logger.

    Used by the API process and by Celery workers, so sweeper runs and HTTP
    requests share the same line format. Calling it twice is a no-op.
    """
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    root_logger.setLevel(level if level is not None else settings.log_level.upper())
    root_logger.addHandler(handler)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
