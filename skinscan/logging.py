import logging
from skinscan.config import settings
from skinscan.utils.logging_filter import RequestIdFilter

def configure_logging(level: str | None = None) -> None:
    level_name = (level or settings.log_level).upper()

    handler = logging.StreamHandler()
    handler.setLevel(getattr(logging, level_name, logging.INFO))
    handler.addFilter(RequestIdFilter())
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s request_id=%(request_id)s %(message)s"
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.handlers = [handler]

    # httpx logs every request at INFO; the cascade already logs each attempt
    logging.getLogger("httpx").setLevel(logging.WARNING)
