import logging
from skinscan.utils.request_context import get_request_id

class RequestIdFilter(logging.Filter):
    """Stamps every record with the request id of the current context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True
