"""Logging filter that stamps records with the current request context.

Add ``RequestIdFilter`` to a handler and formatters can reference
``%(request_id)s`` and ``%(actor_role)s``; both fall back to ``"-"`` outside
of a request (management commands, startup).
"""

from logging import Filter, LogRecord

from .middleware import ACTOR_ROLE_CTX, REQUEST_ID_CTX


class RequestIdFilter(Filter):
    def filter(self, record: LogRecord) -> bool:
        record.request_id = REQUEST_ID_CTX.get()
        record.actor_role = ACTOR_ROLE_CTX.get()
        return True
