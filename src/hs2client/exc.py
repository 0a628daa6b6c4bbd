import json
import logging

logger = logging.getLogger(__name__)


class Error(Exception):
    """Base class for hs2client exceptions.
    `message`: An optional user-friendly error message. It should be short, actionable and stable
    `context`: Optional extra context about the error. MUST be JSON serializable
    """

    def __init__(self, message=None, context=None, *args, **kwargs):
        super().__init__(message, *args, **kwargs)
        self.message = message
        self.context = context or {}

    def __str__(self):
        return self.message

    def message_with_context(self):
        return self.message + ": " + json.dumps(self.context, default=str)


class ExecutionError(Error):
    """Thrown if a statement could not be submitted because the RPC itself failed,
    i.e. the request never reached the service.
    Its context will have the following keys:
    "original-exception": The Python level original exception
    """

    pass


class OperationError(Error):
    """Thrown if the service reported an error status for a request, or if an
    operation was attempted without the state it requires (no operation handle,
    no log retrieval strategy).
    Its context may have the following keys:
    "sql-state": The SQL state reported by the service
    "error-code": The error code reported by the service
    "diagnostic-info": The info lines attached to the error status
    "operation-id": The Thrift guid of the operation (if available)
    """

    pass


class FetchError(Error):
    """Thrown if a page returned by the service could not be decoded, for example when
    a column carries a different value container than the one cached for the operation.
    """

    pass
