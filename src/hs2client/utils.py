import logging
import uuid
from typing import List, Optional

from thrift.Thrift import TException

from TCLIService import ttypes

from hs2client.exc import OperationError

logger = logging.getLogger(__name__)

BIT_MASKS = [1, 2, 4, 8, 16, 32, 64, 128]

# Errors raised by the Thrift client when a request does not complete
TRANSPORT_ERRORS = (TException, OSError)

SERVER_ERROR_TRAILER = "-- Error caused from HiveServer2"


def _bound(min_x, max_x, x):
    """Bound x by [min_x, max_x]

    min_x or max_x being None means unbounded in that respective side.
    """
    if min_x is None and max_x is None:
        return x
    if min_x is None:
        return min(max_x, x)
    if max_x is None:
        return max(min_x, x)
    return min(max_x, max(min_x, x))


def guid_to_hex_id(guid: bytes) -> str:
    """Return a hexadecimal string instead of bytes

    Example:
        IN   b'\x01\xee\x1d)\xa4\x19\x1d\xb6\xa9\xc0\x8d\xf1\xfe\xbaB\xdd'
        OUT  '01ee1d29-a419-1db6-a9c0-8df1feba42dd'

    If conversion to hexadecimal fails, a string representation of the original
    bytes is returned
    """

    try:
        this_uuid = uuid.UUID(bytes=guid)
    except Exception as e:
        logger.debug("Unable to convert bytes to UUID: %r -- %s", guid, str(e))
        return str(guid)
    return str(this_uuid)


def operation_id(op_handle) -> Optional[str]:
    if op_handle is None or op_handle.operationId is None:
        return None
    return guid_to_hex_id(op_handle.operationId.guid)


def is_error_status(status) -> bool:
    return status is not None and status.statusCode in [
        ttypes.TStatusCode.ERROR_STATUS,
        ttypes.TStatusCode.INVALID_HANDLE_STATUS,
    ]


def format_server_error(status) -> str:
    """Join the primary error message and the diagnostic info lines of an error status"""
    info_messages: List[str] = status.infoMessages or []
    parts = [status.errorMessage or "unknown error"]
    if info_messages:
        parts.append("\n".join(info_messages))
    parts.append(SERVER_ERROR_TRAILER)
    return "\n\n".join(parts)


def check_response_for_error(method_name, response, op_handle=None):
    """Raise OperationError if the status envelope of `response` reports an error"""
    status = response.status
    if not is_error_status(status):
        return
    logger.error(
        "%s -> error from HiveServer2: %s %s",
        method_name,
        status.errorMessage,
        status.infoMessages,
    )
    raise OperationError(
        format_server_error(status),
        {
            "sql-state": status.sqlState,
            "error-code": status.errorCode,
            "diagnostic-info": status.infoMessages,
            "operation-id": operation_id(op_handle),
        },
    )


def null_mask(nulls: bytes, length: int) -> List[bool]:
    """Expand a TColumn nulls bitfield into one flag per value"""
    # The number of bits in nulls can be both larger or smaller than the number of
    # elements in the column, so take the minimum of both to iterate over.
    nulls = nulls or b""
    bound = min(length, len(nulls) * 8)
    mask = [False] * length
    for i in range(bound):
        if nulls[i >> 3] & BIT_MASKS[i & 0x7]:
            mask[i] = True
    return mask
