from collections import namedtuple
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from TCLIService import ttypes


class OperationState(Enum):
    """
    Enum mirroring the execution states a HiveServer2 operation reports through
    GetOperationStatus.

    Attributes:
        INITIALIZED: Operation accepted but not yet scheduled
        PENDING: Operation is queued on the server
        RUNNING: Operation is currently executing
        FINISHED: Operation completed successfully
        CANCELED: Operation was cancelled before completion
        CLOSED: Operation has been closed
        ERROR: Operation failed
        TIMEDOUT: Operation exceeded a server side timeout
        UNKNOWN: The server could not determine the state
    """

    INITIALIZED = "INITIALIZED"
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    FINISHED = "FINISHED"
    CANCELED = "CANCELED"
    CLOSED = "CLOSED"
    ERROR = "ERROR"
    TIMEDOUT = "TIMEDOUT"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_thrift_state(
        cls, state: ttypes.TOperationState
    ) -> Optional["OperationState"]:
        """
        Convert a Thrift TOperationState to an OperationState.

        The generated IDL spells the unknown state UKNOWN_STATE; it maps to UNKNOWN.
        Returns None if the value is not a TOperationState at all.
        """
        name = ttypes.TOperationState._VALUES_TO_NAMES.get(state)
        if name is None:
            return None
        name = name[:-6] if name.endswith("_STATE") else name
        if name == "UKNOWN":
            return cls.UNKNOWN
        return cls.__members__.get(name)

    @property
    def is_terminal(self) -> bool:
        return self in (
            OperationState.FINISHED,
            OperationState.CANCELED,
            OperationState.CLOSED,
            OperationState.ERROR,
            OperationState.TIMEDOUT,
        )


class FetchType:
    """Values of TFetchResultsReq.fetchType"""

    ROW = 0
    LOG = 1


class LogStrategy:
    """Names of the supported log retrieval strategies"""

    # Dedicated GetLog RPC, answered by engines that kept the call (e.g. CDH, Impala)
    GET_LOG = "get_log"
    # FetchResults with fetchType LOG, answered by Hive 0.14 and later
    FETCH_RESULTS = "fetch_results"

    ALL = (GET_LOG, FETCH_RESULTS)


@dataclass(frozen=True)
class ColumnDescriptor:
    """One entry of the result set schema returned by get_schema"""

    type: str
    column_name: str
    comment: Optional[str] = None


FetchResult = namedtuple("FetchResult", "has_more_rows rows")
