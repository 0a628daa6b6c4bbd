import logging

from hs2client.exc import *
from hs2client.types import (
    ColumnDescriptor,
    FetchResult,
    FetchType,
    LogStrategy,
    OperationState,
)

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())


def connect(host, **kwargs):
    from .connection import Connection

    return Connection(host, **kwargs)
