from __future__ import annotations

import logging
import time
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from functools import partial
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import pyarrow

from TCLIService import ttypes

from hs2client.config import ClientConfig
from hs2client.exc import Error, ExecutionError, FetchError, OperationError
from hs2client.type_resolver import (
    TypeCache,
    column_length,
    declared_type_id,
    decode_arrow_table,
    decode_rows,
    resolve_type_cache,
    type_tag,
)
from hs2client.types import (
    ColumnDescriptor,
    FetchResult,
    FetchType,
    LogStrategy,
    OperationState,
)
from hs2client.utils import TRANSPORT_ERRORS, operation_id

if TYPE_CHECKING:
    from hs2client.connection import Connection

logger = logging.getLogger(__name__)

Callback = Callable[[Optional[BaseException], Any], None]


class Operation:
    """
    State of one statement submitted to the server.

    The handle is issued by ExecuteStatement and never changes. The type cache is
    learnt from the first fetched page and dropped once the result set is exhausted
    or the operation is closed.
    """

    def __init__(self, handle: ttypes.TOperationHandle, has_result_set: bool):
        self._handle = handle
        self.has_result_set = has_result_set
        self.type_cache: Optional[TypeCache] = None
        self.closed = False
        # Filled by get_schema
        self.declared_types: Optional[List] = None
        self.column_names: Optional[List[str]] = None

    @property
    def handle(self) -> ttypes.TOperationHandle:
        return self._handle

    @property
    def id(self) -> Optional[str]:
        return operation_id(self._handle)

    def __repr__(self):
        return "Operation(id={}, has_result_set={})".format(
            self.id, self.has_result_set
        )


def _invoke_callback(callback: Callback, future: Future):
    if future.cancelled():
        callback(CancelledError(), None)
        return
    error = future.exception()
    if error is not None:
        callback(error, None)
    else:
        callback(None, future.result())


class OperationController:
    def __init__(
        self, connection: "Connection", config: Optional[ClientConfig] = None
    ) -> None:
        """
        Drives the lifecycle of statements submitted through one connection session:
        execute, poll, read logs and schema, fetch result pages, close.

        Every public method returns a concurrent.futures.Future and accepts an optional
        `callback(error, result)` called once when the Future settles. Calls are queued
        on a single worker, so calls made against the current operation never overlap.
        Controllers share no operation state and may be used concurrently.
        """
        self.connection = connection
        self.config = config or connection.config
        self.operation: Optional[Operation] = None
        self.open = True
        self._queue = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="hs2client-operation"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        try:
            if self.open and self.operation is not None and not self.operation.closed:
                self.close().result()
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Stop accepting calls; calls already queued still run to completion."""
        self.open = False
        self._queue.shutdown(wait=False)

    def _submit(self, fn, callback: Optional[Callback], *args) -> Future:
        if not self.open:
            future = Future()
            future.set_exception(Error("Attempting operation on closed cursor"))
        else:
            future = self._queue.submit(fn, *args)
        if callback is not None:
            future.add_done_callback(partial(_invoke_callback, callback))
        return future

    def _require_handle(self, method_name: str) -> ttypes.TOperationHandle:
        if self.operation is None or self.operation.handle is None:
            raise OperationError("Invalid operation handle in {}".format(method_name))
        return self.operation.handle

    # == Operation Controller ==

    def execute(
        self,
        statement: str,
        conf_overlay: Optional[Dict[str, str]] = None,
        callback: Optional[Callback] = None,
    ) -> Future:
        """
        Submit a statement for asynchronous execution on the server.

        Resolves to {"has_result_set": bool} once the server has accepted the statement;
        use wait_until_done or get_operation_status to follow its progress.
        """
        return self._submit(self._execute, callback, statement, conf_overlay)

    def _execute(self, statement, conf_overlay):
        req = ttypes.TExecuteStatementReq(
            sessionHandle=self.connection.session_handle,
            statement=statement,
            confOverlay=conf_overlay,
            runAsync=True,
        )
        logger.debug("ExecuteStatement start -> async, %s", statement)

        try:
            resp = self.connection.make_request(
                self.connection.client.ExecuteStatement, req
            )
        except TRANSPORT_ERRORS as error:
            raise ExecutionError(
                "{}\n Error caused from HiveServer2".format(error),
                {"original-exception": repr(error)},
            ) from error

        self.operation = Operation(
            resp.operationHandle, bool(resp.operationHandle.hasResultSet)
        )
        logger.debug("ExecuteStatement -> %s", self.operation)
        return {"has_result_set": self.operation.has_result_set}

    def cancel(self, callback: Optional[Callback] = None) -> Future:
        """Ask the server to cancel the current operation. Resolves to True."""
        return self._submit(self._cancel, callback)

    def _cancel(self):
        handle = self._require_handle("CancelOperation")
        logger.debug("Cancelling operation %s", self.operation.id)
        req = ttypes.TCancelOperationReq(operationHandle=handle)
        try:
            self.connection.make_request(
                self.connection.client.CancelOperation, req, handle
            )
        except TRANSPORT_ERRORS as error:
            raise OperationError(
                str(error) or "cancel fail, unknown error",
                {"operation-id": self.operation.id},
            ) from error
        return True

    def get_operation_status(self, callback: Optional[Callback] = None) -> Future:
        """Resolves to the OperationState the server reports for the current operation."""
        return self._submit(self._get_operation_status, callback)

    def _get_status_resp(self):
        handle = self._require_handle("GetOperationStatus")
        req = ttypes.TGetOperationStatusReq(operationHandle=handle)
        return self.connection.make_request(
            self.connection.client.GetOperationStatus, req, handle
        )

    @staticmethod
    def _state_of(resp) -> OperationState:
        state = OperationState.from_thrift_state(resp.operationState)
        if state is None:
            logger.debug("Unrecognised operation state %s", resp.operationState)
            return OperationState.UNKNOWN
        return state

    def _get_operation_status(self):
        return self._state_of(self._get_status_resp())

    def wait_until_done(
        self, poll_interval: Optional[float] = None, callback: Optional[Callback] = None
    ) -> Future:
        """
        Poll the operation status until it reaches a terminal state.

        Resolves to FINISHED or CANCELED. ERROR, TIMEDOUT and CLOSED are reported as
        OperationError.
        """
        return self._submit(self._wait_until_done, callback, poll_interval)

    def _wait_until_done(self, poll_interval):
        interval = self.config.poll_interval if poll_interval is None else poll_interval
        while True:
            resp = self._get_status_resp()
            state = self._state_of(resp)
            if state in (OperationState.ERROR, OperationState.TIMEDOUT):
                raise OperationError(
                    getattr(resp, "errorMessage", None)
                    or "Operation {} ended in state {}".format(
                        self.operation.id, state.value
                    ),
                    {
                        "sql-state": getattr(resp, "sqlState", None),
                        "error-code": getattr(resp, "errorCode", None),
                        "operation-id": self.operation.id,
                    },
                )
            if state == OperationState.CLOSED:
                raise OperationError(
                    "Operation {} unexpectedly closed server side".format(
                        self.operation.id
                    ),
                    {"operation-id": self.operation.id},
                )
            if state.is_terminal:
                return state
            time.sleep(interval)

    def get_schema(self, callback: Optional[Callback] = None) -> Future:
        """
        Resolves to the list of ColumnDescriptor of the result set, or None when the
        server reports no schema.
        """
        return self._submit(self._get_schema, callback)

    def _get_schema(self):
        handle = self._require_handle("GetResultSetMetadata")
        req = ttypes.TGetResultSetMetadataReq(operationHandle=handle)
        resp = self.connection.make_request(
            self.connection.client.GetResultSetMetadata, req, handle
        )

        if not resp.schema:
            return None

        columns = resp.schema.columns or []
        self.operation.declared_types = [
            declared_type_id(column.typeDesc) for column in columns
        ]
        self.operation.column_names = [column.columnName for column in columns]
        return [
            ColumnDescriptor(
                type=type_tag(column.typeDesc),
                column_name=column.columnName,
                comment=column.comment,
            )
            for column in columns
        ]

    def get_log(self, callback: Optional[Callback] = None) -> Future:
        """Resolves to the server side log of the current operation."""
        return self._submit(self._get_log, callback)

    def _get_log(self):
        strategy = self.config.log_strategy
        logger.debug("getLog, selected strategy -> %s", strategy)

        if strategy == LogStrategy.GET_LOG:
            return self._get_log_direct()
        if strategy == LogStrategy.FETCH_RESULTS:
            return self._get_log_from_fetch()
        raise OperationError("No log retrieval supported")

    def _get_log_direct(self):
        handle = self._require_handle("GetLog")
        req = ttypes.TGetLogReq(operationHandle=handle)
        resp = self.connection.make_request(self.connection.client.GetLog, req, handle)
        return resp.log

    def _get_log_from_fetch(self):
        handle = self._require_handle("FetchResults(LOG)")
        resp = self._fetch_page(handle, FetchType.LOG)
        columns = resp.results.columns if resp.results else None
        if not columns:
            logger.debug("FetchResults(LOG) -> server returned no log column")
            return ""
        if columns[0].stringVal is None:
            raise OperationError(
                "FetchResults(LOG) returned a non string log column",
                {"operation-id": self.operation.id},
            )
        return "\n".join(columns[0].stringVal.values)

    def close(self, callback: Optional[Callback] = None) -> Future:
        """
        Release the current operation on the server. Resolves to None.

        The operation must not be used after it is closed.
        """
        return self._submit(self._close, callback)

    def _close(self):
        handle = self._require_handle("CloseOperation")
        logger.debug("CloseOperation -> %s", self.operation)
        req = ttypes.TCloseOperationReq(operationHandle=handle)
        self.connection.make_request(self.connection.client.CloseOperation, req, handle)
        self.operation.type_cache = None
        self.operation.closed = True

    # == Result Page Fetcher ==

    def fetch_block(self, callback: Optional[Callback] = None) -> Future:
        """
        Fetch the next page of rows.

        Resolves to FetchResult(has_more_rows, rows). has_more_rows is False, with no
        rows, once the server returns an empty page.
        """
        return self._submit(self._fetch_block, callback)

    def fetch_arrow_block(self, callback: Optional[Callback] = None) -> Future:
        """Like fetch_block, with the rows of the page as a pyarrow Table."""
        return self._submit(self._fetch_arrow_block, callback)

    def fetch_all(self, callback: Optional[Callback] = None) -> Future:
        """Fetch pages until the result set is exhausted. Resolves to the list of rows."""
        return self._submit(self._fetch_all, callback)

    def _fetch_page(self, handle, fetch_type):
        req = ttypes.TFetchResultsReq(
            operationHandle=handle,
            orientation=ttypes.TFetchOrientation.FETCH_NEXT,
            maxRows=self.config.max_rows,
            fetchType=fetch_type,
        )
        return self.connection.make_request(
            self.connection.client.FetchResults, req, handle
        )

    def _fetch_decoded(self, decode, empty):
        handle = self._require_handle("FetchResults")
        operation = self.operation
        resp = self._fetch_page(handle, FetchType.ROW)

        # Servers older than Hive 1.2 do not set hasMoreRows reliably, so the page
        # length decides whether the result set is exhausted.
        logger.debug("FetchBlock -> hasMoreRows from server: %s", resp.hasMoreRows)

        try:
            if operation.type_cache is None:
                operation.type_cache = resolve_type_cache(
                    resp.results, operation.declared_types
                )

            columns = resp.results.columns
            fetch_length = column_length(operation.type_cache, columns)
            if not fetch_length:
                operation.type_cache = None
                return FetchResult(False, empty)
            return FetchResult(True, decode(operation, columns))
        except FetchError:
            raise
        except Exception as error:
            raise FetchError(str(error), {"operation-id": operation.id}) from error

    def _fetch_block(self):
        return self._fetch_decoded(
            lambda operation, columns: decode_rows(operation.type_cache, columns), []
        )

    def _fetch_arrow_block(self):
        def decode(operation, columns):
            names = operation.column_names or [
                "col_{}".format(i) for i in range(len(operation.type_cache))
            ]
            return decode_arrow_table(operation.type_cache, columns, names)

        return self._fetch_decoded(decode, pyarrow.table({}))

    def _fetch_all(self):
        rows = []
        while True:
            result = self._fetch_block()
            rows.extend(result.rows)
            if not result.has_more_rows:
                return rows
