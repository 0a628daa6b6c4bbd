import base64
import logging
import threading
from typing import Any, Dict, List, Optional

import thrift.protocol.TBinaryProtocol
import thrift.transport.THttpClient
import thrift.transport.TSocket
import thrift.transport.TTransport

from TCLIService import TCLIService, ttypes

from hs2client.config import ClientConfig
from hs2client.exc import Error, OperationError
from hs2client.operation import OperationController
from hs2client.utils import (
    TRANSPORT_ERRORS,
    check_response_for_error,
    guid_to_hex_id,
)

logger = logging.getLogger(__name__)

DEFAULT_BINARY_PORT = 10000
DEFAULT_HTTP_PORT = 10001
CLIENT_PROTOCOL_VERSION = ttypes.TProtocolVersion.HIVE_CLI_SERVICE_PROTOCOL_V6


class Connection:
    def __init__(
        self,
        host: str,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        http_path: Optional[str] = None,
        session_configuration: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> None:
        """
        Connect to a HiveServer2 compatible server and open a session.

        :param host: Server host name.
        :param port: Server port. Defaults to 10000, or 10001 when http_path is set.
        :param username: User name sent with OpenSession (and as Basic auth over HTTP).
        :param password: Password sent with OpenSession (and as Basic auth over HTTP).
        :param http_path: Use the HTTP transport mode, posting to this path.
        :param session_configuration: An optional dictionary of session parameters.
        """

        # Arguments in **kwargs:
        # max_rows, log_strategy, poll_interval
        #   Operation settings, see ClientConfig
        # _socket_timeout
        #   The timeout in seconds for socket send, recv and connect operations. Defaults to None for
        #   no timeout.
        # _http_headers
        #   An optional list of (k, v) pairs that will be set as Http headers on every request

        self.host = host
        self.port = port or (DEFAULT_HTTP_PORT if http_path else DEFAULT_BINARY_PORT)
        self.config = ClientConfig.from_kwargs(**kwargs)

        self._transport = self._create_transport(http_path, username, password, kwargs)
        protocol = thrift.protocol.TBinaryProtocol.TBinaryProtocol(self._transport)
        self.client = TCLIService.Client(protocol)

        try:
            self._transport.open()
        except Exception:
            self._transport.close()
            raise

        # We have a lock here because operations on different cursors run on their own
        # threads and must not share the Thrift transport simultaneously.
        self._request_lock = threading.RLock()
        self._cursors = []  # type: List[OperationController]

        self.session_handle = self._open_session(
            username, password, session_configuration
        )
        self.open = True
        logger.info("Successfully opened session %s", self.get_session_id())

    def _create_transport(self, http_path, username, password, kwargs):
        if http_path:
            uri = "http://{host}:{port}/{path}".format(
                host=self.host, port=self.port, path=http_path.lstrip("/")
            )
            transport = thrift.transport.THttpClient.THttpClient(uri)
            headers = dict(kwargs.get("_http_headers") or [])
            if username and password:
                auth_credentials = "{username}:{password}".format(
                    username=username, password=password
                ).encode("UTF-8")
                headers["Authorization"] = "Basic {}".format(
                    base64.standard_b64encode(auth_credentials).decode("UTF-8")
                )
            transport.setCustomHeaders(headers)
            return transport

        socket = thrift.transport.TSocket.TSocket(self.host, self.port)
        timeout = kwargs.get("_socket_timeout")
        if timeout is not None:
            socket.setTimeout(timeout * 1000.0)
        return thrift.transport.TTransport.TBufferedTransport(socket)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def _open_session(self, username, password, session_configuration):
        req = ttypes.TOpenSessionReq(
            client_protocol=CLIENT_PROTOCOL_VERSION,
            username=username,
            password=password,
            configuration=session_configuration,
        )
        try:
            response = self.make_request(self.client.OpenSession, req)
            self._check_protocol_version(response)
            return response.sessionHandle
        except Exception:
            self._transport.close()
            raise

    @staticmethod
    def _check_protocol_version(t_open_session_resp):
        protocol_version = t_open_session_resp.serverProtocolVersion

        if protocol_version < CLIENT_PROTOCOL_VERSION:
            raise OperationError(
                "Error: expected server to use a protocol version >= "
                "HIVE_CLI_SERVICE_PROTOCOL_V6, "
                "instead got: {}".format(protocol_version)
            )

    def make_request(self, method, request, op_handle=None):
        """
        Issue one RPC on the shared transport and check its status envelope.

        Transport errors propagate unchanged; an error status is raised as OperationError.
        """
        method_name = getattr(method, "__name__", str(method))
        try:
            with self._request_lock:
                logger.debug("%s -> request start", method_name)
                response = method(request)
        except TRANSPORT_ERRORS as error:
            logger.error("Received error when issuing %s: %s", method_name, error)
            raise
        logger.debug("%s -> received response: %s", method_name, response)
        check_response_for_error(method_name, response, op_handle)
        return response

    def get_session_id(self):
        return guid_to_hex_id(self.session_handle.sessionId.guid)

    def cursor(self, config: Optional[ClientConfig] = None) -> OperationController:
        """
        Return a new OperationController using the connection.

        Will throw an Error if the connection has been closed.
        """
        if not self.open:
            raise Error("Cannot create cursor from closed connection")

        cursor = OperationController(self, config=config)
        self._cursors.append(cursor)
        return cursor

    def close(self) -> None:
        """Close the underlying session and shut down all associated cursors."""
        for cursor in self._cursors:
            cursor.shutdown()

        req = ttypes.TCloseSessionReq(sessionHandle=self.session_handle)
        try:
            self.make_request(self.client.CloseSession, req)
        finally:
            self._transport.close()
            self.open = False
