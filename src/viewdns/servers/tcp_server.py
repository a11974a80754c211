import logging
import socket
import socketserver
import threading
from typing import Tuple

from .server import ViewFilter
from .transports.tcp import recv_exact

logger = logging.getLogger("viewdns.server")

IDLE_TIMEOUT_S = 15.0


class DNSTCPHandler(socketserver.BaseRequestHandler):
    """
    Brief: Serve length-prefixed DNS queries on one TCP connection.

    Inputs:
      - request: connected socket provided by socketserver
      - client_address: peer address

    Outputs:
      - None

    Frames are handled in order until the peer closes, sends a zero-length
    or short frame, stays idle longer than IDLE_TIMEOUT_S, or a query cannot
    be answered at all.
    """

    idle_timeout = IDLE_TIMEOUT_S

    def handle(self) -> None:
        sock: socket.socket = self.request
        client_ip = self.client_address[0]
        view_filter: ViewFilter = self.server.view_filter  # type: ignore[attr-defined]
        sock.settimeout(self.idle_timeout)
        try:
            while True:
                hdr = recv_exact(sock, 2)
                if len(hdr) != 2:
                    break
                ln = int.from_bytes(hdr, "big")
                if ln == 0:
                    break
                query = recv_exact(sock, ln)
                if len(query) != ln:
                    break
                wire = view_filter.resolve(query, client_ip, "tcp")
                if not wire:
                    break
                sock.sendall(len(wire).to_bytes(2, "big") + wire)
        except (socket.timeout, ConnectionError):
            logger.debug("TCP connection from %s closed", client_ip)
        except Exception:  # pragma: no cover - outermost guard
            logger.exception("Error handling TCP connection from %s", client_ip)


class _ThreadingTCPServer(socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, server_address, handler_cls, view_filter: ViewFilter):
        if ":" in server_address[0]:
            self.address_family = socket.AF_INET6
        self.view_filter = view_filter
        super().__init__(server_address, handler_cls)


class DNSTCPServer:
    """A threaded TCP DNS listener sharing the UDP listener's ViewFilter.

    Example use:
        >>> import threading
        >>> server = DNSTCPServer("127.0.0.1", 5355, view_filter)
        >>> threading.Thread(target=server.serve_forever, daemon=True).start()
        >>> server.stop()
    """

    def __init__(self, host: str, port: int, view_filter: ViewFilter) -> None:
        try:
            self.server = _ThreadingTCPServer((host, port), DNSTCPHandler, view_filter)
        except PermissionError as e:
            logger.error(
                "Permission denied when binding TCP %s:%d. Try a port >1024 or run with elevated privileges. Original error: %s",
                host,
                port,
                e,
            )
            raise
        self._serving = threading.Event()
        logger.debug("DNS TCP server bound to %s:%d", *self.server_address)

    @property
    def server_address(self) -> Tuple[str, int]:
        return self.server.server_address[:2]

    def serve_forever(self) -> None:
        """Run the TCP accept loop until stop() is called."""
        self._serving.set()
        self.server.serve_forever()

    def stop(self) -> None:
        """Stop accepting connections and close the listening socket."""
        try:
            if self._serving.is_set():
                self.server.shutdown()
        finally:
            self.server.server_close()
