import logging
import socket
import socketserver
import threading
from typing import Tuple

from .server import ViewFilter

logger = logging.getLogger("viewdns.server")


class DNSUDPHandler(socketserver.BaseRequestHandler):
    """
    Handles UDP DNS requests.
    This class is instantiated for each incoming DNS datagram.

    Example use:
        This handler is used internally by DNSUDPServer and is not
        typically instantiated directly by users.
    """

    def handle(self) -> None:
        data, sock = self.request
        client_ip = self.client_address[0]
        view_filter: ViewFilter = self.server.view_filter  # type: ignore[attr-defined]
        try:
            wire = view_filter.resolve(data, client_ip, "udp")
            # An empty reply means the query could not be parsed: stay silent.
            if not wire:
                return
            sock.sendto(wire, self.client_address)
        except Exception:  # pragma: no cover - outermost guard
            logger.exception("Error handling UDP query from %s", client_ip)


class _ThreadingUDPServer(socketserver.ThreadingUDPServer):
    daemon_threads = True

    def __init__(self, server_address, handler_cls, view_filter: ViewFilter):
        host = server_address[0]
        if ":" in host:
            self.address_family = socket.AF_INET6
        self.view_filter = view_filter
        super().__init__(server_address, handler_cls)


class DNSUDPServer:
    """A threaded UDP DNS listener.

    Example use:
        >>> import threading
        >>> server = DNSUDPServer("127.0.0.1", 5355, view_filter)
        >>> threading.Thread(target=server.serve_forever, daemon=True).start()
        >>> server.stop()
    """

    def __init__(self, host: str, port: int, view_filter: ViewFilter) -> None:
        try:
            self.server = _ThreadingUDPServer((host, port), DNSUDPHandler, view_filter)
        except PermissionError as e:
            logger.error(
                "Permission denied when binding UDP %s:%d. Try a port >1024 or run with elevated privileges. Original error: %s",
                host,
                port,
                e,
            )
            raise
        self._serving = threading.Event()
        logger.debug("DNS UDP server bound to %s:%d", *self.server_address)

    @property
    def server_address(self) -> Tuple[str, int]:
        return self.server.server_address[:2]

    def serve_forever(self) -> None:
        """Run the UDP server loop until stop() is called."""
        self._serving.set()
        self.server.serve_forever()

    def stop(self) -> None:
        """Request graceful shutdown and close the underlying UDP socket.

        Inputs:
          - None
        Outputs:
          - None; in-flight handler threads finish on their own.
        """
        try:
            if self._serving.is_set():
                self.server.shutdown()
        finally:
            self.server.server_close()
