from __future__ import annotations

import enum
import ipaddress
import logging
from typing import Callable, Optional, Tuple, Union

from dnslib import QTYPE, RCODE, DNSRecord

from viewdns.config.config_parser import ServerConfig
from viewdns.servers.transports import tcp as tcp_transport
from viewdns.servers.transports import udp as udp_transport
from viewdns.views.rewriter import rewrite_answers

logger = logging.getLogger("viewdns.server")

UpstreamQuery = Callable[..., bytes]


class RequestState(enum.Enum):
    """Lifecycle of a single request through ViewFilter.resolve()."""

    RECEIVED = "received"
    FORWARDED = "forwarded"
    FILTERED = "filtered"
    FAILED = "failed"


def client_address(
    client_ip: str,
) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    """
    Brief: Parse a peer address string, unwrapping IPv4-mapped IPv6 peers.

    Inputs:
      - client_ip: Peer IP string as reported by the socket layer.
    Outputs:
      - IPv4Address/IPv6Address, or None when the string is not an address.

    Example:
      >>> client_address("::ffff:10.0.0.5")
      IPv4Address('10.0.0.5')
    """
    try:
        addr = ipaddress.ip_address(str(client_ip).split("%", 1)[0])
    except ValueError:
        return None
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        return addr.ipv4_mapped
    return addr


def _servfail(data: bytes) -> bytes:
    """
    Brief: Build a SERVFAIL reply for a raw query.

    Inputs:
      - data: Wire-format query from the client.
    Outputs:
      - bytes: SERVFAIL response echoing the question, or b"" when the query
        itself cannot be parsed (nothing sensible can be sent back).
    """
    try:
        req = DNSRecord.parse(data)
    except Exception as exc:  # dnslib raises DNSError and struct/index errors
        logger.warning("Dropping unparsable query (%d bytes): %s", len(data), exc)
        return b""
    r = req.reply()
    r.header.rcode = RCODE.SERVFAIL
    return r.pack()


def _describe(data: bytes) -> str:
    try:
        q = DNSRecord.parse(data).q
        return f"{q.qname} {QTYPE.get(q.qtype, q.qtype)}"
    except Exception:
        return f"<{len(data)} bytes>"


class ViewFilter:
    """
    Brief: Forward one query upstream and prune its answers per client view.

    Inputs:
      - config: Immutable ServerConfig (upstream, timeout, views).
      - udp_query / tcp_query: Upstream exchange callables; default to the
        transport implementations and are replaceable in tests.

    Outputs:
      - ViewFilter instance shared by the UDP and TCP listeners.

    Example use:
        >>> vf = ViewFilter(load_config("viewdns.yaml"))
        >>> wire = vf.resolve(query_bytes, "10.0.0.5", "udp")
    """

    def __init__(
        self,
        config: ServerConfig,
        *,
        udp_query: Optional[UpstreamQuery] = None,
        tcp_query: Optional[UpstreamQuery] = None,
    ) -> None:
        self.config = config
        self.views = config.views
        self._udp_query = udp_query or udp_transport.udp_query
        self._tcp_query = tcp_query or tcp_transport.tcp_query

    def forward(self, data: bytes, transport: str) -> bytes:
        """
        Brief: Send the query bytes to the upstream once, unchanged.

        Inputs:
          - data: Wire-format query.
          - transport: "udp" or "tcp"; the upstream is reached the same way.
        Outputs:
          - bytes: Upstream reply.

        Raises:
          - UDPError / TCPError from the transport on any failure.
        """
        host, port = self.config.upstream
        timeout_ms = self.config.timeout_ms
        if transport == "tcp":
            return self._tcp_query(
                host,
                port,
                data,
                connect_timeout_ms=timeout_ms,
                read_timeout_ms=timeout_ms,
            )
        return self._udp_query(host, port, data, timeout_ms=timeout_ms)

    def resolve(self, data: bytes, client_ip: str, transport: str = "udp") -> bytes:
        """
        Brief: Run one request through RECEIVED -> FORWARDED -> FILTERED|FAILED.

        Inputs:
          - data: Wire-format query from the client.
          - client_ip: Peer IP string taken from the connection.
          - transport: Inbound transport, "udp" or "tcp".
        Outputs:
          - bytes: Response to send. Upstream bytes are returned verbatim
            when no view applies or nothing was removed; SERVFAIL when the
            exchange fails; b"" when no reply can be formed.
        """
        state, wire = self._resolve(data, client_ip, transport)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Request %s from %s via %s: %s",
                _describe(data),
                client_ip,
                transport,
                state.value,
            )
        return wire

    def _resolve(
        self, data: bytes, client_ip: str, transport: str
    ) -> Tuple[RequestState, bytes]:
        try:
            reply_wire = self.forward(data, transport)
        except (udp_transport.UDPError, tcp_transport.TCPError) as exc:
            logger.warning(
                "Upstream %s:%d via %s failed for %s: %s",
                self.config.upstream[0],
                self.config.upstream[1],
                transport,
                _describe(data),
                exc,
            )
            return RequestState.FAILED, _servfail(data)

        try:
            reply = DNSRecord.parse(reply_wire)
        except Exception as exc:  # dnslib raises DNSError and struct/index errors
            logger.warning(
                "Malformed reply from upstream for %s: %s", _describe(data), exc
            )
            return RequestState.FAILED, _servfail(data)

        views = self.views.views_for(client_address(client_ip) or client_ip)
        if not views:
            return RequestState.FILTERED, reply_wire

        for view in views:
            logger.debug("Applying view '%s' for client %s", view.name, client_ip)
        removed = rewrite_answers(reply, views)
        if not removed:
            return RequestState.FILTERED, reply_wire
        logger.debug("Removed %d answer(s), %d remain", removed, len(reply.rr))
        return RequestState.FILTERED, reply.pack()
