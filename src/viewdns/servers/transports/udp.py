import socket


class UDPError(Exception):
    """
    Brief: DNS-over-UDP transport error.

    Inputs:
    - message: description

    Outputs:
    - Exception instance
    """

    pass


def udp_query(
    host: str,
    port: int,
    query: bytes,
    *,
    timeout_ms: int = 2000,
) -> bytes:
    """
    Brief: Perform a single UDP DNS exchange with the upstream.

    Inputs:
    - host: upstream resolver host/IP (IPv4, IPv6 or name)
    - port: upstream UDP port
    - query: wire-format DNS query bytes
    - timeout_ms: socket timeout in milliseconds

    Outputs:
    - bytes: wire-format DNS response

    One datagram is sent and one is read back; there is no retry.

    Example:
        >>> try:
        ...     udp_query('127.0.0.1', 53, b'\x00\x01')
        ... except UDPError:
        ...     pass
    """
    try:
        family, _, _, _, sockaddr = socket.getaddrinfo(
            host, int(port), type=socket.SOCK_DGRAM
        )[0]
        s = socket.socket(family, socket.SOCK_DGRAM)
        try:
            s.settimeout(timeout_ms / 1000.0)
            s.connect(sockaddr)
            s.send(query)
            return s.recv(65535)
        finally:
            s.close()
    except OSError as e:
        raise UDPError(f"UDP error: {e}") from e
