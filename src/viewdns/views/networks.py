from __future__ import annotations

import ipaddress
import logging
from typing import Iterable, Sequence, Tuple, Union

from ..errors import ConfigError

logger = logging.getLogger("viewdns.views")

Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def parse_network(entry: object) -> Network:
    """
    Brief: Parse a single CIDR or bare IP entry from configuration.

    Inputs:
      - entry: String such as "10.0.0.0/8", "192.0.2.1" or "2001:db8::/32".
    Outputs:
      - IPv4Network or IPv6Network. Bare addresses become /32 or /128 ranges
        and host bits below the mask are cleared.

    Raises:
      - ConfigError when the entry is not a valid address or prefix.

    Example:
      >>> parse_network("192.0.2.1")
      IPv4Network('192.0.2.1/32')
      >>> parse_network("10.1.2.3/8")
      IPv4Network('10.0.0.0/8')
    """
    text = str(entry).strip() if entry is not None else ""
    if not text:
        raise ConfigError("empty network entry")
    try:
        return ipaddress.ip_network(text, strict=False)
    except ValueError as exc:
        raise ConfigError(f"invalid network {text!r}: {exc}") from exc


def parse_network_list(
    entries: Iterable[object] | None, field: str = "networks"
) -> Tuple[Network, ...]:
    """
    Brief: Parse a list of config entries into an ordered tuple of networks.

    Inputs:
      - entries: Iterable of CIDR/IP strings (None is treated as empty).
      - field: Config field name used in error messages (e.g. "views[0].include").
    Outputs:
      - tuple of networks in configuration order.

    Raises:
      - ConfigError naming the field and the offending entry.
    """
    nets = []
    for idx, entry in enumerate(entries or []):
        try:
            nets.append(parse_network(entry))
        except ConfigError as exc:
            raise ConfigError(f"{field}[{idx}]: {exc}") from exc
    return tuple(nets)


def _as_address(address: object) -> Address | None:
    if isinstance(address, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return address
    try:
        return ipaddress.ip_address(str(address).strip())
    except ValueError:
        return None


def contains(address: object, networks: Sequence[Network]) -> bool:
    """
    Brief: Report whether an address falls inside any of the given networks.

    Inputs:
      - address: IP address object or string.
      - networks: Ordered sequence of networks; first match wins.
    Outputs:
      - bool: True iff at least one network contains the address.

    An IPv4 address never matches an IPv6 network (and vice versa). An
    address that cannot be parsed is reported as a non-match.

    Example:
      >>> nets = parse_network_list(["10.0.0.0/8"])
      >>> contains("10.1.1.1", nets), contains("::1", nets)
      (True, False)
    """
    ip = _as_address(address)
    if ip is None:
        logger.debug("Unparsable address %r treated as non-match", address)
        return False
    for net in networks:
        if ip.version == net.version and ip in net:
            return True
    return False
