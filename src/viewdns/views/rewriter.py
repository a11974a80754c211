from __future__ import annotations

import ipaddress
import logging
from typing import Sequence

from dnslib import QTYPE, RR, DNSRecord

from .view import View

logger = logging.getLogger("viewdns.views")

_ADDRESS_TYPES = (QTYPE.A, QTYPE.AAAA)


def is_address_record(rr: RR) -> bool:
    return getattr(rr, "rtype", None) in _ADDRESS_TYPES


def _rejecting_view(rr: RR, views: Sequence[View]) -> View | None:
    """
    Brief: Find the first view that drops an address record.

    Inputs:
      - rr: A or AAAA resource record.
      - views: Views applicable to the client.
    Outputs:
      - The first rejecting View, or None when the record is kept (including
        when its payload is not a parseable address).
    """
    try:
        addr = ipaddress.ip_address(str(rr.rdata))
    except ValueError:
        logger.debug(
            "Keeping %s record with unparsable payload %r",
            QTYPE.get(rr.rtype),
            rr.rdata,
        )
        return None
    for view in views:
        if not view.decide(addr):
            return view
    return None


def rewrite_answers(response: DNSRecord, views: Sequence[View]) -> int:
    """
    Brief: Prune address records rejected by any applicable view.

    Inputs:
      - response: Parsed upstream reply; its answer list (``response.rr``) is
        replaced in place.
      - views: Views applicable to the client, in configuration order.
    Outputs:
      - int: Number of answer records removed.

    Non-address records are always retained. An address record is retained
    only when every view keeps it. Surviving records keep their original
    order and content; header, question, authority and additional sections
    are left untouched.

    Example:
      >>> removed = rewrite_answers(reply, view_set.views_for("10.0.0.5"))
    """
    if not views:
        return 0

    kept = []
    for rr in response.rr:
        if not is_address_record(rr):
            kept.append(rr)
            continue
        view = _rejecting_view(rr, views)
        if view is None:
            kept.append(rr)
            continue
        logger.debug(
            "View '%s' excludes %s %s for %s",
            view.name,
            QTYPE.get(rr.rtype),
            rr.rdata,
            rr.rname,
        )

    removed = len(response.rr) - len(kept)
    response.rr = kept
    return removed
