"""View matching and answer rewriting."""

from .networks import contains, parse_network, parse_network_list
from .rewriter import is_address_record, rewrite_answers
from .view import Rule, View, ViewSet

__all__ = [
    "Rule",
    "View",
    "ViewSet",
    "contains",
    "is_address_record",
    "parse_network",
    "parse_network_list",
    "rewrite_answers",
]
