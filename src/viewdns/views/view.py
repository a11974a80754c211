from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Sequence, Tuple

from .networks import Network, contains, parse_network_list

logger = logging.getLogger("viewdns.views")


class Rule(enum.Enum):
    """Fallback disposition for answers matched by neither include nor exclude."""

    ALLOW = "allow"
    DENY = "deny"
    DEFAULT = "default"

    @classmethod
    def parse(cls, value: object) -> "Rule":
        """
        Brief: Parse a rule string case-insensitively.

        Inputs:
          - value: "allow", "deny" or anything else (None included).
        Outputs:
          - Rule.ALLOW, Rule.DENY, or Rule.DEFAULT for every other value.

        Example:
          >>> Rule.parse("Allow"), Rule.parse("bogus")
          (<Rule.ALLOW: 'allow'>, <Rule.DEFAULT: 'default'>)
        """
        text = str(value).strip().lower() if value is not None else ""
        if text == "allow":
            return cls.ALLOW
        if text == "deny":
            return cls.DENY
        return cls.DEFAULT

    @classmethod
    def parse_global(cls, value: object) -> "Rule":
        """
        Brief: Parse the process-wide default rule.

        Inputs:
          - value: Configured default rule string.
        Outputs:
          - Rule.ALLOW only for "allow"; every other value resolves to Rule.DENY.
        """
        return cls.ALLOW if cls.parse(value) is cls.ALLOW else cls.DENY


@dataclass(frozen=True)
class View:
    """
    Brief: A named answer policy applied to clients in its source ranges.

    Inputs:
      - name: Identifier used in log messages.
      - sources: Client ranges this view applies to; empty never matches.
      - include: Answer ranges that are always kept.
      - exclude: Answer ranges that are dropped unless also included.
      - rule: Fallback for answers outside include/exclude.
      - default_rule: Global fallback used when rule is Rule.DEFAULT.

    Outputs:
      - Immutable View instance, safe to share across handler threads.

    Example use:
        >>> from viewdns.views.networks import parse_network_list
        >>> v = View(
        ...     name="internal",
        ...     sources=parse_network_list(["10.0.0.0/8"]),
        ...     exclude=parse_network_list(["192.168.0.0/16"]),
        ...     rule=Rule.ALLOW,
        ... )
        >>> v.matches_client("10.0.0.5"), v.decide("192.168.1.1")
        (True, False)
    """

    name: str
    sources: Tuple[Network, ...] = ()
    include: Tuple[Network, ...] = ()
    exclude: Tuple[Network, ...] = ()
    rule: Rule = Rule.DEFAULT
    default_rule: Rule = field(default=Rule.DENY)

    @classmethod
    def from_config(cls, view_cfg, default_rule: Rule = Rule.DENY) -> "View":
        """
        Brief: Build a View from a validated ViewConfig entry.

        Inputs:
          - view_cfg: viewdns.config.config_parser.ViewConfig (or any object
            exposing name/sources/include/exclude/rule attributes).
          - default_rule: Global default, Rule.ALLOW or Rule.DENY.
        Outputs:
          - View with parsed networks.

        Raises:
          - ConfigError when any network entry is malformed.
        """
        name = str(view_cfg.name)
        prefix = f"views[{name}]"
        return cls(
            name=name,
            sources=parse_network_list(view_cfg.sources, f"{prefix}.sources"),
            include=parse_network_list(view_cfg.include, f"{prefix}.include"),
            exclude=parse_network_list(view_cfg.exclude, f"{prefix}.exclude"),
            rule=Rule.parse(view_cfg.rule),
            default_rule=Rule.parse_global(default_rule.value),
        )

    def matches_client(self, client_address: object) -> bool:
        return contains(client_address, self.sources)

    def decide(self, answer_address: object) -> bool:
        """
        Brief: Decide whether an answer address survives this view.

        Inputs:
          - answer_address: Address taken from an A/AAAA record.
        Outputs:
          - bool: True to keep, False to drop.

        Order: include keeps, then exclude drops, then the view's rule, then
        the global default when the rule is Rule.DEFAULT.
        """
        if contains(answer_address, self.include):
            return True
        if contains(answer_address, self.exclude):
            return False
        if self.rule is Rule.ALLOW:
            return True
        if self.rule is Rule.DENY:
            return False
        return self.default_rule is Rule.ALLOW


class ViewSet:
    """
    Brief: Ordered, read-only collection of configured views.

    Inputs:
      - views: Views in configuration order.
    Outputs:
      - ViewSet instance.
    """

    def __init__(self, views: Sequence[View] = ()) -> None:
        self._views: Tuple[View, ...] = tuple(views)

    @classmethod
    def from_config(cls, view_cfgs, default_rule: Rule = Rule.DENY) -> "ViewSet":
        return cls([View.from_config(vc, default_rule) for vc in view_cfgs])

    def views_for(self, client_address: object) -> List[View]:
        """
        Brief: Return every view whose sources contain the client.

        Inputs:
          - client_address: Client IP (string or address object).
        Outputs:
          - list[View] in configuration order; may be empty.
        """
        matched = [v for v in self._views if v.matches_client(client_address)]
        if matched:
            logger.debug(
                "Client %s matches views %s",
                client_address,
                [v.name for v in matched],
            )
        return matched

    def __iter__(self) -> Iterator[View]:
        return iter(self._views)

    def __len__(self) -> int:
        return len(self._views)
