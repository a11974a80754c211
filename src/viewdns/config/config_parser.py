"""Configuration loading and normalization for viewdns.

Brief:
  This module turns a YAML file into the immutable ServerConfig used by the
  listeners and the request pipeline. It centralizes:
    - the config file search order (explicit path, env, well-known paths)
    - YAML parsing and JSON Schema validation
    - typed per-view validation (pydantic)
    - environment overrides carried over from earlier releases
      (DNSVIEWS_CONFIG, DNSVIEWS_DEFAULT_RULE, DNSVIEWS_DEBUG)

Inputs:
  - Optional explicit config path and environment mapping

Outputs:
  - ServerConfig instances; ConfigError on any fatal problem
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError, validator

from ..errors import ConfigError
from ..views.view import Rule, ViewSet
from .config_schema import validate_config

logger = logging.getLogger("viewdns.config")

CONFIG_NAME = "viewdns"
DEFAULT_PORT = 53
DEFAULT_TIMEOUT_MS = 2000

WELL_KNOWN_PATHS: Tuple[str, ...] = (
    f"/etc/{CONFIG_NAME}/{CONFIG_NAME}.yaml",
    f"/etc/{CONFIG_NAME}/{CONFIG_NAME}.yml",
    f"{CONFIG_NAME}.yaml",
    f"{CONFIG_NAME}.yml",
)


class ViewConfig(BaseModel):
    """Brief: Typed configuration model for a single view entry.

    Inputs:
      - name: View identifier used in log messages.
      - sources/include/exclude: Lists of CIDR or bare IP strings. A single
        string is accepted as a one-item list and null as an empty list.
      - rule: "allow", "deny" or "default" (anything else means default).

    Outputs:
      - ViewConfig instance with normalized types.
    """

    name: str
    sources: List[str] = Field(default_factory=list)
    include: List[str] = Field(default_factory=list)
    exclude: List[str] = Field(default_factory=list)
    rule: str = Field(default="default")

    class Config:
        extra = "ignore"

    @validator("sources", "include", "exclude", pre=True)
    def _normalize_entries(cls, v):  # type: ignore[no-untyped-def]
        if v is None:
            return []
        if isinstance(v, (str, int)):
            return [str(v).strip()]
        return [str(item).strip() for item in v if item is not None]

    @validator("rule", pre=True)
    def _normalize_rule(cls, v):  # type: ignore[no-untyped-def]
        return Rule.parse(v).value


@dataclass(frozen=True)
class ServerConfig:
    """
    Brief: Immutable process configuration built once at startup.

    Inputs:
      - source_path: File the configuration was loaded from.
      - debug: Debug logging requested by config, CLI or environment.
      - default_rule: Global fallback, Rule.ALLOW or Rule.DENY.
      - upstream: (host, port) of the upstream resolver.
      - listen: (host, port) shared by the UDP and TCP listeners.
      - timeout_ms: Upstream exchange timeout in milliseconds.
      - log_config: The "logging" mapping passed to init_logging().
      - views: Parsed ViewSet in configuration order.

    Outputs:
      - ServerConfig instance, shared read-only by every request.
    """

    upstream: Tuple[str, int]
    listen: Tuple[str, int] = ("0.0.0.0", DEFAULT_PORT)
    views: ViewSet = field(default_factory=ViewSet)
    default_rule: Rule = Rule.DENY
    debug: bool = False
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    log_config: Mapping[str, Any] = field(default_factory=dict)
    source_path: Optional[str] = None


def _is_truthy_env(val: Optional[str]) -> bool:
    if val is None:
        return False
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def parse_host_port(
    text: object,
    *,
    default_port: int = DEFAULT_PORT,
    default_host: Optional[str] = None,
    field_name: str = "address",
) -> Tuple[str, int]:
    """
    Brief: Split a "host:port" string, supporting bracketed IPv6.

    Inputs:
      - text: "1.1.1.1:53", "[2001:db8::1]:53", "dns.example", ":5353" or a
        bare IPv6 address.
      - default_port: Port used when none is given.
      - default_host: Host used when the host part is empty; when None an
        empty host is an error.
      - field_name: Config key named in error messages.

    Outputs:
      - (host, port) tuple.

    Raises:
      - ConfigError for empty hosts (without default), bad brackets, or ports
        outside 1-65535.

    Example:
      >>> parse_host_port("[::1]:5353")
      ('::1', 5353)
      >>> parse_host_port(":53", default_host="0.0.0.0")
      ('0.0.0.0', 53)
    """
    raw = str(text).strip() if text is not None else ""
    host = raw
    port_text: Optional[str] = None

    if raw.startswith("["):
        end = raw.find("]")
        if end < 0:
            raise ConfigError(f"{field_name}: unterminated '[' in {raw!r}")
        host = raw[1:end]
        rest = raw[end + 1 :]
        if rest:
            if not rest.startswith(":"):
                raise ConfigError(f"{field_name}: unexpected {rest!r} in {raw!r}")
            port_text = rest[1:]
    elif raw.count(":") == 1:
        host, port_text = raw.split(":", 1)

    host = host.strip()
    if not host:
        if default_host is None:
            raise ConfigError(f"{field_name}: missing host in {raw!r}")
        host = default_host

    port = default_port
    if port_text is not None and port_text.strip():
        try:
            port = int(port_text)
        except ValueError as exc:
            raise ConfigError(f"{field_name}: invalid port in {raw!r}") from exc
    if not 0 < port < 65536:
        raise ConfigError(f"{field_name}: port {port} out of range in {raw!r}")
    return host, port


def candidate_paths(explicit: Optional[str] = None) -> List[str]:
    """Return config paths in search order; the explicit path (if any) first."""
    paths = [explicit] if explicit else []
    paths.extend(WELL_KNOWN_PATHS)
    return paths


def read_config_file(paths: Sequence[Optional[str]]) -> Tuple[str, Dict[str, Any]]:
    """
    Brief: Load the first existing and parseable YAML file.

    Inputs:
      - paths: Candidate paths in priority order; empty entries are skipped.
    Outputs:
      - (path, mapping) for the first file that exists and parses.

    Raises:
      - ConfigError when no candidate could be loaded.
    """
    for path in paths:
        if not path:
            continue
        if not os.path.isfile(path):
            logger.debug("Not loading config from %s: no such file", path)
            continue
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Not loading config from %s: %s", path, exc)
            continue
        logger.debug("Loaded config file %s", path)
        return path, data if data is not None else {}

    tried = ", ".join(p for p in paths if p)
    raise ConfigError(f"cannot find {CONFIG_NAME}.yaml (tried: {tried})")


def _parse_view_configs(raw_views: Any) -> List[ViewConfig]:
    if not raw_views:
        raise ConfigError("missing 'views' list")
    if not isinstance(raw_views, list):
        raise ConfigError("'views' must be a list")
    out: List[ViewConfig] = []
    for idx, entry in enumerate(raw_views):
        if not isinstance(entry, dict):
            raise ConfigError(f"views[{idx}] must be a mapping")
        try:
            out.append(ViewConfig(**entry))
        except ValidationError as exc:
            raise ConfigError(f"views[{idx}]: {exc}") from exc
    return out


def build_config(
    raw: Dict[str, Any],
    *,
    source_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    debug: bool = False,
) -> ServerConfig:
    """
    Brief: Validate a parsed mapping and build the immutable ServerConfig.

    Inputs:
      - raw: Mapping loaded from YAML.
      - source_path: File the mapping came from (error messages only).
      - environ: Environment mapping (defaults to os.environ).
      - debug: Extra debug request (e.g. from the CLI).

    Outputs:
      - ServerConfig.

    Raises:
      - ConfigError on schema violations, empty views, malformed networks or
        malformed host:port values.
    """
    env = os.environ if environ is None else environ

    validate_config(raw, config_path=source_path)
    view_cfgs = _parse_view_configs(raw.get("views"))

    rule_text = raw.get("default_rule")
    if rule_text is None:
        rule_text = env.get("DNSVIEWS_DEFAULT_RULE", "deny")
    default_rule = Rule.parse_global(rule_text)

    views = ViewSet.from_config(view_cfgs, default_rule)

    upstream = parse_host_port(raw.get("upstream"), field_name="upstream")
    listen = parse_host_port(
        raw.get("listen") or "", default_host="0.0.0.0", field_name="listen"
    )

    return ServerConfig(
        upstream=upstream,
        listen=listen,
        views=views,
        default_rule=default_rule,
        debug=bool(
            debug or raw.get("debug") or _is_truthy_env(env.get("DNSVIEWS_DEBUG"))
        ),
        timeout_ms=int(raw.get("timeout_ms") or DEFAULT_TIMEOUT_MS),
        log_config=dict(raw.get("logging") or {}),
        source_path=source_path,
    )


def load_config(
    path: Optional[str] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    debug: bool = False,
) -> ServerConfig:
    """
    Brief: Locate, read and validate the configuration file.

    Inputs:
      - path: Explicit config path (e.g. --config). When omitted the
        DNSVIEWS_CONFIG environment variable is consulted.
      - environ: Environment mapping (defaults to os.environ).
      - debug: Extra debug request from the CLI.

    Outputs:
      - ServerConfig.

    Raises:
      - ConfigError for every fatal configuration problem.

    Example:
      >>> cfg = load_config("/etc/viewdns/viewdns.yaml")
      >>> cfg.upstream
      ('1.1.1.1', 53)
    """
    env = os.environ if environ is None else environ
    explicit = path or env.get("DNSVIEWS_CONFIG") or None
    source, raw = read_config_file(candidate_paths(explicit))
    cfg = build_config(raw, source_path=source, environ=env, debug=debug)
    logger.debug("Loaded %s: %s", source, cfg)
    return cfg
