from __future__ import annotations

import argparse
import logging
import signal
import threading
from typing import List, Optional

from .config.config_parser import load_config
from .config.logging_config import init_logging
from .errors import ConfigError
from .servers.server import ViewFilter
from .servers.tcp_server import DNSTCPServer
from .servers.udp_server import DNSUDPServer


def _log_views(logger: logging.Logger, view_filter: ViewFilter) -> None:
    for i, v in enumerate(view_filter.views):
        logger.debug(
            "[view %d] %s: sources=%s include=%s exclude=%s rule=%s",
            i,
            v.name,
            [str(n) for n in v.sources],
            [str(n) for n in v.include],
            [str(n) for n in v.exclude],
            v.rule.value,
        )


def main(argv: List[str] | None = None) -> int:
    """
    Main entry point for the view-filtering DNS forwarder.
    Parses arguments, loads configuration, starts the UDP and TCP listeners
    and blocks until SIGINT or SIGTERM.

    Args:
        argv: Command-line arguments.

    Returns:
        An exit code: 0 after a signal-driven shutdown, 1 when configuration
        loading or listener setup fails.

    Example use:
        CLI:
            viewdns --config /etc/viewdns/viewdns.yaml
    """
    parser = argparse.ArgumentParser(
        description="DNS forwarder that filters answers per client view"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config (default: $DNSVIEWS_CONFIG, then /etc/viewdns/viewdns.yaml ...)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    try:
        cfg = load_config(args.config, debug=args.debug)
    except ConfigError as exc:
        print(f"cannot load config: {exc}")
        return 1

    init_logging(cfg.log_config, debug=cfg.debug)
    logger = logging.getLogger("viewdns.main")
    logger.info("Loaded config from %s", cfg.source_path)

    view_filter = ViewFilter(cfg)
    _log_views(logger, view_filter)

    host, port = cfg.listen
    servers = []
    try:
        servers.append(("udp", DNSUDPServer(host, port, view_filter)))
        servers.append(("tcp", DNSTCPServer(host, port, view_filter)))
    except OSError as exc:
        logger.error("Failed to bind listener on %s:%d: %s", host, port, exc)
        for _, srv in servers:
            srv.stop()
        return 1

    shutdown_event = threading.Event()

    def _request_shutdown(signum, _frame) -> None:
        logger.info("Received %s, shutting down", signal.Signals(signum).name)
        shutdown_event.set()

    signal.signal(signal.SIGINT, _request_shutdown)
    signal.signal(signal.SIGTERM, _request_shutdown)

    threads = []
    for name, srv in servers:
        t = threading.Thread(
            target=srv.serve_forever, name=f"viewdns-{name}", daemon=True
        )
        t.start()
        threads.append(t)
        logger.info("Starting %s listener on %s:%d", name.upper(), host, port)

    logger.info(
        "Upstream %s:%d, %d views, default rule %s",
        cfg.upstream[0],
        cfg.upstream[1],
        len(view_filter.views),
        cfg.default_rule.value,
    )

    exit_code = 0
    try:
        while not shutdown_event.wait(1.0):
            if not all(t.is_alive() for t in threads):
                logger.error("A listener thread exited unexpectedly")
                exit_code = 1
                break
    finally:
        for name, srv in servers:
            try:
                srv.stop()
            except OSError:
                logger.exception("Error while stopping %s listener", name)
        for t in threads:
            t.join(timeout=5.0)
        logger.info("Shutdown complete")

    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())  # pragma: no cover
