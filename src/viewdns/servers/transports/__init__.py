"""Upstream DNS transports (UDP and TCP)."""
