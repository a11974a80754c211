"""
Brief: Tests for viewdns.config.config_parser loading and normalization.

Inputs:
  - None

Outputs:
  - None
"""

import logging

import pytest

from viewdns.config import config_parser as cp
from viewdns.config.config_parser import (
    ViewConfig,
    build_config,
    candidate_paths,
    load_config,
    parse_host_port,
    read_config_file,
)
from viewdns.errors import ConfigError
from viewdns.views.view import Rule

_MINIMAL = {
    "upstream": "1.1.1.1:53",
    "views": [{"name": "all", "sources": ["0.0.0.0/0"], "rule": "allow"}],
}


def _write(tmp_path, text, name="viewdns.yaml"):
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return str(p)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1.1.1.1:53", ("1.1.1.1", 53)),
        ("1.1.1.1", ("1.1.1.1", 53)),
        ("dns.example:5353", ("dns.example", 5353)),
        ("[2001:db8::1]:5353", ("2001:db8::1", 5353)),
        ("[2001:db8::1]", ("2001:db8::1", 53)),
        ("2001:db8::1", ("2001:db8::1", 53)),
    ],
)
def test_parse_host_port(text, expected):
    assert parse_host_port(text) == expected


def test_parse_host_port_default_host():
    assert parse_host_port(":5353", default_host="0.0.0.0") == ("0.0.0.0", 5353)
    assert parse_host_port("", default_host="0.0.0.0") == ("0.0.0.0", 53)


@pytest.mark.parametrize("text", ["", ":53", "host:0", "host:70000", "host:abc", "[::1", "[::1]x"])
def test_parse_host_port_rejects(text):
    with pytest.raises(ConfigError):
        parse_host_port(text, field_name="upstream")


def test_view_config_normalizes_entries():
    """
    Brief: ViewConfig accepts scalars and nulls for network lists.

    Inputs:
      - sources: scalar string; include: None; rule: 'ALLOW'

    Outputs:
      - None: Asserts normalized list and rule values
    """
    vc = ViewConfig(name="x", sources=" 10.0.0.0/8 ", include=None, rule="ALLOW")
    assert vc.sources == ["10.0.0.0/8"]
    assert vc.include == []
    assert vc.exclude == []
    assert vc.rule == "allow"


def test_view_config_unknown_rule_is_default():
    assert ViewConfig(name="x", rule="maybe").rule == "default"
    assert ViewConfig(name="x").rule == "default"


def test_build_config_minimal_defaults():
    cfg = build_config(dict(_MINIMAL), environ={})
    assert cfg.upstream == ("1.1.1.1", 53)
    assert cfg.listen == ("0.0.0.0", 53)
    assert cfg.default_rule is Rule.DENY
    assert cfg.debug is False
    assert cfg.timeout_ms == cp.DEFAULT_TIMEOUT_MS
    assert [v.name for v in cfg.views] == ["all"]
    assert dict(cfg.log_config) == {}


def test_build_config_full():
    raw = {
        "upstream": "[2001:db8::53]:5300",
        "listen": "127.0.0.1:5353",
        "default_rule": "Allow",
        "debug": True,
        "timeout_ms": 750,
        "logging": {"level": "warn"},
        "views": [
            {"name": "lan", "sources": "10.0.0.0/8", "exclude": ["192.168.0.0/16"]},
            {"name": "pub", "sources": ["0.0.0.0/0"], "rule": "deny"},
        ],
    }
    cfg = build_config(raw, source_path="/tmp/x.yaml", environ={})
    assert cfg.upstream == ("2001:db8::53", 5300)
    assert cfg.listen == ("127.0.0.1", 5353)
    assert cfg.default_rule is Rule.ALLOW
    assert cfg.debug is True
    assert cfg.timeout_ms == 750
    assert cfg.log_config == {"level": "warn"}
    assert cfg.source_path == "/tmp/x.yaml"
    lan, pub = list(cfg.views)
    assert lan.rule is Rule.DEFAULT
    assert lan.default_rule is Rule.ALLOW
    assert pub.rule is Rule.DENY


def test_build_config_default_rule_from_environment():
    cfg = build_config(dict(_MINIMAL), environ={"DNSVIEWS_DEFAULT_RULE": "allow"})
    assert cfg.default_rule is Rule.ALLOW


def test_build_config_file_default_rule_beats_environment():
    raw = dict(_MINIMAL, default_rule="deny")
    cfg = build_config(raw, environ={"DNSVIEWS_DEFAULT_RULE": "allow"})
    assert cfg.default_rule is Rule.DENY


def test_build_config_unrecognized_default_rule_is_deny():
    cfg = build_config(dict(_MINIMAL, default_rule="default"), environ={})
    assert cfg.default_rule is Rule.DENY


@pytest.mark.parametrize("env_val,expected", [("1", True), ("yes", True), ("0", False), ("", False)])
def test_build_config_debug_from_environment(env_val, expected):
    cfg = build_config(dict(_MINIMAL), environ={"DNSVIEWS_DEBUG": env_val})
    assert cfg.debug is expected


def test_build_config_cli_debug_wins():
    assert build_config(dict(_MINIMAL), environ={}, debug=True).debug is True


def test_build_config_empty_views_rejected():
    with pytest.raises(ConfigError):
        build_config({"upstream": "1.1.1.1", "views": []}, environ={})


def test_build_config_missing_upstream_rejected():
    with pytest.raises(ConfigError):
        build_config({"views": _MINIMAL["views"]}, environ={})


def test_build_config_bad_network_names_view():
    raw = {
        "upstream": "1.1.1.1",
        "views": [{"name": "lan", "sources": ["10.0.0.0/8"], "include": ["nope"]}],
    }
    with pytest.raises(ConfigError) as excinfo:
        build_config(raw, environ={})
    assert "views[lan].include[0]" in str(excinfo.value)


def test_build_config_unknown_keys_warn(caplog):
    raw = dict(_MINIMAL, frobnicate=1)
    with caplog.at_level(logging.WARNING, logger="viewdns.config"):
        cfg = build_config(raw, environ={})
    assert cfg.upstream == ("1.1.1.1", 53)
    assert any("frobnicate" in r.getMessage() for r in caplog.records)


def test_candidate_paths_order():
    paths = candidate_paths("/custom.yaml")
    assert paths[0] == "/custom.yaml"
    assert paths[1:] == list(cp.WELL_KNOWN_PATHS)
    assert candidate_paths(None) == list(cp.WELL_KNOWN_PATHS)


def test_read_config_file_skips_missing_and_broken(tmp_path, caplog):
    """
    Brief: Missing files and YAML errors fall through to the next candidate.

    Inputs:
      - paths: missing file, unparsable YAML, valid YAML

    Outputs:
      - None: Asserts the valid file is chosen and a warning is logged
    """
    broken = _write(tmp_path, "views: [unclosed", name="broken.yaml")
    good = _write(tmp_path, "upstream: 1.1.1.1\n", name="good.yaml")
    with caplog.at_level(logging.WARNING, logger="viewdns.config"):
        path, data = read_config_file([str(tmp_path / "missing.yaml"), None, broken, good])
    assert path == good
    assert data == {"upstream": "1.1.1.1"}
    assert any("broken.yaml" in r.getMessage() for r in caplog.records)


def test_read_config_file_empty_document_is_empty_mapping(tmp_path):
    empty = _write(tmp_path, "")
    assert read_config_file([empty]) == (empty, {})


def test_read_config_file_nothing_found(tmp_path):
    with pytest.raises(ConfigError) as excinfo:
        read_config_file([str(tmp_path / "a.yaml"), str(tmp_path / "b.yaml")])
    assert "cannot find viewdns.yaml" in str(excinfo.value)
    assert "a.yaml" in str(excinfo.value)


def test_load_config_explicit_path(tmp_path, monkeypatch):
    monkeypatch.setattr(cp, "WELL_KNOWN_PATHS", ())
    path = _write(
        tmp_path,
        "upstream: 9.9.9.9:53\n"
        "listen: 127.0.0.1:5300\n"
        "views:\n"
        "  - name: internal\n"
        "    sources: [10.0.0.0/8]\n"
        "    rule: allow\n"
        "    exclude: [192.168.0.0/16]\n",
    )
    cfg = load_config(path, environ={})
    assert cfg.source_path == path
    assert cfg.upstream == ("9.9.9.9", 53)
    assert cfg.listen == ("127.0.0.1", 5300)
    (view,) = list(cfg.views)
    assert view.decide("192.168.1.1") is False


def test_load_config_from_environment_variable(tmp_path, monkeypatch):
    monkeypatch.setattr(cp, "WELL_KNOWN_PATHS", ())
    path = _write(tmp_path, "upstream: 9.9.9.9\nviews: [{name: a, sources: 0.0.0.0/0}]\n")
    cfg = load_config(environ={"DNSVIEWS_CONFIG": path})
    assert cfg.source_path == path


def test_load_config_missing_explicit_falls_back(tmp_path, monkeypatch):
    fallback = _write(tmp_path, "upstream: 8.8.8.8\nviews: [{name: a}]\n", name="fallback.yaml")
    monkeypatch.setattr(cp, "WELL_KNOWN_PATHS", (fallback,))
    cfg = load_config(str(tmp_path / "nope.yaml"), environ={})
    assert cfg.source_path == fallback


def test_load_config_nothing_found(tmp_path, monkeypatch):
    monkeypatch.setattr(cp, "WELL_KNOWN_PATHS", ())
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "nope.yaml"), environ={})
