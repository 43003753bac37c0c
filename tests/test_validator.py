from __future__ import annotations

import socket
from urllib.parse import urlsplit

import pytest

from certinspector.engine.errors import ForbiddenTargetError, InvalidInputError
from certinspector.engine.validator import is_forbidden_host, parse_ip_literal, validate


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("example.com", "https://example.com"),
        ("  example.com/path?q=1  ", "https://example.com/path?q=1"),
        ("sub.example.com:8443", "https://sub.example.com:8443"),
        ("http://example.com", "http://example.com"),
        ("HTTPS://Example.com/", "HTTPS://Example.com/"),
        ("[2606:4700::1111]", "https://[2606:4700::1111]"),
    ],
)
def test_validate_normalizes_scheme(raw, expected):
    normalized = validate(raw)
    assert normalized == expected
    parts = urlsplit(normalized)
    assert parts.scheme.lower() in ("http", "https")
    assert parts.hostname


@pytest.mark.parametrize(
    "raw",
    [None, "", "   ", "exa mple.com", "https://", "example.com:99999", "example.com:port", "https://exa<mple.com"],
)
def test_validate_rejects_malformed_input(raw):
    with pytest.raises(InvalidInputError) as excinfo:
        validate(raw)
    assert not isinstance(excinfo.value, ForbiddenTargetError)


@pytest.mark.parametrize("raw", ["ftp://example.com", "file:///etc/passwd", "gopher://example.com:70"])
def test_validate_forbids_other_schemes(raw):
    with pytest.raises(ForbiddenTargetError):
        validate(raw)


@pytest.mark.parametrize(
    "raw",
    [
        "127.0.0.1",
        "http://127.1.2.3:8080/admin",
        "[::1]",
        "10.1.2.3",
        "172.16.0.1",
        "172.31.255.255",
        "192.168.1.1",
        "169.254.169.254/latest/meta-data",
        "0.0.0.0",
        "localhost",
        "http://LOCALHOST:3000",
        "app.localhost",
        "0x7f.1",
        "2130706433",
        "[::ffff:127.0.0.1]",
        "[fe80::1]",
        "[fd00::1]",
    ],
)
def test_validate_forbids_internal_targets(raw):
    with pytest.raises(ForbiddenTargetError):
        validate(raw)


@pytest.mark.parametrize("host", ["8.8.8.8", "172.32.0.1", "192.169.0.1", "example.com", "2606:4700::1111"])
def test_public_hosts_are_not_forbidden(host):
    assert is_forbidden_host(host) is False


def test_empty_host_is_forbidden():
    assert is_forbidden_host("") is True


def test_forbidden_check_opens_no_sockets(monkeypatch):
    calls = []

    def _counting(*args, **kwargs):
        calls.append(args)
        raise AssertionError("network access during validation")

    monkeypatch.setattr(socket, "create_connection", _counting)
    monkeypatch.setattr(socket, "getaddrinfo", _counting)
    for raw in ("127.0.0.1", "10.0.0.8", "[::1]", "localhost", "192.168.0.10"):
        with pytest.raises(ForbiddenTargetError):
            validate(raw)
    assert calls == []


def test_parse_ip_literal_distinguishes_names_from_addresses():
    assert str(parse_ip_literal("93.184.216.34")) == "93.184.216.34"
    assert str(parse_ip_literal("[2001:db8::1]")) == "2001:db8::1"
    assert str(parse_ip_literal("::ffff:10.0.0.1")) == "10.0.0.1"
    assert parse_ip_literal("example.com") is None
    assert parse_ip_literal("") is None
