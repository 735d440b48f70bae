"""Tests for client IP extraction."""

import pytest

from mz_admin.utils.network import UNKNOWN_IP, client_ip, normalize_ip


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("::ffff:127.0.0.1", "127.0.0.1"),
        ("::FFFF:10.1.2.3", "10.1.2.3"),
        ("10.0.0.1:5000", "10.0.0.1"),
        (" 192.168.1.5 ", "192.168.1.5"),
        ("2001:db8::1", "2001:db8::1"),
    ],
)
def test_normalize_ip(raw: str, expected: str) -> None:
    assert normalize_ip(raw) == expected


def test_forwarded_for_first_hop_wins() -> None:
    """The first X-Forwarded-For entry is the originating client."""
    headers = {
        "x-forwarded-for": "203.0.113.7, 10.0.0.2, 10.0.0.3",
        "x-real-ip": "10.0.0.9",
    }
    assert client_ip(headers, "127.0.0.1") == "203.0.113.7"


def test_header_precedence_falls_through() -> None:
    """X-Real-IP, then CF-Connecting-IP, then the socket peer."""
    assert client_ip({"x-real-ip": "198.51.100.1", "cf-connecting-ip": "198.51.100.2"}) == (
        "198.51.100.1"
    )
    assert client_ip({"cf-connecting-ip": "::ffff:198.51.100.2"}) == "198.51.100.2"
    assert client_ip({}, "::ffff:127.0.0.1") == "127.0.0.1"


def test_unknown_when_nothing_available() -> None:
    assert client_ip({}) == UNKNOWN_IP
    assert client_ip({"x-forwarded-for": " "}, None) == UNKNOWN_IP
