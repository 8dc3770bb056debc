"""Tests for client IP resolution and address-family classification."""

import pytest

from app.services.client_ip_service import (
    FORWARDING_HEADERS,
    format_peer_address,
    is_ipv4,
    is_valid_ip,
    resolve_client_ip,
    resolve_client_ipv4,
    resolve_client_ipv6,
    split_host_port,
)

PEER = "192.0.2.10:54321"


class TestResolveClientIp:
    """Tests for header precedence and peer address fallback."""

    def test_cf_connecting_ip_wins_over_everything(self):
        """Test that a valid CF-Connecting-IP is returned whatever else is set."""
        headers = {header: "198.51.100.99" for header in FORWARDING_HEADERS}
        headers["CF-Connecting-IP"] = "203.0.113.1"

        assert resolve_client_ip(headers, PEER) == "203.0.113.1"

    def test_x_forwarded_for_takes_first_hop(self):
        """Test that only the first X-Forwarded-For entry is used, trimmed."""
        headers = {"X-Forwarded-For": "203.0.113.5, 10.0.0.1"}

        assert resolve_client_ip(headers, PEER) == "203.0.113.5"

    def test_x_forwarded_for_first_hop_whitespace_trimmed(self):
        headers = {"X-Forwarded-For": "  2001:db8::7  ,10.0.0.1"}

        assert resolve_client_ip(headers, PEER) == "2001:db8::7"

    def test_invalid_first_forwarded_hop_skips_whole_header(self):
        """Test that later hops are not scanned when the first one is invalid."""
        headers = {"X-Forwarded-For": "not-an-ip, 198.51.100.7"}

        assert resolve_client_ip(headers, PEER) == "192.0.2.10"

    def test_invalid_first_forwarded_hop_falls_through_to_next_header(self):
        headers = {
            "X-Forwarded-For": "not-an-ip, 198.51.100.7",
            "X-Real-IP": "198.51.100.8",
        }

        assert resolve_client_ip(headers, PEER) == "198.51.100.8"

    def test_invalid_values_are_skipped(self):
        """Test that scanning continues past headers that aren't IP text."""
        headers = {
            "CF-Connecting-IP": "garbage",
            "X-Real-IP": "999.1.1.1",
            "X-Client-IP": "",
            "X-Cluster-Client-IP": "198.51.100.20",
        }

        assert resolve_client_ip(headers, PEER) == "198.51.100.20"

    def test_other_headers_taken_verbatim(self):
        """Test that only X-Forwarded-For is split and trimmed."""
        headers = {
            "X-Real-IP": " 198.51.100.1",
            "X-Client-IP": "198.51.100.2, 198.51.100.3",
            "Forwarded": "198.51.100.4",
        }

        assert resolve_client_ip(headers, PEER) == "198.51.100.4"

    def test_rfc7239_forwarded_syntax_is_not_parsed(self):
        headers = {"Forwarded": "for=198.51.100.4;proto=https"}

        assert resolve_client_ip(headers, PEER) == "192.0.2.10"

    @pytest.mark.parametrize("header", FORWARDING_HEADERS)
    def test_each_header_is_consulted(self, header):
        assert resolve_client_ip({header: "203.0.113.50"}, PEER) == "203.0.113.50"

    def test_precedence_order(self):
        """Test that earlier headers in the list beat later ones."""
        headers = {
            "Forwarded": "198.51.100.8",
            "Forwarded-For": "198.51.100.7",
            "X-Cluster-Client-IP": "198.51.100.6",
            "X-Forwarded": "198.51.100.5",
            "X-Client-IP": "198.51.100.4",
            "X-Real-IP": "198.51.100.3",
        }

        assert resolve_client_ip(headers, PEER) == "198.51.100.3"

    def test_falls_back_to_peer_host(self):
        assert resolve_client_ip({}, "192.0.2.10:54321") == "192.0.2.10"

    def test_falls_back_to_bracketed_ipv6_peer_host(self):
        assert resolve_client_ip({}, "[2001:db8::2]:443") == "2001:db8::2"

    def test_unsplittable_peer_returned_unchanged(self):
        """Test that a peer address without a port is returned as-is."""
        assert resolve_client_ip({}, "not-a-valid-address") == "not-a-valid-address"

    def test_bare_ipv6_peer_returned_unchanged(self):
        assert resolve_client_ip({}, "2001:db8::2") == "2001:db8::2"

    def test_empty_inputs(self):
        assert resolve_client_ip({}, "") == ""


class TestAddressFamilies:
    """Tests for IPv4/IPv6-only resolution."""

    def test_ipv4_of_ipv6_is_empty(self):
        assert resolve_client_ipv4({"X-Real-IP": "2001:db8::1"}, PEER) == ""

    def test_ipv6_of_ipv4_is_empty(self):
        assert resolve_client_ipv6({"X-Real-IP": "203.0.113.5"}, PEER) == ""

    def test_ipv4_resolved(self):
        assert resolve_client_ipv4({"X-Real-IP": "203.0.113.5"}, PEER) == "203.0.113.5"

    def test_ipv6_resolved(self):
        assert resolve_client_ipv6({"X-Real-IP": "2001:db8::1"}, PEER) == "2001:db8::1"

    def test_ipv4_mapped_ipv6_counts_as_ipv4(self):
        """Test that ::ffff:a.b.c.d is classified as IPv4 and returned verbatim."""
        headers = {"X-Real-IP": "::ffff:203.0.113.5"}

        assert resolve_client_ipv4(headers, PEER) == "::ffff:203.0.113.5"
        assert resolve_client_ipv6(headers, PEER) == ""

    def test_unvalidated_fallback_matches_neither_family(self):
        """Test that non-IP fallback text yields empty for both families."""
        assert resolve_client_ipv4({}, "testclient:50000") == ""
        assert resolve_client_ipv6({}, "testclient:50000") == ""

    def test_peer_fallback_classified(self):
        assert resolve_client_ipv4({}, PEER) == "192.0.2.10"
        assert resolve_client_ipv6({}, "[::1]:8080") == "::1"


class TestIpParsing:
    @pytest.mark.parametrize(
        "value",
        ["203.0.113.5", "0.0.0.0", "::", "::1", "2001:db8::1", "2001:0db8:0:0:0:0:0:1"],
    )
    def test_valid(self, value):
        assert is_valid_ip(value)

    @pytest.mark.parametrize(
        "value",
        ["", "localhost", "256.0.0.1", "1.2.3", "010.0.0.1", "fe80::1%eth0", " 1.2.3.4"],
    )
    def test_invalid(self, value):
        assert not is_valid_ip(value)

    def test_is_ipv4(self):
        assert is_ipv4("203.0.113.5")
        assert not is_ipv4("2001:db8::1")
        assert not is_ipv4("nonsense")


class TestSplitHostPort:
    @pytest.mark.parametrize(
        "address,expected",
        [
            ("192.0.2.10:54321", ("192.0.2.10", "54321")),
            ("example.com:80", ("example.com", "80")),
            ("[2001:db8::1]:443", ("2001:db8::1", "443")),
            ("192.0.2.10:", ("192.0.2.10", "")),
            (":80", ("", "80")),
        ],
    )
    def test_splits(self, address, expected):
        assert split_host_port(address) == expected

    @pytest.mark.parametrize(
        "address",
        ["192.0.2.10", "2001:db8::1", "[2001:db8::1]", "[2001:db8::1", "[::1]x80", "a]:80", ""],
    )
    def test_rejects(self, address):
        with pytest.raises(ValueError):
            split_host_port(address)


class TestFormatPeerAddress:
    def test_ipv4(self):
        assert format_peer_address("192.0.2.10", 54321) == "192.0.2.10:54321"

    def test_ipv6_bracketed(self):
        assert format_peer_address("2001:db8::1", 443) == "[2001:db8::1]:443"

    def test_missing_host(self):
        assert format_peer_address(None, None) == ""

    def test_missing_port(self):
        assert format_peer_address("192.0.2.10", None) == "192.0.2.10"
