"""Tests for URL parsing helpers."""

from urllib.parse import quote

import pytest

from urlsentry.utils.url import (
    parse_url, extract_domain, registered_domain, extract_registered_domain,
    extract_tld, count_query_params, ipv4_to_int, is_ipv4_address, parse_cidr,
    is_private_ip, is_localhost, is_private_url, safe_unquote,
    count_encoded_chars, is_excessively_encoded, extract_embedded_url,
    count_redirects, is_url_shortener, is_javascript_url, is_data_url, is_blob_url
)
from urlsentry.utils.filename import sanitize_filename, has_path_traversal


def wrap(url: str, times: int) -> str:
    """Nest a URL inside redirect wrappers."""
    for _ in range(times):
        url = "https://redirect.example.com/go?url=" + quote(url, safe="")
    return url


class TestParsing:
    """parse_url and domain extraction."""

    def test_parse_valid_url(self):
        parsed = parse_url("https://example.com/a?b=1")
        assert parsed.scheme == "https"
        assert parsed.hostname == "example.com"

    @pytest.mark.parametrize("url", ["", "not a url", "http://", "https:///path"])
    def test_parse_invalid_url(self, url):
        assert parse_url(url) is None

    def test_parse_rejects_non_string(self):
        assert parse_url(None) is None

    def test_extract_domain_lowercases(self):
        assert extract_domain("https://WWW.Example.COM/x") == "www.example.com"

    def test_extract_domain_of_data_url(self):
        assert extract_domain("data:image/png;base64,AAAA") == ""

    def test_extract_domain_of_ipv6(self):
        assert extract_domain("http://[::1]:8080/") == "::1"

    @pytest.mark.parametrize("hostname,expected", [
        ("sub.example.com", "example.com"),
        ("a.b.example.com", "example.com"),
        ("sub.example.co.uk", "example.co.uk"),
        ("shop.example.com.au", "example.com.au"),
        ("sub.dropper.malicious", "dropper.malicious"),
        ("192.168.1.1", "192.168.1.1"),
        ("localhost", "localhost"),
        ("", ""),
    ])
    def test_registered_domain(self, hostname, expected):
        assert registered_domain(hostname) == expected

    def test_extract_registered_domain(self):
        assert extract_registered_domain("https://www.example.co.uk/x") == "example.co.uk"

    def test_extract_tld(self):
        assert extract_tld("https://example.co.uk/") == "co.uk"
        assert extract_tld("https://example.tk/") == "tk"
        assert extract_tld("http://10.0.0.1/") == ""

    def test_count_query_params_keeps_blanks(self):
        assert count_query_params("https://e.com/?a=1&b=&c") == 3
        assert count_query_params("https://e.com/") == 0


class TestSchemes:
    """Scheme predicates."""

    def test_javascript_url_ignores_case_and_whitespace(self):
        assert is_javascript_url("javascript:alert(1)")
        assert is_javascript_url("  JaVa Script:alert(1)")
        assert not is_javascript_url("https://example.com/javascript:")

    def test_data_and_blob(self):
        assert is_data_url("DATA:text/plain,hi")
        assert is_blob_url("blob:https://example.com/uuid")
        assert not is_data_url("https://example.com/data:")


class TestIPv4:
    """IPv4 and CIDR math."""

    def test_ipv4_to_int(self):
        assert ipv4_to_int("192.168.0.1") == 3232235521
        assert ipv4_to_int("0.0.0.0") == 0
        assert ipv4_to_int("255.255.255.255") == 0xFFFFFFFF

    @pytest.mark.parametrize("value", ["256.1.1.1", "1.2.3", "a.b.c.d", "1.2.3.4.5", ""])
    def test_invalid_ipv4(self, value):
        assert ipv4_to_int(value) is None
        assert not is_ipv4_address(value)

    def test_parse_cidr(self):
        assert parse_cidr("192.168.0.0/24") == (3232235520, 3232235775)

    def test_parse_cidr_normalizes_host_bits(self):
        assert parse_cidr("192.168.0.77/24") == (3232235520, 3232235775)

    def test_bare_address_is_single_host(self):
        assert parse_cidr("10.0.0.1") == (167772161, 167772161)

    def test_zero_prefix_covers_everything(self):
        assert parse_cidr("0.0.0.0/0") == (0, 0xFFFFFFFF)

    @pytest.mark.parametrize("cidr", ["1.2.3.4/33", "1.2.3.4/x", "bad/24", "", "1.2.3.4/"])
    def test_invalid_cidr(self, cidr):
        assert parse_cidr(cidr) is None

    def test_cidr_boundaries(self):
        start, end = parse_cidr("192.168.0.0/24")
        assert start <= ipv4_to_int("192.168.0.0") <= end
        assert start <= ipv4_to_int("192.168.0.255") <= end
        assert not start <= ipv4_to_int("192.168.1.0") <= end

    @pytest.mark.parametrize("ip,expected", [
        ("10.1.2.3", True),
        ("172.16.5.4", True),
        ("172.31.255.255", True),
        ("172.32.0.1", False),
        ("192.168.10.1", True),
        ("127.0.0.1", True),
        ("169.254.1.1", True),
        ("100.64.0.1", True),
        ("203.0.113.9", True),
        ("224.0.0.1", True),
        ("8.8.8.8", False),
        ("93.184.216.34", False),
        ("not-an-ip", False),
    ])
    def test_is_private_ip(self, ip, expected):
        assert is_private_ip(ip) is expected

    @pytest.mark.parametrize("hostname", ["localhost", "LOCALHOST", "127.0.0.1", "::1", "[::1]", "app.localhost"])
    def test_is_localhost(self, hostname):
        assert is_localhost(hostname)

    def test_is_not_localhost(self):
        assert not is_localhost("localhost.example.com")
        assert not is_localhost("")

    def test_is_private_url(self):
        assert is_private_url("http://192.168.1.10/admin")
        assert is_private_url("http://[::1]/")
        assert not is_private_url("https://example.com/")


class TestEncoding:
    """Percent-encoding helpers."""

    def test_safe_unquote(self):
        assert safe_unquote("a%20b") == "a b"

    def test_safe_unquote_returns_input_on_invalid_utf8(self):
        assert safe_unquote("%FF") == "%FF"

    def test_count_encoded_chars(self):
        assert count_encoded_chars("%20a%2F%zz") == 2

    def test_excessive_encoding(self):
        assert is_excessively_encoded("https://e.com/%41%42%43%44%45%46%47%48%49%4A")
        assert not is_excessively_encoded("https://example.com/a%20b")
        assert not is_excessively_encoded("")


class TestRedirects:
    """Embedded URL extraction."""

    def test_extract_embedded_url(self):
        url = "https://r.example.com/?url=https%3A%2F%2Fa.example.com%2Fx"
        assert extract_embedded_url(url) == "https://a.example.com/x"

    def test_extract_double_encoded_embedded_url(self):
        url = "https://r.example.com/?img=https%253A%252F%252Fa.example.com%252Fx.jpg"
        assert extract_embedded_url(url) == "https://a.example.com/x.jpg"

    def test_no_embedded_url(self):
        assert extract_embedded_url("https://example.com/?url=relative/path") is None
        assert extract_embedded_url("https://example.com/") is None

    @pytest.mark.parametrize("hops", [0, 1, 2, 4])
    def test_count_redirects(self, hops):
        assert count_redirects(wrap("https://final.example.com/x.jpg", hops)) == hops

    def test_count_redirects_is_bounded(self):
        assert count_redirects(wrap("https://final.example.com/x.jpg", 12)) == 10


class TestShorteners:
    """URL shortener detection."""

    @pytest.mark.parametrize("url", ["https://bit.ly/abc", "https://t.co/x", "https://shorturl.at/y"])
    def test_known_shorteners(self, url):
        assert is_url_shortener(url)

    def test_regular_domain(self):
        assert not is_url_shortener("https://example.com/bit.ly")


class TestFilenameHelpers:
    """Base filename sanitizer."""

    def test_invalid_characters_replaced(self):
        assert sanitize_filename('a<b>c:d.txt') == "a_b_c_d.txt"

    def test_reserved_names_prefixed(self):
        assert sanitize_filename("CON") == "_CON"
        assert sanitize_filename("lpt1.log") == "_lpt1.log"

    def test_length_clamp_keeps_extension(self):
        result = sanitize_filename("a" * 300 + ".jpeg")
        assert len(result) == 200
        assert result.endswith(".jpeg")

    def test_empty(self):
        assert sanitize_filename("") == ""

    @pytest.mark.parametrize("name", ["../etc/passwd", "a/../../b", "..\\windows", "/etc/passwd", "C:\\x"])
    def test_path_traversal(self, name):
        assert has_path_traversal(name)

    @pytest.mark.parametrize("name", ["photo.jpg", "my..file.txt", ""])
    def test_no_path_traversal(self, name):
        assert not has_path_traversal(name)
