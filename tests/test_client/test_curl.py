"""Tests for curl command generation."""

from __future__ import annotations

import pytest

from wiretap.client.curl import curl_for_request, generate_curl, is_base64
from wiretap.models import Header, RequestDescriptor


class TestGenerateCurl:
    def test_plain_get(self) -> None:
        assert generate_curl("GET", "https://x/y") == "curl \\\n  'https://x/y'"

    def test_method_headers_body(self) -> None:
        out = generate_curl("POST", "https://x/y", {"A": "1", "B": "2"}, "hi")
        assert out == (
            "curl -X POST \\\n"
            "  -H 'A: 1' \\\n"
            "  -H 'B: 2' \\\n"
            "  -d 'hi' \\\n"
            "  'https://x/y'"
        )

    def test_get_never_has_method_flag(self) -> None:
        assert "-X" not in generate_curl("GET", "https://x", {"A": "1"})

    def test_multi_value_header_joined(self) -> None:
        out = generate_curl("GET", "https://x", {"Accept": ["text/html", "application/json"]})
        assert "-H 'Accept: text/html, application/json'" in out

    def test_single_quotes_escaped(self) -> None:
        out = generate_curl("POST", "https://x", {}, "it's")
        assert "-d 'it'\\''s'" in out

    def test_base64_body_decoded(self) -> None:
        out = generate_curl("PUT", "https://x", {}, "aGVsbG8gd29ybGQ=")
        assert "-d 'hello world'" in out

    def test_url_is_last(self) -> None:
        out = generate_curl("DELETE", "https://x/1", {"A": "1"}, "body")
        assert out.splitlines()[-1] == "  'https://x/1'"


class TestIsBase64:
    @pytest.mark.parametrize("text", ["aGVsbG8=", "aGVsbG8gd29ybGQ=", "YQ=="])
    def test_valid(self, text: str) -> None:
        assert is_base64(text) is True

    @pytest.mark.parametrize("text", ["", "hello", '{"a":1}', "abc", "a==="])
    def test_invalid(self, text: str) -> None:
        assert is_base64(text) is False


class TestCurlForRequest:
    def test_uses_enabled_headers(self) -> None:
        req = RequestDescriptor(
            method="PATCH",
            url="https://x",
            headers=[Header(key="On", value="1"), Header(key="Off", value="0", enabled=False)],
            body="",
        )
        out = curl_for_request(req)
        assert "-X PATCH" in out
        assert "On: 1" in out
        assert "Off" not in out
