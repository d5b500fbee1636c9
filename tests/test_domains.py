"""Tests for domain canonicalisation and tab URL extraction."""

import pytest

from blockd.core.domains import extract_domain, normalize_domain
from blockd.errors import ValidationError


class TestNormalizeDomain:
    @pytest.mark.parametrize("raw", [
        "reddit.com",
        "Reddit.COM",
        "www.reddit.com",
        "  www.reddit.com  ",
        "https://www.reddit.com/r/python?sort=new",
        "http://reddit.com:8080/",
        "reddit.com/r/python",
        "reddit.com.",
        "user@reddit.com",
    ])
    def test_variants_share_one_key(self, raw):
        assert normalize_domain(raw) == "reddit.com"

    def test_subdomains_are_kept(self):
        assert normalize_domain("old.reddit.com") == "old.reddit.com"
        assert normalize_domain("www.news.ycombinator.com") == "news.ycombinator.com"

    @pytest.mark.parametrize("raw", ["", "   ", "not a domain", "-bad.com", "a..b", "https://"])
    def test_garbage_rejected(self, raw):
        with pytest.raises(ValidationError):
            normalize_domain(raw)

    def test_non_string_rejected(self):
        with pytest.raises(ValidationError):
            normalize_domain(42)


class TestExtractDomain:
    def test_plain_site(self):
        assert extract_domain("https://www.youtube.com/watch?v=abc") == "youtube.com"

    @pytest.mark.parametrize("url", [
        "chrome://newtab/",
        "chrome-extension://blockd/blocked-redirect.html?site=reddit.com",
        "edge://settings",
        "about:blank",
        "moz-extension://abc/page.html",
        "file:///home/me/notes.txt",
        "data:text/html,hello",
    ])
    def test_internal_pages_are_not_tracked(self, url):
        assert extract_domain(url) is None

    @pytest.mark.parametrize("url", [None, "", "not a url", "https://"])
    def test_blank_or_unparsable(self, url):
        assert extract_domain(url) is None
