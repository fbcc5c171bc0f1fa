"""Tests for Accept-header format negotiation."""

from imgcache.negotiate import pick_format
from imgcache.types import ImageFormat


class TestPickFormat:
    def test_missing_header(self):
        assert pick_format(None) == "jpeg"

    def test_empty_header(self):
        assert pick_format("") is ImageFormat.JPEG

    def test_webp_advertised(self):
        assert pick_format("text/html,image/webp") == "webp"

    def test_webp_not_advertised(self):
        assert pick_format("text/html") == "jpeg"

    def test_browser_style_header(self):
        header = "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8"
        assert pick_format(header) is ImageFormat.WEBP

    def test_wildcard_alone_is_fallback(self):
        assert pick_format("image/*,*/*") is ImageFormat.JPEG
