"""
Tests for Byte-Range Responses
"""

import pytest

from offlinecache.http import Request
from offlinecache.ranges import is_media_entry, parse_range, range_response
from offlinecache.storage.base import Entry

from tests.conftest import make_response


def entry_for(payload, content_type='video/mp4', key='https://app.test/v.mp4'):
    return Entry.from_response(key, make_response(payload, content_type=content_type), 1)


class TestParseRange:
    """Test suite for Range header parsing."""

    @pytest.mark.parametrize("header,expected", [
        ("bytes=0-99", (0, 99)),
        ("bytes=100-", (100, None)),
        ("BYTES = 5 - 6", (5, 6)),
    ])
    def test_valid(self, header, expected):
        assert parse_range(header) == expected

    @pytest.mark.parametrize("header", ["", "bytes=-500", "bytes=5-2", "items=0-1", "bytes=0-1,4-5", None])
    def test_invalid(self, header):
        assert parse_range(header) is None


class TestRangeResponse:
    """Test suite for building partial responses."""

    def test_slice(self):
        response = range_response(entry_for(b'0123456789'), "bytes=2-5")

        assert response.status == 206
        assert response.body == b'2345'
        assert response.headers['content-range'] == 'bytes 2-5/10'
        assert response.headers['content-length'] == '4'
        assert response.headers['content-type'] == 'video/mp4'

    def test_end_clamped(self):
        response = range_response(entry_for(b'0123456789'), "bytes=8-500")
        assert response.body == b'89'
        assert response.headers['content-range'] == 'bytes 8-9/10'

    def test_start_beyond_payload(self):
        response = range_response(entry_for(b'0123'), "bytes=4-")
        assert response.status == 416
        assert response.headers['content-range'] == 'bytes */4'

    def test_unparseable_serves_full(self):
        assert range_response(entry_for(b'0123'), "bytes=-2") is None


class TestIsMediaEntry:
    """Test suite for media detection."""

    @pytest.mark.parametrize("url,content_type,expected", [
        ("https://app.test/v.mp4", "application/octet-stream", True),
        ("https://app.test/v.WEBM?t=1", "", True),
        ("https://app.test/stream", "video/ogg", True),
        ("https://app.test/track", "audio/mpeg", True),
        ("https://app.test/doc.pdf", "application/pdf", False),
    ])
    def test_detection(self, url, content_type, expected):
        request = Request(url)
        entry = entry_for(b'x', content_type=content_type, key=request.key)
        assert is_media_entry(request, entry, ['.mp4', '.webm']) is expected
