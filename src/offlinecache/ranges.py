"""
Byte-Range Responses

Serves ``Range: bytes=start-end`` requests for cached media entries by
slicing the stored payload.
"""

import re
from typing import Iterable, Optional, Tuple

from offlinecache.http import Headers, Request, Response
from offlinecache.storage.base import Entry


RANGE_PATTERN = re.compile(r'^\s*bytes\s*=\s*(\d+)\s*-\s*(\d*)\s*$', re.IGNORECASE)


def parse_range(header: str) -> Optional[Tuple[int, Optional[int]]]:
    """
    Parse a single ``bytes=start-end`` range.

    Returns:
        ``(start, end)`` with ``end`` None when open-ended, or None if the
        header is not a single satisfiable-looking byte range
    """
    match = RANGE_PATTERN.match(header or '')
    if not match:
        return None
    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else None
    if end is not None and end < start:
        return None
    return start, end


def is_media_entry(request: Request, entry: Entry, extensions: Iterable[str]) -> bool:
    """Media entries are matched by URL suffix or audio/video content type."""
    path = request.key.split('?', 1)[0].lower()
    if any(path.endswith(ext) for ext in extensions):
        return True
    return entry.content_type.lower().startswith(('video/', 'audio/'))


def range_response(entry: Entry, header: str) -> Optional[Response]:
    """
    Build a 206 (or 416) response for a range request.

    Returns:
        The partial response, or None when the header cannot be parsed and
        the full entry should be served instead
    """
    parsed = parse_range(header)
    if parsed is None:
        return None

    total = len(entry.payload)
    start, end = parsed

    if start >= total:
        return Response(
            status=416,
            status_text="Range Not Satisfiable",
            headers=Headers({'Content-Range': f"bytes */{total}"}),
            url=entry.url,
        )

    if end is None or end > total - 1:
        end = total - 1

    chunk = entry.payload[start:end + 1]
    headers = Headers({
        'Content-Range': f"bytes {start}-{end}/{total}",
        'Content-Length': str(len(chunk)),
    })
    if entry.content_type:
        headers['Content-Type'] = entry.content_type

    return Response(
        status=206,
        status_text="Partial Content",
        body=chunk,
        headers=headers,
        url=entry.url,
    )
