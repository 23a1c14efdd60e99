"""HTTP/1.1 wire format for cached responses.

A cached response is stored exactly as it would travel over the wire: the
status line, the header block and the (already decoded) body. Storing the
complete message lets a cache hit be rebuilt into an ``httpx.Response`` that
is indistinguishable from the live one.

Usage:
    data = dump_response(response)
    restored = parse_response(data, request)
"""

from __future__ import annotations

import httpx

from fetchcache.exceptions import ResponseParseError

_CRLF = b"\r\n"
_HEADER_END = b"\r\n\r\n"

# httpx hands us the decoded body, so framing headers describing the encoded
# payload no longer apply to what is stored.
_DROPPED_HEADERS = frozenset({b"content-encoding", b"transfer-encoding", b"content-length"})


def dump_response(response: httpx.Response) -> bytes:
    """Serialize a response (status line, headers, body) to wire format."""
    body = response.read()
    reason = response.reason_phrase or ""
    lines = [f"{response.http_version} {response.status_code} {reason}".rstrip().encode("ascii")]
    for name, value in response.headers.raw:
        if name.lower() in _DROPPED_HEADERS:
            continue
        lines.append(name + b": " + value)
    lines.append(b"Content-Length: " + str(len(body)).encode("ascii"))
    return _CRLF.join(lines) + _HEADER_END + body


def parse_response(data: bytes, request: httpx.Request | None = None) -> httpx.Response:
    """Rebuild a response from wire-format bytes.

    Raises:
        ResponseParseError: the status line or headers are malformed, or the
            body does not match its declared ``Content-Length``.
    """
    head, sep, body = data.partition(_HEADER_END)
    if not sep:
        raise ResponseParseError("unterminated header block")
    status_line, *header_lines = head.split(_CRLF)

    parts = status_line.split(b" ", 2)
    if len(parts) < 2 or not parts[0].startswith(b"HTTP/"):
        raise ResponseParseError(f"malformed status line: {status_line[:80]!r}")
    try:
        status_code = int(parts[1])
    except ValueError as e:
        raise ResponseParseError(f"malformed status code: {parts[1][:16]!r}") from e
    reason = parts[2] if len(parts) == 3 else b""

    headers: list[tuple[bytes, bytes]] = []
    for line in header_lines:
        name, colon, value = line.partition(b":")
        if not colon or not name.strip():
            raise ResponseParseError(f"malformed header line: {line[:80]!r}")
        headers.append((name.strip(), value.strip()))

    for name, value in headers:
        if name.lower() == b"content-length":
            try:
                expected = int(value)
            except ValueError as e:
                raise ResponseParseError(f"malformed content-length: {value[:16]!r}") from e
            if expected != len(body):
                raise ResponseParseError(f"truncated body: expected {expected} bytes, got {len(body)}")

    return httpx.Response(
        status_code,
        headers=headers,
        content=body,
        request=request,
        extensions={"http_version": parts[0], "reason_phrase": reason},
    )
