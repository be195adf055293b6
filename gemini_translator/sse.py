"""Parse raw upstream bodies into Responses API records.

Two framings are supported:

    event-stream (``text/event-stream``):
        event: response.output_text.delta
        data: {"type":"response.output_text.delta","item_id":"msg_1","delta":"Hi"}

        data: [DONE]

    unframed:
        a single JSON value once the body is complete, or free text lines.
"""

import codecs
import enum
import json
import logging
import re
from typing import Any, Dict, Iterable, Iterator, Optional, Union

logger = logging.getLogger(__name__)

DONE_SENTINEL = '[DONE]'
# Only CR and LF end a line; U+2028, U+2029 and U+0085 may appear raw inside JSON strings
LINE_BREAK = re.compile(r'\r\n|\r|\n')
DATA_PREFIX = re.compile(r'^data:\s*', re.IGNORECASE)
# Field lines of an SSE frame that never carry a payload
IGNORED_FIELDS = ('event:', 'id:', 'retry:', ':')

Line = Union[bytes, str]


class Framing(enum.Enum):
    """How the upstream frames its response body."""
    EVENT_STREAM = 'event-stream'
    UNFRAMED = 'unframed'


def _decode(line: Line) -> Optional[str]:
    if isinstance(line, bytes):
        try:
            return line.decode('utf-8')
        except UnicodeDecodeError as e:
            logger.debug(f"Dropping undecodable line: {e}")
            return None
    return line


def parse_sse_line(line: Line) -> Optional[Any]:
    """
    Parse one event-stream line into a JSON value.

    Returns None for blank lines, non-data fields, the [DONE] sentinel
    and malformed JSON. Lines without a ``data:`` prefix are decoded as
    bare JSON.
    """
    text = _decode(line)
    if text is None:
        return None

    stripped = text.strip()
    if not stripped:
        return None
    if stripped.lower().startswith(IGNORED_FIELDS):
        return None

    payload = DATA_PREFIX.sub('', stripped, count=1)
    if payload == DONE_SENTINEL:
        return None

    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        logger.debug(f"Skipping malformed SSE payload: {e}, line: {stripped[:200]}")
        return None


def iter_event_stream(lines: Iterable[Line]) -> Iterator[Any]:
    """Lazily yield decoded records from event-stream lines, in arrival order."""
    for line in lines:
        text = _decode(line)
        if text is None:
            continue
        # Some transports hand over a whole frame at once
        for sub_line in LINE_BREAK.split(text):
            record = parse_sse_line(sub_line)
            if record is not None:
                yield record


def iter_sse_chunks(chunks: Iterable[Line]) -> Iterator[Any]:
    """Re-split arbitrary text/bytes chunks on newlines before parsing."""
    return iter_event_stream(_split_lines(chunks))


def _split_lines(chunks: Iterable[Line]) -> Iterator[str]:
    # Holds back only an unfinished multi-byte sequence; invalid bytes become U+FFFD
    decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
    buffer = ''
    for chunk in chunks:
        if isinstance(chunk, bytes):
            chunk = decoder.decode(chunk)
        buffer += chunk
        *complete, buffer = LINE_BREAK.split(buffer)
        for line in complete:
            yield line

    buffer += decoder.decode(b'', final=True)
    if buffer.strip():
        yield buffer


def parse_unframed(body: Line) -> Iterator[Dict[str, Any]]:
    """
    Parse a complete non-event-stream body.

    A body starting with ``{`` or ``[`` is decoded as JSON (arrays yield
    their elements); anything else yields one text record per line.
    """
    text = _decode(body) or ''
    stripped = text.strip()
    if not stripped:
        return

    if stripped[0] in '{[':
        try:
            value = json.loads(stripped)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse unframed JSON body: {e}, body: {stripped[:200]}")
            return
        if isinstance(value, list):
            yield from value
        else:
            yield value
        return

    for line in LINE_BREAK.split(text):
        if line.strip():
            yield {'type': 'text', 'text': line}


def iter_records(source: Union[Line, Iterable[Line]], framing: Framing) -> Iterator[Any]:
    """Turn a raw source into records according to its declared framing."""
    if framing is Framing.EVENT_STREAM:
        if isinstance(source, (bytes, str)):
            return iter_event_stream(LINE_BREAK.split(_decode(source) or ''))
        return iter_event_stream(source)

    if isinstance(source, (bytes, str)):
        return parse_unframed(source)
    return parse_unframed(b'\n'.join(
        part if isinstance(part, bytes) else part.encode('utf-8') for part in source
    ))
