"""Drive a Responses stream through the reducer and encode Gemini output.

OpenAI Responses format:
    data: {"type":"response.output_text.delta","item_id":"msg_1","delta":"Hi"}

Gemini v1beta format (alt=sse):
    data: {"candidates":[{"content":{"parts":[{"text":"Hi"}],"role":"model"},"index":0}]}
"""

import json
import logging
import os
from typing import Any, Iterable, Iterator, Optional, Union

from .errors import Diagnostic, TranslationError
from .guards import ensure_event_stream
from .reducer import DiagnosticSink, GeminiChunk, ReducerState, create_initial_state, process_event
from .sse import Framing, Line, iter_records

logger = logging.getLogger(__name__)

STRICT_ENV_VAR = 'GEMINI_V1BETA_STRICT'


def is_strict_mode() -> bool:
    """Read the process-wide strict default from the environment."""
    return os.getenv(STRICT_ENV_VAR, '') == '1'


def make_diagnostic_sink(strict: Optional[bool] = None) -> DiagnosticSink:
    """
    Build the default diagnostic sink for one stream.

    Non-strict sinks log a warning and let the stream continue. Strict
    sinks raise TranslationError. ``strict=None`` falls back to the
    environment toggle.
    """
    if strict is None:
        strict = is_strict_mode()

    def sink(diagnostic: Diagnostic):
        formatted = diagnostic.format()
        if strict:
            raise TranslationError(formatted, diagnostic)
        logger.warning(formatted)

    return sink


def translate_events(events: Iterable[Any], state: ReducerState) -> Iterator[GeminiChunk]:
    """Translate validated stream events one at a time."""
    for event in ensure_event_stream(events):
        for chunk in process_event(state, event):
            yield chunk


def stream_generate_content(
    source: Union[Line, Iterable[Line]],
    framing: Framing = Framing.EVENT_STREAM,
    on_error: Optional[DiagnosticSink] = None,
    strict: Optional[bool] = None,
) -> Iterator[GeminiChunk]:
    """
    Translate a raw upstream body into Gemini stream chunks.

    Nothing is read from ``source`` until the result is iterated; closing
    the returned generator stops further reads.
    """
    state = create_initial_state(on_error or make_diagnostic_sink(strict))
    records = iter_records(source, framing)
    yield from translate_events(records, state)


def encode_sse_chunk(chunk: GeminiChunk) -> str:
    """Frame one chunk the way Gemini does for ``alt=sse``."""
    return f"data: {json.dumps(chunk, ensure_ascii=False)}\r\n\r\n"


def encode_json_array(chunks: Iterable[GeminiChunk]) -> Iterator[str]:
    """Stream chunks as one JSON array, element by element."""
    first = True
    for chunk in chunks:
        prefix = '[' if first else ',\r\n'
        first = False
        yield prefix + json.dumps(chunk, ensure_ascii=False)
    yield '[]' if first else ']'
