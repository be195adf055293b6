"""API translation layer from OpenAI Responses streams to Gemini v1beta."""

from .errors import ArgumentsIncompleteError, Diagnostic, ResponseShapeError, TranslationError
from .reducer import ReducerState, StreamReducer, create_initial_state, process_event
from .request_mapper import build_non_streaming_params, build_streaming_params
from .response_mapper import aggregate_stream, load_response_body, to_gemini_response, translate_error
from .sse import Framing, iter_records
from .streaming import encode_json_array, encode_sse_chunk, make_diagnostic_sink, stream_generate_content

__all__ = [
    'ArgumentsIncompleteError',
    'Diagnostic',
    'Framing',
    'ReducerState',
    'ResponseShapeError',
    'StreamReducer',
    'TranslationError',
    'aggregate_stream',
    'build_non_streaming_params',
    'build_streaming_params',
    'create_initial_state',
    'encode_json_array',
    'encode_sse_chunk',
    'iter_records',
    'load_response_body',
    'make_diagnostic_sink',
    'process_event',
    'stream_generate_content',
    'to_gemini_response',
    'translate_error',
]
