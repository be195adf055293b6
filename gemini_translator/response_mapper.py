"""Translate non-streaming OpenAI Responses results to Gemini v1beta format."""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from . import guards
from .errors import ResponseShapeError, TranslationError
from .reducer import DiagnosticSink, create_initial_state, process_event
from .sse import Framing, Line, iter_records

logger = logging.getLogger(__name__)

FINISH_STOP = 'STOP'
FINISH_MAX_TOKENS = 'MAX_TOKENS'

# HTTP status -> google.rpc status name used in Gemini error bodies
STATUS_NAMES = {
    400: 'INVALID_ARGUMENT',
    401: 'UNAUTHENTICATED',
    403: 'PERMISSION_DENIED',
    404: 'NOT_FOUND',
    429: 'RESOURCE_EXHAUSTED',
    499: 'CANCELLED',
    500: 'INTERNAL',
    501: 'UNIMPLEMENTED',
    502: 'UNAVAILABLE',
    503: 'UNAVAILABLE',
    504: 'DEADLINE_EXCEEDED',
}


def to_gemini_response(resp: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate a Responses API result to a Gemini generateContent response.

    Text comes from the first output message (falling back to the
    top-level ``output_text``); function_call items become functionCall
    parts.
    """
    output = resp.get('output') if isinstance(resp.get('output'), list) else []
    parts: List[Dict[str, Any]] = []

    text = _first_output_text(output)
    if text is None:
        top = resp.get('output_text')
        text = top if isinstance(top, str) else ''
    parts.append({'text': text})

    for item in output:
        if isinstance(item, dict) and item.get('type') == 'function_call':
            parts.append({'functionCall': {
                'name': item.get('name', ''),
                'args': _load_arguments(item.get('arguments')),
            }})

    finish = FINISH_MAX_TOKENS if resp.get('status') == 'incomplete' else FINISH_STOP
    return {
        'candidates': [{
            'content': {'parts': parts, 'role': 'model'},
            'finishReason': finish,
            'index': 0,
        }],
        'usageMetadata': _usage_metadata(resp.get('usage')),
        'modelVersion': resp.get('model', ''),
        'responseId': resp.get('id', ''),
    }


def _first_output_text(output: List[Any]) -> Optional[str]:
    for item in output:
        if not isinstance(item, dict) or item.get('type') != 'message':
            continue
        for block in item.get('content') or []:
            if isinstance(block, dict) and block.get('type') == 'output_text' and isinstance(block.get('text'), str):
                return block['text']
    return None


def _load_arguments(arguments: Any) -> Dict[str, Any]:
    if isinstance(arguments, dict):
        return arguments
    try:
        value = json.loads(arguments or '{}')
    except (TypeError, json.JSONDecodeError):
        logger.warning(f"Function call arguments are not valid JSON: {str(arguments)[:200]}")
        return {'raw': arguments}
    return value if isinstance(value, dict) else {'value': value}


def _usage_metadata(usage: Any) -> Dict[str, int]:
    usage = usage if isinstance(usage, dict) else {}
    input_tokens = usage.get('input_tokens') or 0
    output_tokens = usage.get('output_tokens') or 0
    return {
        'promptTokenCount': input_tokens,
        'candidatesTokenCount': output_tokens,
        'totalTokenCount': usage.get('total_tokens') or input_tokens + output_tokens,
    }


def aggregate_stream(events: Iterable[Any], on_error: Optional[DiagnosticSink] = None) -> Dict[str, Any]:
    """
    Collapse a Responses event stream into one Gemini response.

    Text deltas are concatenated; the last completed function call is kept.
    The finish reason is MAX_TOKENS when the stream reports
    ``response.incomplete`` and STOP otherwise.
    """
    state = create_initial_state(on_error or _log_diagnostic)
    texts: List[str] = []
    last_call: Optional[Dict[str, Any]] = None
    finish = FINISH_STOP
    usage: Any = None

    for event in guards.ensure_event_stream(events):
        if guards.is_error_event(event):
            raise TranslationError(f"Upstream stream reported an error: {_error_message(event)}")
        if guards.is_completed_event(event):
            usage = event['response'].get('usage')
            if event['response'].get('status') == 'incomplete':
                finish = FINISH_MAX_TOKENS
        elif guards.is_incomplete_event(event):
            usage = event['response'].get('usage')
            finish = FINISH_MAX_TOKENS

        for chunk in process_event(state, event):
            part = chunk['candidates'][0]['content']['parts'][0]
            if 'text' in part:
                texts.append(part['text'])
            elif 'args' in part['functionCall']:
                last_call = part['functionCall']

    parts: List[Dict[str, Any]] = [{'text': ''.join(texts)}]
    if last_call is not None:
        parts.append({'functionCall': last_call})

    return {
        'candidates': [{
            'content': {'parts': parts, 'role': 'model'},
            'finishReason': finish,
            'index': 0,
        }],
        'usageMetadata': _usage_metadata(usage),
    }


def _log_diagnostic(diagnostic):
    logger.warning(diagnostic.format())


def _error_message(event: Dict[str, Any]) -> str:
    if event.get('type') == guards.ERROR:
        return str(event.get('message') or event.get('code') or 'unknown error')
    error = event['response'].get('error') or {}
    if isinstance(error, dict):
        return str(error.get('message') or error)
    return str(error)


def load_response_body(body: Line, framing: Framing = Framing.UNFRAMED) -> Dict[str, Any]:
    """
    Translate a complete upstream body for the non-streaming path.

    Accepts a Responses object or, when the upstream streamed anyway, the
    event sequence. Any other shape raises ResponseShapeError.
    """
    records = list(iter_records(body, framing))
    if len(records) == 1 and guards.is_openai_response(records[0]):
        return to_gemini_response(records[0])
    if records and all(guards.is_stream_event(r) for r in records):
        return aggregate_stream(records)
    raise ResponseShapeError(f"Unexpected response shape from Responses API: {str(records)[:200]}")


def extract_first_text(resp: Dict[str, Any]) -> str:
    """Return the first text part of the first candidate, or ''."""
    candidates = resp.get('candidates') or []
    if not candidates:
        return ''
    content = candidates[0].get('content') or {}
    for part in content.get('parts') or []:
        if isinstance(part, dict) and isinstance(part.get('text'), str):
            return part['text']
    return ''


def translate_model_list(openai_models: Dict[str, Any]) -> Dict[str, Any]:
    """Map an OpenAI ``/models`` listing to the v1beta models surface."""
    models = []
    for model in openai_models.get('data') or []:
        model_id = model.get('id', '')
        models.append({
            'name': f"models/{model_id}",
            'displayName': model_id,
            'description': f"Model: {model_id}",
            'inputTokenLimit': 1000000,
            'outputTokenLimit': 8192,
            'supportedGenerationMethods': ['generateContent', 'streamGenerateContent'],
        })
    return {'models': models}


def translate_error(error_response: Any, status_code: int = 500) -> Dict[str, Any]:
    """
    Translate an upstream error body to the Gemini error envelope.

    Handles OpenAI errors (``{"error": {...}}``), plain strings and bodies
    that are already in Gemini format.
    """
    logger.debug(f"Translating error response: {error_response}")

    status = STATUS_NAMES.get(status_code, 'UNKNOWN')
    if isinstance(error_response, str):
        message = error_response
    elif isinstance(error_response, dict):
        error_info = error_response.get('error', error_response)
        if isinstance(error_info, dict) and isinstance(error_info.get('status'), str) and 'code' in error_info:
            # Already Gemini format
            return {'error': error_info}
        if isinstance(error_info, str):
            message = error_info
        else:
            message = (
                error_info.get('message')
                or error_response.get('message')
                or error_response.get('detail')
                or 'An error occurred'
            )
    else:
        message = 'An error occurred'

    return {'error': {'code': status_code, 'message': str(message), 'status': status}}
