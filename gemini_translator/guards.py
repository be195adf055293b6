"""Predicates that identify OpenAI Responses stream events.

Each guard checks every field the reducer relies on, not just ``type``.
A record with the right tag but a missing item id is rejected.
"""

import enum
from typing import Any, Iterable, Iterator

from .errors import ResponseShapeError


OUTPUT_TEXT_DELTA = 'response.output_text.delta'
OUTPUT_ITEM_ADDED = 'response.output_item.added'
OUTPUT_ITEM_DONE = 'response.output_item.done'
FUNCTION_CALL_ARGUMENTS_DELTA = 'response.function_call_arguments.delta'
FUNCTION_CALL_ARGUMENTS_DONE = 'response.function_call_arguments.done'
RESPONSE_COMPLETED = 'response.completed'
RESPONSE_INCOMPLETE = 'response.incomplete'
RESPONSE_FAILED = 'response.failed'
ERROR = 'error'


class EventKind(enum.Enum):
    TEXT_DELTA = 'text-delta'
    OUTPUT_ITEM_ADDED = 'output-item-added'
    OUTPUT_ITEM_DONE = 'output-item-done'
    FUNCTION_CALL_ARGUMENTS_DELTA = 'function-call-arguments-delta'
    FUNCTION_CALL_ARGUMENTS_DONE = 'function-call-arguments-done'
    OTHER = 'other'


def _is_str(value: Any) -> bool:
    return isinstance(value, str)


def _optional_str(value: Any) -> bool:
    return value is None or isinstance(value, str)


def is_stream_event(value: Any) -> bool:
    """Check if a value looks like any Responses stream event."""
    return isinstance(value, dict) and _is_str(value.get('type'))


def _has_type(event: Any, event_type: str) -> bool:
    return is_stream_event(event) and event['type'] == event_type


def is_output_text_delta_event(event: Any) -> bool:
    return (
        _has_type(event, OUTPUT_TEXT_DELTA)
        and _is_str(event.get('item_id'))
        and _optional_str(event.get('delta'))
    )


def is_output_item_added_event(event: Any) -> bool:
    return _has_type(event, OUTPUT_ITEM_ADDED) and isinstance(event.get('item'), dict)


def is_output_item_done_event(event: Any) -> bool:
    """Requires a nested item carrying a string id."""
    if not _has_type(event, OUTPUT_ITEM_DONE):
        return False
    item = event.get('item')
    return isinstance(item, dict) and _is_str(item.get('id'))


def is_function_call_arguments_delta_event(event: Any) -> bool:
    """Requires item_id; the function name is never present on deltas."""
    return (
        _has_type(event, FUNCTION_CALL_ARGUMENTS_DELTA)
        and _is_str(event.get('item_id'))
        and _optional_str(event.get('delta'))
    )


def is_function_call_arguments_done_event(event: Any) -> bool:
    return (
        _has_type(event, FUNCTION_CALL_ARGUMENTS_DONE)
        and _is_str(event.get('item_id'))
        and _optional_str(event.get('arguments'))
    )


def is_function_call_item(item: Any) -> bool:
    """Check for a ``function_call`` output item with id, call_id and name."""
    if not isinstance(item, dict):
        return False
    if item.get('type') != 'function_call':
        return False
    return all(_is_str(item.get(key)) for key in ('id', 'call_id', 'name'))


def is_completed_event(event: Any) -> bool:
    return _has_type(event, RESPONSE_COMPLETED) and isinstance(event.get('response'), dict)


def is_incomplete_event(event: Any) -> bool:
    return _has_type(event, RESPONSE_INCOMPLETE) and isinstance(event.get('response'), dict)


def is_error_event(event: Any) -> bool:
    if _has_type(event, ERROR):
        return True
    return _has_type(event, RESPONSE_FAILED) and isinstance(event.get('response'), dict)


def is_openai_response(value: Any) -> bool:
    """Check for a complete (non-streamed) Responses API object."""
    return isinstance(value, dict) and value.get('object') == 'response'


def classify_event(event: Any) -> EventKind:
    """Map a record to the kind the reducer dispatches on."""
    if is_output_text_delta_event(event):
        return EventKind.TEXT_DELTA
    if is_output_item_added_event(event):
        return EventKind.OUTPUT_ITEM_ADDED
    if is_output_item_done_event(event):
        return EventKind.OUTPUT_ITEM_DONE
    if is_function_call_arguments_delta_event(event):
        return EventKind.FUNCTION_CALL_ARGUMENTS_DELTA
    if is_function_call_arguments_done_event(event):
        return EventKind.FUNCTION_CALL_ARGUMENTS_DONE
    return EventKind.OTHER


def ensure_event_stream(records: Iterable[Any]) -> Iterator[dict]:
    """Yield stream events, raising on the first record that is not one."""
    for record in records:
        if is_stream_event(record):
            yield record
            continue
        if is_openai_response(record):
            raise ResponseShapeError('Expected a Responses event stream but received a complete response object')
        raise ResponseShapeError(f"Stream record is not a Responses stream event: {str(record)[:200]}")
