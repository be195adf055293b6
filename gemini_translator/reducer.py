"""Translate OpenAI Responses stream events into Gemini v1beta stream chunks."""

import logging
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field

from . import guards
from .errors import ARGS_INCOMPLETE, ArgumentsIncompleteError, Diagnostic
from .partial_json import is_complete_json_object, parse_arguments

logger = logging.getLogger(__name__)

DiagnosticSink = Callable[[Diagnostic], None]
GeminiChunk = Dict[str, Any]


@dataclass
class ReducerState:
    """
    Per-stream state for assembling function call arguments.

    Both maps are keyed by the Responses item id. An entry exists only
    while a function call for that id is in progress.
    """
    fn_args: Dict[str, str] = field(default_factory=dict)
    fn_names: Dict[str, str] = field(default_factory=dict)
    on_error: Optional[DiagnosticSink] = None


def create_initial_state(on_error: Optional[DiagnosticSink] = None) -> ReducerState:
    return ReducerState(on_error=on_error)


def text_chunk(text: str) -> GeminiChunk:
    """Wrap a text delta in Gemini candidate framing."""
    return {
        'candidates': [{
            'content': {'parts': [{'text': text}], 'role': 'model'},
            'index': 0,
        }]
    }


def function_call_chunk(name: str, args: Optional[Dict[str, Any]] = None) -> GeminiChunk:
    """Wrap a function call; name-only when args are not known yet."""
    function_call: Dict[str, Any] = {'name': name}
    if args is not None:
        function_call['args'] = args
    return {
        'candidates': [{
            'content': {'parts': [{'functionCall': function_call}], 'role': 'model'},
            'index': 0,
        }]
    }


def process_event(state: ReducerState, event: Dict[str, Any]) -> List[GeminiChunk]:
    """
    Process one Responses stream event into zero or more Gemini chunks.

    Mutates ``state`` in place. Raises ArgumentsIncompleteError when a
    function call finishes with unparseable arguments and no diagnostic
    sink is configured.
    """
    kind = guards.classify_event(event)

    if kind is guards.EventKind.TEXT_DELTA:
        delta = event.get('delta') or ''
        return [text_chunk(delta)] if delta else []

    if kind is guards.EventKind.OUTPUT_ITEM_ADDED:
        return _on_item_added(state, event['item'])

    if kind is guards.EventKind.FUNCTION_CALL_ARGUMENTS_DELTA:
        return _on_arguments_delta(state, event['item_id'], event.get('delta') or '')

    if kind is guards.EventKind.OUTPUT_ITEM_DONE:
        _on_item_done(state, event['item']['id'])
        return []

    # Other events (reasoning, web search, completion markers) are ignored
    return []


def _on_item_added(state: ReducerState, item: Dict[str, Any]) -> List[GeminiChunk]:
    if not guards.is_function_call_item(item):
        return []

    item_id = item['id']
    state.fn_args[item_id] = ''
    name = item['name']
    if not name:
        return []

    # Announce the call target before any argument arrives
    state.fn_names[item_id] = name
    return [function_call_chunk(name)]


def _on_arguments_delta(state: ReducerState, item_id: str, delta: str) -> List[GeminiChunk]:
    previous = state.fn_args.get(item_id, '')
    buffer = previous + delta
    state.fn_args[item_id] = buffer

    if not is_complete_json_object(buffer):
        return []

    args, diagnostic = parse_arguments(buffer)
    if diagnostic is not None:
        # Keep accumulating; a longer buffer may still parse
        _report(state, diagnostic, fatal=False)
        return []

    if _resolved_args(previous) == args:
        # Trailing whitespace after a complete object; already emitted
        return []

    return [function_call_chunk(state.fn_names.get(item_id, ''), args)]


def _on_item_done(state: ReducerState, item_id: str):
    try:
        buffer = state.fn_args.get(item_id)
        if buffer and not _is_resolved(buffer):
            diagnostic = Diagnostic.for_buffer(
                ARGS_INCOMPLETE,
                'Function call arguments did not form a complete JSON object by output_item.done',
                buffer,
            )
            _report(state, diagnostic, fatal=True)
    finally:
        state.fn_args.pop(item_id, None)
        state.fn_names.pop(item_id, None)


def _resolved_args(buffer: str) -> Optional[Dict[str, Any]]:
    if not is_complete_json_object(buffer):
        return None
    args, _ = parse_arguments(buffer)
    return args


def _is_resolved(buffer: str) -> bool:
    return _resolved_args(buffer) is not None


def _report(state: ReducerState, diagnostic: Diagnostic, fatal: bool):
    if state.on_error is not None:
        state.on_error(diagnostic)
        return
    if fatal:
        raise ArgumentsIncompleteError(diagnostic.format(), diagnostic)
    logger.debug(diagnostic.format())


class StreamReducer:
    """
    Stateful wrapper around process_event for a single stream.

    One instance per upstream response; never share across requests since
    item ids are only unique within a response.
    """

    def __init__(self, on_error: Optional[DiagnosticSink] = None):
        self.state = create_initial_state(on_error)

    def feed(self, event: Dict[str, Any]) -> List[GeminiChunk]:
        return process_event(self.state, event)

    def pending_items(self) -> List[str]:
        """Item ids whose function call has not reached output_item.done."""
        return list(self.state.fn_args)
