"""Translate Gemini v1beta stream chunks back into Responses stream events."""

import json
from typing import Any, Dict, Iterable, Iterator

MESSAGE_ITEM_ID = 'msg_0'


def chunks_to_events(chunks: Iterable[Dict[str, Any]]) -> Iterator[Dict[str, Any]]:
    """
    Rebuild a Responses event sequence from Gemini chunks.

    Text parts become ``response.output_text.delta`` events on a single
    message item. Function calls that carry args become a complete
    added/delta/done sequence on a fresh item; name-only chunks are
    announcements and produce nothing on their own.
    """
    call_index = 0
    for chunk in chunks:
        for candidate in chunk.get('candidates') or []:
            content = candidate.get('content') or {}
            for part in content.get('parts') or []:
                if isinstance(part.get('text'), str):
                    yield {
                        'type': 'response.output_text.delta',
                        'item_id': MESSAGE_ITEM_ID,
                        'output_index': 0,
                        'content_index': 0,
                        'delta': part['text'],
                    }
                    continue

                call = part.get('functionCall')
                if not isinstance(call, dict) or 'args' not in call:
                    continue

                call_index += 1
                item_id = f"fc_{call_index}"
                name = call.get('name', '')
                arguments = json.dumps(call['args'])
                item = {
                    'type': 'function_call',
                    'id': item_id,
                    'call_id': f"call_{call_index}",
                    'name': name,
                    'arguments': '',
                    'status': 'in_progress',
                }
                yield {'type': 'response.output_item.added', 'output_index': call_index, 'item': item}
                yield {
                    'type': 'response.function_call_arguments.delta',
                    'item_id': item_id,
                    'output_index': call_index,
                    'delta': arguments,
                }
                yield {
                    'type': 'response.output_item.done',
                    'output_index': call_index,
                    'item': dict(item, arguments=arguments, status='completed'),
                }
