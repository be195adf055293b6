"""Translate Gemini v1beta generateContent requests to OpenAI Responses params."""

import json
import logging
from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


def build_non_streaming_params(
    model: str,
    body: Dict[str, Any],
    model_mapper: Optional[Callable[[str], str]] = None,
    default_max_tokens: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Translate a Gemini request body into Responses API params.

    Args:
        model: Model name from the request path (``models/<model>``)
        body: The Gemini request body
        model_mapper: Optional function mapping Gemini model names to target names
        default_max_tokens: Used when generationConfig has no maxOutputTokens

    Returns:
        Responses-compatible request body with ``stream`` set to False
    """
    target_model = model_mapper(model) if model_mapper else model
    params: Dict[str, Any] = {
        'model': target_model,
        'stream': False,
        'input': contents_to_input(body.get('contents') or []),
    }
    logger.debug(f"Model: {model} -> {target_model}")

    instructions = system_instruction_text(body)
    if instructions:
        params['instructions'] = instructions

    gen = body.get('generationConfig') or {}
    max_tokens = gen.get('maxOutputTokens', default_max_tokens)
    if isinstance(max_tokens, int):
        params['max_output_tokens'] = max_tokens
    if isinstance(gen.get('temperature'), (int, float)):
        params['temperature'] = gen['temperature']
    if isinstance(gen.get('topP'), (int, float)):
        params['top_p'] = gen['topP']

    tools = tools_to_responses(body.get('tools') or [])
    if tools:
        params['tools'] = tools

    return params


def build_streaming_params(
    model: str,
    body: Dict[str, Any],
    model_mapper: Optional[Callable[[str], str]] = None,
    default_max_tokens: Optional[int] = None,
) -> Dict[str, Any]:
    params = build_non_streaming_params(model, body, model_mapper, default_max_tokens)
    params['stream'] = True
    return params


def first_text_from_contents(contents: Optional[List[Dict[str, Any]]]) -> str:
    """Return the text of the first part of the first content, or ''."""
    if not contents:
        return ''
    parts = contents[0].get('parts') or []
    if not parts:
        return ''
    text = parts[0].get('text')
    return text if isinstance(text, str) else ''


def system_instruction_text(body: Dict[str, Any]) -> Optional[str]:
    """Join the text parts of ``systemInstruction`` if present."""
    instruction = body.get('systemInstruction') or body.get('system_instruction')
    if not instruction:
        return None
    if isinstance(instruction, str):
        return instruction

    texts = [
        part['text'] for part in instruction.get('parts') or []
        if isinstance(part, dict) and isinstance(part.get('text'), str)
    ]
    return '\n'.join(texts) or None


def contents_to_input(contents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Translate Gemini contents into Responses input items.

    Text and media parts become messages, functionCall parts become
    function_call items and functionResponse parts become
    function_call_output items paired to the oldest open call of the
    same name.
    """
    items: List[Dict[str, Any]] = []
    open_calls: Dict[str, Deque[str]] = defaultdict(deque)
    call_counter = 0

    for content in contents:
        if not isinstance(content, dict):
            continue
        role = 'assistant' if content.get('role') == 'model' else 'user'
        message_parts: List[Dict[str, Any]] = []

        for part in content.get('parts') or []:
            if not isinstance(part, dict):
                continue

            if isinstance(part.get('text'), str):
                text_type = 'output_text' if role == 'assistant' else 'input_text'
                message_parts.append({'type': text_type, 'text': part['text']})
            elif 'functionCall' in part:
                _flush_message(items, role, message_parts)
                message_parts = []
                call = part['functionCall'] or {}
                name = call.get('name', '')
                call_id = f"call_{call_counter}_{name}"
                call_counter += 1
                open_calls[name].append(call_id)
                items.append({
                    'type': 'function_call',
                    'call_id': call_id,
                    'name': name,
                    'arguments': json.dumps(call.get('args') or {}),
                })
            elif 'functionResponse' in part:
                _flush_message(items, role, message_parts)
                message_parts = []
                response = part['functionResponse'] or {}
                name = response.get('name', '')
                if open_calls[name]:
                    call_id = open_calls[name].popleft()
                else:
                    logger.warning(f"functionResponse for {name} has no matching functionCall")
                    call_id = f"call_{call_counter}_{name}"
                    call_counter += 1
                items.append({
                    'type': 'function_call_output',
                    'call_id': call_id,
                    'output': json.dumps(response.get('response')),
                })
            elif 'inlineData' in part:
                inline = part['inlineData'] or {}
                message_parts.append({
                    'type': 'input_image',
                    'image_url': f"data:{inline.get('mimeType', 'application/octet-stream')};base64,{inline.get('data', '')}",
                })
            elif 'fileData' in part:
                file_data = part['fileData'] or {}
                message_parts.append({'type': 'input_file', 'file_url': file_data.get('fileUri', '')})
            else:
                logger.debug(f"Skipping unsupported part: {list(part)}")

        _flush_message(items, role, message_parts)

    return items


def _flush_message(items: List[Dict[str, Any]], role: str, parts: List[Dict[str, Any]]):
    if parts:
        items.append({'type': 'message', 'role': role, 'content': list(parts)})


def tools_to_responses(tools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Translate Gemini functionDeclarations to Responses function tools."""
    translated = []
    for tool in tools:
        if not isinstance(tool, dict):
            continue
        for decl in tool.get('functionDeclarations') or tool.get('function_declarations') or []:
            translated.append({
                'type': 'function',
                'name': decl.get('name', ''),
                'description': decl.get('description', ''),
                'parameters': decl.get('parameters') or {'type': 'object', 'properties': {}},
            })
    return translated
