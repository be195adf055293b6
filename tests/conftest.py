"""Pytest configuration and shared fixtures for tests.

Builders for OpenAI Responses stream events and a Flask app wired to a
test configuration.
"""

import json
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from app import create_app
from config import Config


# ============================================================
# Responses stream event builders
# ============================================================


def text_delta(delta: str, item_id: str = 'msg_1', output_index: int = 0) -> Dict[str, Any]:
    return {
        'type': 'response.output_text.delta',
        'item_id': item_id,
        'output_index': output_index,
        'content_index': 0,
        'delta': delta,
    }


def function_call_item(item_id: str = 'fc_1', name: str = 'get_weather', arguments: str = '') -> Dict[str, Any]:
    return {
        'type': 'function_call',
        'id': item_id,
        'call_id': f'call_{item_id}',
        'name': name,
        'arguments': arguments,
        'status': 'in_progress',
    }


def item_added(item: Dict[str, Any], output_index: int = 1) -> Dict[str, Any]:
    return {'type': 'response.output_item.added', 'output_index': output_index, 'item': item}


def item_done(item: Dict[str, Any], output_index: int = 1) -> Dict[str, Any]:
    return {'type': 'response.output_item.done', 'output_index': output_index, 'item': item}


def args_delta(delta: str, item_id: str = 'fc_1', output_index: int = 1) -> Dict[str, Any]:
    return {
        'type': 'response.function_call_arguments.delta',
        'item_id': item_id,
        'output_index': output_index,
        'delta': delta,
    }


def completed(status: str = 'completed', usage: Dict[str, int] = None) -> Dict[str, Any]:
    return {
        'type': 'response.completed',
        'response': {
            'id': 'resp_1',
            'object': 'response',
            'status': status,
            'usage': usage or {'input_tokens': 3, 'output_tokens': 5, 'total_tokens': 8},
        },
    }


def sse_lines(events: List[Dict[str, Any]], done: bool = True) -> List[bytes]:
    """Frame events the way requests.Response.iter_lines() hands them over."""
    lines: List[bytes] = []
    for event in events:
        lines.append(f"event: {event['type']}".encode('utf-8'))
        lines.append(f"data: {json.dumps(event)}".encode('utf-8'))
        lines.append(b'')
    if done:
        lines.append(b'data: [DONE]')
    return lines


@pytest.fixture
def ev() -> SimpleNamespace:
    """Responses event builders."""
    return SimpleNamespace(
        text_delta=text_delta,
        function_call_item=function_call_item,
        item_added=item_added,
        item_done=item_done,
        args_delta=args_delta,
        completed=completed,
        sse_lines=sse_lines,
    )


# ============================================================
# Chunk helpers
# ============================================================


def chunk_part(chunk: Dict[str, Any]) -> Dict[str, Any]:
    """Return the single part carried by a Gemini stream chunk."""
    return chunk['candidates'][0]['content']['parts'][0]


@pytest.fixture
def part_of():
    return chunk_part


# ============================================================
# Application fixtures
# ============================================================

ACCESS_TOKEN = 'test-access-token'


@pytest.fixture
def config(monkeypatch) -> Config:
    monkeypatch.setenv('PROXY_ACCESS_TOKEN', ACCESS_TOKEN)
    monkeypatch.setenv('TARGET_ENDPOINT', 'https://upstream.test/v1/')
    monkeypatch.setenv('TARGET_API_KEY', 'sk-upstream')
    monkeypatch.setenv('MODEL_MAPPING', 'gemini-2.5-pro=gpt-4.1')
    monkeypatch.delenv('GEMINI_V1BETA_STRICT', raising=False)
    monkeypatch.delenv('DEFAULT_MAX_TOKENS', raising=False)
    return Config()


@pytest.fixture
def app(config):
    flask_app = create_app(config)
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {'x-goog-api-key': ACCESS_TOKEN}
