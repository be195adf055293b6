"""Gemini v1beta API handler - serves generateContent on top of the OpenAI Responses API."""

import json
import time
import logging
import requests
from flask import Blueprint, Response, current_app, jsonify, request, stream_with_context

from gemini_translator import (
    Framing,
    TranslationError,
    build_non_streaming_params,
    build_streaming_params,
    encode_json_array,
    encode_sse_chunk,
    load_response_body,
    make_diagnostic_sink,
    stream_generate_content,
    translate_error,
)
from gemini_translator.response_mapper import translate_model_list

logger = logging.getLogger(__name__)

gemini_bp = Blueprint('gemini', __name__)

STREAM_HEADERS = {
    'Cache-Control': 'no-cache',
    'X-Accel-Buffering': 'no',
    'Connection': 'keep-alive',
}


def get_config():
    """Get config from Flask app context."""
    return current_app.config['BRIDGE_CONFIG']


def get_log_manager():
    """Get log manager from Flask app context."""
    return current_app.config['LOG_MANAGER']


def _elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


def _error(status: int, message: str) -> dict:
    return translate_error(message, status)


def verify_api_key():
    """Verify the caller's key matches the proxy access token."""
    config = get_config()

    # Gemini clients send x-goog-api-key or ?key=
    api_key = request.headers.get('x-goog-api-key', '') or request.args.get('key', '')

    if not api_key:
        auth_header = request.headers.get('Authorization', '')
        if auth_header.startswith('Bearer '):
            api_key = auth_header[7:]

    if not api_key:
        return False, _error(401, 'Missing API key')

    if api_key != config.proxy_access_token:
        return False, _error(401, 'Invalid API key')

    return True, None


def _upstream_headers(config) -> dict:
    headers = {'Content-Type': 'application/json'}
    if config.is_api_key_configured():
        headers['Authorization'] = f'Bearer {config.target_api_key}'
    else:
        logger.warning("No authentication configured for target endpoint")
    return headers


def _framing_for(response) -> Framing:
    content_type = response.headers.get('Content-Type', '')
    if 'text/event-stream' in content_type:
        return Framing.EVENT_STREAM
    return Framing.UNFRAMED


def _upstream_error(response) -> dict:
    try:
        error_data = response.json()
    except ValueError:
        error_data = {'error': {'message': response.text or 'Unknown error'}}
    return translate_error(error_data, response.status_code)


@gemini_bp.route('/v1beta/models', methods=['GET'])
def list_models():
    """List upstream models in the v1beta models format."""
    start_time = time.time()
    config = get_config()
    log_manager = get_log_manager()

    valid, error = verify_api_key()
    if not valid:
        log_manager.log_api_call('GET', '/v1beta/models', 401, _elapsed_ms(start_time), None, error)
        return jsonify(error), 401

    try:
        response = requests.get(
            f"{config.target_endpoint}/models",
            headers=_upstream_headers(config),
            timeout=config.request_timeout,
            verify=config.get_verify_ssl()
        )
    except requests.exceptions.RequestException as e:
        error = _error(502, f'Connection error: {e}')
        log_manager.log_api_call('GET', '/v1beta/models', 502, _elapsed_ms(start_time), None, error)
        return jsonify(error), 502

    if not response.ok:
        error = _upstream_error(response)
        log_manager.log_api_call('GET', '/v1beta/models', response.status_code, _elapsed_ms(start_time), None, error)
        return jsonify(error), response.status_code

    models = translate_model_list(response.json())
    log_manager.log_api_call('GET', '/v1beta/models', 200, _elapsed_ms(start_time))
    return jsonify(models), 200


@gemini_bp.route('/v1beta/models/<path:model_action>', methods=['POST'])
def model_action(model_action: str):
    """
    Handle ``models/<model>:generateContent`` and ``:streamGenerateContent``.

    Translates to a Responses request, forwards it to the target endpoint
    and translates the result back to Gemini format.
    """
    start_time = time.time()
    config = get_config()
    log_manager = get_log_manager()
    path = f'/v1beta/models/{model_action}'

    valid, error = verify_api_key()
    if not valid:
        log_manager.log_api_call('POST', path, 401, _elapsed_ms(start_time), None, error)
        return jsonify(error), 401

    model, _, action = model_action.rpartition(':')
    if not model or action not in ('generateContent', 'streamGenerateContent'):
        error = _error(404, f'Unknown method: {model_action}')
        log_manager.log_api_call('POST', path, 404, _elapsed_ms(start_time), None, error)
        return jsonify(error), 404

    gemini_request = request.get_json(silent=True)
    if not isinstance(gemini_request, dict) or not gemini_request:
        error = _error(400, 'Request body must be a non-empty JSON object')
        log_manager.log_api_call('POST', path, 400, _elapsed_ms(start_time), None, error)
        return jsonify(error), 400

    is_streaming = action == 'streamGenerateContent'
    logger.info(f"-> {model} | contents={len(gemini_request.get('contents') or [])} | stream={is_streaming}")

    build_params = build_streaming_params if is_streaming else build_non_streaming_params
    try:
        params = build_params(model, gemini_request, config.map_model_name, config.default_max_tokens)
    except (AttributeError, TypeError, ValueError) as e:
        logger.error(f"Translation error: {e}")
        error = _error(400, f'Translation error: {e}')
        log_manager.log_api_call('POST', path, 400, _elapsed_ms(start_time), gemini_request, error)
        return jsonify(error), 400

    target_url = f"{config.target_endpoint}/responses"
    headers = _upstream_headers(config)

    try:
        if is_streaming:
            return _handle_streaming(
                target_url, params, headers, path, gemini_request, start_time, config, log_manager,
                use_sse=request.args.get('alt') == 'sse'
            )
        return _handle_non_streaming(
            target_url, params, headers, path, gemini_request, start_time, config, log_manager
        )
    except requests.exceptions.Timeout:
        error = _error(504, 'Request timed out')
        log_manager.log_api_call('POST', path, 504, _elapsed_ms(start_time), gemini_request, error)
        return jsonify(error), 504
    except requests.exceptions.ConnectionError as e:
        error = _error(502, f'Connection error: {e}')
        log_manager.log_api_call('POST', path, 502, _elapsed_ms(start_time), gemini_request, error)
        return jsonify(error), 502
    except TranslationError as e:
        logger.error(f"Translation failed: {e}")
        error = _error(502, str(e))
        log_manager.log_api_call('POST', path, 502, _elapsed_ms(start_time), gemini_request, error)
        return jsonify(error), 502
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        error = _error(500, f'Internal error: {e}')
        log_manager.log_api_call('POST', path, 500, _elapsed_ms(start_time), gemini_request, error)
        return jsonify(error), 500


def _handle_non_streaming(target_url, params, headers, path, gemini_request, start_time, config, log_manager):
    """Handle generateContent."""
    response = requests.post(
        target_url,
        json=params,
        headers=headers,
        timeout=config.request_timeout,
        verify=config.get_verify_ssl()
    )

    if not response.ok:
        error = _upstream_error(response)
        log_manager.log_api_call('POST', path, response.status_code, _elapsed_ms(start_time), gemini_request, error)
        return jsonify(error), response.status_code

    # Raises ResponseShapeError for anything that is neither a response nor an event stream
    gemini_response = load_response_body(response.content, _framing_for(response))

    usage = gemini_response.get('usageMetadata', {})
    log_manager.log_api_call('POST', path, 200, _elapsed_ms(start_time), gemini_request, gemini_response,
                             input_tokens=usage.get('promptTokenCount', 0),
                             output_tokens=usage.get('candidatesTokenCount', 0))

    logger.info(f"<- finishReason={gemini_response['candidates'][0].get('finishReason')} | "
                f"tokens={usage.get('promptTokenCount', 0)}+{usage.get('candidatesTokenCount', 0)}")

    return jsonify(gemini_response), 200


def _handle_streaming(target_url, params, headers, path, gemini_request, start_time, config, log_manager,
                      use_sse=True):
    """Handle streamGenerateContent."""
    response = requests.post(
        target_url,
        json=params,
        headers=headers,
        timeout=config.stream_timeout,
        stream=True,
        verify=config.get_verify_ssl()
    )

    if not response.ok:
        error = _upstream_error(response)
        response.close()
        log_manager.log_api_call('POST', path, response.status_code, _elapsed_ms(start_time), gemini_request, error,
                                 streaming=True)
        return jsonify(error), response.status_code

    default_sink = make_diagnostic_sink(config.strict_mode)

    def on_error(diagnostic):
        log_manager.log_diagnostic(path, diagnostic.to_dict())
        default_sink(diagnostic)

    # Fresh reducer state per request
    chunks = stream_generate_content(response.iter_lines(), _framing_for(response), on_error=on_error)

    def generate():
        sent = 0

        def counted():
            nonlocal sent
            for chunk in chunks:
                sent += 1
                yield chunk

        try:
            if use_sse:
                for chunk in counted():
                    yield encode_sse_chunk(chunk).encode('utf-8')
            else:
                for piece in encode_json_array(counted()):
                    yield piece.encode('utf-8')

            log_manager.log_api_call('POST', path, 200, _elapsed_ms(start_time), gemini_request,
                                     {'chunks': sent}, streaming=True)
            logger.info(f"<- stream complete | chunks={sent}")

        except GeneratorExit:
            logger.warning("Client disconnected during stream")
        except (TranslationError, requests.exceptions.RequestException) as e:
            # Upstream dropped or translation failed mid-stream
            logger.error(f"Streaming error after {sent} chunks: {e}")
            error_body = json.dumps(_error(502, str(e)))
            log_manager.log_api_call('POST', path, 502, _elapsed_ms(start_time), gemini_request,
                                     {'chunks': sent, 'error': str(e)}, streaming=True)
            if use_sse:
                yield f"data: {error_body}\r\n\r\n".encode('utf-8')
            else:
                yield ((',\r\n' if sent else '[') + error_body + ']').encode('utf-8')
        finally:
            chunks.close()
            response.close()

    return Response(
        stream_with_context(generate()),
        content_type='text/event-stream' if use_sse else 'application/json',
        headers=STREAM_HEADERS
    ), 200
