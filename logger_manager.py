"""Request/response logging and usage tracking for gemini-bridge."""

import copy
import time
import logging
from typing import Any, Dict, List, Optional
from collections import deque
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

MAX_LOGGED_TEXT = 500


@dataclass
class UsageStats:
    """Track token usage statistics."""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    streamed_requests: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_latency_ms: int = 0
    diagnostics: int = 0
    session_start: float = field(default_factory=time.time)

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 100.0
        return (self.successful_requests / self.total_requests) * 100

    @property
    def avg_latency_ms(self) -> float:
        if self.successful_requests == 0:
            return 0.0
        return self.total_latency_ms / self.successful_requests

    def to_dict(self) -> dict:
        return {
            'total_requests': self.total_requests,
            'successful_requests': self.successful_requests,
            'failed_requests': self.failed_requests,
            'streamed_requests': self.streamed_requests,
            'success_rate': round(self.success_rate, 1),
            'total_input_tokens': self.total_input_tokens,
            'total_output_tokens': self.total_output_tokens,
            'total_tokens': self.total_input_tokens + self.total_output_tokens,
            'avg_latency_ms': round(self.avg_latency_ms, 0),
            'diagnostics': self.diagnostics,
            'session_duration_seconds': round(time.time() - self.session_start, 0),
        }


class LoggerManager:
    """Keeps a bounded history of API calls, translation diagnostics and usage."""

    def __init__(self, max_logs: int = 100):
        self.max_logs = max_logs
        self.api_calls: deque = deque(maxlen=max_logs)
        self.diagnostics: deque = deque(maxlen=max_logs)
        self.usage = UsageStats()

    def log_api_call(
        self,
        method: str,
        path: str,
        status: int,
        duration_ms: int,
        request_data: Optional[Dict] = None,
        response_data: Optional[Dict] = None,
        input_tokens: int = 0,
        output_tokens: int = 0,
        streaming: bool = False,
    ):
        """Log an API call with optional request/response data."""
        entry = {
            'timestamp': time.time(),
            'method': method,
            'path': path,
            'status': status,
            'duration_ms': duration_ms,
            'streaming': streaming,
            'request': self._sanitize_for_log(request_data),
            'response': self._sanitize_for_log(response_data),
            'input_tokens': input_tokens,
            'output_tokens': output_tokens,
        }

        self.api_calls.appendleft(entry)

        self.usage.total_requests += 1
        if streaming:
            self.usage.streamed_requests += 1
        if status < 400:
            self.usage.successful_requests += 1
            self.usage.total_latency_ms += duration_ms
            self.usage.total_input_tokens += input_tokens
            self.usage.total_output_tokens += output_tokens
        else:
            self.usage.failed_requests += 1

        token_info = f" | tokens: {input_tokens}+{output_tokens}" if input_tokens or output_tokens else ""
        logger.info(f"{method} {path} -> {status} ({duration_ms}ms){token_info}")

    def log_diagnostic(self, path: str, diagnostic: Dict[str, Any]):
        """Record a translation diagnostic reported during a stream."""
        self.diagnostics.appendleft({'timestamp': time.time(), 'path': path, **diagnostic})
        self.usage.diagnostics += 1

    def get_api_calls(self, limit: int = 50) -> List[Dict]:
        return list(self.api_calls)[:limit]

    def get_diagnostics(self, limit: int = 50) -> List[Dict]:
        return list(self.diagnostics)[:limit]

    def get_usage_stats(self) -> Dict:
        return self.usage.to_dict()

    def clear_logs(self):
        """Clear all logs (but preserve usage stats)."""
        self.api_calls.clear()
        self.diagnostics.clear()
        logger.info("Logs cleared")

    def _sanitize_for_log(self, data: Optional[Dict]) -> Optional[Dict]:
        """Truncate long text parts in Gemini request/response bodies."""
        if data is None:
            return None

        sanitized = copy.deepcopy(data)

        contents = list(sanitized.get('contents') or [])
        for candidate in sanitized.get('candidates') or []:
            if isinstance(candidate, dict) and isinstance(candidate.get('content'), dict):
                contents.append(candidate['content'])

        for content in contents:
            if not isinstance(content, dict):
                continue
            for part in content.get('parts') or []:
                if isinstance(part, dict) and isinstance(part.get('text'), str) and len(part['text']) > MAX_LOGGED_TEXT:
                    part['text'] = part['text'][:MAX_LOGGED_TEXT] + '... [truncated]'

        return sanitized
