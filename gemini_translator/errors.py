"""Errors and diagnostics raised while translating Responses streams."""

from dataclasses import dataclass, asdict
from typing import Dict, Optional

SNIPPET_LENGTH = 200

ARGS_INCOMPLETE = 'args_incomplete'
ARGS_JSON_PARSE_ERROR = 'args_json_parse_error'
ARGS_NOT_OBJECT = 'args_not_object'


@dataclass(frozen=True)
class Diagnostic:
    """A translation anomaly reported to a diagnostic sink."""
    code: str
    message: str
    snippet: str = ''

    @classmethod
    def for_buffer(cls, code: str, message: str, buffer: str) -> 'Diagnostic':
        return cls(code=code, message=message, snippet=buffer[:SNIPPET_LENGTH])

    def format(self) -> str:
        """Render as a single log line."""
        text = f"[v1beta reducer] {self.code}: {self.message}"
        if self.snippet:
            text += f" | {self.snippet}"
        return text

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class TranslationError(Exception):
    """Base class for faults that abort a translated stream."""

    def __init__(self, message: str, diagnostic: Optional[Diagnostic] = None):
        super().__init__(message)
        self.diagnostic = diagnostic


class ArgumentsIncompleteError(TranslationError):
    """A function call finished before its arguments formed a JSON object."""


class ResponseShapeError(TranslationError):
    """The upstream returned a stream where an object was expected, or vice versa."""
