"""Request handlers for gemini-bridge."""

from .gemini_handler import gemini_bp

__all__ = ['gemini_bp']
