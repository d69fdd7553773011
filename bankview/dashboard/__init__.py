"""Dashboard package for console output."""

from .console_display import ConsoleDisplay

__all__ = ['ConsoleDisplay']
