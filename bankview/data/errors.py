"""Errors raised by the banking API transport."""

from typing import Any, Optional


class TransportError(Exception):
    """Network or HTTP failure talking to the banking service."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class HttpError(TransportError):
    """Non-2xx response from the banking service."""

    def __init__(self, status: int, body: Optional[Any] = None, message: Optional[str] = None):
        super().__init__(message or f"HTTP {status}")
        self.status = status
        self.body = body
