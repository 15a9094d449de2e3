"""
Transient reviewer messages.

A success or error banner lives for a fixed interval and then reads as
empty. Setting one kind clears the other, and any new edit clears both.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass
class _Message:
    text: str
    expires_at: float


@dataclass
class MessageBoard:
    """Success/error banners that expire ``ttl`` seconds after being set."""

    ttl: float = 7.0
    clock: Callable[[], float] = field(default=time.monotonic)
    _success: _Message | None = None
    _error: _Message | None = None

    def _read(self, message: _Message | None) -> str:
        if message is None or self.clock() >= message.expires_at:
            return ""
        return message.text

    @property
    def success(self) -> str:
        return self._read(self._success)

    @property
    def error(self) -> str:
        return self._read(self._error)

    def set_success(self, text: str) -> None:
        self._success = _Message(text, self.clock() + self.ttl)
        self._error = None

    def set_error(self, text: str) -> None:
        self._error = _Message(text, self.clock() + self.ttl)
        self._success = None

    def clear(self) -> None:
        self._success = None
        self._error = None
