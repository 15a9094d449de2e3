"""
Backend boundary: protocol, envelope normalisation and the HTTP client.
"""

from .base import BackendError, BackendTransportError, ReviewBackend
from .http import HttpReviewBackend

__all__ = [
    "BackendError",
    "BackendTransportError",
    "HttpReviewBackend",
    "ReviewBackend",
]
