"""Shared outbound HTTP client helpers."""

from .client import HttpClient
from .errors import HttpClientError, HttpJsonDecodeError, HttpRequestError, HttpStatusError

__all__ = [
    "HttpClient",
    "HttpClientError",
    "HttpJsonDecodeError",
    "HttpRequestError",
    "HttpStatusError",
]
