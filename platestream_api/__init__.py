"""
platestream REST API Client
===========================

Bounded Context: Request/response calls to the processing service

Upload a source video, retrieve result artifacts and inspect server-side
sessions. Used by StreamingClient (upload, download) and by the
`platestream` CLI (session endpoints).

Public API
----------
    StreamingApiClient
    StreamingApiError, ApiConnectionError, ApiTimeoutError
    UploadError, DownloadError
    result_filename
"""

from .client import RESULT_FORMATS, StreamingApiClient, result_filename
from .exceptions import (
    ApiConnectionError,
    ApiTimeoutError,
    DownloadError,
    StreamingApiError,
    UploadError,
)

__all__ = [
    'StreamingApiClient',
    'RESULT_FORMATS',
    'result_filename',
    'StreamingApiError',
    'ApiConnectionError',
    'ApiTimeoutError',
    'UploadError',
    'DownloadError',
]
