"""
Streaming REST Client
=====================

Bounded Context: Request/response calls to the processing service

Thin httpx wrapper around the service's streaming endpoints. Carries no
state machine: the WebSocket coordinator decides when to call it.

Endpoints Called:
- POST   /api/v1/streaming/upload                      - Upload a source video
- GET    /api/v1/streaming/sessions/{id}/download      - Fetch result artifact
- GET    /api/v1/streaming/sessions                    - List active sessions
- GET    /api/v1/streaming/sessions/{id}               - Session details
- DELETE /api/v1/streaming/sessions/{id}               - Close a session
- GET    /api/v1/streaming/health                      - Service health
- GET    /api/v1/streaming/test-connection             - Connectivity check

Usage:
    from platestream_api import StreamingApiClient

    with StreamingApiClient("http://alpr.local:8000") as api:
        api.upload_video(session_id, "parking.mp4")
        path = api.download_results(session_id, fmt="csv", dest_dir="results")
"""

import time
from pathlib import Path
from typing import IO, Any, Dict, Optional, Union

import httpx

from platestream_ws.config import RESULT_FORMATS, StreamingOptions
from platestream_ws.logging import StructuredLogger, LogEvent

from .exceptions import (
    ApiConnectionError,
    ApiTimeoutError,
    DownloadError,
    StreamingApiError,
    UploadError,
)

UploadSource = Union[str, Path, IO[bytes]]
DEFAULT_UPLOAD_ERROR = "Error uploading video"


def result_filename(session_id: str, fmt: str, timestamp_ms: Optional[int] = None) -> str:
    """streaming_results_<session>_<epoch ms>.<fmt>"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"streaming_results_{session_id}_{timestamp_ms}.{fmt}"


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


def _upload_error_message(body: Any) -> str:
    if isinstance(body, dict):
        detail = body.get('detail')
        if isinstance(detail, dict) and detail.get('message'):
            return str(detail['message'])
        if body.get('message'):
            return str(body['message'])
    return DEFAULT_UPLOAD_ERROR


class StreamingApiClient:
    """
    HTTP client for the streaming service.

    All errors derive from StreamingApiError. Transport failures become
    ApiConnectionError (ApiTimeoutError for timeouts).
    """

    UPLOAD_ENDPOINT = "/api/v1/streaming/upload"
    SESSIONS_ENDPOINT = "/api/v1/streaming/sessions"
    HEALTH_ENDPOINT = "/api/v1/streaming/health"
    TEST_CONNECTION_ENDPOINT = "/api/v1/streaming/test-connection"

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 60.0,
        logger: Optional[StructuredLogger] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the REST client.

        Args:
            base_url: Service root (http:// or https://)
            timeout: Per-request timeout in seconds
            logger: Structured logger (default: platestream.api)
            transport: Custom httpx transport (tests inject httpx.MockTransport)
        """
        self.base_url = base_url.rstrip('/')
        self.logger = logger or StructuredLogger(component="api")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    # ===== Internals =====

    def _request(
        self,
        method: str,
        path: str,
        error_cls: type = StreamingApiError,
        error_message: str = "Request failed",
        **kwargs
    ) -> httpx.Response:
        self.logger.debug(
            event=LogEvent.API_REQUEST,
            message=f"{method} {path}",
            metadata={'method': method, 'path': path}
        )
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            self.logger.error(
                event=LogEvent.API_ERROR,
                message=f"{method} {path} timed out",
                exc_info=e
            )
            raise ApiTimeoutError(f"Request timed out: {method} {path}") from e
        except httpx.TransportError as e:
            self.logger.error(
                event=LogEvent.API_ERROR,
                message=f"{method} {path} failed to connect",
                exc_info=e
            )
            raise ApiConnectionError(f"Could not reach {self.base_url}: {e}") from e

        if response.is_success:
            return response

        body = _response_body(response)
        if error_cls is UploadError:
            error_message = _upload_error_message(body)
        self.logger.error(
            event=LogEvent.API_ERROR,
            message=f"{method} {path} returned {response.status_code}",
            metadata={'status_code': response.status_code, 'body': body}
        )
        raise error_cls(error_message, status_code=response.status_code, details=body)

    def _json(self, method: str, path: str, error_message: str, **kwargs) -> Dict[str, Any]:
        response = self._request(method, path, error_message=error_message, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise StreamingApiError(
                f"{error_message}: response is not JSON",
                status_code=response.status_code,
                details=response.text,
            ) from e

    # ===== Upload / Download =====

    def upload_video(
        self,
        session_id: str,
        file: UploadSource,
        options: Optional[StreamingOptions] = None,
    ) -> Dict[str, Any]:
        """
        Upload a source video for a session.

        Args:
            session_id: Session the job belongs to (its WebSocket must be open)
            file: Path or binary file object
            options: Processing options (defaults applied when None)

        Returns:
            Parsed acceptance response

        Raises:
            UploadError: Service rejected the upload
            ApiConnectionError: Service unreachable
        """
        options = options or StreamingOptions()
        form = {'session_id': session_id, **options.to_form()}

        self.logger.info(
            event=LogEvent.UPLOAD_STARTED,
            message=f"Uploading source for {session_id}",
            metadata={'session_id': session_id, 'options': form}
        )

        try:
            if isinstance(file, (str, Path)):
                path = Path(file)
                with open(path, 'rb') as fh:
                    response = self._request(
                        "POST", self.UPLOAD_ENDPOINT,
                        error_cls=UploadError,
                        data=form,
                        files={'file': (path.name, fh)},
                    )
            else:
                filename = Path(getattr(file, 'name', None) or 'upload.bin').name
                response = self._request(
                    "POST", self.UPLOAD_ENDPOINT,
                    error_cls=UploadError,
                    data=form,
                    files={'file': (filename, file)},
                )
        except OSError as e:
            self.logger.error(
                event=LogEvent.UPLOAD_FAILED,
                message=f"Cannot read source file: {file}",
                exc_info=e
            )
            raise UploadError(f"Cannot read source file: {e}") from e
        except StreamingApiError as e:
            self.logger.error(
                event=LogEvent.UPLOAD_FAILED,
                message=e.message,
                metadata={'session_id': session_id, 'status_code': e.status_code}
            )
            raise

        body = _response_body(response)
        self.logger.info(
            event=LogEvent.UPLOAD_COMPLETED,
            message="Upload accepted",
            metadata={'session_id': session_id}
        )
        return body if isinstance(body, dict) else {'response': body}

    def download_results(
        self,
        session_id: str,
        fmt: str = "json",
        dest_dir: Union[str, Path] = ".",
    ) -> Path:
        """
        Download the result artifact of a session to dest_dir.

        Returns:
            Path of the written file (streaming_results_<session>_<ms>.<fmt>)

        Raises:
            ValueError: Unknown format
            DownloadError: Service refused or file could not be written
        """
        if fmt not in RESULT_FORMATS:
            raise ValueError(f"format must be one of {RESULT_FORMATS}, got {fmt!r}")

        path = f"{self.SESSIONS_ENDPOINT}/{session_id}/download"
        try:
            response = self._request(
                "GET", path,
                error_cls=DownloadError,
                error_message="Error downloading results",
                params={'format': fmt, 'include_timeline': 'true'},
            )
        except StreamingApiError as e:
            self.logger.error(
                event=LogEvent.DOWNLOAD_FAILED,
                message=e.message,
                metadata={'session_id': session_id, 'status_code': e.status_code}
            )
            raise

        dest = Path(dest_dir)
        target = dest / result_filename(session_id, fmt)
        try:
            dest.mkdir(parents=True, exist_ok=True)
            target.write_bytes(response.content)
        except OSError as e:
            self.logger.error(
                event=LogEvent.DOWNLOAD_FAILED,
                message=f"Cannot write {target}",
                exc_info=e
            )
            raise DownloadError(f"Cannot write results: {e}") from e

        self.logger.info(
            event=LogEvent.DOWNLOAD_COMPLETED,
            message=f"Results written to {target}",
            metadata={'session_id': session_id, 'format': fmt, 'bytes': len(response.content)}
        )
        return target

    # ===== Session Management =====

    def get_active_sessions(self) -> Dict[str, Any]:
        return self._json("GET", self.SESSIONS_ENDPOINT, "Error listing active sessions")

    def get_session_info(self, session_id: str) -> Dict[str, Any]:
        return self._json(
            "GET", f"{self.SESSIONS_ENDPOINT}/{session_id}",
            f"Error fetching session {session_id}"
        )

    def disconnect_session(self, session_id: str) -> None:
        self._request(
            "DELETE", f"{self.SESSIONS_ENDPOINT}/{session_id}",
            error_message=f"Error closing session {session_id}"
        )

    def get_health(self) -> Dict[str, Any]:
        return self._json("GET", self.HEALTH_ENDPOINT, "Streaming health check failed")

    def test_connection(self) -> Dict[str, Any]:
        return self._json("GET", self.TEST_CONNECTION_ENDPOINT, "Connection test failed")

    # ===== Lifecycle =====

    def close(self) -> None:
        """Release pooled connections."""
        self._client.close()

    def __enter__(self) -> "StreamingApiClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
