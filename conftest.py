"""
Pytest configuration for platestream tests

Shared fakes:
- FakeTransport: in-memory stand-in for WebSocketTransport; tests drive the
  lifecycle with simulate_open/message/close/error
- FakeTimer: retry timer that only fires when the test says so
- FakeApi: records upload/download calls, optionally fails
"""

import itertools
import json
import logging

import pytest

from platestream_api import UploadError
from platestream_ws import ClientConfig, StreamingClient, StructuredLogger
from platestream_ws.transport import ConnectionState


class FakeTransport:
    """Drives ConnectionManager callbacks synchronously."""

    def __init__(self, url):
        self.url = url
        self.on_open = lambda t: None
        self.on_message = lambda t, m: None
        self.on_close = lambda t, c, r: None
        self.on_error = lambda t, e: None
        self.state = ConnectionState.CLOSED
        self.sent = []
        self.close_calls = []
        self.opened = False

    def open(self):
        self.opened = True
        self.state = ConnectionState.CONNECTING

    def send(self, text):
        self.sent.append(text)

    def close(self, code=1000, reason=""):
        self.close_calls.append((code, reason))
        self.state = ConnectionState.CLOSING

    # ===== Test drivers =====

    def simulate_open(self):
        self.state = ConnectionState.OPEN
        self.on_open(self)

    def simulate_message(self, message):
        if not isinstance(message, (str, bytes)):
            message = json.dumps(message)
        self.on_message(self, message)

    def simulate_close(self, code=1006, reason=""):
        self.state = ConnectionState.CLOSED
        self.on_close(self, code, reason)

    def simulate_error(self, error=None):
        self.on_error(self, error or OSError("connection reset"))

    @property
    def sent_types(self):
        return [json.loads(text)['type'] for text in self.sent]


class FakeTimer:
    """Manual timer: fire() runs the callback unless cancelled."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self, force=False):
        """force=True models a timer thread that was already running when cancelled."""
        if self.cancelled and not force:
            return
        self.function()


class FakeApi:
    """Records REST calls made by StreamingClient."""

    def __init__(self):
        self.uploads = []
        self.downloads = []
        self.upload_error = None
        self.upload_hook = None
        self.closed = False

    def upload_video(self, session_id, file, options=None):
        self.uploads.append((session_id, file, options))
        if self.upload_hook:
            self.upload_hook()
        if self.upload_error:
            raise self.upload_error
        return {'success': True, 'message': 'Video uploaded', 'session_id': session_id}

    def download_results(self, session_id, fmt="json", dest_dir="."):
        self.downloads.append((session_id, fmt, dest_dir))
        return f"{dest_dir}/streaming_results_{session_id}_0.{fmt}"

    def close(self):
        self.closed = True


@pytest.fixture
def logger():
    """Structured logger that stays quiet on stderr."""
    return StructuredLogger(component="test", level=logging.CRITICAL, logger_name="platestream.test")


@pytest.fixture
def log_entries(logger):
    """Every entry the test logger emits."""
    entries = []
    logger.add_sink(entries.append)
    return entries


@pytest.fixture
def transports():
    return []


@pytest.fixture
def transport_factory(transports):
    def factory(url):
        transport = FakeTransport(url)
        transports.append(transport)
        return transport
    return factory


@pytest.fixture
def timers():
    return []


@pytest.fixture
def timer_factory(timers):
    def factory(interval, function):
        timer = FakeTimer(interval, function)
        timers.append(timer)
        return timer
    return factory


@pytest.fixture
def session_id_factory():
    counter = itertools.count(1)
    return lambda: f"session_test_{next(counter)}"


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def config():
    return ClientConfig(
        ws_base_url="ws://alpr.test:8000",
        api_base_url="http://alpr.test:8000",
        reconnect_interval=3.0,
        max_reconnect_attempts=3,
    )


@pytest.fixture
def client(config, logger, fake_api, transport_factory, timer_factory, session_id_factory):
    return StreamingClient(
        config=config,
        logger=logger,
        api=fake_api,
        transport_factory=transport_factory,
        timer_factory=timer_factory,
        session_id_factory=session_id_factory,
    )


@pytest.fixture
def connected_client(client, transports):
    """Client whose first transport is open."""
    client.connect()
    transports[-1].simulate_open()
    return client


@pytest.fixture
def upload_failure():
    return UploadError("Unsupported codec", status_code=400)
