"""
Test CLI
========

Argument handling and exit codes of the platestream command, with the REST
client replaced by a recording fake.

Usage:
    pytest test_cli.py
"""

import json

import pytest

from platestream_api import ApiConnectionError
from platestream_cli import cli


class RecordingApi:
    instances = []
    fail_with = None

    def __init__(self, base_url, timeout, logger):
        self.base_url = base_url
        self.timeout = timeout
        self.calls = []
        RecordingApi.instances.append(self)

    def _call(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        if RecordingApi.fail_with:
            raise RecordingApi.fail_with
        return {"called": name}

    def get_health(self):
        return self._call("get_health")

    def test_connection(self):
        return self._call("test_connection")

    def get_active_sessions(self):
        return self._call("get_active_sessions")

    def get_session_info(self, session_id):
        return self._call("get_session_info", session_id)

    def disconnect_session(self, session_id):
        self._call("disconnect_session", session_id)

    def download_results(self, session_id, fmt="json", dest_dir="."):
        self._call("download_results", session_id, fmt=fmt, dest_dir=dest_dir)
        return f"{dest_dir}/streaming_results_{session_id}_0.{fmt}"

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return None


@pytest.fixture(autouse=True)
def fake_api(monkeypatch):
    RecordingApi.instances = []
    RecordingApi.fail_with = None
    monkeypatch.setattr(cli, "StreamingApiClient", RecordingApi)
    return RecordingApi


def test_health_prints_json(capsys):
    assert cli.main(["health"]) == 0

    assert json.loads(capsys.readouterr().out) == {"called": "get_health"}
    assert RecordingApi.instances[0].base_url == "http://localhost:8000"


def test_api_url_and_timeout_override(capsys):
    cli.main(["--api-url", "http://alpr.local:9000", "--timeout", "5", "sessions"])

    api = RecordingApi.instances[0]
    assert api.base_url == "http://alpr.local:9000"
    assert api.timeout == 5.0
    assert api.calls == [("get_active_sessions", (), {})]


def test_config_file_sets_base_url(tmp_path, capsys):
    config = tmp_path / "client.yaml"
    config.write_text('api_base_url: "http://from-config:8000"\nhttp_timeout: 12\n')

    cli.main(["--config", str(config), "test-connection"])

    assert RecordingApi.instances[0].base_url == "http://from-config:8000"
    assert RecordingApi.instances[0].timeout == 12


def test_download_passes_format_and_dir(capsys):
    assert cli.main(["download", "session_1", "--format", "csv", "-o", "out"]) == 0

    assert RecordingApi.instances[0].calls == [
        ("download_results", ("session_1",), {"fmt": "csv", "dest_dir": "out"})
    ]
    assert "out/streaming_results_session_1_0.csv" in capsys.readouterr().out


def test_session_commands(capsys):
    cli.main(["session-info", "session_1"])
    cli.main(["close-session", "session_1"])

    assert RecordingApi.instances[0].calls[0][0] == "get_session_info"
    assert RecordingApi.instances[1].calls[0] == ("disconnect_session", ("session_1",), {})
    assert "closed" in capsys.readouterr().out


def test_api_error_returns_one(capsys):
    RecordingApi.fail_with = ApiConnectionError("Could not reach http://localhost:8000")

    assert cli.main(["health"]) == 1
    assert "Could not reach" in capsys.readouterr().err


def test_missing_config_returns_one(tmp_path, capsys):
    assert cli.main(["--config", str(tmp_path / "nope.yaml"), "health"]) == 1
    assert RecordingApi.instances == []


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out.lower()


def test_invalid_format_is_rejected():
    with pytest.raises(SystemExit):
        cli.main(["download", "session_1", "--format", "xml"])
