"""Unit tests for startup and per-request settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from exiftags.api_service import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    ENV_CHUNK_SIZE,
    ENV_EXIFTOOL,
    ENV_EXIT_TIMEOUT,
    parse_server_startup_settings,
    resolve_request_settings,
)
from exiftags.exiftool import DEFAULT_EXIFTOOL
from exiftags.pipeline import DEFAULT_EXIT_TIMEOUT
from exiftags.record_source import DEFAULT_CHUNK_SIZE


def test_parse_server_startup_settings_defaults_to_loopback() -> None:
    """Bind to the loopback address and default port without any configuration."""

    settings = parse_server_startup_settings(argv=[], environ={})
    assert settings.host == DEFAULT_HOST == "127.0.0.1"
    assert settings.port == DEFAULT_PORT == 8080
    assert settings.log_level == "info"
    assert settings.exiftool == DEFAULT_EXIFTOOL
    assert settings.chunk_size == DEFAULT_CHUNK_SIZE
    assert settings.exit_timeout == DEFAULT_EXIT_TIMEOUT
    assert settings.debug_log is None


def test_parse_server_startup_settings_reads_env_defaults() -> None:
    """Use environment defaults when argv overrides are not provided."""

    env = {
        "EXIFTAGS_HOST": "0.0.0.0",
        "EXIFTAGS_PORT": "9000",
        "EXIFTAGS_LOG_LEVEL": "debug",
        "EXIFTAGS_EXIFTOOL": "/usr/local/bin/exiftool",
        "EXIFTAGS_CHUNK_SIZE": "4096",
        "EXIFTAGS_EXIT_TIMEOUT": "2.5",
        "EXIFTAGS_SERVER_DEBUG_LOG": "logs/server-debug.log",
    }
    settings = parse_server_startup_settings(argv=[], environ=env)
    assert settings.host == "0.0.0.0"
    assert settings.port == 9000
    assert settings.log_level == "debug"
    assert settings.exiftool == "/usr/local/bin/exiftool"
    assert settings.chunk_size == 4096
    assert settings.exit_timeout == 2.5
    assert settings.debug_log == Path("logs/server-debug.log")


def test_parse_server_startup_settings_applies_argv_overrides() -> None:
    """Allow CLI arguments to override environment defaults."""

    settings = parse_server_startup_settings(
        argv=["--port", "8100", "--exiftool", "perl exiftool", "--chunk-size", "512"],
        environ={"EXIFTAGS_PORT": "9000", "EXIFTAGS_EXIFTOOL": "exiftool"},
    )
    assert settings.port == 8100
    assert settings.exiftool == "perl exiftool"
    assert settings.chunk_size == 512


@pytest.mark.parametrize(
    "argv",
    [
        ["--port", "0"],
        ["--port", "70000"],
        ["--chunk-size", "0"],
        ["--exit-timeout", "-1"],
    ],
)
def test_parse_server_startup_settings_rejects_invalid_values(argv: list[str]) -> None:
    with pytest.raises(SystemExit):
        parse_server_startup_settings(argv=argv, environ={})


def test_export_request_environment_round_trips_to_request_settings() -> None:
    """Settings exported at startup are what each request reads back."""

    settings = parse_server_startup_settings(
        argv=["--exiftool", "exiftool-13", "--chunk-size", "1024", "--exit-timeout", "3"],
        environ={},
    )
    env: dict[str, str] = {}
    settings.export_request_environment(env)
    request_settings = resolve_request_settings(env)
    assert request_settings.exiftool == "exiftool-13"
    assert request_settings.chunk_size == 1024
    assert request_settings.exit_timeout == 3.0


def test_resolve_request_settings_falls_back_on_bad_values() -> None:
    """Malformed or non-positive values use the defaults instead of failing requests."""

    request_settings = resolve_request_settings(
        {ENV_CHUNK_SIZE: "lots", ENV_EXIT_TIMEOUT: "0", ENV_EXIFTOOL: "et"}
    )
    assert request_settings.exiftool == "et"
    assert request_settings.chunk_size == DEFAULT_CHUNK_SIZE
    assert request_settings.exit_timeout == DEFAULT_EXIT_TIMEOUT
