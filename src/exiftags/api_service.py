"""Startup and per-request settings for the tag listing server."""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from exiftags.exiftool import DEFAULT_EXIFTOOL
from exiftags.pipeline import DEFAULT_EXIT_TIMEOUT
from exiftags.record_source import DEFAULT_CHUNK_SIZE

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080

ENV_HOST = "EXIFTAGS_HOST"
ENV_PORT = "EXIFTAGS_PORT"
ENV_LOG_LEVEL = "EXIFTAGS_LOG_LEVEL"
ENV_EXIFTOOL = "EXIFTAGS_EXIFTOOL"
ENV_CHUNK_SIZE = "EXIFTAGS_CHUNK_SIZE"
ENV_EXIT_TIMEOUT = "EXIFTAGS_EXIT_TIMEOUT"
ENV_DEBUG_LOG = "EXIFTAGS_SERVER_DEBUG_LOG"


@dataclass(frozen=True)
class RequestSettings:
    """Settings read for every ``/tags`` request."""

    exiftool: str
    chunk_size: int
    exit_timeout: float


@dataclass(frozen=True)
class ServerStartupSettings:
    """Normalized server startup settings parsed from args/env."""

    host: str
    port: int
    log_level: str
    exiftool: str
    chunk_size: int
    exit_timeout: float
    debug_log: Path | None

    def export_request_environment(self, environ: dict[str, str] | None = None) -> None:
        """Publish the per-request settings where the request handler reads them."""

        env = os.environ if environ is None else environ
        env[ENV_EXIFTOOL] = self.exiftool
        env[ENV_CHUNK_SIZE] = str(self.chunk_size)
        env[ENV_EXIT_TIMEOUT] = str(self.exit_timeout)


def _port(value: str) -> int:
    port = int(value)
    if not 0 < port < 65536:
        raise argparse.ArgumentTypeError(f"port out of range: {value}")
    return port


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value}")
    return number


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive number: {value}")
    return number


def parse_server_startup_settings(
    *,
    argv: list[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ServerStartupSettings:
    """Parse startup settings for the tag server from CLI args and environment.

    Every flag takes its default from an ``EXIFTAGS_*`` environment variable.

    Args:
        argv: Optional argument vector to parse. Uses process arguments when `None`.
        environ: Optional environment mapping to read defaults from.

    Returns:
        Parsed startup settings object.
    """

    env = os.environ if environ is None else environ
    parser = argparse.ArgumentParser(
        description="Serve the exiftool tag dictionary as streamed JSON."
    )
    parser.add_argument(
        "--host",
        default=env.get(ENV_HOST, DEFAULT_HOST),
        help="Host interface to bind the server.",
    )
    parser.add_argument(
        "--port",
        type=_port,
        default=env.get(ENV_PORT, str(DEFAULT_PORT)),
        help="Port to bind the server.",
    )
    parser.add_argument(
        "--log-level",
        default=env.get(ENV_LOG_LEVEL, "info"),
        help="Log level (debug, info, warning, error).",
    )
    parser.add_argument(
        "--exiftool",
        default=env.get(ENV_EXIFTOOL, DEFAULT_EXIFTOOL),
        help="exiftool executable, optionally with leading arguments.",
    )
    parser.add_argument(
        "--chunk-size",
        type=_positive_int,
        default=env.get(ENV_CHUNK_SIZE, str(DEFAULT_CHUNK_SIZE)),
        help="Maximum bytes read from exiftool per decode step.",
    )
    parser.add_argument(
        "--exit-timeout",
        type=_positive_float,
        default=env.get(ENV_EXIT_TIMEOUT, str(DEFAULT_EXIT_TIMEOUT)),
        help="Seconds to wait for exiftool to exit after its output ends.",
    )
    parser.add_argument(
        "--debug-log",
        type=Path,
        default=env.get(ENV_DEBUG_LOG) or None,
        help="Also write debug logs to this file (optional).",
    )
    args: argparse.Namespace = parser.parse_args(argv)
    return ServerStartupSettings(
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        exiftool=args.exiftool,
        chunk_size=args.chunk_size,
        exit_timeout=args.exit_timeout,
        debug_log=args.debug_log,
    )


def resolve_request_settings(environ: Mapping[str, str] | None = None) -> RequestSettings:
    """Read per-request settings from the environment.

    Malformed numeric values fall back to the defaults.

    Args:
        environ: Optional environment mapping for key lookups.

    Returns:
        Settings for one ``/tags`` request.
    """

    env = os.environ if environ is None else environ
    try:
        chunk_size = int(env.get(ENV_CHUNK_SIZE, DEFAULT_CHUNK_SIZE))
    except ValueError:
        chunk_size = DEFAULT_CHUNK_SIZE
    try:
        exit_timeout = float(env.get(ENV_EXIT_TIMEOUT, DEFAULT_EXIT_TIMEOUT))
    except ValueError:
        exit_timeout = DEFAULT_EXIT_TIMEOUT
    return RequestSettings(
        exiftool=env.get(ENV_EXIFTOOL, DEFAULT_EXIFTOOL),
        chunk_size=chunk_size if chunk_size > 0 else DEFAULT_CHUNK_SIZE,
        exit_timeout=exit_timeout if exit_timeout > 0 else DEFAULT_EXIT_TIMEOUT,
    )
