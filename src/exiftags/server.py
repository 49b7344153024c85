"""FastAPI server streaming the exiftool tag dictionary as JSON."""
from __future__ import annotations

from typing import Awaitable, Callable

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from starlette.types import Receive, Scope, Send

from exiftags.api_contract import NOT_FOUND_MESSAGE
from exiftags.api_service import parse_server_startup_settings, resolve_request_settings
from exiftags.errors import TagListingError
from exiftags.exiftool import build_listing_command
from exiftags.logging import (
    configure_debug_file_logging,
    get_logger,
    set_package_log_level,
)
from exiftags.pipeline import TagListingPipeline

app = FastAPI(title="exiftags", docs_url=None, redoc_url=None, openapi_url=None)
logger = get_logger(__name__)


class AnyMethodEndpoint:
    """ASGI endpoint serving every HTTP method, including nonstandard ones.

    Routes built from plain functions only match the methods they list, so
    unlisted methods would get a 405 instead of reaching the handler.
    """

    def __init__(self, handler: Callable[[], Awaitable[Response]]) -> None:
        self.handler = handler
        self.__name__ = handler.__name__

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = await self.handler()
        await response(scope, receive, send)


async def list_tags() -> Response:
    """Stream ``{"tags": [...]}`` built from ``exiftool -listx``.

    Errors found before the first body byte produce a plain-text 500; later
    errors can only truncate the streamed body.
    """
    settings = resolve_request_settings()
    try:
        command = build_listing_command(settings.exiftool)
    except ValueError as exc:
        logger.error("Invalid exiftool command: %s", exc)
        return PlainTextResponse(str(exc), status_code=500)

    pipeline = TagListingPipeline(
        command,
        chunk_size=settings.chunk_size,
        exit_timeout=settings.exit_timeout,
    )
    try:
        await pipeline.start()
        await pipeline.prime()
    except TagListingError as exc:
        logger.error("Tag listing failed: %s", exc)
        await pipeline.aclose()
        return PlainTextResponse(str(exc), status_code=500)
    except BaseException:
        await pipeline.aclose()
        raise

    return StreamingResponse(pipeline.stream(), media_type="application/json")


async def not_found() -> Response:
    return PlainTextResponse(NOT_FOUND_MESSAGE, status_code=404)


# Routing is by path only; the catch-all must stay last.
app.add_route("/tags", AnyMethodEndpoint(list_tags), include_in_schema=False)
app.add_route("/{path:path}", AnyMethodEndpoint(not_found), include_in_schema=False)


def main() -> None:
    settings = parse_server_startup_settings()
    settings.export_request_environment()
    set_package_log_level(settings.log_level)
    if settings.debug_log is not None:
        configure_debug_file_logging(settings.debug_log, suppress_console_warnings=False)
    logger.info(
        "Serving tag dictionary from %r on http://%s:%d/tags",
        settings.exiftool,
        settings.host,
        settings.port,
    )
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
