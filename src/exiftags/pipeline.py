"""Per-request coordination of the listing process, decoder, transcoder and writer.

One ``TagListingPipeline`` serves one request:

    IDLE -> PROCESS_STARTED -> STREAMING -> DONE
                  |                |
                  v                v
                FAILED         TRUNCATED

Failures before the first byte (``start()`` / ``prime()``) raise, so the HTTP
layer can still answer with an error status. Failures after it can only
end the body early; the JSON document is then left unterminated.
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import AsyncIterator, Optional, Sequence

from exiftags.api_contract import OutputRecord
from exiftags.errors import FatalDecodeError, TagListingError
from exiftags.exiftool import ListingProcess
from exiftags.json_sink import TagsDocumentWriter, stream_tags_document
from exiftags.logging import get_logger
from exiftags.record_source import (
    DEFAULT_CHUNK_SIZE,
    DecodeOutcome,
    DecodeStatus,
    aiter_table_outcomes,
)
from exiftags.transcoder import transcode_table

logger = get_logger(__name__)

DEFAULT_EXIT_TIMEOUT = 10.0


class PipelineState(Enum):
    IDLE = "idle"
    PROCESS_STARTED = "process_started"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"
    TRUNCATED = "truncated"


class TagListingPipeline:
    """Stream one tag dictionary listing as a JSON document.

    Args:
        command: Argument vector of the listing process.
        chunk_size: Maximum bytes read from the pipe at once.
        exit_timeout: Seconds to wait for the process to exit once its output ended.
    """

    def __init__(
        self,
        command: Sequence[str],
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        exit_timeout: float = DEFAULT_EXIT_TIMEOUT,
    ) -> None:
        self.command = list(command)
        self.chunk_size = chunk_size
        self.exit_timeout = exit_timeout
        self.state = PipelineState.IDLE
        self.writer = TagsDocumentWriter()
        self.skipped = 0
        self._process: Optional[ListingProcess] = None
        self._outcomes: Optional[AsyncIterator[DecodeOutcome]] = None
        self._pending: Optional[DecodeOutcome] = None

    async def start(self) -> None:
        """Launch the listing process.

        Raises:
            ProcessStartError: If the process cannot be launched.
        """
        if self.state is not PipelineState.IDLE:
            raise RuntimeError(f"pipeline already started (state={self.state.value})")
        try:
            self._process = await ListingProcess.start(self.command)
        except TagListingError:
            self.state = PipelineState.FAILED
            raise
        self._outcomes = aiter_table_outcomes(self._process.stdout, chunk_size=self.chunk_size)
        self.state = PipelineState.PROCESS_STARTED

    async def prime(self) -> None:
        """Decode up to the first table, or the end, before any byte is sent.

        Raises:
            FatalDecodeError: If the output is malformed before the first table.
            ProcessExitError: If the output ended and the process failed.
        """
        if self.state is not PipelineState.PROCESS_STARTED:
            raise RuntimeError(f"pipeline not ready to prime (state={self.state.value})")
        try:
            outcome = await self._next_outcome()
            if isinstance(outcome.error, FatalDecodeError):
                raise outcome.error
            if outcome.status is DecodeStatus.END:
                await self._check_exit()
        except TagListingError:
            self.state = PipelineState.FAILED
            raise
        self._pending = outcome

    async def stream(self) -> AsyncIterator[bytes]:
        """Yield the response body. Requires ``prime()`` to have succeeded.

        The process is torn down when the generator finishes, fails or is
        closed early because the client went away.
        """
        if self._pending is None:
            raise RuntimeError("pipeline must be primed before streaming")
        self.state = PipelineState.STREAMING
        try:
            async for chunk in stream_tags_document(self._records(), writer=self.writer):
                yield chunk
        except TagListingError as exc:
            self.state = PipelineState.TRUNCATED
            logger.error(
                "Tag listing failed after %d records; response truncated: %s",
                self.writer.records_written,
                exc,
            )
            return
        finally:
            # Teardown must finish even when the server cancels this generator.
            await asyncio.shield(self.aclose())
        self.state = PipelineState.DONE
        logger.info(
            "Streamed %d tags (%d skipped elements)", self.writer.records_written, self.skipped
        )

    async def aclose(self) -> None:
        """Release the process and the decoder. Safe to call more than once."""
        if self._outcomes is not None:
            outcomes, self._outcomes = self._outcomes, None
            await outcomes.aclose()
        if self._process is not None:
            await self._process.terminate()

    async def _records(self) -> AsyncIterator[OutputRecord]:
        outcome = self._pending
        while outcome is not None:
            if outcome.table is not None:
                for record in transcode_table(outcome.table):
                    yield record
            elif isinstance(outcome.error, FatalDecodeError):
                raise outcome.error
            elif outcome.status is DecodeStatus.END:
                await self._check_exit()
                return
            outcome = await self._next_outcome()

    async def _next_outcome(self) -> DecodeOutcome:
        if self._outcomes is None:
            raise RuntimeError("pipeline has no output to decode")
        async for outcome in self._outcomes:
            if outcome.status is not DecodeStatus.SKIPPED:
                return outcome
            self.skipped += 1
            logger.debug("Skipping element: %s", outcome.error)
        return DecodeOutcome.end()

    async def _check_exit(self) -> None:
        if self._process is None:
            raise RuntimeError("pipeline has no process to wait for")
        await self._process.wait_for_exit(self.exit_timeout)
