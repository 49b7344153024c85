"""Incremental writer for the ``{"tags": [...]}`` response document.

Records are serialized one at a time as they arrive, so memory use does not
depend on how many tags the dictionary holds. The closing bracket is only
produced after the record source finished cleanly; if the source raises, the
document stays open and the client sees a truncated body.
"""
from __future__ import annotations

from typing import AsyncIterable, AsyncIterator

from exiftags.api_contract import (
    DOCUMENT_CLOSE,
    DOCUMENT_OPEN,
    DOCUMENT_SEPARATOR,
    OutputRecord,
)


class TagsDocumentWriter:
    """Produces the bytes of one tags document in order.

    ``open()`` must come first and ``close()`` last; each returns the bytes to
    send. ``write()`` returns one serialized record, prefixed with a separator
    for every record after the first.
    """

    def __init__(self) -> None:
        self._opened = False
        self._closed = False
        self.records_written = 0

    @property
    def opened(self) -> bool:
        return self._opened

    @property
    def closed(self) -> bool:
        return self._closed

    def open(self) -> bytes:
        if self._opened:
            raise RuntimeError("tags document already opened")
        self._opened = True
        return DOCUMENT_OPEN

    def write(self, record: OutputRecord) -> bytes:
        if not self._opened:
            raise RuntimeError("tags document not opened")
        if self._closed:
            raise RuntimeError("tags document already closed")
        payload = record.to_json_bytes()
        if self.records_written:
            payload = DOCUMENT_SEPARATOR + payload
        self.records_written += 1
        return payload

    def close(self) -> bytes:
        if not self._opened:
            raise RuntimeError("tags document not opened")
        if self._closed:
            raise RuntimeError("tags document already closed")
        self._closed = True
        return DOCUMENT_CLOSE


async def stream_tags_document(
    records: AsyncIterable[OutputRecord],
    *,
    writer: TagsDocumentWriter | None = None,
) -> AsyncIterator[bytes]:
    """Serialize records into document chunks as they arrive.

    Args:
        records: Records in output order. Pulled one at a time.
        writer: Optional writer, so callers can inspect progress afterwards.

    Yields:
        The opening bytes, one chunk per record, then the closing bytes.
    """
    writer = writer or TagsDocumentWriter()
    yield writer.open()
    async for record in records:
        yield writer.write(record)
    yield writer.close()
