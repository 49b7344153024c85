"""Incremental decoding of exiftool ``-listx`` output into ``Table`` records.

``TableDecoder`` is push-driven and does no I/O: bytes go in through
``feed()``, decode outcomes come out. ``aiter_table_outcomes()`` pulls bytes
from the subprocess pipe and drives the decoder one read at a time.

Every outcome is an explicit ``DecodeOutcome``:

* ``RECORD``: one well-formed ``<table>`` element was decoded.
* ``SKIPPED``: one element did not have the expected shape and was dropped.
* ``END``: the producer closed its output; the sequence is complete.
* ``FAILED``: the bytes are not well-formed XML; nothing more will follow.
"""
from __future__ import annotations

import codecs
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional, Protocol

from lxml import etree

from exiftags.errors import FatalDecodeError, RecordShapeError, TagListingError
from exiftags.tag_models import Description, Table, Tag

DEFAULT_CHUNK_SIZE = 64 * 1024

TABLE_ELEMENT = "table"
TAG_ELEMENT = "tag"
DESCRIPTION_ELEMENT = "desc"

# Encloses the whole input so any number of top-level elements parse as one document.
_STREAM_ROOT = "exiftags-stream"
_STREAM_OPEN = f"<{_STREAM_ROOT}>".encode("ascii")
_STREAM_CLOSE = f"</{_STREAM_ROOT}>".encode("ascii")
_XML_DECL_START = b"<?xml"

_TRUE_VALUES = frozenset({"1", "t", "T", "true", "TRUE", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "false", "FALSE", "False"})


class DecodeStatus(Enum):
    RECORD = "record"
    SKIPPED = "skipped"
    END = "end"
    FAILED = "failed"


@dataclass(frozen=True)
class DecodeOutcome:
    """Result of decoding one element, or the end of the stream.

    Attributes:
        status: Which kind of outcome this is.
        table: The decoded table for ``RECORD`` outcomes.
        error: ``RecordShapeError`` for ``SKIPPED``, ``FatalDecodeError`` for ``FAILED``.
    """

    status: DecodeStatus
    table: Optional[Table] = None
    error: Optional[TagListingError] = None

    @classmethod
    def record(cls, table: Table) -> "DecodeOutcome":
        return cls(DecodeStatus.RECORD, table=table)

    @classmethod
    def skipped(cls, error: RecordShapeError) -> "DecodeOutcome":
        return cls(DecodeStatus.SKIPPED, error=error)

    @classmethod
    def end(cls) -> "DecodeOutcome":
        return cls(DecodeStatus.END)

    @classmethod
    def failed(cls, error: FatalDecodeError) -> "DecodeOutcome":
        return cls(DecodeStatus.FAILED, error=error)

    @property
    def is_terminal(self) -> bool:
        return self.status in (DecodeStatus.END, DecodeStatus.FAILED)


class ByteReader(Protocol):
    """Anything with an ``asyncio.StreamReader``-style ``read``."""

    async def read(self, n: int = -1) -> bytes:
        ...


def parse_xml_bool(value: str | None) -> bool:
    """Parse a boolean attribute the way exiftool's consumers expect.

    A missing, empty or blank attribute is ``False``. Accepted spellings are
    ``1/0``, ``t/f`` and ``true/false`` in lower, upper or title case.

    Raises:
        RecordShapeError: If the value is not a recognised boolean.
    """
    if value is None:
        return False
    stripped = value.strip()
    if not stripped:
        return False
    if stripped in _TRUE_VALUES:
        return True
    if stripped in _FALSE_VALUES:
        return False
    raise RecordShapeError(f"invalid boolean value {value!r}")


def _local_name(element: etree._Element) -> str | None:
    if not isinstance(element.tag, str):
        return None
    return etree.QName(element).localname


def decode_tag(element: etree._Element) -> Tag:
    descriptions = tuple(
        Description(lang=child.get("lang", ""), text="".join(child.itertext()))
        for child in element
        if _local_name(child) == DESCRIPTION_ELEMENT
    )
    try:
        writable = parse_xml_bool(element.get("writable"))
    except RecordShapeError as exc:
        raise RecordShapeError(f"tag {element.get('name', '')!r}: {exc}") from exc
    return Tag(
        id=element.get("id", ""),
        name=element.get("name", ""),
        type=element.get("type", ""),
        writable=writable,
        descriptions=descriptions,
    )


def decode_table(element: etree._Element) -> Table:
    """Decode one complete ``<table>`` element.

    Raises:
        RecordShapeError: If any tag inside the table does not fit the expected shape.
    """
    name = element.get("name", "")
    try:
        tags = tuple(
            decode_tag(child) for child in element if _local_name(child) == TAG_ELEMENT
        )
    except RecordShapeError as exc:
        raise RecordShapeError(f"table {name!r}: {exc}") from exc
    return Table(name=name, tags=tags)


def _release(element: etree._Element) -> None:
    element.clear(keep_tail=True)
    parent = element.getparent()
    if parent is None:
        return
    while element.getprevious() is not None:
        del parent[0]


class TableDecoder:
    """Push-style decoder turning a byte stream into ``DecodeOutcome`` values.

    Only the outermost ``<table>`` elements are records. Other elements that
    start outside a table are reported as skipped, but tables nested inside
    them (exiftool's ``<taginfo>`` wrapper) are still decoded. Each table is
    released from the tree once decoded, so memory stays bounded by the
    largest table plus one fed chunk.
    """

    def __init__(self) -> None:
        self._parser = etree.XMLPullParser(
            events=("start", "end"),
            resolve_entities=False,
            no_network=True,
            remove_comments=True,
            remove_pis=True,
            huge_tree=True,
        )
        self._head = b""
        self._started = False
        self._root_seen = False
        self._open_tables = 0
        self._failed = False
        self._finished = False
        self.truncated = False

    @property
    def in_record(self) -> bool:
        return self._open_tables > 0

    def feed(self, data: bytes) -> list[DecodeOutcome]:
        """Push bytes and return the outcomes they complete."""
        if self._failed or self._finished or not data:
            return []
        if not self._started:
            data = self._start_stream(data)
            if not data:
                return []
        return self._push(data)

    def finish(self) -> list[DecodeOutcome]:
        """Signal end of input and return the remaining outcomes, ending with ``END``.

        A table still open at this point was cut off by the producer; it is
        dropped and ``truncated`` is set.
        """
        if self._failed or self._finished:
            return []
        self._finished = True
        if not self._started:
            # Only whitespace or a cut-off XML declaration arrived.
            self.truncated = bool(self._head.strip())
            return [DecodeOutcome.end()]
        outcomes = self._push_lenient(_STREAM_CLOSE)
        if not self.truncated:
            try:
                self._parser.close()
            except etree.XMLSyntaxError:
                self.truncated = True
            outcomes.extend(self._drain_events())
        if self.in_record:
            self.truncated = True
        outcomes.append(DecodeOutcome.end())
        return outcomes

    def _start_stream(self, data: bytes) -> bytes:
        self._head += data
        head = self._head
        if head.startswith(codecs.BOM_UTF8):
            head = head[len(codecs.BOM_UTF8):]
        stripped = head.lstrip()
        if not stripped:
            return b""
        if stripped.startswith(_XML_DECL_START):
            decl_end = stripped.find(b"?>")
            if decl_end < 0:
                return b""
            decl_end += 2
            prefix = stripped[:decl_end] + _STREAM_OPEN
            rest = stripped[decl_end:]
        elif _XML_DECL_START.startswith(stripped):
            return b""
        else:
            prefix = _STREAM_OPEN
            rest = stripped
        self._started = True
        self._head = b""
        return prefix + rest

    def _push(self, data: bytes) -> list[DecodeOutcome]:
        error: etree.XMLSyntaxError | None = None
        try:
            self._parser.feed(data)
        except etree.XMLSyntaxError as exc:
            error = exc
        outcomes = self._drain_events()
        if error is not None:
            self._failed = True
            outcomes.append(DecodeOutcome.failed(FatalDecodeError(error)))
        return outcomes

    def _push_lenient(self, data: bytes) -> list[DecodeOutcome]:
        # At end of input a syntax error means the producer stopped mid-element.
        try:
            self._parser.feed(data)
        except etree.XMLSyntaxError:
            self.truncated = True
        return self._drain_events()

    def _drain_events(self) -> list[DecodeOutcome]:
        outcomes: list[DecodeOutcome] = []
        for event, element in self._parser.read_events():
            if not self._root_seen:
                self._root_seen = True
                continue
            name = _local_name(element)
            if event == "start":
                if name == TABLE_ELEMENT:
                    self._open_tables += 1
                elif self._open_tables == 0:
                    outcomes.append(
                        DecodeOutcome.skipped(RecordShapeError(f"unexpected element <{name}>"))
                    )
                continue
            if name == TABLE_ELEMENT:
                self._open_tables -= 1
                if self._open_tables == 0:
                    outcomes.append(self._decode(element))
                    _release(element)
            elif self._open_tables == 0 and element.getparent() is not None:
                _release(element)
        return outcomes

    @staticmethod
    def _decode(element: etree._Element) -> DecodeOutcome:
        try:
            return DecodeOutcome.record(decode_table(element))
        except RecordShapeError as exc:
            return DecodeOutcome.skipped(exc)


async def aiter_table_outcomes(
    reader: ByteReader,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AsyncIterator[DecodeOutcome]:
    """Decode outcomes from a byte reader until ``END`` or ``FAILED``.

    Each read suspends until the producer has written more bytes, so a slow
    consumer throttles the producer through the pipe buffer and vice versa.

    Args:
        reader: Source of bytes, typically the subprocess stdout reader.
        chunk_size: Maximum bytes requested per read.

    Yields:
        Outcomes in document order; the last one is always terminal.
    """
    decoder = TableDecoder()
    while True:
        chunk = await reader.read(chunk_size)
        outcomes = decoder.feed(chunk) if chunk else decoder.finish()
        for outcome in outcomes:
            yield outcome
            if outcome.is_terminal:
                return
