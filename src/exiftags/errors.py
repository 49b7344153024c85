"""Error types for the tag listing pipeline.

Everything raised by this package derives from ``TagListingError`` so the
HTTP layer can turn any pipeline failure into one response.
Clean end-of-stream is not an error and has no exception type; see
``exiftags.record_source.DecodeStatus``.
"""

from __future__ import annotations

from typing import Sequence


class TagListingError(Exception):
    """Base exception for all tag listing failures."""


class RecordShapeError(TagListingError):
    """Raised when one source element does not have the shape of a table.

    Recoverable: the decoder reports the element as skipped and continues.
    """


class FatalDecodeError(TagListingError):
    """Raised when the byte stream itself is not well-formed XML."""

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Malformed tag dictionary output: {cause}")


class ProcessStartError(TagListingError):
    """Raised when the listing tool cannot be launched."""

    def __init__(self, command: Sequence[str], reason: str) -> None:
        self.command = list(command)
        self.reason = reason
        super().__init__(f"Failed to start {self.command[0]!r}: {reason}")


class ProcessExitError(TagListingError):
    """Raised when the listing tool exits abnormally or does not exit in time.

    ``returncode`` is ``None`` when the process had to be killed after a timeout.
    """

    def __init__(self, command: Sequence[str], returncode: int | None) -> None:
        self.command = list(command)
        self.returncode = returncode
        if returncode is None:
            message = f"{self.command[0]!r} did not exit after closing its output"
        else:
            message = f"{self.command[0]!r} exited with status {returncode}"
        super().__init__(message)
