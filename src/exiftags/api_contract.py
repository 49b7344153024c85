"""Client-facing response shapes for the tag listing endpoint.

The body of ``/tags`` is one JSON object ``{"tags": [...]}`` whose entries are
``OutputRecord`` values. The envelope literals live here so the streaming
writer and the tests agree on the exact bytes.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict

DOCUMENT_OPEN = b'{"tags": ['
DOCUMENT_SEPARATOR = b","
DOCUMENT_CLOSE = b"]}"

NOT_FOUND_MESSAGE = "Das sind nicht die Droiden, die ihr sucht"


class OutputRecord(BaseModel):
    """One flattened tag definition in the response body.

    Field order is the serialization order and is part of the output schema.

    Attributes:
        writable: Whether exiftool can write the tag.
        path: ``"<table name>:<tag name>"``.
        group: The tag name again, kept for output-schema compatibility.
        description: Language code to description text.
        type: Free-form type label.
    """

    model_config = ConfigDict(frozen=True)

    writable: bool
    path: str
    group: str
    description: dict[str, str]
    type: str

    def to_json_bytes(self) -> bytes:
        """Serialize compactly as UTF-8 JSON."""
        return self.model_dump_json().encode("utf-8")
