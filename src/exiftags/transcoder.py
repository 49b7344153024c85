"""Flatten decoded ``Table`` records into client-facing ``OutputRecord`` values."""
from __future__ import annotations

from typing import Iterable, Iterator

from exiftags.api_contract import OutputRecord
from exiftags.tag_models import Description, Table, Tag

PATH_SEPARATOR = ":"


def build_tag_path(table_name: str, tag_name: str) -> str:
    """Join table and tag names. Names containing ``:`` are not escaped."""
    return f"{table_name}{PATH_SEPARATOR}{tag_name}"


def build_description_map(descriptions: Iterable[Description]) -> dict[str, str]:
    """Map language codes to text in encounter order.

    A repeated language code keeps the text of its last occurrence.
    """
    mapping: dict[str, str] = {}
    for description in descriptions:
        mapping[description.lang] = description.text
    return mapping


def transcode_tag(table_name: str, tag: Tag) -> OutputRecord:
    return OutputRecord(
        writable=tag.writable,
        path=build_tag_path(table_name, tag.name),
        group=tag.name,
        description=build_description_map(tag.descriptions),
        type=tag.type,
    )


def transcode_table(table: Table) -> Iterator[OutputRecord]:
    """Yield one record per tag, in declaration order."""
    for tag in table.tags:
        yield transcode_tag(table.name, tag)
