from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Description:
    lang: str
    text: str


@dataclass(frozen=True)
class Tag:
    """One tag definition from a ``<tag>`` element.

    Attributes:
        id: Tag identifier as printed by exiftool (often a hex code).
        name: Tag name, unique within its table.
        type: Free-form type label (``string``, ``int16u``, ...).
        writable: Whether exiftool can write the tag.
        descriptions: Localized descriptions in document order.
    """

    id: str
    name: str
    type: str
    writable: bool
    descriptions: tuple[Description, ...] = ()


@dataclass(frozen=True)
class Table:
    """One ``<table>`` element: a named metadata group and its tags."""

    name: str
    tags: tuple[Tag, ...] = ()
