"""Unit tests for flattening tables into output records."""

from __future__ import annotations

from exiftags.api_contract import OutputRecord
from exiftags.tag_models import Description, Table, Tag
from exiftags.transcoder import (
    build_description_map,
    build_tag_path,
    transcode_table,
    transcode_tag,
)


def test_transcode_tag_matches_documented_example() -> None:
    """EXIF/Make serializes to the documented compact JSON."""
    tag = Tag(
        id="271",
        name="Make",
        type="string",
        writable=True,
        descriptions=(Description(lang="en", text="Manufacturer"),),
    )
    record = transcode_tag("EXIF", tag)
    assert record.to_json_bytes() == (
        b'{"writable":true,"path":"EXIF:Make","group":"Make",'
        b'"description":{"en":"Manufacturer"},"type":"string"}'
    )


def test_repeated_language_keeps_last_text() -> None:
    descriptions = [
        Description(lang="en", text="first"),
        Description(lang="de", text="erste"),
        Description(lang="en", text="second"),
    ]
    assert build_description_map(descriptions) == {"en": "second", "de": "erste"}


def test_description_map_keeps_encounter_order() -> None:
    mapping = build_description_map(
        [Description(lang="fr", text="b"), Description(lang="en", text="a")]
    )
    assert list(mapping) == ["fr", "en"]


def test_path_joins_with_colon_without_escaping() -> None:
    assert build_tag_path("EXIF::Main", "Make") == "EXIF::Main:Make"


def test_transcode_table_preserves_tag_order() -> None:
    table = Table(
        name="File",
        tags=(
            Tag(id="b", name="Zeta", type="int", writable=False),
            Tag(id="a", name="Alpha", type="string", writable=True),
        ),
    )
    records = list(transcode_table(table))
    assert [record.path for record in records] == ["File:Zeta", "File:Alpha"]
    assert records[0] == OutputRecord(
        writable=False, path="File:Zeta", group="Zeta", description={}, type="int"
    )


def test_table_without_tags_yields_nothing() -> None:
    assert list(transcode_table(Table(name="Empty"))) == []
