"""Streaming HTTP front-end for the exiftool tag dictionary."""

from exiftags.api_contract import OutputRecord
from exiftags.tag_models import Description, Table, Tag

__all__ = ["Description", "OutputRecord", "Table", "Tag"]

__version__ = "0.1.0"
