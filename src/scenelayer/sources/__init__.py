"""Content sources: packaged archive and live REST service."""

from scenelayer.sources.archive import ArchiveSource
from scenelayer.sources.base import ContentSource, parse_document
from scenelayer.sources.rest import RestSource

__all__ = ["ArchiveSource", "ContentSource", "RestSource", "parse_document"]
