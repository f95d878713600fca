"""ArchiveSource — read a scene layer from a packaged .slpk file.

An SLPK is a zip container. Each resource sits at a well-known entry
name, usually gzip-compressed with a ``.gz`` suffix. Reads are
synchronous, and a lock keeps one entry open at a time on the shared
zip handle.
"""

from __future__ import annotations

import re
import threading
import zipfile
import zlib
from pathlib import Path

from loguru import logger

from scenelayer.errors import DecodeFailure, ResourceNotFound
from scenelayer.models import LayerDescriptor, LayerMetadata, NodePage
from scenelayer.sources.base import ContentSource, ModelT, parse_document

DESCRIPTOR_ENTRY = "3dSceneLayer.json"
METADATA_ENTRY = "metadata.json"
NODE_PAGE_ENTRY = "nodepages/{page}.json"

_NODE_PAGE_RE = re.compile(r"(?:^|/)nodepages/(\d+)\.json(?:\.gz)?$")


def node_page_entry(page_number: int) -> str:
    return NODE_PAGE_ENTRY.format(page=page_number)


class ArchiveSource(ContentSource):
    """Content source backed by a zip archive.

    Args:
        archive: Path to an ``.slpk`` file, or an already open ``ZipFile``.
            A ``ZipFile`` passed in is not closed by :meth:`close`.
    """

    def __init__(self, archive: str | Path | zipfile.ZipFile) -> None:
        if isinstance(archive, zipfile.ZipFile):
            self._zip = archive
            self._owns_zip = False
        else:
            try:
                self._zip = zipfile.ZipFile(archive, "r")
            except zipfile.BadZipFile as e:
                raise DecodeFailure(str(archive), f"not a zip archive: {e}") from e
            self._owns_zip = True
        self._lock = threading.Lock()
        self._names = set(self._zip.namelist())
        logger.debug(f"Opened archive {self._zip.filename} ({len(self._names)} entries)")

    @property
    def name(self) -> str:
        return str(self._zip.filename or "<archive>")

    def node_page_numbers(self) -> list[int]:
        """Page numbers of every node page entry in the archive, ascending."""
        numbers = set()
        for entry in self._names:
            match = _NODE_PAGE_RE.search(entry)
            if match:
                numbers.add(int(match.group(1)))
        return sorted(numbers)

    def fetch_descriptor(self) -> LayerDescriptor:
        return self._read(DESCRIPTOR_ENTRY, LayerDescriptor)

    def fetch_metadata(self) -> LayerMetadata:
        return self._read(METADATA_ENTRY, LayerMetadata)

    def fetch_node_page(self, page_number: int) -> NodePage:
        return self._read(node_page_entry(page_number), NodePage)

    def close(self) -> None:
        if self._owns_zip:
            self._zip.close()

    def _resolve(self, resource: str) -> str:
        for candidate in (f"{resource}.gz", resource):
            if candidate in self._names:
                return candidate
        raise ResourceNotFound(resource)

    def _read(self, resource: str, model: type[ModelT]) -> ModelT:
        entry = self._resolve(resource)
        with self._lock:
            try:
                with self._zip.open(entry) as f:
                    raw = f.read()
            except (zipfile.BadZipFile, OSError, EOFError, zlib.error) as e:
                raise DecodeFailure(entry, f"unreadable archive entry: {e}") from e
        logger.debug(f"Read {entry} from {self.name} ({len(raw)} bytes)")
        return parse_document(raw, model, entry)
