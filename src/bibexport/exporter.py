"""Routing entrypoint for export specifications."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Sequence

from bibexport.errors import UnknownSpecificationError
from bibexport.models import Work
from bibexport.specifications.base import ExportSpecification

logger = logging.getLogger(__name__)

XML_CONTENT_TYPE = "text/xml; charset=utf-8"


@dataclass(frozen=True, slots=True)
class ExportRecord:
    """Generated document plus the metadata a caller needs to deliver it."""

    specification: str
    content: bytes
    content_type: str
    file_name: str


def export_file_name(specification: str, identifier: str, extension: str = "xml") -> str:
    """File name such as ``doideposit__crossref__<id>.xml``."""

    return f"{specification.replace('::', '__')}__{identifier}.{extension}"


class MetadataExporter:
    """Resolve a specification by name and generate its document."""

    def __init__(self) -> None:
        self._specification_map: dict[str, ExportSpecification] = {}

    @property
    def specification_map(self) -> dict[str, ExportSpecification]:
        """Registered specifications keyed by name."""

        return dict(self._specification_map)

    def register_specification(self, name: str, specification: ExportSpecification) -> None:
        """Register a specification implementation by key."""

        if not name:
            raise ValueError("Specification name cannot be empty")
        self._specification_map[name] = specification

    def generate(self, specification_name: str, works: Sequence[Work]) -> bytes:
        """Generate the complete document for ``works`` in the named format."""

        specification = self._specification_map.get(specification_name)
        if specification is None:
            raise UnknownSpecificationError(specification_name)

        logger.info("Generating %s for %s work(s)", specification_name, len(works))
        return specification.generate(works)

    def export(self, specification_name: str, works: Sequence[Work], identifier: str | None = None) -> ExportRecord:
        """Generate a document and name it after ``identifier`` or the single work."""

        content = self.generate(specification_name, works)
        if identifier is None:
            identifier = works[0].work_id if len(works) == 1 else "batch"
        return ExportRecord(
            specification=specification_name,
            content=content,
            content_type=XML_CONTENT_TYPE,
            file_name=export_file_name(specification_name, identifier),
        )
