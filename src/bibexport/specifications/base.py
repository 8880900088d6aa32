"""Shared contract for per-format export specifications."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
import logging
from typing import Callable, Protocol, Sequence, runtime_checkable

from bibexport.models import Work
from bibexport.validation import require_works
from bibexport.writer import DocumentWriter

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@runtime_checkable
class ExportSpecification(Protocol):
    """Protocol that every output format must implement."""

    name: str

    def generate(self, works: Sequence[Work]) -> bytes:
        """Serialise the works into one complete document."""


class XmlSpecification(ABC):
    """Template for XML formats: validate the batch, write, serialise."""

    name = ""

    def generate(self, works: Sequence[Work]) -> bytes:
        require_works(self.name, works)
        writer = DocumentWriter(self.name)
        self.handle_event(writer, works)
        document = writer.to_bytes()
        logger.debug("Generated %s document for %s work(s), %s bytes", self.name, len(works), len(document))
        return document

    @abstractmethod
    def handle_event(self, writer: DocumentWriter, works: Sequence[Work]) -> None:
        """Write the envelope and every record of the batch."""
