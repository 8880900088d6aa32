"""Domain errors raised while generating export documents."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ExportError(Exception):
    """A document could not be produced for the named specification."""

    specification: str
    message: str

    def __str__(self) -> str:
        return f"Could not generate {self.specification}: {self.message}"


class EmptyInputError(ExportError):
    def __init__(self, specification: str) -> None:
        super().__init__(specification, "Not enough data")


class IncompleteMetadataError(ExportError):
    """A field the target format requires is missing from the work."""


class UnsupportedBatchError(ExportError):
    """The specification only describes a single work per document."""


class DocumentWriteError(ExportError):
    """The XML writer rejected an element, attribute or text node."""


class UnknownSpecificationError(ExportError):
    def __init__(self, specification: str) -> None:
        super().__init__(specification, "Unknown specification")


@dataclass(slots=True)
class WorkGraphError(Exception):
    """A JSON document does not describe a valid Work graph."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (path={self.path})"
