"""Export specification implementations and contracts."""

from __future__ import annotations

from bibexport.config import ExportSettings

from .base import Clock, ExportSpecification, XmlSpecification, utc_now
from .crossref import DoiDepositCrossref
from .marc21 import Marc21XmlThoth, build_marc_record


def build_default_specifications(
    settings: ExportSettings | None = None,
    *,
    clock: Clock = utc_now,
) -> dict[str, ExportSpecification]:
    """Return the default specification map keyed by specification name."""
    specifications: list[ExportSpecification] = [
        DoiDepositCrossref(settings, clock=clock),
        Marc21XmlThoth(settings, clock=clock),
    ]
    return {specification.name: specification for specification in specifications}


__all__ = [
    "Clock",
    "ExportSpecification",
    "XmlSpecification",
    "DoiDepositCrossref",
    "Marc21XmlThoth",
    "build_marc_record",
    "build_default_specifications",
    "utc_now",
]
