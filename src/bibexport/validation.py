"""Predicates and transforms shared by the export specifications."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence, TypeVar

from bibexport.errors import EmptyInputError, IncompleteMetadataError
from bibexport.models import (
    Contribution,
    ContributionType,
    Funding,
    Institution,
    Publication,
    PublicationType,
    Relation,
    RelationType,
    Work,
)

logger = logging.getLogger(__name__)

MAX_DEPOSIT_ISBNS = 6

T = TypeVar("T")


def require_works(specification: str, works: Sequence[Work]) -> None:
    """Reject an empty batch; an empty document means nothing to the receiver."""

    if not works:
        raise EmptyInputError(specification)


def require(value: T | None, specification: str, message: str) -> T:
    """Return ``value`` or fail with an incomplete-metadata error."""

    if value is None:
        raise IncompleteMetadataError(specification, message)
    return value


def isbn_publications(publications: Iterable[Publication]) -> list[Publication]:
    return [publication for publication in publications if publication.isbn]


def cap_isbn_publications(
    publications: Sequence[Publication],
    limit: int = MAX_DEPOSIT_ISBNS,
) -> list[Publication]:
    """Keep at most ``limit`` ISBN-bearing publications.

    Over the cap, the first HTML publication goes first. Anything still over
    the cap is cut from the end, so callers must supply publications ordered
    by descending importance.
    """

    kept = list(publications)
    if len(kept) <= limit:
        return kept

    dropped: list[Publication] = []
    html_index = next(
        (index for index, item in enumerate(kept) if item.publication_type is PublicationType.HTML),
        None,
    )
    if html_index is not None:
        dropped.append(kept.pop(html_index))
    while len(kept) > limit:
        dropped.append(kept.pop())

    logger.warning(
        "ISBN cap of %s exceeded; dropped %s",
        limit,
        ", ".join(item.isbn or "" for item in dropped),
    )
    return kept


def contributions_of(
    contributions: Iterable[Contribution],
    kinds: Iterable[ContributionType] | None = None,
) -> list[Contribution]:
    """Contributions of the requested kinds in ordinal order."""

    allowed = set(kinds) if kinds is not None else None
    selected = [
        contribution
        for contribution in contributions
        if allowed is None or contribution.contribution_type in allowed
    ]
    return sorted(selected, key=lambda contribution: contribution.contribution_ordinal)


def related_works(work: Work, relation_type: RelationType) -> list[Relation]:
    """Relations of one type sorted by ordinal; the sort is stable on ties."""

    selected = [relation for relation in work.relations if relation.relation_type is relation_type]
    return sorted(selected, key=lambda relation: relation.relation_ordinal)


def chapters_of(work: Work) -> list[Relation]:
    return related_works(work, RelationType.HAS_CHILD)


def group_fundings(fundings: Iterable[Funding]) -> list[tuple[Institution, list[Funding]]]:
    """Group fundings by funder, keeping the order funders are first seen in."""

    groups: dict[Institution, list[Funding]] = {}
    for funding in fundings:
        groups.setdefault(funding.institution, []).append(funding)
    return list(groups.items())


def paragraphs(content: str) -> list[str]:
    """Non-empty lines of a free-text field."""

    return [line.strip() for line in content.splitlines() if line.strip()]


def canonical_pdf_url(work: Work) -> str | None:
    """Full-text URL of the canonical location of the first PDF with locations."""

    publication = next(
        (
            item
            for item in work.publications
            if item.publication_type is PublicationType.PDF and item.locations
        ),
        None,
    )
    if publication is None:
        return None
    location = next((item for item in publication.locations if item.canonical), None)
    return location.full_text_url if location is not None else None
