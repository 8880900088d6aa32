"""Crossref DOI deposit (schema 5.3.1) for a single book and its chapters."""

from __future__ import annotations

from datetime import date
import logging
from typing import Sequence

from bibexport.config import ExportSettings
from bibexport.errors import IncompleteMetadataError, UnsupportedBatchError
from bibexport.identifiers import doi_url, orcid_url, ror_url
from bibexport.models import (
    AbstractType,
    Contribution,
    ContributionType,
    Funding,
    Reference,
    Relation,
    RelationType,
    Series,
    Work,
    WorkStatus,
    WorkType,
)
from bibexport.specifications.base import Clock, XmlSpecification, utc_now
from bibexport.validation import (
    canonical_pdf_url,
    cap_isbn_publications,
    chapters_of,
    contributions_of,
    group_fundings,
    isbn_publications,
    paragraphs,
    related_works,
    require,
)
from bibexport.writer import DocumentWriter

logger = logging.getLogger(__name__)

SPECIFICATION = "doideposit::crossref"
SCHEMA_VERSION = "5.3.1"
CROSSREF_NAMESPACE = "http://www.crossref.org/schema/5.3.1"
SCHEMA_LOCATION = "http://www.crossref.org/schema/5.3.1 http://www.crossref.org/schemas/crossref5.3.1.xsd"
NAMESPACES: dict[str | None, str] = {
    None: CROSSREF_NAMESPACE,
    "xsi": "http://www.w3.org/2001/XMLSchema-instance",
    "ai": "http://www.crossref.org/AccessIndicators.xsd",
    "jats": "http://www.ncbi.nlm.nih.gov/JATS1",
    "fr": "http://www.crossref.org/fundref.xsd",
}
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

BOOK_TYPES = {
    WorkType.MONOGRAPH: "monograph",
    WorkType.EDITED_BOOK: "edited_book",
    WorkType.TEXTBOOK: "reference",
}
DEFAULT_BOOK_TYPE = "other"

DEPOSITED_ROLES = (ContributionType.AUTHOR, ContributionType.EDITOR, ContributionType.TRANSLATOR)
CRAWLERS = ("iParadigms", "google", "msn", "yahoo", "scirus")
CROSSMARK_VERSION = "2"


def book_type_for(work_type: WorkType) -> str:
    return BOOK_TYPES.get(work_type, DEFAULT_BOOK_TYPE)


class DoiDepositCrossref(XmlSpecification):
    """Deposit document registering a book DOI and the DOIs of its chapters."""

    name = SPECIFICATION

    def __init__(self, settings: ExportSettings | None = None, *, clock: Clock = utc_now) -> None:
        self._settings = settings or ExportSettings()
        self._clock = clock

    def handle_event(self, writer: DocumentWriter, works: Sequence[Work]) -> None:
        if len(works) > 1:
            raise UnsupportedBatchError(self.name, "Only one work can be deposited per document")

        work = works[0]
        timestamp = self._clock().strftime(TIMESTAMP_FORMAT)
        attributes = {"version": SCHEMA_VERSION, "xsi:schemaLocation": SCHEMA_LOCATION}
        with writer.root("doi_batch", attributes, NAMESPACES):
            self._write_head(writer, f"{work.work_id}_{timestamp}", timestamp)
            _write_body(writer, work)

    def _write_head(self, writer: DocumentWriter, batch_id: str, timestamp: str) -> None:
        with writer.element("head"):
            writer.write_element("doi_batch_id", batch_id)
            writer.write_element("timestamp", timestamp)
            with writer.element("depositor"):
                writer.write_element("depositor_name", self._settings.depositor_name)
                writer.write_element("email_address", self._settings.depositor_email)
            writer.write_element("registrant", self._settings.registrant)


def _write_body(writer: DocumentWriter, work: Work) -> None:
    chapters = chapters_of(work)
    if work.doi is None and not any(chapter.related_work.doi for chapter in chapters):
        raise IncompleteMetadataError(SPECIFICATION, "No work or chapter DOIs to deposit")

    issue = work.issues[0] if work.issues else None
    metadata_element = "book_series_metadata" if issue is not None else "book_metadata"

    with writer.element("body"):
        with writer.element("book", {"book_type": book_type_for(work.work_type)}):
            with writer.element(metadata_element, {"language": "en"}):
                if issue is not None:
                    _write_series(writer, issue.series)
                _write_contributors(writer, work.contributions)
                _write_titles(writer, work)
                _write_abstracts(writer, work)
                if issue is not None:
                    writer.write_element("volume", str(issue.issue_ordinal))
                if work.edition is not None:
                    writer.write_element("edition_number", str(work.edition))
                publication_date = require(work.publication_date, SPECIFICATION, "Missing Publication Date")
                _write_publication_date(writer, publication_date)
                _write_isbns(writer, work)
                _write_publisher(writer, work)
                _write_crossmark_funding_access(writer, work)
                if work.doi is not None and work.landing_page is not None:
                    _write_doi_data(writer, work, work.doi, work.landing_page)
                else:
                    logger.debug("Work %s has no DOI and landing page pair; omitting doi_data", work.work_id)
                _write_citations(writer, work.references)

            for chapter in chapters:
                _write_chapter(writer, chapter)


def _write_series(writer: DocumentWriter, series: Series) -> None:
    if series.issn_print is None and series.issn_digital is None:
        logger.debug("Series %r has no ISSN; omitting series_metadata", series.series_name)
        return
    with writer.element("series_metadata"):
        with writer.element("titles"):
            writer.write_element("title", series.series_name)
        if series.issn_print is not None:
            writer.write_element("issn", series.issn_print, {"media_type": "print"})
        if series.issn_digital is not None:
            writer.write_element("issn", series.issn_digital, {"media_type": "electronic"})


def _write_contributors(writer: DocumentWriter, contributions: Sequence[Contribution]) -> None:
    deposited = contributions_of(contributions, DEPOSITED_ROLES)
    if not deposited:
        return
    with writer.element("contributors"):
        for contribution in deposited:
            _write_person_name(writer, contribution)


def _write_person_name(writer: DocumentWriter, contribution: Contribution) -> None:
    attributes = {
        "sequence": "first" if contribution.contribution_ordinal == 1 else "additional",
        "contributor_role": contribution.contribution_type.value.lower(),
    }
    with writer.element("person_name", attributes):
        if contribution.first_name:
            writer.write_element("given_name", contribution.first_name)
        writer.write_element("surname", contribution.last_name)
        if contribution.affiliations:
            with writer.element("affiliations"):
                for affiliation in sorted(contribution.affiliations, key=lambda item: item.affiliation_ordinal):
                    institution = affiliation.institution
                    with writer.element("institution"):
                        writer.write_element("institution_name", institution.institution_name)
                        if institution.ror:
                            writer.write_element("institution_id", ror_url(institution.ror), {"type": "ror"})
        if contribution.contributor.orcid:
            writer.write_element("ORCID", orcid_url(contribution.contributor.orcid))


def _write_titles(writer: DocumentWriter, work: Work) -> None:
    with writer.element("titles"):
        writer.write_element("title", work.title)
        if work.subtitle:
            writer.write_element("subtitle", work.subtitle)


def _write_abstracts(writer: DocumentWriter, work: Work) -> None:
    # Crossref accepts any abstract-type value; "long" and "short" mirror the stored kinds.
    for abstract_type in (AbstractType.LONG, AbstractType.SHORT):
        for abstract in work.abstracts:
            if abstract.abstract_type is not abstract_type:
                continue
            attributes = {"abstract-type": abstract_type.value.lower()}
            if abstract.locale_code:
                attributes["xml:lang"] = abstract.locale_code
            with writer.element("jats:abstract", attributes):
                for paragraph in paragraphs(abstract.content):
                    with writer.element("jats:p"):
                        writer.write_markup(paragraph, "jats")


def _write_publication_date(writer: DocumentWriter, value: date) -> None:
    with writer.element("publication_date"):
        writer.write_element("month", value.strftime("%m"))
        writer.write_element("day", value.strftime("%d"))
        writer.write_element("year", f"{value.year:04d}")


def _write_isbns(writer: DocumentWriter, work: Work) -> None:
    publications = isbn_publications(work.publications)
    if not publications:
        # book metadata needs an isbn or a noisbn reason; a missing ISBN is treated as an error
        raise IncompleteMetadataError(SPECIFICATION, "This work does not have any ISBNs")
    for publication in cap_isbn_publications(publications):
        media_type = "print" if publication.publication_type.is_print else "electronic"
        writer.write_element("isbn", publication.isbn or "", {"media_type": media_type})


def _write_publisher(writer: DocumentWriter, work: Work) -> None:
    with writer.element("publisher"):
        writer.write_element("publisher_name", work.imprint.publisher.publisher_name)
        if work.place:
            writer.write_element("publisher_place", work.place)


def _crossmark_updates(work: Work) -> list[tuple[str, date, str]]:
    if work.work_status is WorkStatus.ACTIVE and work.publication_date is not None:
        return [
            ("new_edition", work.publication_date, relation.related_work.doi)
            for relation in related_works(work, RelationType.REPLACES)
            if relation.related_work.doi
        ]
    if work.work_status is WorkStatus.WITHDRAWN and work.withdrawn_date is not None and work.doi:
        return [("withdrawal", work.withdrawn_date, work.doi)]
    return []


def _write_crossmark_funding_access(writer: DocumentWriter, work: Work) -> None:
    policy = work.imprint.crossmark_doi
    if policy is None:
        _write_funding(writer, work.fundings)
        _write_access(writer, work.license)
        return

    with writer.element("crossmark"):
        writer.write_element("crossmark_version", CROSSMARK_VERSION)
        writer.write_element("crossmark_policy", policy)
        updates = _crossmark_updates(work)
        if updates:
            with writer.element("updates"):
                for update_type, update_date, doi in updates:
                    writer.write_element("update", doi, {"type": update_type, "date": update_date.isoformat()})
        # with crossmark present, funding and access data belong inside custom_metadata
        if work.license or work.fundings:
            with writer.element("custom_metadata"):
                _write_funding(writer, work.fundings)
                _write_access(writer, work.license)


def _write_funding(writer: DocumentWriter, fundings: Sequence[Funding]) -> None:
    if not fundings:
        return
    with writer.element("fr:program", {"name": "fundref"}):
        for institution, grants in group_fundings(fundings):
            with writer.element("fr:assertion", {"name": "fundgroup"}):
                with writer.element("fr:assertion", {"name": "funder_name"}):
                    writer.write_text(institution.institution_name)
                    if institution.institution_doi:
                        writer.write_element(
                            "fr:assertion",
                            doi_url(institution.institution_doi),
                            {"name": "funder_identifier"},
                        )
                for funding in grants:
                    if funding.grant_number:
                        writer.write_element("fr:assertion", funding.grant_number, {"name": "award_number"})


def _write_access(writer: DocumentWriter, license_url: str | None) -> None:
    # works without a licence are assumed to be closed access
    if not license_url:
        return
    with writer.element("ai:program", {"name": "AccessIndicators"}):
        writer.write_element("ai:free_to_read")
        writer.write_element("ai:license_ref", license_url)


def _write_doi_data(writer: DocumentWriter, work: Work, doi: str, landing_page: str) -> None:
    with writer.element("doi_data"):
        writer.write_element("doi", doi)
        writer.write_element("resource", landing_page)

        pdf_url = canonical_pdf_url(work)
        if pdf_url is None:
            return
        # Similarity Check and text-and-data-mining both need a direct full-text PDF link
        with writer.element("collection", {"property": "crawler-based"}):
            for crawler in CRAWLERS:
                with writer.element("item", {"crawler": crawler}):
                    writer.write_element("resource", pdf_url, {"mime_type": "application/pdf"})
        with writer.element("collection", {"property": "text-mining"}):
            with writer.element("item"):
                writer.write_element("resource", pdf_url, {"mime_type": "application/pdf"})


def _write_citations(writer: DocumentWriter, references: Sequence[Reference]) -> None:
    if not references:
        return
    with writer.element("citation_list"):
        for reference in sorted(references, key=lambda item: item.reference_ordinal):
            _write_citation(writer, reference)


def _write_citation(writer: DocumentWriter, reference: Reference) -> None:
    with writer.element("citation", {"key": f"ref{reference.reference_ordinal}"}):
        fields = (
            ("doi", reference.doi),
            ("unstructured_citation", reference.unstructured_citation),
            ("issn", reference.issn),
            ("isbn", reference.isbn),
            ("journal_title", reference.journal_title),
            ("article_title", reference.article_title),
            ("series_title", reference.series_title),
            ("volume_title", reference.volume_title),
            ("edition_number", str(reference.edition) if reference.edition is not None else None),
            ("author", reference.author),
            ("volume", reference.volume),
            ("issue", reference.issue),
            ("first_page", reference.first_page),
            ("component_number", reference.component_number),
        )
        for element, value in fields:
            if value:
                writer.write_element(element, value)

        # a standard citation needs all three of designator, body name and acronym
        if reference.standard_designator and reference.standards_body_name and reference.standards_body_acronym:
            writer.write_element("std_designator", reference.standard_designator)
            with writer.element("standards_body"):
                writer.write_element("standards_body_name", reference.standards_body_name)
                writer.write_element("standards_body_acronym", reference.standards_body_acronym)

        if reference.publication_date is not None:
            writer.write_element("cYear", f"{reference.publication_date.year:04d}")


def _write_chapter(writer: DocumentWriter, relation: Relation) -> None:
    chapter = relation.related_work
    if chapter.edition is not None:
        raise IncompleteMetadataError(SPECIFICATION, "Chapters cannot have Edition numbers")
    doi = require(chapter.doi, SPECIFICATION, "Missing chapter DOI")
    landing_page = require(chapter.landing_page, SPECIFICATION, "Missing chapter Landing Page")

    with writer.element("content_item", {"component_type": "chapter"}):
        _write_contributors(writer, chapter.contributions)
        _write_titles(writer, chapter)
        _write_abstracts(writer, chapter)
        writer.write_element("component_number", str(relation.relation_ordinal))
        if chapter.publication_date is not None:
            _write_publication_date(writer, chapter.publication_date)
        if chapter.first_page:
            with writer.element("pages"):
                writer.write_element("first_page", chapter.first_page)
                if chapter.last_page:
                    writer.write_element("last_page", chapter.last_page)
        _write_funding(writer, chapter.fundings)
        _write_access(writer, chapter.license)
        _write_doi_data(writer, chapter, doi, landing_page)
        _write_citations(writer, chapter.references)
