from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timezone

import pytest
from lxml import etree

from bibexport.config import ExportSettings
from bibexport.errors import EmptyInputError, IncompleteMetadataError, UnsupportedBatchError
from bibexport.models import (
    Abstract,
    AbstractType,
    Affiliation,
    Contribution,
    ContributionType,
    Contributor,
    Funding,
    Imprint,
    Institution,
    Issue,
    Location,
    Publication,
    PublicationType,
    Publisher,
    Reference,
    Relation,
    RelationType,
    Series,
    Work,
    WorkStatus,
    WorkType,
)
from bibexport.specifications.crossref import CRAWLERS, DoiDepositCrossref, book_type_for

NS = {
    "cr": "http://www.crossref.org/schema/5.3.1",
    "jats": "http://www.ncbi.nlm.nih.gov/JATS1",
    "fr": "http://www.crossref.org/fundref.xsd",
    "ai": "http://www.crossref.org/AccessIndicators.xsd",
}
XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"
FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _clock() -> datetime:
    return FIXED_NOW


def _contribution(kind: ContributionType, ordinal: int, first: str, last: str, **extra: object) -> Contribution:
    return Contribution(
        contribution_type=kind,
        contribution_ordinal=ordinal,
        last_name=last,
        full_name=f"{first} {last}",
        first_name=first,
        **extra,
    )


def _book(**overrides: object) -> Work:
    work = Work(
        work_id="book-1",
        work_type=WorkType.MONOGRAPH,
        title="Test Book",
        imprint=Imprint(imprint_name="OBP", publisher=Publisher(publisher_name="Open Book Publishers")),
        doi="10.11647/OBP.0001",
        landing_page="https://www.openbookpublishers.com/books/10.11647/obp.0001",
        publication_date=date(1999, 12, 31),
        publications=(
            Publication(PublicationType.PAPERBACK, isbn="978-1-80064-000-1"),
            Publication(PublicationType.PDF, isbn="978-1-80064-001-8"),
        ),
        contributions=(_contribution(ContributionType.AUTHOR, 1, "Jane", "Doe"),),
    )
    return replace(work, **overrides)


def _chapter(ordinal: int, **overrides: object) -> Relation:
    chapter = Work(
        work_id=f"chapter-{ordinal}",
        work_type=WorkType.BOOK_CHAPTER,
        title=f"Chapter {ordinal}",
        imprint=Imprint(imprint_name="OBP", publisher=Publisher(publisher_name="Open Book Publishers")),
        doi=f"10.11647/OBP.0001.{ordinal:02d}",
        landing_page=f"https://www.openbookpublishers.com/chapters/{ordinal}",
        first_page=str(ordinal * 10),
        last_page=str(ordinal * 10 + 9),
    )
    return Relation(RelationType.HAS_CHILD, ordinal, replace(chapter, **overrides))


def _generate(*works: Work) -> etree._Element:
    return etree.fromstring(DoiDepositCrossref(clock=_clock).generate(list(works)))


def _metadata(root: etree._Element) -> etree._Element:
    return root.find("cr:body/cr:book/cr:book_metadata", NS)


def _children(node: etree._Element) -> list[str]:
    return [etree.QName(child).localname for child in node]


def test_monograph_deposit_has_head_and_publication_date() -> None:
    root = _generate(_book())

    assert root.tag == f"{{{NS['cr']}}}doi_batch"
    assert root.get("version") == "5.3.1"
    assert root.findtext("cr:head/cr:doi_batch_id", namespaces=NS) == "book-1_20240102030405"
    assert root.findtext("cr:head/cr:timestamp", namespaces=NS) == "20240102030405"
    assert root.findtext("cr:head/cr:depositor/cr:depositor_name", namespaces=NS) == "Thoth"
    assert root.findtext("cr:head/cr:registrant", namespaces=NS) == "Thoth"

    book = root.find("cr:body/cr:book", NS)
    assert book.get("book_type") == "monograph"

    metadata = _metadata(root)
    assert metadata.get("language") == "en"
    assert metadata.findtext("cr:publication_date/cr:month", namespaces=NS) == "12"
    assert metadata.findtext("cr:publication_date/cr:day", namespaces=NS) == "31"
    assert metadata.findtext("cr:publication_date/cr:year", namespaces=NS) == "1999"
    assert [(item.text, item.get("media_type")) for item in metadata.findall("cr:isbn", NS)] == [
        ("978-1-80064-000-1", "print"),
        ("978-1-80064-001-8", "electronic"),
    ]
    assert metadata.findtext("cr:doi_data/cr:doi", namespaces=NS) == "10.11647/OBP.0001"
    assert metadata.findtext("cr:doi_data/cr:resource", namespaces=NS).endswith("obp.0001")


def test_book_metadata_children_follow_schema_order() -> None:
    metadata = _metadata(_generate(_book()))

    assert _children(metadata) == [
        "contributors",
        "titles",
        "publication_date",
        "isbn",
        "isbn",
        "publisher",
        "doi_data",
    ]


def test_settings_fill_depositor_block() -> None:
    settings = ExportSettings(depositor_name="Press", depositor_email="deposit@press.example", registrant="Reg")
    root = etree.fromstring(DoiDepositCrossref(settings, clock=_clock).generate([_book()]))

    assert root.findtext("cr:head/cr:depositor/cr:depositor_name", namespaces=NS) == "Press"
    assert root.findtext("cr:head/cr:depositor/cr:email_address", namespaces=NS) == "deposit@press.example"
    assert root.findtext("cr:head/cr:registrant", namespaces=NS) == "Reg"


@pytest.mark.parametrize(
    ("work_type", "expected"),
    [
        (WorkType.MONOGRAPH, "monograph"),
        (WorkType.EDITED_BOOK, "edited_book"),
        (WorkType.TEXTBOOK, "reference"),
        (WorkType.BOOK_SET, "other"),
        (WorkType.JOURNAL_ISSUE, "other"),
        (WorkType.BOOK_CHAPTER, "other"),
    ],
)
def test_book_type_mapping(work_type: WorkType, expected: str) -> None:
    assert book_type_for(work_type) == expected
    assert _generate(_book(work_type=work_type)).find("cr:body/cr:book", NS).get("book_type") == expected


def test_missing_publication_date_fails() -> None:
    with pytest.raises(IncompleteMetadataError, match="Missing Publication Date"):
        DoiDepositCrossref(clock=_clock).generate([_book(publication_date=None)])


def test_empty_input_is_rejected() -> None:
    with pytest.raises(EmptyInputError, match="Not enough data"):
        DoiDepositCrossref(clock=_clock).generate([])


def test_multiple_works_are_rejected() -> None:
    with pytest.raises(UnsupportedBatchError, match="Only one work"):
        DoiDepositCrossref(clock=_clock).generate([_book(), _book(work_id="book-2")])


def test_work_without_any_doi_is_rejected() -> None:
    with pytest.raises(IncompleteMetadataError, match="No work or chapter DOIs"):
        DoiDepositCrossref(clock=_clock).generate([_book(doi=None)])


def test_work_without_isbn_is_rejected() -> None:
    with pytest.raises(IncompleteMetadataError, match="does not have any ISBNs"):
        DoiDepositCrossref(clock=_clock).generate([_book(publications=(Publication(PublicationType.PDF),))])


def test_book_without_doi_still_deposits_chapters() -> None:
    root = _generate(_book(doi=None, relations=(_chapter(1),)))

    assert _metadata(root).find("cr:doi_data", NS) is None
    assert root.findtext("cr:body/cr:book/cr:content_item/cr:doi_data/cr:doi", namespaces=NS) == "10.11647/OBP.0001.01"


def test_isbn_cap_drops_html_first_then_trailing_entries() -> None:
    kinds = [
        PublicationType.PAPERBACK,
        PublicationType.HARDBACK,
        PublicationType.PDF,
        PublicationType.HTML,
        PublicationType.EPUB,
        PublicationType.MOBI,
        PublicationType.AZW3,
        PublicationType.XML,
    ]
    publications = tuple(Publication(kind, isbn=f"isbn-{kind.value.lower()}") for kind in kinds)

    metadata = _metadata(_generate(_book(publications=publications)))

    assert [item.text for item in metadata.findall("cr:isbn", NS)] == [
        "isbn-paperback",
        "isbn-hardback",
        "isbn-pdf",
        "isbn-epub",
        "isbn-mobi",
        "isbn-azw3",
    ]


def test_chapter_edition_is_checked_before_doi() -> None:
    with pytest.raises(IncompleteMetadataError, match="Chapters cannot have Edition numbers"):
        DoiDepositCrossref(clock=_clock).generate([_book(relations=(_chapter(1, edition=2, doi=None),))])


def test_chapter_without_doi_fails() -> None:
    with pytest.raises(IncompleteMetadataError, match="Missing chapter DOI"):
        DoiDepositCrossref(clock=_clock).generate([_book(relations=(_chapter(1, doi=None),))])


def test_chapter_without_landing_page_fails() -> None:
    with pytest.raises(IncompleteMetadataError, match="Missing chapter Landing Page"):
        DoiDepositCrossref(clock=_clock).generate([_book(relations=(_chapter(1, landing_page=None),))])


def test_chapters_follow_book_metadata_in_ordinal_order() -> None:
    root = _generate(_book(relations=(_chapter(2), _chapter(1))))
    book = root.find("cr:body/cr:book", NS)

    assert _children(book) == ["book_metadata", "content_item", "content_item"]
    items = book.findall("cr:content_item", NS)
    assert [item.get("component_type") for item in items] == ["chapter", "chapter"]
    assert [item.findtext("cr:component_number", namespaces=NS) for item in items] == ["1", "2"]
    assert items[0].findtext("cr:titles/cr:title", namespaces=NS) == "Chapter 1"
    assert items[0].findtext("cr:pages/cr:first_page", namespaces=NS) == "10"
    assert items[0].findtext("cr:pages/cr:last_page", namespaces=NS) == "19"


def test_generation_is_deterministic_with_fixed_clock() -> None:
    specification = DoiDepositCrossref(clock=_clock)
    work = _book(relations=(_chapter(1),))

    assert specification.generate([work]) == specification.generate([work])


def test_optional_elements_are_omitted_when_absent() -> None:
    bare = _metadata(_generate(_book()))

    assert bare.find("cr:titles/cr:subtitle", NS) is None
    assert bare.find("cr:edition_number", NS) is None
    assert bare.find("cr:publisher/cr:publisher_place", NS) is None
    assert bare.find("cr:citation_list", NS) is None
    assert bare.find("cr:crossmark", NS) is None
    assert bare.find("jats:abstract", NS) is None

    full = _metadata(_generate(_book(subtitle="A Subtitle", edition=2, place="Cambridge, UK")))

    assert full.findtext("cr:titles/cr:subtitle", namespaces=NS) == "A Subtitle"
    assert full.findtext("cr:edition_number", namespaces=NS) == "2"
    assert full.findtext("cr:publisher/cr:publisher_place", namespaces=NS) == "Cambridge, UK"


def test_series_issue_switches_to_book_series_metadata() -> None:
    series = Series("Open Reports Series", issn_print="2054-2399", issn_digital="2054-2402")
    root = _generate(_book(issues=(Issue(7, series),)))
    metadata = root.find("cr:body/cr:book/cr:book_series_metadata", NS)

    assert metadata is not None
    assert _children(metadata)[0] == "series_metadata"
    assert metadata.findtext("cr:series_metadata/cr:titles/cr:title", namespaces=NS) == "Open Reports Series"
    assert [(item.text, item.get("media_type")) for item in metadata.findall("cr:series_metadata/cr:issn", NS)] == [
        ("2054-2399", "print"),
        ("2054-2402", "electronic"),
    ]
    assert metadata.findtext("cr:volume", namespaces=NS) == "7"


def test_series_without_issn_omits_series_metadata() -> None:
    root = _generate(_book(issues=(Issue(3, Series("Unnumbered Series")),)))
    metadata = root.find("cr:body/cr:book/cr:book_series_metadata", NS)

    assert metadata.find("cr:series_metadata", NS) is None
    assert metadata.findtext("cr:volume", namespaces=NS) == "3"


def test_contributors_include_only_deposited_roles() -> None:
    institution = Institution("University of Cambridge", ror="https://ror.org/013meh722")
    contributions = (
        _contribution(ContributionType.PHOTOGRAPHER, 3, "Pat", "Lens"),
        _contribution(ContributionType.EDITOR, 2, "John", "Smith"),
        _contribution(
            ContributionType.AUTHOR,
            1,
            "Jane",
            "Doe",
            contributor=Contributor(orcid="0000-0002-1825-0097"),
            affiliations=(Affiliation(institution),),
        ),
    )
    metadata = _metadata(_generate(_book(contributions=contributions)))
    people = metadata.findall("cr:contributors/cr:person_name", NS)

    assert [(item.get("sequence"), item.get("contributor_role")) for item in people] == [
        ("first", "author"),
        ("additional", "editor"),
    ]
    assert people[0].findtext("cr:given_name", namespaces=NS) == "Jane"
    assert people[0].findtext("cr:surname", namespaces=NS) == "Doe"
    assert people[0].findtext("cr:ORCID", namespaces=NS) == "https://orcid.org/0000-0002-1825-0097"
    institution_id = people[0].find("cr:affiliations/cr:institution/cr:institution_id", NS)
    assert institution_id.text == "https://ror.org/013meh722"
    assert institution_id.get("type") == "ror"
    assert people[1].find("cr:ORCID", NS) is None


def test_abstracts_written_long_then_short_with_inline_markup() -> None:
    abstracts = (
        Abstract("A short summary.", AbstractType.SHORT),
        Abstract("First <italic>para</italic>.\n\nSecond a < b", AbstractType.LONG, locale_code="en"),
    )
    metadata = _metadata(_generate(_book(abstracts=abstracts)))
    written = metadata.findall("jats:abstract", NS)

    assert [item.get("abstract-type") for item in written] == ["long", "short"]
    assert written[0].get(XML_LANG) == "en"
    assert written[1].get(XML_LANG) is None

    first, second = written[0].findall("jats:p", NS)
    assert first.findtext("jats:italic", namespaces=NS) == "para"
    assert "".join(first.itertext()) == "First para."
    assert second.text == "Second a < b"


def test_abstract_paragraph_markup_is_not_nested() -> None:
    abstracts = (Abstract("<p>One &amp; two</p>", AbstractType.LONG),)
    abstract = _metadata(_generate(_book(abstracts=abstracts))).find("jats:abstract", NS)

    paragraph = abstract.find("jats:p", NS)
    assert paragraph.find("jats:p", NS) is None
    assert paragraph.text == "One & two"


def test_fundings_grouped_by_funder_without_crossmark() -> None:
    wellcome = Institution("Wellcome Trust", institution_doi="10.13039/100004440")
    ukri = Institution("UKRI")
    fundings = (Funding(wellcome, "G-1"), Funding(ukri, "G-2"), Funding(wellcome, "G-3"))
    metadata = _metadata(_generate(_book(fundings=fundings)))

    groups = metadata.findall("fr:program/fr:assertion[@name='fundgroup']", NS)
    assert metadata.find("fr:program", NS).get("name") == "fundref"
    assert len(groups) == 2

    funder = groups[0].find("fr:assertion[@name='funder_name']", NS)
    assert funder.text.strip() == "Wellcome Trust"
    assert funder.findtext("fr:assertion[@name='funder_identifier']", namespaces=NS) == (
        "https://doi.org/10.13039/100004440"
    )
    assert [item.text for item in groups[0].findall("fr:assertion[@name='award_number']", NS)] == ["G-1", "G-3"]
    assert groups[1].find("fr:assertion[@name='funder_name']", NS).text.strip() == "UKRI"
    assert [item.text for item in groups[1].findall("fr:assertion[@name='award_number']", NS)] == ["G-2"]


def test_access_indicators_written_for_licensed_work() -> None:
    license_url = "https://creativecommons.org/licenses/by/4.0/"
    metadata = _metadata(_generate(_book(license=license_url)))

    program = metadata.find("ai:program", NS)
    assert program.get("name") == "AccessIndicators"
    assert program.find("ai:free_to_read", NS) is not None
    assert program.findtext("ai:license_ref", namespaces=NS) == license_url


def test_crossmark_wraps_funding_and_access() -> None:
    imprint = Imprint(
        imprint_name="OBP",
        publisher=Publisher(publisher_name="Open Book Publishers"),
        crossmark_doi="10.11647/crossmark-policy",
    )
    work = _book(
        imprint=imprint,
        license="https://creativecommons.org/licenses/by/4.0/",
        fundings=(Funding(Institution("UKRI"), "G-2"),),
    )
    metadata = _metadata(_generate(work))
    crossmark = metadata.find("cr:crossmark", NS)

    assert _children(metadata)[-2:] == ["crossmark", "doi_data"]
    assert crossmark.findtext("cr:crossmark_version", namespaces=NS) == "2"
    assert crossmark.findtext("cr:crossmark_policy", namespaces=NS) == "10.11647/crossmark-policy"
    assert crossmark.find("cr:updates", NS) is None
    assert crossmark.find("cr:custom_metadata/fr:program", NS) is not None
    assert crossmark.find("cr:custom_metadata/ai:program", NS) is not None
    assert metadata.find("fr:program", NS) is None
    assert metadata.find("ai:program", NS) is None


def test_crossmark_records_new_edition_update() -> None:
    imprint = Imprint("OBP", Publisher("Open Book Publishers"), crossmark_doi="10.11647/crossmark-policy")
    previous = _book(work_id="book-0", doi="10.11647/OBP.0000")
    work = _book(imprint=imprint, relations=(Relation(RelationType.REPLACES, 1, previous),))

    crossmark = _metadata(_generate(work)).find("cr:crossmark", NS)
    updates = crossmark.findall("cr:updates", NS)

    assert len(updates) == 1
    update = updates[0].find("cr:update", NS)
    assert update.get("type") == "new_edition"
    assert update.get("date") == "1999-12-31"
    assert update.text == "10.11647/OBP.0000"
    assert crossmark.find("cr:custom_metadata", NS) is None


def test_crossmark_records_withdrawal() -> None:
    imprint = Imprint("OBP", Publisher("Open Book Publishers"), crossmark_doi="10.11647/crossmark-policy")
    work = _book(imprint=imprint, work_status=WorkStatus.WITHDRAWN, withdrawn_date=date(2020, 5, 1))

    update = _metadata(_generate(work)).find("cr:crossmark/cr:updates/cr:update", NS)

    assert update.get("type") == "withdrawal"
    assert update.get("date") == "2020-05-01"
    assert update.text == "10.11647/OBP.0001"


def test_canonical_pdf_adds_crawler_and_text_mining_collections() -> None:
    pdf = Publication(
        PublicationType.PDF,
        isbn="978-1-80064-001-8",
        locations=(
            Location(full_text_url="https://mirror.example/book.pdf"),
            Location(full_text_url="https://example.org/book.pdf", canonical=True),
        ),
    )
    doi_data = _metadata(_generate(_book(publications=(pdf,)))).find("cr:doi_data", NS)
    crawler = doi_data.find("cr:collection[@property='crawler-based']", NS)
    mining = doi_data.find("cr:collection[@property='text-mining']", NS)

    assert [item.get("crawler") for item in crawler.findall("cr:item", NS)] == list(CRAWLERS)
    resources = crawler.findall("cr:item/cr:resource", NS) + mining.findall("cr:item/cr:resource", NS)
    assert len(resources) == len(CRAWLERS) + 1
    assert {item.text for item in resources} == {"https://example.org/book.pdf"}
    assert {item.get("mime_type") for item in resources} == {"application/pdf"}


def test_citations_written_in_ordinal_order() -> None:
    references = (
        Reference(2, unstructured_citation="Second reference."),
        Reference(
            1,
            doi="10.1000/xyz",
            article_title="An Article",
            publication_date=date(2001, 6, 1),
            standard_designator="ISO 8601",
            standards_body_name="International Organization for Standardization",
        ),
        Reference(
            3,
            standard_designator="ISO 8601",
            standards_body_name="International Organization for Standardization",
            standards_body_acronym="ISO",
        ),
    )
    citations = _metadata(_generate(_book(references=references))).findall("cr:citation_list/cr:citation", NS)

    assert [item.get("key") for item in citations] == ["ref1", "ref2", "ref3"]
    assert _children(citations[0]) == ["doi", "article_title", "cYear"]
    assert citations[0].findtext("cr:cYear", namespaces=NS) == "2001"
    assert citations[1].findtext("cr:unstructured_citation", namespaces=NS) == "Second reference."
    assert citations[2].findtext("cr:std_designator", namespaces=NS) == "ISO 8601"
    assert citations[2].findtext("cr:standards_body/cr:standards_body_acronym", namespaces=NS) == "ISO"


def test_single_pdf_monograph_scenario() -> None:
    work = _book(publications=(Publication(PublicationType.PDF, isbn="978-1-80064-001-8"),))
    root = _generate(work)
    metadata = _metadata(root)

    assert root.find("cr:body/cr:book/cr:book_series_metadata", NS) is None
    assert [(item.text, item.get("media_type")) for item in metadata.findall("cr:isbn", NS)] == [
        ("978-1-80064-001-8", "electronic")
    ]
    assert metadata.findtext("cr:doi_data/cr:resource", namespaces=NS) == work.landing_page


def test_chapter_carries_exactly_one_matching_doi_data() -> None:
    relation = _chapter(1)
    item = _generate(_book(relations=(relation,))).find("cr:body/cr:book/cr:content_item", NS)
    doi_data = item.findall("cr:doi_data", NS)

    assert len(doi_data) == 1
    assert doi_data[0].findtext("cr:doi", namespaces=NS) == relation.related_work.doi
    assert doi_data[0].findtext("cr:resource", namespaces=NS) == relation.related_work.landing_page


def test_grant_number_does_not_change_document_structure() -> None:
    funder = Institution("UKRI")

    def structure(funding: Funding) -> list[str]:
        metadata = _metadata(_generate(_book(fundings=(funding,))))
        return [etree.QName(node).localname for node in metadata.iter() if etree.QName(node).localname != "assertion"]

    assert structure(Funding(funder)) == structure(Funding(funder, grant_number="G-9"))
