"""MARC21 bibliographic records serialised as MARCXML (MARC21 slim)."""

from __future__ import annotations

from datetime import date
import logging
from typing import Sequence

from lxml import etree
from pymarc import Field, Indicators, Leader, Record, Subfield
from pymarc.constants import DIRECTORY_ENTRY_LEN, END_OF_FIELD, LEADER_LEN

from bibexport.config import ExportSettings
from bibexport.identifiers import doi_url, isbn_without_hyphens, orcid_url
from bibexport.licensing import license_statement
from bibexport.models import (
    AbstractType,
    Contribution,
    ContributionType,
    LanguageRelation,
    Series,
    SubjectType,
    Work,
)
from bibexport.specifications.base import Clock, XmlSpecification, utc_now
from bibexport.validation import contributions_of, paragraphs
from bibexport.writer import DocumentWriter

logger = logging.getLogger(__name__)

SPECIFICATION = "marc21xml::thoth"
MARC_NAMESPACE = "http://www.loc.gov/MARC21/slim"
SCHEMA_LOCATION = "http://www.loc.gov/MARC21/slim http://www.loc.gov/standards/marcxml/schema/MARC21slim.xsd"
NAMESPACES: dict[str | None, str] = {
    "marc": MARC_NAMESPACE,
    "xsi": "http://www.w3.org/2001/XMLSchema-instance",
}

# language material, monograph, UTF-8, ISBD punctuation
LEADER_TEMPLATE = "00000nam a2200000 i 4500"
# leader positions 00-04 hold five digits
MAX_RECORD_LENGTH = 99999
FIELD_006 = "m     o  d        "
FIELD_007 = "cr  n         "
UNKNOWN_LANGUAGE = "und"
CC0_METADATA_URL = "https://creativecommons.org/publicdomain/zero/1.0/"

BLANK = " "

SUBJECT_SOURCES = (
    (SubjectType.BIC, "bicssc"),
    (SubjectType.BISAC, "bisacsh"),
    (SubjectType.THEMA, "thema"),
)

RESPONSIBILITY_PHRASES = {
    ContributionType.EDITOR: "edited by",
    ContributionType.TRANSLATOR: "translated by",
    ContributionType.PHOTOGRAPHER: "photographs by",
    ContributionType.ILLUSTRATOR: "illustrated by",
    ContributionType.MUSIC_EDITOR: "music edited by",
    ContributionType.FOREWORD_BY: "foreword by",
    ContributionType.INTRODUCTION_BY: "introduction by",
    ContributionType.AFTERWORD_BY: "afterword by",
    ContributionType.PREFACE_BY: "preface by",
    ContributionType.SOFTWARE_BY: "software by",
    ContributionType.RESEARCH_BY: "research by",
    ContributionType.CONTRIBUTIONS_BY: "with contributions by",
    ContributionType.INDEXER: "indexed by",
}

RESOURCE_COUNTS = (
    ("image_count", "illustration", "illustrations"),
    ("table_count", "table", "tables"),
    ("audio_count", "audio track", "audio tracks"),
    ("video_count", "video", "videos"),
)


class Marc21XmlThoth(XmlSpecification):
    """One ``marc:record`` per work, wrapped in ``marc:collection`` for batches."""

    name = SPECIFICATION

    def __init__(self, settings: ExportSettings | None = None, *, clock: Clock = utc_now) -> None:
        self._settings = settings or ExportSettings()
        self._clock = clock

    def handle_event(self, writer: DocumentWriter, works: Sequence[Work]) -> None:
        entered = self._clock().date()
        records = [build_marc_record(work, self._settings, entered) for work in works]
        attributes = {"xsi:schemaLocation": SCHEMA_LOCATION}

        if len(records) == 1:
            with writer.root("marc:record", attributes, NAMESPACES):
                write_record_fields(writer, records[0])
            return

        with writer.root("marc:collection", attributes, NAMESPACES):
            for record in records:
                with writer.element("marc:record"):
                    write_record_fields(writer, record)


def write_record_fields(writer: DocumentWriter, record: Record) -> None:
    """Write leader, control fields and data fields of an open ``marc:record``."""

    writer.write_element("marc:leader", str(record.leader))
    for field in record.fields:
        if field.is_control_field():
            writer.write_element("marc:controlfield", field.data, {"tag": field.tag})
            continue
        attributes = {"tag": field.tag, "ind1": field.indicator1, "ind2": field.indicator2}
        with writer.element("marc:datafield", attributes):
            for subfield in field.subfields:
                writer.write_element("marc:subfield", subfield.value, {"code": subfield.code})


def build_marc_record(work: Work, settings: ExportSettings, entered: date) -> Record:
    """Build the catalogue record for one work, fields in tag order."""

    record = Record(leader=LEADER_TEMPLATE, force_utf8=True)
    contributions = contributions_of(work.contributions)
    main_author = next(
        (
            item
            for item in contributions
            if item.contribution_type is ContributionType.AUTHOR and item.main_contribution
        ),
        None,
    )
    series = work.issues[0].series if work.issues else None
    volume = work.issues[0].issue_ordinal if work.issues else None

    record.add_field(
        Field(tag="001", data=work.work_id),
        Field(tag="006", data=FIELD_006),
        Field(tag="007", data=FIELD_007),
        Field(tag="008", data=fixed_length_data(work, entered)),
    )

    if work.lccn:
        record.add_field(_data_field("010", BLANK, BLANK, ("a", work.lccn)))

    for publication in work.publications:
        if not publication.isbn:
            continue
        code = "z" if publication.publication_type.is_print else "a"
        record.add_field(
            _data_field(
                "020",
                BLANK,
                BLANK,
                (code, isbn_without_hyphens(publication.isbn)),
                ("q", f"({publication.publication_type.label})"),
            )
        )

    if work.doi:
        record.add_field(_data_field("024", "7", BLANK, ("a", work.doi), ("2", "doi")))
    if work.oclc:
        record.add_field(_data_field("024", "7", BLANK, ("a", work.oclc), ("2", "worldcat")))

    record.add_field(
        _data_field("040", BLANK, BLANK, ("a", settings.cataloguing_agency), ("b", "eng"), ("e", "rda"))
    )

    language_field = _language_field(work)
    if language_field is not None:
        record.add_field(language_field)

    for subject in _subjects(work, SubjectType.LCC):
        record.add_field(_data_field("050", "0", "0", ("a", subject)))
    for subject_type, source in SUBJECT_SOURCES:
        for subject in _subjects(work, subject_type):
            record.add_field(_data_field("072", BLANK, "7", ("a", subject), ("2", source)))

    if main_author is not None:
        record.add_field(_name_field("100", main_author))

    record.add_field(_title_field(work, has_main_entry=main_author is not None))

    if work.edition is not None:
        record.add_field(_data_field("250", BLANK, BLANK, ("a", f"{ordinal(work.edition)} edition")))

    record.add_field(*_publication_fields(work))

    extent, counts = extent_description(work)
    extent_subfields = [("a", extent)]
    if counts is not None:
        extent_subfields.append(("b", counts))
    record.add_field(_data_field("300", BLANK, BLANK, *extent_subfields))

    record.add_field(
        _data_field("336", BLANK, BLANK, ("a", "text"), ("b", "txt"), ("2", "rdacontent")),
        _data_field("337", BLANK, BLANK, ("a", "computer"), ("b", "c"), ("2", "rdamedia")),
        _data_field("338", BLANK, BLANK, ("a", "online resource"), ("b", "cr"), ("2", "rdacarrier")),
    )

    if series is not None:
        record.add_field(_data_field("490", "1", BLANK, *_series_subfields(series, volume)))

    if work.general_note:
        record.add_field(_data_field("500", BLANK, BLANK, ("a", work.general_note)))
    if work.bibliography_note:
        record.add_field(_data_field("504", BLANK, BLANK, ("a", work.bibliography_note)))
    if work.toc:
        record.add_field(_data_field("505", "0", BLANK, ("a", work.toc)))
    if work.license:
        record.add_field(
            _data_field(
                "506",
                "0",
                BLANK,
                ("a", "Open Access"),
                ("f", "Unrestricted online access"),
                ("2", "star"),
            )
        )

    long_abstract = work.abstract_of(AbstractType.LONG)
    if long_abstract is not None and plain_text(long_abstract.content):
        record.add_field(_data_field("520", BLANK, BLANK, ("a", plain_text(long_abstract.content))))

    for funding in work.fundings:
        funding_subfields = [("a", funding.institution.institution_name)]
        for code, value in (("c", funding.grant_number), ("e", funding.program), ("f", funding.project_name)):
            if value:
                funding_subfields.append((code, value))
        record.add_field(_data_field("536", BLANK, BLANK, *funding_subfields))

    record.add_field(_data_field("538", BLANK, BLANK, ("a", "Mode of access: World Wide Web.")))
    if work.license:
        record.add_field(
            _data_field("540", BLANK, BLANK, ("a", license_statement(work.license)), ("u", work.license))
        )
    record.add_field(
        _data_field("588", "0", BLANK, ("a", "Metadata licensed under CC0 Public Domain Dedication."))
    )

    for contribution in contributions:
        if contribution is main_author:
            continue
        record.add_field(_name_field("700", contribution))

    record.add_field(
        _data_field(
            "710",
            "2",
            BLANK,
            ("a", f"{work.imprint.publisher.publisher_name},"),
            ("e", "publisher."),
        )
    )

    if series is not None:
        record.add_field(_data_field("830", BLANK, "0", *_series_subfields(series, volume)))

    if work.doi:
        record.add_field(
            _data_field("856", "4", "0", ("u", doi_url(work.doi).lower()), ("z", "Connect to e-book"))
        )
    if work.cover_url:
        record.add_field(_data_field("856", "4", "2", ("u", work.cover_url), ("z", "Connect to cover image")))
    record.add_field(_data_field("856", "4", "2", ("u", CC0_METADATA_URL), ("z", "CC0 Metadata License")))

    record.leader = record_leader(record)
    return record


def record_leader(record: Record) -> Leader:
    """Leader with the ISO 2709 record length and base address of ``record``.

    Only positions 00-04 and 12-16 change; a record too long for five digits
    gets the largest length the leader can carry.
    """

    encoded = record.as_marc()
    base_address = LEADER_LEN + DIRECTORY_ENTRY_LEN * len(record.fields) + 1
    field_data = encoded[encoded.index(END_OF_FIELD.encode("ascii")) + 1 :]
    record_length = base_address + len(field_data)
    if record_length > MAX_RECORD_LENGTH:
        logger.warning(
            "MARC record is %s bytes long; leader length capped at %s",
            record_length,
            MAX_RECORD_LENGTH,
        )
        record_length = MAX_RECORD_LENGTH
    return Leader(f"{record_length:05d}{LEADER_TEMPLATE[5:12]}{base_address:05d}{LEADER_TEMPLATE[17:]}")


def fixed_length_data(work: Work, entered: date) -> str:
    """Field 008: date entered, publication dates, online form and language."""

    if work.publication_date is not None:
        year = f"{work.publication_date.year:04d}"
        dates = f"t{year}{year}"
    else:
        dates = "nuuuuuuuu"
    language = next(
        (item.language_code for item in work.languages if item.main_language),
        UNKNOWN_LANGUAGE,
    )
    return f"{entered.strftime('%y%m%d')}{dates}        ob    000 0 {language.lower()[:3]:<3} d"


def extent_description(work: Work) -> tuple[str, str | None]:
    """Field 300 ``$a`` and optional ``$b`` describing pages and other content."""

    if work.page_breakdown:
        extent = f"1 online resource ({work.page_breakdown} pages)"
    elif work.page_count:
        extent = f"1 online resource ({work.page_count} pages)"
    else:
        extent = "1 online resource"

    counts = []
    for attribute, singular, plural in RESOURCE_COUNTS:
        count = getattr(work, attribute)
        if count:
            counts.append(f"{count} {singular if count == 1 else plural}")

    if not counts:
        return f"{extent}.", None
    return f"{extent} :", f"{', '.join(counts)}."


def statement_of_responsibility(contributions: Sequence[Contribution]) -> str:
    """Main contributors grouped by role, e.g. ``A; edited by B; translated by C.``"""

    groups: dict[ContributionType, list[str]] = {}
    for contribution in contributions_of(contributions):
        if contribution.main_contribution:
            groups.setdefault(contribution.contribution_type, []).append(contribution.full_name)
    if not groups:
        return ""

    parts = []
    for contribution_type, names in groups.items():
        joined = ", ".join(names)
        phrase = RESPONSIBILITY_PHRASES.get(contribution_type)
        parts.append(f"{phrase} {joined}" if phrase else joined)
    statement = "; ".join(parts)
    return statement if statement.endswith(".") else f"{statement}."


def ordinal(number: int) -> str:
    if 10 <= number % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


def plain_text(content: str) -> str:
    """Abstract paragraphs joined on one line with inline markup removed."""

    parser = etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False, huge_tree=False)
    lines = []
    for paragraph in paragraphs(content):
        try:
            fragment = etree.fromstring(f"<fragment>{paragraph}</fragment>", parser=parser)
        except etree.XMLSyntaxError:
            lines.append(paragraph)
            continue
        lines.append("".join(fragment.itertext()).strip())
    return " ".join(line for line in lines if line)


def _data_field(tag: str, ind1: str, ind2: str, *subfields: tuple[str, str]) -> Field:
    return Field(
        tag=tag,
        indicators=Indicators(ind1, ind2),
        subfields=[Subfield(code=code, value=value) for code, value in subfields],
    )


def _name_field(tag: str, contribution: Contribution) -> Field:
    if contribution.first_name:
        name = f"{contribution.last_name}, {contribution.first_name},"
        ind1 = "1"
    else:
        name = f"{contribution.full_name},"
        ind1 = "0"

    subfields = [("a", name), ("e", f"{contribution.contribution_type.label}.")]
    for affiliation in sorted(contribution.affiliations, key=lambda item: item.affiliation_ordinal):
        subfields.append(("u", f"{affiliation.institution.institution_name}."))
    if contribution.contributor.orcid:
        subfields.append(("1", orcid_url(contribution.contributor.orcid)))
    return _data_field(tag, ind1, BLANK, *subfields)


def _title_field(work: Work, *, has_main_entry: bool) -> Field:
    statement = statement_of_responsibility(work.contributions)
    title_suffix = " :" if work.subtitle else (" /" if statement else "")
    subfields = [("a", f"{work.title}{title_suffix}")]
    if work.subtitle:
        subfields.append(("b", f"{work.subtitle} /" if statement else work.subtitle))
    if statement:
        subfields.append(("c", statement))
    return _data_field("245", "1" if has_main_entry else "0", "0", *subfields)


def _publication_fields(work: Work) -> list[Field]:
    publisher = work.imprint.publisher.publisher_name
    year = f"{work.publication_date.year:04d}" if work.publication_date is not None else None

    subfields = []
    if work.place:
        subfields.append(("a", f"{work.place} :"))
    subfields.append(("b", f"{publisher}," if year else f"{publisher}."))
    if year:
        subfields.append(("c", f"{year}."))

    fields = [_data_field("264", BLANK, "1", *subfields)]
    if year:
        fields.append(_data_field("264", BLANK, "4", ("c", f"©{year}")))
    return fields


def _series_subfields(series: Series, volume: int | None) -> list[tuple[str, str]]:
    subfields = [("a", series.series_name)]
    if volume is not None:
        subfields.append(("v", f"vol. {volume}"))
    for issn in (series.issn_digital, series.issn_print):
        if issn:
            subfields.append(("x", issn))
    return subfields


def _language_field(work: Work) -> Field | None:
    translated = any(
        item.language_relation in (LanguageRelation.TRANSLATED_FROM, LanguageRelation.TRANSLATED_INTO)
        for item in work.languages
    )
    item_languages = [
        item.language_code.lower()
        for item in work.languages
        if item.language_relation is not LanguageRelation.TRANSLATED_FROM
    ]
    originals = [
        item.language_code.lower()
        for item in work.languages
        if item.language_relation is LanguageRelation.TRANSLATED_FROM
    ]
    if not translated and len(item_languages) < 2:
        return None

    subfields = [("a", code) for code in item_languages] + [("h", code) for code in originals]
    return _data_field("041", "1" if translated else "0", BLANK, *subfields)


def _subjects(work: Work, subject_type: SubjectType) -> list[str]:
    selected = [item for item in work.subjects if item.subject_type is subject_type]
    return [item.subject_code for item in sorted(selected, key=lambda item: item.subject_ordinal)]
