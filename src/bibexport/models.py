"""Immutable Work graph consumed by every export specification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class WorkType(Enum):
    BOOK_CHAPTER = "BOOK_CHAPTER"
    MONOGRAPH = "MONOGRAPH"
    EDITED_BOOK = "EDITED_BOOK"
    TEXTBOOK = "TEXTBOOK"
    JOURNAL_ISSUE = "JOURNAL_ISSUE"
    BOOK_SET = "BOOK_SET"


class WorkStatus(Enum):
    CANCELLED = "CANCELLED"
    FORTHCOMING = "FORTHCOMING"
    POSTPONED_INDEFINITELY = "POSTPONED_INDEFINITELY"
    ACTIVE = "ACTIVE"
    WITHDRAWN = "WITHDRAWN"
    SUPERSEDED = "SUPERSEDED"


class PublicationType(Enum):
    PAPERBACK = "PAPERBACK"
    HARDBACK = "HARDBACK"
    PDF = "PDF"
    HTML = "HTML"
    XML = "XML"
    EPUB = "EPUB"
    MOBI = "MOBI"
    AZW3 = "AZW3"
    DOCX = "DOCX"
    FICTION_BOOK = "FICTION_BOOK"
    MP3 = "MP3"
    WAV = "WAV"

    @property
    def is_print(self) -> bool:
        return self in (PublicationType.PAPERBACK, PublicationType.HARDBACK)

    @property
    def label(self) -> str:
        """Display name used in catalogue qualifiers, e.g. ``Hardback``."""

        return _PUBLICATION_LABELS[self]


_PUBLICATION_LABELS = {
    PublicationType.PAPERBACK: "Paperback",
    PublicationType.HARDBACK: "Hardback",
    PublicationType.PDF: "PDF",
    PublicationType.HTML: "HTML",
    PublicationType.XML: "XML",
    PublicationType.EPUB: "EPUB",
    PublicationType.MOBI: "MOBI",
    PublicationType.AZW3: "AZW3",
    PublicationType.DOCX: "DOCX",
    PublicationType.FICTION_BOOK: "FictionBook",
    PublicationType.MP3: "MP3",
    PublicationType.WAV: "WAV",
}


class ContributionType(Enum):
    AUTHOR = "AUTHOR"
    EDITOR = "EDITOR"
    TRANSLATOR = "TRANSLATOR"
    PHOTOGRAPHER = "PHOTOGRAPHER"
    ILLUSTRATOR = "ILLUSTRATOR"
    MUSIC_EDITOR = "MUSIC_EDITOR"
    FOREWORD_BY = "FOREWORD_BY"
    INTRODUCTION_BY = "INTRODUCTION_BY"
    AFTERWORD_BY = "AFTERWORD_BY"
    PREFACE_BY = "PREFACE_BY"
    SOFTWARE_BY = "SOFTWARE_BY"
    RESEARCH_BY = "RESEARCH_BY"
    CONTRIBUTIONS_BY = "CONTRIBUTIONS_BY"
    INDEXER = "INDEXER"

    @property
    def label(self) -> str:
        """Lower-case role name, e.g. ``music editor``."""

        return self.value.lower().replace("_", " ")


class RelationType(Enum):
    REPLACES = "REPLACES"
    HAS_TRANSLATION = "HAS_TRANSLATION"
    HAS_PART = "HAS_PART"
    HAS_CHILD = "HAS_CHILD"
    IS_REPLACED_BY = "IS_REPLACED_BY"
    IS_TRANSLATION_OF = "IS_TRANSLATION_OF"
    IS_PART_OF = "IS_PART_OF"
    IS_CHILD_OF = "IS_CHILD_OF"


class AbstractType(Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class LanguageRelation(Enum):
    ORIGINAL = "ORIGINAL"
    TRANSLATED_FROM = "TRANSLATED_FROM"
    TRANSLATED_INTO = "TRANSLATED_INTO"


class SubjectType(Enum):
    BIC = "BIC"
    BISAC = "BISAC"
    THEMA = "THEMA"
    LCC = "LCC"
    CUSTOM = "CUSTOM"
    KEYWORD = "KEYWORD"


@dataclass(frozen=True, slots=True)
class Publisher:
    publisher_name: str


@dataclass(frozen=True, slots=True)
class Imprint:
    """Imprint of a publisher; carries the Crossmark policy DOI when enrolled."""

    imprint_name: str
    publisher: Publisher
    crossmark_doi: str | None = None


@dataclass(frozen=True, slots=True)
class Series:
    series_name: str
    issn_print: str | None = None
    issn_digital: str | None = None


@dataclass(frozen=True, slots=True)
class Issue:
    """Membership of a work in a series; the ordinal is the volume number."""

    issue_ordinal: int
    series: Series


@dataclass(frozen=True, slots=True)
class Location:
    full_text_url: str | None = None
    landing_page: str | None = None
    canonical: bool = False


@dataclass(frozen=True, slots=True)
class Publication:
    publication_type: PublicationType
    isbn: str | None = None
    locations: tuple[Location, ...] = ()


@dataclass(frozen=True, slots=True)
class Institution:
    institution_name: str
    institution_doi: str | None = None
    ror: str | None = None


@dataclass(frozen=True, slots=True)
class Affiliation:
    institution: Institution
    affiliation_ordinal: int = 1
    position: str | None = None


@dataclass(frozen=True, slots=True)
class Contributor:
    orcid: str | None = None
    website: str | None = None


@dataclass(frozen=True, slots=True)
class Contribution:
    contribution_type: ContributionType
    contribution_ordinal: int
    last_name: str
    full_name: str
    first_name: str | None = None
    main_contribution: bool = True
    contributor: Contributor = field(default_factory=Contributor)
    affiliations: tuple[Affiliation, ...] = ()


@dataclass(frozen=True, slots=True)
class Funding:
    institution: Institution
    grant_number: str | None = None
    program: str | None = None
    project_name: str | None = None


@dataclass(frozen=True, slots=True)
class Abstract:
    content: str
    abstract_type: AbstractType = AbstractType.LONG
    locale_code: str | None = None


@dataclass(frozen=True, slots=True)
class Language:
    language_code: str
    language_relation: LanguageRelation = LanguageRelation.ORIGINAL
    main_language: bool = True


@dataclass(frozen=True, slots=True)
class Subject:
    subject_type: SubjectType
    subject_code: str
    subject_ordinal: int = 1


@dataclass(frozen=True, slots=True)
class Reference:
    """One citation made by a work, structured or unstructured."""

    reference_ordinal: int
    doi: str | None = None
    unstructured_citation: str | None = None
    issn: str | None = None
    isbn: str | None = None
    journal_title: str | None = None
    article_title: str | None = None
    series_title: str | None = None
    volume_title: str | None = None
    edition: int | None = None
    author: str | None = None
    volume: str | None = None
    issue: str | None = None
    first_page: str | None = None
    component_number: str | None = None
    standard_designator: str | None = None
    standards_body_name: str | None = None
    standards_body_acronym: str | None = None
    publication_date: date | None = None


@dataclass(frozen=True, slots=True)
class Relation:
    """Typed edge from a work to a related work (chapter, part, edition)."""

    relation_type: RelationType
    relation_ordinal: int
    related_work: "Work"


@dataclass(frozen=True, slots=True)
class Work:
    """A book, chapter or issue together with everything that describes it."""

    work_id: str
    work_type: WorkType
    title: str
    imprint: Imprint
    work_status: WorkStatus = WorkStatus.ACTIVE
    subtitle: str | None = None
    doi: str | None = None
    publication_date: date | None = None
    withdrawn_date: date | None = None
    edition: int | None = None
    place: str | None = None
    license: str | None = None
    landing_page: str | None = None
    cover_url: str | None = None
    lccn: str | None = None
    oclc: str | None = None
    general_note: str | None = None
    bibliography_note: str | None = None
    toc: str | None = None
    page_count: int | None = None
    page_breakdown: str | None = None
    image_count: int | None = None
    table_count: int | None = None
    audio_count: int | None = None
    video_count: int | None = None
    first_page: str | None = None
    last_page: str | None = None
    abstracts: tuple[Abstract, ...] = ()
    issues: tuple[Issue, ...] = ()
    publications: tuple[Publication, ...] = ()
    contributions: tuple[Contribution, ...] = ()
    fundings: tuple[Funding, ...] = ()
    relations: tuple[Relation, ...] = ()
    references: tuple[Reference, ...] = ()
    languages: tuple[Language, ...] = ()
    subjects: tuple[Subject, ...] = ()

    def abstract_of(self, abstract_type: AbstractType) -> Abstract | None:
        """Return the first abstract of the given kind, if any."""

        return next((item for item in self.abstracts if item.abstract_type is abstract_type), None)
