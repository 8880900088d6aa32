"""Build Work graphs from JSON-compatible dictionaries."""

from __future__ import annotations

from datetime import date
from enum import Enum
import json
import logging
from pathlib import Path
from typing import Any, Callable, Mapping, TypeVar

from bibexport.errors import WorkGraphError
from bibexport.identifiers import bare_doi, bare_orcid, bare_ror
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
    Language,
    LanguageRelation,
    Location,
    Publication,
    PublicationType,
    Publisher,
    Reference,
    Relation,
    RelationType,
    Series,
    Subject,
    SubjectType,
    Work,
    WorkStatus,
    WorkType,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)
T = TypeVar("T")


def load_works_file(path: str | Path) -> list[Work]:
    """Read a JSON file holding one work, a list of works or ``{"works": [...]}``."""

    source = Path(path)
    try:
        payload = json.loads(source.read_text(encoding="utf-8"))
    except OSError as exc:
        raise WorkGraphError(str(source), f"Failed to read work graph: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise WorkGraphError(str(source), f"Invalid JSON: {exc}") from exc

    works = load_works(payload)
    logger.info("Loaded %s work(s) from %s", len(works), source)
    return works


def load_works(payload: Any) -> list[Work]:
    if isinstance(payload, Mapping) and "works" in payload:
        payload = payload["works"]
        root = "works"
    else:
        root = "$"

    if isinstance(payload, Mapping):
        return [work_from_dict(payload, root)]
    if isinstance(payload, list):
        return [
            work_from_dict(_mapping(item, f"{root}[{index}]"), f"{root}[{index}]")
            for index, item in enumerate(payload)
        ]
    raise WorkGraphError(root, "Expected a work object or a list of works")


def work_from_dict(data: Mapping[str, Any], path: str = "$") -> Work:
    imprint_data = _mapping(data.get("imprint"), f"{path}.imprint")
    publisher_data = _mapping(imprint_data.get("publisher"), f"{path}.imprint.publisher")

    return Work(
        work_id=_required_str(data, "work_id", path),
        work_type=_enum(WorkType, data.get("work_type"), f"{path}.work_type"),
        work_status=_enum(WorkStatus, data.get("work_status", "ACTIVE"), f"{path}.work_status"),
        title=_required_str(data, "title", path),
        subtitle=_optional_str(data, "subtitle", path),
        doi=_optional_identifier(data, "doi", path, bare_doi),
        publication_date=_optional_date(data, "publication_date", path),
        withdrawn_date=_optional_date(data, "withdrawn_date", path),
        edition=_optional_int(data, "edition", path),
        place=_optional_str(data, "place", path),
        license=_optional_str(data, "license", path),
        landing_page=_optional_str(data, "landing_page", path),
        cover_url=_optional_str(data, "cover_url", path),
        lccn=_optional_str(data, "lccn", path),
        oclc=_optional_str(data, "oclc", path),
        general_note=_optional_str(data, "general_note", path),
        bibliography_note=_optional_str(data, "bibliography_note", path),
        toc=_optional_str(data, "toc", path),
        page_count=_optional_int(data, "page_count", path),
        page_breakdown=_optional_str(data, "page_breakdown", path),
        image_count=_optional_int(data, "image_count", path),
        table_count=_optional_int(data, "table_count", path),
        audio_count=_optional_int(data, "audio_count", path),
        video_count=_optional_int(data, "video_count", path),
        first_page=_optional_str(data, "first_page", path),
        last_page=_optional_str(data, "last_page", path),
        imprint=Imprint(
            imprint_name=_optional_str(imprint_data, "imprint_name", f"{path}.imprint")
            or _required_str(publisher_data, "publisher_name", f"{path}.imprint.publisher"),
            publisher=Publisher(
                publisher_name=_required_str(publisher_data, "publisher_name", f"{path}.imprint.publisher"),
            ),
            crossmark_doi=_optional_identifier(imprint_data, "crossmark_doi", f"{path}.imprint", bare_doi),
        ),
        abstracts=_items(data, "abstracts", path, _abstract),
        issues=_items(data, "issues", path, _issue),
        publications=_items(data, "publications", path, _publication),
        contributions=_items(data, "contributions", path, _contribution),
        fundings=_items(data, "fundings", path, _funding),
        relations=_items(data, "relations", path, _relation),
        references=_items(data, "references", path, _reference),
        languages=_items(data, "languages", path, _language),
        subjects=_items(data, "subjects", path, _subject),
    )


def _abstract(data: Mapping[str, Any], path: str) -> Abstract:
    return Abstract(
        content=_required_str(data, "content", path),
        abstract_type=_enum(AbstractType, data.get("abstract_type", "LONG"), f"{path}.abstract_type"),
        locale_code=_optional_str(data, "locale_code", path),
    )


def _issue(data: Mapping[str, Any], path: str) -> Issue:
    series_data = _mapping(data.get("series"), f"{path}.series")
    return Issue(
        issue_ordinal=_required_int(data, "issue_ordinal", path),
        series=Series(
            series_name=_required_str(series_data, "series_name", f"{path}.series"),
            issn_print=_optional_str(series_data, "issn_print", f"{path}.series"),
            issn_digital=_optional_str(series_data, "issn_digital", f"{path}.series"),
        ),
    )


def _publication(data: Mapping[str, Any], path: str) -> Publication:
    return Publication(
        publication_type=_enum(PublicationType, data.get("publication_type"), f"{path}.publication_type"),
        isbn=_optional_str(data, "isbn", path),
        locations=_items(data, "locations", path, _location),
    )


def _location(data: Mapping[str, Any], path: str) -> Location:
    return Location(
        full_text_url=_optional_str(data, "full_text_url", path),
        landing_page=_optional_str(data, "landing_page", path),
        canonical=bool(data.get("canonical", False)),
    )


def _institution(data: Mapping[str, Any], path: str) -> Institution:
    return Institution(
        institution_name=_required_str(data, "institution_name", path),
        institution_doi=_optional_identifier(data, "institution_doi", path, bare_doi),
        ror=_optional_identifier(data, "ror", path, bare_ror),
    )


def _affiliation(data: Mapping[str, Any], path: str) -> Affiliation:
    return Affiliation(
        institution=_institution(_mapping(data.get("institution"), f"{path}.institution"), f"{path}.institution"),
        affiliation_ordinal=_optional_int(data, "affiliation_ordinal", path) or 1,
        position=_optional_str(data, "position", path),
    )


def _contribution(data: Mapping[str, Any], path: str) -> Contribution:
    contributor_path = f"{path}.contributor"
    contributor_data = _mapping(data.get("contributor") or {}, contributor_path)
    return Contribution(
        contribution_type=_enum(ContributionType, data.get("contribution_type"), f"{path}.contribution_type"),
        contribution_ordinal=_required_int(data, "contribution_ordinal", path),
        last_name=_required_str(data, "last_name", path),
        full_name=_required_str(data, "full_name", path),
        first_name=_optional_str(data, "first_name", path),
        main_contribution=bool(data.get("main_contribution", True)),
        contributor=Contributor(
            orcid=_optional_identifier(contributor_data, "orcid", contributor_path, bare_orcid),
            website=_optional_str(contributor_data, "website", contributor_path),
        ),
        affiliations=_items(data, "affiliations", path, _affiliation),
    )


def _funding(data: Mapping[str, Any], path: str) -> Funding:
    return Funding(
        institution=_institution(_mapping(data.get("institution"), f"{path}.institution"), f"{path}.institution"),
        grant_number=_optional_str(data, "grant_number", path),
        program=_optional_str(data, "program", path),
        project_name=_optional_str(data, "project_name", path),
    )


def _relation(data: Mapping[str, Any], path: str) -> Relation:
    related_path = f"{path}.related_work"
    return Relation(
        relation_type=_enum(RelationType, data.get("relation_type"), f"{path}.relation_type"),
        relation_ordinal=_required_int(data, "relation_ordinal", path),
        related_work=work_from_dict(_mapping(data.get("related_work"), related_path), related_path),
    )


def _reference(data: Mapping[str, Any], path: str) -> Reference:
    return Reference(
        reference_ordinal=_required_int(data, "reference_ordinal", path),
        doi=_optional_identifier(data, "doi", path, bare_doi),
        unstructured_citation=_optional_str(data, "unstructured_citation", path),
        issn=_optional_str(data, "issn", path),
        isbn=_optional_str(data, "isbn", path),
        journal_title=_optional_str(data, "journal_title", path),
        article_title=_optional_str(data, "article_title", path),
        series_title=_optional_str(data, "series_title", path),
        volume_title=_optional_str(data, "volume_title", path),
        edition=_optional_int(data, "edition", path),
        author=_optional_str(data, "author", path),
        volume=_optional_str(data, "volume", path),
        issue=_optional_str(data, "issue", path),
        first_page=_optional_str(data, "first_page", path),
        component_number=_optional_str(data, "component_number", path),
        standard_designator=_optional_str(data, "standard_designator", path),
        standards_body_name=_optional_str(data, "standards_body_name", path),
        standards_body_acronym=_optional_str(data, "standards_body_acronym", path),
        publication_date=_optional_date(data, "publication_date", path),
    )


def _language(data: Mapping[str, Any], path: str) -> Language:
    return Language(
        language_code=_required_str(data, "language_code", path).lower(),
        language_relation=_enum(
            LanguageRelation,
            data.get("language_relation", "ORIGINAL"),
            f"{path}.language_relation",
        ),
        main_language=bool(data.get("main_language", True)),
    )


def _subject(data: Mapping[str, Any], path: str) -> Subject:
    return Subject(
        subject_type=_enum(SubjectType, data.get("subject_type"), f"{path}.subject_type"),
        subject_code=_required_str(data, "subject_code", path),
        subject_ordinal=_optional_int(data, "subject_ordinal", path) or 1,
    )


def _mapping(value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise WorkGraphError(path, "Expected an object")
    return value


def _items(
    data: Mapping[str, Any],
    key: str,
    path: str,
    build: Callable[[Mapping[str, Any], str], T],
) -> tuple[T, ...]:
    raw = data.get(key) or []
    if not isinstance(raw, list):
        raise WorkGraphError(f"{path}.{key}", "Expected a list")
    items = []
    for index, item in enumerate(raw):
        item_path = f"{path}.{key}[{index}]"
        items.append(build(_mapping(item, item_path), item_path))
    return tuple(items)


def _enum(enum_type: type[E], value: Any, path: str) -> E:
    if not isinstance(value, str) or not value.strip():
        raise WorkGraphError(path, f"Missing {enum_type.__name__}")
    key = value.strip().upper().replace("-", "_").replace(" ", "_")
    try:
        return enum_type(key)
    except ValueError as exc:
        raise WorkGraphError(path, f"Unknown {enum_type.__name__}: {value}") from exc


def _optional_str(data: Mapping[str, Any], key: str, path: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise WorkGraphError(f"{path}.{key}", "Expected a string")
    value = value.strip()
    return value or None


def _required_str(data: Mapping[str, Any], key: str, path: str) -> str:
    value = _optional_str(data, key, path)
    if value is None:
        raise WorkGraphError(f"{path}.{key}", "Missing required value")
    return value


def _optional_int(data: Mapping[str, Any], key: str, path: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise WorkGraphError(f"{path}.{key}", "Expected an integer")
    return value


def _required_int(data: Mapping[str, Any], key: str, path: str) -> int:
    value = _optional_int(data, key, path)
    if value is None:
        raise WorkGraphError(f"{path}.{key}", "Missing required value")
    return value


def _optional_date(data: Mapping[str, Any], key: str, path: str) -> date | None:
    value = _optional_str(data, key, path)
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise WorkGraphError(f"{path}.{key}", f"Invalid date: {value}") from exc


def _optional_identifier(
    data: Mapping[str, Any],
    key: str,
    path: str,
    normalize: Callable[[str], str],
) -> str | None:
    value = _optional_str(data, key, path)
    return normalize(value) if value is not None else None
