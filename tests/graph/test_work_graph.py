from __future__ import annotations

from datetime import date
import json
from pathlib import Path

import pytest

from bibexport.errors import WorkGraphError
from bibexport.graph import load_works, load_works_file, work_from_dict
from bibexport.models import (
    AbstractType,
    ContributionType,
    LanguageRelation,
    PublicationType,
    RelationType,
    SubjectType,
    WorkStatus,
    WorkType,
)


def _payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "work_id": "book-1",
        "work_type": "monograph",
        "title": "Test Book",
        "doi": "https://doi.org/10.11647/OBP.0001",
        "publication_date": "1999-12-31",
        "imprint": {
            "publisher": {"publisher_name": "Open Book Publishers"},
            "crossmark_doi": "doi:10.11647/crossmark-policy",
        },
    }
    payload.update(overrides)
    return payload


def test_minimal_work_applies_defaults() -> None:
    work = work_from_dict(_payload())

    assert work.work_type is WorkType.MONOGRAPH
    assert work.work_status is WorkStatus.ACTIVE
    assert work.doi == "10.11647/OBP.0001"
    assert work.publication_date == date(1999, 12, 31)
    assert work.imprint.imprint_name == "Open Book Publishers"
    assert work.imprint.crossmark_doi == "10.11647/crossmark-policy"
    assert work.subtitle is None
    assert work.publications == ()


def test_nested_entities_are_built() -> None:
    work = work_from_dict(
        _payload(
            work_type="edited-book",
            abstracts=[{"content": "Short.", "abstract_type": "short", "locale_code": "en"}],
            issues=[{"issue_ordinal": 4, "series": {"series_name": "Series", "issn_print": "1234-5678"}}],
            publications=[
                {
                    "publication_type": "pdf",
                    "isbn": "978-1-80064-001-8",
                    "locations": [{"full_text_url": "https://example.org/b.pdf", "canonical": True}],
                },
                {"publication_type": "fiction book"},
            ],
            contributions=[
                {
                    "contribution_type": "editor",
                    "contribution_ordinal": 1,
                    "first_name": "John",
                    "last_name": "Smith",
                    "full_name": "John Smith",
                    "contributor": {"orcid": "https://orcid.org/0000-0002-1825-0097"},
                    "affiliations": [{"institution": {"institution_name": "Uni", "ror": "https://ror.org/013meh722"}}],
                }
            ],
            fundings=[
                {"institution": {"institution_name": "Funder", "institution_doi": "10.13039/1"}, "grant_number": "G"}
            ],
            references=[{"reference_ordinal": 1, "doi": "https://doi.org/10.1/x", "publication_date": "2001-01-01"}],
            languages=[{"language_code": "ENG", "language_relation": "translated_into"}],
            subjects=[{"subject_type": "bic", "subject_code": "HBJD"}],
        )
    )

    assert work.work_type is WorkType.EDITED_BOOK
    assert work.abstracts[0].abstract_type is AbstractType.SHORT
    assert work.issues[0].issue_ordinal == 4
    assert work.issues[0].series.issn_print == "1234-5678"
    assert [item.publication_type for item in work.publications] == [PublicationType.PDF, PublicationType.FICTION_BOOK]
    assert work.publications[0].locations[0].canonical is True

    contribution = work.contributions[0]
    assert contribution.contribution_type is ContributionType.EDITOR
    assert contribution.main_contribution is True
    assert contribution.contributor.orcid == "0000-0002-1825-0097"
    assert contribution.affiliations[0].institution.ror == "013meh722"
    assert contribution.affiliations[0].affiliation_ordinal == 1

    assert work.fundings[0].institution.institution_doi == "10.13039/1"
    assert work.references[0].doi == "10.1/x"
    assert work.references[0].publication_date == date(2001, 1, 1)
    assert work.languages[0].language_code == "eng"
    assert work.languages[0].language_relation is LanguageRelation.TRANSLATED_INTO
    assert work.subjects[0].subject_type is SubjectType.BIC


def test_relations_are_built_recursively() -> None:
    chapter = {
        "work_id": "chapter-1",
        "work_type": "book_chapter",
        "title": "Chapter",
        "imprint": {"publisher": {"publisher_name": "Open Book Publishers"}},
    }
    relations = [{"relation_type": "has_child", "relation_ordinal": 1, "related_work": chapter}]
    work = work_from_dict(_payload(relations=relations))

    relation = work.relations[0]
    assert relation.relation_type is RelationType.HAS_CHILD
    assert relation.related_work.work_type is WorkType.BOOK_CHAPTER
    assert relation.related_work.work_id == "chapter-1"


def test_errors_report_the_failing_path() -> None:
    with pytest.raises(WorkGraphError, match=r"path=\$\.title"):
        work_from_dict(_payload(title="  "))

    with pytest.raises(WorkGraphError, match=r"Unknown WorkType: novel \(path=\$\.work_type\)"):
        work_from_dict(_payload(work_type="novel"))

    with pytest.raises(WorkGraphError, match=r"Invalid date: 31/12/1999"):
        work_from_dict(_payload(publication_date="31/12/1999"))

    with pytest.raises(WorkGraphError, match=r"path=\$\.publications\[0\]\.publication_type"):
        work_from_dict(_payload(publications=[{"isbn": "978"}]))

    with pytest.raises(WorkGraphError, match=r"Expected an integer \(path=\$\.edition\)"):
        work_from_dict(_payload(edition=True))

    with pytest.raises(WorkGraphError, match=r"Expected a list \(path=\$\.subjects\)"):
        work_from_dict(_payload(subjects={"subject_type": "bic"}))

    with pytest.raises(WorkGraphError, match=r"path=\$\.imprint"):
        work_from_dict({"work_id": "x", "work_type": "monograph", "title": "T"})


def test_load_works_accepts_object_list_and_envelope() -> None:
    assert [work.work_id for work in load_works(_payload())] == ["book-1"]
    assert [work.work_id for work in load_works([_payload(), _payload(work_id="book-2")])] == ["book-1", "book-2"]
    assert [work.work_id for work in load_works({"works": [_payload()]})] == ["book-1"]

    with pytest.raises(WorkGraphError, match=r"path=works\[1\]"):
        load_works({"works": [_payload(), "oops"]})
    with pytest.raises(WorkGraphError, match="Expected a work object"):
        load_works("nothing")


def test_load_works_file(tmp_path: Path) -> None:
    source = tmp_path / "works.json"
    source.write_text(json.dumps([_payload()]), encoding="utf-8")

    assert load_works_file(source)[0].title == "Test Book"

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(WorkGraphError, match="Invalid JSON"):
        load_works_file(broken)

    with pytest.raises(WorkGraphError, match="Failed to read work graph"):
        load_works_file(tmp_path / "missing.json")
