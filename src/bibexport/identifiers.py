"""Normalisation helpers for persistent identifiers."""

from __future__ import annotations

import re

DOI_RESOLVER = "https://doi.org/"
ORCID_RESOLVER = "https://orcid.org/"
ROR_RESOLVER = "https://ror.org/"

_DOI_PREFIX_RE = re.compile(r"^(?:https?://(?:dx\.)?doi\.org/|doi:)", re.IGNORECASE)
_ORCID_PREFIX_RE = re.compile(r"^https?://orcid\.org/", re.IGNORECASE)
_ROR_PREFIX_RE = re.compile(r"^https?://ror\.org/", re.IGNORECASE)


def bare_doi(value: str) -> str:
    """Strip resolver prefixes so ``https://doi.org/10.1/x`` becomes ``10.1/x``."""

    return _DOI_PREFIX_RE.sub("", value.strip())


def bare_orcid(value: str) -> str:
    return _ORCID_PREFIX_RE.sub("", value.strip())


def bare_ror(value: str) -> str:
    return _ROR_PREFIX_RE.sub("", value.strip())


def doi_url(doi: str) -> str:
    return f"{DOI_RESOLVER}{bare_doi(doi)}"


def orcid_url(orcid: str) -> str:
    return f"{ORCID_RESOLVER}{bare_orcid(orcid)}"


def ror_url(ror: str) -> str:
    return f"{ROR_RESOLVER}{bare_ror(ror)}"


def isbn_without_hyphens(isbn: str) -> str:
    return isbn.replace("-", "")
