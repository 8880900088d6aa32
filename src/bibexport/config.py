"""Runtime configuration for export specifications."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Mapping


DEFAULT_DEPOSITOR_NAME = "Thoth"
DEFAULT_DEPOSITOR_EMAIL = "distribution@thoth.pub"
DEFAULT_REGISTRANT = "Thoth"
DEFAULT_CATALOGUING_AGENCY = "UkCbTOM"


@dataclass(frozen=True, slots=True)
class ExportSettings:
    """Validated identity of the depositing and cataloguing organisation."""

    depositor_name: str = DEFAULT_DEPOSITOR_NAME
    depositor_email: str = DEFAULT_DEPOSITOR_EMAIL
    registrant: str = DEFAULT_REGISTRANT
    cataloguing_agency: str = DEFAULT_CATALOGUING_AGENCY

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ExportSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        depositor_name = source.get("BIBEXPORT_DEPOSITOR_NAME", DEFAULT_DEPOSITOR_NAME).strip()
        depositor_email = source.get("BIBEXPORT_DEPOSITOR_EMAIL", DEFAULT_DEPOSITOR_EMAIL).strip()
        registrant = source.get("BIBEXPORT_REGISTRANT", DEFAULT_REGISTRANT).strip()
        agency = source.get("BIBEXPORT_CATALOGUING_AGENCY", DEFAULT_CATALOGUING_AGENCY).strip()

        empty = [
            name
            for name, value in (
                ("BIBEXPORT_DEPOSITOR_NAME", depositor_name),
                ("BIBEXPORT_DEPOSITOR_EMAIL", depositor_email),
                ("BIBEXPORT_REGISTRANT", registrant),
                ("BIBEXPORT_CATALOGUING_AGENCY", agency),
            )
            if not value
        ]
        if empty:
            raise ValueError(f"Export environment variables cannot be empty: {', '.join(empty)}")

        if "@" not in depositor_email:
            raise ValueError("BIBEXPORT_DEPOSITOR_EMAIL must be an email address")

        return cls(
            depositor_name=depositor_name,
            depositor_email=depositor_email,
            registrant=registrant,
            cataloguing_agency=agency,
        )
