"""Human-readable statements for Creative Commons licence URLs."""

from __future__ import annotations

from dataclasses import dataclass
import re

_CC_LICENSE_RE = re.compile(
    r"^https?://(?:www\.)?creativecommons\.org/licenses/"
    r"(?P<code>by(?:-nc)?(?:-sa|-nd)?)/(?P<version>\d\.\d)(?:/[^?#]*)?/?$",
    re.IGNORECASE,
)
_CC_ZERO_RE = re.compile(
    r"^https?://(?:www\.)?creativecommons\.org/publicdomain/zero/(?P<version>\d\.\d)(?:/[^?#]*)?/?$",
    re.IGNORECASE,
)

_ELEMENT_NAMES = {
    "by": "Attribution",
    "nc": "NonCommercial",
    "sa": "ShareAlike",
    "nd": "NoDerivatives",
}

_JURISDICTIONS = {
    "1.0": "Generic",
    "2.0": "Generic",
    "2.5": "Generic",
    "3.0": "Unported",
    "4.0": "International",
}

CUSTOM_LICENSE = "custom license."


@dataclass(frozen=True, slots=True)
class CreativeCommonsLicense:
    code: str
    version: str

    @property
    def short_name(self) -> str:
        if self.code == "zero":
            return f"CC0 {self.version}"
        return f"CC {self.code.upper()} {self.version}"

    def describe(self) -> str:
        """Sentence fragment such as ``Creative Commons Attribution 4.0 International license (CC BY 4.0).``"""

        if self.code == "zero":
            return f"CC0 {self.version} Universal Public Domain Dedication ({self.short_name})."

        elements = []
        for part in self.code.split("-"):
            name = _ELEMENT_NAMES[part]
            if part == "nd" and self.version != "4.0":
                name = "NoDerivs"
            elements.append(name)
        jurisdiction = _JURISDICTIONS.get(self.version, "Generic")
        return (
            f"Creative Commons {'-'.join(elements)} {self.version} {jurisdiction} license "
            f"({self.short_name})."
        )


def parse_license(url: str) -> CreativeCommonsLicense | None:
    """Recognise a Creative Commons licence URL; return None for anything else."""

    candidate = url.strip()
    match = _CC_LICENSE_RE.match(candidate)
    if match is not None:
        return CreativeCommonsLicense(code=match.group("code").lower(), version=match.group("version"))
    match = _CC_ZERO_RE.match(candidate)
    if match is not None:
        return CreativeCommonsLicense(code="zero", version=match.group("version"))
    return None


def license_statement(url: str) -> str:
    license_ = parse_license(url)
    description = license_.describe() if license_ is not None else CUSTOM_LICENSE
    return (
        f"The text of this book is licensed under a {description} "
        "For more detailed information consult the publisher's website."
    )
