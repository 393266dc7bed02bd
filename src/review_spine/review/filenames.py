"""Review document filename codec.

Accepted names (case-sensitive ``" - "`` separators)::

    Purpose - TargetAudience - DescriptiveName - yyyymmdd - Version.<ext>
    Purpose - DescriptiveName - yyyymmdd - Version.<ext>

The five-part form is tried first.  A name matching neither raises
:class:`~review_spine.core.errors.ParseError`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

from review_spine.core.errors import ParseError

SEPARATOR = " - "

_EXTENSION = re.compile(r"\.[^/.]+$")
_FIVE_PART = re.compile(r"^(.+?) - (.+?) - (.+?) - (\d{8}) - (.+)$")
_FOUR_PART = re.compile(r"^(.+?) - (.+?) - (\d{8}) - (.+)$")


@dataclass(frozen=True)
class ParsedFilename:
    """Fields extracted from a review document's name.

    ``version_date`` is ISO formatted (``YYYY-MM-DD``); ``stem`` is the name
    without its extension, which is what the intake table stores.
    """

    purpose: str
    descriptive_name: str
    version_date: str
    version: str
    target_audience: str = ""
    stem: str = ""
    extension: str = ""

    @property
    def has_target_audience(self) -> bool:
        return bool(self.target_audience)

    def canonical_name(self, with_extension: bool = True) -> str:
        """Rebuild the filename from the parsed fields."""
        return format_filename(
            purpose=self.purpose,
            target_audience=self.target_audience,
            descriptive_name=self.descriptive_name,
            version_date=self.version_date,
            version=self.version,
            extension=self.extension if with_extension else "",
        )


def split_extension(file_name: str) -> tuple[str, str]:
    """Split ``"a - b.docx"`` into ``("a - b", ".docx")``."""
    match = _EXTENSION.search(file_name)
    if match is None:
        return file_name, ""
    return file_name[: match.start()], match.group(0)


def _iso_date(raw: str, file_name: str) -> str:
    try:
        return datetime.strptime(raw, "%Y%m%d").date().isoformat()
    except ValueError:
        raise ParseError(f"Invalid date {raw!r} in filename").with_context(file_name=file_name) from None


def parse_filename(file_name: str) -> ParsedFilename:
    """Parse a review document filename.

    Raises:
        ParseError: The name matches neither pattern, a segment is empty, or
            the date is not a real calendar date.
    """
    stem, extension = split_extension(file_name)

    match = _FIVE_PART.match(stem)
    if match is not None:
        purpose, audience, descriptive, raw_date, version = (g.strip() for g in match.groups())
    else:
        match = _FOUR_PART.match(stem)
        if match is None:
            raise ParseError("Filename does not match expected pattern").with_context(file_name=file_name)
        purpose, descriptive, raw_date, version = (g.strip() for g in match.groups())
        audience = ""

    if not purpose or not descriptive or not version or (match.re is _FIVE_PART and not audience):
        raise ParseError("Filename has an empty segment").with_context(file_name=file_name)

    return ParsedFilename(
        purpose=purpose,
        target_audience=audience,
        descriptive_name=descriptive,
        version_date=_iso_date(raw_date, file_name),
        version=version,
        stem=stem,
        extension=extension,
    )


def format_filename(
    *,
    purpose: str,
    descriptive_name: str,
    version_date: str,
    version: str,
    target_audience: str = "",
    extension: str = "",
) -> str:
    """Build a filename; ``version_date`` may be ISO or ``yyyymmdd``."""
    compact = version_date.replace("-", "")
    parts = [purpose]
    if target_audience:
        parts.append(target_audience)
    parts.extend([descriptive_name, compact, version])
    return SEPARATOR.join(parts) + extension


__all__ = ["ParsedFilename", "SEPARATOR", "format_filename", "parse_filename", "split_extension"]
