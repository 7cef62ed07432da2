"""Human readable process codes.

Format: ``YYYYMM`` + first three letters of the species (accents and
non-letters removed, upper-cased) + sequence letter (1 = A, 2 = B, ...).

Example: a cycle of "Ostión" starting in January 2025 -> ``202501OSTA``.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from datetime import date, datetime

from .time import to_date

__all__ = ["ProcessCode", "generate_process_code", "parse_process_code"]


@dataclass(frozen=True)
class ProcessCode:
    """Parts of a process code."""

    year: int
    month: int
    species_code: str
    sequence: str

    @property
    def estimated_start(self) -> date:
        """First day of the encoded month."""
        return date(self.year, self.month, 1)


def _species_prefix(species_name: str) -> str:
    normalized = unicodedata.normalize("NFD", species_name)
    without_accents = "".join(ch for ch in normalized if unicodedata.category(ch) != "Mn")
    letters = re.sub(r"[^a-zA-Z]", "", without_accents)
    return letters[:3].upper()


def generate_process_code(species_name: str, start_date: date | datetime, sequence: int = 1) -> str:
    """Generate the code of a process.

    Parameters
    ----------
    species_name
        Species display name
    start_date
        Process start date
    sequence
        1-based sequence among processes of the same month and species (1..26)

    Raises
    ------
    ValueError
        If sequence is outside 1..26 or the species has no ASCII letters
    """
    if not 1 <= sequence <= 26:
        raise ValueError(f"Sequence must be between 1 and 26, got {sequence}")

    prefix = _species_prefix(species_name)
    if not prefix:
        raise ValueError(f"Species name {species_name!r} has no letters to build a code")

    day = to_date(start_date)
    return f"{day.year:04d}{day.month:02d}{prefix}{chr(64 + sequence)}"


def parse_process_code(code: str) -> ProcessCode | None:
    """Split a process code into its parts (None if it cannot be parsed)."""
    if not code or len(code) < 8:
        return None

    year_part, month_part = code[0:4], code[4:6]
    if not (year_part.isdigit() and month_part.isdigit()):
        return None

    month = int(month_part)
    if not 1 <= month <= 12:
        return None

    return ProcessCode(
        year=int(year_part),
        month=month,
        species_code=code[6:9],
        sequence=code[9:],
    )
