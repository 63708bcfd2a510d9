"""
Field normalization for the Identity Intelligence System.

Cleans mapped field values in place: names, dates, document and license
numbers, license categories and gender. Normalization is best-effort and
never raises; values it cannot interpret are kept as recognized.

Every normalizer is idempotent: normalize(normalize(x)) == normalize(x).

Typical usage example:

    normalizer = FieldNormalizer()
    normalizer.normalize(fields)
    normalize_date("05/03/1990")   # "1990-03-05"
"""

import logging
import re
from datetime import date
from typing import Callable, Dict, Optional

from ..models.data_structures import ExtractedFields
from ..utils.text_utils import normalize_whitespace

logger = logging.getLogger(__name__)

# Moroccan driving license categories; legacy codes map to their successor
CATEGORY_LABELS: Dict[str, str] = {
    "AM": "AM - Moped/Scooter",
    "A1": "A1 - Small Motorcycle",
    "A": "A - Large Motorcycle",
    "B": "B - Car",
    "C": "C - Truck",
    "D": "D - Bus",
    "EB": "EB - Car with Trailer",
    "EC": "EC - Truck with Trailer",
    "ED": "ED - Bus with Trailer",
    "A2": "A - Large Motorcycle",
    "BE": "EB - Car with Trailer",
    "CE": "EC - Truck with Trailer",
    "DE": "ED - Bus with Trailer",
}

CATEGORY_SEPARATORS = re.compile(r"[\s,;/]+")

GENDER_VALUES: Dict[str, str] = {
    "m": "Male",
    "h": "Male",
    "male": "Male",
    "masculin": "Male",
    "homme": "Male",
    "ذكر": "Male",
    "f": "Female",
    "female": "Female",
    "féminin": "Female",
    "feminin": "Female",
    "femme": "Female",
    "أنثى": "Female",
}

HONORIFIC_PATTERN = re.compile(
    r"^(?:M\.|(?:Mme|Mlle|Mrs|Mr|Miss)\b\.?)\s*", re.IGNORECASE
)
CAPTION_PATTERN = re.compile(r"\b(?:NOM|PRENOM|PRÉNOM|NAME)\b\s*:?\s*", re.IGNORECASE)

DATE_PREFIX_PATTERN = re.compile(r"^(?:née|né|born|date)\s*:?\s*", re.IGNORECASE)
DAY_FIRST_DATE = re.compile(r"(?<!\d)(\d{1,2})[./\-](\d{1,2})[./\-](\d{4})(?!\d)")
YEAR_FIRST_DATE = re.compile(r"(?<!\d)(\d{4})[./\-](\d{1,2})[./\-](\d{1,2})(?!\d)")

NUMBER_PREFIX_PATTERN = re.compile(
    r"^(?:(?:No|CIN|ID)(?![A-Za-z])|N°|Nº|#)\s*[:.]?\s*", re.IGNORECASE
)

# Guards the fixed-point loops below
MAX_PASSES = 5


def _until_stable(value: str, step: Callable[[str], str]) -> str:
    for _ in range(MAX_PASSES):
        cleaned = step(value)
        if cleaned == value:
            break
        value = cleaned
    return value


def normalize_name(value: str) -> str:
    """
    Clean a person name.

    Collapses whitespace, removes leading honorifics (M., Mme, Mlle, Mr,
    Mrs, Miss) and caption tokens (NOM, PRENOM, PRÉNOM, NAME).

    Example:
        >>> normalize_name("  NOM:  Mme   El Amrani ")
        'El Amrani'
    """

    def step(text: str) -> str:
        text = normalize_whitespace(text)
        text = CAPTION_PATTERN.sub("", text)
        text = HONORIFIC_PATTERN.sub("", text)
        return normalize_whitespace(text)

    return _until_stable(value or "", step)


def _format_date(year: str, month: str, day: str) -> Optional[str]:
    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return None


def normalize_date(value: str) -> str:
    """
    Rewrite a recognized date to YYYY-MM-DD.

    Accepts day-first dates (D/M/YYYY with '/', '.' or '-' separators and
    one- or two-digit day and month) optionally prefixed by "né", "née",
    "born" or "date", and year-first dates. Unrecognized or impossible dates
    are returned unchanged (whitespace-trimmed).

    Example:
        >>> normalize_date("05/03/1990")
        '1990-03-05'
        >>> normalize_date("31/02/1990")
        '31/02/1990'
    """
    original = (value or "").strip()
    cleaned = DATE_PREFIX_PATTERN.sub("", original).strip()

    match = DAY_FIRST_DATE.search(cleaned)
    if match:
        day, month, year = match.groups()
        formatted = _format_date(year, month, day)
        if formatted:
            return formatted
        logger.debug(f"Impossible date kept as recognized: {original!r}")
        return original

    match = YEAR_FIRST_DATE.search(cleaned)
    if match:
        year, month, day = match.groups()
        formatted = _format_date(year, month, day)
        if formatted:
            return formatted

    return original


def normalize_document_number(value: str) -> str:
    """
    Clean a document or license number.

    Removes leading prefixes (No, N°, #, CIN, ID), all whitespace, and
    uppercases the result.

    Example:
        >>> normalize_document_number("CIN: ab 123456")
        'AB123456'
    """

    def step(text: str) -> str:
        text = NUMBER_PREFIX_PATTERN.sub("", text.strip())
        return re.sub(r"\s+", "", text).upper()

    return _until_stable(value or "", step)


def normalize_license_category(value: str) -> str:
    """
    Map a license category code to its descriptive label.

    Only the first code is kept. Legacy codes map to their successor.
    Unknown codes and already-normalized labels pass through unchanged.

    Example:
        >>> normalize_license_category("b, c")
        'B - Car'
        >>> normalize_license_category("A2")
        'A - Large Motorcycle'
    """
    cleaned = normalize_whitespace(value or "")
    if cleaned in CATEGORY_LABELS.values():
        return cleaned

    tokens = [t for t in CATEGORY_SEPARATORS.split(cleaned) if t]
    if not tokens:
        return cleaned

    return CATEGORY_LABELS.get(tokens[0].upper(), cleaned)


def normalize_gender(value: str) -> str:
    """Map French/English/Arabic gender words to "Male" or "Female"."""
    cleaned = normalize_whitespace(value or "")
    return GENDER_VALUES.get(cleaned.lower(), cleaned)


FIELD_NORMALIZERS: Dict[str, Callable[[str], str]] = {
    "first_name": normalize_name,
    "last_name": normalize_name,
    "full_name": normalize_name,
    "first_name_arabic": normalize_whitespace,
    "last_name_arabic": normalize_whitespace,
    "date_of_birth": normalize_date,
    "issue_date": normalize_date,
    "expiry_date": normalize_date,
    "document_number": normalize_document_number,
    "license_number": normalize_document_number,
    "license_categories": normalize_license_category,
    "gender": normalize_gender,
}


class FieldNormalizer:
    """Applies per-field normalizers to an ExtractedFields record in place."""

    def normalize_value(self, field_name: str, value: Optional[str]) -> Optional[str]:
        """
        Normalize one value for a semantic field.

        Returns:
            Normalized value, or None when the value is empty after cleaning.
        """
        if value is None:
            return None
        normalizer = FIELD_NORMALIZERS.get(field_name, normalize_whitespace)
        cleaned = normalizer(value)
        return cleaned or None

    def normalize(self, fields: ExtractedFields) -> ExtractedFields:
        """
        Normalize every present field of a record in place.

        Fields that normalize to an empty string become absent.

        Returns:
            The same ExtractedFields instance.
        """
        for field_name, value in fields.present_fields().items():
            cleaned = self.normalize_value(field_name, value)
            if cleaned != value:
                logger.debug(f"Normalized {field_name}: {value!r} -> {cleaned!r}")
            fields.set_field(field_name, cleaned)
        return fields
