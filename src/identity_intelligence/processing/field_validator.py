"""
Field validation module for the Identity Intelligence System.

Checks a reconciled field set for missing critical fields, format problems,
inconsistent dates and low-confidence values, and produces a review report.
Validation never modifies fields; every record stays reviewable by a human.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, Iterable, List, Optional

from ..models.data_structures import (
    DocumentType,
    Severity,
    ValidationIssue,
    ValidationReport,
)
from ..utils.text_utils import contains_arabic

logger = logging.getLogger(__name__)

ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
NAME_PATTERN = re.compile(r"^[^\W\d_]+(?:[\s'\-.][^\W\d_]+)*$")

DATE_FIELDS = ("date_of_birth", "issue_date", "expiry_date")
NAME_FIELDS = ("first_name", "last_name", "full_name")
ARABIC_NAME_FIELDS = ("first_name_arabic", "last_name_arabic")


@dataclass
class FieldValidationConfig:
    """Configuration for field validation checks.

    Attributes:
        high_confidence: Scores at or above this need no review.
        medium_confidence: Scores below this raise a LOW issue.
        low_confidence: Scores below this raise a MEDIUM issue.
        minimum_acceptable: Scores below this raise a HIGH issue.
        check_expiry: Flag documents whose expiry date has passed.
        document_number_pattern: Expected national ID number format.
        license_number_patterns: Accepted license number formats.
        importance_weights: Field weights for the overall confidence.
    """

    high_confidence: float = 0.9
    medium_confidence: float = 0.7
    low_confidence: float = 0.5
    minimum_acceptable: float = 0.3
    check_expiry: bool = True

    document_number_pattern: str = r"^[A-Z]{0,2}\d{6,8}$"
    license_number_patterns: List[str] = field(
        default_factory=lambda: [r"^[A-Z]{1,2}\d{6,10}$", r"^\d+/\d+$"]
    )

    importance_weights: Dict[str, float] = field(
        default_factory=lambda: {
            "document_number": 0.25,
            "license_number": 0.25,
            "first_name": 0.15,
            "last_name": 0.15,
            "date_of_birth": 0.10,
            "expiry_date": 0.10,
            "place_of_birth": 0.05,
            "address": 0.05,
            "issue_date": 0.05,
            "place_of_issue": 0.05,
            "license_categories": 0.02,
            "restrictions": 0.02,
        }
    )

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        thresholds = [
            self.high_confidence,
            self.medium_confidence,
            self.low_confidence,
            self.minimum_acceptable,
        ]
        if any(not 0.0 <= t <= 1.0 for t in thresholds):
            raise ValueError("confidence thresholds must be between 0 and 1")
        if thresholds != sorted(thresholds, reverse=True):
            raise ValueError(
                "confidence thresholds must satisfy high >= medium >= low >= minimum"
            )
        if any(w < 0 for w in self.importance_weights.values()):
            raise ValueError("importance weights must be non-negative")


class FieldValidator:
    """Validates reconciled identity fields.

    Checks, in order:
        1. Critical field presence (names, document and license numbers)
        2. Number formats
        3. Date formats and consistency (future birth date, expiry)
        4. Name characters
        5. Per-field recognition confidence
        6. Defaulted fields needing confirmation

    Attributes:
        config: Validation configuration.
    """

    def __init__(self, config: Optional[FieldValidationConfig] = None) -> None:
        self.config = config or FieldValidationConfig()
        self._document_number_re = re.compile(self.config.document_number_pattern)
        self._license_number_res = [
            re.compile(p) for p in self.config.license_number_patterns
        ]

    def validate(
        self,
        fields: Dict[str, str],
        document_types: Iterable[DocumentType],
        field_scores: Optional[Dict[str, float]] = None,
        defaulted_fields: Iterable[str] = (),
        today: Optional[date] = None,
    ) -> ValidationReport:
        """Validate a merged field set.

        Args:
            fields: Present semantic fields.
            document_types: Document types that were supplied.
            field_scores: Field -> confidence of the entity that supplied it.
                Fields without a score (text patterns, defaults) skip the
                confidence check.
            defaulted_fields: Fields filled by the default-value policy.
            today: Reference date for expiry checks. Defaults to today.

        Returns:
            ValidationReport with issues, weighted confidence and actions.
        """
        types = frozenset(document_types)
        scores = dict(field_scores or {})
        defaulted = list(defaulted_fields)
        today = today or date.today()

        issues: List[ValidationIssue] = []
        issues.extend(self._check_presence(fields, types))
        issues.extend(self._check_numbers(fields))
        issues.extend(self._check_dates(fields, today))
        issues.extend(self._check_names(fields))
        issues.extend(self._check_confidence(fields, scores))
        for name in defaulted:
            issues.append(
                ValidationIssue(
                    name,
                    Severity.LOW,
                    f"{name} was not found on the documents and was defaulted",
                )
            )

        is_valid = not any(
            i.severity in (Severity.CRITICAL, Severity.HIGH) for i in issues
        )
        report = ValidationReport(
            is_valid=is_valid,
            issues=issues,
            overall_confidence=self._weighted_confidence(fields, scores, defaulted),
            recommended_actions=self._recommend(issues),
        )

        logger.info(
            f"Validation complete: {len(issues)} issue(s), valid={is_valid}, "
            f"confidence={report.overall_confidence:.2f}"
        )
        return report

    def _check_presence(
        self, fields: Dict[str, str], types: FrozenSet[DocumentType]
    ) -> List[ValidationIssue]:
        issues = []
        if not fields:
            issues.append(
                ValidationIssue("*", Severity.CRITICAL, "No field could be extracted")
            )
            return issues

        for name in ("first_name", "last_name"):
            if name not in fields:
                issues.append(ValidationIssue(name, Severity.HIGH, f"{name} missing"))

        if DocumentType.ID in types and "document_number" not in fields:
            issues.append(
                ValidationIssue(
                    "document_number", Severity.HIGH, "National ID number missing"
                )
            )
        if DocumentType.LICENSE in types and "license_number" not in fields:
            issues.append(
                ValidationIssue(
                    "license_number", Severity.HIGH, "License number missing"
                )
            )
        if "date_of_birth" not in fields:
            issues.append(
                ValidationIssue("date_of_birth", Severity.MEDIUM, "Birth date missing")
            )
        return issues

    def _check_numbers(self, fields: Dict[str, str]) -> List[ValidationIssue]:
        issues = []
        number = fields.get("document_number")
        if number and not self._document_number_re.match(number):
            issues.append(
                ValidationIssue(
                    "document_number",
                    Severity.MEDIUM,
                    f"Unexpected national ID number format: {number}",
                )
            )

        license_number = fields.get("license_number")
        if license_number and not any(
            p.match(license_number) for p in self._license_number_res
        ):
            issues.append(
                ValidationIssue(
                    "license_number",
                    Severity.MEDIUM,
                    f"Unexpected license number format: {license_number}",
                )
            )
        return issues

    def _check_dates(self, fields: Dict[str, str], today: date) -> List[ValidationIssue]:
        issues = []
        parsed: Dict[str, date] = {}

        for name in DATE_FIELDS:
            value = fields.get(name)
            if value is None:
                continue
            value_date = _parse_iso_date(value)
            if value_date is None:
                issues.append(
                    ValidationIssue(
                        name, Severity.MEDIUM, f"Unrecognized date format: {value}"
                    )
                )
                continue
            parsed[name] = value_date

        birth = parsed.get("date_of_birth")
        if birth and birth > today:
            issues.append(
                ValidationIssue(
                    "date_of_birth", Severity.HIGH, "Birth date is in the future"
                )
            )

        issued = parsed.get("issue_date")
        expiry = parsed.get("expiry_date")
        if issued and expiry and issued > expiry:
            issues.append(
                ValidationIssue(
                    "issue_date", Severity.MEDIUM, "Issue date is after expiry date"
                )
            )
        if issued and birth and issued < birth:
            issues.append(
                ValidationIssue(
                    "issue_date", Severity.MEDIUM, "Issue date is before birth date"
                )
            )
        if self.config.check_expiry and expiry and expiry < today:
            issues.append(
                ValidationIssue(
                    "expiry_date",
                    Severity.MEDIUM,
                    f"Document expired on {expiry.isoformat()}",
                )
            )
        return issues

    def _check_names(self, fields: Dict[str, str]) -> List[ValidationIssue]:
        issues = []
        for name in NAME_FIELDS:
            value = fields.get(name)
            if value and not NAME_PATTERN.match(value):
                issues.append(
                    ValidationIssue(
                        name, Severity.LOW, f"Unexpected characters in name: {value}"
                    )
                )
            elif value and contains_arabic(value):
                issues.append(
                    ValidationIssue(name, Severity.LOW, "Arabic script in Latin name field")
                )
        for name in ARABIC_NAME_FIELDS:
            value = fields.get(name)
            if value and not contains_arabic(value):
                issues.append(
                    ValidationIssue(name, Severity.LOW, f"Expected Arabic script: {value}")
                )
        return issues

    def _check_confidence(
        self, fields: Dict[str, str], scores: Dict[str, float]
    ) -> List[ValidationIssue]:
        issues = []
        for name in fields:
            score = scores.get(name)
            if score is None or score >= self.config.medium_confidence:
                continue
            if score < self.config.minimum_acceptable:
                severity = Severity.HIGH
            elif score < self.config.low_confidence:
                severity = Severity.MEDIUM
            else:
                severity = Severity.LOW
            issues.append(
                ValidationIssue(name, severity, f"Low recognition confidence ({score:.2f})")
            )
        return issues

    def _weighted_confidence(
        self, fields: Dict[str, str], scores: Dict[str, float], defaulted: List[str]
    ) -> float:
        """Importance-weighted mean of field scores.

        Unscored present fields count at the low threshold; defaulted fields
        count as zero.
        """
        total_weight = 0.0
        weighted = 0.0
        for name, weight in self.config.importance_weights.items():
            if name not in fields or weight == 0:
                continue
            if name in defaulted:
                score = 0.0
            else:
                score = scores.get(name, self.config.low_confidence)
            total_weight += weight
            weighted += weight * score
        if total_weight == 0:
            return 0.0
        return weighted / total_weight

    @staticmethod
    def _recommend(issues: List[ValidationIssue]) -> List[str]:
        actions: List[str] = []

        def add(action: str) -> None:
            if action not in actions:
                actions.append(action)

        for issue in issues:
            if issue.field_name == "*":
                add("Re-capture the document images")
            elif "missing" in issue.message:
                add(f"Enter {issue.field_name} manually from the document")
            elif "expired" in issue.message:
                add("Ask the client for a valid document")
            elif "defaulted" in issue.message:
                add(f"Confirm the defaulted {issue.field_name}")
            else:
                add(f"Verify {issue.field_name} against the document")
        return actions


def _parse_iso_date(value: str) -> Optional[date]:
    match = ISO_DATE.match(value)
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None
