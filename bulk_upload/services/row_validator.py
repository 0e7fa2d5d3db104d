"""
Row validator for uploaded employee rows.

Every rule is evaluated for every row and all violations are reported
together, so a row with several problems surfaces all of them at once.

Intra-file duplicate detection is the one sequential dependency: a set of
emails seen in earlier rows is passed explicitly into each call, and a row's
email is added to it only after that row has been evaluated. The first
occurrence of an email is therefore never flagged, every later one is.
"""
import re
from datetime import datetime
from typing import Dict, Iterable, List, MutableSet, Optional, Sequence, Set

from dateutil import parser as date_parser
from pydantic import BaseModel, Field

from bulk_upload.core.fields import (
    CONTRACT_TYPE_VALUES,
    EMPLOYMENT_STATUS_VALUES,
    GENDER_VALUES,
)
from bulk_upload.schemas.bulk_upload import PreviewRow, RowStatus
from bulk_upload.services.reference_data import ReferenceContext, normalize_key

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ERROR_SEPARATOR = "; "

_DATE_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))

REQUIRED_TEXT_FIELDS = ("first_name", "last_name", "start_date")

ENUM_FIELDS = (
    ("gender", GENDER_VALUES),
    ("contract_type", CONTRACT_TYPE_VALUES),
    ("employment_status", EMPLOYMENT_STATUS_VALUES),
)

DATE_FIELDS = ("start_date", "end_date")


class ImportRow(BaseModel):
    """A canonical row and its verdict for one validation pass."""
    row_number: int = Field(description="1-based position in the file body, header excluded")
    data: Dict[str, str]
    errors: List[str] = Field(default_factory=list)

    @property
    def status(self) -> RowStatus:
        return RowStatus.INVALID if self.errors else RowStatus.VALID

    @property
    def error_message(self) -> Optional[str]:
        return ERROR_SEPARATOR.join(self.errors) if self.errors else None

    def to_preview(self) -> PreviewRow:
        return PreviewRow(
            row_number=self.row_number,
            data=self.data,
            status=self.status,
            error_message=self.error_message,
        )


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_REGEX.match(email))


def is_valid_date(value: str) -> bool:
    """
    True if the value names a full calendar date.

    dateutil fills missing parts from its default, so the value is parsed
    against two defaults that differ in year, month and day. Only a value
    carrying all three parses to the same date both times.
    """
    try:
        first = date_parser.parse(value, default=_DATE_DEFAULTS[0])
        second = date_parser.parse(value, default=_DATE_DEFAULTS[1])
    except (ValueError, OverflowError):
        return False
    return first.date() == second.date()


def _field(row: Dict[str, str], name: str) -> str:
    return (row.get(name) or "").strip()


def _check_email(
    email: str,
    context: ReferenceContext,
    seen_emails: Set[str],
    duplicate: Optional[bool] = None,
) -> Optional[str]:
    if not email:
        return "email is required"
    if not is_valid_email(email):
        return "email is not a valid email address"
    if email in context.existing_emails:
        return "email already exists in this organization"
    is_duplicate = email in seen_emails if duplicate is None else duplicate
    if is_duplicate:
        return "email is duplicated within this upload"
    return None


def _check_reference(field_name: str, raw: str, lookup) -> Optional[str]:
    if not raw:
        return f"{field_name} is required"
    entry = lookup.get(normalize_key(raw))
    if entry is None:
        return f'{field_name} "{raw}" does not exist in this organization'
    if not entry.is_active:
        return f'{field_name} "{raw}" is inactive'
    return None


def _collect_errors(
    row: Dict[str, str],
    context: ReferenceContext,
    seen_emails: Set[str],
    duplicate: Optional[bool] = None,
) -> List[str]:
    errors: List[str] = []

    for name in REQUIRED_TEXT_FIELDS:
        if not _field(row, name):
            errors.append(f"{name} is required")

    email_error = _check_email(normalize_key(row.get("email", "")), context, seen_emails, duplicate)
    if email_error:
        errors.append(email_error)

    for name, allowed in ENUM_FIELDS:
        value = _field(row, name)
        if value and value.lower() not in allowed:
            errors.append(f"{name} must be one of: {', '.join(allowed)}")

    for name in DATE_FIELDS:
        value = _field(row, name)
        if value and not is_valid_date(value):
            errors.append(f"{name} must be a valid date (YYYY-MM-DD)")

    department_error = _check_reference("department", _field(row, "department"), context.departments)
    if department_error:
        errors.append(department_error)

    job_role_error = _check_reference("job_role", _field(row, "job_role"), context.job_roles)
    if job_role_error:
        errors.append(job_role_error)

    work_location = _field(row, "work_location")
    if work_location and normalize_key(work_location) not in context.locations:
        errors.append(
            f'work_location "{work_location}" does not match any office address in this organization'
        )

    return errors


def validate_row(
    row: Dict[str, str],
    context: ReferenceContext,
    seen_emails: MutableSet[str],
) -> List[str]:
    """
    Validate one canonical row.

    Args:
        row: Canonical field map
        context: Tenant reference data
        seen_emails: Lowercase emails of earlier rows in this file. A
            syntactically valid email is added after the row is evaluated.

    Returns:
        Violation messages in rule order; empty means the row is valid.
    """
    errors = _collect_errors(row, context, seen_emails)

    email = normalize_key(row.get("email", ""))
    if email and is_valid_email(email):
        seen_emails.add(email)

    return errors


def validate_rows(rows: Sequence[Dict[str, str]], context: ReferenceContext) -> List[ImportRow]:
    """Validate decoded rows in file order with a fresh seen-email set."""
    seen_emails: Set[str] = set()
    return [
        ImportRow(row_number=index, data=dict(row), errors=validate_row(row, context, seen_emails))
        for index, row in enumerate(rows, start=1)
    ]


def first_occurrence_index(rows: Iterable[Dict[str, str]]) -> Dict[str, int]:
    """
    Deterministic duplicate pre-pass: position of the first row carrying each
    syntactically valid, normalized email.
    """
    first_seen: Dict[str, int] = {}
    for index, row in enumerate(rows):
        email = normalize_key(row.get("email", ""))
        if email and is_valid_email(email):
            first_seen.setdefault(email, index)
    return first_seen


def validate_rows_independently(
    rows: Sequence[Dict[str, str]],
    context: ReferenceContext,
) -> List[ImportRow]:
    """
    Validate rows without threading state between them.

    Duplicates are resolved up front by first_occurrence_index, after which
    each row can be checked on its own. Verdicts match validate_rows exactly.
    """
    first_seen = first_occurrence_index(rows)
    results = []
    for index, row in enumerate(rows):
        email = normalize_key(row.get("email", ""))
        duplicate = email in first_seen and first_seen[email] < index
        errors = _collect_errors(row, context, set(), duplicate=duplicate)
        results.append(ImportRow(row_number=index + 1, data=dict(row), errors=errors))
    return results
