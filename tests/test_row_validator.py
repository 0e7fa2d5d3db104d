"""
Unit tests for the row validator.

Tests required fields, email rules including intra-file duplicates, enum and
date checks, and organization-scoped reference lookups.
"""
import uuid

import pytest

from bulk_upload.core.fields import TEMPLATE_HEADERS
from bulk_upload.schemas.bulk_upload import RowStatus
from bulk_upload.services.reference_data import ReferenceContext, ReferenceEntry
from bulk_upload.services.row_validator import (
    first_occurrence_index,
    is_valid_date,
    validate_row,
    validate_rows,
    validate_rows_independently,
)


@pytest.fixture
def context() -> ReferenceContext:
    return ReferenceContext.build(
        departments={
            "engineering": ReferenceEntry(id=uuid.uuid4(), is_active=True),
            "legacy ops": ReferenceEntry(id=uuid.uuid4(), is_active=False),
        },
        job_roles={
            "software engineer": ReferenceEntry(id=uuid.uuid4(), is_active=True),
            "switchboard operator": ReferenceEntry(id=uuid.uuid4(), is_active=False),
        },
        existing_emails={"existing@acme.test"},
        locations={"12 admiralty way, lekki, lagos": uuid.uuid4()},
    )


def make_row(**overrides) -> dict:
    row = {field: "" for field in TEMPLATE_HEADERS}
    row.update({
        "first_name": "Jane",
        "last_name": "Doe",
        "email": "jane.doe@acme.test",
        "start_date": "2024-01-15",
        "department": "Engineering",
        "job_role": "Software Engineer",
    })
    row.update(overrides)
    return row


class TestRequiredFields:
    """Test required non-empty fields."""

    def test_valid_row_has_no_errors(self, context):
        assert validate_row(make_row(), context, set()) == []

    def test_missing_required_fields_all_reported(self, context):
        row = make_row(first_name="", last_name="  ", start_date="", department="", job_role="")
        errors = validate_row(row, context, set())
        assert errors == [
            "first_name is required",
            "last_name is required",
            "start_date is required",
            "department is required",
            "job_role is required",
        ]

    def test_optional_fields_may_be_blank(self, context):
        row = make_row(gender="", contract_type="", employment_status="", end_date="", work_location="")
        assert validate_row(row, context, set()) == []


class TestEmail:
    """Test email presence, shape, and uniqueness."""

    def test_email_required(self, context):
        assert validate_row(make_row(email=""), context, set()) == ["email is required"]

    @pytest.mark.parametrize("email", ["jane", "jane@acme", "jane doe@acme.test", "@acme.test"])
    def test_invalid_email_shape(self, context, email):
        errors = validate_row(make_row(email=email), context, set())
        assert errors == ["email is not a valid email address"]

    def test_existing_email_case_insensitive(self, context):
        errors = validate_row(make_row(email="EXISTING@acme.test"), context, set())
        assert errors == ["email already exists in this organization"]

    def test_email_seen_earlier_is_duplicate(self, context):
        errors = validate_row(make_row(email="Jane.Doe@ACME.test"), context, {"jane.doe@acme.test"})
        assert errors == ["email is duplicated within this upload"]

    def test_valid_email_added_to_seen_set_after_evaluation(self, context):
        seen = set()
        assert validate_row(make_row(email="New@Acme.test"), context, seen) == []
        assert seen == {"new@acme.test"}

    def test_invalid_email_not_added_to_seen_set(self, context):
        seen = set()
        validate_row(make_row(email="not-an-email"), context, seen)
        assert seen == set()


class TestIntraFileDuplicates:
    """First occurrence of an email is never flagged; every later one is."""

    def test_first_occurrence_never_flagged(self, context):
        rows = [make_row(email="a@b.com"), make_row(email="A@B.com"), make_row(email="a@b.com")]
        results = validate_rows(rows, context)

        assert results[0].errors == []
        assert results[1].errors == ["email is duplicated within this upload"]
        assert results[2].errors == ["email is duplicated within this upload"]

    def test_rows_two_and_four_share_email(self, context):
        rows = [
            make_row(email="first@acme.test"),
            make_row(email="a@b.com"),
            make_row(email="third@acme.test"),
            make_row(email="a@b.com"),
        ]
        results = validate_rows(rows, context)

        assert [r.status for r in results] == [
            RowStatus.VALID, RowStatus.VALID, RowStatus.VALID, RowStatus.INVALID,
        ]
        assert results[3].error_message == "email is duplicated within this upload"

    def test_row_numbers_follow_file_order(self, context):
        results = validate_rows([make_row(email=f"p{i}@acme.test") for i in range(3)], context)
        assert [r.row_number for r in results] == [1, 2, 3]

    def test_revalidation_is_idempotent(self, context):
        rows = [
            make_row(email="a@b.com"),
            make_row(email="a@b.com", department="Nowhere"),
            make_row(email="bad", gender="robot"),
        ]
        first = [r.errors for r in validate_rows(rows, context)]
        second = [r.errors for r in validate_rows(rows, context)]
        assert first == second

    def test_pre_pass_matches_sequential_validation(self, context):
        rows = [
            make_row(email="x@acme.test"),
            make_row(email="bad-email"),
            make_row(email="X@ACME.test", job_role="Nope"),
            make_row(email="existing@acme.test"),
            make_row(email="existing@acme.test"),
            make_row(email="x@acme.test"),
        ]
        sequential = [r.errors for r in validate_rows(rows, context)]
        independent = [r.errors for r in validate_rows_independently(rows, context)]
        assert sequential == independent

    def test_first_occurrence_index(self):
        rows = [{"email": "A@b.com"}, {"email": "nope"}, {"email": "a@B.com"}, {"email": "c@d.com"}]
        assert first_occurrence_index(rows) == {"a@b.com": 0, "c@d.com": 3}


class TestEnumsAndDates:
    """Test enumerated and date fields."""

    def test_enum_values_case_insensitive(self, context):
        row = make_row(gender="Female", contract_type="PART_TIME", employment_status="Probation")
        assert validate_row(row, context, set()) == []

    def test_invalid_enum_values_reported(self, context):
        row = make_row(gender="robot", contract_type="gig", employment_status="retired")
        errors = validate_row(row, context, set())
        assert errors == [
            "gender must be one of: male, female, other, prefer_not_to_say",
            "contract_type must be one of: permanent, part_time, fixed_term, contractor, intern, temporary",
            "employment_status must be one of: probation, confirmed",
        ]

    def test_invalid_dates_reported(self, context):
        errors = validate_row(make_row(start_date="not-a-date", end_date="2024-13-45"), context, set())
        assert errors == [
            "start_date must be a valid date (YYYY-MM-DD)",
            "end_date must be a valid date (YYYY-MM-DD)",
        ]

    @pytest.mark.parametrize("value", ["2024-01-15", "15/01/2024", "Jan 15 2024"])
    def test_is_valid_date(self, value):
        assert is_valid_date(value)

    @pytest.mark.parametrize("value", ["Monday", "May", "5", "at 3pm", "noon", "2024", "May 2024", "15 May"])
    def test_partial_dates_rejected(self, value):
        assert not is_valid_date(value)

    def test_weekday_start_date_reported(self, context):
        errors = validate_row(make_row(start_date="Monday"), context, set())
        assert errors == ["start_date must be a valid date (YYYY-MM-DD)"]


class TestReferenceLookups:
    """Test organization-scoped department, job role, and location checks."""

    def test_department_lookup_case_insensitive(self, context):
        assert validate_row(make_row(department="ENGINEERING"), context, set()) == []

    def test_unknown_department(self, context):
        errors = validate_row(make_row(department="Marketing"), context, set())
        assert errors == ['department "Marketing" does not exist in this organization']

    def test_inactive_department(self, context):
        errors = validate_row(make_row(department="Legacy Ops"), context, set())
        assert errors == ['department "Legacy Ops" is inactive']

    def test_unknown_and_inactive_job_roles(self, context):
        assert validate_row(make_row(job_role="Astronaut"), context, set()) == [
            'job_role "Astronaut" does not exist in this organization'
        ]
        assert validate_row(make_row(job_role="switchboard operator"), context, set()) == [
            'job_role "switchboard operator" is inactive'
        ]

    def test_work_location_must_match_office(self, context):
        assert validate_row(make_row(work_location="12 ADMIRALTY WAY, LEKKI, LAGOS"), context, set()) == []
        errors = validate_row(make_row(work_location="Mars Base"), context, set())
        assert errors == ['work_location "Mars Base" does not match any office address in this organization']

    def test_all_violations_reported_together(self, context):
        row = make_row(first_name="", email="bad", gender="robot", department="Nowhere", work_location="Moon")
        result = validate_rows([row], context)[0]

        assert result.status == RowStatus.INVALID
        assert len(result.errors) == 5
        assert result.error_message == "; ".join(result.errors)
