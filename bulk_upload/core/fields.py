"""
Canonical employee row fields shared by the decoder, validator and template.

The field order is the business contract exchanged between the preview and
confirm calls and used as the column order of downloaded templates.
"""
from typing import Dict, Tuple

TEMPLATE_HEADERS: Tuple[str, ...] = (
    "staff_id",
    "first_name",
    "last_name",
    "email",
    "phone_number",
    "gender",
    "contract_type",
    "employment_status",
    "start_date",
    "end_date",
    "department",
    "job_role",
    "work_location",
)

GENDER_VALUES: Tuple[str, ...] = ("male", "female", "other", "prefer_not_to_say")

CONTRACT_TYPE_VALUES: Tuple[str, ...] = (
    "permanent",
    "part_time",
    "fixed_term",
    "contractor",
    "intern",
    "temporary",
)

EMPLOYMENT_STATUS_VALUES: Tuple[str, ...] = ("probation", "confirmed")

EXAMPLE_ROW: Dict[str, str] = {
    "staff_id": "EMP001",
    "first_name": "Jane",
    "last_name": "Doe",
    "email": "jane.doe@example.com",
    "phone_number": "+2348012345678",
    "gender": "female",
    "contract_type": "permanent",
    "employment_status": "confirmed",
    "start_date": "2024-01-15",
    "end_date": "",
    "department": "Engineering",
    "job_role": "Software Engineer",
    "work_location": "12 Admiralty Way, Lekki, Lagos",
}


def empty_row() -> Dict[str, str]:
    """Canonical row with every field present and blank."""
    return {field: "" for field in TEMPLATE_HEADERS}
