"""
Tenant reference data loader.

Builds the immutable lookup snapshot the row validator checks uploaded rows
against. The four reads share nothing, so each runs on its own session in a
thread pool and the results are joined before validation starts.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from bulk_upload.core.exceptions import ReferenceDataError
from bulk_upload.models.organization import Department, Employee, JobRole, OfficeLocation

logger = logging.getLogger(__name__)


def normalize_key(value: str) -> str:
    """Lookup key used on both sides of every case-insensitive match."""
    return (value or "").strip().lower()


@dataclass(frozen=True)
class ReferenceEntry:
    """A department or job role as seen by the validator."""
    id: UUID
    is_active: bool


@dataclass(frozen=True)
class ReferenceContext:
    """
    Case-insensitive lookups for one tenant.

    - departments: lowercase name -> ReferenceEntry
    - job_roles: lowercase title -> ReferenceEntry
    - existing_emails: lowercase emails already used by the tenant
    - locations: lowercase office address -> location id
    """
    departments: Mapping[str, ReferenceEntry] = field(default_factory=dict)
    job_roles: Mapping[str, ReferenceEntry] = field(default_factory=dict)
    existing_emails: FrozenSet[str] = frozenset()
    locations: Mapping[str, UUID] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        departments: Dict[str, ReferenceEntry],
        job_roles: Dict[str, ReferenceEntry],
        existing_emails,
        locations: Dict[str, UUID],
    ) -> "ReferenceContext":
        return cls(
            departments=MappingProxyType(dict(departments)),
            job_roles=MappingProxyType(dict(job_roles)),
            existing_emails=frozenset(existing_emails),
            locations=MappingProxyType(dict(locations)),
        )


def fetch_departments(db: Session, organization_id: UUID) -> Dict[str, ReferenceEntry]:
    stmt = select(Department.id, Department.name, Department.is_active).where(
        Department.organization_id == organization_id
    )
    return {
        normalize_key(name): ReferenceEntry(id=dept_id, is_active=bool(is_active))
        for dept_id, name, is_active in db.execute(stmt)
        if name
    }


def fetch_job_roles(db: Session, organization_id: UUID) -> Dict[str, ReferenceEntry]:
    stmt = select(JobRole.id, JobRole.title, JobRole.is_active).where(
        JobRole.organization_id == organization_id
    )
    return {
        normalize_key(title): ReferenceEntry(id=role_id, is_active=bool(is_active))
        for role_id, title, is_active in db.execute(stmt)
        if title
    }


def fetch_existing_emails(db: Session, organization_id: UUID) -> set:
    stmt = select(Employee.email).where(
        Employee.organization_id == organization_id,
        Employee.email.is_not(None),
    )
    return {normalize_key(email) for email in db.execute(stmt).scalars() if email}


def fetch_locations(db: Session, organization_id: UUID) -> Dict[str, UUID]:
    stmt = select(OfficeLocation.id, OfficeLocation.address).where(
        OfficeLocation.organization_id == organization_id
    )
    # Locations without an address can never be matched
    return {
        normalize_key(address): location_id
        for location_id, address in db.execute(stmt)
        if address and address.strip()
    }


READERS: Dict[str, Callable[[Session, UUID], object]] = {
    "departments": fetch_departments,
    "job roles": fetch_job_roles,
    "employee emails": fetch_existing_emails,
    "office locations": fetch_locations,
}


def _run_read(session_factory: sessionmaker, reader: Callable, organization_id: UUID):
    # Sessions are not thread-safe; every read gets its own
    db = session_factory()
    try:
        return reader(db, organization_id)
    finally:
        db.close()


def load_reference_context(
    session_factory: sessionmaker,
    organization_id: UUID,
    max_workers: int = 4,
) -> ReferenceContext:
    """
    Load the tenant's reference data with the four reads issued concurrently.

    Raises:
        ReferenceDataError: if any read fails. Partial reference data would
            misclassify rows, so there is no degraded mode.
    """
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="reference-data") as executor:
        futures = {
            source: executor.submit(_run_read, session_factory, reader, organization_id)
            for source, reader in READERS.items()
        }

        results = {}
        for source, future in futures.items():
            try:
                results[source] = future.result()
            except SQLAlchemyError as e:
                logger.error(
                    "Reference data read failed for organization %s: %s",
                    organization_id, source, exc_info=True,
                )
                raise ReferenceDataError(source, str(e.__class__.__name__)) from e

    context = ReferenceContext.build(
        departments=results["departments"],
        job_roles=results["job roles"],
        existing_emails=results["employee emails"],
        locations=results["office locations"],
    )
    logger.info(
        "Loaded reference data for organization %s: %d departments, %d job roles, "
        "%d existing emails, %d locations",
        organization_id,
        len(context.departments),
        len(context.job_roles),
        len(context.existing_emails),
        len(context.locations),
    )
    return context
