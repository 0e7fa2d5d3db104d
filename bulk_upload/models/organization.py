"""
Tenant reference data consulted while validating uploaded rows.

These tables are owned by the wider HR system; only the columns the bulk
upload validator reads are mapped here.
"""
import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Uuid, func
from sqlalchemy.orm import relationship

from bulk_upload.db.base import Base


class Organization(Base):
    """A tenant. Every other table is scoped by organization_id."""
    __tablename__ = "organizations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class Department(Base):
    __tablename__ = "departments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    organization = relationship("Organization")


class JobRole(Base):
    __tablename__ = "job_roles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    organization = relationship("Organization")


class Employee(Base):
    """Existing staff record; the validator only reads the email column."""
    __tablename__ = "employees"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name = Column(String(255))
    last_name = Column(String(255))
    email = Column(String(255))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    organization = relationship("Organization")


class OfficeLocation(Base):
    """Office address a work_location value must match."""
    __tablename__ = "organization_locations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    address = Column(String(500))
    created_at = Column(DateTime, server_default=func.now())

    organization = relationship("Organization")
