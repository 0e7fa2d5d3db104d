"""
Request identity resolved upstream.

Authentication, tenant resolution and permission checks happen in the API
gateway in front of this service, which forwards the results as headers.
"""
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Header, HTTPException, status

ORGANIZATION_HEADER = "X-Organization-ID"
USER_HEADER = "X-User-ID"


@dataclass(frozen=True)
class RequestIdentity:
    user_id: UUID
    organization_id: UUID


def _parse_uuid(value: Optional[str], header: str) -> UUID:
    if not value:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {header} header",
        )
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid {header} header",
        )


def get_current_identity(
    x_user_id: Optional[str] = Header(None, alias=USER_HEADER),
    x_organization_id: Optional[str] = Header(None, alias=ORGANIZATION_HEADER),
) -> RequestIdentity:
    """Dependency returning the caller's user and organization."""
    return RequestIdentity(
        user_id=_parse_uuid(x_user_id, USER_HEADER),
        organization_id=_parse_uuid(x_organization_id, ORGANIZATION_HEADER),
    )
