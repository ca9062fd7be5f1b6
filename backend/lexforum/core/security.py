"""
Caller context supplied by the identity collaborator.

Authentication happens upstream; the gateway forwards the resolved
identity as trusted headers and the core only consumes it.
"""

from dataclasses import dataclass

from fastapi import Header

from lexforum.core.exceptions import AuthorizationError

ADMIN_ROLE = "admin"


@dataclass(frozen=True, slots=True)
class CallerContext:
    """Identity and role claims of the acting caller."""

    user_id: int
    organization_id: int | None = None
    roles: tuple[str, ...] = ()

    def has_role(self, role: str) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        return self.has_role(ADMIN_ROLE)


def _parse_int(value: str | None, header: str) -> int | None:
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        raise AuthorizationError(f"Malformed {header} header")


async def get_caller(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    x_organization_id: str | None = Header(default=None, alias="X-Organization-Id"),
    x_user_roles: str | None = Header(default=None, alias="X-User-Roles"),
) -> CallerContext:
    """Resolve the caller context from gateway headers."""
    user_id = _parse_int(x_user_id, "X-User-Id")
    if user_id is None:
        raise AuthorizationError("Missing caller identity")

    roles = tuple(
        part.strip() for part in (x_user_roles or "").split(",") if part.strip()
    )
    return CallerContext(
        user_id=user_id,
        organization_id=_parse_int(x_organization_id, "X-Organization-Id"),
        roles=roles,
    )
