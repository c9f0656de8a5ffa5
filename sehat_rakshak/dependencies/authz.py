# sehat_rakshak/dependencies/authz.py
from typing import Iterable

from fastapi import Depends, HTTPException, status

from sehat_rakshak.core.tenant_context import TenantContext, get_tenant_context
from sehat_rakshak.models.user import AppRole


def require_roles(required_roles: Iterable[AppRole]):
    """
    Dependency factory for role-based access on hospital-scoped routes.

    Usage:

    @router.post("/prescriptions")
    def create(ctx: TenantContext = Depends(require_roles([AppRole.DOCTOR]))):
        ...

    Returns the TenantContext if the current user has one of the required roles.
    """

    required = {r.value if isinstance(r, AppRole) else str(r) for r in required_roles}

    def dependency(ctx: TenantContext = Depends(get_tenant_context)) -> TenantContext:
        if ctx.user.role.value not in required:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role permissions.",
            )
        return ctx

    return dependency


CLINICAL_ROLES = (AppRole.DOCTOR, AppRole.HOSPITALADMIN)
FRONT_DESK_ROLES = (AppRole.RECEPTIONIST, AppRole.DOCTOR, AppRole.HOSPITALADMIN)
STAFF_ROLES = (
    AppRole.HOSPITALADMIN,
    AppRole.DOCTOR,
    AppRole.RECEPTIONIST,
    AppRole.CAREMANAGER,
)
