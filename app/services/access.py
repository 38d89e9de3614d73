from uuid import UUID
from typing import Union

from app.core.exceptions import Unauthorized
from app.schemas.auth import Principal, Role


def has_outlet_access(principal: Principal, outlet_id: Union[UUID, str]) -> bool:
    """
    Operators act on outlets they are assigned to. A super admin, or an admin
    with no assignments at all, is unrestricted.
    """
    if principal.role == Role.SUPER_ADMIN:
        return True
    if principal.role != Role.ADMIN:
        return False
    if not principal.outlet_ids:
        return True
    return str(outlet_id) in principal.outlet_ids


def require_outlet_access(principal: Principal, outlet_id: Union[UUID, str]) -> None:
    if not has_outlet_access(principal, outlet_id):
        raise Unauthorized("Access denied: you don't have permission for this outlet")


def require_order_access(principal: Principal, order) -> None:
    """Owners see their own orders; operators see orders of their outlets."""
    if order.user_id == principal.user_id:
        return
    if has_outlet_access(principal, order.outlet_id):
        return
    raise Unauthorized("Access denied")
