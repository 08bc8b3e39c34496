"""Lookup and authorization guards shared by the lifecycle services"""
from typing import Optional, Iterable
from agri_rental.core.enums import UserRole
from agri_rental.core.exceptions import NotFoundError, ForbiddenError


def check_not_found(item, resource_name: str = "Resource", resource_id: Optional[str] = None) -> None:

    if item is None:
        raise NotFoundError(resource_name, resource_id)


def check_role(actor, roles: Iterable[UserRole], action: str) -> None:

    allowed = set(roles)
    if actor is None or actor.role not in allowed:
        names = ", ".join(sorted(str(r) for r in allowed))
        raise ForbiddenError(f"Forbidden: {action} requires role {names}")


def check_requester(order, actor, action: str = "change it") -> None:

    if actor is None or order.requester_id != actor.id:
        raise ForbiddenError(
            f"Forbidden: only the requester of order {order.id} can {action}",
            {"action": action},
        )


def is_admin(actor) -> bool:
    return actor is not None and actor.role == UserRole.ADMIN
