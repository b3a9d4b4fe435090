"""Workspace permission gate.

Roles map to the set of actions they may perform. ``ADMIN`` bypasses the map
entirely.
"""

from enum import Enum

import structlog
from protean.utils.globals import current_domain

from backoffice.customer.user import User
from backoffice.exceptions import PermissionDeniedError, UnauthorizedError
from backoffice.workspace.workspace import MemberRole, WorkspaceMember

logger = structlog.get_logger(__name__)


class Action(Enum):
    VIEW_ORDERS = "view_orders"
    CREATE_ORDER = "create_order"
    UPDATE_ORDER = "update_order"
    UPDATE_ORDER_STATUS = "update_order_status"
    CANCEL_ORDER = "cancel_order"
    DELETE_ORDER = "delete_order"
    EXPORT_ORDERS = "export_orders"
    ASSIGN_DELIVERY = "assign_delivery"
    NOTIFY_ORDER = "notify_order"


ROLE_PERMISSIONS = {
    MemberRole.MANAGER: {
        Action.VIEW_ORDERS,
        Action.CREATE_ORDER,
        Action.UPDATE_ORDER,
        Action.UPDATE_ORDER_STATUS,
        Action.CANCEL_ORDER,
        Action.EXPORT_ORDERS,
        Action.ASSIGN_DELIVERY,
        Action.NOTIFY_ORDER,
    },
    MemberRole.STAFF: {
        Action.VIEW_ORDERS,
        Action.CREATE_ORDER,
        Action.UPDATE_ORDER_STATUS,
    },
    MemberRole.CUSTOMER: {
        Action.VIEW_ORDERS,
        Action.CREATE_ORDER,
    },
}


def check_permission(workspace_id, user_id, action: Action) -> MemberRole:
    """Raise unless ``user_id`` may perform ``action`` in ``workspace_id``.

    Returns the member's role so callers can make role-dependent decisions.
    """
    if not user_id:
        raise UnauthorizedError("An acting user is required")

    if not current_domain.repository_for(User).exists(user_id):
        raise UnauthorizedError(f"Unknown user {user_id}")

    member = current_domain.repository_for(WorkspaceMember).membership(workspace_id, user_id)
    if member is None:
        logger.warning("permission_denied", workspace_id=workspace_id, user_id=user_id, action=action.value)
        raise PermissionDeniedError(f"User {user_id} is not a member of workspace {workspace_id}")

    role = MemberRole(member.role)
    if role is MemberRole.ADMIN or action in ROLE_PERMISSIONS.get(role, set()):
        return role

    logger.warning(
        "permission_denied",
        workspace_id=workspace_id,
        user_id=user_id,
        role=role.value,
        action=action.value,
    )
    raise PermissionDeniedError(f"Role {role.value} may not {action.value.replace('_', ' ')}")
