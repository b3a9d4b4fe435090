"""Workspace aggregate (the tenant) and workspace membership."""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Identifier, String

from backoffice.domain import backoffice


class MemberRole(Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    STAFF = "STAFF"
    CUSTOMER = "CUSTOMER"


@backoffice.aggregate
class Workspace:
    """A tenant. Variants, orders and notifications are all scoped to one."""

    name = String(required=True, max_length=255)
    contact_email = String(max_length=255)
    created_at = DateTime()

    @classmethod
    def create(cls, name, contact_email=None):
        return cls(name=name, contact_email=contact_email, created_at=datetime.now(UTC))


@backoffice.aggregate
class WorkspaceMember:
    """Grants a user a role inside a workspace."""

    workspace_id = Identifier(required=True)
    user_id = Identifier(required=True)
    role = String(choices=MemberRole, default=MemberRole.CUSTOMER.value)
    joined_at = DateTime()

    @classmethod
    def create(cls, workspace_id, user_id, role=MemberRole.CUSTOMER):
        return cls(
            workspace_id=workspace_id,
            user_id=user_id,
            role=MemberRole(role).value,
            joined_at=datetime.now(UTC),
        )


@backoffice.repository(part_of=WorkspaceMember)
class WorkspaceMemberRepository:
    def membership(self, workspace_id, user_id):
        members = self._dao.query.filter(workspace_id=workspace_id, user_id=user_id).all().items
        return members[0] if members else None

    def notice_recipients(self, workspace_id):
        """Members that receive internal order notices: admins and managers."""
        members = self._dao.query.filter(workspace_id=workspace_id).all().items
        return [m for m in members if m.role in (MemberRole.ADMIN.value, MemberRole.MANAGER.value)]
