import pytest
from backoffice.exceptions import PermissionDeniedError, UnauthorizedError
from backoffice.workspace.permissions import Action, check_permission
from backoffice.workspace.workspace import MemberRole


@pytest.mark.parametrize("action", list(Action))
def test_admin_may_do_everything(shop, action):
    assert check_permission(shop.workspace_id, shop.admin_id, action) is MemberRole.ADMIN


def test_manager_may_not_delete(shop):
    assert check_permission(shop.workspace_id, shop.manager_id, Action.EXPORT_ORDERS) is MemberRole.MANAGER
    with pytest.raises(PermissionDeniedError):
        check_permission(shop.workspace_id, shop.manager_id, Action.DELETE_ORDER)


@pytest.mark.parametrize(
    "action,allowed",
    [
        (Action.VIEW_ORDERS, True),
        (Action.CREATE_ORDER, True),
        (Action.UPDATE_ORDER_STATUS, True),
        (Action.UPDATE_ORDER, False),
        (Action.CANCEL_ORDER, False),
        (Action.EXPORT_ORDERS, False),
    ],
)
def test_staff(shop, action, allowed):
    if allowed:
        assert check_permission(shop.workspace_id, shop.staff_id, action) is MemberRole.STAFF
    else:
        with pytest.raises(PermissionDeniedError):
            check_permission(shop.workspace_id, shop.staff_id, action)


def test_customer_can_view_and_order_only(shop):
    check_permission(shop.workspace_id, shop.customer_id, Action.VIEW_ORDERS)
    check_permission(shop.workspace_id, shop.customer_id, Action.CREATE_ORDER)
    with pytest.raises(PermissionDeniedError):
        check_permission(shop.workspace_id, shop.customer_id, Action.UPDATE_ORDER_STATUS)


def test_membership_is_per_workspace(shop):
    with pytest.raises(PermissionDeniedError):
        check_permission(shop.other_workspace_id, shop.admin_id, Action.VIEW_ORDERS)


@pytest.mark.parametrize("user_id", ["", None, "unknown-user"])
def test_acting_user_must_be_known(shop, user_id):
    with pytest.raises(UnauthorizedError):
        check_permission(shop.workspace_id, user_id, Action.VIEW_ORDERS)
