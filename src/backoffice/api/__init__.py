from backoffice.api.errors import register_error_handlers
from backoffice.api.routes import order_router, workspace_order_router

__all__ = ["order_router", "workspace_order_router", "register_error_handlers"]
