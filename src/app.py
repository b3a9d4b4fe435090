"""Back-office FastAPI application.

Every request runs inside the back-office domain context and is tagged with
a request id in the structured logs.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backoffice.domain import backoffice

# PROTEAN_ENV selects the configuration overlay (memory store by default,
# PostgreSQL for "production").
backoffice.init()

from backoffice.api import order_router, register_error_handlers, workspace_order_router  # noqa: E402
from backoffice.utils.logging import bind_request_context, clear_request_context  # noqa: E402

app = FastAPI(
    title="Back-office API",
    description="Workspace orders: placement, payment, fulfillment and reporting",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the back-office domain context and bind request log context."""
    clear_request_context()
    bind_request_context(
        request_id=request.headers.get("x-request-id") or uuid4().hex,
        acting_user_id=request.headers.get("x-user-id"),
        path=request.url.path,
    )
    with backoffice.domain_context():
        return await call_next(request)


register_error_handlers(app)
app.include_router(order_router)
app.include_router(workspace_order_router)


@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": backoffice.name})
