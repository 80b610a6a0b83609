"""
AMG back office: FastAPI backend.

Exposes the supplier order core to the web UI.  All state lives in one
SQLite database (data/amg.db by default) plus a storage directory for
uploaded files.

Endpoints
---------
  GET    /api/health                          → liveness probe
  POST   /api/auth/sign-up                    → create account, returns session
  POST   /api/auth/sign-in                    → returns session {token, user, expires_at}
  POST   /api/auth/sign-out                   → drop the current session
  PATCH  /api/auth/user                       → change email / password
  GET    /api/orders                          → page of orders (?page ?limit ?search ?status ...)
  GET    /api/orders/next-number              → preview the next order number
  GET    /api/orders/{id}                     → one order with lines
  POST   /api/orders                          → create a draft order
  PUT    /api/orders/{id}                     → replace header and lines
  POST   /api/orders/{id}/items               → append lines
  POST   /api/orders/{id}/cancel              → cancel
  PATCH  /api/orders/{id}/status              → move along the lifecycle
  PATCH  /api/orders/{id}/reception           → record received quantities
  DELETE /api/orders/{id}                     → hard delete
  GET    /api/orders/{id}/document            → printable purchase order (HTML)
  GET    /api/settings/company                → company settings
  PUT    /api/settings/company                → save company settings
  POST   /api/settings/company/logo           → upload company logo
  GET    /storage/{bucket}/{path}             → public file download

When auth is required, /api/orders* and /api/settings* need
"Authorization: Bearer <token>".

Errors come back as {"error": <type>, "detail": <message>, "issues": [...]}.
"""
import logging
from datetime import date
from typing import Callable, Optional

from fastapi import Depends, FastAPI, File, Header, Query, Request, UploadFile
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse

from config import Config
from dashboard.models import (
    CompanySettingsUpdate,
    Credentials,
    ItemsPayload,
    OrderPayload,
    ReceptionPayload,
    StatusUpdate,
    UserUpdate,
)
from dashboard.services.document import render_purchase_order
from models.auth import Session, User
from models.company import CompanySettings
from models.supplier_order import OrderFilters, OrderItem, OrderPage, OrderStatus, SortOrder, SupplierOrder
from orders.auth import AuthService
from orders.backend import Backend
from orders.company import CompanySettingsService
from orders.errors import (
    AuthError,
    BackendError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    OrderError,
    ReceptionError,
    SequenceExhaustionError,
    ValidationError,
)
from orders.lifecycle import SupplierOrderManager
from orders.reception import ReceptionTracker
from orders.sequence import OrderNumberGenerator
from orders.storage import ObjectStorage
from orders.validator import OrderValidator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared resources (lazy: created on first request)
# ---------------------------------------------------------------------------
_config: Optional[Config] = None
_backend: Optional[Backend] = None
_storage: Optional[ObjectStorage] = None


def get_config() -> Config:
    global _config
    if _config is None:
        _config = Config()
        _config.ensure_data_dirs()
    return _config


def get_backend(config: Config = Depends(get_config)) -> Backend:
    global _backend
    if _backend is None:
        _backend = Backend(config.db_path, timeout=config.db_timeout_seconds)
    return _backend


def get_storage(config: Config = Depends(get_config)) -> ObjectStorage:
    global _storage
    if _storage is None:
        _storage = ObjectStorage(config.storage_dir, config.public_base_url)
    return _storage


def get_clock() -> Callable[[], date]:
    return date.today


def get_manager(
    config: Config = Depends(get_config),
    backend: Backend = Depends(get_backend),
    clock: Callable[[], date] = Depends(get_clock),
) -> SupplierOrderManager:
    return SupplierOrderManager(
        backend,
        numbers=OrderNumberGenerator(prefix=config.order_number_prefix, clock=clock),
        validator=OrderValidator(default_currency=config.default_currency),
        clock=clock,
        max_page_size=config.max_page_size,
    )


def get_tracker(backend: Backend = Depends(get_backend)) -> ReceptionTracker:
    return ReceptionTracker(backend)


def get_auth(config: Config = Depends(get_config), backend: Backend = Depends(get_backend)) -> AuthService:
    return AuthService(backend, session_ttl_hours=config.session_ttl_hours)


def get_company(
    backend: Backend = Depends(get_backend),
    storage: ObjectStorage = Depends(get_storage),
) -> CompanySettingsService:
    return CompanySettingsService(backend, storage)


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_user(
    authorization: Optional[str] = Header(default=None),
    config: Config = Depends(get_config),
    auth: AuthService = Depends(get_auth),
) -> Optional[User]:
    if not config.auth_required:
        return None
    return auth.get_user(_bearer(authorization))


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title="AMG Back Office", docs_url=None, redoc_url=None)

# Most specific class first
_STATUS_CODES: list[tuple[type, int]] = [
    (ValidationError, 422),
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (ConflictError, 409),
    (SequenceExhaustionError, 409),
    (AuthError, 401),
    (BackendError, 502),
]


@app.exception_handler(OrderError)
def order_error_handler(request: Request, exc: OrderError) -> JSONResponse:
    status_code = next((code for cls, code in _STATUS_CODES if isinstance(exc, cls)), 500)
    body: dict = {
        "error": type(exc).__name__,
        "detail": str(exc),
        "issues": [i.model_dump() for i in getattr(exc, "issues", [])],
    }
    if isinstance(exc, ReceptionError):
        body["missing_ids"] = exc.missing_ids
        body["updated"] = [item.model_dump(mode="json") for item in exc.updated]

    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content=body, headers=headers)


# ── Health ───────────────────────────────────────────────────────────────────

@app.get("/api/health")
def health(config: Config = Depends(get_config)):
    return {
        "status": "ok",
        "db_path": str(config.db_path),
        "db_exists": config.db_path.exists(),
        "storage_dir": str(config.storage_dir),
        "auth_required": config.auth_required,
    }


# ── Auth ─────────────────────────────────────────────────────────────────────

@app.post("/api/auth/sign-up", response_model=Session, status_code=201)
def sign_up(body: Credentials, auth: AuthService = Depends(get_auth)):
    return auth.sign_up(body.email, body.password)


@app.post("/api/auth/sign-in", response_model=Session)
def sign_in(body: Credentials, auth: AuthService = Depends(get_auth)):
    return auth.sign_in(body.email, body.password)


@app.post("/api/auth/sign-out", status_code=204)
def sign_out(
    authorization: Optional[str] = Header(default=None),
    auth: AuthService = Depends(get_auth),
):
    token = _bearer(authorization)
    if token:
        auth.sign_out(token)


@app.patch("/api/auth/user", response_model=User)
def update_user(
    body: UserUpdate,
    authorization: Optional[str] = Header(default=None),
    auth: AuthService = Depends(get_auth),
):
    return auth.update_user(_bearer(authorization), email=body.email, password=body.password)


# ── Orders ───────────────────────────────────────────────────────────────────

@app.get("/api/orders", response_model=OrderPage, dependencies=[Depends(require_user)])
def list_orders(
    page: int = Query(default=1),
    limit: Optional[int] = Query(default=None),
    search: str = Query(default=""),
    status: Optional[OrderStatus] = Query(default=None),
    supplier_id: Optional[int] = Query(default=None),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    sort_by: str = Query(default="order_date"),
    sort_order: SortOrder = Query(default="desc"),
    config: Config = Depends(get_config),
    manager: SupplierOrderManager = Depends(get_manager),
):
    return manager.list_orders(
        page=page,
        limit=config.default_page_size if limit is None else limit,
        search=search,
        filters=OrderFilters(
            status=status, supplier_id=supplier_id, date_from=date_from, date_to=date_to,
        ),
        sort_by=sort_by,
        sort_order=sort_order,
    )


# Declared before /{order_id} so "next-number" is not parsed as an id
@app.get("/api/orders/next-number", dependencies=[Depends(require_user)])
def next_order_number(manager: SupplierOrderManager = Depends(get_manager)):
    """Preview only: the number is allocated when the order is created."""
    return {"order_number": manager.numbers.next_number(manager.backend)}


@app.get("/api/orders/{order_id}", response_model=SupplierOrder, dependencies=[Depends(require_user)])
def get_order(order_id: int, manager: SupplierOrderManager = Depends(get_manager)):
    return manager.get_by_id(order_id)


@app.post("/api/orders", response_model=SupplierOrder, status_code=201, dependencies=[Depends(require_user)])
def create_order(body: OrderPayload, manager: SupplierOrderManager = Depends(get_manager)):
    return manager.create(body.details(), body.items)


@app.put("/api/orders/{order_id}", response_model=SupplierOrder, dependencies=[Depends(require_user)])
def update_order(order_id: int, body: OrderPayload, manager: SupplierOrderManager = Depends(get_manager)):
    return manager.update(order_id, body.details(), body.items)


@app.post("/api/orders/{order_id}/items", response_model=SupplierOrder, dependencies=[Depends(require_user)])
def add_order_items(order_id: int, body: ItemsPayload, manager: SupplierOrderManager = Depends(get_manager)):
    return manager.add_items(order_id, body.items)


@app.post("/api/orders/{order_id}/cancel", response_model=SupplierOrder, dependencies=[Depends(require_user)])
def cancel_order(order_id: int, manager: SupplierOrderManager = Depends(get_manager)):
    return manager.cancel(order_id)


@app.patch("/api/orders/{order_id}/status", response_model=SupplierOrder, dependencies=[Depends(require_user)])
def set_order_status(order_id: int, body: StatusUpdate, manager: SupplierOrderManager = Depends(get_manager)):
    return manager.transition(order_id, body.status)


@app.patch("/api/orders/{order_id}/reception", dependencies=[Depends(require_user)])
def update_reception(
    order_id: int,
    body: ReceptionPayload,
    tracker: ReceptionTracker = Depends(get_tracker),
    manager: SupplierOrderManager = Depends(get_manager),
):
    """
    Record received quantities.  With advance_status, a shipped order moves
    to partially_delivered / delivered to match what was received.
    """
    items: list[OrderItem] = tracker.update_reception(order_id, body.items)
    order_status = None
    if body.advance_status:
        order_status = tracker.sync_order_status(order_id)
    return {
        "items": [item.model_dump(mode="json") for item in items],
        "order": manager.get_by_id(order_id).model_dump(mode="json"),
        "order_status": order_status,
    }


@app.delete("/api/orders/{order_id}", status_code=204, dependencies=[Depends(require_user)])
def delete_order(order_id: int, manager: SupplierOrderManager = Depends(get_manager)):
    manager.delete(order_id)


@app.get("/api/orders/{order_id}/document", response_class=HTMLResponse, dependencies=[Depends(require_user)])
def order_document(
    order_id: int,
    config: Config = Depends(get_config),
    manager: SupplierOrderManager = Depends(get_manager),
    company: CompanySettingsService = Depends(get_company),
):
    order = manager.get_by_id(order_id)
    suppliers = manager.backend.select(
        "amg_suppliers", filters=[("id", "eq", order.supplier_id)], limit=1
    ).rows
    html = render_purchase_order(
        order,
        company.get(),
        supplier=suppliers[0] if suppliers else None,
        template_file=config.document_template_path,
    )
    return HTMLResponse(content=html)


# ── Settings ─────────────────────────────────────────────────────────────────

@app.get("/api/settings/company", response_model=CompanySettings, dependencies=[Depends(require_user)])
def get_company_settings(company: CompanySettingsService = Depends(get_company)):
    return company.get()


@app.put("/api/settings/company", response_model=CompanySettings, dependencies=[Depends(require_user)])
def save_company_settings(body: CompanySettingsUpdate, company: CompanySettingsService = Depends(get_company)):
    return company.save(CompanySettings(**body.model_dump()))


@app.post("/api/settings/company/logo", response_model=CompanySettings, dependencies=[Depends(require_user)])
async def upload_company_logo(
    file: UploadFile = File(...),
    company: CompanySettingsService = Depends(get_company),
):
    contents = await file.read()
    settings = company.upload_logo(file.filename or "", contents)
    logger.info("Company logo uploaded (%d bytes)", len(contents))
    return settings


# ── Storage ──────────────────────────────────────────────────────────────────

@app.get("/storage/{bucket}/{path:path}")
def download_object(bucket: str, path: str, storage: ObjectStorage = Depends(get_storage)):
    return FileResponse(storage.resolve(bucket, path))
