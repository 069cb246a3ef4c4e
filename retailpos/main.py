from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from retailpos.core.config import settings
from retailpos.core.error_handlers import register_error_handlers
from retailpos.core.observability import log_event, request_logging_middleware, setup_observability
from retailpos.db.session import SessionLocal, engine
from retailpos.routers import activities, auth, dashboard, expenses, orders, pricing, products, reports, sales, store, users
from retailpos.services.user_service import ensure_bootstrap_admin


def run_bootstrap() -> None:
    db = SessionLocal()
    try:
        ensure_bootstrap_admin(db)
        db.commit()
    except SQLAlchemyError as exc:
        # Tables are missing until `alembic upgrade head` has run.
        db.rollback()
        log_event("bootstrap_skipped", error=str(exc))
    finally:
        db.close()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.bootstrap_admin_on_startup:
        run_bootstrap()
    yield


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    lifespan=lifespan,
    description=(
        "Point-of-sale and inventory back office.\n\n"
        "Swagger quick test flow:\n"
        "1. Click **Authorize** and log in with username + password "
        "(OAuth token URL: `/auth/token`). A fresh database has `admin` / `admin`.\n"
        "2. Add products (`/products`), record sales (`/sales`) and take orders (`/orders`).\n"
        "3. Check margins (`/pricing`) and reports (`/reports`)."
    ),
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "auth", "description": "Login, token lifecycle and the current user."},
        {"name": "users", "description": "User administration."},
        {"name": "activities", "description": "User activity trail."},
        {"name": "products", "description": "Catalog, stock adjustments, quantity history and categories."},
        {"name": "sales", "description": "Checkout sales, sales history and receipts."},
        {"name": "orders", "description": "Customer orders and their completion into sales."},
        {"name": "expenses", "description": "Expense capture and expense history."},
        {"name": "pricing", "description": "Margins, realised profit and price updates."},
        {"name": "reports", "description": "Sales and order reports with CSV/PDF export."},
        {"name": "dashboard", "description": "KPI summary and the daily sales series."},
        {"name": "store", "description": "Collection loading and full backups."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
register_error_handlers(app)

LOCAL_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"


def _cors_options() -> dict:
    origins = settings.cors_origins or ["http://localhost:5173"]
    wildcard = "*" in origins
    origin_regex = settings.cors_origin_regex
    if not origin_regex and settings.env.strip().lower() in {"dev", "development", "staging", "stage"}:
        origin_regex = LOCAL_ORIGIN_REGEX
    return {
        "allow_origins": ["*"] if wildcard else origins,
        "allow_origin_regex": origin_regex,
        "allow_credentials": not wildcard,
        "allow_methods": ["*"],
        "allow_headers": ["*"],
    }


app.add_middleware(CORSMiddleware, **_cors_options())

for api_router in (
    auth.router,
    users.router,
    activities.router,
    products.router,
    products.category_router,
    sales.router,
    orders.router,
    expenses.router,
    pricing.router,
    reports.router,
    dashboard.router,
    store.router,
):
    app.include_router(api_router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        log_event("readiness_failed", error=str(exc))
        return JSONResponse(status_code=503, content={"ok": False})
    return {"ok": True}
