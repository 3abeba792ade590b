# app/main.py
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from app.core.config import get_settings
from app.core.errors import ServiceError, Transient
from app.core.events import order_feed
from app.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from app.models import profile as _profile_models  # noqa: F401
from app.models import catalog as _catalog_models  # noqa: F401
from app.models import cart as _cart_models  # noqa: F401
from app.models import shop as _shop_models  # noqa: F401
from app.models import order as _order_models  # noqa: F401

from app.repositories.profile_repo import ProfileRepository
from app.services.notification_service import NotificationService

# Routers
from app.routers.profiles import router as profiles_router
from app.routers.catalog import router as catalog_router
from app.routers.cart import router as cart_router
from app.routers.shop import router as shop_router
from app.routers.orders import router as orders_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")

notifier = NotificationService(ProfileRepository())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.
      - Start the customer email notifier on the order feed.

    Shutdown:
      - Unsubscribe the notifier and drain pending emails.
    """
    logger.info("Startup: connecting to Postgres...")
    try:
        create_db_and_tables()
        logger.info("Startup: DB connection OK, tables verified.")
    except OperationalError as e:
        logger.error("Startup: DB connection FAILED: %s", e)
        raise

    notifier.start()
    unsubscribe = order_feed.subscribe(notifier.on_event, notifier.wants)
    try:
        yield
    finally:
        unsubscribe()
        notifier.stop()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


# --- CORS configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error rendering: {"detail": ..., "reason": ...} ---


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "reason": exc.reason},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": jsonable_encoder(exc.errors()),
            "reason": "validation_failed",
        },
    )


@app.exception_handler(OperationalError)
async def operational_error_handler(request: Request, exc: OperationalError):
    logger.warning("Database unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=Transient.status_code,
        content={"detail": "Database unavailable, please retry", "reason": Transient.reason},
    )


# Versioned API prefix, e.g. /api/v1
app.include_router(profiles_router, prefix=settings.API_V1_STR)
app.include_router(catalog_router, prefix=settings.API_V1_STR)
app.include_router(cart_router, prefix=settings.API_V1_STR)
app.include_router(shop_router, prefix=settings.API_V1_STR)
app.include_router(orders_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "ration-shop-backend"}
