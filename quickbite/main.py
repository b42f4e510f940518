"""
FastAPI Application Entry Point

QuickBite Food Ordering API

Endpoints:
    - POST /api/orders: Idempotent order placement (clientKey)
    - GET /api/orders: The caller's order history, newest first
    - GET /api/orders/{order_id}: A single order owned by the caller
    - POST /api/contact: Contact form
    - GET /health: System health check

Run with:
    uvicorn quickbite.main:app --port 8001

Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Depends, Query, Request, Response, Header
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from quickbite.auth import get_current_user
from quickbite.core.config import get_settings, setup_logging
from quickbite.database import get_db, init_db, engine
from quickbite.errors import APIError, OrderValidationError, classify_validation_error
from quickbite.models import OrderStatus, User
from quickbite.schemas import (
    OrderCreate,
    OrderResponse,
    ContactCreate,
    ContactResponse,
    ErrorResponse,
    HealthResponse,
)
from quickbite.services import (
    place_order,
    list_orders_for_owner,
    get_order_for_owner,
    save_contact_message,
)

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info(f"   Verify totals: {settings.verify_order_totals}")
    logger.info("=" * 60)

    await init_db()
    logger.info("✅ Database initialized")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Food ordering API. Orders are placed idempotently: every checkout "
        "attempt carries a clientKey and resolves to at most one stored order."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Idempotent-Replayed"],
)


ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🍕 Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db)
) -> HealthResponse:
    """Verify the order store is reachable."""
    db_status = "healthy"
    try:
        await db.execute(select(func.now()))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    return HealthResponse(
        status="operational" if db_status == "healthy" else "degraded",
        database=db_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderResponse,
    status_code=201,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Place Order (idempotent)",
)
async def create_order(
    order_data: OrderCreate,
    response: Response,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    """
    Place an order for the authenticated user.

    Repeating a request with the same ``clientKey`` returns the order created
    by the first request (status 200, ``Idempotent-Replayed: true``) instead
    of creating another one.
    """
    if idempotency_key is not None and idempotency_key.strip() != order_data.client_key:
        raise APIError(
            "Idempotency-Key header does not match clientKey",
            code="IDEMPOTENCY_KEY_MISMATCH",
            status_code=400,
        )

    order, created = await place_order(db, current_user, order_data)

    if not created:
        response.status_code = 200
        response.headers["Idempotent-Replayed"] = "true"

    return OrderResponse.model_validate(order)


@app.get(
    "/api/orders",
    response_model=list[OrderResponse],
    responses={401: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="List My Orders",
)
async def list_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.order_history_limit, ge=1, le=500),
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[OrderResponse]:
    """Retrieve the caller's orders, newest first."""
    status_enum = None
    if status:
        try:
            status_enum = OrderStatus(status.capitalize())
        except ValueError:
            raise OrderValidationError(
                f"Invalid status. Options: {[s.value for s in OrderStatus]}",
                code="INVALID_STATUS",
                status_code=400,
            )

    orders = await list_orders_for_owner(
        db, current_user, skip=skip, limit=limit, status=status_enum
    )
    return [OrderResponse.model_validate(order) for order in orders]


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def get_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    """Get a specific order by ID."""
    order = await get_order_for_owner(db, current_user, order_id)
    return OrderResponse.model_validate(order)


# =============================================================================
# CONTACT ENDPOINT
# =============================================================================

@app.post(
    "/api/contact",
    response_model=ContactResponse,
    status_code=201,
    responses={422: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Contact"],
)
async def create_contact_message(
    data: ContactCreate,
    db: AsyncSession = Depends(get_db),
) -> ContactResponse:
    """Store a message from the contact form."""
    contact = await save_contact_message(db, data)
    return ContactResponse(
        success=True,
        message="Thanks for reaching out! We'll get back to you soon.",
        id=contact.id,
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    error = classify_validation_error(exc.errors())
    logger.warning(f"{request.method} {request.url.path} invalid: {error.code} - {error.message}")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "code": f"HTTP_{exc.status_code}", "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    content = {
        "success": False,
        "code": "INTERNAL_ERROR",
        "message": "An unexpected error occurred",
    }
    if settings.debug:
        content["detail"] = str(exc)
    return JSONResponse(status_code=500, content=content)
