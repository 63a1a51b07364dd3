"""
# `app/main.py` — Application entry point

## Startup
- `create_app(settings, services)` builds one FastAPI instance. `services`
  defaults to the graph selected by `STORAGE_BACKEND` (`firestore` | `memory`)
  and is stored on `app.state.services`.
- CORS follows `settings.allowed_origins` (comma-separated list or `*`).

## Routers
**Public / role-scoped:**
- `/auth`, `/products`, `/categories`, `/cart`, `/orders`, `/promo-codes`,
  `/delivery/orders`, `/users/me`

**Admin (prefix `/admin`):**
- `/products`, `/categories`, `/orders`, `/promo-codes`

Admin routers are protected in their modules with `get_current_admin`.

## Errors
Every `GroceryError` is answered as `{"code": ..., "detail": ...}` with the
error's HTTP status.

## Background scheduler
- **Library:** APScheduler (`AsyncIOScheduler`)
- **Job:** `otp-cleanup` purges consumed/expired OTP records every
  `OTP_CLEANUP_MINUTES`.
- Started on `startup`, stopped on `shutdown`.
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import Settings, settings as default_settings
from app.core.errors import GroceryError
from app.routers import auth, carts, categories, delivery, discounts, orders, products, users
from app.services.container import ServiceContainer, build_services

logger = logging.getLogger("grocer.app")


async def _grocery_error_handler(request: Request, exc: GroceryError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[ServiceContainer] = None,
) -> FastAPI:
    cfg = settings or default_settings
    container = services or build_services(cfg)

    app = FastAPI(
        title=f"{cfg.app_name} API",
        description="Backend API for a grocery delivery app: storefront, admin dashboard and delivery console.",
        version="1.0.0",
        redirect_slashes=False,
    )
    app.state.settings = cfg
    app.state.services = container

    # Configure CORS (allow front-end domain or all origins as specified)
    allow_origins = [o.strip() for o in cfg.allowed_origins.split(",")] if cfg.allowed_origins else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(GroceryError, _grocery_error_handler)

    # Include public routers
    app.include_router(auth.router)
    app.include_router(products.router)
    app.include_router(categories.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(discounts.router)
    app.include_router(delivery.router)
    app.include_router(users.router)

    # Include admin routers (with prefix /admin)
    app.include_router(products.admin_router, prefix="/admin")
    app.include_router(categories.admin_router, prefix="/admin")
    app.include_router(orders.admin_router, prefix="/admin")
    app.include_router(discounts.admin_router, prefix="/admin")

    scheduler = AsyncIOScheduler()
    app.state.scheduler = scheduler

    @app.on_event("startup")
    async def _startup_scheduler():
        if not scheduler.running:
            scheduler.start()
        scheduler.add_job(
            container.otp.purge_expired,
            "interval",
            minutes=cfg.otp_cleanup_minutes,
            id="otp-cleanup",
            replace_existing=True,
        )

    @app.on_event("shutdown")
    async def _shutdown_scheduler():
        if scheduler.running:
            scheduler.shutdown(wait=False)

    return app


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.DEBUG if default_settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Run the app directly with uvicorn (for development)
if __name__ == "__main__":
    import uvicorn

    _configure_logging()
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
