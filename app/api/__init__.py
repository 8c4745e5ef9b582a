# app/api/__init__.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routers import admin, cart, health, orders, products, users


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    #enveloppe {success, message, errors?}
    if isinstance(exc.detail, dict):
        content = {"success": False, **exc.detail}
    else:
        content = {"success": False, "message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


def create_app() -> FastAPI:
    app = FastAPI(
        title="MJ Chauffage API",
        version="1.0.0",
    )

    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(products.router)
    app.include_router(cart.router)
    app.include_router(orders.router)
    app.include_router(admin.router)

    return app
