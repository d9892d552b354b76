import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from conecta2.baas.client import get_client
from conecta2.baas.errors import BaasError
from conecta2.config import get_settings
from conecta2.services import chat_service, currency_service
from conecta2.services.app_context import get_app_context, subscribe_to_auth

settings = get_settings()
logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: keep the per-user profile flags in step with auth events
    client = get_client()
    auth_subscription = subscribe_to_auth(client, get_app_context())

    # Startup: exchange-rate and quotation pollers
    if settings.ENABLE_POLLERS:
        currency_service.start_feeds()
    else:
        logger.info("Pollers disabled (ENABLE_POLLERS=false)")
    yield

    currency_service.stop_feeds()
    chat_service.get_chat_hub().detach()
    auth_subscription.unsubscribe()
    client.close()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BaasError)
async def baas_error_handler(request: Request, exc: BaasError) -> JSONResponse:
    """Last resort for backend failures no service translated."""
    logger.error("Unhandled BaaS error on %s %s: %r", request.method, request.url.path, exc)
    status_code = exc.status if exc.status and 400 <= exc.status < 600 else 502
    return JSONResponse(
        status_code=status_code,
        content={"detail": f"Error: {exc.message}", "error": exc.to_dict()},
    )


@app.get("/api/health")
def health_check():
    return {"status": "ok", "app": settings.APP_NAME, "baas_mode": settings.BAAS_MODE}


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

from conecta2.routers import auth  # noqa: E402

app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])

# Master data: laboratories, suppliers, products, budget codes
from conecta2.routers import datos_maestros  # noqa: E402

app.include_router(
    datos_maestros.router,
    prefix="/api/datos-maestros",
    tags=["Datos Maestros"],
)

# User management (admin only)
from conecta2.routers import admin  # noqa: E402

app.include_router(
    admin.router,
    prefix="/api/admin",
    tags=["Administración"],
)

# Solicitudes de Compra
from conecta2.routers import purchase_requests  # noqa: E402

app.include_router(
    purchase_requests.router,
    prefix="/api/solicitudes-compra",
    tags=["Solicitudes de Compra"],
)

# Solicitudes de Viaje
from conecta2.routers import travel_requests  # noqa: E402

app.include_router(
    travel_requests.router,
    prefix="/api/solicitudes-viaje",
    tags=["Solicitudes de Viaje"],
)

# Notificaciones
from conecta2.routers import notifications  # noqa: E402

app.include_router(
    notifications.router,
    prefix="/api/notificaciones",
    tags=["Notificaciones"],
)

# Chat (REST + WebSocket)
from conecta2.routers import chat  # noqa: E402

app.include_router(chat.router, prefix="/api/chat", tags=["Chat"])

# Cotizaciones (sidebar feeds)
from conecta2.routers import currency  # noqa: E402

app.include_router(currency.router, prefix="/api/cotizaciones", tags=["Cotizaciones"])

# Local signed-URL downloads
from conecta2.routers import storage  # noqa: E402

app.include_router(storage.router)

# Shell screens; the catch-all must stay last
from conecta2.routers import shell  # noqa: E402

app.include_router(shell.router)
