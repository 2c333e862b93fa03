# storefront/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from storefront.api.error_handlers import register_exception_handlers
from storefront.api.routers import auth, cart, checkout, orders, payments
from storefront.core.config import settings
from storefront.core.logging import setup_logging
from storefront.core.metrics import export_metrics
from storefront.middleware import ObservabilityMiddleware, PayloadLimitMiddleware, SecurityHeadersMiddleware

# --- Models registration (necesario para Alembic y create_all) ---
import storefront.models.user     # noqa: F401
import storefront.models.guest    # noqa: F401
import storefront.models.product  # noqa: F401
import storefront.models.cart     # noqa: F401
import storefront.models.order    # noqa: F401

TAGS_METADATA = [
    {"name": "auth", "description": "Alta, ingreso y sesión; fusiona el carrito invitado al ingresar."},
    {"name": "cart", "description": "Carrito del usuario o del invitado."},
    {"name": "checkout", "description": "Sesiones de pago alojadas en Stripe."},
    {"name": "orders", "description": "Estado de la orden para la página de éxito del checkout."},
    {"name": "payments", "description": "Webhooks del proveedor de pagos."},
]


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    description=(
        "Núcleo de carrito, checkout y órdenes de la tienda.\n\n"
        "- **Cart**: carritos de invitado y de usuario, fusionados al ingresar.\n"
        "- **Checkout**: sesión de pago en Stripe para el carrito propio.\n"
        "- **Orders**: materialización idempotente desde webhook o polling."
    ),
    openapi_tags=TAGS_METADATA,
    lifespan=lifespan,
)

# --- Middlewares ---
app.add_middleware(PayloadLimitMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(ObservabilityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# --- Routers ---
app.include_router(auth.router, prefix=settings.API_V1_STR)
app.include_router(cart.router, prefix=settings.API_V1_STR)
app.include_router(checkout.router, prefix=settings.API_V1_STR)
app.include_router(orders.router, prefix=settings.API_V1_STR)
app.include_router(payments.router, prefix=settings.API_V1_STR)


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    payload, content_type = export_metrics()
    return Response(content=payload, media_type=content_type)


@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok", "docs_url": "/docs", "redoc_url": "/redoc"}
