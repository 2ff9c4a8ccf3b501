import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from trueque_auth.auth.router import router as auth_router
from trueque_auth.config import Settings, get_settings
from trueque_auth.database import dispose_db, init_db
from trueque_auth.maintenance import run_periodic_cleanup
from trueque_auth.otp.router import router as otp_router
from trueque_auth.rate_limit import limiter
from trueque_common.middleware.error_handler import error_envelope_middleware
from trueque_common.middleware.request_id import request_id_middleware

logger = logging.getLogger(__name__)


# ── OpenAPI metadata ──────────────────────────────────────────────────────────

_DESCRIPTION = """
## TruequeVE Auth Service

Passwordless sign-in for the TruequeVE marketplace:

* **One-time codes** — 6-digit codes by email (SMTP, Brevo fallback) or SMS (Twilio),
  valid for 5 minutes, single use, one request per 2 minutes per identifier.
* **Registration** — accounts are created by proving ownership of an email or phone.
* **Sessions** — signed bearer token backed by a server-side session row; logout
  revokes it immediately.
* **Passwords** — optional second factor; change and OTP-based reset.

### Authentication
Protected endpoints require:
```
Authorization: Bearer <token>
```

### Error shape
```json
{ "detail": "Human-readable message" }
```
Validation errors are returned as `400` with the Pydantic error list under `detail`.
"""

_TAGS_METADATA = [
    {
        "name": "otp",
        "description": "Send and verify one-time codes; check the resend cooldown.",
    },
    {
        "name": "auth",
        "description": (
            "Register, login and logout, current-user profile, password change and "
            "reset, account deletion."
        ),
    },
]


# ── Health schema ─────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    service: str


# ── Logging ───────────────────────────────────────────────────────────────────

def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s:%(name)s: %(message)s",
    )


# ── App factory ───────────────────────────────────────────────────────────────

async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)
    session_factory = init_db(settings.database_url)

    cleanup_task = None
    if settings.cleanup_enabled:
        cleanup_task = asyncio.create_task(
            run_periodic_cleanup(session_factory, settings.cleanup_interval_seconds)
        )
    logger.info("%s auth service started (env=%s)", settings.app_name, settings.env_name)
    yield

    if cleanup_task is not None:
        cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cleanup_task
    await dispose_db()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        title=f"{settings.app_name} Auth Service",
        version="1.0.0",
        description=_DESCRIPTION,
        openapi_tags=_TAGS_METADATA,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.expose_errors = settings.is_development

    # Attach rate limiter state before middleware
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    # Middleware is applied in reverse-registration order (last added = outermost).
    # CORS must be outermost so ALL responses (including 429s) carry CORS headers.
    app.add_middleware(SlowAPIMiddleware)
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(error_envelope_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )

    app.include_router(otp_router, prefix="/api")
    app.include_router(auth_router, prefix="/api")

    @app.get("/api/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service="auth")

    return app


app = create_app()
