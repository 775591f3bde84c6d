from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from app.core import config
from app.core.database.engine import AsyncSessionLocal, init_db
from app.core.errors import AccessControlError
from app.features.access.engine import AccessControlEngine
from app.features.access.routes import router as access_router
from app.features.audit.routes import router as audit_router
from app.features.auth.dependencies import get_authorization_header
from app.features.auth.routes import router as auth_router
from app.features.groups.routes import router as group_router
from app.features.roles.routes import router as role_router
from app.features.users.routes import router as user_router
from app.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="RespondNow Access Control",
    description="Role, group and permission management with Appwrite authentication",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
limiter = Limiter(key_func=get_authorization_header)
app.state.limiter = limiter


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.app.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    origins = [config.ALLOW_ORIGIN]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1]
        if key == "__root__":
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(AccessControlError)
async def access_control_exception_handler(_request: Request, exc: AccessControlError):
    log.info("%s: %s", type(exc).__name__, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.on_event("startup")
async def startup():
    """Initialize database, system roles and membership consistency."""
    log.info("Initializing database...")
    await init_db()
    log.info("Database initialized successfully")

    async with AsyncSessionLocal() as db:
        engine = AccessControlEngine(db)
        await engine.roles.bootstrap_system_roles()
        if config.RECONCILE_ON_STARTUP:
            result = await engine.reconcile_memberships()
            log.info("Startup membership reconciliation repaired %d record(s)", result["repaired_count"])


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": "RespondNow Access Control API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "Exchange an Appwrite JWT at /auth/token, then send the access token as Bearer",
            "protected_endpoints": [
                "/users/*", "/roles/*", "/groups/*", "/access/*", "/audit-logs", "/auth/refresh"
            ],
            "public_endpoints": ["/", "/health", "/auth/token"]
        },
        "features": {
            "roles": "SYSTEM and CUSTOM roles over a fixed permission catalog",
            "groups": "Groups granting their roles to every member",
            "users": "Users with direct roles and group memberships",
            "access": "Effective roles, effective permissions and the permission matrix",
            "audit": "Security audit log of access-control changes"
        }
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(user_router, prefix="/users", tags=["users"])
app.include_router(role_router, prefix="/roles", tags=["roles"])
app.include_router(group_router, prefix="/groups", tags=["groups"])
app.include_router(access_router, prefix="/access", tags=["access"])
app.include_router(audit_router, prefix="/audit-logs", tags=["audit"])
