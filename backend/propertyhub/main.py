import logging
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from pymongo.errors import PyMongoError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from propertyhub.api.api import api_router
from propertyhub.core.config import get_settings
from propertyhub.core.database import Base, SessionLocal, engine
from propertyhub.core.deps import get_session_user
from propertyhub.core.errors import PropertyHubError, PropertyNotFoundError, PropertyValidationError
from propertyhub.core.logging import setup_logging
from propertyhub.core.middleware import RequestIDMiddleware, SecurityHeadersMiddleware
from propertyhub.core.mongo import ensure_indexes, get_properties
from propertyhub.core.rate_limit import limiter
from propertyhub.models import AuditLog, User, UserRole, VerificationCode  # noqa: F401

settings = get_settings()
setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    docs_url="/docs" if settings.ENABLE_API_DOCS else None,
    redoc_url="/redoc" if settings.ENABLE_API_DOCS else None,
    openapi_url="/openapi.json" if settings.ENABLE_API_DOCS else None,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(SecurityHeadersMiddleware, api_prefix=settings.API_PREFIX)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    # The dashboard authenticates with the session cookie.
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "x-request-id"],
)


@app.on_event("startup")
def on_startup() -> None:
    Base.metadata.create_all(bind=engine)
    try:
        ensure_indexes(get_properties())
    except PyMongoError as exc:
        logger.warning("Could not ensure Property indexes: %s", exc)


@app.get("/health")
@limiter.limit("60/minute")
def health(request: Request):
    return {"status": "ok"}


_web_dir = Path(__file__).resolve().parent / "web"
_site_dir = _web_dir / "site"
app.mount("/static", StaticFiles(directory=str(_web_dir / "static")), name="static")


def _page(name: str, status_code: int = 200) -> FileResponse:
    return FileResponse(str(_site_dir / name), status_code=status_code)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Browsers get the HTML page instead of {"detail": "Not Found"}.
    if exc.status_code == 404 and not request.url.path.startswith(settings.API_PREFIX):
        accept = (request.headers.get("accept") or "").lower()
        if "text/html" in accept:
            return _page("404.html", status_code=404)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [{"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")} for err in exc.errors()]


@app.exception_handler(PropertyNotFoundError)
async def property_not_found_handler(request: Request, exc: PropertyNotFoundError):
    return JSONResponse(status_code=404, content={"success": False, "error": str(exc), "id": exc.property_id})


@app.exception_handler(PropertyValidationError)
async def property_validation_handler(request: Request, exc: PropertyValidationError):
    return JSONResponse(status_code=400, content={"success": False, "error": str(exc), "details": exc.details})


@app.exception_handler(PropertyHubError)
async def propertyhub_error_handler(request: Request, exc: PropertyHubError):
    logger.error("Unhandled %s: %s", type(exc).__name__, exc)
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


@app.get("/", include_in_schema=False)
def ui_home():
    return _page("index.html")


@app.get("/properties", include_in_schema=False)
def ui_properties():
    return _page("index.html")


@app.get("/properties/{slug}", include_in_schema=False)
def ui_property(slug: str):
    return _page("property.html")


@app.get("/auth/signin", include_in_schema=False)
def ui_signin():
    return _page("signin.html")


@app.get("/dashboard", include_in_schema=False)
def ui_dashboard(request: Request):
    db = SessionLocal()
    try:
        user = get_session_user(request, db)
    except HTTPException:
        return RedirectResponse(url="/auth/signin", status_code=303)
    except SQLAlchemyError:
        logger.exception("Session lookup failed")
        return RedirectResponse(url="/auth/signin", status_code=303)
    finally:
        db.close()
    if user.role != UserRole.admin:
        return RedirectResponse(url="/auth/signin", status_code=303)
    return _page("dashboard.html")


app.include_router(api_router, prefix=settings.API_PREFIX)
