import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware
import uvicorn

from . import models  # noqa: F401  registers the tables on Base.metadata
from .config import settings
from .database import Base, engine
from .errors import RegistryError
from .models import utcnow
from .routes import admin as admin_routes
from .routes import registration as registration_routes
from .routes import trials as trials_routes

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.secret_key,
    session_cookie="clinicalgoto_session",
    max_age=24 * 60 * 60,
    same_site="lax",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("%s ready (database: %s)", settings.app_name, engine.url.render_as_string(hide_password=True))


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


@app.exception_handler(RegistryError)
async def registry_error_handler(request: Request, exc: RegistryError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    return _error(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return _error(400, f"Invalid request: {details}")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return _error(404, "Endpoint not found")
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled application error", exc_info=exc)
    return _error(500, "Internal server error")


@app.get("/health")
def health():
    return {"status": "OK", "timestamp": utcnow().isoformat() + "Z"}


app.include_router(registration_routes.router)
app.include_router(trials_routes.router)
app.include_router(admin_routes.router)


def run() -> None:
    """Console entry point: ``clinicalgoto`` serves the app with uvicorn."""
    uvicorn.run(
        "clinicalgoto.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
