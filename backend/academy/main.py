import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from . import __version__
from .account_routes import router as account_router
from .auth_routes import router as auth_router
from .config import get_settings
from .db.health import check_store
from .db.session import create_schema, dispose_engine, get_engine
from .errors import AcademyError, PartialFailureError
from .logging_config import configure_logging
from .payloads import ErrorPayload
from .progress_routes import router as progress_router
from .result_routes import router as result_router
from .strike_routes import router as strike_router


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    if settings.auto_create_schema:
        create_schema()
        logger.info("Database tables ready.")
    if settings.uses_default_admin_password:
        logger.warning("Admin password is the built-in default; set ACADEMY_ADMIN_PASSWORD.")
    yield
    dispose_engine()


app = FastAPI(title="Sales Funnel Academy", version=__version__, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AcademyError)
async def academy_error_handler(_: Request, exc: AcademyError) -> JSONResponse:
    body: Dict[str, Any] = ErrorPayload(error=exc.message).model_dump(by_alias=True)
    if isinstance(exc, PartialFailureError):
        body["completedSteps"] = exc.completed_steps
        body["failedStep"] = exc.failed_step
        body["committed"] = exc.committed
    return JSONResponse(body, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        field = ".".join(loc[1:]) or ".".join(loc) or "request"
        problems.append(f"{field}: {error.get('msg', 'invalid')}")
    logger.warning("Rejected request to %s: %s", request.url.path, problems)
    body = ErrorPayload(error="Invalid request. " + "; ".join(problems)).model_dump(by_alias=True)
    return JSONResponse(body, status_code=status.HTTP_400_BAD_REQUEST)


@app.get("/api/health")
def health() -> Dict[str, Any]:
    return {"ok": True, "timestamp": int(time.time() * 1000)}


@app.get("/api/health/database")
def database_health() -> Dict[str, Any]:
    try:
        engine = get_engine()
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    health = check_store(engine)
    if not health.reachable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Record store unreachable ({health.error}).",
        )
    return {
        "status": "ok" if health.ready else "schema_incomplete",
        "missingTables": health.missing_tables,
        "pool": health.pool,
    }


app.include_router(auth_router)
app.include_router(progress_router)
app.include_router(result_router)
app.include_router(strike_router)
app.include_router(account_router)


@app.get("/{full_path:path}", include_in_schema=False)
def client_app(full_path: str) -> FileResponse:
    static_dir = get_settings().static_dir
    if not static_dir or full_path.startswith("api/"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    root = Path(static_dir).resolve()
    candidate = (root / full_path).resolve()
    if full_path and candidate.is_file() and candidate.is_relative_to(root):
        return FileResponse(candidate)
    index = root / "public" / "index.html"
    if not index.is_file():
        index = root / "index.html"
    if not index.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not installed")
    return FileResponse(index)
