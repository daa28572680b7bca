import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from app.db import Base, engine
from app.errors import ServiceError, RateLimited
from app.settings import settings
from app.routes.generations import router as generations_router
from app.routes.worker import router as worker_router
from contextlib import asynccontextmanager

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # ----- startup -----
    # Dev-only: create tables if they do not exist.
    # In prod, prefer running Alembic migrations instead of create_all.
    Base.metadata.create_all(bind=engine)

    yield

    # ----- shutdown -----
    # Dispose pooled DB connections so the process exits cleanly
    engine.dispose()

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = exc.headers if isinstance(exc, RateLimited) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
        headers=headers,
    )

@app.get("/healthz", tags=["health"])
def healthz():
    return {"status": "ok"}

app.include_router(generations_router, prefix=settings.API_PREFIX)
app.include_router(worker_router, prefix=settings.API_PREFIX)
