"""Recordbook - FastAPI entrypoint."""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import ServerSelectionTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from recordbook.api import attendance, marks, students
from recordbook.api.responses import envelope
from recordbook.config import settings
from recordbook.db import db_shutdown, db_startup
from recordbook.errors import RecordsError

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    try:
        await db_startup()
    except ServerSelectionTimeoutError as e:
        logger.error("MongoDB is not reachable at %s", settings.mongodb_url)
        raise RuntimeError("MongoDB connection failed. Start MongoDB and retry.") from e
    yield
    await db_shutdown()


app = FastAPI(
    title=settings.app_name,
    description="Attendance and marks recording for multi-tenant institutions",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(RecordsError)
async def records_exception_handler(request: Request, exc: RecordsError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return envelope(exc.message, code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("%s %s rejected: invalid request body", request.method, request.url.path)
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return envelope("Invalid request", {"errors": errors}, code=status.HTTP_400_BAD_REQUEST)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    response = envelope(str(exc.detail), code=exc.status_code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return envelope("Internal Server Error", code=status.HTTP_500_INTERNAL_SERVER_ERROR)


app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(attendance.router, prefix="/api/attendance", tags=["Attendance"])
app.include_router(marks.router, prefix="/api/marks", tags=["Marks"])
app.include_router(students.router, prefix="/api/students", tags=["Student Reports"])


@app.get("/health")
def health():
    return {"status": "ok", "app": settings.app_name}


def run() -> None:
    uvicorn.run("recordbook.main:app", host=settings.host, port=settings.port, reload=settings.debug)


if __name__ == "__main__":
    run()
