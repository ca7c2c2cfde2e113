import asyncio
import time
import sys
from contextlib import asynccontextmanager, suppress
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from asgi_correlation_id import CorrelationIdMiddleware, correlation_id

from app.logging_setup import setup_logging, logger
from app.services.data_loader import load_and_process_data
from app.services.entity_store import EntityStoreError
from app.store import store
from app.routes import router
from app.database import connect_to_mongo, close_mongo_connection, get_database

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Connects to MongoDB and starts the background load of field metadata
    and entities; /health/ready reports when the load is done.
    """
    setup_logging()
    logger.info("--- Option Limit API Starting Up ---")

    try:
        await connect_to_mongo()
        store.mark_loading()
        app.state.load_task = asyncio.create_task(load_and_process_data(get_database()))
    except Exception as e:
        logger.critical(f"Could not connect to the database on startup: {e}", exc_info=True)
        # Exit with a non-zero status code to tell Docker the container failed
        sys.exit(1)

    yield

    load_task = getattr(app.state, "load_task", None)
    if load_task is not None and not load_task.done():
        load_task.cancel()
        with suppress(asyncio.CancelledError):
            await load_task
    await close_mongo_connection()
    logger.info("--- Option Limit API Shutting Down ---")

app = FastAPI(
    title="Option Limit API",
    description="Limits the options of reference fields by the values of matching fields on the same entity.",
    version="1.0.0",
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)


# MIDDLEWARE CONFIGURATION

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(CorrelationIdMiddleware)

@app.exception_handler(EntityStoreError)
async def entity_store_error_handler(request: Request, exc: EntityStoreError):
    logger.error("Entity store failure", extra={"url": str(request.url), "error": str(exc)})
    return ORJSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "Entity store unavailable", "message": str(exc), "correlation_id": correlation_id.get()},
    )

@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    """
    Logs every request with its timing; turns anything uncaught into a
    JSON 500 carrying the correlation id.
    """
    start_time = time.perf_counter()
    logger.info(
        "Request received",
        extra={"method": request.method, "path": request.url.path}
    )
    try:
        response = await call_next(request)
    except Exception as e:
        logger.critical(
            "Unhandled exception",
            extra={"method": request.method, "path": request.url.path, "error": str(e)},
            exc_info=True,
        )
        return ORJSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "message": "An unexpected error occurred.",
                "correlation_id": correlation_id.get(),
            },
        )
    logger.info(
        "Request completed",
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "process_time_ms": f"{(time.perf_counter() - start_time) * 1000:.2f}",
        },
    )
    return response

#ROUTER INCLUSION
app.include_router(router)
