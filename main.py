"""Main FastAPI application"""
import os
import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from config import load_settings
from routes import router as api_router
from services.errors import StoreUnavailable
from services.expenses_service import ExpenseStore

settings = load_settings()

# --- Unified Logging Configuration with Rich ---
LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            # RichHandler prints its own timestamp and level
            "format": "%(name)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "default": {
            "class": "rich.logging.RichHandler",
            "formatter": "default",
            "level": "DEBUG",
            "rich_tracebacks": True,
            "show_time": True,
            "show_path": False,
            "log_time_format": "%Y-%m-%d %H:%M:%S",
            "markup": False,
        },
    },
    "loggers": {
        "uvicorn": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "uvicorn.access": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "": { # Root logger for our application
            "handlers": ["default"],
            "level": settings.log_level,
            "propagate": False,
        },
    },
}

logging.config.dictConfig(LOGGING_CONFIG)
logger = logging.getLogger(__name__)

# Application state holding the shared database client and the expense store
app_state = {}

# --- Rate Limiter Setup ---
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Connect to MongoDB
    logger.info(f"Connecting to MongoDB database '{settings.db_name}'...")
    try:
        app_state["db_client"] = AsyncIOMotorClient(
            settings.mongodb_uri, serverSelectionTimeoutMS=settings.mongodb_timeout_ms
        )
        app_state["db"] = app_state["db_client"][settings.db_name]
        collection = app_state["db"].get_collection(settings.collection_name)
        app_state["expense_store"] = ExpenseStore(collection, settings.timezone)
        await app_state["db_client"].admin.command('ping')
        logger.info(f"MongoDB ping successful. Using collection '{settings.collection_name}', time zone {settings.timezone or 'server local'}.")
    except PyMongoError as e:
        logger.error(f"Failed to connect to MongoDB: {e}")
        if app_state.get("db_client"):
            app_state["db_client"].close()
        app_state["db_client"] = None
        app_state["db"] = None
        app_state["expense_store"] = None

    yield # Application runs here

    # Shutdown: Close MongoDB connection
    if app_state.get("db_client"):
        logger.info("Closing MongoDB connection...")
        app_state["db_client"].close()
        logger.info("MongoDB connection closed.")


app = FastAPI(
    title="Expense Tracker API",
    description="API for recording personal expenses per user.",
    version="1.0.0",
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Reports validation failures as 400 with one message per field."""
    errors = {}
    for error in exc.errors():
        loc = [part for part in error.get("loc", ()) if part != "body"]
        field = str(loc[-1]) if loc else "body"
        if error.get("type") == "missing":
            message = f"{field.capitalize()} is required"
        elif error.get("type") == "value_error":
            message = error.get("msg", "Invalid value").removeprefix("Value error, ")
        else:
            message = error.get("msg", "Invalid value")
        errors.setdefault(field, message)
    logger.warning(f"Validation failed: {errors}")
    return JSONResponse(status_code=400, content=errors)


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error(f"Internal server error on {request.method} {request.url.path}: {exc!r}")
    return JSONResponse(status_code=500, content={"error": "An internal error occurred"})


# --- Middleware (Order Matters) ---
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)


@app.middleware("http")
async def add_app_state_to_request(request: Request, call_next):
    """Adds the database handle and the expense store to the request state."""
    request.state.db = app_state.get("db")
    request.state.expense_store = app_state.get("expense_store")
    response = await call_next(request)
    return response


app.include_router(api_router, prefix="/api", tags=["api"])

# Mount the frontend (MUST be after API router)
if os.path.isdir(settings.static_dir):
    app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")
else:
    logger.info(f"Static directory '{settings.static_dir}' not found, serving the API only.")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True
    )
