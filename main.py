"""Main FastAPI application"""
import os
import logging
import logging.config
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from routes import router as api_router
from services.errors import ExpenseServiceError, StorageUnavailable
from services.expense_store import InMemoryExpenseStore, create_mongo_store

from pymongo.errors import PyMongoError
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

load_dotenv() # Searches current dir and parents

# --- Logging: one RichHandler shared by uvicorn and the app ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        # RichHandler renders time and level itself
        "plain": {"format": "%(name)s - %(message)s"},
    },
    "handlers": {
        "rich": {
            "class": "rich.logging.RichHandler",
            "formatter": "plain",
            "rich_tracebacks": True,
            "show_path": False,
            "log_time_format": "%Y-%m-%d %H:%M:%S",
        },
    },
    "loggers": {
        # uvicorn.error propagates into "uvicorn"
        "uvicorn": {"handlers": ["rich"], "level": "INFO", "propagate": False},
        "uvicorn.access": {"handlers": ["rich"], "level": "INFO", "propagate": False},
        "": {"handlers": ["rich"], "level": LOG_LEVEL},
    },
}

logging.config.dictConfig(LOGGING_CONFIG)

logger = logging.getLogger(__name__)

MODE = os.getenv("MODE", "dev")
IS_PROD = MODE == "prod"
MONGODB_URI = os.getenv("MONGODB_URI")
DB_NAME = os.getenv("DB_NAME", "expenses_db")
COLLECTION_NAME = os.getenv("COLLECTION_NAME", "expenses")
STORE_BACKEND = os.getenv("STORE_BACKEND", "mongo").lower()
STORE_TIMEOUT_MS = int(os.getenv("STORE_TIMEOUT_MS", "5000"))
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "false").lower() == "true"
DEFAULT_RATE_LIMIT = os.getenv("RATE_LIMIT", "60/minute")
CLIENT_DIST_DIR = os.getenv("CLIENT_DIST_DIR", os.path.join("client", "dist"))
PORT = int(os.getenv("PORT", "8000"))

if STORE_BACKEND == "mongo" and not MONGODB_URI:
    logger.error("MONGODB_URI environment variable not set! Database connection will fail.")

# Application state holding the store; copied onto each request
app_state = {}

# --- Rate Limiter Setup (in-memory storage) ---
limiter = Limiter(key_func=get_remote_address, default_limits=[DEFAULT_RATE_LIMIT])

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: build the expense store
    if STORE_BACKEND == "memory":
        logger.info("Using in-memory expense store.")
        app_state["expense_store"] = InMemoryExpenseStore()
    else:
        logger.info(f"Connecting to MongoDB database '{DB_NAME}' (timeout {STORE_TIMEOUT_MS} ms)...")
        store = None
        try:
            store = create_mongo_store(MONGODB_URI, DB_NAME, COLLECTION_NAME, STORE_TIMEOUT_MS)
            await store.ping()
            app_state["expense_store"] = store
            logger.info(f"MongoDB ping successful. Using collection '{DB_NAME}.{COLLECTION_NAME}'.")
        except (StorageUnavailable, PyMongoError) as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            if store is not None:
                await store.close()
            app_state["expense_store"] = None

    yield # Application runs here

    # Shutdown: release the store
    store = app_state.pop("expense_store", None)
    if store is not None:
        logger.info("Closing expense store...")
        await store.close()
        logger.info("Expense store closed.")

app = FastAPI(
    title="Expense Tracker API",
    description="API for recording, editing and removing daily expenses.",
    version="0.1.0",
    lifespan=lifespan
)

# --- Error Handlers ---
async def expense_error_handler(request: Request, exc: ExpenseServiceError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})

async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    logger.warning(f"{request.method} {request.url.path} bad request body: {message}")
    return JSONResponse(status_code=400, content={"success": False, "message": message})

async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unexpected error handling {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"success": False, "message": "An unexpected server error occurred."})

app.add_exception_handler(ExpenseServiceError, expense_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

# --- Rate Limiter State and Handler ---
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Middleware (Order Matters) ---
if RATE_LIMIT_ENABLED:
    app.add_middleware(SlowAPIMiddleware)
# The built client is served from the same origin in prod
if not IS_PROD:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Make the store accessible to route dependencies
@app.middleware("http")
async def add_app_state_to_request(request: Request, call_next):
    """Adds the expense store to the request state."""
    request.state.expense_store = app_state.get("expense_store")
    response = await call_next(request)
    return response

app.include_router(api_router, prefix="/api", tags=["expenses"])

# Mount the built client (MUST be after API router)
if IS_PROD:
    if os.path.isdir(CLIENT_DIST_DIR):
        app.mount("/", StaticFiles(directory=CLIENT_DIST_DIR, html=True), name="static")
    else:
        logger.warning(f"MODE=prod but client build directory '{CLIENT_DIST_DIR}' does not exist; not serving it.")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=PORT,
        reload=not IS_PROD,
        log_config=LOGGING_CONFIG,
    )
